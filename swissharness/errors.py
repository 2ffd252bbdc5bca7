"""
Exception hierarchy shared by the scheduling engine and its collaborators.

Validation errors are reported synchronously to whoever called start() or
on_match_event(); the tournament's stored status is left untouched.
StoreError wraps a failed durable write or read so callers can retry.
"""

from __future__ import annotations


class SwissHarnessError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(SwissHarnessError):
    """An operation was rejected because its preconditions do not hold."""


class InsufficientParticipantsError(ValidationError):
    def __init__(self, tournament_id: str, count: int, minimum: int) -> None:
        self.tournament_id = tournament_id
        self.count = count
        self.minimum = minimum
        super().__init__(
            f"Tournament {tournament_id} has {count} active participants; "
            f"at least {minimum} required."
        )


class IllegalTransitionError(ValidationError):
    def __init__(self, tournament_id: str, current: str, action: str) -> None:
        self.tournament_id = tournament_id
        self.current = current
        self.action = action
        super().__init__(
            f"Cannot {action} tournament {tournament_id} while it is '{current}'."
        )


class TournamentFinishedError(IllegalTransitionError):
    """A completion event reached a tournament that has already finished."""

    def __init__(self, tournament_id: str, action: str = "process a match for") -> None:
        super().__init__(tournament_id, "finished", action)


class UnsatisfiablePairingError(ValidationError):
    """No legal pairing exists for the remaining pool, even after relaxation."""


class TournamentNotFoundError(SwissHarnessError):
    def __init__(self, tournament_id: str) -> None:
        self.tournament_id = tournament_id
        super().__init__(f"Tournament not found: {tournament_id}")


class StoreError(SwissHarnessError):
    """Raised when a persistence call fails; the triggering operation may be retried."""

    def __init__(self, operation: str, message: str, cause: Exception | None = None) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"[{operation}] {message}")
