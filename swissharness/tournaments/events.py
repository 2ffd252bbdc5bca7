"""
Tournament event dataclasses — the shared language between the scheduler
and any consumer (CLI, WebSocket broadcaster, tests).

Follows the same frozen-dataclass pattern as swissharness/events.py.
All events are immutable and safe to pass across async boundaries.
dataclasses.asdict() serialises them to JSON-compatible dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from swissharness.tournaments.base import StandingEntry


@dataclass(frozen=True)
class TournamentStartEvent:
    """Fired once, after round 1 has been created and the tournament is running."""

    tournament_id: str
    participant_ids: list[str]          # in seed order
    total_rounds: int
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class RoundStartEvent:
    """Fired after every match of a round has been created."""

    tournament_id: str
    round_num: int
    total_rounds: int
    # Each pairing: (match_id, white_participant_id, black_participant_id)
    pairings: list[tuple[str, str, str]]
    bye: str | None = None
    repeats: int = 0                    # forced rematches in this round


@dataclass(frozen=True)
class ByeEvent:
    tournament_id: str
    round_num: int
    participant_id: str
    score: float


@dataclass(frozen=True)
class MatchScoredEvent:
    """Fired exactly once per match, when its result is applied to standings."""

    tournament_id: str
    round_num: int
    match_id: str
    white_id: str
    black_id: str
    status: str
    white_score: float
    black_score: float


@dataclass(frozen=True)
class RoundCompleteEvent:
    """Fired after every match of a round is closed and applied."""

    tournament_id: str
    round_num: int
    standings: list[StandingEntry]


@dataclass(frozen=True)
class TournamentCompleteEvent:
    """Fired once, when the final round closes."""

    tournament_id: str
    winner_id: str | None
    rounds_completed: int
    final_standings: list[StandingEntry]
    timestamp: datetime = field(default_factory=datetime.now)


# Union type for type-safe pattern matching in consumers
TournamentEvent = (
    TournamentStartEvent
    | RoundStartEvent
    | ByeEvent
    | MatchScoredEvent
    | RoundCompleteEvent
    | TournamentCompleteEvent
)
