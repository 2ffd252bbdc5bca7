"""
Tournament lifecycle: awaiting → running → finished.

Every transition writes to the store first and only then updates the
in-memory record, so a failed write leaves both sides at the old state.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from swissharness.errors import IllegalTransitionError, TournamentFinishedError
from swissharness.tournaments.base import TournamentRecord, TournamentStatus

if TYPE_CHECKING:
    from swissharness.store.base import TournamentStore

logger = logging.getLogger(__name__)


class TournamentStateMachine:
    def __init__(self, record: TournamentRecord, store: TournamentStore) -> None:
        self._record = replace(record)
        self._store = store

    # ------------------------------------------------------------------ #
    # State                                                                #
    # ------------------------------------------------------------------ #

    @property
    def tournament_id(self) -> str:
        return self._record.id

    @property
    def status(self) -> TournamentStatus:
        return self._record.status

    @property
    def rounds_total(self) -> int:
        return self._record.rounds_total

    @property
    def rounds_completed(self) -> int:
        return self._record.rounds_completed

    @property
    def current_round(self) -> int:
        return self._record.current_round

    @property
    def is_final_round(self) -> bool:
        return self._record.current_round >= self._record.rounds_total

    def snapshot(self) -> TournamentRecord:
        return replace(self._record)

    def require(self, status: TournamentStatus, action: str) -> None:
        if self._record.status != status:
            if self._record.status == "finished":
                raise TournamentFinishedError(self.tournament_id, action)
            raise IllegalTransitionError(self.tournament_id, self._record.status, action)

    def ensure_accepting_events(self) -> None:
        """Match events are only meaningful while the tournament is running."""
        self.require("running", "process a match for")

    # ------------------------------------------------------------------ #
    # Transitions                                                          #
    # ------------------------------------------------------------------ #

    async def begin(self, rounds_total: int) -> None:
        """awaiting → running, with round 1 in progress."""
        self.require("awaiting", "start")
        await self._persist(
            status="running", rounds_total=rounds_total, rounds_completed=0, current_round=1
        )

    async def advance_round(self) -> None:
        """running → running: the current round closed and the next one was created."""
        self.require("running", "advance")
        if self.is_final_round:
            raise IllegalTransitionError(
                self.tournament_id, "running", f"advance past round {self.current_round} of"
            )
        await self._persist(
            status="running",
            rounds_total=self.rounds_total,
            rounds_completed=self.rounds_completed + 1,
            current_round=self.current_round + 1,
        )

    async def finish(self) -> None:
        """running → finished, once the final round has closed."""
        self.require("running", "finish")
        if not self.is_final_round:
            raise IllegalTransitionError(
                self.tournament_id,
                "running",
                f"finish after round {self.current_round} of {self.rounds_total} in",
            )
        await self._persist(
            status="finished",
            rounds_total=self.rounds_total,
            rounds_completed=self.rounds_total,
            current_round=self.current_round,
        )

    async def _persist(
        self,
        *,
        status: TournamentStatus,
        rounds_total: int,
        rounds_completed: int,
        current_round: int,
    ) -> None:
        previous = self._record.status
        self._record = await self._store.update_tournament_status(
            self.tournament_id,
            status=status,
            rounds_total=rounds_total,
            rounds_completed=rounds_completed,
            current_round=current_round,
        )
        logger.info(
            "Tournament %s: %s → %s (round %d, %d/%d completed)",
            self.tournament_id,
            previous,
            status,
            current_round,
            rounds_completed,
            rounds_total,
        )
