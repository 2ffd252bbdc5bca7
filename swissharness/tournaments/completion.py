"""
Game completion processing — applies match results to standings exactly once.

The notification stream delivers at-least-once, so on_match_closed() is
expected to see the same match several times.  A processed-set keyed by
match id (scoped to one tournament) absorbs the repeats.

A closed match whose tournament link is not visible yet is parked, not
dropped, and reprocessed by retry_pending().

Not safe for concurrent use on its own: the scheduler serialises calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Literal

from swissharness.events import MatchRecord, score_pair
from swissharness.tournaments.base import MatchLink, ScoreRecord
from swissharness.tournaments.standings import StandingsTracker

if TYPE_CHECKING:
    from swissharness.store.base import TournamentStore

logger = logging.getLogger(__name__)

CompletionStatus = Literal["ignored", "duplicate", "pending", "applied"]


@dataclass(frozen=True)
class CompletionOutcome:
    match_id: str
    status: CompletionStatus
    match_status: str = ""
    link: MatchLink | None = None
    scores: tuple[float, float] | None = None   # (white, black), set when applied
    round_complete: bool = False

    @property
    def round_num(self) -> int | None:
        return self.link.round_num if self.link else None


class GameCompletionProcessor:
    def __init__(
        self,
        tournament_id: str,
        store: TournamentStore,
        tracker: StandingsTracker,
    ) -> None:
        self.tournament_id = tournament_id
        self._store = store
        self._tracker = tracker
        self._processed: set[str] = set()
        self._pending: dict[str, MatchRecord] = {}
        self._expected: dict[int, set[str]] = {}

    # ------------------------------------------------------------------ #
    # Setup                                                                #
    # ------------------------------------------------------------------ #

    def expect_round(self, round_num: int, match_ids: Iterable[str]) -> None:
        """Register the matches created for a round; completion waits for all of them."""
        self._expected[round_num] = set(match_ids)

    def hydrate(self, records: Iterable[ScoreRecord]) -> None:
        """Rebuild the processed-set from stored score records."""
        self._processed.update(r.key for r in records if not r.is_bye)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def is_processed(self, match_id: str) -> bool:
        return match_id in self._processed

    @property
    def pending(self) -> list[MatchRecord]:
        return list(self._pending.values())

    async def is_round_complete(self, round_num: int) -> bool:
        """True once every match of the round is closed and its result applied."""
        matches = await self._store.query_matches_by_round(self.tournament_id, round_num)
        ids = {m.id for m in matches}
        if not ids:
            return False
        expected = self._expected.get(round_num)
        if expected is not None and not expected <= ids:
            return False
        return all(m.is_closed and m.id in self._processed for m in matches)

    # ------------------------------------------------------------------ #
    # Processing                                                           #
    # ------------------------------------------------------------------ #

    async def on_match_closed(self, match: MatchRecord) -> CompletionOutcome:
        if not match.is_closed:
            return CompletionOutcome(match_id=match.id, status="ignored", match_status=match.status)

        if match.id in self._processed:
            logger.debug("Match %s already applied — duplicate event ignored", match.id)
            link = await self._store.query_match_link(self.tournament_id, match.id)
            complete = link is not None and await self.is_round_complete(link.round_num)
            return CompletionOutcome(
                match_id=match.id,
                status="duplicate",
                match_status=match.status,
                link=link,
                round_complete=complete,
            )

        link = await self._store.query_match_link(self.tournament_id, match.id)
        if link is None:
            self._pending[match.id] = match
            logger.info(
                "Match %s closed before its round link is visible — parked for retry",
                match.id,
            )
            return CompletionOutcome(match_id=match.id, status="pending", match_status=match.status)

        white_score, black_score = score_pair(match.status, match.side)
        records = [
            ScoreRecord(link.white_id, match.id, white_score, link.round_num),
            ScoreRecord(link.black_id, match.id, black_score, link.round_num),
        ]
        # Durable first: if this raises, nothing below runs and a retry
        # of the same event starts from scratch.
        await self._store.insert_score_records(self.tournament_id, records)

        for record in records:
            self._tracker.record_result(record.participant_id, record.key, record.score)
        self._processed.add(match.id)
        self._pending.pop(match.id, None)
        logger.info(
            "Match %s (round %d) %s: %s %.1f – %.1f %s",
            match.id,
            link.round_num,
            match.status,
            link.white_id,
            white_score,
            black_score,
            link.black_id,
        )

        complete = await self.is_round_complete(link.round_num)
        return CompletionOutcome(
            match_id=match.id,
            status="applied",
            match_status=match.status,
            link=link,
            scores=(white_score, black_score),
            round_complete=complete,
        )

    async def retry_pending(self) -> list[CompletionOutcome]:
        """Reprocess parked matches.  Ones whose link is still missing stay parked."""
        outcomes = []
        for match in list(self._pending.values()):
            outcomes.append(await self.on_match_closed(match))
        return outcomes
