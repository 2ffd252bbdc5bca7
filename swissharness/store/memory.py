"""
In-memory TournamentStore — backs the tests, the CLI demo, and the web app.

Besides the TournamentStore contract it offers a few knobs to reproduce what
a real backend does to the scheduler:

    publish_match_status()  the match engine reporting a status change
    fail_next()             the next N calls of an operation raise StoreError,
                            optionally after letting some succeed
    defer_links / flush_links()
                            match links become visible only when flushed,
                            like a join record whose write lags behind the
                            match itself
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import AsyncIterator

from swissharness.errors import StoreError, TournamentNotFoundError
from swissharness.events import MatchRecord, Side
from swissharness.store.base import TournamentStore
from swissharness.tournaments.base import (
    MatchLink,
    Participant,
    ScoreRecord,
    TournamentRecord,
    TournamentStatus,
)

logger = logging.getLogger(__name__)


class InMemoryStore(TournamentStore):
    def __init__(self, *, defer_links: bool = False) -> None:
        self.defer_links = defer_links
        self._tournaments: dict[str, TournamentRecord] = {}
        self._participants: dict[str, list[Participant]] = {}
        self._matches: dict[str, MatchRecord] = {}
        self._match_owner: dict[str, str] = {}
        self._links: dict[str, MatchLink] = {}
        self._deferred_links: list[MatchLink] = []
        self._scores: dict[str, dict[tuple[str, str], ScoreRecord]] = {}
        self._subscribers: dict[str, list[asyncio.Queue[MatchRecord]]] = {}
        self._failures: dict[str, tuple[int, int]] = {}

    # ------------------------------------------------------------------ #
    # Test / simulation knobs                                              #
    # ------------------------------------------------------------------ #

    def fail_next(self, operation: str, times: int = 1, *, after: int = 0) -> None:
        """Make `times` calls of `operation` raise StoreError, once `after` calls have succeeded."""
        skip, fail = self._failures.get(operation, (0, 0))
        self._failures[operation] = (skip + after, fail + times)

    def flush_links(self) -> int:
        """Make every deferred match link visible.  Returns how many were flushed."""
        flushed = len(self._deferred_links)
        for link in self._deferred_links:
            self._links[link.match_id] = link
        self._deferred_links.clear()
        return flushed

    async def publish_match_status(
        self, match_id: str, status: str, side: Side = 1, fen: str = ""
    ) -> MatchRecord:
        """Update a match and notify the subscribers of its tournament."""
        current = self._matches.get(match_id)
        if current is None:
            raise StoreError("publish_match_status", f"Unknown match: {match_id}")
        record = MatchRecord(id=match_id, status=status, side=side, fen=fen or current.fen)
        self._matches[match_id] = record
        self._notify(self._tournament_of(match_id), record)
        return record

    def match_owner(self, match_id: str) -> str:
        return self._match_owner[match_id]

    # ------------------------------------------------------------------ #
    # Tournaments                                                          #
    # ------------------------------------------------------------------ #

    async def insert_tournament(
        self, organizer_id: str, tournament_id: str | None = None
    ) -> TournamentRecord:
        self._maybe_fail("insert_tournament")
        tid = tournament_id or uuid.uuid4().hex
        if tid in self._tournaments:
            raise StoreError("insert_tournament", f"Tournament {tid} already exists")
        record = TournamentRecord(id=tid, organizer_id=organizer_id)
        self._tournaments[tid] = record
        self._participants[tid] = []
        self._scores[tid] = {}
        return replace(record)

    async def get_tournament(self, tournament_id: str) -> TournamentRecord:
        self._maybe_fail("get_tournament")
        return replace(self._tournament(tournament_id))

    async def update_tournament_status(
        self,
        tournament_id: str,
        *,
        status: TournamentStatus,
        rounds_total: int,
        rounds_completed: int,
        current_round: int,
    ) -> TournamentRecord:
        self._maybe_fail("update_tournament_status")
        record = replace(
            self._tournament(tournament_id),
            status=status,
            rounds_total=rounds_total,
            rounds_completed=rounds_completed,
            current_round=current_round,
            updated_at=datetime.now(),
        )
        self._tournaments[tournament_id] = record
        return replace(record)

    # ------------------------------------------------------------------ #
    # Participants                                                         #
    # ------------------------------------------------------------------ #

    async def insert_participant(self, tournament_id: str, player_id: str) -> Participant:
        self._maybe_fail("insert_participant")
        self._tournament(tournament_id)
        rows = self._participants[tournament_id]
        for i, row in enumerate(rows):
            if row.player_id == player_id:
                rows[i] = replace(row, active=True)
                return rows[i]
        participant = Participant(
            id=uuid.uuid4().hex,
            tournament_id=tournament_id,
            player_id=player_id,
            seed=len(rows) + 1,
        )
        rows.append(participant)
        return participant

    async def update_participant(self, participant: Participant) -> Participant:
        self._maybe_fail("update_participant")
        rows = self._participants.get(participant.tournament_id, [])
        for i, row in enumerate(rows):
            if row.id == participant.id:
                rows[i] = participant
                return participant
        raise StoreError("update_participant", f"Unknown participant: {participant.id}")

    async def query_participants(
        self, tournament_id: str, *, active_only: bool = True
    ) -> list[Participant]:
        self._maybe_fail("query_participants")
        self._tournament(tournament_id)
        rows = sorted(self._participants[tournament_id], key=lambda p: p.seed)
        return [p for p in rows if p.active or not active_only]

    # ------------------------------------------------------------------ #
    # Matches                                                              #
    # ------------------------------------------------------------------ #

    async def insert_match(
        self,
        tournament_id: str,
        round_num: int,
        white_id: str,
        black_id: str,
        owner_id: str,
        match_id: str | None = None,
    ) -> MatchLink:
        self._maybe_fail("insert_match")
        self._tournament(tournament_id)
        mid = match_id or uuid.uuid4().hex
        if mid in self._matches:
            raise StoreError("insert_match", f"Match {mid} already exists")
        link = MatchLink(
            match_id=mid,
            tournament_id=tournament_id,
            round_num=round_num,
            white_id=white_id,
            black_id=black_id,
        )
        record = MatchRecord(id=mid, status="ready")
        self._matches[mid] = record
        self._match_owner[mid] = owner_id
        if self.defer_links:
            self._deferred_links.append(link)
        else:
            self._links[mid] = link
        self._notify(tournament_id, record)
        return link

    async def query_match_link(self, tournament_id: str, match_id: str) -> MatchLink | None:
        self._maybe_fail("query_match_link")
        link = self._links.get(match_id)
        if link is None or link.tournament_id != tournament_id:
            return None
        return link

    async def query_match_links(
        self, tournament_id: str, round_num: int | None = None
    ) -> list[MatchLink]:
        self._maybe_fail("query_match_links")
        return [
            link
            for link in self._links.values()
            if link.tournament_id == tournament_id
            and (round_num is None or link.round_num == round_num)
        ]

    async def query_matches_by_round(
        self, tournament_id: str, round_num: int
    ) -> list[MatchRecord]:
        self._maybe_fail("query_matches_by_round")
        return [
            self._matches[link.match_id]
            for link in self._links.values()
            if link.tournament_id == tournament_id and link.round_num == round_num
        ]

    # ------------------------------------------------------------------ #
    # Scores                                                               #
    # ------------------------------------------------------------------ #

    async def insert_score_records(
        self, tournament_id: str, records: list[ScoreRecord]
    ) -> None:
        # Fails before touching anything, so a failed call writes nothing.
        self._maybe_fail("insert_score_records")
        self._tournament(tournament_id)
        table = self._scores[tournament_id]
        for record in records:
            table.setdefault((record.participant_id, record.key), record)

    async def query_standings(self, tournament_id: str) -> list[ScoreRecord]:
        self._maybe_fail("query_standings")
        self._tournament(tournament_id)
        return list(self._scores[tournament_id].values())

    # ------------------------------------------------------------------ #
    # Notifications                                                        #
    # ------------------------------------------------------------------ #

    def subscribe_match_status(self, tournament_id: str) -> AsyncIterator[MatchRecord]:
        # Register now rather than on first iteration so no event published
        # between subscribing and iterating is missed.
        queue: asyncio.Queue[MatchRecord] = asyncio.Queue()
        self._subscribers.setdefault(tournament_id, []).append(queue)
        return self._drain(tournament_id, queue)

    async def _drain(
        self, tournament_id: str, queue: asyncio.Queue[MatchRecord]
    ) -> AsyncIterator[MatchRecord]:
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers[tournament_id].remove(queue)

    def _notify(self, tournament_id: str | None, record: MatchRecord) -> None:
        if tournament_id is None:
            return
        for queue in self._subscribers.get(tournament_id, []):
            queue.put_nowait(record)

    # ------------------------------------------------------------------ #
    # Internal                                                             #
    # ------------------------------------------------------------------ #

    def _tournament(self, tournament_id: str) -> TournamentRecord:
        record = self._tournaments.get(tournament_id)
        if record is None:
            raise TournamentNotFoundError(tournament_id)
        return record

    def _tournament_of(self, match_id: str) -> str | None:
        link = self._links.get(match_id)
        if link is not None:
            return link.tournament_id
        for deferred in self._deferred_links:
            if deferred.match_id == match_id:
                return deferred.tournament_id
        return None

    def _maybe_fail(self, operation: str) -> None:
        skip, fail = self._failures.get(operation, (0, 0))
        if skip:
            self._failures[operation] = (skip - 1, fail)
        elif fail:
            self._failures[operation] = (0, fail - 1)
            logger.debug("Injected failure for %s", operation)
            raise StoreError(operation, "injected failure")
