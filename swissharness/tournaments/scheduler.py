"""
Swiss tournament scheduler — the per-tournament orchestrator.

Composes the standings tracker, the pairing algorithm, the completion
processor and the state machine:

    start()           validate → pair round 1 → create matches → running
    on_match_event()  apply result once → round closed? → next round or finish

Both operations run under one asyncio.Lock per scheduler, so concurrent
events for different matches of the same tournament see a consistent view
of the round.  Round creation happens inside the same critical section,
which means completion is never evaluated against a half-created round.

The scheduler never prints; it reports progress by calling its listeners
with TournamentEvent objects.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from swissharness.config import TournamentConfig
from swissharness.errors import InsufficientParticipantsError, ValidationError
from swissharness.events import MatchRecord
from swissharness.tournaments.base import (
    EventListener,
    MatchLink,
    PairingHistory,
    Participant,
    RoundPairings,
    ScoreRecord,
    StandingEntry,
    TournamentRecord,
    bye_key,
)
from swissharness.tournaments.completion import CompletionOutcome, GameCompletionProcessor
from swissharness.tournaments.events import (
    ByeEvent,
    MatchScoredEvent,
    RoundCompleteEvent,
    RoundStartEvent,
    TournamentCompleteEvent,
    TournamentEvent,
    TournamentStartEvent,
)
from swissharness.tournaments.pairing import SwissPairing
from swissharness.tournaments.standings import StandingsTracker
from swissharness.tournaments.state import TournamentStateMachine

if TYPE_CHECKING:
    from swissharness.store.base import TournamentStore

logger = logging.getLogger(__name__)


class TournamentScheduler:
    """Runs one Swiss tournament against a TournamentStore."""

    def __init__(
        self,
        record: TournamentRecord,
        store: TournamentStore,
        config: TournamentConfig | None = None,
        participants: list[Participant] | None = None,
    ) -> None:
        self.config = config or TournamentConfig()
        self._store = store
        self._state = TournamentStateMachine(record, store)
        self._pairing = SwissPairing(rematch_policy=self.config.rematch_policy)
        self._lock = asyncio.Lock()
        self._listeners: list[EventListener] = []
        self._owner_id = record.organizer_id
        self._reset(participants or [])

    def _reset(self, participants: list[Participant]) -> None:
        self._participants = list(participants)
        self._history = PairingHistory()
        self._tracker = StandingsTracker(self._participants, self._history)
        self._processor = GameCompletionProcessor(self.tournament_id, self._store, self._tracker)
        self._rounds: dict[int, list[MatchLink]] = {}
        self._round_pairings: dict[int, RoundPairings] = {}
        self._planned: dict[int, RoundPairings] = {}

    @classmethod
    async def load(
        cls,
        store: TournamentStore,
        tournament_id: str,
        config: TournamentConfig | None = None,
    ) -> TournamentScheduler:
        """
        Build a scheduler from what the store already holds.

        Standings, the processed-set and the pairing history are rebuilt from
        score records and match links, so a restarted process carries on
        exactly where the previous one stopped.
        """
        record = await store.get_tournament(tournament_id)
        participants = await store.query_participants(tournament_id)
        scheduler = cls(record, store, config, participants)
        if record.status == "awaiting":
            return scheduler

        links = await store.query_match_links(tournament_id)
        for link in sorted(links, key=lambda l: l.round_num):
            # Links beyond the current round belong to a round whose creation
            # was interrupted; they are picked up again when it reopens.
            if link.round_num > record.current_round:
                continue
            scheduler._history.add(link.round_num, link.white_id, link.black_id)
            scheduler._rounds.setdefault(link.round_num, []).append(link)
        for round_num, round_links in scheduler._rounds.items():
            scheduler._processor.expect_round(round_num, (l.match_id for l in round_links))

        records = await store.query_standings(tournament_id)
        scheduler._tracker.hydrate(records)
        scheduler._processor.hydrate(records)
        logger.info(
            "Loaded tournament %s (%s, round %d/%d, %d score records)",
            tournament_id,
            record.status,
            record.current_round,
            record.rounds_total,
            len(records),
        )
        return scheduler

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    @property
    def tournament_id(self) -> str:
        return self._state.tournament_id

    @property
    def history(self) -> PairingHistory:
        return self._history

    @property
    def tracker(self) -> StandingsTracker:
        return self._tracker

    @property
    def processor(self) -> GameCompletionProcessor:
        return self._processor

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def status(self) -> TournamentRecord:
        return self._state.snapshot()

    def standings(self) -> list[StandingEntry]:
        return self._tracker.standings_snapshot()

    def round_links(self, round_num: int) -> list[MatchLink]:
        return list(self._rounds.get(round_num, []))

    async def add_participant(self, player_id: str) -> Participant:
        async with self._lock:
            self._state.require("awaiting", "join")
            participant = await self._store.insert_participant(self.tournament_id, player_id)
        logger.info(
            "Player %s joined tournament %s (seed %d)",
            player_id,
            self.tournament_id,
            participant.seed,
        )
        return participant

    async def remove_participant(self, player_id: str) -> Participant:
        """Mark a player inactive.  The participant set is frozen once running."""
        async with self._lock:
            self._state.require("awaiting", "leave")
            for participant in await self._store.query_participants(self.tournament_id):
                if participant.player_id == player_id:
                    updated = await self._store.update_participant(replace(participant, active=False))
                    break
            else:
                raise ValidationError(
                    f"Player {player_id} is not an active participant of "
                    f"tournament {self.tournament_id}"
                )
        logger.info("Player %s left tournament %s", player_id, self.tournament_id)
        return updated

    async def start(self, organizer_id: str | None = None, rounds_total: int | None = None) -> None:
        """
        Start the tournament: pair round 1, create its matches, then mark it running.

        Raises:
            IllegalTransitionError: the tournament is not 'awaiting'.
            InsufficientParticipantsError: too few active participants.
            UnsatisfiablePairingError: round 1 cannot be paired.
            ValidationError: rounds_total < 1.
            StoreError: a write failed; calling start() again is safe.
        """
        rounds = rounds_total if rounds_total is not None else self.config.rounds_total
        async with self._lock:
            self._state.require("awaiting", "start")
            if rounds < 1:
                raise ValidationError(f"rounds_total must be >= 1, got {rounds}")

            participants = await self._store.query_participants(self.tournament_id)
            minimum = max(self.config.min_participants, 2)
            if len(participants) < minimum:
                raise InsufficientParticipantsError(self.tournament_id, len(participants), minimum)

            if organizer_id:
                self._owner_id = organizer_id
            if [p.id for p in participants] != [p.id for p in self._participants]:
                # The participant set is frozen from here on
                self._reset(participants)

            pairings, links = await self._open_round(1)
            await self._state.begin(rounds)

        logger.info(
            "Tournament %s started: %d participants, %d rounds",
            self.tournament_id,
            len(participants),
            rounds,
        )
        self._emit(
            TournamentStartEvent(
                tournament_id=self.tournament_id,
                participant_ids=[p.id for p in participants],
                total_rounds=rounds,
            )
        )
        self._emit_round_start(pairings, links)

    async def on_match_event(self, match: MatchRecord) -> CompletionOutcome:
        """
        Handle one match-status notification.  Safe to call repeatedly and
        concurrently for the same or different matches.

        Raises:
            TournamentFinishedError: the tournament has already finished.
            IllegalTransitionError: the tournament has not started.
            StoreError: a read or write failed; redeliver the event to retry.
        """
        async with self._lock:
            self._state.ensure_accepting_events()

            outcome = await self._processor.on_match_closed(match)
            outcomes = [outcome]
            if outcome.status in ("applied", "duplicate") and self._processor.pending:
                outcomes.extend(await self._processor.retry_pending())

            for o in outcomes:
                if o.status == "applied":
                    self._emit_scored(o)

            current = self._state.current_round
            if any(o.round_complete and o.round_num == current for o in outcomes):
                await self._close_round(current)
            return outcome

    async def retry_pending(self) -> list[CompletionOutcome]:
        """Retry parked matches; called periodically by the service's event pump."""
        async with self._lock:
            if self._state.status != "running" or not self._processor.pending:
                return []
            outcomes = await self._processor.retry_pending()
            for o in outcomes:
                if o.status == "applied":
                    self._emit_scored(o)
            current = self._state.current_round
            if any(o.round_complete and o.round_num == current for o in outcomes):
                await self._close_round(current)
            return outcomes

    async def resume(self) -> bool:
        """
        Close the current round if all its results are already applied.

        Finishes a round transition that a failed write or a restart cut
        short.  Returns True if a round was closed.
        """
        async with self._lock:
            if self._state.status != "running":
                return False
            current = self._state.current_round
            if not await self._processor.is_round_complete(current):
                return False
            await self._close_round(current)
            return True

    # ------------------------------------------------------------------ #
    # Internal helpers                                                     #
    # ------------------------------------------------------------------ #

    async def _open_round(self, round_num: int) -> tuple[RoundPairings, list[MatchLink]]:
        """
        Pair `round_num` and request its matches.

        Idempotent: a round that was fully created before is reused, and a
        round whose creation failed part-way only gets its missing matches.
        The pairing is fixed before the first write, so a retry reuses it.
        The bye is written after the matches exist.
        """
        if round_num in self._round_pairings:
            return self._round_pairings[round_num], self._rounds[round_num]

        pairings = self._planned.get(round_num)
        if pairings is None:
            # A bye already on record for this round (written before a
            # restart) keeps its holder and does not count towards pairing.
            holder = self._tracker.bye_holder(round_num)
            pairings = self._pairing.next_round(
                self._tracker.standings_snapshot(exclude=(bye_key(round_num),)),
                self._history,
                round_num,
                bye=holder,
            )
            self._planned[round_num] = pairings

        existing = {
            frozenset(link.participant_ids): link
            for link in await self._store.query_match_links(self.tournament_id, round_num)
        }
        links: list[MatchLink] = []
        for white, black in pairings.pairs:
            link = existing.get(frozenset((white, black)))
            if link is None:
                link = await self._store.insert_match(
                    self.tournament_id, round_num, white, black, self._owner_id or white
                )
            links.append(link)

        if pairings.bye is not None:
            score = self.config.bye_score
            await self._store.insert_score_records(
                self.tournament_id,
                [ScoreRecord(pairings.bye, bye_key(round_num), score, round_num)],
            )
            self._tracker.record_bye(pairings.bye, round_num, score)

        self._history.add_round(pairings)
        self._rounds[round_num] = links
        self._round_pairings[round_num] = pairings
        self._planned.pop(round_num, None)
        self._processor.expect_round(round_num, (l.match_id for l in links))
        logger.info(
            "Tournament %s round %d: created %d matches%s",
            self.tournament_id,
            round_num,
            len(links),
            f", bye for {pairings.bye}" if pairings.bye else "",
        )
        return pairings, links

    async def _close_round(self, round_num: int) -> None:
        if round_num >= self._state.rounds_total:
            await self._state.finish()
            standings = self._tracker.standings_snapshot()
            self._emit(RoundCompleteEvent(self.tournament_id, round_num, standings))
            logger.info("Tournament %s finished after %d rounds", self.tournament_id, round_num)
            self._emit(
                TournamentCompleteEvent(
                    tournament_id=self.tournament_id,
                    winner_id=standings[0].participant_id if standings else None,
                    rounds_completed=self._state.rounds_completed,
                    final_standings=standings,
                )
            )
            return

        standings = self._tracker.standings_snapshot()
        pairings, links = await self._open_round(round_num + 1)
        await self._state.advance_round()
        self._emit(RoundCompleteEvent(self.tournament_id, round_num, standings))
        self._emit_round_start(pairings, links)

    def _emit_round_start(self, pairings: RoundPairings, links: list[MatchLink]) -> None:
        self._emit(
            RoundStartEvent(
                tournament_id=self.tournament_id,
                round_num=pairings.round_num,
                total_rounds=self._state.rounds_total,
                pairings=[(l.match_id, l.white_id, l.black_id) for l in links],
                bye=pairings.bye,
                repeats=len(pairings.repeats),
            )
        )
        if pairings.bye is not None:
            self._emit(
                ByeEvent(
                    tournament_id=self.tournament_id,
                    round_num=pairings.round_num,
                    participant_id=pairings.bye,
                    score=self.config.bye_score,
                )
            )

    def _emit_scored(self, outcome: CompletionOutcome) -> None:
        link = outcome.link
        white_score, black_score = outcome.scores or (0.0, 0.0)
        self._emit(
            MatchScoredEvent(
                tournament_id=self.tournament_id,
                round_num=link.round_num,
                match_id=outcome.match_id,
                white_id=link.white_id,
                black_id=link.black_id,
                status=outcome.match_status,
                white_score=white_score,
                black_score=black_score,
            )
        )

    def _emit(self, event: TournamentEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Tournament listener failed on %s", type(event).__name__)
