"""
TournamentService — the entry point callers use instead of schedulers.

Keeps one TournamentScheduler per tournament id (loaded lazily from the
store, so a restarted process picks up running tournaments), and owns the
per-tournament event pump that turns the store's match-status stream into
serial on_match_event() calls.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from swissharness.config import Config
from swissharness.errors import StoreError, SwissHarnessError, TournamentFinishedError
from swissharness.events import MatchRecord
from swissharness.store.base import TournamentStore
from swissharness.tournaments import (
    CompletionOutcome,
    EventListener,
    Participant,
    StandingEntry,
    TournamentRecord,
    TournamentScheduler,
)

logger = logging.getLogger(__name__)


class TournamentService:
    def __init__(self, store: TournamentStore, config: Config | None = None) -> None:
        self.config = config or Config()
        self._store = store
        self._schedulers: dict[str, TournamentScheduler] = {}
        self._listeners: list[EventListener] = []
        self._registry_lock = asyncio.Lock()

    @property
    def store(self) -> TournamentStore:
        return self._store

    def add_listener(self, listener: EventListener) -> None:
        """Receive the events of every tournament, current and future."""
        self._listeners.append(listener)
        for scheduler in self._schedulers.values():
            scheduler.add_listener(listener)

    async def get_scheduler(self, tournament_id: str) -> TournamentScheduler:
        """
        Raises:
            TournamentNotFoundError: the store has no such tournament.
        """
        scheduler = self._schedulers.get(tournament_id)
        if scheduler is not None:
            return scheduler
        async with self._registry_lock:
            scheduler = self._schedulers.get(tournament_id)
            if scheduler is None:
                scheduler = await TournamentScheduler.load(
                    self._store, tournament_id, self.config.tournament
                )
                self._register(scheduler)
            return scheduler

    # ------------------------------------------------------------------ #
    # Lifecycle                                                            #
    # ------------------------------------------------------------------ #

    async def create_tournament(
        self, organizer_id: str, tournament_id: str | None = None
    ) -> TournamentRecord:
        record = await self._store.insert_tournament(organizer_id, tournament_id)
        self._register(TournamentScheduler(record, self._store, self.config.tournament))
        logger.info("Created tournament %s (organizer %s)", record.id, organizer_id)
        return record

    async def join(self, tournament_id: str, player_id: str) -> Participant:
        scheduler = await self.get_scheduler(tournament_id)
        return await scheduler.add_participant(player_id)

    async def leave(self, tournament_id: str, player_id: str) -> Participant:
        scheduler = await self.get_scheduler(tournament_id)
        return await scheduler.remove_participant(player_id)

    async def start(
        self,
        tournament_id: str,
        organizer_id: str | None = None,
        rounds_total: int | None = None,
    ) -> TournamentRecord:
        scheduler = await self.get_scheduler(tournament_id)
        await scheduler.start(organizer_id, rounds_total)
        return scheduler.status()

    async def on_match_event(self, tournament_id: str, match: MatchRecord) -> CompletionOutcome:
        scheduler = await self.get_scheduler(tournament_id)
        return await scheduler.on_match_event(match)

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    async def get_standings(self, tournament_id: str) -> list[StandingEntry]:
        scheduler = await self.get_scheduler(tournament_id)
        return scheduler.standings()

    async def get_status(self, tournament_id: str) -> TournamentRecord:
        scheduler = await self.get_scheduler(tournament_id)
        return scheduler.status()

    # ------------------------------------------------------------------ #
    # Event pump                                                           #
    # ------------------------------------------------------------------ #

    async def watch(self, tournament_id: str) -> TournamentRecord:
        """
        Consume the tournament's match-status stream until it finishes.

        One watcher per tournament: events are handled strictly one at a
        time.  Every `engine.pending_retry_interval` seconds, parked matches
        and events that failed on a StoreError are retried.
        Returns the final tournament record.
        """
        scheduler = await self.get_scheduler(tournament_id)
        interval = self.config.engine.pending_retry_interval
        stream = self._store.subscribe_match_status(tournament_id)
        failed: dict[str, MatchRecord] = {}
        next_match: asyncio.Task[MatchRecord] | None = None
        loop = asyncio.get_running_loop()
        retry_at = loop.time() + interval
        logger.info("Watching tournament %s", tournament_id)

        try:
            while scheduler.status().status != "finished":
                if loop.time() >= retry_at:
                    await self._retry(scheduler, failed)
                    retry_at = loop.time() + interval
                    continue

                if next_match is None:
                    next_match = asyncio.create_task(_next(stream))
                done, _ = await asyncio.wait({next_match}, timeout=retry_at - loop.time())
                if not done:
                    continue

                try:
                    match = next_match.result()
                except StopAsyncIteration:
                    logger.warning("Match stream for tournament %s ended", tournament_id)
                    next_match = None
                    break
                next_match = None
                await self._handle(scheduler, match, failed)
        finally:
            if next_match is not None:
                next_match.cancel()
                with contextlib.suppress(asyncio.CancelledError, StopAsyncIteration):
                    await next_match
            await stream.aclose()

        logger.info("Stopped watching tournament %s", tournament_id)
        return scheduler.status()

    async def _handle(
        self,
        scheduler: TournamentScheduler,
        match: MatchRecord,
        failed: dict[str, MatchRecord],
    ) -> None:
        if not match.is_closed:
            return
        try:
            await scheduler.on_match_event(match)
            failed.pop(match.id, None)
        except TournamentFinishedError:
            logger.debug("Late event for match %s after tournament finished", match.id)
        except StoreError as exc:
            failed[match.id] = match
            logger.warning("Match %s: %s; will retry", match.id, exc)
        except SwissHarnessError:
            logger.exception("Match %s could not be processed", match.id)

    async def _retry(
        self, scheduler: TournamentScheduler, failed: dict[str, MatchRecord]
    ) -> None:
        for match in list(failed.values()):
            await self._handle(scheduler, match, failed)
        try:
            await scheduler.retry_pending()
            await scheduler.resume()
        except StoreError as exc:
            logger.warning("Retry for tournament %s failed: %s", scheduler.tournament_id, exc)

    def _register(self, scheduler: TournamentScheduler) -> None:
        for listener in self._listeners:
            scheduler.add_listener(listener)
        self._schedulers[scheduler.tournament_id] = scheduler


async def _next(stream: AsyncIterator[MatchRecord]) -> MatchRecord:
    return await stream.__anext__()
