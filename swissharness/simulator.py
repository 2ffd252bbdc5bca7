"""
Match simulator — stands in for the external match engine.

Plays every match the scheduler creates with uniformly random legal moves
and publishes the resulting status through InMemoryStore.publish_match_status(),
which is exactly the notification stream the service's event pump consumes.
"""

from __future__ import annotations

import asyncio
import logging
import random

from swissharness.board import ChessBoard
from swissharness.config import SimulationConfig
from swissharness.events import MatchRecord
from swissharness.store.memory import InMemoryStore

logger = logging.getLogger(__name__)


class MatchSimulator:
    def __init__(self, store: InMemoryStore, config: SimulationConfig | None = None) -> None:
        self.config = config or SimulationConfig()
        self._store = store
        self._rng = random.Random(self.config.seed)
        self._games: dict[str, asyncio.Task[MatchRecord]] = {}

    async def play(self, match_id: str) -> MatchRecord:
        """Play one match to the end and publish its terminal status."""
        board = ChessBoard()
        await self._store.publish_match_status(match_id, "continue", board.side, board.fen)

        while not board.is_game_over and board.ply < self.config.max_plies:
            board.push_uci(self._rng.choice(board.legal_moves_uci()))
            await asyncio.sleep(self.config.move_delay)

        status = board.match_status()
        if status == "continue":
            # Adjudicated at the ply limit without a decisive result
            status = "finished"
        logger.debug("Match %s ended after %d plies: %s", match_id, board.ply, status)
        return await self._store.publish_match_status(match_id, status, board.side, board.fen)

    async def run(self, tournament_id: str) -> None:
        """
        Start a game for every match of the tournament that becomes ready.
        Runs until cancelled; games still in progress are cancelled with it.
        """
        stream = self._store.subscribe_match_status(tournament_id)
        try:
            async for match in stream:
                if match.status == "ready" and match.id not in self._games:
                    task = asyncio.create_task(self.play(match.id))
                    task.add_done_callback(_log_failure)
                    self._games[match.id] = task
        finally:
            for task in self._games.values():
                task.cancel()
            await stream.aclose()


def _log_failure(task: asyncio.Task[MatchRecord]) -> None:
    if not task.cancelled() and task.exception() is not None:
        logger.error("Simulated game failed", exc_info=task.exception())
