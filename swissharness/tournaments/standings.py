"""
Standings tracker — cumulative score and opponent history per participant.

Score entries are keyed by (participant_id, match_id), so recording the same
result twice is a no-op by construction rather than by counting.  A bye uses
bye_key(round_num) in place of the match id.
"""

from __future__ import annotations

import logging
from typing import Iterable

from swissharness.events import DRAW, WIN
from swissharness.tournaments.base import (
    PairingHistory,
    Participant,
    ScoreRecord,
    StandingEntry,
    bye_key,
    standing_order,
)

logger = logging.getLogger(__name__)


class StandingsTracker:
    def __init__(self, participants: Iterable[Participant], history: PairingHistory) -> None:
        self._participants: dict[str, Participant] = {p.id: p for p in participants}
        self._history = history
        self._entries: dict[tuple[str, str], float] = {}

    # ------------------------------------------------------------------ #
    # Writes                                                               #
    # ------------------------------------------------------------------ #

    def record_result(self, participant_id: str, match_id: str, score: float) -> bool:
        """
        Store a score for (participant_id, match_id).

        Returns True if the entry was new, False if it was already present
        (in which case nothing changes, even if `score` differs).
        """
        if participant_id not in self._participants:
            raise ValueError(f"Unknown participant: {participant_id}")
        key = (participant_id, match_id)
        if key in self._entries:
            logger.debug("Score for %s in %s already recorded", participant_id, match_id)
            return False
        self._entries[key] = score
        return True

    def record_bye(self, participant_id: str, round_num: int, score: float) -> bool:
        return self.record_result(participant_id, bye_key(round_num), score)

    def hydrate(self, records: Iterable[ScoreRecord]) -> None:
        """Rebuild entries from stored score records (e.g. after a restart)."""
        for record in records:
            self.record_result(record.participant_id, record.key, record.score)

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def has_result(self, participant_id: str, match_id: str) -> bool:
        return (participant_id, match_id) in self._entries

    def score_of(self, participant_id: str) -> float:
        return sum(
            score for (pid, _), score in self._entries.items() if pid == participant_id
        )

    def total_points(self) -> float:
        return sum(self._entries.values())

    def bye_holder(self, round_num: int) -> str | None:
        key = bye_key(round_num)
        return next((pid for pid, k in self._entries if k == key), None)

    def standings_snapshot(self, exclude: Iterable[str] = ()) -> list[StandingEntry]:
        """
        Return standings for every active participant, best first.

        Entries whose key is in `exclude` (match ids or bye keys) are left out.
        """
        skipped = set(exclude)
        entries = {
            p.id: StandingEntry(
                participant_id=p.id,
                player_id=p.player_id,
                seed=p.seed,
                opponents=self._history.opponents_of(p.id),
            )
            for p in self._participants.values()
            if p.active
        }
        for (pid, key), score in self._entries.items():
            entry = entries.get(pid)
            if entry is None or key in skipped:
                continue
            entry.score += score
            if key.startswith("BYE-"):
                entry.byes += 1
            elif score >= WIN:
                entry.wins += 1
            elif score == DRAW:
                entry.draws += 1
            else:
                entry.losses += 1
        return sorted(entries.values(), key=standing_order)
