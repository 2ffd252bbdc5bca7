"""
Tournament abstractions — the records the scheduler reads and writes, and the
pairing history shared by the standings tracker and the pairing algorithm.

Records mirror what the persistence collaborator stores:

    TournamentRecord  one row per tournament
    Participant       one row per (tournament, player); leaving flips `active`
    MatchLink         tournament-match join record, carries the round number
    ScoreRecord       one row per (participant, match) or (participant, bye)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Literal

if TYPE_CHECKING:
    from swissharness.tournaments.events import TournamentEvent

TournamentStatus = Literal["awaiting", "running", "finished"]

Pair = tuple[str, str]   # (white participant id, black participant id)


def bye_key(round_num: int) -> str:
    """Score-record key used in place of a match id for a bye."""
    return f"BYE-R{round_num}"


@dataclass
class TournamentRecord:
    id: str
    organizer_id: str
    status: TournamentStatus = "awaiting"
    rounds_total: int = 0
    rounds_completed: int = 0
    current_round: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Participant:
    """A single entrant in a tournament."""

    id: str
    tournament_id: str
    player_id: str
    seed: int            # 1-based join order; seed 1 joined first
    active: bool = True

    def __repr__(self) -> str:
        return f"Participant({self.player_id!r}, seed={self.seed})"


@dataclass(frozen=True)
class MatchLink:
    """Ties a match created by the match subsystem to one round of one tournament."""

    match_id: str
    tournament_id: str
    round_num: int
    white_id: str
    black_id: str

    @property
    def participant_ids(self) -> tuple[str, str]:
        return self.white_id, self.black_id


@dataclass(frozen=True)
class ScoreRecord:
    participant_id: str
    key: str             # match id, or bye_key(round_num)
    score: float
    round_num: int

    @property
    def is_bye(self) -> bool:
        return self.key.startswith("BYE-")


@dataclass
class StandingEntry:
    """Running tally for one participant across all applied results."""

    participant_id: str
    player_id: str
    seed: int
    score: float = 0.0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    byes: int = 0
    opponents: list[str] = field(default_factory=list)   # participant ids, in round order

    @property
    def games_played(self) -> int:
        return self.wins + self.draws + self.losses


def standing_order(entry: StandingEntry) -> tuple[float, int]:
    """Sort key: score descending, then seed ascending."""
    return -entry.score, entry.seed


@dataclass(frozen=True)
class RoundPairings:
    """Output of one pairing invocation."""

    round_num: int
    pairs: list[Pair]
    bye: str | None = None
    repeats: list[frozenset[str]] = field(default_factory=list)   # forced rematches, if any

    @property
    def participant_ids(self) -> set[str]:
        ids = {pid for pair in self.pairs for pid in pair}
        if self.bye is not None:
            ids.add(self.bye)
        return ids


class PairingHistory:
    """
    Append-only record of who has been paired with whom.

    Updated when a round's pairings are created, not when results arrive, so
    a match that is still running already counts as "played".
    """

    def __init__(self) -> None:
        self._rounds: dict[int, list[frozenset[str]]] = {}
        self._counts: dict[frozenset[str], int] = {}
        self._opponents: dict[str, list[str]] = {}

    def add(self, round_num: int, a: str, b: str) -> None:
        if a == b:
            raise ValueError(f"Cannot pair participant {a} with itself")
        pair = frozenset((a, b))
        self._rounds.setdefault(round_num, []).append(pair)
        self._counts[pair] = self._counts.get(pair, 0) + 1
        self._opponents.setdefault(a, []).append(b)
        self._opponents.setdefault(b, []).append(a)

    def add_round(self, pairings: RoundPairings) -> None:
        for white, black in pairings.pairs:
            self.add(pairings.round_num, white, black)

    def has_played(self, a: str, b: str) -> bool:
        return frozenset((a, b)) in self._counts

    def times_played(self, a: str, b: str) -> int:
        return self._counts.get(frozenset((a, b)), 0)

    def opponents_of(self, participant_id: str) -> list[str]:
        return list(self._opponents.get(participant_id, []))

    def pairs(self) -> list[frozenset[str]]:
        """Every pairing made so far, one entry per pairing (repeats appear twice)."""
        return [pair for round_num in sorted(self._rounds) for pair in self._rounds[round_num]]

    def round(self, round_num: int) -> list[frozenset[str]]:
        return list(self._rounds.get(round_num, []))

    def __len__(self) -> int:
        return sum(len(r) for r in self._rounds.values())

    def __contains__(self, pair: object) -> bool:
        return pair in self._counts


# Callback invoked with every TournamentEvent the scheduler emits.
EventListener = Callable[["TournamentEvent"], None]
