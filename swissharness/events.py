"""
Typed match-status notifications — the shared language between the external
match engine and the tournament scheduler.

The match engine (or the simulator in simulator.py) publishes a MatchRecord
every time a match changes status.  The scheduler only cares whether the
match is closed and, if so, how the two sides score.

MatchRecord is frozen so it is safe to pass across async boundaries and can
be serialised to JSON via dataclasses.asdict().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Side = Literal[1, 2]   # 1 = white, 2 = black

MatchStatus = Literal[
    "await",
    "ready",
    "continue",
    "checkmate",
    "stalemate",
    "draw",
    "white_surrender",
    "black_surrender",
    "finished",
]

OPEN_STATUSES: frozenset[str] = frozenset({"await", "ready", "continue"})
TERMINAL_STATUSES: frozenset[str] = frozenset(
    {"checkmate", "stalemate", "draw", "white_surrender", "black_surrender", "finished"}
)

WIN = 1.0
DRAW = 0.5
LOSS = 0.0


@dataclass(frozen=True)
class MatchRecord:
    """A snapshot of one match as reported by the match engine."""

    id: str
    status: MatchStatus
    side: Side = 1          # side to move when the status was recorded
    fen: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_closed(self) -> bool:
        return is_closed(self.status)


def is_closed(status: str) -> bool:
    return status in TERMINAL_STATUSES


def score_pair(status: str, side: int) -> tuple[float, float]:
    """
    Map a terminal status to (white_score, black_score).

    checkmate:        the side to move has been mated and scores 0.
    *_surrender:      forfeits score like decisive results.
    stalemate / draw: half a point each.
    finished:         a terminal status with no decisive information; scored
                      as a draw so every match still awards exactly 1.0.

    Raises:
        ValueError: status is not terminal or not a known status.
    """
    match status:
        case "checkmate":
            return (LOSS, WIN) if side == 1 else (WIN, LOSS)
        case "white_surrender":
            return LOSS, WIN
        case "black_surrender":
            return WIN, LOSS
        case "stalemate" | "draw" | "finished":
            return DRAW, DRAW
        case _:
            raise ValueError(f"Match status {status!r} has no result to score")
