"""
Swiss pairing — who plays whom in the next round.

Rules:
- Round 1: participants in seed (join) order, paired consecutively: 1v2, 3v4, …
- Later rounds: participants sorted by score descending, ties by seed.  Each
  unpaired participant, top of the list first, takes the nearest-standing
  unpaired opponent they have not met yet.  If that choice leaves the rest of
  the pool unpairable the search backtracks and tries the next-nearest one.
- Rematches: when no repeat-free pairing of the pool exists, the rematch
  policy decides.
    "relax"  — admit rematches, choosing the pairing with the smallest
               number of prior meetings (so only forced repeats happen).
    "forbid" — raise UnsatisfiablePairingError.
- Odd pool: the lowest-standing participant among those with the fewest
  byes sits out.  Nobody gets a second bye before everybody has had one.

Pairs are (white, black) with the higher-standing participant first; that is
a fixed convention, colours are not balanced here.
"""

from __future__ import annotations

import logging

from swissharness.config import RematchPolicy
from swissharness.errors import UnsatisfiablePairingError
from swissharness.tournaments.base import (
    Pair,
    PairingHistory,
    RoundPairings,
    StandingEntry,
    standing_order,
)

logger = logging.getLogger(__name__)


class SwissPairing:
    """Deterministic Swiss pairing with backtracking and rematch relaxation."""

    def __init__(self, rematch_policy: RematchPolicy = "relax") -> None:
        self.rematch_policy = rematch_policy

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    def next_round(
        self,
        standings: list[StandingEntry],
        history: PairingHistory,
        round_num: int,
        bye: str | None = None,
    ) -> RoundPairings:
        """
        Compute the pairings for `round_num`.

        `bye` names a participant who already holds this round's bye; the
        rest are paired around them.  Round 1 is always seed-ordered.

        Raises:
            UnsatisfiablePairingError: fewer than 2 participants, or the
                rematch policy forbids the only pairings that exist.
        """
        if len(standings) < 2:
            raise UnsatisfiablePairingError(
                f"Round {round_num}: at least 2 participants are needed to pair, "
                f"got {len(standings)}."
            )

        if round_num == 1:
            return self._first_round(standings)

        ordered = sorted(standings, key=standing_order)
        pool = [e.participant_id for e in ordered]

        if bye is not None:
            pairs = self._pair_pool([pid for pid in pool if pid != bye], history, round_num)
        elif len(pool) % 2 == 1:
            bye, pairs = self._pair_with_bye(ordered, history, round_num)
        else:
            pairs = self._pair_pool(pool, history, round_num)

        repeats = [frozenset(p) for p in pairs if history.has_played(*p)]
        if repeats:
            logger.warning(
                "Round %d: %d rematch(es) forced: %s",
                round_num,
                len(repeats),
                ", ".join("-".join(sorted(r)) for r in repeats),
            )
        logger.info(
            "Round %d pairings: %s%s",
            round_num,
            ", ".join(f"{w} v {b}" for w, b in pairs),
            f" (bye: {bye})" if bye else "",
        )
        return RoundPairings(round_num=round_num, pairs=pairs, bye=bye, repeats=repeats)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                     #
    # ------------------------------------------------------------------ #

    def _first_round(self, standings: list[StandingEntry]) -> RoundPairings:
        seeded = [e.participant_id for e in sorted(standings, key=lambda e: e.seed)]
        bye = seeded.pop() if len(seeded) % 2 == 1 else None
        pairs = [(seeded[i], seeded[i + 1]) for i in range(0, len(seeded), 2)]
        logger.info(
            "Round 1 pairings (seed order): %s%s",
            ", ".join(f"{w} v {b}" for w, b in pairs),
            f" (bye: {bye})" if bye else "",
        )
        return RoundPairings(round_num=1, pairs=pairs, bye=bye)

    def _pair_with_bye(
        self,
        ordered: list[StandingEntry],
        history: PairingHistory,
        round_num: int,
    ) -> tuple[str, list[Pair]]:
        fewest = min(e.byes for e in ordered)
        # Lowest standing first
        candidates = [e.participant_id for e in reversed(ordered) if e.byes == fewest]

        for candidate in candidates:
            rest = [e.participant_id for e in ordered if e.participant_id != candidate]
            pairs = _search(rest, history, budget=0)
            if pairs is not None:
                return candidate, pairs

        if self.rematch_policy == "forbid":
            raise UnsatisfiablePairingError(
                f"Round {round_num}: no bye leaves a pairing without rematches "
                f"for {len(ordered)} participants and rematches are forbidden."
            )

        # Every bye forces rematches; the one forcing the fewest sits out,
        # the lowest standing among equals.
        best: tuple[str, list[Pair], int] | None = None
        for candidate in candidates:
            rest = [e.participant_id for e in ordered if e.participant_id != candidate]
            pairs, cost = _cheapest(rest, history)
            if best is None or cost < best[2]:
                best = (candidate, pairs, cost)
        logger.debug("Round %d paired with rematch budget %d", round_num, best[2])
        return best[0], best[1]

    def _pair_pool(
        self,
        pool: list[str],
        history: PairingHistory,
        round_num: int,
    ) -> list[Pair]:
        pairs = _search(pool, history, budget=0)
        if pairs is not None:
            return pairs

        if self.rematch_policy == "forbid":
            raise UnsatisfiablePairingError(
                f"Round {round_num}: no pairing without rematches exists for "
                f"{len(pool)} participants and rematches are forbidden."
            )

        pairs, cost = _cheapest(pool, history)
        logger.debug("Round %d paired with rematch budget %d", round_num, cost)
        return pairs


def _cheapest(pool: list[str], history: PairingHistory) -> tuple[list[Pair], int]:
    """The pairing of an even `pool` with the fewest prior meetings, and that count."""
    # Every pairing costs at most (prior meetings of its worst pair) per board
    most_met = max(
        (history.times_played(a, b) for i, a in enumerate(pool) for b in pool[i + 1:]),
        default=0,
    )
    for budget in range((len(pool) // 2) * most_met + 1):
        pairs = _search(pool, history, budget=budget)
        if pairs is not None:
            return pairs, budget
    raise UnsatisfiablePairingError(  # pragma: no cover - an even pool always pairs
        f"Could not pair {len(pool)} participants."
    )


def _search(
    pool: list[str],
    history: PairingHistory,
    budget: int,
    _failed: set[tuple[tuple[str, ...], int]] | None = None,
) -> list[Pair] | None:
    """
    Depth-first pairing of `pool` (already in standing order).

    The head of the pool is paired with the nearest candidate below it; the
    cost of a pair is how many times the two have already met, and the total
    cost may not exceed `budget`.  Returns None if no such pairing exists.
    """
    if not pool:
        return []
    failed = _failed if _failed is not None else set()
    state = (tuple(pool), budget)
    if state in failed:
        return None

    head, rest = pool[0], pool[1:]
    for i, opponent in enumerate(rest):
        cost = history.times_played(head, opponent)
        if cost > budget:
            continue
        found = _search(rest[:i] + rest[i + 1:], history, budget - cost, failed)
        if found is not None:
            return [(head, opponent), *found]

    failed.add(state)
    return None
