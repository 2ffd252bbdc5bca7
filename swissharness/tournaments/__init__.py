"""
Tournament package.

TournamentScheduler is the per-tournament orchestrator; the other modules
are the pieces it composes:

  standings.py   running scores and tie-break order
  pairing.py     Swiss pairing with rematch avoidance
  completion.py  exactly-once application of match results
  state.py       awaiting → running → finished
"""

from __future__ import annotations

from swissharness.tournaments.base import (
    EventListener,
    MatchLink,
    Pair,
    PairingHistory,
    Participant,
    RoundPairings,
    ScoreRecord,
    StandingEntry,
    TournamentRecord,
    TournamentStatus,
    bye_key,
    standing_order,
)
from swissharness.tournaments.events import (
    ByeEvent,
    MatchScoredEvent,
    RoundCompleteEvent,
    RoundStartEvent,
    TournamentCompleteEvent,
    TournamentEvent,
    TournamentStartEvent,
)
from swissharness.tournaments.standings import StandingsTracker
from swissharness.tournaments.pairing import SwissPairing
from swissharness.tournaments.completion import CompletionOutcome, GameCompletionProcessor
from swissharness.tournaments.state import TournamentStateMachine
from swissharness.tournaments.scheduler import TournamentScheduler

__all__ = [
    # Base types
    "EventListener",
    "MatchLink",
    "Pair",
    "PairingHistory",
    "Participant",
    "RoundPairings",
    "ScoreRecord",
    "StandingEntry",
    "TournamentRecord",
    "TournamentStatus",
    "bye_key",
    "standing_order",
    # Events
    "TournamentEvent",
    "TournamentStartEvent",
    "RoundStartEvent",
    "ByeEvent",
    "MatchScoredEvent",
    "RoundCompleteEvent",
    "TournamentCompleteEvent",
    # Components
    "StandingsTracker",
    "SwissPairing",
    "CompletionOutcome",
    "GameCompletionProcessor",
    "TournamentStateMachine",
    "TournamentScheduler",
]
