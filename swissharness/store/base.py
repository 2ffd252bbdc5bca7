"""
Abstract persistence and notification interface.

The scheduler never talks to a database directly.  Everything durable goes
through a TournamentStore: tournament and participant rows, match creation,
score records, and the stream of match-status notifications.

Contract for implementors:
- Writes either succeed or raise StoreError; no silent partial writes.
- insert_score_records() is atomic: all records land, or none do.
- Reads are consistent at call time.
- subscribe_match_status() delivers at-least-once, may duplicate, and gives
  no ordering guarantee across different matches.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from swissharness.events import MatchRecord
from swissharness.tournaments.base import (
    MatchLink,
    Participant,
    ScoreRecord,
    TournamentRecord,
    TournamentStatus,
)


class TournamentStore(ABC):
    """Abstract base for every persistence/notification backend."""

    # ------------------------------------------------------------------ #
    # Tournaments                                                          #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def insert_tournament(
        self, organizer_id: str, tournament_id: str | None = None
    ) -> TournamentRecord:
        """Create a tournament in 'awaiting' status."""
        ...

    @abstractmethod
    async def get_tournament(self, tournament_id: str) -> TournamentRecord:
        """
        Raises:
            TournamentNotFoundError: no tournament with that id.
        """
        ...

    @abstractmethod
    async def update_tournament_status(
        self,
        tournament_id: str,
        *,
        status: TournamentStatus,
        rounds_total: int,
        rounds_completed: int,
        current_round: int,
    ) -> TournamentRecord:
        ...

    # ------------------------------------------------------------------ #
    # Participants                                                         #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def insert_participant(self, tournament_id: str, player_id: str) -> Participant:
        """Add a player, or reactivate them if they joined and left before."""
        ...

    @abstractmethod
    async def update_participant(self, participant: Participant) -> Participant:
        ...

    @abstractmethod
    async def query_participants(
        self, tournament_id: str, *, active_only: bool = True
    ) -> list[Participant]:
        """Participants in seed order."""
        ...

    # ------------------------------------------------------------------ #
    # Matches                                                              #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def insert_match(
        self,
        tournament_id: str,
        round_num: int,
        white_id: str,
        black_id: str,
        owner_id: str,
        match_id: str | None = None,
    ) -> MatchLink:
        """
        Request creation of a match and write its tournament link.

        The match subsystem owns the match from here on; its lifecycle is
        observed through subscribe_match_status().
        """
        ...

    @abstractmethod
    async def query_match_link(self, tournament_id: str, match_id: str) -> MatchLink | None:
        """Return the link for a match, or None if it is not (yet) visible."""
        ...

    @abstractmethod
    async def query_match_links(
        self, tournament_id: str, round_num: int | None = None
    ) -> list[MatchLink]:
        """Links of one round, or of the whole tournament when round_num is None."""
        ...

    @abstractmethod
    async def query_matches_by_round(
        self, tournament_id: str, round_num: int
    ) -> list[MatchRecord]:
        ...

    # ------------------------------------------------------------------ #
    # Scores                                                               #
    # ------------------------------------------------------------------ #

    @abstractmethod
    async def insert_score_records(
        self, tournament_id: str, records: list[ScoreRecord]
    ) -> None:
        """Write all records atomically.  Records whose key already exists are left as is."""
        ...

    @abstractmethod
    async def query_standings(self, tournament_id: str) -> list[ScoreRecord]:
        ...

    # ------------------------------------------------------------------ #
    # Notifications                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def subscribe_match_status(self, tournament_id: str) -> AsyncIterator[MatchRecord]:
        """
        Yield a MatchRecord every time a match of this tournament changes status.

        Implementors define this as an async generator.
        """
        ...
