"""
Store package — persistence and notification backends.

To add a backend:
  1. Create swissharness/store/<name>.py implementing TournamentStore
  2. Export it here
"""

from __future__ import annotations

from swissharness.store.base import TournamentStore
from swissharness.store.memory import InMemoryStore

__all__ = ["InMemoryStore", "TournamentStore"]
