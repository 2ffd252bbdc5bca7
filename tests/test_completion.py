"""
Tests for GameCompletionProcessor — exactly-once scoring under duplicate
delivery, parking of matches whose round link is not visible yet, and
all-or-nothing behaviour when the score write fails.
"""

from __future__ import annotations

import unittest

from swissharness.errors import StoreError
from swissharness.events import MatchRecord
from swissharness.store.memory import InMemoryStore
from swissharness.tournaments.base import PairingHistory
from swissharness.tournaments.completion import GameCompletionProcessor
from swissharness.tournaments.standings import StandingsTracker


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

async def make_round(store: InMemoryStore, n_players: int = 4):
    """Create a tournament with one round of matches: 1v2, 3v4, …"""
    record = await store.insert_tournament("organizer", "t1")
    participants = [
        await store.insert_participant(record.id, f"player-{i}") for i in range(1, n_players + 1)
    ]
    tracker = StandingsTracker(participants, PairingHistory())
    processor = GameCompletionProcessor(record.id, store, tracker)
    links = [
        await store.insert_match(record.id, 1, participants[i].id, participants[i + 1].id, "organizer")
        for i in range(0, n_players, 2)
    ]
    processor.expect_round(1, [link.match_id for link in links])
    return processor, tracker, links


async def close(store: InMemoryStore, match_id: str, status: str = "checkmate", side: int = 2) -> MatchRecord:
    return await store.publish_match_status(match_id, status, side)


# --------------------------------------------------------------------------- #
# Idempotency                                                                  #
# --------------------------------------------------------------------------- #

class TestIdempotency(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = InMemoryStore()
        self.processor, self.tracker, self.links = await make_round(self.store)

    async def test_open_match_ignored(self):
        outcome = await self.processor.on_match_closed(MatchRecord(id=self.links[0].match_id, status="continue"))
        self.assertEqual(outcome.status, "ignored")
        self.assertEqual(self.tracker.total_points(), 0.0)

    async def test_single_delivery_applies(self):
        match = await close(self.store, self.links[0].match_id)
        outcome = await self.processor.on_match_closed(match)
        self.assertEqual(outcome.status, "applied")
        self.assertEqual(outcome.match_status, "checkmate")
        self.assertEqual(outcome.scores, (1.0, 0.0))
        self.assertEqual(self.tracker.score_of(self.links[0].white_id), 1.0)
        self.assertEqual(self.tracker.score_of(self.links[0].black_id), 0.0)

    async def test_repeated_delivery_is_identical(self):
        for deliveries in (1, 2, 100):
            store = InMemoryStore()
            processor, tracker, links = await make_round(store)
            match = await close(store, links[0].match_id)
            outcomes = [await processor.on_match_closed(match) for _ in range(deliveries)]

            self.assertEqual(outcomes[0].status, "applied")
            self.assertTrue(all(o.status == "duplicate" for o in outcomes[1:]))
            self.assertEqual(tracker.score_of(links[0].white_id), 1.0)
            self.assertEqual(tracker.total_points(), 1.0)
            self.assertEqual(len(await store.query_standings("t1")), 2)

    async def test_duplicate_reports_round_completion(self):
        first = await close(self.store, self.links[0].match_id)
        second = await close(self.store, self.links[1].match_id, "draw")
        await self.processor.on_match_closed(first)
        applied = await self.processor.on_match_closed(second)
        self.assertTrue(applied.round_complete)

        again = await self.processor.on_match_closed(second)
        self.assertEqual(again.status, "duplicate")
        self.assertTrue(again.round_complete)
        self.assertEqual(again.round_num, 1)


# --------------------------------------------------------------------------- #
# Round completion                                                             #
# --------------------------------------------------------------------------- #

class TestRoundCompletion(unittest.IsolatedAsyncioTestCase):
    async def test_incomplete_until_last_match_applied(self):
        store = InMemoryStore()
        processor, _, links = await make_round(store, n_players=6)

        for link in links[:-1]:
            outcome = await processor.on_match_closed(await close(store, link.match_id, "draw"))
            self.assertFalse(outcome.round_complete)

        outcome = await processor.on_match_closed(await close(store, links[-1].match_id, "draw"))
        self.assertTrue(outcome.round_complete)

    async def test_closed_but_unprocessed_match_keeps_round_open(self):
        store = InMemoryStore()
        processor, _, links = await make_round(store)
        await close(store, links[1].match_id)    # closed in the store, event not yet seen

        outcome = await processor.on_match_closed(await close(store, links[0].match_id))
        self.assertFalse(outcome.round_complete)
        self.assertFalse(await processor.is_round_complete(1))

    async def test_round_without_matches_is_not_complete(self):
        store = InMemoryStore()
        processor, _, _ = await make_round(store)
        self.assertFalse(await processor.is_round_complete(2))


# --------------------------------------------------------------------------- #
# Lagging round links                                                          #
# --------------------------------------------------------------------------- #

class TestPendingLinks(unittest.IsolatedAsyncioTestCase):
    async def test_unknown_link_is_parked_then_applied(self):
        store = InMemoryStore(defer_links=True)
        processor, tracker, links = await make_round(store)
        match = await close(store, links[0].match_id)

        outcome = await processor.on_match_closed(match)
        self.assertEqual(outcome.status, "pending")
        self.assertEqual([m.id for m in processor.pending], [match.id])
        self.assertEqual(tracker.total_points(), 0.0)

        # Still not visible: stays parked
        outcomes = await processor.retry_pending()
        self.assertEqual([o.status for o in outcomes], ["pending"])

        store.flush_links()
        outcomes = await processor.retry_pending()
        self.assertEqual([o.status for o in outcomes], ["applied"])
        self.assertEqual(processor.pending, [])
        self.assertEqual(tracker.total_points(), 1.0)

    async def test_round_not_complete_while_a_link_lags(self):
        store = InMemoryStore()
        processor, _, links = await make_round(store)
        store.defer_links = True
        late = await store.insert_match("t1", 1, links[0].white_id, links[1].white_id, "organizer")
        processor.expect_round(1, [link.match_id for link in links] + [late.match_id])

        for link in links:
            outcome = await processor.on_match_closed(await close(store, link.match_id, "draw"))
            self.assertFalse(outcome.round_complete)
        self.assertFalse(await processor.is_round_complete(1))


# --------------------------------------------------------------------------- #
# Atomicity                                                                    #
# --------------------------------------------------------------------------- #

class TestAtomicity(unittest.IsolatedAsyncioTestCase):
    async def test_failed_score_write_changes_nothing(self):
        store = InMemoryStore()
        processor, tracker, links = await make_round(store)
        match = await close(store, links[0].match_id)

        store.fail_next("insert_score_records")
        with self.assertRaises(StoreError):
            await processor.on_match_closed(match)

        self.assertEqual(tracker.total_points(), 0.0)
        self.assertFalse(processor.is_processed(match.id))
        self.assertEqual(await store.query_standings("t1"), [])

        # Redelivery succeeds and applies exactly once
        outcome = await processor.on_match_closed(match)
        self.assertEqual(outcome.status, "applied")
        self.assertEqual(tracker.total_points(), 1.0)

    async def test_failed_link_lookup_propagates(self):
        store = InMemoryStore()
        processor, tracker, links = await make_round(store)
        match = await close(store, links[0].match_id)

        store.fail_next("query_match_link")
        with self.assertRaises(StoreError):
            await processor.on_match_closed(match)
        self.assertEqual(tracker.total_points(), 0.0)
        self.assertEqual(processor.pending, [])

    async def test_hydrate_marks_processed(self):
        store = InMemoryStore()
        processor, tracker, links = await make_round(store)
        await processor.on_match_closed(await close(store, links[0].match_id))

        fresh_tracker = StandingsTracker(await store.query_participants("t1"), PairingHistory())
        fresh = GameCompletionProcessor("t1", store, fresh_tracker)
        records = await store.query_standings("t1")
        fresh_tracker.hydrate(records)
        fresh.hydrate(records)

        self.assertTrue(fresh.is_processed(links[0].match_id))
        outcome = await fresh.on_match_closed(await close(store, links[0].match_id))
        self.assertEqual(outcome.status, "duplicate")
        self.assertEqual(fresh_tracker.total_points(), 1.0)
