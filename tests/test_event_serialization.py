"""
Tests for _to_json_dict — the serialiser that converts tournament event
dataclasses to JSON-safe dicts and injects a "type" key at every level of
nesting, so standings inside RoundCompleteEvent can be dispatched on too.
"""

import dataclasses
import json
import unittest

from swissharness.tournaments.base import StandingEntry
from swissharness.tournaments.events import RoundCompleteEvent, RoundStartEvent, TournamentStartEvent
from swissharness.web import app as web_app


# ── Local test dataclasses (no production imports needed) ──────────────────

@dataclasses.dataclass(frozen=True)
class _Inner:
    x: int
    label: str


@dataclasses.dataclass(frozen=True)
class _Outer:
    name: str
    inner: _Inner


@dataclasses.dataclass(frozen=True)
class _WithList:
    items: list


# ── Tests ──────────────────────────────────────────────────────────────────

class ToJsonDictTests(unittest.TestCase):

    def test_adds_type_to_top_level(self):
        result = web_app._to_json_dict(_Outer(name="hello", inner=_Inner(x=1, label="a")))
        self.assertEqual(result["type"], "_Outer")

    def test_adds_type_to_nested_dataclass(self):
        result = web_app._to_json_dict(_Outer(name="hello", inner=_Inner(x=42, label="z")))
        self.assertEqual(result["inner"]["type"], "_Inner")
        self.assertEqual(result["inner"]["x"], 42)
        self.assertEqual(result["name"], "hello")

    def test_list_of_dataclasses_each_get_type(self):
        result = web_app._to_json_dict(_WithList(items=[_Inner(x=1, label="a"), _Inner(x=2, label="b")]))
        self.assertEqual([i["type"] for i in result["items"]], ["_Inner", "_Inner"])
        self.assertEqual([i["x"] for i in result["items"]], [1, 2])

    def test_list_of_scalars_unchanged(self):
        self.assertEqual(web_app._to_json_dict(_WithList(items=[1, 2, 3]))["items"], [1, 2, 3])

    # ── Real event types ──────────────────────────────────────────────────

    def test_round_start_pairings_become_lists(self):
        event = RoundStartEvent(
            tournament_id="t1",
            round_num=2,
            total_rounds=3,
            pairings=[("m1", "p1", "p3"), ("m2", "p4", "p2")],
            bye=None,
        )
        result = web_app._to_json_dict(event)
        self.assertEqual(result["type"], "RoundStartEvent")
        self.assertEqual(result["pairings"], [["m1", "p1", "p3"], ["m2", "p4", "p2"]])

    def test_round_complete_standings_have_type(self):
        entry = StandingEntry(participant_id="p1", player_id="Alpha", seed=1, score=1.5, opponents=["p2"])
        result = web_app._to_json_dict(RoundCompleteEvent("t1", 2, [entry]))
        standing = result["standings"][0]
        self.assertEqual(standing["type"], "StandingEntry")
        self.assertEqual(standing["score"], 1.5)
        self.assertEqual(standing["opponents"], ["p2"])

    def test_timestamp_serialises_as_iso_string(self):
        event = TournamentStartEvent(tournament_id="t1", participant_ids=["p1", "p2"], total_rounds=1)
        payload = json.loads(web_app._to_json(web_app._to_json_dict(event)))
        self.assertEqual(payload["timestamp"], event.timestamp.isoformat())
