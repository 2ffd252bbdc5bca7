"""
Tests for the FastAPI surface — REST endpoints, error mapping, the match
webhook, and the tournament WebSocket with replay.

Each test builds its own app via create_app() so state never leaks between
tests.  Uses FastAPI's synchronous TestClient (no external server required).
"""

from __future__ import annotations

import time
import unittest

from fastapi.testclient import TestClient

from swissharness.config import Config, EngineConfig, SimulationConfig
from swissharness.store.memory import InMemoryStore
from swissharness.web import app as web_app

PLAYERS = ["Alpha", "Bravo", "Charlie", "Delta"]


def make_client() -> TestClient:
    config = Config(
        engine=EngineConfig(pending_retry_interval=0.02),
        simulation=SimulationConfig(max_plies=40, seed=3),
    )
    return TestClient(web_app.create_app(config, InMemoryStore()))


def create_with_players(client: TestClient, players=PLAYERS) -> str:
    tid = client.post("/api/tournaments", json={"organizer_id": "org"}).json()["id"]
    for name in players:
        resp = client.post(f"/api/tournaments/{tid}/participants", json={"player_id": name})
        assert resp.status_code == 201
    return tid


def round_pairings(client: TestClient, tid: str, round_num: int) -> list[list[str]]:
    log = client.app.state.broadcaster.log(tid)
    starts = [e for e in log if e["type"] == "RoundStartEvent" and e["round_num"] == round_num]
    return starts[-1]["pairings"]


# --------------------------------------------------------------------------- #
# REST                                                                         #
# --------------------------------------------------------------------------- #

class TestRestEndpoints(unittest.TestCase):
    def test_create_tournament(self):
        with make_client() as client:
            resp = client.post("/api/tournaments", json={"organizer_id": "org", "tournament_id": "cup"})
        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertEqual(body["id"], "cup")
        self.assertEqual(body["status"], "awaiting")
        self.assertEqual(body["type"], "TournamentRecord")

    def test_join_and_standings(self):
        with make_client() as client:
            tid = create_with_players(client)
            standings = client.get(f"/api/tournaments/{tid}/standings").json()
        self.assertEqual([e["player_id"] for e in standings], PLAYERS)
        self.assertTrue(all(e["score"] == 0.0 for e in standings))

    def test_leave(self):
        with make_client() as client:
            tid = create_with_players(client)
            resp = client.delete(f"/api/tournaments/{tid}/participants/Bravo")
            standings = client.get(f"/api/tournaments/{tid}/standings").json()
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["active"])
        self.assertEqual(len(standings), 3)

    def test_start(self):
        with make_client() as client:
            tid = create_with_players(client)
            resp = client.post(f"/api/tournaments/{tid}/start", json={"rounds_total": 2})
            status = client.get(f"/api/tournaments/{tid}/status").json()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(status["status"], "running")
        self.assertEqual(status["rounds_total"], 2)
        self.assertEqual(status["current_round"], 1)


class TestErrorMapping(unittest.TestCase):
    def test_insufficient_participants_is_400(self):
        with make_client() as client:
            tid = create_with_players(client, PLAYERS[:3])
            resp = client.post(f"/api/tournaments/{tid}/start", json={})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "InsufficientParticipantsError")

    def test_start_twice_is_409(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            resp = client.post(f"/api/tournaments/{tid}/start", json={})
        self.assertEqual(resp.status_code, 409)

    def test_leave_while_running_is_409(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            resp = client.delete(f"/api/tournaments/{tid}/participants/Alpha")
        self.assertEqual(resp.status_code, 409)

    def test_unknown_tournament_is_404(self):
        with make_client() as client:
            self.assertEqual(client.get("/api/tournaments/nope/status").status_code, 404)
            self.assertEqual(client.get("/api/tournaments/nope/standings").status_code, 404)

    def test_invalid_match_status_is_422(self):
        with make_client() as client:
            tid = create_with_players(client)
            resp = client.post(
                "/api/events/match", json={"tournament_id": tid, "id": "m1", "status": "won"}
            )
        self.assertEqual(resp.status_code, 422)


# --------------------------------------------------------------------------- #
# Webhook                                                                      #
# --------------------------------------------------------------------------- #

class TestMatchWebhook(unittest.TestCase):
    def test_results_advance_the_round(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})

            outcomes = []
            for match_id, _, _ in round_pairings(client, tid, 1):
                resp = client.post(
                    "/api/events/match",
                    json={"tournament_id": tid, "id": match_id, "status": "checkmate", "side": 2},
                )
                outcomes.append(resp.json())
            status = client.get(f"/api/tournaments/{tid}/status").json()
            standings = client.get(f"/api/tournaments/{tid}/standings").json()

        self.assertEqual([o["outcome"] for o in outcomes], ["applied", "applied"])
        self.assertTrue(outcomes[-1]["round_complete"])
        self.assertEqual(status["current_round"], 2)
        self.assertEqual(sum(e["score"] for e in standings), 2.0)

    def test_duplicate_delivery(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            match_id, white_id, _ = round_pairings(client, tid, 1)[0]
            payload = {"tournament_id": tid, "id": match_id, "status": "checkmate", "side": 2}

            results = [client.post("/api/events/match", json=payload).json() for _ in range(3)]
            standings = client.get(f"/api/tournaments/{tid}/standings").json()

        self.assertEqual([r["outcome"] for r in results], ["applied", "duplicate", "duplicate"])
        white = next(e for e in standings if e["participant_id"] == white_id)
        self.assertEqual(white["score"], 1.0)

    def test_event_before_start_is_409(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            match_id = round_pairings(client, tid, 1)[0][0]
            other = create_with_players(client)
            resp = client.post(
                "/api/events/match",
                json={"tournament_id": other, "id": match_id, "status": "draw"},
            )
        self.assertEqual(resp.status_code, 409)


# --------------------------------------------------------------------------- #
# Simulated run                                                                #
# --------------------------------------------------------------------------- #

class TestSimulatedStart(unittest.TestCase):
    def test_simulate_runs_to_finish(self):
        with make_client() as client:
            tid = create_with_players(client)
            resp = client.post(f"/api/tournaments/{tid}/start", json={"simulate": True})
            self.assertEqual(resp.status_code, 200)

            deadline = time.monotonic() + 20
            status = {}
            while time.monotonic() < deadline:
                status = client.get(f"/api/tournaments/{tid}/status").json()
                if status["status"] == "finished":
                    break
                time.sleep(0.05)

        self.assertEqual(status["status"], "finished")
        self.assertEqual(status["rounds_completed"], 3)

    def test_rejected_start_stops_simulation(self):
        with make_client() as client:
            tid = create_with_players(client, PLAYERS[:3])
            resp = client.post(f"/api/tournaments/{tid}/start", json={"simulate": True})
            self.assertEqual(resp.status_code, 400)
            self.assertEqual(client.app.state.background, set())
            self.assertEqual(client.get(f"/api/tournaments/{tid}/status").json()["status"], "awaiting")


# --------------------------------------------------------------------------- #
# WebSocket                                                                    #
# --------------------------------------------------------------------------- #

class TestTournamentSocket(unittest.TestCase):
    def test_late_subscriber_receives_replay(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            with client.websocket_connect(f"/ws/tournament/{tid}") as ws:
                first = ws.receive_json()
                second = ws.receive_json()

        self.assertEqual(first["type"], "TournamentStartEvent")
        self.assertEqual(len(first["participant_ids"]), 4)
        self.assertEqual(second["type"], "RoundStartEvent")
        self.assertEqual(second["round_num"], 1)

    def test_live_events_follow_replay(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            with client.websocket_connect(f"/ws/tournament/{tid}") as ws:
                ws.receive_json()
                ws.receive_json()
                match_id = round_pairings(client, tid, 1)[0][0]
                client.post(
                    "/api/events/match",
                    json={"tournament_id": tid, "id": match_id, "status": "draw"},
                )
                scored = ws.receive_json()

        self.assertEqual(scored["type"], "MatchScoredEvent")
        self.assertEqual(scored["match_id"], match_id)
        self.assertEqual(scored["white_score"], 0.5)

    def test_round_complete_standings_carry_type(self):
        with make_client() as client:
            tid = create_with_players(client)
            client.post(f"/api/tournaments/{tid}/start", json={})
            for match_id, _, _ in round_pairings(client, tid, 1):
                client.post(
                    "/api/events/match",
                    json={"tournament_id": tid, "id": match_id, "status": "draw"},
                )
            log = client.app.state.broadcaster.log(tid)

        complete = next(e for e in log if e["type"] == "RoundCompleteEvent")
        self.assertEqual(complete["standings"][0]["type"], "StandingEntry")
        self.assertEqual(len(complete["standings"]), 4)
