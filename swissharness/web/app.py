"""
FastAPI application — HTTP and WebSocket surface of the scheduling engine.

Exposes:
  POST   /api/tournaments                              Create a tournament
  POST   /api/tournaments/{id}/participants            Join
  DELETE /api/tournaments/{id}/participants/{player}   Leave (awaiting only)
  POST   /api/tournaments/{id}/start                   Start (optionally simulated)
  POST   /api/events/match                             Match-status webhook
  GET    /api/tournaments/{id}/standings               Current standings
  GET    /api/tournaments/{id}/status                  Tournament record
  WS     /ws/tournament/{id}                           Event stream with replay

Error mapping: validation errors → 400, illegal transitions → 409,
unknown tournament → 404, store failures → 503.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from datetime import date, datetime

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from swissharness.config import Config, load_config
from swissharness.errors import (
    IllegalTransitionError,
    StoreError,
    SwissHarnessError,
    TournamentNotFoundError,
    ValidationError,
)
from swissharness.events import MatchStatus, Side
from swissharness.service import TournamentService
from swissharness.simulator import MatchSimulator
from swissharness.store.memory import InMemoryStore
from swissharness.tournaments.events import TournamentEvent

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Request bodies                                                               #
# --------------------------------------------------------------------------- #

class CreateTournamentRequest(BaseModel):
    organizer_id: str
    tournament_id: str | None = None


class JoinRequest(BaseModel):
    player_id: str


class StartRequest(BaseModel):
    organizer_id: str | None = None
    rounds_total: int | None = None
    simulate: bool = False      # play every match with the built-in simulator


class MatchEventRequest(BaseModel):
    tournament_id: str
    id: str
    status: MatchStatus
    side: Side = 1
    fen: str = ""


# --------------------------------------------------------------------------- #
# Serialisation                                                                #
# --------------------------------------------------------------------------- #

def _to_json_dict(obj: object) -> object:
    """
    dataclasses.asdict() with a "type" key injected at every nesting level.

    asdict() flattens nested dataclasses into anonymous dicts; the frontend
    dispatches on "type", so each level carries its class name.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        result: dict[str, object] = {"type": type(obj).__name__}
        for f in dataclasses.fields(obj):
            result[f.name] = _to_json_dict(getattr(obj, f.name))
        return result
    if isinstance(obj, (list, tuple)):
        return [_to_json_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {key: _to_json_dict(value) for key, value in obj.items()}
    return obj


def _to_json(data: object) -> str:
    """json.dumps with datetime → ISO-string support."""
    def _default(obj: object) -> str:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
    return json.dumps(data, default=_default)


# --------------------------------------------------------------------------- #
# Tournament broadcaster                                                       #
# --------------------------------------------------------------------------- #

class _TournamentBroadcaster:
    """
    Fans tournament events out to WebSocket subscribers.

    Every event is also kept in a per-tournament log, replayed in order to
    each new subscriber so a reconnecting client can rebuild its state.
    """

    def __init__(self) -> None:
        self._tournament_log: dict[str, list[dict]] = {}
        self._subscribers: dict[str, list[asyncio.Queue[dict]]] = {}

    def publish(self, event: TournamentEvent) -> None:
        payload = _to_json_dict(event)
        self._tournament_log.setdefault(event.tournament_id, []).append(payload)
        for queue in self._subscribers.get(event.tournament_id, []):
            queue.put_nowait(payload)

    def subscribe(self, tournament_id: str) -> tuple[list[dict], asyncio.Queue[dict]]:
        """Return the replay log and a queue receiving every later event."""
        queue: asyncio.Queue[dict] = asyncio.Queue()
        self._subscribers.setdefault(tournament_id, []).append(queue)
        return list(self._tournament_log.get(tournament_id, [])), queue

    def unsubscribe(self, tournament_id: str, queue: asyncio.Queue[dict]) -> None:
        subscribers = self._subscribers.get(tournament_id, [])
        if queue in subscribers:
            subscribers.remove(queue)

    def log(self, tournament_id: str) -> list[dict]:
        return list(self._tournament_log.get(tournament_id, []))


# --------------------------------------------------------------------------- #
# Application factory                                                          #
# --------------------------------------------------------------------------- #

def create_app(config: Config | None = None, store: InMemoryStore | None = None) -> FastAPI:
    config = config or Config()
    store = store or InMemoryStore()
    service = TournamentService(store, config)
    broadcaster = _TournamentBroadcaster()
    service.add_listener(broadcaster.publish)
    background: set[asyncio.Task] = set()

    app = FastAPI(title="SwissHarness")
    app.state.config = config
    app.state.store = store
    app.state.service = service
    app.state.broadcaster = broadcaster
    app.state.background = background

    def _spawn(coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        background.add(task)
        task.add_done_callback(background.discard)
        return task

    # ------------------------------------------------------------------ #
    # Error mapping                                                        #
    # ------------------------------------------------------------------ #

    @app.exception_handler(SwissHarnessError)
    async def _swiss_error(request: Request, exc: SwissHarnessError) -> JSONResponse:
        match exc:
            case TournamentNotFoundError():
                status_code = 404
            case IllegalTransitionError():
                status_code = 409
            case ValidationError():
                status_code = 400
            case StoreError():
                status_code = 503
            case _:
                status_code = 500
        logger.info("%s %s → %d: %s", request.method, request.url.path, status_code, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        for task in list(background):
            task.cancel()

    # ------------------------------------------------------------------ #
    # REST                                                                 #
    # ------------------------------------------------------------------ #

    @app.post("/api/tournaments", status_code=201)
    async def create_tournament(body: CreateTournamentRequest):
        record = await service.create_tournament(body.organizer_id, body.tournament_id)
        return _to_json_dict(record)

    @app.post("/api/tournaments/{tournament_id}/participants", status_code=201)
    async def join_tournament(tournament_id: str, body: JoinRequest):
        participant = await service.join(tournament_id, body.player_id)
        return _to_json_dict(participant)

    @app.delete("/api/tournaments/{tournament_id}/participants/{player_id}")
    async def leave_tournament(tournament_id: str, player_id: str):
        participant = await service.leave(tournament_id, player_id)
        return _to_json_dict(participant)

    @app.post("/api/tournaments/{tournament_id}/start")
    async def start_tournament(tournament_id: str, body: StartRequest | None = None):
        body = body or StartRequest()
        spawned: list[asyncio.Task] = []
        if body.simulate:
            # Subscribed before start() so the round-1 'ready' events are seen
            simulator = MatchSimulator(store, config.simulation)
            spawned = [_spawn(simulator.run(tournament_id)), _spawn(service.watch(tournament_id))]
            await asyncio.sleep(0)
        try:
            record = await service.start(tournament_id, body.organizer_id, body.rounds_total)
        except Exception:
            for task in spawned:
                task.cancel()
                background.discard(task)
            raise
        return _to_json_dict(record)

    @app.post("/api/events/match")
    async def match_event(body: MatchEventRequest):
        """
        Webhook for the match engine.  The status is recorded in the store
        first, so round completion sees it, then handed to the scheduler.
        """
        await service.get_scheduler(body.tournament_id)
        record = await store.publish_match_status(body.id, body.status, body.side, body.fen)
        outcome = await service.on_match_event(body.tournament_id, record)
        return {
            "match_id": outcome.match_id,
            "outcome": outcome.status,
            "round_complete": outcome.round_complete,
        }

    @app.get("/api/tournaments/{tournament_id}/standings")
    async def get_standings(tournament_id: str):
        return [_to_json_dict(entry) for entry in await service.get_standings(tournament_id)]

    @app.get("/api/tournaments/{tournament_id}/status")
    async def get_status(tournament_id: str):
        return _to_json_dict(await service.get_status(tournament_id))

    # ------------------------------------------------------------------ #
    # WebSocket event stream                                               #
    # ------------------------------------------------------------------ #

    @app.websocket("/ws/tournament/{tournament_id}")
    async def tournament_ws(ws: WebSocket, tournament_id: str) -> None:
        await ws.accept()
        replay, queue = broadcaster.subscribe(tournament_id)

        async def _send_loop() -> None:
            for payload in replay:
                await ws.send_text(_to_json(payload))
            while True:
                await ws.send_text(_to_json(await queue.get()))

        async def _receive_loop() -> None:
            try:
                while True:
                    await ws.receive_text()
            except (WebSocketDisconnect, RuntimeError):
                pass

        send_task = asyncio.create_task(_send_loop())
        recv_task = asyncio.create_task(_receive_loop())
        try:
            # Whichever finishes first (client gone, send failed) ends the session
            done, pending = await asyncio.wait(
                {send_task, recv_task}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                try:
                    await task
                except (asyncio.CancelledError, WebSocketDisconnect):
                    pass
        finally:
            broadcaster.unsubscribe(tournament_id, queue)

    return app


def _load_app_config() -> Config:
    try:
        return load_config()
    except FileNotFoundError:
        logger.warning("config.yaml not found; using default configuration")
        return Config()


app = create_app(_load_app_config())
