"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts.
Config() with no arguments gives the defaults, which is what the tests and
library callers use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import yaml

RematchPolicy = Literal["relax", "forbid"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass
class TournamentConfig:
    rounds_total: int = 3
    min_participants: int = 4
    rematch_policy: RematchPolicy = "relax"
    bye_score: float = 1.0


@dataclass
class EngineConfig:
    pending_retry_interval: float = 1.0   # seconds between retries of parked matches


@dataclass
class LoggingConfig:
    level: LogLevel = "INFO"
    file: str = "./logs/swissharness.log"


@dataclass
class WebConfig:
    host: str = "0.0.0.0"
    port: int = 8000


@dataclass
class SimulationConfig:
    max_plies: int = 200        # a game still running after this many plies is scored a draw
    seed: int | None = None
    move_delay: float = 0.0     # seconds slept between plies, to interleave games visibly


@dataclass
class Config:
    tournament: TournamentConfig = field(default_factory=TournamentConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    web: WebConfig = field(default_factory=WebConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    @property
    def log_file_path(self) -> Path:
        return Path(self.logging.file)


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing.
        ValueError: required fields are absent or invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml and adjust it."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        t_raw = raw.get("tournament") or {}
        tournament = TournamentConfig(
            rounds_total=int(t_raw.get("rounds_total", 3)),
            min_participants=int(t_raw.get("min_participants", 4)),
            rematch_policy=t_raw.get("rematch_policy", "relax"),
            bye_score=float(t_raw.get("bye_score", 1.0)),
        )

        e_raw = raw.get("engine") or {}
        engine = EngineConfig(
            pending_retry_interval=float(e_raw.get("pending_retry_interval", 1.0)),
        )

        l_raw = raw.get("logging") or {}
        logging_cfg = LoggingConfig(
            level=str(l_raw.get("level", "INFO")).upper(),
            file=str(l_raw.get("file", "./logs/swissharness.log")),
        )

        w_raw = raw.get("web") or {}
        web = WebConfig(
            host=str(w_raw.get("host", "0.0.0.0")),
            port=int(w_raw.get("port", 8000)),
        )

        s_raw = raw.get("simulation") or {}
        seed = s_raw.get("seed")
        simulation = SimulationConfig(
            max_plies=int(s_raw.get("max_plies", 200)),
            seed=int(seed) if seed is not None else None,
            move_delay=float(s_raw.get("move_delay", 0.0)),
        )

        config = Config(
            tournament=tournament,
            engine=engine,
            logging=logging_cfg,
            web=web,
            simulation=simulation,
        )
        _validate(config)
        return config

    except (AttributeError, KeyError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    policies = ("relax", "forbid")
    if config.tournament.rematch_policy not in policies:
        raise ValueError(
            f"tournament.rematch_policy must be one of {policies}, "
            f"got '{config.tournament.rematch_policy}'"
        )
    if config.tournament.rounds_total < 1:
        raise ValueError("tournament.rounds_total must be >= 1")
    if config.tournament.min_participants < 2:
        raise ValueError("tournament.min_participants must be >= 2")
    if not 0.0 <= config.tournament.bye_score <= 1.0:
        raise ValueError("tournament.bye_score must be between 0 and 1")
    if config.engine.pending_retry_interval <= 0:
        raise ValueError("engine.pending_retry_interval must be > 0")
    levels = ("DEBUG", "INFO", "WARNING", "ERROR")
    if config.logging.level not in levels:
        raise ValueError(f"logging.level must be one of {levels}, got '{config.logging.level}'")
    if config.simulation.max_plies < 1:
        raise ValueError("simulation.max_plies must be >= 1")
