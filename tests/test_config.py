"""Tests for load_config — defaults, overrides, and validation errors."""

from __future__ import annotations

import pytest

from swissharness.config import Config, load_config


def write_config(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.example.yaml"):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        config = load_config(write_config(tmp_path, ""))
        assert config.tournament.rounds_total == 3
        assert config.tournament.min_participants == 4
        assert config.tournament.rematch_policy == "relax"
        assert config.tournament.bye_score == 1.0
        assert config.engine.pending_retry_interval == 1.0
        assert config.logging.level == "INFO"
        assert config.simulation.seed is None

    def test_overrides(self, tmp_path):
        config = load_config(write_config(tmp_path, """
tournament:
  rounds_total: 5
  rematch_policy: forbid
  bye_score: 0.5
engine:
  pending_retry_interval: 0.25
logging:
  level: debug
web:
  port: 9000
simulation:
  seed: 7
  max_plies: 40
"""))
        assert config.tournament.rounds_total == 5
        assert config.tournament.rematch_policy == "forbid"
        assert config.tournament.bye_score == 0.5
        assert config.engine.pending_retry_interval == 0.25
        assert config.logging.level == "DEBUG"
        assert config.web.port == 9000
        assert config.simulation.seed == 7
        assert config.simulation.max_plies == 40

    @pytest.mark.parametrize(
        "text",
        [
            "tournament:\n  rematch_policy: sometimes\n",
            "tournament:\n  rounds_total: 0\n",
            "tournament:\n  min_participants: 1\n",
            "tournament:\n  bye_score: 2\n",
            "engine:\n  pending_retry_interval: 0\n",
            "logging:\n  level: LOUD\n",
            "tournament: [1, 2]\n",
        ],
    )
    def test_invalid_values_raise(self, tmp_path, text):
        with pytest.raises(ValueError):
            load_config(write_config(tmp_path, text))

    def test_default_config_object(self):
        config = Config()
        assert config.log_file_path.name == "swissharness.log"
        assert config.web.port == 8000
