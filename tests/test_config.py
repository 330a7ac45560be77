"""Tests for game configuration loading."""

import sys
import os
import json
import logging
import pytest
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from shared.constants import Phase
from shared.models import Resources
from server.config import GameConfig, load_config, CONFIG_ENV_VAR


class TestGameConfig:
    def test_defaults(self):
        config = GameConfig()
        assert config.phase_duration(Phase.MORNING_BRIEF) == 45
        assert config.phase_duration(Phase.ACTION_PHASE) == 120
        assert config.phase_duration(Phase.BREAKING_NEWS) == 45
        assert config.phase_duration(Phase.LOBBY) == 0
        assert config.max_actions_per_turn == 3
        assert config.victory_types == ["territorial-domination"]

    def test_action_cost_lookup(self):
        config = GameConfig()
        assert config.action_cost("influence") == Resources(10, 25, 5)
        assert config.action_cost("teleport") is None
        assert config.base_effect("invade") == 12
        assert config.base_effect("teleport") == 0

    def test_instances_do_not_share_tables(self):
        a, b = GameConfig(), GameConfig()
        a.action_costs["invest"]["wealth"] = 1
        assert b.action_costs["invest"]["wealth"] == 30

    def test_from_dict_merges_tables(self):
        config = GameConfig.from_dict({
            "action_phase_duration": 60,
            "action_costs": {"invest": {"wealth": 5, "attention": 0, "technology": 0}},
        })
        assert config.action_phase_duration == 60
        assert config.action_cost("invest") == Resources(5, 0, 0)
        assert config.action_cost("invade") == Resources(20, 15, 10)

    def test_unknown_keys_warn(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = GameConfig.from_dict({"gravity": 9.8})
        assert "gravity" in caplog.text
        assert not hasattr(config, "gravity")

    def test_invalid_player_bounds(self):
        with pytest.raises(ValueError):
            GameConfig.from_dict({"min_players": 5, "max_players": 3})

    def test_to_dict(self):
        data = GameConfig(max_turns=7).to_dict()
        assert data["max_turns"] == 7
        assert GameConfig.from_dict(data) == GameConfig(max_turns=7)


class TestLoadConfig:
    def test_defaults_without_file(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == GameConfig()

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "game.json"
        path.write_text(json.dumps({"max_turns": 5}))
        assert load_config(str(path)).max_turns == 5

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "game.json"
        path.write_text(json.dumps({"victory_types": ["economic-empire"]}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().victory_types == ["economic-empire"]
