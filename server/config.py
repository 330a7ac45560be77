"""Balance and timing configuration, overridable from a JSON file."""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Optional
from shared.constants import (
    MORNING_BRIEF_DURATION, ACTION_PHASE_DURATION, BREAKING_NEWS_DURATION,
    MIN_PLAYERS, MAX_PLAYERS, MAX_TURNS, MAX_ACTIONS_PER_TURN,
    MAX_GENERATION_PER_TERRITORY, STARTING_TERRITORIES_PER_PLAYER,
    INFLUENCE_CAPTURE_THRESHOLD, INVASION_DEFENSE_BONUS,
    TERRITORIAL_DOMINATION, ECONOMIC_EMPIRE, CULTURAL_HEGEMONY,
    INNOVATION_LEADER, ATTENTION_MONOPOLY,
    ACTION_COSTS, ACTION_BASE_EFFECT, Phase, VictoryType,
)
from shared.models import Resources

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SATIRE_EMPIRE_CONFIG"


@dataclass
class GameConfig:
    morning_brief_duration: int = MORNING_BRIEF_DURATION
    action_phase_duration: int = ACTION_PHASE_DURATION
    breaking_news_duration: int = BREAKING_NEWS_DURATION
    min_players: int = MIN_PLAYERS
    max_players: int = MAX_PLAYERS
    max_turns: int = MAX_TURNS
    max_actions_per_turn: int = MAX_ACTIONS_PER_TURN
    max_generation_per_territory: int = MAX_GENERATION_PER_TERRITORY
    starting_territories_per_player: int = STARTING_TERRITORIES_PER_PLAYER
    influence_capture_threshold: int = INFLUENCE_CAPTURE_THRESHOLD
    invasion_defense_bonus: int = INVASION_DEFENSE_BONUS
    territorial_threshold: float = TERRITORIAL_DOMINATION
    economic_threshold: int = ECONOMIC_EMPIRE
    cultural_threshold: float = CULTURAL_HEGEMONY
    innovation_threshold: int = INNOVATION_LEADER
    attention_streak_turns: int = ATTENTION_MONOPOLY
    action_costs: dict = field(default_factory=lambda: {k: dict(v) for k, v in ACTION_COSTS.items()})
    action_base_effect: dict = field(default_factory=lambda: dict(ACTION_BASE_EFFECT))
    victory_types: list = field(
        default_factory=lambda: [VictoryType.TERRITORIAL_DOMINATION.value])

    def phase_duration(self, phase: Phase) -> int:
        if phase == Phase.MORNING_BRIEF:
            return self.morning_brief_duration
        elif phase == Phase.ACTION_PHASE:
            return self.action_phase_duration
        elif phase == Phase.BREAKING_NEWS:
            return self.breaking_news_duration
        return 0

    def action_cost(self, action_type: str) -> Optional[Resources]:
        cost = self.action_costs.get(action_type)
        if cost is None:
            return None
        return Resources.from_dict(cost)

    def base_effect(self, action_type: str) -> int:
        return int(self.action_base_effect.get(action_type, 0))

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @staticmethod
    def from_dict(d: dict) -> "GameConfig":
        """Build a config from overrides. Unknown keys are ignored with a warning.

        Cost and effect tables merge into the defaults so an override file
        only has to list the entries it changes.
        """
        config = GameConfig()
        known = {f.name for f in fields(GameConfig)}
        for key, value in d.items():
            if key not in known:
                logger.warning("Ignoring unknown config key %r", key)
                continue
            if key in ("action_costs", "action_base_effect"):
                merged = getattr(config, key)
                merged.update(value)
                continue
            setattr(config, key, value)
        if config.min_players > config.max_players:
            raise ValueError("min_players cannot exceed max_players")
        return config


def load_config(path: Optional[str] = None) -> GameConfig:
    """Load config from `path`, the SATIRE_EMPIRE_CONFIG file, or defaults."""
    path = path or os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return GameConfig()
    with open(path, encoding="utf-8") as f:
        overrides = json.load(f)
    logger.info("Loaded game config overrides from %s", path)
    return GameConfig.from_dict(overrides)
