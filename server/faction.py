"""Faction model: immutable definitions, action bonuses and the ability gate.

Every faction variant subclasses Faction and supplies three tables: its
FactionDefinition, a bonus table keyed by action type, and a handler table
keyed by ability id. The engine only ever talks to the methods defined here,
so it never needs to know which faction it is dealing with.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from shared.constants import (
    AbilityKind, ConditionType, Comparison, VictoryType, GENERIC_ACTIONS,
)
from shared.models import Resources, Territory, Player, Consequence, QueuedAction, PlayerAction
from server.errors import AbilityUnavailableError, UnknownAbilityError


@dataclass(frozen=True)
class AbilityCondition:
    type: ConditionType
    value: float
    comparison: Comparison
    resource: Optional[str] = None  # only for resource-threshold


@dataclass(frozen=True)
class AbilityDefinition:
    ability_id: str
    name: str
    description: str
    kind: AbilityKind
    cooldown: Optional[float] = None  # seconds
    cost: Optional[Resources] = None
    conditions: tuple[AbilityCondition, ...] = ()


@dataclass(frozen=True)
class VictoryPriority:
    type: VictoryType
    description: str


@dataclass(frozen=True)
class FactionDefinition:
    faction_id: str
    name: str
    description: str
    satirical_target: str
    color: str
    starting_resources: Resources
    victory_priorities: tuple[VictoryPriority, ...]
    abilities: tuple[AbilityDefinition, ...]

    def get_ability(self, ability_id: str) -> Optional[AbilityDefinition]:
        for ability in self.abilities:
            if ability.ability_id == ability_id:
                return ability
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.faction_id,
            "name": self.name,
            "description": self.description,
            "satirical_target": self.satirical_target,
            "color": self.color,
            "starting_resources": self.starting_resources.to_dict(),
            "victory_priorities": [
                {"type": p.type.value, "description": p.description}
                for p in self.victory_priorities
            ],
            "abilities": [
                {
                    "id": a.ability_id,
                    "name": a.name,
                    "kind": a.kind.value,
                    "cooldown": a.cooldown,
                    "cost": a.cost.to_dict() if a.cost else None,
                }
                for a in self.abilities
            ],
        }


@dataclass(frozen=True)
class ActionBonus:
    multiplier: float = 1.0
    cost_scale: float = 1.0
    description: str = ""


NEUTRAL_BONUS = ActionBonus()


@dataclass
class AbilityContext:
    """Read-only view of the acting player's situation at invocation time."""
    player_id: str
    player_name: str
    resources: Resources
    territory_ids: list[str]
    turn: int
    now: float
    last_used: Optional[float] = None
    actions_this_turn: int = 0
    base_magnitude: int = 0
    target: Optional[Territory] = None
    target_owner: Optional[Player] = None


@dataclass
class AbilityOutcome:
    """Effect bundle returned by a successful ability.

    The engine applies the standard fields (resource deltas, influence delta,
    claim flag) and passes `effects` through to the turn's events untouched.
    """
    ability_id: str
    narrative: str = ""
    resource_delta: dict[str, int] = field(default_factory=dict)
    target_resource_delta: dict[str, int] = field(default_factory=dict)
    influence_delta: int = 0
    target_influence_delta: int = 0  # applied to the target owner's influence
    claims_target: bool = False
    consequences: list[Consequence] = field(default_factory=list)
    effects: dict[str, Any] = field(default_factory=dict)


def compare_values(actual: float, expected: float, comparison: Comparison) -> bool:
    if comparison == Comparison.EQUALS:
        return actual == expected
    elif comparison == Comparison.GREATER:
        return actual > expected
    elif comparison == Comparison.LESS:
        return actual < expected
    elif comparison == Comparison.GREATER_EQUAL:
        return actual >= expected
    elif comparison == Comparison.LESS_EQUAL:
        return actual <= expected
    return False


def observed_value(condition: AbilityCondition, context: AbilityContext) -> float:
    if condition.type == ConditionType.RESOURCE_THRESHOLD:
        return context.resources.get(condition.resource) if condition.resource else 0
    elif condition.type == ConditionType.TERRITORY_COUNT:
        return len(context.territory_ids)
    elif condition.type == ConditionType.TURN_NUMBER:
        return context.turn
    elif condition.type == ConditionType.PLAYER_ACTION:
        return context.actions_this_turn
    return 0


def check_ability(ability: AbilityDefinition, context: AbilityContext):
    """Raise AbilityUnavailableError unless cooldown, cost and conditions all pass.

    Passive abilities are never on cooldown and cost nothing, but still
    honour their conditions.
    """
    if ability.kind != AbilityKind.PASSIVE:
        if ability.cooldown and context.last_used is not None:
            elapsed = context.now - context.last_used
            if elapsed < ability.cooldown:
                raise AbilityUnavailableError(
                    ability.ability_id,
                    f"on cooldown for another {ability.cooldown - elapsed:.1f}s")
        if ability.cost and ability.cost.exceeds(context.resources):
            raise AbilityUnavailableError(ability.ability_id, "insufficient resources")
    for condition in ability.conditions:
        actual = observed_value(condition, context)
        if not compare_values(actual, condition.value, condition.comparison):
            raise AbilityUnavailableError(
                ability.ability_id,
                f"condition {condition.type.value} {condition.comparison.value} "
                f"{condition.value} not met (was {actual})")


class Faction:
    """Server-side faction behaviour. Subclasses fill in the tables."""

    definition: FactionDefinition
    bonuses: dict[str, ActionBonus] = {}

    def __init__(self):
        self._handlers: dict[str, Callable[[AbilityContext], AbilityOutcome]] = self.ability_handlers()

    @property
    def faction_id(self) -> str:
        return self.definition.faction_id

    @property
    def name(self) -> str:
        return self.definition.name

    def ability_handlers(self) -> dict[str, Callable[[AbilityContext], AbilityOutcome]]:
        return {}

    def get_starting_resources(self) -> Resources:
        return self.definition.starting_resources.copy()

    def get_action_bonus(self, action_type: str) -> ActionBonus:
        return self.bonuses.get(action_type, NEUTRAL_BONUS)

    def can_perform_action(self, action) -> bool:
        """Generic actions are open to everyone; ability actions need the ability."""
        action_type = _action_type_of(action)
        if action_type in [a.value for a in GENERIC_ACTIONS]:
            return True
        ability = self.definition.get_ability(action_type)
        return ability is not None and ability.kind != AbilityKind.PASSIVE

    def get_victory_priorities(self) -> list[VictoryPriority]:
        return list(self.definition.victory_priorities)

    def get_state(self) -> dict:
        """Per-match state that must survive a snapshot. Stateless by default."""
        return {}

    def load_state(self, state: dict):
        pass

    def passive_abilities(self) -> list[str]:
        return [a.ability_id for a in self.definition.abilities if a.kind == AbilityKind.PASSIVE]

    def is_ability_available(self, ability_id: str, context: AbilityContext) -> bool:
        ability = self.definition.get_ability(ability_id)
        if ability is None:
            return False
        try:
            check_ability(ability, context)
        except AbilityUnavailableError:
            return False
        return True

    def process_ability(self, ability_id: str, context: AbilityContext) -> AbilityOutcome:
        """Run an ability through the shared gate and then its handler.

        Raises UnknownAbilityError or AbilityUnavailableError; never returns
        a partial outcome.
        """
        ability = self.definition.get_ability(ability_id)
        handler = self._handlers.get(ability_id)
        if ability is None or handler is None:
            raise UnknownAbilityError(ability_id)
        check_ability(ability, context)
        return handler(context)


def _action_type_of(action) -> str:
    if isinstance(action, (QueuedAction, PlayerAction)):
        return action.action_type
    return str(action)
