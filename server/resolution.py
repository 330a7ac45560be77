"""Simultaneous action resolution for the end of the action phase."""

import logging
from dataclasses import dataclass, field
from typing import Optional
from shared.constants import ActionType, ConsequenceType, ErrorKind, ErrorCode
from shared.models import (
    Match, Player, Territory, QueuedAction, ActionResult, ActionResolution,
    Consequence, GameEvent, Resources,
)
from server.config import GameConfig
from server.errors import AbilityError
from server.faction import Faction, AbilityContext
from server.territories import transfer_territory

logger = logging.getLogger(__name__)


@dataclass
class ResolutionReport:
    resolutions: list[ActionResolution] = field(default_factory=list)
    events: list[GameEvent] = field(default_factory=list)
    headlines: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "resolutions": [r.to_dict() for r in self.resolutions],
            "events": [e.to_dict() for e in self.events],
            "headlines": list(self.headlines),
        }


def order_actions(players: list[Player]) -> list[QueuedAction]:
    """Flatten all queues and order by (timestamp, submission sequence).

    sorted() is stable, so actions sharing both keys keep their flattened
    (player, queue) order.
    """
    flattened = [action for player in players for action in player.actions]
    return sorted(flattened, key=lambda a: (a.timestamp, a.sequence))


def resolve_actions(match: Match, factions: dict[str, Faction], config: GameConfig,
                    now: float) -> ResolutionReport:
    """Resolve every queued action of the turn and mutate `match` accordingly.

    Always drains every queue, even if individual actions fail or raise.
    The turn's events replace match.events.
    """
    report = ResolutionReport()
    paid: list[tuple[str, Resources]] = []

    for action in order_actions(match.players):
        try:
            resolution, cost = _resolve_action(match, action, factions, config, now)
        except Exception:
            logger.exception("Unexpected failure resolving action %s", action.action_id)
            resolution = ActionResolution(
                action=action,
                player_id=action.player_id,
                result=ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.INTERNAL_ERROR,
                                         "Action could not be resolved"),
                narrative=["The story was spiked by the editors."],
            )
            cost = None
        report.resolutions.append(resolution)
        if resolution.result.success and cost is not None:
            paid.append((action.player_id, cost))

    for index, resolution in enumerate(report.resolutions):
        report.events.append(_make_event(match, resolution, index))
        report.headlines.append(_make_headline(match, resolution))

    for player_id, cost in paid:
        player = match.get_player(player_id)
        if player is not None:
            player.resources.deduct(cost)

    for player in match.players:
        player.actions.clear()

    match.events = report.events
    succeeded = sum(1 for r in report.resolutions if r.result.success)
    logger.info("Match %s turn %d: resolved %d actions (%d succeeded)",
                match.match_id, match.turn, len(report.resolutions), succeeded)
    return report


def _resolve_action(match: Match, action: QueuedAction, factions: dict[str, Faction],
                    config: GameConfig, now: float) -> tuple[ActionResolution, Optional[Resources]]:
    """Resolve a single action. Returns (resolution, cost to charge if it succeeded)."""
    player = match.get_player(action.player_id)
    if player is None:
        return _failed(action, ErrorCode.UNKNOWN_PLAYER, "Player has left the match"), None
    faction = factions.get(player.faction)
    if faction is None:
        return _failed(action, ErrorCode.ACTION_NOT_PERMITTED,
                       f"No faction registered for {player.faction}"), None
    if not faction.can_perform_action(action):
        return _failed(action, ErrorCode.ACTION_NOT_PERMITTED,
                       f"{faction.name} cannot perform {action.action_type}"), None

    bonus = faction.get_action_bonus(action.action_type)
    magnitude = int(config.base_effect(action.action_type) * bonus.multiplier)
    target = match.get_territory(action.target)
    cost = action.cost.scaled(bonus.cost_scale)

    if action.action_type == ActionType.INVEST.value:
        resolution = _resolve_invest(match, action, player, target, magnitude, config)
    elif action.action_type == ActionType.INFLUENCE.value:
        resolution = _resolve_influence(match, action, player, target, magnitude, config)
    elif action.action_type == ActionType.INVADE.value:
        resolution = _resolve_invade(match, action, player, target, magnitude, config)
    else:
        resolution = _resolve_ability(match, action, player, faction, target, magnitude, config, now)

    resolution.effects.setdefault("magnitude", magnitude)
    resolution.effects.setdefault("multiplier", bonus.multiplier)
    if bonus.description and resolution.result.success:
        resolution.result.consequences.append(Consequence(
            type=ConsequenceType.FACTION_BONUS.value,
            description=bonus.description,
            effects={"multiplier": bonus.multiplier, "cost_scale": bonus.cost_scale},
        ))
    return resolution, cost


def _failed(action: QueuedAction, code: ErrorCode, error: str,
            kind: ErrorKind = ErrorKind.VALIDATION,
            consequences: list[Consequence] = None) -> ActionResolution:
    return ActionResolution(
        action=action,
        player_id=action.player_id,
        result=ActionResult.fail(kind, code, error, consequences),
        narrative=[error],
    )


def _succeeded(action: QueuedAction, narrative: list[str],
               consequences: list[Consequence], effects: dict = None) -> ActionResolution:
    return ActionResolution(
        action=action,
        player_id=action.player_id,
        result=ActionResult.ok(consequences),
        narrative=narrative,
        effects=effects or {},
    )


def _add_influence(match: Match, player: Player, target: Territory, amount: int,
                   config: GameConfig, consequences: list[Consequence]) -> bool:
    """Add influence and claim the territory if it is neutral and past the threshold."""
    if amount <= 0:
        return False
    target.influence[player.player_id] = target.influence_of(player.player_id) + amount
    if target.owner is None and target.influence[player.player_id] >= config.influence_capture_threshold:
        transfer_territory(target, player, match.players)
        consequences.append(Consequence(
            type=ConsequenceType.TERRITORY_CHANGE.value,
            description=f"{player.name} wins over {target.name}",
            effects={"territory": target.territory_id, "owner": player.player_id},
        ))
        return True
    return False


def _resolve_invest(match, action, player, target, magnitude, config) -> ActionResolution:
    if target is None:
        return _failed(action, ErrorCode.UNKNOWN_TERRITORY, f"Unknown territory {action.target}")
    if target.owner != player.player_id:
        return _failed(action, ErrorCode.ACTION_NOT_PERMITTED,
                       f"{player.name} can only invest in their own territories")
    before = target.resources.wealth
    target.resources.wealth = min(config.max_generation_per_territory, before + magnitude)
    gained = target.resources.wealth - before
    return _succeeded(
        action,
        [f"{player.name} pours money into {target.name}, raising its yield by {gained}."],
        [Consequence(
            type=ConsequenceType.RESOURCE_CHANGE.value,
            description=f"{target.name} wealth generation +{gained}",
            effects={"territory": target.territory_id, "wealth_generation": gained},
        )],
    )


def _resolve_influence(match, action, player, target, magnitude, config) -> ActionResolution:
    if target is None:
        return _failed(action, ErrorCode.UNKNOWN_TERRITORY, f"Unknown territory {action.target}")
    consequences = [Consequence(
        type=ConsequenceType.NARRATIVE_EVENT.value,
        description=f"{player.name} gains {magnitude} influence in {target.name}",
        effects={"territory": target.territory_id, "influence": magnitude},
    )]
    claimed = _add_influence(match, player, target, magnitude, config, consequences)
    narrative = [f"{player.name} floods {target.name} with talking points."]
    if claimed:
        narrative.append(f"{target.name} now belongs to {player.name}.")
    return _succeeded(action, narrative, consequences)


def _resolve_invade(match, action, player, target, magnitude, config) -> ActionResolution:
    if target is None:
        return _failed(action, ErrorCode.UNKNOWN_TERRITORY, f"Unknown territory {action.target}")
    if target.owner == player.player_id:
        return _failed(action, ErrorCode.ACTION_NOT_PERMITTED,
                       f"{player.name} already controls {target.name}")
    defender = match.get_player(target.owner) if target.owner else None
    attack = magnitude + target.influence_of(player.player_id)
    defence = 0
    if defender is not None:
        defence = target.influence_of(defender.player_id) + config.invasion_defense_bonus
    effects = {"attack": attack, "defence": defence}

    if attack <= defence:
        defender_name = defender.name if defender else "the locals"
        return _succeeded(
            action,
            [f"{player.name}'s invasion of {target.name} is repelled by {defender_name}."],
            [Consequence(
                type=ConsequenceType.NARRATIVE_EVENT.value,
                description=f"Invasion of {target.name} repelled",
                effects=effects,
                target_player=defender.player_id if defender else None,
            )],
            effects,
        )

    target.influence[player.player_id] = target.influence_of(player.player_id) + magnitude
    if defender is not None:
        target.influence[defender.player_id] = target.influence_of(defender.player_id) // 2
    transfer_territory(target, player, match.players)
    return _succeeded(
        action,
        [f"{player.name} storms {target.name}!"],
        [Consequence(
            type=ConsequenceType.TERRITORY_CHANGE.value,
            description=f"{target.name} falls to {player.name}",
            effects=dict(effects, territory=target.territory_id, owner=player.player_id),
            target_player=defender.player_id if defender else None,
        )],
        effects,
    )


def _resolve_ability(match, action, player, faction, target, magnitude, config, now) -> ActionResolution:
    if action.target and target is None:
        return _failed(action, ErrorCode.UNKNOWN_TERRITORY, f"Unknown territory {action.target}")
    target_owner = None
    if target is not None and target.owner is not None:
        target_owner = match.get_player(target.owner)
    context = AbilityContext(
        player_id=player.player_id,
        player_name=player.name,
        resources=player.resources.copy(),
        territory_ids=list(player.territories),
        turn=match.turn,
        now=now,
        last_used=player.ability_last_used.get(action.action_type),
        actions_this_turn=len(player.actions),
        base_magnitude=magnitude,
        target=target,
        target_owner=target_owner,
    )
    try:
        outcome = faction.process_ability(action.action_type, context)
    except AbilityError as e:
        logger.debug("Ability %s for %s unavailable: %s", e.ability_id, player.player_id, e.reason)
        return _failed(
            action, ErrorCode.ABILITY_UNAVAILABLE, f"{action.action_type} unavailable: {e.reason}",
            kind=ErrorKind.ABILITY_UNAVAILABLE,
            consequences=[Consequence(
                type=ConsequenceType.ABILITY_UNAVAILABLE.value,
                description=f"{player.name}'s {action.action_type} fizzles ({e.reason})",
                effects={},
            )],
        )

    player.ability_last_used[action.action_type] = now
    consequences = list(outcome.consequences)
    player.resources.add(outcome.resource_delta)
    if target_owner is not None and target_owner.player_id != player.player_id:
        target_owner.resources.add(outcome.target_resource_delta)
        if target is not None and outcome.target_influence_delta:
            owner_id = target_owner.player_id
            target.influence[owner_id] = max(0, target.influence_of(owner_id) + outcome.target_influence_delta)
    if target is not None:
        _add_influence(match, player, target, outcome.influence_delta, config, consequences)
        if outcome.claims_target and target.owner != player.player_id:
            transfer_territory(target, player, match.players)
            consequences.append(Consequence(
                type=ConsequenceType.TERRITORY_CHANGE.value,
                description=f"{target.name} changes hands to {player.name}",
                effects={"territory": target.territory_id, "owner": player.player_id},
                target_player=target_owner.player_id if target_owner else None,
            ))

    narrative = [outcome.narrative] if outcome.narrative else [
        f"{player.name} uses {action.action_type}."]
    return _succeeded(action, narrative, consequences, dict(outcome.effects))


def _make_event(match: Match, resolution: ActionResolution, index: int) -> GameEvent:
    action_type = resolution.action.action_type
    if resolution.result.success:
        description = " ".join(resolution.narrative)
    else:
        description = resolution.result.error or " ".join(resolution.narrative)
    return GameEvent(
        event_id=f"event-{match.turn}-{index}",
        category="action-consequence" if resolution.result.success else "action-failed",
        title=f"Action Result: {action_type}",
        description=description,
        turn=match.turn,
        consequences=list(resolution.result.consequences),
    )


def _make_headline(match: Match, resolution: ActionResolution) -> str:
    player = match.get_player(resolution.player_id)
    name = player.name if player else "Mystery Player"
    action_type = resolution.action.action_type.upper()
    if resolution.result.success:
        return f"BREAKING: {name} Causes Chaos with {action_type}!"
    return f"DEVELOPING: {name}'s {action_type} Falls Flat"
