"""The Hyper-Capitalists: everything has a price, including you."""

from shared.constants import (
    AbilityKind, ActionType, ConditionType, Comparison, ConsequenceType,
    VictoryType, FACTION_MULTIPLIERS,
)
from shared.models import Resources, Consequence
from server.faction import (
    Faction, FactionDefinition, AbilityDefinition, AbilityCondition, ActionBonus,
    VictoryPriority, AbilityContext, AbilityOutcome,
)

_multipliers = FACTION_MULTIPLIERS["hyper-capitalist"]

TAKEOVER_WEALTH_FLOOR = 150

DEFINITION = FactionDefinition(
    faction_id="hyper-capitalist",
    name="The Hyper-Capitalists",
    description=("A conglomerate of conglomerates. They buy territories outright, "
                 "short their rivals and call it innovation."),
    satirical_target="Late-stage capitalism and corporate consolidation",
    color="#F5C518",
    starting_resources=Resources(wealth=150, attention=40, technology=30),
    victory_priorities=(
        VictoryPriority(VictoryType.ECONOMIC_EMPIRE, "Own everything worth owning"),
        VictoryPriority(VictoryType.TERRITORIAL_DOMINATION, "Acquire the map"),
        VictoryPriority(VictoryType.INNOVATION_LEADER, "Buy every startup"),
    ),
    abilities=(
        AbilityDefinition(
            ability_id=ActionType.HOSTILE_TAKEOVER.value,
            name="Hostile Takeover",
            description="Buy a territory out from under its owner",
            kind=AbilityKind.ACTIVE,
            cooldown=3,
            cost=Resources(wealth=80, attention=10, technology=0),
            conditions=(
                AbilityCondition(ConditionType.RESOURCE_THRESHOLD, TAKEOVER_WEALTH_FLOOR,
                                 Comparison.GREATER_EQUAL, resource="wealth"),
            ),
        ),
        AbilityDefinition(
            ability_id="market-manipulation",
            name="Market Manipulation",
            description="Passive wealth generation from controlled territories",
            kind=AbilityKind.PASSIVE,
        ),
    ),
)


class HyperCapitalist(Faction):
    definition = DEFINITION
    bonuses = {
        ActionType.INVEST.value: ActionBonus(
            _multipliers["investment_returns"], 0.9, "Compound returns"),
        ActionType.HOSTILE_TAKEOVER.value: ActionBonus(
            _multipliers["market_manipulation"], 1.0, "Leveraged buyout"),
        ActionType.INFLUENCE.value: ActionBonus(1.0, 1.2, "Nobody trusts a billionaire"),
    }

    def ability_handlers(self):
        return {
            ActionType.HOSTILE_TAKEOVER.value: self._hostile_takeover,
            "market-manipulation": self._market_manipulation,
        }

    def _hostile_takeover(self, ctx: AbilityContext) -> AbilityOutcome:
        target = ctx.target
        owner = ctx.target_owner
        defence = target.influence_of(owner.player_id) if (target and owner) else 0
        offer = ctx.base_magnitude + ctx.resources.wealth // 20
        succeeded = target is not None and offer > defence
        where = target.name if target else "nowhere"
        if succeeded:
            narrative = f"{ctx.player_name} completes a hostile takeover of {where}!"
        else:
            narrative = f"{ctx.player_name}'s takeover bid for {where} is rejected by the board."
        return AbilityOutcome(
            ability_id=ActionType.HOSTILE_TAKEOVER.value,
            narrative=narrative,
            influence_delta=offer if succeeded else 0,
            claims_target=succeeded,
            consequences=[Consequence(
                type=ConsequenceType.TERRITORY_CHANGE.value if succeeded
                else ConsequenceType.NARRATIVE_EVENT.value,
                description=narrative,
                effects={"offer": offer, "defence": defence},
                target_player=owner.player_id if owner else None,
            )],
            effects={"offer": offer, "golden_parachute": succeeded and owner is not None},
        )

    def _market_manipulation(self, ctx: AbilityContext) -> AbilityOutcome:
        bonus = int(len(ctx.territory_ids) * 5 * _multipliers["wealth_generation"])
        return AbilityOutcome(
            ability_id="market-manipulation",
            resource_delta={"wealth": bonus},
            effects={"passive_wealth_bonus": bonus},
        )
