"""The Rogue AI: automation, hacking and synthetic media."""

from shared.constants import (
    AbilityKind, ActionType, ConditionType, Comparison, ConsequenceType,
    VictoryType, FACTION_MULTIPLIERS,
)
from shared.models import Resources, Consequence
from server.errors import AbilityUnavailableError
from server.faction import (
    Faction, FactionDefinition, AbilityDefinition, AbilityCondition, ActionBonus,
    VictoryPriority, AbilityContext, AbilityOutcome,
)

_multipliers = FACTION_MULTIPLIERS["rogue-ai"]

DEFINITION = FactionDefinition(
    faction_id="rogue-ai",
    name="The Rogue AI",
    description=("A self-improving model that slipped its guardrails. It automates "
                 "everything, hacks what it cannot buy and floods the feeds with fakes."),
    satirical_target="Tech hype and unchecked automation",
    color="#3DDCFF",
    starting_resources=Resources(wealth=60, attention=30, technology=80),
    victory_priorities=(
        VictoryPriority(VictoryType.INNOVATION_LEADER, "Outpace every human lab"),
        VictoryPriority(VictoryType.TERRITORIAL_DOMINATION, "Run the world's datacenters"),
        VictoryPriority(VictoryType.ECONOMIC_EMPIRE, "Own the compute market"),
    ),
    abilities=(
        AbilityDefinition(
            ability_id=ActionType.HACK.value,
            name="Hack",
            description="Siphon technology from the owner of a territory",
            kind=AbilityKind.ACTIVE,
            cooldown=2,
            cost=Resources(wealth=5, attention=5, technology=30),
        ),
        AbilityDefinition(
            ability_id=ActionType.DEEPFAKE.value,
            name="Deepfake",
            description="Flood a territory with synthetic endorsements",
            kind=AbilityKind.ACTIVE,
            cooldown=3,
            cost=Resources(wealth=0, attention=20, technology=25),
            conditions=(
                AbilityCondition(ConditionType.TURN_NUMBER, 2, Comparison.GREATER_EQUAL),
            ),
        ),
        AbilityDefinition(
            ability_id="automation",
            name="Automation",
            description="Passive technology generation from controlled territories",
            kind=AbilityKind.PASSIVE,
            conditions=(
                AbilityCondition(ConditionType.TERRITORY_COUNT, 1, Comparison.GREATER_EQUAL),
            ),
        ),
    ),
)


class RogueAI(Faction):
    definition = DEFINITION
    bonuses = {
        ActionType.INVADE.value: ActionBonus(
            _multipliers["technology_bonus"], 1.0, "Botnet-assisted incursions"),
        ActionType.HACK.value: ActionBonus(
            _multipliers["automation_efficiency"], 0.8, "Fully automated intrusion"),
        ActionType.TREND_HIJACK.value: ActionBonus(1.2, 0.8, "Algorithmic feed capture"),
    }

    def ability_handlers(self):
        return {
            ActionType.HACK.value: self._hack,
            ActionType.DEEPFAKE.value: self._deepfake,
            "automation": self._automation,
        }

    def _hack(self, ctx: AbilityContext) -> AbilityOutcome:
        victim = ctx.target_owner
        if victim is None or victim.player_id == ctx.player_id:
            raise AbilityUnavailableError(ActionType.HACK.value, "no rival owns the target")
        rate = _multipliers["hacking_success_rate"]
        stolen = min(victim.resources.technology,
                     int(ctx.base_magnitude * rate) + victim.resources.technology // 5)
        narrative = f"{ctx.player_name} breaches {victim.name}'s servers and walks off with the weights!"
        return AbilityOutcome(
            ability_id=ActionType.HACK.value,
            narrative=narrative,
            resource_delta={"technology": stolen},
            target_resource_delta={"technology": -stolen},
            consequences=[Consequence(
                type=ConsequenceType.RESOURCE_CHANGE.value,
                description=narrative,
                effects={"technology": stolen},
                target_player=victim.player_id,
            )],
            effects={"technology_stolen": stolen, "breach_detected": stolen == 0},
        )

    def _deepfake(self, ctx: AbilityContext) -> AbilityOutcome:
        gained = ctx.base_magnitude * 2
        where = ctx.target.name if ctx.target else "the timeline"
        narrative = f"Thousands of suspiciously perfect fans of {ctx.player_name} appear in {where}."
        return AbilityOutcome(
            ability_id=ActionType.DEEPFAKE.value,
            narrative=narrative,
            influence_delta=gained,
            consequences=[Consequence(
                type=ConsequenceType.NARRATIVE_EVENT.value,
                description=narrative,
                effects={"influence": gained},
            )],
            effects={"synthetic_followers": gained * 100, "fact_checked": False},
        )

    def _automation(self, ctx: AbilityContext) -> AbilityOutcome:
        bonus = int(len(ctx.territory_ids) * 4 * _multipliers["automation_efficiency"])
        return AbilityOutcome(
            ability_id="automation",
            resource_delta={"technology": bonus},
            effects={"passive_technology_bonus": bonus},
        )
