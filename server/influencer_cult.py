"""The Influencer Cult: viral marketing and social manipulation."""

from shared.constants import (
    AbilityKind, ActionType, ConsequenceType, VictoryType, FACTION_MULTIPLIERS,
)
from shared.models import Resources, Consequence, QueuedAction, PlayerAction
from server.errors import AbilityUnavailableError
from server.faction import (
    Faction, FactionDefinition, AbilityDefinition, ActionBonus, VictoryPriority,
    AbilityContext, AbilityOutcome,
)

VIRAL_THRESHOLD = 50  # attention needed for the stronger viral multiplier
MAX_TRENDING_TOPICS = 5

PRIVILEGED_ACTIONS = [
    ActionType.INFLUENCE.value,
    ActionType.GO_VIRAL.value,
    ActionType.CANCEL_CAMPAIGN.value,
    ActionType.TREND_HIJACK.value,
]

_multipliers = FACTION_MULTIPLIERS["influencer-cult"]

DEFINITION = FactionDefinition(
    faction_id="influencer-cult",
    name="The Influencer Cult",
    description=("Masters of viral marketing and social manipulation. They weaponize "
                 "attention and trending topics to convert territories through pure charisma."),
    satirical_target="Social media influencers and viral marketing culture",
    color="#FF6B9D",
    starting_resources=Resources(wealth=80, attention=100, technology=20),
    victory_priorities=(
        VictoryPriority(VictoryType.ATTENTION_MONOPOLY, "Monopolize global attention"),
        VictoryPriority(VictoryType.CULTURAL_HEGEMONY, "Achieve cultural dominance"),
        VictoryPriority(VictoryType.TERRITORIAL_DOMINATION, "Control majority of territories"),
    ),
    abilities=(
        AbilityDefinition(
            ability_id=ActionType.GO_VIRAL.value,
            name="Go Viral",
            description="Amplify influence actions with viral spreading mechanics",
            kind=AbilityKind.ACTIVE,
            cooldown=2,
            cost=Resources(wealth=5, attention=40, technology=0),
        ),
        AbilityDefinition(
            ability_id=ActionType.TREND_HIJACK.value,
            name="Trend Hijack",
            description="Steal trending topics from other players",
            kind=AbilityKind.REACTION,
            cooldown=3,
            cost=Resources(wealth=15, attention=35, technology=20),
        ),
        AbilityDefinition(
            ability_id=ActionType.CANCEL_CAMPAIGN.value,
            name="Cancel Campaign",
            description="Reduce opponent attention through coordinated negative attention",
            kind=AbilityKind.ACTIVE,
            cooldown=2,
            cost=Resources(wealth=0, attention=30, technology=15),
        ),
        AbilityDefinition(
            ability_id="influencer-network",
            name="Influencer Network",
            description="Passive attention generation bonus from controlled territories",
            kind=AbilityKind.PASSIVE,
        ),
    ),
)


class InfluencerCult(Faction):
    definition = DEFINITION
    bonuses = {
        ActionType.INFLUENCE.value: ActionBonus(
            _multipliers["influence_bonus"], 0.8, "Viral influence spreading"),
        ActionType.GO_VIRAL.value: ActionBonus(2.0, 0.9, "Explosive viral growth"),
        ActionType.CANCEL_CAMPAIGN.value: ActionBonus(1.3, 0.7, "Expert at coordinated cancellation"),
    }

    def __init__(self):
        super().__init__()
        self.trending_topics: list[str] = []

    def ability_handlers(self):
        return {
            ActionType.GO_VIRAL.value: self._go_viral,
            ActionType.TREND_HIJACK.value: self._trend_hijack,
            ActionType.CANCEL_CAMPAIGN.value: self._cancel_campaign,
            "influencer-network": self._influencer_network,
        }

    def can_perform_action(self, action) -> bool:
        if isinstance(action, (QueuedAction, PlayerAction)):
            action_type, cost = action.action_type, action.cost
        else:
            action_type, cost = str(action), None
        if action_type in PRIVILEGED_ACTIONS:
            return True
        if not super().can_perform_action(action_type):
            return False
        # Everything else has to be paid for mostly in cash, not clout.
        if cost is None:
            return True
        return cost.attention <= cost.wealth * 2

    def get_state(self) -> dict:
        return {"trending_topics": list(self.trending_topics)}

    def load_state(self, state: dict):
        self.trending_topics = list(state.get("trending_topics", []))[-MAX_TRENDING_TOPICS:]

    def add_trending_topic(self, topic: str):
        if topic and topic not in self.trending_topics:
            self.trending_topics.append(topic)
            if len(self.trending_topics) > MAX_TRENDING_TOPICS:
                self.trending_topics.pop(0)

    def can_go_viral(self, attention: int) -> bool:
        return attention >= VIRAL_THRESHOLD

    def viral_spread(self, attention: int) -> int:
        if attention < VIRAL_THRESHOLD:
            return 0
        return min(4, attention // 25)

    def _go_viral(self, ctx: AbilityContext) -> AbilityOutcome:
        attention = ctx.resources.attention
        viral_multiplier = 2.5 if self.can_go_viral(attention) else 1.8
        attention_gain = int(ctx.base_magnitude * 0.3)
        if ctx.target is not None:
            self.add_trending_topic(ctx.target.name)
        narrative = f"{ctx.player_name}'s content goes viral, spreading influence like wildfire!"
        return AbilityOutcome(
            ability_id=ActionType.GO_VIRAL.value,
            narrative=narrative,
            resource_delta={"attention": attention_gain},
            influence_delta=int(ctx.base_magnitude * viral_multiplier),
            consequences=[Consequence(
                type=ConsequenceType.NARRATIVE_EVENT.value,
                description=narrative,
                effects={"attention": attention_gain},
            )],
            effects={
                "influence_multiplier": viral_multiplier,
                "spread_to_adjacent": True,
                "attention_generated": int(ctx.base_magnitude * 0.5),
                "viral_reach": self.viral_spread(attention),
            },
        )

    def _trend_hijack(self, ctx: AbilityContext) -> AbilityOutcome:
        victim = ctx.target_owner
        if victim is None or victim.player_id == ctx.player_id:
            raise AbilityUnavailableError(ActionType.TREND_HIJACK.value, "no rival owns the target")
        stolen = int(victim.resources.attention * 0.15)
        narrative = (f"{ctx.player_name} hijacks {victim.name}'s trending topics "
                     f"with superior meme game!")
        return AbilityOutcome(
            ability_id=ActionType.TREND_HIJACK.value,
            narrative=narrative,
            resource_delta={"attention": stolen},
            target_resource_delta={"attention": -stolen},
            consequences=[Consequence(
                type=ConsequenceType.RESOURCE_CHANGE.value,
                description=narrative,
                effects={"attention": stolen},
                target_player=victim.player_id,
            )],
            effects={
                "topics_stolen": self.trending_topics[:2],
                "attention_stolen": stolen,
                "influence_bonus": 1.4,
            },
        )

    def _cancel_campaign(self, ctx: AbilityContext) -> AbilityOutcome:
        victim = ctx.target_owner
        if victim is None or victim.player_id == ctx.player_id:
            raise AbilityUnavailableError(ActionType.CANCEL_CAMPAIGN.value, "no rival owns the target")
        reduction = int(victim.resources.attention * 0.25)
        influence_lost = int(ctx.target.influence_of(victim.player_id) * 0.15) if ctx.target else 0
        narrative = f"{ctx.player_name} orchestrates a devastating cancel campaign against {victim.name}!"
        return AbilityOutcome(
            ability_id=ActionType.CANCEL_CAMPAIGN.value,
            narrative=narrative,
            target_resource_delta={"attention": -reduction},
            target_influence_delta=-influence_lost,
            consequences=[Consequence(
                type=ConsequenceType.NARRATIVE_EVENT.value,
                description=narrative,
                effects={"attention": -reduction},
                target_player=victim.player_id,
            )],
            effects={
                "attention_reduced": reduction,
                "influence_reduced": influence_lost,
                "public_opinion_shift": -2,
            },
        )

    def _influencer_network(self, ctx: AbilityContext) -> AbilityOutcome:
        controlled = len(ctx.territory_ids)
        bonus = int(controlled * 3 * _multipliers["attention_generation"])
        return AbilityOutcome(
            ability_id="influencer-network",
            resource_delta={"attention": bonus},
            effects={
                "passive_attention_bonus": bonus,
                "viral_potential": min(100, controlled * 10),
            },
        )
