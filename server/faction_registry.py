"""Faction lookup by faction id."""

from server.faction import Faction
from server.influencer_cult import InfluencerCult
from server.rogue_ai import RogueAI
from server.hyper_capitalist import HyperCapitalist

FACTIONS: dict[str, type[Faction]] = {
    InfluencerCult.definition.faction_id: InfluencerCult,
    RogueAI.definition.faction_id: RogueAI,
    HyperCapitalist.definition.faction_id: HyperCapitalist,
}


def faction_ids() -> list[str]:
    return list(FACTIONS)


def create_faction(faction_id: str) -> Faction:
    """Instantiate the faction for `faction_id`. Raises KeyError if unknown."""
    return FACTIONS[faction_id]()
