"""Default territory set and starting-territory assignment."""

import random
from typing import Optional
from shared.constants import TERRITORY_NAMES
from shared.models import Territory, Resources, Position, Player


def generate_territories(rng: Optional[random.Random] = None,
                         names: list[str] = None) -> list[Territory]:
    """Build the default world map on an 8-wide grid with random yields."""
    rng = rng or random.Random()
    names = names or TERRITORY_NAMES
    territories = []
    for index, name in enumerate(names):
        col, row = index % 8, index // 8
        territories.append(Territory(
            territory_id=f"territory-{index + 1}",
            name=name,
            resources=Resources(
                wealth=10 + rng.randrange(20),
                attention=5 + rng.randrange(15),
                technology=3 + rng.randrange(12),
            ),
            position=Position(
                x=col * 12.5,
                y=round(row * 33.33, 2),
                longitude=-180 + col * 45,
                latitude=-60 + row * 60,
            ),
        ))
    return territories


def assign_starting_territories(players: list[Player], territories: list[Territory],
                                per_player: int) -> dict[str, list[str]]:
    """Hand out neutral territories in contiguous blocks, in player order.

    Each player gets min(per_player, neutral // players) territories.
    Returns player_id -> list of territory ids assigned.
    """
    neutral = [t for t in territories if t.owner is None]
    if not players:
        return {}
    count = min(per_player, len(neutral) // len(players))
    assigned: dict[str, list[str]] = {}
    for index, player in enumerate(players):
        block = neutral[index * count:(index + 1) * count]
        for territory in block:
            territory.owner = player.player_id
            player.add_territory(territory.territory_id)
        assigned[player.player_id] = [t.territory_id for t in block]
    return assigned


def release_player_territories(player_id: str, territories: list[Territory]) -> list[str]:
    """Make every territory of player_id neutral and drop their influence everywhere."""
    released = []
    for territory in territories:
        if territory.owner == player_id:
            territory.owner = None
            territory.influence = {}
            released.append(territory.territory_id)
        else:
            territory.influence.pop(player_id, None)
    return released


def transfer_territory(territory: Territory, new_owner: Player, players: list[Player]):
    """Move ownership of territory to new_owner, keeping Player.territories in sync."""
    for player in players:
        if player.player_id == territory.owner:
            player.remove_territory(territory.territory_id)
    territory.owner = new_owner.player_id
    new_owner.add_territory(territory.territory_id)
