"""Victory checks, run once per completed turn cycle."""

from typing import Optional
from shared.constants import VictoryType
from shared.models import Match, Player
from server.config import GameConfig
from server.faction import Faction


def update_attention_streaks(match: Match):
    """The single player with the most attention extends their trending streak.

    Everyone else (and everyone, on a tie) drops back to zero.
    """
    if not match.players:
        return
    top = max(p.resources.attention for p in match.players)
    leaders = [p for p in match.players if p.resources.attention == top]
    leader_id = leaders[0].player_id if len(leaders) == 1 and top > 0 else None
    match.attention_streaks = {
        p.player_id: (match.attention_streaks.get(p.player_id, 0) + 1
                      if p.player_id == leader_id else 0)
        for p in match.players
    }


def leading_territory_count(match: Match, player_id: str) -> int:
    """Territories where player_id holds strictly the highest positive influence."""
    count = 0
    for territory in match.territories:
        mine = territory.influence_of(player_id)
        if mine <= 0:
            continue
        if all(score < mine for pid, score in territory.influence.items() if pid != player_id):
            count += 1
    return count


def _meets(victory_type: str, match: Match, player: Player, config: GameConfig) -> bool:
    total = len(match.territories)
    if victory_type == VictoryType.TERRITORIAL_DOMINATION.value:
        owned = len(match.territories_owned_by(player.player_id))
        return total > 0 and owned / total >= config.territorial_threshold
    elif victory_type == VictoryType.ECONOMIC_EMPIRE.value:
        return player.resources.wealth >= config.economic_threshold
    elif victory_type == VictoryType.INNOVATION_LEADER.value:
        return player.resources.technology >= config.innovation_threshold
    elif victory_type == VictoryType.CULTURAL_HEGEMONY.value:
        if total == 0:
            return False
        return leading_territory_count(match, player.player_id) / total >= config.cultural_threshold
    elif victory_type == VictoryType.ATTENTION_MONOPOLY.value:
        return match.attention_streaks.get(player.player_id, 0) >= config.attention_streak_turns
    return False


def check_order(faction: Optional[Faction], enabled: list[str]) -> list[str]:
    """Enabled victory types, in the faction's priority order first."""
    ordered = []
    if faction is not None:
        for priority in faction.get_victory_priorities():
            if priority.type.value in enabled and priority.type.value not in ordered:
                ordered.append(priority.type.value)
    for victory_type in enabled:
        if victory_type not in ordered:
            ordered.append(victory_type)
    return ordered


def check_victory(match: Match, factions: dict[str, Faction],
                  config: GameConfig) -> tuple[Optional[str], Optional[str]]:
    """Return (winner_id, victory_type) or (None, None).

    Players are checked in match order; the first one meeting any enabled
    condition wins.
    """
    update_attention_streaks(match)
    for player in match.players:
        faction = factions.get(player.faction)
        for victory_type in check_order(faction, config.victory_types):
            if _meets(victory_type, match, player, config):
                return player.player_id, victory_type
    return None, None


def turn_limit_leader(match: Match) -> Optional[str]:
    """Player owning the most territories; ties go to the earlier player."""
    best_id, best_count = None, -1
    for player in match.players:
        owned = len(match.territories_owned_by(player.player_id))
        if owned > best_count:
            best_id, best_count = player.player_id, owned
    return best_id
