"""Serializable data classes for game entities.

Used by the engine, the network layer and match snapshots.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional
from shared.constants import (
    Phase, ErrorKind, MATCH_VERSION, DEFAULT_GAME_MODE, MAX_PLAYERS,
    ACTION_PHASE_DURATION,
)

RESOURCE_KEYS = ("wealth", "attention", "technology")


@dataclass
class Resources:
    wealth: int = 0
    attention: int = 0
    technology: int = 0

    def get(self, key: str) -> int:
        return getattr(self, key)

    def copy(self) -> Resources:
        return Resources(self.wealth, self.attention, self.technology)

    def exceeds(self, available: Resources) -> bool:
        """True if any single axis of self is larger than the same axis of available."""
        return any(self.get(k) > available.get(k) for k in RESOURCE_KEYS)

    def add(self, delta: dict[str, int]):
        """Apply a signed per-resource delta, clamping every axis at zero."""
        for key in RESOURCE_KEYS:
            value = getattr(self, key) + int(delta.get(key, 0))
            setattr(self, key, max(0, value))

    def deduct(self, cost: Resources):
        self.add({k: -cost.get(k) for k in RESOURCE_KEYS})

    def scaled(self, factor: float) -> Resources:
        return Resources(
            wealth=int(self.wealth * factor),
            attention=int(self.attention * factor),
            technology=int(self.technology * factor),
        )

    def to_dict(self) -> dict:
        return {"wealth": self.wealth, "attention": self.attention, "technology": self.technology}

    @staticmethod
    def from_dict(d: Optional[dict]) -> Resources:
        d = d or {}
        return Resources(
            wealth=int(d.get("wealth", 0)),
            attention=int(d.get("attention", 0)),
            technology=int(d.get("technology", 0)),
        )


@dataclass
class Position:
    x: float = 0.0
    y: float = 0.0
    longitude: float = 0.0
    latitude: float = 0.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "longitude": self.longitude, "latitude": self.latitude}

    @staticmethod
    def from_dict(d: dict) -> Position:
        return Position(
            x=d.get("x", 0.0),
            y=d.get("y", 0.0),
            longitude=d.get("longitude", 0.0),
            latitude=d.get("latitude", 0.0),
        )


@dataclass
class Territory:
    territory_id: str
    name: str
    owner: Optional[str] = None
    resources: Resources = field(default_factory=Resources)
    influence: dict[str, int] = field(default_factory=dict)
    special_properties: list[str] = field(default_factory=list)
    position: Position = field(default_factory=Position)

    def influence_of(self, player_id: Optional[str]) -> int:
        if player_id is None:
            return 0
        return self.influence.get(player_id, 0)

    def to_dict(self) -> dict:
        return {
            "id": self.territory_id,
            "name": self.name,
            "owner": self.owner,
            "resources": self.resources.to_dict(),
            "influence": dict(self.influence),
            "special_properties": list(self.special_properties),
            "position": self.position.to_dict(),
        }

    @staticmethod
    def from_dict(d: dict) -> Territory:
        return Territory(
            territory_id=d["id"],
            name=d["name"],
            owner=d.get("owner"),
            resources=Resources.from_dict(d.get("resources")),
            influence=dict(d.get("influence", {})),
            special_properties=list(d.get("special_properties", [])),
            position=Position.from_dict(d.get("position", {})),
        )


@dataclass
class PlayerAction:
    """An action as submitted by a player, before validation."""
    action_type: str
    target: str
    cost: Optional[Resources] = None

    def to_dict(self) -> dict:
        return {
            "type": self.action_type,
            "target": self.target,
            "cost": self.cost.to_dict() if self.cost else None,
        }

    @staticmethod
    def from_dict(d: dict) -> PlayerAction:
        cost = d.get("cost")
        return PlayerAction(
            action_type=d["type"],
            target=d.get("target", ""),
            cost=Resources.from_dict(cost) if cost else None,
        )


@dataclass
class QueuedAction:
    action_id: str
    action_type: str
    target: str
    cost: Resources
    timestamp: float
    player_id: str
    sequence: int = 0

    def to_dict(self) -> dict:
        return {
            "id": self.action_id,
            "type": self.action_type,
            "target": self.target,
            "cost": self.cost.to_dict(),
            "timestamp": self.timestamp,
            "player_id": self.player_id,
            "sequence": self.sequence,
        }

    @staticmethod
    def from_dict(d: dict) -> QueuedAction:
        return QueuedAction(
            action_id=d["id"],
            action_type=d["type"],
            target=d.get("target", ""),
            cost=Resources.from_dict(d.get("cost")),
            timestamp=d["timestamp"],
            player_id=d["player_id"],
            sequence=d.get("sequence", 0),
        )


@dataclass
class Player:
    player_id: str
    name: str
    faction: str
    resources: Resources = field(default_factory=Resources)
    territories: list[str] = field(default_factory=list)
    actions: list[QueuedAction] = field(default_factory=list)
    connected: bool = True
    last_action_time: float = 0.0
    ability_last_used: dict[str, float] = field(default_factory=dict)

    def add_territory(self, territory_id: str):
        if territory_id not in self.territories:
            self.territories.append(territory_id)

    def remove_territory(self, territory_id: str):
        if territory_id in self.territories:
            self.territories.remove(territory_id)

    def to_dict(self) -> dict:
        return {
            "id": self.player_id,
            "name": self.name,
            "faction": self.faction,
            "resources": self.resources.to_dict(),
            "territories": list(self.territories),
            "actions": [a.to_dict() for a in self.actions],
            "connected": self.connected,
            "last_action_time": self.last_action_time,
            "ability_last_used": dict(self.ability_last_used),
        }

    @staticmethod
    def from_dict(d: dict) -> Player:
        return Player(
            player_id=d["id"],
            name=d["name"],
            faction=d["faction"],
            resources=Resources.from_dict(d.get("resources")),
            territories=list(d.get("territories", [])),
            actions=[QueuedAction.from_dict(a) for a in d.get("actions", [])],
            connected=d.get("connected", True),
            last_action_time=d.get("last_action_time", 0.0),
            ability_last_used=dict(d.get("ability_last_used", {})),
        )


@dataclass
class Consequence:
    type: str
    description: str
    effects: dict[str, Any] = field(default_factory=dict)
    target_player: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "effects": self.effects,
            "target_player": self.target_player,
        }

    @staticmethod
    def from_dict(d: dict) -> Consequence:
        return Consequence(
            type=d["type"],
            description=d.get("description", ""),
            effects=d.get("effects", {}),
            target_player=d.get("target_player"),
        )


@dataclass
class GameEvent:
    event_id: str
    category: str
    title: str
    description: str
    turn: int
    consequences: list[Consequence] = field(default_factory=list)
    expires_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "id": self.event_id,
            "category": self.category,
            "title": self.title,
            "description": self.description,
            "turn": self.turn,
            "consequences": [c.to_dict() for c in self.consequences],
            "expires_at": self.expires_at,
        }

    @staticmethod
    def from_dict(d: dict) -> GameEvent:
        return GameEvent(
            event_id=d["id"],
            category=d["category"],
            title=d["title"],
            description=d.get("description", ""),
            turn=d["turn"],
            consequences=[Consequence.from_dict(c) for c in d.get("consequences", [])],
            expires_at=d.get("expires_at"),
        )


@dataclass
class ActionResult:
    """Outcome of an engine operation or of resolving one action."""
    success: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    code: Optional[str] = None
    consequences: list[Consequence] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def ok(consequences: list[Consequence] = None, **data) -> ActionResult:
        return ActionResult(success=True, consequences=consequences or [], data=data)

    @staticmethod
    def fail(kind: ErrorKind, code, error: str,
             consequences: list[Consequence] = None) -> ActionResult:
        code_value = code.value if hasattr(code, "value") else code
        return ActionResult(success=False, error=error, kind=kind, code=code_value,
                            consequences=consequences or [])

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "kind": self.kind.value if self.kind else None,
            "code": self.code,
            "consequences": [c.to_dict() for c in self.consequences],
            "data": self.data,
        }


@dataclass
class ActionResolution:
    action: QueuedAction
    player_id: str
    result: ActionResult
    narrative: list[str] = field(default_factory=list)
    effects: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "action": self.action.to_dict(),
            "player_id": self.player_id,
            "result": self.result.to_dict(),
            "narrative": list(self.narrative),
            "effects": self.effects,
        }


@dataclass
class MatchMetadata:
    created_at: float = 0.0
    updated_at: float = 0.0
    max_players: int = MAX_PLAYERS
    turn_duration: int = ACTION_PHASE_DURATION
    game_mode: str = DEFAULT_GAME_MODE

    def to_dict(self) -> dict:
        return {
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "max_players": self.max_players,
            "turn_duration": self.turn_duration,
            "game_mode": self.game_mode,
        }

    @staticmethod
    def from_dict(d: dict) -> MatchMetadata:
        return MatchMetadata(
            created_at=d.get("created_at", 0.0),
            updated_at=d.get("updated_at", 0.0),
            max_players=d.get("max_players", MAX_PLAYERS),
            turn_duration=d.get("turn_duration", ACTION_PHASE_DURATION),
            game_mode=d.get("game_mode", DEFAULT_GAME_MODE),
        )


@dataclass
class Match:
    """Full match state. Owned and mutated only by the MatchEngine."""
    match_id: str
    version: str = MATCH_VERSION
    turn: int = 0
    phase: Phase = Phase.LOBBY
    players: list[Player] = field(default_factory=list)
    territories: list[Territory] = field(default_factory=list)
    events: list[GameEvent] = field(default_factory=list)
    time_remaining: int = 0
    phase_started_at: float = 0.0
    winner: Optional[str] = None
    victory_type: Optional[str] = None
    action_sequence: int = 0
    attention_streaks: dict[str, int] = field(default_factory=dict)
    faction_state: dict[str, dict] = field(default_factory=dict)
    metadata: MatchMetadata = field(default_factory=MatchMetadata)

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def get_territory(self, territory_id: str) -> Optional[Territory]:
        for territory in self.territories:
            if territory.territory_id == territory_id:
                return territory
        return None

    def territories_owned_by(self, player_id: str) -> list[Territory]:
        return [t for t in self.territories if t.owner == player_id]

    def to_dict(self) -> dict:
        return {
            "id": self.match_id,
            "version": self.version,
            "turn": self.turn,
            "phase": self.phase.value,
            "players": [p.to_dict() for p in self.players],
            "territories": [t.to_dict() for t in self.territories],
            "events": [e.to_dict() for e in self.events],
            "time_remaining": self.time_remaining,
            "phase_started_at": self.phase_started_at,
            "winner": self.winner,
            "victory_type": self.victory_type,
            "action_sequence": self.action_sequence,
            "attention_streaks": dict(self.attention_streaks),
            "faction_state": {k: dict(v) for k, v in self.faction_state.items()},
            "metadata": self.metadata.to_dict(),
        }

    @staticmethod
    def from_dict(d: dict) -> Match:
        return Match(
            match_id=d["id"],
            version=d.get("version", MATCH_VERSION),
            turn=d["turn"],
            phase=Phase(d["phase"]),
            players=[Player.from_dict(p) for p in d.get("players", [])],
            territories=[Territory.from_dict(t) for t in d.get("territories", [])],
            events=[GameEvent.from_dict(e) for e in d.get("events", [])],
            time_remaining=d.get("time_remaining", 0),
            phase_started_at=d.get("phase_started_at", 0.0),
            winner=d.get("winner"),
            victory_type=d.get("victory_type"),
            action_sequence=d.get("action_sequence", 0),
            attention_streaks=dict(d.get("attention_streaks", {})),
            faction_state={k: dict(v) for k, v in d.get("faction_state", {}).items()},
            metadata=MatchMetadata.from_dict(d.get("metadata", {})),
        )
