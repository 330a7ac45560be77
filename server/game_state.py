"""Core match state machine: phase cycle, action intake and turn resolution."""

import logging
import random
import time
import uuid
from typing import Callable, Optional, Union
from shared.constants import (
    Phase, MessageType, ErrorKind, ErrorCode, VictoryType,
)
from shared.models import (
    Match, Player, PlayerAction, QueuedAction, ActionResult, MatchMetadata,
)
from server.config import GameConfig
from server.errors import AbilityError
from server.faction import Faction, AbilityContext
from server.faction_registry import FACTIONS, create_faction
from server.notifications import NotificationSink
from server.resolution import resolve_actions
from server.territories import (
    generate_territories, assign_starting_territories, release_player_territories,
)
from server.victory import check_victory, turn_limit_leader

logger = logging.getLogger(__name__)

# Allowed edges of the phase cycle
NEXT_PHASE = {
    Phase.MORNING_BRIEF: Phase.ACTION_PHASE,
    Phase.ACTION_PHASE: Phase.BREAKING_NEWS,
    Phase.BREAKING_NEWS: Phase.MORNING_BRIEF,
}


class MatchEngine:
    """Authoritative state for one match. Every mutation goes through here.

    The engine is synchronous and not thread-safe; callers must serialize
    access per match (see server.session.MatchSession).
    """

    def __init__(self, match: Optional[Match] = None, config: Optional[GameConfig] = None,
                 scheduler=None, sink: Optional[NotificationSink] = None, store=None,
                 clock: Callable[[], float] = time.time,
                 rng: Optional[random.Random] = None):
        self.config = config or GameConfig()
        self.clock = clock
        self.scheduler = scheduler
        self.sink = sink or NotificationSink()
        self.store = store
        # Replaces the default deadline action, e.g. to route it through a lock.
        self.on_deadline: Optional[Callable[[], None]] = None
        self.factions: dict[str, Faction] = {fid: create_faction(fid) for fid in FACTIONS}
        self.match = match or self._create_match(rng)
        for faction_id, state in self.match.faction_state.items():
            if faction_id in self.factions:
                self.factions[faction_id].load_state(state)

    def _create_match(self, rng: Optional[random.Random]) -> Match:
        now = self.clock()
        return Match(
            match_id=f"match-{str(uuid.uuid4())[:8]}",
            territories=generate_territories(rng),
            metadata=MatchMetadata(
                created_at=now,
                updated_at=now,
                max_players=self.config.max_players,
                turn_duration=self.config.action_phase_duration,
            ),
        )

    @classmethod
    def from_snapshot(cls, snapshot: dict, **kwargs) -> "MatchEngine":
        """Rebuild an engine from get_snapshot() output.

        No deadline is armed; call resume() once the engine is wired to a
        scheduler.
        """
        return cls(match=Match.from_dict(snapshot), **kwargs)

    @property
    def match_id(self) -> str:
        return self.match.match_id

    @property
    def phase(self) -> Phase:
        return self.match.phase

    @property
    def turn(self) -> int:
        return self.match.turn

    # -- read access -------------------------------------------------------

    def seconds_remaining(self) -> int:
        if self.match.phase in (Phase.LOBBY, Phase.FINISHED):
            return 0
        elapsed = self.clock() - self.match.phase_started_at
        return max(0, int(self.match.time_remaining - elapsed))

    def get_snapshot(self) -> dict:
        self._sync_faction_state()
        snapshot = self.match.to_dict()
        snapshot["seconds_left"] = self.seconds_remaining()
        return snapshot

    def faction_for(self, player: Player) -> Optional[Faction]:
        return self.factions.get(player.faction)

    # -- lobby ---------------------------------------------------------------

    def add_player(self, player_id: str, name: str, faction_id: str) -> ActionResult:
        match = self.match
        if match.phase != Phase.LOBBY:
            return ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.WRONG_PHASE,
                                     "Players can only join in the lobby")
        if len(match.players) >= min(self.config.max_players, match.metadata.max_players):
            return ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.MATCH_FULL, "Match is full")
        if match.get_player(player_id) is not None:
            return ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.DUPLICATE_PLAYER,
                                     f"Player {player_id} already joined")
        faction = self.factions.get(faction_id)
        if faction is None:
            return ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.UNKNOWN_FACTION,
                                     f"Unknown faction: {faction_id}")

        player = Player(
            player_id=player_id,
            name=name,
            faction=faction_id,
            resources=faction.get_starting_resources(),
            last_action_time=self.clock(),
        )
        match.players.append(player)
        logger.info("Match %s: %s joined as %s", match.match_id, player_id, faction_id)
        self._publish(MessageType.PLAYER_JOINED, {"player": player.to_dict()})
        self._save()
        return ActionResult.ok(player_id=player_id)

    def remove_player(self, player_id: str) -> ActionResult:
        match = self.match
        if match.phase == Phase.FINISHED:
            return ActionResult.fail(ErrorKind.PRECONDITION, ErrorCode.MATCH_FINISHED,
                                     "Match is finished")
        player = match.get_player(player_id)
        if player is None:
            return ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.UNKNOWN_PLAYER,
                                     "Player not found")
        match.players.remove(player)
        released = release_player_territories(player_id, match.territories)
        match.attention_streaks.pop(player_id, None)
        logger.info("Match %s: %s left, %d territories released",
                    match.match_id, player_id, len(released))
        self._publish(MessageType.PLAYER_LEFT, {
            "player_id": player_id,
            "name": player.name,
            "released_territories": released,
        })
        self._save()
        return ActionResult.ok(released_territories=released)

    def set_connected(self, player_id: str, connected: bool) -> ActionResult:
        player = self.match.get_player(player_id)
        if player is None:
            return ActionResult.fail(ErrorKind.VALIDATION, ErrorCode.UNKNOWN_PLAYER,
                                     "Player not found")
        player.connected = connected
        return ActionResult.ok()

    def start_match(self) -> ActionResult:
        match = self.match
        if match.phase != Phase.LOBBY:
            return ActionResult.fail(ErrorKind.PRECONDITION, ErrorCode.WRONG_PHASE,
                                     "Match already started")
        count = len(match.players)
        if count < self.config.min_players or count > self.config.max_players:
            return ActionResult.fail(
                ErrorKind.VALIDATION, ErrorCode.NOT_ENOUGH_PLAYERS,
                f"Need between {self.config.min_players} and "
                f"{self.config.max_players} players, have {count}")

        assign_starting_territories(match.players, match.territories,
                                    self.config.starting_territories_per_player)
        match.turn = 1
        self._enter_phase(Phase.MORNING_BRIEF)
        logger.info("Match %s started with %d players", match.match_id, count)
        self._publish(MessageType.GAME_STARTED, {"state": match.to_dict()})
        self._publish_phase_changed()
        self._save()
        return ActionResult.ok(phase=match.phase.value, turn=match.turn)

    # -- action intake ---------------------------------------------------------

    def submit_action(self, player_id: str,
                      action: Union[PlayerAction, dict]) -> ActionResult:
        """Validate and queue an action. Nothing is deducted until resolution."""
        match = self.match
        player = match.get_player(player_id)
        error = None
        if player is None:
            error = (ErrorCode.UNKNOWN_PLAYER, "Player not found")
        elif match.phase != Phase.ACTION_PHASE:
            error = (ErrorCode.WRONG_PHASE, "Not in action phase")
        elif len(player.actions) >= self.config.max_actions_per_turn:
            error = (ErrorCode.QUOTA_EXCEEDED, "Maximum actions per turn reached")

        if error is None and isinstance(action, dict):
            try:
                action = PlayerAction.from_dict(action)
            except (KeyError, TypeError, ValueError):
                error = (ErrorCode.UNKNOWN_ACTION, "Malformed action")

        cost = None
        if error is None:
            cost = self.config.action_cost(action.action_type) or action.cost
            if cost is None:
                error = (ErrorCode.UNKNOWN_ACTION, f"Unknown action type: {action.action_type}")
            elif cost.exceeds(player.resources):
                error = (ErrorCode.INSUFFICIENT_RESOURCES, "Insufficient resources")

        if error is not None:
            logger.debug("Match %s: rejected action from %s: %s",
                         match.match_id, player_id, error[1])
            return ActionResult.fail(ErrorKind.VALIDATION, error[0], error[1])

        now = self.clock()
        match.action_sequence += 1
        queued = QueuedAction(
            action_id=f"{player_id}-{match.action_sequence}",
            action_type=action.action_type,
            target=action.target,
            cost=cost.copy(),
            timestamp=now,
            player_id=player_id,
            sequence=match.action_sequence,
        )
        player.actions.append(queued)
        player.last_action_time = now
        self._publish(MessageType.ACTION_QUEUED, {"player_id": player_id, "action": queued.to_dict()})
        self._save()
        return ActionResult.ok(action_id=queued.action_id, queue_length=len(player.actions))

    # -- phase cycle -------------------------------------------------------------

    def advance_phase(self) -> ActionResult:
        """Move to the next phase of the cycle. Failures are reported, never retried."""
        match = self.match
        if match.phase == Phase.LOBBY:
            return ActionResult.fail(ErrorKind.PRECONDITION, ErrorCode.WRONG_PHASE,
                                     "Match has not started")
        if match.phase == Phase.FINISHED:
            return ActionResult.fail(ErrorKind.PRECONDITION, ErrorCode.MATCH_FINISHED,
                                     "Match is finished")

        if match.phase == Phase.MORNING_BRIEF:
            self._start_action_phase()
        elif match.phase == Phase.ACTION_PHASE:
            self._start_breaking_news()
        elif match.phase == Phase.BREAKING_NEWS:
            self._start_next_turn()
        self._save()
        return ActionResult.ok(phase=match.phase.value, turn=match.turn, winner=match.winner)

    def end_match(self, winner_id: Optional[str] = None,
                  victory_type: Optional[str] = None) -> ActionResult:
        if self.match.phase == Phase.FINISHED:
            return ActionResult.fail(ErrorKind.PRECONDITION, ErrorCode.MATCH_FINISHED,
                                     "Match is finished")
        self._finish(winner_id, victory_type)
        self._save()
        return ActionResult.ok(winner=winner_id)

    def resume(self):
        """Re-arm the deadline for the current phase (after restoring a snapshot)."""
        if self.match.phase not in (Phase.LOBBY, Phase.FINISHED):
            self._arm_deadline(self.seconds_remaining())

    def _start_action_phase(self):
        self._enter_phase(Phase.ACTION_PHASE)
        generated = self._generate_resources()
        self._publish_phase_changed(generated=generated)

    def _start_breaking_news(self):
        report = resolve_actions(self.match, self.factions, self.config, self.clock())
        self._enter_phase(Phase.BREAKING_NEWS)
        self._publish_phase_changed()
        payload = report.to_dict()
        payload["turn"] = self.match.turn
        self._publish(MessageType.BREAKING_NEWS, payload)

    def _start_next_turn(self):
        match = self.match
        winner, victory_type = check_victory(match, self.factions, self.config)
        if winner is None and match.turn >= self.config.max_turns:
            winner, victory_type = turn_limit_leader(match), VictoryType.TURN_LIMIT.value
        if winner is not None or victory_type == VictoryType.TURN_LIMIT.value:
            self._finish(winner, victory_type)
            return
        for player in match.players:
            player.actions.clear()
        match.turn += 1
        self._enter_phase(Phase.MORNING_BRIEF)
        self._publish(MessageType.TURN_STARTED, {"turn": match.turn})
        self._publish_phase_changed()

    def _enter_phase(self, phase: Phase):
        match = self.match
        previous = match.phase
        if phase != Phase.MORNING_BRIEF or previous != Phase.LOBBY:
            if NEXT_PHASE.get(previous) != phase:
                raise RuntimeError(f"Illegal phase transition {previous.value} -> {phase.value}")
        match.phase = phase
        match.time_remaining = self.config.phase_duration(phase)
        match.phase_started_at = self.clock()
        logger.info("Match %s turn %d: %s -> %s", match.match_id, match.turn,
                    previous.value, phase.value)
        self._arm_deadline(match.time_remaining)

    def _finish(self, winner_id: Optional[str], victory_type: Optional[str]):
        match = self.match
        match.phase = Phase.FINISHED
        match.winner = winner_id
        match.victory_type = victory_type
        match.time_remaining = 0
        self._cancel_deadline()
        logger.info("Match %s finished on turn %d, winner %s (%s)",
                    match.match_id, match.turn, winner_id, victory_type)
        self._publish(MessageType.GAME_ENDED, {
            "winner": winner_id,
            "victory_type": victory_type,
            "turn": match.turn,
        })

    def _generate_resources(self) -> dict[str, dict]:
        """Territory yields (capped per territory) plus passive faction abilities."""
        cap = self.config.max_generation_per_territory
        generated = {}
        now = self.clock()
        for player in self.match.players:
            gained = {"wealth": 0, "attention": 0, "technology": 0}
            for territory in self.match.territories_owned_by(player.player_id):
                for key in gained:
                    gained[key] += min(cap, territory.resources.get(key))
            faction = self.faction_for(player)
            if faction is not None:
                for ability_id in faction.passive_abilities():
                    context = AbilityContext(
                        player_id=player.player_id,
                        player_name=player.name,
                        resources=player.resources.copy(),
                        territory_ids=list(player.territories),
                        turn=self.match.turn,
                        now=now,
                    )
                    try:
                        outcome = faction.process_ability(ability_id, context)
                    except AbilityError as e:
                        logger.debug("Passive %s skipped for %s: %s",
                                     ability_id, player.player_id, e.reason)
                        continue
                    for key, value in outcome.resource_delta.items():
                        gained[key] = gained.get(key, 0) + value
            player.resources.add(gained)
            generated[player.player_id] = gained
        return generated

    # -- collaborators --------------------------------------------------------

    def _deadline_expired(self):
        result = self.advance_phase()
        if not result.success:
            logger.warning("Match %s: deadline advance failed: %s", self.match_id, result.error)

    def _arm_deadline(self, seconds: float):
        if self.scheduler is None:
            return
        self.scheduler.arm(self.match_id, seconds, self.on_deadline or self._deadline_expired)

    def _cancel_deadline(self):
        if self.scheduler is not None:
            self.scheduler.cancel(self.match_id)

    def _publish(self, event_type: MessageType, payload: dict):
        self.sink.publish(event_type, payload)

    def _publish_phase_changed(self, **extra):
        payload = {
            "phase": self.match.phase.value,
            "turn": self.match.turn,
            "time_remaining": self.match.time_remaining,
        }
        payload.update(extra)
        self._publish(MessageType.PHASE_CHANGED, payload)

    def _save(self):
        self.match.metadata.updated_at = self.clock()
        self._sync_faction_state()
        if self.store is not None:
            self.store.save(self.match.to_dict())

    def _sync_faction_state(self):
        states = {}
        for faction_id, faction in self.factions.items():
            state = faction.get_state()
            if state:
                states[faction_id] = state
        self.match.faction_state = states
