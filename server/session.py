"""Match sessions: single-writer access to one engine, and the lifecycle API."""

import asyncio
import logging
import random
import time
from typing import Callable, Optional
from shared.constants import Phase, ErrorKind, ErrorCode
from shared.models import ActionResult
from server.config import GameConfig
from server.game_state import MatchEngine
from server.notifications import NotificationSink
from server.scheduler import AsyncioScheduler
from server.storage import InMemoryMatchStore

logger = logging.getLogger(__name__)


class MatchSession:
    """Owns one MatchEngine and serializes every operation on it.

    Engine calls are synchronous, so holding the lock across one call is
    enough for callers to only ever see pre- or post-operation state.
    """

    def __init__(self, engine: MatchEngine):
        self.engine = engine
        self.lock = asyncio.Lock()
        self._deadline_tasks: set[asyncio.Task] = set()
        engine.on_deadline = self._deadline_fired

    @property
    def match_id(self) -> str:
        return self.engine.match_id

    @property
    def sink(self) -> NotificationSink:
        return self.engine.sink

    def _deadline_fired(self):
        armed_for = (self.engine.phase, self.engine.turn)
        task = asyncio.get_running_loop().create_task(self._advance_on_deadline(armed_for))
        self._deadline_tasks.add(task)
        task.add_done_callback(self._deadline_tasks.discard)

    async def _advance_on_deadline(self, armed_for: tuple[Phase, int]):
        async with self.lock:
            if (self.engine.phase, self.engine.turn) != armed_for:
                logger.debug("Match %s: stale deadline for %s ignored", self.match_id, armed_for)
                return
            result = self.engine.advance_phase()
            if not result.success:
                logger.warning("Match %s: deadline advance failed: %s", self.match_id, result.error)

    async def add_player(self, player_id: str, name: str, faction_id: str) -> ActionResult:
        async with self.lock:
            return self.engine.add_player(player_id, name, faction_id)

    async def remove_player(self, player_id: str) -> ActionResult:
        async with self.lock:
            return self.engine.remove_player(player_id)

    async def set_connected(self, player_id: str, connected: bool) -> ActionResult:
        async with self.lock:
            return self.engine.set_connected(player_id, connected)

    async def start_match(self) -> ActionResult:
        async with self.lock:
            return self.engine.start_match()

    async def submit_action(self, player_id: str, action) -> ActionResult:
        async with self.lock:
            return self.engine.submit_action(player_id, action)

    async def advance_phase(self) -> ActionResult:
        async with self.lock:
            return self.engine.advance_phase()

    async def end_match(self, winner_id: Optional[str] = None) -> ActionResult:
        async with self.lock:
            return self.engine.end_match(winner_id)

    async def get_snapshot(self) -> dict:
        async with self.lock:
            return self.engine.get_snapshot()


def _not_found(match_id: str) -> ActionResult:
    return ActionResult.fail(ErrorKind.PRECONDITION, ErrorCode.MATCH_NOT_FOUND,
                             f"Match {match_id} not found")


class MatchManager:
    """Lifecycle API consumed by the request layer: one session per match."""

    def __init__(self, config: Optional[GameConfig] = None, scheduler=None, store=None,
                 clock: Callable[[], float] = time.time):
        self.config = config or GameConfig()
        self.scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self.store = store if store is not None else InMemoryMatchStore()
        self.clock = clock
        self.sessions: dict[str, MatchSession] = {}

    def _new_engine(self, **kwargs) -> MatchEngine:
        return MatchEngine(
            config=self.config,
            scheduler=self.scheduler,
            sink=NotificationSink(),
            store=self.store,
            clock=self.clock,
            **kwargs,
        )

    def create_match(self, max_players: Optional[int] = None, game_mode: Optional[str] = None,
                     rng: Optional[random.Random] = None) -> MatchSession:
        engine = self._new_engine(rng=rng)
        if max_players is not None:
            engine.match.metadata.max_players = max(
                self.config.min_players, min(self.config.max_players, int(max_players)))
        if game_mode:
            engine.match.metadata.game_mode = game_mode
        session = MatchSession(engine)
        self.sessions[session.match_id] = session
        self.store.save(engine.match.to_dict())
        logger.info("Created match %s", session.match_id)
        return session

    def restore_match(self, match_id: str) -> Optional[MatchSession]:
        """Rebuild a session from the store and re-arm its current deadline."""
        snapshot = self.store.load(match_id)
        if snapshot is None:
            return None
        engine = MatchEngine.from_snapshot(
            snapshot, config=self.config, scheduler=self.scheduler,
            sink=NotificationSink(), store=self.store, clock=self.clock)
        session = MatchSession(engine)
        self.sessions[match_id] = session
        engine.resume()
        logger.info("Restored match %s in phase %s", match_id, engine.phase.value)
        return session

    def get(self, match_id: str) -> Optional[MatchSession]:
        return self.sessions.get(match_id)

    def close_match(self, match_id: str):
        """Cancel the match's deadline and drop its session."""
        self.scheduler.cancel(match_id)
        self.sessions.pop(match_id, None)

    async def add_player(self, match_id: str, player_id: str, name: str,
                         faction_id: str) -> ActionResult:
        session = self.get(match_id)
        if session is None:
            return _not_found(match_id)
        return await session.add_player(player_id, name, faction_id)

    async def remove_player(self, match_id: str, player_id: str) -> ActionResult:
        session = self.get(match_id)
        if session is None:
            return _not_found(match_id)
        return await session.remove_player(player_id)

    async def start_match(self, match_id: str) -> ActionResult:
        session = self.get(match_id)
        if session is None:
            return _not_found(match_id)
        return await session.start_match()

    async def submit_action(self, match_id: str, player_id: str, action) -> ActionResult:
        session = self.get(match_id)
        if session is None:
            return _not_found(match_id)
        return await session.submit_action(player_id, action)

    async def advance_phase(self, match_id: str) -> ActionResult:
        session = self.get(match_id)
        if session is None:
            return _not_found(match_id)
        return await session.advance_phase()

    async def get_snapshot(self, match_id: str) -> Optional[dict]:
        session = self.get(match_id)
        if session is None:
            return None
        return await session.get_snapshot()
