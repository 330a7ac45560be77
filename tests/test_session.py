"""Tests for match sessions and the match manager."""

import sys
import os
import asyncio
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from shared.constants import Phase, VictoryType
from server.config import GameConfig
from server.session import MatchManager
from server.storage import InMemoryMatchStore


class FakeScheduler:
    def __init__(self):
        self.armed = {}

    def arm(self, key, seconds, callback):
        self.armed[key] = (seconds, callback)

    def cancel(self, key):
        self.armed.pop(key, None)

    def pending(self, key):
        return key in self.armed


async def make_started(manager):
    session = manager.create_match()
    await session.add_player("p0", "Alice", "influencer-cult")
    await session.add_player("p1", "Bob", "rogue-ai")
    result = await session.start_match()
    assert result.success
    return session


class TestMatchSession:
    def test_operations_go_through_engine(self):
        async def run():
            manager = MatchManager(scheduler=FakeScheduler())
            session = await make_started(manager)
            await session.advance_phase()
            result = await session.submit_action("p0", {"type": "influence", "target": "territory-9"})
            assert result.success
            snapshot = await session.get_snapshot()
            assert snapshot["phase"] == Phase.ACTION_PHASE.value
            assert len(snapshot["players"][0]["actions"]) == 1

        asyncio.run(run())

    def test_stale_deadline_is_ignored(self):
        async def run():
            manager = MatchManager(scheduler=FakeScheduler())
            session = await make_started(manager)
            session._deadline_fired()
            # A manual advance wins the lock before the deadline task runs.
            await session.advance_phase()
            await asyncio.gather(*session._deadline_tasks)
            assert session.engine.phase == Phase.ACTION_PHASE

        asyncio.run(run())

    def test_deadline_advances_when_current(self):
        async def run():
            manager = MatchManager(scheduler=FakeScheduler())
            session = await make_started(manager)
            _, callback = manager.scheduler.armed[session.match_id]
            callback()
            await asyncio.gather(*session._deadline_tasks)
            assert session.engine.phase == Phase.ACTION_PHASE

        asyncio.run(run())

    def test_match_runs_to_completion_on_deadlines(self):
        async def run():
            config = GameConfig(morning_brief_duration=0, action_phase_duration=0,
                                breaking_news_duration=0, max_turns=2)
            manager = MatchManager(config=config)
            session = await make_started(manager)
            for _ in range(200):
                if session.engine.phase == Phase.FINISHED:
                    break
                await asyncio.sleep(0.005)
            assert session.engine.phase == Phase.FINISHED
            assert session.engine.turn == 2
            assert session.engine.match.victory_type == VictoryType.TURN_LIMIT.value
            assert not manager.scheduler.pending(session.match_id)

        asyncio.run(run())


class TestMatchManager:
    def test_create_match_options(self):
        async def run():
            manager = MatchManager(scheduler=FakeScheduler())
            session = manager.create_match(max_players=50, game_mode="blitz")
            metadata = session.engine.match.metadata
            assert metadata.max_players == 8
            assert metadata.game_mode == "blitz"
            assert manager.get(session.match_id) is session
            assert manager.store.load(session.match_id)["phase"] == Phase.LOBBY.value

        asyncio.run(run())

    def test_unknown_match(self):
        async def run():
            manager = MatchManager(scheduler=FakeScheduler())
            result = await manager.add_player("match-nope", "p0", "Alice", "rogue-ai")
            assert not result.success
            assert result.code == "match-not-found"
            assert result.kind.value == "precondition"
            assert await manager.get_snapshot("match-nope") is None

        asyncio.run(run())

    def test_manager_delegates_by_match_id(self):
        async def run():
            manager = MatchManager(scheduler=FakeScheduler())
            match_id = manager.create_match().match_id
            assert (await manager.add_player(match_id, "p0", "Alice", "influencer-cult")).success
            assert (await manager.add_player(match_id, "p1", "Bob", "hyper-capitalist")).success
            assert (await manager.start_match(match_id)).success
            assert (await manager.advance_phase(match_id)).success
            result = await manager.submit_action(match_id, "p1", {"type": "invest", "target": "territory-3"})
            assert result.success
            assert (await manager.remove_player(match_id, "p0")).success
            snapshot = await manager.get_snapshot(match_id)
            assert [p["id"] for p in snapshot["players"]] == ["p1"]

        asyncio.run(run())

    def test_restore_rearms_deadline(self):
        async def run():
            store = InMemoryMatchStore()
            scheduler = FakeScheduler()
            manager = MatchManager(scheduler=scheduler, store=store)
            session = await make_started(manager)
            match_id = session.match_id

            manager.close_match(match_id)
            assert manager.get(match_id) is None
            assert not scheduler.pending(match_id)

            restored = manager.restore_match(match_id)
            assert restored is not None
            assert restored.engine.phase == Phase.MORNING_BRIEF
            assert scheduler.pending(match_id)
            assert manager.restore_match("match-nope") is None

        asyncio.run(run())
