"""Tests for the match engine's lifecycle and phase machine."""

import sys
import os
import random
import pytest
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from shared.constants import Phase, MessageType, VictoryType
from shared.models import Resources
from server.config import GameConfig
from server.game_state import MatchEngine
from server.storage import InMemoryMatchStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeScheduler:
    """Records armed deadlines instead of running a loop."""

    def __init__(self):
        self.armed = {}
        self.history = []

    def arm(self, key, seconds, callback):
        self.armed[key] = (seconds, callback)
        self.history.append((key, seconds))

    def cancel(self, key):
        self.armed.pop(key, None)

    def pending(self, key):
        return key in self.armed

    def fire(self, key):
        _, callback = self.armed.pop(key)
        callback()


def make_engine(factions=("hyper-capitalist", "influencer-cult"), config=None, seed=7):
    engine = MatchEngine(
        config=config,
        scheduler=FakeScheduler(),
        store=InMemoryMatchStore(),
        clock=FakeClock(),
        rng=random.Random(seed),
    )
    for i, faction_id in enumerate(factions):
        result = engine.add_player(f"p{i}", f"Player {i}", faction_id)
        assert result.success, result.error
    return engine


def make_started(**kwargs):
    engine = make_engine(**kwargs)
    assert engine.start_match().success
    return engine


def event_types(engine):
    return [n.event_type for n in engine.sink.drain()]


class TestLobby:
    def test_initial_state(self):
        engine = make_engine(factions=())
        assert engine.phase == Phase.LOBBY
        assert engine.turn == 0
        assert len(engine.match.territories) == 24
        assert engine.match.match_id.startswith("match-")

    def test_join_uses_faction_starting_resources(self):
        engine = make_engine()
        capitalist = engine.match.get_player("p0")
        assert capitalist.resources == Resources(150, 40, 30)
        cult = engine.match.get_player("p1")
        assert cult.resources == Resources(80, 100, 20)

    def test_unknown_faction_rejected(self):
        engine = make_engine(factions=())
        result = engine.add_player("p0", "Nobody", "space-pirates")
        assert not result.success
        assert result.code == "unknown-faction"
        assert engine.match.players == []

    def test_duplicate_player_rejected(self):
        engine = make_engine()
        result = engine.add_player("p0", "Again", "rogue-ai")
        assert result.code == "duplicate-player"
        assert len(engine.match.players) == 2

    def test_match_full(self):
        engine = make_engine(config=GameConfig(max_players=2))
        result = engine.add_player("p2", "Late", "rogue-ai")
        assert result.code == "match-full"

    def test_join_publishes_player_joined(self):
        engine = make_engine()
        assert event_types(engine) == [MessageType.PLAYER_JOINED, MessageType.PLAYER_JOINED]

    def test_cannot_join_after_start(self):
        engine = make_started()
        result = engine.add_player("p9", "Late", "rogue-ai")
        assert result.code == "wrong-phase"

    def test_start_needs_two_players(self):
        engine = make_engine(factions=("rogue-ai",))
        result = engine.start_match()
        assert not result.success
        assert result.code == "not-enough-players"
        assert engine.phase == Phase.LOBBY
        assert not engine.scheduler.pending(engine.match_id)

    def test_start_match(self):
        engine = make_started()
        assert engine.phase == Phase.MORNING_BRIEF
        assert engine.turn == 1
        for player in engine.match.players:
            assert len(player.territories) == 2
            for tid in player.territories:
                assert engine.match.get_territory(tid).owner == player.player_id
        assert engine.scheduler.armed[engine.match_id][0] == 45

    def test_start_twice_fails(self):
        engine = make_started()
        result = engine.start_match()
        assert result.kind.value == "precondition"

    def test_start_publishes_game_started_then_phase_changed(self):
        engine = make_engine()
        engine.sink.drain()
        engine.start_match()
        assert event_types(engine) == [MessageType.GAME_STARTED, MessageType.PHASE_CHANGED]


class TestPhaseCycle:
    def test_full_cycle(self):
        engine = make_started()
        assert engine.advance_phase().success
        assert engine.phase == Phase.ACTION_PHASE
        assert engine.advance_phase().success
        assert engine.phase == Phase.BREAKING_NEWS
        assert engine.advance_phase().success
        assert engine.phase == Phase.MORNING_BRIEF
        assert engine.turn == 2

    def test_phase_durations_armed(self):
        engine = make_started()
        engine.advance_phase()
        engine.advance_phase()
        seconds = [s for _, s in engine.scheduler.history]
        assert seconds == [45, 120, 45]

    def test_single_deadline_per_match(self):
        engine = make_started()
        engine.advance_phase()
        assert list(engine.scheduler.armed) == [engine.match_id]

    def test_deadline_advances_phase(self):
        engine = make_started()
        engine.scheduler.fire(engine.match_id)
        assert engine.phase == Phase.ACTION_PHASE
        assert engine.scheduler.pending(engine.match_id)

    def test_advance_in_lobby_fails(self):
        engine = make_engine()
        result = engine.advance_phase()
        assert not result.success
        assert result.code == "wrong-phase"

    def test_illegal_transition_raises(self):
        engine = make_started()
        with pytest.raises(RuntimeError):
            engine._enter_phase(Phase.BREAKING_NEWS)
        assert engine.phase == Phase.MORNING_BRIEF

    def test_seconds_remaining_counts_down(self):
        engine = make_started()
        assert engine.seconds_remaining() == 45
        engine.clock.advance(10)
        assert engine.seconds_remaining() == 35
        engine.clock.advance(100)
        assert engine.seconds_remaining() == 0

    def test_turn_started_published(self):
        engine = make_started()
        engine.advance_phase()
        engine.advance_phase()
        engine.sink.drain()
        engine.advance_phase()
        assert event_types(engine) == [MessageType.TURN_STARTED, MessageType.PHASE_CHANGED]

    def test_breaking_news_carries_headlines(self):
        engine = make_started()
        engine.advance_phase()
        target = engine.match.get_player("p0").territories[0]
        engine.submit_action("p0", {"type": "invest", "target": target})
        engine.sink.drain()
        engine.advance_phase()
        notifications = engine.sink.drain()
        news = [n for n in notifications if n.event_type == MessageType.BREAKING_NEWS][0]
        assert news.payload["headlines"] == ["BREAKING: Player 0 Causes Chaos with INVEST!"]
        assert len(news.payload["events"]) == 1


class TestResourceGeneration:
    def test_territory_yields_and_passives(self):
        engine = make_started()
        match = engine.match
        capitalist, cult = match.get_player("p0"), match.get_player("p1")
        wealth_yield = sum(min(50, t.resources.wealth) for t in match.territories_owned_by("p0"))
        attention_yield = sum(min(50, t.resources.attention) for t in match.territories_owned_by("p1"))

        engine.advance_phase()

        # market-manipulation: 2 territories * 5 * 1.5
        assert capitalist.resources.wealth == 150 + wealth_yield + 15
        # influencer-network: int(2 * 3 * 1.3)
        assert cult.resources.attention == 100 + attention_yield + 7

    def test_generation_capped_per_territory(self):
        engine = make_started()
        owned = engine.match.territories_owned_by("p0")
        for territory in owned:
            territory.resources.technology = 500
        engine.advance_phase()
        assert engine.match.get_player("p0").resources.technology == 30 + 50 * len(owned)


class TestVictory:
    def test_territorial_domination_finishes_match(self):
        engine = make_started()
        engine.advance_phase()
        engine.advance_phase()
        player = engine.match.get_player("p0")
        for territory in engine.match.territories[:15]:
            territory.owner = "p0"
            player.add_territory(territory.territory_id)
        engine.sink.drain()

        result = engine.advance_phase()
        assert result.success
        assert result.data["winner"] == "p0"
        assert engine.phase == Phase.FINISHED
        assert engine.match.victory_type == VictoryType.TERRITORIAL_DOMINATION.value
        assert not engine.scheduler.pending(engine.match_id)
        assert event_types(engine) == [MessageType.GAME_ENDED]

    def test_no_victory_below_threshold(self):
        engine = make_started()
        for territory in engine.match.territories[:14]:
            territory.owner = "p0"
        for _ in range(3):
            engine.advance_phase()
        assert engine.phase == Phase.MORNING_BRIEF

    def test_turn_limit(self):
        engine = make_started(config=GameConfig(max_turns=1))
        for _ in range(3):
            engine.advance_phase()
        assert engine.phase == Phase.FINISHED
        assert engine.match.victory_type == VictoryType.TURN_LIMIT.value
        assert engine.match.winner == "p0"

    def test_finished_match_rejects_everything(self):
        engine = make_started()
        engine.end_match("p1")
        assert engine.advance_phase().code == "match-finished"
        assert engine.end_match().code == "match-finished"
        assert engine.submit_action("p0", {"type": "invest", "target": "territory-1"}).code == "wrong-phase"
        assert engine.remove_player("p0").code == "match-finished"
        assert not engine.scheduler.pending(engine.match_id)


class TestPlayers:
    def test_remove_player_releases_territories(self):
        engine = make_started()
        owned = list(engine.match.get_player("p0").territories)
        engine.match.territories[10].influence["p0"] = 12
        engine.sink.drain()

        result = engine.remove_player("p0")
        assert result.success
        assert sorted(result.data["released_territories"]) == sorted(owned)
        assert engine.match.get_player("p0") is None
        for tid in owned:
            assert engine.match.get_territory(tid).owner is None
        assert "p0" not in engine.match.territories[10].influence
        assert event_types(engine) == [MessageType.PLAYER_LEFT]

    def test_remove_unknown_player(self):
        engine = make_started()
        assert engine.remove_player("ghost").code == "unknown-player"

    def test_set_connected(self):
        engine = make_started()
        engine.set_connected("p1", False)
        assert engine.match.get_player("p1").connected is False


class TestSnapshots:
    def test_snapshot_round_trip(self):
        engine = make_started()
        engine.advance_phase()
        engine.submit_action("p1", {"type": "influence", "target": "territory-12"})
        snapshot = engine.get_snapshot()

        restored = MatchEngine.from_snapshot(snapshot, clock=engine.clock, scheduler=FakeScheduler())
        assert restored.get_snapshot() == snapshot
        assert restored.phase == Phase.ACTION_PHASE
        assert len(restored.match.get_player("p1").actions) == 1

    def test_resume_rearms_remaining_time(self):
        engine = make_started()
        engine.clock.advance(20)
        restored = MatchEngine.from_snapshot(engine.get_snapshot(), clock=engine.clock,
                                             scheduler=FakeScheduler())
        assert not restored.scheduler.pending(restored.match_id)
        restored.resume()
        assert restored.scheduler.armed[restored.match_id][0] == 25

    def test_restored_engine_advances_identically(self):
        engine = make_started()
        engine.advance_phase()
        cult = engine.factions["influencer-cult"]
        cult.add_trending_topic("Tokyo")
        cult.add_trending_topic("Dubai")
        rival_territory = engine.match.get_player("p0").territories[0]
        engine.submit_action("p1", {"type": "trend-hijack", "target": rival_territory})
        engine.submit_action("p0", {"type": "influence", "target": "territory-12"})

        restored = MatchEngine.from_snapshot(engine.get_snapshot(), clock=engine.clock,
                                             scheduler=FakeScheduler())
        assert restored.factions["influencer-cult"].trending_topics == ["Tokyo", "Dubai"]

        engine.sink.drain()
        engine.advance_phase()
        restored.advance_phase()
        assert restored.get_snapshot() == engine.get_snapshot()
        assert restored.phase == Phase.BREAKING_NEWS
        for player in restored.match.players:
            assert player.actions == []

        first_news = [n.payload for n in engine.sink.drain()
                      if n.event_type == MessageType.BREAKING_NEWS]
        restored_news = [n.payload for n in restored.sink.drain()
                         if n.event_type == MessageType.BREAKING_NEWS]
        assert restored_news == first_news
        hijack = [r for r in first_news[0]["resolutions"] if r["action"]["type"] == "trend-hijack"][0]
        assert hijack["result"]["success"]
        assert hijack["effects"]["topics_stolen"] == ["Tokyo", "Dubai"]

    def test_faction_state_saved_to_store(self):
        engine = make_started()
        engine.factions["influencer-cult"].add_trending_topic("Miami")
        engine.advance_phase()
        stored = engine.store.load(engine.match_id)
        assert stored["faction_state"]["influencer-cult"]["trending_topics"] == ["Miami"]

    def test_store_tracks_latest_snapshot(self):
        engine = make_started()
        engine.advance_phase()
        stored = engine.store.load(engine.match_id)
        assert stored["phase"] == Phase.ACTION_PHASE.value
        assert stored["turn"] == 1


def scripted_run(seed):
    engine = make_started(seed=seed)
    engine.advance_phase()
    own = engine.match.get_player("p1").territories[0]
    engine.submit_action("p0", {"type": "influence", "target": "territory-10"})
    engine.clock.advance(1)
    engine.submit_action("p1", {"type": "invest", "target": own})
    engine.clock.advance(1)
    engine.submit_action("p0", {"type": "invade", "target": own})
    engine.advance_phase()
    engine.advance_phase()
    snapshot = engine.get_snapshot()
    snapshot.pop("id")
    return snapshot


class TestDeterminism:
    def test_same_inputs_same_outcome(self):
        assert scripted_run(11) == scripted_run(11)

    def test_queues_empty_after_resolution(self):
        snapshot = scripted_run(3)
        for player in snapshot["players"]:
            assert player["actions"] == []
            for value in player["resources"].values():
                assert value >= 0
