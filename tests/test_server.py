"""Tests for the WebSocket request layer, driven with a fake connection."""

import sys
import os
import asyncio
import json
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from shared.constants import MessageType
from shared.protocol import create_message
from server.server import GameServer


class FakeWebSocket:
    remote_address = ("127.0.0.1", 50000)

    def __init__(self, messages):
        self.messages = list(messages)
        self.sent = []

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
            await asyncio.sleep(0)

    async def send(self, message):
        self.sent.append(json.loads(message))

    def of_type(self, msg_type):
        return [m for m in self.sent if m["type"] == msg_type.value]


async def create_match(server):
    ws = FakeWebSocket([create_message(MessageType.CREATE_MATCH, {"max_players": 4})])
    await server.handle_connection(ws)
    return ws.sent[0]["payload"]["match_id"]


class TestGameServer:
    def test_create_match(self):
        async def run():
            server = GameServer()
            match_id = await create_match(server)
            assert match_id in server.rooms
            assert server.manager.get(match_id).engine.match.metadata.max_players == 4

        asyncio.run(run())

    def test_join_and_leave_lobby(self):
        async def run():
            server = GameServer()
            match_id = await create_match(server)
            ws = FakeWebSocket([
                create_message(MessageType.JOIN_MATCH, {"player_name": "Alice", "faction": "rogue-ai"},
                               match_id=match_id),
                create_message(MessageType.GET_STATE),
            ])
            await server.handle_connection(ws)

            states = ws.of_type(MessageType.MATCH_STATE)
            assert len(states) == 2
            player_id = states[0]["payload"]["player_id"]
            assert [p["id"] for p in states[1]["payload"]["state"]["players"]] == [player_id]
            # Disconnecting from the lobby removes the player and the empty room
            assert match_id not in server.rooms

        asyncio.run(run())

    def test_join_unknown_faction(self):
        async def run():
            server = GameServer()
            match_id = await create_match(server)
            ws = FakeWebSocket([
                create_message(MessageType.JOIN_MATCH, {"player_name": "Alice", "faction": "pirates"},
                               match_id=match_id),
            ])
            await server.handle_connection(ws)
            errors = ws.of_type(MessageType.ERROR)
            assert errors[0]["payload"]["code"] == "unknown-faction"

        asyncio.run(run())

    def test_join_unknown_match(self):
        async def run():
            server = GameServer()
            ws = FakeWebSocket([
                create_message(MessageType.JOIN_MATCH, {"player_name": "Alice", "faction": "rogue-ai"},
                               match_id="match-nope"),
            ])
            await server.handle_connection(ws)
            assert ws.sent[0]["type"] == MessageType.ERROR.value

        asyncio.run(run())

    def test_requests_before_joining(self):
        async def run():
            server = GameServer()
            ws = FakeWebSocket(["{broken", create_message(MessageType.START_MATCH)])
            await server.handle_connection(ws)
            messages = [m["payload"]["message"] for m in ws.sent]
            assert messages == ["Invalid message format", "Not in a match"]

        asyncio.run(run())

    def test_request_results_are_reported(self):
        async def run():
            server = GameServer()
            match_id = await create_match(server)
            ws = FakeWebSocket([
                create_message(MessageType.JOIN_MATCH, {"player_name": "Alice", "faction": "rogue-ai"},
                               match_id=match_id),
                create_message(MessageType.START_MATCH),
            ])
            await server.handle_connection(ws)
            results = ws.of_type(MessageType.ACTION_RESULT)
            assert results[0]["payload"]["request"] == "start-match"
            assert results[0]["payload"]["result"]["code"] == "not-enough-players"

        asyncio.run(run())
