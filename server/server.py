"""WebSocket server: maps client messages onto the match lifecycle API."""

import asyncio
import logging
import uuid
from typing import Optional
import websockets
from websockets.asyncio.server import serve, ServerConnection

from shared.constants import MessageType, Phase
from shared.models import ActionResult
from shared.protocol import create_message, parse_message
from server.config import GameConfig
from server.session import MatchManager, MatchSession

logger = logging.getLogger(__name__)


class ClientConnection:
    def __init__(self, ws: ServerConnection, player_name: str, player_id: str):
        self.ws = ws
        self.player_name = player_name
        self.player_id = player_id
        self.connected = True


class MatchRoom:
    """Connections watching one match; relays the match's notifications."""

    def __init__(self, session: MatchSession):
        self.session = session
        self.clients: dict[str, ClientConnection] = {}  # player_id -> connection
        self._send_tasks: set[asyncio.Task] = set()
        session.sink.subscribe(self._relay)

    @property
    def match_id(self) -> str:
        return self.session.match_id

    def _relay(self, event_type: MessageType, payload: dict):
        message = create_message(event_type, payload, match_id=self.match_id)
        task = asyncio.get_running_loop().create_task(self.broadcast(message))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    def connected_clients(self) -> list[ClientConnection]:
        return [c for c in self.clients.values() if c.connected]

    async def broadcast(self, message: str, exclude: str = None):
        for client in self.connected_clients():
            if client.player_id != exclude:
                try:
                    await client.ws.send(message)
                except websockets.exceptions.ConnectionClosed:
                    client.connected = False

    async def send_to(self, player_id: str, message: str):
        client = self.clients.get(player_id)
        if client and client.connected:
            try:
                await client.ws.send(message)
            except websockets.exceptions.ConnectionClosed:
                client.connected = False


class GameServer:
    def __init__(self, host: str = "localhost", port: int = 8765,
                 config: Optional[GameConfig] = None):
        self.host = host
        self.port = port
        self.manager = MatchManager(config=config)
        self.rooms: dict[str, MatchRoom] = {}
        self.ws_to_player: dict[ServerConnection, tuple[str, str]] = {}  # ws -> (match_id, player_id)

    async def handle_connection(self, ws: ServerConnection):
        logger.info("New connection from %s", ws.remote_address)
        match_id = None
        player_id = None
        try:
            async for raw_message in ws:
                try:
                    msg_type, payload = parse_message(raw_message)
                except ValueError as e:
                    logger.debug("Parse error: %s", e)
                    await ws.send(create_message(MessageType.ERROR, {"message": "Invalid message format"}))
                    continue

                if msg_type == MessageType.CREATE_MATCH:
                    await self._handle_create(ws, payload)
                elif msg_type == MessageType.JOIN_MATCH:
                    match_id, player_id = await self._handle_join(ws, payload)
                    if match_id and player_id:
                        self.ws_to_player[ws] = (match_id, player_id)
                elif match_id and player_id:
                    try:
                        await self._handle_match_message(ws, match_id, player_id, msg_type, payload)
                    except Exception:
                        logger.exception("Error handling %s from %s", msg_type.value, player_id)
                        await ws.send(create_message(MessageType.ERROR,
                            {"message": "Server error processing request"}))
                else:
                    await ws.send(create_message(MessageType.ERROR, {"message": "Not in a match"}))
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            if match_id and player_id:
                await self._handle_disconnect(match_id, player_id)
            self.ws_to_player.pop(ws, None)

    async def _handle_create(self, ws, payload):
        session = self.manager.create_match(
            max_players=payload.get("max_players"),
            game_mode=payload.get("mode"),
        )
        self.rooms[session.match_id] = MatchRoom(session)
        await ws.send(create_message(MessageType.MATCH_CREATED, {"match_id": session.match_id}))

    async def _handle_join(self, ws, payload) -> tuple[Optional[str], Optional[str]]:
        match_id = payload.get("match_id")
        player_name = payload.get("player_name", "Unknown")
        faction_id = payload.get("faction", "")
        room = self.rooms.get(match_id)
        if room is None:
            await ws.send(create_message(MessageType.ERROR, {"message": f"Match {match_id} not found"}))
            return None, None

        snapshot = await room.session.get_snapshot()
        if snapshot["phase"] != Phase.LOBBY.value:
            # Reconnect by name
            for pid, client in room.clients.items():
                if client.player_name == player_name and not client.connected:
                    client.ws = ws
                    client.connected = True
                    await room.session.set_connected(pid, True)
                    await ws.send(create_message(MessageType.MATCH_STATE,
                        {"player_id": pid, "state": snapshot}, match_id=match_id))
                    return match_id, pid

        player_id = str(uuid.uuid4())[:8]
        result = await room.session.add_player(player_id, player_name, faction_id)
        if not result.success:
            await ws.send(create_message(MessageType.ERROR, {"message": result.error, "code": result.code}))
            return None, None
        room.clients[player_id] = ClientConnection(ws, player_name, player_id)
        await ws.send(create_message(MessageType.MATCH_STATE, {
            "player_id": player_id,
            "state": await room.session.get_snapshot(),
        }, match_id=match_id))
        return match_id, player_id

    async def _handle_match_message(self, ws, match_id: str, player_id: str,
                                    msg_type: MessageType, payload: dict):
        room = self.rooms.get(match_id)
        if room is None:
            return
        session = room.session

        result: Optional[ActionResult] = None
        if msg_type == MessageType.START_MATCH:
            result = await session.start_match()
        elif msg_type == MessageType.SUBMIT_ACTION:
            result = await session.submit_action(player_id, payload)
        elif msg_type == MessageType.ADVANCE_PHASE:
            result = await session.advance_phase()
        elif msg_type == MessageType.LEAVE_MATCH:
            result = await session.remove_player(player_id)
            room.clients.pop(player_id, None)
        elif msg_type == MessageType.GET_STATE:
            await room.send_to(player_id, create_message(MessageType.MATCH_STATE, {
                "player_id": player_id,
                "state": await session.get_snapshot(),
            }, match_id=match_id))
            return
        else:
            await ws.send(create_message(MessageType.ERROR,
                {"message": f"Unsupported message: {msg_type.value}"}))
            return

        await ws.send(create_message(MessageType.ACTION_RESULT, {
            "request": msg_type.value,
            "result": result.to_dict(),
        }, match_id=match_id))

    async def _handle_disconnect(self, match_id: str, player_id: str):
        room = self.rooms.get(match_id)
        if room is None or player_id not in room.clients:
            return
        snapshot = await room.session.get_snapshot()
        if snapshot["phase"] == Phase.LOBBY.value:
            room.clients.pop(player_id, None)
            await room.session.remove_player(player_id)
        else:
            # Keep for reconnection, just mark disconnected
            room.clients[player_id].connected = False
            await room.session.set_connected(player_id, False)
        if not room.clients:
            self.manager.close_match(match_id)
            del self.rooms[match_id]

    async def run(self):
        async with serve(self.handle_connection, self.host, self.port):
            logger.info("Server running on ws://%s:%s", self.host, self.port)
            await asyncio.Future()  # run forever


async def main(host: str = "localhost", port: int = 8765, config: Optional[GameConfig] = None):
    server = GameServer(host, port, config=config)
    await server.run()
