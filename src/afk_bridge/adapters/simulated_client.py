from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..core.config import ConnectionOptions
from ..core.ports import GameEventSink

logger = logging.getLogger(__name__)


class SimulatedGameClient:
    """In-process stand-in for a real game connection.

    Joins shortly after creation and then only reacts to the helper methods
    (``move_to``, ``set_health``, ``show_players``, ``drop``). Useful for
    demos and for running the bridge without a game server.
    """

    def __init__(
        self,
        options: ConnectionOptions,
        sink: GameEventSink,
        *,
        join_delay_seconds: float = 0.05,
        world: str = "overworld",
    ):
        self.options = options
        self.sink = sink
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.closed = False
        self._world = world
        self._handle: asyncio.TimerHandle | None = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            self._handle = loop.call_later(join_delay_seconds, self._join)

    def _join(self) -> None:
        self._handle = None
        if self.closed:
            return
        logger.info("Simulated client joined %s as %s", self.options.server, self.options.username)
        self.sink.on_join()
        self.sink.on_world(self._world)
        self.sink.on_move({"position": {"x": 0.0, "y": 64.0, "z": 0.0}})
        self.sink.on_spawn()

    # GameClientPort

    def queue(self, packet_name: str, payload: dict[str, Any]) -> None:
        if self.closed:
            raise ConnectionError("simulated client is closed")
        self.sent.append((packet_name, payload))
        command = str(payload.get("command", ""))
        if command.startswith("/say "):
            self.sink.on_chat(self.options.username, command[len("/say "):])

    def disconnect(self) -> None:
        self.closed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    # Scripted telemetry

    def move_to(self, x: float, y: float, z: float) -> None:
        self.sink.on_move({"position": {"x": x, "y": y, "z": z}})

    def set_health(self, health: int) -> None:
        self.sink.on_health({"health": health})

    def show_players(self, *players: tuple[str, float, float, float] | str) -> None:
        records = []
        for player in players:
            if isinstance(player, str):
                records.append({"username": player})
            else:
                name, x, y, z = player
                records.append({"username": name, "position": {"x": x, "y": y, "z": z}})
        self.sink.on_player_list({"records": records})

    def drop(self, reason: str = "connection lost") -> None:
        self.closed = True
        self.sink.on_disconnect(reason)


def create_simulated_client(options: ConnectionOptions, sink: GameEventSink) -> SimulatedGameClient:
    return SimulatedGameClient(options, sink)
