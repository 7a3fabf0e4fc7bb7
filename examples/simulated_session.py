from __future__ import annotations

import asyncio
import json
import logging

from afk_bridge.adapters.simulated_client import SimulatedGameClient
from afk_bridge.core.commands import CommandSurface
from afk_bridge.core.config import ConnectionOptions, PlayerRoster, SafetyConfig, SessionConfig
from afk_bridge.core.session import SessionManager
from afk_bridge.core.types import OperatorRef


class PrintNotifier:
    async def send_direct(self, operator, alert):
        print(f"DM to {operator.display_name}: {alert.title}")
        print("   ", alert.description.replace("\n", "\n    "))

    async def broadcast(self, alert, *, undelivered_to=None):
        print(f"channel: {alert.title}")

    async def post_status(self, status):
        print("status:", status.to_dict()["state"])


async def main() -> None:
    logging.basicConfig(level=logging.INFO)
    clients: list[SimulatedGameClient] = []

    def factory(options, sink):
        client = SimulatedGameClient(options, sink, join_delay_seconds=0.1)
        clients.append(client)
        return client

    manager = SessionManager(
        ConnectionOptions(host="play.example.net", username="AfkBot"),
        factory,
        PrintNotifier(),
        session_config=SessionConfig(arrival_command="/tpa friend", arrival_delay_seconds=0.2),
        safety_config=SafetyConfig(enabled=True, auto_disconnect_health=6),
        roster=PlayerRoster(trusted=frozenset({"Alice"})),
    )
    commands = CommandSurface(manager)
    await manager.start()

    print((await commands.connect(OperatorRef("1", "owner"))).message)
    await asyncio.sleep(0.4)
    await manager.drain()

    client = clients[-1]
    print("sent:", client.sent)
    client.set_health(14)
    client.show_players("Alice")
    await manager.drain()

    client.set_health(4)
    await manager.drain()
    await asyncio.sleep(1.0)
    await manager.drain()

    print(json.dumps((await commands.get_status()).to_dict(), indent=2))
    await manager.close()


if __name__ == "__main__":
    asyncio.run(main())
