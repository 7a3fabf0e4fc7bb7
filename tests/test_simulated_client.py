from __future__ import annotations

import asyncio

from afk_bridge.adapters.simulated_client import SimulatedGameClient
from afk_bridge.core.config import ConnectionOptions, PlayerRoster, SafetyConfig
from afk_bridge.core.session import SessionManager
from afk_bridge.core.types import ConnectionState, OperatorRef

from conftest import ManualScheduler, RecordingNotifier


def test_simulated_client_drives_a_session():
    async def run_test():
        clients = []

        def factory(options, sink):
            client = SimulatedGameClient(options, sink, join_delay_seconds=0.0, world="overworld")
            clients.append(client)
            return client

        notifier = RecordingNotifier()
        manager = SessionManager(
            ConnectionOptions(username="AfkBot"),
            factory,
            notifier,
            safety_config=SafetyConfig(enabled=True, auto_disconnect_on_threat=False),
            roster=PlayerRoster(trusted=frozenset({"Alice"})),
            scheduler=ManualScheduler(),
        )
        await manager.start()
        await manager.request_connect(OperatorRef("1", "owner"))
        await asyncio.sleep(0.01)
        await manager.drain()

        assert manager.session.state is ConnectionState.CONNECTED
        assert manager.snapshot.world == "overworld"
        assert manager.snapshot.position.y == 64.0

        client = clients[0]
        client.show_players("Alice", ("Bob", 3.0, 64.0, 4.0))
        await manager.drain()
        assert manager.snapshot.nearby_players == frozenset({"Alice", "Bob"})
        assert "⚠️ Player Proximity Alert" in notifier.titles()

        assert (await manager.send_chat("hi")).ok
        assert client.sent[0][1]["command"] == "/say hi"

        client.drop()
        await manager.drain()
        assert manager.session.state is ConnectionState.DISCONNECTED
        assert manager.session.reconnect_attempts == 1
        await manager.close()

    asyncio.run(run_test())


def test_disconnect_before_join_cancels_join():
    async def run_test():
        joined = []

        class Sink:
            def __getattr__(self, name):
                return lambda *args: joined.append(name)

        client = SimulatedGameClient(ConnectionOptions(), Sink(), join_delay_seconds=0.01)
        client.disconnect()
        await asyncio.sleep(0.03)
        assert joined == []
        assert client.closed

    asyncio.run(run_test())
