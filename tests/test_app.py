from __future__ import annotations

import asyncio

import pytest

from afk_bridge.adapters.simulated_client import create_simulated_client
from afk_bridge.app import BridgeRuntime, LogNotifier, load_client_factory
from afk_bridge.core.config import BridgeConfig
from afk_bridge.core.errors import ConfigError
from afk_bridge.core.types import Alert, OperatorRef


def test_load_client_factory():
    assert load_client_factory("") is create_simulated_client
    assert (
        load_client_factory("afk_bridge.adapters.simulated_client:create_simulated_client")
        is create_simulated_client
    )
    for bad in ("no_colon", "afk_bridge.missing_module:factory", "afk_bridge.app:NOT_THERE"):
        with pytest.raises(ConfigError):
            load_client_factory(bad)


def test_runtime_without_discord_or_web_starts_and_stops():
    async def run_test():
        config = BridgeConfig.from_env({"WEB_ENABLED": "false", "MC_USERNAME": "AfkBot"})
        runtime = BridgeRuntime(config)
        assert runtime.gateway is None
        assert runtime.server is None

        task = asyncio.create_task(runtime.run())
        await asyncio.sleep(0.01)
        assert runtime.manager.running
        result = await runtime.commands.connect()
        assert result.ok
        runtime.request_stop("test")
        await asyncio.wait_for(task, timeout=2.0)
        assert not runtime.manager.running

    asyncio.run(run_test())


def test_log_notifier_accepts_every_call():
    async def run_test():
        notifier = LogNotifier()
        alert = Alert(category="damage", title="🩸 Damage Taken", description="ouch")
        await notifier.send_direct(OperatorRef("1", "owner"), alert)
        await notifier.broadcast(alert, undelivered_to=None)
        runtime = BridgeRuntime(BridgeConfig.from_env({"WEB_ENABLED": "0"}), client_factory=create_simulated_client)
        await notifier.post_status(runtime.manager.status())

    asyncio.run(run_test())
