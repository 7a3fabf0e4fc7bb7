from __future__ import annotations

import asyncio

import pytest

from afk_bridge.core.commands import MAX_CHAT_LENGTH, CommandSurface, validate_chat_text
from afk_bridge.core.errors import InvalidCommandError
from afk_bridge.core.session import RECONNECT_KEY
from afk_bridge.core.types import OperatorRef


def test_validate_chat_text():
    assert validate_chat_text("  hi  ") == "hi"
    for bad in (None, "", "   ", 12, "x" * (MAX_CHAT_LENGTH + 1)):
        with pytest.raises(InvalidCommandError):
            validate_chat_text(bad)


def test_surface_round_trip(make_harness):
    async def run_test():
        h = make_harness()
        surface = CommandSurface(h.manager)
        await h.manager.start()

        result = await surface.send_chat("hello")
        assert result.to_dict() == {"success": False, "message": "Bot not connected"}
        assert (await surface.send_chat("")).message == "Invalid message"

        op = OperatorRef("7", "pilot")
        assert (await surface.connect(op)).message == "Connection initiated"
        assert h.manager.session.operator == op
        h.factory.latest.sink.on_join()
        await h.settle()

        assert (await surface.send_chat("hello")).ok
        assert h.factory.latest.commands == ["/say hello"]

        status = await surface.get_status()
        assert status.connected

        assert (await surface.disconnect(op)).ok
        assert not h.scheduler.is_pending(RECONNECT_KEY)
        assert h.manager.session.should_join is False
        await h.manager.close()

    asyncio.run(run_test())


def test_set_safety_requires_boolean(make_harness):
    async def run_test():
        h = make_harness()
        surface = CommandSurface(h.manager)
        await h.manager.start()
        bad = await surface.set_safety("yes")
        assert bad.ok is False
        good = await surface.set_safety(True)
        assert good.to_dict() == {"success": True, "message": "Safety monitoring enabled"}
        await h.manager.close()

    asyncio.run(run_test())
