from __future__ import annotations

import asyncio

from afk_bridge.core.notify import AlertDispatcher
from afk_bridge.core.types import Alert, OperatorRef

from conftest import RecordingNotifier

ALERT = Alert(category="damage", title="🩸 Damage Taken", description="ouch")


class BrokenNotifier(RecordingNotifier):
    async def broadcast(self, alert, *, undelivered_to=None):
        raise RuntimeError("channel gone")


def test_direct_delivery_preferred():
    async def run_test():
        notifier = RecordingNotifier()
        op = OperatorRef("1", "owner")
        assert await AlertDispatcher(notifier).deliver(ALERT, op) is True
        assert notifier.direct == [(op, ALERT)]
        assert notifier.broadcasts == []

    asyncio.run(run_test())


def test_unknown_operator_broadcasts():
    async def run_test():
        notifier = RecordingNotifier()
        assert await AlertDispatcher(notifier).deliver(ALERT, None) is False
        assert notifier.broadcasts == [(ALERT, None)]

    asyncio.run(run_test())


def test_failures_never_escape():
    async def run_test():
        notifier = BrokenNotifier()
        notifier.fail_direct = True
        notifier.fail_status = True
        dispatcher = AlertDispatcher(notifier)
        assert await dispatcher.deliver(ALERT, OperatorRef("1")) is False
        await dispatcher.publish_status(object())

    asyncio.run(run_test())


def test_superseded_status_is_skipped():
    async def run_test():
        posted = []

        class SlowNotifier(RecordingNotifier):
            async def post_status(self, status):
                if not posted:
                    await asyncio.sleep(0.02)
                posted.append(status)

        dispatcher = AlertDispatcher(SlowNotifier())
        await asyncio.gather(
            dispatcher.publish_status("connecting"),
            dispatcher.publish_status("connected"),
            dispatcher.publish_status("disconnected"),
        )
        assert posted == ["connecting", "disconnected"]

    asyncio.run(run_test())
