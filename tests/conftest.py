from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import pytest

from afk_bridge.core.config import ConnectionOptions, PlayerRoster, SafetyConfig, SessionConfig
from afk_bridge.core.session import SessionManager


class FakeGameClient:
    def __init__(self, options, sink):
        self.options = options
        self.sink = sink
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.disconnect_calls = 0
        self.fail_queue = False

    def queue(self, packet_name, payload):
        if self.fail_queue:
            raise ConnectionError("socket closed")
        self.sent.append((packet_name, payload))

    def disconnect(self):
        self.disconnect_calls += 1

    @property
    def commands(self) -> list[str]:
        return [payload["command"] for name, payload in self.sent if name == "command_request"]


class FakeClientFactory:
    def __init__(self):
        self.clients: list[FakeGameClient] = []
        self.fail_next = 0

    def __call__(self, options, sink):
        if self.fail_next:
            self.fail_next -= 1
            raise ConnectionRefusedError("server unreachable")
        client = FakeGameClient(options, sink)
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeGameClient:
        return self.clients[-1]


class RecordingNotifier:
    def __init__(self):
        self.direct: list[tuple[Any, Any]] = []
        self.broadcasts: list[tuple[Any, Any]] = []
        self.statuses: list[Any] = []
        self.fail_direct = False
        self.fail_status = False

    async def send_direct(self, operator, alert):
        if self.fail_direct:
            raise RuntimeError("DMs closed")
        self.direct.append((operator, alert))

    async def broadcast(self, alert, *, undelivered_to=None):
        self.broadcasts.append((alert, undelivered_to))

    async def post_status(self, status):
        if self.fail_status:
            raise RuntimeError("message deleted")
        self.statuses.append(status)

    @property
    def alerts(self):
        return [alert for _, alert in self.direct] + [alert for alert, _ in self.broadcasts]

    def titles(self) -> list[str]:
        return [alert.title for alert in self.alerts]


class ManualScheduler:
    """Records timers; tests fire them explicitly."""

    def __init__(self):
        self.pending: dict[str, tuple[float, Callable[[], None], bool]] = {}
        self.history: list[tuple[str, float]] = []

    def schedule(self, key, delay_seconds, callback):
        self.pending[key] = (delay_seconds, callback, False)
        self.history.append((key, delay_seconds))

    def schedule_repeating(self, key, interval_seconds, callback):
        self.pending[key] = (interval_seconds, callback, True)
        self.history.append((key, interval_seconds))

    def cancel(self, key):
        return self.pending.pop(key, None) is not None

    def cancel_prefix(self, prefix):
        keys = [key for key in self.pending if key.startswith(prefix)]
        for key in keys:
            self.pending.pop(key)
        return len(keys)

    def is_pending(self, key):
        return key in self.pending

    def cancel_all(self):
        return self.cancel_prefix("")

    def fire(self, key):
        _delay, callback, repeating = self.pending[key]
        if not repeating:
            del self.pending[key]
        callback()

    def delays(self, key) -> list[float]:
        return [delay for k, delay in self.history if k == key]

    def keys_with_prefix(self, prefix) -> list[str]:
        return sorted(key for key in self.pending if key.startswith(prefix))


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Harness:
    manager: SessionManager
    factory: FakeClientFactory
    notifier: RecordingNotifier
    scheduler: ManualScheduler
    clock: FakeClock

    async def fire(self, key: str) -> None:
        self.scheduler.fire(key)
        await self.manager.drain()

    async def settle(self) -> None:
        await self.manager.drain()


@pytest.fixture()
def fake_clock():
    return FakeClock()


@pytest.fixture()
def make_harness(fake_clock):
    def _make(
        *,
        session_config: SessionConfig | None = None,
        safety_config: SafetyConfig | None = None,
        roster: PlayerRoster | None = None,
        username: str = "AfkBot",
    ) -> Harness:
        factory = FakeClientFactory()
        notifier = RecordingNotifier()
        scheduler = ManualScheduler()
        manager = SessionManager(
            ConnectionOptions(host="play.example.net", port=19132, username=username),
            factory,
            notifier,
            session_config=session_config or SessionConfig(),
            safety_config=safety_config or SafetyConfig(),
            roster=roster or PlayerRoster(),
            scheduler=scheduler,
            clock=fake_clock,
        )
        return Harness(manager, factory, notifier, scheduler, fake_clock)

    return _make
