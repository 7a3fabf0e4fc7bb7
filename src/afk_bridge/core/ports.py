from __future__ import annotations

from typing import Any, Callable, Protocol

from .config import ConnectionOptions
from .types import Alert, OperatorRef, SessionStatus


class GameEventSink(Protocol):
    """Callbacks a game client invokes. Safe to call from any thread."""

    def on_join(self) -> None:
        ...

    def on_spawn(self) -> None:
        ...

    def on_world(self, name: str) -> None:
        ...

    def on_move(self, packet: Any) -> None:
        ...

    def on_health(self, packet: Any) -> None:
        ...

    def on_player_list(self, packet: Any) -> None:
        ...

    def on_chat(self, sender: str, message: str) -> None:
        ...

    def on_auth_prompt(self, url: str, code: str) -> None:
        ...

    def on_disconnect(self, reason: Any = None) -> None:
        ...

    def on_kick(self, reason: Any = None) -> None:
        ...

    def on_error(self, error: BaseException | str) -> None:
        ...


class GameClientPort(Protocol):
    def queue(self, packet_name: str, payload: dict[str, Any]) -> None:
        ...

    def disconnect(self) -> None:
        ...


class GameClientFactory(Protocol):
    def __call__(self, options: ConnectionOptions, sink: GameEventSink) -> GameClientPort:
        ...


class NotifierPort(Protocol):
    async def send_direct(self, operator: OperatorRef, alert: Alert) -> None:
        ...

    async def broadcast(self, alert: Alert, *, undelivered_to: OperatorRef | None = None) -> None:
        ...

    async def post_status(self, status: SessionStatus) -> None:
        ...


class SchedulerPort(Protocol):
    def schedule(self, key: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        ...

    def schedule_repeating(self, key: str, interval_seconds: float, callback: Callable[[], None]) -> None:
        ...

    def cancel(self, key: str) -> bool:
        ...

    def cancel_prefix(self, prefix: str) -> int:
        ...

    def is_pending(self, key: str) -> bool:
        ...

    def cancel_all(self) -> int:
        ...
