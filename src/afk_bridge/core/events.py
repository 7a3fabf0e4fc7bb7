from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

from .types import OperatorRef


@dataclass(frozen=True)
class ClientEvent:
    generation: int


@dataclass(frozen=True)
class ClientJoined(ClientEvent):
    pass


@dataclass(frozen=True)
class ClientSpawned(ClientEvent):
    pass


@dataclass(frozen=True)
class WorldChanged(ClientEvent):
    name: Any = None


@dataclass(frozen=True)
class PositionChanged(ClientEvent):
    packet: Any = None


@dataclass(frozen=True)
class HealthChanged(ClientEvent):
    packet: Any = None


@dataclass(frozen=True)
class PlayerListChanged(ClientEvent):
    packet: Any = None


@dataclass(frozen=True)
class ChatReceived(ClientEvent):
    sender: str = ""
    message: str = ""


@dataclass(frozen=True)
class AuthPromptReceived(ClientEvent):
    url: str = ""
    code: str = ""


@dataclass(frozen=True)
class ClientDisconnected(ClientEvent):
    kind: str = "disconnect"
    reason: Any = None


@dataclass(frozen=True)
class ReconnectDue:
    generation: int


@dataclass(frozen=True)
class ArrivalDue:
    generation: int


@dataclass(frozen=True)
class AutoDisconnectDue:
    generation: int
    reason: str


@dataclass(frozen=True)
class SafetySweep:
    pass


@dataclass(frozen=True)
class StatusRefresh:
    pass


@dataclass(eq=False)
class Command:
    future: Optional[asyncio.Future] = field(default=None, repr=False)


@dataclass(eq=False)
class ConnectRequested(Command):
    operator: Optional[OperatorRef] = None


@dataclass(eq=False)
class DisconnectRequested(Command):
    reason: str = "operator"


@dataclass(eq=False)
class ChatRequested(Command):
    text: str = ""


@dataclass(eq=False)
class SafetyToggleRequested(Command):
    enabled: bool = False


@dataclass(eq=False)
class StatusRequested(Command):
    pass
