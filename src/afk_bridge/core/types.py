from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

MAX_HEALTH = 20
UNKNOWN_WORLD = "Unknown"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Coordinates:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def rounded(self) -> tuple[int, int, int]:
        return round(self.x), round(self.y), round(self.z)

    def distance_to(self, other: "Coordinates") -> float:
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2) ** 0.5


@dataclass(frozen=True)
class WorldSnapshot:
    world: str = UNKNOWN_WORLD
    position: Coordinates = field(default_factory=Coordinates)
    health: int = MAX_HEALTH
    nearby_players: frozenset[str] = frozenset()

    @classmethod
    def unknown(cls) -> "WorldSnapshot":
        return cls()


@dataclass(frozen=True)
class OperatorRef:
    """Identity of the operator to notify. Lookup key only."""

    id: str
    display_name: str = ""


@dataclass(frozen=True)
class AuthPrompt:
    url: str
    code: str


@dataclass(frozen=True)
class Alert:
    category: str
    title: str
    description: str
    severity: AlertSeverity = AlertSeverity.WARNING
    urgent: bool = False
    snapshot: Optional[WorldSnapshot] = None


@dataclass
class SafetyVerdict:
    alerts: list[Alert] = field(default_factory=list)
    disconnect_reason: Optional[str] = None
    disconnect_delay_seconds: float = 0.0

    @property
    def requests_disconnect(self) -> bool:
        return self.disconnect_reason is not None


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.ok, "message": self.message}


@dataclass(frozen=True)
class SessionStatus:
    state: ConnectionState
    should_join: bool
    reconnect_attempts: int
    max_reconnect_attempts: int
    snapshot: WorldSnapshot
    safety_enabled: bool
    server: str
    username: str
    auth_prompt: Optional[AuthPrompt] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def auth_required(self) -> bool:
        return self.auth_prompt is not None

    def to_dict(self) -> dict[str, Any]:
        pos = self.snapshot.position
        return {
            "state": self.state.value,
            "connected": self.connected,
            "should_join": self.should_join,
            "server": self.server,
            "username": self.username,
            "world": self.snapshot.world,
            "coords": {"x": pos.x, "y": pos.y, "z": pos.z},
            "health": self.snapshot.health,
            "nearby_players": sorted(self.snapshot.nearby_players),
            "reconnect_attempts": self.reconnect_attempts,
            "max_reconnect_attempts": self.max_reconnect_attempts,
            "safety_enabled": self.safety_enabled,
            "auth_required": self.auth_required,
        }
