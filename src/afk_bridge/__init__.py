from .core.commands import CommandSurface
from .core.config import BridgeConfig, ConnectionOptions, PlayerRoster, SafetyConfig, SessionConfig
from .core.ports import GameClientFactory, GameClientPort, GameEventSink, NotifierPort
from .core.session import SessionManager
from .core.types import Alert, AlertSeverity, CommandResult, ConnectionState, OperatorRef, SessionStatus, WorldSnapshot

__all__ = [
    "SessionManager",
    "CommandSurface",
    "BridgeConfig",
    "ConnectionOptions",
    "PlayerRoster",
    "SafetyConfig",
    "SessionConfig",
    "GameClientFactory",
    "GameClientPort",
    "GameEventSink",
    "NotifierPort",
    "Alert",
    "AlertSeverity",
    "CommandResult",
    "ConnectionState",
    "OperatorRef",
    "SessionStatus",
    "WorldSnapshot",
]
