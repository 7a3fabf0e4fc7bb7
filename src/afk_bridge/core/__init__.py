from .commands import CommandSurface, validate_chat_text
from .config import (
    BridgeConfig,
    ConnectionOptions,
    DiscordConfig,
    PlayerRoster,
    SafetyConfig,
    SessionConfig,
    WebConfig,
)
from .errors import BridgeError, ConfigError, ConnectError, InvalidCommandError, NotConnectedError
from .notify import AlertDispatcher
from .ports import GameClientFactory, GameClientPort, GameEventSink, NotifierPort, SchedulerPort
from .safety import AlertThrottle, SafetyMonitor, annotate_player
from .scheduler import TaskScheduler
from .session import Session, SessionManager, reconnect_delay
from .telemetry import TelemetryIngest
from .types import (
    Alert,
    AlertSeverity,
    AuthPrompt,
    CommandResult,
    ConnectionState,
    Coordinates,
    OperatorRef,
    SafetyVerdict,
    SessionStatus,
    WorldSnapshot,
)

__all__ = [
    "CommandSurface",
    "validate_chat_text",
    "BridgeConfig",
    "ConnectionOptions",
    "DiscordConfig",
    "PlayerRoster",
    "SafetyConfig",
    "SessionConfig",
    "WebConfig",
    "BridgeError",
    "ConfigError",
    "ConnectError",
    "InvalidCommandError",
    "NotConnectedError",
    "AlertDispatcher",
    "GameClientFactory",
    "GameClientPort",
    "GameEventSink",
    "NotifierPort",
    "SchedulerPort",
    "AlertThrottle",
    "SafetyMonitor",
    "annotate_player",
    "TaskScheduler",
    "Session",
    "SessionManager",
    "reconnect_delay",
    "TelemetryIngest",
    "Alert",
    "AlertSeverity",
    "AuthPrompt",
    "CommandResult",
    "ConnectionState",
    "Coordinates",
    "OperatorRef",
    "SafetyVerdict",
    "SessionStatus",
    "WorldSnapshot",
]
