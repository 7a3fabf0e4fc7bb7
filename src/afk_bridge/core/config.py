from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigError


@dataclass(frozen=True)
class ConnectionOptions:
    host: str = "donutsmp.net"
    port: int = 19132
    username: str = ""
    auth: str = "microsoft"
    offline: bool = False
    profiles_folder: str = "./profiles"

    @property
    def server(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class SafetyConfig:
    enabled: bool = False
    proximity_radius: float = 50.0
    min_health: int = 10
    alert_cooldown_ms: int = 30_000
    auto_disconnect_on_threat: bool = True
    auto_disconnect_health: int = 6

    @property
    def alert_cooldown_seconds(self) -> float:
        return self.alert_cooldown_ms / 1000.0


@dataclass(frozen=True)
class PlayerRoster:
    trusted: frozenset[str] = frozenset()
    blocked: frozenset[str] = frozenset()

    def is_trusted(self, player: str) -> bool:
        return player in self.trusted

    def is_blocked(self, player: str) -> bool:
        return player in self.blocked


@dataclass(frozen=True)
class SessionConfig:
    max_reconnect_attempts: int = 10_000
    reconnect_delay_base_seconds: float = 15.0
    arrival_command: str = ""
    arrival_delay_seconds: float = 5.0
    safety_sweep_interval_seconds: float = 10.0
    status_refresh_interval_seconds: float = 30.0
    threat_disconnect_delay_seconds: float = 1.0
    health_disconnect_delay_seconds: float = 0.5


@dataclass(frozen=True)
class WebConfig:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 5000


@dataclass(frozen=True)
class DiscordConfig:
    token: str = ""
    channel_id: int | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.token)


@dataclass(frozen=True)
class BridgeConfig:
    connection: ConnectionOptions = field(default_factory=ConnectionOptions)
    session: SessionConfig = field(default_factory=SessionConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    roster: PlayerRoster = field(default_factory=PlayerRoster)
    web: WebConfig = field(default_factory=WebConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    game_client_factory: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "BridgeConfig":
        env = os.environ if environ is None else environ
        return cls(
            connection=ConnectionOptions(
                host=_str(env, "MC_HOST", "donutsmp.net"),
                port=_int(env, "MC_PORT", 19132),
                username=_str(env, "MC_USERNAME", ""),
                auth=_str(env, "MC_AUTH", "microsoft"),
                offline=_bool(env, "MC_OFFLINE", False),
                profiles_folder=_str(env, "MC_PROFILES_FOLDER", "./profiles"),
            ),
            session=SessionConfig(
                max_reconnect_attempts=max(0, _int(env, "MAX_RECONNECT_ATTEMPTS", 10_000)),
                reconnect_delay_base_seconds=max(0.0, _int(env, "RECONNECT_DELAY_MS", 15_000) / 1000.0),
                arrival_command=_str(env, "ARRIVAL_COMMAND", ""),
                arrival_delay_seconds=max(0.0, _float(env, "ARRIVAL_DELAY_SECONDS", 5.0)),
            ),
            safety=SafetyConfig(
                enabled=_bool(env, "SAFETY_ENABLED", False),
                proximity_radius=_float(env, "SAFETY_PROXIMITY_RADIUS", 50.0),
                min_health=_int(env, "SAFETY_MIN_HEALTH", 10),
                alert_cooldown_ms=max(0, _int(env, "SAFETY_ALERT_COOLDOWN_MS", 30_000)),
                auto_disconnect_on_threat=_bool(env, "SAFETY_AUTO_DISCONNECT_ON_THREAT", True),
                auto_disconnect_health=_int(env, "SAFETY_AUTO_DISCONNECT_HEALTH", 6),
            ),
            roster=PlayerRoster(
                trusted=_name_set(env.get("TRUSTED_PLAYERS")),
                blocked=_name_set(env.get("BLOCKED_PLAYERS")),
            ),
            web=WebConfig(
                enabled=_bool(env, "WEB_ENABLED", True),
                host=_str(env, "WEB_HOST", "0.0.0.0"),
                port=_int(env, "PORT", 5000),
            ),
            discord=DiscordConfig(
                token=_str(env, "DISCORD_BOT_TOKEN", ""),
                channel_id=_optional_int(env, "DISCORD_CHANNEL_ID"),
            ),
            game_client_factory=_str(env, "GAME_CLIENT_FACTORY", ""),
            log_level=_str(env, "LOG_LEVEL", "INFO").upper(),
        )


def _name_set(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(name.strip() for name in raw.split(",") if name.strip())


def _str(env: Mapping[str, str], key: str, default: str) -> str:
    value = env.get(key)
    if value is None:
        return default
    return value.strip()


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _optional_int(env: Mapping[str, str], key: str) -> int | None:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    return _int(env, key, 0)


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    token = raw.strip().lower()
    if token in ("1", "true", "yes", "on"):
        return True
    if token in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}")
