from __future__ import annotations

import pytest

from afk_bridge.core.config import BridgeConfig
from afk_bridge.core.errors import ConfigError


def test_defaults_without_environment():
    cfg = BridgeConfig.from_env({})
    assert cfg.connection.server == "donutsmp.net:19132"
    assert cfg.session.max_reconnect_attempts == 10_000
    assert cfg.session.reconnect_delay_base_seconds == 15.0
    assert cfg.safety.enabled is False
    assert cfg.safety.alert_cooldown_seconds == 30.0
    assert cfg.web.port == 5000
    assert cfg.discord.enabled is False
    assert cfg.game_client_factory == ""


def test_environment_overrides():
    cfg = BridgeConfig.from_env(
        {
            "MC_HOST": "play.example.net",
            "MC_PORT": "19133",
            "MC_USERNAME": "AfkBot",
            "MC_OFFLINE": "yes",
            "RECONNECT_DELAY_MS": "2500",
            "MAX_RECONNECT_ATTEMPTS": "3",
            "ARRIVAL_COMMAND": "/tpa friend",
            "SAFETY_ENABLED": "true",
            "SAFETY_AUTO_DISCONNECT_ON_THREAT": "off",
            "TRUSTED_PLAYERS": "Alice, Bob,,",
            "BLOCKED_PLAYERS": "Eve",
            "DISCORD_BOT_TOKEN": "token",
            "DISCORD_CHANNEL_ID": "1234",
            "PORT": "8080",
            "LOG_LEVEL": "debug",
        }
    )
    assert cfg.connection.server == "play.example.net:19133"
    assert cfg.connection.offline is True
    assert cfg.session.reconnect_delay_base_seconds == 2.5
    assert cfg.session.max_reconnect_attempts == 3
    assert cfg.session.arrival_command == "/tpa friend"
    assert cfg.safety.enabled is True
    assert cfg.safety.auto_disconnect_on_threat is False
    assert cfg.roster.trusted == frozenset({"Alice", "Bob"})
    assert cfg.roster.is_blocked("Eve")
    assert cfg.discord.enabled and cfg.discord.channel_id == 1234
    assert cfg.web.port == 8080
    assert cfg.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"MC_PORT": "abc"},
        {"SAFETY_ENABLED": "maybe"},
        {"SAFETY_PROXIMITY_RADIUS": "far"},
        {"DISCORD_CHANNEL_ID": "general"},
    ],
)
def test_bad_values_raise_config_error(env):
    with pytest.raises(ConfigError):
        BridgeConfig.from_env(env)
