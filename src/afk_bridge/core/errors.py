from __future__ import annotations


class BridgeError(Exception):
    pass


class ConfigError(BridgeError):
    pass


class ConnectError(BridgeError):
    """Game client could not be created."""


class NotConnectedError(BridgeError):
    pass


class InvalidCommandError(BridgeError):
    pass
