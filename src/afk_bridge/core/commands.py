from __future__ import annotations

import logging
from typing import Any

from .errors import InvalidCommandError, NotConnectedError
from .session import SessionManager
from .types import CommandResult, ConnectionState, OperatorRef, SessionStatus

MAX_CHAT_LENGTH = 256

logger = logging.getLogger(__name__)


def validate_chat_text(text: Any) -> str:
    if not isinstance(text, str):
        raise InvalidCommandError("Invalid message")
    text = text.strip()
    if not text:
        raise InvalidCommandError("Invalid message")
    if len(text) > MAX_CHAT_LENGTH:
        raise InvalidCommandError(f"Message longer than {MAX_CHAT_LENGTH} characters")
    return text


class CommandSurface:
    """Operator commands shared by every front end (HTTP, slash commands, buttons)."""

    def __init__(self, manager: SessionManager):
        self._manager = manager

    @property
    def manager(self) -> SessionManager:
        return self._manager

    async def connect(self, operator: OperatorRef | None = None) -> CommandResult:
        result = await self._manager.request_connect(operator)
        logger.info("connect requested by %s: %s", _who(operator), result.message)
        return result

    async def disconnect(self, operator: OperatorRef | None = None) -> CommandResult:
        result = await self._manager.request_disconnect(reason=f"operator:{_who(operator)}")
        logger.info("disconnect requested by %s", _who(operator))
        return result

    async def send_chat(self, text: Any) -> CommandResult:
        try:
            message = validate_chat_text(text)
            if self._manager.session.state is not ConnectionState.CONNECTED:
                raise NotConnectedError("Bot not connected")
        except (InvalidCommandError, NotConnectedError) as exc:
            return CommandResult(False, str(exc))
        return await self._manager.send_chat(message)

    async def set_safety(self, enabled: Any) -> CommandResult:
        if not isinstance(enabled, bool):
            return CommandResult(False, "enabled must be a boolean")
        return await self._manager.set_safety_enabled(enabled)

    async def get_status(self) -> SessionStatus:
        return await self._manager.get_status()


def _who(operator: OperatorRef | None) -> str:
    if operator is None:
        return "api"
    return operator.display_name or operator.id
