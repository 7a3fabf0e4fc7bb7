from __future__ import annotations

import asyncio
import logging

from .ports import NotifierPort
from .types import Alert, OperatorRef, SessionStatus


class AlertDispatcher:
    """Delivers alerts to the operator with a broadcast fallback.

    Nothing raised by the notifier escapes this class. Status pushes are
    serialised and a push that has been superseded while waiting is skipped,
    so the last status posted is always the newest one.
    """

    def __init__(self, notifier: NotifierPort, logger: logging.Logger | None = None):
        self._notifier = notifier
        self._logger = logger or logging.getLogger(__name__)
        self._status_lock = asyncio.Lock()
        self._status_seq = 0

    async def deliver(self, alert: Alert, operator: OperatorRef | None) -> bool:
        """Return ``True`` when the operator received the alert directly."""
        if operator is not None:
            try:
                await self._notifier.send_direct(operator, alert)
                return True
            except Exception as exc:
                self._logger.warning(
                    "Direct alert to %s failed, falling back to broadcast: %s",
                    operator.display_name or operator.id,
                    exc,
                )
        else:
            self._logger.info("No operator on record for alert %r; broadcasting", alert.title)

        try:
            await self._notifier.broadcast(alert, undelivered_to=operator)
        except Exception:
            self._logger.debug("Fallback broadcast failed for alert %r", alert.title, exc_info=True)
        return False

    async def publish_status(self, status: SessionStatus) -> None:
        self._status_seq += 1
        seq = self._status_seq
        async with self._status_lock:
            if seq != self._status_seq:
                return
            try:
                await self._notifier.post_status(status)
            except Exception:
                self._logger.warning("Status update failed", exc_info=True)
