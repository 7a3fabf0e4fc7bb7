from __future__ import annotations

import asyncio
import importlib
import logging
import signal
from typing import Any

import uvicorn
from dotenv import load_dotenv

from .adapters.discord_gateway import DiscordGateway
from .adapters.http_api import create_app
from .adapters.simulated_client import create_simulated_client
from .core.commands import CommandSurface
from .core.config import BridgeConfig
from .core.errors import ConfigError
from .core.ports import GameClientFactory
from .core.session import SessionManager
from .core.types import Alert, OperatorRef, SessionStatus

logger = logging.getLogger(__name__)


def load_client_factory(target: str) -> GameClientFactory:
    """Resolve ``module:callable`` into a game client factory."""
    if not target:
        logger.warning("GAME_CLIENT_FACTORY not set; using the simulated game client")
        return create_simulated_client
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"GAME_CLIENT_FACTORY must look like 'module:callable', got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import game client module {module_name!r}: {exc}") from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigError(f"{target!r} does not name a callable")
    return factory


class LogNotifier:
    """Notifier used when no Discord token is configured."""

    async def send_direct(self, operator: OperatorRef, alert: Alert) -> None:
        logger.warning("[alert -> %s] %s: %s", operator.display_name or operator.id, alert.title, alert.description)

    async def broadcast(self, alert: Alert, *, undelivered_to: OperatorRef | None = None) -> None:
        logger.warning("[alert] %s: %s", alert.title, alert.description)

    async def post_status(self, status: SessionStatus) -> None:
        logger.debug("status: %s", status.to_dict())


class BridgeRuntime:
    """Owns every long-running piece and their shutdown order."""

    def __init__(self, config: BridgeConfig, *, client_factory: GameClientFactory | None = None):
        self.config = config
        self.gateway: DiscordGateway | None = None
        notifier: Any
        if config.discord.enabled:
            self.gateway = DiscordGateway(config.discord, server_host=config.connection.host)
            notifier = self.gateway
        else:
            notifier = LogNotifier()
        self.manager = SessionManager(
            config.connection,
            client_factory or load_client_factory(config.game_client_factory),
            notifier,
            session_config=config.session,
            safety_config=config.safety,
            roster=config.roster,
        )
        self.commands = CommandSurface(self.manager)
        if self.gateway is not None:
            self.gateway.attach(self.commands)
        self.server: uvicorn.Server | None = None
        if config.web.enabled:
            app = create_app(
                self.commands,
                service_info=self.gateway.service_info if self.gateway is not None else None,
            )
            self.server = uvicorn.Server(
                uvicorn.Config(
                    app,
                    host=config.web.host,
                    port=config.web.port,
                    log_level=config.log_level.lower(),
                )
            )
        self._stopping = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    def log_summary(self) -> None:
        cfg = self.config
        logger.info("afk-bridge starting")
        logger.info("  game server:  %s (auth=%s)", cfg.connection.server, cfg.connection.auth)
        logger.info("  username:     %s", cfg.connection.username or "<unset>")
        logger.info(
            "  safety:       %s (radius=%.0f, min_health=%d, auto_disconnect_health=%d)",
            "enabled" if cfg.safety.enabled else "disabled",
            cfg.safety.proximity_radius,
            cfg.safety.min_health,
            cfg.safety.auto_disconnect_health,
        )
        logger.info("  trusted:      %s", ", ".join(sorted(cfg.roster.trusted)) or "-")
        logger.info("  discord:      %s", "enabled" if self.gateway is not None else "disabled")
        if self.server is not None:
            logger.info("  web api:      http://%s:%d", cfg.web.host, cfg.web.port)
        else:
            logger.info("  web api:      disabled")

    async def run(self) -> None:
        self.log_summary()
        await self.manager.start()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop, sig.name)
            except (NotImplementedError, RuntimeError):
                logger.debug("Signal handlers unavailable for %s", sig.name)

        if self.gateway is not None:
            self._tasks.append(asyncio.create_task(self.gateway.start(), name="discord"))
        if self.server is not None:
            self._tasks.append(asyncio.create_task(self.server.serve(), name="web"))

        stop_wait = asyncio.create_task(self._stopping.wait(), name="stop-wait")
        try:
            done, _ = await asyncio.wait([stop_wait, *self._tasks], return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                if task is not stop_wait and not task.cancelled() and task.exception() is not None:
                    logger.error("%s stopped unexpectedly", task.get_name(), exc_info=task.exception())
        finally:
            stop_wait.cancel()
            await self.shutdown()

    def request_stop(self, reason: str = "stop") -> None:
        if not self._stopping.is_set():
            logger.info("Received %s, shutting down gracefully...", reason)
            self._stopping.set()

    async def shutdown(self) -> None:
        await self.manager.close()
        if self.gateway is not None:
            try:
                await self.gateway.close()
            except Exception:
                logger.exception("Error while closing Discord client")
        if self.server is not None:
            self.server.should_exit = True
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=5.0)
            for task in pending:
                task.cancel()
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks.clear()
        logger.info("Shutdown complete")


def main() -> None:
    load_dotenv()
    config = BridgeConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not config.discord.enabled and not config.web.enabled:
        raise RuntimeError("Nothing to control the bot with: set DISCORD_BOT_TOKEN or WEB_ENABLED=true")
    runtime = BridgeRuntime(config)
    asyncio.run(runtime.run())


if __name__ == "__main__":
    main()
