from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from .config import ConnectionOptions, PlayerRoster, SafetyConfig, SessionConfig
from .errors import BridgeError, ConnectError
from .events import (
    ArrivalDue,
    AuthPromptReceived,
    AutoDisconnectDue,
    ChatReceived,
    ChatRequested,
    ClientDisconnected,
    ClientEvent,
    ClientJoined,
    ClientSpawned,
    Command,
    ConnectRequested,
    DisconnectRequested,
    HealthChanged,
    PlayerListChanged,
    PositionChanged,
    ReconnectDue,
    SafetySweep,
    SafetyToggleRequested,
    StatusRefresh,
    StatusRequested,
    WorldChanged,
)
from .notify import AlertDispatcher
from .ports import GameClientFactory, GameClientPort, NotifierPort, SchedulerPort
from .safety import SafetyMonitor
from .scheduler import TaskScheduler
from .telemetry import TelemetryIngest
from .types import (
    Alert,
    AlertSeverity,
    AuthPrompt,
    CommandResult,
    ConnectionState,
    OperatorRef,
    SafetyVerdict,
    SessionStatus,
    WorldSnapshot,
)

RECONNECT_KEY = "reconnect"
SAFETY_SWEEP_KEY = "safety-sweep"
STATUS_REFRESH_KEY = "status-refresh"
BACKOFF_CAP = 5


def reconnect_delay(base_seconds: float, attempts: int) -> float:
    return base_seconds * min(attempts, BACKOFF_CAP)


def arrival_key(generation: int) -> str:
    return f"arrival:{generation}"


def auto_disconnect_key(generation: int) -> str:
    return f"auto-disconnect:{generation}"


@dataclass
class Session:
    state: ConnectionState = ConnectionState.DISCONNECTED
    should_join: bool = False
    reconnect_attempts: int = 0
    generation: int = 0
    client: Optional[GameClientPort] = None
    operator: Optional[OperatorRef] = None
    auth_prompt: Optional[AuthPrompt] = None


class _ClientSink:
    """Per-generation bridge from game-client callbacks to the event queue."""

    def __init__(self, manager: "SessionManager", generation: int):
        self._manager = manager
        self._generation = generation

    def on_join(self) -> None:
        self._manager.submit(ClientJoined(self._generation))

    def on_spawn(self) -> None:
        self._manager.submit(ClientSpawned(self._generation))

    def on_world(self, name: str) -> None:
        self._manager.submit(WorldChanged(self._generation, name=name))

    def on_move(self, packet: Any) -> None:
        self._manager.submit(PositionChanged(self._generation, packet=packet))

    def on_health(self, packet: Any) -> None:
        self._manager.submit(HealthChanged(self._generation, packet=packet))

    def on_player_list(self, packet: Any) -> None:
        self._manager.submit(PlayerListChanged(self._generation, packet=packet))

    def on_chat(self, sender: str, message: str) -> None:
        self._manager.submit(ChatReceived(self._generation, sender=sender, message=message))

    def on_auth_prompt(self, url: str, code: str) -> None:
        self._manager.submit(AuthPromptReceived(self._generation, url=url, code=code))

    def on_disconnect(self, reason: Any = None) -> None:
        self._manager.submit(ClientDisconnected(self._generation, kind="disconnect", reason=reason))

    def on_kick(self, reason: Any = None) -> None:
        self._manager.submit(ClientDisconnected(self._generation, kind="kick", reason=reason))

    def on_error(self, error: BaseException | str) -> None:
        self._manager.submit(ClientDisconnected(self._generation, kind="error", reason=error))


class SessionManager:
    """Owns the single game session.

    Every mutation of ``Session`` happens inside the consumer task started by
    :meth:`start`. Game-client callbacks, timers and operator commands only
    enqueue events, so there is exactly one writer.
    """

    def __init__(
        self,
        options: ConnectionOptions,
        client_factory: GameClientFactory,
        notifier: NotifierPort,
        *,
        session_config: SessionConfig | None = None,
        safety_config: SafetyConfig | None = None,
        roster: PlayerRoster | None = None,
        scheduler: SchedulerPort | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._options = options
        self._client_factory = client_factory
        self._config = session_config or SessionConfig()
        safety_config = safety_config or SafetyConfig()
        self._dispatcher = AlertDispatcher(notifier)
        self._scheduler: SchedulerPort = scheduler or TaskScheduler()
        self._monitor = SafetyMonitor(
            safety_config,
            roster or PlayerRoster(),
            clock=clock,
            threat_disconnect_delay_seconds=self._config.threat_disconnect_delay_seconds,
            health_disconnect_delay_seconds=self._config.health_disconnect_delay_seconds,
        )
        self._ingest = TelemetryIngest(options.username, safety_config.proximity_radius)
        self._session = Session()
        self._logger = logging.getLogger(__name__)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._handlers: dict[type, Callable[[Any], None]] = {
            ClientJoined: self._on_joined,
            ClientSpawned: self._on_spawned,
            WorldChanged: self._on_world,
            PositionChanged: self._on_position,
            HealthChanged: self._on_health,
            PlayerListChanged: self._on_player_list,
            ChatReceived: self._on_chat,
            AuthPromptReceived: self._on_auth_prompt,
            ClientDisconnected: self._on_client_disconnected,
            ReconnectDue: self._on_reconnect_due,
            ArrivalDue: self._on_arrival_due,
            AutoDisconnectDue: self._on_auto_disconnect_due,
            SafetySweep: self._on_safety_sweep,
            StatusRefresh: self._on_status_refresh,
            ConnectRequested: self._on_connect_requested,
            DisconnectRequested: self._on_disconnect_requested,
            ChatRequested: self._on_chat_requested,
            SafetyToggleRequested: self._on_safety_toggle,
            StatusRequested: self._on_status_requested,
        }

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def snapshot(self) -> WorldSnapshot:
        return self._ingest.snapshot

    @property
    def safety(self) -> SafetyMonitor:
        return self._monitor

    @property
    def options(self) -> ConnectionOptions:
        return self._options

    @property
    def running(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def status(self) -> SessionStatus:
        s = self._session
        return SessionStatus(
            state=s.state,
            should_join=s.should_join,
            reconnect_attempts=s.reconnect_attempts,
            max_reconnect_attempts=self._config.max_reconnect_attempts,
            snapshot=self._ingest.snapshot,
            safety_enabled=self._monitor.config.enabled,
            server=self._options.server,
            username=self._options.username,
            auth_prompt=s.auth_prompt,
        )

    # ------------------------------------------------------------------
    # Lifecycle of the manager itself
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(), name="session-consumer")
        self._scheduler.schedule_repeating(
            SAFETY_SWEEP_KEY,
            self._config.safety_sweep_interval_seconds,
            lambda: self.submit(SafetySweep()),
        )
        self._scheduler.schedule_repeating(
            STATUS_REFRESH_KEY,
            self._config.status_refresh_interval_seconds,
            lambda: self.submit(StatusRefresh()),
        )

    async def close(self) -> None:
        cancelled = self._scheduler.cancel_all()
        self._logger.debug("Cancelled %d pending timers", cancelled)
        consumer = self._consumer
        self._consumer = None
        if consumer is not None and not consumer.done():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        self._fail_pending_commands()
        self._session.should_join = False
        self._teardown_client()
        self._session.state = ConnectionState.DISCONNECTED
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        self._loop = None

    async def drain(self) -> None:
        """Wait until every queued event and spawned notification finished."""
        while self._queue is not None:
            await self._queue.join()
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)
                continue
            if self._queue.empty():
                return

    def submit(self, event: Any) -> None:
        """Enqueue an event. Callable from any thread."""
        loop = self._loop
        queue = self._queue
        if loop is None or queue is None:
            self._logger.debug("Dropping %s; session manager is not running", type(event).__name__)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            queue.put_nowait(event)
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, event)
        except RuntimeError:
            self._logger.debug("Dropping %s; event loop is closed", type(event).__name__)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def request_connect(self, operator: OperatorRef | None = None) -> CommandResult:
        return await self._call(ConnectRequested(operator=operator))

    async def request_disconnect(self, reason: str = "operator") -> CommandResult:
        return await self._call(DisconnectRequested(reason=reason))

    async def send_chat(self, text: str) -> CommandResult:
        return await self._call(ChatRequested(text=text))

    async def set_safety_enabled(self, enabled: bool) -> CommandResult:
        return await self._call(SafetyToggleRequested(enabled=bool(enabled)))

    async def get_status(self) -> SessionStatus:
        return await self._call(StatusRequested())

    async def _call(self, command: Command) -> Any:
        if not self.running or self._loop is None:
            raise BridgeError("session manager is not running")
        command.future = self._loop.create_future()
        self.submit(command)
        return await command.future

    def _fail_pending_commands(self) -> None:
        queue = self._queue
        if queue is None:
            return
        while not queue.empty():
            event = queue.get_nowait()
            queue.task_done()
            if isinstance(event, Command) and event.future is not None and not event.future.done():
                event.future.set_exception(BridgeError("session manager closed"))

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                self._dispatch(event)
            except Exception as exc:
                self._logger.exception("Session event handler failed: %r", event)
                if isinstance(event, Command) and event.future is not None and not event.future.done():
                    event.future.set_exception(exc)
            finally:
                self._queue.task_done()

    def _dispatch(self, event: Any) -> None:
        if isinstance(event, ClientEvent) and event.generation != self._session.generation:
            self._logger.debug(
                "Dropping stale %s from generation %d (current %d)",
                type(event).__name__,
                event.generation,
                self._session.generation,
            )
            return
        handler = self._handlers.get(type(event))
        if handler is None:
            self._logger.warning("No handler for session event %r", event)
            return
        handler(event)

    @staticmethod
    def _resolve(command: Command, result: Any) -> None:
        if command.future is not None and not command.future.done():
            command.future.set_result(result)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        s = self._session
        if s.state is not ConnectionState.DISCONNECTED:
            self._logger.debug("Connect ignored while %s", s.state.value)
            return

        self._teardown_client()
        s.generation += 1
        s.state = ConnectionState.CONNECTING
        self._publish_status()
        self._logger.info(
            "Creating game client for %s as %s (generation %d)",
            self._options.server,
            self._options.username or "<unnamed>",
            s.generation,
        )
        try:
            client = self._client_factory(self._options, _ClientSink(self, s.generation))
            if client is None:
                raise ConnectError("game client factory returned no client")
        except Exception as exc:
            self._logger.error("Failed to create game client: %s", exc, exc_info=True)
            s.state = ConnectionState.DISCONNECTED
            s.client = None
            if s.should_join:
                self._attempt_reconnect()
            else:
                self._publish_status()
            return
        s.client = client

    def _teardown_client(self) -> None:
        s = self._session
        client = s.client
        s.client = None
        if client is None:
            return
        # Late callbacks from the closed client must not touch the new state.
        s.generation += 1
        try:
            client.disconnect()
        except Exception:
            self._logger.debug("Ignoring error while closing game client", exc_info=True)

    def _attempt_reconnect(self) -> None:
        s = self._session
        if not s.should_join:
            return
        if s.state is ConnectionState.CONNECTING:
            return

        max_attempts = self._config.max_reconnect_attempts
        if s.reconnect_attempts >= max_attempts:
            self._logger.warning("Giving up after %d reconnect attempts", s.reconnect_attempts)
            s.should_join = False
            self._publish_status()
            return

        s.reconnect_attempts += 1
        self._publish_status()
        delay = reconnect_delay(self._config.reconnect_delay_base_seconds, s.reconnect_attempts)
        self._logger.info(
            "Reconnect attempt %d/%d in %.1fs",
            s.reconnect_attempts,
            max_attempts,
            delay,
        )
        generation = s.generation
        self._scheduler.schedule(RECONNECT_KEY, delay, lambda: self.submit(ReconnectDue(generation)))

    def _disconnect(self, reason: str) -> None:
        s = self._session
        self._logger.info("Disconnecting session (%s)", reason)
        s.should_join = False
        s.reconnect_attempts = 0
        self._scheduler.cancel(RECONNECT_KEY)
        self._scheduler.cancel_prefix("arrival:")
        self._scheduler.cancel_prefix("auto-disconnect:")
        self._teardown_client()
        s.state = ConnectionState.DISCONNECTED
        self._ingest.reset()
        self._publish_status()

    # ------------------------------------------------------------------
    # Game client events
    # ------------------------------------------------------------------

    def _on_joined(self, event: ClientJoined) -> None:
        s = self._session
        if s.state is ConnectionState.CONNECTED:
            return
        s.state = ConnectionState.CONNECTED
        s.reconnect_attempts = 0
        s.auth_prompt = None
        self._scheduler.cancel(RECONNECT_KEY)
        self._logger.info("Joined %s as %s", self._options.server, self._options.username)
        self._publish_status()
        self._notify(
            Alert(
                category="session",
                title="✅ Connected",
                description=f"Connected to **{self._options.server}** as **{self._options.username}**!",
                severity=AlertSeverity.INFO,
                snapshot=self._ingest.snapshot,
            )
        )
        command = self._config.arrival_command.strip()
        if command:
            generation = event.generation
            self._scheduler.schedule(
                arrival_key(generation),
                self._config.arrival_delay_seconds,
                lambda: self.submit(ArrivalDue(generation)),
            )

    def _on_spawned(self, event: ClientSpawned) -> None:
        self._logger.info("Spawned in world %s", self._ingest.snapshot.world)
        self._publish_status()

    def _on_world(self, event: WorldChanged) -> None:
        self._ingest.apply_world(event.name)

    def _on_position(self, event: PositionChanged) -> None:
        self._ingest.apply_position(event.packet)

    def _on_health(self, event: HealthChanged) -> None:
        result = self._ingest.apply_health(event.packet)
        if result is None or not self._safety_active():
            return
        previous, snapshot = result
        self._apply_verdict(self._monitor.evaluate_health(previous, snapshot))

    def _on_player_list(self, event: PlayerListChanged) -> None:
        snapshot = self._ingest.apply_player_list(event.packet)
        if snapshot is None or not self._safety_active():
            return
        self._apply_verdict(self._monitor.evaluate_proximity(snapshot))

    def _on_chat(self, event: ChatReceived) -> None:
        if event.message:
            self._logger.info("💬 [%s] %s", event.sender or "server", event.message)

    def _on_auth_prompt(self, event: AuthPromptReceived) -> None:
        s = self._session
        s.auth_prompt = AuthPrompt(url=event.url, code=event.code)
        self._logger.info("Authentication required: open %s and enter code %s", event.url, event.code)
        self._publish_status()
        self._notify(
            Alert(
                category="auth",
                title="🔐 Microsoft Authentication Required",
                description=f"[Click here]({event.url}) and enter code `{event.code}` to connect the bot.",
                severity=AlertSeverity.INFO,
            )
        )

    def _on_client_disconnected(self, event: ClientDisconnected) -> None:
        s = self._session
        self._logger.warning("Game client %s: %s", event.kind, event.reason)
        self._teardown_client()
        s.state = ConnectionState.DISCONNECTED
        self._ingest.reset()
        self._scheduler.cancel(arrival_key(event.generation))
        if self._scheduler.cancel(auto_disconnect_key(event.generation)):
            self._logger.warning("Safety disconnect was pending; not reconnecting")
            s.should_join = False
            s.reconnect_attempts = 0

        if s.should_join:
            self._attempt_reconnect()
        else:
            self._publish_status()

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def _on_reconnect_due(self, event: ReconnectDue) -> None:
        s = self._session
        if event.generation != s.generation:
            self._logger.debug("Dropping stale reconnect timer from generation %d", event.generation)
            return
        if s.should_join and s.state is ConnectionState.DISCONNECTED:
            self._connect()
            return
        self._logger.debug(
            "Skipping reconnect: should_join=%s state=%s",
            s.should_join,
            s.state.value,
        )

    def _on_arrival_due(self, event: ArrivalDue) -> None:
        s = self._session
        if event.generation != s.generation or s.state is not ConnectionState.CONNECTED:
            return
        result = self._send_chat(self._config.arrival_command.strip())
        if not result.ok:
            self._logger.warning("Arrival command failed: %s", result.message)

    def _on_auto_disconnect_due(self, event: AutoDisconnectDue) -> None:
        s = self._session
        if event.generation != s.generation or s.client is None:
            self._logger.debug("Skipping stale safety disconnect from generation %d", event.generation)
            return
        self._disconnect(f"safety:{event.reason}")

    def _on_safety_sweep(self, event: SafetySweep) -> None:
        if not self._safety_active():
            return
        snapshot = self._ingest.snapshot
        self._apply_verdict(self._monitor.evaluate_proximity(snapshot))
        self._apply_verdict(self._monitor.evaluate_health(snapshot.health, snapshot))

    def _on_status_refresh(self, event: StatusRefresh) -> None:
        if self._session.state is ConnectionState.CONNECTED:
            self._publish_status()

    # ------------------------------------------------------------------
    # Operator commands
    # ------------------------------------------------------------------

    def _on_connect_requested(self, command: ConnectRequested) -> None:
        s = self._session
        if s.state is ConnectionState.CONNECTED:
            self._resolve(command, CommandResult(False, "Bot already connected"))
            return
        s.should_join = True
        s.reconnect_attempts = 0
        if command.operator is not None:
            s.operator = command.operator
        self._scheduler.cancel(RECONNECT_KEY)
        if s.state is ConnectionState.CONNECTING:
            self._resolve(command, CommandResult(True, "Connection already in progress"))
            return
        self._connect()
        self._resolve(command, CommandResult(True, "Connection initiated"))

    def _on_disconnect_requested(self, command: DisconnectRequested) -> None:
        self._disconnect(command.reason)
        self._resolve(command, CommandResult(True, "Bot disconnected"))

    def _on_chat_requested(self, command: ChatRequested) -> None:
        self._resolve(command, self._send_chat(command.text))

    def _on_safety_toggle(self, command: SafetyToggleRequested) -> None:
        self._monitor.update_config(replace(self._monitor.config, enabled=command.enabled))
        self._logger.info("Safety monitoring %s", "enabled" if command.enabled else "disabled")
        self._publish_status()
        self._resolve(
            command,
            CommandResult(True, "Safety monitoring enabled" if command.enabled else "Safety monitoring disabled"),
        )

    def _on_status_requested(self, command: StatusRequested) -> None:
        self._resolve(command, self.status())

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _send_chat(self, text: str) -> CommandResult:
        s = self._session
        if s.state is not ConnectionState.CONNECTED or s.client is None:
            return CommandResult(False, "Bot not connected")
        command = text if text.startswith("/") else f"/say {text}"
        try:
            s.client.queue(
                "command_request",
                {
                    "command": command,
                    "origin": {"type": "player", "uuid": "", "request_id": ""},
                    "internal": False,
                },
            )
        except Exception as exc:
            self._logger.error("Failed to send chat message: %s", exc)
            return CommandResult(False, "Failed to send message")
        return CommandResult(True, "Message sent")

    def _safety_active(self) -> bool:
        return self._monitor.config.enabled and self._session.state is ConnectionState.CONNECTED

    def _apply_verdict(self, verdict: SafetyVerdict) -> None:
        for alert in verdict.alerts:
            self._notify(alert)
        if not verdict.requests_disconnect:
            return
        generation = self._session.generation
        key = auto_disconnect_key(generation)
        if self._scheduler.is_pending(key):
            return
        reason = verdict.disconnect_reason or "safety"
        self._logger.warning(
            "Safety disconnect requested (%s) in %.1fs",
            reason,
            verdict.disconnect_delay_seconds,
        )
        self._scheduler.schedule(
            key,
            verdict.disconnect_delay_seconds,
            lambda: self.submit(AutoDisconnectDue(generation, reason)),
        )

    def _notify(self, alert: Alert) -> None:
        self._spawn(self._dispatcher.deliver(alert, self._session.operator))

    def _publish_status(self) -> None:
        self._spawn(self._dispatcher.publish_status(self.status()))

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
