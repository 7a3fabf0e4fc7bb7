"""Discord front end: operator alerts, the live status embed and control inputs."""
from __future__ import annotations

import logging
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..core.commands import CommandSurface
from ..core.config import DiscordConfig
from ..core.types import MAX_HEALTH, Alert, AlertSeverity, OperatorRef, SessionStatus

logger = logging.getLogger(__name__)

_SEVERITY_COLOURS = {
    AlertSeverity.INFO: discord.Colour(0x00FF00),
    AlertSeverity.WARNING: discord.Colour(0xFF9900),
    AlertSeverity.CRITICAL: discord.Colour(0x8B0000),
}


def _operator_from(user: discord.abc.User) -> OperatorRef:
    return OperatorRef(id=str(user.id), display_name=str(user))


def _coords(snapshot) -> str:
    x, y, z = snapshot.position.rounded()
    return f"X: {x}, Y: {y}, Z: {z}"


def status_text(status: SessionStatus) -> str:
    if status.auth_required:
        return "⏳ Waiting for Microsoft authentication..."
    if status.connected:
        return f"✅ Connected as {status.username}"
    if status.should_join:
        if status.reconnect_attempts > 0:
            return f"🔄 Reconnecting... ({status.reconnect_attempts}/{status.max_reconnect_attempts})"
        return "⏳ Connecting..."
    return "❌ Disconnected"


def presence_for(status: SessionStatus, host: str) -> tuple[str, discord.ActivityType]:
    if status.connected:
        shield = "🛡️ " if status.safety_enabled else ""
        return f"{shield}AFK on {host}", discord.ActivityType.playing
    if status.should_join:
        if status.auth_required:
            return "🔐 Waiting for auth...", discord.ActivityType.watching
        return "⏳ Connecting to server...", discord.ActivityType.watching
    return "🔴 Standby", discord.ActivityType.watching


def alert_embed(alert: Alert) -> discord.Embed:
    embed = discord.Embed(
        title=alert.title,
        description=alert.description,
        colour=_SEVERITY_COLOURS.get(alert.severity, discord.Colour.red()),
        timestamp=discord.utils.utcnow(),
    )
    if alert.snapshot is not None:
        snap = alert.snapshot
        embed.add_field(name="📍 **Location**", value=f"`{_coords(snap)}`", inline=True)
        embed.add_field(name="🌍 **World**", value=f"`{snap.world}`", inline=True)
        embed.add_field(name="❤️ **Health**", value=f"`{snap.health}/{MAX_HEALTH}`", inline=True)
    embed.add_field(name="⏰ **Time**", value=discord.utils.format_dt(discord.utils.utcnow(), "R"), inline=False)
    embed.set_footer(text="AFK Bot Safety System")
    return embed


def status_embed(status: SessionStatus) -> discord.Embed:
    if status.connected:
        colour = discord.Colour(0x00FF00)
    elif status.should_join:
        colour = discord.Colour(0xFF9900)
    else:
        colour = discord.Colour(0xFF0000)
    if status.safety_enabled:
        safety = "✅ Active" if status.connected else "❌ Inactive"
    else:
        safety = "⏸️ Disabled"

    embed = discord.Embed(title="🎮 AFK Bot", colour=colour, timestamp=discord.utils.utcnow())
    embed.add_field(name="🖥️ Server", value=f"`{status.server}`", inline=True)
    embed.add_field(name="🔗 Status", value=status_text(status), inline=True)
    embed.add_field(name="🛡️ Safety", value=safety, inline=True)
    if status.connected:
        snap = status.snapshot
        embed.add_field(name="👤 Player", value=f"`{status.username}`", inline=True)
        embed.add_field(name="🌍 World", value=f"`{snap.world}`", inline=True)
        embed.add_field(name="❤️ Health", value=f"`{snap.health}/{MAX_HEALTH}`", inline=True)
        embed.add_field(name="📍 Position", value=f"`{_coords(snap)}`", inline=False)
    if status.reconnect_attempts > 0 and status.should_join:
        embed.add_field(
            name="🔄 Reconnecting",
            value=f"{status.reconnect_attempts}/{status.max_reconnect_attempts}",
            inline=True,
        )
    if status.auth_prompt is not None:
        embed.add_field(
            name="🔑 Auth Required",
            value=f"[Click here]({status.auth_prompt.url}) | Code: `{status.auth_prompt.code}`",
            inline=False,
        )
    embed.set_footer(text="Use buttons below to control the bot")
    return embed


class ControlView(discord.ui.View):
    def __init__(self, gateway: "DiscordGateway"):
        super().__init__(timeout=None)
        self._gateway = gateway

    @discord.ui.button(label="Connect", emoji="✅", style=discord.ButtonStyle.success, custom_id="afk:connect")
    async def connect_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._gateway.handle_connect(interaction)

    @discord.ui.button(label="Disconnect", emoji="❌", style=discord.ButtonStyle.danger, custom_id="afk:disconnect")
    async def disconnect_button(self, interaction: discord.Interaction, button: discord.ui.Button) -> None:
        await self._gateway.handle_disconnect(interaction)


class DiscordGateway:
    """Implements the notifier port on top of a discord.py bot."""

    def __init__(self, config: DiscordConfig, *, server_host: str = "", intents: Optional[discord.Intents] = None):
        intents = intents or discord.Intents.default()
        self._config = config
        self._server_host = server_host
        self._bot = commands.Bot(command_prefix="/", intents=intents)
        self._commands: CommandSurface | None = None
        self._control_message: discord.Message | None = None
        self._view: ControlView | None = None
        self._last_status: SessionStatus | None = None

    @property
    def bot(self) -> commands.Bot:
        return self._bot

    def service_info(self) -> dict[str, object]:
        user = self._bot.user
        return {
            "discord": {
                "connected": self._bot.is_ready(),
                "username": str(user) if user is not None else None,
                "guild_count": len(self._bot.guilds),
            }
        }

    def attach(self, surface: CommandSurface) -> None:
        self._commands = surface
        self._register_events()
        self._register_slash_commands()

    async def start(self) -> None:
        await self._bot.start(self._config.token)

    async def close(self) -> None:
        if not self._bot.is_closed():
            await self._bot.close()

    # ------------------------------------------------------------------
    # NotifierPort
    # ------------------------------------------------------------------

    async def send_direct(self, operator: OperatorRef, alert: Alert) -> None:
        user = self._bot.get_user(int(operator.id))
        if user is None:
            user = await self._bot.fetch_user(int(operator.id))
        if alert.urgent:
            content = "🚨 **URGENT SAFETY ALERT** 🚨"
        elif alert.severity is AlertSeverity.INFO:
            content = None
        else:
            content = "⚠️ **Safety Alert**"
        await user.send(content=content, embed=alert_embed(alert))

    async def broadcast(self, alert: Alert, *, undelivered_to: OperatorRef | None = None) -> None:
        channel = await self._channel()
        if channel is None:
            logger.warning("No control channel for broadcast of %r", alert.title)
            return
        if undelivered_to is not None:
            who = undelivered_to.display_name or "user"
            await channel.send(content=f"⚠️ Failed to DM {who} - Safety Alert: **{alert.title}**\n{alert.description}")
            return
        await channel.send(embed=alert_embed(alert))

    async def post_status(self, status: SessionStatus) -> None:
        self._last_status = status
        await self._update_presence(status)
        if self._control_message is None or self._view is None:
            return
        try:
            await self._control_message.edit(embed=status_embed(status), view=self._view)
        except discord.HTTPException:
            logger.exception("Failed to update control embed")

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    async def handle_connect(self, interaction: discord.Interaction) -> None:
        result = await self._require_commands().connect(_operator_from(interaction.user))
        prefix = "🔄" if result.ok else "❌"
        await interaction.response.send_message(f"{prefix} {result.message}", ephemeral=True)

    async def handle_disconnect(self, interaction: discord.Interaction) -> None:
        result = await self._require_commands().disconnect(_operator_from(interaction.user))
        prefix = "✅" if result.ok else "❌"
        await interaction.response.send_message(f"{prefix} {result.message}", ephemeral=True)

    def _require_commands(self) -> CommandSurface:
        if self._commands is None:
            raise RuntimeError("DiscordGateway.attach() must be called before handling interactions")
        return self._commands

    async def _channel(self) -> discord.abc.Messageable | None:
        channel_id = self._config.channel_id
        if channel_id is None:
            return None
        channel = self._bot.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(channel_id)
            except discord.HTTPException:
                logger.warning("Failed to locate control channel with id %s", channel_id)
                return None
        return channel  # type: ignore[return-value]

    async def _update_presence(self, status: SessionStatus) -> None:
        if not self._bot.is_ready():
            return
        text, activity_type = presence_for(status, self._server_host)
        try:
            await self._bot.change_presence(activity=discord.Activity(type=activity_type, name=text))
        except Exception:
            logger.debug("Failed to update Discord activity", exc_info=True)

    async def _setup_control_message(self) -> None:
        channel = await self._channel()
        if channel is None:
            logger.error("Control channel not found!")
            return
        surface = self._require_commands()
        self._view = ControlView(self)
        status = self._last_status or surface.manager.status()
        self._control_message = await channel.send(embed=status_embed(status), view=self._view)

    def _register_events(self) -> None:
        bot = self._bot

        @bot.event
        async def on_ready() -> None:
            logger.info("Discord bot connected as %s", bot.user)
            try:
                synced = await bot.tree.sync()
                logger.info("Synced %d commands", len(synced))
            except Exception as exc:
                logger.exception("Failed to sync commands: %s", exc)
            if self._control_message is None:
                await self._setup_control_message()
            await self._update_presence(self._require_commands().manager.status())

    def _register_slash_commands(self) -> None:
        bot = self._bot
        surface = self._require_commands()
        channel_id = self._config.channel_id

        async def _wrong_channel(interaction: discord.Interaction) -> bool:
            if channel_id is not None and interaction.channel_id != channel_id:
                await interaction.response.send_message(
                    "❌ This bot can only be used in the designated channel!", ephemeral=True
                )
                return True
            return False

        @app_commands.command(name="message", description="Send a message to the game server")
        @app_commands.describe(text="The message to send")
        async def message(interaction: discord.Interaction, text: str) -> None:
            if await _wrong_channel(interaction):
                return
            result = await surface.send_chat(text)
            if result.ok:
                await interaction.response.send_message(f'✅ Message sent: "{text}"', ephemeral=True)
            else:
                await interaction.response.send_message(f"❌ {result.message}", ephemeral=True)

        @app_commands.command(name="status", description="Show bot connection status")
        async def status(interaction: discord.Interaction) -> None:
            if await _wrong_channel(interaction):
                return
            current = await surface.get_status()
            embed = discord.Embed(
                title="🤖 Bot Status",
                colour=discord.Colour(0x00FF00) if current.connected else discord.Colour(0xFF0000),
                timestamp=discord.utils.utcnow(),
            )
            embed.add_field(name="🎮 Game", value="✅ Connected" if current.connected else "❌ Disconnected", inline=True)
            embed.add_field(name="💬 Discord", value="✅ Connected", inline=True)
            if current.connected:
                embed.add_field(name="👤 Username", value=current.username or "Unknown", inline=True)
                embed.add_field(name="🌍 World", value=current.snapshot.world, inline=True)
                embed.add_field(name="📍 Position", value=_coords(current.snapshot), inline=True)
            await interaction.response.send_message(embed=embed)

        @app_commands.command(name="connect", description="Connect the bot to the game server")
        async def connect(interaction: discord.Interaction) -> None:
            if await _wrong_channel(interaction):
                return
            await self.handle_connect(interaction)

        @app_commands.command(name="disconnect", description="Disconnect the bot from the game server")
        async def disconnect(interaction: discord.Interaction) -> None:
            if await _wrong_channel(interaction):
                return
            await self.handle_disconnect(interaction)

        @app_commands.command(name="safety", description="Toggle safety monitoring")
        @app_commands.describe(enabled="Enable or disable safety monitoring")
        async def safety(interaction: discord.Interaction, enabled: bool) -> None:
            if await _wrong_channel(interaction):
                return
            await surface.set_safety(enabled)
            await interaction.response.send_message(
                "✅ Safety monitoring **enabled**! You will receive alerts for health drops and nearby players."
                if enabled
                else "⏸️ Safety monitoring **disabled**.",
                ephemeral=True,
            )

        bot.tree.add_command(message)
        bot.tree.add_command(status)
        bot.tree.add_command(connect)
        bot.tree.add_command(disconnect)
        bot.tree.add_command(safety)
