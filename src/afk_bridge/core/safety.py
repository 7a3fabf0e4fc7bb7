from __future__ import annotations

import logging
import time
from typing import Callable

from .config import PlayerRoster, SafetyConfig
from .types import MAX_HEALTH, Alert, AlertSeverity, SafetyVerdict, WorldSnapshot

HEALTH_CATEGORY = "health"
PROXIMITY_CATEGORY = "proximity"


class AlertThrottle:
    """Per-category cooldown. A category fires at most once per window."""

    def __init__(self, cooldown_seconds: float, clock: Callable[[], float] | None = None):
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock or time.monotonic
        self._last_fired: dict[str, float] = {}

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_seconds

    def set_cooldown(self, cooldown_seconds: float) -> None:
        self._cooldown_seconds = cooldown_seconds

    def ready(self, category: str) -> bool:
        last = self._last_fired.get(category)
        if last is None:
            return True
        return self._clock() - last >= self._cooldown_seconds

    def mark(self, category: str) -> None:
        self._last_fired[category] = self._clock()


def annotate_player(player: str, roster: PlayerRoster) -> str:
    trust = "✅" if roster.is_trusted(player) else "⚠️"
    block = "🚫" if roster.is_blocked(player) else ""
    return f"{trust}{block} **{player}**"


class SafetyMonitor:
    def __init__(
        self,
        config: SafetyConfig,
        roster: PlayerRoster,
        *,
        clock: Callable[[], float] | None = None,
        threat_disconnect_delay_seconds: float = 1.0,
        health_disconnect_delay_seconds: float = 0.5,
    ):
        self._config = config
        self._roster = roster
        self._throttle = AlertThrottle(config.alert_cooldown_seconds, clock=clock)
        self._threat_delay = threat_disconnect_delay_seconds
        self._health_delay = health_disconnect_delay_seconds
        self._logger = logging.getLogger(__name__)

    @property
    def config(self) -> SafetyConfig:
        return self._config

    @property
    def roster(self) -> PlayerRoster:
        return self._roster

    @property
    def throttle(self) -> AlertThrottle:
        return self._throttle

    def update_config(self, config: SafetyConfig) -> None:
        self._config = config
        self._throttle.set_cooldown(config.alert_cooldown_seconds)

    def evaluate_health(self, previous_health: int, snapshot: WorldSnapshot) -> SafetyVerdict:
        try:
            return self._evaluate_health(int(previous_health), snapshot)
        except Exception:
            self._logger.exception("Health evaluation failed; previous=%r snapshot=%r", previous_health, snapshot)
            return SafetyVerdict()

    def evaluate_proximity(self, snapshot: WorldSnapshot) -> SafetyVerdict:
        try:
            return self._evaluate_proximity(snapshot)
        except Exception:
            self._logger.exception("Proximity evaluation failed; snapshot=%r", snapshot)
            return SafetyVerdict()

    def _evaluate_health(self, previous: int, snapshot: WorldSnapshot) -> SafetyVerdict:
        cfg = self._config
        verdict = SafetyVerdict()
        current = int(snapshot.health)

        if current < previous:
            damage = previous - current
            verdict.alerts.append(
                Alert(
                    category="damage",
                    title="🩸 Damage Taken",
                    description=(
                        f"**You took {damage} damage!**\n"
                        f"Health decreased from {previous} to {current}"
                    ),
                    severity=AlertSeverity.WARNING,
                    urgent=True,
                    snapshot=snapshot,
                )
            )
            if current <= cfg.auto_disconnect_health:
                verdict.alerts.append(
                    Alert(
                        category="critical_health",
                        title="🚨 CRITICAL HEALTH - AUTO DISCONNECT",
                        description=(
                            f"**You took {damage} damage! Health: {current}/{MAX_HEALTH}**\n\n"
                            "**Action:** Bot automatically disconnected for safety!"
                        ),
                        severity=AlertSeverity.CRITICAL,
                        urgent=True,
                        snapshot=snapshot,
                    )
                )
                verdict.disconnect_reason = f"critical_health:{current}"
                verdict.disconnect_delay_seconds = self._health_delay

        if current <= cfg.min_health and self._throttle.ready(HEALTH_CATEGORY):
            self._throttle.mark(HEALTH_CATEGORY)
            verdict.alerts.append(
                Alert(
                    category="low_health",
                    title="💀 Critical Health Alert",
                    description=(
                        f"**DANGER: Health is critically low at {current}/{MAX_HEALTH}!**\n"
                        "Consider disconnecting immediately!"
                    ),
                    severity=AlertSeverity.CRITICAL,
                    urgent=True,
                    snapshot=snapshot,
                )
            )
        return verdict

    def _evaluate_proximity(self, snapshot: WorldSnapshot) -> SafetyVerdict:
        verdict = SafetyVerdict()
        nearby = sorted(snapshot.nearby_players)
        if not nearby or not self._throttle.ready(PROXIMITY_CATEGORY):
            return verdict

        threats = [player for player in nearby if not self._roster.is_trusted(player)]
        self._throttle.mark(PROXIMITY_CATEGORY)

        if self._config.auto_disconnect_on_threat and threats:
            verdict.alerts.append(
                Alert(
                    category="threat",
                    title="🚨 THREAT DETECTED - AUTO DISCONNECT",
                    description=(
                        f"**Untrusted player(s) detected:**\n{', '.join(threats)}\n\n"
                        "**Action:** Bot automatically disconnected for safety!"
                    ),
                    severity=AlertSeverity.CRITICAL,
                    urgent=True,
                    snapshot=snapshot,
                )
            )
            verdict.disconnect_reason = "threat:" + ",".join(threats)
            verdict.disconnect_delay_seconds = self._threat_delay
            return verdict

        listing = ", ".join(annotate_player(player, self._roster) for player in nearby)
        verdict.alerts.append(
            Alert(
                category="proximity",
                title="⚠️ Player Proximity Alert",
                description=f"**{len(nearby)} player(s) detected:**\n{listing}",
                severity=AlertSeverity.WARNING,
                urgent=True,
                snapshot=snapshot,
            )
        )
        return verdict
