from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from .normalize import iter_player_records, normalize_world_name, parse_health, parse_position, record_username
from .types import WorldSnapshot

logger = logging.getLogger(__name__)


class TelemetryIngest:
    """Folds raw game-client packets into the current ``WorldSnapshot``.

    Every ``apply_*`` call replaces the snapshot as a whole. Malformed packets
    leave it untouched and return ``None``.
    """

    def __init__(self, username: str, proximity_radius: float | None = None):
        self._username = username
        self._proximity_radius = proximity_radius
        self._snapshot = WorldSnapshot.unknown()

    @property
    def snapshot(self) -> WorldSnapshot:
        return self._snapshot

    def reset(self) -> WorldSnapshot:
        self._snapshot = WorldSnapshot.unknown()
        return self._snapshot

    def apply_world(self, name: Any) -> WorldSnapshot | None:
        world = normalize_world_name(name)
        if world is None:
            return None
        self._snapshot = replace(self._snapshot, world=world)
        return self._snapshot

    def apply_position(self, packet: Any) -> WorldSnapshot | None:
        position = parse_position(packet)
        if position is None:
            return None
        self._snapshot = replace(self._snapshot, position=position)
        return self._snapshot

    def apply_health(self, packet: Any) -> tuple[int, WorldSnapshot] | None:
        """Return ``(previous_health, new_snapshot)``."""
        health = parse_health(packet)
        if health is None:
            logger.debug("Ignoring health packet without usable value: %r", packet)
            return None
        previous = self._snapshot.health
        self._snapshot = replace(self._snapshot, health=health)
        return previous, self._snapshot

    def apply_player_list(self, packet: Any) -> WorldSnapshot | None:
        records = iter_player_records(packet)
        if records is None:
            return None
        nearby: set[str] = set()
        for record in records:
            name = record_username(record)
            if name is None or name == self._username:
                continue
            if not self._within_radius(record):
                continue
            nearby.add(name)
        self._snapshot = replace(self._snapshot, nearby_players=frozenset(nearby))
        return self._snapshot

    def _within_radius(self, record: Any) -> bool:
        if self._proximity_radius is None:
            return True
        position = parse_position(record)
        if position is None:
            return True
        return position.distance_to(self._snapshot.position) <= self._proximity_radius
