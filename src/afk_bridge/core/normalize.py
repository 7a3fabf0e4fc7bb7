from __future__ import annotations

import math
from typing import Any, Iterable

from .types import MAX_HEALTH, Coordinates


def _as_float(value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return 0.0
    return out if math.isfinite(out) else 0.0


def _field(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def parse_position(packet: Any) -> Coordinates | None:
    raw = _field(packet, "position")
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        if len(raw) != 3:
            return None
        return Coordinates(_as_float(raw[0]), _as_float(raw[1]), _as_float(raw[2]))
    return Coordinates(
        x=_as_float(_field(raw, "x")),
        y=_as_float(_field(raw, "y")),
        z=_as_float(_field(raw, "z")),
    )


def parse_health(packet: Any) -> int | None:
    raw = _field(packet, "health")
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return max(0, min(MAX_HEALTH, int(round(value))))


def iter_player_records(packet: Any) -> Iterable[Any] | None:
    records = _field(packet, "records")
    if records is None:
        return None
    if isinstance(records, (list, tuple)):
        return records
    nested = _field(records, "records")
    if isinstance(nested, (list, tuple)):
        return nested
    return None


def record_username(record: Any) -> str | None:
    name = _field(record, "username")
    if not isinstance(name, str):
        return None
    name = name.strip()
    return name or None


def normalize_world_name(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = " ".join(value.split())
    return value[:64] or None
