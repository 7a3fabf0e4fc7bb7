from __future__ import annotations

from afk_bridge.core.normalize import iter_player_records, normalize_world_name, parse_health, parse_position
from afk_bridge.core.telemetry import TelemetryIngest
from afk_bridge.core.types import Coordinates


def test_parse_position_accepts_mapping_and_sequence():
    assert parse_position({"position": {"x": 1, "y": "2.5", "z": -3}}) == Coordinates(1.0, 2.5, -3.0)
    assert parse_position({"position": [4, 5, 6]}) == Coordinates(4.0, 5.0, 6.0)
    assert parse_position({"position": [1, 2]}) is None
    assert parse_position({}) is None


def test_parse_health_clamps_and_rejects_garbage():
    assert parse_health({"health": 25}) == 20
    assert parse_health({"health": -4}) == 0
    assert parse_health({"health": 13.6}) == 14
    assert parse_health({"health": True}) is None
    assert parse_health({"health": "abc"}) is None
    assert parse_health({"health": float("nan")}) is None
    assert parse_health({}) is None


def test_player_records_shapes():
    assert iter_player_records({"records": [{"username": "a"}]}) == [{"username": "a"}]
    assert iter_player_records({"records": {"records": [{"username": "b"}]}}) == [{"username": "b"}]
    assert iter_player_records({"type": "remove"}) is None


def test_world_name_is_normalized():
    assert normalize_world_name("  the   end ") == "the end"
    assert normalize_world_name("") is None
    assert normalize_world_name(7) is None
    assert len(normalize_world_name("w" * 200)) == 64


def test_apply_calls_replace_snapshot():
    ingest = TelemetryIngest("AfkBot")
    before = ingest.snapshot
    ingest.apply_world("nether")
    ingest.apply_position({"position": {"x": 1, "y": 2, "z": 3}})
    previous, snap = ingest.apply_health({"health": 11})
    assert previous == 20
    assert snap.health == 11
    assert snap.world == "nether"
    assert snap.position == Coordinates(1.0, 2.0, 3.0)
    assert before.world == "Unknown"


def test_malformed_packets_leave_snapshot_untouched():
    ingest = TelemetryIngest("AfkBot")
    snap = ingest.snapshot
    assert ingest.apply_health({"hp": 3}) is None
    assert ingest.apply_position({"pos": 1}) is None
    assert ingest.apply_world(None) is None
    assert ingest.apply_player_list({"type": 1}) is None
    assert ingest.snapshot is snap


def test_player_list_excludes_self_and_far_players():
    ingest = TelemetryIngest("AfkBot", proximity_radius=50.0)
    ingest.apply_position({"position": {"x": 0, "y": 64, "z": 0}})
    snap = ingest.apply_player_list(
        {
            "records": [
                {"username": "AfkBot", "position": {"x": 0, "y": 64, "z": 0}},
                {"username": "Near", "position": {"x": 30, "y": 64, "z": 40}},
                {"username": "Far", "position": {"x": 300, "y": 64, "z": 0}},
                {"username": "NoPos"},
                {"username": "   "},
            ]
        }
    )
    assert snap.nearby_players == frozenset({"Near", "NoPos"})


def test_player_list_rebuilds_set():
    ingest = TelemetryIngest("AfkBot")
    ingest.apply_player_list({"records": [{"username": "A"}, {"username": "B"}]})
    snap = ingest.apply_player_list({"records": [{"username": "B"}]})
    assert snap.nearby_players == frozenset({"B"})
    assert ingest.reset().nearby_players == frozenset()
