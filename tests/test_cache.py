import io
import json
from datetime import datetime, timedelta, timezone

import pytest

from fleetcmd.cache import (
    CacheEntry,
    SessionCache,
    import_cache,
    import_from_file,
)

TEST_SESSION_COUNT = 3
ZERO = datetime(1, 1, 1, tzinfo=timezone.utc)


def generate_sessions(n):
    return [
        CacheEntry(created_at=ZERO + timedelta(microseconds=n), domain=n, session_info=bytes([j]))
        for j in range(TEST_SESSION_COUNT)
    ]


def generate_cache(vin_count):
    c = SessionCache(0)
    for i in range(vin_count):
        c.vehicles[str(i)] = generate_sessions(i)
    return c


def assert_cache(c, entries):
    assert set(c.vehicles) == {str(i) for i in entries}
    for i in entries:
        sessions = c.vehicles[str(i)]
        assert len(sessions) == TEST_SESSION_COUNT
        for j, entry in enumerate(sessions):
            assert entry.created_at == ZERO + timedelta(microseconds=i)
            assert entry.domain == i
            assert entry.session_info == bytes([j])


def test_import_export():
    buffer = io.StringIO()
    generate_cache(5).export(buffer)
    buffer.seek(0)
    assert_cache(import_cache(buffer), [0, 1, 2, 3, 4])


def test_eviction():
    c = generate_cache(0)
    c.max_entries = 5
    for n in (7, 4, 5, 3, 6):
        c.update(str(n), generate_sessions(n))
    assert_cache(c, [3, 4, 5, 6, 7])

    c.update("5", generate_sessions(5))
    assert_cache(c, [3, 4, 5, 6, 7])

    c.update("8", generate_sessions(8))
    assert_cache(c, [4, 5, 6, 7, 8])

    c.update("1", generate_sessions(1))
    assert_cache(c, [4, 5, 6, 7, 8])


def test_unbounded_cache_keeps_everything():
    c = SessionCache()
    for n in range(20):
        c.update(str(n), generate_sessions(n))
    assert len(c.vehicles) == 20


def test_get_entry():
    c = SessionCache(2)
    sessions = generate_sessions(9)
    c.update("vin-a", sessions)
    assert c.get_entry("vin-a") == sessions
    assert c.get_entry("vin-b") is None


def test_file_round_trip(tmp_path):
    path = tmp_path / "cache.json"
    original = generate_cache(3)
    original.max_entries = 7
    original.export_to_file(path)
    loaded = import_from_file(path)
    assert loaded.max_entries == 7
    assert_cache(loaded, [0, 1, 2])


def test_export_to_file_truncates(tmp_path):
    path = tmp_path / "cache.json"
    generate_cache(5).export_to_file(path)
    generate_cache(1).export_to_file(path)
    assert_cache(import_from_file(path), [0])


def test_entry_json_format():
    entry = CacheEntry(created_at=ZERO, domain=3, session_info=b"\x01\x02")
    assert entry.to_json() == {"created_at": "0001-01-01T00:00:00Z", "domain": 3, "data": "AQI="}


def test_entry_json_round_trip_with_offset():
    moment = datetime(2024, 5, 6, 7, 8, 9, 120000, tzinfo=timezone(timedelta(hours=-5)))
    entry = CacheEntry(created_at=moment, domain=2, session_info=b"abc")
    encoded = entry.to_json()
    assert encoded["created_at"] == "2024-05-06T07:08:09.12-05:00"
    assert CacheEntry.from_json(encoded) == entry


def test_entry_parses_nanosecond_timestamps():
    entry = CacheEntry.from_json(
        {"created_at": "2023-01-02T03:04:05.123456789Z", "domain": 1, "data": "AA=="}
    )
    assert entry.created_at == datetime(2023, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
    assert entry.session_info == b"\x00"


def test_export_json_layout():
    c = SessionCache(4)
    c.update("vin", [CacheEntry(created_at=ZERO, domain=1, session_info=b"")])
    buffer = io.StringIO()
    c.export(buffer)
    assert json.loads(buffer.getvalue()) == {
        "MaxEntries": 4,
        "vehicles": {"vin": [{"created_at": "0001-01-01T00:00:00Z", "domain": 1, "data": ""}]},
    }


def test_import_rejects_invalid_json():
    with pytest.raises(ValueError):
        import_cache(io.StringIO("not json"))


def test_import_rejects_bad_timestamp():
    data = {"vehicles": {"v": [{"created_at": "yesterday", "domain": 1, "data": ""}]}}
    with pytest.raises(ValueError):
        import_cache(io.StringIO(json.dumps(data)))