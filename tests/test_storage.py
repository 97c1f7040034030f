"""Tests for the SQLite-backed key/value store and alert history."""

from pageguard.storage import AlertHistory, KeyValueStore


async def _open(path):
    store = KeyValueStore(path)
    await store.connect()
    return store


async def test_kv_roundtrip_and_overwrite(tmp_path):
    store = await _open(tmp_path / "kv.db")
    assert await store.get("missing", []) == []

    await store.set("securityAlerts", [{"id": 1}])
    await store.set("securityAlerts", [{"id": 2}])
    assert await store.get("securityAlerts") == [{"id": 2}]
    await store.close()


async def test_ids_stay_monotonic_when_clock_repeats(tmp_path):
    store = await _open(tmp_path / "kv.db")
    history = AlertHistory(store, limit=5)

    first = await history.add("insecure_protocol", "m", {"url": "http://a.test"}, 1000)
    second = await history.add("insecure_protocol", "m", {"url": "http://a.test"}, 1000)
    third = await history.add("insecure_protocol", "m", {}, 900)

    assert (first.id, second.id, third.id) == (1000, 1001, 1002)
    assert third.url == "unknown"
    await store.close()


async def test_limit_applies_on_every_write(tmp_path):
    store = await _open(tmp_path / "kv.db")
    history = AlertHistory(store, limit=3)
    for ts in range(1, 6):
        await history.add("suspicious_link_detected", f"alert {ts}", {}, ts)

    records = await history.load()
    assert [r.message for r in records] == ["alert 5", "alert 4", "alert 3"]
    await store.close()


async def test_unreadable_records_are_skipped(tmp_path):
    store = await _open(tmp_path / "kv.db")
    await store.set("securityAlerts", [{"type": "no id"}, {"id": 7, "type": "insecure_protocol", "message": "ok"}])

    records = await AlertHistory(store).load()
    assert [r.id for r in records] == [7]
    await store.close()
