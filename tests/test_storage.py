"""
Tests for the storage backends

These tests verify that:
1. Records outside the 30-day retention window are pruned and never returned
2. has_recent / latest / query honour their time windows
3. Analytics records round-trip through each backend
4. Local storage survives a reload; remote storage is scoped per owner
5. Exports have the fixed CSV columns and JSON shape

The same contract suite runs against LocalBackend (JSON file) and
RemoteBackend (fakeredis).

Run with: python -m pytest tests/test_storage.py -v
"""

import io
import json
import logging
from datetime import timedelta
from unittest import mock

import fakeredis
import pytest
from openpyxl import load_workbook
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import T0, make_snapshot
from home_weather.errors import StorageError
from home_weather.export import CSV_COLUMNS
from home_weather.models import AnalyticsRecord, PersistedRecord
from home_weather.storage import RETENTION_DAYS, LocalBackend, RemoteBackend

logger = logging.getLogger(__name__)


def fake_redis():
    return fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)


def record_at(record_id, location, stored_at, **snapshot_kwargs):
    return PersistedRecord(
        id=record_id,
        location=location,
        snapshot=make_snapshot(observed_at=stored_at, **snapshot_kwargs),
        stored_at=stored_at,
    )


@pytest.fixture(params=["local", "remote"])
async def backend(request, clock, tmp_path):
    logger.info(f"[TEST] Creating {request.param} backend")
    if request.param == "local":
        yield LocalBackend(tmp_path / "weather_store.json", clock=clock)
    else:
        client = fake_redis()
        yield RemoteBackend(client=client, clock=clock)
        await client.aclose()


class TestRetention:

    async def test_retention_is_thirty_days(self, backend):
        assert RETENTION_DAYS == 30
        assert backend.retention_cutoff() == T0 - timedelta(days=30)

    async def test_prune_drops_only_expired(self, backend):
        await backend.write_record(record_at("old", "London", T0 - timedelta(days=31)))
        await backend.write_record(record_at("recent", "London", T0 - timedelta(days=29)))

        removed = await backend.prune_old()
        logger.info(f"[TEST] Pruned {removed} records")

        assert removed == 1
        assert [r.id for r in await backend.all_records()] == ["recent"]

    async def test_save_prunes(self, backend, clock):
        await backend.save("London", make_snapshot(temperature=10.0))
        clock.advance(days=29)
        await backend.save("London", make_snapshot(temperature=11.0))
        assert len(await backend.all_records()) == 2

        clock.advance(days=2)
        await backend.save("London", make_snapshot(temperature=12.0))

        temps = [r.snapshot.current.temperature for r in await backend.all_records()]
        assert temps == [11.0, 12.0]

    async def test_expired_record_invisible_before_prune(self, backend, clock):
        await backend.write_record(record_at("old", "London", T0 - timedelta(days=30, seconds=1)))

        assert await backend.latest("London") is None
        assert await backend.query("London", since_days=60) == []
        assert await backend.all_records() == []

    async def test_boundary_is_exclusive(self, backend):
        await backend.write_record(record_at("edge", "London", T0 - timedelta(days=30)))
        assert await backend.all_records() == []


class TestReads:

    async def test_save_returns_id_and_latest_finds_it(self, backend):
        record_id = await backend.save("London", make_snapshot(temperature=21.5))
        latest = await backend.latest("London")

        assert latest.id == record_id
        assert latest.stored_at == T0
        assert latest.owner_id == "anonymous"
        assert latest.snapshot.current.temperature == 21.5

    async def test_latest_is_per_location(self, backend, clock):
        await backend.save("London", make_snapshot(temperature=15.0))
        clock.advance(minutes=5)
        await backend.save("Paris", make_snapshot(temperature=25.0, name="Paris"))

        assert (await backend.latest("London")).snapshot.current.temperature == 15.0
        assert (await backend.latest("Paris")).snapshot.current.temperature == 25.0
        assert await backend.latest("Berlin") is None

    async def test_has_recent_window(self, backend, clock):
        assert not await backend.has_recent("London")

        await backend.save("London", make_snapshot())
        clock.advance(minutes=9, seconds=59)
        assert await backend.has_recent("London", within_minutes=10)

        clock.advance(seconds=1)
        assert not await backend.has_recent("London", within_minutes=10)

    async def test_query_window_oldest_first(self, backend):
        await backend.write_record(record_at("c", "London", T0))
        await backend.write_record(record_at("a", "London", T0 - timedelta(days=8)))
        await backend.write_record(record_at("b", "London", T0 - timedelta(days=3)))
        await backend.write_record(record_at("x", "Paris", T0 - timedelta(days=1)))

        records = await backend.query("London", since_days=7)

        assert [r.id for r in records] == ["b", "c"]

    async def test_write_record_preserves_id_and_timestamp(self, backend):
        original = record_at("fixed-id", "London", T0 - timedelta(days=2))
        await backend.write_record(original)

        stored = await backend.latest("London")
        assert stored == original


class TestAnalyticsPersistence:

    async def test_round_trip(self, backend):
        assert await backend.load_analytics("London") is None

        record = AnalyticsRecord(location="London", first_seen=T0, last_seen=T0, total_requests=3,
                                 avg_temperature=18.5,
                                 temperature_history=[{"value": 18.5, "at": T0.isoformat()}])
        await backend.save_analytics(record)

        loaded = await backend.load_analytics("London")
        assert loaded == record
        assert [a.location for a in await backend.all_analytics()] == ["London"]

    async def test_save_replaces(self, backend):
        await backend.save_analytics(AnalyticsRecord(location="London", first_seen=T0, last_seen=T0,
                                                     total_requests=1))
        await backend.save_analytics(AnalyticsRecord(location="London", first_seen=T0, last_seen=T0,
                                                     total_requests=2))
        assert (await backend.load_analytics("London")).total_requests == 2
        assert len(await backend.all_analytics()) == 1


class TestExport:

    async def test_csv_columns_and_quoting(self, backend):
        await backend.save("London", make_snapshot(temperature=20.0, condition="Sunny"))

        data = await backend.export_all("London", fmt="csv")
        lines = data.decode("utf-8").split("\n")
        logger.info(f"[TEST] CSV export: {lines}")

        assert lines[0] == ",".join(f'"{c}"' for c in CSV_COLUMNS)
        assert len(lines) == 2
        assert lines[1].startswith('"London","2024-06-01T12:00:00+00:00","20.0","Sunny","60"')
        assert lines[1].endswith('"",""')

    async def test_empty_csv_is_empty_bytes(self, backend):
        assert await backend.export_all("Nowhere", fmt="csv") == b""

    async def test_json_shape(self, backend):
        await backend.save("London", make_snapshot())
        await backend.save("Paris", make_snapshot(name="Paris"))

        payload = json.loads(await backend.export_all(fmt="json"))

        assert set(payload) == {"weather_data", "analytics", "export_date", "total_entries", "location"}
        assert payload["total_entries"] == 2
        assert payload["location"] is None
        assert set(payload["weather_data"][0]) == {"id", "location", "data", "timestamp", "owner_id"}

    async def test_xlsx_sheet(self, backend):
        await backend.save("London", make_snapshot(pm2_5=12.0, pm10=20.0))

        workbook = load_workbook(io.BytesIO(await backend.export_all("London", fmt="xlsx")))
        sheet = workbook["Weather"]

        assert [c.value for c in sheet[1]] == CSV_COLUMNS
        assert sheet[1][0].font.bold
        assert sheet.cell(row=2, column=8).value == 12.0

    async def test_unknown_format(self, backend):
        with pytest.raises(ValueError):
            await backend.export_all(fmt="pdf")


class TestLocalBackend:

    async def test_reload_from_disk(self, tmp_path, clock):
        path = tmp_path / "weather_store.json"
        first = LocalBackend(path, clock=clock)
        record_id = await first.save("London", make_snapshot(temperature=19.0))
        await first.save_analytics(AnalyticsRecord(location="London", first_seen=T0, last_seen=T0))

        second = LocalBackend(path, clock=clock)

        assert (await second.latest("London")).id == record_id
        assert (await second.load_analytics("London")).location == "London"

    def test_corrupt_store_raises(self, tmp_path):
        path = tmp_path / "weather_store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError):
            LocalBackend(path)

    async def test_in_memory_without_path(self, clock):
        backend = LocalBackend(clock=clock)
        await backend.save("London", make_snapshot())
        assert len(await backend.all_records()) == 1

    async def test_failed_flush_keeps_previous_records(self, tmp_path, clock):
        backend = LocalBackend(tmp_path / "weather_store.json", clock=clock)
        await backend.write_record(record_at("kept", "London", T0))

        with mock.patch.object(backend, "_flush", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError, match="disk full"):
                await backend.write_record(record_at("lost", "London", T0 + timedelta(minutes=5)))

        assert (await backend.latest("London")).id == "kept"
        assert [r.id for r in await backend.all_records()] == ["kept"]
        await backend.save_analytics(AnalyticsRecord(location="Paris", first_seen=T0, last_seen=T0))
        reloaded = LocalBackend(tmp_path / "weather_store.json", clock=clock)
        assert [r.id for r in await reloaded.all_records()] == ["kept"]

    async def test_failed_flush_keeps_previous_analytics(self, tmp_path, clock):
        backend = LocalBackend(tmp_path / "weather_store.json", clock=clock)
        original = AnalyticsRecord(location="London", first_seen=T0, last_seen=T0, total_requests=1)
        await backend.save_analytics(original)

        updated = AnalyticsRecord(location="London", first_seen=T0, last_seen=T0, total_requests=2)
        with mock.patch.object(backend, "_flush", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError):
                await backend.save_analytics(updated)
            with pytest.raises(StorageError):
                await backend.save_analytics(AnalyticsRecord(location="Paris", first_seen=T0, last_seen=T0))

        assert await backend.load_analytics("London") == original
        assert await backend.load_analytics("Paris") is None

    async def test_failed_flush_during_prune_keeps_records(self, tmp_path, clock):
        backend = LocalBackend(tmp_path / "weather_store.json", clock=clock)
        await backend.write_record(record_at("old", "London", T0 - timedelta(days=40)))

        with mock.patch.object(backend, "_flush", side_effect=StorageError("disk full")):
            with pytest.raises(StorageError):
                await backend.prune_old()

        assert await backend.prune_old() == 1


class TestRemoteBackend:

    async def test_key_layout(self, clock):
        client = fake_redis()
        backend = RemoteBackend(client=client, clock=clock, owner_id="household-7")
        record_id = await backend.save("London", make_snapshot())

        assert await client.exists(f"homeweather:household-7:record:{record_id}")
        assert await client.zcard("homeweather:household-7:records") == 1
        assert await client.zcard("homeweather:household-7:loc:London") == 1
        await client.aclose()

    async def test_owners_are_isolated(self, clock):
        client = fake_redis()
        alice = RemoteBackend(client=client, clock=clock, owner_id="alice")
        bob = RemoteBackend(client=client, clock=clock, owner_id="bob")

        await alice.save("London", make_snapshot())

        assert len(await alice.all_records()) == 1
        assert await bob.all_records() == []
        assert (await alice.latest("London")).owner_id == "alice"
        await client.aclose()

    async def test_prune_removes_index_entries(self, clock):
        client = fake_redis()
        backend = RemoteBackend(client=client, clock=clock)
        await backend.write_record(record_at("old", "London", T0 - timedelta(days=40)))

        assert await backend.prune_old() == 1
        assert not await client.exists("homeweather:anonymous:record:old")
        assert await client.zcard("homeweather:anonymous:loc:London") == 0
        await client.aclose()

    async def test_unconfigured(self):
        backend = RemoteBackend()
        assert not backend.is_available()
        assert not await backend.ping()
        with pytest.raises(StorageError):
            await backend.latest("London")

    async def test_ping(self):
        client = fake_redis()
        assert await RemoteBackend(client=client).ping()
        await client.aclose()

    async def test_connection_failure_is_storage_error(self, clock):
        client = mock.AsyncMock()
        client.hget.side_effect = RedisConnectionError("connection refused")
        backend = RemoteBackend(client=client, clock=clock)

        with pytest.raises(StorageError, match="Remote analytics read failed"):
            await backend.load_analytics("London")

    async def test_failed_write_leaves_no_partial_record(self, clock):
        client = fake_redis()
        backend = RemoteBackend(client=client, clock=clock)

        with mock.patch("redis.asyncio.client.Pipeline.execute",
                        side_effect=RedisConnectionError("connection refused")):
            with pytest.raises(StorageError, match="Remote write failed"):
                await backend.write_record(record_at("r1", "London", T0))

        assert not await client.exists("homeweather:anonymous:record:r1")
        assert await client.zcard("homeweather:anonymous:records") == 0
        assert await client.zcard("homeweather:anonymous:loc:London") == 0
        assert await backend.latest("London") is None
        await client.aclose()

    async def test_corrupt_record_document_is_storage_error(self, clock):
        client = fake_redis()
        backend = RemoteBackend(client=client, clock=clock)
        await backend.write_record(record_at("r1", "London", T0))
        await client.set("homeweather:anonymous:record:r1", "{not json")

        with pytest.raises(StorageError, match="Corrupt record"):
            await backend.latest("London")
        with pytest.raises(StorageError, match="Corrupt record"):
            await backend.all_records()
        await client.aclose()

    async def test_corrupt_analytics_document_is_storage_error(self, clock):
        client = fake_redis()
        backend = RemoteBackend(client=client, clock=clock)
        await client.hset("homeweather:anonymous:analytics", "London", json.dumps({"location": "London"}))

        with pytest.raises(StorageError, match="Corrupt analytics"):
            await backend.load_analytics("London")
        with pytest.raises(StorageError, match="Corrupt analytics"):
            await backend.all_analytics()
        await client.aclose()
