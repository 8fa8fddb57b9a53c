from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from hotel_intel.hotels import DateSnapshot, HotelQuote
from hotel_intel.storage import ApiCallEntry, SnapshotCache
from hotel_intel.storage.sqlite_store import API_HISTORY_LIMIT, SCHEMA_VERSION


def _snapshot(day: str, *prices: float, partial: bool = False, fetched_at: datetime | None = None) -> DateSnapshot:
    quotes = [HotelQuote(name=f"Hotel {index}", stable_id=str(index), price=price) for index, price in enumerate(prices)]
    snapshot = DateSnapshot(date=day, quotes=quotes, partial=partial)
    if fetched_at is not None:
        snapshot.fetched_at = fetched_at
    return snapshot


@pytest.mark.asyncio
async def test_merge_persists_and_round_trips(tmp_path) -> None:
    db_path = tmp_path / "cache.sqlite"
    cache = SnapshotCache(db_path)
    await cache.initialize()

    assert await cache.merge(_snapshot("2026-05-02", 120, 80, 100))
    assert await cache.merge(_snapshot("2026-05-01", 90))

    stored = await cache.get("2026-05-02")
    assert stored is not None
    assert [quote.price for quote in stored.quotes] == [80, 100, 120]
    assert await cache.list_dates() == ["2026-05-01", "2026-05-02"]
    assert set(await cache.snapshots(start="2026-05-02")) == {"2026-05-02"}

    await cache.close()

    conn = sqlite3.connect(db_path)
    try:
        journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert journal_mode.lower() == "wal"
        version = conn.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()[0]
        assert int(version) == SCHEMA_VERSION
        assert conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0] == 2
    finally:
        conn.close()


@pytest.mark.asyncio
async def test_merge_is_idempotent_and_ignores_empty(tmp_path) -> None:
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        snapshot = _snapshot("2026-05-01", 80, 100)
        await cache.merge(snapshot)
        await cache.merge(snapshot)
        assert await cache.merge(DateSnapshot(date="2026-05-01", quotes=[])) is False

        stored = await cache.get("2026-05-01")
        assert stored is not None
        assert stored.to_dict() == snapshot.to_dict()
        assert await cache.list_dates() == ["2026-05-01"]


@pytest.mark.asyncio
async def test_retry_replaces_wholesale_even_when_partial(tmp_path, caplog) -> None:
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        await cache.merge(_snapshot("2026-05-01", 80, 90, 100, 110))
        with caplog.at_level("WARNING"):
            await cache.merge(_snapshot("2026-05-01", 85, partial=True))

        stored = await cache.get("2026-05-01")
        assert stored is not None
        assert [quote.price for quote in stored.quotes] == [85]
        assert stored.partial
        assert "partial data" in caplog.text
        assert (await cache.data_coverage()).partial_dates == 1


@pytest.mark.asyncio
async def test_reset_clears_snapshots_and_timestamp(tmp_path) -> None:
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        await cache.merge_many([_snapshot("2026-05-01", 80), _snapshot("2026-05-02", 90)])
        await cache.set_last_collection()
        assert await cache.last_collection_at() is not None

        await cache.reset()

        assert await cache.list_dates() == []
        assert await cache.last_collection_at() is None
        assert await cache.is_update_due(15)


@pytest.mark.asyncio
async def test_update_schedule_uses_stored_timestamp(tmp_path) -> None:
    now = datetime(2026, 6, 20, tzinfo=timezone.utc)
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        await cache.set_last_collection(now - timedelta(days=10))

        assert not await cache.is_update_due(15, now=now)
        assert await cache.days_until_update(15, now=now) == 5
        assert await cache.is_update_due(10, now=now)
        assert await cache.days_until_update(10, now=now) == 0


@pytest.mark.asyncio
async def test_last_collection_falls_back_to_newest_snapshot(tmp_path) -> None:
    newest = datetime(2026, 6, 1, 12, tzinfo=timezone.utc)
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        await cache.merge(_snapshot("2026-05-01", 80, fetched_at=newest - timedelta(days=3)))
        await cache.merge(_snapshot("2026-05-02", 90, fetched_at=newest))

        assert await cache.last_collection_at() == newest


@pytest.mark.asyncio
async def test_schema_mismatch_resets_cache(tmp_path) -> None:
    db_path = tmp_path / "cache.sqlite"
    async with SnapshotCache(db_path) as cache:
        await cache.merge(_snapshot("2026-05-01", 80))

    conn = sqlite3.connect(db_path)
    try:
        conn.execute("UPDATE meta SET value='1' WHERE key='schema_version'")
        conn.commit()
    finally:
        conn.close()

    async with SnapshotCache(db_path) as cache:
        assert await cache.list_dates() == []


@pytest.mark.asyncio
async def test_api_history_keeps_latest_entries(tmp_path) -> None:
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        for index in range(API_HISTORY_LIMIT + 5):
            await cache.log_api_call(ApiCallEntry(action="Collection", details=f"run {index}", credits_used=index))

        history = await cache.api_history()
        assert len(history) == API_HISTORY_LIMIT
        assert history[0].details == f"run {API_HISTORY_LIMIT + 4}"

        await cache.clear_api_history()
        assert await cache.api_history() == []


@pytest.mark.asyncio
async def test_coverage_and_unique_hotels(tmp_path) -> None:
    async with SnapshotCache(tmp_path / "cache.sqlite") as cache:
        coverage = await cache.data_coverage()
        assert coverage.total_dates == 0
        assert coverage.kind == "none"

        await cache.merge(_snapshot("2026-05-03", 80, 90))
        await cache.merge(_snapshot("2026-05-01", 70, 95, 99))

        coverage = await cache.data_coverage()
        assert (coverage.total_dates, coverage.first_date, coverage.last_date) == (2, "2026-05-01", "2026-05-03")
        assert coverage.kind == "full"
        assert await cache.count_unique_hotels() == 3


@pytest.mark.asyncio
async def test_store_requires_initialisation(tmp_path) -> None:
    cache = SnapshotCache(tmp_path / "cache.sqlite")
    with pytest.raises(RuntimeError):
        await cache.list_dates()
    with pytest.raises(ValueError):
        SnapshotCache(tmp_path / "other.sqlite", journal_mode="bogus")
