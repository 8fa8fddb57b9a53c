"""SQLite-backed persistence for per-date market snapshots."""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from hotel_intel.hotels.models import DateSnapshot

SCHEMA_VERSION = 2
API_HISTORY_LIMIT = 20

VALID_JOURNAL_MODES = frozenset({"delete", "truncate", "persist", "memory", "wal", "off"})

LAST_COLLECTION_KEY = "last_collection_at"

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    date TEXT PRIMARY KEY,
    fetched_at TEXT NOT NULL,
    partial INTEGER NOT NULL DEFAULT 0,
    quote_count INTEGER NOT NULL,
    quotes_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS api_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    logged_at TEXT NOT NULL,
    action TEXT NOT NULL,
    details TEXT,
    success INTEGER NOT NULL,
    credits_used INTEGER NOT NULL DEFAULT 0,
    hotels_found INTEGER NOT NULL DEFAULT 0,
    dates_processed INTEGER NOT NULL DEFAULT 0,
    error TEXT
);
"""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _json_dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ApiCallEntry:
    """One line of the collection history shown to operators."""

    action: str
    details: str = ""
    success: bool = True
    credits_used: int = 0
    hotels_found: int = 0
    dates_processed: int = 0
    error: Optional[str] = None
    logged_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class DataCoverage:
    total_dates: int
    partial_dates: int
    first_date: Optional[str]
    last_date: Optional[str]

    @property
    def kind(self) -> str:
        if not self.total_dates:
            return "none"
        return "partial" if self.partial_dates else "full"


class SnapshotCache:
    """Date-keyed snapshot store; a thin async wrapper over sqlite3.

    The latest accepted snapshot per date wins wholesale. Empty snapshots are
    never written, and the only way to drop data is :meth:`reset`.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        busy_timeout_ms: int = 2000,
        journal_mode: str | None = "wal",
    ) -> None:
        self._path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._journal_mode = self._normalize_journal_mode(journal_mode)
        self._connection: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # lifecycle

    async def initialize(self) -> None:
        if self._connection is not None:
            return
        async with self._lock:
            if self._connection is None:
                self._connection = await asyncio.to_thread(self._open_connection)

    async def close(self) -> None:
        if self._connection is None:
            return
        conn = self._connection
        self._connection = None
        await asyncio.to_thread(conn.close)

    async def __aenter__(self) -> "SnapshotCache":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        await self.close()

    def _open_connection(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.execute(f"PRAGMA busy_timeout = {int(max(self._busy_timeout_ms, 0))};")
        if self._journal_mode:
            conn.execute(f"PRAGMA journal_mode = {self._journal_mode.upper()};")
        try:
            self._apply_schema(conn)
        except sqlite3.OperationalError as exc:
            conn.close()
            logger.error("SQLite schema setup failed (path=%s): %s", self._path, exc)
            raise
        return conn

    @staticmethod
    def _normalize_journal_mode(value: str | None) -> str | None:
        if value is None:
            return None
        mode = value.strip().lower()
        if not mode:
            return None
        if mode not in VALID_JOURNAL_MODES:
            raise ValueError(
                f"Unsupported SQLite journal_mode '{value}'. Expected one of: {sorted(VALID_JOURNAL_MODES)}"
            )
        return mode

    def _apply_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
            """
        )
        current = self._get_schema_version(conn)
        if current not in (0, SCHEMA_VERSION):
            # Snapshots written by an incompatible layout cannot be trusted.
            logger.warning(
                "Snapshot cache schema version %s is incompatible with %s; resetting %s",
                current,
                SCHEMA_VERSION,
                self._path,
            )
            with conn:
                conn.execute("DROP TABLE IF EXISTS snapshots")
                conn.execute("DROP TABLE IF EXISTS api_history")
                conn.execute("DELETE FROM meta")
        conn.executescript(SCHEMA)
        conn.execute(
            "INSERT INTO meta(key, value) VALUES('schema_version', ?)\n"
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
            (str(SCHEMA_VERSION),),
        )
        conn.commit()

    def _get_schema_version(self, conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
        if not row:
            return 0
        try:
            return int(row[0])
        except (TypeError, ValueError):
            return -1

    def _require_connection(self) -> sqlite3.Connection:
        if not self._connection:
            raise RuntimeError("Snapshot cache has not been initialised")
        return self._connection

    async def _run(self, op):
        async with self._lock:
            return await asyncio.to_thread(op)

    @staticmethod
    def _row_to_snapshot(row: Sequence[Any]) -> DateSnapshot:
        return DateSnapshot.from_dict(
            {
                "date": row[0],
                "fetched_at": row[1],
                "partial": bool(row[2]),
                "quotes": json.loads(row[3]),
            }
        )

    # ------------------------------------------------------------------
    # snapshots

    async def merge(self, snapshot: DateSnapshot) -> bool:
        """Replace the stored snapshot for ``snapshot.date``; empty snapshots are ignored."""
        if snapshot.is_empty:
            logger.info("Ignoring empty snapshot for %s", snapshot.date)
            return False

        def _op() -> bool:
            conn = self._require_connection()
            previous = conn.execute(
                "SELECT partial, quote_count FROM snapshots WHERE date=?", (snapshot.date,)
            ).fetchone()
            if previous and not previous[0] and snapshot.partial:
                logger.warning(
                    "Replacing full snapshot for %s (%s quotes) with partial data (%s quotes)",
                    snapshot.date,
                    previous[1],
                    len(snapshot.quotes),
                )
            with conn:
                conn.execute(
                    """
                    INSERT INTO snapshots(date, fetched_at, partial, quote_count, quotes_json)
                    VALUES(?, ?, ?, ?, ?)
                    ON CONFLICT(date) DO UPDATE SET
                        fetched_at=excluded.fetched_at,
                        partial=excluded.partial,
                        quote_count=excluded.quote_count,
                        quotes_json=excluded.quotes_json
                    """,
                    (
                        snapshot.date,
                        snapshot.fetched_at.isoformat(),
                        1 if snapshot.partial else 0,
                        len(snapshot.quotes),
                        _json_dumps([quote.to_dict() for quote in snapshot.quotes]),
                    ),
                )
            return True

        return await self._run(_op)

    async def merge_many(self, snapshots: Iterable[DateSnapshot]) -> int:
        merged = 0
        for snapshot in snapshots:
            if await self.merge(snapshot):
                merged += 1
        return merged

    async def get(self, day: str) -> DateSnapshot | None:
        def _op() -> DateSnapshot | None:
            conn = self._require_connection()
            row = conn.execute(
                "SELECT date, fetched_at, partial, quotes_json FROM snapshots WHERE date=?",
                (day,),
            ).fetchone()
            return self._row_to_snapshot(row) if row else None

        return await self._run(_op)

    async def list_dates(self) -> list[str]:
        def _op() -> list[str]:
            conn = self._require_connection()
            return [row[0] for row in conn.execute("SELECT date FROM snapshots ORDER BY date")]

        return await self._run(_op)

    async def snapshots(self, start: str | None = None, end: str | None = None) -> dict[str, DateSnapshot]:
        """Load snapshots keyed by date, optionally bounded by an inclusive range."""

        def _op() -> dict[str, DateSnapshot]:
            conn = self._require_connection()
            query = "SELECT date, fetched_at, partial, quotes_json FROM snapshots"
            clauses: list[str] = []
            params: list[str] = []
            if start:
                clauses.append("date >= ?")
                params.append(start)
            if end:
                clauses.append("date <= ?")
                params.append(end)
            if clauses:
                query += " WHERE " + " AND ".join(clauses)
            query += " ORDER BY date"
            return {row[0]: self._row_to_snapshot(row) for row in conn.execute(query, params)}

        return await self._run(_op)

    async def reset(self) -> None:
        """Drop every snapshot and the last-collection timestamp in one transaction."""

        def _op() -> None:
            conn = self._require_connection()
            with conn:
                conn.execute("DELETE FROM snapshots")
                conn.execute("DELETE FROM meta WHERE key=?", (LAST_COLLECTION_KEY,))

        await self._run(_op)
        logger.info("Snapshot cache reset (%s)", self._path)

    # ------------------------------------------------------------------
    # collection timestamps

    async def set_last_collection(self, when: datetime | None = None) -> None:
        stamp = (when or _utc_now()).isoformat()

        def _op() -> None:
            conn = self._require_connection()
            with conn:
                conn.execute(
                    "INSERT INTO meta(key, value) VALUES(?, ?)\n"
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                    (LAST_COLLECTION_KEY, stamp),
                )

        await self._run(_op)

    async def last_collection_at(self) -> datetime | None:
        """Stored collection timestamp, falling back to the newest snapshot."""

        def _op() -> datetime | None:
            conn = self._require_connection()
            row = conn.execute("SELECT value FROM meta WHERE key=?", (LAST_COLLECTION_KEY,)).fetchone()
            if row:
                return _parse_ts(row[0])
            newest: datetime | None = None
            for (value,) in conn.execute("SELECT fetched_at FROM snapshots"):
                parsed = _parse_ts(value)
                if parsed and (newest is None or parsed > newest):
                    newest = parsed
            return newest

        return await self._run(_op)

    async def is_update_due(self, interval_days: int, *, now: datetime | None = None) -> bool:
        last = await self.last_collection_at()
        if last is None:
            return True
        now = now or _utc_now()
        return now - last >= timedelta(days=interval_days)

    async def days_until_update(self, interval_days: int, *, now: datetime | None = None) -> int:
        last = await self.last_collection_at()
        if last is None:
            return 0
        now = now or _utc_now()
        remaining = (last + timedelta(days=interval_days)) - now
        days = -(-remaining.total_seconds() // 86400)
        return max(0, int(days))

    # ------------------------------------------------------------------
    # history and coverage

    async def log_api_call(self, entry: ApiCallEntry) -> None:
        def _op() -> None:
            conn = self._require_connection()
            with conn:
                conn.execute(
                    """
                    INSERT INTO api_history(
                        logged_at, action, details, success, credits_used,
                        hotels_found, dates_processed, error
                    ) VALUES(?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry.logged_at.isoformat(),
                        entry.action,
                        entry.details,
                        1 if entry.success else 0,
                        entry.credits_used,
                        entry.hotels_found,
                        entry.dates_processed,
                        entry.error,
                    ),
                )
                conn.execute(
                    """
                    DELETE FROM api_history WHERE id NOT IN (
                        SELECT id FROM api_history ORDER BY id DESC LIMIT ?
                    )
                    """,
                    (API_HISTORY_LIMIT,),
                )

        await self._run(_op)

    async def api_history(self) -> list[ApiCallEntry]:
        def _op() -> list[ApiCallEntry]:
            conn = self._require_connection()
            rows = conn.execute(
                """
                SELECT logged_at, action, details, success, credits_used,
                       hotels_found, dates_processed, error
                FROM api_history ORDER BY id DESC
                """
            ).fetchall()
            return [
                ApiCallEntry(
                    logged_at=_parse_ts(row[0]) or _utc_now(),
                    action=row[1],
                    details=row[2] or "",
                    success=bool(row[3]),
                    credits_used=int(row[4] or 0),
                    hotels_found=int(row[5] or 0),
                    dates_processed=int(row[6] or 0),
                    error=row[7],
                )
                for row in rows
            ]

        return await self._run(_op)

    async def clear_api_history(self) -> None:
        def _op() -> None:
            conn = self._require_connection()
            with conn:
                conn.execute("DELETE FROM api_history")

        await self._run(_op)

    async def data_coverage(self) -> DataCoverage:
        def _op() -> DataCoverage:
            conn = self._require_connection()
            total, partial, first, last = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(partial), 0), MIN(date), MAX(date) FROM snapshots"
            ).fetchone()
            return DataCoverage(
                total_dates=int(total or 0),
                partial_dates=int(partial or 0),
                first_date=first,
                last_date=last,
            )

        return await self._run(_op)

    async def count_unique_hotels(self) -> int:
        """Distinct properties across all dates (stable id, else lower-cased name)."""
        snapshots = await self.snapshots()
        keys: set[str] = set()
        for snapshot in snapshots.values():
            for quote in snapshot.quotes:
                keys.add(quote.stable_id or quote.name.strip().lower())
        return len(keys)
