"""
SQLite profile store.

Profiles survive server restarts in ``<data_dir>/perfkit.db``. Metrics
records are stored as JSON and restored into their typed models on read.
"""

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

from perfkit.backend.models import ProfileKind, metrics_adapter
from perfkit.backend.storage.database import (
    DatabaseInterface,
    ProfileRecord,
    SessionRecord,
)

logger = logging.getLogger(__name__)

QUICK_FIELDS = (
    "total_samples",
    "total_value",
    "k6_p95",
    "k6_p99",
    "k6_rps",
    "k6_error_rate",
    "k6_duration_ms",
)


def _format_time(value: datetime) -> str:
    # Fixed-width UTC timestamps sort correctly as text
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_profile(row: sqlite3.Row) -> ProfileRecord:
    metrics = metrics_adapter.validate_json(row["metrics"]) if row["metrics"] else None

    profile = ProfileRecord(
        id=row["id"],
        name=row["name"],
        kind=ProfileKind(row["profile_type"]),
        raw_data=row["raw_data"] or b"",
        metrics=metrics,
        project=row["project"] or "",
        session=row["session"],
        tags=json.loads(row["tags"] or "[]"),
        source=row["source"] or "",
        is_cumulative=bool(row["is_cumulative"]),
        duration_ns=row["duration_ns"] or 0,
        created_at=_parse_time(row["created_at"]),
    )
    profile.updated_at = _parse_time(row["updated_at"]) or profile.created_at
    profile.profile_time = _parse_time(row["profile_time"])
    for name in QUICK_FIELDS:
        setattr(profile, name, row[name])
    return profile


class SQLiteDatabase(DatabaseInterface):
    """SQLite implementation of the database interface"""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        """
        Open (and create if needed) the database.

        Args:
            db_path: Path to the SQLite file; parent directories are created
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # One connection shared by worker threads, serialized by the lock
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._init_db()

        logger.info(f"Opened profile store at {self.db_path}")

    def _init_db(self) -> None:
        """Initialize database schema"""
        cursor = self._conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS profiles (
                id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                name TEXT NOT NULL,
                profile_type TEXT NOT NULL,
                project TEXT,
                session TEXT,
                tags TEXT,
                source TEXT,
                raw_data BLOB,
                raw_size INTEGER,
                is_cumulative INTEGER DEFAULT 0,
                profile_time TEXT,
                duration_ns INTEGER,
                metrics TEXT,
                total_samples INTEGER,
                total_value INTEGER,
                k6_p95 REAL,
                k6_p99 REAL,
                k6_rps REAL,
                k6_error_rate REAL,
                k6_duration_ms INTEGER
            )
        """)

        # Indexes
        for column in ("project", "profile_type", "session"):
            cursor.execute(
                f"CREATE INDEX IF NOT EXISTS idx_profiles_{column} ON profiles({column})"
            )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_profiles_created ON profiles(created_at DESC)"
        )

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS schema_info (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)
        cursor.execute(
            "INSERT OR REPLACE INTO schema_info (key, value) VALUES (?, ?)",
            ("version", str(self.SCHEMA_VERSION)),
        )

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        def locked():
            with self._lock:
                return func(*args)

        return await asyncio.to_thread(locked)

    def _query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        return self._conn.execute(sql, params).fetchall()

    # Profile operations

    def _insert(self, profile: ProfileRecord) -> None:
        try:
            self._conn.execute(
                """
                INSERT INTO profiles (
                    id, created_at, updated_at, name, profile_type, project,
                    session, tags, source, raw_data, raw_size, is_cumulative,
                    profile_time, duration_ns, metrics, total_samples,
                    total_value, k6_p95, k6_p99, k6_rps, k6_error_rate,
                    k6_duration_ms
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    profile.id,
                    _format_time(profile.created_at),
                    _format_time(profile.updated_at),
                    profile.name,
                    profile.kind.value,
                    profile.project,
                    profile.session,
                    json.dumps(profile.tags),
                    profile.source,
                    profile.raw_data,
                    profile.raw_size,
                    int(profile.is_cumulative),
                    _format_time(profile.profile_time) if profile.profile_time else None,
                    profile.duration_ns,
                    profile.metrics.model_dump_json() if profile.metrics else None,
                    *(getattr(profile, name) for name in QUICK_FIELDS),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Profile {profile.id} already exists") from e

    async def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        """Store a new profile record"""
        await self._run(self._insert, profile)
        logger.debug(f"Saved profile: {profile.id}")
        return profile

    async def get_profile(self, profile_id: str) -> Optional[ProfileRecord]:
        """Get a profile by ID"""
        rows = await self._run(
            self._query, "SELECT * FROM profiles WHERE id = ?", (profile_id,)
        )
        return _row_to_profile(rows[0]) if rows else None

    async def get_profiles(self, profile_ids: Sequence[str]) -> List[ProfileRecord]:
        """Get profiles by ID, in the requested order, skipping unknown IDs"""
        if not profile_ids:
            return []

        placeholders = ", ".join("?" for _ in profile_ids)
        rows = await self._run(
            self._query,
            f"SELECT * FROM profiles WHERE id IN ({placeholders})",
            list(profile_ids),
        )

        by_id = {row["id"]: _row_to_profile(row) for row in rows}
        return [by_id[profile_id] for profile_id in profile_ids if profile_id in by_id]

    async def list_profiles(
        self,
        kind: Optional[ProfileKind] = None,
        project: Optional[str] = None,
        session: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ProfileRecord]:
        """List profiles with optional filters, newest first"""
        clauses = []
        params: List[Any] = []

        if kind:
            clauses.append("profile_type = ?")
            params.append(kind.value)

        if project:
            clauses.append("project = ?")
            params.append(project)

        if session:
            clauses.append("session = ?")
            params.append(session)

        sql = "SELECT * FROM profiles"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        rows = await self._run(self._query, sql, params)
        return [_row_to_profile(row) for row in rows]

    async def list_sessions(self) -> List[SessionRecord]:
        """List sessions, most recently used first"""
        rows = await self._run(
            self._query,
            """
            SELECT session, COUNT(*) AS profile_count, MAX(created_at) AS last_seen
            FROM profiles
            WHERE session IS NOT NULL AND session != ''
            GROUP BY session
            ORDER BY last_seen DESC
            """,
        )
        return [
            SessionRecord(
                row["session"], row["profile_count"], _parse_time(row["last_seen"])
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close the database connection"""
        await self._run(self._conn.close)
        logger.info(f"Closed profile store at {self.db_path}")
