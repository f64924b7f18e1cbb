"""
In-memory profile store.

This module provides a simple in-memory storage layer behind an abstract
interface so it can be swapped for SQLite or Postgres later.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from perfkit.backend.models import MetricsRecord, ProfileKind


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProfileRecord:
    """Represents a stored profile and the metrics extracted from it"""

    def __init__(
        self,
        id: str,
        name: str,
        kind: ProfileKind,
        raw_data: bytes,
        metrics: Optional[MetricsRecord] = None,
        project: str = "",
        session: Optional[str] = None,
        tags: Optional[List[str]] = None,
        source: str = "",
        is_cumulative: bool = False,
        duration_ns: int = 0,
        created_at: Optional[datetime] = None,
    ):
        self.id = id
        self.name = name
        self.kind = kind
        self.raw_data = raw_data
        self.raw_size = len(raw_data)
        self.metrics = metrics
        self.project = project
        self.session = session
        self.tags = list(tags or [])
        self.source = source
        self.is_cumulative = is_cumulative
        self.duration_ns = duration_ns
        self.created_at = created_at or utcnow()
        self.updated_at = self.created_at
        self.profile_time: Optional[datetime] = self.created_at

        # pprof quick-access fields
        self.total_samples: Optional[int] = None
        self.total_value: Optional[int] = None

        # k6 quick-access fields
        self.k6_p95: Optional[float] = None
        self.k6_p99: Optional[float] = None
        self.k6_rps: Optional[float] = None
        self.k6_error_rate: Optional[float] = None
        self.k6_duration_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, without the raw payload"""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "name": self.name,
            "profile_type": self.kind.value,
            "project": self.project,
            "session": self.session,
            "tags": self.tags,
            "source": self.source,
            "raw_size": self.raw_size,
            "is_cumulative": self.is_cumulative,
            "profile_time": self.profile_time.isoformat() if self.profile_time else None,
            "duration_ns": self.duration_ns,
            "metrics": self.metrics.model_dump(mode="json") if self.metrics else None,
            "total_samples": self.total_samples,
            "total_value": self.total_value,
            "k6_p95": self.k6_p95,
            "k6_p99": self.k6_p99,
            "k6_rps": self.k6_rps,
            "k6_error_rate": self.k6_error_rate,
            "k6_duration_ms": self.k6_duration_ms,
        }


class SessionRecord:
    """A capture session summarised over its profiles"""

    def __init__(self, name: str, profile_count: int, last_seen: datetime):
        self.name = name
        self.profile_count = profile_count
        self.last_seen = last_seen


class DatabaseInterface(ABC):
    """Abstract interface for profile storage"""

    @abstractmethod
    async def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        """Store a new profile record"""
        pass

    @abstractmethod
    async def get_profile(self, profile_id: str) -> Optional[ProfileRecord]:
        """Get a profile by ID"""
        pass

    @abstractmethod
    async def get_profiles(self, profile_ids: Sequence[str]) -> List[ProfileRecord]:
        """Get profiles by ID, in the requested order, skipping unknown IDs"""
        pass

    @abstractmethod
    async def list_profiles(
        self,
        kind: Optional[ProfileKind] = None,
        project: Optional[str] = None,
        session: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ProfileRecord]:
        """List profiles with optional filters, newest first"""
        pass

    @abstractmethod
    async def list_sessions(self) -> List[SessionRecord]:
        """List sessions, most recently used first"""
        pass

    async def close(self) -> None:
        """Release resources held by the store"""
        pass


class InMemoryDatabase(DatabaseInterface):
    """In-memory implementation of the database interface"""

    def __init__(self):
        self._profiles: Dict[str, ProfileRecord] = {}
        self._lock = asyncio.Lock()

    async def save_profile(self, profile: ProfileRecord) -> ProfileRecord:
        """Store a new profile record"""
        async with self._lock:
            if profile.id in self._profiles:
                raise ValueError(f"Profile {profile.id} already exists")
            self._profiles[profile.id] = profile
            return profile

    async def get_profile(self, profile_id: str) -> Optional[ProfileRecord]:
        """Get a profile by ID"""
        return self._profiles.get(profile_id)

    async def get_profiles(self, profile_ids: Sequence[str]) -> List[ProfileRecord]:
        """Get profiles by ID, in the requested order, skipping unknown IDs"""
        return [
            self._profiles[profile_id]
            for profile_id in profile_ids
            if profile_id in self._profiles
        ]

    async def list_profiles(
        self,
        kind: Optional[ProfileKind] = None,
        project: Optional[str] = None,
        session: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> List[ProfileRecord]:
        """List profiles with optional filters, newest first"""
        profiles = list(self._profiles.values())

        if kind:
            profiles = [p for p in profiles if p.kind == kind]

        if project:
            profiles = [p for p in profiles if p.project == project]

        if session:
            profiles = [p for p in profiles if p.session == session]

        profiles = sorted(profiles, key=lambda p: p.created_at, reverse=True)
        return profiles[offset : offset + limit]

    async def list_sessions(self) -> List[SessionRecord]:
        """List sessions, most recently used first"""
        sessions: Dict[str, SessionRecord] = {}
        for profile in self._profiles.values():
            if not profile.session:
                continue
            record = sessions.get(profile.session)
            if record is None:
                sessions[profile.session] = SessionRecord(
                    profile.session, 1, profile.created_at
                )
            else:
                record.profile_count += 1
                record.last_seen = max(record.last_seen, profile.created_at)

        return sorted(sessions.values(), key=lambda s: s.last_seen, reverse=True)
