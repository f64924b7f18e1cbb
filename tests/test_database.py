"""Tests for the profile stores"""

from datetime import datetime, timedelta, timezone

import pytest

from perfkit.backend.models import CPUMetrics, K6Metrics, ProfileKind, metrics_adapter
from perfkit.backend.storage import InMemoryDatabase, ProfileRecord, SQLiteDatabase

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_record(
    profile_id: str,
    minutes: int = 0,
    kind: ProfileKind = ProfileKind.CPU,
    project: str = "demo",
    session=None,
) -> ProfileRecord:
    return ProfileRecord(
        id=profile_id,
        name=profile_id,
        kind=kind,
        raw_data=b"payload",
        metrics=CPUMetrics(total_cpu_time_ns=10) if kind == ProfileKind.CPU else None,
        project=project,
        session=session,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


@pytest.fixture(params=["memory", "sqlite"])
async def database(request, tmp_path):
    if request.param == "sqlite":
        store = SQLiteDatabase(tmp_path / "data" / "perfkit.db")
    else:
        store = InMemoryDatabase()
    yield store
    await store.close()


class TestDatabase:
    """Behaviour shared by every DatabaseInterface implementation"""

    async def test_save_and_get(self, database):
        await database.save_profile(make_record("p1"))

        profile = await database.get_profile("p1")

        assert profile is not None
        assert profile.raw_size == len(b"payload")
        assert await database.get_profile("missing") is None

    async def test_duplicate_id_rejected(self, database):
        await database.save_profile(make_record("p1"))
        with pytest.raises(ValueError):
            await database.save_profile(make_record("p1"))

    async def test_get_profiles_keeps_request_order(self, database):
        for i, profile_id in enumerate(["a", "b", "c"]):
            await database.save_profile(make_record(profile_id, minutes=i))

        profiles = await database.get_profiles(["c", "missing", "a"])

        assert [p.id for p in profiles] == ["c", "a"]

    async def test_list_newest_first_with_paging(self, database):
        for i in range(5):
            await database.save_profile(make_record(f"p{i}", minutes=i))

        profiles = await database.list_profiles(limit=2, offset=1)

        assert [p.id for p in profiles] == ["p3", "p2"]

    async def test_list_filters(self, database):
        await database.save_profile(make_record("cpu", 0, session="s1"))
        await database.save_profile(make_record("heap", 1, kind=ProfileKind.HEAP))
        await database.save_profile(make_record("other", 2, project="elsewhere"))

        by_kind = await database.list_profiles(kind=ProfileKind.HEAP)
        by_project = await database.list_profiles(project="elsewhere")
        by_session = await database.list_profiles(session="s1")

        assert [p.id for p in by_kind] == ["heap"]
        assert [p.id for p in by_project] == ["other"]
        assert [p.id for p in by_session] == ["cpu"]

    async def test_list_sessions(self, database):
        await database.save_profile(make_record("a", 0, session="old"))
        await database.save_profile(make_record("b", 5, session="new"))
        await database.save_profile(make_record("c", 1, session="old"))
        await database.save_profile(make_record("d", 9))

        sessions = await database.list_sessions()

        assert [(s.name, s.profile_count) for s in sessions] == [("new", 1), ("old", 2)]
        assert sessions[1].last_seen == BASE_TIME + timedelta(minutes=1)


class TestProfileRecord:
    """Tests for ProfileRecord serialization"""

    def test_to_dict(self):
        record = make_record("p1")
        data = record.to_dict()

        assert data["profile_type"] == "cpu"
        assert data["metrics"]["kind"] == "cpu"
        assert data["metrics"]["total_cpu_time_ns"] == 10
        assert data["created_at"] == BASE_TIME.isoformat()
        assert "raw_data" not in data

    def test_metrics_restore_from_dict(self):
        record = make_record("p1")

        restored = metrics_adapter.validate_python(record.to_dict()["metrics"])

        assert isinstance(restored, CPUMetrics)
        assert restored == record.metrics


class TestSQLiteDatabase:
    """Tests specific to the SQLite store"""

    async def test_profiles_survive_reopen(self, tmp_path):
        path = tmp_path / "perfkit.db"
        record = make_record("p1", session="nightly")
        record.tags = ["ci"]
        record.total_samples = 3

        store = SQLiteDatabase(path)
        await store.save_profile(record)
        await store.close()

        reopened = SQLiteDatabase(path)
        profile = await reopened.get_profile("p1")
        sessions = await reopened.list_sessions()
        await reopened.close()

        assert profile.raw_data == b"payload"
        assert profile.tags == ["ci"]
        assert profile.total_samples == 3
        assert profile.created_at == BASE_TIME
        assert [s.name for s in sessions] == ["nightly"]

    async def test_metrics_restored_as_typed_records(self, tmp_path):
        store = SQLiteDatabase(tmp_path / "perfkit.db")
        k6 = ProfileRecord(
            id="k6-1",
            name="load",
            kind=ProfileKind.K6,
            raw_data=b"{}",
            metrics=K6Metrics(p95_ms=48.0, error_rate=0.05),
            is_cumulative=False,
        )
        k6.k6_p95 = 48.0
        k6.profile_time = None
        await store.save_profile(k6)

        profile = await store.get_profile("k6-1")
        await store.close()

        assert isinstance(profile.metrics, K6Metrics)
        assert profile.metrics == k6.metrics
        assert profile.k6_p95 == 48.0
        assert profile.k6_rps is None
        assert profile.profile_time is None
        assert profile.to_dict() == k6.to_dict()

    async def test_creates_data_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "perfkit.db"
        store = SQLiteDatabase(path)
        await store.close()
        assert path.exists()
