"""
Profile Ingestor

Turns uploaded pprof and k6 payloads into stored profile records and
compares stored profiles.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import uuid4

from perfkit.backend.analysis import compare_records, extract_k6_summary, extract_profile
from perfkit.backend.config import Config
from perfkit.backend.errors import ProfileNotFoundError
from perfkit.backend.models import ComparisonReport, ProfileKind
from perfkit.backend.storage import DatabaseInterface, ProfileRecord
from perfkit.backend.storage.database import utcnow

logger = logging.getLogger(__name__)


@dataclass
class IngestParams:
    """Metadata supplied alongside an uploaded payload"""

    kind: Optional[ProfileKind] = None
    project: Optional[str] = None
    session: Optional[str] = None
    source: str = ""
    name: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    cumulative: bool = False


class ProfileIngestor:
    """
    Ingests profiles into a database.

    Extraction is CPU bound and stateless, so it runs in a worker thread;
    independent ingestions may proceed concurrently.
    """

    def __init__(self, database: DatabaseInterface, config: Config):
        self.database = database
        self.config = config

    async def ingest_pprof(self, data: bytes, params: IngestParams) -> ProfileRecord:
        """
        Extract and store a pprof profile.

        An explicit kind in ``params`` bypasses kind detection.

        Raises:
            DecodeError: The payload is not a well-formed profile
            UnsupportedKindError: The explicit kind has no pprof extractor
        """
        parsed = await asyncio.to_thread(extract_profile, data, params.kind)

        profile = self._build_record(data, parsed.kind, params)
        profile.metrics = parsed.metrics
        profile.duration_ns = parsed.duration_ns
        profile.is_cumulative = params.cumulative or parsed.kind.is_cumulative
        if parsed.time_ns > 0:
            profile.profile_time = datetime.fromtimestamp(
                parsed.time_ns / 1e9, tz=timezone.utc
            )

        if parsed.total_samples > 0:
            profile.total_samples = parsed.total_samples
        if parsed.total_value > 0:
            profile.total_value = parsed.total_value

        await self.database.save_profile(profile)

        logger.info(
            f"Ingested {parsed.kind.value} profile {profile.id} "
            f"({profile.raw_size} bytes, {parsed.total_samples} samples)"
        )
        return profile

    async def ingest_k6(self, data: bytes, params: IngestParams) -> ProfileRecord:
        """
        Extract and store a k6 summary.

        Raises:
            ParseError: The payload is not a k6 JSON summary
        """
        parsed = await asyncio.to_thread(extract_k6_summary, data)
        metrics = parsed.metrics

        profile = self._build_record(data, ProfileKind.K6, params)
        profile.metrics = metrics
        profile.duration_ns = parsed.duration_ms * 1_000_000

        # Quick-access fields are only kept when they carry information
        if metrics.p95_ms:
            profile.k6_p95 = metrics.p95_ms
        if metrics.p99_ms:
            profile.k6_p99 = metrics.p99_ms
        if metrics.rps:
            profile.k6_rps = metrics.rps
        profile.k6_error_rate = metrics.error_rate
        if parsed.duration_ms > 0:
            profile.k6_duration_ms = parsed.duration_ms

        await self.database.save_profile(profile)

        logger.info(f"Ingested k6 summary {profile.id} ({profile.raw_size} bytes)")
        return profile

    async def compare(
        self, profile_ids: Sequence[str]
    ) -> tuple[List[ProfileRecord], ComparisonReport]:
        """
        Compare stored profiles in the given order.

        Raises:
            ProfileNotFoundError: An ID is unknown
            MismatchedKindError: The profiles are of different kinds
            InsufficientInputError: Fewer than two IDs were given
        """
        profiles = await self.database.get_profiles(profile_ids)

        found = {p.id for p in profiles}
        for profile_id in profile_ids:
            if profile_id not in found:
                raise ProfileNotFoundError(profile_id)

        report = compare_records(
            [p.metrics for p in profiles],
            labels=[p.id for p in profiles],
        )

        logger.info(f"Compared {len(profiles)} {report.kind} profiles")
        return profiles, report

    def _build_record(
        self, data: bytes, kind: ProfileKind, params: IngestParams
    ) -> ProfileRecord:
        now = utcnow()
        name = params.name or f"{kind.value}-{now.strftime('%Y%m%d-%H%M%S')}"

        return ProfileRecord(
            id=self._generate_profile_id(),
            name=name,
            kind=kind,
            raw_data=data,
            project=params.project or self.config.project,
            session=params.session or None,
            tags=[*self.config.default_tags, *params.tags],
            source=params.source,
            created_at=now,
        )

    def _generate_profile_id(self) -> str:
        """Generate a unique profile ID"""
        return str(uuid4())
