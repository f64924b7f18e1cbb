"""
PerfKit FastAPI Backend

Provides a REST API for ingesting pprof profiles and k6 summaries,
browsing the extracted metrics and comparing captures of the same kind.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Path, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from perfkit.backend.config import Config, load_config
from perfkit.backend.errors import (
    DecodeError,
    InsufficientInputError,
    MismatchedKindError,
    ParseError,
    ProfileNotFoundError,
    UnsupportedKindError,
)
from perfkit.backend.models import (
    CompareResponse,
    IngestResponse,
    ProfileKind,
    ProfileListResponse,
    ProfileResponse,
    SessionListResponse,
    SessionSummary,
)
from perfkit.backend.services import IngestParams, ProfileIngestor
from perfkit.backend.storage import DatabaseInterface, ProfileRecord, SQLiteDatabase

logger = logging.getLogger(__name__)

# Global instances
config: Config | None = None
database: DatabaseInterface | None = None
ingestor: ProfileIngestor | None = None


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global config, database, ingestor

    if config is None:
        config = load_config()
    configure_logging(config.log_level)

    logger.info("Starting PerfKit backend")

    owns_database = database is None
    if owns_database:
        database = SQLiteDatabase(config.db_path)
    ingestor = ProfileIngestor(database, config)

    logger.info(f"Backend initialization complete (project '{config.project}')")

    yield

    logger.info("Shutting down PerfKit backend")

    if owns_database:
        await database.close()
        database = None


app = FastAPI(
    title="PerfKit API",
    description="Collector for pprof profiles and k6 load test summaries",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health & Status Routes
# ============================================================================


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "PerfKit API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


# ============================================================================
# Ingestion Routes
# ============================================================================


@app.post("/api/pprof/ingest", response_model=IngestResponse)
async def ingest_pprof(
    request: Request,
    type: str | None = Query(None, description="Profile type; detected when omitted"),
    project: str | None = Query(None, description="Project name"),
    session: str | None = Query(None, description="Capture session"),
    source: str = Query("", description="Where the profile came from"),
    name: str | None = Query(None, description="Display name"),
    tag: List[str] = Query(default=[], description="Tags, repeatable"),
    cumulative: bool = Query(False, description="Mark the profile as cumulative"),
):
    """
    Ingest a raw (optionally gzipped) pprof profile.

    The profile kind is detected from its sample types unless `type` is given.
    """
    if not ingestor:
        raise HTTPException(status_code=503, detail="Service not initialized")

    kind = _parse_kind(type) if type else None
    body = await request.body()

    params = IngestParams(
        kind=kind,
        project=project,
        session=session,
        source=source,
        name=name,
        tags=tag,
        cumulative=cumulative,
    )

    try:
        profile = await ingestor.ingest_pprof(body, params)
    except (DecodeError, UnsupportedKindError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to parse pprof: {e}") from e
    except Exception as e:
        logger.error(f"Failed to save profile: {e}")
        raise HTTPException(status_code=500, detail="Failed to save profile") from e

    return IngestResponse(id=profile.id, message="Profile ingested successfully")


@app.post("/api/k6/ingest", response_model=IngestResponse)
async def ingest_k6(
    request: Request,
    project: str | None = Query(None, description="Project name"),
    session: str | None = Query(None, description="Capture session"),
    source: str = Query("", description="Where the summary came from"),
    name: str | None = Query(None, description="Display name"),
    tag: List[str] = Query(default=[], description="Tags, repeatable"),
):
    """Ingest a k6 JSON summary"""
    if not ingestor:
        raise HTTPException(status_code=503, detail="Service not initialized")

    body = await request.body()
    params = IngestParams(
        project=project,
        session=session,
        source=source,
        name=name,
        tags=tag,
    )

    try:
        profile = await ingestor.ingest_k6(body, params)
    except ParseError as e:
        raise HTTPException(
            status_code=400, detail=f"Failed to parse k6 summary: {e}"
        ) from e
    except Exception as e:
        logger.error(f"Failed to save k6 profile: {e}")
        raise HTTPException(status_code=500, detail="Failed to save profile") from e

    return IngestResponse(id=profile.id, message="K6 profile ingested successfully")


# ============================================================================
# Profile Routes
# ============================================================================


@app.get("/api/profiles", response_model=ProfileListResponse)
async def list_profiles(
    limit: int = Query(20, ge=1, le=1000, description="Maximum profiles returned"),
    offset: int = Query(0, ge=0, description="Profiles to skip"),
    type: str | None = Query(None, description="Filter by profile type"),
    project: str | None = Query(None, description="Filter by project"),
    session: str | None = Query(None, description="Filter by session"),
):
    """
    List profiles with optional filters.

    Results are sorted by creation time (most recent first).
    """
    if not database:
        raise HTTPException(status_code=503, detail="Service not initialized")

    kind = _parse_kind(type) if type else None

    profiles = await database.list_profiles(
        kind=kind,
        project=project,
        session=session,
        limit=limit,
        offset=offset,
    )

    profile_responses = [_profile_to_response(p) for p in profiles]

    return ProfileListResponse(
        profiles=profile_responses,
        total=len(profile_responses),
    )


@app.get("/api/profiles/compare", response_model=CompareResponse)
async def compare_profiles(
    ids: str = Query(..., description="Comma separated profile IDs, oldest first"),
):
    """
    Compare profiles of the same type.

    Each profile is compared against the one listed before it.
    """
    if not ingestor:
        raise HTTPException(status_code=503, detail="Service not initialized")

    profile_ids = [i.strip() for i in ids.split(",") if i.strip()]

    try:
        profiles, report = await ingestor.compare(profile_ids)
    except ProfileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (MismatchedKindError, InsufficientInputError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return CompareResponse(
        profiles=[_profile_to_response(p) for p in profiles],
        report=report,
    )


@app.get("/api/profiles/{profile_id}", response_model=ProfileResponse)
async def get_profile(
    profile_id: str = Path(..., description="Unique identifier of the profile"),
    raw: bool = Query(False, description="Return the uploaded payload instead"),
):
    """
    Get a stored profile.

    With `raw=true` the originally uploaded bytes are returned.
    """
    if not database:
        raise HTTPException(status_code=503, detail="Service not initialized")

    profile = await database.get_profile(profile_id)

    if not profile:
        raise HTTPException(status_code=404, detail=f"Profile {profile_id} not found")

    if raw:
        extension = "json" if profile.kind == ProfileKind.K6 else "pb.gz"
        return Response(
            content=profile.raw_data,
            media_type="application/octet-stream",
            headers={
                "Content-Disposition": f"attachment; filename={profile.name}.{extension}"
            },
        )

    return _profile_to_response(profile)


@app.get("/api/sessions", response_model=SessionListResponse)
async def list_sessions():
    """List capture sessions, most recently used first"""
    if not database:
        raise HTTPException(status_code=503, detail="Service not initialized")

    sessions = await database.list_sessions()

    return SessionListResponse(
        sessions=[
            SessionSummary(
                session=s.name,
                profile_count=s.profile_count,
                last_seen=s.last_seen.isoformat(),
            )
            for s in sessions
        ],
        total=len(sessions),
    )


# ============================================================================
# Helper Functions
# ============================================================================


def _parse_kind(value: str) -> ProfileKind:
    try:
        return ProfileKind.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _profile_to_response(profile: ProfileRecord) -> ProfileResponse:
    """Convert ProfileRecord to ProfileResponse"""
    return ProfileResponse(**profile.to_dict())


# ============================================================================
# Main Entry Point
# ============================================================================


def run(
    host: Optional[str] = None,
    port: Optional[int] = None,
    config_path: Optional[str] = None,
) -> None:
    """Serve the API with uvicorn using the loaded configuration"""
    global config
    import uvicorn

    config = load_config(config_path)
    configure_logging(config.log_level)

    uvicorn.run(
        app,
        host=host or config.server.host,
        port=port or config.server.port,
    )


if __name__ == "__main__":
    run()
