"""
Profile Capturer

Pulls profiles from a Go program's net/http/pprof endpoints and uploads
them to a PerfKit collector.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Awaitable, Callable, List, Optional, Sequence

import httpx

from perfkit.backend.models import ProfileKind

logger = logging.getLogger(__name__)

PPROF_ENDPOINTS = MappingProxyType(
    {
        ProfileKind.CPU: "/debug/pprof/profile",
        ProfileKind.HEAP: "/debug/pprof/heap",
        ProfileKind.GOROUTINE: "/debug/pprof/goroutine",
        ProfileKind.BLOCK: "/debug/pprof/block",
        ProfileKind.MUTEX: "/debug/pprof/mutex",
        ProfileKind.ALLOCS: "/debug/pprof/allocs",
        ProfileKind.THREADCREATE: "/debug/pprof/threadcreate",
    }
)

CAPTURABLE_KINDS: tuple[ProfileKind, ...] = tuple(PPROF_ENDPOINTS)

# CPU profiles block for their whole sampling window
DEFAULT_TIMEOUT = 300.0


@dataclass
class CaptureResult:
    """Outcome of capturing (and optionally uploading) one profile"""

    kind: ProfileKind
    data: bytes = b""
    duration: float = 0.0
    error: Optional[str] = None
    profile_id: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_kinds(value: str) -> List[ProfileKind]:
    """Parse a comma separated kind list; ``all`` selects every capturable kind"""
    if value.strip() == "all":
        return list(CAPTURABLE_KINDS)

    kinds = []
    for name in value.split(","):
        kind = ProfileKind.parse(name.strip())
        if kind not in PPROF_ENDPOINTS:
            raise ValueError(f"Profile type {kind.value} cannot be captured")
        kinds.append(kind)
    return kinds


class Capturer:
    """Captures pprof profiles from a target and sends them to a collector"""

    def __init__(
        self,
        target_url: str,
        server_url: str,
        cpu_duration: float = 30.0,
        session: Optional[str] = None,
        project: Optional[str] = None,
        source: str = "capture",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.target_url = target_url.rstrip("/")
        self.server_url = server_url.rstrip("/")
        self.cpu_duration = cpu_duration
        self.session = session
        self.project = project
        self.source = source
        self._client = client

    async def __aenter__(self) -> "Capturer":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Capturer is not open; use 'async with Capturer(...)'")
        return self._client

    async def capture_profile(self, kind: ProfileKind) -> CaptureResult:
        """Fetch a single profile from the target"""
        result = CaptureResult(kind=kind)

        endpoint = PPROF_ENDPOINTS.get(kind)
        if endpoint is None:
            result.error = f"unknown profile type: {kind.value}"
            return result

        params = {}
        if kind == ProfileKind.CPU:
            params["seconds"] = str(max(int(self.cpu_duration), 1))

        start = time.monotonic()
        try:
            response = await self.client.get(self.target_url + endpoint, params=params)
        except httpx.HTTPError as e:
            result.error = f"fetch {kind.value}: {e}"
            return result

        if response.status_code != 200:
            result.error = (
                f"fetch {kind.value}: status {response.status_code}: {response.text}"
            )
            return result

        result.data = response.content
        result.duration = time.monotonic() - start
        return result

    async def send_to_server(self, result: CaptureResult) -> None:
        """Upload a captured profile to the collector"""
        if not result.ok:
            return

        params = {"type": result.kind.value, "source": self.source}
        if self.session:
            params["session"] = self.session
        if self.project:
            params["project"] = self.project
        if result.kind.is_cumulative:
            params["cumulative"] = "true"
        params["name"] = f"{result.kind.value}-{datetime.now().strftime('%Y%m%d-%H%M%S')}"

        try:
            response = await self.client.post(
                f"{self.server_url}/api/pprof/ingest",
                params=params,
                content=result.data,
                headers={"Content-Type": "application/octet-stream"},
            )
        except httpx.HTTPError as e:
            result.error = f"send to server: {e}"
            return

        if not response.is_success:
            result.error = f"server error: status {response.status_code}: {response.text}"
            return

        try:
            body = response.json()
        except ValueError as e:
            result.error = f"server response: {e}"
            return

        if not isinstance(body, dict) or not body.get("id"):
            result.error = f"server response: missing profile id: {response.text}"
            return

        result.profile_id = body["id"]

    async def capture_and_send(self, kind: ProfileKind) -> CaptureResult:
        """Capture a profile and upload it"""
        result = await self.capture_profile(kind)
        await self.send_to_server(result)

        if result.ok:
            logger.info(f"Captured {kind.value} ({result.size} bytes, {result.duration:.1f}s)")
        else:
            logger.warning(f"Capture of {kind.value} failed: {result.error}")
        return result

    async def capture_all(self, kinds: Sequence[ProfileKind]) -> List[CaptureResult]:
        """
        Capture several kinds concurrently.

        Errors are reported per result and never raised.
        """
        return list(await asyncio.gather(*(self.capture_and_send(k) for k in kinds)))

    async def run_periodic(
        self,
        kinds: Sequence[ProfileKind],
        interval: float,
        count: int = 0,
        on_round: Optional[Callable[[int, List[CaptureResult]], Awaitable[None]]] = None,
    ) -> int:
        """
        Capture every ``interval`` seconds.

        Args:
            kinds: Kinds to capture each round
            interval: Seconds between the start of two rounds
            count: Number of rounds, 0 to run until cancelled
            on_round: Optional callback awaited with (round number, results)

        Returns:
            int: Number of completed rounds
        """
        rounds = 0
        while count == 0 or rounds < count:
            started = time.monotonic()
            results = await self.capture_all(kinds)
            rounds += 1

            if on_round:
                await on_round(rounds, results)

            if count and rounds >= count:
                break

            elapsed = time.monotonic() - started
            await asyncio.sleep(max(interval - elapsed, 0))

        logger.info(f"Periodic capture finished after {rounds} rounds")
        return rounds
