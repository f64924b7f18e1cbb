"""Tests for the pprof capturer"""

import httpx
import pytest

from perfkit.backend.models import ProfileKind
from perfkit.backend.services import CAPTURABLE_KINDS, Capturer, parse_kinds


class FakeNetwork:
    """Serves pprof endpoints on http://target and a collector on http://collector"""

    def __init__(self, failing_path=None, collector_status=200):
        self.failing_path = failing_path
        self.collector_status = collector_status
        self.fetched = []
        self.uploads = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "target":
            self.fetched.append(request.url)
            if request.url.path == self.failing_path:
                return httpx.Response(500, text="boom")
            return httpx.Response(200, content=request.url.path.encode())

        self.uploads.append(request)
        if self.collector_status != 200:
            return httpx.Response(self.collector_status, text="rejected")
        kind = request.url.params["type"]
        return httpx.Response(200, json={"id": f"id-{kind}", "message": "ok"})


def make_capturer(network: FakeNetwork, **kwargs) -> Capturer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(network))
    return Capturer("http://target/", "http://collector", client=client, **kwargs)


class TestParseKinds:
    """Tests for parse_kinds"""

    def test_all(self):
        assert parse_kinds("all") == list(CAPTURABLE_KINDS)

    def test_list(self):
        assert parse_kinds("cpu, heap") == [ProfileKind.CPU, ProfileKind.HEAP]

    @pytest.mark.parametrize("value", ["k6", "gc", "nope"])
    def test_rejects_non_capturable(self, value):
        with pytest.raises(ValueError):
            parse_kinds(value)


class TestCapturer:
    """Tests for Capturer"""

    async def test_capture_and_send(self):
        network = FakeNetwork()
        async with make_capturer(network, session="s1", project="shop") as capturer:
            result = await capturer.capture_and_send(ProfileKind.HEAP)

        assert result.ok
        assert result.data == b"/debug/pprof/heap"
        assert result.profile_id == "id-heap"

        upload = network.uploads[0]
        assert upload.url.path == "/api/pprof/ingest"
        assert upload.url.params["session"] == "s1"
        assert upload.url.params["project"] == "shop"
        assert upload.url.params["source"] == "capture"
        assert "cumulative" not in upload.url.params
        assert upload.content == b"/debug/pprof/heap"

    async def test_cpu_duration_and_cumulative_flag(self):
        network = FakeNetwork()
        async with make_capturer(network, cpu_duration=2.7) as capturer:
            await capturer.capture_all([ProfileKind.CPU, ProfileKind.MUTEX])

        cpu_url = next(u for u in network.fetched if u.path.endswith("/profile"))
        assert cpu_url.params["seconds"] == "2"

        mutex_upload = next(
            r for r in network.uploads if r.url.params["type"] == "mutex"
        )
        assert mutex_upload.url.params["cumulative"] == "true"

    async def test_fetch_failure_is_reported(self):
        network = FakeNetwork(failing_path="/debug/pprof/block")
        async with make_capturer(network) as capturer:
            results = await capturer.capture_all(
                [ProfileKind.GOROUTINE, ProfileKind.BLOCK]
            )

        assert results[0].ok
        assert not results[1].ok
        assert "status 500" in results[1].error
        assert len(network.uploads) == 1

    @pytest.mark.parametrize("body", [b"<html>ok</html>", b"", b"[]"])
    async def test_unreadable_server_reply_is_reported(self, body):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "target":
                return httpx.Response(200, content=b"profile")
            return httpx.Response(200, content=body)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        capturer = Capturer("http://target", "http://collector", client=client)
        async with capturer:
            results = await capturer.capture_all(
                [ProfileKind.HEAP, ProfileKind.GOROUTINE]
            )

        assert len(results) == 2
        for result in results:
            assert not result.ok
            assert result.error.startswith("server response")
            assert result.profile_id is None

    async def test_server_rejection_is_reported(self):
        network = FakeNetwork(collector_status=400)
        async with make_capturer(network) as capturer:
            result = await capturer.capture_and_send(ProfileKind.GOROUTINE)

        assert not result.ok
        assert "server error" in result.error
        assert result.profile_id is None

    async def test_run_periodic(self):
        network = FakeNetwork()
        rounds_seen = []

        async def on_round(number, results):
            rounds_seen.append((number, [r.kind for r in results]))

        async with make_capturer(network) as capturer:
            rounds = await capturer.run_periodic(
                [ProfileKind.GOROUTINE], interval=0, count=3, on_round=on_round
            )

        assert rounds == 3
        assert [n for n, _ in rounds_seen] == [1, 2, 3]
        assert len(network.uploads) == 3

    async def test_requires_open_client(self):
        capturer = Capturer("http://target", "http://collector")
        with pytest.raises(RuntimeError):
            await capturer.capture_profile(ProfileKind.HEAP)
