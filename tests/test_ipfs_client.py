"""Tests for the IPFS HTTP client adapter."""
import base64
import json

import httpx
import pytest

from ipfs_upload.exceptions import FilesystemError, TransportError, UploadError
from ipfs_upload.models import NamedCompletion, Tick, UploadRequest, UploadState
from ipfs_upload.orchestrator import UploadOrchestrator
from ipfs_upload.services.ipfs_client import IpfsHttpClient, parse_add_line
from ipfs_upload.utils.events import EventChannel


def _ndjson(*objects) -> bytes:
    return b"".join(json.dumps(o).encode() + b"\n" for o in objects)


def _client(handler) -> IpfsHttpClient:
    return IpfsHttpClient(
        "https://ipfs.example:5001/",
        project_id="pid",
        project_secret="psecret",
        transport=httpx.MockTransport(handler),
    )


async def _drain(channel: EventChannel):
    channel.close()
    return [event async for event in channel]


class TestParseAddLine:
    def test_progress_line_is_tick(self):
        assert parse_add_line({"Name": "a.txt", "Bytes": 262144}) == Tick("a.txt", 262144)

    def test_hash_line_is_completion(self):
        event = parse_add_line({"Name": "a.txt", "Hash": "bafya", "Size": "12"})
        assert event == NamedCompletion("a.txt", "bafya", "12")

    def test_error_line_raises(self):
        with pytest.raises(TransportError, match="blockstore full"):
            parse_add_line({"Message": "blockstore full", "Code": 0, "Type": "error"})

    @pytest.mark.parametrize("payload", ["oops", [], 42, None])
    def test_non_object_line_raises(self, payload):
        with pytest.raises(TransportError, match="malformed"):
            parse_add_line(payload)

    def test_non_numeric_bytes_raises(self):
        with pytest.raises(TransportError, match="malformed"):
            parse_add_line({"Name": "a.txt", "Bytes": "lots"})


class TestIpfsHttpClient:
    @pytest.mark.asyncio
    async def test_add_file_streams_events_and_returns_root(self, tmp_path):
        target = tmp_path / "example.txt"
        target.write_text("hello ipfs")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = request.content
            return httpx.Response(
                200,
                content=_ndjson(
                    {"Name": "example.txt", "Bytes": 10},
                    {"Name": "example.txt", "Hash": "bafyfile", "Size": "18"},
                ),
            )

        channel = EventChannel(8)
        async with _client(handler) as client:
            cid = await client.add(target, pin=True, progress=True, events=channel)

        assert cid == "bafyfile"
        assert await _drain(channel) == [
            Tick("example.txt", 10),
            NamedCompletion("example.txt", "bafyfile", "18"),
        ]
        assert seen["path"] == "/api/v0/add"
        assert seen["params"]["pin"] == "true"
        assert seen["params"]["progress"] == "true"
        assert seen["auth"] == "Basic " + base64.b64encode(b"pid:psecret").decode()
        assert b'filename="example.txt"' in seen["body"]
        assert b"hello ipfs" in seen["body"]

    @pytest.mark.asyncio
    async def test_add_directory_sends_tree_and_returns_last_hash(self, tmp_path):
        root = tmp_path / "site"
        (root / "css").mkdir(parents=True)
        (root / "index.html").write_text("<h1>hi</h1>")
        (root / "css" / "main.css").write_text("body {}")
        (root / ".secret").write_text("nope")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content
            seen["params"] = dict(request.url.params)
            return httpx.Response(
                200,
                content=_ndjson(
                    {"Name": "site/css/main.css", "Hash": "bafycss"},
                    {"Name": "site/index.html", "Hash": "bafyindex"},
                    {"Name": "site/css", "Hash": "bafycssdir"},
                    {"Name": "site", "Hash": "bafysite"},
                ),
            )

        async with _client(handler) as client:
            cid = await client.add(root, pin=False)

        body = seen["body"]
        assert cid == "bafysite"
        assert seen["params"]["pin"] == "false"
        assert seen["params"]["progress"] == "false"
        assert b'filename="site"' in body
        assert b'filename="site%2Fcss%2Fmain.css"' in body
        assert b'filename="site%2Findex.html"' in body
        assert b"application/x-directory" in body
        assert b".secret" not in body

    @pytest.mark.asyncio
    async def test_include_hidden(self, tmp_path):
        root = tmp_path / "dots"
        root.mkdir()
        (root / ".env").write_text("X=1")
        seen = {}

        def handler(request):
            seen["body"] = request.content
            return httpx.Response(200, content=_ndjson({"Name": "dots", "Hash": "bafydots"}))

        async with _client(handler) as client:
            await client.add(root, include_hidden=True)

        assert b"dots%2F.env" in seen["body"]

    @pytest.mark.asyncio
    async def test_http_error_raises_transport_error(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            return httpx.Response(401, json={"Message": "invalid project id", "Code": 0})

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="invalid project id") as info:
                await client.add(target)

        assert info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_error_in_stream_raises(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            return httpx.Response(
                200,
                content=_ndjson({"Name": "a.txt", "Bytes": 1}, {"Message": "context canceled", "Type": "error"}),
            )

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="context canceled"):
                await client.add(target)

    @pytest.mark.asyncio
    async def test_response_without_hash_raises(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            return httpx.Response(200, content=_ndjson({"Name": "a.txt", "Bytes": 1}))

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="content identifier"):
                await client.add(target)

    @pytest.mark.asyncio
    async def test_malformed_line_raises(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            return httpx.Response(200, content=b"<html>bad gateway</html>\n")

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="malformed"):
                await client.add(target)

    @pytest.mark.asyncio
    async def test_network_error_is_wrapped(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransportError, match="connection refused"):
                await client.add(target)

    @pytest.mark.asyncio
    async def test_missing_path_raises_filesystem_error(self, tmp_path):
        def handler(request):
            raise AssertionError("no request expected")

        async with _client(handler) as client:
            with pytest.raises(FilesystemError):
                await client.add(tmp_path / "missing.txt")

    @pytest.mark.asyncio
    async def test_requires_context_manager(self, tmp_path):
        client = IpfsHttpClient("http://127.0.0.1:5001")
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.add(tmp_path)


class TestMalformedStreamThroughOrchestrator:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [b'"oops"\n', b"[]\n", b'{"Name": "a.txt", "Bytes": "lots"}\n'])
    async def test_upload_fails_cleanly(self, tmp_path, body):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            return httpx.Response(200, content=body)

        async with _client(handler) as client:
            orchestrator = UploadOrchestrator(client)
            with pytest.raises(UploadError, match="malformed") as excinfo:
                await orchestrator.execute(UploadRequest(target, show_progress=False))

        assert isinstance(excinfo.value.cause, TransportError)
        assert orchestrator.state is UploadState.FAILED

    @pytest.mark.asyncio
    async def test_upload_with_progress_fails_cleanly(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("a")

        def handler(request):
            return httpx.Response(200, content=_ndjson({"Name": "a.txt", "Bytes": 1}) + b'"oops"\n')

        async with _client(handler) as client:
            orchestrator = UploadOrchestrator(client)
            with pytest.raises(UploadError, match="malformed"):
                await orchestrator.execute(UploadRequest(target, show_progress=True))

        assert orchestrator.state is UploadState.FAILED
