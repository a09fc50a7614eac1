"""Tests for the HTTP adapter and the report repository."""
import json

import httpx
import pytest

from report_uploader.services.api_client import APIError, HTTPAPIClient
from report_uploader.services.reports import ReportRepository


def make_client(handler, **kwargs) -> HTTPAPIClient:
    return HTTPAPIClient("https://reports.test", transport=httpx.MockTransport(handler), **kwargs)


class TestHTTPAPIClient:
    @pytest.mark.asyncio
    async def test_requires_context(self):
        client = HTTPAPIClient("https://reports.test")
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.get("/api/reports/config")

    @pytest.mark.asyncio
    async def test_error_payload(self):
        def handler(request):
            return httpx.Response(403, json={"error": "Storage locked", "readOnly": True})

        async with make_client(handler) as client:
            with pytest.raises(APIError) as exc_info:
                await client.post("/api/reports/submit", json={})

        assert exc_info.value.status_code == 403
        assert exc_info.value.error == "Storage locked"
        assert exc_info.value.read_only is True

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(502, text="bad gateway")
            return httpx.Response(200, json={"ok": True})

        async with make_client(handler, max_retries=2) as client:
            response = await client.get("/api/reports/config", params={"taskId": "T-1"})

        assert response.json() == {"ok": True}
        assert len(calls) == 2
        assert calls[0].url.params["taskId"] == "T-1"

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404, json={"error": "Not found"})

        async with make_client(handler) as client:
            with pytest.raises(APIError):
                await client.get("/api/reports/T/B")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_upload_files_streams_multipart(self, tmp_path):
        first = tmp_path / "a.jpg"
        first.write_bytes(b"A" * 200_000)
        second = tmp_path / "b.png"
        second.write_bytes(b"B" * 10)
        seen = {}

        def handler(request):
            seen["content"] = request.content
            seen["headers"] = request.headers
            return httpx.Response(200, json={"urls": ["https://cdn/a.jpg", "https://cdn/b.png"]})

        progress = []

        async def on_progress(sent, total):
            progress.append((sent, total))

        async with make_client(handler) as client:
            payload = await client.upload_files(
                "/api/reports/upload",
                {"baseId": "BS-1", "taskId": "T-1"},
                [first, second],
                on_progress,
            )

        assert payload == {"urls": ["https://cdn/a.jpg", "https://cdn/b.png"]}
        body = seen["content"]
        assert int(seen["headers"]["Content-Length"]) == len(body)
        assert seen["headers"]["Content-Type"].startswith("multipart/form-data; boundary=")
        assert b'name="baseId"' in body and b"BS-1" in body
        assert b'name="files"; filename="a.jpg"' in body
        assert b'name="files"; filename="b.png"' in body
        assert len(progress) > 1
        assert progress[-1] == (len(body), len(body))
        assert [sent for sent, _ in progress] == sorted(sent for sent, _ in progress)

    @pytest.mark.asyncio
    async def test_upload_rejection(self, tmp_path):
        photo = tmp_path / "a.jpg"
        photo.write_bytes(b"A")

        def handler(request):
            return httpx.Response(507, json={"error": "Disk full"})

        async with make_client(handler) as client:
            with pytest.raises(APIError) as exc_info:
                await client.upload_files("/api/reports/upload", {}, [photo])

        assert exc_info.value.error == "Disk full"


class TestReportRepository:
    @pytest.mark.asyncio
    async def test_fetch_files(self):
        def handler(request):
            assert request.url.raw_path == b"/api/reports/T%201/BS-1"
            return httpx.Response(200, json={"files": ["u1", "", 5, "u2"]})

        async with make_client(handler) as client:
            files = await ReportRepository(client).fetch_files("T 1", "BS-1")

        assert files == ["u1", "u2"]

    @pytest.mark.asyncio
    async def test_fetch_files_not_found_is_empty(self):
        def handler(request):
            return httpx.Response(404, json={"error": "Not found"})

        async with make_client(handler) as client:
            assert await ReportRepository(client).fetch_files("T", "B") == []

    @pytest.mark.asyncio
    async def test_delete_file(self):
        def handler(request):
            assert request.method == "DELETE"
            assert request.url.path == "/api/reports/T/B/files"
            assert json.loads(request.content) == {"url": "u1"}
            return httpx.Response(200, json={"files": ["u2"]})

        async with make_client(handler) as client:
            assert await ReportRepository(client).delete_file("T", "B", "u1") == ["u2"]

    @pytest.mark.asyncio
    async def test_delete_file_without_list(self):
        def handler(request):
            return httpx.Response(204)

        async with make_client(handler) as client:
            assert await ReportRepository(client).delete_file("T", "B", "u1") is None

    @pytest.mark.asyncio
    async def test_submit(self):
        def handler(request):
            assert json.loads(request.content) == {"taskId": "T", "baseIds": ["B1", "B2"]}
            return httpx.Response(200, json={"message": "Sent"})

        async with make_client(handler) as client:
            assert await ReportRepository(client).submit("T", ["B1", "B2"]) == "Sent"
