"""
Tests for HttpxTransport and InMemoryTransport.

HTTP tests run against httpx.MockTransport; no network access.
"""

from typing import Dict, List

import httpx
import pytest

from ufo.application.services.uploader import Uploader
from ufo.config import UploaderConfig
from ufo.domain.interfaces.transport import TransportRequest
from ufo.domain.models import TransmissionError, UploadStatus
from ufo.infrastructure.sources import BytesSource
from ufo.infrastructure.transport import HttpxTransport, InMemoryTransport

UPLOAD_URL = "https://upload.test/files"


def make_request(data: bytes = b"0123456789", chunk_index: int = 1, **overrides) -> TransportRequest:
    values = dict(
        file_id="file-1",
        file_name="data.bin",
        chunk_index=chunk_index,
        total_chunks=3,
        offset=0,
        length=len(data),
        total_size=30,
        source=BytesSource(data),
        target={"url": UPLOAD_URL},
        chunk_size=10,
    )
    values.update(overrides)
    return TransportRequest(**values)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpxTransportRequests:
    """Request construction."""

    @pytest.mark.asyncio
    async def test_query_params_and_body(self):
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        async with mock_client(handler) as client:
            transport = HttpxTransport(client=client)
            response = await transport.send(make_request(), lambda p: None)

        assert response.status_code == 200
        request = seen[0]
        assert request.method == "POST"
        params = request.url.params
        assert params["chunkNumber"] == "2"
        assert params["totalChunks"] == "3"
        assert params["chunkSize"] == "10"
        assert params["currentChunkSize"] == "10"
        assert params["totalSize"] == "30"
        assert params["identifier"] == "file-1"
        assert params["filename"] == "data.bin"
        assert request.content == b"0123456789"
        assert request.headers["Content-Length"] == "10"
        assert "Transfer-Encoding" not in request.headers

    @pytest.mark.asyncio
    async def test_target_method_headers_and_params(self):
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        target = {
            "url": UPLOAD_URL,
            "method": "PUT",
            "headers": {"Authorization": "Bearer t"},
            "params": {"bucket": "raw"},
        }
        async with mock_client(handler) as client:
            transport = HttpxTransport(client=client)
            await transport.send(make_request(target=target), lambda p: None)

        request = seen[0]
        assert request.method == "PUT"
        assert request.headers["Authorization"] == "Bearer t"
        assert request.url.params["bucket"] == "raw"

    @pytest.mark.asyncio
    async def test_default_target_fills_missing_url(self):
        seen: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        async with mock_client(handler) as client:
            transport = HttpxTransport(client=client, default_target={"url": UPLOAD_URL})
            await transport.send(make_request(target={}), lambda p: None)

        assert str(seen[0].url).startswith(UPLOAD_URL)

    @pytest.mark.asyncio
    async def test_progress_reported_per_slice(self):
        progress: List[float] = []

        async with mock_client(lambda request: httpx.Response(200)) as client:
            transport = HttpxTransport(client=client, slice_size=4)
            await transport.send(make_request(), progress.append)

        assert progress == pytest.approx([0.4, 0.8, 1.0])

    @pytest.mark.asyncio
    async def test_missing_url_is_permanent(self):
        async with mock_client(lambda request: httpx.Response(200)) as client:
            transport = HttpxTransport(client=client)
            with pytest.raises(TransmissionError) as exc_info:
                await transport.send(make_request(target={}), lambda p: None)

        assert exc_info.value.retryable is False


class TestHttpxTransportErrors:
    """HTTP status and network error mapping."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,retryable", [
        (415, False),
        (404, False),
        (500, False),
        (503, True),
        (429, True),
    ])
    async def test_status_mapping(self, status, retryable):
        async with mock_client(lambda request: httpx.Response(status)) as client:
            transport = HttpxTransport(client=client)
            with pytest.raises(TransmissionError) as exc_info:
                await transport.send(make_request(), lambda p: None)

        assert exc_info.value.status_code == status
        assert exc_info.value.retryable is retryable

    @pytest.mark.asyncio
    async def test_custom_permanent_statuses(self):
        async with mock_client(lambda request: httpx.Response(415)) as client:
            transport = HttpxTransport(client=client, permanent_error_statuses=())
            with pytest.raises(TransmissionError) as exc_info:
                await transport.send(make_request(), lambda p: None)

        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            transport = HttpxTransport(client=client)
            with pytest.raises(TransmissionError) as exc_info:
                await transport.send(make_request(), lambda p: None)

        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestHttpxTransportLifecycle:
    """Client ownership."""

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        transport = HttpxTransport()
        await transport.aclose()
        assert transport.client.is_closed

    @pytest.mark.asyncio
    async def test_shared_client_is_left_open(self):
        async with mock_client(lambda request: httpx.Response(200)) as client:
            transport = HttpxTransport(client=client)
            await transport.aclose()
            assert not client.is_closed

    def test_from_config(self):
        config = UploaderConfig(
            target={"url": UPLOAD_URL},
            permanent_error_statuses=(418,),
            request_timeout=5.0,
        )
        transport = HttpxTransport.from_config(config)

        assert transport.client.timeout.read == 5.0
        assert transport.build_params(make_request(chunk_index=0))["chunkNumber"] == 1


class TestHttpxTransportWithUploader:
    """Full uploads against a mock server."""

    @pytest.mark.asyncio
    async def test_server_receives_every_chunk(self):
        received: Dict[int, bytes] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            received[int(request.url.params["chunkNumber"])] = request.content
            return httpx.Response(200)

        data = bytes(range(100))
        async with mock_client(handler) as client:
            uploader = Uploader(
                HttpxTransport(client=client),
                UploaderConfig.for_testing(chunk_size=16, concurrency=3, target={"url": UPLOAD_URL}),
            )
            file = await uploader.add_file(data, name="range.bin")
            await uploader.join()
            await uploader.aclose()

        assert file.status is UploadStatus.SUCCESSFULLY_COMPLETED
        assert sorted(received) == list(range(1, 8))
        assert b"".join(received[i] for i in sorted(received)) == data

    @pytest.mark.asyncio
    async def test_permanent_status_fails_without_retries(self):
        calls: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(415)

        async with mock_client(handler) as client:
            uploader = Uploader(
                HttpxTransport(client=client),
                UploaderConfig.for_testing(
                    chunking=False, max_retries=3, target={"url": UPLOAD_URL},
                ),
            )
            file = await uploader.add_file(b"not an image", name="x.png")
            await uploader.join()
            await uploader.aclose()

        assert len(calls) == 1
        assert file.status is UploadStatus.FAILED_UPLOADING
        assert file.error.status_code == 415

    @pytest.mark.asyncio
    async def test_transient_status_is_retried(self):
        statuses = [503, 200]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(statuses.pop(0))

        async with mock_client(handler) as client:
            uploader = Uploader(
                HttpxTransport(client=client),
                UploaderConfig.for_testing(
                    chunking=False, max_retries=1, target={"url": UPLOAD_URL},
                ),
            )
            file = await uploader.add_file(b"flaky")
            await uploader.join()
            await uploader.aclose()

        assert file.status is UploadStatus.SUCCESSFULLY_COMPLETED
        assert file.units()[0].retry_count == 1


class TestInMemoryTransport:
    """InMemoryTransport on its own."""

    @pytest.mark.asyncio
    async def test_stores_and_assembles(self):
        transport = InMemoryTransport()
        source = BytesSource(b"abcdefgh")

        for index, offset in ((1, 4), (0, 0)):
            request = make_request(
                chunk_index=index, offset=offset, length=4, total_size=8, source=source,
            )
            assert await transport.send(request, lambda p: None) == 4

        assert transport.assemble("file-1") == b"abcdefgh"
        assert len(transport.requests) == 2

        transport.discard("file-1")
        assert transport.received("file-1") == {}

    @pytest.mark.asyncio
    async def test_progress_steps(self):
        transport = InMemoryTransport(progress_steps=4)
        progress: List[float] = []

        await transport.send(make_request(), progress.append)

        assert progress == [0.25, 0.5, 0.75, 1.0]

    @pytest.mark.asyncio
    async def test_scripted_failures(self):
        transport = InMemoryTransport()
        transport.fail_chunk("file-1", 1, times=1, retryable=False)

        with pytest.raises(TransmissionError) as exc_info:
            await transport.send(make_request(), lambda p: None)
        assert exc_info.value.retryable is False

        await transport.send(make_request(), lambda p: None)
        assert transport.received("file-1") == {1: b"0123456789"}

    @pytest.mark.asyncio
    async def test_fail_always(self):
        transport = InMemoryTransport()
        transport.fail_always()

        with pytest.raises(TransmissionError):
            await transport.send(make_request(), lambda p: None)
