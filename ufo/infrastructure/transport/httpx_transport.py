"""
HTTP transport backed by httpx.

One request per unit. The chunk is described by query parameters and the
body carries the raw bytes, streamed in slices so upload progress can be
reported while the request is being sent.

Query parameters:
    chunkNumber       1-based chunk number
    totalChunks       number of chunks of the file
    chunkSize         configured chunk size
    currentChunkSize  bytes in this request
    totalSize         size of the whole file
    identifier        unique identifier of the file
    filename          file name

Usage:
    transport = HttpxTransport.from_config(UploaderConfig.for_production(url))
    uploader = Uploader(transport, config, owns_transport=True)
"""

from typing import Any, AsyncIterator, Dict, Iterable, Optional
import logging

import httpx

from ufo.config import DEFAULT_PERMANENT_ERROR_STATUSES, UploaderConfig
from ufo.domain.interfaces.transport import ITransport, ProgressCallback, TransportRequest
from ufo.domain.models.exceptions import TransmissionError

logger = logging.getLogger(__name__)

DEFAULT_SLICE_SIZE = 64 * 1024


class HttpxTransport(ITransport):
    """
    ITransport over an httpx.AsyncClient.

    Error mapping:
    - status in permanent_error_statuses -> TransmissionError(retryable=False)
    - any other status >= 400 -> TransmissionError(retryable=True)
    - httpx.HTTPError (timeouts, connection errors) -> TransmissionError(retryable=True)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        permanent_error_statuses: Iterable[int] = DEFAULT_PERMANENT_ERROR_STATUSES,
        timeout: float = 30.0,
        default_target: Optional[Dict[str, Any]] = None,
        slice_size: int = DEFAULT_SLICE_SIZE,
    ):
        """
        Args:
            client: Shared client; when omitted the transport creates and owns one
            permanent_error_statuses: HTTP statuses that are not retried
            timeout: Request timeout in seconds (only for an owned client)
            default_target: Target values used when a request's target lacks them
            slice_size: Body slice size between progress reports
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._permanent = frozenset(permanent_error_statuses)
        self._default_target = dict(default_target or {})
        self._slice_size = max(1, slice_size)

    @classmethod
    def from_config(
        cls,
        config: UploaderConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> "HttpxTransport":
        return cls(
            client=client,
            permanent_error_statuses=config.permanent_error_statuses,
            timeout=config.request_timeout,
            default_target=config.target,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def build_params(self, request: TransportRequest) -> Dict[str, Any]:
        """Query parameters describing the unit."""
        return {
            "chunkNumber": request.chunk_index + 1,
            "totalChunks": request.total_chunks,
            "chunkSize": request.chunk_size,
            "currentChunkSize": request.length,
            "totalSize": request.total_size,
            "identifier": request.file_id,
            "filename": request.file_name,
        }

    async def send(self, request: TransportRequest, on_progress: ProgressCallback) -> httpx.Response:
        target = {**self._default_target, **request.target}
        url = target.get("url")
        if not url:
            raise TransmissionError("No upload url configured", retryable=False)

        data = await request.read()
        params = {**self.build_params(request), **target.get("params", {})}
        headers = {
            "Content-Type": "application/octet-stream",
            **target.get("headers", {}),
            "Content-Length": str(len(data)),
        }

        try:
            response = await self._client.request(
                target.get("method", "POST"),
                url,
                params=params,
                headers=headers,
                content=self._stream(data, on_progress),
            )
            await response.aread()
        except httpx.HTTPError as e:
            raise TransmissionError(f"{type(e).__name__}: {e}", retryable=True) from e

        if response.status_code >= 400:
            retryable = response.status_code not in self._permanent
            raise TransmissionError(
                f"HTTP {response.status_code} for chunk {request.chunk_index + 1}"
                f"/{request.total_chunks} of {request.file_name}",
                retryable=retryable,
                status_code=response.status_code,
            )

        logger.debug(
            f"Sent chunk {request.chunk_index + 1}/{request.total_chunks} "
            f"of {request.file_name}: HTTP {response.status_code}"
        )
        return response

    async def _stream(self, data: bytes, on_progress: ProgressCallback) -> AsyncIterator[bytes]:
        total = len(data)
        sent = 0
        while sent < total:
            piece = data[sent:sent + self._slice_size]
            yield piece
            sent += len(piece)
            on_progress(sent / total)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
