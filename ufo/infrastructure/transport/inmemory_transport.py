"""
In-memory transport.

Stores received bytes per (file, chunk) so tests and demos can upload without
a server. Supports artificial latency and scripted failures.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple
import asyncio
import logging

from ufo.domain.interfaces.transport import ITransport, ProgressCallback, TransportRequest
from ufo.domain.models.exceptions import TransmissionError

logger = logging.getLogger(__name__)


@dataclass
class _ScriptedFailure:
    remaining: int
    retryable: bool


class InMemoryTransport(ITransport):
    """
    ITransport that keeps everything in memory.

    Usage:
        transport = InMemoryTransport()
        transport.fail_chunk(file_id, 2, times=1)     # first attempt of chunk 2 fails
        ...
        assert transport.assemble(file_id) == original_bytes
    """

    def __init__(self, latency: float = 0.0, progress_steps: int = 1):
        self.latency = latency
        self.progress_steps = max(1, progress_steps)
        self.requests: List[TransportRequest] = []
        self._store: Dict[str, Dict[int, bytes]] = {}
        self._failures: Dict[Tuple[str, int], _ScriptedFailure] = {}
        self._fail_all: bool = False

    def fail_chunk(self, file_id: str, chunk_index: int, times: int = 1, retryable: bool = True) -> None:
        """Make the next `times` attempts of a chunk fail."""
        self._failures[(file_id, chunk_index)] = _ScriptedFailure(times, retryable)

    def fail_always(self, enabled: bool = True) -> None:
        self._fail_all = enabled

    async def send(self, request: TransportRequest, on_progress: ProgressCallback) -> int:
        self.requests.append(request)
        data = await request.read()

        for step in range(1, self.progress_steps + 1):
            if self.latency:
                await asyncio.sleep(self.latency / self.progress_steps)
            else:
                await asyncio.sleep(0)
            if step < self.progress_steps:
                on_progress(step / self.progress_steps)

        if self._fail_all:
            raise TransmissionError(f"Scripted failure of chunk {request.chunk_index}")
        scripted = self._failures.get((request.file_id, request.chunk_index))
        if scripted is not None and scripted.remaining > 0:
            scripted.remaining -= 1
            raise TransmissionError(
                f"Scripted failure of chunk {request.chunk_index}",
                retryable=scripted.retryable,
            )

        self._store.setdefault(request.file_id, {})[request.chunk_index] = data
        on_progress(1.0)
        return len(data)

    def received(self, file_id: str) -> Dict[int, bytes]:
        """Chunks received for a file, by index."""
        return dict(self._store.get(file_id, {}))

    def assemble(self, file_id: str) -> bytes:
        """Concatenate the received chunks of a file in index order."""
        chunks = self._store.get(file_id, {})
        return b"".join(chunks[i] for i in sorted(chunks))

    def discard(self, file_id: str) -> None:
        self._store.pop(file_id, None)
