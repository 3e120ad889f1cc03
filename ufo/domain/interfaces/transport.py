"""
Transport Interface.

The transport performs the actual byte transmission of one unit (a chunk or a
whole unchunked file). The engine only decides when and how many sends are in
flight.

Contract:
- send() resolves exactly once: it returns on success or raises on failure
- on_progress may be called any number of times before that, with fractions
  in [0, 1]
- cancellation arrives as asyncio.CancelledError inside send(); it is a
  signal, the transport may take a moment to stop

Usage:
    class MyTransport(ITransport):
        async def send(self, request, on_progress):
            data = await request.read()
            ...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
import asyncio

from ufo.domain.interfaces.data_source import IDataSource


ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class TransportRequest:
    """
    Value Object - Everything a transport needs to send one unit.

    Attributes:
        file_id: Unique identifier of the owning file
        file_name: Display name of the owning file
        chunk_index: 0-based chunk index (0 for unchunked files)
        total_chunks: Number of units of the file
        offset: Byte offset inside the file
        length: Number of bytes of this unit
        total_size: Size of the whole file
        source: Where the bytes come from
        target: Destination config (url, method, headers, params)
        attempt: 0 for the first attempt, then the retry number
        chunk_size: Configured chunk size (the file size when unchunked)
    """
    file_id: str
    file_name: str
    chunk_index: int
    total_chunks: int
    offset: int
    length: int
    total_size: int
    source: IDataSource
    target: Dict[str, Any] = field(default_factory=dict)
    attempt: int = 0
    chunk_size: int = 0

    async def read(self) -> bytes:
        """Read this unit's bytes from the source."""
        return await self.source.read(self.offset, self.length)


class ITransport(ABC):
    """
    Abstract interface for unit transmission.

    Implementations:
    - HttpxTransport: one HTTP request per unit
    - InMemoryTransport: stores bytes in memory
    """

    @abstractmethod
    async def send(self, request: TransportRequest, on_progress: ProgressCallback) -> Any:
        """
        Transmit one unit.

        Returns:
            Transport-specific response (stored on the chunk)

        Raises:
            TransmissionError: If the attempt failed
        """
        pass

    async def aclose(self) -> None:
        """Release transport resources."""
        pass


class TransportHandle:
    """
    In-flight transmission of one unit.

    Wraps the asyncio task running ITransport.send(). abort() cancels the task
    at most once and is a no-op after the task finished.
    """

    def __init__(self, task: "asyncio.Task[Any]"):
        self._task = task
        self._aborted = False

    @property
    def task(self) -> "asyncio.Task[Any]":
        return self._task

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def done(self) -> bool:
        return self._task.done()

    def abort(self) -> bool:
        """
        Cancel the transmission.

        Returns:
            True if this call cancelled the task
        """
        if self._aborted or self._task.done():
            return False
        self._aborted = True
        self._task.cancel()
        return True


__all__ = [
    "ProgressCallback",
    "TransportRequest",
    "ITransport",
    "TransportHandle",
]
