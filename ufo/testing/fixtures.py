"""
Test helpers for code built on ufo.

ControlledTransport hands every send() to the test as a PendingSend, which
the test resolves, fails or feeds progress to. EventRecorder captures the
topics an uploader publishes.
"""

from typing import Any, List, Optional
import asyncio

from ufo.domain.events import UploadEvent
from ufo.domain.interfaces.transport import ITransport, ProgressCallback, TransportRequest
from ufo.domain.models.exceptions import TransmissionError
from ufo.infrastructure.events.upload_event_bus import ALL_TOPICS, UploadEventBus


class PendingSend:
    """One transmission held by a ControlledTransport."""

    def __init__(self, request: TransportRequest, on_progress: ProgressCallback, future: "asyncio.Future[Any]"):
        self.request = request
        self._on_progress = on_progress
        self._future = future
        self.aborted = False

    @property
    def done(self) -> bool:
        return self._future.done()

    def succeed(self, response: Any = None) -> None:
        if not self._future.done():
            self._future.set_result(response)

    def fail(self, message: str = "transmission failed", retryable: bool = True, status_code: Optional[int] = None) -> None:
        if not self._future.done():
            self._future.set_exception(TransmissionError(message, retryable=retryable, status_code=status_code))

    def progress(self, fraction: float) -> None:
        self._on_progress(fraction)

    def __repr__(self) -> str:
        return f"PendingSend(file={self.request.file_name!r}, chunk={self.request.chunk_index})"


class ControlledTransport(ITransport):
    """
    Transport whose sends are driven by the test.

    Modes:
        "manual": every send waits until the test calls succeed()/fail()
        "succeed": every send succeeds on the next loop iteration
        "fail": every send fails (retryable) on the next loop iteration

    Attributes:
        calls: Every send, in call order
        aborted: Sends that were cancelled while in flight
        active: Sends currently in flight
        max_active: Highest value `active` reached
    """

    def __init__(self, mode: str = "manual"):
        if mode not in ("manual", "succeed", "fail"):
            raise ValueError(f"Unknown mode: {mode}")
        self.mode = mode
        self.calls: List[PendingSend] = []
        self.aborted: List[PendingSend] = []
        self.active = 0
        self.max_active = 0

    async def send(self, request: TransportRequest, on_progress: ProgressCallback) -> Any:
        pending = PendingSend(request, on_progress, asyncio.get_running_loop().create_future())
        self.calls.append(pending)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.mode == "succeed":
                await asyncio.sleep(0)
                pending.succeed(request.length)
            elif self.mode == "fail":
                await asyncio.sleep(0)
                pending.fail(f"scripted failure of chunk {request.chunk_index}")
            return await pending._future
        except asyncio.CancelledError:
            pending.aborted = True
            self.aborted.append(pending)
            raise
        finally:
            self.active -= 1

    def pending(self) -> List[PendingSend]:
        """Sends that have not been resolved yet."""
        return [p for p in self.calls if not p.done]

    @property
    def last(self) -> PendingSend:
        return self.calls[-1]

    async def wait_for_calls(self, count: int, timeout: float = 1.0) -> List[PendingSend]:
        """Let the loop run until at least `count` sends were made."""
        async def _wait():
            while len(self.calls) < count:
                await asyncio.sleep(0)

        await asyncio.wait_for(_wait(), timeout)
        return self.calls


class EventRecorder:
    """Records every event published on a bus."""

    def __init__(self, bus: UploadEventBus):
        self.events: List[UploadEvent] = []
        bus.subscribe(ALL_TOPICS, self.events.append)

    @property
    def topics(self) -> List[str]:
        return [e.topic for e in self.events]

    def of(self, topic: str) -> List[UploadEvent]:
        return [e for e in self.events if e.topic == topic]

    def count(self, topic: str) -> int:
        return len(self.of(topic))

    def clear(self) -> None:
        self.events.clear()


async def settle(rounds: int = 10) -> None:
    """Run the event loop for a few iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)
