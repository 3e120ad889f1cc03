"""
Chunk Entity.

The smallest schedulable transmission unit: a contiguous byte range of a file.
An unchunked file owns a single implicit chunk covering the whole file; the
implicit chunk reports through file events instead of chunk events.
"""

from functools import partial
from typing import Any, Dict, Optional, TYPE_CHECKING
import asyncio
import logging
import weakref

from ufo.domain.events import (
    ChunkFailedEvent,
    ChunkProgressEvent,
    ChunkRetryEvent,
    ChunkSucceededEvent,
    FileProgressEvent,
    FileRetryEvent,
    UploadEvent,
)
from ufo.domain.interfaces.transport import TransportHandle, TransportRequest
from ufo.domain.models.exceptions import TransmissionError, UploadError
from ufo.domain.models.status import (
    STARTABLE_UNIT_STATUSES,
    UploadStatus,
    is_cancel_immune,
    validate_transition,
)

if TYPE_CHECKING:
    from ufo.domain.models.upload_file import UploadFile

logger = logging.getLogger(__name__)


class Chunk:
    """
    Entity - One byte range of an UploadFile.

    State machine:
        QUEUED -> UPLOADING -> SUCCEEDED_UPLOADING
                            -> PENDING_RETRY -> UPLOADING ...
                            -> FAILED_UPLOADING
        QUEUED / UPLOADING / PENDING_RETRY -> CANCELED

    Invariants:
    - At most one in-flight TransportHandle
    - Only UPLOADING chunks count toward the concurrency budget
    - Results of an attempt that is no longer current are ignored
    """

    def __init__(
        self,
        file: "UploadFile",
        index: int,
        offset: int,
        length: int,
        implicit: bool = False,
    ):
        self._file_ref = weakref.ref(file)
        self.index = index
        self.offset = offset
        self.length = length
        self.implicit = implicit

        self._status = UploadStatus.QUEUED
        self.retry_count = 0
        self.progress = 0.0
        self.last_error: Optional[TransmissionError] = None
        self.response: Any = None

        self._handle: Optional[TransportHandle] = None
        self._attempt_seq = 0

    # ═══════════════════════════════════════════════════════════════
    # Accessors
    # ═══════════════════════════════════════════════════════════════

    @property
    def file(self) -> Optional["UploadFile"]:
        """Owning file (non-owning reference)."""
        return self._file_ref()

    @property
    def status(self) -> UploadStatus:
        return self._status

    @property
    def handle(self) -> Optional[TransportHandle]:
        return self._handle

    @property
    def end(self) -> int:
        """Exclusive end offset."""
        return self.offset + self.length

    @property
    def is_uploading(self) -> bool:
        return self._status is UploadStatus.UPLOADING

    @property
    def is_startable(self) -> bool:
        return self._status in STARTABLE_UNIT_STATUSES

    def _require_file(self) -> "UploadFile":
        file = self._file_ref()
        if file is None:
            raise UploadError(f"Chunk {self.index} has no owning file")
        return file

    def _set_status(self, target: UploadStatus) -> None:
        validate_transition("chunk", self._status, target)
        self._status = target

    def _publish(self, event: UploadEvent) -> None:
        file = self._file_ref()
        if file is not None:
            file.publish(event)

    # ═══════════════════════════════════════════════════════════════
    # Transmission
    # ═══════════════════════════════════════════════════════════════

    def start(self) -> None:
        """
        Start transmitting this chunk.

        The status flips to UPLOADING synchronously; the transport runs as a
        background task owned by the scheduler.
        """
        file = self._require_file()
        scheduler = file.scheduler
        if scheduler is None:
            raise UploadError(f"File {file.name} is not attached to an uploader")

        self._set_status(UploadStatus.UPLOADING)
        self.progress = 0.0
        self._attempt_seq += 1
        seq = self._attempt_seq

        request = TransportRequest(
            file_id=file.unique_identifier,
            file_name=file.name,
            chunk_index=self.index,
            total_chunks=file.unit_count(),
            offset=self.offset,
            length=self.length,
            total_size=file.size,
            source=file.source,
            target=dict(file.config.target),
            attempt=self.retry_count,
            chunk_size=file.config.chunk_size if file.is_chunked else file.size,
        )
        task = scheduler.spawn(self._transmit(scheduler.transport, request, seq))
        self._handle = TransportHandle(task)
        logger.debug(
            f"Started chunk {self.index} of {file.name} "
            f"(bytes {self.offset}-{self.end}, attempt {self.retry_count + 1})"
        )

    async def _transmit(self, transport, request: TransportRequest, seq: int) -> None:
        try:
            response = await transport.send(request, partial(self._on_progress, seq))
        except asyncio.CancelledError:
            logger.debug(f"Transmission of chunk {self.index} aborted")
            raise
        except Exception as exc:
            self._on_failure(exc, seq)
        else:
            self._on_success(response, seq)

    def _is_current(self, seq: int) -> bool:
        return seq == self._attempt_seq and self._status is UploadStatus.UPLOADING

    def _on_progress(self, seq: int, fraction: float) -> None:
        if not self._is_current(seq):
            return
        self.progress = min(max(float(fraction), 0.0), 1.0)
        file = self._file_ref()
        if file is None:
            return
        if not self.implicit:
            self._publish(ChunkProgressEvent(chunk=self, progress=self.progress))
        self._publish(FileProgressEvent(file=file, progress=file.progress()))

    def _on_success(self, response: Any, seq: int) -> None:
        if not self._is_current(seq):
            logger.debug(f"Ignoring late success of chunk {self.index} ({self._status.value})")
            return
        self._handle = None
        self.response = response
        self.progress = 1.0
        self._set_status(UploadStatus.SUCCEEDED_UPLOADING)
        if not self.implicit:
            self._publish(ChunkSucceededEvent(chunk=self))
        file = self._file_ref()
        if file is not None:
            file.on_unit_succeeded(self)

    def _on_failure(self, exc: Exception, seq: int) -> None:
        if not self._is_current(seq):
            logger.debug(f"Ignoring late failure of chunk {self.index}: {exc}")
            return
        self._handle = None
        if isinstance(exc, TransmissionError):
            error = exc
        else:
            error = TransmissionError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
        self.last_error = error

        file = self._require_file()
        if error.retryable and self.retry_count < file.config.max_retries:
            self.retry_count += 1
            self._set_status(UploadStatus.PENDING_RETRY)
            logger.warning(
                f"Chunk {self.index} of {file.name} failed ({error}), "
                f"retry {self.retry_count}/{file.config.max_retries}"
            )
            if self.implicit:
                self._publish(FileRetryEvent(file=file, attempt=self.retry_count, error=error))
            else:
                self._publish(ChunkRetryEvent(chunk=self, attempt=self.retry_count, error=error))
            # An observer may have canceled the file or taken the freed slot;
            # a chunk left in PENDING_RETRY is restarted by the dispatch loop
            scheduler = file.scheduler
            if (
                self._status is UploadStatus.PENDING_RETRY
                and scheduler is not None
                and scheduler.has_capacity()
            ):
                self.start()
            return

        self._set_status(UploadStatus.FAILED_UPLOADING)
        logger.error(f"Chunk {self.index} of {file.name} failed permanently: {error}")
        if not self.implicit:
            self._publish(ChunkFailedEvent(chunk=self, error=error))
        file.on_unit_failed(self, error)

    # ═══════════════════════════════════════════════════════════════
    # Cancellation and reset
    # ═══════════════════════════════════════════════════════════════

    def cancel(self) -> bool:
        """
        Cancel this chunk.

        No-op for SUCCEEDED_UPLOADING, FAILED_UPLOADING and CANCELED chunks.

        Returns:
            True if the chunk was canceled by this call
        """
        if is_cancel_immune(self._status) or self._status is UploadStatus.CANCELED:
            return False
        if self._handle is not None:
            self._handle.abort()
            self._handle = None
        self._set_status(UploadStatus.CANCELED)
        return True

    def reset(self) -> bool:
        """Return a FAILED_UPLOADING or CANCELED chunk to QUEUED for another try."""
        if self._status not in (UploadStatus.FAILED_UPLOADING, UploadStatus.CANCELED):
            return False
        self._set_status(UploadStatus.QUEUED)
        self.retry_count = 0
        self.progress = 0.0
        self.last_error = None
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "offset": self.offset,
            "length": self.length,
            "status": self._status.value,
            "retry_count": self.retry_count,
            "progress": self.progress,
            "last_error": str(self.last_error) if self.last_error else None,
        }

    def __repr__(self) -> str:
        return f"Chunk(index={self.index}, offset={self.offset}, length={self.length}, status={self._status.value})"
