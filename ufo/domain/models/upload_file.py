"""
UploadFile Aggregate.

A caller-supplied unit of data to transmit. Owns its chunks (or one implicit
chunk when chunking is disabled) and derives its own status from theirs.

Design Philosophy (Rich Domain Model):
- The file enforces its own invariants; the Uploader only schedules
- Every status change is validated against FILE_TRANSITIONS
- Failures are recorded on the file and published, never raised
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, TYPE_CHECKING
import asyncio
import inspect
import logging
import math
import os
import uuid
import weakref

from ufo.domain.events import (
    FileAcceptedEvent,
    FileCanceledEvent,
    FileFailedEvent,
    FileProgressEvent,
    FileRejectedEvent,
    FileUploadFailedEvent,
    FileUploadStartedEvent,
    FileUploadSucceededEvent,
    UploadEvent,
)
from ufo.domain.interfaces.data_source import IDataSource
from ufo.domain.models.chunk import Chunk
from ufo.domain.models.exceptions import (
    TransmissionError,
    UploadError,
    ValidationError,
)
from ufo.domain.models.status import (
    FILE_TERMINAL_STATUSES,
    UploadStatus,
    is_cancel_immune,
    validate_transition,
)

if TYPE_CHECKING:
    from ufo.config import UploaderConfig
    from ufo.domain.interfaces.scheduler import IUploadScheduler

logger = logging.getLogger(__name__)


class UploadFile:
    """
    Aggregate Root - One file being uploaded.

    Lifecycle:
        ADDED -> PROCESSING -> ACCEPTED | REJECTED
        ACCEPTED -> QUEUED -> UPLOADING -> SUCCEEDED_UPLOADING | FAILED_UPLOADING
        SUCCEEDED_UPLOADING -> FINALIZING -> SUCCESSFULLY_COMPLETED | UNSUCCESSFULLY_COMPLETED
        any non-terminal -> CANCELED; almost anything -> DELETED

    Attributes:
        name: Display name
        size: Total size in bytes
        source: Where the bytes come from
        chunks: Ordered chunks (empty when chunking is disabled)
        config: Per-file configuration
        error: Last failure (ValidationError, TransmissionError, ...)
        metadata: Free-form caller data
    """

    def __init__(
        self,
        source: IDataSource,
        config: "UploaderConfig",
        scheduler: Optional["IUploadScheduler"] = None,
        unique_identifier: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self._unique_identifier = unique_identifier or uuid.uuid4().hex
        self.name = source.name
        self.size = source.size
        self.source = source
        self.config = config
        self.chunks: List[Chunk] = []
        self.error: Optional[UploadError] = None
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.created_at = datetime.now()
        self.completed_at: Optional[datetime] = None

        self._status = UploadStatus.ADDED
        self._implicit_unit: Optional[Chunk] = None
        self._scheduler_ref = weakref.ref(scheduler) if scheduler is not None else None

    # ═══════════════════════════════════════════════════════════════
    # Accessors
    # ═══════════════════════════════════════════════════════════════

    @property
    def unique_identifier(self) -> str:
        return self._unique_identifier

    @property
    def status(self) -> UploadStatus:
        return self._status

    @property
    def scheduler(self) -> Optional["IUploadScheduler"]:
        return self._scheduler_ref() if self._scheduler_ref is not None else None

    @property
    def is_chunked(self) -> bool:
        return self.config.chunking

    @property
    def is_terminal(self) -> bool:
        return self._status in FILE_TERMINAL_STATUSES

    def units(self) -> List[Chunk]:
        """Transmissible units: the chunks, or the implicit whole-file unit."""
        if self.config.chunking:
            return self.chunks
        return [self._implicit_unit] if self._implicit_unit is not None else []

    def unit_count(self) -> int:
        return len(self.units())

    def active_connection_count(self) -> int:
        """Units currently holding a connection."""
        return sum(1 for unit in self.units() if unit.is_uploading)

    def has_startable_unit(self) -> bool:
        return any(unit.is_startable for unit in self.units())

    def publish(self, event: UploadEvent) -> None:
        scheduler = self.scheduler
        if scheduler is not None:
            scheduler.publish(event)

    def _set_status(self, target: UploadStatus) -> None:
        validate_transition("file", self._status, target)
        logger.debug(f"File {self.name}: {self._status.value} -> {target.value}")
        self._status = target

    # ═══════════════════════════════════════════════════════════════
    # Processing
    # ═══════════════════════════════════════════════════════════════

    async def process(self) -> bool:
        """
        Validate the file and split it into units.

        Runs the built-in checks (size bounds, extension) and the optional
        before_process hook, which may be sync or async and rejects the file
        by raising. A rejected file is removed from its uploader.

        Returns:
            True if the file was accepted
        """
        self._set_status(UploadStatus.PROCESSING)
        try:
            self._validate()
            hook = self.config.before_process
            if hook is not None:
                result = hook(self)
                if inspect.isawaitable(result):
                    await result
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._status is UploadStatus.PROCESSING:
                self._reject(exc)
            return False

        # Canceled or deleted while the hook ran
        if self._status is not UploadStatus.PROCESSING:
            return False

        self._create_units()
        self._set_status(UploadStatus.ACCEPTED)
        logger.info(f"Accepted {self.name} ({self.size} bytes, {self.unit_count()} unit(s))")
        self.publish(FileAcceptedEvent(file=self))

        scheduler = self.scheduler
        if self.config.auto_queue and self._status is UploadStatus.ACCEPTED and scheduler is not None:
            scheduler.enqueue(self)
        return True

    def _validate(self) -> None:
        if self.size < self.config.min_file_size:
            raise ValidationError(
                f"{self.name} is smaller than the minimum of {self.config.min_file_size} bytes"
            )
        if self.config.max_file_size is not None and self.size > self.config.max_file_size:
            raise ValidationError(
                f"{self.name} exceeds the maximum of {self.config.max_file_size} bytes"
            )
        if self.config.allowed_extensions:
            extension = os.path.splitext(self.name)[1].lower()
            if extension not in self.config.allowed_extensions:
                raise ValidationError(f"{self.name} has a disallowed extension {extension or '(none)'}")

    def _reject(self, exc: Exception) -> None:
        if isinstance(exc, ValidationError):
            error = exc
        else:
            error = ValidationError(str(exc) or type(exc).__name__)
            error.__cause__ = exc
        self.error = error
        self._set_status(UploadStatus.REJECTED)
        logger.warning(f"Rejected {self.name}: {error.reason}")
        scheduler = self.scheduler
        if scheduler is not None:
            scheduler.detach(self)
        self.publish(FileRejectedEvent(file=self, reason=error.reason))

    def _create_units(self) -> None:
        if self.config.chunking:
            chunk_size = self.config.chunk_size
            count = max(1, math.ceil(self.size / chunk_size))
            self.chunks = [
                Chunk(
                    self,
                    index=i,
                    offset=i * chunk_size,
                    length=max(0, min(chunk_size, self.size - i * chunk_size)),
                )
                for i in range(count)
            ]
        else:
            self._implicit_unit = Chunk(self, index=0, offset=0, length=self.size, implicit=True)

    # ═══════════════════════════════════════════════════════════════
    # Lifecycle transitions driven by the Uploader
    # ═══════════════════════════════════════════════════════════════

    def mark_queued(self) -> None:
        self._set_status(UploadStatus.QUEUED)

    def mark_preexisting(self, size: int) -> None:
        """Register a file already complete server-side; no transmission."""
        self.size = size
        self._set_status(UploadStatus.SUCCEEDED_UPLOADING)

    def mark_finalizing(self) -> None:
        self._set_status(UploadStatus.FINALIZING)

    def complete(self) -> None:
        self._set_status(UploadStatus.SUCCESSFULLY_COMPLETED)
        self.completed_at = datetime.now()
        logger.info(f"Completed {self.name}")

    def fail_finalization(self, error: UploadError) -> None:
        self.error = error
        self._set_status(UploadStatus.UNSUCCESSFULLY_COMPLETED)
        self.completed_at = datetime.now()
        logger.error(f"Finalization of {self.name} failed: {error}")

    def mark_deleted(self) -> None:
        """Abort in-flight units without events and move to DELETED."""
        for unit in self.units():
            unit.cancel()
        self._set_status(UploadStatus.DELETED)

    def prepare_retry(self) -> bool:
        """
        Reset failed and canceled units after FAILED_UPLOADING or CANCELED.

        Returns:
            True if the file has something left to upload and may be re-queued
        """
        if self._status not in (UploadStatus.FAILED_UPLOADING, UploadStatus.CANCELED):
            return False
        units = self.units()
        if not units:
            return False
        for unit in units:
            unit.reset()
        if not self.has_startable_unit():
            return False
        self.error = None
        return True

    # ═══════════════════════════════════════════════════════════════
    # Upload
    # ═══════════════════════════════════════════════════════════════

    def upload(self) -> bool:
        """
        Start the first startable unit (QUEUED or PENDING_RETRY) in order.

        Returns:
            True if a transmission was started, i.e. a connection slot is used
        """
        if self._status not in (UploadStatus.QUEUED, UploadStatus.UPLOADING):
            return False
        for unit in self.units():
            if not unit.is_startable:
                continue
            first_start = self._status is UploadStatus.QUEUED
            if first_start:
                self._set_status(UploadStatus.UPLOADING)
            unit.start()
            if first_start:
                logger.info(f"Upload of {self.name} started")
                self.publish(FileUploadStartedEvent(file=self))
            return True
        return False

    def on_unit_succeeded(self, unit: Chunk) -> None:
        """Called by a unit after its transport succeeded."""
        self.publish(FileProgressEvent(file=self, progress=self.progress()))
        scheduler = self.scheduler
        if self._status is UploadStatus.UPLOADING and all(
            u.status is UploadStatus.SUCCEEDED_UPLOADING for u in self.units()
        ):
            self._set_status(UploadStatus.SUCCEEDED_UPLOADING)
            logger.info(f"All {self.unit_count()} unit(s) of {self.name} uploaded")
            self.publish(FileUploadSucceededEvent(file=self))
            if scheduler is not None:
                scheduler.schedule_finalize(self)
        if scheduler is not None:
            scheduler.upload()

    def on_unit_failed(self, unit: Chunk, error: TransmissionError) -> None:
        """
        Called by a unit that failed beyond its retry budget.

        Sibling units still queued or in flight are canceled, so a failed file
        never holds a connection.
        """
        self.error = error
        for sibling in self.units():
            if sibling is not unit:
                sibling.cancel()
        if self._status is UploadStatus.UPLOADING:
            self._set_status(UploadStatus.FAILED_UPLOADING)
            self.publish(FileUploadFailedEvent(file=self, error=error))
            self.publish(FileFailedEvent(file=self, error=error))
        scheduler = self.scheduler
        if scheduler is not None:
            scheduler.upload()

    # ═══════════════════════════════════════════════════════════════
    # Cancellation
    # ═══════════════════════════════════════════════════════════════

    def cancel(self, remove: bool = False) -> bool:
        """
        Cancel the file and every unit that has not finished.

        No-op for files that finished uploading (successfully or not), and for
        files already CANCELED, REJECTED or DELETED.

        Args:
            remove: Also remove the file from its uploader

        Returns:
            True if the file was canceled by this call
        """
        if is_cancel_immune(self._status) or self._status in (
            UploadStatus.CANCELED,
            UploadStatus.REJECTED,
            UploadStatus.DELETED,
        ):
            return False

        for unit in self.units():
            unit.cancel()
        self._set_status(UploadStatus.CANCELED)
        logger.info(f"Canceled {self.name}")

        scheduler = self.scheduler
        if remove and scheduler is not None:
            scheduler.detach(self)
        self.publish(FileCanceledEvent(file=self))
        if scheduler is not None:
            scheduler.upload()
        return True

    # ═══════════════════════════════════════════════════════════════
    # Progress
    # ═══════════════════════════════════════════════════════════════

    def progress(self) -> float:
        """
        Upload progress in [0, 1].

        Chunked files: chunk progress weighted by chunk length.
        Unchunked files: progress of the single transmission.
        """
        units = self.units()
        if not units:
            return 1.0 if self._status in (
                UploadStatus.SUCCEEDED_UPLOADING,
                UploadStatus.FINALIZING,
                UploadStatus.SUCCESSFULLY_COMPLETED,
            ) else 0.0
        if not self.config.chunking:
            return units[0].progress
        if self.size == 0:
            return 1.0 if all(u.status is UploadStatus.SUCCEEDED_UPLOADING for u in units) else 0.0
        return sum(u.progress * u.length for u in units) / self.size

    def uploaded_bytes(self) -> int:
        return sum(int(u.progress * u.length) for u in self.units())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize file state to dictionary."""
        return {
            "unique_identifier": self._unique_identifier,
            "name": self.name,
            "size": self.size,
            "status": self._status.value,
            "chunking": self.config.chunking,
            "progress": self.progress(),
            "chunks": [c.to_dict() for c in self.chunks],
            "error": str(self.error) if self.error else None,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    def __repr__(self) -> str:
        return f"UploadFile(name={self.name!r}, size={self.size}, status={self._status.value})"
