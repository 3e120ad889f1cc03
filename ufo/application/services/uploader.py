"""
Uploader - Concurrency-limited upload scheduler.

Owns the ordered collection of files, runs the dispatch loop that keeps at
most `concurrency` units in flight, finalizes fully uploaded files, and
publishes every lifecycle transition on its event bus.

Scheduling policy:
- Files are served in insertion order. The dispatch loop always scans from
  the front, so a file with many chunks may take the whole budget before a
  later file starts (head-of-line bias).
- Every completion, cancellation and deletion re-runs the dispatch loop to
  refill freed capacity.

Usage:
    uploader = Uploader(InMemoryTransport(), UploaderConfig(concurrency=3))
    uploader.on("file-succeeded", lambda event: print(event.file.name))

    await uploader.add_file(Path("report.pdf"))
    await uploader.join()
"""

from typing import Any, Coroutine, Dict, Iterable, List, Optional, Set, Union
from pathlib import Path
import asyncio
import inspect
import logging

from ufo.config import UploaderConfig, get_config
from ufo.domain.events import (
    FileDeleteFailedEvent,
    FileDeletedEvent,
    FileFailedEvent,
    FileQueuedEvent,
    FileSubmittedEvent,
    FileSucceededEvent,
    UploadEvent,
)
from ufo.domain.interfaces.data_source import IDataSource
from ufo.domain.interfaces.scheduler import IUploadScheduler
from ufo.domain.interfaces.transport import ITransport
from ufo.domain.models import (
    DeletionError,
    FinalizationError,
    UploadFile,
    UploadStatus,
    can_transition,
)
from ufo.infrastructure.events import UploadEventBus
from ufo.infrastructure.events.upload_event_bus import Handler, Topic
from ufo.infrastructure.sources import BytesSource, as_data_source

logger = logging.getLogger(__name__)

Source = Union[IDataSource, bytes, bytearray, str, Path]

# Files whose bytes will never reach the server
_EXCLUDED_FROM_TOTAL = frozenset({
    UploadStatus.REJECTED,
    UploadStatus.FAILED_UPLOADING,
    UploadStatus.UNSUCCESSFULLY_COMPLETED,
    UploadStatus.CANCELED,
    UploadStatus.DELETED,
})

_PROGRESS_ELIGIBLE = (UploadStatus.QUEUED, UploadStatus.UPLOADING)


class Uploader(IUploadScheduler):
    """
    Upload scheduler and file collection.

    Invariant: the number of UPLOADING units across all files never exceeds
    config.concurrency.

    All state changes run synchronously on the event loop; the only
    suspension points are transport sends and lifecycle hooks, which run as
    tracked background tasks.
    """

    def __init__(
        self,
        transport: ITransport,
        config: Optional[UploaderConfig] = None,
        event_bus: Optional[UploadEventBus] = None,
        owns_transport: bool = False,
    ):
        """
        Initialize the uploader.

        Args:
            transport: Sends the bytes of each unit
            config: Defaults for every file (global config if omitted)
            event_bus: Bus for lifecycle events (a private bus if omitted)
            owns_transport: Close the transport in aclose()
        """
        self._config = config or get_config()
        self._transport = transport
        self._event_bus = event_bus or UploadEventBus(max_history=self._config.event_history_size)
        self._owns_transport = owns_transport

        self._files: List[UploadFile] = []
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._dispatch_hold = 0
        self._closed = False

    # ═══════════════════════════════════════════════════════════════
    # Accessors
    # ═══════════════════════════════════════════════════════════════

    @property
    def config(self) -> UploaderConfig:
        return self._config

    @property
    def transport(self) -> ITransport:
        return self._transport

    @property
    def event_bus(self) -> UploadEventBus:
        return self._event_bus

    @property
    def files(self) -> List[UploadFile]:
        """Files in scheduling order (a copy)."""
        return list(self._files)

    def get_file_by_unique_identifier(self, unique_identifier: str) -> Optional[UploadFile]:
        for file in self._files:
            if file.unique_identifier == unique_identifier:
                return file
        return None

    def get_files_by_status(self, *statuses: UploadStatus) -> List[UploadFile]:
        return [f for f in self._files if f.status in statuses]

    # ═══════════════════════════════════════════════════════════════
    # Events
    # ═══════════════════════════════════════════════════════════════

    def on(self, topic: Topic, handler: Handler) -> None:
        """Subscribe a handler to a topic ("file-succeeded", ChunkRetryEvent, "*")."""
        self._event_bus.subscribe(topic, handler)

    def off(self, topic: Topic, handler: Handler) -> None:
        self._event_bus.unsubscribe(topic, handler)

    def publish(self, event: UploadEvent) -> None:
        self._event_bus.publish(event)

    # ═══════════════════════════════════════════════════════════════
    # Adding files
    # ═══════════════════════════════════════════════════════════════

    async def add_file(
        self,
        source: Source,
        unique_identifier: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
        **options: Any,
    ) -> UploadFile:
        """
        Add one file.

        The source is wrapped in an UploadFile whose config is this uploader's
        config with `options` applied. With auto_process the file is processed
        (and, if accepted and auto_queue is on, enqueued) before returning.

        Adding a unique_identifier that is already present returns the
        existing file unchanged.

        Args:
            source: IDataSource, bytes, or path of a local file
            unique_identifier: Stable id (generated if omitted)
            metadata: Free-form caller data
            name: Display name (defaults to the file name / "blob")
            **options: Per-file UploaderConfig overrides

        Raises:
            ConfigurationError: If an option is unknown, invalid, or
                applies to the whole uploader (concurrency, ...)
            FileNotFoundError: If a path source is not an existing file
            TypeError: If the source is not a supported type

        Failures after the file exists (rejection, transmission, hooks) are
        recorded on the file and published instead of raised.
        """
        if unique_identifier is not None:
            existing = self.get_file_by_unique_identifier(unique_identifier)
            if existing is not None:
                logger.warning(f"File {unique_identifier} already added, ignoring")
                return existing

        data_source = as_data_source(source, name=name)
        file_config = self._config.for_file(**options)
        file = UploadFile(
            data_source,
            file_config,
            scheduler=self,
            unique_identifier=unique_identifier,
            metadata=metadata,
        )
        self._files.append(file)
        logger.info(f"Added {file.name} ({file.size} bytes) as {file.unique_identifier}")
        self.publish(FileSubmittedEvent(file=file))

        if file_config.auto_process:
            await self.process_file(file)
        return file

    async def add_files(self, sources: Iterable[Source], **options: Any) -> List[UploadFile]:
        """Add several files; they are processed in argument order."""
        return [await self.add_file(source, **options) for source in sources]

    def add_initial_file(
        self,
        name: str,
        unique_identifier: str,
        size: int = 0,
        **options: Any,
    ) -> UploadFile:
        """
        Register a file that is already complete on the server.

        The file goes straight to SUCCEEDED_UPLOADING without a transmission,
        so it can be listed and deleted like any uploaded file. Registering a
        unique_identifier that is already present returns the existing file.
        """
        existing = self.get_file_by_unique_identifier(unique_identifier)
        if existing is not None:
            logger.warning(f"File {unique_identifier} already added, ignoring")
            return existing

        file = UploadFile(
            BytesSource(b"", name=name),
            self._config.for_file(**options),
            scheduler=self,
            unique_identifier=unique_identifier,
        )
        file.mark_preexisting(size)
        self._files.append(file)
        logger.info(f"Registered existing file {name} ({size} bytes)")
        self.publish(FileSucceededEvent(file=file))
        return file

    def add_initial_files(self, descriptors: Iterable[Dict[str, Any]]) -> List[UploadFile]:
        """
        Register several existing files.

        Args:
            descriptors: Dicts with name, unique_identifier and optional size
        """
        return [self.add_initial_file(**descriptor) for descriptor in descriptors]

    async def process_file(self, file: UploadFile) -> bool:
        """Process a file added with auto_process disabled."""
        if file.status is not UploadStatus.ADDED:
            return False
        return await file.process()

    # ═══════════════════════════════════════════════════════════════
    # Scheduling
    # ═══════════════════════════════════════════════════════════════

    def enqueue(self, file: UploadFile) -> None:
        """Queue an accepted file; starts uploading if its auto_upload is on."""
        file.mark_queued()
        logger.debug(f"Queued {file.name}")
        self.publish(FileQueuedEvent(file=file))
        if file.config.auto_upload:
            self.upload()

    def upload(self) -> int:
        """
        Dispatch loop: start units until the concurrency budget is used up.

        The budget is re-checked before every start, since observers of the
        events published by a start may re-enter the loop.

        Returns:
            Number of units started by this call
        """
        if self._dispatch_hold or self._closed:
            return 0
        concurrency = self._config.concurrency
        free = concurrency - self.active_connection_count()
        started = 0
        while started < free and self.active_connection_count() < concurrency:
            if not self._dispatch_one():
                break
            started += 1
        if started:
            logger.debug(f"Dispatched {started} unit(s), {self.active_connection_count()}/{concurrency} active")
        return started

    def _dispatch_one(self) -> bool:
        # Scan from the front: insertion order is priority
        for file in list(self._files):
            if file.status in (UploadStatus.QUEUED, UploadStatus.UPLOADING):
                if file.upload():
                    return True
        return False

    def active_connection_count(self) -> int:
        """Units currently UPLOADING across all files."""
        return sum(f.active_connection_count() for f in self._files)

    def has_capacity(self) -> bool:
        if self._dispatch_hold or self._closed:
            return False
        return self.active_connection_count() < self._config.concurrency

    def is_uploading(self) -> bool:
        return self.active_connection_count() > 0

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Upload task failed: {exc!r}", exc_info=exc)

    def detach(self, file: UploadFile) -> bool:
        try:
            self._files.remove(file)
        except ValueError:
            return False
        return True

    # ═══════════════════════════════════════════════════════════════
    # Finalization
    # ═══════════════════════════════════════════════════════════════

    def schedule_finalize(self, file: UploadFile) -> None:
        self.spawn(self.finalize(file))

    async def finalize(self, file: UploadFile) -> bool:
        """
        Finalize a fully uploaded file.

        Runs the finalize hook (sync or async). Success completes the file
        (file-succeeded); an exception completes it unsuccessfully (file-failed
        with a FinalizationError). The outcome is dropped if the file was
        canceled or deleted while the hook ran.

        Returns:
            True if the file is SUCCESSFULLY_COMPLETED
        """
        if file.status is not UploadStatus.SUCCEEDED_UPLOADING:
            return False
        file.mark_finalizing()
        logger.debug(f"Finalizing {file.name}")

        hook = file.config.finalize
        try:
            if hook is not None:
                result = hook(file)
                if inspect.isawaitable(result):
                    await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if file.status is UploadStatus.FINALIZING:
                error = FinalizationError(str(e) or type(e).__name__)
                error.__cause__ = e
                file.fail_finalization(error)
                self.publish(FileFailedEvent(file=file, error=error))
        else:
            if file.status is UploadStatus.FINALIZING:
                file.complete()
                self.publish(FileSucceededEvent(file=file))

        self.upload()
        return file.status is UploadStatus.SUCCESSFULLY_COMPLETED

    # ═══════════════════════════════════════════════════════════════
    # Cancel, retry, delete
    # ═══════════════════════════════════════════════════════════════

    def cancel_all(self, remove: bool = True) -> int:
        """
        Cancel every file, then refill the budget once.

        Dispatch is held while the files are canceled, so a file later in the
        list never starts just because an earlier one freed a slot.

        Returns:
            Number of files canceled
        """
        canceled = 0
        self._dispatch_hold += 1
        try:
            for file in list(self._files):
                if file.cancel(remove=remove):
                    canceled += 1
        finally:
            self._dispatch_hold -= 1
        logger.info(f"Canceled {canceled} file(s)")
        self.upload()
        return canceled

    def retry_file(self, file: UploadFile) -> bool:
        """
        Re-queue a FAILED_UPLOADING or CANCELED file.

        Failed and canceled units are reset; units that already succeeded are
        kept. A file removed by cancel(remove=True) is added back at the end.

        Returns:
            True if the file was re-queued
        """
        if file.scheduler is not self or not file.prepare_retry():
            return False
        if file not in self._files:
            self._files.append(file)
        logger.info(f"Retrying {file.name}")
        self.enqueue(file)
        return True

    async def delete_file(self, file: UploadFile) -> bool:
        """
        Delete a file.

        Runs the delete hook (sync or async) first; if it raises, the file is
        kept and file-delete-failed is published. Otherwise in-flight units
        are aborted without further events, the file moves to DELETED, is
        removed and file-deleted is published.

        Returns:
            True if the file was deleted
        """
        if not can_transition("file", file.status, UploadStatus.DELETED):
            return False

        hook = file.config.delete
        try:
            if hook is not None:
                result = hook(file)
                if inspect.isawaitable(result):
                    await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = DeletionError(str(e) or type(e).__name__)
            error.__cause__ = e
            logger.error(f"Deleting {file.name} failed: {error}")
            self.publish(FileDeleteFailedEvent(file=file, error=error))
            return False

        # The file may have moved on while the hook ran
        if not can_transition("file", file.status, UploadStatus.DELETED):
            return False

        file.mark_deleted()
        self.detach(file)
        logger.info(f"Deleted {file.name}")
        self.publish(FileDeletedEvent(file=file))
        self.upload()
        return True

    # ═══════════════════════════════════════════════════════════════
    # Aggregates
    # ═══════════════════════════════════════════════════════════════

    def get_progress(self) -> float:
        """
        Mean progress of the QUEUED and UPLOADING files.

        Returns 0.0 when no file is queued or uploading.
        """
        eligible = [f for f in self._files if f.status in _PROGRESS_ELIGIBLE]
        if not eligible:
            return 0.0
        return sum(f.progress() for f in eligible) / len(eligible)

    def get_total_file_size(self) -> int:
        """Bytes of all files that are uploaded or may still be uploaded."""
        return sum(f.size for f in self._files if f.status not in _EXCLUDED_FROM_TOTAL)

    # ═══════════════════════════════════════════════════════════════
    # Lifecycle
    # ═══════════════════════════════════════════════════════════════

    async def join(self) -> None:
        """Wait until every tracked task has finished, including ones spawned meanwhile."""
        while True:
            pending = [t for t in self._tasks if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """
        Stop the uploader.

        Cancels unfinished files (keeping them listed), cancels remaining
        tasks and closes the transport if this uploader owns it.
        """
        if self._closed:
            return
        self.cancel_all(remove=False)
        self._closed = True
        pending = [t for t in self._tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._owns_transport:
            await self._transport.aclose()
        logger.debug("Uploader closed")

    async def __aenter__(self) -> "Uploader":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return (
            f"Uploader(files={len(self._files)}, "
            f"active={self.active_connection_count()}/{self._config.concurrency})"
        )
