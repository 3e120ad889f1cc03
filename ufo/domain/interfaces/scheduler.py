"""
Scheduler Interface.

The narrow surface UploadFile and Chunk need from their owning Uploader.
Entities hold the scheduler through a weak reference, so a file never keeps
its uploader alive.
"""

from abc import ABC, abstractmethod
from typing import Any, Coroutine, TYPE_CHECKING
import asyncio

from ufo.domain.interfaces.transport import ITransport

if TYPE_CHECKING:
    from ufo.domain.events import UploadEvent
    from ufo.domain.models.upload_file import UploadFile


class IUploadScheduler(ABC):
    """Services an Uploader provides to the files it owns."""

    @property
    @abstractmethod
    def transport(self) -> ITransport:
        pass

    @abstractmethod
    def publish(self, event: "UploadEvent") -> None:
        """Deliver an event to observers."""
        pass

    @abstractmethod
    def spawn(self, coro: Coroutine[Any, Any, Any]) -> "asyncio.Task[Any]":
        """Run a coroutine as a tracked background task."""
        pass

    @abstractmethod
    def enqueue(self, file: "UploadFile") -> None:
        pass

    @abstractmethod
    def has_capacity(self) -> bool:
        """True if one more unit may start without exceeding the concurrency limit."""
        pass

    @abstractmethod
    def upload(self) -> int:
        """Run the dispatch loop; returns the number of units started."""
        pass

    @abstractmethod
    def detach(self, file: "UploadFile") -> bool:
        """Remove a file from the collection."""
        pass

    @abstractmethod
    def schedule_finalize(self, file: "UploadFile") -> None:
        pass
