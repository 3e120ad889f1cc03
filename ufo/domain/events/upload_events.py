"""
File-related domain events.

Published during the file upload lifecycle. Each event class carries the
topic string observers subscribe to.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Dict, Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from ufo.domain.models.upload_file import UploadFile


@dataclass
class UploadEvent:
    """Base class for all upload domain events."""
    topic: ClassVar[str] = "upload-event"

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "event_type": self.event_type,
            "event_id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class FileEvent(UploadEvent):
    """Base class for events about one file."""
    file: Optional["UploadFile"] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.file is not None:
            data["file_id"] = self.file.unique_identifier
            data["file_name"] = self.file.name
            data["status"] = self.file.status.value
        return data


@dataclass
class FileSubmittedEvent(FileEvent):
    """Published when a source is wrapped into a file, before processing."""
    topic: ClassVar[str] = "file-submitted"


@dataclass
class FileAcceptedEvent(FileEvent):
    """Published when processing accepts a file."""
    topic: ClassVar[str] = "file-accepted"


@dataclass
class FileRejectedEvent(FileEvent):
    """Published when validation or the before_process hook rejects a file."""
    topic: ClassVar[str] = "file-rejected"
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


@dataclass
class FileQueuedEvent(FileEvent):
    """Published when a file enters the upload queue."""
    topic: ClassVar[str] = "file-queued"


@dataclass
class FileUploadStartedEvent(FileEvent):
    """Published when the first unit of a queued file starts transmitting."""
    topic: ClassVar[str] = "file-upload-started"


@dataclass
class FileProgressEvent(FileEvent):
    """Published whenever the aggregated progress of a file changes."""
    topic: ClassVar[str] = "file-progress"
    progress: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["progress"] = self.progress
        return data


@dataclass
class FileRetryEvent(FileEvent):
    """Published when an unchunked file transmission is retried."""
    topic: ClassVar[str] = "file-retry"
    attempt: int = 0
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["attempt"] = self.attempt
        data["error"] = str(self.error) if self.error else None
        return data


@dataclass
class FileUploadSucceededEvent(FileEvent):
    """Published when every unit of a file has been transmitted."""
    topic: ClassVar[str] = "file-upload-succeeded"


@dataclass
class FileUploadFailedEvent(FileEvent):
    """Published when a unit of a file failed beyond its retry budget."""
    topic: ClassVar[str] = "file-upload-failed"
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["error"] = str(self.error) if self.error else None
        return data


@dataclass
class FileSucceededEvent(FileEvent):
    """Published when a file is successfully completed."""
    topic: ClassVar[str] = "file-succeeded"


@dataclass
class FileFailedEvent(FileEvent):
    """Published when a file ends unsuccessfully (upload or finalization)."""
    topic: ClassVar[str] = "file-failed"
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["error"] = str(self.error) if self.error else None
        return data


@dataclass
class FileCanceledEvent(FileEvent):
    """Published once when a file is canceled."""
    topic: ClassVar[str] = "file-canceled"


@dataclass
class FileDeletedEvent(FileEvent):
    """Published when a file is deleted and removed from the uploader."""
    topic: ClassVar[str] = "file-deleted"


@dataclass
class FileDeleteFailedEvent(FileEvent):
    """Published when the delete hook fails; the file is kept."""
    topic: ClassVar[str] = "file-delete-failed"
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["error"] = str(self.error) if self.error else None
        return data
