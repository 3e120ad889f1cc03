"""
Chunk-related domain events.

Published for chunked files only; the implicit unit of an unchunked file
reports through file events instead.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Optional, TYPE_CHECKING

from ufo.domain.events.upload_events import UploadEvent

if TYPE_CHECKING:
    from ufo.domain.models.chunk import Chunk


@dataclass
class ChunkEvent(UploadEvent):
    """Base class for events about one chunk."""
    chunk: Optional["Chunk"] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.chunk is not None:
            data["chunk_index"] = self.chunk.index
            data["status"] = self.chunk.status.value
            file = self.chunk.file
            data["file_id"] = file.unique_identifier if file is not None else None
        return data


@dataclass
class ChunkSucceededEvent(ChunkEvent):
    """Published when a chunk has been transmitted."""
    topic: ClassVar[str] = "chunk-success"


@dataclass
class ChunkFailedEvent(ChunkEvent):
    """Published when a chunk failed beyond its retry budget."""
    topic: ClassVar[str] = "chunk-failed"
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["error"] = str(self.error) if self.error else None
        return data


@dataclass
class ChunkRetryEvent(ChunkEvent):
    """Published before a failed chunk is transmitted again."""
    topic: ClassVar[str] = "chunk-retry"
    attempt: int = 0
    error: Optional[BaseException] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["attempt"] = self.attempt
        data["error"] = str(self.error) if self.error else None
        return data


@dataclass
class ChunkProgressEvent(ChunkEvent):
    """Published when the transport reports progress for a chunk."""
    topic: ClassVar[str] = "chunk-progress"
    progress: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["progress"] = self.progress
        return data
