"""
Domain Events - Lifecycle notifications published through the UploadEventBus.
"""

from .upload_events import (
    UploadEvent,
    FileEvent,
    FileSubmittedEvent,
    FileAcceptedEvent,
    FileRejectedEvent,
    FileQueuedEvent,
    FileUploadStartedEvent,
    FileProgressEvent,
    FileRetryEvent,
    FileUploadSucceededEvent,
    FileUploadFailedEvent,
    FileSucceededEvent,
    FileFailedEvent,
    FileCanceledEvent,
    FileDeletedEvent,
    FileDeleteFailedEvent,
)
from .chunk_events import (
    ChunkEvent,
    ChunkSucceededEvent,
    ChunkFailedEvent,
    ChunkRetryEvent,
    ChunkProgressEvent,
)

__all__ = [
    # Base
    "UploadEvent",
    "FileEvent",
    "ChunkEvent",
    # File events
    "FileSubmittedEvent",
    "FileAcceptedEvent",
    "FileRejectedEvent",
    "FileQueuedEvent",
    "FileUploadStartedEvent",
    "FileProgressEvent",
    "FileRetryEvent",
    "FileUploadSucceededEvent",
    "FileUploadFailedEvent",
    "FileSucceededEvent",
    "FileFailedEvent",
    "FileCanceledEvent",
    "FileDeletedEvent",
    "FileDeleteFailedEvent",
    # Chunk events
    "ChunkSucceededEvent",
    "ChunkFailedEvent",
    "ChunkRetryEvent",
    "ChunkProgressEvent",
]
