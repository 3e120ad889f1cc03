"""
Domain Models - Entities, status model and errors of the upload engine.
"""

from .exceptions import (
    UploadError,
    ValidationError,
    TransmissionError,
    FinalizationError,
    DeletionError,
    ConfigurationError,
    InvalidStatusTransition,
)
from .status import (
    UploadStatus,
    FILE_TRANSITIONS,
    CHUNK_TRANSITIONS,
    CANCEL_IMMUNE_STATUSES,
    FILE_TERMINAL_STATUSES,
    STARTABLE_UNIT_STATUSES,
    can_transition,
    validate_transition,
    is_cancel_immune,
)
from .chunk import Chunk
from .upload_file import UploadFile

__all__ = [
    # Errors
    "UploadError",
    "ValidationError",
    "TransmissionError",
    "FinalizationError",
    "DeletionError",
    "ConfigurationError",
    "InvalidStatusTransition",
    # Status model
    "UploadStatus",
    "FILE_TRANSITIONS",
    "CHUNK_TRANSITIONS",
    "CANCEL_IMMUNE_STATUSES",
    "FILE_TERMINAL_STATUSES",
    "STARTABLE_UNIT_STATUSES",
    "can_transition",
    "validate_transition",
    "is_cancel_immune",
    # Entities
    "Chunk",
    "UploadFile",
]
