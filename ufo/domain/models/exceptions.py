"""
Upload Domain Exceptions.

Custom exceptions for the upload lifecycle engine.
Follows exception hierarchy pattern for precise error handling.

Propagation policy:
- ValidationError, TransmissionError, FinalizationError and DeletionError are
  recorded on the affected file/chunk and surfaced through events. They never
  escape the Uploader.
- InvalidStatusTransition and ConfigurationError signal programming errors and
  are raised to the caller.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ufo.domain.models.status import UploadStatus


class UploadError(Exception):
    """
    Base exception for upload errors.

    All upload exceptions inherit from this.
    Allows catching all upload errors with one handler.
    """
    pass


class ValidationError(UploadError):
    """
    File was rejected during processing.

    Terminal and non-retryable: the file is removed from the uploader.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class TransmissionError(UploadError):
    """
    A transport attempt failed.

    Attributes:
        retryable: False for permanent failures (e.g. HTTP 415), which skip
            the remaining retry budget
        status_code: HTTP status code when the transport has one
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class FinalizationError(UploadError):
    """The finalize hook rejected a fully uploaded file."""
    pass


class DeletionError(UploadError):
    """The delete hook failed; the file is kept."""
    pass


class ConfigurationError(UploadError, ValueError):
    """Invalid uploader configuration value."""
    pass


class InvalidStatusTransition(UploadError):
    """Exception raised when an invalid status transition is attempted."""

    def __init__(
        self,
        message: str,
        entity: str,
        current_status: "UploadStatus",
        target_status: "UploadStatus",
    ):
        super().__init__(message)
        self.entity = entity
        self.current_status = current_status
        self.target_status = target_status


__all__ = [
    "UploadError",
    "ValidationError",
    "TransmissionError",
    "FinalizationError",
    "DeletionError",
    "ConfigurationError",
    "InvalidStatusTransition",
]
