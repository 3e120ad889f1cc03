"""
UFO - Upload Flow Orchestrator.

Client-side chunked upload engine: splits files into chunks, transmits them
under a global concurrency cap, retries failures, aggregates progress and
publishes every lifecycle transition.

Usage:
    from ufo import UploaderFactory, UploaderConfig

    uploader = UploaderFactory.create(UploaderConfig.for_production(url))
    await uploader.add_file("report.pdf")
    await uploader.join()
"""

__version__ = "0.1.0"

from ufo.config import UploaderConfig, get_config, set_config, reset_config, configure_logging
from ufo.domain.models import (
    UploadStatus,
    UploadFile,
    Chunk,
    UploadError,
    ValidationError,
    TransmissionError,
    FinalizationError,
    DeletionError,
    ConfigurationError,
    InvalidStatusTransition,
)
from ufo.domain.interfaces import IDataSource, ITransport, TransportRequest, TransportHandle
from ufo.infrastructure.events import UploadEventBus
from ufo.infrastructure.sources import BytesSource, LocalFileSource
from ufo.infrastructure.transport import HttpxTransport, InMemoryTransport
from ufo.application import Uploader, UploaderFactory

__all__ = [
    "__version__",
    # Config
    "UploaderConfig",
    "get_config",
    "set_config",
    "reset_config",
    "configure_logging",
    # Domain
    "UploadStatus",
    "UploadFile",
    "Chunk",
    "UploadError",
    "ValidationError",
    "TransmissionError",
    "FinalizationError",
    "DeletionError",
    "ConfigurationError",
    "InvalidStatusTransition",
    # Interfaces
    "IDataSource",
    "ITransport",
    "TransportRequest",
    "TransportHandle",
    # Infrastructure
    "UploadEventBus",
    "BytesSource",
    "LocalFileSource",
    "HttpxTransport",
    "InMemoryTransport",
    # Application
    "Uploader",
    "UploaderFactory",
]
