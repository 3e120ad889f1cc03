"""
Domain Interfaces - Abstractions the engine depends on.
"""

from .data_source import IDataSource
from .transport import (
    ProgressCallback,
    TransportRequest,
    ITransport,
    TransportHandle,
)
from .scheduler import IUploadScheduler

__all__ = [
    "IDataSource",
    "ProgressCallback",
    "TransportRequest",
    "ITransport",
    "TransportHandle",
    "IUploadScheduler",
]
