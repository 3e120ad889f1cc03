"""
Application Factories.

Factory pattern for creating Uploaders with their transport and event bus
wired from configuration.

Usage:
    # HTTP uploads configured from the environment (UFO_UPLOAD_URL, ...)
    uploader = UploaderFactory.create()

    # In-memory uploads for tests and demos
    uploader = UploaderFactory.create_for_testing()
"""

from typing import Optional

from ufo.config import UploaderConfig, get_config
from ufo.domain.interfaces.transport import ITransport
from ufo.infrastructure.events import UploadEventBus
from ufo.infrastructure.transport import HttpxTransport, InMemoryTransport

from .services.uploader import Uploader


class UploaderFactory:
    """
    Factory for creating Uploader with proper dependencies.

    SOLID Compliance:
    - SRP: Creates uploaders only
    - DIP: The Uploader depends on ITransport, not on httpx
    """

    @staticmethod
    def create(
        config: Optional[UploaderConfig] = None,
        transport: Optional[ITransport] = None,
        event_bus: Optional[UploadEventBus] = None,
    ) -> Uploader:
        """
        Create an Uploader based on configuration.

        Without an explicit transport an HttpxTransport is built from the
        config and owned (closed) by the uploader.
        """
        if config is None:
            config = get_config()
        owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport.from_config(config)
        return Uploader(
            transport,
            config=config,
            event_bus=event_bus,
            owns_transport=owns_transport,
        )

    @staticmethod
    def create_for_testing(
        config: Optional[UploaderConfig] = None,
        transport: Optional[ITransport] = None,
    ) -> Uploader:
        """Create an Uploader with an InMemoryTransport and testing config."""
        return Uploader(
            transport or InMemoryTransport(),
            config=config or UploaderConfig.for_testing(),
            event_bus=UploadEventBus(max_history=10000),
        )


__all__ = ["UploaderFactory"]
