"""
Pytest fixtures for UFO tests.
"""

from typing import Any, List

import pytest
import pytest_asyncio

from ufo.application.services.uploader import Uploader
from ufo.config import UploaderConfig, reset_config
from ufo.domain.interfaces.transport import ITransport
from ufo.infrastructure.events import UploadEventBus, reset_upload_event_bus
from ufo.infrastructure.transport import InMemoryTransport
from ufo.testing import ControlledTransport, EventRecorder


# ═══════════════════════════════════════════════════════════════════════════════
# Global state
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def _reset_globals():
    reset_config()
    reset_upload_event_bus()
    yield
    reset_config()
    reset_upload_event_bus()


# ═══════════════════════════════════════════════════════════════════════════════
# Transports and config
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def config() -> UploaderConfig:
    """4-byte chunks, concurrency 2, no retries."""
    return UploaderConfig.for_testing()


@pytest.fixture
def controlled() -> ControlledTransport:
    return ControlledTransport()


@pytest.fixture
def memory_transport() -> InMemoryTransport:
    return InMemoryTransport()


# ═══════════════════════════════════════════════════════════════════════════════
# Uploaders
# ═══════════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def make_uploader():
    """
    Build uploaders with testing config overrides; closes them on teardown.

    Usage:
        uploader, recorder = make_uploader(transport, concurrency=1)
    """
    created: List[Uploader] = []

    def _make(transport: ITransport, **overrides: Any):
        uploader = Uploader(
            transport,
            config=UploaderConfig.for_testing(**overrides),
            event_bus=UploadEventBus(max_history=10000),
        )
        created.append(uploader)
        return uploader, EventRecorder(uploader.event_bus)

    yield _make

    for uploader in created:
        await uploader.aclose()

