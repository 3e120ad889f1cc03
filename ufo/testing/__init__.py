"""
UFO Testing Utilities

Usage:
    from ufo.testing import ControlledTransport, EventRecorder
"""

from ufo.testing.fixtures import (
    PendingSend,
    ControlledTransport,
    EventRecorder,
    settle,
)

__all__ = [
    "PendingSend",
    "ControlledTransport",
    "EventRecorder",
    "settle",
]
