"""
Infrastructure Events - Upload Event Bus.
"""

from .upload_event_bus import (
    ALL_TOPICS,
    UploadEventBus,
    resolve_topic,
    get_upload_event_bus,
    set_upload_event_bus,
    reset_upload_event_bus,
)

__all__ = [
    "ALL_TOPICS",
    "UploadEventBus",
    "resolve_topic",
    "get_upload_event_bus",
    "set_upload_event_bus",
    "reset_upload_event_bus",
]
