"""
Upload Event Bus - Synchronous publish-subscribe for upload lifecycle events.

Observers subscribe to a topic and are called in registration order every
time an event with that topic is published.

Design Decisions:
- Topics are the kebab-case strings carried by the event classes
  ("file-queued", "chunk-success", ...); an event class may be passed instead
- Delivery is synchronous and order-preserving per topic
- A failing handler is logged and never stops delivery to later handlers
- Bounded history to prevent memory leaks; no replay to late subscribers
- RLock so handlers may publish nested events and other threads may publish

Usage:
    bus = UploadEventBus()

    # Subscribe by topic or by event class
    bus.subscribe("file-succeeded", on_done)
    bus.subscribe(ChunkRetryEvent, on_retry)

    # Observe everything
    bus.subscribe("*", recorder)

    # Get history
    recent = bus.get_history(topic="file-progress", limit=10)
"""

from typing import Callable, List, Dict, Optional, Type, Union
from threading import RLock
from datetime import datetime
from collections import deque
import logging

from ufo.domain.events import UploadEvent

logger = logging.getLogger(__name__)

Handler = Callable[[UploadEvent], None]
Topic = Union[str, Type[UploadEvent]]

ALL_TOPICS = "*"


def resolve_topic(topic: Topic) -> str:
    """Return the topic string of a topic string or event class."""
    if isinstance(topic, str):
        return topic
    if isinstance(topic, type) and issubclass(topic, UploadEvent):
        return topic.topic
    raise TypeError(f"Topic must be a string or an UploadEvent subclass, got {topic!r}")


class UploadEventBus:
    """
    Upload Event Bus with bounded history.

    Key Features:
    - Topic-string subscriptions ("*" receives every event)
    - Bounded event history (default 1000 events)
    - Handler exception isolation

    Thread Safety:
    - All public methods are thread-safe
    - Handlers are called outside the lock
    """

    def __init__(self, max_history: int = 1000):
        """
        Initialize Upload Event Bus.

        Args:
            max_history: Maximum events to keep in history
        """
        self._lock = RLock()
        self._subscribers: Dict[str, List[Handler]] = {}
        self._event_history: deque = deque(maxlen=max_history)
        self._max_history = max_history

    @property
    def max_history(self) -> int:
        return self._max_history

    # ═══════════════════════════════════════════════════════════════
    # Core Pub/Sub Operations
    # ═══════════════════════════════════════════════════════════════

    def subscribe(self, topic: Topic, handler: Handler) -> None:
        """
        Subscribe to a topic.

        Registering the same handler twice for a topic has no effect.

        Args:
            topic: Topic string, event class, or "*" for all events
            handler: Callback that receives the event
        """
        key = resolve_topic(topic)
        with self._lock:
            handlers = self._subscribers.setdefault(key, [])
            if handler not in handlers:
                handlers.append(handler)

    def unsubscribe(self, topic: Topic, handler: Handler) -> None:
        """Unsubscribe a handler; no-op if it is not registered."""
        key = resolve_topic(topic)
        with self._lock:
            if key in self._subscribers:
                try:
                    self._subscribers[key].remove(handler)
                except ValueError:
                    pass

    def publish(self, event: UploadEvent) -> None:
        """
        Publish an event to all subscribers of its topic.

        Events are stored in history and delivered synchronously, topic
        subscribers first, then "*" subscribers. Exceptions in handlers are
        logged but don't prevent other handlers.

        Args:
            event: The event instance to publish
        """
        with self._lock:
            self._event_history.append(event)
            # Copy to avoid modification during iteration
            handlers = self._subscribers.get(event.topic, [])[:]
            handlers += self._subscribers.get(ALL_TOPICS, [])

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in event handler {handler!r} for {event.topic}")

    # ═══════════════════════════════════════════════════════════════
    # History and Query Operations
    # ═══════════════════════════════════════════════════════════════

    def get_event_history(self, topic: Optional[Topic] = None) -> List[UploadEvent]:
        """
        Get event history, optionally filtered by topic.

        Returns:
            List of events (oldest first)
        """
        with self._lock:
            events = list(self._event_history)

        if topic is not None:
            key = resolve_topic(topic)
            events = [e for e in events if e.topic == key]

        return events

    def get_history(
        self,
        topic: Optional[Topic] = None,
        since: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[UploadEvent]:
        """
        Get event history with optional filtering.

        Args:
            topic: Filter by topic
            since: Filter events after this timestamp
            limit: Maximum number of events to return

        Returns:
            List of events (most recent first)
        """
        events = self.get_event_history(topic)

        if since is not None:
            events = [e for e in events if e.timestamp >= since]

        return list(reversed(events[-limit:]))

    def clear_history(self) -> None:
        """Clear all event history."""
        with self._lock:
            self._event_history.clear()

    def get_subscriber_count(self, topic: Optional[Topic] = None) -> int:
        """
        Get count of subscribers.

        Args:
            topic: Count for a specific topic, or total if None
        """
        with self._lock:
            if topic is not None:
                return len(self._subscribers.get(resolve_topic(topic), []))
            return sum(len(h) for h in self._subscribers.values())


# ═══════════════════════════════════════════════════════════════
# Global Instance Management
# ═══════════════════════════════════════════════════════════════

_global_upload_event_bus: Optional[UploadEventBus] = None


def get_upload_event_bus() -> UploadEventBus:
    """
    Get global upload event bus instance.

    Creates a new instance on first call.
    """
    global _global_upload_event_bus
    if _global_upload_event_bus is None:
        _global_upload_event_bus = UploadEventBus()
    return _global_upload_event_bus


def set_upload_event_bus(bus: UploadEventBus) -> None:
    """
    Set global upload event bus instance.

    Useful for testing with custom bus configurations.
    """
    global _global_upload_event_bus
    _global_upload_event_bus = bus


def reset_upload_event_bus() -> None:
    """
    Reset global event bus to None.

    Next call to get_upload_event_bus() will create a new instance.
    """
    global _global_upload_event_bus
    _global_upload_event_bus = None


__all__ = [
    "ALL_TOPICS",
    "UploadEventBus",
    "resolve_topic",
    "get_upload_event_bus",
    "set_upload_event_bus",
    "reset_upload_event_bus",
]
