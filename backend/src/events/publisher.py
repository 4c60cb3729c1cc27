"""Event publisher port and best-effort publishing helper.

Delivery is at-most-once: a publish that fails is logged and counted,
never retried and never raised into the business operation.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import List, Tuple

from observability.metrics import events_published_total
from .schemas import DomainEvent

logger = logging.getLogger(__name__)


class EventPublisherPort(ABC):
    """Port interface for outbound domain events.

    Implementations:
    - RedisEventPublisher: redis pub/sub
    - InMemoryEventPublisher: tests and local development
    """

    @abstractmethod
    def publish(self, topic: str, event: DomainEvent) -> None:
        """Publish an event to a topic.

        Raises:
            Exception: Any transport failure (callers use publish_event)
        """
        pass


class InMemoryEventPublisher(EventPublisherPort):
    """Collects published events in memory."""

    def __init__(self):
        self._lock = threading.Lock()
        self.published: List[Tuple[str, DomainEvent]] = []

    def publish(self, topic: str, event: DomainEvent) -> None:
        with self._lock:
            self.published.append((topic, event))

    def events_for(self, topic: str) -> List[DomainEvent]:
        with self._lock:
            return [event for t, event in self.published if t == topic]

    def clear(self) -> None:
        with self._lock:
            self.published.clear()


def publish_event(publisher: EventPublisherPort, topic: str, event: DomainEvent) -> bool:
    """Publish without letting a transport failure escape.

    Args:
        publisher: Target publisher
        topic: Topic name (e.g. "demand-matched")
        event: Event to publish

    Returns:
        True if the publisher accepted the event
    """
    try:
        publisher.publish(topic, event)
    except Exception as e:
        events_published_total.labels(topic=topic, status="error").inc()
        logger.error(
            f"Failed to publish {topic} event {event.event_id}: {e}",
            exc_info=True,
            extra={"topic": topic},
        )
        return False

    events_published_total.labels(topic=topic, status="success").inc()
    logger.debug(f"Published {topic} event {event.event_id}", extra={"topic": topic})
    return True
