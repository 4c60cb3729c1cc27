"""Domain events for the matching service."""

from .schemas import (
    DEMAND_CREATED,
    DEMAND_MATCHED,
    SUPPLIER_NOTIFIED,
    DEMAND_STATUS_CHANGED,
    DomainEvent,
    DemandCreatedEvent,
    DemandMatchedEvent,
    SupplierNotifiedEvent,
    DemandStatusChangedEvent,
    parse_event,
)
from .publisher import EventPublisherPort, InMemoryEventPublisher, publish_event

__all__ = [
    "DEMAND_CREATED",
    "DEMAND_MATCHED",
    "SUPPLIER_NOTIFIED",
    "DEMAND_STATUS_CHANGED",
    "DomainEvent",
    "DemandCreatedEvent",
    "DemandMatchedEvent",
    "SupplierNotifiedEvent",
    "DemandStatusChangedEvent",
    "parse_event",
    "EventPublisherPort",
    "InMemoryEventPublisher",
    "publish_event",
]
