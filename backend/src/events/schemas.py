"""Domain event schemas.

Every event carries a literal ``event_type`` tag; inbound payloads are
validated against the tagged union with ``parse_event`` so a consumer
never handles an untyped dict.
"""

import uuid
from datetime import datetime, timezone
from typing import Annotated, Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from models.demand import DemandStatus
from models.demand_match import MatchReason

DEMAND_CREATED = "demand-created"
DEMAND_MATCHED = "demand-matched"
SUPPLIER_NOTIFIED = "supplier-notified"
DEMAND_STATUS_CHANGED = "demand-status-changed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DomainEvent(BaseModel):
    """Common envelope fields."""
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=_utcnow)


class DemandCreatedEvent(DomainEvent):
    event_type: Literal["demand-created"] = DEMAND_CREATED
    demand_id: int
    requester_id: int
    bearing_number: str
    brand: Optional[str] = None
    specification: Optional[str] = None
    required_quantity: int = Field(1, ge=1)
    delivery_address: Optional[str] = None
    created_at: datetime


class DemandMatchedEvent(DomainEvent):
    """Published once per run that produced at least one match."""
    event_type: Literal["demand-matched"] = DEMAND_MATCHED
    demand_id: int
    run_id: str
    total_matches: int = Field(ge=0)
    matched_supplier_ids: List[int] = Field(default_factory=list)
    matched_at: datetime


class SupplierNotifiedEvent(DomainEvent):
    event_type: Literal["supplier-notified"] = SUPPLIER_NOTIFIED
    demand_id: int
    supplier_id: int
    supplier_name: str
    bearing_number: str
    brand: Optional[str] = None
    required_quantity: int = Field(1, ge=1)
    match_score: float = Field(ge=0.0, le=1.0)
    match_reason: MatchReason
    notified_at: datetime


class DemandStatusChangedEvent(DomainEvent):
    event_type: Literal["demand-status-changed"] = DEMAND_STATUS_CHANGED
    demand_id: int
    old_status: DemandStatus
    new_status: DemandStatus
    changed_by_user_id: Optional[int] = None
    reason: Optional[str] = None
    changed_at: datetime


Event = Annotated[
    Union[
        DemandCreatedEvent,
        DemandMatchedEvent,
        SupplierNotifiedEvent,
        DemandStatusChangedEvent,
    ],
    Field(discriminator="event_type"),
]

_event_adapter: TypeAdapter = TypeAdapter(Event)


def parse_event(payload: Union[Mapping[str, Any], str, bytes]) -> DomainEvent:
    """Validate an inbound payload into its typed event.

    Args:
        payload: Decoded dict or raw JSON

    Returns:
        The concrete event model selected by ``event_type``

    Raises:
        pydantic.ValidationError: Unknown ``event_type`` or invalid fields
    """
    if isinstance(payload, (str, bytes)):
        return _event_adapter.validate_json(payload)
    return _event_adapter.validate_python(payload)
