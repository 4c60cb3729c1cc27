"""Demand match service.

Entry point for everything that touches matches of a demand: matching
runs and the narrow follow-up operations (notify, response, unmatch,
status change). Domain events are published best-effort after the
database change has committed.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from events.publisher import EventPublisherPort, InMemoryEventPublisher, publish_event
from events.schemas import (
    DEMAND_CREATED,
    DEMAND_MATCHED,
    DEMAND_STATUS_CHANGED,
    SUPPLIER_NOTIFIED,
    DemandCreatedEvent,
    DemandMatchedEvent,
    DemandStatusChangedEvent,
    SupplierNotifiedEvent,
)
from models.demand import Demand, DemandStatus
from models.demand_match import DemandMatch
from .orchestrator import MatchingOrchestrator
from .ports import DemandNotFoundError, MatchRunResult
from .repository import MatchRepository

logger = logging.getLogger(__name__)


class DemandMatchService:
    """Matching runs plus follow-up match operations for demands."""

    def __init__(
        self,
        repository: MatchRepository,
        orchestrator: MatchingOrchestrator,
        publisher: Optional[EventPublisherPort] = None,
    ):
        """Initialize service.

        Args:
            repository: Match repository
            orchestrator: Matching orchestrator bound to the same repository
            publisher: Event publisher (in-memory when omitted)
        """
        self.repository = repository
        self.orchestrator = orchestrator
        self.publisher = publisher or InMemoryEventPublisher()

    def create_demand(
        self,
        requester_id: int,
        bearing_number: str,
        brand: Optional[str] = None,
        specification: Optional[str] = None,
        required_quantity: int = 1,
        min_price: Optional[Decimal] = None,
        max_price: Optional[Decimal] = None,
        delivery_address: Optional[str] = None,
        requester_company: Optional[str] = None,
    ) -> Demand:
        """Register an active demand and publish demand-created.

        Raises:
            ValueError: If the quantity or price range is invalid
        """
        if not bearing_number or not bearing_number.strip():
            raise ValueError("bearing_number is required")
        if required_quantity < 1:
            raise ValueError("required_quantity must be at least 1")
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValueError("min_price must not exceed max_price")

        demand = self.repository.add_demand(Demand(
            requester_id=requester_id,
            requester_company=requester_company,
            bearing_number=bearing_number.strip(),
            brand=brand,
            specification=specification,
            required_quantity=required_quantity,
            min_price=min_price,
            max_price=max_price,
            delivery_address=delivery_address,
            status=DemandStatus.ACTIVE.value,
        ))

        logger.info(f"Demand {demand.id} created for bearing {demand.bearing_number}",
                    extra={"demand_id": demand.id})

        publish_event(self.publisher, DEMAND_CREATED, DemandCreatedEvent(
            demand_id=demand.id,
            requester_id=requester_id,
            bearing_number=demand.bearing_number,
            brand=demand.brand,
            specification=demand.specification,
            required_quantity=demand.required_quantity,
            delivery_address=demand.delivery_address,
            created_at=demand.created_at or datetime.now(timezone.utc),
        ))
        return demand

    def run_matching(self, demand_id: int) -> MatchRunResult:
        """Run the matching pipeline for a demand.

        Publishes demand-matched when the run produced at least one match.
        Suppliers are never notified from here.

        Raises:
            DemandNotFoundError: If the demand does not exist
        """
        result = self.orchestrator.match(demand_id)

        if result.total_matched > 0:
            publish_event(self.publisher, DEMAND_MATCHED, DemandMatchedEvent(
                demand_id=demand_id,
                run_id=result.run_id,
                total_matches=result.total_matched,
                matched_supplier_ids=[m.supplier_id for m in result.matches],
                matched_at=result.matched_at,
            ))
        return result

    def get_demand_matches(self, demand_id: int) -> List[DemandMatch]:
        """Persisted matches of a demand, best first.

        Raises:
            DemandNotFoundError: If the demand does not exist
        """
        self._require_demand(demand_id)
        return self.repository.list_for_demand(demand_id)

    def notify_supplier(self, demand_id: int, supplier_id: int) -> bool:
        """Mark a match notified and publish supplier-notified.

        Returns:
            False if no match exists for the pair
        """
        match = self.repository.mark_notified(demand_id, supplier_id)
        if match is None:
            return False

        demand = self.repository.get_demand(demand_id)
        if demand is not None:
            publish_event(self.publisher, SUPPLIER_NOTIFIED, SupplierNotifiedEvent(
                demand_id=demand_id,
                supplier_id=supplier_id,
                supplier_name=match.supplier_name,
                bearing_number=demand.bearing_number,
                brand=demand.brand,
                required_quantity=demand.required_quantity,
                match_score=match.match_score,
                match_reason=match.match_reason,
                notified_at=match.notified_at,
            ))

        logger.info(f"Supplier {supplier_id} notified for demand {demand_id}",
                    extra={"demand_id": demand_id, "supplier_id": supplier_id})
        return True

    def notify_top_matches(self, demand_id: int, limit: int = 5) -> int:
        """Notify the best-ranked matches that were not notified yet.

        Returns:
            Number of suppliers notified
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")

        pending = [m for m in self.get_demand_matches(demand_id) if not m.is_notified]
        supplier_ids = [m.supplier_id for m in pending[:limit]]

        notified = 0
        for supplier_id in supplier_ids:
            if self.notify_supplier(demand_id, supplier_id):
                notified += 1
        return notified

    def record_supplier_response(self, demand_id: int, supplier_id: int, interested: bool) -> bool:
        """Record a supplier's answer to a notification.

        Returns:
            False if no match exists for the pair
        """
        match = self.repository.record_response(demand_id, supplier_id, interested)
        if match is None:
            return False

        logger.info(
            f"Supplier {supplier_id} responded to demand {demand_id} "
            f"({'interested' if interested else 'not interested'})",
            extra={"demand_id": demand_id, "supplier_id": supplier_id},
        )
        return True

    def unmatch(self, demand_id: int, supplier_id: int) -> bool:
        """Administratively delete a match; total_matches is recomputed.

        Returns:
            False if no match existed
        """
        removed = self.repository.remove_match(demand_id, supplier_id)
        if removed:
            logger.info(f"Match for supplier {supplier_id} removed from demand {demand_id}",
                        extra={"demand_id": demand_id, "supplier_id": supplier_id})
        return removed

    def change_status(
        self,
        demand_id: int,
        new_status: str,
        reason: Optional[str] = None,
        changed_by_user_id: Optional[int] = None,
    ) -> Demand:
        """Move a demand to a new status and publish demand-status-changed.

        Args:
            demand_id: Demand to update
            new_status: Target DemandStatus value
            reason: Free-text reason carried on the event
            changed_by_user_id: Acting user; None for system actions such as expiry

        Raises:
            DemandNotFoundError: If the demand does not exist
            ValueError: If new_status is not a DemandStatus value
        """
        status = DemandStatus(new_status)
        demand = self._require_demand(demand_id)
        old_status = demand.status

        demand = self.repository.update_status(demand, status.value)

        publish_event(self.publisher, DEMAND_STATUS_CHANGED, DemandStatusChangedEvent(
            demand_id=demand_id,
            old_status=old_status,
            new_status=status,
            changed_by_user_id=changed_by_user_id,
            reason=reason,
            changed_at=demand.updated_at,
        ))
        return demand

    def close_demand(self, demand_id: int, reason: Optional[str] = None,
                     changed_by_user_id: Optional[int] = None) -> Demand:
        return self.change_status(demand_id, DemandStatus.CLOSED, reason or "Demand fulfilled",
                                  changed_by_user_id)

    def cancel_demand(self, demand_id: int, reason: Optional[str] = None,
                      changed_by_user_id: Optional[int] = None) -> Demand:
        return self.change_status(demand_id, DemandStatus.CANCELLED, reason or "Demand cancelled",
                                  changed_by_user_id)

    def expire_demand(self, demand_id: int) -> Demand:
        return self.change_status(demand_id, DemandStatus.EXPIRED, "Demand expired")

    def _require_demand(self, demand_id: int) -> Demand:
        demand = self.repository.get_demand(demand_id)
        if demand is None:
            raise DemandNotFoundError(demand_id)
        return demand
