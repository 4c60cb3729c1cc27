"""Matching ports and interfaces for hexagonal architecture.

The matching engine depends only on these ports; the supplier service
adapter (infrastructure.suppliers) and the in-process fakes used in tests
implement them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from models.demand_match import MatchReason


@dataclass
class SupplierInfo:
    """Read-only supplier reference fetched from the supplier directory.

    Attributes:
        id: Supplier identifier
        name: Display name (snapshotted onto the match row)
        city: City used for location scoring
        country: Country (informational)
        rating: Average rating on a 0-5 scale
    """
    id: int
    name: str
    city: Optional[str] = None
    country: Optional[str] = None
    rating: Optional[float] = None


@dataclass(frozen=True)
class DemandCriteria:
    """Immutable snapshot of the demand fields used for matching.

    Scoring runs on worker threads, so the ORM object is never shared
    across them; this snapshot is.

    Attributes:
        demand_id: Demand identifier
        bearing_number: Requested bearing number
        brand: Requested brand (optional)
        min_price: Lower bound of the acceptable price range
        max_price: Upper bound of the acceptable price range
        delivery_address: Free-text delivery address
        required_quantity: Requested quantity
    """
    demand_id: int
    bearing_number: str
    brand: Optional[str] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    delivery_address: Optional[str] = None
    required_quantity: int = 1

    @classmethod
    def from_demand(cls, demand: Any) -> "DemandCriteria":
        """Build criteria from a Demand model."""
        return cls(
            demand_id=demand.id,
            bearing_number=demand.bearing_number,
            brand=demand.brand,
            min_price=demand.min_price,
            max_price=demand.max_price,
            delivery_address=demand.delivery_address,
            required_quantity=demand.required_quantity or 1,
        )


@dataclass
class DiscoveryResult:
    """Outcome of candidate discovery.

    Attributes:
        supplier_ids: De-duplicated candidate supplier IDs, first-seen order
        degraded: True when the directory could not be queried
        reason: Why discovery degraded (None when healthy)
    """
    supplier_ids: List[int] = field(default_factory=list)
    degraded: bool = False
    reason: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.supplier_ids


@dataclass
class MatchCandidate:
    """One scored supplier for a demand, ready to persist.

    Attributes:
        supplier_id: Supplier identifier
        supplier_name: Supplier name snapshot
        score: Composite score (0.0-1.0, 4 decimals)
        primary_reason: Primary match reason
        strengths: Factor names scoring above the strength threshold
        factors: Per-factor scores
        flags: Scoring annotations (e.g. price_below_minimum)
        defaulted: Factor names that fell back to their default
    """
    supplier_id: int
    supplier_name: str
    score: float
    primary_reason: MatchReason
    strengths: List[str] = field(default_factory=list)
    factors: Dict[str, float] = field(default_factory=dict)
    flags: List[str] = field(default_factory=list)
    defaulted: List[str] = field(default_factory=list)

    def details(self) -> Dict[str, Any]:
        """Structured breakdown stored in demand_match.match_details."""
        return {
            "factors": dict(self.factors),
            "strengths": list(self.strengths),
            "flags": list(self.flags),
            "defaulted": list(self.defaulted),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "score": self.score,
            "primary_reason": self.primary_reason.value,
            "strengths": list(self.strengths),
            "is_notified": False,
        }


@dataclass
class MatchRunResult:
    """Summary of one matching run.

    Attributes:
        demand_id: Demand that was matched
        run_id: Correlation ID of the run (also in every log line)
        total_matched: Number of matches persisted by this run
        matches: Ranked matches (score desc, supplier_id asc)
        duration: Wall-clock run duration
        matched_at: Completion timestamp (UTC)
        total_notified: Always 0; notification is a separate operation
        discovery_degraded: Directory was unreachable during discovery
        dropped_supplier_ids: Candidates dropped by scoring or write faults
        deadline_exceeded: Scoring phase hit the run deadline
    """
    demand_id: int
    run_id: str
    total_matched: int
    matches: List[MatchCandidate]
    duration: timedelta
    matched_at: datetime
    total_notified: int = 0
    discovery_degraded: bool = False
    dropped_supplier_ids: List[int] = field(default_factory=list)
    deadline_exceeded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "demand_id": self.demand_id,
            "run_id": self.run_id,
            "total_suppliers_matched": self.total_matched,
            "total_suppliers_notified": self.total_notified,
            "matches": [m.to_dict() for m in self.matches],
            "matching_duration_ms": round(self.duration.total_seconds() * 1000, 1),
            "matched_at": self.matched_at.isoformat(),
            "discovery_degraded": self.discovery_degraded,
            "dropped_supplier_ids": list(self.dropped_supplier_ids),
            "deadline_exceeded": self.deadline_exceeded,
        }


class SupplierDirectoryPort(ABC):
    """Port interface for the supplier directory.

    Implementations:
    - SupplierServiceClient: REST supplier service (httpx)
    """

    @abstractmethod
    def find_candidates(self, criteria: DemandCriteria) -> List[int]:
        """Find supplier IDs that may be able to serve the demand.

        Raises:
            SupplierServiceError: If the directory cannot be queried
        """
        pass

    @abstractmethod
    def get_basic_info(self, supplier_id: int) -> Optional[SupplierInfo]:
        """Fetch supplier name, city and rating.

        Returns:
            SupplierInfo, or None if the supplier is unknown

        Raises:
            SupplierServiceError: If the directory cannot be queried
        """
        pass


class ProductCatalogPort(ABC):
    """Port interface for supplier product and price lookups."""

    @abstractmethod
    def has_product(self, supplier_id: int, bearing_number: str) -> bool:
        """Check whether the supplier carries the exact bearing number.

        Raises:
            SupplierServiceError: If the catalog cannot be queried
        """
        pass

    @abstractmethod
    def get_price(self, supplier_id: int, bearing_number: str) -> Optional[Decimal]:
        """Get the supplier's unit price for the bearing number.

        Returns:
            Unit price, or None if the supplier has no price for it

        Raises:
            SupplierServiceError: If the catalog cannot be queried
        """
        pass


class MatchingError(Exception):
    """Base exception for matching errors."""
    pass


class DemandNotFoundError(MatchingError):
    """Raised when the demand to match does not exist."""

    def __init__(self, demand_id: int):
        super().__init__(f"Demand {demand_id} not found")
        self.demand_id = demand_id


class ScoringCancelled(MatchingError):
    """Raised inside a scoring task once the run deadline has passed."""
    pass


class SupplierServiceError(Exception):
    """Raised by supplier adapters when a lookup cannot be answered."""
    pass


class SupplierServiceTimeout(SupplierServiceError):
    """Raised when a supplier lookup exceeds its timeout."""
    pass
