"""Factor scorers for demand-to-supplier matching.

Each scorer turns one (demand, supplier) pair into a value in [0, 1]:

    product     0.9 exact bearing number carried, 0.1 otherwise      default 0.5
    price       0.9 in range, 0.7 below min, 0.8 under max (no min),
                0.3 above max or no price                            default 0.3
                0.5 when the demand has no price range at all
    location    0.9 supplier city inside delivery address, else 0.5  default 0.5
    reputation  min(rating / 5, 1.0)                                 default 0.5

A scorer never raises on a failed or timed-out lookup: it logs and
returns its default. Only ScoringCancelled escapes, so a run past its
deadline drops the candidate instead of persisting a half-scored one.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Tuple

from observability.metrics import factor_defaults_total
from .ports import (
    DemandCriteria,
    ProductCatalogPort,
    ScoringCancelled,
    SupplierDirectoryPort,
    SupplierInfo,
)

logger = logging.getLogger(__name__)

PRODUCT = "product"
PRICE = "price"
LOCATION = "location"
REPUTATION = "reputation"

UNKNOWN_SUPPLIER_NAME = "Unknown supplier"


@dataclass(frozen=True)
class FactorScore:
    """Normalized score of one factor for one candidate.

    Attributes:
        name: Factor name
        value: Score in [0, 1]
        defaulted: True when the value is the factor's missing-data default
        flags: Annotations for downstream summaries
    """
    name: str
    value: float
    defaulted: bool = False
    flags: Tuple[str, ...] = ()


class ScoringContext:
    """Lookups for one candidate, shared by all factor scorers.

    Supplier basic info is fetched at most once per candidate; a failed
    fetch is remembered and re-raised to every scorer that asks, so each
    one falls back to its own default.
    """

    def __init__(
        self,
        criteria: DemandCriteria,
        supplier_id: int,
        directory: SupplierDirectoryPort,
        catalog: ProductCatalogPort,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.criteria = criteria
        self.supplier_id = supplier_id
        self.directory = directory
        self.catalog = catalog
        self.cancel_event = cancel_event
        self._info: Optional[SupplierInfo] = None
        self._info_error: Optional[Exception] = None
        self._info_loaded = False

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise ScoringCancelled(
                f"Scoring of supplier {self.supplier_id} cancelled (run deadline reached)"
            )

    def supplier_info(self) -> Optional[SupplierInfo]:
        if not self._info_loaded:
            self.check_cancelled()
            try:
                self._info = self.directory.get_basic_info(self.supplier_id)
            except Exception as e:
                self._info_error = e
            self._info_loaded = True
        if self._info_error is not None:
            raise self._info_error
        return self._info

    def has_product(self) -> bool:
        self.check_cancelled()
        return bool(self.catalog.has_product(self.supplier_id, self.criteria.bearing_number))

    def price(self) -> Optional[Decimal]:
        self.check_cancelled()
        price = self.catalog.get_price(self.supplier_id, self.criteria.bearing_number)
        if price is None:
            return None
        return price if isinstance(price, Decimal) else Decimal(str(price))

    def supplier_name(self) -> str:
        """Supplier name snapshot, or a placeholder when the directory is silent."""
        try:
            info = self.supplier_info()
        except ScoringCancelled:
            raise
        except Exception:
            return UNKNOWN_SUPPLIER_NAME
        if info is None or not info.name:
            return UNKNOWN_SUPPLIER_NAME
        return info.name


class FactorScorer(ABC):
    """Base class for a single matching factor."""

    name: str = ""
    default: float = 0.5

    def evaluate(self, ctx: ScoringContext) -> FactorScore:
        """Score the candidate, absorbing lookup failures into the default.

        Raises:
            ScoringCancelled: If the run deadline passed before a lookup
        """
        try:
            result = self.score(ctx)
        except ScoringCancelled:
            raise
        except Exception as e:
            logger.warning(
                f"Factor '{self.name}' failed for supplier {ctx.supplier_id}, "
                f"using default {self.default}: {e}",
                extra={"demand_id": ctx.criteria.demand_id, "supplier_id": ctx.supplier_id},
            )
            result = FactorScore(self.name, self.default, defaulted=True, flags=("lookup_failed",))

        if result.defaulted:
            factor_defaults_total.labels(factor=self.name).inc()

        value = max(0.0, min(1.0, float(result.value)))
        if value != result.value:
            result = FactorScore(result.name, value, result.defaulted, result.flags)
        return result

    @abstractmethod
    def score(self, ctx: ScoringContext) -> FactorScore:
        pass

    def _missing(self, flag: str) -> FactorScore:
        return FactorScore(self.name, self.default, defaulted=True, flags=(flag,))


class ProductFactor(FactorScorer):
    """Does the supplier carry the exact bearing number?"""

    name = PRODUCT
    default = 0.5

    def score(self, ctx: ScoringContext) -> FactorScore:
        return FactorScore(self.name, 0.9 if ctx.has_product() else 0.1)


class PriceFactor(FactorScorer):
    """How the supplier's price sits against the demand's price range.

    Every favourable score requires a maximum price; a demand with only a
    minimum price scores like an out-of-range price.
    """

    name = PRICE
    default = 0.3
    NO_RANGE_SCORE = 0.5

    def score(self, ctx: ScoringContext) -> FactorScore:
        min_price = ctx.criteria.min_price
        max_price = ctx.criteria.max_price

        if min_price is None and max_price is None:
            return FactorScore(self.name, self.NO_RANGE_SCORE, defaulted=True, flags=("no_price_range",))

        price = ctx.price()
        if price is None:
            return FactorScore(self.name, 0.3, flags=("no_price",))

        if max_price is None:
            return FactorScore(self.name, 0.3, flags=("no_maximum_price",))

        if price > max_price:
            return FactorScore(self.name, 0.3, flags=("price_above_maximum",))

        if min_price is not None and price < min_price:
            # Suspiciously cheap: possible quality concern
            return FactorScore(self.name, 0.7, flags=("price_below_minimum",))

        if min_price is None:
            return FactorScore(self.name, 0.8)

        return FactorScore(self.name, 0.9)


class LocationFactor(FactorScorer):
    """Is the supplier located in the delivery city?"""

    name = LOCATION
    default = 0.5

    def score(self, ctx: ScoringContext) -> FactorScore:
        address = (ctx.criteria.delivery_address or "").strip()
        if not address:
            return self._missing("no_delivery_address")

        info = ctx.supplier_info()
        city = (info.city or "").strip() if info else ""
        if not city:
            return self._missing("no_supplier_city")

        if city.casefold() in address.casefold():
            return FactorScore(self.name, 0.9)
        return FactorScore(self.name, 0.5)


class ReputationFactor(FactorScorer):
    """Supplier rating normalized from a 0-5 scale."""

    name = REPUTATION
    default = 0.5

    def score(self, ctx: ScoringContext) -> FactorScore:
        info = ctx.supplier_info()
        if info is None or info.rating is None:
            return self._missing("no_rating")
        return FactorScore(self.name, max(0.0, min(float(info.rating) / 5.0, 1.0)))


def default_factors() -> List[FactorScorer]:
    """The four factors, in weight-table order."""
    return [ProductFactor(), PriceFactor(), LocationFactor(), ReputationFactor()]
