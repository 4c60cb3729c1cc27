"""Supplier service REST adapter.

Implements SupplierDirectoryPort and ProductCatalogPort against the
supplier service:

    GET api/suppliers/search?bearingNumber=&brand=
    GET api/suppliers/{id}/basic-info
    GET api/suppliers/{id}/products/exists?bearingNumber=
    GET api/suppliers/{id}/products/price?bearingNumber=

Every call carries the per-lookup timeout. Timeouts raise
SupplierServiceTimeout, any other transport or HTTP failure raises
SupplierServiceError; the matching engine maps both to its defaults.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from matching.ports import (
    DemandCriteria,
    ProductCatalogPort,
    SupplierDirectoryPort,
    SupplierInfo,
    SupplierServiceError,
    SupplierServiceTimeout,
)

logger = logging.getLogger(__name__)


class SupplierServiceClient(SupplierDirectoryPort, ProductCatalogPort):
    """httpx client for the supplier service.

    httpx.Client is thread-safe, so one instance is shared by all scoring
    threads of a run.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 3.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Supplier service base URL
            timeout_seconds: Timeout applied to every lookup
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self._base_url = str(base_url).rstrip("/")
        self._timeout = timeout_seconds
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Any) -> "SupplierServiceClient":
        return cls(settings.SUPPLIER_SERVICE_URL, settings.SUPPLIER_LOOKUP_TIMEOUT_SECONDS)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SupplierServiceClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # SupplierDirectoryPort

    def find_candidates(self, criteria: DemandCriteria) -> List[int]:
        params = {"bearingNumber": criteria.bearing_number}
        if criteria.brand:
            params["brand"] = criteria.brand

        data = self._get("api/suppliers/search", params=params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise SupplierServiceError(f"Unexpected supplier search payload: {type(data).__name__}")
        return [int(supplier_id) for supplier_id in data]

    def get_basic_info(self, supplier_id: int) -> Optional[SupplierInfo]:
        data = self._get(f"api/suppliers/{supplier_id}/basic-info", not_found_ok=True)
        if data is None:
            return None
        return _parse_supplier_info(supplier_id, data)

    # ProductCatalogPort

    def has_product(self, supplier_id: int, bearing_number: str) -> bool:
        data = self._get(
            f"api/suppliers/{supplier_id}/products/exists",
            params={"bearingNumber": bearing_number},
        )
        return bool(data)

    def get_price(self, supplier_id: int, bearing_number: str) -> Optional[Decimal]:
        data = self._get(
            f"api/suppliers/{supplier_id}/products/price",
            params={"bearingNumber": bearing_number},
            not_found_ok=True,
        )
        if data is None:
            return None
        try:
            return Decimal(str(data))
        except InvalidOperation as e:
            raise SupplierServiceError(f"Invalid price for supplier {supplier_id}: {data!r}") from e

    # Internals

    def _get(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        not_found_ok: bool = False,
    ) -> Any:
        try:
            response = self._client.get(path, params=params)
            if not_found_ok and response.status_code == 404:
                return None
            response.raise_for_status()
            if not response.content:
                return None
            return response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Supplier service timed out after {self._timeout}s: GET {path}")
            raise SupplierServiceTimeout(f"GET {path} timed out") from e
        except httpx.HTTPStatusError as e:
            raise SupplierServiceError(
                f"GET {path} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise SupplierServiceError(f"GET {path} failed: {e!s}") from e
        except ValueError as e:
            raise SupplierServiceError(f"GET {path} returned invalid JSON") from e


def _parse_supplier_info(supplier_id: int, data: Dict[str, Any]) -> SupplierInfo:
    rating = data.get("rating")
    if rating is None:
        rating = data.get("averageRating")
    return SupplierInfo(
        id=int(data.get("id", supplier_id)),
        name=data.get("name") or data.get("companyName") or "",
        city=data.get("city"),
        country=data.get("country"),
        rating=float(rating) if rating is not None else None,
    )
