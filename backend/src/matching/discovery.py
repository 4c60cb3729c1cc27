"""Candidate supplier discovery for a demand."""

import logging
from typing import Iterable, List

from .ports import DemandCriteria, DiscoveryResult, SupplierDirectoryPort, SupplierServiceError

logger = logging.getLogger(__name__)


class CandidateDiscovery:
    """Find candidate suppliers for a demand via the supplier directory.

    An unreachable directory never raises to the caller: the result comes
    back empty with ``degraded=True`` and the orchestrator decides what to
    do with it. No placeholder suppliers are substituted.
    """

    def __init__(self, directory: SupplierDirectoryPort):
        self.directory = directory

    def find_candidates(self, criteria: DemandCriteria) -> DiscoveryResult:
        """Discover candidate supplier IDs for the demand.

        Args:
            criteria: Demand snapshot

        Returns:
            DiscoveryResult with de-duplicated supplier IDs
        """
        try:
            raw_ids = self.directory.find_candidates(criteria)
        except SupplierServiceError as e:
            logger.warning(
                f"Supplier directory unavailable for demand {criteria.demand_id}: {e}",
                extra={"demand_id": criteria.demand_id},
            )
            return DiscoveryResult(supplier_ids=[], degraded=True, reason=str(e))
        except Exception as e:
            logger.error(
                f"Candidate discovery failed for demand {criteria.demand_id}: {e}",
                exc_info=True,
                extra={"demand_id": criteria.demand_id},
            )
            return DiscoveryResult(supplier_ids=[], degraded=True, reason=f"discovery failed: {e}")

        supplier_ids = _dedupe(raw_ids or [])
        logger.info(
            f"Found {len(supplier_ids)} candidate suppliers for demand {criteria.demand_id}",
            extra={"demand_id": criteria.demand_id},
        )
        return DiscoveryResult(supplier_ids=supplier_ids)


def _dedupe(supplier_ids: Iterable[int]) -> List[int]:
    seen = set()
    unique = []
    for supplier_id in supplier_ids:
        if supplier_id is None or supplier_id in seen:
            continue
        seen.add(supplier_id)
        unique.append(supplier_id)
    return unique
