"""Matching module for demand-to-supplier recommendations.

This module implements the matching engine:
- Candidate discovery via the supplier directory
- Four factor scorers (product, price, location, reputation)
- Weighted composite scoring with primary reason and strengths
- Idempotent match persistence with a recomputed total_matches rollup
- Concurrent orchestration bounded by a run deadline
"""

from .ports import (
    SupplierInfo,
    DemandCriteria,
    DiscoveryResult,
    MatchCandidate,
    MatchRunResult,
    SupplierDirectoryPort,
    ProductCatalogPort,
    MatchingError,
    DemandNotFoundError,
    ScoringCancelled,
    SupplierServiceError,
    SupplierServiceTimeout,
)
from .discovery import CandidateDiscovery
from .factors import (
    FactorScore,
    FactorScorer,
    ProductFactor,
    PriceFactor,
    LocationFactor,
    ReputationFactor,
    default_factors,
)
from .scorer import DEFAULT_WEIGHTS, MatchScorer, WeightedScoreModel
from .repository import MatchRepository
from .orchestrator import MatchingOrchestrator, rank_candidates
from .service import DemandMatchService

__all__ = [
    "SupplierInfo",
    "DemandCriteria",
    "DiscoveryResult",
    "MatchCandidate",
    "MatchRunResult",
    "SupplierDirectoryPort",
    "ProductCatalogPort",
    "MatchingError",
    "DemandNotFoundError",
    "ScoringCancelled",
    "SupplierServiceError",
    "SupplierServiceTimeout",
    "CandidateDiscovery",
    "FactorScore",
    "FactorScorer",
    "ProductFactor",
    "PriceFactor",
    "LocationFactor",
    "ReputationFactor",
    "default_factors",
    "DEFAULT_WEIGHTS",
    "MatchScorer",
    "WeightedScoreModel",
    "MatchRepository",
    "MatchingOrchestrator",
    "rank_candidates",
    "DemandMatchService",
]
