"""SQLAlchemy Models for the demand matching service"""

from .base import Base
from .demand import Demand, DemandStatus
from .demand_match import DemandMatch, MatchReason

__all__ = [
    "Base",
    "Demand",
    "DemandStatus",
    "DemandMatch",
    "MatchReason",
]
