"""DemandMatch SQLAlchemy model"""

import enum

from sqlalchemy import (
    Column, Text, Boolean, Numeric, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base, PortableBigInt, PortableJSONB


class MatchReason(str, enum.Enum):
    """Primary reason a supplier was matched to a demand."""
    EXACT_MATCH = "ExactMatch"
    SIMILAR_PRODUCT = "SimilarProduct"
    PRICE_ADVANTAGE = "PriceAdvantage"
    LOCATION_PROXIMITY = "LocationProximity"
    HISTORICAL_COOPERATION = "HistoricalCooperation"


class DemandMatch(Base):
    """Scored association between one demand and one supplier.

    The (demand_id, supplier_id) pair is unique: concurrent matching runs
    converge on a single row through ``uq_demand_match_demand_supplier``.

    match_details layout:
        {"factors": {"product": 0.9, ...}, "strengths": [...], "flags": [...]}
    """
    __tablename__ = "demand_match"
    __table_args__ = (
        UniqueConstraint("demand_id", "supplier_id", name="uq_demand_match_demand_supplier"),
        Index("ix_demand_match_supplier_id", "supplier_id"),
        Index("ix_demand_match_score", "match_score"),
        CheckConstraint(
            "match_score >= 0 AND match_score <= 1",
            name="ck_demand_match_score_range",
        ),
    )

    id = Column(PortableBigInt, primary_key=True, autoincrement=True)
    demand_id = Column(
        PortableBigInt, ForeignKey("demand.id", ondelete="CASCADE"), nullable=False
    )
    supplier_id = Column(PortableBigInt, nullable=False)
    supplier_name = Column(Text, nullable=False)

    match_score = Column(Numeric(5, 4, asdecimal=False), nullable=False)
    match_reason = Column(Text, nullable=False)
    match_details = Column(PortableJSONB, nullable=True)

    # Supplier follow-up
    is_notified = Column(Boolean, nullable=False, server_default="0")
    notified_at = Column(DateTime(timezone=True), nullable=True)
    has_responded = Column(Boolean, nullable=False, server_default="0")
    responded_at = Column(DateTime(timezone=True), nullable=True)
    is_interested = Column(Boolean, nullable=False, server_default="0")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    demand = relationship("Demand", back_populates="matches")

    def to_dict(self):
        """Convert match to dictionary representation"""
        return {
            "id": self.id,
            "demand_id": self.demand_id,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "match_score": self.match_score,
            "match_reason": self.match_reason,
            "match_details": self.match_details,
            "is_notified": self.is_notified,
            "notified_at": self.notified_at.isoformat() if self.notified_at else None,
            "has_responded": self.has_responded,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "is_interested": self.is_interested,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
