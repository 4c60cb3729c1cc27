"""Demand SQLAlchemy model"""

import enum

from sqlalchemy import Column, Text, Integer, Numeric, DateTime, CheckConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base, PortableBigInt


class DemandStatus(str, enum.Enum):
    """Lifecycle states of a buyer demand."""
    DRAFT = "Draft"
    ACTIVE = "Active"
    PENDING = "Pending"
    MATCHED = "Matched"
    NEGOTIATING = "Negotiating"
    CLOSED = "Closed"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


class Demand(Base):
    """A buyer's request for a bearing.

    Carries the acceptable price range and delivery address used by the
    matching engine. ``total_matches`` is a denormalized rollup of the
    demand_match rows that reference this demand; it is always recomputed
    from a live count by MatchRepository and never incremented in place.
    """
    __tablename__ = "demand"
    __table_args__ = (
        Index("ix_demand_bearing_number", "bearing_number"),
        Index("ix_demand_status", "status"),
        CheckConstraint("total_matches >= 0", name="ck_demand_total_matches_non_negative"),
    )

    id = Column(PortableBigInt, primary_key=True, autoincrement=True)
    requester_id = Column(PortableBigInt, nullable=True)
    requester_company = Column(Text, nullable=True)

    # Bearing
    bearing_number = Column(Text, nullable=False)
    brand = Column(Text, nullable=True)
    specification = Column(Text, nullable=True)

    # Commercial terms
    required_quantity = Column(Integer, nullable=False, server_default="1")
    min_price = Column(Numeric(18, 4), nullable=True)
    max_price = Column(Numeric(18, 4), nullable=True)
    delivery_address = Column(Text, nullable=True)

    status = Column(Text, nullable=False, server_default=DemandStatus.ACTIVE.value)
    total_matches = Column(Integer, nullable=False, server_default="0")

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    matches = relationship(
        "DemandMatch",
        back_populates="demand",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def to_dict(self):
        """Convert demand to dictionary representation"""
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "requester_company": self.requester_company,
            "bearing_number": self.bearing_number,
            "brand": self.brand,
            "specification": self.specification,
            "required_quantity": self.required_quantity,
            "min_price": float(self.min_price) if self.min_price is not None else None,
            "max_price": float(self.max_price) if self.max_price is not None else None,
            "delivery_address": self.delivery_address,
            "status": self.status,
            "total_matches": self.total_matches,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
