"""Match repository for database operations.

Owns the two persistence invariants of the matching engine:

- one demand_match row per (demand_id, supplier_id), enforced by the
  unique constraint; a duplicate insert is a silent no-op
- demand.total_matches is recomputed from COUNT(*) in the same
  transaction as every insert or delete, never incremented

Every rollup write first locks the demand row (SELECT .. FOR UPDATE), so on
PostgreSQL the COUNT(*) runs after competing writers for the same demand
have committed and sees their rows.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.demand import Demand
from models.demand_match import DemandMatch
from .ports import MatchCandidate

logger = logging.getLogger(__name__)

_CONFLICT_COLUMNS = ["demand_id", "supplier_id"]


def demand_lock_statement(demand_id: int):
    """Row lock on a demand, held until the surrounding transaction ends."""
    return select(Demand.id).where(Demand.id == demand_id).with_for_update()


class MatchRepository:
    """Repository for demand and demand_match database operations.

    Every write method commits its own transaction, so one failed row
    never discards rows written before it.
    """

    def __init__(self, db: Session):
        """Initialize repository with database session.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    # Reads

    def get_demand(self, demand_id: int) -> Optional[Demand]:
        return self.db.get(Demand, demand_id)

    def get_match(self, demand_id: int, supplier_id: int) -> Optional[DemandMatch]:
        return self.db.execute(
            select(DemandMatch).where(
                DemandMatch.demand_id == demand_id,
                DemandMatch.supplier_id == supplier_id,
            )
        ).scalar_one_or_none()

    def list_for_demand(self, demand_id: int) -> List[DemandMatch]:
        """Matches of a demand, best first (ties by supplier_id)."""
        return list(self.db.execute(
            select(DemandMatch)
            .where(DemandMatch.demand_id == demand_id)
            .order_by(DemandMatch.match_score.desc(), DemandMatch.supplier_id.asc())
        ).scalars().all())

    def list_for_supplier(self, supplier_id: int) -> List[DemandMatch]:
        return list(self.db.execute(
            select(DemandMatch)
            .where(DemandMatch.supplier_id == supplier_id)
            .order_by(DemandMatch.match_score.desc(), DemandMatch.demand_id.asc())
        ).scalars().all())

    def count_for_demand(self, demand_id: int) -> int:
        return self.db.execute(
            select(func.count(DemandMatch.id)).where(DemandMatch.demand_id == demand_id)
        ).scalar_one()

    # Writes

    def add_demand(self, demand: Demand) -> Demand:
        try:
            self.db.add(demand)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(demand)
        return demand

    def upsert(self, demand_id: int, candidate: MatchCandidate) -> bool:
        """Insert a match unless the (demand, supplier) pair already exists.

        Args:
            demand_id: Demand the match belongs to
            candidate: Scored candidate

        Returns:
            True if a row was inserted, False if it already existed

        Raises:
            SQLAlchemyError: On any persistence fault other than a duplicate
        """
        values = {
            "demand_id": demand_id,
            "supplier_id": candidate.supplier_id,
            "supplier_name": candidate.supplier_name,
            "match_score": candidate.score,
            "match_reason": candidate.primary_reason.value,
            "match_details": candidate.details(),
            "is_notified": False,
            "has_responded": False,
            "is_interested": False,
        }

        try:
            self._lock_demand(demand_id)
            inserted = self._insert_ignoring_duplicates(values)
            self._refresh_total_matches(demand_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if not inserted:
            logger.debug(
                f"Match for demand {demand_id} / supplier {candidate.supplier_id} already exists",
                extra={"demand_id": demand_id, "supplier_id": candidate.supplier_id},
            )
        return inserted

    def remove_match(self, demand_id: int, supplier_id: int) -> bool:
        """Delete a match and recompute the demand's rollup.

        Returns:
            True if a row was deleted
        """
        try:
            self._lock_demand(demand_id)
            result = self.db.execute(
                delete(DemandMatch)
                .where(
                    DemandMatch.demand_id == demand_id,
                    DemandMatch.supplier_id == supplier_id,
                )
                .execution_options(synchronize_session=False)
            )
            self._refresh_total_matches(demand_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        # Drop any stale identity-map copy of the deleted row
        self.db.expire_all()
        return result.rowcount > 0

    def refresh_total_matches(self, demand_id: int) -> int:
        """Recompute demand.total_matches from the live row count.

        Returns:
            The recomputed count
        """
        try:
            self._lock_demand(demand_id)
            self._refresh_total_matches(demand_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return self.count_for_demand(demand_id)

    def mark_notified(
        self,
        demand_id: int,
        supplier_id: int,
        notified_at: Optional[datetime] = None,
    ) -> Optional[DemandMatch]:
        match = self.get_match(demand_id, supplier_id)
        if match is None:
            return None

        match.is_notified = True
        match.notified_at = notified_at or datetime.now(timezone.utc)
        self._commit()
        self.db.refresh(match)
        return match

    def record_response(
        self,
        demand_id: int,
        supplier_id: int,
        interested: bool,
        responded_at: Optional[datetime] = None,
    ) -> Optional[DemandMatch]:
        match = self.get_match(demand_id, supplier_id)
        if match is None:
            return None

        match.has_responded = True
        match.responded_at = responded_at or datetime.now(timezone.utc)
        match.is_interested = interested
        self._commit()
        self.db.refresh(match)
        return match

    def update_status(self, demand: Demand, status: str) -> Demand:
        demand.status = status
        demand.updated_at = datetime.now(timezone.utc)
        self._commit()
        self.db.refresh(demand)
        return demand

    # Internals

    def _commit(self) -> None:
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _lock_demand(self, demand_id: int) -> None:
        # No-op on SQLite, which serializes writers anyway
        self.db.execute(demand_lock_statement(demand_id))

    def _insert_ignoring_duplicates(self, values: dict) -> bool:
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            stmt = pg_insert(DemandMatch).values(**values).on_conflict_do_nothing(
                index_elements=_CONFLICT_COLUMNS
            )
            return self.db.execute(stmt).rowcount == 1

        if dialect == "sqlite":
            stmt = sqlite_insert(DemandMatch).values(**values).on_conflict_do_nothing(
                index_elements=_CONFLICT_COLUMNS
            )
            return self.db.execute(stmt).rowcount == 1

        # Other backends: let the unique constraint reject the duplicate
        try:
            with self.db.begin_nested():
                self.db.execute(insert(DemandMatch).values(**values))
            return True
        except IntegrityError:
            if self.get_match(values["demand_id"], values["supplier_id"]) is None:
                raise
            return False

    def _refresh_total_matches(self, demand_id: int) -> None:
        live_count = (
            select(func.count(DemandMatch.id))
            .where(DemandMatch.demand_id == demand_id)
            .scalar_subquery()
        )
        self.db.execute(
            update(Demand)
            .where(Demand.id == demand_id)
            .values(total_matches=live_count)
            .execution_options(synchronize_session=False)
        )
