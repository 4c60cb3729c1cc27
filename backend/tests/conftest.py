"""Pytest fixtures for matching engine tests.

Provides reusable test fixtures for:
- SQLite database (file in tmp_path so worker threads share it)
- Repository and demand factory
- In-process fakes for the supplier directory and product catalog

Usage:
    def test_match(orchestrator, make_demand, directory):
        demand = make_demand(min_price=20, max_price=30)
        directory.add_supplier(1, "Acme Bearings", city="Shanghai", rating=4.5)
        result = orchestrator.match(demand.id)
"""

import os
import sys
import threading
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

# Settings are cached on first import; point them at SQLite before anything loads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_JSON", "false")

backend_src = Path(__file__).parent.parent / "src"
if str(backend_src) not in sys.path:
    sys.path.insert(0, str(backend_src))

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from models import Base, Demand
from matching.orchestrator import MatchingOrchestrator
from matching.ports import (
    DemandCriteria,
    ProductCatalogPort,
    SupplierDirectoryPort,
    SupplierInfo,
    SupplierServiceError,
    SupplierServiceTimeout,
)
from matching.repository import MatchRepository


class FakeSupplierDirectory(SupplierDirectoryPort):
    """Supplier directory backed by dicts, with switchable failures."""

    def __init__(self):
        self.suppliers: Dict[int, SupplierInfo] = {}
        self.candidates: Optional[List[int]] = None
        self.discovery_error: Optional[Exception] = None
        self.failing_info: Set[int] = set()
        self.info_delay: Dict[int, float] = {}
        self.info_calls: List[int] = []
        self._lock = threading.Lock()

    def add_supplier(self, supplier_id, name, city=None, rating=None, country="China"):
        self.suppliers[supplier_id] = SupplierInfo(
            id=supplier_id, name=name, city=city, country=country, rating=rating
        )

    def find_candidates(self, criteria: DemandCriteria) -> List[int]:
        if self.discovery_error is not None:
            raise self.discovery_error
        if self.candidates is not None:
            return list(self.candidates)
        return sorted(self.suppliers)

    def get_basic_info(self, supplier_id: int) -> Optional[SupplierInfo]:
        with self._lock:
            self.info_calls.append(supplier_id)
        delay = self.info_delay.get(supplier_id)
        if delay:
            threading.Event().wait(delay)
        if supplier_id in self.failing_info:
            raise SupplierServiceTimeout(f"basic-info for supplier {supplier_id} timed out")
        return self.suppliers.get(supplier_id)


class FakeProductCatalog(ProductCatalogPort):
    """Product catalog backed by a set of carried products and a price table."""

    def __init__(self):
        self.products: Set[Tuple[int, str]] = set()
        self.prices: Dict[Tuple[int, str], Decimal] = {}
        self.failing: Set[int] = set()

    def add_product(self, supplier_id, bearing_number, price=None):
        self.products.add((supplier_id, bearing_number))
        if price is not None:
            self.prices[(supplier_id, bearing_number)] = Decimal(str(price))

    def has_product(self, supplier_id: int, bearing_number: str) -> bool:
        if supplier_id in self.failing:
            raise SupplierServiceError(f"catalog unavailable for supplier {supplier_id}")
        return (supplier_id, bearing_number) in self.products

    def get_price(self, supplier_id: int, bearing_number: str) -> Optional[Decimal]:
        if supplier_id in self.failing:
            raise SupplierServiceError(f"catalog unavailable for supplier {supplier_id}")
        return self.prices.get((supplier_id, bearing_number))


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine with foreign keys enforced."""
    db_engine = create_engine(
        f"sqlite:///{tmp_path / 'matching.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
    )

    @event.listens_for(db_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def repository(db_session):
    return MatchRepository(db_session)


@pytest.fixture
def make_demand(db_session):
    """Factory for persisted demands."""

    def _make_demand(**overrides) -> Demand:
        fields = {
            "requester_id": 100,
            "bearing_number": "6204-2RS",
            "brand": "SKF",
            "required_quantity": 10,
            "min_price": None,
            "max_price": None,
            "delivery_address": "88 Century Avenue, Shanghai",
            "status": "Active",
        }
        fields.update(overrides)
        for key in ("min_price", "max_price"):
            if fields[key] is not None:
                fields[key] = Decimal(str(fields[key]))

        demand = Demand(**fields)
        db_session.add(demand)
        db_session.commit()
        db_session.refresh(demand)
        return demand

    return _make_demand


@pytest.fixture
def directory():
    return FakeSupplierDirectory()


@pytest.fixture
def catalog():
    return FakeProductCatalog()


@pytest.fixture
def orchestrator(repository, directory, catalog):
    return MatchingOrchestrator(
        repository,
        directory,
        catalog,
        max_workers=4,
        run_deadline_seconds=10.0,
    )
