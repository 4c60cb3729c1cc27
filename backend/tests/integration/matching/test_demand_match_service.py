"""Integration tests for DemandMatchService

Tests matching runs plus the follow-up operations and the events they
publish:
- demand-matched only when a run produced matches
- supplier notification is a separate, explicit step
- unmatch recomputes the rollup
- status changes publish demand-status-changed
"""

from decimal import Decimal

import pytest

from events.publisher import EventPublisherPort, InMemoryEventPublisher
from events.schemas import DemandStatusChangedEvent, SupplierNotifiedEvent
from matching.ports import DemandNotFoundError
from matching.service import DemandMatchService

BEARING = "6204-2RS"


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def service(repository, orchestrator, publisher):
    return DemandMatchService(repository, orchestrator, publisher)


@pytest.fixture
def matched_demand(service, make_demand, directory, catalog):
    """Demand with three persisted matches (suppliers 1, 2, 3)."""
    demand = make_demand(min_price=20, max_price=30)
    directory.add_supplier(1, "Shanghai Precision", city="Shanghai", rating=4.5)
    directory.add_supplier(2, "Harbin Rolling", city="Harbin", rating=3.0)
    directory.add_supplier(3, "Wuxi Bearings", city="Wuxi", rating=5.0)
    catalog.add_product(1, BEARING, price="25")
    catalog.add_product(2, BEARING, price="45")
    catalog.add_product(3, BEARING, price="28")
    service.run_matching(demand.id)
    return demand


class TestCreateDemand:
    """Test cases for demand registration"""

    def test_creates_active_demand_and_publishes(self, service, publisher):
        demand = service.create_demand(
            requester_id=11,
            bearing_number=" 6204-2RS ",
            brand="SKF",
            required_quantity=50,
            min_price=Decimal("20"),
            max_price=Decimal("30"),
            delivery_address="Pudong, Shanghai",
        )

        assert demand.id is not None
        assert demand.status == "Active"
        assert demand.bearing_number == "6204-2RS"
        assert demand.total_matches == 0
        [event] = publisher.events_for("demand-created")
        assert event.demand_id == demand.id
        assert event.required_quantity == 50

    @pytest.mark.parametrize("overrides", [
        {"bearing_number": "  "},
        {"required_quantity": 0},
        {"min_price": Decimal("40"), "max_price": Decimal("30")},
    ])
    def test_rejects_invalid_demand(self, service, overrides):
        fields = {"requester_id": 11, "bearing_number": BEARING}
        fields.update(overrides)

        with pytest.raises(ValueError):
            service.create_demand(**fields)


class TestRunMatching:
    """Test cases for run_matching"""

    def test_publishes_demand_matched(self, service, publisher, matched_demand):
        [event] = publisher.events_for("demand-matched")

        assert event.demand_id == matched_demand.id
        assert event.total_matches == 3
        assert event.matched_supplier_ids[0] == 1

    def test_never_notifies_suppliers(self, service, publisher, matched_demand):
        assert publisher.events_for("supplier-notified") == []
        assert all(not m.is_notified for m in service.get_demand_matches(matched_demand.id))

    def test_no_event_without_matches(self, service, publisher, make_demand, directory):
        demand = make_demand()
        directory.candidates = []

        result = service.run_matching(demand.id)

        assert result.total_matched == 0
        assert publisher.events_for("demand-matched") == []

    def test_publisher_failure_does_not_fail_run(self, repository, orchestrator, make_demand,
                                                 directory, catalog):
        class DownPublisher(EventPublisherPort):
            def publish(self, topic, event):
                raise ConnectionError("redis unavailable")

        service = DemandMatchService(repository, orchestrator, DownPublisher())
        demand = make_demand()
        directory.add_supplier(1, "Shanghai Precision", city="Shanghai", rating=4.5)

        result = service.run_matching(demand.id)

        assert result.total_matched == 1

    def test_missing_demand(self, service):
        with pytest.raises(DemandNotFoundError):
            service.run_matching(12345)


class TestFollowUps:
    """Test cases for notification, responses and unmatch"""

    def test_get_demand_matches_best_first(self, service, matched_demand):
        matches = service.get_demand_matches(matched_demand.id)

        scores = [m.match_score for m in matches]
        assert scores == sorted(scores, reverse=True)
        assert len(matches) == 3

    def test_get_matches_for_missing_demand(self, service):
        with pytest.raises(DemandNotFoundError):
            service.get_demand_matches(999)

    def test_notify_supplier(self, service, publisher, matched_demand, repository):
        assert service.notify_supplier(matched_demand.id, 3) is True

        match = repository.get_match(matched_demand.id, 3)
        assert match.is_notified is True
        assert match.notified_at is not None
        [event] = publisher.events_for("supplier-notified")
        assert isinstance(event, SupplierNotifiedEvent)
        assert event.supplier_id == 3
        assert event.supplier_name == "Wuxi Bearings"
        assert event.bearing_number == BEARING

    def test_notify_unknown_match(self, service, publisher, matched_demand):
        assert service.notify_supplier(matched_demand.id, 77) is False
        assert publisher.events_for("supplier-notified") == []

    def test_notify_top_matches_skips_already_notified(self, service, publisher, matched_demand):
        ranked = [m.supplier_id for m in service.get_demand_matches(matched_demand.id)]
        service.notify_supplier(matched_demand.id, ranked[0])

        notified = service.notify_top_matches(matched_demand.id, limit=1)

        assert notified == 1
        notified_ids = [e.supplier_id for e in publisher.events_for("supplier-notified")]
        assert notified_ids == [ranked[0], ranked[1]]

    def test_notify_top_matches_rejects_bad_limit(self, service, matched_demand):
        with pytest.raises(ValueError):
            service.notify_top_matches(matched_demand.id, limit=0)

    def test_record_supplier_response(self, service, matched_demand, repository):
        assert service.record_supplier_response(matched_demand.id, 2, interested=False) is True

        match = repository.get_match(matched_demand.id, 2)
        assert match.has_responded is True
        assert match.is_interested is False

    def test_record_response_without_match(self, service, matched_demand):
        assert service.record_supplier_response(matched_demand.id, 77, interested=True) is False

    def test_unmatch_recomputes_rollup(self, service, matched_demand, db_session):
        assert service.unmatch(matched_demand.id, 2) is True
        assert service.unmatch(matched_demand.id, 2) is False

        db_session.refresh(matched_demand)
        assert matched_demand.total_matches == 2

    def test_rerun_after_unmatch_restores_row(self, service, matched_demand, db_session):
        service.unmatch(matched_demand.id, 2)

        service.run_matching(matched_demand.id)

        db_session.refresh(matched_demand)
        assert matched_demand.total_matches == 3


class TestChangeStatus:
    """Test cases for demand status transitions"""

    def test_change_status_publishes_event(self, service, publisher, make_demand):
        demand = make_demand()

        updated = service.change_status(demand.id, "Negotiating", reason="quotes received")

        assert updated.status == "Negotiating"
        [event] = publisher.events_for("demand-status-changed")
        assert isinstance(event, DemandStatusChangedEvent)
        assert event.old_status == "Active"
        assert event.new_status == "Negotiating"
        assert event.reason == "quotes received"
        assert event.changed_by_user_id is None

    def test_change_status_records_acting_user(self, service, publisher, make_demand):
        demand = make_demand(requester_id=100)

        service.cancel_demand(demand.id, changed_by_user_id=7)

        [event] = publisher.events_for("demand-status-changed")
        assert event.changed_by_user_id == 7

    def test_unknown_status_rejected(self, service, make_demand):
        demand = make_demand()

        with pytest.raises(ValueError):
            service.change_status(demand.id, "Lost")

    def test_missing_demand(self, service):
        with pytest.raises(DemandNotFoundError):
            service.change_status(31337, "Closed")

    @pytest.mark.parametrize("operation,expected", [
        ("close_demand", "Closed"),
        ("cancel_demand", "Cancelled"),
        ("expire_demand", "Expired"),
    ])
    def test_shortcuts(self, service, publisher, make_demand, operation, expected):
        demand = make_demand()

        getattr(service, operation)(demand.id)

        [event] = publisher.events_for("demand-status-changed")
        assert event.new_status == expected
        assert event.reason
        assert event.changed_by_user_id is None
