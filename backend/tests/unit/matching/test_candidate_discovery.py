"""Unit tests for candidate discovery"""

from matching.discovery import CandidateDiscovery
from matching.ports import DemandCriteria, SupplierServiceError, SupplierServiceTimeout


def _criteria():
    return DemandCriteria(demand_id=7, bearing_number="6204-2RS", brand="SKF")


class TestCandidateDiscovery:
    """Test cases for CandidateDiscovery.find_candidates"""

    def test_returns_directory_candidates(self, directory):
        directory.candidates = [3, 1, 2]

        result = CandidateDiscovery(directory).find_candidates(_criteria())

        assert result.supplier_ids == [3, 1, 2]
        assert result.degraded is False
        assert result.reason is None

    def test_duplicates_removed_in_first_seen_order(self, directory):
        directory.candidates = [5, 2, 5, 9, 2]

        result = CandidateDiscovery(directory).find_candidates(_criteria())

        assert result.supplier_ids == [5, 2, 9]

    def test_empty_directory_is_not_degraded(self, directory):
        directory.candidates = []

        result = CandidateDiscovery(directory).find_candidates(_criteria())

        assert result.is_empty
        assert result.degraded is False

    def test_unreachable_directory_degrades_without_placeholders(self, directory):
        """Given the directory is down, then an empty degraded result (no fake suppliers)"""
        directory.discovery_error = SupplierServiceError("connection refused")

        result = CandidateDiscovery(directory).find_candidates(_criteria())

        assert result.supplier_ids == []
        assert result.degraded is True
        assert "connection refused" in result.reason

    def test_timeout_degrades(self, directory):
        directory.discovery_error = SupplierServiceTimeout("timed out")

        result = CandidateDiscovery(directory).find_candidates(_criteria())

        assert result.degraded is True

    def test_unexpected_error_degrades(self, directory):
        directory.discovery_error = RuntimeError("bad payload")

        result = CandidateDiscovery(directory).find_candidates(_criteria())

        assert result.degraded is True
        assert result.reason.startswith("discovery failed")
