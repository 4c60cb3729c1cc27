"""Unit tests for the supplier service REST adapter

Uses httpx.MockTransport, so no network is involved.
"""

import json
from decimal import Decimal

import httpx
import pytest

from infrastructure.suppliers import SupplierServiceClient
from matching.ports import DemandCriteria, SupplierServiceError, SupplierServiceTimeout


def _client(handler):
    return SupplierServiceClient(
        "http://suppliers.test",
        timeout_seconds=1.5,
        transport=httpx.MockTransport(handler),
    )


def _criteria(brand="SKF"):
    return DemandCriteria(demand_id=1, bearing_number="6204-2RS", brand=brand)


class TestFindCandidates:
    """Test cases for GET api/suppliers/search"""

    def test_sends_bearing_and_brand(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[4, 2, 9])

        with _client(handler) as client:
            ids = client.find_candidates(_criteria())

        assert ids == [4, 2, 9]
        assert seen["path"] == "/api/suppliers/search"
        assert seen["params"] == {"bearingNumber": "6204-2RS", "brand": "SKF"}

    def test_brand_omitted_when_missing(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=[])

        with _client(handler) as client:
            assert client.find_candidates(_criteria(brand=None)) == []

        assert "brand" not in seen["params"]

    def test_server_error_raises_service_error(self):
        with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(SupplierServiceError, match="HTTP 503"):
                client.find_candidates(_criteria())

    def test_timeout_raises_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with _client(handler) as client:
            with pytest.raises(SupplierServiceTimeout):
                client.find_candidates(_criteria())

    def test_connection_error_raises_service_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            with pytest.raises(SupplierServiceError):
                client.find_candidates(_criteria())

    def test_unexpected_payload_raises_service_error(self):
        with _client(lambda request: httpx.Response(200, json={"items": []})) as client:
            with pytest.raises(SupplierServiceError):
                client.find_candidates(_criteria())


class TestBasicInfo:
    """Test cases for GET api/suppliers/{id}/basic-info"""

    def test_parses_supplier_info(self):
        def handler(request):
            assert request.url.path == "/api/suppliers/7/basic-info"
            return httpx.Response(200, json={
                "id": 7, "name": "Acme Bearings", "city": "Ningbo", "country": "China", "rating": 4.6,
            })

        with _client(handler) as client:
            info = client.get_basic_info(7)

        assert info.name == "Acme Bearings"
        assert info.city == "Ningbo"
        assert info.rating == 4.6

    def test_not_found_is_none(self):
        with _client(lambda request: httpx.Response(404)) as client:
            assert client.get_basic_info(7) is None

    def test_missing_rating(self):
        with _client(lambda request: httpx.Response(200, json={"id": 7, "name": "Acme"})) as client:
            info = client.get_basic_info(7)

        assert info.rating is None
        assert info.city is None


class TestProductCatalog:
    """Test cases for product exists / price endpoints"""

    def test_has_product(self):
        def handler(request):
            assert request.url.path == "/api/suppliers/3/products/exists"
            assert request.url.params["bearingNumber"] == "6204-2RS"
            return httpx.Response(200, content=json.dumps(True))

        with _client(handler) as client:
            assert client.has_product(3, "6204-2RS") is True

    def test_price_is_decimal(self):
        with _client(lambda request: httpx.Response(200, content=b"25.50")) as client:
            assert client.get_price(3, "6204-2RS") == Decimal("25.50")

    def test_null_price_is_none(self):
        with _client(lambda request: httpx.Response(200, content=b"null")) as client:
            assert client.get_price(3, "6204-2RS") is None

    def test_empty_body_is_none(self):
        with _client(lambda request: httpx.Response(204)) as client:
            assert client.get_price(3, "6204-2RS") is None

    def test_invalid_price_raises_service_error(self):
        with _client(lambda request: httpx.Response(200, json="cheap")) as client:
            with pytest.raises(SupplierServiceError):
                client.get_price(3, "6204-2RS")
