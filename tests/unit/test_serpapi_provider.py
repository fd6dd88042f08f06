"""Unit tests for the SerpAPI provider.

Covers:
- Missing API key behavior
- Flight search normalization (best + other flights), request params
- Hotel search normalization and missing prices
- HTTP error mapping and provider-scoped caching
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

import httpx
import pytest

from travel_aggregator.errors import ErrorKind, ProviderError
from travel_aggregator.providers.serpapi import SerpAPIProvider
from travel_aggregator.schemas import FlightQuery, HotelQuery


class FakeResponse:
    def __init__(self, json_data: Dict[str, Any], status_code: int = 200):
        self._json = json_data
        self.status_code = status_code

    def json(self) -> Dict[str, Any]:
        return self._json

    def raise_for_status(self):
        if not (200 <= self.status_code < 400):
            request = httpx.Request("GET", "https://serpapi.com/search")
            response = httpx.Response(self.status_code, request=request)
            raise httpx.HTTPStatusError(f"HTTP {self.status_code}", request=request, response=response)


FLIGHTS_PAYLOAD = {
    "best_flights": [{
        "flights": [
            {
                "departure_airport": {"id": "JFK", "time": "2031-05-01 08:00"},
                "arrival_airport": {"id": "ORD", "time": "2031-05-01 10:00"},
                "airline": "United",
                "flight_number": "UA 100",
                "duration": 150,
                "travel_class": "Economy",
            },
            {
                "departure_airport": {"id": "ORD", "time": "2031-05-01 11:00"},
                "arrival_airport": {"id": "LAX", "time": "2031-05-01 13:30"},
                "airline": "United",
                "flight_number": "UA 200",
                "duration": 270,
            },
        ],
        "total_duration": 480,
        "price": 412,
        "booking_token": "tok-1",
    }],
    "other_flights": [{
        "flights": [{
            "departure_airport": {"id": "JFK", "time": "2031-05-01 09:00"},
            "arrival_airport": {"id": "LAX", "time": "2031-05-01 12:15"},
            "airline": "Delta",
            "flight_number": "DL 5",
            "duration": 375,
        }],
        "total_duration": 375,
        "price": 389,
    }],
}


@pytest.fixture()
def provider(settings_factory, cache_repo):
    provider = SerpAPIProvider(settings_factory(serpapi_key="serp-test"), cache=cache_repo)
    yield provider


@pytest.fixture()
def flight_query() -> FlightQuery:
    return FlightQuery(origin="jfk", destination="lax", departure_date=date(2031, 5, 1))


@pytest.mark.asyncio
async def test_no_api_key_is_unavailable(settings):
    provider = SerpAPIProvider(settings)

    assert await provider.is_available() is False
    assert (await provider.health_check()).status == "unavailable"
    with pytest.raises(ProviderError) as exc_info:
        await provider.search_flights(FlightQuery(origin="JFK", destination="LAX", departure_date=date(2031, 5, 1)))
    assert exc_info.value.kind == ErrorKind.AUTH_FAILED

    await provider.close()


@pytest.mark.asyncio
async def test_search_flights_normalizes(provider, flight_query, monkeypatch):
    captured: List[Dict[str, Any]] = []

    async def fake_get(url, params=None, headers=None):
        captured.append(params)
        return FakeResponse(FLIGHTS_PAYLOAD)

    monkeypatch.setattr(provider.client, "get", fake_get)

    flights = await provider.search_flights(flight_query)

    assert captured[0]["engine"] == "google_flights"
    assert captured[0]["departure_id"] == "JFK"
    assert captured[0]["type"] == 2
    assert [f.id for f in flights] == ["serpapi_flight_tok-1", "serpapi_flight_1"]
    assert flights[0].price.total == Decimal("412")
    assert flights[0].stops == 1
    assert flights[0].cabin_class == "Economy"
    assert flights[0].itineraries[0].segments[1].arrival_airport == "LAX"
    assert flights[1].stops == 0
    assert all(f.source_provider == "serpapi" for f in flights)

    await provider.close()


@pytest.mark.asyncio
async def test_search_flights_uses_provider_cache(provider, flight_query, monkeypatch):
    calls = {"n": 0}

    async def fake_get(url, params=None, headers=None):
        calls["n"] += 1
        return FakeResponse(FLIGHTS_PAYLOAD)

    monkeypatch.setattr(provider.client, "get", fake_get)

    first = await provider.search_flights(flight_query)
    second = await provider.search_flights(flight_query)

    assert calls["n"] == 1
    assert [f.model_dump() for f in second] == [f.model_dump() for f in first]
    assert provider.cache_repo.keys("serpapi_flight_*") == ["serpapi_flight_jfk_lax_2031-05-01_none_1_10"]

    await provider.close()


@pytest.mark.asyncio
async def test_round_trip_sets_return_date(provider, monkeypatch):
    captured: List[Dict[str, Any]] = []

    async def fake_get(url, params=None, headers=None):
        captured.append(params)
        return FakeResponse({})

    monkeypatch.setattr(provider.client, "get", fake_get)

    query = FlightQuery(
        origin="JFK", destination="LAX", departure_date=date(2031, 5, 1), return_date=date(2031, 5, 8)
    )
    assert await provider.search_flights(query) == []
    assert captured[0]["type"] == 1
    assert captured[0]["return_date"] == "2031-05-08"

    await provider.close()


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, kind", [
    (401, ErrorKind.AUTH_FAILED),
    (429, ErrorKind.RATE_LIMIT_EXCEEDED),
    (502, ErrorKind.SERVICE_UNAVAILABLE),
])
async def test_http_errors_raise_provider_error(provider, flight_query, monkeypatch, status_code, kind):
    async def fake_get(url, params=None, headers=None):
        return FakeResponse({"error": "nope"}, status_code=status_code)

    monkeypatch.setattr(provider.client, "get", fake_get)

    with pytest.raises(ProviderError) as exc_info:
        await provider.search_flights(flight_query)
    assert exc_info.value.kind == kind
    assert "serp-test" not in exc_info.value.message
    # Failures are not cached
    assert provider.cache_repo.keys("serpapi_*") == []

    await provider.close()


@pytest.mark.asyncio
async def test_network_error_raises_provider_error(provider, flight_query, monkeypatch):
    async def fake_get(url, params=None, headers=None):
        raise httpx.ConnectError("refused", request=httpx.Request("GET", url))

    monkeypatch.setattr(provider.client, "get", fake_get)

    with pytest.raises(ProviderError) as exc_info:
        await provider.search_flights(flight_query)
    assert exc_info.value.kind == ErrorKind.NETWORK_ERROR

    await provider.close()


@pytest.mark.asyncio
async def test_search_hotels_normalizes(provider, monkeypatch):
    payload = {
        "properties": [
            {
                "name": "Hotel Grande Bretagne",
                "property_token": "prop-1",
                "total_rate": {"extracted_lowest": 840, "extracted_before_taxes_fees": 760},
                "overall_rating": 4.7,
                "gps_coordinates": {"latitude": 37.9757, "longitude": 23.7348},
                "amenities": ["Free Wi-Fi", "Pool"],
                "link": "https://example.com/gb",
            },
            {"name": "No Price Inn"},
        ],
    }

    async def fake_get(url, params=None, headers=None):
        assert params["engine"] == "google_hotels"
        assert params["q"] == "ATH"
        return FakeResponse(payload)

    monkeypatch.setattr(provider.client, "get", fake_get)

    hotels = await provider.search_hotels(
        HotelQuery(city_code="ATH", check_in_date=date(2031, 6, 1), check_out_date=date(2031, 6, 4))
    )

    assert [h.id for h in hotels] == ["serpapi_hotel_prop-1", "serpapi_hotel_1"]
    assert hotels[0].price.total == Decimal("840")
    assert hotels[0].price.base == Decimal("760")
    assert hotels[0].rating == 4.7
    assert hotels[0].offers[0].price.total == Decimal("840")
    assert hotels[1].price is None

    await provider.close()


@pytest.mark.asyncio
async def test_health_check_probe(provider, monkeypatch):
    async def fake_get(url, params=None, headers=None):
        assert url.endswith("/account.json")
        return FakeResponse({"account_email": "x"})

    monkeypatch.setattr(provider.client, "get", fake_get)
    assert (await provider.health_check()).is_healthy

    async def failing_get(url, params=None, headers=None):
        return FakeResponse({}, status_code=401)

    monkeypatch.setattr(provider.client, "get", failing_get)
    result = await provider.health_check()
    assert result.status == "unhealthy"
    assert result.detail == "AUTH_FAILED"

    await provider.close()
