"""Unit tests for the Amadeus provider.

Covers:
- OAuth2 token fetch and reuse until expiry
- Flight offer, transfer offer and location normalization
- Unconfigured credentials
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

import httpx
import pytest

from travel_aggregator.errors import ErrorKind, ProviderError
from travel_aggregator.providers.amadeus import AmadeusProvider
from travel_aggregator.schemas import AirportQuery, CarQuery, FlightQuery


class FakeResponse:
    def __init__(self, json_data: Dict[str, Any], status_code: int = 200):
        self._json = json_data
        self.status_code = status_code

    def json(self) -> Dict[str, Any]:
        return self._json

    def raise_for_status(self):
        if not (200 <= self.status_code < 400):
            request = httpx.Request("POST", "https://test.api.amadeus.com")
            response = httpx.Response(self.status_code, request=request)
            raise httpx.HTTPStatusError(f"HTTP {self.status_code}", request=request, response=response)


TOKEN = {"access_token": "tkn-123", "expires_in": 1799}

FLIGHT_OFFERS = {
    "data": [{
        "id": "1",
        "numberOfBookableSeats": 4,
        "itineraries": [{
            "duration": "PT6H15M",
            "segments": [{
                "departure": {"iataCode": "JFK", "at": "2031-05-01T09:00:00"},
                "arrival": {"iataCode": "LAX", "at": "2031-05-01T12:15:00"},
                "carrierCode": "B6",
                "number": "23",
                "duration": "PT6H15M",
            }],
        }],
        "price": {"currency": "USD", "total": "355.20", "base": "300.00", "grandTotal": "355.20"},
        "travelerPricings": [{"fareDetailsBySegment": [{"cabin": "ECONOMY"}]}],
    }],
}


@pytest.fixture()
def provider(settings_factory):
    return AmadeusProvider(settings_factory(amadeus_client_id="id", amadeus_client_secret="secret"))


@pytest.fixture()
def token_calls(provider, monkeypatch) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    async def fake_post(url, data=None, json=None, headers=None):
        if url.endswith("/v1/security/oauth2/token"):
            calls.append(data)
            return FakeResponse(TOKEN)
        return FakeResponse(provider.transfer_payload)

    provider.transfer_payload = {"data": []}
    monkeypatch.setattr(provider.client, "post", fake_post)
    return calls


@pytest.mark.asyncio
async def test_unconfigured_provider(settings):
    provider = AmadeusProvider(settings)

    assert await provider.is_available() is False
    assert (await provider.health_check()).status == "unavailable"
    with pytest.raises(ProviderError) as exc_info:
        await provider.search_airports(AirportQuery(keyword="ath"))
    assert exc_info.value.kind == ErrorKind.AUTH_FAILED

    await provider.close()


@pytest.mark.asyncio
async def test_flight_search_reuses_token(provider, token_calls, monkeypatch):
    seen_headers: List[Dict[str, str]] = []

    async def fake_get(url, params=None, headers=None):
        seen_headers.append(headers)
        assert url.endswith("/v2/shopping/flight-offers")
        assert params["originLocationCode"] == "JFK"
        return FakeResponse(FLIGHT_OFFERS)

    monkeypatch.setattr(provider.client, "get", fake_get)
    query = FlightQuery(origin="JFK", destination="LAX", departure_date=date(2031, 5, 1))

    flights = await provider.search_flights(query)
    await provider.search_flights(query.model_copy(update={"passengers": 2}))

    assert len(token_calls) == 1
    assert token_calls[0]["grant_type"] == "client_credentials"
    assert seen_headers[0] == {"Authorization": "Bearer tkn-123"}

    flight = flights[0]
    assert flight.id == "amadeus_flight_1"
    assert flight.price.total == Decimal("355.20")
    assert flight.price.base == Decimal("300.00")
    assert flight.cabin_class == "ECONOMY"
    assert flight.bookable_seats == 4
    assert flight.itineraries[0].segments[0].carrier == "B6"

    await provider.close()


@pytest.mark.asyncio
async def test_expired_token_is_refreshed(provider, token_calls):
    await provider._get_access_token()
    provider._token_expires_at = 0.0
    await provider._get_access_token()

    assert len(token_calls) == 2

    await provider.close()


@pytest.mark.asyncio
async def test_car_transfer_search(provider, token_calls):
    provider.transfer_payload = {
        "data": [{
            "id": "tr-9",
            "vehicle": {"code": "CAR", "category": "BU", "seats": [{"count": 3}], "baggages": [{"count": 2}]},
            "quotation": {"monetaryAmount": "89.40", "currencyCode": "EUR"},
            "serviceProvider": {"name": "Blacklane"},
            "start": {"locationCode": "CDG"},
            "end": {},
        }],
    }
    query = CarQuery(
        pick_up_location="CDG",
        drop_off_location="PAR",
        pick_up_date=datetime(2031, 7, 1, 10, 0),
        drop_off_date=datetime(2031, 7, 4, 18, 0),
    )

    cars = await provider.search_car_rentals(query)

    assert len(cars) == 1
    assert cars[0].price.total == Decimal("89.40")
    assert cars[0].price.currency == "EUR"
    assert cars[0].vendor == "Blacklane"
    assert cars[0].seats == 3
    assert cars[0].drop_off_location == "PAR"

    await provider.close()


@pytest.mark.asyncio
async def test_airport_lookup_skips_locations_without_code(provider, token_calls, monkeypatch):
    async def fake_get(url, params=None, headers=None):
        assert params["keyword"] == "ATH"
        return FakeResponse({"data": [
            {"id": "AATH", "iataCode": "ATH", "subType": "AIRPORT", "name": "ATHENS INTL",
             "address": {"cityName": "ATHENS", "countryName": "GREECE"}},
            {"id": "X", "subType": "CITY", "name": "NO CODE"},
        ]})

    monkeypatch.setattr(provider.client, "get", fake_get)

    airports = await provider.search_airports(AirportQuery(keyword="ath"))

    assert [(a.code, a.city, a.location_type) for a in airports] == [("ATH", "ATHENS", "AIRPORT")]

    await provider.close()


@pytest.mark.asyncio
async def test_rejected_credentials(provider, monkeypatch):
    async def fake_post(url, data=None, json=None, headers=None):
        return FakeResponse({"error": "invalid_client"}, status_code=401)

    monkeypatch.setattr(provider.client, "post", fake_post)

    health = await provider.health_check()
    assert health.status == "unhealthy"
    assert health.detail == "AUTH_FAILED"

    await provider.close()


@pytest.mark.asyncio
async def test_malformed_token_payload_reports_unhealthy(provider, monkeypatch):
    async def fake_post(url, data=None, json=None, headers=None):
        return FakeResponse(["not", "a", "token"])

    monkeypatch.setattr(provider.client, "post", fake_post)

    health = await provider.health_check()
    assert health.status == "unhealthy"
    assert health.detail == "UNKNOWN_ERROR"

    await provider.close()
