"""Integration test for the SerpAPI provider.

Requires a valid SerpAPI key in environment variable SERPAPI_KEY.
This test exercises a live HTTP call and will be skipped if the key is not present.
"""

import os
from datetime import date, timedelta

import pytest

from travel_aggregator.orchestration.orchestrator import CapabilityOrchestrator
from travel_aggregator.providers.serpapi import SerpAPIProvider
from travel_aggregator.registry import ProviderRegistry
from travel_aggregator.schemas import FlightQuery


pytestmark = pytest.mark.skipif(
    not os.getenv("SERPAPI_KEY"),
    reason="SERPAPI_KEY not set; skipping live SerpAPI integration test.",
)


@pytest.mark.asyncio
async def test_search_flights_live(settings_factory, cache_repo):
    settings = settings_factory(serpapi_key=os.getenv("SERPAPI_KEY"))
    provider = SerpAPIProvider(settings, cache=cache_repo)

    departure = date.today() + timedelta(days=45)
    try:
        flights = await provider.search_flights(
            FlightQuery(origin="JFK", destination="LAX", departure_date=departure, max_results=5)
        )
    finally:
        await provider.close()

    assert isinstance(flights, list)
    assert len(flights) <= 5
    for flight in flights:
        assert flight.source_provider == "serpapi"
        assert flight.id.startswith("serpapi_flight_")


@pytest.mark.asyncio
async def test_orchestrated_hotel_search_live(settings_factory, cache_repo):
    settings = settings_factory(serpapi_key=os.getenv("SERPAPI_KEY"), hotel_provider_priority=["serpapi"])
    registry = ProviderRegistry([SerpAPIProvider(settings, cache=cache_repo)])
    orchestrator = CapabilityOrchestrator(settings, registry, cache_repo)

    check_in = date.today() + timedelta(days=30)
    try:
        response = await orchestrator.search("hotel", {
            "city_code": "Athens",
            "check_in_date": check_in,
            "check_out_date": check_in + timedelta(days=3),
            "max_results": 5,
        })
    finally:
        await registry.close()

    assert response.provider_report[0].name == "serpapi"
    assert response.provider_report[0].status in ("success", "error")
    prices = [h.price.total for h in response.results if h.price is not None]
    assert prices == sorted(prices)
