"""Unit tests for the HTTP routes using FastAPI's TestClient."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from travel_aggregator.deps import get_orchestrator
from travel_aggregator.main import app
from travel_aggregator.orchestration.orchestrator import CapabilityOrchestrator
from travel_aggregator.registry import ProviderRegistry
from travel_aggregator.schemas import FlightResult, Price


@pytest.fixture()
def providers(make_provider):
    return {
        "a": make_provider("a", results=[
            FlightResult(id="a1", source_provider="a", price=Price(total=Decimal("320"))),
            FlightResult(id="a2", source_provider="a", price=Price(total=Decimal("180"))),
        ]),
        "b": make_provider("b", available=False),
    }


@pytest.fixture()
def client(providers, settings_factory, cache_repo):
    settings = settings_factory(flight_provider_priority=["a", "b"], hotel_provider_priority=["b"])
    orchestrator = CapabilityOrchestrator(settings, ProviderRegistry(providers.values()), cache_repo)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_search_returns_merged_results(client):
    response = client.get(
        "/api/v1/search/flight",
        params={"origin": "JFK", "destination": "LAX", "departure_date": "2031-05-01"},
    )

    assert response.status_code == 200
    body = response.json()
    assert [r["id"] for r in body["results"]] == ["a2", "a1"]
    assert body["results"][0]["price"]["total"] == "180"
    assert [(e["name"], e["status"]) for e in body["provider_report"]] == [("a", "success"), ("b", "skipped")]
    assert body["error"] is None


def test_search_with_preferred_provider(client, providers):
    response = client.get(
        "/api/v1/search/flight",
        params={"origin": "JFK", "destination": "LAX", "departure_date": "2031-05-01", "provider": "b"},
    )

    assert response.status_code == 503
    assert response.json()["error"]["kind"] == "SERVICE_UNAVAILABLE"
    assert providers["a"].calls == 0


def test_invalid_query_is_a_client_error(client):
    response = client.get("/api/v1/search/flight", params={"origin": "JFK"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == "VALIDATION_ERROR"


def test_unknown_capability_is_a_client_error(client):
    response = client.get("/api/v1/search/cruise", params={"keyword": "x"})
    assert response.status_code == 400


def test_providers_and_health(client):
    providers = client.get("/api/v1/providers").json()
    assert providers["a"]["available"] is True
    assert providers["b"]["available"] is False

    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "degraded"

    stats = client.get("/api/v1/providers/stats").json()
    assert stats["total_providers"] == 2


def test_clear_cache(client, providers):
    params = {"origin": "JFK", "destination": "LAX", "departure_date": "2031-05-01"}
    client.get("/api/v1/search/flight", params=params)

    response = client.delete("/api/v1/cache/flight")
    assert response.json() == {"capability": "flight", "cleared_key_count": 1}

    client.get("/api/v1/search/flight", params=params)
    assert providers["a"].calls == 2


def test_multi_city_bundle(client):
    response = client.post("/api/v1/bundles/multi-city", json={
        "segments": [
            {"origin": "JFK", "destination": "LAX", "departure_date": "2031-05-01"},
            {"origin": "LAX", "destination": "SFO", "departure_date": "2031-05-04"},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert len(body["flights"]) == 4
    assert body["flights"][0]["trip_segment"]["origin"] in ("JFK", "LAX")
    assert body["provider_report"][0]["count"] == 4


def test_package_bundle(client):
    response = client.get("/api/v1/bundles/packages", params={
        "origin": "JFK", "destination": "LAX", "departure_date": "2031-05-01",
    })

    assert response.status_code == 200
    body = response.json()
    assert [p["flight"]["id"] for p in body["packages"]] == ["a2", "a1"]
    # Hotel providers are unavailable, so packages carry only the flight
    assert body["packages"][0]["hotel"] is None
    assert body["packages"][0]["total_price"] == "180"


def test_ticket_comparison_without_ticket_providers(client):
    response = client.get("/api/v1/tickets/compare", params={"event_name": "Sunset Tour"})

    # None of the configured ticket providers is registered
    assert response.status_code == 503
    body = response.json()
    assert body["price_ranges"] == {}
    assert body["error"]["kind"] == "SERVICE_UNAVAILABLE"
