"""FastAPI routes for the aggregation engine."""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from travel_aggregator.deps import get_orchestrator
from travel_aggregator.errors import AggregatorError, ErrorKind, create_error_response
from travel_aggregator.orchestration.bundles import search_multi_city_flights, search_travel_packages
from travel_aggregator.orchestration.comparison import compare_ticket_prices
from travel_aggregator.orchestration.orchestrator import CapabilityOrchestrator
from travel_aggregator.schemas import TripSegment, parse_capability

logger = logging.getLogger(__name__)

router = APIRouter()

_CLIENT_ERROR_KINDS = frozenset({
    ErrorKind.VALIDATION_ERROR,
    ErrorKind.INVALID_DATE,
    ErrorKind.INVALID_LOCATION,
})
_UNAVAILABLE_KINDS = frozenset({
    ErrorKind.SERVICE_UNAVAILABLE,
    ErrorKind.CACHE_ERROR,
    ErrorKind.RATE_LIMIT_EXCEEDED,
})


def status_code_for(kind: ErrorKind) -> int:
    """HTTP status for an error kind."""
    if kind in _CLIENT_ERROR_KINDS:
        return 400
    if kind in _UNAVAILABLE_KINDS:
        return 503
    return 502


def aggregator_error_response(request: Request, exc: AggregatorError, debug: bool = False) -> JSONResponse:
    body = create_error_response(exc, context={"path": request.url.path}, debug=debug)
    return JSONResponse(status_code=status_code_for(exc.kind), content=body)


class MultiCityRequest(BaseModel):
    segments: List[TripSegment] = Field(min_length=1)
    passengers: int = Field(default=1, ge=1, le=9)
    max_results: int = Field(default=10, ge=1, le=100)


@router.get("/health")
async def health(orchestrator: CapabilityOrchestrator = Depends(get_orchestrator)):
    """Aggregated provider health."""
    report = await orchestrator.health_check()
    status_code = 200 if report.status != "unhealthy" else 503
    return JSONResponse(status_code=status_code, content=report.model_dump(mode="json"))


@router.get("/api/v1/providers")
async def list_providers(orchestrator: CapabilityOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.get_available_providers()


@router.get("/api/v1/providers/stats")
async def provider_stats(orchestrator: CapabilityOrchestrator = Depends(get_orchestrator)):
    return await orchestrator.get_provider_stats()


@router.get("/api/v1/search/{capability}")
async def search(
    capability: str,
    request: Request,
    provider: Optional[str] = None,
    orchestrator: CapabilityOrchestrator = Depends(get_orchestrator),
):
    """Search one capability. Query parameters other than ``provider`` form the query."""
    params = {key: value for key, value in request.query_params.items() if key != "provider"}
    response = await orchestrator.search(capability, params, preferred_provider=provider)

    status_code = 200
    if response.error is not None:
        status_code = status_code_for(response.error.kind)
    return JSONResponse(status_code=status_code, content=response.model_dump(mode="json"))


@router.delete("/api/v1/cache/{capability}")
async def clear_cache(capability: str, orchestrator: CapabilityOrchestrator = Depends(get_orchestrator)):
    return orchestrator.clear_cache(parse_capability(capability))


@router.post("/api/v1/bundles/multi-city")
async def multi_city(
    body: MultiCityRequest,
    orchestrator: CapabilityOrchestrator = Depends(get_orchestrator),
):
    response = await search_multi_city_flights(
        orchestrator, body.segments, passengers=body.passengers, max_results=body.max_results
    )
    return JSONResponse(content=response.model_dump(mode="json"))


@router.get("/api/v1/bundles/packages")
async def packages(
    origin: str,
    destination: str,
    departure_date: date,
    return_date: Optional[date] = None,
    passengers: int = 1,
    include_hotel: bool = True,
    include_car: bool = False,
    max_results: int = 10,
    orchestrator: CapabilityOrchestrator = Depends(get_orchestrator),
):
    response = await search_travel_packages(
        orchestrator,
        origin=origin,
        destination=destination,
        departure_date=departure_date,
        return_date=return_date,
        passengers=passengers,
        include_hotel=include_hotel,
        include_car=include_car,
        max_results=max_results,
    )
    return JSONResponse(content=response.model_dump(mode="json"))


@router.get("/api/v1/tickets/compare")
async def compare_tickets(
    event_name: str,
    venue_name: Optional[str] = None,
    city: Optional[str] = None,
    event_date: Optional[date] = None,
    orchestrator: CapabilityOrchestrator = Depends(get_orchestrator),
):
    """Ticket price ranges per provider for one event."""
    comparison = await compare_ticket_prices(
        orchestrator, event_name, venue_name=venue_name, city=city, event_date=event_date
    )
    status_code = 200
    if comparison.error is not None:
        status_code = status_code_for(comparison.error.kind)
    return JSONResponse(status_code=status_code, content=comparison.model_dump(mode="json"))
