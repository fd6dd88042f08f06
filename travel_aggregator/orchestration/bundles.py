"""Trip bundles built on top of single-capability searches."""

import logging
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from travel_aggregator.errors import AggregatorError, CacheError
from travel_aggregator.orchestration.orchestrator import CapabilityOrchestrator
from travel_aggregator.schemas import (
    CarResult,
    FlightResult,
    HotelResult,
    ProviderReportEntry,
    TripSegment,
    price_sort_value,
)

logger = logging.getLogger(__name__)

DEFAULT_STAY_NIGHTS = 3


class MultiCityResponse(BaseModel):
    flights: List[FlightResult] = []
    provider_report: List[ProviderReportEntry] = []
    segments: List[TripSegment]
    passengers: int
    searched_at: datetime


class TravelPackage(BaseModel):
    id: str
    flight: FlightResult
    hotel: Optional[HotelResult] = None
    car: Optional[CarResult] = None
    total_price: Decimal
    currency: str = "USD"


class PackageResponse(BaseModel):
    packages: List[TravelPackage] = []
    provider_report: List[ProviderReportEntry] = []
    origin: str
    destination: str
    departure_date: date
    return_date: Optional[date] = None
    passengers: int = Field(default=1, ge=1)
    include_hotel: bool = True
    include_car: bool = False
    searched_at: datetime


def _merge_reports(merged: Dict[str, ProviderReportEntry], report: Sequence[ProviderReportEntry]) -> None:
    """Fold a search report into per-provider totals."""
    for entry in report:
        existing = merged.get(entry.name)
        if existing is None:
            merged[entry.name] = entry.model_copy()
            continue
        existing.count += entry.count
        if entry.status == "success":
            existing.status = "success"
            existing.error = None
            existing.error_kind = None


async def search_multi_city_flights(
    orchestrator: CapabilityOrchestrator,
    segments: Sequence[TripSegment],
    passengers: int = 1,
    max_results: int = 10,
) -> MultiCityResponse:
    """Search one-way flights for each leg of a multi-city trip.

    The result budget is split evenly across legs. A leg whose query is
    rejected is logged and skipped; the other legs still run.
    """
    per_segment = max(1, math.ceil(max_results / max(len(segments), 1)))
    flights: List[FlightResult] = []
    report: Dict[str, ProviderReportEntry] = {}

    logger.info(f"Searching multi-city flights with {len(segments)} segments")
    for segment in segments:
        try:
            response = await orchestrator.search(
                "flight",
                {
                    "origin": segment.origin,
                    "destination": segment.destination,
                    "departure_date": segment.departure_date,
                    "passengers": passengers,
                    "max_results": per_segment,
                },
            )
        except CacheError:
            raise
        except AggregatorError as e:
            logger.error(f"Error searching segment {segment.origin} to {segment.destination}: {e.message}")
            continue

        flights.extend(
            flight.model_copy(update={"trip_segment": segment})
            for flight in response.results
            if isinstance(flight, FlightResult)
        )
        _merge_reports(report, response.provider_report)

    flights.sort(key=price_sort_value)
    logger.info(f"Multi-city search found {len(flights)} total flights")

    return MultiCityResponse(
        flights=flights,
        provider_report=list(report.values()),
        segments=list(segments),
        passengers=passengers,
        searched_at=datetime.utcnow(),
    )


async def search_travel_packages(
    orchestrator: CapabilityOrchestrator,
    origin: str,
    destination: str,
    departure_date: date,
    return_date: Optional[date] = None,
    passengers: int = 1,
    include_hotel: bool = True,
    include_car: bool = False,
    max_results: int = 10,
) -> PackageResponse:
    """Combine flights with the cheapest hotel and car at the destination."""
    end_date = return_date or departure_date + timedelta(days=DEFAULT_STAY_NIGHTS)

    logger.info(f"Searching travel packages from {origin} to {destination}")
    flight_response = await orchestrator.search(
        "flight",
        {
            "origin": origin,
            "destination": destination,
            "departure_date": departure_date,
            "return_date": return_date,
            "passengers": passengers,
            "max_results": max_results,
        },
    )

    hotel: Optional[HotelResult] = None
    if include_hotel:
        hotel_response = await orchestrator.search(
            "hotel",
            {
                "city_code": destination,
                "check_in_date": departure_date,
                "check_out_date": end_date,
                "adults": passengers,
                "max_results": 3,
            },
        )
        hotel = next((h for h in hotel_response.results if h.price is not None), None)

    car: Optional[CarResult] = None
    if include_car:
        car_response = await orchestrator.search(
            "car",
            {
                "pick_up_location": destination,
                "drop_off_location": destination,
                "pick_up_date": datetime.combine(departure_date, time(10, 0)),
                "drop_off_date": datetime.combine(end_date, time(18, 0)),
                "max_results": 3,
            },
        )
        car = next((c for c in car_response.results if c.price is not None), None)

    packages = []
    for flight in flight_response.results[:max_results]:
        total = price_sort_value(flight)
        if hotel is not None:
            total += hotel.price.total
        if car is not None:
            total += car.price.total

        packages.append(TravelPackage(
            id=f"package_{flight.id}",
            flight=flight,
            hotel=hotel,
            car=car,
            total_price=total,
            currency=flight.price.currency if flight.price else "USD",
        ))

    packages.sort(key=lambda package: package.total_price)
    logger.info(f"Travel package search found {len(packages)} packages")

    return PackageResponse(
        packages=packages,
        provider_report=flight_response.provider_report,
        origin=origin,
        destination=destination,
        departure_date=departure_date,
        return_date=return_date,
        passengers=passengers,
        include_hotel=include_hotel,
        include_car=include_car,
        searched_at=datetime.utcnow(),
    )
