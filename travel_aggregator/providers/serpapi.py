"""SerpAPI provider: Google Flights and Google Hotels engines."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from travel_aggregator.config import Settings
from travel_aggregator.errors import ErrorKind, ProviderError
from travel_aggregator.providers.base import (
    FlightSearchProvider,
    HotelSearchProvider,
    HTTPProviderAdapter,
)
from travel_aggregator.repositories.cache import CacheRepository
from travel_aggregator.schemas import (
    Capability,
    FlightQuery,
    FlightResult,
    FlightSegment,
    HealthCheckResult,
    HotelOffer,
    HotelQuery,
    HotelResult,
    Itinerary,
)
from travel_aggregator.utils.pricing import to_price

logger = logging.getLogger(__name__)


class SerpAPIProvider(HTTPProviderAdapter, FlightSearchProvider, HotelSearchProvider):
    """Flights and hotels scraped from Google via SerpAPI."""

    timeout_seconds = 15.0

    def __init__(
        self,
        settings: Settings,
        cache: Optional[CacheRepository] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, cache, client)
        self.api_key = settings.serpapi_key
        self.base_url = "https://serpapi.com"

        if not self.api_key:
            logger.warning("SERPAPI_KEY not configured, SerpAPI provider disabled")

    def get_provider_name(self) -> str:
        return "serpapi"

    async def is_available(self) -> bool:
        return bool(self.api_key)

    async def health_check(self) -> HealthCheckResult:
        if not self.api_key:
            return HealthCheckResult(status="unavailable", detail="API key not configured")

        # The account endpoint does not consume search credits
        return await self._probe(
            lambda: self._get_json(f"{self.base_url}/account.json", params={"api_key": self.api_key})
        )

    def _require_key(self) -> None:
        if not self.api_key:
            raise ProviderError(self.get_provider_name(), "SerpAPI key not configured", ErrorKind.AUTH_FAILED)

    async def search_flights(self, query: FlightQuery) -> List[FlightResult]:
        """Search flights using the Google Flights engine."""
        self._require_key()

        async def fetch() -> List[FlightResult]:
            params = {
                "engine": "google_flights",
                "api_key": self.api_key,
                "departure_id": query.origin.upper(),
                "arrival_id": query.destination.upper(),
                "outbound_date": query.departure_date.isoformat(),
                "adults": str(query.passengers),
                "currency": "USD",
                "hl": "en",
                "type": 1 if query.return_date else 2,  # 1 = round trip, 2 = one way
            }
            if query.return_date:
                params["return_date"] = query.return_date.isoformat()

            logger.info(f"Searching SerpAPI flights {query.origin} -> {query.destination} on {query.departure_date}")
            data = await self._get_json(f"{self.base_url}/search", params=params)
            flights = self._normalize_flights(data, query.max_results)
            logger.info(f"Found {len(flights)} SerpAPI flights {query.origin} -> {query.destination}")
            return flights

        return await self._cached_search(Capability.FLIGHT, query, fetch)

    async def search_hotels(self, query: HotelQuery) -> List[HotelResult]:
        """Search hotels using the Google Hotels engine."""
        self._require_key()

        async def fetch() -> List[HotelResult]:
            params = {
                "engine": "google_hotels",
                "api_key": self.api_key,
                "q": query.city_code,
                "check_in_date": query.check_in_date.isoformat(),
                "check_out_date": query.check_out_date.isoformat(),
                "adults": str(query.adults),
                "currency": "USD",
                "hl": "en",
            }

            logger.info(f"Searching SerpAPI hotels in {query.city_code}")
            data = await self._get_json(f"{self.base_url}/search", params=params)
            hotels = self._normalize_hotels(data, query.max_results)
            logger.info(f"Found {len(hotels)} SerpAPI hotels in {query.city_code}")
            return hotels

        return await self._cached_search(Capability.HOTEL, query, fetch)

    def _normalize_flights(self, data: Dict[str, Any], max_results: int) -> List[FlightResult]:
        """Normalize Google Flights best/other flight groups."""
        options = (data.get("best_flights") or []) + (data.get("other_flights") or [])
        flights = []

        for index, option in enumerate(options[:max_results]):
            try:
                legs = option.get("flights") or []
                segments = [
                    FlightSegment(
                        departure_airport=(leg.get("departure_airport") or {}).get("id"),
                        departure_time=(leg.get("departure_airport") or {}).get("time"),
                        arrival_airport=(leg.get("arrival_airport") or {}).get("id"),
                        arrival_time=(leg.get("arrival_airport") or {}).get("time"),
                        carrier=leg.get("airline"),
                        flight_number=leg.get("flight_number"),
                        duration=str(leg["duration"]) if leg.get("duration") is not None else None,
                    )
                    for leg in legs
                ]
                total_duration = option.get("total_duration")
                token = option.get("booking_token") or option.get("departure_token")

                flights.append(FlightResult(
                    id=f"serpapi_flight_{token or index}",
                    source_provider=self.get_provider_name(),
                    price=to_price(option.get("price"), "USD"),
                    itineraries=[Itinerary(
                        duration=str(total_duration) if total_duration is not None else None,
                        segments=segments,
                    )],
                    cabin_class=(legs[0].get("travel_class") if legs else None),
                    stops=max(len(legs) - 1, 0),
                ))
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed SerpAPI flight option: {e}")
                continue

        return flights

    def _normalize_hotels(self, data: Dict[str, Any], max_results: int) -> List[HotelResult]:
        """Normalize Google Hotels properties."""
        hotels = []

        for index, prop in enumerate((data.get("properties") or [])[:max_results]):
            try:
                total_rate = prop.get("total_rate") or {}
                nightly_rate = prop.get("rate_per_night") or {}
                price = to_price(
                    total_rate.get("extracted_lowest") or nightly_rate.get("extracted_lowest"),
                    "USD",
                    base=total_rate.get("extracted_before_taxes_fees")
                    or nightly_rate.get("extracted_before_taxes_fees"),
                )
                if price is None:
                    logger.warning(f"No price found for SerpAPI hotel {prop.get('name')}")

                coordinates = prop.get("gps_coordinates") or {}
                hotel_id = prop.get("property_token") or str(index)

                hotels.append(HotelResult(
                    id=f"serpapi_hotel_{hotel_id}",
                    source_provider=self.get_provider_name(),
                    name=prop.get("name") or "Unknown Hotel",
                    price=price,
                    url=prop.get("link"),
                    rating=float(prop["overall_rating"]) if prop.get("overall_rating") is not None else None,
                    address=prop.get("address"),
                    latitude=coordinates.get("latitude"),
                    longitude=coordinates.get("longitude"),
                    amenities=list(prop.get("amenities") or []),
                    offers=[HotelOffer(
                        id=f"serpapi_offer_{hotel_id}",
                        room_type="Standard Room",
                        board_type="Room Only",
                        price=price,
                    )],
                ))
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed SerpAPI hotel: {e}")
                continue

        return hotels
