"""Amadeus self-service provider: flights, car transfers and locations."""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from travel_aggregator.config import Settings
from travel_aggregator.errors import ErrorKind, ProviderError
from travel_aggregator.providers.base import (
    AirportSearchProvider,
    CarSearchProvider,
    FlightSearchProvider,
    HTTPProviderAdapter,
)
from travel_aggregator.repositories.cache import CacheRepository
from travel_aggregator.schemas import (
    AirportQuery,
    AirportResult,
    Capability,
    CarQuery,
    CarResult,
    FlightQuery,
    FlightResult,
    FlightSegment,
    HealthCheckResult,
    Itinerary,
)
from travel_aggregator.utils.pricing import to_price

logger = logging.getLogger(__name__)


class AmadeusProvider(HTTPProviderAdapter, FlightSearchProvider, CarSearchProvider, AirportSearchProvider):
    """Provider using the Amadeus REST APIs with OAuth2 client credentials."""

    timeout_seconds = 15.0

    def __init__(
        self,
        settings: Settings,
        cache: Optional[CacheRepository] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, cache, client)
        self.client_id = settings.amadeus_client_id
        self.client_secret = settings.amadeus_client_secret
        self.base_url = settings.amadeus_base_url.rstrip("/")
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def get_provider_name(self) -> str:
        return "amadeus"

    async def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def health_check(self) -> HealthCheckResult:
        if not await self.is_available():
            return HealthCheckResult(status="unavailable", detail="API credentials not configured")
        return await self._probe(self._get_access_token)

    async def _get_access_token(self) -> str:
        """Fetch an OAuth2 token, reusing it until shortly before expiry."""
        now = time.time()
        if self._token and now < (self._token_expires_at - 60):
            return self._token

        if not await self.is_available():
            raise ProviderError(self.get_provider_name(), "Amadeus credentials not configured", ErrorKind.AUTH_FAILED)

        payload = await self._post(
            f"{self.base_url}/v1/security/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        token = payload.get("access_token")
        if not token:
            raise ProviderError(self.get_provider_name(), "Amadeus token response had no access_token", ErrorKind.AUTH_FAILED)

        try:
            expires_in = float(payload.get("expires_in", 1799))
        except (TypeError, ValueError):
            expires_in = 1799.0

        self._token = token
        self._token_expires_at = now + expires_in
        return token

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self._get_access_token()
        return {"Authorization": f"Bearer {token}"}

    async def search_flights(self, query: FlightQuery) -> List[FlightResult]:
        """Search flight offers."""

        async def fetch() -> List[FlightResult]:
            params: Dict[str, Any] = {
                "originLocationCode": query.origin.upper(),
                "destinationLocationCode": query.destination.upper(),
                "departureDate": query.departure_date.isoformat(),
                "adults": query.passengers,
                "currencyCode": "USD",
                "max": query.max_results,
            }
            if query.return_date:
                params["returnDate"] = query.return_date.isoformat()

            logger.info(f"Searching Amadeus flights {query.origin} -> {query.destination}")
            data = await self._get_json(
                f"{self.base_url}/v2/shopping/flight-offers",
                params=params,
                headers=await self._auth_headers(),
            )
            return self._normalize_flights(data.get("data") or [])

        return await self._cached_search(Capability.FLIGHT, query, fetch)

    async def search_car_rentals(self, query: CarQuery) -> List[CarResult]:
        """Search private car transfers between two locations."""

        async def fetch() -> List[CarResult]:
            body = {
                "startLocationCode": query.pick_up_location.upper(),
                "endLocationCode": query.drop_off_location.upper(),
                "transferType": "PRIVATE",
                "startDateTime": query.pick_up_date.isoformat(),
                "currency": "USD",
            }

            logger.info(f"Searching Amadeus car transfers from {query.pick_up_location}")
            data = await self._post(
                f"{self.base_url}/v1/shopping/transfer-offers",
                json=body,
                headers=await self._auth_headers(),
            )
            return self._normalize_cars(data.get("data") or [], query)[:query.max_results]

        return await self._cached_search(Capability.CAR, query, fetch)

    async def search_airports(self, query: AirportQuery) -> List[AirportResult]:
        """Look up airports and cities by keyword."""

        async def fetch() -> List[AirportResult]:
            params = {
                "subType": "AIRPORT,CITY",
                "keyword": query.keyword.upper(),
                "page[limit]": query.max_results,
            }
            data = await self._get_json(
                f"{self.base_url}/v1/reference-data/locations",
                params=params,
                headers=await self._auth_headers(),
            )
            return self._normalize_locations(data.get("data") or [])

        return await self._cached_search(Capability.AIRPORT, query, fetch)

    def _normalize_flights(self, offers: List[Dict[str, Any]]) -> List[FlightResult]:
        flights = []
        for offer in offers:
            try:
                itineraries = []
                for itinerary in offer.get("itineraries") or []:
                    segments = [
                        FlightSegment(
                            departure_airport=(segment.get("departure") or {}).get("iataCode"),
                            departure_time=(segment.get("departure") or {}).get("at"),
                            arrival_airport=(segment.get("arrival") or {}).get("iataCode"),
                            arrival_time=(segment.get("arrival") or {}).get("at"),
                            carrier=segment.get("carrierCode"),
                            flight_number=segment.get("number"),
                            duration=segment.get("duration"),
                        )
                        for segment in itinerary.get("segments") or []
                    ]
                    itineraries.append(Itinerary(duration=itinerary.get("duration"), segments=segments))

                price = offer.get("price") or {}
                first_segments = itineraries[0].segments if itineraries else []
                traveler_pricing = (offer.get("travelerPricings") or [{}])[0]
                fare_details = (traveler_pricing.get("fareDetailsBySegment") or [{}])[0]

                flights.append(FlightResult(
                    id=f"amadeus_flight_{offer.get('id')}",
                    source_provider=self.get_provider_name(),
                    price=to_price(price.get("grandTotal") or price.get("total"), price.get("currency"), base=price.get("base")),
                    itineraries=itineraries,
                    cabin_class=fare_details.get("cabin"),
                    stops=max(len(first_segments) - 1, 0),
                    bookable_seats=offer.get("numberOfBookableSeats"),
                ))
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed Amadeus flight offer: {e}")
                continue

        logger.info(f"Normalized {len(flights)} Amadeus flight offers")
        return flights

    def _normalize_cars(self, offers: List[Dict[str, Any]], query: CarQuery) -> List[CarResult]:
        cars = []
        for offer in offers:
            try:
                vehicle = offer.get("vehicle") or {}
                quotation = offer.get("quotation") or {}
                seats = (vehicle.get("seats") or [{}])[0].get("count")
                bags = (vehicle.get("baggages") or [{}])[0].get("count")

                cars.append(CarResult(
                    id=f"amadeus_car_{offer.get('id')}",
                    source_provider=self.get_provider_name(),
                    price=to_price(quotation.get("monetaryAmount"), quotation.get("currencyCode")),
                    vehicle_class=vehicle.get("category") or vehicle.get("code"),
                    seats=seats,
                    bags=bags,
                    vendor=(offer.get("serviceProvider") or {}).get("name"),
                    pick_up_location=(offer.get("start") or {}).get("locationCode") or query.pick_up_location,
                    drop_off_location=(offer.get("end") or {}).get("locationCode") or query.drop_off_location,
                ))
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed Amadeus transfer offer: {e}")
                continue
        return cars

    def _normalize_locations(self, locations: List[Dict[str, Any]]) -> List[AirportResult]:
        airports = []
        for location in locations:
            code = location.get("iataCode")
            if not code:
                continue
            address = location.get("address") or {}
            airports.append(AirportResult(
                id=f"amadeus_location_{location.get('id') or code}",
                source_provider=self.get_provider_name(),
                code=code,
                name=location.get("name"),
                city=address.get("cityName"),
                country=address.get("countryName"),
                location_type=location.get("subType"),
            ))
        return airports
