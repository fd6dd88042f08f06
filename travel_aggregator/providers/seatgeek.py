"""SeatGeek ticket provider."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from travel_aggregator.config import Settings
from travel_aggregator.errors import ErrorKind, ProviderError
from travel_aggregator.providers.base import HTTPProviderAdapter, TicketSearchProvider
from travel_aggregator.repositories.cache import CacheRepository
from travel_aggregator.schemas import Capability, HealthCheckResult, TicketQuery, TicketResult
from travel_aggregator.utils.pricing import to_decimal, to_price

logger = logging.getLogger(__name__)


class SeatGeekProvider(HTTPProviderAdapter, TicketSearchProvider):
    """Event listings and lowest ticket prices from the SeatGeek platform API."""

    timeout_seconds = 10.0

    def __init__(
        self,
        settings: Settings,
        cache: Optional[CacheRepository] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, cache, client)
        self.client_id = settings.seatgeek_client_id
        self.client_secret = settings.seatgeek_client_secret
        self.base_url = "https://api.seatgeek.com/2"

        if not (self.client_id and self.client_secret):
            logger.warning("SEATGEEK_CLIENT_ID or SEATGEEK_CLIENT_SECRET not configured")

    def get_provider_name(self) -> str:
        return "seatgeek"

    async def is_available(self) -> bool:
        return bool(self.client_id and self.client_secret)

    async def health_check(self) -> HealthCheckResult:
        if not await self.is_available():
            return HealthCheckResult(status="unavailable", detail="API credentials not configured")
        return await self._probe(lambda: self._request("/events", {"per_page": 1}))

    async def _request(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Authenticated GET against the SeatGeek API."""
        if not await self.is_available():
            raise ProviderError(self.get_provider_name(), "SeatGeek credentials not configured", ErrorKind.AUTH_FAILED)

        return await self._get_json(
            f"{self.base_url}{endpoint}",
            params={**params, "client_id": self.client_id, "client_secret": self.client_secret},
        )

    async def search_tickets(self, query: TicketQuery) -> List[TicketResult]:
        """Search events matching the query and report their ticket prices."""

        async def fetch() -> List[TicketResult]:
            params: Dict[str, Any] = {
                "q": query.event_name,
                "per_page": min(query.max_results, 100),  # SeatGeek max is 100
                "sort": "score.desc",
            }
            if query.city:
                params["venue.city"] = query.city
            if query.event_date:
                day = query.event_date.isoformat()
                params["datetime_local.gte"] = f"{day}T00:00:00"
                params["datetime_local.lte"] = f"{day}T23:59:59"
            if query.venue_name:
                params["q"] = f"{query.event_name} {query.venue_name}"

            logger.info(f"Searching SeatGeek events for {query.event_name}")
            data = await self._request("/events", params)
            tickets = self._normalize_events(data.get("events") or [])
            logger.info(f"Found {len(tickets)} SeatGeek listings for {query.event_name}")
            return tickets

        return await self._cached_search(Capability.TICKET, query, fetch)

    def _normalize_events(self, events: List[Dict[str, Any]]) -> List[TicketResult]:
        tickets = []
        for event in events:
            try:
                stats = event.get("stats") or {}
                venue = event.get("venue") or {}
                lowest = stats.get("lowest_price") or stats.get("average_price")
                if lowest is None:
                    logger.warning(f"No price found for SeatGeek event {event.get('id')}")

                tickets.append(TicketResult(
                    id=f"seatgeek_event_{event.get('id')}",
                    source_provider=self.get_provider_name(),
                    price=to_price(lowest, "USD"),
                    max_price=to_decimal(stats.get("highest_price")),
                    url=event.get("url"),
                    event_name=event.get("title"),
                    venue_name=venue.get("name"),
                    event_date=event.get("datetime_local"),
                ))
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed SeatGeek event: {e}")
                continue
        return tickets
