"""Ticketmaster Discovery API ticket provider."""

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


class TicketmasterProvider(HTTPProviderAdapter, TicketSearchProvider):
    """Ticket price ranges from the Ticketmaster Discovery API."""

    timeout_seconds = 10.0

    def __init__(
        self,
        settings: Settings,
        cache: Optional[CacheRepository] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, cache, client)
        self.api_key = settings.ticketmaster_api_key
        self.base_url = "https://app.ticketmaster.com/discovery/v2"

    def get_provider_name(self) -> str:
        return "ticketmaster"

    async def is_available(self) -> bool:
        return bool(self.api_key)

    async def health_check(self) -> HealthCheckResult:
        if not self.api_key:
            return HealthCheckResult(status="unavailable", detail="Missing API key")
        return await self._probe(
            lambda: self._get_json(f"{self.base_url}/events.json", params={"apikey": self.api_key, "size": 1})
        )

    async def search_tickets(self, query: TicketQuery) -> List[TicketResult]:
        """Search events and expand their price ranges into ticket options."""
        if not self.api_key:
            raise ProviderError(self.get_provider_name(), "Ticketmaster API key not configured", ErrorKind.AUTH_FAILED)

        async def fetch() -> List[TicketResult]:
            params: Dict[str, Any] = {
                "apikey": self.api_key,
                "keyword": query.event_name,
                "size": query.max_results,
            }
            if query.city:
                params["city"] = query.city
            if query.event_date:
                day = query.event_date.isoformat()
                params["startDateTime"] = f"{day}T00:00:00Z"
                params["endDateTime"] = f"{day}T23:59:59Z"

            logger.info(f"Searching Ticketmaster events for {query.event_name}")
            data = await self._get_json(f"{self.base_url}/events.json", params=params)
            events = (data.get("_embedded") or {}).get("events") or []
            if query.venue_name:
                wanted = query.venue_name.lower()
                events = [event for event in events if self._venue_matches(event, wanted)]
            return self._normalize_events(events)[:query.max_results]

        return await self._cached_search(Capability.TICKET, query, fetch)

    @staticmethod
    def _venue(event: Dict[str, Any]) -> Dict[str, Any]:
        venues = (event.get("_embedded") or {}).get("venues") or [{}]
        return venues[0] or {}

    def _venue_matches(self, event: Dict[str, Any], wanted: str) -> bool:
        try:
            return wanted in (self._venue(event).get("name") or "").lower()
        except (TypeError, AttributeError) as e:
            logger.warning(f"Skipping Ticketmaster event with malformed venue: {e}")
            return False

    def _normalize_events(self, events: List[Dict[str, Any]]) -> List[TicketResult]:
        tickets = []
        for event in events:
            try:
                tickets.extend(self._event_tickets(event))
            except (TypeError, AttributeError, ValueError) as e:
                logger.warning(f"Skipping malformed Ticketmaster event: {e}")
                continue
        return tickets

    def _event_tickets(self, event: Dict[str, Any]) -> List[TicketResult]:
        venue = self._venue(event)
        start = (event.get("dates") or {}).get("start") or {}
        common = {
            "source_provider": self.get_provider_name(),
            "url": event.get("url"),
            "event_name": event.get("name"),
            "venue_name": venue.get("name"),
            "event_date": start.get("dateTime") or start.get("localDate"),
        }

        price_ranges = event.get("priceRanges") or []
        if not price_ranges:
            # Event is listed but Ticketmaster does not expose a price
            return [TicketResult(id=f"ticketmaster_{event.get('id')}", price=None, **common)]

        return [
            TicketResult(
                id=f"ticketmaster_{event.get('id')}_{index}",
                price=to_price(price_range.get("min"), price_range.get("currency")),
                max_price=to_decimal(price_range.get("max")),
                **common,
            )
            for index, price_range in enumerate(price_ranges)
        ]
