"""Base provider adapter interfaces."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Union

import httpx
from pydantic import TypeAdapter

from travel_aggregator.caching import build_provider_cache_key, ttl_for
from travel_aggregator.config import Settings
from travel_aggregator.errors import ErrorKind, ProviderError
from travel_aggregator.repositories.cache import CacheRepository
from travel_aggregator.schemas import (
    AirportQuery,
    AirportResult,
    Capability,
    CapabilityQuery,
    CarQuery,
    CarResult,
    FlightQuery,
    FlightResult,
    HealthCheckResult,
    HotelQuery,
    HotelResult,
    NormalizedResult,
    ResultBase,
    TicketQuery,
    TicketResult,
    build_query,
    parse_capability,
)

logger = logging.getLogger(__name__)

_RESULT_LIST = TypeAdapter(List[NormalizedResult])


class FlightSearchProvider(ABC):
    """Provider that can search flights."""

    @abstractmethod
    async def search_flights(self, query: FlightQuery) -> List[FlightResult]:
        """
        Search for flight offers.

        Args:
            query: Origin, destination, dates and passenger count

        Returns:
            List of normalized flights; empty when nothing matches
        """
        pass


class HotelSearchProvider(ABC):
    """Provider that can search hotels."""

    @abstractmethod
    async def search_hotels(self, query: HotelQuery) -> List[HotelResult]:
        pass


class CarSearchProvider(ABC):
    """Provider that can search car rentals."""

    @abstractmethod
    async def search_car_rentals(self, query: CarQuery) -> List[CarResult]:
        pass


class TicketSearchProvider(ABC):
    """Provider that can search event tickets."""

    @abstractmethod
    async def search_tickets(self, query: TicketQuery) -> List[TicketResult]:
        pass


class AirportSearchProvider(ABC):
    """Provider that can look up airports and cities."""

    @abstractmethod
    async def search_airports(self, query: AirportQuery) -> List[AirportResult]:
        pass


_CAPABILITY_INTERFACES = (
    (FlightSearchProvider, Capability.FLIGHT, "search_flights"),
    (HotelSearchProvider, Capability.HOTEL, "search_hotels"),
    (CarSearchProvider, Capability.CAR, "search_car_rentals"),
    (TicketSearchProvider, Capability.TICKET, "search_tickets"),
    (AirportSearchProvider, Capability.AIRPORT, "search_airports"),
)


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters.

    Concrete adapters also inherit the capability interfaces they support;
    ``capabilities`` is derived from those.
    """

    def __init__(self, settings: Settings, cache: Optional[CacheRepository] = None):
        self.settings = settings
        self.cache_repo = cache

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the name of this provider."""
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        """Credential/config sanity check; not a guarantee of live success."""
        pass

    @abstractmethod
    async def health_check(self) -> HealthCheckResult:
        pass

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return frozenset(
            capability
            for interface, capability, _ in _CAPABILITY_INTERFACES
            if isinstance(self, interface)
        )

    async def search(
        self,
        capability: Union[str, Capability],
        query: Union[CapabilityQuery, Dict[str, Any]],
    ) -> List[ResultBase]:
        """Dispatch a capability query to the matching search method."""
        capability = parse_capability(capability)
        for interface, supported, method_name in _CAPABILITY_INTERFACES:
            if supported == capability and isinstance(self, interface):
                method = getattr(self, method_name)
                return await method(build_query(capability, query))

        raise ProviderError(
            self.get_provider_name(),
            f"{self.get_provider_name()} does not support {capability.value} search",
            ErrorKind.VALIDATION_ERROR,
        )

    async def _cached_search(
        self,
        capability: Capability,
        query: CapabilityQuery,
        fetch: Callable[[], Awaitable[List[ResultBase]]],
    ) -> List[ResultBase]:
        """Cache-aside around this provider's own upstream call."""
        key = build_provider_cache_key(self.get_provider_name(), capability, query)

        if self.cache_repo is not None:
            cached = self.cache_repo.get(key)
            if cached is not None:
                logger.info(f"Cache hit for {key}")
                return _RESULT_LIST.validate_python(cached)

        results = await fetch()

        if self.cache_repo is not None:
            self.cache_repo.set(
                key,
                [result.model_dump(mode="json") for result in results],
                ttl_for(capability, self.settings),
            )
        return results

    async def close(self) -> None:
        """Release any resources held by the adapter."""
        return None


class HTTPProviderAdapter(ProviderAdapter):
    """Adapter backed by an upstream HTTP API."""

    timeout_seconds: float = 15.0

    def __init__(
        self,
        settings: Settings,
        cache: Optional[CacheRepository] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings, cache)
        self.client = client or httpx.AsyncClient(timeout=self.timeout_seconds)

    async def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            response = await self.client.get(url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            # The request URL may carry credentials; log only the failure type
            logger.error(f"{self.get_provider_name()} GET failed: {type(e).__name__}")
            raise ProviderError.from_http_error(self.get_provider_name(), e) from e
        except ValueError as e:
            raise ProviderError(
                self.get_provider_name(),
                f"{self.get_provider_name()} returned a malformed response",
                ErrorKind.SERVICE_UNAVAILABLE,
            ) from e

    async def _post(
        self,
        url: str,
        data: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        try:
            response = await self.client.post(url, data=data, json=json, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"{self.get_provider_name()} POST failed: {type(e).__name__}")
            raise ProviderError.from_http_error(self.get_provider_name(), e) from e
        except ValueError as e:
            raise ProviderError(
                self.get_provider_name(),
                f"{self.get_provider_name()} returned a malformed response",
                ErrorKind.SERVICE_UNAVAILABLE,
            ) from e

    async def _probe(self, call: Callable[[], Awaitable[Any]]) -> HealthCheckResult:
        """Run a cheap upstream call and turn the outcome into a health result."""
        started = time.monotonic()
        try:
            await call()
        except ProviderError as e:
            logger.error(f"{self.get_provider_name()} health check failed: {e.message}")
            return HealthCheckResult(status="unhealthy", detail=e.kind.value)
        except Exception as e:
            logger.error(f"{self.get_provider_name()} health check raised {type(e).__name__}: {e}")
            return HealthCheckResult(status="unhealthy", detail=ErrorKind.UNKNOWN_ERROR.value)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        return HealthCheckResult(status="healthy", response_time_ms=elapsed_ms)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
