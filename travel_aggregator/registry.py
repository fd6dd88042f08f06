"""Provider registry built once at startup and shared by the orchestrator."""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from travel_aggregator.config import Settings
from travel_aggregator.providers.amadeus import AmadeusProvider
from travel_aggregator.providers.base import ProviderAdapter
from travel_aggregator.providers.local_airports import LocalAirportDirectory
from travel_aggregator.providers.seatgeek import SeatGeekProvider
from travel_aggregator.providers.serpapi import SerpAPIProvider
from travel_aggregator.providers.ticketmaster import TicketmasterProvider
from travel_aggregator.repositories.cache import CacheRepository
from travel_aggregator.schemas import Capability

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderDescriptor:
    """Immutable registration record for one provider."""
    name: str
    capabilities: FrozenSet[Capability]
    adapter: ProviderAdapter

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


class ProviderRegistry:
    """Registry of provider adapters keyed by provider name."""

    def __init__(self, adapters: Optional[Iterable[ProviderAdapter]] = None):
        self._descriptors: Dict[str, ProviderDescriptor] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> ProviderDescriptor:
        """Register an adapter under its provider name."""
        name = adapter.get_provider_name()
        if name in self._descriptors:
            raise ValueError(f"Provider {name} is already registered")

        descriptor = ProviderDescriptor(name=name, capabilities=adapter.capabilities, adapter=adapter)
        self._descriptors[name] = descriptor
        logger.info(
            f"Registered provider {name} for {', '.join(sorted(c.value for c in descriptor.capabilities))}"
        )
        return descriptor

    def get(self, name: str) -> Optional[ProviderDescriptor]:
        return self._descriptors.get(name)

    def names(self) -> List[str]:
        return list(self._descriptors)

    def descriptors(self) -> List[ProviderDescriptor]:
        return list(self._descriptors.values())

    def supporting(self, capability: Capability) -> List[ProviderDescriptor]:
        return [d for d in self._descriptors.values() if d.supports(capability)]

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    async def close(self) -> None:
        for descriptor in self._descriptors.values():
            await descriptor.adapter.close()


def build_default_registry(settings: Settings, cache: Optional[CacheRepository] = None) -> ProviderRegistry:
    """Construct every reference adapter once."""
    return ProviderRegistry([
        SerpAPIProvider(settings, cache),
        AmadeusProvider(settings, cache),
        SeatGeekProvider(settings, cache),
        TicketmasterProvider(settings, cache),
        LocalAirportDirectory(settings, cache),
    ])
