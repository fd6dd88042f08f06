"""Static airport directory with deterministic data."""

import logging
from typing import Dict, List

from travel_aggregator.providers.base import AirportSearchProvider, ProviderAdapter
from travel_aggregator.schemas import AirportQuery, AirportResult, HealthCheckResult

logger = logging.getLogger(__name__)


# (IATA code, name, city, country)
_AIRPORTS = [
    ("ATL", "Hartsfield-Jackson Atlanta International Airport", "Atlanta", "United States"),
    ("AUS", "Austin-Bergstrom International Airport", "Austin", "United States"),
    ("BNA", "Nashville International Airport", "Nashville", "United States"),
    ("BOS", "Logan International Airport", "Boston", "United States"),
    ("DEN", "Denver International Airport", "Denver", "United States"),
    ("DFW", "Dallas/Fort Worth International Airport", "Dallas", "United States"),
    ("JFK", "John F. Kennedy International Airport", "New York", "United States"),
    ("LAS", "Harry Reid International Airport", "Las Vegas", "United States"),
    ("LAX", "Los Angeles International Airport", "Los Angeles", "United States"),
    ("LGA", "LaGuardia Airport", "New York", "United States"),
    ("MIA", "Miami International Airport", "Miami", "United States"),
    ("MSP", "Minneapolis-Saint Paul International Airport", "Minneapolis", "United States"),
    ("ORD", "O'Hare International Airport", "Chicago", "United States"),
    ("PHX", "Phoenix Sky Harbor International Airport", "Phoenix", "United States"),
    ("SEA", "Seattle-Tacoma International Airport", "Seattle", "United States"),
    ("SFO", "San Francisco International Airport", "San Francisco", "United States"),
    ("CDG", "Charles de Gaulle Airport", "Paris", "France"),
    ("LHR", "Heathrow Airport", "London", "United Kingdom"),
    ("AMS", "Amsterdam Airport Schiphol", "Amsterdam", "Netherlands"),
    ("ATH", "Athens International Airport", "Athens", "Greece"),
    ("FCO", "Leonardo da Vinci-Fiumicino Airport", "Rome", "Italy"),
    ("MAD", "Adolfo Suarez Madrid-Barajas Airport", "Madrid", "Spain"),
    ("YYZ", "Toronto Pearson International Airport", "Toronto", "Canada"),
    ("MEX", "Mexico City International Airport", "Mexico City", "Mexico"),
]


class LocalAirportDirectory(ProviderAdapter, AirportSearchProvider):
    """Airport lookup from a bundled directory, used ahead of remote providers."""

    def __init__(self, settings, cache=None):
        super().__init__(settings, cache)
        self._airports: List[Dict[str, str]] = [
            {"code": code, "name": name, "city": city, "country": country}
            for code, name, city, country in _AIRPORTS
        ]

    def get_provider_name(self) -> str:
        return "local"

    async def is_available(self) -> bool:
        return True

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(status="healthy", detail=f"{len(self._airports)} airports loaded")

    async def search_airports(self, query: AirportQuery) -> List[AirportResult]:
        """Match keyword against code, city and name (case-insensitive substring)."""
        keyword = query.keyword.strip().lower()

        matches = []
        for airport in self._airports:
            haystack = (airport["code"], airport["city"], airport["name"])
            if any(keyword in value.lower() for value in haystack):
                matches.append(AirportResult(
                    id=f"local_airport_{airport['code']}",
                    source_provider=self.get_provider_name(),
                    code=airport["code"],
                    name=airport["name"],
                    city=airport["city"],
                    country=airport["country"],
                    location_type="AIRPORT",
                ))

        logger.info(f"Local airport directory matched {len(matches)} airports for '{query.keyword}'")
        return matches[:query.max_results]
