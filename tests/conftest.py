"""Pytest configuration and shared fixtures.

Ensures the project root is on sys.path for `import travel_aggregator` to work when running tests.
"""

import asyncio
import os
import sys
from typing import List, Optional

import pytest


def _add_project_root_to_syspath() -> None:
    # tests/ directory -> project root
    this_dir = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(this_dir, os.pardir))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_add_project_root_to_syspath()

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from travel_aggregator.config import Settings  # noqa: E402
from travel_aggregator.db.base import Base  # noqa: E402
from travel_aggregator.providers.base import (  # noqa: E402
    AirportSearchProvider,
    CarSearchProvider,
    FlightSearchProvider,
    HotelSearchProvider,
    ProviderAdapter,
    TicketSearchProvider,
)
from travel_aggregator.repositories.cache import CacheRepository  # noqa: E402
from travel_aggregator.schemas import HealthCheckResult  # noqa: E402


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite:///:memory:",
        serpapi_key=None,
        amadeus_client_id=None,
        amadeus_client_secret=None,
        seatgeek_client_id=None,
        seatgeek_client_secret=None,
        ticketmaster_api_key=None,
        scheduler_enabled=False,
        debug=True,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def settings() -> Settings:
    return make_settings()


@pytest.fixture()
def db_session():
    # One shared connection so the TestClient thread sees the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def cache_repo(db_session) -> CacheRepository:
    return CacheRepository(db_session)


class FakeProvider(
    ProviderAdapter,
    FlightSearchProvider,
    HotelSearchProvider,
    CarSearchProvider,
    TicketSearchProvider,
    AirportSearchProvider,
):
    """In-memory provider answering every capability with canned results."""

    def __init__(
        self,
        settings: Settings,
        name: str,
        results: Optional[List] = None,
        error: Optional[Exception] = None,
        available: bool = True,
        delay: float = 0.0,
        health: str = "healthy",
    ):
        super().__init__(settings)
        self.name = name
        self.results = results or []
        self.error = error
        self.available = available
        self.delay = delay
        self.health = health
        self.calls = 0

    def get_provider_name(self) -> str:
        return self.name

    async def is_available(self) -> bool:
        return self.available

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(status=self.health)

    async def _answer(self, query):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def search_flights(self, query):
        return await self._answer(query)

    async def search_hotels(self, query):
        return await self._answer(query)

    async def search_car_rentals(self, query):
        return await self._answer(query)

    async def search_tickets(self, query):
        return await self._answer(query)

    async def search_airports(self, query):
        return await self._answer(query)


class FlightOnlyProvider(ProviderAdapter, FlightSearchProvider):
    """Provider that only supports flights."""

    def __init__(self, settings: Settings, name: str):
        super().__init__(settings)
        self.name = name
        self.calls = 0

    def get_provider_name(self) -> str:
        return self.name

    async def is_available(self) -> bool:
        return True

    async def health_check(self) -> HealthCheckResult:
        return HealthCheckResult(status="ok")

    async def search_flights(self, query):
        self.calls += 1
        return []


@pytest.fixture()
def make_provider(settings):
    def factory(name: str, **kwargs) -> FakeProvider:
        return FakeProvider(settings, name, **kwargs)
    return factory


@pytest.fixture()
def make_flight_only_provider(settings):
    def factory(name: str) -> FlightOnlyProvider:
        return FlightOnlyProvider(settings, name)
    return factory


@pytest.fixture()
def settings_factory():
    return make_settings
