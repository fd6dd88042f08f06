"""Configuration management for the travel aggregation engine."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./travel_aggregator.db"

    # SerpAPI (Google Flights / Google Hotels)
    serpapi_key: Optional[str] = None

    # Amadeus self-service APIs (OAuth2 client credentials)
    amadeus_client_id: Optional[str] = None
    amadeus_client_secret: Optional[str] = None
    amadeus_base_url: str = "https://test.api.amadeus.com"

    # SeatGeek
    seatgeek_client_id: Optional[str] = None
    seatgeek_client_secret: Optional[str] = None

    # Ticketmaster Discovery API
    ticketmaster_api_key: Optional[str] = None

    # Provider priority per capability
    flight_provider_priority: List[str] = ["serpapi", "amadeus"]
    hotel_provider_priority: List[str] = ["serpapi"]
    car_provider_priority: List[str] = ["amadeus"]
    ticket_provider_priority: List[str] = ["seatgeek", "ticketmaster"]
    airport_provider_priority: List[str] = ["local", "amadeus"]

    # Provider execution
    provider_timeout_seconds: float = 15.0
    max_concurrent_providers: int = 4

    # Cache settings
    cache_scope_prefix: str = "unified"
    search_cache_ttl_seconds: int = 900  # 15 minutes
    location_cache_ttl_seconds: int = 3600  # 1 hour

    # Scheduled jobs
    scheduler_enabled: bool = True
    dedup_run_hour: int = 3  # UTC

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
