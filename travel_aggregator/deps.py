"""Dependency injection setup for FastAPI."""

from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from travel_aggregator.config import Settings, get_settings
from travel_aggregator.db.base import Base
from travel_aggregator.orchestration.orchestrator import CapabilityOrchestrator
from travel_aggregator.registry import ProviderRegistry, build_default_registry
from travel_aggregator.repositories.cache import CacheRepository


# Database setup
engine = None
SessionLocal = None

# Built once at startup
_cache_session: Optional[Session] = None
_registry: Optional[ProviderRegistry] = None
_orchestrator: Optional[CapabilityOrchestrator] = None


def init_database(settings: Settings) -> None:
    """Initialize database connection."""
    global engine, SessionLocal
    engine = create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
        echo=settings.debug,
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Create tables
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    if SessionLocal is None:
        raise RuntimeError("Database not initialized")

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_orchestrator(settings: Settings) -> CapabilityOrchestrator:
    """Build the provider registry and orchestrator shared by all requests."""
    global _cache_session, _registry, _orchestrator
    if SessionLocal is None:
        raise RuntimeError("Database not initialized")

    _cache_session = SessionLocal()
    cache = CacheRepository(_cache_session)
    _registry = build_default_registry(settings, cache)
    _orchestrator = CapabilityOrchestrator(settings, _registry, cache)
    return _orchestrator


async def shutdown_orchestrator() -> None:
    """Close provider clients and the shared cache session."""
    global _cache_session, _registry, _orchestrator
    if _registry is not None:
        await _registry.close()
    if _cache_session is not None:
        _cache_session.close()
    _cache_session = _registry = _orchestrator = None


def get_orchestrator() -> CapabilityOrchestrator:
    """Get the shared orchestrator."""
    if _orchestrator is None:
        return init_orchestrator(get_settings())
    return _orchestrator
