"""SQLAlchemy database models.
Defines the schema for the key-value cache store and the persisted
events consumed by the deduplication job.
"""

from sqlalchemy import Column, DateTime, Integer, String, Index, JSON, TypeDecorator
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from travel_aggregator.db.base import Base


class JSONColumn(TypeDecorator):
    """Platform-independent JSON type.

    Uses PostgreSQL's JSONB when available,
    otherwise uses JSON.
    """
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        else:
            return dialect.type_descriptor(JSON())


class CacheEntry(Base):
    """Key-value cache entry with a time-to-live.
    Stores serialized search results and provider responses.
    Columns:
        id (Integer): Primary key.
        key (String): Deterministic cache key.
        value (JSON): Serialized cached value.
        ttl_seconds (Integer): Time-to-live in seconds.
        created_at (DateTime): Timestamp of the last write.
        expires_at (DateTime): Timestamp after which the entry is a miss.
    """
    __tablename__ = "cache_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(512), nullable=False, unique=True)
    value = Column(JSONColumn(), nullable=False)
    ttl_seconds = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())
    expires_at = Column(DateTime, nullable=False, index=True)

    __table_args__ = (
        Index('idx_cache_entries_key', 'key'),
    )


class Event(Base):
    """Event ingested from one of the event sources.
    Columns:
        id (Integer): Primary key.
        external_id (String): Identifier at the source provider.
        name (String): Event name.
        artist (String): Headlining artist or performer.
        venue_name (String): Venue name.
        venue_city (String): Venue city.
        venue_state (String): Venue state or region.
        event_date (DateTime): Local start date and time.
        source_provider (String): Provider the event was ingested from.
        created_at (DateTime): Timestamp of ingestion.
    """
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(200), nullable=True)
    name = Column(String(300), nullable=False, index=True)
    artist = Column(String(200), nullable=True, index=True)
    venue_name = Column(String(200), nullable=True)
    venue_city = Column(String(100), nullable=True)
    venue_state = Column(String(100), nullable=True)
    event_date = Column(DateTime, nullable=False, index=True)
    source_provider = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())

    __table_args__ = (
        Index('idx_events_identity', 'name', 'artist', 'venue_name', 'venue_city', 'event_date'),
        Index('idx_events_source', 'source_provider', 'external_id'),
    )
