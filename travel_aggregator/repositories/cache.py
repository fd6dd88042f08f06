"""Cache repository: key-value store with per-entry TTL."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from travel_aggregator.db.models import CacheEntry
from travel_aggregator.errors import CacheError

logger = logging.getLogger(__name__)


def _glob_to_like(pattern: str) -> str:
    """Translate a ``*`` glob into a LIKE pattern using ``\\`` as escape."""
    escaped = (
        pattern.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return escaped.replace("*", "%")


class CacheRepository:
    """Repository for cache operations.

    Mirrors the GET / SET EX / KEYS / DEL surface of a key-value store.
    Concurrent writers to the same key are last-write-wins.
    """

    def __init__(self, db: DBSession):
        self.db = db

    def get(self, key: str) -> Optional[Any]:
        """Get a cached value if still valid.
        Args:
            key (str): Cache key.
        Returns:
            Optional[Any]: Cached value or None if not found/expired.
        """
        try:
            entry = self.db.query(CacheEntry).filter(CacheEntry.key == key).first()
            if entry is None:
                return None

            if datetime.utcnow() <= entry.expires_at:
                return entry.value

            # Remove expired entry
            self.db.delete(entry)
            self.db.commit()
            return None
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CacheError(f"Cache read failed for {key}: {type(e).__name__}") from e

    def set(self, key: str, value: Any, ttl_seconds: int) -> CacheEntry:
        """Store a value under a key.
        Args:
            key (str): Cache key.
            value (Any): JSON-serializable value.
            ttl_seconds (int): Time-to-live for the entry.
        Returns:
            CacheEntry: Created or updated cache entry.
        """
        now = datetime.utcnow()
        expires_at = now + timedelta(seconds=ttl_seconds)

        try:
            existing = self.db.query(CacheEntry).filter(CacheEntry.key == key).first()
            if existing:
                existing.value = value
                existing.ttl_seconds = ttl_seconds
                existing.created_at = now
                existing.expires_at = expires_at
                entry = existing
            else:
                entry = CacheEntry(
                    key=key,
                    value=value,
                    ttl_seconds=ttl_seconds,
                    created_at=now,
                    expires_at=expires_at,
                )
                self.db.add(entry)

            self.db.commit()
            self.db.refresh(entry)
            return entry

        except SQLAlchemyError as e:
            self.db.rollback()
            raise CacheError(f"Cache write failed for {key}: {type(e).__name__}") from e

    def keys(self, pattern: str) -> List[str]:
        """List live keys matching a glob pattern (``*`` wildcard).
        Args:
            pattern (str): Glob pattern, e.g. ``unified_flight_*``.
        Returns:
            List[str]: Matching keys.
        """
        try:
            rows = (
                self.db.query(CacheEntry.key)
                .filter(CacheEntry.key.like(_glob_to_like(pattern), escape="\\"))
                .filter(CacheEntry.expires_at >= datetime.utcnow())
                .order_by(CacheEntry.key)
                .all()
            )
            return [key for (key,) in rows]
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CacheError(f"Cache key scan failed for {pattern}: {type(e).__name__}") from e

    def delete(self, keys: Iterable[str]) -> int:
        """Delete the given keys. Returns number of entries removed."""
        keys = list(keys)
        if not keys:
            return 0

        try:
            count = (
                self.db.query(CacheEntry)
                .filter(CacheEntry.key.in_(keys))
                .delete(synchronize_session=False)
            )
            self.db.commit()
            return count
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CacheError(f"Cache delete failed: {type(e).__name__}") from e

    def clear_expired(self) -> int:
        """Clear all expired cache entries. Returns number of entries cleared."""
        try:
            count = (
                self.db.query(CacheEntry)
                .filter(CacheEntry.expires_at < datetime.utcnow())
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise CacheError(f"Cache purge failed: {type(e).__name__}") from e

        if count:
            logger.info(f"Purged {count} expired cache entries")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.
        Returns:
            Dict[str, Any]: Total entries and breakdown by key scope.
        """
        entries = self.db.query(CacheEntry.key).all()
        by_scope: Dict[str, int] = {}
        for (key,) in entries:
            scope = key.split("_", 1)[0]
            by_scope[scope] = by_scope.get(scope, 0) + 1

        expired = (
            self.db.query(func.count(CacheEntry.id))
            .filter(CacheEntry.expires_at < datetime.utcnow())
            .scalar()
        )

        return {
            "total_entries": len(entries),
            "expired_entries": expired or 0,
            "by_scope": by_scope,
        }
