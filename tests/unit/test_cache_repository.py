"""Unit tests for the SQL-backed cache repository."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from travel_aggregator.db.models import CacheEntry
from travel_aggregator.errors import CacheError, ErrorKind


def _expire(db_session, key):
    entry = db_session.query(CacheEntry).filter(CacheEntry.key == key).first()
    entry.expires_at = datetime.utcnow() - timedelta(seconds=1)
    db_session.commit()


def test_set_then_get(cache_repo):
    cache_repo.set("unified_flight_a", {"results": [1, 2]}, 60)
    assert cache_repo.get("unified_flight_a") == {"results": [1, 2]}
    assert cache_repo.get("missing") is None


def test_set_overwrites_existing_value(cache_repo, db_session):
    cache_repo.set("k", {"v": 1}, 60)
    cache_repo.set("k", {"v": 2}, 120)

    assert cache_repo.get("k") == {"v": 2}
    assert db_session.query(CacheEntry).count() == 1


def test_expired_entry_is_a_miss_and_removed(cache_repo, db_session):
    cache_repo.set("k", {"v": 1}, 60)
    _expire(db_session, "k")

    assert cache_repo.get("k") is None
    assert db_session.query(CacheEntry).count() == 0


def test_keys_matches_glob_literally(cache_repo):
    cache_repo.set("unified_flight_a", 1, 60)
    cache_repo.set("unified_flight_b", 1, 60)
    cache_repo.set("unified_hotel_a", 1, 60)
    cache_repo.set("unifiedXflightXc", 1, 60)

    assert cache_repo.keys("unified_flight_*") == ["unified_flight_a", "unified_flight_b"]


def test_keys_skips_expired_entries(cache_repo, db_session):
    cache_repo.set("unified_flight_a", 1, 60)
    cache_repo.set("unified_flight_b", 1, 60)
    _expire(db_session, "unified_flight_b")

    assert cache_repo.keys("unified_flight_*") == ["unified_flight_a"]


def test_delete_returns_count(cache_repo):
    cache_repo.set("a", 1, 60)
    cache_repo.set("b", 1, 60)

    assert cache_repo.delete(["a", "b", "c"]) == 2
    assert cache_repo.delete([]) == 0
    assert cache_repo.get("a") is None


def test_clear_expired_and_stats(cache_repo, db_session):
    cache_repo.set("unified_flight_a", 1, 60)
    cache_repo.set("serpapi_flight_a", 1, 60)
    cache_repo.set("unified_hotel_a", 1, 60)
    _expire(db_session, "unified_hotel_a")

    stats = cache_repo.get_stats()
    assert stats["total_entries"] == 3
    assert stats["expired_entries"] == 1
    assert stats["by_scope"] == {"unified": 2, "serpapi": 1}

    assert cache_repo.clear_expired() == 1
    assert cache_repo.get_stats()["total_entries"] == 2


def test_backend_failure_raises_cache_error(cache_repo, monkeypatch):
    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(cache_repo.db, "query", broken_query)

    with pytest.raises(CacheError) as exc_info:
        cache_repo.get("k")
    assert exc_info.value.kind == ErrorKind.CACHE_ERROR
