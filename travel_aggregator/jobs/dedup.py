"""Removal of duplicate upcoming events.

Two events are duplicates when name, artist, venue name, venue city and
start time all match exactly. Within each duplicate group the event with
the lowest id is kept. Past events are left untouched.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from travel_aggregator.db.models import Event
from travel_aggregator.repositories.events import EventRepository

logger = logging.getLogger(__name__)

EventIdentity = Tuple[Optional[str], Optional[str], Optional[str], Optional[str], datetime]


@dataclass
class DedupReport:
    """Outcome of one deduplication pass."""
    groups: int = 0
    deleted_ids: List[int] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_ids)


def event_identity(event: Event) -> EventIdentity:
    return (event.name, event.artist, event.venue_name, event.venue_city, event.event_date)


class EventDeduplicator:
    """Deletes duplicate upcoming events, keeping the oldest row of each group."""

    def __init__(self, db: DBSession):
        self.db = db
        self.events = EventRepository(db)

    def find_duplicates(self, today: Optional[date] = None) -> Dict[EventIdentity, List[int]]:
        """Group ids of upcoming events by identity, keeping only groups with duplicates."""
        today = today or datetime.utcnow().date()
        since = datetime.combine(today, datetime.min.time())

        groups: Dict[EventIdentity, List[int]] = {}
        for event in self.events.get_upcoming(since):
            groups.setdefault(event_identity(event), []).append(event.id)

        return {identity: ids for identity, ids in groups.items() if len(ids) > 1}

    def run(self, today: Optional[date] = None) -> DedupReport:
        """Run one deduplication pass. Running it again deletes nothing."""
        duplicates = self.find_duplicates(today)
        if not duplicates:
            logger.info("No duplicate events found")
            return DedupReport()

        to_delete: List[int] = []
        for identity, ids in duplicates.items():
            keep = min(ids)
            to_delete.extend(sorted(i for i in ids if i != keep))
            logger.info(f"Keeping event {keep} for '{identity[0]}', removing {len(ids) - 1} duplicates")

        try:
            deleted = self.events.delete_ids(to_delete)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Event deduplication failed: {type(e).__name__}")
            raise

        logger.info(f"Removed {deleted} duplicate events across {len(duplicates)} groups")
        return DedupReport(groups=len(duplicates), deleted_ids=sorted(to_delete))
