"""Events repository for database operations."""

from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session as DBSession

from travel_aggregator.db.models import Event


class EventRepository:
    """Repository for event operations."""

    def __init__(self, db: DBSession):
        self.db = db

    def add_event(self,
                  name: str,
                  event_date: datetime,
                  source_provider: str,
                  artist: Optional[str] = None,
                  venue_name: Optional[str] = None,
                  venue_city: Optional[str] = None,
                  venue_state: Optional[str] = None,
                  external_id: Optional[str] = None,
                  ) -> Event:
        """Insert an event.
        Args:
            name (str): Event name.
            event_date (datetime): Local start date and time.
            source_provider (str): Provider the event came from.
            artist (Optional[str]): Headlining artist.
            venue_name (Optional[str]): Venue name.
            venue_city (Optional[str]): Venue city.
            venue_state (Optional[str]): Venue state or region.
            external_id (Optional[str]): Identifier at the source provider.
        Returns:
            Event: The stored event.
        """
        event = Event(
            name=name,
            event_date=event_date,
            source_provider=source_provider,
            artist=artist,
            venue_name=venue_name,
            venue_city=venue_city,
            venue_state=venue_state,
            external_id=external_id,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_upcoming(self, since: datetime) -> List[Event]:
        """Events starting at or after ``since``, oldest id first."""
        return (
            self.db.query(Event)
            .filter(Event.event_date >= since)
            .order_by(Event.id)
            .all()
        )

    def get_ids(self) -> List[int]:
        return [event_id for (event_id,) in self.db.query(Event.id).order_by(Event.id).all()]

    def delete_ids(self, ids: Iterable[int]) -> int:
        """Delete events by id. Returns number of rows removed."""
        ids = list(ids)
        if not ids:
            return 0
        count = (
            self.db.query(Event)
            .filter(Event.id.in_(ids))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return count
