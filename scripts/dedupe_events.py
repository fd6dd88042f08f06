#!/usr/bin/env python3
"""Run the event deduplication pass once.

Uses DATABASE_URL from the environment / .env like the application.

Examples:
  # Remove duplicate upcoming events
  python scripts/dedupe_events.py

  # Only report what would be removed
  python scripts/dedupe_events.py --dry-run
"""

import argparse
import os
import sys
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from travel_aggregator.config import get_settings
from travel_aggregator.db.base import Base
from travel_aggregator.jobs.dedup import EventDeduplicator


def dedupe_events(dry_run: bool = False) -> int:
    """Deduplicate upcoming events. Returns the number of events removed."""
    settings = get_settings()

    engine = create_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()

    try:
        deduplicator = EventDeduplicator(db)
        if dry_run:
            duplicates = deduplicator.find_duplicates()
            for identity, ids in duplicates.items():
                print(f"{identity[0]} @ {identity[2]} ({identity[4]}): keep {min(ids)}, remove {len(ids) - 1}")
            print(f"Found {len(duplicates)} duplicate groups.")
            return 0

        report = deduplicator.run()
        print(f"Removed {report.deleted_count} duplicate events across {report.groups} groups.")
        return report.deleted_count
    finally:
        db.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Remove duplicate upcoming events")
    parser.add_argument("--dry-run", action="store_true", help="Report duplicates without deleting")
    args = parser.parse_args()

    dedupe_events(dry_run=args.dry_run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
