"""Availability service - a host's availability windows, replaced wholesale on every save"""

import logging

from sqlalchemy.orm import Session

from ...models import User
from .repository import SchedulingRepository
from .schemas import AvailabilityWindowIn, SavedWindow

logger = logging.getLogger(__name__)


class AvailabilityService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def save_availability(self, user: User, windows: list[AvailabilityWindowIn]) -> list[SavedWindow]:
        """
        Replace the host's entire availability with ``windows``.
        Nothing is merged: callers always send the complete desired set.
        """
        try:
            saved = self.repo.replace_availability(
                self.db, user.id, [(w.start, w.end) for w in windows]
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save availability for user {user.id}: {e}")
            raise

        logger.info(f"✅ Saved {len(saved)} availability windows for user {user.id}")
        return [SavedWindow(id=w.key, start=w.start_time, end=w.end_time) for w in saved]

    def get_availability(self, user: User) -> list[SavedWindow]:
        return [
            SavedWindow(id=w.key, start=w.start_time, end=w.end_time)
            for w in self.repo.get_availability(self.db, user.id)
        ]
