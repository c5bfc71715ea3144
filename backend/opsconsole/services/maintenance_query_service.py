"""Read-only queries and statistics over scheduled maintenance."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from opsconsole.core.clock import Clock, local_today, utc_now
from opsconsole.core.config import settings
from opsconsole.models.maintenance import MaintenanceType, ScheduledMaintenance
from opsconsole.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class MaintenanceQueryService:
    """Listings and dashboard stats. Never writes."""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or utc_now
        self.schedules = ScheduleStore(db)

    def today(self) -> date:
        return local_today(self.clock())

    def get_schedules(
        self,
        item_id: Optional[int] = None,
        is_completed: Optional[bool] = None,
        maintenance_type: Optional[MaintenanceType] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[ScheduledMaintenance]:
        return self.schedules.query(
            item_id=item_id,
            is_completed=is_completed,
            maintenance_type=maintenance_type,
            from_date=from_date,
            to_date=to_date,
        )

    def get_schedule(self, schedule_id: int) -> ScheduledMaintenance:
        return self.schedules.get(schedule_id)

    def get_upcoming(self, days: Optional[int] = None) -> List[ScheduledMaintenance]:
        """Open schedules from today through ``days`` ahead."""
        if days is None:
            days = settings.maintenance_upcoming_days
        today = self.today()
        return self.schedules.query(
            is_completed=False, from_date=today, to_date=today + timedelta(days=days)
        )

    def get_overdue(self) -> List[ScheduledMaintenance]:
        """Open schedules dated today or earlier."""
        return self.schedules.query(is_completed=False, to_date=self.today())

    def get_schedules_needing_reminders(self) -> List[ScheduledMaintenance]:
        today = self.today()
        window_end = today + timedelta(days=settings.maintenance_reminder_window_days)
        return self.schedules.pending_with_any_reminder_outstanding(today, window_end)

    def get_stats(self) -> Dict[str, int]:
        today = self.today()
        stats = {
            "total": self.schedules.count_all(),
            "upcoming": self.schedules.count_pending(from_date=today),
            "overdue": self.schedules.count_pending(to_date=today),
            "completed_this_month": self.schedules.count_completed_since(today.replace(day=1)),
        }
        logger.debug(f"Scheduled maintenance stats: {stats}")
        return stats
