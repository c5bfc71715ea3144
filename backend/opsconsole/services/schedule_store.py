"""Schedule Store - persistence and queries for ScheduledMaintenance rows."""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session, joinedload

from opsconsole.core.exceptions import NotFound
from opsconsole.models.maintenance import MaintenanceType, ScheduledMaintenance

logger = logging.getLogger(__name__)


class ScheduleStore:
    """Data access for scheduled maintenance. Never commits."""

    def __init__(self, db: Session):
        self.db = db

    def find(self, schedule_id: int, for_update: bool = False) -> Optional[ScheduledMaintenance]:
        query = self.db.query(ScheduledMaintenance).filter(ScheduledMaintenance.id == schedule_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get(self, schedule_id: int, for_update: bool = False) -> ScheduledMaintenance:
        schedule = self.find(schedule_id, for_update=for_update)
        if schedule is None:
            raise NotFound("Scheduled maintenance", schedule_id)
        return schedule

    def link_ticket(self, schedule_id: int, ticket_id: int) -> bool:
        """Point an open, unpromoted schedule at ``ticket_id``.

        Conditional UPDATE: False when another transaction linked or completed
        the schedule first.
        """
        result = self.db.execute(
            update(ScheduledMaintenance)
            .where(
                ScheduledMaintenance.id == schedule_id,
                ScheduledMaintenance.ticket_id.is_(None),
                ScheduledMaintenance.is_completed.is_(False),
            )
            .values(ticket_id=ticket_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def add(self, schedule: ScheduledMaintenance) -> ScheduledMaintenance:
        self.db.add(schedule)
        self.db.flush()
        return schedule

    def delete(self, schedule: ScheduledMaintenance) -> None:
        self.db.delete(schedule)
        self.db.flush()

    def query(
        self,
        item_id: Optional[int] = None,
        is_completed: Optional[bool] = None,
        maintenance_type: Optional[MaintenanceType] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[ScheduledMaintenance]:
        """Filtered list ordered by scheduled date ascending."""
        query = self.db.query(ScheduledMaintenance).options(joinedload(ScheduledMaintenance.item))

        if item_id is not None:
            query = query.filter(ScheduledMaintenance.item_id == item_id)
        if is_completed is not None:
            query = query.filter(ScheduledMaintenance.is_completed.is_(is_completed))
        if maintenance_type is not None:
            query = query.filter(ScheduledMaintenance.maintenance_type == maintenance_type)
        if from_date is not None:
            query = query.filter(ScheduledMaintenance.scheduled_date >= from_date)
        if to_date is not None:
            query = query.filter(ScheduledMaintenance.scheduled_date <= to_date)

        return query.order_by(
            ScheduledMaintenance.scheduled_date.asc(), ScheduledMaintenance.id.asc()
        ).all()

    def pending_with_any_reminder_outstanding(
        self, from_date: date, to_date: date
    ) -> List[ScheduledMaintenance]:
        return (
            self.db.query(ScheduledMaintenance)
            .options(joinedload(ScheduledMaintenance.item))
            .filter(
                ScheduledMaintenance.is_completed.is_(False),
                ScheduledMaintenance.scheduled_date >= from_date,
                ScheduledMaintenance.scheduled_date <= to_date,
                or_(
                    ScheduledMaintenance.reminder_14_sent.is_(False),
                    ScheduledMaintenance.reminder_7_sent.is_(False),
                    ScheduledMaintenance.reminder_1_sent.is_(False),
                ),
            )
            .order_by(ScheduledMaintenance.scheduled_date.asc(), ScheduledMaintenance.id.asc())
            .all()
        )

    def earliest_pending_date(self, item_id: int, on_or_after: date) -> Optional[date]:
        """Earliest scheduled date among the item's open schedules from ``on_or_after``."""
        return (
            self.db.query(func.min(ScheduledMaintenance.scheduled_date))
            .filter(
                ScheduledMaintenance.item_id == item_id,
                ScheduledMaintenance.is_completed.is_(False),
                ScheduledMaintenance.scheduled_date >= on_or_after,
            )
            .scalar()
        )

    # ===== COUNTS =====

    def count_all(self) -> int:
        return self.db.query(func.count(ScheduledMaintenance.id)).scalar() or 0

    def count_pending(
        self, from_date: Optional[date] = None, to_date: Optional[date] = None
    ) -> int:
        query = self.db.query(func.count(ScheduledMaintenance.id)).filter(
            ScheduledMaintenance.is_completed.is_(False)
        )
        if from_date is not None:
            query = query.filter(ScheduledMaintenance.scheduled_date >= from_date)
        if to_date is not None:
            query = query.filter(ScheduledMaintenance.scheduled_date <= to_date)
        return query.scalar() or 0

    def count_completed_since(self, since: date) -> int:
        return (
            self.db.query(func.count(ScheduledMaintenance.id))
            .filter(
                ScheduledMaintenance.is_completed.is_(True),
                ScheduledMaintenance.completed_date >= since,
            )
            .scalar()
            or 0
        )
