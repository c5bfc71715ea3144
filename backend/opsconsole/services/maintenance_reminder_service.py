"""Maintenance reminders - 14/7/1-day notices and overdue alerts.

The sweep is a plain function of (session, today); the scheduler object only
decides *when* it runs. Delivery goes through a ``ReminderNotifier``; the
default one writes to the log.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from opsconsole.core.clock import Clock, local_today, utc_now
from opsconsole.core.config import settings
from opsconsole.models.maintenance import ScheduledMaintenance, format_maintenance_type
from opsconsole.services.maintenance_query_service import MaintenanceQueryService
from opsconsole.services.maintenance_scheduler_service import MaintenanceSchedulerService

logger = logging.getLogger(__name__)

OVERDUE_REPEAT_DAYS = 7


def due_reminders(
    schedule: ScheduledMaintenance,
    today: date,
    thresholds: Optional[Sequence[int]] = None,
) -> List[int]:
    """Crossed reminder thresholds not yet sent, most urgent first."""
    if thresholds is None:
        thresholds = settings.maintenance_reminder_thresholds
    days_until = (schedule.scheduled_date - today).days
    return sorted(
        days for days in thresholds if days_until <= days and not schedule.reminder_sent(days)
    )


def overdue_alert_due(schedule: ScheduledMaintenance, today: date) -> bool:
    """Alert on the first day overdue, then once a week."""
    days_overdue = (today - schedule.scheduled_date).days
    return days_overdue == 1 or (days_overdue > 0 and days_overdue % OVERDUE_REPEAT_DAYS == 0)


class ReminderNotifier:
    """Delivery hook for reminders. Subclass to send email, push, etc."""

    def send_reminder(self, schedule: ScheduledMaintenance, days_until: int) -> None:
        raise NotImplementedError

    def send_overdue_alert(self, schedule: ScheduledMaintenance, days_overdue: int) -> None:
        raise NotImplementedError


class LoggingNotifier(ReminderNotifier):
    def send_reminder(self, schedule: ScheduledMaintenance, days_until: int) -> None:
        item_title = schedule.item.title if schedule.item else f"item {schedule.item_id}"
        logger.info(
            f"Maintenance reminder: {format_maintenance_type(schedule.maintenance_type)} "
            f"for {item_title} due in {days_until} day(s) on {schedule.scheduled_date}"
        )

    def send_overdue_alert(self, schedule: ScheduledMaintenance, days_overdue: int) -> None:
        item_title = schedule.item.title if schedule.item else f"item {schedule.item_id}"
        logger.warning(
            f"Maintenance overdue: {format_maintenance_type(schedule.maintenance_type)} "
            f"for {item_title} was due {schedule.scheduled_date} ({days_overdue} day(s) ago)"
        )


class ReminderSweep:
    """One pass over open schedules: upcoming reminders then overdue alerts."""

    def __init__(self, notifier: Optional[ReminderNotifier] = None, clock: Optional[Clock] = None):
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or utc_now

    def run(self, db: Session) -> Dict[str, int]:
        today = local_today(self.clock())
        queries = MaintenanceQueryService(db, clock=self.clock)
        engine = MaintenanceSchedulerService(db, clock=self.clock)
        summary = {"reminders_sent": 0, "overdue_alerts_sent": 0, "failed": 0}

        for schedule in queries.get_schedules_needing_reminders():
            due = due_reminders(schedule, today)
            if not due:
                continue
            schedule_id = schedule.id
            try:
                # Only the most urgent notice goes out; skipped ones are marked too
                self.notifier.send_reminder(schedule, (schedule.scheduled_date - today).days)
                engine.mark_reminders_sent(schedule_id, due)
                summary["reminders_sent"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"Reminder for schedule {schedule_id} failed: {e}")

        for schedule in queries.get_overdue():
            if not overdue_alert_due(schedule, today):
                continue
            try:
                self.notifier.send_overdue_alert(schedule, (today - schedule.scheduled_date).days)
                summary["overdue_alerts_sent"] += 1
            except Exception as e:
                summary["failed"] += 1
                logger.error(f"Overdue alert for schedule {schedule.id} failed: {e}")

        logger.info(f"Maintenance reminder sweep for {today}: {summary}")
        return summary


class MaintenanceReminderScheduler:
    """Runs the reminder sweep on a fixed interval inside the event loop.

    Owned by the application lifespan; nothing here is module-global.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: Optional[int] = None,
        notifier: Optional[ReminderNotifier] = None,
        clock: Optional[Clock] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.maintenance_reminder_interval_seconds
        self.sweep = ReminderSweep(notifier=notifier, clock=clock)
        self._running = False
        self._task_handle: Optional[asyncio.Task] = None
        self.last_run: Optional[datetime] = None
        self.last_result: Optional[Dict[str, int]] = None
        self.last_error: Optional[str] = None
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Schedule the loop on the running event loop. Calling twice is a no-op."""
        if self._running:
            logger.debug("Maintenance reminder scheduler already running")
            return
        self._running = True
        self._task_handle = asyncio.create_task(self._loop())
        logger.info(f"Maintenance reminder scheduler started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        self._running = False
        if self._task_handle:
            self._task_handle.cancel()
            self._task_handle = None
        logger.info("Maintenance reminder scheduler stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                await asyncio.to_thread(self.run_once)
            except Exception as e:
                logger.error(f"Maintenance reminder sweep failed: {e}")
            await asyncio.sleep(self.interval_seconds)

    def run_once(self) -> Dict[str, int]:
        """Run one sweep on a fresh session."""
        db = self.session_factory()
        try:
            result = self.sweep.run(db)
        except Exception as e:
            self.last_error = str(e)
            raise
        finally:
            db.close()
            self.last_run = utc_now()
        self.run_count += 1
        self.last_result = result
        self.last_error = None
        return result

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "interval_seconds": self.interval_seconds,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "last_result": self.last_result,
            "last_error": self.last_error,
        }
