"""Tests for maintenance reminders and the reminder scheduler."""

import asyncio
import pytest
from datetime import date

from opsconsole.models.maintenance import MaintenanceType, ScheduledMaintenance
from opsconsole.services.maintenance_reminder_service import (
    MaintenanceReminderScheduler,
    ReminderNotifier,
    ReminderSweep,
    due_reminders,
    overdue_alert_due,
)


class RecordingNotifier(ReminderNotifier):
    def __init__(self, fail_for=None):
        self.reminders = []
        self.overdue = []
        self.fail_for = fail_for

    def send_reminder(self, schedule, days_until):
        if schedule.id == self.fail_for:
            raise RuntimeError("mail server down")
        self.reminders.append((schedule.id, days_until))

    def send_overdue_alert(self, schedule, days_overdue):
        self.overdue.append((schedule.id, days_overdue))


def _plan(engine_service, item, when):
    return engine_service.create_schedule(
        item_id=item.id, maintenance_type=MaintenanceType.SERVICING, scheduled_date=when
    ).id


class TestDueReminders:

    def _schedule(self, when, **flags):
        return ScheduledMaintenance(
            scheduled_date=when,
            reminder_14_sent=flags.get("r14", False),
            reminder_7_sent=flags.get("r7", False),
            reminder_1_sent=flags.get("r1", False),
        )

    def test_crossed_thresholds_most_urgent_first(self, today):
        assert due_reminders(self._schedule(date(2024, 4, 20)), today) == []
        assert due_reminders(self._schedule(date(2024, 4, 15)), today) == [14]
        assert due_reminders(self._schedule(date(2024, 4, 6)), today) == [7, 14]
        assert due_reminders(self._schedule(date(2024, 4, 2)), today) == [1, 7, 14]

    def test_sent_flags_are_skipped(self, today):
        schedule = self._schedule(date(2024, 4, 6), r14=True)
        assert due_reminders(schedule, today) == [7]

    def test_overdue_cadence(self, today):
        def overdue_by(days):
            return self._schedule(date.fromordinal(today.toordinal() - days))

        assert not overdue_alert_due(overdue_by(0), today)
        assert overdue_alert_due(overdue_by(1), today)
        assert not overdue_alert_due(overdue_by(3), today)
        assert overdue_alert_due(overdue_by(7), today)
        assert overdue_alert_due(overdue_by(14), today)


class TestReminderSweep:

    def test_sends_most_urgent_and_marks_all_crossed(
        self, db_session, engine_service, test_item, clock
    ):
        soon = _plan(engine_service, test_item, date(2024, 4, 6))
        later = _plan(engine_service, test_item, date(2024, 4, 12))
        far = _plan(engine_service, test_item, date(2024, 5, 20))
        notifier = RecordingNotifier()

        summary = ReminderSweep(notifier=notifier, clock=clock).run(db_session)

        assert summary == {"reminders_sent": 2, "overdue_alerts_sent": 0, "failed": 0}
        assert notifier.reminders == [(soon, 5), (later, 11)]

        db_session.expire_all()
        soon_row = db_session.get(ScheduledMaintenance, soon)
        assert soon_row.reminder_14_sent and soon_row.reminder_7_sent
        assert not soon_row.reminder_1_sent
        later_row = db_session.get(ScheduledMaintenance, later)
        assert later_row.reminder_14_sent and not later_row.reminder_7_sent
        assert not db_session.get(ScheduledMaintenance, far).reminder_14_sent

    def test_second_sweep_same_day_is_quiet(self, db_session, engine_service, test_item, clock):
        _plan(engine_service, test_item, date(2024, 4, 6))
        ReminderSweep(notifier=RecordingNotifier(), clock=clock).run(db_session)

        notifier = RecordingNotifier()
        summary = ReminderSweep(notifier=notifier, clock=clock).run(db_session)

        assert summary["reminders_sent"] == 0
        assert notifier.reminders == []

    def test_overdue_alerts(self, db_session, engine_service, test_item, clock):
        yesterday = _plan(engine_service, test_item, date(2024, 3, 31))
        _plan(engine_service, test_item, date(2024, 3, 29))
        week_ago = _plan(engine_service, test_item, date(2024, 3, 25))
        notifier = RecordingNotifier()

        summary = ReminderSweep(notifier=notifier, clock=clock).run(db_session)

        assert summary["overdue_alerts_sent"] == 2
        assert notifier.overdue == [(week_ago, 7), (yesterday, 1)]

    def test_failed_delivery_leaves_flags_unset(self, db_session, engine_service, test_item, clock):
        broken = _plan(engine_service, test_item, date(2024, 4, 6))
        notifier = RecordingNotifier(fail_for=broken)

        summary = ReminderSweep(notifier=notifier, clock=clock).run(db_session)

        assert summary["failed"] == 1
        db_session.expire_all()
        assert not db_session.get(ScheduledMaintenance, broken).reminder_14_sent


class TestReminderScheduler:

    def test_run_once_records_status(self, session_factory, engine_service, test_item, clock):
        _plan(engine_service, test_item, date(2024, 4, 6))
        scheduler = MaintenanceReminderScheduler(
            session_factory, interval_seconds=60, notifier=RecordingNotifier(), clock=clock
        )

        result = scheduler.run_once()

        status = scheduler.get_status()
        assert result["reminders_sent"] == 1
        assert status["run_count"] == 1
        assert status["last_result"] == result
        assert status["last_error"] is None
        assert status["last_run"] is not None
        assert status["running"] is False

    def test_start_and_stop(self, session_factory, clock):
        scheduler = MaintenanceReminderScheduler(
            session_factory, interval_seconds=3600, notifier=RecordingNotifier(), clock=clock
        )

        async def scenario():
            scheduler.start()
            assert scheduler.is_running
            scheduler.start()
            scheduler.stop()
            assert not scheduler.is_running

        asyncio.run(scenario())
        assert scheduler.get_status()["running"] is False
