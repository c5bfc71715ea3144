"""Tests for scheduled maintenance listings and stats."""

import pytest
from datetime import date

from opsconsole.core.exceptions import NotFound
from opsconsole.models.maintenance import MaintenanceType


@pytest.fixture
def calendar(engine_service, make_item):
    """Schedules around 2024-04-01 for two items."""
    drill = make_item(title="Drill")
    scale = make_item(title="Scale")

    def plan(item, when, maintenance_type=MaintenanceType.INSPECTION):
        return engine_service.create_schedule(
            item_id=item.id, maintenance_type=maintenance_type, scheduled_date=when
        )

    schedules = {
        "last_month": plan(drill, date(2024, 3, 10)),
        "today": plan(drill, date(2024, 4, 1)),
        "next_week": plan(scale, date(2024, 4, 8), MaintenanceType.CALIBRATION),
        "in_three_weeks": plan(scale, date(2024, 4, 22)),
        "in_two_months": plan(drill, date(2024, 6, 1)),
        "done": plan(scale, date(2024, 4, 3)),
    }
    engine_service.mark_completed(schedules["done"].id, 1)
    return {"drill": drill, "scale": scale, **{k: v.id for k, v in schedules.items()}}


class TestListings:

    def test_filters_and_order(self, queries, calendar):
        everything = queries.get_schedules()
        dates = [s.scheduled_date for s in everything]
        assert dates == sorted(dates)
        assert len(everything) == 6

        drill_only = queries.get_schedules(item_id=calendar["drill"].id)
        assert {s.id for s in drill_only} == {
            calendar["last_month"], calendar["today"], calendar["in_two_months"]
        }

        calibrations = queries.get_schedules(maintenance_type=MaintenanceType.CALIBRATION)
        assert [s.id for s in calibrations] == [calendar["next_week"]]

        april = queries.get_schedules(from_date=date(2024, 4, 1), to_date=date(2024, 4, 30))
        assert len(april) == 4

        assert [s.id for s in queries.get_schedules(is_completed=True)] == [calendar["done"]]

    def test_get_schedule(self, queries, calendar):
        assert queries.get_schedule(calendar["today"]).scheduled_date == date(2024, 4, 1)
        with pytest.raises(NotFound):
            queries.get_schedule(999)

    def test_upcoming(self, queries, calendar):
        assert [s.id for s in queries.get_upcoming()] == [
            calendar["today"], calendar["next_week"], calendar["in_three_weeks"]
        ]
        assert [s.id for s in queries.get_upcoming(days=7)] == [
            calendar["today"], calendar["next_week"]
        ]

    def test_overdue_includes_today(self, queries, calendar):
        assert [s.id for s in queries.get_overdue()] == [calendar["last_month"], calendar["today"]]

    def test_needing_reminders(self, engine_service, queries, calendar):
        assert [s.id for s in queries.get_schedules_needing_reminders()] == [
            calendar["today"], calendar["next_week"]
        ]

        for days in (14, 7, 1):
            engine_service.mark_reminder_sent(calendar["next_week"], days)

        assert [s.id for s in queries.get_schedules_needing_reminders()] == [calendar["today"]]


class TestStats:

    def test_stats(self, queries, calendar):
        assert queries.get_stats() == {
            "total": 6,
            "upcoming": 4,
            "overdue": 2,
            "completed_this_month": 1,
        }

    def test_empty(self, queries):
        assert queries.get_stats() == {
            "total": 0,
            "upcoming": 0,
            "overdue": 0,
            "completed_this_month": 0,
        }
