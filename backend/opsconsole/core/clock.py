"""Wall-clock helpers.

Services take an optional ``clock`` callable returning an aware datetime so
tests can pin "now". Calendar dates ("today") are evaluated in the configured
business timezone, not UTC.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Callable, Optional
from zoneinfo import ZoneInfo

from fastapi import Depends

from opsconsole.core.config import settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_today(now: Optional[datetime] = None) -> date:
    """Calendar date in the business timezone for ``now`` (default: current time)."""
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(settings.timezone)).date()


def get_clock() -> Clock:
    """FastAPI dependency; tests override it to pin the date."""
    return utc_now


ClockDep = Annotated[Clock, Depends(get_clock)]
