"""
Business-day helpers.

Timestamps are written in UTC. Pay periods are calendar days in the
barangay's own zone (PAYROLL_TIMEZONE), so an entry made at 06:00 on the 16th
in Manila belongs to the second half of the month even though its UTC stamp
still reads the 15th.
"""
from datetime import date, datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from brgy_payroll.core.config import settings


@lru_cache(maxsize=None)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def payroll_zone() -> ZoneInfo:
    return _zone(settings.payroll.timezone)


def to_utc(moment: datetime) -> datetime:
    # SQLite hands back naive values; they were written as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def local_date(moment) -> date:
    """Calendar day of `moment` in the payroll zone. Plain dates pass through."""
    if isinstance(moment, datetime):
        return to_utc(moment).astimezone(payroll_zone()).date()
    return moment
