"""Date manipulation utilities"""

from datetime import date, datetime
from typing import Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """Calendar month addition, clamped to month end (Jan 31 + 1 = Feb 28/29)"""
    return from_date + relativedelta(months=months)


def month_key(value: date) -> str:
    """YYYY-MM bucket for a date"""
    return value.isoformat()[:7]


def next_month_key(value: date) -> str:
    """YYYY-MM of the month after `value`, rolling over December"""
    return month_key(value.replace(day=1) + relativedelta(months=1))


def parse_iso_date(value: Union[str, date]) -> date:
    """Parse YYYY-MM-DD as a plain calendar date (no UTC conversion)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def today_in(timezone: str) -> date:
    """Calendar date right now in the given IANA zone"""
    return datetime.now(ZoneInfo(timezone)).date()
