"""Week keys (Monday dates), week arithmetic and display formatting."""
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from zoneinfo import ZoneInfo


def week_key(d: date) -> date:
    """Monday of the ISO week containing d."""
    if isinstance(d, datetime):
        d = d.date()
    return d - timedelta(days=d.weekday())


def week_offset(week: date, offset: int) -> date:
    return week_key(week) + timedelta(weeks=offset)


def recent_weeks(current: date, count: int) -> List[date]:
    """count week keys ending at (and including) current, oldest first."""
    current = week_key(current)
    return [week_offset(current, -i) for i in range(count - 1, -1, -1)]


def month_key(week: date) -> str:
    """Year-month of the week's Monday: a week spanning two months belongs to the first."""
    return week_key(week).strftime("%Y-%m")


def current_week(tz_name: str, now: Optional[datetime] = None) -> date:
    now = now or datetime.now(timezone.utc)
    return week_key(now.astimezone(ZoneInfo(tz_name)).date())


def parse_week(s: Optional[str]) -> Optional[date]:
    """YYYY-MM-DD → week key; None for empty or invalid input."""
    if not s:
        return None
    try:
        return week_key(datetime.strptime(s, "%Y-%m-%d").date())
    except ValueError:
        return None


def as_utc(dt: datetime) -> datetime:
    """Naive timestamps are stored and read as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def fmt_week(week: date) -> str:
    """29 Jan 2024"""
    return f"{week.day} {week.strftime('%b %Y')}"


def fmt_gbp(amount) -> str:
    """£1,234.50"""
    return "£{:,.2f}".format(Decimal(amount or 0))
