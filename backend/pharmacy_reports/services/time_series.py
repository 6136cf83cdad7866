"""
Trend buckets for charts.

Every period in the window is present, zero-filled, oldest first: empty weeks
show as gaps instead of shortening the axis.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pharmacy_reports.data.catalog import Catalog
from pharmacy_reports.services.comparison import Delta, delta
from pharmacy_reports.services.revenue import ZERO, effective_revenue
from pharmacy_reports.services.weeks import month_key, recent_weeks, week_key

WEEKLY_WINDOW = 12
MONTHLY_WINDOW = 26


@dataclass
class Bucket:
    period: str  # week key ISO date, or YYYY-MM
    total: Decimal = ZERO
    pharmacies: Dict[str, Decimal] = field(default_factory=dict)
    submissions: int = 0


def _empty_buckets(periods: List[str], catalog: Catalog) -> Dict[str, Bucket]:
    return {p: Bucket(period=p, pharmacies={name: ZERO for name in catalog.pharmacies}) for p in periods}


def _fold(bucket: Bucket, submission, catalog: Catalog) -> None:
    # off-roster rows are dropped, same as the week aggregate
    if submission.pharmacy not in bucket.pharmacies:
        return
    rev = effective_revenue(submission, catalog)
    bucket.total += rev
    bucket.submissions += 1
    bucket.pharmacies[submission.pharmacy] += rev


def weekly_series(
    current: date,
    submissions: Iterable,
    catalog: Catalog,
    weeks: int = WEEKLY_WINDOW,
) -> List[Bucket]:
    keys = [w.isoformat() for w in recent_weeks(current, weeks)]
    buckets = _empty_buckets(keys, catalog)
    for sub in submissions or []:
        bucket = buckets.get(week_key(sub.week).isoformat())
        if bucket is not None:
            _fold(bucket, sub, catalog)
    return [buckets[k] for k in keys]


def monthly_series(
    current: date,
    submissions: Iterable,
    catalog: Catalog,
    weeks: int = MONTHLY_WINDOW,
) -> List[Bucket]:
    window = recent_weeks(current, weeks)
    in_window = set(window)
    months: List[str] = []
    for w in window:
        m = month_key(w)
        if m not in months:
            months.append(m)
    buckets = _empty_buckets(months, catalog)
    for sub in submissions or []:
        w = week_key(sub.week)
        if w not in in_window:
            continue
        _fold(buckets[month_key(w)], sub, catalog)
    return [buckets[m] for m in months]


def month_over_month(series: List[Bucket], catalog: Catalog) -> Dict[str, Optional[Delta]]:
    """Per-pharmacy change between the last two buckets."""
    if len(series) < 2:
        return {name: None for name in catalog.pharmacies}
    prev, last = series[-2], series[-1]
    return {
        name: delta(last.pharmacies.get(name, ZERO), prev.pharmacies.get(name, ZERO))
        for name in catalog.pharmacies
    }
