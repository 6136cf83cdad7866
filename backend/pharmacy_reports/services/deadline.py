"""
Submission deadline status per (pharmacy, week).

Cutoff instant = week key + offset days, at the configured hour in the group's timezone.
Status is a projection of submission state against "now": recomputed on every read, never stored.
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from pharmacy_reports.services.weeks import as_utc, week_key

URGENT_WINDOW = timedelta(hours=2)


class SubmissionState(str, enum.Enum):
    ON_TIME = "ON_TIME"
    LATE = "LATE"
    OVERDUE = "OVERDUE"
    PENDING_HOURS_LEFT = "PENDING_HOURS_LEFT"
    PENDING = "PENDING"


@dataclass(frozen=True)
class DeadlinePolicy:
    hour: int = 12
    offset_days: int = 0
    timezone: str = "Europe/London"

    @classmethod
    def from_settings(cls, settings) -> "DeadlinePolicy":
        return cls(
            hour=settings.deadline_hour,
            offset_days=settings.deadline_offset_days,
            timezone=settings.timezone,
        )


@dataclass(frozen=True)
class DeadlineStatus:
    state: SubmissionState
    hours_left: Optional[int] = None

    @property
    def submitted(self) -> bool:
        return self.state in (SubmissionState.ON_TIME, SubmissionState.LATE)

    @property
    def label(self) -> str:
        if self.state == SubmissionState.ON_TIME:
            return "Submitted on time"
        if self.state == SubmissionState.LATE:
            return "Submitted late"
        if self.state == SubmissionState.OVERDUE:
            return "Overdue"
        if self.state == SubmissionState.PENDING_HOURS_LEFT:
            return f"Due in {self.hours_left}h"
        return "Pending"


def cutoff_for(week: date, policy: DeadlinePolicy) -> datetime:
    day = week_key(week) + timedelta(days=policy.offset_days)
    return datetime.combine(day, time(hour=policy.hour), tzinfo=ZoneInfo(policy.timezone))


def _round_hours(remaining: timedelta) -> int:
    seconds = int(remaining.total_seconds())
    return (seconds + 1800) // 3600


def evaluate(
    week: date,
    submitted_at: Optional[datetime],
    now: datetime,
    policy: DeadlinePolicy,
) -> DeadlineStatus:
    cutoff = cutoff_for(week, policy)
    if submitted_at is not None:
        if as_utc(submitted_at) <= cutoff:
            return DeadlineStatus(SubmissionState.ON_TIME)
        return DeadlineStatus(SubmissionState.LATE)
    now = as_utc(now)
    if now > cutoff:
        return DeadlineStatus(SubmissionState.OVERDUE)
    remaining = cutoff - now
    if remaining <= URGENT_WINDOW:
        return DeadlineStatus(SubmissionState.PENDING_HOURS_LEFT, _round_hours(remaining))
    return DeadlineStatus(SubmissionState.PENDING)


@dataclass(frozen=True)
class ComplianceCounts:
    on_time: int = 0
    late: int = 0
    overdue: int = 0
    pending: int = 0


def compliance_counts(statuses: Iterable[DeadlineStatus]) -> ComplianceCounts:
    on_time = late = overdue = pending = 0
    for st in statuses:
        if st.state == SubmissionState.ON_TIME:
            on_time += 1
        elif st.state == SubmissionState.LATE:
            late += 1
        elif st.state == SubmissionState.OVERDUE:
            overdue += 1
        else:
            pending += 1
    return ComplianceCounts(on_time=on_time, late=late, overdue=overdue, pending=pending)
