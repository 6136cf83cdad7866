from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel

from pharmacy_reports.services.comparison import Delta


class DeltaOut(BaseModel):
    """Change vs the previous period; absent when there is nothing to compare against."""

    direction: str  # up | down | flat
    magnitude_percent: Decimal
    arrow: str

    @classmethod
    def from_delta(cls, d: Optional[Delta]) -> Optional["DeltaOut"]:
        if d is None:
            return None
        return cls(direction=d.direction.value, magnitude_percent=d.magnitude_percent, arrow=d.arrow)


class CategoryTotal(BaseModel):
    category: str
    revenue: Decimal


class ServiceStat(BaseModel):
    id: str
    label: str
    category: str
    fee: Optional[Decimal] = None
    count: Optional[int] = None  # None for variable-fee services
    revenue: Decimal
    previous_revenue: Decimal
    change: Optional[DeltaOut] = None


class PharmacyStat(BaseModel):
    pharmacy: str
    submitted: bool
    revenue: Decimal
    previous_revenue: Decimal
    sessions: int
    change: Optional[DeltaOut] = None
    status: str
    status_label: str
    hours_left: Optional[int] = None
    submitted_at: Optional[datetime] = None
    notes: Optional[str] = None


class ComplianceStat(BaseModel):
    on_time: int
    late: int
    overdue: int
    pending: int
    cutoff: datetime


class WeekSummary(BaseModel):
    """Everything the dashboard shows for one week."""

    week: date
    week_label: str
    previous_week: date
    total_revenue: Decimal
    previous_total_revenue: Decimal
    revenue_change: Optional[DeltaOut] = None
    total_sessions: int
    previous_total_sessions: int
    sessions_change: Optional[DeltaOut] = None
    submitted_count: int
    pharmacy_count: int
    pending_count: int
    submission_rate: int  # whole percent of the roster
    avg_per_site: Decimal  # over submitted sites only
    top_site: Optional[str] = None
    top_site_revenue: Decimal
    categories: List[CategoryTotal]
    services: List[ServiceStat]
    pharmacies: List[PharmacyStat]
    compliance: ComplianceStat


class TrendPoint(BaseModel):
    period: str  # week key (YYYY-MM-DD) or month (YYYY-MM)
    total: Decimal
    submissions: int
    pharmacies: Dict[str, Decimal]


class PharmacyChange(BaseModel):
    pharmacy: str
    current: Decimal
    previous: Decimal
    change: Optional[DeltaOut] = None


class WeeklyTrend(BaseModel):
    week: date
    weeks: int
    points: List[TrendPoint]


class MonthlyTrend(BaseModel):
    week: date
    weeks: int
    points: List[TrendPoint]
    month_over_month: List[PharmacyChange]


class EmailDraft(BaseModel):
    week: date
    subject: str
    body: str
    mailto: str
    generated: bool
