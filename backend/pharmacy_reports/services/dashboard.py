"""Dashboard views assembled from a loaded snapshot. Pure: no I/O, "now" is passed in."""
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, Tuple

from pharmacy_reports.data.catalog import Catalog
from pharmacy_reports.schemas.analytics import (
    CategoryTotal,
    ComplianceStat,
    DeltaOut,
    MonthlyTrend,
    PharmacyChange,
    PharmacyStat,
    ServiceStat,
    TrendPoint,
    WeeklyTrend,
    WeekSummary,
)
from pharmacy_reports.services.aggregation import WeekAggregate, aggregate_week
from pharmacy_reports.services.comparison import delta
from pharmacy_reports.services.deadline import DeadlinePolicy, compliance_counts, cutoff_for, evaluate
from pharmacy_reports.services.revenue import ZERO
from pharmacy_reports.services.snapshot import HistorySnapshot, WeekSnapshot
from pharmacy_reports.services.time_series import (
    MONTHLY_WINDOW,
    WEEKLY_WINDOW,
    Bucket,
    month_over_month,
    monthly_series,
    weekly_series,
)
from pharmacy_reports.services.weeks import fmt_week


PENNY = Decimal("0.01")


def site_kpis(agg: WeekAggregate, roster_size: int) -> Tuple[int, int, Decimal, Optional[str], Decimal]:
    """(pending, submission rate %, average per submitted site, top site, its revenue)."""
    submitted = agg.submitted_count
    pending = roster_size - submitted
    rate = 0
    if roster_size:
        rate = int((Decimal(submitted) * 100 / roster_size).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    avg = ZERO
    if submitted:
        avg = agg.total_revenue / submitted
    rows = [r for r in agg.per_pharmacy if r.submitted]
    # max() keeps the first of equal revenues, i.e. roster order
    top = max(rows, key=lambda r: r.revenue) if rows else None
    return (
        pending,
        rate,
        avg.quantize(PENNY, rounding=ROUND_HALF_UP),
        top.pharmacy if top else None,
        top.revenue if top else ZERO,
    )


def build_week_summary(
    snapshot: WeekSnapshot,
    catalog: Catalog,
    now: datetime,
    policy: DeadlinePolicy,
) -> WeekSummary:
    current = aggregate_week(snapshot.current, catalog)
    previous = aggregate_week(snapshot.previous, catalog)

    services: List[ServiceStat] = []
    for st in current.service_totals:
        prev = previous.service(st.service.id)
        prev_rev = prev.revenue if prev else ZERO
        services.append(
            ServiceStat(
                id=st.service.id,
                label=st.service.label,
                category=st.service.category,
                fee=st.service.fee,
                count=st.count,
                revenue=st.revenue,
                previous_revenue=prev_rev,
                change=DeltaOut.from_delta(delta(st.revenue, prev_rev)),
            )
        )

    pharmacies: List[PharmacyStat] = []
    statuses = []
    for row in current.per_pharmacy:
        prev_row = previous.pharmacy(row.pharmacy)
        sub = row.submission
        status = evaluate(snapshot.week, sub.submitted_at if sub else None, now, policy)
        statuses.append(status)
        # per-site change only when both weeks were submitted
        change = None
        if row.submitted and prev_row is not None and prev_row.submitted:
            change = DeltaOut.from_delta(delta(row.revenue, prev_row.revenue))
        pharmacies.append(
            PharmacyStat(
                pharmacy=row.pharmacy,
                submitted=row.submitted,
                revenue=row.revenue,
                previous_revenue=prev_row.revenue if prev_row else ZERO,
                sessions=row.sessions,
                change=change,
                status=status.state.value,
                status_label=status.label,
                hours_left=status.hours_left,
                submitted_at=sub.submitted_at if sub else None,
                notes=sub.notes if sub else None,
            )
        )

    counts = compliance_counts(statuses)
    pending, rate, avg, top_site, top_revenue = site_kpis(current, len(catalog.pharmacies))
    return WeekSummary(
        week=snapshot.week,
        week_label=fmt_week(snapshot.week),
        previous_week=snapshot.previous_week,
        total_revenue=current.total_revenue,
        previous_total_revenue=previous.total_revenue,
        revenue_change=DeltaOut.from_delta(delta(current.total_revenue, previous.total_revenue)),
        total_sessions=current.total_sessions,
        previous_total_sessions=previous.total_sessions,
        sessions_change=DeltaOut.from_delta(delta(current.total_sessions, previous.total_sessions)),
        submitted_count=current.submitted_count,
        pharmacy_count=len(catalog.pharmacies),
        pending_count=pending,
        submission_rate=rate,
        avg_per_site=avg,
        top_site=top_site,
        top_site_revenue=top_revenue,
        categories=[CategoryTotal(category=c, revenue=v) for c, v in current.category_totals.items()],
        services=services,
        pharmacies=pharmacies,
        compliance=ComplianceStat(
            on_time=counts.on_time,
            late=counts.late,
            overdue=counts.overdue,
            pending=counts.pending,
            cutoff=cutoff_for(snapshot.week, policy),
        ),
    )


def _points(buckets: List[Bucket]) -> List[TrendPoint]:
    return [
        TrendPoint(period=b.period, total=b.total, submissions=b.submissions, pharmacies=dict(b.pharmacies))
        for b in buckets
    ]


def build_weekly_trend(history: HistorySnapshot, catalog: Catalog, weeks: int = WEEKLY_WINDOW) -> WeeklyTrend:
    buckets = weekly_series(history.week, history.weekly, catalog, weeks)
    return WeeklyTrend(week=history.week, weeks=weeks, points=_points(buckets))


def build_monthly_trend(history: HistorySnapshot, catalog: Catalog, weeks: int = MONTHLY_WINDOW) -> MonthlyTrend:
    buckets = monthly_series(history.week, history.monthly, catalog, weeks)
    changes = month_over_month(buckets, catalog)
    mom = []
    for name in catalog.pharmacies:
        current = buckets[-1].pharmacies[name] if buckets else ZERO
        previous = buckets[-2].pharmacies[name] if len(buckets) > 1 else ZERO
        mom.append(
            PharmacyChange(
                pharmacy=name,
                current=current,
                previous=previous,
                change=DeltaOut.from_delta(changes.get(name)),
            )
        )
    return MonthlyTrend(week=history.week, weeks=weeks, points=_points(buckets), month_over_month=mom)
