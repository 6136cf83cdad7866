from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from pharmacy_reports.api.auth import RequireDashboardAccess, RequireEmailAccess, UserInfo
from pharmacy_reports.config import settings
from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.data.catalog import Catalog, get_catalog
from pharmacy_reports.schemas.analytics import EmailDraft, MonthlyTrend, WeeklyTrend, WeekSummary
from pharmacy_reports.services.aggregation import aggregate_week, index_by_pharmacy
from pharmacy_reports.services.dashboard import build_monthly_trend, build_week_summary, build_weekly_trend
from pharmacy_reports.services.deadline import DeadlinePolicy
from pharmacy_reports.services.email_service import draft_email
from pharmacy_reports.services.report_store import SubmissionStore, get_store
from pharmacy_reports.services.revenue import revenue_of
from pharmacy_reports.services.snapshot import (
    LatestOnly,
    Superseded,
    load_monthly_history,
    load_week,
    load_weekly_history,
)
from pharmacy_reports.services.time_series import MONTHLY_WINDOW, WEEKLY_WINDOW
from pharmacy_reports.services.weeks import current_week, fmt_week, parse_week

logger = get_logger(__name__)
router = APIRouter(prefix="/analytics", tags=["analytics"])

# One sequence per viewer session and view: a newer request discards the older in-flight one.
_latest = LatestOnly()


def get_now() -> datetime:
    return datetime.now(timezone.utc)


def get_policy() -> DeadlinePolicy:
    return DeadlinePolicy.from_settings(settings)


def _resolve_week(week: Optional[str], now: datetime) -> date:
    return parse_week(week) or current_week(settings.timezone, now)


async def _latest_or_409(key, awaitable):
    try:
        return await _latest.run(key, awaitable)
    except Superseded:
        raise HTTPException(status_code=409, detail="Superseded by a newer request")


@router.get("/week", response_model=WeekSummary)
async def analytics_week(
    week: Optional[str] = Query(None, description="Any date in the week (YYYY-MM-DD)"),
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    policy: DeadlinePolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
    user: UserInfo = Depends(RequireDashboardAccess),
):
    """Week KPIs vs the previous week, category/service rollups, per-site status."""
    wk = _resolve_week(week, now)
    snapshot = await _latest_or_409((user.session_id, "week"), load_week(store, wk))
    return build_week_summary(snapshot, catalog, now, policy)


@router.get("/trend/weekly", response_model=WeeklyTrend)
async def analytics_trend_weekly(
    week: Optional[str] = Query(None),
    weeks: int = Query(WEEKLY_WINDOW, ge=1, le=104),
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    now: datetime = Depends(get_now),
    user: UserInfo = Depends(RequireDashboardAccess),
):
    """Group and per-site revenue for the last N weeks, zero-filled, oldest first."""
    wk = _resolve_week(week, now)
    history = await _latest_or_409(
        (user.session_id, "trend/weekly"),
        load_weekly_history(store, wk, weeks),
    )
    return build_weekly_trend(history, catalog, weeks)


@router.get("/trend/monthly", response_model=MonthlyTrend)
async def analytics_trend_monthly(
    week: Optional[str] = Query(None),
    weeks: int = Query(MONTHLY_WINDOW, ge=1, le=156),
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    now: datetime = Depends(get_now),
    user: UserInfo = Depends(RequireDashboardAccess),
):
    """Last N weeks collapsed into months (by each week's Monday), with month-over-month per site."""
    wk = _resolve_week(week, now)
    history = await _latest_or_409(
        (user.session_id, "trend/monthly"),
        load_monthly_history(store, wk, weeks),
    )
    return build_monthly_trend(history, catalog, weeks)


@router.get("/export")
async def analytics_export(
    week: Optional[str] = Query(None),
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    now: datetime = Depends(get_now),
    _user: UserInfo = Depends(RequireDashboardAccess),
):
    """Service × pharmacy revenue grid for the week as CSV. N/S = not submitted."""
    wk = _resolve_week(week, now)
    submissions = await store.fetch_by_week(wk)
    by_pharmacy = index_by_pharmacy(submissions, catalog)
    agg = aggregate_week(submissions, catalog)

    def _row(*cells):
        return ",".join('"' + str(c).replace('"', '""') + '"' for c in cells) + "\r\n"

    lines = [
        _row("Week commencing", fmt_week(wk)),
        _row("", ""),
        _row("Service", "Category", *catalog.pharmacies, "Total"),
    ]
    for svc in catalog.services:
        cells = []
        for name in catalog.pharmacies:
            sub = by_pharmacy.get(name)
            cells.append(f"{revenue_of(svc, sub):.2f}" if sub is not None else "N/S")
        total = agg.service(svc.id).revenue
        lines.append(_row(svc.label, svc.category, *cells, f"{total:.2f}"))
    lines.append(
        _row(
            "Total",
            "",
            *[f"{p.revenue:.2f}" if p.submitted else "N/S" for p in agg.per_pharmacy],
            f"{agg.total_revenue:.2f}",
        )
    )
    content = "\ufeff" + "".join(lines)  # BOM for Excel UTF-8
    filename = f"weekly_report_{wk.isoformat()}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/email", response_model=EmailDraft)
async def analytics_email(
    week: Optional[str] = Query(None),
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    policy: DeadlinePolicy = Depends(get_policy),
    now: datetime = Depends(get_now),
    user: UserInfo = Depends(RequireEmailAccess),
):
    """Draft the weekly CEO summary. A failed generation returns fallback text, not an error."""
    wk = _resolve_week(week, now)

    async def _draft() -> EmailDraft:
        snapshot = await load_week(store, wk)
        summary = build_week_summary(snapshot, catalog, now, policy)
        return await draft_email(summary, settings)

    return await _latest_or_409((user.session_id, "email"), _draft())
