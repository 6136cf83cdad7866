"""Weekly entry: catalog for the form, prefill of an existing submission, upsert."""
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pharmacy_reports.api.auth import RequireEntryAccess, UserInfo
from pharmacy_reports.config import settings
from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.data.catalog import Catalog, get_catalog
from pharmacy_reports.schemas.report import (
    CatalogResponse,
    ServiceItem,
    SubmissionCreate,
    SubmissionResponse,
)
from pharmacy_reports.services.report_store import StoreWriteError, SubmissionStore, get_store
from pharmacy_reports.services.weeks import current_week, parse_week

logger = get_logger(__name__)
router = APIRouter(prefix="/reports", tags=["reports"])


def _restrict_to_catalog(body: SubmissionCreate, catalog: Catalog) -> SubmissionCreate:
    """Counts only for fixed-fee services, revenues only for variable ones; zeros dropped."""
    counts = {}
    revenues = {}
    for s in catalog.services:
        if s.is_variable:
            amount = body.revenues.get(s.id)
            if amount:
                revenues[s.id] = amount
        else:
            n = body.counts.get(s.id)
            if n:
                counts[s.id] = n
    return body.model_copy(update={"counts": counts, "revenues": revenues})


@router.get("/catalog", response_model=CatalogResponse)
async def get_report_catalog(
    catalog: Catalog = Depends(get_catalog),
    _user: UserInfo = Depends(RequireEntryAccess),
):
    """Pharmacies, categories and services for the entry form; the week defaults to the current one."""
    return CatalogResponse(
        pharmacies=list(catalog.pharmacies),
        categories=list(catalog.categories),
        services=[ServiceItem(id=s.id, label=s.label, fee=s.fee, category=s.category) for s in catalog.services],
        current_week=current_week(settings.timezone),
    )


@router.get("/{pharmacy}", response_model=SubmissionResponse)
async def get_submission(
    pharmacy: str,
    week: Optional[str] = Query(None, description="Any date in the week (YYYY-MM-DD)"),
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    _user: UserInfo = Depends(RequireEntryAccess),
):
    """Existing figures for (pharmacy, week), used to prefill the form."""
    if not catalog.has_pharmacy(pharmacy):
        raise HTTPException(status_code=404, detail="Unknown pharmacy")
    wk = parse_week(week) or current_week(settings.timezone)
    sub = await store.fetch_one(pharmacy, wk)
    if sub is None:
        raise HTTPException(status_code=404, detail="No submission for this week")
    return SubmissionResponse(
        pharmacy=sub.pharmacy,
        week=sub.week,
        counts=sub.counts,
        revenues=sub.revenues,
        notes=sub.notes,
        submitted_at=sub.submitted_at,
        total_revenue=sub.total_revenue or 0,
        total_sessions=sub.total_sessions or 0,
        resubmission=True,
    )


@router.put("", response_model=SubmissionResponse)
async def submit_report(
    body: SubmissionCreate,
    store: SubmissionStore = Depends(get_store),
    catalog: Catalog = Depends(get_catalog),
    _user: UserInfo = Depends(RequireEntryAccess),
):
    """Create or overwrite the pharmacy's figures for the week. Totals are recomputed server-side."""
    if not catalog.has_pharmacy(body.pharmacy):
        raise HTTPException(status_code=400, detail=f"Unknown pharmacy: {body.pharmacy}")
    body = _restrict_to_catalog(body, catalog)
    try:
        stored, resubmission = await store.upsert(body, catalog, submitted_at=datetime.now(timezone.utc))
    except StoreWriteError as e:
        raise HTTPException(status_code=503, detail=f"Submission failed: {e}")
    return SubmissionResponse(
        pharmacy=stored.pharmacy,
        week=stored.week,
        counts=stored.counts,
        revenues=stored.revenues,
        notes=stored.notes,
        submitted_at=stored.submitted_at,
        total_revenue=stored.total_revenue,
        total_sessions=stored.total_sessions,
        resubmission=resubmission,
    )
