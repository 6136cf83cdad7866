"""
Week aggregation: group totals, category and service rollups, one row per roster pharmacy.

Pharmacies without a submission contribute zero but are still listed,
so consumers can render "not submitted" rows.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.data.catalog import Catalog, Service
from pharmacy_reports.services.revenue import (
    ZERO,
    cached_totals_match,
    effective_revenue,
    effective_sessions,
    revenue_of,
    to_count,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class ServiceTotal:
    service: Service
    count: Optional[int]  # None for variable services
    revenue: Decimal


@dataclass(frozen=True)
class PharmacyTotal:
    pharmacy: str
    submitted: bool
    revenue: Decimal
    sessions: int
    submission: Optional[object] = None


@dataclass(frozen=True)
class WeekAggregate:
    total_revenue: Decimal
    total_sessions: int
    submitted_count: int
    category_totals: Dict[str, Decimal]
    service_totals: List[ServiceTotal]
    per_pharmacy: List[PharmacyTotal]

    def pharmacy(self, name: str) -> Optional[PharmacyTotal]:
        for row in self.per_pharmacy:
            if row.pharmacy == name:
                return row
        return None

    def service(self, service_id: str) -> Optional[ServiceTotal]:
        for row in self.service_totals:
            if row.service.id == service_id:
                return row
        return None


def index_by_pharmacy(submissions: Iterable, catalog: Catalog) -> Dict[str, object]:
    """pharmacy → submission, restricted to the roster. A later duplicate replaces an earlier one."""
    by_pharmacy: Dict[str, object] = {}
    for sub in submissions or []:
        if not catalog.has_pharmacy(sub.pharmacy):
            logger.warning("Submission for unknown pharmacy ignored: %s", sub.pharmacy)
            continue
        by_pharmacy[sub.pharmacy] = sub
    return by_pharmacy


def aggregate_week(submissions: Iterable, catalog: Catalog) -> WeekAggregate:
    """Submissions are expected to belong to a single week, at most one per pharmacy."""
    by_pharmacy = index_by_pharmacy(submissions, catalog)
    for sub in by_pharmacy.values():
        cached_totals_match(sub, catalog)

    per_pharmacy: List[PharmacyTotal] = []
    total_revenue = ZERO
    total_sessions = 0
    for name in catalog.pharmacies:
        sub = by_pharmacy.get(name)
        rev = effective_revenue(sub, catalog)
        sess = effective_sessions(sub, catalog)
        total_revenue += rev
        total_sessions += sess
        per_pharmacy.append(
            PharmacyTotal(pharmacy=name, submitted=sub is not None, revenue=rev, sessions=sess, submission=sub)
        )

    category_totals: Dict[str, Decimal] = {c: ZERO for c in catalog.categories}
    service_totals: List[ServiceTotal] = []
    for svc in catalog.services:
        count = 0
        rev = ZERO
        for sub in by_pharmacy.values():
            r = revenue_of(svc, sub)
            rev += r
            category_totals[svc.category] += r
            if not svc.is_variable:
                count += to_count((sub.counts or {}).get(svc.id))
        service_totals.append(ServiceTotal(service=svc, count=None if svc.is_variable else count, revenue=rev))

    # sorted() is stable: equal revenue keeps catalog order
    service_totals = sorted(service_totals, key=lambda t: t.revenue, reverse=True)

    return WeekAggregate(
        total_revenue=total_revenue,
        total_sessions=total_sessions,
        submitted_count=len(by_pharmacy),
        category_totals=category_totals,
        service_totals=service_totals,
        per_pharmacy=per_pharmacy,
    )
