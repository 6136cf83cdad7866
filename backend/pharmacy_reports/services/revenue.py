"""
Revenue per service and per submission.

Never raises on bad field data: negative, blank or unparsable values count as zero.
Works on anything with `counts` / `revenues` mappings (schema objects, ORM rows).
"""
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Mapping, Optional, Tuple

from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.data.catalog import Catalog, Service

logger = get_logger(__name__)

ZERO = Decimal("0")


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip().replace("£", "").replace(",", "")
    if not text:
        return None
    try:
        d = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


def to_count(value: Any) -> int:
    """Session count: non-negative int, fractions truncated."""
    d = _to_decimal(value)
    if d is None or d <= 0:
        return 0
    return int(d)


def to_amount(value: Any) -> Decimal:
    """Free-entry revenue: non-negative Decimal."""
    d = _to_decimal(value)
    if d is None or d <= 0:
        return ZERO
    return d


def _get(mapping: Optional[Mapping], key: str) -> Any:
    if not mapping:
        return None
    return mapping.get(key)


def revenue_of(service: Service, submission) -> Decimal:
    if submission is None:
        return ZERO
    if service.is_variable:
        return to_amount(_get(submission.revenues, service.id))
    return to_count(_get(submission.counts, service.id)) * service.fee


def _freeze(mapping: Optional[Mapping]) -> Tuple[Tuple[str, str], ...]:
    if not mapping:
        return ()
    return tuple(sorted((str(k), str(v)) for k, v in mapping.items()))


@lru_cache(maxsize=4096)
def _totals(counts: tuple, revenues: tuple, catalog: Catalog) -> Tuple[Decimal, int]:
    c = dict(counts)
    r = dict(revenues)
    revenue = ZERO
    for s in catalog.services:
        if s.is_variable:
            revenue += to_amount(r.get(s.id))
        else:
            revenue += to_count(c.get(s.id)) * s.fee
    sessions = sum(to_count(v) for v in c.values())
    return revenue, sessions


def submission_totals(submission, catalog: Catalog) -> Tuple[Decimal, int]:
    """(total_revenue, total_sessions) recomputed from counts/revenues; memoized."""
    if submission is None:
        return ZERO, 0
    return _totals(_freeze(submission.counts), _freeze(submission.revenues), catalog)


def effective_revenue(submission, catalog: Catalog) -> Decimal:
    """Cached total_revenue when the row carries one, else the recomputation."""
    if submission is None:
        return ZERO
    cached = getattr(submission, "total_revenue", None)
    if cached is not None:
        return Decimal(cached)
    return submission_totals(submission, catalog)[0]


def effective_sessions(submission, catalog: Catalog) -> int:
    if submission is None:
        return 0
    cached = getattr(submission, "total_sessions", None)
    if cached is not None:
        return int(cached)
    return submission_totals(submission, catalog)[1]


def cached_totals_match(submission, catalog: Catalog) -> bool:
    """Check persisted totals against a recomputation; logs drift."""
    revenue, sessions = submission_totals(submission, catalog)
    cached_rev = getattr(submission, "total_revenue", None)
    cached_sess = getattr(submission, "total_sessions", None)
    ok = True
    if cached_rev is not None and Decimal(cached_rev).quantize(Decimal("0.01")) != revenue.quantize(Decimal("0.01")):
        ok = False
    if cached_sess is not None and int(cached_sess) != sessions:
        ok = False
    if not ok:
        logger.warning(
            "Cached totals drift for %s / %s: stored (%s, %s), recomputed (%s, %s)",
            getattr(submission, "pharmacy", "?"),
            getattr(submission, "week", "?"),
            cached_rev,
            cached_sess,
            revenue,
            sessions,
        )
    return ok
