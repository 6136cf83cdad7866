"""
Keyed store of weekly submissions.

Each operation opens its own session, so independent reads may run concurrently.
Reads degrade to "no data" on database errors; writes raise StoreWriteError.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pharmacy_reports.core.database import async_session_maker
from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.data.catalog import Catalog
from pharmacy_reports.models import WeeklyReport
from pharmacy_reports.schemas.report import SubmissionCreate, WeeklySubmission
from pharmacy_reports.services.revenue import submission_totals
from pharmacy_reports.services.weeks import as_utc, week_key

logger = get_logger(__name__)

PENNY = Decimal("0.01")


class StoreWriteError(Exception):
    """Submission could not be persisted; nothing was written."""


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise StoreWriteError(f"Upsert not supported for dialect {dialect}")


class SubmissionStore:
    def __init__(self, session_factory: async_sessionmaker = async_session_maker):
        self._session_factory = session_factory

    async def _fetch(self, stmt, what: str) -> List[WeeklySubmission]:
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [WeeklySubmission.model_validate(r) for r in rows]
        except SQLAlchemyError as e:
            logger.warning("Store read failed (%s), treating as no data: %s", what, e)
            return []

    async def fetch_by_week(self, week: date) -> List[WeeklySubmission]:
        week = week_key(week)
        stmt = select(WeeklyReport).where(WeeklyReport.week == week).order_by(WeeklyReport.pharmacy)
        return await self._fetch(stmt, f"week {week}")

    async def fetch_by_week_set(self, weeks: Iterable[date]) -> List[WeeklySubmission]:
        keys = sorted({week_key(w) for w in weeks})
        if not keys:
            return []
        stmt = select(WeeklyReport).where(WeeklyReport.week.in_(keys)).order_by(WeeklyReport.week)
        return await self._fetch(stmt, f"{len(keys)} weeks")

    async def fetch_since(self, week: date) -> List[WeeklySubmission]:
        week = week_key(week)
        stmt = select(WeeklyReport).where(WeeklyReport.week >= week).order_by(WeeklyReport.week)
        return await self._fetch(stmt, f"since {week}")

    async def fetch_one(self, pharmacy: str, week: date) -> Optional[WeeklySubmission]:
        stmt = select(WeeklyReport).where(
            WeeklyReport.pharmacy == pharmacy,
            WeeklyReport.week == week_key(week),
        )
        rows = await self._fetch(stmt, f"{pharmacy} / {week}")
        return rows[0] if rows else None

    async def upsert(
        self,
        data: SubmissionCreate,
        catalog: Catalog,
        submitted_at: Optional[datetime] = None,
    ) -> Tuple[WeeklySubmission, bool]:
        """Insert or overwrite the (pharmacy, week) row. Returns (stored, was_resubmission)."""
        revenue, sessions = submission_totals(data, catalog)
        stamp = as_utc(submitted_at or datetime.now(timezone.utc)).replace(tzinfo=None)
        values = {
            "pharmacy": data.pharmacy,
            "week": week_key(data.week),
            "counts": {k: int(v) for k, v in data.counts.items()},
            "revenues": {k: str(v) for k, v in data.revenues.items()},
            "notes": data.notes,
            "submitted_at": stamp,
            "total_revenue": revenue.quantize(PENNY),
            "total_sessions": sessions,
        }
        existing = await self.fetch_one(data.pharmacy, data.week)
        try:
            async with self._session_factory() as session:
                insert = _insert_for(session)
                stmt = insert(WeeklyReport).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["pharmacy", "week"],
                    set_={k: stmt.excluded[k] for k in values if k not in ("pharmacy", "week")},
                )
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Upsert failed for %s / %s: %s", data.pharmacy, values["week"], e)
            raise StoreWriteError(str(e)) from e
        logger.info(
            "%s %s / %s: revenue=%s sessions=%s",
            "Resubmitted" if existing else "Submitted",
            data.pharmacy,
            values["week"],
            values["total_revenue"],
            sessions,
        )
        return WeeklySubmission(**values), existing is not None


def get_store() -> SubmissionStore:
    """FastAPI dependency."""
    return SubmissionStore()
