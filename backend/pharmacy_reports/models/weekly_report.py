"""Weekly figures of one pharmacy: one row per (pharmacy, week), resubmission overwrites."""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, Date, DateTime, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_reports.core.database import Base

JsonType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.utcnow()


class WeeklyReport(Base):
    __tablename__ = "weekly_reports"
    __table_args__ = (UniqueConstraint("pharmacy", "week", name="uq_weekly_reports_pharmacy_week"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    pharmacy: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    week: Mapped[date] = mapped_column(Date, nullable=False, index=True)  # Monday
    counts: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)
    revenues: Mapped[dict] = mapped_column(JsonType, nullable=False, default=dict)  # amounts as strings
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow)  # UTC
    total_revenue: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
