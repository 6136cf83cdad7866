from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from pharmacy_reports.services.revenue import to_amount, to_count
from pharmacy_reports.services.weeks import week_key

PENNY = Decimal("0.01")


class _WeeklyFigures(BaseModel):
    """Week normalized to its Monday; bad numbers become zero instead of failing validation."""

    pharmacy: str
    week: date
    counts: Dict[str, int] = {}
    revenues: Dict[str, Decimal] = {}
    notes: Optional[str] = None

    @field_validator("week")
    @classmethod
    def monday_of_week(cls, v: date) -> date:
        return week_key(v)

    @field_validator("counts", mode="before")
    @classmethod
    def clean_counts(cls, v) -> Dict[str, int]:
        if not isinstance(v, dict):
            return {}
        return {str(k): to_count(x) for k, x in v.items()}

    @field_validator("revenues", mode="before")
    @classmethod
    def clean_revenues(cls, v) -> Dict[str, Decimal]:
        if not isinstance(v, dict):
            return {}
        return {str(k): to_amount(x).quantize(PENNY) for k, x in v.items()}


class WeeklySubmission(_WeeklyFigures):
    """One pharmacy's figures for one week, as stored."""

    submitted_at: Optional[datetime] = None
    total_revenue: Optional[Decimal] = None
    total_sessions: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class SubmissionCreate(_WeeklyFigures):
    """Entry form payload."""

    @field_validator("pharmacy")
    @classmethod
    def strip_pharmacy(cls, v: str) -> str:
        return v.strip()

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class SubmissionResponse(BaseModel):
    pharmacy: str
    week: date
    counts: Dict[str, int]
    revenues: Dict[str, Decimal]
    notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    total_revenue: Decimal
    total_sessions: int
    resubmission: bool = False


class ServiceItem(BaseModel):
    id: str
    label: str
    fee: Optional[Decimal] = None
    category: str


class CatalogResponse(BaseModel):
    pharmacies: List[str]
    categories: List[str]
    services: List[ServiceItem]
    current_week: date
