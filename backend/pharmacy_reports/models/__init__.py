from pharmacy_reports.core.database import Base
from pharmacy_reports.models.weekly_report import WeeklyReport

__all__ = [
    "Base",
    "WeeklyReport",
]
