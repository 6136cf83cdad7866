"""
Loading the data behind one dashboard view.

The fetches of a load are disjoint key ranges and run concurrently. A newer
request from the same viewer supersedes any load still in flight: the stale
result is discarded, never merged.
"""
import asyncio
import itertools
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Dict, Hashable, List, TypeVar

from pharmacy_reports.core.logging_config import get_logger
from pharmacy_reports.schemas.report import WeeklySubmission
from pharmacy_reports.services.report_store import SubmissionStore
from pharmacy_reports.services.time_series import MONTHLY_WINDOW, WEEKLY_WINDOW
from pharmacy_reports.services.weeks import recent_weeks, week_key, week_offset

logger = get_logger(__name__)

T = TypeVar("T")


class Superseded(Exception):
    """A newer request for the same key started before this one finished."""


class LatestOnly:
    """Per-key request sequencing: only the most recently started call may deliver."""

    def __init__(self):
        # one counter for all keys: a token is never reused, even after its key is dropped
        self._tokens = itertools.count(1)
        self._latest: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        """Keys with a call still in flight."""
        return len(self._latest)

    def _next_token(self, key: Hashable) -> int:
        token = next(self._tokens)
        self._latest[key] = token
        return token

    def is_latest(self, key: Hashable, token: int) -> bool:
        return self._latest.get(key) == token

    async def run(self, key: Hashable, awaitable: Awaitable[T]) -> T:
        token = self._next_token(key)
        try:
            result = await awaitable
        finally:
            latest = self.is_latest(key, token)
            if latest:
                del self._latest[key]
        if not latest:
            logger.info("Discarding superseded result for %s", key)
            raise Superseded(str(key))
        return result


@dataclass(frozen=True)
class WeekSnapshot:
    week: date
    previous_week: date
    current: List[WeeklySubmission]
    previous: List[WeeklySubmission]


@dataclass(frozen=True)
class HistorySnapshot:
    week: date
    weekly: List[WeeklySubmission]
    monthly: List[WeeklySubmission]


async def load_week(store: SubmissionStore, week: date) -> WeekSnapshot:
    week = week_key(week)
    prev = week_offset(week, -1)
    current, previous = await asyncio.gather(store.fetch_by_week(week), store.fetch_by_week(prev))
    return WeekSnapshot(week=week, previous_week=prev, current=current, previous=previous)


async def _weekly_rows(store: SubmissionStore, week: date, weeks: int) -> List[WeeklySubmission]:
    return await store.fetch_by_week_set(recent_weeks(week, weeks))


async def _monthly_rows(store: SubmissionStore, week: date, weeks: int) -> List[WeeklySubmission]:
    rows = await store.fetch_since(week_offset(week, -(weeks - 1)))
    # fetch_since is open-ended: drop rows after the requested week
    return [s for s in rows if s.week <= week]


async def load_weekly_history(store: SubmissionStore, week: date, weeks: int = WEEKLY_WINDOW) -> HistorySnapshot:
    week = week_key(week)
    return HistorySnapshot(week=week, weekly=await _weekly_rows(store, week, weeks), monthly=[])


async def load_monthly_history(store: SubmissionStore, week: date, weeks: int = MONTHLY_WINDOW) -> HistorySnapshot:
    week = week_key(week)
    return HistorySnapshot(week=week, weekly=[], monthly=await _monthly_rows(store, week, weeks))

