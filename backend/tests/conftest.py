"""Fixtures for API and unit tests."""
import asyncio
import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

# Throwaway SQLite DB unless TEST_DATABASE_URL points elsewhere (never the prod DB).
# Must be set before pharmacy_reports.config is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="pharmacy_reports_tests_")
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{_TMP_DIR}/test.db"
os.environ["ENTRY_PASSWORD"] = "entry-pass"
os.environ["DASHBOARD_PASSWORD"] = "dashboard-pass"
os.environ["ANTHROPIC_API_KEY"] = ""

from pharmacy_reports.data.catalog import Catalog, Service  # noqa: E402
from pharmacy_reports.schemas.report import WeeklySubmission  # noqa: E402

ENTRY_PASSWORD = "entry-pass"
DASHBOARD_PASSWORD = "dashboard-pass"


async def _drop_tables():
    from pharmacy_reports.core.database import Base, engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def small_catalog():
    """Three services (one variable), three pharmacies."""
    return Catalog(
        services=(
            Service("consult", "Consultation", Decimal("10.00"), "Clinical"),
            Service("travel", "Travel Clinic", None, "Private"),
            Service("flu", "Flu Jab", Decimal("12.50"), "Vaccinations"),
        ),
        pharmacies=("Pharmacy A", "Pharmacy B", "Pharmacy C"),
    )


@pytest.fixture
def make_submission():
    def _make(pharmacy, week, counts=None, revenues=None, **extra):
        if isinstance(week, str):
            week = date.fromisoformat(week)
        return WeeklySubmission(
            pharmacy=pharmacy,
            week=week,
            counts=counts or {},
            revenues=revenues or {},
            **extra,
        )
    return _make


@pytest.fixture
def client(small_catalog):
    """Test client on a fresh schema, with the small catalog injected."""
    from fastapi.testclient import TestClient

    from pharmacy_reports.data.catalog import get_catalog
    from pharmacy_reports.main import app

    app.dependency_overrides[get_catalog] = lambda: small_catalog
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    asyncio.run(_drop_tables())


def _login(client, password):
    r = client.post("/auth/login", data={"password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def entry_headers(client):
    return _login(client, ENTRY_PASSWORD)


@pytest.fixture
def manager_headers(client):
    return _login(client, DASHBOARD_PASSWORD)
