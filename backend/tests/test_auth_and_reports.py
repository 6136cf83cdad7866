"""API: login and roles, weekly entry, dashboard views, export and email."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from pharmacy_reports.api.analytics import get_now
from pharmacy_reports.main import app
from pharmacy_reports.services.email_service import FALLBACK_ERROR

WEEK = "2024-01-29"
PREV_WEEK = "2024-01-22"
# Monday of the week, two hours before the 12:00 cutoff
NOW = datetime(2024, 1, 29, 10, 0, tzinfo=timezone.utc)


def _submit(client, headers, pharmacy, week, counts=None, revenues=None, notes=None):
    r = client.put(
        "/reports",
        json={"pharmacy": pharmacy, "week": week, "counts": counts or {}, "revenues": revenues or {}, "notes": notes},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def seeded(client, entry_headers):
    """A and B submitted for WEEK, A for the week before; C has not submitted."""
    _submit(client, entry_headers, "Pharmacy A", WEEK, counts={"consult": 3}, revenues={"travel": "25"})
    _submit(client, entry_headers, "Pharmacy B", WEEK, counts={"consult": 2, "flu": 1}, notes="Short-staffed")
    _submit(client, entry_headers, "Pharmacy A", PREV_WEEK, counts={"consult": 5})
    app.dependency_overrides[get_now] = lambda: NOW
    return client


def test_login_wrong_password(client):
    r = client.post("/auth/login", data={"password": "nope"})
    assert r.status_code == 401


def test_login_roles(client, entry_headers, manager_headers):
    me = client.get("/auth/me", headers=entry_headers).json()
    assert me["role"] == "ROLE_PHARMACY"
    assert me["resources"] == ["ENTRY"]
    me = client.get("/auth/me", headers=manager_headers).json()
    assert me["role"] == "ROLE_MANAGER"
    assert set(me["resources"]) == {"ENTRY", "DASHBOARD", "EMAIL"}


def test_dashboard_requires_manager(client, entry_headers):
    assert client.get("/analytics/week").status_code == 401
    assert client.get("/analytics/week", headers=entry_headers).status_code == 403
    assert client.post("/analytics/email", headers=entry_headers).status_code == 403


def test_catalog(client, entry_headers):
    data = client.get("/reports/catalog", headers=entry_headers).json()
    assert data["pharmacies"] == ["Pharmacy A", "Pharmacy B", "Pharmacy C"]
    assert data["categories"] == ["Clinical", "Private", "Vaccinations"]
    travel = next(s for s in data["services"] if s["id"] == "travel")
    assert travel["fee"] is None


def test_submit_and_prefill(client, entry_headers):
    created = _submit(client, entry_headers, "Pharmacy A", WEEK, counts={"consult": 3}, revenues={"travel": "25"})
    assert Decimal(created["total_revenue"]) == Decimal("55")
    assert created["total_sessions"] == 3
    assert created["resubmission"] is False

    r = client.get("/reports/Pharmacy A", params={"week": "2024-02-01"}, headers=entry_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["week"] == WEEK
    assert data["counts"] == {"consult": 3}
    assert Decimal(data["revenues"]["travel"]) == Decimal("25")


def test_entry_drops_fields_that_do_not_apply(client, entry_headers):
    created = _submit(
        client,
        entry_headers,
        "Pharmacy A",
        WEEK,
        counts={"consult": "2", "travel": 4, "unknown": 9, "flu": -1},
        revenues={"consult": "100", "travel": "£1,000.50"},
    )
    assert created["counts"] == {"consult": 2}
    assert Decimal(created["revenues"]["travel"]) == Decimal("1000.50")
    assert Decimal(created["total_revenue"]) == Decimal("1020.50")


def test_resubmission_overwrites(client, entry_headers):
    _submit(client, entry_headers, "Pharmacy A", WEEK, counts={"consult": 3})
    again = _submit(client, entry_headers, "Pharmacy A", WEEK, counts={"consult": 1})
    assert again["resubmission"] is True
    assert Decimal(again["total_revenue"]) == Decimal("10")

    data = client.get("/reports/Pharmacy A", params={"week": WEEK}, headers=entry_headers).json()
    assert data["counts"] == {"consult": 1}


def test_identical_resubmission_keeps_one_row(client, entry_headers, manager_headers):
    def week_view():
        r = client.get("/analytics/week", params={"week": WEEK}, headers=manager_headers)
        assert r.status_code == 200, r.text
        return r.json()

    _submit(client, entry_headers, "Pharmacy A", WEEK, counts={"consult": 3}, revenues={"travel": "25"})
    before = week_view()
    # the same payload again, submitted as a different week day
    _submit(client, entry_headers, "Pharmacy A", "2024-02-02", counts={"consult": 3}, revenues={"travel": "25"})
    after = week_view()

    assert before["submitted_count"] == after["submitted_count"] == 1
    assert Decimal(after["total_revenue"]) == Decimal(before["total_revenue"]) == Decimal("55")
    assert after["total_sessions"] == before["total_sessions"] == 3

    # the trend folds every stored row, so a duplicate would show up here
    trend = client.get("/analytics/trend/weekly", params={"week": WEEK}, headers=manager_headers).json()
    assert trend["points"][-1]["submissions"] == 1
    assert Decimal(trend["points"][-1]["total"]) == Decimal("55")


def test_unknown_pharmacy(client, entry_headers):
    r = client.put("/reports", json={"pharmacy": "Nowhere", "week": WEEK}, headers=entry_headers)
    assert r.status_code == 400
    assert client.get("/reports/Nowhere", headers=entry_headers).status_code == 404


def test_prefill_missing_week(client, entry_headers):
    r = client.get("/reports/Pharmacy C", params={"week": WEEK}, headers=entry_headers)
    assert r.status_code == 404


def test_week_summary(seeded, manager_headers):
    r = seeded.get("/analytics/week", params={"week": WEEK}, headers=manager_headers)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["week"] == WEEK
    assert data["previous_week"] == PREV_WEEK
    assert data["week_label"] == "29 Jan 2024"
    assert Decimal(data["total_revenue"]) == Decimal("87.50")
    assert Decimal(data["previous_total_revenue"]) == Decimal("50")
    assert data["revenue_change"]["direction"] == "up"
    assert Decimal(data["revenue_change"]["magnitude_percent"]) == Decimal("75.0")
    assert data["total_sessions"] == 6
    assert Decimal(data["sessions_change"]["magnitude_percent"]) == Decimal("20.0")
    assert data["submitted_count"] == 2
    assert data["pharmacy_count"] == 3
    assert data["pending_count"] == 1
    assert data["submission_rate"] == 67
    assert Decimal(data["avg_per_site"]) == Decimal("43.75")
    assert data["top_site"] == "Pharmacy A"
    assert Decimal(data["top_site_revenue"]) == Decimal("55")

    assert [s["id"] for s in data["services"]] == ["consult", "travel", "flu"]
    assert data["services"][1]["count"] is None

    sites = {p["pharmacy"]: p for p in data["pharmacies"]}
    # submitted now, long after the 2024 cutoff
    assert sites["Pharmacy A"]["status"] == "LATE"
    assert sites["Pharmacy B"]["status"] == "LATE"
    assert sites["Pharmacy B"]["notes"] == "Short-staffed"
    assert sites["Pharmacy C"]["status"] == "PENDING_HOURS_LEFT"
    assert sites["Pharmacy C"]["hours_left"] == 2
    assert sites["Pharmacy C"]["status_label"] == "Due in 2h"
    assert Decimal(sites["Pharmacy A"]["change"]["magnitude_percent"]) == Decimal("10.0")
    # B has no prior week, so no per-site comparison
    assert sites["Pharmacy B"]["change"] is None
    assert data["compliance"]["late"] == 2
    assert data["compliance"]["pending"] == 1


def test_week_defaults_to_current_week(seeded, manager_headers):
    data = seeded.get("/analytics/week", headers=manager_headers).json()
    # NOW is Monday 29 Jan
    assert data["week"] == WEEK
    assert Decimal(data["total_revenue"]) == Decimal("87.50")


def test_past_week_cutoff_has_passed(seeded, manager_headers):
    data = seeded.get("/analytics/week", params={"week": PREV_WEEK}, headers=manager_headers).json()
    statuses = {p["pharmacy"]: p["status"] for p in data["pharmacies"]}
    assert statuses == {"Pharmacy A": "LATE", "Pharmacy B": "OVERDUE", "Pharmacy C": "OVERDUE"}
    assert data["compliance"]["overdue"] == 2
    assert data["revenue_change"] is None


def test_weekly_trend(seeded, manager_headers):
    data = seeded.get("/analytics/trend/weekly", params={"week": WEEK}, headers=manager_headers).json()
    points = data["points"]
    assert len(points) == 12
    assert points[-1]["period"] == WEEK
    assert points[-2]["period"] == PREV_WEEK
    assert Decimal(points[-1]["total"]) == Decimal("87.50")
    assert Decimal(points[-2]["total"]) == Decimal("50")
    assert Decimal(points[-1]["pharmacies"]["Pharmacy C"]) == 0
    assert all(Decimal(p["total"]) == 0 for p in points[:-2])


def test_monthly_trend(seeded, manager_headers):
    data = seeded.get("/analytics/trend/monthly", params={"week": WEEK}, headers=manager_headers).json()
    periods = [p["period"] for p in data["points"]]
    assert periods == ["2023-08", "2023-09", "2023-10", "2023-11", "2023-12", "2024-01"]
    assert Decimal(data["points"][-1]["total"]) == Decimal("137.50")
    mom = {m["pharmacy"]: m for m in data["month_over_month"]}
    assert Decimal(mom["Pharmacy A"]["current"]) == Decimal("105")
    assert mom["Pharmacy A"]["change"] is None


def test_trend_window_bounds(client, manager_headers):
    r = client.get("/analytics/trend/weekly", params={"weeks": 0}, headers=manager_headers)
    assert r.status_code == 422


def test_export_csv(seeded, manager_headers):
    r = seeded.get("/analytics/export", params={"week": WEEK}, headers=manager_headers)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="weekly_report_2024-01-29.csv"' in r.headers["content-disposition"]
    assert r.content.startswith(b"\xef\xbb\xbf")
    lines = r.content.decode("utf-8-sig").splitlines()
    assert lines[0] == '"Week commencing","29 Jan 2024"'
    assert lines[2] == '"Service","Category","Pharmacy A","Pharmacy B","Pharmacy C","Total"'
    assert '"Consultation","Clinical","30.00","20.00","N/S","50.00"' in lines
    assert lines[-1] == '"Total","","55.00","32.50","N/S","87.50"'


def test_email_falls_back_without_api_key(seeded, manager_headers):
    r = seeded.post("/analytics/email", params={"week": WEEK}, headers=manager_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["generated"] is False
    assert data["body"] == FALLBACK_ERROR
    assert data["subject"].endswith("w/c 29 Jan 2024")
    assert data["mailto"].startswith("mailto:?subject=")
