"""Week aggregation over the roster."""
from decimal import Decimal

from pharmacy_reports.services.aggregation import aggregate_week

WEEK = "2024-01-29"


def test_empty_week_lists_every_pharmacy(small_catalog):
    agg = aggregate_week([], small_catalog)
    assert agg.total_revenue == 0
    assert agg.total_sessions == 0
    assert agg.submitted_count == 0
    assert [p.pharmacy for p in agg.per_pharmacy] == list(small_catalog.pharmacies)
    assert all(not p.submitted and p.revenue == 0 for p in agg.per_pharmacy)
    assert agg.category_totals == {"Clinical": 0, "Private": 0, "Vaccinations": 0}


def test_group_totals(small_catalog, make_submission):
    subs = [
        make_submission("Pharmacy A", WEEK, counts={"consult": 3}, revenues={"travel": "25"}),
        make_submission("Pharmacy B", WEEK, counts={"consult": 1, "flu": 2}),
    ]
    agg = aggregate_week(subs, small_catalog)
    assert agg.total_revenue == Decimal("90")
    assert agg.total_sessions == 6
    assert agg.submitted_count == 2
    assert agg.pharmacy("Pharmacy A").revenue == Decimal("55")
    assert agg.pharmacy("Pharmacy A").sessions == 3
    c = agg.pharmacy("Pharmacy C")
    assert not c.submitted and c.revenue == 0 and c.submission is None


def test_category_totals(small_catalog, make_submission):
    subs = [
        make_submission("Pharmacy A", WEEK, counts={"consult": 3}, revenues={"travel": "25"}),
        make_submission("Pharmacy B", WEEK, counts={"consult": 1, "flu": 2}),
    ]
    agg = aggregate_week(subs, small_catalog)
    assert agg.category_totals == {
        "Clinical": Decimal("40"),
        "Private": Decimal("25"),
        "Vaccinations": Decimal("25"),
    }


def test_service_totals_sorted_by_revenue_ties_in_catalog_order(small_catalog, make_submission):
    subs = [
        make_submission("Pharmacy A", WEEK, counts={"consult": 3}, revenues={"travel": "25"}),
        make_submission("Pharmacy B", WEEK, counts={"consult": 1, "flu": 2}),
    ]
    agg = aggregate_week(subs, small_catalog)
    # travel and flu both £25: travel is earlier in the catalog
    assert [t.service.id for t in agg.service_totals] == ["consult", "travel", "flu"]
    assert agg.service("consult").count == 4
    assert agg.service("flu").count == 2
    assert agg.service("travel").count is None


def test_off_roster_submission_is_ignored(small_catalog, make_submission, caplog):
    subs = [make_submission("Somewhere Else", WEEK, counts={"consult": 9})]
    with caplog.at_level("WARNING"):
        agg = aggregate_week(subs, small_catalog)
    assert agg.total_revenue == 0
    assert agg.submitted_count == 0
    assert "unknown pharmacy" in caplog.text


def test_cached_totals_are_used_for_group_revenue(small_catalog, make_submission):
    sub = make_submission(
        "Pharmacy A", WEEK, counts={"consult": 2}, total_revenue=Decimal("20.00"), total_sessions=2
    )
    agg = aggregate_week([sub], small_catalog)
    assert agg.total_revenue == Decimal("20.00")
    assert agg.total_sessions == 2


def test_identical_resubmission_does_not_double_count(small_catalog, make_submission):
    first = make_submission("Pharmacy A", WEEK, counts={"consult": 3})
    again = make_submission("Pharmacy A", WEEK, counts={"consult": 3})
    assert aggregate_week([first, again], small_catalog).total_revenue == aggregate_week([first], small_catalog).total_revenue
