"""Tests for dashboard aggregation."""

from datetime import date

from parcel_tracker.analytics import compute_dashboard


def test_stats_split_paid_and_pending(sample_parcels):
    data = compute_dashboard(sample_parcels, today=date(2024, 3, 10))
    assert data.stats.total_parcels == 4
    assert data.stats.total_weight == 37
    assert data.stats.total_revenue == 420
    # p2 is paid in full, p3 paid 40 of 100
    assert data.stats.paid_amount == 140
    assert data.stats.pending_amount == 280


def test_buckets_and_recent(sample_parcels):
    data = compute_dashboard(sample_parcels, today=date(2024, 3, 10))
    assert [(b.name, b.value) for b in data.by_state][0] == ("DELHI", 2)
    assert data.by_party[0].name == "Sharma Traders"
    assert [p.id for p in data.recent] == ["p1", "p2", "p3", "p4"]


def test_revenue_trend_covers_last_seven_days(sample_parcels):
    data = compute_dashboard(sample_parcels, today=date(2024, 3, 10))
    assert len(data.revenue_trend) == 7
    assert data.revenue_trend[0].date == "2024-03-04"
    assert data.revenue_trend[-1].date == "2024-03-10"
    assert data.revenue_trend[-1].amount == 120
    assert data.revenue_trend[-1].label == "10 Mar"


def test_filters(sample_parcels):
    data = compute_dashboard(sample_parcels, state="DELHI", status="partial", today=date(2024, 3, 10))
    assert data.stats.total_parcels == 1
    assert data.stats.paid_amount == 40

    data = compute_dashboard(sample_parcels, transport="VRL Logistics", today=date(2024, 3, 10))
    assert data.stats.total_parcels == 3
