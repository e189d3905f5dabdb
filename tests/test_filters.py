"""Tests for the search view filters and totals."""

from parcel_tracker.filters import (
    field_counts,
    filter_parcels,
    filter_payments,
    lr_search_stats,
    merge_states,
    sort_by_frequency,
    sort_parcels,
    summarize_totals,
)
from parcel_tracker.schemas import DEFAULT_STATES, ParcelFilters, Payment, PaymentFilters, SortOrder


def ids(parcels):
    return [p.id for p in parcels]


def test_no_filters_sorts_by_date_desc(sample_parcels):
    assert ids(filter_parcels(reversed(sample_parcels), ParcelFilters())) == ["p1", "p2", "p3", "p4"]


def test_search_matches_lr_or_party_ignoring_case(sample_parcels):
    assert ids(filter_parcels(sample_parcels, ParcelFilters(search_term="lr10"))) == ["p1", "p2", "p3"]
    assert ids(filter_parcels(sample_parcels, ParcelFilters(search_term="MEHTA"))) == ["p4"]


def test_date_range_is_inclusive(sample_parcels):
    filters = ParcelFilters(date_from="2024-03-08", date_to="2024-03-09")
    assert ids(filter_parcels(sample_parcels, filters)) == ["p2", "p3"]


def test_status_and_state_filters(sample_parcels):
    assert ids(filter_parcels(sample_parcels, ParcelFilters(status="paid"))) == ["p2"]
    assert ids(filter_parcels(sample_parcels, ParcelFilters(state="DELHI"))) == ["p1", "p3"]


def test_sort_orders(sample_parcels):
    assert ids(sort_parcels(sample_parcels, SortOrder.DATE_ASC)) == ["p4", "p3", "p2", "p1"]
    assert ids(sort_parcels(sample_parcels, SortOrder.AMOUNT_DESC))[0] == "p1"
    assert ids(sort_parcels(sample_parcels, SortOrder.AMOUNT_ASC))[-1] == "p1"
    assert ids(sort_parcels(sample_parcels, SortOrder.PAID_FIRST)) == ["p2", "p1", "p3", "p4"]
    assert ids(sort_parcels(sample_parcels, SortOrder.PENDING_FIRST)) == ["p1", "p4", "p2", "p3"]


def test_summarize_totals(sample_parcels):
    totals = summarize_totals(sample_parcels)
    assert totals.count == 4
    assert totals.total_weight == 37
    assert totals.total_amount == 420
    assert totals.total_paid == 140
    assert totals.total_pending == 280


def test_lr_search_stats_exact_match(sample_parcels):
    stats = lr_search_stats(sample_parcels, "lr100")
    assert stats.lr == "LR100"
    assert stats.count == 2
    assert stats.is_exact


def test_lr_search_stats_single_partial_match(sample_parcels):
    stats = lr_search_stats(sample_parcels, "B-7")
    assert stats.lr == "AB-77"
    assert stats.count == 1
    assert not stats.is_exact


def test_lr_search_stats_ambiguous_or_short(sample_parcels):
    assert lr_search_stats(sample_parcels, "LR1") is None
    assert lr_search_stats(sample_parcels, "L") is None
    assert lr_search_stats(sample_parcels, "zz") is None


def test_filter_payments():
    payments = [
        Payment(id="a", transport_name="VRL", payment_date="2024-03-01", amount=100, narration="March advance"),
        Payment(id="b", transport_name="Gati", payment_date="2024-03-05", amount=200),
        Payment(id="c", transport_name="VRL", payment_date="2024-03-09", amount=300),
    ]
    assert [p.id for p in filter_payments(payments, PaymentFilters(search_term="advance"))] == ["a"]
    assert [p.id for p in filter_payments(payments, PaymentFilters(transport="VRL"))] == ["a", "c"]
    filters = PaymentFilters(date_from="2024-03-02", date_to="2024-03-09")
    assert [p.id for p in filter_payments(payments, filters)] == ["b", "c"]


def test_sort_by_frequency(sample_parcels):
    counts = field_counts(sample_parcels, "party_name")
    assert counts["Sharma Traders"] == 2
    names = ["Mehta Textiles", "Alpha", "Sharma Traders", "Gupta & Sons", "Alpha"]
    assert sort_by_frequency(names, counts) == ["Sharma Traders", "Gupta & Sons", "Mehta Textiles", "Alpha"]


def test_merge_states_keeps_defaults_first():
    states = merge_states(["goa", " Delhi "], ["PUNJAB", ""])
    assert states[:len(DEFAULT_STATES)] == list(DEFAULT_STATES)
    assert states[len(DEFAULT_STATES):] == ["GOA", "PUNJAB"]
