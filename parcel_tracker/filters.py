"""Client-side filtering, sorting and totals for the search and payment views."""

from collections import Counter
from typing import Iterable, Optional

from .schemas import (
    DEFAULT_STATES,
    LRSearchStats,
    Parcel,
    ParcelFilters,
    ParcelStatus,
    ParcelTotals,
    Payment,
    PaymentFilters,
    SortOrder,
)


def _date_key(parcel: Parcel) -> str:
    if parcel.date:
        return parcel.date
    if parcel.created_at:
        return parcel.created_at.date().isoformat()
    return ""


def sort_parcels(parcels: list[Parcel], sort_by: SortOrder) -> list[Parcel]:
    """Sort parcels for display.

    Status orders are stable: parcels with the preferred status come first
    and otherwise keep their current order.
    """
    sort_by = SortOrder(sort_by)
    if sort_by == SortOrder.DATE_DESC:
        return sorted(parcels, key=_date_key, reverse=True)
    if sort_by == SortOrder.DATE_ASC:
        return sorted(parcels, key=_date_key)
    if sort_by == SortOrder.AMOUNT_DESC:
        return sorted(parcels, key=lambda p: p.total_amount or 0, reverse=True)
    if sort_by == SortOrder.AMOUNT_ASC:
        return sorted(parcels, key=lambda p: p.total_amount or 0)
    if sort_by == SortOrder.PAID_FIRST:
        return sorted(parcels, key=lambda p: p.status != ParcelStatus.PAID.value)
    return sorted(parcels, key=lambda p: p.status != ParcelStatus.PENDING.value)


def filter_parcels(parcels: Iterable[Parcel], filters: ParcelFilters) -> list[Parcel]:
    """Apply the search view filters and sort order.

    Args:
        parcels: All parcels from the live feed.
        filters: Search term (LR number or party, case-insensitive),
            inclusive date range, status and state.

    Returns:
        The visible parcels in display order.
    """
    result = list(parcels)

    term = filters.search_term.strip().lower()
    if term:
        result = [
            p for p in result
            if term in p.lr_number.lower() or term in p.party_name.lower()
        ]
    if filters.date_from:
        result = [p for p in result if p.date >= filters.date_from]
    if filters.date_to:
        result = [p for p in result if p.date <= filters.date_to]
    if filters.status != "all":
        result = [p for p in result if p.status == filters.status]
    if filters.state != "all":
        result = [p for p in result if p.state == filters.state]

    return sort_parcels(result, filters.sort_by)


def summarize_totals(parcels: Iterable[Parcel]) -> ParcelTotals:
    """Totals of the visible parcels; pending is amount minus paid."""
    parcels = list(parcels)
    total_amount = sum(p.total_amount or 0 for p in parcels)
    total_paid = sum(p.paid_amount or 0 for p in parcels)
    return ParcelTotals(
        count=len(parcels),
        total_weight=sum(p.weight or 0 for p in parcels),
        total_amount=total_amount,
        total_paid=total_paid,
        total_pending=total_amount - total_paid,
    )


def lr_search_stats(parcels: Iterable[Parcel], search_term: str) -> Optional[LRSearchStats]:
    """Count entries sharing the LR number being searched.

    An LR number equal to the term (ignoring case) wins. Otherwise the
    count is reported only when exactly one LR number contains the term.

    Args:
        parcels: All parcels, not only the visible ones.
        search_term: Text typed in the search box.

    Returns:
        The stats, or None for terms shorter than two characters or
        without a unique match.
    """
    if not search_term or len(search_term) < 2:
        return None
    parcels = list(parcels)
    term = search_term.lower()

    matching = {p.lr_number for p in parcels if term in p.lr_number.lower()}
    if not matching:
        return None

    exact = next((lr for lr in sorted(matching) if lr.lower() == term), None)
    if exact is not None:
        lr, is_exact = exact, True
    elif len(matching) == 1:
        lr, is_exact = next(iter(matching)), False
    else:
        return None

    count = sum(1 for p in parcels if p.lr_number == lr)
    return LRSearchStats(lr=lr, count=count, is_exact=is_exact)


def filter_payments(payments: Iterable[Payment], filters: PaymentFilters) -> list[Payment]:
    """Filter payments by text (transport or narration), payment date and transport."""
    result = list(payments)

    term = filters.search_term.strip().lower()
    if term:
        result = [
            p for p in result
            if term in p.transport_name.lower() or term in (p.narration or "").lower()
        ]
    if filters.date_from:
        result = [p for p in result if p.payment_date >= filters.date_from]
    if filters.date_to:
        result = [p for p in result if p.payment_date <= filters.date_to]
    if filters.transport != "all":
        result = [p for p in result if p.transport_name == filters.transport]
    return result


def field_counts(parcels: Iterable[Parcel], field: str) -> Counter:
    """Count how often each value of a parcel field is used."""
    return Counter(getattr(p, field) for p in parcels if getattr(p, field, None))


def sort_by_frequency(names: Iterable[str], counts: Counter) -> list[str]:
    """Order names by usage count (most used first), then alphabetically."""
    return sorted(dict.fromkeys(names), key=lambda name: (-counts.get(name, 0), name))


def merge_states(custom: Iterable[str] = (), used: Iterable[str] = ()) -> list[str]:
    """Built-in states first, then custom and already used states A-Z."""
    states = list(DEFAULT_STATES)
    extra = {name.strip().upper() for name in [*custom, *used] if name and name.strip()}
    states.extend(sorted(extra - set(states)))
    return states
