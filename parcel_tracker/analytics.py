"""Dashboard analytics for the Parcel Tracker.

Aggregates the parcels returned by ``FirestoreManager.query_parcels`` into
the headline stats and chart buckets shown on the dashboard.
"""

from collections import Counter
from datetime import date, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from .schemas import Parcel, ParcelStatus


TREND_DAYS = 7
TOP_PARTIES = 8
RECENT_COUNT = 5


class DashboardStats(BaseModel):
    """Headline numbers of the dashboard."""

    total_parcels: int = 0
    total_weight: float = 0.0
    total_revenue: float = 0.0
    paid_amount: float = 0.0
    pending_amount: float = 0.0


class NameValue(BaseModel):
    """One bar or slice of a chart."""

    name: str
    value: float


class TrendPoint(BaseModel):
    """Revenue of one day."""

    date: str
    label: str
    amount: float = 0.0


class DashboardData(BaseModel):
    """Everything the dashboard renders."""

    stats: DashboardStats = Field(default_factory=DashboardStats)
    recent: list[Parcel] = Field(default_factory=list)
    by_state: list[NameValue] = Field(default_factory=list)
    by_party: list[NameValue] = Field(default_factory=list)
    revenue_trend: list[TrendPoint] = Field(default_factory=list)


def _ranked(counter: Counter, limit: Optional[int] = None) -> list[NameValue]:
    # sorted() is stable, so ties keep first-seen order
    ranked = sorted(counter.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return [NameValue(name=name, value=value) for name, value in ranked]


def compute_dashboard(
    parcels: Iterable[Parcel],
    state: str = "all",
    transport: str = "all",
    status: str = "all",
    today: Optional[date] = None,
) -> DashboardData:
    """Aggregate parcels for the dashboard.

    Paid parcels count their full amount as paid. For any other status the
    recorded ``paidAmount`` counts as paid and the remainder as pending.

    Args:
        parcels: Parcels in query order (newest first).
        state: State filter, "all" to disable.
        transport: Transport filter, "all" to disable.
        status: Status filter, "all" to disable.
        today: Last day of the revenue trend.

    Returns:
        DashboardData with stats, the five most recent parcels, parcels per
        state, the top parties and the revenue of the last seven days.
    """
    today = today or date.today()
    trend_days = [today - timedelta(days=offset) for offset in range(TREND_DAYS - 1, -1, -1)]
    daily_revenue = {day.isoformat(): 0.0 for day in trend_days}

    stats = DashboardStats()
    visible: list[Parcel] = []
    state_counts: Counter = Counter()
    party_counts: Counter = Counter()

    for parcel in parcels:
        if state != "all" and parcel.state != state:
            continue
        if transport != "all" and parcel.transport != transport:
            continue
        if status != "all" and parcel.status != status:
            continue

        visible.append(parcel)
        amount = parcel.total_amount or 0.0
        stats.total_parcels += 1
        stats.total_weight += parcel.weight or 0.0
        stats.total_revenue += amount

        if parcel.status == ParcelStatus.PAID.value:
            stats.paid_amount += amount
        else:
            paid = parcel.paid_amount or 0.0
            stats.pending_amount += amount - paid
            stats.paid_amount += paid

        state_counts[parcel.state or "Unknown"] += 1
        party_counts[parcel.party_name or "Unknown"] += 1

        if parcel.date in daily_revenue:
            daily_revenue[parcel.date] += amount

    return DashboardData(
        stats=stats,
        recent=visible[:RECENT_COUNT],
        by_state=_ranked(state_counts),
        by_party=_ranked(party_counts, TOP_PARTIES),
        revenue_trend=[
            TrendPoint(date=day.isoformat(), label=day.strftime("%d %b"), amount=daily_revenue[day.isoformat()])
            for day in trend_days
        ],
    )
