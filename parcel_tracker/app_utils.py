"""Helper functions for the Streamlit app.

This module contains the chart builders and table transformations used by
the dashboard, search and payment screens, plus the bulk and import actions
of the search screen.
"""

from typing import Iterable, Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from .analytics import NameValue, TrendPoint
from .auth import require_admin
from .firestore_db import FirestoreManager
from .importers import normalize_import_rows, read_import_file
from .schemas import ImportResult, Parcel, ParcelStatus, Payment, UserProfile

# ============================================================================
# Constants
# ============================================================================

# Indigo palette matching the receipts and reports
INDIGO_COLORS = [
    "#4F46E5",  # Primary indigo
    "#6366F1",  # Secondary indigo
    "#818CF8",  # Lighter
    "#A5B4FC",  # Soft
    "#C7D2FE",  # Pale
]

# Emerald shades for the state breakdown
STATE_COLORS = [
    "#10B981",
    "#059669",
    "#047857",
    "#065F46",
    "#064E3B",
    "#34D399",
    "#6EE7B7",
    "#A7F3D0",
]

STATUS_COLORS = {
    "paid": "#16A34A",
    "pending": "#DC2626",
    "partial": "#F59E0B",
}

STATUS_LABELS = {
    "paid": "🟢 Paid",
    "pending": "🔴 Pending",
    "partial": "🟡 Partial",
}


def apply_plotly_theme(fig: go.Figure) -> go.Figure:
    """Apply the app's indigo theme to a Plotly figure.

    Args:
        fig: Plotly figure to style.

    Returns:
        Styled Plotly figure.
    """
    fig.update_layout(
        font_family="sans-serif",
        font_color="#374151",
        paper_bgcolor="white",
        plot_bgcolor="white",
        title_font_color="#1F2937",
        colorway=INDIGO_COLORS,
        margin=dict(l=10, r=10, t=50, b=10),
    )
    return fig


def format_inr(value: float) -> str:
    """Format an amount as rupees with thousands separators."""
    return f"₹{value:,.0f}" if float(value).is_integer() else f"₹{value:,.2f}"


# ============================================================================
# Charts
# ============================================================================


def create_party_chart(by_party: list[NameValue]) -> go.Figure:
    """Create horizontal bar chart of the busiest parties.

    Args:
        by_party: Parcel counts per party, largest first.

    Returns:
        Plotly bar chart figure.
    """
    names = [item.name for item in by_party][::-1]
    values = [item.value for item in by_party][::-1]

    fig = go.Figure(
        go.Bar(
            x=values,
            y=names,
            orientation="h",
            marker_color=[INDIGO_COLORS[min(i, 2)] for i in range(len(names))][::-1],
            text=[f"{v:.0f}" for v in values],
            textposition="outside",
        )
    )
    fig.update_layout(
        title="Top Parties",
        xaxis_title="Parcels",
        height=360,
        showlegend=False,
    )
    return apply_plotly_theme(fig)


def create_state_chart(by_state: list[NameValue]) -> go.Figure:
    """Create donut chart of parcels per destination state."""
    fig = px.pie(
        names=[item.name for item in by_state],
        values=[item.value for item in by_state],
        hole=0.5,
        color_discrete_sequence=STATE_COLORS,
    )
    fig.update_traces(textposition="inside", textinfo="percent+label")
    fig.update_layout(title="Parcels by State", height=360, showlegend=False)
    return apply_plotly_theme(fig)


def create_revenue_chart(trend: list[TrendPoint]) -> go.Figure:
    """Create area chart of revenue over the last days.

    Args:
        trend: Revenue per day, oldest first.

    Returns:
        Plotly area chart figure.
    """
    fig = go.Figure(
        go.Scatter(
            x=[point.label for point in trend],
            y=[point.amount for point in trend],
            mode="lines+markers",
            fill="tozeroy",
            line=dict(color=INDIGO_COLORS[0], width=2),
            marker=dict(color=INDIGO_COLORS[0], size=7),
            fillcolor="rgba(99, 102, 241, 0.15)",
            hovertemplate="%{x}: ₹%{y:,.0f}<extra></extra>",
        )
    )
    fig.update_layout(
        title="Revenue Trend (Last 7 Days)",
        yaxis_title="Amount (₹)",
        height=360,
    )
    return apply_plotly_theme(fig)


# ============================================================================
# Tables
# ============================================================================


def parcels_table(parcels: Iterable[Parcel]) -> pd.DataFrame:
    """Build the display table of the search view.

    The parcel id is kept as the index so rows selected in
    ``st.data_editor`` can be mapped back to documents.
    """
    rows = [
        {
            "id": p.id,
            "Select": False,
            "Date": p.date,
            "LR No": p.lr_number,
            "Party": p.party_name,
            "Transport": p.transport or "-",
            "State": p.state,
            "Weight (kg)": p.weight,
            "Rate": p.rate,
            "Amount": p.total_amount,
            "Paid": p.paid_amount,
            "Status": STATUS_LABELS.get(p.status, p.status),
            "Mode": str(p.payment_mode).title(),
            "Image": p.weight_image_url or None,
        }
        for p in parcels
    ]
    columns = [
        "id", "Select", "Date", "LR No", "Party", "Transport", "State", "Weight (kg)",
        "Rate", "Amount", "Paid", "Status", "Mode", "Image",
    ]
    return pd.DataFrame(rows, columns=columns).set_index("id")


def recent_parcels_table(parcels: Iterable[Parcel]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": p.date,
                "LR No": p.lr_number,
                "Party": p.party_name,
                "State": p.state,
                "Amount": format_inr(p.total_amount),
                "Status": STATUS_LABELS.get(p.status, p.status),
            }
            for p in parcels
        ],
        columns=["Date", "LR No", "Party", "State", "Amount", "Status"],
    )


def payments_table(payments: Iterable[Payment]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Payment Date": p.payment_date,
                "Transport": p.transport_name,
                "Period": f"{p.from_date or '-'} → {p.to_date or '-'}",
                "Amount": p.amount,
                "Narration": p.narration,
                "Signature": p.signature_image_url or None,
            }
            for p in payments
        ],
        columns=["Payment Date", "Transport", "Period", "Amount", "Narration", "Signature"],
    )


def users_table(users: Iterable[UserProfile]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Email": u.email or u.uid, "Role": str(u.role).title()} for u in users],
        columns=["Email", "Role"],
    )


# ============================================================================
# Search Screen Actions
# ============================================================================

BULK_DELETE = "delete"


def run_bulk_action(
    store: FirestoreManager,
    profile: Optional[UserProfile],
    parcels: list[Parcel],
    action: str,
) -> str:
    """Apply a bulk action to the selected parcels.

    Args:
        store: Firestore access.
        profile: Profile of the signed-in user; must be an admin.
        parcels: Selected parcels.
        action: ``"paid"``, ``"pending"`` or ``"delete"``.

    Returns:
        Confirmation message for the user.

    Raises:
        PermissionDeniedError: If the user is not an admin.
        ValueError: If the action is unknown.
    """
    if action == BULK_DELETE:
        require_admin(profile, "delete entries")
        count = store.bulk_delete([p.id for p in parcels])
        return f"Deleted {count} entries."

    status = ParcelStatus(action)
    require_admin(profile, "update status")
    count = store.bulk_update_status(parcels, status)
    return f"Marked {count} entries as {status.value}."


def import_parcels_file(
    store: FirestoreManager, filename: str, content: bytes, uid: Optional[str]
) -> ImportResult:
    """Read an import file and write its parcels.

    Raises:
        ImportFileError: If the file cannot be read.
    """
    rows = read_import_file(filename, content)
    documents = normalize_import_rows(rows, uid)
    imported = store.import_parcels(documents) if documents else 0
    return ImportResult(rows_read=len(rows), imported=imported, skipped=len(rows) - len(documents))
