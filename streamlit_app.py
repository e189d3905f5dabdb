"""Streamlit app for the Parcel Tracker.

A transport office's parcel ledger: record LR entries, search and manage
them, track payments to transporters, and keep working while offline.
"""

import logging
from datetime import date
from typing import Optional

import streamlit as st
from pydantic import ValidationError

from parcel_tracker.analytics import compute_dashboard
from parcel_tracker.app_utils import (
    BULK_DELETE,
    STATUS_LABELS,
    create_party_chart,
    create_revenue_chart,
    create_state_chart,
    format_inr,
    import_parcels_file,
    parcels_table,
    payments_table,
    recent_parcels_table,
    run_bulk_action,
    users_table,
)
from parcel_tracker.auth import (
    AuthSession,
    can_change_role,
    is_admin,
    require_admin,
    sign_in,
    sign_up,
    toggled_role,
)
from parcel_tracker.config import AppConfig, configure_logging
from parcel_tracker.database import DatabaseManager, get_database_manager
from parcel_tracker.errors import (
    MediaUploadError,
    ParcelTrackerError,
    describe_firebase_error,
    is_connectivity_error,
)
from parcel_tracker.exports import (
    build_receipt_pdf,
    export_filename,
    export_parcels_excel,
    export_parcels_pdf,
    export_payments_excel,
    receipt_filename,
    whatsapp_share_url,
)
from parcel_tracker.extraction import extract_parcel_data, merge_into_form
from parcel_tracker.filters import (
    field_counts,
    filter_parcels,
    filter_payments,
    lr_search_stats,
    merge_states,
    sort_by_frequency,
    summarize_totals,
)
from parcel_tracker.firebase import get_firestore_client
from parcel_tracker.firestore_db import FirestoreManager
from parcel_tracker.importers import SUPPORTED_EXTENSIONS, build_import_template
from parcel_tracker.media import MediaUploader, compress_image
from parcel_tracker.offline import count_pending, is_online, save_parcel_offline, sync_offline_data
from parcel_tracker.realtime import CollectionFeed, parcel_feed, payment_feed
from parcel_tracker.schemas import (
    LookupItem,
    LookupKind,
    Parcel,
    ParcelCreate,
    ParcelFilters,
    ParcelStatus,
    Payment,
    PaymentCreate,
    PaymentFilters,
    PaymentMode,
    SortOrder,
    UserProfile,
    compute_total,
)
from parcel_tracker.tally import TDL_FILENAME, build_tdl_script, check_lr_url

# ============================================================================
# Page Configuration
# ============================================================================

st.set_page_config(
    page_title="Parcel Tracker",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded",
)

config = AppConfig.from_env()
configure_logging(config.log_level)
logger = logging.getLogger("parcel_tracker.app")

st.markdown("""
<style>
[data-testid="stMetric"] {
    background-color: white;
    padding: 15px;
    border-radius: 8px;
    border: 1px solid #E5E7EB;
    box-shadow: 0 1px 2px rgba(0, 0, 0, 0.05);
}
</style>
""", unsafe_allow_html=True)

SORT_LABELS = {
    SortOrder.DATE_DESC.value: "Date (newest first)",
    SortOrder.DATE_ASC.value: "Date (oldest first)",
    SortOrder.AMOUNT_DESC.value: "Amount (high to low)",
    SortOrder.AMOUNT_ASC.value: "Amount (low to high)",
    SortOrder.PAID_FIRST.value: "Paid first",
    SortOrder.PENDING_FIRST.value: "Pending first",
}
STATUS_OPTIONS = [s.value for s in ParcelStatus]
MODE_OPTIONS = [m.value for m in PaymentMode]


# ============================================================================
# Resources with Caching
# ============================================================================


@st.cache_resource
def get_store() -> FirestoreManager:
    return FirestoreManager(get_firestore_client(config))


@st.cache_resource
def get_offline_db() -> DatabaseManager:
    return get_database_manager(config.offline_db_path)


@st.cache_resource
def get_uploader() -> MediaUploader:
    return MediaUploader(config)


@st.cache_resource
def get_parcel_feed() -> CollectionFeed[Parcel]:
    """Live parcel list, subscribed once per process."""
    feed = parcel_feed(get_store().client).start()
    feed.wait(10)
    return feed


@st.cache_resource
def get_payment_feed() -> CollectionFeed[Payment]:
    feed = payment_feed(get_store().client).start()
    feed.wait(10)
    return feed


@st.cache_data(ttl=15, show_spinner=False)
def check_online(probe_url: str) -> bool:
    return is_online(probe_url)


@st.cache_data(ttl=60, show_spinner=False)
def load_lookup(kind: str) -> list[LookupItem]:
    return get_store().list_lookup(LookupKind(kind))


@st.cache_data(ttl=60, show_spinner=False)
def load_dashboard_parcels(date_from: Optional[str], date_to: Optional[str]) -> list[Parcel]:
    return get_store().query_parcels(date_from, date_to)


@st.cache_data(ttl=300, show_spinner=False)
def load_suggested_rate(party_name: str, state: str) -> Optional[float]:
    return get_store().suggest_rate(party_name, state)


def _iso(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        return date.today()


def _optional_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError:
        return None


def _refresh(feed: CollectionFeed) -> None:
    """Re-read a feed after a write so the next run shows it."""
    try:
        feed.refresh()
    except Exception as e:
        logger.warning("Feed refresh of %s failed: %s", feed.name, e)


def _flash(message: str, kind: str = "success") -> None:
    st.session_state["flash"] = (kind, message)


def _show_flash() -> None:
    flash = st.session_state.pop("flash", None)
    if flash:
        kind, message = flash
        getattr(st, kind)(message)


def _show_error(exc: BaseException) -> None:
    logger.error("Action failed: %s", exc)
    st.error(describe_firebase_error(exc))


# ============================================================================
# Authentication
# ============================================================================


def render_login() -> None:
    """Show sign in and sign up forms until a user is signed in."""
    st.title("📦 Parcel Tracker")
    st.markdown("### *Sign in to manage parcels and payments*")

    col, _ = st.columns([2, 3])
    with col:
        sign_in_tab, sign_up_tab = st.tabs(["🔑 Sign In", "📝 Create Account"])

        with sign_in_tab:
            with st.form("sign_in"):
                email = st.text_input("Email")
                password = st.text_input("Password", type="password")
                submitted = st.form_submit_button("Sign In", type="primary")
            if submitted:
                try:
                    st.session_state["auth"] = sign_in(config.firebase_web_api_key, email, password)
                    st.rerun()
                except ParcelTrackerError as e:
                    _show_error(e)

        with sign_up_tab:
            with st.form("sign_up"):
                email = st.text_input("Email", key="sign_up_email")
                password = st.text_input("Password", type="password", key="sign_up_password")
                submitted = st.form_submit_button("Create Account", type="primary")
            if submitted:
                try:
                    st.session_state["auth"] = sign_up(config.firebase_web_api_key, email, password)
                    st.rerun()
                except ParcelTrackerError as e:
                    _show_error(e)


def load_profile(session: AuthSession) -> Optional[UserProfile]:
    """Read the user's profile, creating it on first login."""
    store = get_store()
    try:
        profile, created = store.ensure_user_profile(session.uid, session.email)
    except Exception as e:
        if not is_connectivity_error(e):
            _show_error(e)
        return st.session_state.get("profile")
    if created and profile.is_admin:
        st.toast("Welcome! As the first user you are an admin.", icon="🎉")
    st.session_state["profile"] = profile
    return profile


if "auth" not in st.session_state:
    render_login()
    st.stop()

session: AuthSession = st.session_state["auth"]
profile = load_profile(session)
admin = is_admin(profile)

store = get_store()
offline_db = get_offline_db()
uploader = get_uploader()
online = check_online(config.online_probe_url)


# ============================================================================
# Sidebar
# ============================================================================


def run_sync(show_result: bool = False) -> None:
    result = sync_offline_data(store, offline_db, session.uid, uploader=uploader, online=online)
    if result.synced:
        st.toast(f"Synced {result.synced} offline entr{'y' if result.synced == 1 else 'ies'}", icon="✅")
        _refresh(get_parcel_feed())
    if show_result and result.failed:
        st.sidebar.warning(f"{result.failed} entries could not be synced and stay queued.")
    elif show_result and not online:
        st.sidebar.warning("Still offline.")


with st.sidebar:
    st.markdown("### 👤 Account")
    st.markdown(f"**{session.email}**")
    st.caption(f"Role: {str(profile.role).title() if profile else 'Unknown'}")

    st.markdown("### 🌐 Connection")
    if online:
        st.success("Online")
    else:
        st.error("Offline: new entries are saved on this device")

    pending = count_pending(offline_db)
    st.metric("Pending sync", pending)
    if st.button("🔄 Sync now", disabled=pending == 0, use_container_width=True):
        run_sync(show_result=True)

    st.markdown("")
    if st.button("🚪 Logout", use_container_width=True):
        for key in ("auth", "profile", "last_saved"):
            st.session_state.pop(key, None)
        st.rerun()

# Flush queued entries whenever the app runs online
if online and pending:
    run_sync()


# ============================================================================
# Header Section
# ============================================================================

st.title("📦 Parcel Tracker")
st.markdown("### *Parcel entries, payments and reports for the transport office*")
_show_flash()

parcels_feed = get_parcel_feed()
all_parcels = parcels_feed.items()
if parcels_feed.error is not None:
    st.warning(describe_firebase_error(parcels_feed.error))

parties = [item.name for item in load_lookup(LookupKind.PARTIES.value)]
transports = [item.name for item in load_lookup(LookupKind.TRANSPORTS.value)]
custom_states = [item.name for item in load_lookup(LookupKind.STATES.value)]

party_names = sort_by_frequency(
    parties + [p.party_name for p in all_parcels], field_counts(all_parcels, "party_name")
)
transport_names = sort_by_frequency(
    transports + [p.transport for p in all_parcels if p.transport], field_counts(all_parcels, "transport")
)
state_names = sort_by_frequency(
    merge_states(custom_states, [p.state for p in all_parcels]), field_counts(all_parcels, "state")
)

# ============================================================================
# Tab Navigation
# ============================================================================

tab1, tab2, tab3, tab4, tab5 = st.tabs([
    "📊 Dashboard",
    "📝 New Entry",
    "🔍 Search & Manage",
    "💰 Payments",
    "⚙️ Settings",
])


# ============================================================================
# Tab 1: Dashboard
# ============================================================================

with tab1:
    st.header("📊 Dashboard")
    st.markdown("*Bookings, revenue and outstanding amounts*")

    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        dash_from = st.date_input("From", value=None, key="dash_from")
    with col2:
        dash_to = st.date_input("To", value=None, key="dash_to")
    with col3:
        dash_state = st.selectbox("State", ["all"] + state_names, key="dash_state")
    with col4:
        dash_transport = st.selectbox("Transport", ["all"] + transport_names, key="dash_transport")
    with col5:
        dash_status = st.selectbox(
            "Status", ["all"] + STATUS_OPTIONS, key="dash_status",
            format_func=lambda s: "All" if s == "all" else STATUS_LABELS[s],
        )

    try:
        dash_parcels = load_dashboard_parcels(_iso(dash_from) or None, _iso(dash_to) or None)
    except Exception as e:
        _show_error(e)
        dash_parcels = []

    dashboard = compute_dashboard(
        dash_parcels, state=dash_state, transport=dash_transport, status=dash_status
    )
    stats = dashboard.stats

    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        st.metric("Parcels", stats.total_parcels)
    with col2:
        st.metric("Total Weight", f"{stats.total_weight:,.1f} kg")
    with col3:
        st.metric("Revenue", format_inr(stats.total_revenue))
    with col4:
        st.metric("Paid", format_inr(stats.paid_amount))
    with col5:
        st.metric("Pending", format_inr(stats.pending_amount))

    st.markdown("")

    if stats.total_parcels == 0:
        st.info("No parcels match the selected filters.")
    else:
        col_left, col_right = st.columns(2)
        with col_left:
            st.plotly_chart(create_revenue_chart(dashboard.revenue_trend), use_container_width=True)
        with col_right:
            st.plotly_chart(create_state_chart(dashboard.by_state), use_container_width=True)

        col_left, col_right = st.columns(2)
        with col_left:
            st.plotly_chart(create_party_chart(dashboard.by_party), use_container_width=True)
        with col_right:
            st.markdown("#### Recent Parcels")
            st.dataframe(recent_parcels_table(dashboard.recent), hide_index=True, use_container_width=True)


# ============================================================================
# Tab 2: New Entry
# ============================================================================

ENTRY_FIELDS = ("lr_number", "party_name", "weight", "total_amount", "date")

if "entry_version" not in st.session_state:
    st.session_state["entry_version"] = 0


def entry_key(name: str) -> str:
    """Widget key of the entry form; bumping the version clears the form."""
    return f"entry_{name}_{st.session_state['entry_version']}"


def apply_scan() -> None:
    """Prefill the entry form from a scanned receipt."""
    photo = st.session_state.get("scan_photo")
    if photo is None:
        st.session_state["scan_message"] = ("warning", "Choose a receipt photo first.")
        return
    try:
        extracted = extract_parcel_data(
            photo.getvalue(), photo.type or "image/jpeg",
            api_key=config.gemini_api_key, model=config.gemini_model,
        )
    except ParcelTrackerError as e:
        st.session_state["scan_message"] = ("error", str(e))
        return

    if extracted.is_empty():
        st.session_state["scan_message"] = ("warning", "Nothing could be read from the photo.")
        return

    current = {name: st.session_state.get(entry_key(name)) for name in ENTRY_FIELDS}
    merged = merge_into_form(current, extracted)
    if isinstance(merged.get("date"), str):
        merged["date"] = date.fromisoformat(merged["date"])
    for name in ENTRY_FIELDS:
        if merged.get(name) is not None:
            st.session_state[entry_key(name)] = merged[name]
    st.session_state["scan_message"] = ("success", "Form filled from the scanned receipt. Please check the values.")


def apply_rate(rate: float) -> None:
    st.session_state[entry_key("rate")] = rate


def save_entry(parcel: ParcelCreate, photo) -> Optional[Parcel]:
    """Write the entry to Firestore, or queue it when offline.

    Returns:
        The saved parcel, None when it was queued offline.
    """
    image = compress_image(photo.getvalue()) if photo is not None else None

    if online:
        try:
            parcel_id = store.add_parcel(parcel, session.uid)
        except Exception as e:
            if not is_connectivity_error(e):
                raise
            logger.warning("Write failed with a connectivity error, queueing offline: %s", e)
        else:
            saved = Parcel(**parcel.with_computed_total().model_dump(), id=parcel_id, created_by=session.uid)
            if image is not None:
                try:
                    url = uploader.upload(image, photo.name)
                    store.set_parcel_image(parcel_id, url)
                    saved.weight_image_url = url
                except ParcelTrackerError as e:
                    logger.warning("Image upload for parcel %s failed: %s", parcel_id, e)
                    _flash(f"Entry saved, but the image could not be uploaded: {e}", "warning")
            return saved

    save_parcel_offline(
        offline_db, parcel, image=image,
        image_name=photo.name if photo is not None else None,
        image_mime="image/jpeg" if image is not None else None,
    )
    return None


with tab2:
    st.header("📝 New Entry")
    st.markdown("*Record a parcel booked with a transporter*")

    if config.ai_scan_enabled:
        with st.expander("✨ Scan receipt with AI"):
            st.file_uploader("Receipt photo", type=["jpg", "jpeg", "png", "webp"], key="scan_photo")
            st.button("Scan and fill form", on_click=apply_scan)
            scan_message = st.session_state.pop("scan_message", None)
            if scan_message:
                getattr(st, scan_message[0])(scan_message[1])
    else:
        st.caption("AI scan is not configured (set GEMINI_API_KEY).")

    col_left, col_right = st.columns(2)

    with col_left:
        lr_number = st.text_input("LR Number *", key=entry_key("lr_number"))

        new_party = st.checkbox("New party", key=entry_key("new_party"))
        if new_party:
            party_name = st.text_input("Party name *", key=entry_key("party_new"))
        else:
            scanned_party = st.session_state.get(entry_key("party_name"))
            options = party_names
            if scanned_party and scanned_party not in options:
                options = [scanned_party] + options
            party_name = st.selectbox("Party *", options, index=None, key=entry_key("party_name"))

        new_transport = st.checkbox("New transport", key=entry_key("new_transport"))
        if new_transport:
            transport = st.text_input("Transport name", key=entry_key("transport_new"))
        else:
            transport = st.selectbox("Transport", [""] + transport_names, key=entry_key("transport"))

        new_state = st.checkbox("New state", key=entry_key("new_state"))
        if new_state:
            state = st.text_input("State name *", key=entry_key("state_new"))
        else:
            state = st.selectbox("State *", state_names, key=entry_key("state"))

        if entry_key("date") not in st.session_state:
            st.session_state[entry_key("date")] = date.today()
        entry_date = st.date_input("Date", key=entry_key("date"))

    with col_right:
        weight = st.number_input("Weight (kg)", min_value=0.0, step=0.5, key=entry_key("weight"))

        suggested = None
        if party_name and state and online:
            try:
                suggested = load_suggested_rate(party_name.strip(), state.strip().upper())
            except Exception as e:
                logger.warning("Rate suggestion failed: %s", e)
        if suggested:
            st.button(
                f"💡 Use last rate: {format_inr(suggested)}/kg",
                on_click=apply_rate, args=(suggested,),
            )

        rate = st.number_input("Rate (per kg)", min_value=0.0, step=0.5, key=entry_key("rate"))

        computed = compute_total(weight, rate)
        if computed is not None:
            st.number_input("Total Amount", value=computed, disabled=True)
            total_amount = computed
        else:
            total_amount = st.number_input("Total Amount", min_value=0.0, step=1.0, key=entry_key("total_amount"))

        paid_amount = st.number_input("Paid Amount", min_value=0.0, step=1.0, key=entry_key("paid_amount"))
        status = st.selectbox("Status", STATUS_OPTIONS, key=entry_key("status"), format_func=STATUS_LABELS.get)
        payment_mode = st.selectbox("Payment Mode", MODE_OPTIONS, key=entry_key("mode"), format_func=str.title)

    photo = st.file_uploader(
        "Weight photo (optional)", type=["jpg", "jpeg", "png", "webp"], key=entry_key("photo"),
    )
    if photo is not None and not uploader.enabled:
        st.caption("Image upload is not configured; the photo will not be stored.")

    if st.button("💾 Save Entry", type="primary"):
        try:
            parcel = ParcelCreate(
                lr_number=lr_number,
                party_name=party_name or "",
                transport=transport or "",
                state=state or "",
                weight=weight,
                rate=rate,
                total_amount=total_amount,
                paid_amount=paid_amount,
                status=status,
                payment_mode=payment_mode,
                date=entry_date.isoformat(),
            )
            if not parcel.lr_number or not parcel.party_name or not parcel.state:
                raise ValueError("LR Number, Party and State are required.")

            if online:
                if new_party:
                    store.add_lookup(LookupKind.PARTIES, parcel.party_name)
                if new_transport and parcel.transport:
                    store.add_lookup(LookupKind.TRANSPORTS, parcel.transport)
                if new_state:
                    store.add_lookup(LookupKind.STATES, parcel.state)
                load_lookup.clear()

            saved = save_entry(parcel, photo if uploader.enabled else None)
        except ValidationError as e:
            st.error(e.errors()[0]["msg"])
        except ValueError as e:
            st.error(str(e))
        except Exception as e:
            _show_error(e)
        else:
            if saved is None:
                _flash("You are offline. The entry was saved on this device and will sync automatically.", "info")
            else:
                _flash(f"Entry for LR {saved.lr_number} saved.")
                _refresh(parcels_feed)
                load_suggested_rate.clear()
            st.session_state["last_saved"] = saved
            st.session_state["entry_version"] += 1
            st.rerun()

    last_saved: Optional[Parcel] = st.session_state.get("last_saved")
    if last_saved is not None:
        st.markdown("#### Last saved entry")
        col1, col2 = st.columns(2)
        with col1:
            st.download_button(
                "🧾 Download Receipt",
                data=build_receipt_pdf(last_saved),
                file_name=receipt_filename(last_saved),
                mime="application/pdf",
            )
        with col2:
            st.link_button("📱 Share on WhatsApp", whatsapp_share_url(last_saved))


# ============================================================================
# Tab 3: Search & Manage
# ============================================================================


def edit_parcel_form(parcel: Parcel) -> None:
    """Admin form for a single parcel."""
    with st.form(f"edit_{parcel.id}"):
        col_left, col_right = st.columns(2)
        with col_left:
            lr = st.text_input("LR Number", value=parcel.lr_number)
            party = st.text_input("Party", value=parcel.party_name)
            transport_value = st.text_input("Transport", value=parcel.transport)
            state_value = st.text_input("State", value=parcel.state)
            date_value = st.date_input("Date", value=_parse_date(parcel.date))
        with col_right:
            weight_value = st.number_input("Weight (kg)", min_value=0.0, value=float(parcel.weight))
            rate_value = st.number_input("Rate (per kg)", min_value=0.0, value=float(parcel.rate))
            st.caption(f"Total is recalculated as weight × rate on save (now {format_inr(parcel.total_amount)}).")
            paid_value = st.number_input("Paid Amount", min_value=0.0, value=float(parcel.paid_amount))
            status_value = st.selectbox(
                "Status", STATUS_OPTIONS, index=STATUS_OPTIONS.index(parcel.status), format_func=STATUS_LABELS.get,
            )
            mode_value = st.selectbox(
                "Payment Mode", MODE_OPTIONS, index=MODE_OPTIONS.index(parcel.payment_mode), format_func=str.title,
            )
        new_photo = st.file_uploader("Replace weight photo", type=["jpg", "jpeg", "png", "webp"])
        saved = st.form_submit_button("💾 Save Changes", type="primary")

    if not saved:
        return
    try:
        require_admin(profile, "edit entries")
        image_url = parcel.weight_image_url
        if new_photo is not None:
            image_url = uploader.upload_image(new_photo.getvalue(), new_photo.name)
        updated = ParcelCreate(
            lr_number=lr,
            party_name=party,
            transport=transport_value,
            state=state_value,
            weight=weight_value,
            rate=rate_value,
            paid_amount=paid_value,
            status=status_value,
            payment_mode=mode_value,
            weight_image_url=image_url,
            date=date_value.isoformat(),
        )
        store.update_parcel(parcel.id, updated)
    except ValidationError as e:
        st.error(e.errors()[0]["msg"])
    except Exception as e:
        _show_error(e)
    else:
        _flash(f"LR {updated.lr_number} updated.")
        _refresh(parcels_feed)
        st.rerun()


with tab3:
    st.header("🔍 Search & Manage")
    st.markdown("*Live list of all parcel entries*")

    col1, col2, col3, col4, col5, col6 = st.columns([2, 1, 1, 1, 1, 1])
    with col1:
        search_term = st.text_input(
            "Search LR number or party", value=st.query_params.get("q", ""), key="search_term",
        )
    with col2:
        search_from = st.date_input("From", value=None, key="search_from")
    with col3:
        search_to = st.date_input("To", value=None, key="search_to")
    with col4:
        search_status = st.selectbox(
            "Status", ["all"] + STATUS_OPTIONS, key="search_status",
            format_func=lambda s: "All" if s == "all" else STATUS_LABELS[s],
        )
    with col5:
        search_state = st.selectbox("State", ["all"] + state_names, key="search_state")
    with col6:
        sort_by = st.selectbox("Sort", list(SORT_LABELS), key="search_sort", format_func=SORT_LABELS.get)

    filters = ParcelFilters(
        search_term=search_term,
        date_from=_iso(search_from),
        date_to=_iso(search_to),
        status=search_status,
        state=search_state,
        sort_by=sort_by,
    )
    visible = filter_parcels(all_parcels, filters)
    totals = summarize_totals(visible)

    col1, col2, col3, col4, col5 = st.columns(5)
    with col1:
        st.metric("Entries", totals.count)
    with col2:
        st.metric("Weight", f"{totals.total_weight:,.1f} kg")
    with col3:
        st.metric("Amount", format_inr(totals.total_amount))
    with col4:
        st.metric("Paid", format_inr(totals.total_paid))
    with col5:
        st.metric("Pending", format_inr(totals.total_pending))

    lr_stats = lr_search_stats(all_parcels, search_term.strip())
    if lr_stats is not None:
        match = "" if lr_stats.is_exact else " (closest match)"
        st.info(f"LR **{lr_stats.lr}**{match} appears in **{lr_stats.count}** entr{'y' if lr_stats.count == 1 else 'ies'}.")

    table = parcels_table(visible)
    edited = st.data_editor(
        table,
        hide_index=True,
        use_container_width=True,
        disabled=[column for column in table.columns if column != "Select"],
        column_config={
            "Select": st.column_config.CheckboxColumn("✔", width="small"),
            "Amount": st.column_config.NumberColumn(format="₹%.2f"),
            "Paid": st.column_config.NumberColumn(format="₹%.2f"),
            "Image": st.column_config.LinkColumn(display_text="View"),
        },
        key="parcel_editor",
    )
    selected_ids = [parcel_id for parcel_id, row in edited.iterrows() if row["Select"]]
    by_id = {p.id: p for p in visible}
    selected = [by_id[parcel_id] for parcel_id in selected_ids if parcel_id in by_id]

    if admin:
        st.markdown(f"**Bulk actions** ({len(selected)} selected)")
        col1, col2, col3, col4 = st.columns([1, 1, 1, 2])
        with col1:
            mark_paid = st.button("🟢 Mark Paid", disabled=not selected)
        with col2:
            mark_pending = st.button("🔴 Mark Pending", disabled=not selected)
        with col3:
            bulk_delete = st.button("🗑️ Delete", disabled=not selected)
        with col4:
            confirm_delete = st.checkbox("Confirm delete", key="confirm_bulk_delete")

        done = None
        try:
            if mark_paid or mark_pending:
                new_status = ParcelStatus.PAID if mark_paid else ParcelStatus.PENDING
                done = run_bulk_action(store, profile, selected, new_status.value)
            elif bulk_delete and not confirm_delete:
                st.warning("Tick 'Confirm delete' to delete the selected entries.")
            elif bulk_delete:
                done = run_bulk_action(store, profile, selected, BULK_DELETE)
        except Exception as e:
            _show_error(e)
        if done:
            _flash(done)
            _refresh(parcels_feed)
            st.rerun()
    else:
        st.caption("👁️ View only: editing and deleting entries is limited to admins.")

    if visible:
        st.markdown("#### Entry details")
        chosen_id = st.selectbox(
            "Entry",
            [p.id for p in visible],
            format_func=lambda pid: f"{by_id[pid].lr_number} · {by_id[pid].party_name} · {by_id[pid].date}",
            key="search_chosen",
        )
        chosen = by_id[chosen_id]
        col1, col2, col3 = st.columns(3)
        with col1:
            st.download_button(
                "🧾 Receipt PDF",
                data=build_receipt_pdf(chosen),
                file_name=receipt_filename(chosen),
                mime="application/pdf",
                key=f"receipt_{chosen.id}",
            )
        with col2:
            if chosen.weight_image_url:
                st.link_button("🖼️ Weight photo", chosen.weight_image_url)
        if admin:
            with col3:
                if st.button("🗑️ Delete entry", key=f"delete_{chosen.id}"):
                    try:
                        require_admin(profile, "delete entries")
                        store.delete_parcel(chosen.id)
                    except Exception as e:
                        _show_error(e)
                    else:
                        _flash(f"LR {chosen.lr_number} deleted.")
                        _refresh(parcels_feed)
                        st.rerun()
            with st.expander("✏️ Edit entry"):
                edit_parcel_form(chosen)

    st.markdown("#### Import & Export")
    col_left, col_right = st.columns(2)

    with col_left:
        upload = st.file_uploader(
            "Import parcels", type=[ext.lstrip(".") for ext in SUPPORTED_EXTENSIONS], key="import_file",
        )
        if upload is not None and st.button("📥 Import", type="primary"):
            result = None
            try:
                result = import_parcels_file(store, upload.name, upload.getvalue(), session.uid)
            except Exception as e:
                _show_error(e)
            if result is not None and not result.imported:
                st.warning("No rows with an LR number and party were found.")
            elif result is not None:
                _flash(f"Imported {result.imported} of {result.rows_read} rows ({result.skipped} skipped).")
                _refresh(parcels_feed)
                st.rerun()
        st.download_button(
            "📄 Download import template",
            data=build_import_template(),
            file_name="parcel_import_template.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    with col_right:
        st.download_button(
            "📊 Export view to Excel",
            data=export_parcels_excel(visible),
            file_name=export_filename("Parcels", "xlsx"),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            disabled=not visible,
        )
        st.download_button(
            "📑 Export view to PDF",
            data=export_parcels_pdf(visible),
            file_name=export_filename("Parcel_Report", "pdf"),
            mime="application/pdf",
            disabled=not visible,
        )


# ============================================================================
# Tab 4: Payments
# ============================================================================

with tab4:
    st.header("💰 Payments")
    st.markdown("*Payments made to transporters*")

    payments_feed = get_payment_feed()
    all_payments = payments_feed.items()

    col1, col2, col3, col4 = st.columns([2, 1, 1, 1])
    with col1:
        pay_term = st.text_input("Search transport or narration", key="pay_term")
    with col2:
        pay_from = st.date_input("From", value=None, key="pay_from")
    with col3:
        pay_to = st.date_input("To", value=None, key="pay_to")
    with col4:
        pay_transport = st.selectbox("Transport", ["all"] + transport_names, key="pay_transport")

    visible_payments = filter_payments(
        all_payments,
        PaymentFilters(
            search_term=pay_term,
            date_from=_iso(pay_from),
            date_to=_iso(pay_to),
            transport=pay_transport,
        ),
    )

    col1, col2 = st.columns(2)
    with col1:
        st.metric("Payments", len(visible_payments))
    with col2:
        st.metric("Total Paid", format_inr(sum(p.amount for p in visible_payments)))

    st.dataframe(
        payments_table(visible_payments),
        hide_index=True,
        use_container_width=True,
        column_config={
            "Amount": st.column_config.NumberColumn(format="₹%.2f"),
            "Signature": st.column_config.LinkColumn(display_text="View"),
        },
    )
    st.download_button(
        "📊 Export payments to Excel",
        data=export_payments_excel(visible_payments),
        file_name=export_filename("Payments", "xlsx"),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        disabled=not visible_payments,
    )

    with st.expander("➕ Record payment"):
        with st.form("new_payment", clear_on_submit=True):
            col_left, col_right = st.columns(2)
            with col_left:
                pay_transport_name = st.selectbox("Transport *", transport_names, index=None)
                pay_date = st.date_input("Payment date", value=date.today())
                pay_amount = st.number_input("Amount", min_value=0.0, step=100.0)
            with col_right:
                pay_period_from = st.date_input("Period from", value=None)
                pay_period_to = st.date_input("Period to", value=None)
                pay_narration = st.text_input("Narration")
            signature = st.file_uploader("Signature photo (optional)", type=["jpg", "jpeg", "png", "webp"])
            submitted = st.form_submit_button("💾 Save Payment", type="primary")

        if submitted:
            try:
                payment = PaymentCreate(
                    transport_name=pay_transport_name or "",
                    payment_date=pay_date.isoformat(),
                    from_date=_iso(pay_period_from),
                    to_date=_iso(pay_period_to),
                    amount=pay_amount,
                    narration=pay_narration,
                )
                if signature is not None:
                    # Without the signature the payment is not recorded
                    payment.signature_image_url = uploader.upload_image(signature.getvalue(), signature.name)
                store.add_payment(payment, session.uid)
            except ValidationError as e:
                st.error(e.errors()[0]["msg"])
            except MediaUploadError as e:
                st.error(f"Signature upload failed, payment not saved: {e}")
            except Exception as e:
                _show_error(e)
            else:
                _flash(f"Payment of {format_inr(payment.amount)} to {payment.transport_name} saved.")
                _refresh(payments_feed)
                st.rerun()

    if admin and visible_payments:
        with st.expander("✏️ Edit or delete payment"):
            payments_by_id = {p.id: p for p in visible_payments}
            chosen_payment_id = st.selectbox(
                "Payment",
                list(payments_by_id),
                format_func=lambda pid: (
                    f"{payments_by_id[pid].payment_date} · {payments_by_id[pid].transport_name}"
                    f" · {format_inr(payments_by_id[pid].amount)}"
                ),
            )
            chosen_payment = payments_by_id[chosen_payment_id]
            with st.form(f"edit_payment_{chosen_payment.id}"):
                col_left, col_right = st.columns(2)
                with col_left:
                    edit_transport = st.text_input("Transport", value=chosen_payment.transport_name)
                    edit_date = st.date_input("Payment date", value=_parse_date(chosen_payment.payment_date))
                    edit_amount = st.number_input("Amount", min_value=0.0, value=float(chosen_payment.amount))
                with col_right:
                    edit_from = st.date_input("Period from", value=_optional_date(chosen_payment.from_date))
                    edit_to = st.date_input("Period to", value=_optional_date(chosen_payment.to_date))
                    edit_narration = st.text_input("Narration", value=chosen_payment.narration)
                if chosen_payment.signature_image_url:
                    st.markdown(f"[Current signature]({chosen_payment.signature_image_url})")
                new_signature = st.file_uploader(
                    "Replace signature photo", type=["jpg", "jpeg", "png", "webp"]
                )
                col1, col2 = st.columns(2)
                with col1:
                    save_payment = st.form_submit_button("💾 Save", type="primary")
                with col2:
                    delete_payment = st.form_submit_button("🗑️ Delete")

            done = None
            try:
                if save_payment:
                    require_admin(profile, "edit payments")
                    updated_payment = PaymentCreate(
                        transport_name=edit_transport,
                        payment_date=_iso(edit_date),
                        from_date=_iso(edit_from),
                        to_date=_iso(edit_to),
                        amount=edit_amount,
                        narration=edit_narration,
                        signature_image_url=chosen_payment.signature_image_url,
                    )
                    if new_signature is not None:
                        # A failed replacement leaves the payment unchanged
                        updated_payment.signature_image_url = uploader.upload_image(
                            new_signature.getvalue(), new_signature.name
                        )
                    store.update_payment(chosen_payment.id, updated_payment)
                    done = "Payment updated."
                elif delete_payment:
                    require_admin(profile, "delete payments")
                    store.delete_payment(chosen_payment.id)
                    done = "Payment deleted."
            except ValidationError as e:
                st.error(e.errors()[0]["msg"])
            except MediaUploadError as e:
                st.error(f"Signature upload failed, payment not updated: {e}")
            except Exception as e:
                _show_error(e)
            if done:
                _flash(done)
                _refresh(payments_feed)
                st.rerun()


# ============================================================================
# Tab 5: Settings
# ============================================================================


def lookup_manager(kind: LookupKind, label: str, names: list[str], counts) -> None:
    """Add and delete entries of one lookup list."""
    items = {item.name: item for item in load_lookup(kind.value)}
    st.markdown(f"#### {label}")
    st.caption("Most used first.")
    st.dataframe(
        [{"Name": name, "Entries": counts.get(name, 0)} for name in names if name in items],
        hide_index=True,
        use_container_width=True,
    )

    with st.form(f"add_{kind.value}", clear_on_submit=True):
        new_name = st.text_input(f"New {label.lower().rstrip('s')}")
        if st.form_submit_button("➕ Add"):
            try:
                store.add_lookup(kind, new_name)
            except ValueError as e:
                st.error(str(e))
            except Exception as e:
                _show_error(e)
            else:
                load_lookup.clear()
                st.rerun()

    if admin and items:
        col1, col2 = st.columns([3, 1])
        with col1:
            to_delete = st.selectbox("Remove", sorted(items), key=f"remove_{kind.value}")
        with col2:
            st.markdown("")
            if st.button("🗑️ Remove", key=f"remove_btn_{kind.value}"):
                try:
                    require_admin(profile, f"delete {label.lower()}")
                    store.delete_lookup(kind, items[to_delete].id)
                except Exception as e:
                    _show_error(e)
                else:
                    load_lookup.clear()
                    st.rerun()


with tab5:
    st.header("⚙️ Settings")

    st.markdown("#### 👤 Profile")
    st.markdown(f"- **Email**: {session.email}\n- **Role**: {str(profile.role).title() if profile else 'Unknown'}")

    col1, col2, col3 = st.columns(3)
    with col1:
        lookup_manager(LookupKind.PARTIES, "Parties", party_names, field_counts(all_parcels, "party_name"))
    with col2:
        lookup_manager(LookupKind.TRANSPORTS, "Transports", transport_names, field_counts(all_parcels, "transport"))
    with col3:
        lookup_manager(LookupKind.STATES, "States", state_names, field_counts(all_parcels, "state"))

    if admin:
        st.markdown("#### 👥 Users")
        try:
            users = store.list_users()
        except Exception as e:
            _show_error(e)
            users = []
        st.dataframe(users_table(users), hide_index=True, use_container_width=True)
        others = [u for u in users if can_change_role(profile, u.uid)]
        if others:
            col1, col2 = st.columns([3, 1])
            with col1:
                target = st.selectbox(
                    "User", others, format_func=lambda u: f"{u.email or u.uid} ({str(u.role).title()})",
                )
            with col2:
                st.markdown("")
                if st.button(f"Make {toggled_role(target.role).value}"):
                    try:
                        store.set_user_role(target.uid, toggled_role(target.role))
                    except Exception as e:
                        _show_error(e)
                    else:
                        _flash(f"{target.email} is now {toggled_role(target.role).value}.")
                        st.rerun()

    st.markdown("#### 🧾 Tally Integration")
    st.markdown(f"""
    Tally Prime can look up whether a parcel has arrived while an LR number is typed.
    Load the add-on below in Tally (F1 > TDLs & Add-ons) and make sure the status API
    is reachable at:

    `{check_lr_url(config.public_api_url)}&lr=<LR>`
    """)
    st.download_button(
        "⬇️ Download TDL add-on",
        data=build_tdl_script(config.public_api_url),
        file_name=TDL_FILENAME,
        mime="text/plain",
    )
