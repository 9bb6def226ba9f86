from contextlib import contextmanager
from typing import Any, Dict, Optional

import pandas as pd
import streamlit as st

from parcelboard.config import configure_logging, get_settings
from parcelboard.data import EXPORT_FILENAME, export_to_csv, prepare_context
from parcelboard.filters import DEFAULT_TIME_FILTER, DashboardFilters
from parcelboard.metrics_courier import compute_courier_report
from parcelboard.metrics_dashboard import compute_overview
from parcelboard.metrics_parcels import compute_parcels_report
from parcelboard.metrics_staff import compute_staff_performance
from parcelboard.session import DashboardSession
from parcelboard.store import ParcelStoreError, build_store

PAGES = ["Dashboard", "Staff Performance", "Courier Report", "Parcel Data"]
FILTER_LABELS = {"today": "Today", "week": "Last 7 Days", "month": "Last 30 Days"}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def get_session(page: str) -> DashboardSession:
    """One session per page, so each page keeps its own filter and data."""
    sessions: Dict[str, DashboardSession] = st.session_state.setdefault("sessions", {})
    if page not in sessions:
        s = get_settings()
        if "store" not in st.session_state:
            st.session_state["store"] = build_store(s)
        session = DashboardSession(st.session_state["store"], DashboardFilters(delay_hours=s.delay_hours, row_limit=s.row_limit))
        session.reload()
        sessions[page] = session
    return sessions[page]


def render_page_header(title: str, session: DashboardSession, allow_seed: bool = False):
    inject_base_styles()
    c1, c2, c3 = st.columns([6, 2, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>Admin / Analytics</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        st.download_button(
            "Export CSV",
            data=export_to_csv(session.parcels),
            file_name=EXPORT_FILENAME,
            mime="text/csv",
            disabled=session.loading,
        )
    with c3:
        if allow_seed and st.button("Seed Database"):
            with st.spinner("Seeding..."):
                if session.seed():
                    st.success("Database seeded successfully!")
                else:
                    st.error("Failed to seed database. See logs for details.")

    options = list(FILTER_LABELS)
    current = session.filters.time_filter if session.filters.time_filter in options else DEFAULT_TIME_FILTER
    choice = st.radio(
        "Time range",
        options,
        index=options.index(current),
        format_func=FILTER_LABELS.get,
        horizontal=True,
        key=f"filter_{title}",
    )
    if choice != session.filters.time_filter:
        with st.spinner("Loading..."):
            session.change_filter(choice)
    if session.last_error:
        st.warning("Could not refresh parcels; showing the last loaded data.")


def render_chart(payload: Dict[str, Any], key: str):
    spec: Optional[Dict[str, Any]] = payload.get("charts", {}).get(key)
    if spec:
        st.vega_lite_chart(spec, use_container_width=True)
    else:
        st.info("No data for the selected range.")


def context_for(session: DashboardSession) -> Dict[str, Any]:
    return prepare_context(session.filters, session.parcels)


# ----- Page renderers -----

def render_dashboard_page():
    session = get_session("Dashboard")
    render_page_header("Dashboard Overview", session, allow_seed=True)
    payload = compute_overview(session.filters, context_for(session))
    kpis = payload["kpis"]

    cols = st.columns(4)
    cols[0].metric("Total Parcels", f"{kpis['total_parcels']:,}")
    cols[1].metric("Pending Actions", f"{kpis['pending_parcels']:,}", help="Received or assigned. Requires attention.")
    cols[2].metric("Delivered Today", f"{kpis['delivered_today']:,}")
    cols[3].metric("Avg Delivery Time", f"{kpis['avg_delivery_time_hours']} hrs")

    left, right = st.columns(2)
    with left:
        with card("Parcel Status Distribution"):
            render_chart(payload, "status_distribution")
    with right:
        with card("System Efficiency"):
            eff = payload["efficiency"]
            st.metric("Completion Rate", f"{eff['completion_rate_pct']}%")
            st.metric("Total Processed in Range", f"{eff['total_processed']:,}")


def render_staff_page():
    session = get_session("Staff Performance")
    render_page_header("Staff Performance", session)
    payload = compute_staff_performance(session.filters, context_for(session))
    with card("Performance Metrics"):
        if not payload["staff"]:
            st.info("No assigned parcels in this range.")
        else:
            display = pd.DataFrame(payload["staff"]).rename(
                columns={
                    "name": "Staff Name",
                    "total_assigned": "Total Assigned",
                    "delivered": "Delivered",
                    "pending": "Pending",
                    "avg_delivery_time_hours": "Avg Time (Hrs)",
                    "efficiency_pct": "Efficiency %",
                }
            )
            st.dataframe(display.drop(columns=["staff_id"]), use_container_width=True, hide_index=True)
            render_chart(payload, "workload")


def render_courier_page():
    session = get_session("Courier Report")
    render_page_header("Courier Reports", session)
    payload = compute_courier_report(session.filters, context_for(session))
    with card("Courier Volume & Delays"):
        render_chart(payload, "volume_vs_delays")
    if payload["couriers"]:
        display = pd.DataFrame(payload["couriers"]).rename(
            columns={
                "company_name": "Courier Company",
                "total_handled": "Total Handled",
                "delivered": "Delivered",
                "delayed": "Significant Delays",
            }
        )
        st.dataframe(display, use_container_width=True, hide_index=True)


def render_parcels_page():
    session = get_session("Parcel Data")
    render_page_header("Raw Parcel Data", session)
    payload = compute_parcels_report(session.filters, context_for(session))
    if not payload["rows"]:
        st.info("No records found for this range.")
        return
    display = pd.DataFrame(payload["rows"]).rename(
        columns={"parcel_id": "ID", "status": "Status", "courier_company": "Courier", "staff": "Staff", "created": "Date"}
    )
    st.dataframe(display, use_container_width=True, hide_index=True)
    st.caption(f"Showing recent {payload['shown']} of {payload['total']} records. Export CSV for full details.")


# ---------- UI setup ----------
configure_logging(get_settings().log_level)
st.set_page_config(page_title="Parcel Analytics", layout="wide")
inject_base_styles()

with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", PAGES, index=0)

try:
    if nav_choice == "Dashboard":
        render_dashboard_page()
    elif nav_choice == "Staff Performance":
        render_staff_page()
    elif nav_choice == "Courier Report":
        render_courier_page()
    else:
        render_parcels_page()
except ParcelStoreError as exc:
    st.error(f"Parcel store is not available: {exc}")
