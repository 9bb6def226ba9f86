from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Iterable, List

import altair as alt
import pandas as pd

from parcelboard.charts import to_vega_spec
from parcelboard.data import hours_1dp, parcels_frame, round_half_up
from parcelboard.filters import DashboardFilters
from parcelboard.models import UNKNOWN_STAFF, Parcel, StaffMetric


def compute_staff_metrics(parcels: Iterable[Parcel]) -> List[StaffMetric]:
    """One rollup per assignee, in order of first appearance.

    Parcels without an assignee are skipped. The display name comes from the
    first parcel seen for that staff id, even when a later parcel carries one.
    """
    df = parcels_frame(parcels)
    df["assigned_to"] = df["assigned_to"].replace("", pd.NA)
    df["assigned_to_name"] = df["assigned_to_name"].replace("", pd.NA)
    assigned = df.dropna(subset=["assigned_to"]).copy()
    if assigned.empty:
        return []

    assigned["delivered_duration_s"] = assigned["duration_s"].where(assigned["is_delivered"], 0)
    grouped = assigned.groupby("assigned_to", sort=False)
    rollup = grouped.agg(
        name=("assigned_to_name", lambda s: s.iloc[0]),
        total_assigned=("parcel_id", "size"),
        delivered=("is_delivered", "sum"),
        delivered_duration_s=("delivered_duration_s", "sum"),
    )

    out: List[StaffMetric] = []
    for staff_id, row in rollup.iterrows():
        total = int(row["total_assigned"])
        delivered = int(row["delivered"])
        name = row["name"]
        out.append(
            StaffMetric(
                staff_id=str(staff_id),
                name=str(name) if pd.notna(name) else UNKNOWN_STAFF,
                total_assigned=total,
                delivered=delivered,
                pending=total - delivered,
                avg_delivery_time_hours=hours_1dp(float(row["delivered_duration_s"]), delivered),
            )
        )
    return out


def efficiency_pct(metric: StaffMetric) -> int:
    return int(round_half_up(metric.delivered / (metric.total_assigned or 1) * 100, 0) or 0)


def compute_staff_performance(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    staff = compute_staff_metrics(ctx.get("parcels", []))
    if not staff:
        return {"filters": asdict(filters), "staff": [], "charts": {}}

    rows = [{**asdict(s), "efficiency_pct": efficiency_pct(s)} for s in staff]
    long_df = pd.DataFrame(rows).melt(
        id_vars=["staff_id", "name"],
        value_vars=["delivered", "pending"],
        var_name="state",
        value_name="parcels",
    )
    state_hover = alt.selection_point(fields=["state"], on="mouseover", empty="all")
    workload = (
        alt.Chart(long_df)
        .mark_bar()
        .encode(
            x=alt.X("name:N", title="Staff", sort=None, axis=alt.Axis(grid=False)),
            y=alt.Y("parcels:Q", title="Parcels", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("state:N", title="State", scale=alt.Scale(domain=["delivered", "pending"], range=["#10b981", "#f59e0b"])),
            detail="staff_id:N",
            opacity=alt.condition(state_hover, alt.value(1), alt.value(0.5)),
            tooltip=[
                alt.Tooltip("name:N", title="Staff"),
                alt.Tooltip("state:N", title="State"),
                alt.Tooltip("parcels:Q", title="Parcels", format=","),
            ],
        )
        .add_params(state_hover)
        .properties(height=260)
    )
    return {
        "filters": asdict(filters),
        "staff": rows,
        "charts": {"workload": to_vega_spec(workload)},
    }
