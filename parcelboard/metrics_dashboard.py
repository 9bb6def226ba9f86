from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import pandas as pd

from parcelboard.charts import STATUS_COLORS, to_vega_spec
from parcelboard.data import hours_1dp, local_midnight_seconds, parcels_frame, round_half_up
from parcelboard.filters import DashboardFilters
from parcelboard.models import PENDING_STATUSES, DashboardMetrics, Parcel


def status_label(status: str) -> str:
    return status[:1].upper() + status[1:]


def compute_analytics(parcels: Iterable[Parcel], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Dashboard totals and the status distribution for one loaded snapshot.

    Pending means received/assigned, delivered means delivered/closed. Delivered
    today compares ``updated_at`` to local midnight of ``now``. The distribution
    keeps the order in which each status is first seen.
    """
    df = parcels_frame(parcels)
    today_start = local_midnight_seconds(now)

    delivered_df = df[df["is_delivered"]]
    delivered = int(len(delivered_df))

    metrics = DashboardMetrics(
        total_parcels=int(len(df)),
        pending_parcels=int(df["status"].isin(PENDING_STATUSES).sum()),
        delivered_parcels=delivered,
        delivered_today=int((delivered_df["updated_at"] >= today_start).sum()),
        avg_delivery_time_hours=hours_1dp(float(delivered_df["duration_s"].sum()), delivered),
    )

    status_counts = df.groupby("status", sort=False).size()
    status_chart_data: List[Dict[str, Any]] = [
        {"name": status_label(str(status)), "value": int(count)} for status, count in status_counts.items()
    ]
    return {"dashboard_metrics": metrics, "status_chart_data": status_chart_data}


def completion_rate(metrics: DashboardMetrics) -> int:
    return int(round_half_up(metrics.delivered_parcels / (metrics.total_parcels or 1) * 100, 0) or 0)


def compute_overview(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    parcels: List[Parcel] = ctx.get("parcels", [])
    analytics = compute_analytics(parcels, now=ctx.get("now"))
    metrics: DashboardMetrics = analytics["dashboard_metrics"]
    status_data = analytics["status_chart_data"]

    charts: Dict[str, Any] = {}
    if status_data:
        status_df = pd.DataFrame(status_data)
        hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
        donut = (
            alt.Chart(status_df)
            .mark_arc(innerRadius=60, outerRadius=80, padAngle=0.05)
            .encode(
                theta=alt.Theta("value:Q"),
                color=alt.Color("name:N", title="Status", scale=alt.Scale(range=STATUS_COLORS), sort=None),
                opacity=alt.condition(hover, alt.value(1), alt.value(0.4)),
                tooltip=[alt.Tooltip("name:N", title="Status"), alt.Tooltip("value:Q", title="Parcels", format=",")],
            )
            .add_params(hover)
            .properties(height=260)
        )
        charts["status_distribution"] = to_vega_spec(donut)

    date_range = ctx.get("date_range")
    return {
        "filters": asdict(filters),
        "range": asdict(date_range) if date_range is not None else None,
        "kpis": asdict(metrics),
        "efficiency": {
            "completion_rate_pct": completion_rate(metrics),
            "total_processed": metrics.total_parcels,
        },
        "status_distribution": status_data,
        "charts": charts,
    }
