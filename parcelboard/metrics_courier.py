from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import pandas as pd

from parcelboard.charts import to_vega_spec
from parcelboard.data import parcels_frame
from parcelboard.filters import DEFAULT_DELAY_HOURS, DashboardFilters
from parcelboard.models import CourierMetric, Parcel


def compute_courier_metrics(
    parcels: Iterable[Parcel],
    now: Optional[datetime] = None,
    *,
    delay_hours: float = DEFAULT_DELAY_HOURS,
) -> List[CourierMetric]:
    """Volume per courier company; a parcel is delayed when still open past ``delay_hours``."""
    df = parcels_frame(parcels)
    if df.empty:
        return []
    now_s = int((now or datetime.now().astimezone()).timestamp())
    age_hours = (now_s - df["created_at"]) / 3600
    df["is_delayed"] = ~df["is_delivered"] & (age_hours > delay_hours)

    rollup = df.groupby("courier_company", sort=False).agg(
        total_handled=("parcel_id", "size"),
        delivered=("is_delivered", "sum"),
        delayed=("is_delayed", "sum"),
    )
    return [
        CourierMetric(
            company_name=str(company),
            total_handled=int(row["total_handled"]),
            delivered=int(row["delivered"]),
            delayed=int(row["delayed"]),
        )
        for company, row in rollup.iterrows()
    ]


def compute_courier_report(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    couriers = compute_courier_metrics(ctx.get("parcels", []), now=ctx.get("now"), delay_hours=filters.delay_hours)
    if not couriers:
        return {"filters": asdict(filters), "couriers": [], "charts": {}}

    rows = [asdict(c) for c in couriers]
    long_df = pd.DataFrame(rows).melt(
        id_vars="company_name",
        value_vars=["total_handled", "delayed"],
        var_name="metric",
        value_name="parcels",
    )
    long_df["metric"] = long_df["metric"].map(
        {"total_handled": "Total Volume", "delayed": f"Delayed (>{filters.delay_hours:g}h)"}
    )
    volume = (
        alt.Chart(long_df)
        .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=alt.X("company_name:N", title="Courier Company", sort=None, axis=alt.Axis(grid=False)),
            xOffset="metric:N",
            y=alt.Y("parcels:Q", title="Parcels", axis=alt.Axis(format="d", gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("metric:N", title="Metric", scale=alt.Scale(range=["#6366f1", "#ef4444"])),
            tooltip=[
                alt.Tooltip("company_name:N", title="Courier"),
                alt.Tooltip("metric:N", title="Metric"),
                alt.Tooltip("parcels:Q", title="Parcels", format=","),
            ],
        )
        .properties(height=320)
    )
    return {
        "filters": asdict(filters),
        "couriers": rows,
        "charts": {"volume_vs_delays": to_vega_spec(volume)},
    }
