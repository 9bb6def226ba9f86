from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

import pandas as pd

from parcelboard.data import format_epoch
from parcelboard.filters import DashboardFilters
from parcelboard.models import Parcel


def compute_parcels_report(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    parcels: List[Parcel] = ctx.get("parcels", [])
    df: pd.DataFrame = ctx.get("parcels_df", pd.DataFrame())
    total = len(parcels)
    if df.empty:
        return {"filters": asdict(filters), "rows": [], "shown": 0, "total": total}

    shown = df.head(filters.row_limit)
    staff = shown["assigned_to_name"].where(shown["assigned_to_name"].notna(), shown["assigned_to"]).fillna("")
    rows = pd.DataFrame(
        {
            "parcel_id": shown["parcel_id"],
            "status": shown["status"],
            "courier_company": shown["courier_company"],
            "staff": staff,
            "created": shown["created_at"].apply(format_epoch),
        }
    )
    return {
        "filters": asdict(filters),
        "rows": rows.to_dict(orient="records"),
        "shown": int(len(rows)),
        "total": total,
    }
