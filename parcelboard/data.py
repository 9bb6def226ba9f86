from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional

import pandas as pd

from parcelboard.filters import DashboardFilters
from parcelboard.models import DELIVERED_STATUSES, DateRange, Parcel
from parcelboard.store import ParcelStore, ParcelStoreError

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "parcel_report.csv"
EXPORT_HEADERS = ["Parcel ID", "Courier", "Staff", "Status", "Type", "Created Date", "Delivered Date"]
DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

PARCEL_COLUMNS = [
    "parcel_id",
    "type",
    "status",
    "courier_company",
    "assigned_to",
    "assigned_to_name",
    "created_at",
    "updated_at",
]

SEED_PARCELS: Dict[str, Parcel] = {
    p.parcel_id: p
    for p in [
        Parcel("PCL-2024-1001", "delivered", "BlueDart", 1709539200, 1709625600, "staff_1", "Alice Johnson", "incoming"),
        Parcel("PCL-2024-1002", "assigned", "FedEx", 1710144000, 1710144000, "staff_2", "Bob Smith", "outgoing"),
        Parcel("PCL-2024-1003", "received", "DTDC", 1710230400, 1710230400, "staff_3", "Charlie Brown", "incoming"),
        Parcel("PCL-2024-1004", "closed", "Delhivery", 1709280000, 1709366400, "staff_1", "Alice Johnson", "incoming"),
        Parcel("PCL-2024-1005", "assigned", "BlueDart", 1709884800, 1709884800, "staff_2", "Bob Smith", "outgoing"),
        Parcel("PCL-2024-1006", "delivered", "FedEx", 1710316800, 1710324000, "staff_1", "Alice Johnson", "incoming"),
    ]
}


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def hours_1dp(total_seconds: float, count: int) -> float:
    """Average seconds per item as hours, one decimal; 0 for an empty set.

    Rounds the exact binary value of the average, so 4140 s is 1.1 h and not 1.2.
    """
    if count <= 0:
        return 0.0
    avg = Decimal(total_seconds / count / 3600)
    return float(avg.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_epoch(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return datetime.fromtimestamp(int(value)).strftime(DISPLAY_TIME_FORMAT)


def local_midnight_seconds(now: Optional[datetime] = None) -> int:
    now = now or datetime.now().astimezone()
    return int(now.replace(hour=0, minute=0, second=0, microsecond=0).timestamp())


def parcels_frame(parcels: Iterable[Parcel]) -> pd.DataFrame:
    rows = [
        {
            "parcel_id": p.parcel_id,
            "type": p.type,
            "status": p.status,
            "courier_company": p.courier_company,
            "assigned_to": p.assigned_to,
            "assigned_to_name": p.assigned_to_name,
            "created_at": p.created_at,
            "updated_at": p.updated_at,
        }
        for p in parcels
    ]
    df = pd.DataFrame(rows, columns=PARCEL_COLUMNS)
    df["created_at"] = pd.to_numeric(df["created_at"], errors="coerce").fillna(0).astype("int64")
    df["updated_at"] = pd.to_numeric(df["updated_at"], errors="coerce").fillna(0).astype("int64")
    df["duration_s"] = df["updated_at"] - df["created_at"]
    df["is_delivered"] = df["status"].isin(DELIVERED_STATUSES)
    return df


def fetch_parcels_by_date_range(store: ParcelStore, date_range: DateRange) -> List[Parcel]:
    """Parcels whose createdAt lies within the range, both ends inclusive."""
    start, end = date_range.start_seconds, date_range.end_seconds
    try:
        parcels = store.query_created_between(start, end)
    except ParcelStoreError:
        logger.exception("Error fetching parcels from %s store", store.name)
        raise
    logger.debug("Fetched %d parcels created in [%d, %d]", len(parcels), start, end)
    return parcels


def seed_database(store: ParcelStore) -> int:
    written = store.write_batch(SEED_PARCELS.values())
    logger.info("Seeded %d demo parcels into %s store", written, store.name)
    return written


def export_frame(parcels: Iterable[Parcel]) -> pd.DataFrame:
    df = parcels_frame(parcels)
    if df.empty:
        return pd.DataFrame(columns=EXPORT_HEADERS)
    staff = df["assigned_to_name"].where(df["assigned_to_name"].notna(), df["assigned_to"]).fillna("")
    delivered = df["updated_at"].where(df["is_delivered"])
    return pd.DataFrame(
        {
            "Parcel ID": df["parcel_id"],
            "Courier": df["courier_company"],
            "Staff": staff,
            "Status": df["status"],
            "Type": df["type"],
            "Created Date": df["created_at"].apply(format_epoch),
            "Delivered Date": delivered.apply(format_epoch),
        },
        columns=EXPORT_HEADERS,
    )


def export_to_csv(parcels: Iterable[Parcel]) -> bytes:
    return export_frame(parcels).to_csv(index=False).encode("utf-8")


def prepare_context(filters: DashboardFilters, parcels: List[Parcel], now: Optional[datetime] = None) -> Dict[str, object]:
    now = now or datetime.now().astimezone()
    return {
        "filters": filters,
        "now": now,
        "parcels": list(parcels),
        "parcels_df": parcels_frame(parcels),
    }


def load_context(store: ParcelStore, filters: DashboardFilters, now: Optional[datetime] = None) -> Dict[str, object]:
    now = now or datetime.now().astimezone()
    date_range = filters.date_range(now=now)
    parcels = fetch_parcels_by_date_range(store, date_range)
    ctx = prepare_context(filters, parcels, now=now)
    ctx["date_range"] = date_range
    return ctx
