from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

PENDING_STATUSES = frozenset({"received", "assigned"})
DELIVERED_STATUSES = frozenset({"delivered", "closed"})

UNKNOWN_STAFF = "Unknown Staff"


def _blank_to_none(value: object) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _as_seconds(value: object, field_name: str) -> int:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be unix seconds, got {value!r}")
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be unix seconds, got {value!r}") from None
    if math.isnan(out) or math.isinf(out):
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return int(out)


@dataclass(frozen=True)
class Parcel:
    parcel_id: str
    status: str
    courier_company: str
    created_at: int
    updated_at: int
    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    type: str = "incoming"

    @property
    def is_delivered(self) -> bool:
        return self.status in DELIVERED_STATUSES

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @property
    def staff_label(self) -> str:
        return self.assigned_to_name or self.assigned_to or ""

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Parcel":
        """Build a parcel from a store document (camelCase keys).

        Raises ValueError when the id or either timestamp is missing or malformed.
        """
        parcel_id = _blank_to_none(doc.get("parcelId"))
        if parcel_id is None:
            raise ValueError("document has no parcelId")
        return cls(
            parcel_id=parcel_id,
            status=str(doc.get("status") or "").strip().lower(),
            courier_company=str(doc.get("courierCompany") or "").strip(),
            created_at=_as_seconds(doc.get("createdAt"), "createdAt"),
            updated_at=_as_seconds(doc.get("updatedAt"), "updatedAt"),
            assigned_to=_blank_to_none(doc.get("assignedTo")),
            assigned_to_name=_blank_to_none(doc.get("assignedToName")),
            type=str(doc.get("type") or "incoming").strip().lower(),
        )

    def to_document(self) -> Dict[str, Any]:
        doc: Dict[str, Any] = {
            "parcelId": self.parcel_id,
            "type": self.type,
            "courierCompany": self.courier_company,
            "assignedTo": self.assigned_to or "",
            "status": self.status,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.assigned_to_name:
            doc["assignedToName"] = self.assigned_to_name
        return doc


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    @property
    def start_seconds(self) -> int:
        return math.floor(self.start.timestamp())

    @property
    def end_seconds(self) -> int:
        return math.floor(self.end.timestamp())


@dataclass(frozen=True)
class DashboardMetrics:
    total_parcels: int = 0
    pending_parcels: int = 0
    delivered_parcels: int = 0
    delivered_today: int = 0
    avg_delivery_time_hours: float = 0.0


@dataclass(frozen=True)
class StaffMetric:
    staff_id: str
    name: str
    total_assigned: int = 0
    delivered: int = 0
    pending: int = 0
    avg_delivery_time_hours: float = 0.0


@dataclass(frozen=True)
class CourierMetric:
    company_name: str
    total_handled: int = 0
    delivered: int = 0
    delayed: int = 0
