from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    time_filter: Literal["today", "week", "month", "custom"] = "week"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    delay_hours: Optional[float] = Field(default=None, ge=0)
    row_limit: Optional[int] = Field(default=None, ge=1, le=1000)


class MetaFiltersResponse(BaseModel):
    time_filters: List[str]
    default: str


class SeedResponse(BaseModel):
    seeded: int
