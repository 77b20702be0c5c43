"""Request and response shapes.

Output models are plain values; the request layer wraps them in its
``{"success": ..., "data": ...}`` envelope.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from intrack.outcomes import Outcome


class InspectionCreate(BaseModel):
    """Flat wire shape of a new inspection.

    Count fields sent by callers are ignored; counts are derived from the
    lists.
    """
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    production_line_id: int = Field(..., ge=1)
    inspector_id: str = Field(..., min_length=1, max_length=64)
    type: str = Field(..., description="first_time_through | needs_improvement | modified | rejected")
    timestamp: dt.datetime = Field(..., description="Moment of inspection")
    defects: Optional[List[str]] = None
    modifications: Optional[List[str]] = None
    rejection_reasons: Optional[List[str]] = None
    notes: Optional[str] = Field(None, max_length=2000)


class InspectionOut(BaseModel):
    id: int
    production_line_id: int
    inspector_id: str
    type: str
    timestamp: dt.datetime
    defects: List[str] = []
    defect_count: int = 0
    modifications: List[str] = []
    modification_count: int = 0
    rejection_reasons: List[str] = []
    reason_count: int = 0
    notes: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class OutcomeCounts(BaseModel):
    total_produced: int = 0
    first_time_through: int = 0
    needs_improvement: int = 0
    modified: int = 0
    rejected: int = 0
    total_defects: int = 0

    efficiency_rate: float = 0.0
    defect_rate: float = 0.0
    rejection_rate: float = 0.0
    rework_rate: float = 0.0


class DailyStats(OutcomeCounts):
    line_id: int
    date: dt.date


class LineSummary(OutcomeCounts):
    line_id: int


class LabelFrequency(BaseModel):
    label: str
    count: int


class LineLabelFrequencies(BaseModel):
    line_id: int
    defects: List[LabelFrequency]


class DefectTrends(BaseModel):
    overall_defects: List[LabelFrequency]
    defects_by_line: List[LineLabelFrequencies]
    total_defect_records: int


@dataclass
class HistoryFilters:
    production_line_id: Optional[int] = None
    type: Optional[Outcome] = None
    start_date: Optional[Union[dt.date, dt.datetime]] = None
    end_date: Optional[Union[dt.date, dt.datetime]] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel):
    data: List[InspectionOut]
    pagination: Pagination


class LineReworkRate(BaseModel):
    line_id: int
    total_produced: int
    rework_count: int
    rework_rate: float


class DashboardRollup(BaseModel):
    per_day_per_line: List[DailyStats]
    rework_rate_by_line: List[LineReworkRate]


class LabelCreate(BaseModel):
    name: str = Field(..., max_length=128)
    category: Optional[str] = Field(None, max_length=128)


class LabelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: str
    name: str
    category: Optional[str] = None
    is_active: bool
