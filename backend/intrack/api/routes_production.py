from __future__ import annotations
from datetime import date as _date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from intrack import settings
from intrack.api.common import get_store, ok, parse_when, require_when
from intrack.outcomes import parse_outcome
from intrack.schemas import HistoryFilters
from intrack.services import stats
from intrack.services.store import RecordStore

router = APIRouter(prefix="/api/production", tags=["Production"])

@router.post("/record", status_code=201)
def record_production(payload: Dict[str, Any] = Body(...), store: RecordStore = Depends(get_store)):
    record = stats.record_inspection(store, payload)
    return {"success": True, "message": "Production recorded successfully", **ok(record)}

@router.get("/records/{record_id}")
def get_record(record_id: int, store: RecordStore = Depends(get_store)):
    return ok(stats.get_inspection(store, record_id))

@router.get("/daily-stats")
def daily_stats(
    production_line_id: int = Query(..., ge=1),
    date: _date = Query(..., description="YYYY-MM-DD"),
    store: RecordStore = Depends(get_store),
):
    return ok(stats.compute_daily_stats(store, production_line_id, date))

@router.get("/defect-analysis")
def defect_analysis(
    production_line_id: int = Query(..., ge=1),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    start = require_when(start_date, "start_date")
    end = require_when(end_date, "end_date")
    return ok(stats.compute_defect_analysis(store, production_line_id, start, end))

@router.get("/rejection-analysis")
def rejection_analysis(
    production_line_id: int = Query(..., ge=1),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    start = require_when(start_date, "start_date")
    end = require_when(end_date, "end_date")
    return ok(stats.compute_rejection_analysis(store, production_line_id, start, end))

@router.get("/modification-analysis")
def modification_analysis(
    production_line_id: int = Query(..., ge=1),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    start = require_when(start_date, "start_date")
    end = require_when(end_date, "end_date")
    return ok(stats.compute_modification_analysis(store, production_line_id, start, end))

@router.get("/history")
def history(
    production_line_id: Optional[int] = Query(None, ge=1),
    type: Optional[str] = Query(None, description="first_time_through | needs_improvement | modified | rejected"),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(settings.HISTORY_PAGE_SIZE),
    store: RecordStore = Depends(get_store),
):
    filters = HistoryFilters(
        production_line_id=production_line_id,
        type=parse_outcome(type) if type else None,
        start_date=parse_when(start_date, "start_date"),
        end_date=parse_when(end_date, "end_date"),
    )
    result = stats.compute_production_summary(store, filters, page, limit)
    return {"success": True, **result.model_dump(mode="json")}
