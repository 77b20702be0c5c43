from __future__ import annotations
from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from intrack import settings
from intrack.api.common import get_store, ok, parse_when, require_when
from intrack.errors import ValidationError
from intrack.services import stats
from intrack.services.store import RecordStore
from intrack.timeutils import local_date, today

router = APIRouter(prefix="/api/admin", tags=["Admin"])

@router.get("/dashboard")
def dashboard(
    days: int = Query(settings.DASHBOARD_DAYS, ge=0),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    store: RecordStore = Depends(get_store),
):
    if days > settings.MAX_WINDOW_DAYS:
        raise ValidationError(f"days must not exceed {settings.MAX_WINDOW_DAYS}")
    end = parse_when(end_date, "end_date")
    end = local_date(end) if end is not None else today()
    start = parse_when(start_date, "start_date")
    start = local_date(start) if start is not None else end - timedelta(days=days)

    lines = settings.PRODUCTION_LINES
    rollup = stats.build_rolled_up_dashboard(store, lines.keys(), start, end)

    by_date: Dict[str, List[Any]] = defaultdict(list)
    for s in rollup.per_day_per_line:
        by_date[s.date.isoformat()].append(s)

    daily_production_data = [{"date": d, "lines": rows} for d, rows in by_date.items()]
    defects_over_time = [
        {"date": d, "lines": [{"line_id": s.line_id, "defect_rate": s.defect_rate} for s in rows]}
        for d, rows in by_date.items()
    ]
    rework_rates = [
        {"name": lines.get(r.line_id, f"Production Line {r.line_id}"), **r.model_dump()}
        for r in rollup.rework_rate_by_line
    ]
    return ok({
        "start_date": start,
        "end_date": end,
        "daily_production_data": daily_production_data,
        "defects_over_time": defects_over_time,
        "rework_rates": rework_rates,
        "production_lines": [{"line_id": k, "name": v} for k, v in lines.items()],
    })

@router.get("/production-summary")
def production_summary(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    production_line_id: Optional[int] = Query(None, ge=1),
    store: RecordStore = Depends(get_store),
):
    start = require_when(start_date, "start_date")
    end = require_when(end_date, "end_date")
    return ok(stats.summarize_lines(store, start, end, line_id=production_line_id))

@router.get("/defect-trends")
def defect_trends(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    production_line_id: Optional[int] = Query(None, ge=1),
    store: RecordStore = Depends(get_store),
):
    start = require_when(start_date, "start_date")
    end = require_when(end_date, "end_date")
    return ok(stats.compute_defect_trends(store, start, end, line_id=production_line_id))

@router.get("/lines")
def production_lines():
    return ok([{"line_id": k, "name": v} for k, v in settings.PRODUCTION_LINES.items()])
