"""Production statistics engine.

Turns stored inspection records into daily and window rates, label
frequencies, paginated history and multi-line dashboard roll-ups. Every
operation takes the :class:`RecordStore` it reads from; nothing here holds
state between calls.

Rates are percentages rounded to two decimals and are ``0`` whenever
nothing was produced:

- efficiency = first_time_through / total
- defect     = (needs_improvement + rejected) / total
- rejection  = rejected / total
- rework     = (needs_improvement + modified) / total
"""
from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from intrack import settings
from intrack.db.models import InspectionRecord
from intrack.errors import NotFoundError, ValidationError
from intrack.outcomes import DETAIL_FIELDS, Outcome, build_outcome, dump_labels, load_labels, parse_outcome
from intrack.schemas import (
    DailyStats,
    DashboardRollup,
    DefectTrends,
    HistoryFilters,
    InspectionCreate,
    InspectionOut,
    LabelFrequency,
    LineLabelFrequencies,
    LineReworkRate,
    LineSummary,
    Page,
    Pagination,
)
from intrack.services.store import RecordStore
from intrack.timeutils import Window, day_window, from_utc_naive, iter_days, local_date, range_window, to_utc_naive

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]


def percentage(part: int, total: int) -> float:
    if not total:
        return 0.0
    return round(part / total * 100, 2)


def outcome_fields(grouped: Iterable[Tuple[str, int, int]]) -> Dict[str, Any]:
    """Counts and rates from ``(outcome, records, defects)`` groups.

    Groups with an outcome outside the four known ones are left out so that
    the outcome counts always add up to ``total_produced``.
    """
    counts = {o.value: 0 for o in Outcome}
    total_defects = 0
    for outcome, n, defects in grouped:
        if outcome not in counts:
            logger.warning(f"Ignoring {n} record(s) with unknown outcome {outcome!r}")
            continue
        counts[outcome] += n
        total_defects += defects

    ftt = counts[Outcome.FIRST_TIME_THROUGH.value]
    ni = counts[Outcome.NEEDS_IMPROVEMENT.value]
    mod = counts[Outcome.MODIFIED.value]
    rej = counts[Outcome.REJECTED.value]
    total = ftt + ni + mod + rej
    return {
        **counts,
        "total_produced": total,
        "total_defects": total_defects,
        "efficiency_rate": percentage(ftt, total),
        "defect_rate": percentage(ni + rej, total),
        "rejection_rate": percentage(rej, total),
        "rework_rate": percentage(ni + mod, total),
    }


# ----- single line, single day -----

def compute_daily_stats(store: RecordStore, line_id: int, day: DateLike) -> DailyStats:
    d = local_date(day)
    grouped = store.count_by_outcome(line_id, day_window(d))
    fields = outcome_fields((o, n, defects) for o, (n, defects) in grouped.items())
    return DailyStats(line_id=line_id, date=d, **fields)


# ----- label frequencies -----

def _tally(store: RecordStore, outcome: Outcome, window: Window,
           line_id: Optional[int] = None) -> Tuple[Counter, Dict[int, Counter]]:
    overall: Counter = Counter()
    by_line: Dict[int, Counter] = defaultdict(Counter)
    field = DETAIL_FIELDS[outcome]
    for record_id, line, raw in store.iter_details(outcome, window, line_id=line_id):
        try:
            labels = load_labels(raw)
        except ValueError as e:
            logger.warning(f"Skipping record {record_id}: malformed {field} payload ({e})")
            continue
        overall.update(labels)
        by_line[line].update(labels)
    return overall, by_line


def _frequencies(counter: Counter) -> List[LabelFrequency]:
    # most_common keeps first-seen order among equal counts
    return [LabelFrequency(label=k, count=v) for k, v in counter.most_common()]


def compute_label_frequencies(store: RecordStore, outcome: Outcome, line_id: Optional[int],
                              start: DateLike, end: DateLike) -> List[LabelFrequency]:
    outcome = parse_outcome(outcome)
    if outcome not in DETAIL_FIELDS:
        raise ValidationError(f"{outcome.value} records carry no labels")
    overall, _ = _tally(store, outcome, range_window(start, end), line_id=line_id)
    return _frequencies(overall)


def compute_defect_analysis(store: RecordStore, line_id: int,
                            start: DateLike, end: DateLike) -> List[LabelFrequency]:
    return compute_label_frequencies(store, Outcome.NEEDS_IMPROVEMENT, line_id, start, end)


def compute_rejection_analysis(store: RecordStore, line_id: int,
                               start: DateLike, end: DateLike) -> List[LabelFrequency]:
    return compute_label_frequencies(store, Outcome.REJECTED, line_id, start, end)


def compute_modification_analysis(store: RecordStore, line_id: int,
                                  start: DateLike, end: DateLike) -> List[LabelFrequency]:
    return compute_label_frequencies(store, Outcome.MODIFIED, line_id, start, end)


def compute_defect_trends(store: RecordStore, start: DateLike, end: DateLike,
                          line_id: Optional[int] = None) -> DefectTrends:
    window = range_window(start, end)
    overall, by_line = _tally(store, Outcome.NEEDS_IMPROVEMENT, window, line_id=line_id)
    return DefectTrends(
        overall_defects=_frequencies(overall),
        defects_by_line=[
            LineLabelFrequencies(line_id=line, defects=_frequencies(by_line[line]))
            for line in sorted(by_line)
        ],
        total_defect_records=store.count(line_id=line_id, outcome=Outcome.NEEDS_IMPROVEMENT, window=window),
    )


# ----- window summaries -----

def summarize_lines(store: RecordStore, start: DateLike, end: DateLike,
                    line_id: Optional[int] = None) -> List[LineSummary]:
    groups: Dict[int, List[Tuple[str, int, int]]] = defaultdict(list)
    for line, outcome, n, defects in store.count_by_line_and_outcome(range_window(start, end), line_id=line_id):
        groups[line].append((outcome, n, defects))
    return [LineSummary(line_id=line, **outcome_fields(groups[line])) for line in sorted(groups)]


def build_rolled_up_dashboard(store: RecordStore, lines: Iterable[int],
                              start: DateLike, end: DateLike) -> DashboardRollup:
    """Daily stats for every (day, line) plus a window rework rate per line.

    The window rate is recomputed from summed counts, never averaged over
    the daily percentages.
    """
    first, last = local_date(start), local_date(end)
    if first > last:
        raise ValidationError("start_date must not be after end_date")
    span = (last - first).days + 1
    if span > settings.MAX_WINDOW_DAYS:
        raise ValidationError(f"Window of {span} days exceeds the {settings.MAX_WINDOW_DAYS}-day limit")
    line_ids = list(dict.fromkeys(int(line) for line in lines))

    per_day: List[DailyStats] = []
    produced: Dict[int, int] = {line: 0 for line in line_ids}
    rework: Dict[int, int] = {line: 0 for line in line_ids}
    for day in iter_days(first, last):
        for line in line_ids:
            stats = compute_daily_stats(store, line, day)
            per_day.append(stats)
            produced[line] += stats.total_produced
            rework[line] += stats.needs_improvement + stats.modified

    return DashboardRollup(
        per_day_per_line=per_day,
        rework_rate_by_line=[
            LineReworkRate(
                line_id=line,
                total_produced=produced[line],
                rework_count=rework[line],
                rework_rate=percentage(rework[line], produced[line]),
            )
            for line in line_ids
        ],
    )


# ----- history -----

def record_out(record: InspectionRecord) -> InspectionOut:
    lists: Dict[str, List[str]] = {}
    for field in DETAIL_FIELDS.values():
        try:
            lists[field] = load_labels(getattr(record, field))
        except ValueError as e:
            logger.warning(f"Record {record.id}: unreadable {field} payload ({e})")
            lists[field] = []
    return InspectionOut(
        id=record.id,
        production_line_id=record.production_line_id,
        inspector_id=record.inspector_id,
        type=record.outcome,
        timestamp=from_utc_naive(record.timestamp),
        defect_count=record.defect_count,
        modification_count=record.modification_count,
        reason_count=record.reason_count,
        notes=record.notes,
        created_at=from_utc_naive(record.created_at),
        updated_at=from_utc_naive(record.updated_at),
        **lists,
    )


def compute_production_summary(store: RecordStore, filters: Optional[HistoryFilters] = None,
                               page: int = 1, limit: Optional[int] = None) -> Page:
    """Filtered history, newest first (ties by id), one page at a time."""
    filters = filters or HistoryFilters()
    limit = settings.HISTORY_PAGE_SIZE if limit is None else limit
    if page < 1:
        raise ValidationError("page must be >= 1")
    if not 1 <= limit <= settings.HISTORY_MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {settings.HISTORY_MAX_PAGE_SIZE}")

    window = None
    if filters.start_date is not None or filters.end_date is not None:
        window = range_window(filters.start_date, filters.end_date)
    outcome = parse_outcome(filters.type) if filters.type is not None else None

    rows, total = store.page(line_id=filters.production_line_id, outcome=outcome,
                             window=window, page=page, limit=limit)
    return Page(
        data=[record_out(r) for r in rows],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


# ----- writes -----

def record_inspection(store: RecordStore, data: Union[InspectionCreate, Mapping[str, Any]]) -> InspectionOut:
    """Validate and append one inspection.

    Counts are derived from the accepted list; the list must be the one the
    outcome carries.
    """
    if not isinstance(data, InspectionCreate):
        try:
            data = InspectionCreate.model_validate(data)
        except PydanticValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
            )
            raise ValidationError(problems) from e

    detail = build_outcome(data.type, data.defects, data.modifications, data.rejection_reasons)
    lists = {field: () for field in DETAIL_FIELDS.values()}
    if detail.outcome in DETAIL_FIELDS:
        lists[DETAIL_FIELDS[detail.outcome]] = detail.labels

    now = datetime.utcnow()
    record = InspectionRecord(
        production_line_id=data.production_line_id,
        inspector_id=data.inspector_id,
        outcome=detail.outcome.value,
        timestamp=to_utc_naive(data.timestamp),
        defects=dump_labels(lists["defects"]),
        defect_count=len(lists["defects"]),
        modifications=dump_labels(lists["modifications"]),
        modification_count=len(lists["modifications"]),
        rejection_reasons=dump_labels(lists["rejection_reasons"]),
        reason_count=len(lists["rejection_reasons"]),
        notes=data.notes or None,
        created_at=now,
        updated_at=now,
    )
    store.add(record)
    logger.info(
        f"Inspection recorded: {record.outcome} for line {record.production_line_id} by {record.inspector_id}"
    )
    return record_out(record)


def get_inspection(store: RecordStore, record_id: int) -> InspectionOut:
    record = store.get(record_id)
    if record is None:
        raise NotFoundError(f"Inspection record {record_id} not found")
    return record_out(record)
