from datetime import date, datetime, timedelta

import pytest

from intrack import settings
from intrack.db.models import InspectionRecord
from intrack.errors import NotFoundError, ValidationError
from intrack.outcomes import Outcome
from intrack.schemas import HistoryFilters
from intrack.services import stats

DAY = date(2024, 1, 1)
MORNING = datetime(2024, 1, 1, 8, 0)


def _seed_scenario_day(add_record, line_id=1, start=MORNING):
    mix = (
        ["first_time_through"] * 6
        + ["needs_improvement"] * 2
        + ["modified", "rejected"]
    )
    for i, kind in enumerate(mix):
        lists = {}
        if kind == "needs_improvement":
            lists["defects"] = ["Open seam"]
        elif kind == "modified":
            lists["modifications"] = ["Re-hem"]
        elif kind == "rejected":
            lists["rejection_reasons"] = ["Fabric hole"]
        add_record(line_id, kind, start + timedelta(minutes=i), **lists)


def test_daily_stats_scenario(store, add_record):
    _seed_scenario_day(add_record)
    s = stats.compute_daily_stats(store, 1, DAY)
    assert (s.total_produced, s.first_time_through, s.needs_improvement, s.modified, s.rejected) == (10, 6, 2, 1, 1)
    assert s.efficiency_rate == 60.00
    assert s.defect_rate == 30.00
    assert s.rejection_rate == 10.00
    assert s.rework_rate == 30.00
    assert s.total_defects == 2
    assert s.date == DAY
    assert s.line_id == 1


def test_daily_stats_without_records_is_all_zero(store):
    s = stats.compute_daily_stats(store, 42, DAY)
    assert s.total_produced == 0
    assert (s.efficiency_rate, s.defect_rate, s.rejection_rate, s.rework_rate) == (0, 0, 0, 0)


def test_daily_stats_ignores_other_lines_and_days(store, add_record):
    _seed_scenario_day(add_record)
    add_record(2, "rejected", MORNING, rejection_reasons=["Wrong size"])
    add_record(1, "rejected", datetime(2023, 12, 31, 23, 59, 59), rejection_reasons=["Wrong size"])
    add_record(1, "rejected", datetime(2024, 1, 2, 0, 0), rejection_reasons=["Wrong size"])
    s = stats.compute_daily_stats(store, 1, DAY)
    assert s.total_produced == 10
    assert s.rejected == 1


def test_daily_stats_honours_business_day(monkeypatch, store, add_record):
    monkeypatch.setattr(settings, "BUSINESS_TZ", "America/New_York")
    # 23:30 local on Jan 1 is already Jan 2 in UTC
    add_record(1, "first_time_through", datetime(2024, 1, 1, 23, 30))
    assert stats.compute_daily_stats(store, 1, date(2024, 1, 1)).total_produced == 1
    assert stats.compute_daily_stats(store, 1, date(2024, 1, 2)).total_produced == 0


def test_daily_stats_invariants_and_repeatability(store, add_record):
    for i in range(7):
        add_record(1, "first_time_through", MORNING + timedelta(minutes=i))
    for i in range(3):
        add_record(1, "modified", MORNING + timedelta(hours=1, minutes=i), modifications=["Trim"])
    add_record(1, "rejected", MORNING + timedelta(hours=2), rejection_reasons=["Hole"])

    first = stats.compute_daily_stats(store, 1, DAY)
    second = stats.compute_daily_stats(store, 1, DAY)
    assert first == second
    assert first.first_time_through + first.needs_improvement + first.modified + first.rejected == first.total_produced
    assert 0 <= first.efficiency_rate <= 100
    assert 0 <= first.defect_rate <= 100
    assert first.efficiency_rate == 63.64
    assert first.rework_rate == 27.27


def test_unknown_stored_outcome_does_not_break_totals(store, db, add_record):
    add_record(1, "first_time_through", MORNING)
    db.add(InspectionRecord(production_line_id=1, inspector_id="legacy", outcome="needimprovement",
                            timestamp=MORNING))
    db.commit()
    s = stats.compute_daily_stats(store, 1, DAY)
    assert s.total_produced == 1
    assert s.efficiency_rate == 100.0


def test_defect_analysis_scenario(store, add_record):
    add_record(1, "needs_improvement", MORNING, defects=["A", "B"])
    add_record(1, "needs_improvement", MORNING + timedelta(minutes=1), defects=["A"])
    add_record(1, "needs_improvement", MORNING + timedelta(minutes=2), defects=["B", "C"])
    add_record(1, "rejected", MORNING, rejection_reasons=["A"])
    add_record(2, "needs_improvement", MORNING, defects=["C"])

    result = stats.compute_defect_analysis(store, 1, DAY, DAY)
    assert [(f.label, f.count) for f in result] == [("A", 2), ("B", 2), ("C", 1)]
    assert result == stats.compute_defect_analysis(store, 1, DAY, DAY)


def test_defect_analysis_skips_malformed_payloads(store, db, add_record):
    add_record(1, "needs_improvement", MORNING, defects=["Stain"])
    for raw in ("{broken", '{"x": 1}', "[3]"):
        db.add(InspectionRecord(production_line_id=1, inspector_id="qc-9", outcome="needs_improvement",
                                timestamp=MORNING, defects=raw, defect_count=1))
    db.commit()
    add_record(1, "needs_improvement", MORNING + timedelta(minutes=5), defects=["Stain", "Loose thread"])

    result = stats.compute_defect_analysis(store, 1, DAY, DAY)
    assert [(f.label, f.count) for f in result] == [("Stain", 2), ("Loose thread", 1)]


def test_defect_analysis_with_datetime_bounds(store, add_record):
    add_record(1, "needs_improvement", datetime(2024, 1, 1, 8), defects=["A"])
    add_record(1, "needs_improvement", datetime(2024, 1, 1, 12), defects=["B"])
    add_record(1, "needs_improvement", datetime(2024, 1, 1, 18), defects=["C"])
    result = stats.compute_defect_analysis(store, 1, datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 12))
    assert [f.label for f in result] == ["A", "B"]


def test_rejection_and_modification_analysis(store, add_record):
    add_record(1, "rejected", MORNING, rejection_reasons=["Hole", "Wrong size"])
    add_record(1, "rejected", MORNING, rejection_reasons=["Hole"])
    add_record(1, "modified", MORNING, modifications=["Re-hem"])
    assert [(f.label, f.count) for f in stats.compute_rejection_analysis(store, 1, DAY, DAY)] == [
        ("Hole", 2), ("Wrong size", 1)
    ]
    assert [f.label for f in stats.compute_modification_analysis(store, 1, DAY, DAY)] == ["Re-hem"]


def test_label_frequencies_need_a_labelled_outcome(store):
    with pytest.raises(ValidationError):
        stats.compute_label_frequencies(store, Outcome.FIRST_TIME_THROUGH, 1, DAY, DAY)


def test_label_frequencies_unknown_outcome_is_refused(store):
    with pytest.raises(ValidationError):
        stats.compute_label_frequencies(store, "Rejected!", 1, DAY, DAY)



def test_window_rework_rate_is_not_an_average_of_days(store, add_record):
    day1 = datetime(2024, 1, 1, 8)
    day2 = datetime(2024, 1, 2, 8)
    for i in range(5):
        add_record(1, "first_time_through", day1 + timedelta(minutes=i))
    for i in range(5):
        add_record(1, "needs_improvement", day1 + timedelta(minutes=10 + i), defects=["Stain"])
    add_record(1, "first_time_through", day2)
    add_record(1, "first_time_through", day2 + timedelta(minutes=1))

    rollup = stats.build_rolled_up_dashboard(store, [1], date(2024, 1, 1), date(2024, 1, 2))
    daily = [s.rework_rate for s in rollup.per_day_per_line]
    assert daily == [50.0, 0.0]

    line = rollup.rework_rate_by_line[0]
    assert (line.line_id, line.total_produced, line.rework_count) == (1, 12, 5)
    assert line.rework_rate == 41.67
    assert line.rework_rate != sum(daily) / len(daily)


def test_dashboard_covers_every_day_and_line(store, add_record):
    _seed_scenario_day(add_record, line_id=2)
    rollup = stats.build_rolled_up_dashboard(store, [1, 2, 2], date(2023, 12, 31), date(2024, 1, 2))
    assert [(s.date, s.line_id) for s in rollup.per_day_per_line] == [
        (date(2023, 12, 31), 1), (date(2023, 12, 31), 2),
        (date(2024, 1, 1), 1), (date(2024, 1, 1), 2),
        (date(2024, 1, 2), 1), (date(2024, 1, 2), 2),
    ]
    by_line = {r.line_id: r for r in rollup.rework_rate_by_line}
    assert by_line[1].rework_rate == 0
    assert by_line[2].rework_rate == 30.0


def test_dashboard_window_validation(store, monkeypatch):
    with pytest.raises(ValidationError):
        stats.build_rolled_up_dashboard(store, [1], date(2024, 1, 2), date(2024, 1, 1))
    monkeypatch.setattr(settings, "MAX_WINDOW_DAYS", 3)
    with pytest.raises(ValidationError):
        stats.build_rolled_up_dashboard(store, [1], date(2024, 1, 1), date(2024, 1, 10))


def test_summarize_lines(store, add_record):
    _seed_scenario_day(add_record, line_id=1)
    add_record(3, "rejected", MORNING, rejection_reasons=["Hole"])
    summary = stats.summarize_lines(store, DAY, DAY)
    assert [s.line_id for s in summary] == [1, 3]
    assert summary[0].rework_rate == 30.0
    assert summary[1].rejection_rate == 100.0
    only_three = stats.summarize_lines(store, DAY, DAY, line_id=3)
    assert [s.line_id for s in only_three] == [3]


def test_defect_trends(store, add_record):
    add_record(1, "needs_improvement", MORNING, defects=["A", "B"])
    add_record(2, "needs_improvement", MORNING, defects=["B"])
    add_record(2, "needs_improvement", MORNING, defects=[])
    trends = stats.compute_defect_trends(store, DAY, DAY)
    assert [(f.label, f.count) for f in trends.overall_defects] == [("B", 2), ("A", 1)]
    assert [t.line_id for t in trends.defects_by_line] == [1, 2]
    assert trends.total_defect_records == 3


# ----- history -----

def _seed_history(add_record, n):
    base = datetime(2024, 1, 1, 6)
    for i in range(n):
        # three records share each minute to exercise the id tie-break
        add_record(1 + i % 2, "first_time_through", base + timedelta(minutes=i // 3))


def test_history_pagination(store, add_record):
    _seed_history(add_record, 95)
    page1 = stats.compute_production_summary(store, HistoryFilters(), page=1, limit=50)
    page2 = stats.compute_production_summary(store, HistoryFilters(), page=2, limit=50)
    assert page1.pagination.model_dump() == {"page": 1, "limit": 50, "total": 95, "pages": 2}
    assert len(page1.data) == 50
    assert len(page2.data) == 45

    combined = [r.id for r in page1.data + page2.data]
    expected = [r.id for r in sorted(page1.data + page2.data, key=lambda r: (r.timestamp, r.id), reverse=True)]
    assert combined == expected
    assert len(set(combined)) == 95


def test_history_past_last_page_is_empty(store, add_record):
    _seed_history(add_record, 3)
    page = stats.compute_production_summary(store, HistoryFilters(), page=5, limit=2)
    assert page.data == []
    assert page.pagination.total == 3
    assert page.pagination.pages == 2


def test_history_empty(store):
    page = stats.compute_production_summary(store)
    assert page.data == []
    assert page.pagination.total == 0
    assert page.pagination.pages == 0
    assert page.pagination.limit == settings.HISTORY_PAGE_SIZE


def test_history_filters_are_conjunctive(store, add_record):
    add_record(1, "rejected", datetime(2024, 1, 1, 8), rejection_reasons=["Hole"])
    add_record(1, "rejected", datetime(2024, 1, 3, 8), rejection_reasons=["Hole"])
    add_record(1, "first_time_through", datetime(2024, 1, 1, 9))
    add_record(2, "rejected", datetime(2024, 1, 1, 10), rejection_reasons=["Hole"])

    filters = HistoryFilters(production_line_id=1, type=Outcome.REJECTED,
                             start_date=date(2024, 1, 1), end_date=date(2024, 1, 2))
    page = stats.compute_production_summary(store, filters, 1, 10)
    assert page.pagination.total == 1
    assert page.data[0].rejection_reasons == ["Hole"]
    assert page.data[0].production_line_id == 1


def test_history_page_ignores_rows_inserted_mid_request(store, db, add_record, monkeypatch):
    _seed_history(add_record, 5)
    real_scalar = db.scalar
    calls = []

    def scalar_then_insert(statement, *args, **kwargs):
        result = real_scalar(statement, *args, **kwargs)
        calls.append(statement)
        if len(calls) == 1:
            db.add(InspectionRecord(production_line_id=1, inspector_id="late", outcome="first_time_through",
                                    timestamp=datetime(2030, 1, 1)))
            db.flush()
        return result

    monkeypatch.setattr(db, "scalar", scalar_then_insert)
    page = stats.compute_production_summary(store, HistoryFilters(), 1, 10)
    assert page.pagination.total == 5
    assert all(r.inspector_id != "late" for r in page.data)


@pytest.mark.parametrize("page,limit", [(0, 10), (1, 0), (1, 10_000)])
def test_history_rejects_bad_paging(store, page, limit):
    with pytest.raises(ValidationError):
        stats.compute_production_summary(store, HistoryFilters(), page, limit)


def test_history_unknown_outcome_filter_is_refused(store):
    with pytest.raises(ValidationError):
        stats.compute_production_summary(store, HistoryFilters(type="Rejected!"), 1, 10)


def test_history_outcome_filter_accepts_plain_strings(store, add_record):
    add_record(1, "rejected", MORNING, rejection_reasons=["Hole"])
    add_record(1, "first_time_through", MORNING)
    page = stats.compute_production_summary(store, HistoryFilters(type="rejected"), 1, 10)
    assert [r.type for r in page.data] == ["rejected"]


# ----- writes -----

def test_record_inspection_derives_counts(store):
    rec = stats.record_inspection(store, {
        "production_line_id": 1,
        "inspector_id": "qc-2",
        "type": "needs_improvement",
        "timestamp": "2024-01-01T08:00:00Z",
        "defects": ["Stain", "Open seam"],
        "defect_count": 99,
    })
    assert rec.defect_count == 2
    assert rec.modification_count == 0
    assert rec.reason_count == 0
    assert rec.defects == ["Stain", "Open seam"]
    stored = store.get(rec.id)
    assert stored.timestamp == datetime(2024, 1, 1, 8, 0)
    assert stored.defect_count == 2


def test_record_inspection_rejects_mismatched_list(store):
    with pytest.raises(ValidationError):
        stats.record_inspection(store, {
            "production_line_id": 1,
            "inspector_id": "qc-2",
            "type": "rejected",
            "timestamp": "2024-01-01T08:00:00",
            "modifications": ["Re-hem"],
        })
    assert store.count() == 0


@pytest.mark.parametrize("missing", ["production_line_id", "inspector_id", "type", "timestamp"])
def test_record_inspection_requires_fields(store, missing):
    payload = {
        "production_line_id": 1,
        "inspector_id": "qc-2",
        "type": "first_time_through",
        "timestamp": "2024-01-01T08:00:00",
    }
    payload.pop(missing)
    with pytest.raises(ValidationError) as exc:
        stats.record_inspection(store, payload)
    assert missing in exc.value.message


def test_get_inspection_not_found(store):
    with pytest.raises(NotFoundError):
        stats.get_inspection(store, 123)
