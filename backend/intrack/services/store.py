from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from intrack.db.models import InspectionRecord
from intrack.outcomes import DETAIL_FIELDS, Outcome
from intrack.timeutils import Window


def apply_filters(*, line_id: Optional[int] = None, outcome: Optional[Outcome] = None,
                  window: Optional[Window] = None) -> list:
    conds = []
    if line_id is not None:
        conds.append(InspectionRecord.production_line_id == line_id)
    if outcome is not None:
        conds.append(InspectionRecord.outcome == Outcome(outcome).value)
    if window is not None:
        if window.start is not None:
            conds.append(InspectionRecord.timestamp >= window.start)
        if window.end is not None:
            if window.end_inclusive:
                conds.append(InspectionRecord.timestamp <= window.end)
            else:
                conds.append(InspectionRecord.timestamp < window.end)
    return conds


class RecordStore:
    """Query surface over the inspection records table.

    Wraps one session; callers pass it to every statistics operation.
    Storage errors are not caught here.
    """

    def __init__(self, session: Session):
        self.session = session

    def add(self, record: InspectionRecord) -> InspectionRecord:
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def get(self, record_id: int) -> Optional[InspectionRecord]:
        return self.session.get(InspectionRecord, record_id)

    def count(self, *, line_id: Optional[int] = None, outcome: Optional[Outcome] = None,
              window: Optional[Window] = None) -> int:
        conds = apply_filters(line_id=line_id, outcome=outcome, window=window)
        return self.session.scalar(select(func.count(InspectionRecord.id)).where(*conds)) or 0

    def count_by_outcome(self, line_id: int, window: Window) -> Dict[str, Tuple[int, int]]:
        """``{outcome: (records, summed defect_count)}`` for one line and window."""
        conds = apply_filters(line_id=line_id, window=window)
        stmt = (
            select(
                InspectionRecord.outcome,
                func.count(InspectionRecord.id),
                func.coalesce(func.sum(InspectionRecord.defect_count), 0),
            )
            .where(*conds)
            .group_by(InspectionRecord.outcome)
        )
        return {outcome: (int(n), int(d or 0)) for outcome, n, d in self.session.execute(stmt)}

    def count_by_line_and_outcome(self, window: Window,
                                  line_id: Optional[int] = None) -> List[Tuple[int, str, int, int]]:
        """Rows of ``(line_id, outcome, records, summed defect_count)``."""
        conds = apply_filters(line_id=line_id, window=window)
        stmt = (
            select(
                InspectionRecord.production_line_id,
                InspectionRecord.outcome,
                func.count(InspectionRecord.id),
                func.coalesce(func.sum(InspectionRecord.defect_count), 0),
            )
            .where(*conds)
            .group_by(InspectionRecord.production_line_id, InspectionRecord.outcome)
            .order_by(InspectionRecord.production_line_id)
        )
        return [(int(line), outcome, int(n), int(d or 0)) for line, outcome, n, d in self.session.execute(stmt)]

    def iter_details(self, outcome: Outcome, window: Window,
                     line_id: Optional[int] = None) -> Iterator[Tuple[int, int, Optional[str]]]:
        """Yield ``(id, line_id, raw detail JSON)`` oldest first."""
        column = getattr(InspectionRecord, DETAIL_FIELDS[Outcome(outcome)])
        conds = apply_filters(line_id=line_id, outcome=outcome, window=window)
        stmt = (
            select(InspectionRecord.id, InspectionRecord.production_line_id, column)
            .where(*conds)
            .order_by(InspectionRecord.timestamp.asc(), InspectionRecord.id.asc())
        )
        for record_id, line, raw in self.session.execute(stmt):
            yield record_id, line, raw

    def page(self, *, line_id: Optional[int] = None, outcome: Optional[Outcome] = None,
             window: Optional[Window] = None, page: int = 1,
             limit: int = 50) -> Tuple[Sequence[InspectionRecord], int]:
        """One page, newest first, and the total it was cut from.

        Count and page are both bounded by the highest matching id seen at
        the start, so records inserted meanwhile neither change the total
        nor shift the page.
        """
        conds = apply_filters(line_id=line_id, outcome=outcome, window=window)
        snapshot_id = self.session.scalar(select(func.max(InspectionRecord.id)).where(*conds))
        if snapshot_id is None:
            return [], 0
        conds.append(InspectionRecord.id <= snapshot_id)

        total = self.session.scalar(select(func.count(InspectionRecord.id)).where(*conds)) or 0
        stmt = (
            select(InspectionRecord)
            .where(*conds)
            .order_by(InspectionRecord.timestamp.desc(), InspectionRecord.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return self.session.scalars(stmt).all(), total
