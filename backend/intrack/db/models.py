from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, Index, UniqueConstraint
from datetime import datetime
from .database import Base

class InspectionRecord(Base):
    """One quality-check event. Rows are append-only.

    The detail lists are stored as JSON text; the ``*_count`` columns cache
    their lengths and are always derived on insert.
    """
    __tablename__ = "production_records"
    __table_args__ = (
        Index("ix_production_records_line_ts", "production_line_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    production_line_id = Column(Integer, nullable=False, index=True)
    inspector_id = Column(String(64), nullable=False, index=True)
    outcome = Column(String(32), nullable=False, index=True)

    # inspection moment, naive UTC
    timestamp = Column(DateTime, nullable=False, index=True)

    defects = Column(Text, nullable=False, default="[]")
    defect_count = Column(Integer, nullable=False, default=0)
    modifications = Column(Text, nullable=False, default="[]")
    modification_count = Column(Integer, nullable=False, default=0)
    rejection_reasons = Column(Text, nullable=False, default="[]")
    reason_count = Column(Integer, nullable=False, default=0)

    notes = Column(Text)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class QcLabel(Base):
    """Pick-list entry for free-text defect, rejection and modification labels."""
    __tablename__ = "qc_labels"
    __table_args__ = (UniqueConstraint("kind", "name", name="uq_qc_labels_kind_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(32), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    category = Column(String(128))
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
