"""Runtime-extensible pick lists for defect, rejection and modification labels.

Records keep their labels as free text; this registry only feeds the
selection lists shown to QC managers.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from intrack.db.models import QcLabel
from intrack.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)


class LabelKind(str, Enum):
    DEFECT = "defect"
    REJECTION_REASON = "rejection_reason"
    MODIFICATION = "modification"


def list_labels(db: Session, kind: LabelKind) -> List[QcLabel]:
    stmt = (
        select(QcLabel)
        .where(QcLabel.kind == LabelKind(kind).value, QcLabel.is_active.is_(True))
        .order_by(QcLabel.name)
    )
    return list(db.scalars(stmt).all())


def find_label(db: Session, kind: LabelKind, name: str) -> Optional[QcLabel]:
    stmt = select(QcLabel).where(QcLabel.kind == LabelKind(kind).value, QcLabel.name == name)
    return db.scalars(stmt).first()


def add_label(db: Session, kind: LabelKind, name: str, category: Optional[str] = None) -> QcLabel:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Label name is required")
    kind = LabelKind(kind)
    if find_label(db, kind, name) is not None:
        raise ConflictError(f"{kind.value.replace('_', ' ').capitalize()} {name!r} already exists")

    now = datetime.utcnow()
    label = QcLabel(kind=kind.value, name=name, category=(category or "").strip() or None,
                    is_active=True, created_at=now, updated_at=now)
    db.add(label)
    try:
        db.commit()
    except IntegrityError:
        # lost a race against a concurrent insert of the same name
        db.rollback()
        raise ConflictError(f"{kind.value.replace('_', ' ').capitalize()} {name!r} already exists")
    db.refresh(label)
    logger.info(f"New {kind.value} label added: {name}")
    return label
