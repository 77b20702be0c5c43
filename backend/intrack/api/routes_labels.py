from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from intrack.api.common import ok
from intrack.db.database import get_db
from intrack.schemas import LabelCreate, LabelOut
from intrack.services.labels import LabelKind, add_label, list_labels

router = APIRouter(prefix="/api/defects", tags=["Labels"])

def _list(db: Session, kind: LabelKind):
    return ok([LabelOut.model_validate(x) for x in list_labels(db, kind)])

def _add(db: Session, kind: LabelKind, req: LabelCreate):
    label = add_label(db, kind, req.name, req.category)
    return {"success": True, "message": "Label added successfully", **ok(LabelOut.model_validate(label))}

@router.get("/categories")
def defect_categories(db: Session = Depends(get_db)):
    return _list(db, LabelKind.DEFECT)

@router.post("/categories", status_code=201)
def add_defect_category(req: LabelCreate, db: Session = Depends(get_db)):
    return _add(db, LabelKind.DEFECT, req)

@router.get("/rejection-reasons")
def rejection_reasons(db: Session = Depends(get_db)):
    return _list(db, LabelKind.REJECTION_REASON)

@router.post("/rejection-reasons", status_code=201)
def add_rejection_reason(req: LabelCreate, db: Session = Depends(get_db)):
    return _add(db, LabelKind.REJECTION_REASON, req)

@router.get("/modification-types")
def modification_types(db: Session = Depends(get_db)):
    return _list(db, LabelKind.MODIFICATION)

@router.post("/modification-types", status_code=201)
def add_modification_type(req: LabelCreate, db: Session = Depends(get_db)):
    return _add(db, LabelKind.MODIFICATION, req)
