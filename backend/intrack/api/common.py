from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Union

from fastapi import Depends
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from intrack.db.database import get_db
from intrack.errors import ValidationError
from intrack.services.store import RecordStore


def get_store(db: Session = Depends(get_db)) -> RecordStore:
    return RecordStore(db)


def parse_when(value: Optional[str], name: str) -> Optional[Union[date, datetime]]:
    """``YYYY-MM-DD`` becomes a date (whole day); anything longer an ISO datetime."""
    if value is None or not value.strip():
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {name} {value!r}: expected YYYY-MM-DD or an ISO 8601 datetime")


def require_when(value: Optional[str], name: str) -> Union[date, datetime]:
    parsed = parse_when(value, name)
    if parsed is None:
        raise ValidationError(f"{name} is required")
    return parsed


def ok(data: Any, **extra: Any) -> dict:
    return {"success": True, "data": jsonable_encoder(data), **jsonable_encoder(extra)}
