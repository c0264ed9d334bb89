# Services/helpers.py
import logging
import math
import re
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import exc
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_NON_SLUG = re.compile(r"[^a-z0-9]+")

WORDS_PER_MINUTE = 200


def now() -> datetime:
    return datetime.utcnow()


def slugify(text: str) -> str:
    """Lowercase, collapse every run of non-alphanumerics to a hyphen, trim hyphens."""
    return _NON_SLUG.sub("-", (text or "").lower()).strip("-")


def reading_time(content: Optional[str]) -> int:
    """Estimated minutes to read `content`, never below one."""
    if not content or not content.strip():
        return 1
    words = len(content.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def get_or_404(db: Session, model, row_id: str, label: str):
    row = db.query(model).filter(model.id == row_id).first()
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} not found"
        )
    return row


def ensure_unique(db: Session, column, value, conflict: str, exclude_id: Optional[str] = None):
    """409 when another row already holds `value`; run before any upload so a conflict leaves storage untouched."""
    model = column.class_
    query = db.query(model.id).filter(column == value)
    if exclude_id:
        query = query.filter(model.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=conflict
        )


def commit_or_raise(db: Session, failure: str, conflict: Optional[str] = None):
    """
    Commit the unit of work. Integrity violations become 409 (`conflict`),
    any other database error is logged and surfaces as a generic 500.
    """
    try:
        db.commit()
    except exc.IntegrityError as e:
        db.rollback()
        logger.warning(f"{failure}: {e.orig}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=conflict or failure
        )
    except exc.SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{failure}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=failure
        )
