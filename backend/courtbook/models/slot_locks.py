"""Per court/date lock rows used to serialize booking transactions."""

from __future__ import annotations

from datetime import date, datetime

from sqlmodel import Field

from courtbook.core.time import utcnow
from courtbook.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (date, datetime)


class SlotLock(QueryModel, table=True):
    """Row touched inside every booking write for its resource and date."""

    __tablename__ = "slot_locks"  # pyright: ignore[reportAssignmentType]

    resource_id: int = Field(primary_key=True)
    booking_date: date = Field(primary_key=True)
    touched_at: datetime = Field(default_factory=utcnow)
