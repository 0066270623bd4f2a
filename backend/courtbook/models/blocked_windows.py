"""Recurring weekly windows during which a court cannot be booked."""

from __future__ import annotations

from datetime import datetime, time

from sqlalchemy import Index
from sqlmodel import Field

from courtbook.core.time import utcnow
from courtbook.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime, time)


class BlockedWindow(QueryModel, table=True):
    """Standing unavailability rule, maintained by the schedule service."""

    __tablename__ = "blocked_windows"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        Index("ix_blocked_windows_resource_weekday", "resource_id", "weekday"),
    )

    id: int | None = Field(default=None, primary_key=True)
    resource_id: int
    weekday: str
    start_time: time
    end_time: time
    created_at: datetime = Field(default_factory=utcnow)
