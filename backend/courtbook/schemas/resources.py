"""Schemas for per-court schedule and availability lookups."""

from __future__ import annotations

from datetime import time

from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (time,)


class BlockedWindowRead(SQLModel):
    """Recurring weekly window during which the court is not bookable."""

    id: int
    resource_id: int
    weekday: str
    start_time: time
    end_time: time


class AvailabilityRead(SQLModel):
    """Result of checking one window without booking it."""

    available: bool
    conflict_kind: str | None = None
    conflict_id: str | None = None
