"""Schemas for reservation submission and read payloads."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from courtbook.schemas.common import MAX_ID

RUNTIME_ANNOTATION_TYPES = (dt.date, dt.datetime, dt.time, Decimal, UUID)


class ReservationSubmit(SQLModel):
    """Payload for requesting a court booking."""

    resource_id: int = Field(gt=0, le=MAX_ID)
    requester_id: int = Field(gt=0, le=MAX_ID)
    date: dt.date
    start: dt.time
    end: dt.time
    duration: Decimal = Field(gt=0, max_digits=6, decimal_places=2)
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    team_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    message: str | None = Field(default=None, max_length=2000)


class ReservationSubmitted(SQLModel):
    """Identifiers returned after a request is accepted for review."""

    reservation_id: UUID
    request_id: UUID
    status: str


class ReservationRead(SQLModel):
    """Reservation payload returned by read endpoints."""

    id: UUID
    resource_id: int
    requester_id: int
    team_id: int | None = None
    booking_date: dt.date
    start_time: dt.time
    end_time: dt.time
    duration_hours: Decimal
    amount: Decimal
    status: str
    created_at: dt.datetime
    updated_at: dt.datetime
