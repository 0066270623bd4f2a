"""Reservation model: a claim on a court for a time window on one date."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import Index
from sqlmodel import Field

from courtbook.core.time import utcnow
from courtbook.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (date, datetime, time, Decimal)


class ReservationStatus(str, Enum):
    """Reservation lifecycle states; confirmed and cancelled are terminal."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


ACTIVE_RESERVATION_STATUSES = (
    ReservationStatus.PENDING.value,
    ReservationStatus.CONFIRMED.value,
)


class Reservation(QueryModel, table=True):
    """Booking placeholder for a resource/date window."""

    __tablename__ = "reservations"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        Index("ix_reservations_resource_date", "resource_id", "booking_date"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    resource_id: int = Field(index=True)
    requester_id: int = Field(index=True)
    team_id: int | None = None
    booking_date: date
    start_time: time
    end_time: time
    duration_hours: Decimal = Field(max_digits=6, decimal_places=2)
    amount: Decimal = Field(max_digits=10, decimal_places=2)
    status: str = Field(default=ReservationStatus.PENDING.value, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
