"""Availability checker deciding whether a court window may be granted.

Three conflict sources are consulted in order and the first hit wins:

1. active reservations (pending or confirmed) on the same court and date,
2. pending approval requests whose reservation overlaps on that court and date,
3. recurring blocked windows for the date's weekday.

An inconclusive read never grants availability: database faults are reported
as an ``unavailable`` conflict.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from courtbook.core.logging import get_logger
from courtbook.models.reservations import ACTIVE_RESERVATION_STATUSES, ReservationStatus
from courtbook.services.reservation_store import ReservationStore
from courtbook.services.schedule_facts import DatabaseScheduleFacts
from courtbook.services.time_windows import weekday_for

if TYPE_CHECKING:
    from datetime import date
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from courtbook.services.schedule_facts import ScheduleFacts
    from courtbook.services.time_windows import TimeWindow

logger = get_logger(__name__)


class ConflictKind(str, Enum):
    """Which source blocked the requested window."""

    RESERVATION = "reservation"
    PENDING_REQUEST = "pending_request"
    BLOCKED_WINDOW = "blocked_window"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class Available:
    """The window can be granted."""


@dataclass(frozen=True, slots=True)
class Conflict:
    """The window cannot be granted; `entity_id` names the blocking record."""

    kind: ConflictKind
    entity_id: str | None = None


AVAILABLE = Available()
AvailabilityResult = Available | Conflict


async def check_availability(
    session: AsyncSession,
    *,
    resource_id: int,
    booking_date: date,
    window: TimeWindow,
    exclude_reservation_id: UUID | None = None,
    schedule_facts: ScheduleFacts | None = None,
    include_pending: bool = True,
) -> AvailabilityResult:
    """Return `AVAILABLE` or the first conflict found for the window.

    With `include_pending=False` only confirmed reservations and blocked
    windows count. Approval uses this: competing pending requests are
    resolved by whichever is approved first.
    """
    store = ReservationStore(session)
    facts = schedule_facts or DatabaseScheduleFacts()
    statuses = (
        ACTIVE_RESERVATION_STATUSES
        if include_pending
        else (ReservationStatus.CONFIRMED.value,)
    )
    try:
        reservations = await store.find_overlapping_reservations(
            resource_id=resource_id,
            booking_date=booking_date,
            window=window,
            exclude_reservation_id=exclude_reservation_id,
            statuses=statuses,
        )
        if reservations:
            return Conflict(ConflictKind.RESERVATION, str(reservations[0].id))

        if include_pending:
            requests = await store.find_overlapping_pending_requests(
                resource_id=resource_id,
                booking_date=booking_date,
                window=window,
                exclude_reservation_id=exclude_reservation_id,
            )
            if requests:
                return Conflict(ConflictKind.PENDING_REQUEST, str(requests[0].id))

        blocked = await facts.blocked_windows(
            session,
            resource_id=resource_id,
            weekday=weekday_for(booking_date),
        )
    except SQLAlchemyError:
        logger.exception(
            "availability.check.fault resource_id=%s date=%s",
            resource_id,
            booking_date.isoformat(),
        )
        return Conflict(ConflictKind.UNAVAILABLE)

    for entry in blocked:
        if window.overlaps_range(entry.start_time, entry.end_time):
            return Conflict(ConflictKind.BLOCKED_WINDOW, str(entry.id))
    return AVAILABLE
