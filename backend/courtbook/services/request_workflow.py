"""Two-phase booking workflow: submit a request, then let the owner decide it.

A submission atomically creates a pending reservation and its pending approval
request. The processor fixed at submission later approves or rejects it. Both
steps hold the slot lock for the court and date while they check availability
and write, so concurrent submissions and approvals for overlapping windows
cannot both succeed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from courtbook.core.config import settings
from courtbook.core.errors import (
    BookingValidationError,
    ForbiddenError,
    NotFoundError,
    SlotConflict,
    TransientStoreFault,
)
from courtbook.core.logging import get_logger
from courtbook.core.time import utcnow
from courtbook.models.approval_requests import RequestStatus
from courtbook.models.reservations import ReservationStatus
from courtbook.services.availability import Conflict, ConflictKind, check_availability
from courtbook.services.reservation_store import ReservationStore
from courtbook.services.time_windows import TimeWindow, facility_today

if TYPE_CHECKING:
    from datetime import date
    from decimal import Decimal
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from courtbook.models.approval_requests import ApprovalRequest
    from courtbook.models.reservations import Reservation
    from courtbook.services.availability import AvailabilityResult
    from courtbook.services.processors import ProcessorResolver
    from courtbook.services.schedule_facts import ScheduleFacts

logger = get_logger(__name__)

AUTO_REJECT_REASON = "slot occupied at approval time"


class DecisionAction(str, Enum):
    """Actions a processor can take on a pending request."""

    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class SubmitCommand:
    """Everything needed to request a booking."""

    resource_id: int
    requester_id: int
    booking_date: date
    window: TimeWindow
    duration_hours: Decimal
    amount: Decimal
    team_id: int | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class DecideCommand:
    """A processor's decision on one request."""

    action: DecisionAction
    processor_id: int
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class SubmitResult:
    reservation: Reservation
    request: ApprovalRequest


@dataclass(frozen=True, slots=True)
class DecisionResult:
    request: ApprovalRequest
    reservation: Reservation


def _conflict_error(conflict: Conflict) -> SlotConflict | TransientStoreFault:
    if conflict.kind == ConflictKind.UNAVAILABLE:
        return TransientStoreFault("Court availability could not be verified. Please try again.")
    return SlotConflict(
        conflict_kind=conflict.kind.value,
        conflict_id=conflict.entity_id,
    )


def _window_of(reservation: Reservation) -> TimeWindow:
    return TimeWindow(reservation.start_time, reservation.end_time)


class RequestWorkflow:
    """Orchestrates reservation requests and their approval decisions."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        schedule_facts: ScheduleFacts,
        processor_resolver: ProcessorResolver,
    ) -> None:
        self.session = session
        self.store = ReservationStore(session)
        self.schedule_facts = schedule_facts
        self.processor_resolver = processor_resolver

    async def _check(
        self,
        *,
        resource_id: int,
        booking_date: date,
        window: TimeWindow,
        exclude_reservation_id: UUID | None = None,
        include_pending: bool = True,
    ) -> AvailabilityResult:
        return await check_availability(
            self.session,
            resource_id=resource_id,
            booking_date=booking_date,
            window=window,
            exclude_reservation_id=exclude_reservation_id,
            schedule_facts=self.schedule_facts,
            include_pending=include_pending,
        )

    @staticmethod
    def _validate_submit(command: SubmitCommand) -> None:
        if command.duration_hours <= 0:
            raise BookingValidationError("duration must be greater than zero")
        if command.amount < 0:
            raise BookingValidationError("amount must not be negative")
        if not settings.allow_past_dates and command.booking_date < facility_today():
            raise BookingValidationError("reservations cannot be made for past dates")

    async def submit(self, command: SubmitCommand) -> SubmitResult:
        """Create a pending reservation and its approval request, or raise."""
        self._validate_submit(command)
        processor_id = await self.processor_resolver.resolve_processor(command.resource_id)

        async with self.store.transaction():
            await self.store.lock_slot(command.resource_id, command.booking_date)
            result = await self._check(
                resource_id=command.resource_id,
                booking_date=command.booking_date,
                window=command.window,
            )
            if isinstance(result, Conflict):
                logger.info(
                    "reservation.submit.conflict resource_id=%s date=%s kind=%s",
                    command.resource_id,
                    command.booking_date.isoformat(),
                    result.kind.value,
                )
                raise _conflict_error(result)
            reservation, request = await self.store.create_with_request(
                resource_id=command.resource_id,
                requester_id=command.requester_id,
                processor_id=processor_id,
                booking_date=command.booking_date,
                window=command.window,
                duration_hours=command.duration_hours,
                amount=command.amount,
                team_id=command.team_id,
                message=command.message,
            )

        logger.info(
            "reservation.submit.accepted reservation_id=%s request_id=%s resource_id=%s",
            reservation.id,
            request.id,
            reservation.resource_id,
        )
        return SubmitResult(reservation=reservation, request=request)

    async def decide(self, request_id: UUID, command: DecideCommand) -> DecisionResult:
        """Approve or reject a pending request as its fixed processor.

        An approval re-checks availability while holding the slot lock, counting
        only confirmed reservations and blocked windows. Of several overlapping
        pending requests the first one approved wins. When the slot was taken
        the request is rejected and its reservation cancelled; that outcome is
        committed and then reported as `SlotConflict`.
        """
        conflict: Conflict | None = None
        async with self.store.transaction():
            request = await self.store.get_request(request_id)
            if request is None:
                raise NotFoundError("Approval request not found.")
            if request.processor_id != command.processor_id:
                raise ForbiddenError()
            reservation = await self.store.get_reservation(request.reservation_id)
            if reservation is None:
                raise NotFoundError("Reservation for this request no longer exists.")

            await self.store.lock_slot(reservation.resource_id, reservation.booking_date)
            # Another decision may have committed while we waited for the lock.
            await self.store.refresh(request, reservation)
            if request.status != RequestStatus.PENDING.value:
                raise NotFoundError("Approval request is no longer pending.")

            now = utcnow()
            if command.action == DecisionAction.REJECT:
                await self.store.set_statuses(
                    request,
                    reservation,
                    request_status=RequestStatus.REJECTED,
                    reservation_status=ReservationStatus.CANCELLED,
                    decided_at=now,
                    rejection_reason=command.reason,
                )
            else:
                result = await self._check(
                    resource_id=reservation.resource_id,
                    booking_date=reservation.booking_date,
                    window=_window_of(reservation),
                    exclude_reservation_id=reservation.id,
                    include_pending=False,
                )
                if isinstance(result, Conflict):
                    if result.kind == ConflictKind.UNAVAILABLE:
                        raise _conflict_error(result)
                    conflict = result
                    await self.store.set_statuses(
                        request,
                        reservation,
                        request_status=RequestStatus.REJECTED,
                        reservation_status=ReservationStatus.CANCELLED,
                        decided_at=now,
                        rejection_reason=AUTO_REJECT_REASON,
                    )
                else:
                    await self.store.set_statuses(
                        request,
                        reservation,
                        request_status=RequestStatus.APPROVED,
                        reservation_status=ReservationStatus.CONFIRMED,
                        decided_at=now,
                    )

        if conflict is not None:
            logger.warning(
                "request.decide.auto_rejected request_id=%s kind=%s entity_id=%s",
                request.id,
                conflict.kind.value,
                conflict.entity_id,
            )
            raise SlotConflict(
                "The time slot was taken before approval; the request was rejected.",
                conflict_kind=conflict.kind.value,
                conflict_id=conflict.entity_id,
            )

        logger.info(
            "request.decide.completed request_id=%s status=%s reservation_status=%s",
            request.id,
            request.status,
            reservation.status,
        )
        return DecisionResult(request=request, reservation=reservation)