"""Persistence for reservations and approval requests.

The store executes the reads and writes requested by the workflow engine; it
never decides availability itself. Every paired write runs inside
``transaction()``, which commits on success and rolls back on any failure,
translating database faults into the booking error taxonomy.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlmodel import col

from courtbook.core.config import settings
from courtbook.core.errors import (
    BookingError,
    BookingValidationError,
    InternalFault,
    SlotConflict,
    TransientStoreFault,
)
from courtbook.core.logging import get_logger
from courtbook.core.time import utcnow
from courtbook.models.approval_requests import ApprovalRequest, RequestStatus
from courtbook.models.reservations import (
    ACTIVE_RESERVATION_STATUSES,
    Reservation,
    ReservationStatus,
)
from courtbook.models.slot_locks import SlotLock

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from datetime import date, datetime
    from decimal import Decimal
    from uuid import UUID

    from sqlmodel import SQLModel
    from sqlmodel.ext.asyncio.session import AsyncSession

    from courtbook.services.time_windows import TimeWindow

logger = get_logger(__name__)

# PostgreSQL SQLSTATEs for lock_timeout, serialization failure, deadlock and
# statement_timeout.
_RETRYABLE_SQLSTATES = frozenset({"55P03", "40001", "40P01", "57014"})
_EXCLUSION_VIOLATION_SQLSTATE = "23P01"
# Values outside a column's range or precision.
_DATA_RANGE_SQLSTATES = frozenset({"22001", "22003"})


def _sqlstate(exc: SQLAlchemyError) -> str | None:
    orig = getattr(exc, "orig", None)
    state = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return state if isinstance(state, str) else None


def translate_store_error(exc: SQLAlchemyError) -> BookingError:
    """Map a database fault to a retryable, terminal, or internal error."""
    state = _sqlstate(exc)
    if state == _EXCLUSION_VIOLATION_SQLSTATE:
        return SlotConflict()
    if state in _DATA_RANGE_SQLSTATES:
        return BookingValidationError("A value is out of range for this booking.")
    if state in _RETRYABLE_SQLSTATES or isinstance(exc, PoolTimeoutError):
        return TransientStoreFault()
    if isinstance(exc, OperationalError) and "database is locked" in str(exc.orig).lower():
        return TransientStoreFault()
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return TransientStoreFault()
    return InternalFault()


class ReservationStore:
    """Reads and writes of the reservation ledger for one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run a unit of work atomically; nothing is kept on failure."""
        try:
            yield
            await self.session.commit()
        except BookingError:
            await self._rollback()
            raise
        except SQLAlchemyError as exc:
            await self._rollback()
            error = translate_store_error(exc)
            if isinstance(error, InternalFault):
                logger.exception("store.transaction.failed")
            else:
                logger.warning(
                    "store.transaction.aborted code=%s sqlstate=%s",
                    error.code,
                    _sqlstate(exc),
                )
            raise error from exc
        except Exception as exc:
            await self._rollback()
            logger.exception("store.transaction.failed")
            raise InternalFault() from exc

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.exception("store.transaction.rollback_failed")

    async def _write(self, row: SQLModel) -> None:
        self.session.add(row)
        await self.session.flush()

    async def lock_slot(self, resource_id: int, booking_date: date) -> None:
        """Serialize booking writes for one court and date until commit."""
        connection = await self.session.connection()
        dialect = connection.dialect.name
        if dialect == "postgresql":
            await connection.execute(
                text("SELECT set_config('lock_timeout', :value, true)"),
                {"value": f"{settings.lock_timeout_ms}ms"},
            )
            await connection.execute(
                text("SELECT set_config('statement_timeout', :value, true)"),
                {"value": f"{settings.statement_timeout_ms}ms"},
            )
            await connection.execute(
                text(
                    "SELECT pg_advisory_xact_lock("
                    "CAST(:resource_id AS integer), CAST(:day AS integer))",
                ),
                {"resource_id": resource_id, "day": booking_date.toordinal()},
            )
            return

        now = utcnow()
        table = SlotLock.__table__  # pyright: ignore[reportAttributeAccessIssue]
        values = {"resource_id": resource_id, "booking_date": booking_date, "touched_at": now}
        if dialect == "sqlite":
            await connection.execute(
                sqlite_insert(table)
                .values(**values)
                .on_conflict_do_update(
                    index_elements=["resource_id", "booking_date"],
                    set_={"touched_at": now},
                ),
            )
            return
        if dialect in {"mysql", "mariadb"}:
            await connection.execute(
                mysql_insert(table).values(**values).on_duplicate_key_update(touched_at=now),
            )
            return

        await self._lock_slot_row(resource_id, booking_date, now)

    async def _find_slot_lock(self, resource_id: int, booking_date: date) -> SlotLock | None:
        return await SlotLock.objects.filter_by(
            resource_id=resource_id,
            booking_date=booking_date,
        ).first(self.session)

    async def _lock_slot_row(self, resource_id: int, booking_date: date, now: datetime) -> None:
        lock = await self._find_slot_lock(resource_id, booking_date)
        if lock is None:
            lock = SlotLock(resource_id=resource_id, booking_date=booking_date)
        lock.touched_at = now
        try:
            await self._write(lock)
        except IntegrityError as exc:
            # Another writer inserted the first row for this key; a retry finds it.
            raise TransientStoreFault() from exc

    async def create_with_request(
        self,
        *,
        resource_id: int,
        requester_id: int,
        processor_id: int,
        booking_date: date,
        window: TimeWindow,
        duration_hours: Decimal,
        amount: Decimal,
        team_id: int | None = None,
        message: str = "",
    ) -> tuple[Reservation, ApprovalRequest]:
        """Insert a pending reservation and its pending approval request."""
        now = utcnow()
        reservation = Reservation(
            resource_id=resource_id,
            requester_id=requester_id,
            team_id=team_id,
            booking_date=booking_date,
            start_time=window.start,
            end_time=window.end,
            duration_hours=duration_hours,
            amount=amount,
            status=ReservationStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        await self._write(reservation)
        request = ApprovalRequest(
            reservation_id=reservation.id,
            resource_id=resource_id,
            requester_id=requester_id,
            processor_id=processor_id,
            message=message,
            status=RequestStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        await self._write(request)
        return reservation, request

    async def set_statuses(
        self,
        request: ApprovalRequest,
        reservation: Reservation,
        *,
        request_status: RequestStatus,
        reservation_status: ReservationStatus,
        decided_at: datetime,
        rejection_reason: str | None = None,
    ) -> None:
        """Move a request and its reservation to their next states together."""
        request.decided_at = decided_at
        request.rejection_reason = rejection_reason
        await self.set_status(request, request_status, updated_at=decided_at)
        await self.set_status(reservation, reservation_status, updated_at=decided_at)

    async def set_status(
        self,
        row: Reservation | ApprovalRequest,
        new_status: ReservationStatus | RequestStatus,
        *,
        updated_at: datetime,
    ) -> None:
        row.status = new_status.value
        row.updated_at = updated_at
        await self._write(row)

    async def refresh(self, *rows: SQLModel) -> None:
        for row in rows:
            await self.session.refresh(row)

    async def get_reservation(self, reservation_id: UUID) -> Reservation | None:
        return await Reservation.objects.by_id(reservation_id).first(self.session)

    async def get_request(self, request_id: UUID) -> ApprovalRequest | None:
        return await ApprovalRequest.objects.by_id(request_id).first(self.session)

    async def get_request_for_reservation(self, reservation_id: UUID) -> ApprovalRequest | None:
        return await ApprovalRequest.objects.filter_by(reservation_id=reservation_id).first(
            self.session,
        )

    async def list_reservations(self) -> list[Reservation]:
        """All reservations, newest first."""
        return await Reservation.objects.all().order_by(
            col(Reservation.created_at).desc(),
        ).all(self.session)

    async def list_requests(self, *, status: RequestStatus | None = None) -> list[ApprovalRequest]:
        """Approval requests, newest first, optionally filtered by state."""
        queryset = ApprovalRequest.objects.all()
        if status is not None:
            queryset = queryset.filter_by(status=status.value)
        return await queryset.order_by(col(ApprovalRequest.created_at).desc()).all(self.session)

    async def find_overlapping_reservations(
        self,
        *,
        resource_id: int,
        booking_date: date,
        window: TimeWindow,
        exclude_reservation_id: UUID | None = None,
        statuses: tuple[str, ...] = ACTIVE_RESERVATION_STATUSES,
    ) -> list[Reservation]:
        """Reservations in `statuses` on the court and date whose window overlaps."""
        queryset = Reservation.objects.filter(
            col(Reservation.resource_id) == resource_id,
            col(Reservation.booking_date) == booking_date,
            col(Reservation.status).in_(statuses),
            col(Reservation.start_time) < window.end,
            col(Reservation.end_time) > window.start,
        )
        if exclude_reservation_id is not None:
            queryset = queryset.filter(col(Reservation.id) != exclude_reservation_id)
        return await queryset.order_by(col(Reservation.start_time)).all(self.session)

    async def find_overlapping_pending_requests(
        self,
        *,
        resource_id: int,
        booking_date: date,
        window: TimeWindow,
        exclude_reservation_id: UUID | None = None,
    ) -> list[ApprovalRequest]:
        """Pending requests whose reservation overlaps on the court and date."""
        queryset = (
            ApprovalRequest.objects.all()
            .join(Reservation, col(Reservation.id) == col(ApprovalRequest.reservation_id))
            .filter(
                col(ApprovalRequest.status) == RequestStatus.PENDING.value,
                col(Reservation.resource_id) == resource_id,
                col(Reservation.booking_date) == booking_date,
                col(Reservation.start_time) < window.end,
                col(Reservation.end_time) > window.start,
            )
        )
        if exclude_reservation_id is not None:
            queryset = queryset.filter(col(Reservation.id) != exclude_reservation_id)
        return await queryset.order_by(col(Reservation.start_time)).all(self.session)

    async def delete_reservation(self, reservation_id: UUID) -> bool:
        """Remove a reservation together with its approval request."""
        reservation = await self.get_reservation(reservation_id)
        if reservation is None:
            return False
        request = await self.get_request_for_reservation(reservation_id)
        if request is not None:
            await self.session.delete(request)
            await self.session.flush()
        await self.session.delete(reservation)
        await self.session.flush()
        return True

    async def delete_request(self, request_id: UUID) -> bool:
        request = await self.get_request(request_id)
        if request is None:
            return False
        await self.session.delete(request)
        await self.session.flush()
        return True
