# ruff: noqa: INP001
"""Tests for the submit/decide workflow and its safety properties."""

from __future__ import annotations

from datetime import date, time, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from courtbook.core.config import Settings
from courtbook.core.errors import (
    BookingValidationError,
    ForbiddenError,
    InternalFault,
    NotFoundError,
    SlotConflict,
    TransientStoreFault,
)
from courtbook.models.approval_requests import ApprovalRequest, RequestStatus
from courtbook.models.blocked_windows import BlockedWindow
from courtbook.models.reservations import Reservation, ReservationStatus
from courtbook.services import request_workflow
from courtbook.services.processors import SettingsProcessorResolver
from courtbook.services.request_workflow import (
    AUTO_REJECT_REASON,
    DecideCommand,
    DecisionAction,
    RequestWorkflow,
    SubmitCommand,
)
from courtbook.services.reservation_store import ReservationStore
from courtbook.services.schedule_facts import DatabaseScheduleFacts
from courtbook.services.time_windows import TimeWindow

COURT_ID = 5
OWNER_ID = 42
SATURDAY = date(2024, 6, 1)


class _FixedProcessor:
    def __init__(self, processor_id: int = OWNER_ID) -> None:
        self.processor_id = processor_id
        self.calls: list[int] = []

    async def resolve_processor(self, resource_id: int) -> int:
        self.calls.append(resource_id)
        return self.processor_id


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


def _workflow(session: AsyncSession, resolver: _FixedProcessor | None = None) -> RequestWorkflow:
    return RequestWorkflow(
        session,
        schedule_facts=DatabaseScheduleFacts(),
        processor_resolver=resolver or _FixedProcessor(),
    )


def _submit(
    start: time,
    end: time,
    *,
    booking_date: date = SATURDAY,
    requester_id: int = 7,
    duration: str = "1",
    amount: str = "25.00",
) -> SubmitCommand:
    return SubmitCommand(
        resource_id=COURT_ID,
        requester_id=requester_id,
        booking_date=booking_date,
        window=TimeWindow(start, end),
        duration_hours=Decimal(duration),
        amount=Decimal(amount),
    )


def _approve(processor_id: int = OWNER_ID) -> DecideCommand:
    return DecideCommand(action=DecisionAction.APPROVE, processor_id=processor_id)


def _reject(processor_id: int = OWNER_ID, reason: str | None = "court closed") -> DecideCommand:
    return DecideCommand(action=DecisionAction.REJECT, processor_id=processor_id, reason=reason)


async def _count_reservations(session: AsyncSession) -> int:
    return len(await Reservation.objects.all().all(session))


@pytest.mark.asyncio
async def test_submit_then_approve_books_the_slot_and_frees_adjacent_windows() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)

            first = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            first_request_id = first.request.id
            assert first.reservation.status == ReservationStatus.PENDING.value
            assert first.request.status == RequestStatus.PENDING.value
            assert first.request.processor_id == OWNER_ID
            assert first.request.reservation_id == first.reservation.id

            with pytest.raises(SlotConflict):
                await workflow.submit(_submit(time(9, 30), time(10, 30)))

            decided = await workflow.decide(first_request_id, _approve())
            assert decided.request.status == RequestStatus.APPROVED.value
            assert decided.reservation.status == ReservationStatus.CONFIRMED.value
            assert decided.request.decided_at is not None
            assert decided.request.rejection_reason is None

            adjacent = await workflow.submit(_submit(time(10, 0), time(11, 0)))
            assert adjacent.request.status == RequestStatus.PENDING.value
            assert await _count_reservations(session) == 2
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_racing_pending_requests_resolve_with_one_approval_and_one_auto_rejection() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            # Both pairs exist as if two submissions raced past the checker.
            store = ReservationStore(session)
            pairs = []
            for start, end in ((time(9, 0), time(10, 0)), (time(9, 30), time(10, 30))):
                async with store.transaction():
                    pairs.append(
                        await store.create_with_request(
                            resource_id=COURT_ID,
                            requester_id=7,
                            processor_id=OWNER_ID,
                            booking_date=SATURDAY,
                            window=TimeWindow(start, end),
                            duration_hours=Decimal("1"),
                            amount=Decimal("25.00"),
                        ),
                    )
            (first_reservation, first_request), (second_reservation, second_request) = pairs
            first_reservation_id = first_reservation.id
            second_request_id = second_request.id
            second_reservation_id = second_reservation.id
            workflow = _workflow(session)

            approved = await workflow.decide(first_request.id, _approve())
            assert approved.reservation.id == first_reservation_id
            assert approved.reservation.status == ReservationStatus.CONFIRMED.value

            with pytest.raises(SlotConflict) as exc_info:
                await workflow.decide(second_request_id, _approve())

            assert exc_info.value.conflict_kind == "reservation"
            assert exc_info.value.conflict_id == str(first_reservation_id)
            request = await ApprovalRequest.objects.by_id(second_request_id).first(session)
            reservation = await Reservation.objects.by_id(second_reservation_id).first(session)
            assert request is not None
            assert reservation is not None
            assert request.status == RequestStatus.REJECTED.value
            assert request.rejection_reason == AUTO_REJECT_REASON
            assert request.decided_at is not None
            assert reservation.status == ReservationStatus.CANCELLED.value
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_foreign_processor_is_forbidden_for_both_actions() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            submitted = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            request_id = submitted.request.id

            with pytest.raises(ForbiddenError):
                await workflow.decide(request_id, _approve(processor_id=99))
            with pytest.raises(ForbiddenError):
                await workflow.decide(request_id, _reject(processor_id=99))

            request = await ApprovalRequest.objects.by_id(request_id).first(session)
            assert request is not None
            assert request.status == RequestStatus.PENDING.value
            assert request.decided_at is None
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_rejection_cancels_reservation_and_is_not_repeatable() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            submitted = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            request_id = submitted.request.id
            reservation_id = submitted.reservation.id

            rejected = await workflow.decide(request_id, _reject())
            assert rejected.request.status == RequestStatus.REJECTED.value
            assert rejected.request.rejection_reason == "court closed"
            assert rejected.reservation.status == ReservationStatus.CANCELLED.value

            with pytest.raises(NotFoundError):
                await workflow.decide(request_id, _reject())
            with pytest.raises(NotFoundError):
                await workflow.decide(request_id, _approve())

            request = await ApprovalRequest.objects.by_id(request_id).first(session)
            reservation = await Reservation.objects.by_id(reservation_id).first(session)
            assert request is not None
            assert reservation is not None
            assert request.status == RequestStatus.REJECTED.value
            assert reservation.status == ReservationStatus.CANCELLED.value

            # The cancelled window is free again.
            again = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            assert again.request.status == RequestStatus.PENDING.value
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_approved_request_cannot_be_decided_again() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            submitted = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            request_id = submitted.request.id
            await workflow.decide(request_id, _approve())
            reservation_id = submitted.reservation.id

            with pytest.raises(NotFoundError):
                await workflow.decide(request_id, _reject())

            reservation = await Reservation.objects.by_id(reservation_id).first(session)
            assert reservation is not None
            assert reservation.status == ReservationStatus.CONFIRMED.value
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_deciding_unknown_request_is_not_found() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            with pytest.raises(NotFoundError):
                await _workflow(session).decide(uuid4(), _approve())
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_failed_second_write_leaves_no_partial_pair(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    original_write = ReservationStore._write
    calls = {"count": 0}

    async def _failing_write(self: ReservationStore, row: object) -> None:
        calls["count"] += 1
        if calls["count"] == 2:
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        await original_write(self, row)

    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            monkeypatch.setattr(ReservationStore, "_write", _failing_write)

            with pytest.raises(InternalFault):
                await workflow.submit(_submit(time(9, 0), time(10, 0)))

            monkeypatch.setattr(ReservationStore, "_write", original_write)
            assert calls["count"] == 2
            assert await _count_reservations(session) == 0
            assert await ApprovalRequest.objects.all().all(session) == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_failed_decision_write_keeps_request_pending(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    original_write = ReservationStore._write

    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            submitted = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            request_id = submitted.request.id
            reservation_id = submitted.reservation.id
            calls = {"count": 0}

            async def _failing_write(self: ReservationStore, row: object) -> None:
                calls["count"] += 1
                if calls["count"] == 2:
                    raise OperationalError("UPDATE", {}, Exception("database is locked"))
                await original_write(self, row)

            monkeypatch.setattr(ReservationStore, "_write", _failing_write)
            with pytest.raises(TransientStoreFault) as exc_info:
                await workflow.decide(request_id, _approve())
            monkeypatch.setattr(ReservationStore, "_write", original_write)

            assert exc_info.value.retryable is True
            request = await ApprovalRequest.objects.by_id(request_id).first(session)
            reservation = await Reservation.objects.by_id(reservation_id).first(session)
            assert request is not None
            assert reservation is not None
            assert request.status == RequestStatus.PENDING.value
            assert reservation.status == ReservationStatus.PENDING.value
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_blocked_window_rejects_submission_on_its_weekday_only() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            session.add(
                BlockedWindow(
                    resource_id=COURT_ID,
                    weekday="saturday",
                    start_time=time(12, 0),
                    end_time=time(14, 0),
                ),
            )
            await session.commit()
            workflow = _workflow(session)

            with pytest.raises(SlotConflict) as exc_info:
                await workflow.submit(_submit(time(13, 0), time(15, 0)))
            assert exc_info.value.conflict_kind == "blocked_window"

            sunday = await workflow.submit(
                _submit(time(13, 0), time(15, 0), booking_date=date(2024, 6, 2)),
            )
            assert sunday.request.status == RequestStatus.PENDING.value
            assert await _count_reservations(session) == 1
    finally:
        await engine.dispose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("duration", "amount"),
    [("0", "10.00"), ("-1", "10.00"), ("1", "-0.01")],
)
async def test_invalid_quantities_are_rejected(duration: str, amount: str) -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            with pytest.raises(BookingValidationError):
                await _workflow(session).submit(
                    _submit(time(9, 0), time(10, 0), duration=duration, amount=amount),
                )
            assert await _count_reservations(session) == 0
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_free_booking_is_allowed() -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            result = await _workflow(session).submit(
                _submit(time(9, 0), time(10, 0), amount="0"),
            )
            assert result.reservation.amount == Decimal("0")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_past_dates_are_rejected_unless_allowed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(request_workflow.settings, "allow_past_dates", False)
    yesterday = date.today() - timedelta(days=2)

    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            with pytest.raises(BookingValidationError):
                await workflow.submit(_submit(time(9, 0), time(10, 0), booking_date=yesterday))

            upcoming = await workflow.submit(
                _submit(time(9, 0), time(10, 0), booking_date=date.today() + timedelta(days=2)),
            )
            assert upcoming.request.status == RequestStatus.PENDING.value
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_processor_is_resolved_per_resource_at_submission() -> None:
    resolver = SettingsProcessorResolver(
        Settings(_env_file=None, default_processor_id=3, processor_overrides={COURT_ID: 11}),
    )

    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = RequestWorkflow(
                session,
                schedule_facts=DatabaseScheduleFacts(),
                processor_resolver=resolver,
            )
            court = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            assert court.request.processor_id == 11

            other = await workflow.submit(
                SubmitCommand(
                    resource_id=COURT_ID + 1,
                    requester_id=7,
                    booking_date=SATURDAY,
                    window=TimeWindow(time(9, 0), time(10, 0)),
                    duration_hours=Decimal("1"),
                    amount=Decimal("25.00"),
                ),
            )
            assert other.request.processor_id == 3

            with pytest.raises(ForbiddenError):
                await workflow.decide(court.request.id, _approve(processor_id=3))
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_unverifiable_availability_is_retryable_and_never_grants(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    engine = await _make_engine()
    try:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            workflow = _workflow(session)
            submitted = await workflow.submit(_submit(time(9, 0), time(10, 0)))
            request_id = submitted.request.id

            async def _boom(self: ReservationStore, **kwargs: object) -> list[Reservation]:
                del self, kwargs
                raise OperationalError("SELECT", {}, Exception("disk I/O error"))

            monkeypatch.setattr(ReservationStore, "find_overlapping_reservations", _boom)

            with pytest.raises(TransientStoreFault):
                await workflow.submit(_submit(time(11, 0), time(12, 0)))
            with pytest.raises(TransientStoreFault):
                await workflow.decide(request_id, _approve())

            request = await ApprovalRequest.objects.by_id(request_id).first(session)
            assert request is not None
            assert request.status == RequestStatus.PENDING.value
            assert await _count_reservations(session) == 1
    finally:
        await engine.dispose()
