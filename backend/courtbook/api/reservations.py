"""Reservation endpoints: submit a booking request, list, read, and remove."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, status

from courtbook.api.deps import STORE_DEP, WORKFLOW_DEP
from courtbook.core.errors import NotFoundError
from courtbook.schemas.common import OkResponse
from courtbook.schemas.errors import ErrorResponse
from courtbook.schemas.reservations import (
    ReservationRead,
    ReservationSubmit,
    ReservationSubmitted,
)
from courtbook.services.request_workflow import SubmitCommand
from courtbook.services.time_windows import TimeWindow

if TYPE_CHECKING:
    from courtbook.services.request_workflow import RequestWorkflow
    from courtbook.services.reservation_store import ReservationStore

router = APIRouter(prefix="/reservations", tags=["reservations"])


@router.post(
    "",
    response_model=ReservationSubmitted,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def submit_reservation(
    payload: ReservationSubmit,
    workflow: RequestWorkflow = WORKFLOW_DEP,
) -> ReservationSubmitted:
    """Request a booking; the court owner must approve it before it is confirmed."""
    result = await workflow.submit(
        SubmitCommand(
            resource_id=payload.resource_id,
            requester_id=payload.requester_id,
            booking_date=payload.date,
            window=TimeWindow(payload.start, payload.end),
            duration_hours=payload.duration,
            amount=payload.amount,
            team_id=payload.team_id,
            message=payload.message or "",
        ),
    )
    return ReservationSubmitted(
        reservation_id=result.reservation.id,
        request_id=result.request.id,
        status=result.request.status,
    )


@router.get("", response_model=list[ReservationRead])
async def list_reservations(store: ReservationStore = STORE_DEP) -> list[ReservationRead]:
    """List every reservation, newest first."""
    reservations = await store.list_reservations()
    return [ReservationRead.model_validate(r, from_attributes=True) for r in reservations]


@router.get(
    "/{reservation_id}",
    response_model=ReservationRead,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def get_reservation(
    reservation_id: UUID,
    store: ReservationStore = STORE_DEP,
) -> ReservationRead:
    reservation = await store.get_reservation(reservation_id)
    if reservation is None:
        raise NotFoundError("Reservation not found.")
    return ReservationRead.model_validate(reservation, from_attributes=True)


@router.delete(
    "/{reservation_id}",
    response_model=OkResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def delete_reservation(
    reservation_id: UUID,
    store: ReservationStore = STORE_DEP,
) -> OkResponse:
    """Administrative removal of a reservation and its approval request."""
    async with store.transaction():
        deleted = await store.delete_reservation(reservation_id)
        if not deleted:
            raise NotFoundError("Reservation not found.")
    return OkResponse()
