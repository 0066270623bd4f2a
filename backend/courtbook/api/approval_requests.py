"""Approval request endpoints: decide, list, read, and remove."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from fastapi import APIRouter, Query, status

from courtbook.api.deps import STORE_DEP, WORKFLOW_DEP
from courtbook.core.errors import NotFoundError
from courtbook.models.approval_requests import RequestStatus
from courtbook.schemas.approval_requests import (
    ApprovalRequestRead,
    DecisionPayload,
    DecisionRead,
)
from courtbook.schemas.common import OkResponse
from courtbook.schemas.errors import ErrorResponse
from courtbook.services.request_workflow import DecideCommand, DecisionAction

if TYPE_CHECKING:
    from courtbook.services.request_workflow import RequestWorkflow
    from courtbook.services.reservation_store import ReservationStore

router = APIRouter(prefix="/requests", tags=["requests"])
STATUS_QUERY = Query(default=None, alias="status")


@router.get("", response_model=list[ApprovalRequestRead])
async def list_requests(
    request_status: RequestStatus | None = STATUS_QUERY,
    store: ReservationStore = STORE_DEP,
) -> list[ApprovalRequestRead]:
    """List approval requests, newest first, optionally filtered by status."""
    requests = await store.list_requests(status=request_status)
    return [ApprovalRequestRead.model_validate(r, from_attributes=True) for r in requests]


@router.get(
    "/{request_id}",
    response_model=ApprovalRequestRead,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def get_request(
    request_id: UUID,
    store: ReservationStore = STORE_DEP,
) -> ApprovalRequestRead:
    request = await store.get_request(request_id)
    if request is None:
        raise NotFoundError("Approval request not found.")
    return ApprovalRequestRead.model_validate(request, from_attributes=True)


@router.put(
    "/{request_id}/decision",
    response_model=DecisionRead,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_409_CONFLICT: {"model": ErrorResponse},
    },
)
async def decide_request(
    request_id: UUID,
    payload: DecisionPayload,
    workflow: RequestWorkflow = WORKFLOW_DEP,
) -> DecisionRead:
    """Approve or reject a pending request as its assigned processor.

    A 409 means the slot was taken before approval; the request has been
    rejected and its reservation cancelled.
    """
    result = await workflow.decide(
        request_id,
        DecideCommand(
            action=DecisionAction(payload.action),
            processor_id=payload.processor_id,
            reason=payload.reason,
        ),
    )
    return DecisionRead(
        request_id=result.request.id,
        status=result.request.status,
        reservation_status=result.reservation.status,
    )


@router.delete(
    "/{request_id}",
    response_model=OkResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def delete_request(
    request_id: UUID,
    store: ReservationStore = STORE_DEP,
) -> OkResponse:
    """Administrative removal of an approval request."""
    async with store.transaction():
        deleted = await store.delete_request(request_id)
        if not deleted:
            raise NotFoundError("Approval request not found.")
    return OkResponse()
