"""Schemas for approval request decisions and reads."""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from courtbook.schemas.common import MAX_ID

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class DecisionPayload(SQLModel):
    """Payload for approving or rejecting a pending request."""

    action: Literal["approve", "reject"]
    processor_id: int = Field(gt=0, le=MAX_ID)
    reason: str | None = Field(default=None, max_length=2000)


class DecisionRead(SQLModel):
    """Outcome of a decision on a request and its reservation."""

    request_id: UUID
    status: str
    reservation_status: str


class ApprovalRequestRead(SQLModel):
    """Approval request payload returned by read endpoints."""

    id: UUID
    reservation_id: UUID
    resource_id: int
    requester_id: int
    processor_id: int
    message: str
    rejection_reason: str | None = None
    decided_at: datetime | None = None
    status: str
    created_at: datetime
    updated_at: datetime
