"""Approval request model: the owner's decision record for one reservation."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlmodel import Field

from courtbook.core.time import utcnow
from courtbook.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class RequestStatus(str, Enum):
    """Approval request states; approved and rejected are terminal."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRequest(QueryModel, table=True):
    """Decision record layered 1:1 on top of a reservation."""

    __tablename__ = "approval_requests"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    reservation_id: UUID = Field(foreign_key="reservations.id", unique=True)
    resource_id: int = Field(index=True)
    requester_id: int = Field(index=True)
    processor_id: int = Field(index=True)
    message: str = Field(default="")
    rejection_reason: str | None = None
    decided_at: datetime | None = None
    status: str = Field(default=RequestStatus.PENDING.value, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
