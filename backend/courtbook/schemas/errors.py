"""Structured error payload schema used by API responses."""

from __future__ import annotations

from pydantic import Field
from sqlmodel import SQLModel


class ErrorResponse(SQLModel):
    """Error payload returned for every failed booking call."""

    detail: str | dict[str, object] | list[object] = Field(
        description="Human-readable message, or field errors for invalid payloads.",
        examples=["The court is already booked or unavailable for that time window."],
    )
    code: str | None = Field(
        default=None,
        description="Stable machine-readable error kind.",
        examples=["slot_conflict", "validation_error", "forbidden", "not_found"],
    )
    retryable: bool | None = Field(
        default=None,
        description="Whether the whole call may be retried unchanged.",
    )
    conflict_kind: str | None = Field(
        default=None,
        description="For slot conflicts, what holds the window: reservation, pending_request or blocked_window.",
    )
    conflict_id: str | None = Field(
        default=None,
        description="For slot conflicts, the id of the blocking reservation, request or window.",
    )
    request_id: str | None = Field(
        default=None,
        description="Request correlation identifier injected by middleware.",
    )
