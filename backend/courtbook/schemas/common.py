"""Common reusable schema primitives."""

from __future__ import annotations

from sqlmodel import SQLModel

# Identifiers are stored as 32-bit integers and used as advisory lock keys.
MAX_ID = 2**31 - 1


class OkResponse(SQLModel):
    """Standard success response payload."""

    ok: bool = True
