"""Read-only access to recurring blocked windows published by the schedule service."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from sqlmodel import col

from courtbook.models.blocked_windows import BlockedWindow

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from courtbook.services.time_windows import Weekday


class ScheduleFacts(Protocol):
    """Source of standing unavailability rules for a court."""

    async def blocked_windows(
        self,
        session: AsyncSession,
        *,
        resource_id: int,
        weekday: Weekday | None = None,
    ) -> list[BlockedWindow]: ...


class DatabaseScheduleFacts:
    """Schedule facts read from the shared `blocked_windows` table."""

    async def blocked_windows(
        self,
        session: AsyncSession,
        *,
        resource_id: int,
        weekday: Weekday | None = None,
    ) -> list[BlockedWindow]:
        queryset = BlockedWindow.objects.filter_by(resource_id=resource_id)
        if weekday is not None:
            queryset = queryset.filter_by(weekday=weekday.value)
        return await queryset.order_by(
            col(BlockedWindow.weekday),
            col(BlockedWindow.start_time),
        ).all(session)
