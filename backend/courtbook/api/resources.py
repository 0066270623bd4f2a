"""Per-court read endpoints: recurring blocked windows and window availability."""

from __future__ import annotations

from datetime import date, time
from typing import TYPE_CHECKING

from fastapi import APIRouter, Path, Query

from courtbook.api.deps import SCHEDULE_FACTS_DEP, SESSION_DEP
from courtbook.schemas.common import MAX_ID
from courtbook.schemas.resources import AvailabilityRead, BlockedWindowRead
from courtbook.services.availability import Conflict, check_availability
from courtbook.services.time_windows import TimeWindow

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from courtbook.services.schedule_facts import ScheduleFacts

router = APIRouter(prefix="/resources", tags=["resources"])
RESOURCE_ID_PATH = Path(gt=0, le=MAX_ID)
DATE_QUERY = Query(alias="date")
START_QUERY = Query()
END_QUERY = Query()


@router.get("/{resource_id}/blocked-windows", response_model=list[BlockedWindowRead])
async def list_blocked_windows(
    resource_id: int = RESOURCE_ID_PATH,
    session: AsyncSession = SESSION_DEP,
    schedule_facts: ScheduleFacts = SCHEDULE_FACTS_DEP,
) -> list[BlockedWindowRead]:
    """Recurring weekly windows during which the court cannot be booked."""
    windows = await schedule_facts.blocked_windows(session, resource_id=resource_id)
    return [BlockedWindowRead.model_validate(w, from_attributes=True) for w in windows]


@router.get("/{resource_id}/availability", response_model=AvailabilityRead)
async def get_availability(
    resource_id: int = RESOURCE_ID_PATH,
    booking_date: date = DATE_QUERY,
    start: time = START_QUERY,
    end: time = END_QUERY,
    session: AsyncSession = SESSION_DEP,
    schedule_facts: ScheduleFacts = SCHEDULE_FACTS_DEP,
) -> AvailabilityRead:
    """Check a window without booking it; the answer may change at any moment."""
    result = await check_availability(
        session,
        resource_id=resource_id,
        booking_date=booking_date,
        window=TimeWindow(start, end),
        schedule_facts=schedule_facts,
    )
    if isinstance(result, Conflict):
        return AvailabilityRead(
            available=False,
            conflict_kind=result.kind.value,
            conflict_id=result.entity_id,
        )
    return AvailabilityRead(available=True)
