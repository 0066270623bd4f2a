"""Reusable FastAPI dependencies wiring services to a request-scoped session.

External collaborators (schedule facts, processor lookup) are provided through
dependencies so deployments and tests can override them with
`app.dependency_overrides` instead of patching module state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends

from courtbook.db.session import get_session
from courtbook.services.processors import ProcessorResolver, SettingsProcessorResolver
from courtbook.services.request_workflow import RequestWorkflow
from courtbook.services.reservation_store import ReservationStore
from courtbook.services.schedule_facts import DatabaseScheduleFacts, ScheduleFacts

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

SESSION_DEP = Depends(get_session)


def get_schedule_facts() -> ScheduleFacts:
    """Return the blocked-window provider."""
    return DatabaseScheduleFacts()


def get_processor_resolver() -> ProcessorResolver:
    """Return the owner lookup used to route approvals."""
    return SettingsProcessorResolver()


SCHEDULE_FACTS_DEP = Depends(get_schedule_facts)
PROCESSOR_RESOLVER_DEP = Depends(get_processor_resolver)


def get_store(session: AsyncSession = SESSION_DEP) -> ReservationStore:
    """Return a store bound to the request session."""
    return ReservationStore(session)


def get_request_workflow(
    session: AsyncSession = SESSION_DEP,
    schedule_facts: ScheduleFacts = SCHEDULE_FACTS_DEP,
    processor_resolver: ProcessorResolver = PROCESSOR_RESOLVER_DEP,
) -> RequestWorkflow:
    """Return the workflow engine bound to the request session."""
    return RequestWorkflow(
        session,
        schedule_facts=schedule_facts,
        processor_resolver=processor_resolver,
    )


STORE_DEP = Depends(get_store)
WORKFLOW_DEP = Depends(get_request_workflow)
