"""Owner lookup deciding which principal may approve requests for a court."""

from __future__ import annotations

from typing import Protocol

from courtbook.core.config import Settings, settings


class ProcessorResolver(Protocol):
    """Resolve the approving principal for a resource."""

    async def resolve_processor(self, resource_id: int) -> int: ...


class SettingsProcessorResolver:
    """Resolver backed by `DEFAULT_PROCESSOR_ID` and `PROCESSOR_OVERRIDES`."""

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings

    async def resolve_processor(self, resource_id: int) -> int:
        return self._config.processor_for(resource_id)
