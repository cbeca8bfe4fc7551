"""Lifecycle events emitted by the workflow engine."""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Union

from .contracts import AutoflowModel

logger = logging.getLogger(__name__)

WORKFLOW_REGISTERED = "workflow:registered"
WORKFLOW_UPDATED = "workflow:updated"
WORKFLOW_UNREGISTERED = "workflow:unregistered"
EXECUTION_CREATED = "execution:created"
EXECUTION_STARTED = "execution:started"
EXECUTION_COMPLETED = "execution:completed"
EXECUTION_FAILED = "execution:failed"
EXECUTION_CANCELLED = "execution:cancelled"
STEP_STARTED = "step:started"
STEP_COMPLETED = "step:completed"
STEP_FAILED = "step:failed"


class WorkflowEvent(AutoflowModel):
    """Notification about a workflow or execution state change."""

    type: str
    workflow_id: str
    execution_id: Optional[str] = None
    data: Any = None
    timestamp: datetime


EventListener = Callable[[WorkflowEvent], Union[None, Awaitable[None]]]


class EventBus:
    """Fan out events to subscribed listeners.

    Listener failures are logged and never propagate into the engine.
    """

    def __init__(self) -> None:
        self._listeners: List[EventListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register ``listener`` and return a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def emit(self, event: WorkflowEvent) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Event listener failed for {event.type}")
