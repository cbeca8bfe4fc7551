"""Event to workflow matching."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .conditions import evaluate
from .contracts import Workflow
from .store import WorkflowStore

logger = logging.getLogger(__name__)


class TriggerDispatcher:
    """Find the workflows an incoming event should start."""

    def __init__(self, store: WorkflowStore) -> None:
        self._store = store

    def matches(self, workflow: Workflow, event_name: str, data: Mapping[str, Any]) -> bool:
        return (
            workflow.is_active
            and workflow.trigger.event == event_name
            and evaluate(workflow.trigger.conditions, data)
        )

    def match(self, event_name: str, data: Optional[Mapping[str, Any]] = None) -> list[Workflow]:
        """Return every active workflow whose trigger accepts the event."""
        data = data or {}
        matched = [wf for wf in self._store.list() if self.matches(wf, event_name, data)]
        logger.debug(f"Event {event_name} matched workflows {[wf.id for wf in matched]}")
        return matched
