"""In-process registry of workflow definitions."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from .clock import AsyncioClock, BaseClock
from .contracts import Workflow, WorkflowDefinition
from .exceptions import WorkflowDefinitionError
from .graph import StepGraph

logger = logging.getLogger(__name__)

DefinitionLike = Union[WorkflowDefinition, Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class StoreEntry:
    workflow: Workflow
    graph: StepGraph


def coerce_definition(definition: DefinitionLike) -> WorkflowDefinition:
    """Validate ``definition`` into a :class:`WorkflowDefinition`.

    Engine-owned fields (``id``, ``createdAt``, ``updatedAt``) present in a
    mapping are ignored.
    """
    if isinstance(definition, Workflow):
        return definition.definition()
    if isinstance(definition, WorkflowDefinition):
        return definition
    try:
        return WorkflowDefinition.model_validate(definition)
    except ValidationError as exc:
        raise WorkflowDefinitionError(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ) from exc


def generate_workflow_id() -> str:
    return f"wf_{uuid.uuid4().hex[:12]}"


class WorkflowStore:
    """Hold registered workflows keyed by id.

    Writers build a new mapping and swap it in under a lock; readers use
    whichever mapping is current without locking.
    """

    def __init__(self, clock: Optional[BaseClock] = None) -> None:
        self._clock = clock or AsyncioClock()
        self._entries: Dict[str, StoreEntry] = {}
        self._lock = threading.Lock()

    def _swap(self, workflow_id: str, entry: Optional[StoreEntry]) -> Optional[StoreEntry]:
        with self._lock:
            entries = dict(self._entries)
            previous = entries.pop(workflow_id, None)
            if entry is not None:
                entries[workflow_id] = entry
            self._entries = entries
        return previous

    def register(self, definition: DefinitionLike) -> str:
        """Validate and store a new workflow, returning its generated id.

        Raises:
            WorkflowDefinitionError: on dangling step references, duplicate
                step ids or a malformed definition.
        """
        definition = coerce_definition(definition)
        graph = StepGraph.compile(definition)
        now = self._clock.now()
        workflow = Workflow(
            **definition.model_dump(),
            id=generate_workflow_id(),
            created_at=now,
            updated_at=now,
        )
        self._swap(workflow.id, StoreEntry(workflow=workflow, graph=graph))
        logger.info(f"Registered workflow {workflow.id} ({workflow.name})")
        return workflow.id

    def update(self, workflow_id: str, definition: DefinitionLike) -> Optional[Workflow]:
        """Replace an existing workflow wholesale, keeping id and createdAt."""
        definition = coerce_definition(definition)
        graph = StepGraph.compile(definition)
        with self._lock:
            current = self._entries.get(workflow_id)
            if current is None:
                return None
            workflow = Workflow(
                **definition.model_dump(),
                id=workflow_id,
                created_at=current.workflow.created_at,
                updated_at=self._clock.now(),
            )
            entries = dict(self._entries)
            entries[workflow_id] = StoreEntry(workflow=workflow, graph=graph)
            self._entries = entries
        logger.info(f"Updated workflow {workflow_id}")
        return workflow

    def restore(self, workflow: Workflow) -> None:
        """Insert an already registered workflow, e.g. loaded from storage."""
        graph = StepGraph.compile(workflow)
        self._swap(workflow.id, StoreEntry(workflow=workflow, graph=graph))

    def unregister(self, workflow_id: str) -> bool:
        removed = self._swap(workflow_id, None) is not None
        if removed:
            logger.info(f"Unregistered workflow {workflow_id}")
        return removed

    def get(self, workflow_id: str) -> Optional[Workflow]:
        entry = self._entries.get(workflow_id)
        return entry.workflow if entry else None

    def entry(self, workflow_id: str) -> Optional[StoreEntry]:
        return self._entries.get(workflow_id)

    def list(self) -> list[Workflow]:
        return [entry.workflow for entry in self._entries.values()]

    def __len__(self) -> int:
        return len(self._entries)
