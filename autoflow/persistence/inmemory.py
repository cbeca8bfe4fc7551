"""In-memory implementation of the workflow repository."""

from __future__ import annotations

from typing import Dict, Optional

from ..contracts import Execution, Workflow
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow state in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._executions: Dict[str, Execution] = {}

    async def save_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow

    async def delete_workflow(self, workflow_id: str) -> None:
        self._workflows.pop(workflow_id, None)

    async def list_workflows(self) -> list[Workflow]:
        return list(self._workflows.values())

    async def save_execution(self, execution: Execution) -> None:
        # copy so later in-place updates by the run loop are not visible here
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    async def list_executions(self, workflow_id: Optional[str] = None) -> list[Execution]:
        return [
            e.model_copy(deep=True)
            for e in self._executions.values()
            if workflow_id is None or e.workflow_id == workflow_id
        ]
