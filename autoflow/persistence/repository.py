"""Repository abstraction for workflow and execution persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import Execution, Workflow


class WorkflowRepository(Protocol):
    """Protocol for persistence backends wired into the engine."""

    async def save_workflow(self, workflow: Workflow) -> None:
        """Insert or replace a workflow definition."""

    async def delete_workflow(self, workflow_id: str) -> None:
        """Remove a workflow definition. Executions are kept."""

    async def list_workflows(self) -> list[Workflow]:
        """Return all persisted workflows."""

    async def save_execution(self, execution: Execution) -> None:
        """Insert or replace the current state of an execution."""

    async def get_execution(self, execution_id: str) -> Optional[Execution]:
        """Retrieve an execution by id."""

    async def list_executions(self, workflow_id: Optional[str] = None) -> list[Execution]:
        """Return persisted executions, optionally for one workflow."""
