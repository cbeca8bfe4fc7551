"""Execution records and their state machine."""

from __future__ import annotations

import copy
import logging
import uuid
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .clock import AsyncioClock, BaseClock
from .constants import MAX_STEPS_PER_EXECUTION
from .contracts import Execution, ExecutionStatus, StepResult
from .exceptions import IllegalTransitionError

if TYPE_CHECKING:
    from .persistence import WorkflowRepository

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[ExecutionStatus, set[ExecutionStatus]] = {
    ExecutionStatus.PENDING: {ExecutionStatus.RUNNING, ExecutionStatus.CANCELLED},
    ExecutionStatus.RUNNING: {
        ExecutionStatus.COMPLETED,
        ExecutionStatus.FAILED,
        ExecutionStatus.CANCELLED,
    },
    ExecutionStatus.COMPLETED: set(),
    ExecutionStatus.FAILED: set(),
    ExecutionStatus.CANCELLED: set(),
}


def generate_execution_id() -> str:
    return f"exec_{uuid.uuid4().hex[:12]}"


def snapshot_trigger_data(data: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise TypeError(f"Trigger data must be a mapping, got {type(data).__name__}")
    return copy.deepcopy(dict(data))


class ExecutionTracker:
    """Create executions and apply every status change to them.

    Each execution is only ever mutated by the run loop that owns it; the
    tracker enforces legal transitions, keeps ``stepResults`` append-only and
    forwards every change to the optional persistence hook.
    """

    def __init__(
        self,
        clock: Optional[BaseClock] = None,
        repository: "WorkflowRepository | None" = None,
        max_steps: int = MAX_STEPS_PER_EXECUTION,
    ) -> None:
        self._clock = clock or AsyncioClock()
        self._repository = repository
        self._executions: Dict[str, Execution] = {}
        self.max_steps = max_steps

    # ------------------------------------------------------------------
    async def _persist(self, execution: Execution) -> None:
        if self._repository is not None:
            await self._repository.save_execution(execution)

    def _transition(self, execution: Execution, to: ExecutionStatus) -> None:
        allowed = ALLOWED_TRANSITIONS.get(execution.status, set())
        if to not in allowed:
            raise IllegalTransitionError(
                f"Illegal transition for {execution.id}: {execution.status.value} -> {to.value}"
            )
        execution.status = to

    # ------------------------------------------------------------------
    async def create(
        self, workflow_id: str, trigger_data: Optional[Mapping[str, Any]] = None
    ) -> Execution:
        """Create a ``pending`` execution holding a snapshot of the trigger data."""
        execution = Execution(
            id=generate_execution_id(),
            workflow_id=workflow_id,
            trigger_data=snapshot_trigger_data(trigger_data),
        )
        self._executions[execution.id] = execution
        await self._persist(execution)
        logger.debug(f"Created execution {execution.id} for workflow {workflow_id}")
        return execution

    def restore(self, execution: Execution) -> None:
        self._executions[execution.id] = execution

    async def start(self, execution: Execution) -> None:
        self._transition(execution, ExecutionStatus.RUNNING)
        if execution.started_at is None:
            execution.started_at = self._clock.now()
        await self._persist(execution)

    async def begin_step(self, execution: Execution, step_id: str) -> None:
        if execution.status is not ExecutionStatus.RUNNING:
            raise IllegalTransitionError(
                f"Cannot dispatch step {step_id} on {execution.status.value} execution {execution.id}"
            )
        execution.current_step_id = step_id
        await self._persist(execution)

    def within_step_limit(self, execution: Execution) -> bool:
        return len(execution.step_results) < self.max_steps

    async def record(self, execution: Execution, result: StepResult) -> None:
        """Append a step result. Recorded results are never rewritten."""
        if execution.is_terminal:
            raise IllegalTransitionError(
                f"Cannot record step {result.step_id} on terminal execution {execution.id}"
            )
        # stored outputs are detached from the objects the step returned
        result = result.model_copy(update={"output": copy.deepcopy(result.output)})
        execution.step_results.append(result)
        await self._persist(execution)

    async def _finish(
        self, execution: Execution, to: ExecutionStatus, error: Optional[str] = None
    ) -> None:
        self._transition(execution, to)
        execution.completed_at = self._clock.now()
        execution.current_step_id = None
        if to is ExecutionStatus.FAILED:
            execution.error = error
        await self._persist(execution)
        logger.info(f"Execution {execution.id} {to.value}" + (f": {error}" if error else ""))

    async def complete(self, execution: Execution) -> None:
        await self._finish(execution, ExecutionStatus.COMPLETED)

    async def fail(self, execution: Execution, error: str) -> None:
        await self._finish(execution, ExecutionStatus.FAILED, error)

    async def cancel(self, execution: Execution) -> None:
        await self._finish(execution, ExecutionStatus.CANCELLED)

    # ------------------------------------------------------------------
    def get(self, execution_id: str) -> Optional[Execution]:
        return self._executions.get(execution_id)

    def list(self, workflow_id: Optional[str] = None) -> list[Execution]:
        executions = list(self._executions.values())
        if workflow_id is not None:
            return [e for e in executions if e.workflow_id == workflow_id]
        return executions
