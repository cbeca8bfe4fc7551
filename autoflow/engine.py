"""Workflow engine: registration, triggering and the step execution loop."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from .cancellation import CancellationToken
from .clock import AsyncioClock, BaseClock
from .config import AutoflowConfig
from .constants import STEP_LIMIT_EXCEEDED
from .contracts import (
    Execution,
    ExecutionStatus,
    Step,
    StepResult,
    StepStatus,
    StepType,
    Workflow,
)
from .delivery import HttpWebhookDelivery, NotificationSink, WebhookDelivery
from .dispatch import TriggerDispatcher
from .events import (
    EXECUTION_CANCELLED,
    EXECUTION_COMPLETED,
    EXECUTION_CREATED,
    EXECUTION_FAILED,
    EXECUTION_STARTED,
    STEP_COMPLETED,
    STEP_FAILED,
    STEP_STARTED,
    WORKFLOW_REGISTERED,
    WORKFLOW_UNREGISTERED,
    WORKFLOW_UPDATED,
    EventBus,
    EventListener,
    WorkflowEvent,
)
from .exceptions import ExecutionCancelled, StepFailed
from .graph import StepGraph
from .persistence import WorkflowRepository
from .steps import ActionHandler, StepContext, StepExecutor, StepOutcome, build_executors
from .steps.base import Route
from .store import DefinitionLike, WorkflowStore
from .templates import get_template
from .tracker import ExecutionTracker

logger = logging.getLogger(__name__)


class WorkflowEngine:
    """Own a workflow store and execution tracker and run executions.

    One engine is constructed per process by the host and passed to the
    tool and event-ingestion layers. Host capabilities (actions, webhook
    delivery, notification sink, clock, persistence) are injected here.

    Args:
        actions: Mapping of action name to handler ``(params, context)``.
        webhook_delivery: ``async (url, payload) -> DeliveryResult``. Defaults
            to :class:`HttpWebhookDelivery`.
        notification_sink: ``(message) -> None``; without one, notification
            steps fail.
        clock: Time source for timestamps and delays.
        repository: Optional persistence hook.
        config: Engine limits and defaults.
        executors: Override the executor used per step type.
    """

    def __init__(
        self,
        *,
        actions: Optional[Mapping[str, ActionHandler]] = None,
        webhook_delivery: Optional[WebhookDelivery] = None,
        notification_sink: Optional[NotificationSink] = None,
        clock: Optional[BaseClock] = None,
        repository: Optional[WorkflowRepository] = None,
        config: Optional[AutoflowConfig] = None,
        executors: Optional[Mapping[StepType, StepExecutor]] = None,
    ) -> None:
        self.config = config or AutoflowConfig()
        self.clock = clock or AsyncioClock()
        self.events = EventBus()
        self.store = WorkflowStore(clock=self.clock)
        self.tracker = ExecutionTracker(
            clock=self.clock,
            repository=repository,
            max_steps=self.config.engine.max_steps,
        )
        self.dispatcher = TriggerDispatcher(self.store)
        self._repository = repository

        if webhook_delivery is None:
            webhook_delivery = HttpWebhookDelivery(timeout=self.config.webhook.timeout_seconds)
        self._executors: Dict[StepType, StepExecutor] = build_executors(
            self.clock,
            actions=actions,
            webhook_delivery=webhook_delivery,
            notification_sink=notification_sink,
            config=self.config,
        )
        if executors:
            self._executors.update(executors)

        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Events
    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Receive :class:`WorkflowEvent` notifications. Returns an unsubscriber."""
        return self.events.subscribe(listener)

    async def _emit(
        self,
        event_type: str,
        workflow_id: str,
        execution_id: Optional[str] = None,
        data: Any = None,
    ) -> None:
        await self.events.emit(
            WorkflowEvent(
                type=event_type,
                workflow_id=workflow_id,
                execution_id=execution_id,
                data=data,
                timestamp=self.clock.now(),
            )
        )

    # ------------------------------------------------------------------
    # Workflow management
    async def register_workflow(self, definition: DefinitionLike) -> str:
        """Register a workflow definition and return its generated id.

        Raises:
            WorkflowDefinitionError: if the step graph references unknown
                steps or the definition is malformed.
        """
        workflow_id = self.store.register(definition)
        workflow = self.store.get(workflow_id)
        if self._repository is not None:
            await self._repository.save_workflow(workflow)
        await self._emit(WORKFLOW_REGISTERED, workflow_id, data={"name": workflow.name})
        return workflow_id

    async def register_template(self, template_id: str) -> str:
        """Register a copy of a built-in template under a new id."""
        template = get_template(template_id)
        if template is None:
            raise ValueError(f"Unknown workflow template: {template_id}")
        return await self.register_workflow(template)

    async def update_workflow(
        self, workflow_id: str, definition: DefinitionLike
    ) -> Optional[Workflow]:
        """Replace a workflow definition. Running executions keep the old graph."""
        workflow = self.store.update(workflow_id, definition)
        if workflow is None:
            return None
        if self._repository is not None:
            await self._repository.save_workflow(workflow)
        await self._emit(WORKFLOW_UPDATED, workflow_id)
        return workflow

    async def unregister_workflow(self, workflow_id: str) -> bool:
        removed = self.store.unregister(workflow_id)
        if removed:
            if self._repository is not None:
                await self._repository.delete_workflow(workflow_id)
            await self._emit(WORKFLOW_UNREGISTERED, workflow_id)
        return removed

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return self.store.get(workflow_id)

    def list_workflows(self) -> list[Workflow]:
        return self.store.list()

    # ------------------------------------------------------------------
    # Executions
    def get_execution(self, execution_id: str) -> Optional[Execution]:
        return self.tracker.get(execution_id)

    def list_executions(self, workflow_id: Optional[str] = None) -> list[Execution]:
        return self.tracker.list(workflow_id)

    async def start_workflow(
        self, workflow_id: str, data: Optional[Mapping[str, Any]] = None
    ) -> Optional[Execution]:
        """Create an execution and run it in the background.

        Returns the still ``pending`` execution, or ``None`` when the
        workflow is unknown or inactive.
        """
        entry = self.store.entry(workflow_id)
        if entry is None or not entry.workflow.is_active:
            logger.info(f"Workflow {workflow_id} not found or inactive; not triggered")
            return None

        execution = await self.tracker.create(workflow_id, data)
        token = CancellationToken()
        self._tokens[execution.id] = token
        await self._emit(EXECUTION_CREATED, workflow_id, execution.id)

        task = asyncio.create_task(
            self._run(execution, entry.graph, token), name=f"autoflow-{execution.id}"
        )
        self._tasks[execution.id] = task
        task.add_done_callback(lambda _, eid=execution.id: self._tasks.pop(eid, None))
        return execution

    async def wait_for_execution(self, execution_id: str) -> Optional[Execution]:
        """Wait until an execution reaches a terminal state and return it."""
        task = self._tasks.get(execution_id)
        if task is not None:
            await asyncio.shield(task)
        return self.tracker.get(execution_id)

    async def trigger_workflow(
        self, workflow_id: str, data: Optional[Mapping[str, Any]] = None
    ) -> Optional[Execution]:
        """Run a workflow to completion.

        Returns the terminal execution, or ``None`` when the workflow is
        unknown or inactive. Trigger conditions are not consulted.
        """
        execution = await self.start_workflow(workflow_id, data)
        if execution is None:
            return None
        return await self.wait_for_execution(execution.id)

    async def dispatch_event(
        self, event_name: str, data: Optional[Mapping[str, Any]] = None
    ) -> list[Execution]:
        """Start one execution per matching workflow and wait for all of them."""
        data = data or {}
        matched = self.dispatcher.match(event_name, data)
        logger.info(f"Event {event_name} matched {len(matched)} workflow(s)")

        started = []
        for workflow in matched:
            execution = await self.start_workflow(workflow.id, data)
            if execution is not None:
                started.append(execution)

        finished = await asyncio.gather(
            *(self.wait_for_execution(execution.id) for execution in started)
        )
        return [execution for execution in finished if execution is not None]

    def cancel_execution(self, execution_id: str, reason: str = "cancelled") -> bool:
        """Ask an execution to stop at its next safe point.

        Returns ``False`` for unknown or already finished executions.
        """
        execution = self.tracker.get(execution_id)
        token = self._tokens.get(execution_id)
        if execution is None or execution.is_terminal or token is None:
            return False
        token.cancel(reason)
        logger.info(f"Cancellation requested for execution {execution_id}")
        return True

    # ------------------------------------------------------------------
    # Persistence
    async def load(self) -> None:
        """Restore workflows and execution history from the repository.

        Executions that were still in flight when saved cannot be resumed
        and are marked failed.
        """
        if self._repository is None:
            return
        for workflow in await self._repository.list_workflows():
            self.store.restore(workflow)
        for execution in await self._repository.list_executions():
            self.tracker.restore(execution)
            if execution.is_terminal:
                continue
            if execution.status is ExecutionStatus.PENDING:
                await self.tracker.cancel(execution)
            else:
                await self.tracker.fail(execution, "execution interrupted by restart")
        logger.info(
            f"Loaded {len(self.store)} workflow(s) and "
            f"{len(self.tracker.list())} execution(s) from repository"
        )

    # ------------------------------------------------------------------
    # Run loop
    async def _run(
        self, execution: Execution, graph: StepGraph, token: CancellationToken
    ) -> None:
        try:
            await self._drive(execution, graph, token)
        except ExecutionCancelled:
            await self.tracker.cancel(execution)
            await self._emit(EXECUTION_CANCELLED, execution.workflow_id, execution.id)
        except Exception as e:
            logger.exception(f"Execution {execution.id} aborted")
            if not execution.is_terminal:
                await self._fail(execution, f"{type(e).__name__}: {e}")
        finally:
            self._tokens.pop(execution.id, None)

    async def _fail(self, execution: Execution, error: str) -> None:
        await self.tracker.fail(execution, error)
        await self._emit(
            EXECUTION_FAILED, execution.workflow_id, execution.id, data={"error": error}
        )

    async def _drive(
        self, execution: Execution, graph: StepGraph, token: CancellationToken
    ) -> None:
        token.raise_if_cancelled()
        await self.tracker.start(execution)
        await self._emit(EXECUTION_STARTED, execution.workflow_id, execution.id)

        index = graph.entry
        while index is not None:
            token.raise_if_cancelled()
            if not self.tracker.within_step_limit(execution):
                await self._fail(execution, STEP_LIMIT_EXCEEDED)
                return

            step = graph.steps[index]
            await self.tracker.begin_step(execution, step.id)
            result, outcome = await self._execute_step(step, execution, token)
            await self.tracker.record(execution, result)
            await self._emit(
                STEP_FAILED if result.status is StepStatus.FAILURE else STEP_COMPLETED,
                execution.workflow_id,
                execution.id,
                data=result,
            )

            if outcome.route is Route.STOP:
                break
            if result.status is StepStatus.FAILURE:
                index = graph.successor(index, on_error=True)
                if index is None:
                    await self._fail(execution, result.error or f"Step {step.id} failed")
                    return
                continue
            index = graph.successor(index, on_error=outcome.route is Route.ERROR)

        token.raise_if_cancelled()
        await self.tracker.complete(execution)
        await self._emit(EXECUTION_COMPLETED, execution.workflow_id, execution.id)

    async def _execute_step(
        self, step: Step, execution: Execution, token: CancellationToken
    ) -> tuple[StepResult, StepOutcome]:
        context = StepContext(
            execution_id=execution.id,
            workflow_id=execution.workflow_id,
            trigger_data=copy.deepcopy(execution.trigger_data),
            step_outputs=copy.deepcopy(execution.step_outputs()),
            cancel_token=token,
        )
        started_at = self.clock.now()
        await self._emit(
            STEP_STARTED, execution.workflow_id, execution.id, data={"stepId": step.id}
        )

        executor = self._executors.get(step.type)
        if executor is None:
            outcome = StepOutcome.failure(f"No executor for step type '{step.type.value}'")
        else:
            try:
                outcome = await executor.execute(step, context)
            except ExecutionCancelled:
                raise
            except StepFailed as e:
                outcome = StepOutcome.failure(str(e))
            except Exception as e:
                logger.warning(
                    f"Step {step.id} of execution {execution.id} raised {type(e).__name__}: {e}"
                )
                outcome = StepOutcome.failure(str(e) or type(e).__name__)

        result = StepResult(
            step_id=step.id,
            status=outcome.status,
            output=outcome.output,
            error=outcome.error,
            started_at=started_at,
            completed_at=self.clock.now(),
        )
        return result, outcome
