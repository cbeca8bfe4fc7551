"""Base interface for step executors."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional

from ..cancellation import CancellationToken
from ..contracts import Step, StepStatus, StepType
from ..utils.paths import resolve_path


class Route(str, Enum):
    """Which successor the engine follows after a step."""

    NEXT = "next"
    ERROR = "error"
    STOP = "stop"


@dataclass(frozen=True)
class StepOutcome:
    status: StepStatus
    output: Any = None
    error: Optional[str] = None
    route: Route = Route.NEXT

    @classmethod
    def success(cls, output: Any = None, route: Route = Route.NEXT) -> StepOutcome:
        return cls(status=StepStatus.SUCCESS, output=output, route=route)

    @classmethod
    def failure(cls, error: str, output: Any = None) -> StepOutcome:
        return cls(status=StepStatus.FAILURE, output=output, error=error, route=Route.ERROR)

    @classmethod
    def skip(cls, output: Any = None) -> StepOutcome:
        return cls(status=StepStatus.SKIPPED, output=output, route=Route.STOP)


@dataclass
class StepContext:
    """What a step can see of its execution.

    Trigger data is exposed at the top level and under ``trigger``; outputs
    of earlier steps are under ``steps.<step id>``. The ``trigger`` and
    ``steps`` keys are reserved: an event field with either name is only
    reachable through ``trigger.<name>``. The engine hands every step its
    own copies, so changes made by a step never reach the execution.
    """

    execution_id: str
    workflow_id: str
    trigger_data: Dict[str, Any]
    step_outputs: Dict[str, Any] = field(default_factory=dict)
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    def payload(self) -> dict[str, Any]:
        return {
            **self.trigger_data,
            "trigger": self.trigger_data,
            "steps": dict(self.step_outputs),
        }

    def resolve(self, path: str) -> Any:
        return resolve_path(self.payload(), path)


class StepExecutor(metaclass=abc.ABCMeta):
    """Runs one kind of step.

    Implementations either return a :class:`StepOutcome` or raise
    :class:`~autoflow.exceptions.StepFailed`; any other exception is also
    recorded as a step failure by the engine.
    """

    step_type: ClassVar[StepType]

    @abc.abstractmethod
    async def execute(self, step: Step, context: StepContext) -> StepOutcome:
        raise NotImplementedError
