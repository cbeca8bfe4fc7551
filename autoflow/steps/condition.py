from __future__ import annotations

from ..conditions import coerce_conditions, evaluate
from ..contracts import Step, StepType
from ..exceptions import StepFailed
from .base import Route, StepContext, StepExecutor, StepOutcome


class ConditionExecutor(StepExecutor):
    """Branch on ``config.conditions`` (or a single ``config.condition``).

    True follows ``nextStepId``. False follows ``onErrorStepId`` when there is
    one; otherwise the step is skipped and the execution ends successfully.
    """

    step_type = StepType.CONDITION

    async def execute(self, step: Step, context: StepContext) -> StepOutcome:
        raw = step.config.get("conditions", step.config.get("condition"))
        if raw is None:
            raise StepFailed(f"Condition step '{step.id}' has no condition configured")
        try:
            conditions = coerce_conditions(raw)
        except ValueError as e:
            raise StepFailed(f"Invalid condition in step '{step.id}': {e}") from e

        if evaluate(conditions, context.payload()):
            return StepOutcome.success({"result": True})
        if step.on_error_step_id is not None:
            return StepOutcome.success({"result": False}, route=Route.ERROR)
        return StepOutcome.skip({"result": False})
