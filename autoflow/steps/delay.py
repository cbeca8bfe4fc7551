from __future__ import annotations

from ..clock import BaseClock
from ..constants import DEFAULT_DELAY_MS
from ..contracts import Step, StepType
from ..exceptions import StepFailed
from .base import StepContext, StepExecutor, StepOutcome


class DelayExecutor(StepExecutor):
    """Suspend the execution for ``config.delayMs`` milliseconds."""

    step_type = StepType.DELAY

    def __init__(self, clock: BaseClock, default_delay_ms: int = DEFAULT_DELAY_MS) -> None:
        self._clock = clock
        self._default_delay_ms = default_delay_ms

    async def execute(self, step: Step, context: StepContext) -> StepOutcome:
        delay_ms = step.config.get("delayMs", self._default_delay_ms)
        if isinstance(delay_ms, bool) or not isinstance(delay_ms, (int, float)):
            raise StepFailed(f"Delay step '{step.id}' has non-numeric delayMs: {delay_ms!r}")
        if delay_ms < 0:
            raise StepFailed(f"Delay step '{step.id}' has negative delayMs: {delay_ms}")
        await self._clock.sleep(delay_ms / 1000, context.cancel_token)
        return StepOutcome.success({"delayMs": delay_ms})
