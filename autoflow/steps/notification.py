from __future__ import annotations

import inspect
from typing import Optional

from ..contracts import Step, StepType
from ..delivery import NotificationSink
from ..exceptions import StepFailed
from ..utils.paths import render_template
from .base import StepContext, StepExecutor, StepOutcome


class NotificationExecutor(StepExecutor):
    """Render ``config.message`` and hand it to the notification sink.

    Content never fails the step; only a missing or raising sink does.
    """

    step_type = StepType.NOTIFICATION

    def __init__(self, sink: Optional[NotificationSink]) -> None:
        self._sink = sink

    async def execute(self, step: Step, context: StepContext) -> StepOutcome:
        template = step.config.get("message", "")
        if not isinstance(template, str):
            template = str(template)
        message = render_template(template, context.payload())

        if self._sink is None:
            raise StepFailed("Notification sink unavailable: none configured")
        try:
            result = self._sink(message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            raise StepFailed(f"Notification sink unavailable: {e}") from e
        return StepOutcome.success({"message": message, "sent": True})
