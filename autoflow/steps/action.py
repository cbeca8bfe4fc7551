from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from ..clock import BaseClock
from ..contracts import Step, StepType
from ..exceptions import StepFailed
from ..utils.paths import render_value
from ..utils.retry import call_with_retries, parse_retry_config
from .base import StepContext, StepExecutor, StepOutcome

logger = logging.getLogger(__name__)

ActionHandler = Callable[[dict, StepContext], Union[Any, Awaitable[Any]]]


class ActionExecutor(StepExecutor):
    """Invoke a host-supplied operation by name.

    Config: ``action`` (required), ``params`` (placeholders rendered from
    context), ``retries`` and ``retryDelayMs``.
    """

    step_type = StepType.ACTION

    def __init__(self, actions: Optional[Mapping[str, ActionHandler]], clock: BaseClock) -> None:
        self._actions = dict(actions or {})
        self._clock = clock

    async def execute(self, step: Step, context: StepContext) -> StepOutcome:
        name = step.config.get("action")
        if not isinstance(name, str) or not name:
            raise StepFailed(f"Action step '{step.id}' has no 'action' configured")
        handler = self._actions.get(name)
        if handler is None:
            raise StepFailed(f"Unknown action: {name}")

        params = render_value(step.config.get("params") or {}, context.payload())
        retries, delay_ms = parse_retry_config(step.config)

        async def invoke() -> Any:
            result = handler(params, context)
            if inspect.isawaitable(result):
                result = await result
            return result

        output = await call_with_retries(
            invoke,
            retries=retries,
            clock=self._clock,
            token=context.cancel_token,
            delay_ms=delay_ms,
            label=f"Action {name}",
        )
        logger.debug(f"Action {name} finished for execution {context.execution_id}")
        return StepOutcome.success(output)
