from __future__ import annotations

import logging
from typing import Optional

from ..clock import BaseClock
from ..contracts import Step, StepType
from ..delivery import DeliveryResult, WebhookDelivery
from ..exceptions import StepFailed
from ..utils.retry import call_with_retries, parse_retry_config
from .base import StepContext, StepExecutor, StepOutcome

logger = logging.getLogger(__name__)


class WebhookExecutor(StepExecutor):
    """POST the execution context to ``config.url``.

    A transport error or a non-2xx status fails the step. ``retries`` and
    ``retryDelayMs`` in the config repeat the call before giving up.
    """

    step_type = StepType.WEBHOOK

    def __init__(
        self,
        deliver: Optional[WebhookDelivery],
        clock: BaseClock,
        default_retries: int = 0,
    ) -> None:
        self._deliver = deliver
        self._clock = clock
        self._default_retries = default_retries

    async def execute(self, step: Step, context: StepContext) -> StepOutcome:
        url = step.config.get("url")
        if not isinstance(url, str) or not url:
            raise StepFailed(f"Webhook step '{step.id}' has no 'url' configured")
        if self._deliver is None:
            raise StepFailed("No webhook delivery configured")

        deliver = self._deliver
        payload = context.payload()
        retries, delay_ms = parse_retry_config(step.config, self._default_retries)

        async def attempt() -> DeliveryResult:
            result = await deliver(url, payload)
            if not result.ok:
                raise StepFailed(
                    result.error or f"Webhook {url} returned HTTP {result.status_code}"
                )
            return result

        result = await call_with_retries(
            attempt,
            retries=retries,
            clock=self._clock,
            token=context.cancel_token,
            delay_ms=delay_ms,
            label=f"Webhook {url}",
        )
        return StepOutcome.success(
            {"url": url, "statusCode": result.status_code, "response": result.body}
        )
