"""Step executors and the default executor set."""

from __future__ import annotations

from typing import Mapping, Optional

from ..clock import BaseClock
from ..config import AutoflowConfig
from ..contracts import StepType
from ..delivery import NotificationSink, WebhookDelivery
from .action import ActionExecutor, ActionHandler
from .base import Route, StepContext, StepExecutor, StepOutcome
from .condition import ConditionExecutor
from .delay import DelayExecutor
from .notification import NotificationExecutor
from .webhook import WebhookExecutor


def build_executors(
    clock: BaseClock,
    actions: Optional[Mapping[str, ActionHandler]] = None,
    webhook_delivery: Optional[WebhookDelivery] = None,
    notification_sink: Optional[NotificationSink] = None,
    config: Optional[AutoflowConfig] = None,
) -> dict[StepType, StepExecutor]:
    """Factory for one executor per step type wired to host capabilities."""

    config = config or AutoflowConfig()
    executors: list[StepExecutor] = [
        ActionExecutor(actions, clock),
        ConditionExecutor(),
        DelayExecutor(clock, config.engine.default_delay_ms),
        WebhookExecutor(webhook_delivery, clock, config.webhook.default_retries),
        NotificationExecutor(notification_sink),
    ]
    return {executor.step_type: executor for executor in executors}


__all__ = [
    "ActionExecutor",
    "ActionHandler",
    "ConditionExecutor",
    "DelayExecutor",
    "NotificationExecutor",
    "Route",
    "StepContext",
    "StepExecutor",
    "StepOutcome",
    "WebhookExecutor",
    "build_executors",
]
