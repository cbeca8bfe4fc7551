"""Autoflow: event-driven workflow automation engine."""

from .clock import AsyncioClock, BaseClock, VirtualClock
from .config import AutoflowConfig, load_config
from .contracts import (
    Condition,
    Execution,
    ExecutionStatus,
    Step,
    StepResult,
    StepStatus,
    StepType,
    Trigger,
    Workflow,
    WorkflowDefinition,
)
from .delivery import DeliveryResult, HttpWebhookDelivery, LogNotificationSink
from .engine import WorkflowEngine
from .exceptions import (
    AutoflowError,
    ExecutionCancelled,
    IllegalTransitionError,
    StepFailed,
    WorkflowDefinitionError,
)
from .persistence import get_repository

__version__ = "0.1.0"
__all__ = [
    "AsyncioClock",
    "AutoflowConfig",
    "AutoflowError",
    "BaseClock",
    "Condition",
    "DeliveryResult",
    "Execution",
    "ExecutionCancelled",
    "ExecutionStatus",
    "HttpWebhookDelivery",
    "IllegalTransitionError",
    "LogNotificationSink",
    "Step",
    "StepFailed",
    "StepResult",
    "StepStatus",
    "StepType",
    "Trigger",
    "VirtualClock",
    "Workflow",
    "WorkflowDefinition",
    "WorkflowDefinitionError",
    "WorkflowEngine",
    "get_repository",
    "load_config",
]
