"""Core data contracts for autoflow workflows and executions."""

from __future__ import annotations

import json
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class AutoflowModel(BaseModel):
    """Base model: snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-compatible camelCase representation."""
        return self.model_dump(mode="json", by_alias=True)


class StepType(str, Enum):
    ACTION = "action"
    CONDITION = "condition"
    DELAY = "delay"
    WEBHOOK = "webhook"
    NOTIFICATION = "notification"


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)


class ConditionOperator(str, Enum):
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ConditionOperator"]:
        if isinstance(value, str):
            normalized = " ".join(value.lower().split())
            return cls._value2member_map_.get(normalized) or _OPERATOR_SYMBOLS.get(
                normalized
            )
        return None


_OPERATOR_SYMBOLS: Dict[str, ConditionOperator] = {
    "==": ConditionOperator.EQ,
    "===": ConditionOperator.EQ,
    "!=": ConditionOperator.NE,
    "!==": ConditionOperator.NE,
    ">": ConditionOperator.GT,
    ">=": ConditionOperator.GTE,
    "<": ConditionOperator.LT,
    "<=": ConditionOperator.LTE,
    "not contains": ConditionOperator.NOT_CONTAINS,
    "not in": ConditionOperator.NOT_IN,
}

_CONDITION_PATTERN = re.compile(
    r"^\s*(?P<field>[A-Za-z0-9_.\-]+)\s*"
    r"(?P<op>===|!==|==|!=|>=|<=|>|<|\s(?:not\s+contains|contains|not\s+in|in)\s)"
    r"\s*(?P<value>.+?)\s*$"
)


def _parse_literal(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        pass
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1]
    return raw


def parse_condition_string(expression: str) -> dict[str, Any]:
    """Parse ``'contact.status == "active"'`` into condition fields.

    The right-hand side is read as a JSON literal, falling back to a bare
    string when it is not valid JSON.
    """
    match = _CONDITION_PATTERN.match(expression)
    if match is None:
        raise ValueError(f"Unrecognised condition expression: {expression!r}")
    return {
        "field": match.group("field"),
        "operator": match.group("op").strip(),
        "value": _parse_literal(match.group("value")),
    }


class Condition(AutoflowModel):
    """A single ``field <operator> value`` predicate."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: ConditionOperator = ConditionOperator.EQ
    value: Any = None

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return parse_condition_string(data)
        if isinstance(data, dict) and "op" in data and "operator" not in data:
            data = {**data, "operator": data["op"]}
            data.pop("op")
        return data


class Trigger(AutoflowModel):
    """Event name plus the conditions that must hold for a workflow to start."""

    event: str
    conditions: List[Condition] = Field(default_factory=list)


class Step(AutoflowModel):
    """One node of a workflow's step graph."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: StepType
    name: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)
    next_step_id: Optional[str] = None
    on_error_step_id: Optional[str] = None


class WorkflowDefinition(AutoflowModel):
    """Caller-supplied part of a workflow; id and timestamps are engine-owned."""

    name: str
    description: str = ""
    trigger: Trigger
    steps: List[Step] = Field(default_factory=list)
    is_active: bool = True


class Workflow(WorkflowDefinition):
    """A registered workflow. Replaced wholesale on edit, never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    updated_at: datetime

    def definition(self) -> WorkflowDefinition:
        return WorkflowDefinition.model_validate(
            self.model_dump(include=set(WorkflowDefinition.model_fields))
        )


class StepResult(AutoflowModel):
    """Outcome of one executed step. Never modified once recorded."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    status: StepStatus
    output: Any = None
    error: Optional[str] = None
    started_at: datetime
    completed_at: datetime


class Execution(AutoflowModel):
    """One run of a workflow with its own state and step history."""

    id: str
    workflow_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    current_step_id: Optional[str] = None
    step_results: List[StepResult] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def step_outputs(self) -> dict[str, Any]:
        """Latest output per step id, in execution order."""
        outputs: dict[str, Any] = {}
        for result in self.step_results:
            outputs[result.step_id] = result.output
        return outputs
