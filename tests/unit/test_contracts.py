from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from autoflow.contracts import (
    Execution,
    ExecutionStatus,
    Step,
    StepResult,
    StepStatus,
    StepType,
    Workflow,
    WorkflowDefinition,
)


def _definition_payload():
    return {
        "name": "Candidate onboarding",
        "trigger": {"event": "candidate.created"},
        "steps": [
            {
                "id": "notify",
                "type": "notification",
                "config": {"message": "Hi"},
                "nextStepId": "hook",
            },
            {"id": "hook", "type": "webhook", "config": {"url": "https://example.com"}},
        ],
    }


def test_definition_accepts_camel_case_wire_format():
    definition = WorkflowDefinition.model_validate(_definition_payload())
    assert definition.is_active is True
    assert definition.description == ""
    assert definition.trigger.conditions == []
    assert definition.steps[0].next_step_id == "hook"
    assert definition.steps[1].type is StepType.WEBHOOK


def test_to_wire_uses_camel_case():
    definition = WorkflowDefinition.model_validate(_definition_payload())
    wire = definition.to_wire()
    assert wire["isActive"] is True
    assert wire["steps"][0]["nextStepId"] == "hook"
    assert wire["steps"][1]["onErrorStepId"] is None


def test_unknown_step_type_is_rejected():
    payload = _definition_payload()
    payload["steps"][0]["type"] = "teleport"
    with pytest.raises(ValidationError):
        WorkflowDefinition.model_validate(payload)


def test_workflow_and_step_are_immutable():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    workflow = Workflow(
        **WorkflowDefinition.model_validate(_definition_payload()).model_dump(),
        id="wf_1",
        created_at=now,
        updated_at=now,
    )
    with pytest.raises(ValidationError):
        workflow.name = "renamed"
    with pytest.raises(ValidationError):
        workflow.steps[0].next_step_id = None

    definition = workflow.definition()
    assert type(definition) is WorkflowDefinition
    assert definition.name == "Candidate onboarding"


def test_execution_status_terminality():
    assert not ExecutionStatus.PENDING.is_terminal
    assert not ExecutionStatus.RUNNING.is_terminal
    assert ExecutionStatus.COMPLETED.is_terminal
    assert ExecutionStatus.FAILED.is_terminal
    assert ExecutionStatus.CANCELLED.is_terminal


def test_step_outputs_keeps_latest_output_per_step():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    execution = Execution(id="exec_1", workflow_id="wf_1")
    for output in ({"n": 1}, {"n": 2}):
        execution.step_results.append(
            StepResult(
                step_id="loop",
                status=StepStatus.SUCCESS,
                output=output,
                started_at=now,
                completed_at=now,
            )
        )
    assert execution.step_outputs() == {"loop": {"n": 2}}
    assert execution.status is ExecutionStatus.PENDING
    assert execution.to_wire()["stepResults"][0]["stepId"] == "loop"


def test_step_defaults():
    step = Step(id="s", type=StepType.DELAY)
    assert step.config == {}
    assert step.name == ""
    assert step.next_step_id is None
