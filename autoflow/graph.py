"""Index-resolved step graph for a registered workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .contracts import Step, Workflow, WorkflowDefinition
from .exceptions import WorkflowDefinitionError


def validate_definition(definition: WorkflowDefinition) -> list[str]:
    """Validate the step graph structure. Returns list of errors."""
    errors = []
    seen: set[str] = set()
    for step in definition.steps:
        if step.id in seen:
            errors.append(f"Duplicate step id '{step.id}'")
        seen.add(step.id)

    for step in definition.steps:
        if step.next_step_id is not None and step.next_step_id not in seen:
            errors.append(
                f"Step '{step.id}' nextStepId '{step.next_step_id}' not found"
            )
        if step.on_error_step_id is not None and step.on_error_step_id not in seen:
            errors.append(
                f"Step '{step.id}' onErrorStepId '{step.on_error_step_id}' not found"
            )
    return errors


@dataclass(frozen=True, slots=True)
class StepGraph:
    """Steps stored in order with successors resolved to indices.

    The first step is the entry point. A ``None`` successor means the
    execution ends after that step.
    """

    steps: tuple[Step, ...]
    next_index: tuple[Optional[int], ...]
    error_index: tuple[Optional[int], ...]

    @classmethod
    def compile(cls, workflow: WorkflowDefinition | Workflow) -> StepGraph:
        errors = validate_definition(workflow)
        if errors:
            raise WorkflowDefinitionError(errors)
        positions = {step.id: i for i, step in enumerate(workflow.steps)}
        return cls(
            steps=tuple(workflow.steps),
            next_index=tuple(
                positions[s.next_step_id] if s.next_step_id is not None else None
                for s in workflow.steps
            ),
            error_index=tuple(
                positions[s.on_error_step_id] if s.on_error_step_id is not None else None
                for s in workflow.steps
            ),
        )

    @property
    def entry(self) -> Optional[int]:
        return 0 if self.steps else None

    def successor(self, index: int, on_error: bool = False) -> Optional[int]:
        return self.error_index[index] if on_error else self.next_index[index]
