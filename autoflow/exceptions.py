"""Exception hierarchy for autoflow."""

from __future__ import annotations

from typing import Iterable


class AutoflowError(Exception):
    """Base class for all autoflow errors."""


class WorkflowDefinitionError(AutoflowError, ValueError):
    """Raised when a workflow definition is structurally invalid.

    Definition errors are always detected at registration time, never while
    an execution is running.
    """

    def __init__(self, problems: Iterable[str]) -> None:
        self.problems = list(problems)
        super().__init__(f"Invalid workflow: {'; '.join(self.problems)}")


class WorkflowFileError(AutoflowError):
    """Raised when a workflow file cannot be read or parsed."""


class StepFailed(AutoflowError):
    """Raised by step executors to report a step failure with a reason."""


class ExecutionCancelled(AutoflowError):
    """Raised at a safe point once an execution has been asked to stop."""


class IllegalTransitionError(AutoflowError, ValueError):
    pass
