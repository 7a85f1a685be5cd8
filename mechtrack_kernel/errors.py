"""
Kernel error taxonomy.

Every error is raised synchronously to the immediate caller. Nothing here is
retried inside the kernel; retries belong to the I/O-performing collaborators.
"""

from typing import Optional


class KernelError(Exception):
    """Base class for all kernel errors."""
    pass


class EmptyCandidatePoolError(KernelError):
    """No operators were supplied, so no recommendation is available."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"No candidate operators available for task {task_id}")


class RiskGateError(KernelError):
    """A gated step was started without acknowledging its risk briefing."""

    def __init__(self, task_id: str, step_id: str, risk_tier: str):
        self.task_id = task_id
        self.step_id = step_id
        self.risk_tier = risk_tier
        super().__init__(
            f"Step {step_id} of task {task_id} is {risk_tier} risk: "
            f"the risk assessment must be acknowledged before starting."
        )


class SequenceViolationError(KernelError):
    """A step transition was attempted out of order. Always a caller bug."""

    def __init__(self, task_id: str, step_number: int, reason: str):
        self.task_id = task_id
        self.step_number = step_number
        self.reason = reason
        super().__init__(f"Task {task_id} step {step_number}: {reason}")


class ConcurrentModificationError(KernelError):
    """Task-level state changed underneath the caller. Refetch and retry once."""
    pass


class AssignmentConflictError(ConcurrentModificationError):
    """Another operator already holds the assignment for this task."""

    def __init__(self, task_id: str, current_operator_id: Optional[str], status: str):
        self.task_id = task_id
        self.current_operator_id = current_operator_id
        self.status = status
        super().__init__(
            f"Task {task_id} cannot be assigned: status is {status}"
            + (f", held by {current_operator_id}" if current_operator_id else "")
        )


class MissingProofError(KernelError):
    """`complete` was called without a usable proof."""
    pass


class AlreadyInitializedError(KernelError):
    """The task's workflow already has step executions."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Workflow for task {task_id} is already initialized")


class WorkflowNotInitializedError(KernelError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"No workflow has been initialized for task {task_id}")


class UnknownComponentError(KernelError, KeyError):
    def __init__(self, component_id: str):
        self.component_id = component_id
        super().__init__(f"Unknown component type: {component_id}")
