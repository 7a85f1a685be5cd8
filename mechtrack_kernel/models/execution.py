"""Step execution: runtime state of a StepDefinition bound to a Task."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mechtrack_kernel.models.catalog import StepDefinition


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class ProofKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class Proof(BaseModel):
    """
    Evidence that a step was performed.

    For text proofs `content` is the text itself; for image/video proofs it is
    an opaque storage reference passed through unmodified.
    """

    model_config = ConfigDict(frozen=True)

    kind: ProofKind
    content: str
    captured_at: Optional[datetime] = None


class StepExecution(BaseModel):
    """One StepExecution exists per StepDefinition per Task."""

    task_id: str
    step_number: int = Field(ge=1)
    definition: StepDefinition
    status: StepStatus = StepStatus.PENDING
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    proof: Optional[Proof] = None
    acknowledged_risk: bool = False
    version: int = 0                        # Bumped on every persisted transition

    @property
    def step_id(self) -> str:
        return self.definition.id

    @property
    def key(self) -> tuple:
        return (self.task_id, self.step_number)


class WorkflowComplete(BaseModel):
    """Emitted once, after the last step of a task is completed."""

    task_id: str
    component_id: Optional[str] = None
    total_steps: int
    started_at: Optional[datetime] = None
    completed_at: datetime
    proofs: List[Proof] = []


class StepCompletion(BaseModel):
    """Result of `complete`: the updated execution plus the optional task-level event."""

    execution: StepExecution
    workflow_complete: Optional[WorkflowComplete] = None


class WorkflowProgress(BaseModel):
    task_id: str
    completed: int
    total: int
    current_step_number: Optional[int] = None

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return round(self.completed / self.total * 100, 1)

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.completed == self.total


class StepTransition(BaseModel):
    """Append-only audit entry for one state change of a StepExecution."""

    task_id: str
    step_number: int
    event: str                              # "initialized" | "started" | "completed"
    from_status: Optional[StepStatus] = None
    to_status: StepStatus
    occurred_at: datetime
    detail: dict = {}
    signature: str = ""
    prior_record_hash: Optional[str] = None
