"""Task and Assignment: the unit of work and the Matcher's output."""

from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class TaskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    OPEN = "open"                   # Awaiting assignment
    ASSIGNED = "assigned"           # Operator committed, work not started
    IN_PROGRESS = "in-progress"
    DELAYED = "delayed"
    COMPLETED = "completed"         # Terminal
    CANCELLED = "cancelled"         # Terminal


TERMINAL_TASK_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED})


class Task(BaseModel):
    """A unit of work completed by exactly one operator."""

    id: str
    title: str
    priority: TaskPriority
    description: Optional[str] = None
    due_date: Optional[date] = None
    estimated_hours: float = Field(gt=0, default=4.0)   # Default effort when unestimated
    required_skills: List[str] = []
    status: TaskStatus = TaskStatus.OPEN
    assigned_operator_id: Optional[str] = None
    component_id: Optional[str] = None      # Bound ComponentType, if any

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES


class Assignment(BaseModel):
    """An assignment intent. Persisting it onto the Task is the caller's job."""

    task_id: str
    operator_id: str
    score: int = Field(ge=0, le=100)
    assigned_at: datetime
