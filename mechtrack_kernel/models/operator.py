"""Operator: a read snapshot of a worker from the Operator Directory."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class OperatorStatus(str, Enum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"
    BUSY = "busy"


# Default policies for directory records that omit scores.
DEFAULT_SKILL_SCORE = 70
DEFAULT_PERFORMANCE_SCORE = 75


class Operator(BaseModel):
    """
    A worker who can be matched to and execute tasks.

    The kernel never mutates operator records; it only reads a snapshot
    per matching run.
    """

    id: str
    name: str
    skill_score: int = Field(ge=0, le=100, default=DEFAULT_SKILL_SCORE)
    performance_score: int = Field(ge=0, le=100, default=DEFAULT_PERFORMANCE_SCORE)
    status: OperatorStatus = OperatorStatus.OFFLINE
    current_task: Optional[str] = None      # Active task id, None when free
    skills: List[str] = []                  # Free text, e.g. ["Welding", "CNC"]

    @field_validator("skill_score", "performance_score", mode="before")
    @classmethod
    def _default_missing_score(cls, value, info):
        if value is None:
            if info.field_name == "skill_score":
                return DEFAULT_SKILL_SCORE
            return DEFAULT_PERFORMANCE_SCORE
        return value

    @field_validator("skills", mode="before")
    @classmethod
    def _split_skill_text(cls, value):
        # Directory records often store skills as one comma-separated string
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [s.strip() for s in value if s and s.strip()]

    @property
    def is_available(self) -> bool:
        """True when the operator has no currently active task."""
        return not self.current_task
