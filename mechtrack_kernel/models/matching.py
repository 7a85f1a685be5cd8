"""Match candidate: one entry of a Task Matcher ranking."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ScoreBreakdown(BaseModel):
    """The four weighted components, each in [0, 100] before weighting."""

    skill: float = Field(ge=0, le=100)
    availability: float = Field(ge=0, le=100)
    performance: float = Field(ge=0, le=100)
    complexity: float = Field(ge=0, le=100)


class MatchCandidate(BaseModel):
    operator_id: str
    operator_name: str
    score: int = Field(ge=0, le=100)
    reasons: List[str]
    breakdown: ScoreBreakdown
    performance_score: int
    estimated_hours: Optional[float] = None  # None when no required skill matched
