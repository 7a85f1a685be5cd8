"""Component Catalog models: immutable reference data for step procedures."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComponentCategory(str, Enum):
    SHAFT = "shaft"
    GEAR = "gear"
    BRACKET = "bracket"
    BUSHING = "bushing"
    COUPLING = "coupling"


class SkillRequirement(str, Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class StepDefinition(BaseModel):
    """One procedural step of a component's standard sequence."""

    model_config = ConfigDict(frozen=True)

    id: str                                 # e.g. "gear_001_step_2"
    step_number: int = Field(ge=1)          # 1-based, contiguous per component
    title: str
    description: str = ""
    instructions: List[str] = []
    safety_notes: List[str] = []
    estimated_minutes: int = Field(gt=0, default=30)
    risk_tier: RiskTier = RiskTier.LOW
    required_tools: List[str] = []
    quality_checks: List[str] = []
    common_errors: List[str] = []           # Authored risk factors
    preventive_tips: List[str] = []         # Authored preventive measures
    category: Optional[str] = None          # Component category, drives risk bumps
    risk_adjustment: Optional[float] = None  # Explicit override of the category bump


class ComponentType(BaseModel):
    """A reusable template for a category of physical work."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: ComponentCategory
    description: str
    steps: List[StepDefinition]
    estimated_hours: float = Field(gt=0)
    skill_requirement: SkillRequirement

    @model_validator(mode="after")
    def _check_step_sequence(self) -> "ComponentType":
        numbers = [s.step_number for s in self.steps]
        if not numbers:
            raise ValueError(f"component {self.id} defines no steps")
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(
                f"component {self.id} steps must be numbered 1..{len(numbers)} "
                f"in order, got {numbers}"
            )
        return self

    @property
    def total_step_minutes(self) -> int:
        return sum(s.estimated_minutes for s in self.steps)
