"""Kernel configuration: every scoring and gating constant, declared once."""

from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, model_validator

from mechtrack_kernel.models.catalog import RiskTier
from mechtrack_kernel.models.task import TaskPriority


class MatcherConfig(BaseModel):
    """Configuration for the Task Matcher."""

    skill_weight: float = Field(ge=0, default=0.4)
    availability_weight: float = Field(ge=0, default=0.3)
    performance_weight: float = Field(ge=0, default=0.2)
    complexity_weight: float = Field(ge=0, default=0.1)
    available_score: float = Field(ge=0, le=100, default=100)
    busy_score: float = Field(ge=0, le=100, default=30)
    complexity_targets: Dict[TaskPriority, int] = {
        TaskPriority.HIGH: 90,
        TaskPriority.MEDIUM: 75,
        TaskPriority.LOW: 60,
    }
    complexity_tolerance: int = 20
    complexity_fit_score: float = Field(ge=0, le=100, default=90)
    complexity_mismatch_score: float = Field(ge=0, le=100, default=70)
    reason_threshold: int = 85

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "MatcherConfig":
        total = (
            self.skill_weight
            + self.availability_weight
            + self.performance_weight
            + self.complexity_weight
        )
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"matcher weights must sum to 1.0, got {total}")
        return self


class RiskConfig(BaseModel):
    """Configuration for the Risk Assessor and the risk gate."""

    tier_baselines: Dict[RiskTier, float] = {
        RiskTier.LOW: 0.15,
        RiskTier.MEDIUM: 0.35,
        RiskTier.HIGH: 0.65,
    }
    skill_penalty_weight: float = Field(ge=0, le=1, default=0.3)
    max_probability: float = Field(ge=0, le=1, default=0.8)
    approval_threshold: float = Field(ge=0, le=1, default=0.7)
    category_adjustments: Dict[str, float] = {"gear": 0.2}
    min_listed_items: int = Field(ge=0, default=3)
    gated_tiers: List[RiskTier] = [RiskTier.MEDIUM, RiskTier.HIGH]

    @model_validator(mode="after")
    def _baselines_cover_tiers(self) -> "RiskConfig":
        missing = [t.value for t in RiskTier if t not in self.tier_baselines]
        if missing:
            raise ValueError(f"tier_baselines missing tiers: {missing}")
        return self


class StalenessConfig(BaseModel):
    """When an in-progress step counts as stuck."""

    threshold_minutes: Optional[int] = Field(gt=0, default=None)
    estimate_multiplier: float = Field(gt=0, default=3.0)
    sweep_schedule: str = "*/15 * * * *"   # Cron expression


class KernelConfig(BaseModel):
    matcher: MatcherConfig = MatcherConfig()
    risk: RiskConfig = RiskConfig()
    staleness: StalenessConfig = StalenessConfig()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "KernelConfig":
        """Load a JSON config document; omitted sections keep their defaults."""
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))
