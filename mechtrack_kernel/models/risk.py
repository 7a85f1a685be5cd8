"""Risk Assessment: ephemeral output of the Risk Assessor."""

from typing import List

from pydantic import BaseModel, Field

from mechtrack_kernel.models.catalog import RiskTier


class RiskAssessment(BaseModel):
    """Recomputed on demand, never persisted by the kernel."""

    step_id: str
    risk_tier: RiskTier
    operator_skill_score: int = Field(ge=0, le=100)
    error_probability: float = Field(ge=0.0, le=1.0)
    risk_factors: List[str] = []
    preventive_measures: List[str] = []
    recommended_actions: List[str] = []
    estimated_impact: str = ""
    risk_band: str = "low"                  # "low" | "medium" | "high"
    requires_approval: bool = False

    @property
    def error_percentage(self) -> int:
        return round(self.error_probability * 100)
