"""
Risk Assessor: pre-step error-probability estimate.

Behavioral Contract:
- Accepts a StepDefinition and the executing operator's skill score
- Baseline probability comes from the step's risk tier, plus a skill penalty
  and any category-specific bump carried by the step
- Clamps the result to [0, max_probability]; approval is required at or
  above the approval threshold
- Deterministic: identical inputs always yield an identical assessment
- Stateless and safe to call concurrently
"""

import logging
from typing import List, Optional

from mechtrack_kernel.models.catalog import RiskTier, StepDefinition
from mechtrack_kernel.models.config import RiskConfig
from mechtrack_kernel.models.risk import RiskAssessment

logger = logging.getLogger(__name__)

GENERIC_RISK_FACTORS = [
    "Environmental factors (temperature, humidity)",
    "Tool calibration drift",
]

GENERIC_PREVENTIVE_MEASURES = [
    "Double-check all measurements before proceeding",
    "Ensure proper tool calibration",
]

_IMPACT_BY_TIER = {
    RiskTier.HIGH: "High - Could affect product quality or safety",
    RiskTier.MEDIUM: "Medium - May cause rework or delays",
    RiskTier.LOW: "Low - Minimal impact on overall process",
}


def _top_up(authored: List[str], generic: List[str], minimum: int) -> List[str]:
    """Authored entries verbatim, padded with generic ones when the list is short."""
    items = list(authored)
    for entry in generic:
        if len(items) >= minimum:
            break
        if entry not in items:
            items.append(entry)
    return items


def _risk_band(probability: float, approval_threshold: float) -> str:
    if probability >= approval_threshold:
        return "high"
    if probability >= 0.4:
        return "medium"
    return "low"


def _recommended_actions(probability: float) -> List[str]:
    return [
        "Consider supervisor oversight" if probability > 0.5
        else "Proceed with standard caution",
        "Verify tool calibration before starting",
        "Review safety notes thoroughly",
        "Document all observations during execution",
    ]


class RiskAssessor:
    """Computes RiskAssessments from step definitions and operator skill."""

    def __init__(self, config: Optional[RiskConfig] = None):
        self.config = config or RiskConfig()

    def is_gated(self, step: StepDefinition) -> bool:
        """True when the step's tier requires an acknowledged briefing before start."""
        return step.risk_tier in self.config.gated_tiers

    def category_adjustment(self, step: StepDefinition) -> float:
        """Explicit per-step override first, then the configured category bump."""
        if step.risk_adjustment is not None:
            return step.risk_adjustment
        if step.category:
            return self.config.category_adjustments.get(step.category.lower(), 0.0)
        return 0.0

    def error_probability(self, step: StepDefinition, operator_skill_score: int) -> float:
        if not 0 <= operator_skill_score <= 100:
            raise ValueError(
                f"operator_skill_score must be within [0, 100], got {operator_skill_score}"
            )
        cfg = self.config
        baseline = cfg.tier_baselines[step.risk_tier]
        skill_penalty = (100 - operator_skill_score) / 100 * cfg.skill_penalty_weight
        adjustment = self.category_adjustment(step)
        raw = baseline + skill_penalty + adjustment
        probability = round(min(max(raw, 0.0), cfg.max_probability), 4)
        logger.debug(
            "risk %s: baseline=%.2f skill_penalty=%.3f category=%.2f -> %.4f",
            step.id, baseline, skill_penalty, adjustment, probability,
        )
        return probability

    def assess(self, step: StepDefinition, operator_skill_score: int) -> RiskAssessment:
        """Assess one step for one operator."""
        cfg = self.config
        probability = self.error_probability(step, operator_skill_score)
        return RiskAssessment(
            step_id=step.id,
            risk_tier=step.risk_tier,
            operator_skill_score=operator_skill_score,
            error_probability=probability,
            risk_factors=_top_up(
                step.common_errors, GENERIC_RISK_FACTORS, cfg.min_listed_items
            ),
            preventive_measures=_top_up(
                step.preventive_tips, GENERIC_PREVENTIVE_MEASURES, cfg.min_listed_items
            ),
            recommended_actions=_recommended_actions(probability),
            estimated_impact=_IMPACT_BY_TIER[step.risk_tier],
            risk_band=_risk_band(probability, cfg.approval_threshold),
            requires_approval=probability >= cfg.approval_threshold,
        )
