"""Tests for the Risk Assessor."""

import pytest

from mechtrack_kernel.catalog.registry import ComponentCatalog
from mechtrack_kernel.models.catalog import RiskTier, StepDefinition
from mechtrack_kernel.models.config import RiskConfig
from mechtrack_kernel.risk.assessor import (
    GENERIC_PREVENTIVE_MEASURES,
    GENERIC_RISK_FACTORS,
    RiskAssessor,
)


def _make_step(tier: RiskTier, category=None, adjustment=None, errors=None, tips=None):
    return StepDefinition(
        id="step_x",
        step_number=1,
        title="Test step",
        risk_tier=tier,
        category=category,
        risk_adjustment=adjustment,
        common_errors=errors or [],
        preventive_tips=tips or [],
    )


class TestRiskAssessor:
    def setup_method(self):
        self.assessor = RiskAssessor()

    def test_high_tier_low_skill_clamps_and_requires_approval(self):
        assessment = self.assessor.assess(_make_step(RiskTier.HIGH), 50)
        # min(0.65 + 0.3 * 0.5, 0.8)
        assert assessment.error_probability == pytest.approx(0.8)
        assert assessment.requires_approval is True
        assert assessment.risk_band == "high"

    def test_low_tier_expert(self):
        assessment = self.assessor.assess(_make_step(RiskTier.LOW), 100)
        assert assessment.error_probability == pytest.approx(0.15)
        assert assessment.requires_approval is False
        assert assessment.risk_band == "low"

    def test_medium_tier_novice(self):
        assessment = self.assessor.assess(_make_step(RiskTier.MEDIUM), 0)
        assert assessment.error_probability == pytest.approx(0.65)
        assert assessment.requires_approval is False
        assert assessment.risk_band == "medium"
        assert assessment.recommended_actions[0] == "Consider supervisor oversight"

    def test_category_bump(self):
        assessment = self.assessor.assess(_make_step(RiskTier.LOW, category="gear"), 100)
        assert assessment.error_probability == pytest.approx(0.35)

    def test_explicit_adjustment_overrides_category(self):
        step = _make_step(RiskTier.LOW, category="gear", adjustment=0.0)
        assert self.assessor.error_probability(step, 100) == pytest.approx(0.15)

    def test_catalog_gear_step_is_clamped(self):
        step = ComponentCatalog().steps_for("gear_001")[1]
        assessment = self.assessor.assess(step, 100)
        assert assessment.error_probability == pytest.approx(0.8)
        assert assessment.requires_approval is True

    def test_rejects_out_of_range_skill(self):
        with pytest.raises(ValueError):
            self.assessor.assess(_make_step(RiskTier.LOW), 101)

    def test_probability_bounds_and_approval_threshold(self):
        for tier in RiskTier:
            for category in (None, "gear", "shaft"):
                for skill in range(0, 101, 5):
                    a = self.assessor.assess(_make_step(tier, category=category), skill)
                    assert 0.0 <= a.error_probability <= 0.8
                    assert a.requires_approval == (a.error_probability >= 0.7)

    def test_deterministic(self):
        step = _make_step(RiskTier.MEDIUM, category="gear")
        assert self.assessor.assess(step, 63) == self.assessor.assess(step, 63)

    def test_short_lists_are_topped_up(self):
        step = _make_step(RiskTier.LOW, errors=["Skipped inspection"], tips=["Check drawing"])
        a = self.assessor.assess(step, 80)
        assert a.risk_factors == ["Skipped inspection"] + GENERIC_RISK_FACTORS
        assert a.preventive_measures == ["Check drawing"] + GENERIC_PREVENTIVE_MEASURES

    def test_full_lists_are_verbatim(self):
        errors = ["a", "b", "c", "d"]
        tips = ["w", "x", "y"]
        a = self.assessor.assess(_make_step(RiskTier.LOW, errors=errors, tips=tips), 80)
        assert a.risk_factors == errors
        assert a.preventive_measures == tips

    def test_empty_lists_get_at_most_two_generic_entries(self):
        a = self.assessor.assess(_make_step(RiskTier.LOW), 80)
        assert a.risk_factors == GENERIC_RISK_FACTORS
        assert len(a.preventive_measures) == 2

    def test_estimated_impact_by_tier(self):
        assert self.assessor.assess(_make_step(RiskTier.HIGH), 90).estimated_impact.startswith("High")
        assert self.assessor.assess(_make_step(RiskTier.LOW), 90).estimated_impact.startswith("Low")

    def test_gating(self):
        assert not self.assessor.is_gated(_make_step(RiskTier.LOW))
        assert self.assessor.is_gated(_make_step(RiskTier.MEDIUM))
        assert self.assessor.is_gated(_make_step(RiskTier.HIGH))

    def test_custom_config(self):
        assessor = RiskAssessor(RiskConfig(approval_threshold=0.5, category_adjustments={}))
        a = assessor.assess(_make_step(RiskTier.MEDIUM, category="gear"), 50)
        assert a.error_probability == pytest.approx(0.5)
        assert a.requires_approval is True
