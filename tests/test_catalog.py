"""Tests for the Component Catalog."""

import pytest

from mechtrack_kernel.catalog.registry import (
    DEFAULT_COMPONENTS,
    ComponentCatalog,
    build_standard_steps,
)
from mechtrack_kernel.errors import UnknownComponentError
from mechtrack_kernel.models.catalog import ComponentCategory, RiskTier


class TestComponentCatalog:
    def setup_method(self):
        self.catalog = ComponentCatalog()

    def test_default_components(self):
        assert len(self.catalog) == len(DEFAULT_COMPONENTS)
        assert "shaft_001" in self.catalog
        assert "gear_001" in self.catalog
        assert "bracket_001" in self.catalog

    def test_every_category_is_covered(self):
        categories = {c.category for c in self.catalog.all()}
        assert categories == set(ComponentCategory)

    def test_unknown_component(self):
        with pytest.raises(UnknownComponentError):
            self.catalog.get("nope_999")
        assert self.catalog.find("nope_999") is None

    def test_unknown_component_is_a_key_error(self):
        with pytest.raises(KeyError):
            self.catalog.steps_for("nope_999")

    def test_steps_are_contiguous_and_ordered(self):
        for component in self.catalog.all():
            numbers = [s.step_number for s in component.steps]
            assert numbers == list(range(1, len(numbers) + 1))
            assert all(s.id == f"{component.id}_step_{s.step_number}" for s in component.steps)

    def test_steps_carry_category(self):
        for step in self.catalog.steps_for("gear_001"):
            assert step.category == "gear"

    def test_gear_main_step_is_high_risk(self):
        steps = self.catalog.steps_for("gear_001")
        assert steps[1].risk_tier == RiskTier.HIGH
        assert len(steps[1].common_errors) == 3

    def test_generic_main_step_for_bushing(self):
        steps = self.catalog.steps_for("bushing_001")
        assert steps[1].title == "Main Assembly Work"
        assert steps[1].risk_tier == RiskTier.MEDIUM

    def test_by_category(self):
        brackets = self.catalog.by_category(ComponentCategory.BRACKET)
        assert [c.id for c in brackets] == ["bracket_001"]

    def test_duplicate_ids_rejected(self):
        component = self.catalog.get("shaft_001")
        with pytest.raises(ValueError):
            ComponentCatalog([component, component])

    def test_build_standard_steps(self):
        steps = build_standard_steps("x_1", ComponentCategory.COUPLING)
        assert [s.risk_tier for s in steps] == [RiskTier.LOW, RiskTier.MEDIUM, RiskTier.LOW]
        assert all(s.quality_checks for s in steps)
