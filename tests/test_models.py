"""Tests for core data models and configuration."""

import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from mechtrack_kernel.models import (
    ComponentCategory,
    ComponentType,
    KernelConfig,
    MatcherConfig,
    Operator,
    OperatorStatus,
    Proof,
    ProofKind,
    RiskConfig,
    RiskTier,
    SkillRequirement,
    StepDefinition,
    Task,
    TaskPriority,
    TaskStatus,
    WorkflowProgress,
)


def _step(number: int, tier: RiskTier = RiskTier.LOW) -> StepDefinition:
    return StepDefinition(
        id=f"c_step_{number}",
        step_number=number,
        title=f"Step {number}",
        risk_tier=tier,
    )


class TestTask:
    def test_defaults(self):
        task = Task(id="T001", title="Overhaul", priority=TaskPriority.HIGH)
        assert task.status == TaskStatus.OPEN
        assert task.estimated_hours == 4.0
        assert task.required_skills == []
        assert task.assigned_operator_id is None
        assert task.is_terminal is False

    def test_priority_required(self):
        with pytest.raises(ValidationError):
            Task(id="T001", title="Overhaul")

    def test_priority_from_string(self):
        task = Task(id="T001", title="Overhaul", priority="low")
        assert task.priority == TaskPriority.LOW

    def test_terminal_statuses(self):
        for status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED):
            task = Task(id="T", title="t", priority="medium", status=status)
            assert task.is_terminal


class TestOperator:
    def test_comma_separated_skills(self):
        op = Operator(id="O1", name="John", skills="Welding, CNC ,")
        assert op.skills == ["Welding", "CNC"]

    def test_missing_scores_use_default_policy(self):
        op = Operator(id="O1", name="John", skill_score=None, performance_score=None)
        assert op.skill_score == 70
        assert op.performance_score == 75

    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            Operator(id="O1", name="John", skill_score=101)

    def test_availability(self):
        free = Operator(id="O1", name="A", status=OperatorStatus.ONLINE)
        busy = Operator(id="O2", name="B", current_task="T9")
        assert free.is_available
        assert not busy.is_available


class TestComponentType:
    def test_steps_must_be_contiguous(self):
        with pytest.raises(ValidationError):
            ComponentType(
                id="c",
                name="Broken",
                category=ComponentCategory.SHAFT,
                description="",
                steps=[_step(1), _step(3)],
                estimated_hours=1,
                skill_requirement=SkillRequirement.BASIC,
            )

    def test_steps_must_be_present(self):
        with pytest.raises(ValidationError):
            ComponentType(
                id="c",
                name="Empty",
                category=ComponentCategory.SHAFT,
                description="",
                steps=[],
                estimated_hours=1,
                skill_requirement=SkillRequirement.BASIC,
            )

    def test_total_minutes(self):
        component = ComponentType(
            id="c",
            name="Ok",
            category=ComponentCategory.GEAR,
            description="",
            steps=[_step(1), _step(2)],
            estimated_hours=1,
            skill_requirement=SkillRequirement.ADVANCED,
        )
        assert component.total_step_minutes == 60


class TestProof:
    def test_proof_is_immutable(self):
        proof = Proof(kind=ProofKind.TEXT, content="Torqued to 45 Nm")
        with pytest.raises(ValidationError):
            proof.content = "changed"


class TestWorkflowProgress:
    def test_percentage(self):
        progress = WorkflowProgress(task_id="T", completed=1, total=3)
        assert progress.percentage == 33.3
        assert not progress.is_complete

    def test_empty(self):
        assert WorkflowProgress(task_id="T", completed=0, total=0).percentage == 0.0


class TestConfig:
    def test_defaults(self):
        config = KernelConfig()
        assert config.matcher.skill_weight == 0.4
        assert config.risk.tier_baselines[RiskTier.HIGH] == 0.65
        assert config.risk.approval_threshold == 0.7
        assert config.staleness.sweep_schedule == "*/15 * * * *"

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError):
            MatcherConfig(skill_weight=0.5)

    def test_baselines_must_cover_every_tier(self):
        with pytest.raises(ValidationError):
            RiskConfig(tier_baselines={"low": 0.1})

    def test_from_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "kernel.json"
        path.write_text(json.dumps({
            "risk": {"approval_threshold": 0.6},
            "staleness": {"threshold_minutes": 120},
        }))
        config = KernelConfig.from_file(path)
        assert config.risk.approval_threshold == 0.6
        assert config.risk.max_probability == 0.8
        assert config.staleness.threshold_minutes == 120
        assert config.matcher.busy_score == 30
