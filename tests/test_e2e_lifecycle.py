"""End-to-end: match an operator, assign, then walk a gear job to completion."""

from datetime import datetime, timedelta

import pytest

from mechtrack_kernel.catalog.registry import ComponentCatalog
from mechtrack_kernel.errors import RiskGateError
from mechtrack_kernel.matching.ledger import AssignmentLedger
from mechtrack_kernel.matching.matcher import TaskMatcher
from mechtrack_kernel.models.catalog import RiskTier
from mechtrack_kernel.models.execution import Proof, ProofKind, StepStatus
from mechtrack_kernel.models.operator import Operator, OperatorStatus
from mechtrack_kernel.models.task import Task, TaskPriority, TaskStatus
from mechtrack_kernel.workflow.engine import StepWorkflowEngine

T0 = datetime(2026, 3, 2, 8, 0, 0)


def test_gear_job_lifecycle():
    catalog = ComponentCatalog()
    ledger = AssignmentLedger()
    engine = StepWorkflowEngine()
    completed = []
    engine.subscribe(completed.append)

    task = Task(
        id="T042",
        title="Cut spur gear",
        priority=TaskPriority.HIGH,
        required_skills=["Gear cutting"],
        component_id="gear_001",
    )
    ledger.register(task)
    operators = [
        Operator(id="O1", name="Ana", skill_score=90, performance_score=88,
                 skills="Gear cutting,CNC", status=OperatorStatus.ONLINE),
        Operator(id="O2", name="Ben", skill_score=60, performance_score=70,
                 skills="Welding", current_task="T007"),
    ]

    # Match and assign
    best = TaskMatcher().recommend(task, operators)
    assert best.operator_id == "O1"
    ledger.commit_candidate(task.id, best)
    assert ledger.get_task(task.id).status == TaskStatus.ASSIGNED

    # Walk the procedure
    engine.initialize(task, catalog.get("gear_001"), now=T0)
    clock = T0
    while True:
        step = engine.current_step(task.id)
        if step is None:
            break
        acknowledged = False
        if engine.requires_acknowledgment(step):
            assessment = engine.assess(step, operators[0].skill_score)
            if step.definition.risk_tier == RiskTier.HIGH:
                assert assessment.error_probability == 0.8
                assert assessment.requires_approval
            with pytest.raises(RiskGateError):
                engine.start(step, now=clock)
            acknowledged = True
        started = engine.start(step, acknowledged=acknowledged, now=clock)
        clock += timedelta(minutes=step.definition.estimated_minutes)
        engine.complete(
            started,
            Proof(kind=ProofKind.TEXT, content=f"{step.definition.title}: checks passed"),
            now=clock,
        )

    assert all(e.status == StepStatus.COMPLETED for e in engine.executions(task.id))
    assert len(completed) == 1
    event = completed[0]
    assert event.component_id == "gear_001"
    assert event.total_steps == 3
    assert event.started_at == T0
    assert len(event.proofs) == 3
    assert engine.store.verify_chain_integrity()

    # The workflow never touches the ledger's task record
    assert ledger.get_task(task.id).status == TaskStatus.ASSIGNED
