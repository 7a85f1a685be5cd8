"""
Step Workflow Engine: drives a task through its ordered procedural steps.

State machine per StepExecution:
  PENDING → IN_PROGRESS → COMPLETED   (no reverse transitions, no skipping)

Behavioral Contract:
- A step may start only when every earlier step is COMPLETED and no other
  step of the task is IN_PROGRESS
- Medium/high-risk steps start only with an acknowledged risk briefing
- A step completes only while IN_PROGRESS and only with a valid proof
- Completing the last step emits exactly one WorkflowComplete event
- Transitions on one task are serialized; a caller holding a stale
  StepExecution loses with ConcurrentModificationError
- Never mutates Task records and never stores proof bytes
"""

import logging
import sqlite3
import threading
import weakref
from datetime import datetime
from typing import Callable, List, Optional

from mechtrack_kernel.errors import (
    AlreadyInitializedError,
    ConcurrentModificationError,
    MissingProofError,
    RiskGateError,
    SequenceViolationError,
    WorkflowNotInitializedError,
)
from mechtrack_kernel.models.catalog import ComponentType
from mechtrack_kernel.models.config import KernelConfig
from mechtrack_kernel.models.execution import (
    Proof,
    ProofKind,
    StepCompletion,
    StepExecution,
    StepStatus,
    StepTransition,
    WorkflowComplete,
    WorkflowProgress,
)
from mechtrack_kernel.models.risk import RiskAssessment
from mechtrack_kernel.models.task import Task
from mechtrack_kernel.risk.assessor import RiskAssessor
from mechtrack_kernel.workflow.store import StepExecutionStore

logger = logging.getLogger(__name__)

WorkflowListener = Callable[[WorkflowComplete], None]


def validate_proof(
    proof: Optional[Proof],
    artifact_exists: Optional[Callable[[str], bool]] = None,
) -> Proof:
    """Return the proof if usable, else raise MissingProofError."""
    if proof is None:
        raise MissingProofError("A proof is required to complete a step")
    if not proof.content or not proof.content.strip():
        if proof.kind == ProofKind.TEXT:
            raise MissingProofError("Text proof must not be blank")
        raise MissingProofError(f"{proof.kind.value} proof must reference a stored artifact")
    if proof.kind != ProofKind.TEXT and artifact_exists is not None:
        if not artifact_exists(proof.content):
            raise MissingProofError(
                f"{proof.kind.value} proof references a missing artifact: {proof.content}"
            )
    return proof


class StepWorkflowEngine:
    """The per-task step state machine."""

    def __init__(
        self,
        store: Optional[StepExecutionStore] = None,
        risk_assessor: Optional[RiskAssessor] = None,
        config: Optional[KernelConfig] = None,
        artifact_exists: Optional[Callable[[str], bool]] = None,
    ):
        self.config = config or KernelConfig()
        self.store = store or StepExecutionStore()
        self.risk_assessor = risk_assessor or RiskAssessor(self.config.risk)
        self.artifact_exists = artifact_exists
        self._listeners: List[WorkflowListener] = []
        # Entries vanish once no caller holds the lock
        self._task_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._registry_lock = threading.Lock()

    def subscribe(self, listener: WorkflowListener) -> None:
        """Register a callback for WorkflowComplete events."""
        self._listeners.append(listener)

    def _lock_for(self, task_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._task_locks.get(task_id)
            if lock is None:
                lock = threading.Lock()
                self._task_locks[task_id] = lock
            return lock

    # --- Initialization ---

    def initialize(
        self,
        task: Task,
        component_type: ComponentType,
        now: Optional[datetime] = None,
    ) -> List[StepExecution]:
        """
        Create one PENDING StepExecution per StepDefinition, in step order.

        Never re-initializes: existing executions raise AlreadyInitializedError.
        """
        if now is None:
            now = datetime.utcnow()

        with self._lock_for(task.id):
            if self.store.has_task(task.id):
                raise AlreadyInitializedError(task.id)

            steps = sorted(component_type.steps, key=lambda s: s.step_number)
            executions = [
                StepExecution(task_id=task.id, step_number=s.step_number, definition=s)
                for s in steps
            ]
            transitions = [
                StepTransition(
                    task_id=task.id,
                    step_number=e.step_number,
                    event="initialized",
                    to_status=StepStatus.PENDING,
                    occurred_at=now,
                    detail={"component_id": component_type.id, "step_id": e.step_id},
                )
                for e in executions
            ]
            try:
                self.store.insert_many(executions, transitions)
            except sqlite3.IntegrityError as exc:
                # Another process initialized the same task first
                raise AlreadyInitializedError(task.id) from exc

        logger.info(
            "initialized workflow for task %s from %s (%d steps)",
            task.id, component_type.id, len(executions),
        )
        return executions

    # --- Queries ---

    def executions(self, task_id: str) -> List[StepExecution]:
        return self.store.list_for_task(task_id)

    def _require_executions(self, task_id: str) -> List[StepExecution]:
        executions = self.store.list_for_task(task_id)
        if not executions:
            raise WorkflowNotInitializedError(task_id)
        return executions

    def current_step(self, task_id: str) -> Optional[StepExecution]:
        """The first non-completed step in order, or None when all are done."""
        for execution in self._require_executions(task_id):
            if execution.status != StepStatus.COMPLETED:
                return execution
        return None

    def progress(self, task_id: str) -> WorkflowProgress:
        executions = self._require_executions(task_id)
        current = next(
            (e for e in executions if e.status != StepStatus.COMPLETED), None
        )
        return WorkflowProgress(
            task_id=task_id,
            completed=sum(1 for e in executions if e.status == StepStatus.COMPLETED),
            total=len(executions),
            current_step_number=current.step_number if current else None,
        )

    def assess(self, execution: StepExecution, operator_skill_score: int) -> RiskAssessment:
        """The risk briefing to display before starting a gated step."""
        return self.risk_assessor.assess(execution.definition, operator_skill_score)

    def requires_acknowledgment(self, execution: StepExecution) -> bool:
        return self.risk_assessor.is_gated(execution.definition)

    # --- Transitions ---

    def _load_for_transition(self, execution: StepExecution) -> tuple:
        """Fetch the task's rows and the stored copy of `execution`."""
        executions = self._require_executions(execution.task_id)
        stored = next(
            (e for e in executions if e.step_number == execution.step_number), None
        )
        if stored is None:
            raise SequenceViolationError(
                execution.task_id, execution.step_number, "no such step"
            )
        return executions, stored

    def _check_version(self, execution: StepExecution, stored: StepExecution) -> None:
        if stored.version != execution.version:
            logger.warning(
                "stale execution for task %s step %d: have v%d, stored v%d",
                execution.task_id, execution.step_number,
                execution.version, stored.version,
            )
            raise ConcurrentModificationError(
                f"Task {execution.task_id} step {execution.step_number} changed "
                f"(version {execution.version} -> {stored.version}); refetch and retry"
            )

    def _persist(
        self, updated: StepExecution, expected_version: int, transition: StepTransition
    ) -> None:
        if not self.store.compare_and_swap(updated, expected_version, transition):
            raise ConcurrentModificationError(
                f"Task {updated.task_id} step {updated.step_number} was modified "
                f"concurrently; refetch and retry"
            )

    def start(
        self,
        execution: StepExecution,
        acknowledged: bool = False,
        now: Optional[datetime] = None,
    ) -> StepExecution:
        """
        Move a step from PENDING to IN_PROGRESS.

        Gated steps (medium/high risk) require `acknowledged=True`, meaning the
        caller retrieved and displayed the RiskAssessment first.
        """
        if now is None:
            now = datetime.utcnow()

        with self._lock_for(execution.task_id):
            executions, stored = self._load_for_transition(execution)
            self._check_version(execution, stored)

            if stored.status != StepStatus.PENDING:
                raise SequenceViolationError(
                    stored.task_id, stored.step_number,
                    f"cannot start a step that is {stored.status.value}",
                )
            for other in executions:
                if other.step_number < stored.step_number and other.status != StepStatus.COMPLETED:
                    raise SequenceViolationError(
                        stored.task_id, stored.step_number,
                        f"step {other.step_number} is {other.status.value}",
                    )
                if other.status == StepStatus.IN_PROGRESS:
                    raise SequenceViolationError(
                        stored.task_id, stored.step_number,
                        f"step {other.step_number} is already in progress",
                    )

            if self.risk_assessor.is_gated(stored.definition) and not acknowledged:
                logger.warning(
                    "risk gate refused start of %s for task %s (%s risk)",
                    stored.step_id, stored.task_id, stored.definition.risk_tier.value,
                )
                raise RiskGateError(
                    stored.task_id, stored.step_id, stored.definition.risk_tier.value
                )

            updated = stored.model_copy(update={
                "status": StepStatus.IN_PROGRESS,
                "started_at": now,
                "acknowledged_risk": acknowledged,
                "version": stored.version + 1,
            })
            self._persist(updated, stored.version, StepTransition(
                task_id=stored.task_id,
                step_number=stored.step_number,
                event="started",
                from_status=StepStatus.PENDING,
                to_status=StepStatus.IN_PROGRESS,
                occurred_at=now,
                detail={"acknowledged_risk": acknowledged},
            ))

        logger.info("task %s: started step %d (%s)", updated.task_id,
                    updated.step_number, updated.definition.title)
        return updated

    def complete(
        self,
        execution: StepExecution,
        proof: Optional[Proof],
        now: Optional[datetime] = None,
    ) -> StepCompletion:
        """
        Move a step from IN_PROGRESS to COMPLETED, attaching its proof.

        Returns the updated execution and, if this was the last step, the
        WorkflowComplete event (also delivered to subscribers).
        """
        if now is None:
            now = datetime.utcnow()

        with self._lock_for(execution.task_id):
            executions, stored = self._load_for_transition(execution)

            # A completed step stays completed whatever copy the caller holds
            if stored.status != StepStatus.COMPLETED:
                self._check_version(execution, stored)
            if stored.status != StepStatus.IN_PROGRESS:
                raise SequenceViolationError(
                    stored.task_id, stored.step_number,
                    f"cannot complete a step that is {stored.status.value}",
                )
            proof = validate_proof(proof, self.artifact_exists)
            if proof.captured_at is None:
                proof = proof.model_copy(update={"captured_at": now})

            updated = stored.model_copy(update={
                "status": StepStatus.COMPLETED,
                "ended_at": now,
                "proof": proof,
                "version": stored.version + 1,
            })
            self._persist(updated, stored.version, StepTransition(
                task_id=stored.task_id,
                step_number=stored.step_number,
                event="completed",
                from_status=StepStatus.IN_PROGRESS,
                to_status=StepStatus.COMPLETED,
                occurred_at=now,
                detail={"proof_kind": proof.kind.value, "proof": proof.content},
            ))

            final = [updated if e.step_number == updated.step_number else e
                     for e in executions]
            event = None
            if all(e.status == StepStatus.COMPLETED for e in final):
                event = WorkflowComplete(
                    task_id=updated.task_id,
                    component_id=self._component_id(final),
                    total_steps=len(final),
                    started_at=final[0].started_at,
                    completed_at=now,
                    proofs=[e.proof for e in final if e.proof is not None],
                )

        logger.info("task %s: completed step %d with %s proof", updated.task_id,
                    updated.step_number, proof.kind.value)
        if event is not None:
            logger.info("task %s: workflow complete (%d steps)",
                        event.task_id, event.total_steps)
            for listener in self._listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception(
                        "task %s: workflow-complete listener %r failed",
                        event.task_id, listener,
                    )
        return StepCompletion(execution=updated, workflow_complete=event)

    def _component_id(self, executions: List[StepExecution]) -> Optional[str]:
        history = self.store.history(executions[0].task_id)
        for transition in history:
            if transition.event == "initialized":
                return transition.detail.get("component_id")
        return None
