"""
Assignment Ledger: atomic, idempotent commitment of a chosen operator.

Ranking never commits anything. Committing is a separate compare-and-swap
of the task's status from OPEN to ASSIGNED: of two concurrent commits for
the same task exactly one wins, the other receives AssignmentConflictError.

In-memory reference implementation. A database-backed directory would do
the same swap as `UPDATE ... WHERE status = 'open'`.
"""

import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional

from mechtrack_kernel.errors import AssignmentConflictError
from mechtrack_kernel.models.matching import MatchCandidate
from mechtrack_kernel.models.task import Assignment, Task, TaskStatus

logger = logging.getLogger(__name__)


class AssignmentLedger:
    """Holds the assignment state of registered tasks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tasks: Dict[str, Task] = {}
        self._assignments: Dict[str, Assignment] = {}

    def register(self, task: Task) -> None:
        """Track a task. Re-registering keeps any committed assignment."""
        with self._lock:
            if task.id in self._assignments:
                return
            self._tasks[task.id] = task.model_copy(deep=True)

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task else None

    def get_assignment(self, task_id: str) -> Optional[Assignment]:
        with self._lock:
            return self._assignments.get(task_id)

    def all_assignments(self) -> List[Assignment]:
        with self._lock:
            return list(self._assignments.values())

    def commit(
        self,
        task_id: str,
        operator_id: str,
        score: int,
        assigned_at: Optional[datetime] = None,
    ) -> Assignment:
        """
        Commit an operator to an open task.

        Idempotent for the same operator: the original Assignment is returned.
        Raises AssignmentConflictError when another operator holds the task or
        the task is no longer open; KeyError for unregistered tasks.
        """
        if assigned_at is None:
            assigned_at = datetime.utcnow()

        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise KeyError(f"Task {task_id} is not registered with the ledger")

            existing = self._assignments.get(task_id)
            if existing is not None:
                if existing.operator_id == operator_id:
                    return existing
                logger.warning(
                    "assignment conflict on task %s: %s lost to %s",
                    task_id, operator_id, existing.operator_id,
                )
                raise AssignmentConflictError(
                    task_id, existing.operator_id, task.status.value
                )

            if task.status != TaskStatus.OPEN:
                raise AssignmentConflictError(
                    task_id, task.assigned_operator_id, task.status.value
                )

            assignment = Assignment(
                task_id=task_id,
                operator_id=operator_id,
                score=score,
                assigned_at=assigned_at,
            )
            task.status = TaskStatus.ASSIGNED
            task.assigned_operator_id = operator_id
            self._assignments[task_id] = assignment

        logger.info("task %s assigned to %s (score %d)", task_id, operator_id, score)
        return assignment

    def commit_candidate(
        self, task_id: str, candidate: MatchCandidate
    ) -> Assignment:
        """Commit a ranking entry chosen by a human or automated decision."""
        return self.commit(task_id, candidate.operator_id, candidate.score)
