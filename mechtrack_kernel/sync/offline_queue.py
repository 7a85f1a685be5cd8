"""
Offline Event Queue: step events captured while disconnected, replayed in
original order once connectivity is restored.

Behavioral Contract:
- Events are replayed strictly in enqueue order
- A failed event blocks every later event of the same task for the rest of
  the replay (they stay queued, in order, for the next attempt); other tasks
  keep replaying
- Successfully replayed events are removed; nothing else is ever reordered
"""

import logging
import sqlite3
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from mechtrack_kernel.models.execution import Proof

logger = logging.getLogger(__name__)


class StepAction(str, Enum):
    START = "start"
    COMPLETE = "complete"


class QueuedStepEvent(BaseModel):
    """A locally generated step transition awaiting replay."""

    task_id: str
    step_number: int
    action: StepAction
    occurred_at: datetime
    acknowledged: bool = False              # START only
    proof: Optional[Proof] = None           # COMPLETE only
    sequence: Optional[int] = None          # Assigned by the queue


class ReplayReport(BaseModel):
    replayed: List[QueuedStepEvent] = []
    failed: Dict[str, str] = {}             # task_id -> error of the blocking event
    remaining: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.failed


class OfflineEventQueue:
    """SQLite-persisted FIFO of QueuedStepEvents."""

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS offline_events (
                sequence INTEGER PRIMARY KEY AUTOINCREMENT,
                task_id TEXT NOT NULL,
                record_json TEXT NOT NULL,
                queued_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.commit()

    def enqueue(self, event: QueuedStepEvent) -> QueuedStepEvent:
        with self._lock:
            cursor = self._conn.execute(
                "INSERT INTO offline_events (task_id, record_json) VALUES (?, ?)",
                (event.task_id, event.model_dump_json(exclude={"sequence"})),
            )
            self._conn.commit()
            queued = event.model_copy(update={"sequence": cursor.lastrowid})
        logger.debug("queued %s for task %s step %d (#%d)", event.action.value,
                     event.task_id, event.step_number, queued.sequence)
        return queued

    def pending(self, task_id: Optional[str] = None) -> List[QueuedStepEvent]:
        """Queued events in replay order, optionally for one task."""
        with self._lock:
            if task_id is None:
                rows = self._conn.execute(
                    "SELECT sequence, record_json FROM offline_events ORDER BY sequence"
                ).fetchall()
            else:
                rows = self._conn.execute(
                    "SELECT sequence, record_json FROM offline_events "
                    "WHERE task_id = ? ORDER BY sequence",
                    (task_id,),
                ).fetchall()
        return [
            QueuedStepEvent.model_validate_json(r["record_json"]).model_copy(
                update={"sequence": r["sequence"]}
            )
            for r in rows
        ]

    def __len__(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS cnt FROM offline_events").fetchone()
        return row["cnt"]

    def _remove(self, sequence: int) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM offline_events WHERE sequence = ?", (sequence,))
            self._conn.commit()

    def discard(self, sequence: int) -> bool:
        """Drop one queued event, e.g. one that can never be applied."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM offline_events WHERE sequence = ?", (sequence,)
            )
            self._conn.commit()
        if cursor.rowcount:
            logger.warning("discarded queued event #%d", sequence)
        return cursor.rowcount > 0

    def drop_task(self, task_id: str) -> int:
        """Drop every queued event of one task; returns how many were removed."""
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM offline_events WHERE task_id = ?", (task_id,)
            )
            self._conn.commit()
        if cursor.rowcount:
            logger.warning("dropped %d queued events for task %s",
                           cursor.rowcount, task_id)
        return cursor.rowcount

    def replay(self, handler: Callable[[QueuedStepEvent], None]) -> ReplayReport:
        """Deliver queued events to `handler` in order. See module contract."""
        report = ReplayReport()
        blocked: Dict[str, str] = {}

        for event in self.pending():
            if event.task_id in blocked:
                continue
            try:
                handler(event)
            except Exception as e:
                blocked[event.task_id] = str(e)
                logger.warning(
                    "replay of %s for task %s step %d failed, holding later events: %s",
                    event.action.value, event.task_id, event.step_number, e,
                )
                continue
            self._remove(event.sequence)
            report.replayed.append(event)

        report.failed = blocked
        report.remaining = len(self)
        logger.info("offline replay: %d replayed, %d remaining, %d tasks blocked",
                    len(report.replayed), report.remaining, len(blocked))
        return report

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM offline_events")
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()


def engine_replay_handler(engine) -> Callable[[QueuedStepEvent], None]:
    """
    Build a replay handler that applies queued events to a StepWorkflowEngine.

    Each event is applied against the freshly stored execution, using the
    event's original timestamp.
    """

    def _apply(event: QueuedStepEvent) -> None:
        current = engine.store.get(event.task_id, event.step_number)
        if current is None:
            raise LookupError(
                f"Task {event.task_id} has no step {event.step_number} to replay"
            )
        if event.action == StepAction.START:
            engine.start(current, acknowledged=event.acknowledged, now=event.occurred_at)
        else:
            engine.complete(current, event.proof, now=event.occurred_at)

    return _apply
