"""
Step Execution Store: persisted StepExecution records plus an append-only
transition log.

Behavioral Contract:
- One row per (task_id, step_number); rows are never deleted
- Updates are optimistic: a write succeeds only if the stored version still
  matches the version the writer read (compare-and-swap)
- Every transition is appended to a hash-chained log (tamper-evident)
- Queryable by task and by status
"""

import hashlib
import json
import sqlite3
import threading
from typing import List, Optional

from mechtrack_kernel.models.execution import StepExecution, StepStatus, StepTransition


def _sign(transition: StepTransition) -> str:
    record = transition.model_dump(mode="json")
    # Zero out signature before hashing (it's what we're computing)
    record["signature"] = ""
    return hashlib.sha256(
        json.dumps(record, sort_keys=True, default=str).encode()
    ).hexdigest()


class StepExecutionStore:
    """
    SQLite-backed arena of StepExecutions indexed by task id.
    ":memory:" by default; pass a file path to survive restarts.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        # sqlite3 connections are not safe for concurrent use across threads
        self._db_lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        with self._db_lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS step_executions (
                    task_id TEXT NOT NULL,
                    step_number INTEGER NOT NULL,
                    step_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    record_json TEXT NOT NULL,
                    PRIMARY KEY (task_id, step_number)
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_step_executions_status
                ON step_executions(status)
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS step_transitions (
                    task_id TEXT NOT NULL,
                    step_number INTEGER NOT NULL,
                    event TEXT NOT NULL,
                    signature TEXT NOT NULL,
                    prior_record_hash TEXT,
                    record_json TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_step_transitions_task
                ON step_transitions(task_id)
            """)
            self._conn.commit()

    def _deserialize(self, row: sqlite3.Row) -> StepExecution:
        return StepExecution.model_validate_json(row["record_json"])

    # --- Executions ---

    def has_task(self, task_id: str) -> bool:
        with self._db_lock:
            row = self._conn.execute(
                "SELECT 1 FROM step_executions WHERE task_id = ? LIMIT 1", (task_id,)
            ).fetchone()
        return row is not None

    def insert_many(
        self,
        executions: List[StepExecution],
        transitions: Optional[List[StepTransition]] = None,
    ) -> None:
        """
        Insert a task's executions in one transaction.

        Raises sqlite3.IntegrityError if any (task_id, step_number) exists.
        """
        with self._db_lock:
            try:
                for execution in executions:
                    self._conn.execute(
                        """
                        INSERT INTO step_executions (
                            task_id, step_number, step_id, status, version, record_json
                        ) VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (
                            execution.task_id,
                            execution.step_number,
                            execution.step_id,
                            execution.status.value,
                            execution.version,
                            execution.model_dump_json(),
                        ),
                    )
                for transition in transitions or []:
                    self._append_transition(transition)
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise

    def get(self, task_id: str, step_number: int) -> Optional[StepExecution]:
        with self._db_lock:
            row = self._conn.execute(
                "SELECT record_json FROM step_executions "
                "WHERE task_id = ? AND step_number = ?",
                (task_id, step_number),
            ).fetchone()
        return self._deserialize(row) if row else None

    def list_for_task(self, task_id: str) -> List[StepExecution]:
        """All executions of a task in step-number order."""
        with self._db_lock:
            rows = self._conn.execute(
                "SELECT record_json FROM step_executions "
                "WHERE task_id = ? ORDER BY step_number",
                (task_id,),
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def list_by_status(self, status: StepStatus) -> List[StepExecution]:
        with self._db_lock:
            rows = self._conn.execute(
                "SELECT record_json FROM step_executions "
                "WHERE status = ? ORDER BY task_id, step_number",
                (status.value,),
            ).fetchall()
        return [self._deserialize(r) for r in rows]

    def task_ids(self) -> List[str]:
        with self._db_lock:
            rows = self._conn.execute(
                "SELECT DISTINCT task_id FROM step_executions ORDER BY task_id"
            ).fetchall()
        return [r["task_id"] for r in rows]

    def compare_and_swap(
        self,
        execution: StepExecution,
        expected_version: int,
        transition: Optional[StepTransition] = None,
    ) -> bool:
        """
        Persist `execution` only if the stored version equals `expected_version`.

        The caller is expected to have bumped `execution.version`. Returns False
        when another writer got there first; nothing is written in that case.
        """
        with self._db_lock:
            try:
                cursor = self._conn.execute(
                    """
                    UPDATE step_executions
                    SET status = ?, version = ?, record_json = ?
                    WHERE task_id = ? AND step_number = ? AND version = ?
                    """,
                    (
                        execution.status.value,
                        execution.version,
                        execution.model_dump_json(),
                        execution.task_id,
                        execution.step_number,
                        expected_version,
                    ),
                )
                if cursor.rowcount != 1:
                    self._conn.rollback()
                    return False
                if transition is not None:
                    self._append_transition(transition)
                self._conn.commit()
            except sqlite3.Error:
                self._conn.rollback()
                raise
        return True

    # --- Transition log ---

    def _get_latest_hash(self) -> Optional[str]:
        row = self._conn.execute(
            "SELECT signature FROM step_transitions ORDER BY rowid DESC LIMIT 1"
        ).fetchone()
        return row["signature"] if row else None

    def _append_transition(self, transition: StepTransition) -> StepTransition:
        """Chain and insert; the caller owns the transaction."""
        transition.prior_record_hash = self._get_latest_hash()
        transition.signature = _sign(transition)
        self._conn.execute(
            """
            INSERT INTO step_transitions (
                task_id, step_number, event, signature, prior_record_hash, record_json
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                transition.task_id,
                transition.step_number,
                transition.event,
                transition.signature,
                transition.prior_record_hash,
                transition.model_dump_json(),
            ),
        )
        return transition

    def history(self, task_id: str) -> List[StepTransition]:
        """Every transition of a task, oldest first."""
        with self._db_lock:
            rows = self._conn.execute(
                "SELECT record_json FROM step_transitions WHERE task_id = ? ORDER BY rowid",
                (task_id,),
            ).fetchall()
        return [StepTransition.model_validate_json(r["record_json"]) for r in rows]

    def verify_chain_integrity(self) -> bool:
        """Verify no transition has been tampered with or dropped."""
        with self._db_lock:
            rows = self._conn.execute(
                "SELECT record_json, signature FROM step_transitions ORDER BY rowid"
            ).fetchall()

        prior_sig = None
        for row in rows:
            transition = StepTransition.model_validate_json(row["record_json"])
            if transition.signature != row["signature"]:
                return False
            if _sign(transition) != transition.signature:
                return False
            if transition.prior_record_hash != prior_sig:
                return False
            prior_sig = transition.signature
        return True

    def transition_count(self) -> int:
        with self._db_lock:
            row = self._conn.execute(
                "SELECT COUNT(*) as cnt FROM step_transitions"
            ).fetchone()
        return row["cnt"]

    def close(self) -> None:
        with self._db_lock:
            self._conn.close()
