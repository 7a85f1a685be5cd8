"""
Staleness Monitor: surfaces steps stuck IN_PROGRESS.

Alerts only; it never transitions step state. A step counts as stale once it
has been in progress longer than the configured threshold, or, without one,
longer than its own estimate times the configured multiplier.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from croniter import croniter
from pydantic import BaseModel

from mechtrack_kernel.models.config import StalenessConfig
from mechtrack_kernel.models.execution import StepExecution, StepStatus
from mechtrack_kernel.workflow.store import StepExecutionStore

logger = logging.getLogger(__name__)


class StaleStepAlert(BaseModel):
    task_id: str
    step_number: int
    step_title: str
    started_at: datetime
    minutes_in_progress: float
    threshold_minutes: float
    detected_at: datetime


class StalenessMonitor:
    """Periodic sweep over in-progress steps."""

    def __init__(
        self,
        store: StepExecutionStore,
        config: Optional[StalenessConfig] = None,
    ):
        self.store = store
        self.config = config or StalenessConfig()
        if not croniter.is_valid(self.config.sweep_schedule):
            raise ValueError(f"Invalid sweep schedule: {self.config.sweep_schedule!r}")
        # Steps already alerted, keyed to the start time they were alerted for
        self._alerted: Dict[Tuple[str, int], datetime] = {}
        self._running = False

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    def threshold_for(self, execution: StepExecution) -> float:
        if self.config.threshold_minutes is not None:
            return float(self.config.threshold_minutes)
        return execution.definition.estimated_minutes * self.config.estimate_multiplier

    def sweep(self, current_time: Optional[datetime] = None) -> List[StaleStepAlert]:
        """Return new alerts for steps that crossed their threshold."""
        if current_time is None:
            current_time = datetime.utcnow()

        in_progress = self.store.list_by_status(StepStatus.IN_PROGRESS)
        live_keys = set()
        alerts = []
        for execution in in_progress:
            if execution.started_at is None:
                continue
            live_keys.add(execution.key)
            minutes = (current_time - execution.started_at).total_seconds() / 60.0
            threshold = self.threshold_for(execution)
            if minutes < threshold:
                continue
            if self._alerted.get(execution.key) == execution.started_at:
                continue
            self._alerted[execution.key] = execution.started_at
            alert = StaleStepAlert(
                task_id=execution.task_id,
                step_number=execution.step_number,
                step_title=execution.definition.title,
                started_at=execution.started_at,
                minutes_in_progress=round(minutes, 1),
                threshold_minutes=threshold,
                detected_at=current_time,
            )
            logger.warning(
                "task %s step %d in progress for %.1f min (threshold %.0f)",
                alert.task_id, alert.step_number, alert.minutes_in_progress, threshold,
            )
            alerts.append(alert)

        # Forget steps that have since completed
        for key in list(self._alerted):
            if key not in live_keys:
                del self._alerted[key]
        return alerts

    def next_sweep_at(self, current_time: Optional[datetime] = None) -> datetime:
        if current_time is None:
            current_time = datetime.utcnow()
        return croniter(self.config.sweep_schedule, current_time).get_next(datetime)

    async def run_async(
        self,
        on_alert: Callable[[StaleStepAlert], None],
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Sweep on the cron schedule until `stop_event` is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                now = datetime.utcnow()
                delay = max(0.0, (self.next_sweep_at(now) - now).total_seconds())
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass
                for alert in self.sweep():
                    on_alert(alert)
        finally:
            self._running = False
