"""Tests for the Staleness Monitor."""

import asyncio
from datetime import datetime, timedelta

import pytest

from mechtrack_kernel.catalog.registry import ComponentCatalog
from mechtrack_kernel.models.config import StalenessConfig
from mechtrack_kernel.models.execution import Proof, ProofKind
from mechtrack_kernel.models.task import Task, TaskPriority
from mechtrack_kernel.monitor.staleness import StalenessMonitor
from mechtrack_kernel.workflow.engine import StepWorkflowEngine

T0 = datetime(2026, 3, 2, 8, 0, 0)


class TestStalenessMonitor:
    def setup_method(self):
        self.engine = StepWorkflowEngine()
        task = Task(id="T001", title="Shaft", priority=TaskPriority.HIGH,
                    component_id="shaft_001")
        self.engine.initialize(task, ComponentCatalog().get("shaft_001"), now=T0)
        # Step 1 is low risk with a 30 minute estimate
        self.started = self.engine.start(self.engine.current_step("T001"), now=T0)

    def test_fixed_threshold_alerts_once(self):
        monitor = StalenessMonitor(self.engine.store, StalenessConfig(threshold_minutes=60))
        assert monitor.sweep(T0 + timedelta(minutes=30)) == []

        alerts = monitor.sweep(T0 + timedelta(minutes=61))
        assert len(alerts) == 1
        assert alerts[0].task_id == "T001"
        assert alerts[0].step_number == 1
        assert alerts[0].minutes_in_progress == 61.0
        assert alerts[0].threshold_minutes == 60.0

        assert monitor.sweep(T0 + timedelta(minutes=120)) == []

    def test_estimate_multiplier(self):
        monitor = StalenessMonitor(self.engine.store)
        assert monitor.threshold_for(self.started) == 90.0
        assert monitor.sweep(T0 + timedelta(minutes=60)) == []
        assert len(monitor.sweep(T0 + timedelta(minutes=95))) == 1

    def test_never_changes_step_state(self):
        monitor = StalenessMonitor(self.engine.store, StalenessConfig(threshold_minutes=10))
        monitor.sweep(T0 + timedelta(hours=5))
        stored = self.engine.store.get("T001", 1)
        assert stored == self.started

    def test_completed_steps_are_forgotten(self):
        monitor = StalenessMonitor(self.engine.store, StalenessConfig(threshold_minutes=10))
        assert len(monitor.sweep(T0 + timedelta(minutes=15))) == 1
        self.engine.complete(
            self.started,
            Proof(kind=ProofKind.TEXT, content="Setup verified"),
            now=T0 + timedelta(minutes=20),
        )
        assert monitor.sweep(T0 + timedelta(minutes=25)) == []
        assert monitor._alerted == {}

    def test_invalid_schedule(self):
        with pytest.raises(ValueError):
            StalenessMonitor(self.engine.store, StalenessConfig(sweep_schedule="every so often"))

    def test_next_sweep_at(self):
        monitor = StalenessMonitor(self.engine.store)
        assert monitor.next_sweep_at(datetime(2026, 3, 2, 10, 7)) == datetime(2026, 3, 2, 10, 15)

    def test_run_async_stops(self):
        monitor = StalenessMonitor(self.engine.store)
        alerts = []

        async def run():
            stop = asyncio.Event()
            stop.set()
            await monitor.run_async(alerts.append, stop)

        asyncio.run(run())
        assert alerts == []
        assert monitor.status == "stopped"
