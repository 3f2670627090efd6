from __future__ import annotations

import asyncio
import itertools
from pathlib import Path

from casty import ActorSystem

from vmscaler.actors.autoscaler import autoscaler_actor
from vmscaler.actors.messages import (
    GetScalingStatus,
    ScalingStatus,
    StopAutoscaler,
    TickCompleted,
    TickNow,
)
from vmscaler.api.model import Instance, KindOutcome
from vmscaler.config import ScalingConfig
from vmscaler.engine import ScalingDecisionEngine
from vmscaler.lifecycle import InMemoryLifecycle
from vmscaler.observability.logging import LogConfig, _setup_logging, _teardown_logging
from vmscaler.utilization import UtilizationTable


def _engine(grace: int = 30) -> tuple[ScalingDecisionEngine, InMemoryLifecycle]:
    lifecycle = InMemoryLifecycle(kinds=["batch"])
    engine = ScalingDecisionEngine(
        lifecycle, UtilizationTable(), ScalingConfig(idle_grace_ticks=grace),
    )
    return engine, lifecycle


def _clock():
    counter = itertools.count()
    return lambda: float(next(counter))


class TestAutoscalerActor:
    def test_manual_tick_replies_with_report(self) -> None:
        engine, lifecycle = _engine()

        async def run() -> TickCompleted:
            async with ActorSystem("test-autoscaler") as system:
                ref = system.spawn(
                    autoscaler_actor(engine, tick_interval=3600.0, clock=_clock()),
                    "autoscaler",
                )
                return await system.ask(ref, lambda r: TickNow(reply_to=r), timeout=5.0)

        result = asyncio.run(run())

        assert result.report.decision_for("batch").outcome is KindOutcome.COLD_START
        assert len(lifecycle.pool_for("batch")) == 1

    def test_status_tracks_ticks_and_idle_counters(self) -> None:
        engine, lifecycle = _engine()

        async def run() -> ScalingStatus:
            async with ActorSystem("test-autoscaler") as system:
                ref = system.spawn(
                    autoscaler_actor(engine, tick_interval=3600.0, clock=_clock()),
                    "autoscaler",
                )
                for _ in range(3):
                    await system.ask(ref, lambda r: TickNow(reply_to=r), timeout=5.0)
                return await system.ask(ref, lambda r: GetScalingStatus(reply_to=r), timeout=5.0)

        status = asyncio.run(run())

        [vm] = lifecycle.pool_for("batch")
        assert status.ticks == 3
        assert status.idle_counters == {vm.id: 2}
        assert status.last_report.decision_for("batch").outcome is KindOutcome.GRACE

    def test_scheduled_ticks_run_on_cadence(self) -> None:
        engine, lifecycle = _engine(grace=2)

        async def run() -> ScalingStatus:
            async with ActorSystem("test-autoscaler") as system:
                ref = system.spawn(
                    autoscaler_actor(engine, tick_interval=0.02, clock=_clock()),
                    "autoscaler",
                )
                await asyncio.sleep(0.5)
                return await system.ask(ref, lambda r: GetScalingStatus(reply_to=r), timeout=5.0)

        status = asyncio.run(run())

        assert status.ticks >= 4
        # cold start, grace, destroy, and at least one recreation
        assert len(lifecycle.created) >= 2
        assert len(lifecycle.destroyed) >= 1

    def test_stop_halts_ticking(self) -> None:
        engine, _ = _engine()

        async def run() -> None:
            async with ActorSystem("test-autoscaler") as system:
                ref = system.spawn(
                    autoscaler_actor(engine, tick_interval=0.02, clock=_clock()),
                    "autoscaler",
                )
                ref.tell(StopAutoscaler())
                await asyncio.sleep(0.2)

        asyncio.run(run())

        assert engine.last_tick is None

    def test_invariant_violation_is_logged_with_traceback(self, tmp_path: Path) -> None:
        lifecycle = InMemoryLifecycle(kinds=["batch"])
        utilization = UtilizationTable()
        for n in range(2):
            vm = lifecycle.add(Instance(id=f"batch-{n}", kind="batch"))
            utilization.set(vm, utilization=1.5)
        engine = ScalingDecisionEngine(lifecycle, utilization)
        log_file = tmp_path / "vmscaler.log"

        async def run() -> None:
            async with ActorSystem("test-autoscaler") as system:
                ref = system.spawn(
                    autoscaler_actor(engine, tick_interval=3600.0, clock=_clock()),
                    "autoscaler",
                )
                ref.tell(TickNow())
                await asyncio.sleep(0.2)

        handler_ids = _setup_logging(LogConfig(file=str(log_file)))
        try:
            asyncio.run(run())
        finally:
            _teardown_logging(handler_ids)

        text = log_file.read_text()
        assert "Scaling tick 1 aborted" in text
        assert "Traceback" in text
        assert "InvariantViolation: Utilization of batch-0 outside [0, 1]: 1.5" in text
        assert engine.last_tick == 0.0
        assert lifecycle.destroyed == []
