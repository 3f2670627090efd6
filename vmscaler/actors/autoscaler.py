from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from casty import ActorContext, Behavior, Behaviors

from vmscaler.actors.messages import (
    AutoscalerMsg,
    GetScalingStatus,
    ScalingStatus,
    StopAutoscaler,
    TickCompleted,
    TickNow,
    _ScaleTick,
)
from vmscaler.api.model import TickReport
from vmscaler.core.exceptions import InvariantViolation
from vmscaler.engine import ScalingDecisionEngine
from vmscaler.observability.logger import logger

log = logger.bind(actor="autoscaler")


@dataclass(frozen=True, slots=True)
class _State:
    ticks: int
    last_report: TickReport | None


def autoscaler_actor(
    engine: ScalingDecisionEngine,
    tick_interval: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> Behavior[AutoscalerMsg]:
    """Drive ``engine`` on a fixed cadence.

    The mailbox serializes ticks, so scheduled and manual ticks never
    overlap.
    """
    interval = tick_interval if tick_interval is not None else engine.config.tick_interval

    def _schedule_tick(ctx: ActorContext[AutoscalerMsg]) -> None:
        async def _tick() -> _ScaleTick:
            await asyncio.sleep(interval)
            return _ScaleTick()

        ctx.pipe_to_self(
            _tick(),
            mapper=lambda r: r,
            on_failure=lambda _: _ScaleTick(),
        )

    def _run_tick(s: _State) -> _State:
        try:
            report = engine.tick(clock())
        except InvariantViolation:
            log.exception("Scaling tick {n} aborted", n=s.ticks + 1)
            raise
        if report.created or report.destroyed:
            log.info(
                "Tick {n}: requested {c} creations, {d} destructions",
                n=s.ticks + 1, c=report.created, d=len(report.destroyed),
            )
        return replace(s, ticks=s.ticks + 1, last_report=report)

    async def setup(ctx: ActorContext[AutoscalerMsg]) -> Behavior[AutoscalerMsg]:
        log.info("Autoscaler started: tick every {i}s", i=interval)
        _schedule_tick(ctx)
        return running(_State(ticks=0, last_report=None))

    def running(s: _State) -> Behavior[AutoscalerMsg]:

        async def receive(
            ctx: ActorContext[AutoscalerMsg], msg: AutoscalerMsg,
        ) -> Behavior[AutoscalerMsg]:
            match msg:
                case _ScaleTick():
                    new_s = _run_tick(s)
                    _schedule_tick(ctx)
                    return running(new_s)

                case TickNow(reply_to=reply_to):
                    new_s = _run_tick(s)
                    if reply_to is not None and new_s.last_report is not None:
                        reply_to.tell(TickCompleted(report=new_s.last_report))
                    return running(new_s)

                case GetScalingStatus(reply_to=reply_to):
                    reply_to.tell(ScalingStatus(
                        ticks=s.ticks,
                        last_report=s.last_report,
                        idle_counters=engine.tracker.snapshot(),
                    ))
                    return Behaviors.same()

                case StopAutoscaler():
                    log.info("Autoscaler stopped after {n} ticks", n=s.ticks)
                    return Behaviors.stopped()

            return Behaviors.same()

        return Behaviors.receive(receive)

    return Behaviors.setup(setup)
