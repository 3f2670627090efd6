"""Per-tick scaling decisions for pools of instances grouped by workload kind.

Each kind is handled independently, using the pool as observed when its
processing starts:

- an empty pool gets one instance;
- a sole idle instance is kept for ``idle_grace_ticks`` consecutive idle
  ticks, then destroyed (the kind is recreated on a later tick if needed);
- in larger pools, idle instances below the destroy threshold are removed,
  and a tick that shrinks a pool never grows it;
- otherwise, the mean hourly utilization selects a growth factor and the
  pool is grown to ``ceil(size * factor)``.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from vmscaler.api.model import (
    Instance,
    InstanceId,
    KindDecision,
    KindOutcome,
    TickReport,
    WorkloadKind,
)
from vmscaler.api.protocols import InstanceLifecycle, UtilizationSource
from vmscaler.config import ScalingConfig
from vmscaler.core.exceptions import InvariantViolation
from vmscaler.hysteresis import IdleHysteresisTracker
from vmscaler.observability.logger import logger

log = logger.bind(component="engine")


def _scale_up_count(pool_size: int, factor: float) -> int:
    if factor <= 0:
        return 0
    # 100 * 1.1 must give 110, not 111
    target = math.ceil(round(pool_size * factor, 9))
    return max(target - pool_size, 0)


class _Readings:
    """Utilization figures for one tick, each queried at most once."""

    __slots__ = ("_source", "_busy", "_util")

    def __init__(self, source: UtilizationSource) -> None:
        self._source = source
        self._busy: dict[InstanceId, bool] = {}
        self._util: dict[InstanceId, float] = {}

    def busy(self, instance: Instance) -> bool:
        if instance.id not in self._busy:
            self._busy[instance.id] = bool(self._source.is_busy_or_pending(instance))
        return self._busy[instance.id]

    def utilization(self, instance: Instance) -> float:
        if instance.id not in self._util:
            value = float(self._source.hourly_utilization(instance))
            if math.isnan(value) or not 0.0 <= value <= 1.0:
                raise InvariantViolation(
                    f"Utilization of {instance.id} outside [0, 1]: {value}"
                )
            self._util[instance.id] = value
        return self._util[instance.id]


class ScalingDecisionEngine:
    """Body of the control loop; call ``tick`` once per cadence period.

    Ticks must not overlap. All mutable state (the hysteresis tracker) is
    owned by the engine and lives only as long as the process.
    """

    def __init__(
        self,
        lifecycle: InstanceLifecycle,
        utilization: UtilizationSource,
        config: ScalingConfig | None = None,
        tracker: IdleHysteresisTracker | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._utilization = utilization
        self._config = config or ScalingConfig()
        self._tracker = tracker if tracker is not None else IdleHysteresisTracker()
        self._last_tick: float | None = None

    @property
    def config(self) -> ScalingConfig:
        return self._config

    @property
    def tracker(self) -> IdleHysteresisTracker:
        return self._tracker

    @property
    def last_tick(self) -> float | None:
        return self._last_tick

    def tick(self, current_time: float) -> TickReport:
        if self._last_tick is not None and current_time < self._last_tick:
            raise InvariantViolation(
                f"Tick time went backwards: {current_time} < {self._last_tick}"
            )
        self._last_tick = current_time

        readings = _Readings(self._utilization)
        decisions: list[KindDecision] = []
        still_idle: set[InstanceId] = set()

        for kind in list(self._lifecycle.kinds()):
            pool = self._snapshot(kind)
            decision = self._decide(kind, pool, readings)
            if decision.outcome is KindOutcome.GRACE:
                still_idle.add(pool[0].id)
            log.debug(
                "{kind}: size={size} outcome={outcome}",
                kind=kind, size=decision.pool_size, outcome=decision.outcome.value,
            )
            decisions.append(decision)

        if dropped := self._tracker.retain(still_idle):
            log.debug("Dropped idle counters of {ids}", ids=dropped)

        return TickReport(time=current_time, decisions=tuple(decisions))

    def _snapshot(self, kind: WorkloadKind) -> list[Instance]:
        try:
            pool = list(self._lifecycle.pool_for(kind))
        except KeyError as e:
            raise InvariantViolation(f"Kind {kind!r} disappeared mid-tick") from e

        seen: set[InstanceId] = set()
        for instance in pool:
            if instance.kind != kind:
                raise InvariantViolation(
                    f"Instance {instance.id} of kind {instance.kind!r} listed under {kind!r}"
                )
            if instance.id in seen:
                raise InvariantViolation(f"Instance {instance.id} listed twice in {kind!r}")
            seen.add(instance.id)
        return pool

    def _decide(
        self, kind: WorkloadKind, pool: Sequence[Instance], readings: _Readings,
    ) -> KindDecision:
        match len(pool):
            case 0:
                log.info("No instances of {kind}, requesting one", kind=kind)
                self._lifecycle.request_create(kind)
                return KindDecision(kind=kind, pool_size=0, outcome=KindOutcome.COLD_START, created=1)

            case 1:
                only = pool[0]
                if not readings.busy(only):
                    return self._idle_sole(kind, only)
                self._tracker.clear(only)
                return self._scale_up(kind, pool, readings)

            case size:
                for instance in pool:
                    self._tracker.clear(instance)

                threshold = self._config.destroy_utilization_threshold
                victims = [
                    v for v in pool
                    if not readings.busy(v) and readings.utilization(v) < threshold
                ]
                if len(victims) == size:
                    victims = victims[1:]

                if not victims:
                    return self._scale_up(kind, pool, readings)

                for victim in victims:
                    log.info(
                        "Destroying underutilized {id} of {kind}",
                        id=victim.id, kind=kind,
                    )
                    self._lifecycle.request_destroy(victim)
                return KindDecision(
                    kind=kind,
                    pool_size=size,
                    outcome=KindOutcome.SHRUNK,
                    destroyed=tuple(v.id for v in victims),
                )

    def _idle_sole(self, kind: WorkloadKind, only: Instance) -> KindDecision:
        idle_ticks = self._tracker.observe_idle(only)
        if idle_ticks < self._config.idle_grace_ticks:
            return KindDecision(
                kind=kind, pool_size=1, outcome=KindOutcome.GRACE, idle_ticks=idle_ticks,
            )

        self._tracker.clear(only)
        log.info(
            "Last instance {id} of {kind} idle for {n} ticks, destroying",
            id=only.id, kind=kind, n=idle_ticks,
        )
        self._lifecycle.request_destroy(only)
        return KindDecision(
            kind=kind,
            pool_size=1,
            outcome=KindOutcome.GRACE_EXPIRED,
            destroyed=(only.id,),
            idle_ticks=idle_ticks,
        )

    def _scale_up(
        self, kind: WorkloadKind, pool: Sequence[Instance], readings: _Readings,
    ) -> KindDecision:
        size = len(pool)
        average = math.fsum(readings.utilization(v) for v in pool) / size
        factor = self._config.growth_factor(average)
        needed = _scale_up_count(size, factor)

        if needed:
            log.info(
                "Scaling up {kind}: {size} -> {target} (avg={avg:.2f}, factor={factor})",
                kind=kind, size=size, target=size + needed, avg=average, factor=factor,
            )
        for _ in range(needed):
            self._lifecycle.request_create(kind)

        return KindDecision(
            kind=kind,
            pool_size=size,
            outcome=KindOutcome.SCALED_UP if needed else KindOutcome.STEADY,
            average=average,
            factor=factor,
            created=needed,
        )
