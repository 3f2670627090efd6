from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

type WorkloadKind = str
type InstanceId = str
type Pool = Mapping[WorkloadKind, Sequence[Instance]]


@dataclass(frozen=True, slots=True)
class Instance:
    """Handle to a provisioned compute unit serving one workload kind."""

    id: InstanceId
    kind: WorkloadKind
    created_at: float = 0.0


class KindOutcome(Enum):
    """How a kind's processing ended within a tick."""

    COLD_START = "cold_start"
    GRACE = "grace"
    GRACE_EXPIRED = "grace_expired"
    SHRUNK = "shrunk"
    SCALED_UP = "scaled_up"
    STEADY = "steady"


@dataclass(frozen=True, slots=True)
class KindDecision:
    """What the engine decided for one kind in one tick.

    Attributes:
        kind: Workload kind.
        pool_size: Pool size observed when processing of the kind began.
        outcome: Terminal outcome for the tick.
        average: Mean hourly utilization, when scale-up was evaluated.
        factor: Growth factor selected (0.0 when no band matched).
        created: Number of creations requested.
        destroyed: Ids of instances whose destruction was requested.
        idle_ticks: Hysteresis count of a sole idle instance, if any.
    """

    kind: WorkloadKind
    pool_size: int
    outcome: KindOutcome
    average: float | None = None
    factor: float = 0.0
    created: int = 0
    destroyed: tuple[InstanceId, ...] = ()
    idle_ticks: int = 0


@dataclass(frozen=True, slots=True)
class TickReport:
    time: float
    decisions: tuple[KindDecision, ...] = field(default_factory=tuple)

    @property
    def created(self) -> int:
        return sum(d.created for d in self.decisions)

    @property
    def destroyed(self) -> tuple[InstanceId, ...]:
        return tuple(iid for d in self.decisions for iid in d.destroyed)

    def decision_for(self, kind: WorkloadKind) -> KindDecision | None:
        for d in self.decisions:
            if d.kind == kind:
                return d
        return None
