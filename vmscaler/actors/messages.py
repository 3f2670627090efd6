"""Messages understood by the autoscaler actor.

The ``AutoscalerMsg`` union IS the actor's public API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from casty import ActorRef

if TYPE_CHECKING:
    from vmscaler.api.model import InstanceId, TickReport


@dataclass(frozen=True, slots=True)
class TickNow:
    """Run a tick immediately, outside the regular cadence."""

    reply_to: ActorRef[TickCompleted] | None = None


@dataclass(frozen=True, slots=True)
class TickCompleted:
    report: TickReport


@dataclass(frozen=True, slots=True)
class GetScalingStatus:
    reply_to: ActorRef[ScalingStatus]


@dataclass(frozen=True, slots=True)
class ScalingStatus:
    ticks: int
    last_report: TickReport | None
    idle_counters: dict[InstanceId, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class StopAutoscaler:
    pass


@dataclass(frozen=True, slots=True)
class _ScaleTick:
    pass


type AutoscalerMsg = TickNow | GetScalingStatus | StopAutoscaler | _ScaleTick
