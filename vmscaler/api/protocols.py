"""Protocol definitions for the collaborators of the decision engine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from vmscaler.api.model import Instance, WorkloadKind

__all__ = [
    "InstanceLifecycle",
    "InstanceProvider",
    "UtilizationSource",
]


@runtime_checkable
class InstanceLifecycle(Protocol):
    """Authoritative owner of the instances of every workload kind.

    Create and destroy requests are fire-and-forget: the engine never
    observes their result. A destroyed instance must be gone from
    ``pool_for`` by the time the next tick starts.
    """

    def kinds(self) -> Sequence[WorkloadKind]: ...
    def pool_for(self, kind: WorkloadKind) -> Sequence[Instance]: ...
    def request_create(self, kind: WorkloadKind) -> None: ...
    def request_destroy(self, instance: Instance) -> None: ...


@runtime_checkable
class UtilizationSource(Protocol):
    """Per-instance load figures consumed by the engine."""

    def hourly_utilization(self, instance: Instance) -> float:
        """Busy fraction over the trailing hour, in [0, 1]."""
        ...

    def is_busy_or_pending(self, instance: Instance) -> bool:
        """True if the instance has work in flight or queued."""
        ...


@runtime_checkable
class InstanceProvider(Protocol):
    """Async backend that actually provisions and terminates instances.

    Used by ``ProviderLifecycle`` to turn fire-and-forget requests into
    real infrastructure calls.
    """

    async def provision(self, kind: WorkloadKind) -> Instance: ...
    async def terminate(self, instance: Instance) -> None: ...
