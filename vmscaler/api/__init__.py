from vmscaler.api.model import (
    Instance,
    InstanceId,
    KindDecision,
    KindOutcome,
    Pool,
    TickReport,
    WorkloadKind,
)
from vmscaler.api.protocols import InstanceLifecycle, InstanceProvider, UtilizationSource

__all__ = [
    "Instance",
    "InstanceId",
    "InstanceLifecycle",
    "InstanceProvider",
    "KindDecision",
    "KindOutcome",
    "Pool",
    "TickReport",
    "UtilizationSource",
    "WorkloadKind",
]
