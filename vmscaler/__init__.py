"""vmscaler - Right-size pools of worker instances from observed utilization.

Example:

    from vmscaler import InMemoryLifecycle, ScalingDecisionEngine, UtilizationTable

    lifecycle = InMemoryLifecycle(kinds=["batch"])
    utilization = UtilizationTable()
    engine = ScalingDecisionEngine(lifecycle, utilization)

    report = engine.tick(0.0)   # cold start: one "batch" instance requested
"""

# Data model and collaborator protocols
from vmscaler.api import (
    Instance,
    InstanceId,
    InstanceLifecycle,
    InstanceProvider,
    KindDecision,
    KindOutcome,
    Pool,
    TickReport,
    UtilizationSource,
    WorkloadKind,
)

# Configuration
from vmscaler.config import (
    DEFAULT_GROWTH_BANDS,
    GrowthBand,
    ScalingConfig,
    load_config,
    resolve_scaling_config,
)

# Errors
from vmscaler.core.exceptions import (
    ConfigurationError,
    InvariantViolation,
    ProvisioningError,
    VmscalerError,
)

# Decision engine
from vmscaler.engine import ScalingDecisionEngine
from vmscaler.hysteresis import IdleHysteresisTracker

# Collaborators
from vmscaler.lifecycle import InMemoryLifecycle, ProviderLifecycle
from vmscaler.utilization import TrailingWindowUtilization, UtilizationTable

# Logging
from vmscaler.observability.logging import LogConfig

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DEFAULT_GROWTH_BANDS",
    "GrowthBand",
    "IdleHysteresisTracker",
    "InMemoryLifecycle",
    "Instance",
    "InstanceId",
    "InstanceLifecycle",
    "InstanceProvider",
    "InvariantViolation",
    "KindDecision",
    "KindOutcome",
    "LogConfig",
    "Pool",
    "ProviderLifecycle",
    "ProvisioningError",
    "ScalingConfig",
    "ScalingDecisionEngine",
    "TickReport",
    "TrailingWindowUtilization",
    "UtilizationSource",
    "UtilizationTable",
    "VmscalerError",
    "WorkloadKind",
    "load_config",
    "resolve_scaling_config",
]
