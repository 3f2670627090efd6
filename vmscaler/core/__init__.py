from vmscaler.core.exceptions import (
    ConfigurationError,
    InvariantViolation,
    ProvisioningError,
    VmscalerError,
)

__all__ = [
    "ConfigurationError",
    "InvariantViolation",
    "ProvisioningError",
    "VmscalerError",
]
