"""Custom exception hierarchy for vmscaler.

All vmscaler-specific exceptions inherit from VmscalerError, enabling
users to catch all vmscaler exceptions with a single except clause.
"""

from __future__ import annotations


class VmscalerError(Exception):
    """Base exception for all vmscaler errors."""


class ConfigurationError(VmscalerError):
    """Raised for invalid configuration or missing required settings."""


class InvariantViolation(VmscalerError):
    """Raised when a collaborator hands the engine input it cannot trust.

    The decision engine does not validate-and-continue: a negative
    utilization or a kind vanishing mid-tick points at a bug elsewhere.
    """


class ProvisioningError(VmscalerError):
    """Raised when instance provisioning or termination fails."""

    def __init__(self, kind: str, reason: str = "unknown") -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"Provisioning failed for kind {kind!r}: {reason}")
