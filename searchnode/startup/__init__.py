"""Startup bootstrap checks."""

from searchnode.startup.preflight import (
    BootstrapCheckError,
    BootstrapConfigurationError,
    GateReport,
    check,
    run_checks,
)

__all__ = [
    "BootstrapCheckError",
    "BootstrapConfigurationError",
    "GateReport",
    "check",
    "run_checks",
]
