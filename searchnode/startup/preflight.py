"""
Bootstrap Preflight: Production Readiness Gate

Runs the bootstrap checks before the node is allowed to serve:
  1. Heap size parity
  2. Max file descriptors
  3. Memory lock (when bootstrap.mlockall is set)
  4. Max number of threads (Linux)
  5. Max size virtual memory (Linux, macOS)
  6. discovery.zen.minimum_master_nodes is set

Enforcement depends on the network bindings:
  loopback/link-local only  → failed checks are logged as warnings
  any routable address      → failed checks refuse service start

A probe that fails outright is a configuration error and is fatal in
both modes.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import List, Sequence

from searchnode.config.settings import Settings
from searchnode.network.addresses import BoundTransportAddress
from searchnode.startup.catalog import build_checks
from searchnode.startup.checks import Check
from searchnode.startup.enforcement import enforce_limits
from searchnode.startup.probes import ProbeError

logger = logging.getLogger("searchnode.bootstrap")

FAILED_MESSAGE = "bootstrap checks failed"


class BootstrapCheckError(RuntimeError):
    """Raised when enforced bootstrap checks fail; the node must NOT start.

    causes holds one message per failed check, in check order.
    """

    def __init__(self, message: str, causes: Sequence[str] = ()):
        self.message = message
        self.causes: List[str] = list(causes)
        super().__init__("\n".join([message] + self.causes))


class BootstrapConfigurationError(BootstrapCheckError):
    """Raised when a check cannot be evaluated at all. Fatal in every mode."""
    pass


@dataclass
class GateReport:
    enforced: bool
    checks_run: int
    violations: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return len(self.violations) == 0


class _NodeLogger(logging.LoggerAdapter):
    """Prefixes every record with the node name."""

    def process(self, msg, kwargs):
        return f"[{self.extra['node_name']}] {msg}", kwargs


def get_node_logger(node_name: str) -> logging.LoggerAdapter:
    return _NodeLogger(logger, {"node_name": node_name})


# =========================================================================
# GATE RUNNER
# =========================================================================

def _collect_violations(checks: Sequence[Check]) -> List[str]:
    errors = []
    for check in checks:
        name = type(check).__name__
        try:
            failed = check.evaluate()
            if failed:
                errors.append(check.describe())
        except (OSError, ProbeError) as e:
            raise BootstrapConfigurationError(
                FAILED_MESSAGE,
                [f"unable to evaluate bootstrap check [{name}]: {e}"],
            ) from e
    return errors


def run_checks(enforce: bool, checks: Sequence[Check], node_name: str) -> GateReport:
    """Execute the checks; fail the node if enforce is True, otherwise warn.

    Raises BootstrapCheckError if any check fails while enforced.
    """
    node_logger = get_node_logger(node_name)
    errors = _collect_violations(checks)
    report = GateReport(enforced=enforce, checks_run=len(checks), violations=errors)

    if not errors:
        node_logger.debug(f"{len(checks)} bootstrap checks passed")
        return report

    if enforce:
        raise BootstrapCheckError(FAILED_MESSAGE, errors)

    for message in errors:
        node_logger.warning(message)
    return report


def check(settings: Settings, bound: BoundTransportAddress) -> GateReport:
    """Check the current limits against the production requirements.

    Builds the catalog for this host, decides enforcement from the network
    bindings, and runs the gate.
    """
    return run_checks(enforce_limits(bound), build_checks(settings), settings.node_name)


# =========================================================================
# FATAL ABORT
# =========================================================================

def abort_startup(error: BootstrapCheckError, exit_code: int = 1) -> None:
    """Log every cause of a fatal bootstrap failure and exit the process."""
    logger.critical(error.message)
    for cause in error.causes:
        logger.critical(f"  • {cause}")
    sys.exit(exit_code)


# =========================================================================
# SELF-TEST
# =========================================================================

def _self_test() -> int:
    """Run the gate against the environment settings and print the outcome."""
    from searchnode.network.addresses import resolve_bound_address

    logging.basicConfig(level=logging.INFO,
                        format="%(levelname)s: %(message)s")

    settings = Settings.load()
    bound = resolve_bound_address(settings)
    try:
        report = check(settings, bound)
    except BootstrapCheckError as e:
        print(f"\nBootstrap FATAL: {e}")
        return 1

    mode = "enforced" if report.enforced else "advisory"
    print(f"\nBootstrap result ({mode}): {'PASS' if report.passed else 'WARN'}")
    for v in report.violations:
        print(f"  ⚠ {v}")
    return 0


if __name__ == "__main__":
    sys.exit(_self_test())
