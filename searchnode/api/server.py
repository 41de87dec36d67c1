"""
searchnode API Server

The node refuses to serve until the bootstrap gate has passed. The gate
runs in the app lifespan, so a fatal bootstrap failure propagates out of
startup and the server never accepts a request.

Endpoints:
  GET /            node banner
  GET /_bootstrap  outcome of the bootstrap checks for this process
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from pydantic import BaseModel

from searchnode.config.settings import (
    BOOTSTRAP_MLOCKALL,
    HTTP_PORT,
    NETWORK_BIND_HOST,
    NETWORK_HOST,
    Settings,
    SettingsError,
)
from searchnode.network.addresses import resolve_bound_address, resolve_host
from searchnode.startup import probes
from searchnode.startup.preflight import (
    BootstrapCheckError,
    BootstrapConfigurationError,
    GateReport,
    abort_startup,
    check,
)

logger = logging.getLogger("searchnode.server")

VERSION = "0.1.0"

INVALID_CONFIGURATION_MESSAGE = "invalid node configuration"


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class NodeInfo(BaseModel):
    name: str
    version: str
    tagline: str = "You Know, for Search"


class BootstrapStatus(BaseModel):
    enforced: bool
    passed: bool
    checks_run: int
    violations: List[str]


# =============================================================================
# BOOTSTRAP
# =============================================================================

def bootstrap(settings: Settings) -> GateReport:
    """Prepare the process and run the bootstrap gate.

    Raises BootstrapCheckError when enforced checks fail.
    """
    if settings.get_bool(BOOTSTRAP_MLOCKALL, False):
        probes.try_mlockall()

    bound = resolve_bound_address(settings)
    report = check(settings, bound)
    logger.info(
        f"[{settings.node_name}] bootstrap complete: {report.checks_run} checks, "
        f"{len(report.violations)} warning(s), enforced={report.enforced}"
    )
    return report


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the node app. Settings default to the SEARCHNODE_* environment."""

    @asynccontextmanager
    async def lifespan(app):
        # --- STARTUP ---
        node_settings = app.state.settings
        if app.state.bootstrap_report is None:
            app.state.bootstrap_report = bootstrap(node_settings)
        logger.info(f"[{node_settings.node_name}] started")
        yield
        # --- SHUTDOWN ---
        logger.info(f"[{node_settings.node_name}] stopped")

    app = FastAPI(
        title="searchnode",
        description="Search node with production bootstrap checks",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings if settings is not None else Settings.load()
    app.state.bootstrap_report = None

    @app.get("/", response_model=NodeInfo)
    async def root(request: Request):
        return NodeInfo(name=request.app.state.settings.node_name, version=VERSION)

    @app.get("/_bootstrap", response_model=BootstrapStatus)
    async def bootstrap_status(request: Request):
        report: GateReport = request.app.state.bootstrap_report
        return BootstrapStatus(
            enforced=report.enforced,
            passed=report.passed,
            checks_run=report.checks_run,
            violations=report.violations,
        )

    return app


def main() -> int:
    logging.basicConfig(level=logging.INFO,
                        format="%(levelname)s: %(message)s")

    settings = Settings.load()
    try:
        report = bootstrap(settings)
    except BootstrapCheckError as e:
        abort_startup(e)
        return 1
    except SettingsError as e:
        abort_startup(BootstrapConfigurationError(INVALID_CONFIGURATION_MESSAGE, [str(e)]))
        return 1

    app = create_app(settings)
    app.state.bootstrap_report = report

    import uvicorn
    bind_host = settings.get(NETWORK_BIND_HOST) or settings.get(NETWORK_HOST) or "_local_"
    host = resolve_host(bind_host)[0]
    uvicorn.run(app, host=host, port=settings.get_int(HTTP_PORT, 9200))
    return 0


if __name__ == "__main__":
    sys.exit(main())
