"""Kopf entry point for the CloudStack cluster operator.

Run with ``kopf run src/main.py``.
"""

import logging
import sys
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from constants import API_GROUP, FINALIZER
from metrics import init_metrics, set_operator_info
from state import state

# Import resource handlers (registers with Kopf)
import handlers  # noqa: F401

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings on startup."""
    config = state.get_config()

    # Reduce logging noise
    settings.posting.level = logging.WARNING
    settings.persistence.finalizer = FINALIZER
    if config.watch_namespace:
        settings.watching.namespaces = [config.watch_namespace]
    else:
        settings.watching.clusterwide = True

    try:
        start_http_server(config.metrics_port)
        logger.info("Prometheus metrics server started on port %d", config.metrics_port)
    except OSError as e:
        logger.warning(
            "Failed to start metrics server on port %d: %s", config.metrics_port, e
        )

    init_metrics()
    set_operator_info(OPERATOR_VERSION, API_GROUP)

    logger.info("CloudStack cluster operator started (version %s)", OPERATOR_VERSION)


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("CloudStack cluster operator shutting down")
    state.close()


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = state.get_config()
    kopf.run(
        clusterwide=not config.watch_namespace,
        namespaces=[config.watch_namespace] if config.watch_namespace else [],
    )


if __name__ == "__main__":
    main()
