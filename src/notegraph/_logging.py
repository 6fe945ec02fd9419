"""Logging configuration for notegraph.

Usage in other modules:
    import logging
    log = logging.getLogger(__name__)

    log.debug("Per-note detail (skipped files, malformed filters)")
    log.info("Operational events (vault connected, graph built)")
    log.warning("Unexpected but handled situation")

The log level can be configured via the NOTEGRAPH_LOG_LEVEL environment variable
(DEBUG, INFO, WARNING, ERROR). INFO is the default.
"""

import logging
import os
import sys


def configure_logging() -> None:
    """Configure logging for the notegraph package.

    Call this once at application startup (cli.py or server.py).
    Subsequent calls are no-ops.
    """
    root_logger = logging.getLogger("notegraph")

    if root_logger.handlers:
        return

    level_name = os.environ.get("NOTEGRAPH_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    # stderr keeps stdout clean for JSON output and the MCP stdio transport
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="[%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    root_logger.propagate = False
