"""Logging configuration for org-outline."""

import os
import sys

from loguru import logger


def configure_logging(*, verbose: bool = False) -> None:
    """Configure loguru for the CLI and the MCP server.

    ``ORG_OUTLINE_LOG_LEVEL`` overrides the level. Verbose output names the
    thread, since parses run on the ``org-parse`` worker pool.
    """
    logger.remove()
    level = os.environ.get("ORG_OUTLINE_LOG_LEVEL") or ("DEBUG" if verbose else "INFO")
    fmt = "{level.icon} [{thread.name}] {message}" if verbose else "{level.icon} {message}"
    logger.add(sys.stderr, level=level.upper(), format=fmt)
