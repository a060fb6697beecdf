"""
hive.infrastructure.logging - Structured Logging Setup
========================================================

Every HIVE module logs through structlog with a module-level
``logger = structlog.get_logger()`` and binds its component name
(``logger.bind(component="router")``). This module configures where those
events go: stdlib logging on stdout, rendered either for humans (console)
or for log aggregators (JSON).

Usage:
    >>> configure_logging(level="DEBUG", fmt="console")
    >>> structlog.get_logger().info("router_decision", next_agent="Planner")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def configure_logging(
    level: str = "INFO",
    fmt: str = "console",
    service_name: str = "hive",
) -> None:
    """Configure stdlib logging and structlog processors.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...).
        fmt: "json" for JSON lines, anything else for the console renderer.
        service_name: Bound into every event as ``service``.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)
