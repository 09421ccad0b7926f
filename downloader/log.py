"""
Logging setup: stdlib logging to stdout with structlog on top.
"""

import logging
import sys
from typing import Any, Dict

import structlog


def _resolve_level(level) -> int:
    """Accept a level name ("debug") or number (10, "10"); unknown names mean INFO."""
    if isinstance(level, int):
        return level
    level = str(level).strip()
    if level.isdigit():
        return int(level)
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(log_config: Dict[str, Any] = None):
    """Initialize logging from the ``logging`` section of the config."""
    log_config = log_config or {}
    level = _resolve_level(log_config.get('level', 'INFO'))

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )

    if log_config.get('renderer', 'console') == 'json':
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
