"""
structlog configuration shared by scripts and entry points.
"""

import logging
from typing import Optional

import structlog

from src.core.config import get_config


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog with ISO timestamps and log levels.

    Args:
        level: Minimum level name (defaults to LOG_LEVEL)
        json_output: Render JSON lines instead of console output (defaults to LOG_JSON)
    """
    env = get_config().env
    level_name = (level or env.log_level).upper()
    use_json = env.log_json if json_output is None else json_output

    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    renderer = structlog.processors.JSONRenderer() if use_json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
