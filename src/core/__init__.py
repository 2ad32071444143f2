"""
Core infrastructure for the logistics platform.

This module provides:
- Config: Configuration management
- Errors: Typed failure taxonomy
- Locking: Per-resource locks and busy retries
- Logging: structlog setup
"""

from .config import ConfigManager, LogisticsSettings, RetryPolicy, get_config
from .errors import ErrorCode, LogisticsError
from .log_setup import configure_logging

__all__ = [
    "ConfigManager",
    "LogisticsSettings",
    "RetryPolicy",
    "get_config",
    "ErrorCode",
    "LogisticsError",
    "configure_logging",
]
