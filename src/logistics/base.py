"""
Base class for the logistics services.

Provides common functionality:
- Settings and shared lock manager
- Structured logging
- Locked sections with bounded busy retries
- Translation of collaborator outages into UnavailableError
"""

from collections.abc import Callable, Hashable
from typing import Any, Optional, TypeVar

import structlog

from src.core.config import LogisticsSettings, get_config
from src.core.errors import UnavailableError
from src.core.locking import KeyedLockManager, call_with_retry

T = TypeVar("T")


class BaseService:
    """
    Base class for the ledger, planner, scheduler, reconciler and eligibility gate.

    Services that must serialise against each other (the scheduler and the
    reconciler on a route, everything on a stock record) have to share one
    KeyedLockManager; build_logistics_core() wires that up.
    """

    def __init__(
        self,
        service_name: str,
        settings: Optional[LogisticsSettings] = None,
        locks: Optional[KeyedLockManager] = None,
        logger: Optional[structlog.BoundLogger] = None,
    ) -> None:
        self.service_name = service_name
        self.settings = settings or get_config().get_logistics_settings()
        self.logger = logger or structlog.get_logger(service=service_name)
        self.locks = locks or KeyedLockManager(timeout_seconds=self.settings.lock_timeout_seconds)

    def _locked(self, operation: str, keys: list[Hashable], func: Callable[[], T]) -> T:
        """Run func while holding keys, retrying lock contention per the retry policy."""

        def attempt() -> T:
            with self.locks.hold(*keys):
                return func()

        return call_with_retry(attempt, self.settings.retry, self.logger, operation)

    def _call_external(self, dependency: str, func: Callable[..., T], *args: Any) -> T:
        """Call a collaborator, surfacing connectivity failures as UnavailableError."""
        try:
            return func(*args)
        except UnavailableError:
            raise
        except (ConnectionError, TimeoutError) as e:
            self.logger.warning("external_dependency_unavailable", dependency=dependency, error=str(e))
            raise UnavailableError(f"{dependency} is unavailable: {e}", dependency=dependency) from e

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(service_name='{self.service_name}')"
