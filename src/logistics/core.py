"""
Wiring for the logistics services.

All services share one lock manager and one settings object, which is what
makes route locks in the scheduler and the reconciler exclude each other.
"""

from typing import Optional

import structlog

from src.core.config import LogisticsSettings, get_config
from src.core.locking import KeyedLockManager
from src.data.memory import (
    InMemoryDonationRepository,
    InMemoryProductCatalog,
    InMemoryRouteRepository,
    InMemorySkillDirectory,
    InMemoryStockRepository,
    InMemoryTruckDirectory,
)
from src.data.repositories import (
    DonationRepository,
    ProductCatalog,
    RouteRepository,
    SkillDirectory,
    StockRepository,
    TruckDirectory,
)
from src.logistics.capacity import CapacityPlanner
from src.logistics.eligibility import EligibilityGate
from src.logistics.reconciler import DonationReconciler
from src.logistics.scheduler import RouteScheduler
from src.logistics.stock_ledger import StockLedger


class LogisticsCore:
    """The wired set of logistics services."""

    def __init__(
        self,
        ledger: StockLedger,
        capacity: CapacityPlanner,
        scheduler: RouteScheduler,
        reconciler: DonationReconciler,
        eligibility: EligibilityGate,
        locks: KeyedLockManager,
        settings: LogisticsSettings,
    ) -> None:
        self.ledger = ledger
        self.capacity = capacity
        self.scheduler = scheduler
        self.reconciler = reconciler
        self.eligibility = eligibility
        self.locks = locks
        self.settings = settings


def build_logistics_core(
    trucks: Optional[TruckDirectory] = None,
    skills: Optional[SkillDirectory] = None,
    products: Optional[ProductCatalog] = None,
    routes: Optional[RouteRepository] = None,
    stocks: Optional[StockRepository] = None,
    donations: Optional[DonationRepository] = None,
    settings: Optional[LogisticsSettings] = None,
    logger: Optional[structlog.BoundLogger] = None,
) -> LogisticsCore:
    """
    Build every service around shared locks and settings.

    Any repository or directory left out is replaced by its in-memory implementation.

    Returns:
        LogisticsCore with ledger, capacity planner, scheduler, reconciler and eligibility gate
    """
    settings = settings or get_config().get_logistics_settings()
    locks = KeyedLockManager(timeout_seconds=settings.lock_timeout_seconds)
    trucks = trucks or InMemoryTruckDirectory()
    skills = skills or InMemorySkillDirectory()
    products = products or InMemoryProductCatalog()
    routes = routes or InMemoryRouteRepository()
    stocks = stocks or InMemoryStockRepository()
    donations = donations or InMemoryDonationRepository()

    shared = {"settings": settings, "locks": locks}
    if logger is not None:
        shared["logger"] = logger

    ledger = StockLedger(stocks, **shared)
    capacity = CapacityPlanner(routes, trucks, **shared)
    eligibility = EligibilityGate(skills, **shared)
    reconciler = DonationReconciler(donations, routes, ledger, products, **shared)
    scheduler = RouteScheduler(
        routes,
        ledger,
        capacity,
        reconciler,
        products,
        eligibility=eligibility,
        **shared,
    )

    return LogisticsCore(
        ledger=ledger,
        capacity=capacity,
        scheduler=scheduler,
        reconciler=reconciler,
        eligibility=eligibility,
        locks=locks,
        settings=settings,
    )
