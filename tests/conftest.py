"""
Test configuration - puts the repo root on sys.path and provides a wired
logistics core over in-memory repositories.

Fleet used by the fixtures:
- truck 1: capacity 10
- truck 2: capacity 15
- truck 3: capacity 20, condition 4 (worn)
- truck 4: capacity 5
"""

import sys
from datetime import date
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.core.config import LogisticsSettings, RetryPolicy  # noqa: E402
from src.data.memory import (  # noqa: E402
    InMemoryDonationRepository,
    InMemoryProductCatalog,
    InMemoryRouteRepository,
    InMemorySkillDirectory,
    InMemoryStockRepository,
    InMemoryTruckDirectory,
)
from src.data.models import Truck, UserSkill  # noqa: E402
from src.logistics import build_logistics_core  # noqa: E402

ROUTE_DATE = date(2023, 7, 1)
DRIVING_LICENCE = 1


def make_settings(lock_timeout_seconds: float = 1.0, max_attempts: int = 2) -> LogisticsSettings:
    return LogisticsSettings(
        intake_zone="intake",
        lock_timeout_seconds=lock_timeout_seconds,
        retry=RetryPolicy(max_attempts=max_attempts, base_delay_seconds=0.0, max_delay_seconds=0.0),
    )


def make_fleet() -> InMemoryTruckDirectory:
    return InMemoryTruckDirectory(
        [
            Truck(truck_id=1, registration="ABC123", capacity=10, condition_code=2, model="Renault"),
            Truck(truck_id=2, registration="DEF456", capacity=15, condition_code=1, model="Mercedes"),
            Truck(truck_id=3, registration="GHI789", capacity=20, condition_code=4, model="Iveco"),
            Truck(truck_id=4, registration="JKL012", capacity=5, condition_code=3, model="Volvo"),
        ]
    )


def make_skills() -> InMemorySkillDirectory:
    return InMemorySkillDirectory(
        user_skills=[
            UserSkill(user_id=1, skill_id=DRIVING_LICENCE, validation_date=date(2023, 1, 1)),
            UserSkill(user_id=1, skill_id=2, validation_date=date(2023, 2, 1)),
            UserSkill(user_id=2, skill_id=3, validation_date=date(2023, 3, 1)),
            UserSkill(user_id=3, skill_id=DRIVING_LICENCE, validation_date=None),
        ],
        category_skills={10: {DRIVING_LICENCE}, 20: {2, 3}},
    )


def make_core(**overrides):
    """Build a core with the standard fleet, products 1-5 and skills."""
    parts = {
        "trucks": make_fleet(),
        "skills": make_skills(),
        "products": InMemoryProductCatalog([1, 2, 3, 4, 5]),
        "routes": InMemoryRouteRepository(),
        "stocks": InMemoryStockRepository(),
        "donations": InMemoryDonationRepository(),
        "settings": make_settings(),
    }
    parts.update(overrides)
    return build_logistics_core(**parts)


@pytest.fixture
def core():
    return make_core()


@pytest.fixture
def scheduler(core):
    return core.scheduler


@pytest.fixture
def ledger(core):
    return core.ledger


@pytest.fixture
def reconciler(core):
    return core.reconciler


@pytest.fixture
def distribute_route(scheduler):
    """Planned distribution route on truck 1 (capacity 10) with one destination."""
    route = scheduler.create_route(ROUTE_DATE, "distribute", truck_id=1, user_id=1)
    destination = scheduler.add_destination(route.route_id, address_id=1, destination_type="distribute")
    return route, destination


@pytest.fixture
def collect_route(scheduler):
    """Planned collection route on truck 2 (capacity 15) with one destination."""
    route = scheduler.create_route(ROUTE_DATE, "collect", truck_id=2, user_id=2)
    destination = scheduler.add_destination(route.route_id, address_id=2, destination_type="collect")
    return route, destination
