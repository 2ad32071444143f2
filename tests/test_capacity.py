"""
Tests for the capacity planner.
"""

import pytest

from src.core.errors import CapacityExceededError, NotFoundError, UnavailableError
from src.data.repositories import TruckDirectory
from tests.conftest import ROUTE_DATE, make_core


class OfflineTruckDirectory(TruckDirectory):
    def get_truck(self, truck_id):
        raise ConnectionError("fleet service unreachable")


def test_empty_route_has_full_headroom(core, distribute_route):
    route, _ = distribute_route

    assert core.capacity.route_load(route.route_id) == 0
    assert core.capacity.headroom(route) == 10


def test_load_sums_every_destination(core, scheduler, collect_route):
    route, first = collect_route
    second = scheduler.add_destination(route.route_id, address_id=3, destination_type="collect")
    scheduler.add_product(first.destination_id, product_id=1, quantity=4)
    scheduler.add_product(second.destination_id, product_id=2, quantity=6)

    check = core.capacity.check_capacity(route)

    assert check.current == 10
    assert check.limit == 15
    assert check.headroom == 5


def test_check_with_delta_at_the_limit_passes(core, scheduler, collect_route):
    route, destination = collect_route
    scheduler.add_product(destination.destination_id, product_id=1, quantity=10)

    assert core.capacity.check_capacity(route, delta=5).headroom == 0


def test_check_with_delta_over_the_limit_fails(core, scheduler, collect_route):
    route, destination = collect_route
    scheduler.add_product(destination.destination_id, product_id=1, quantity=10)

    with pytest.raises(CapacityExceededError) as exc:
        core.capacity.check_capacity(route, delta=6)

    assert exc.value.current == 16
    assert exc.value.limit == 15
    assert exc.value.to_dict()["code"] == "capacity_exceeded"


def test_check_against_another_truck(core, scheduler, collect_route):
    route, destination = collect_route
    scheduler.add_product(destination.destination_id, product_id=1, quantity=8)

    with pytest.raises(CapacityExceededError):
        core.capacity.check_capacity(route, truck=core.capacity.get_truck(4))


def test_unknown_truck_is_not_found(core):
    with pytest.raises(NotFoundError):
        core.capacity.get_truck(99)


def test_fleet_outage_is_unavailable():
    core = make_core(trucks=OfflineTruckDirectory())

    with pytest.raises(UnavailableError) as exc:
        core.scheduler.create_route(ROUTE_DATE, "distribute", truck_id=1, user_id=1)

    assert exc.value.retryable
    assert core.scheduler.list_routes() == []
