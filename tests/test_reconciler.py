"""
Tests for donation linking and reconciliation on route completion.
"""

from datetime import date

import pytest

from src.core.errors import (
    ErrorCode,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    TypeMismatchError,
)
from src.data.memory import InMemoryDonationRepository
from src.data.models import RouteStatus
from tests.conftest import ROUTE_DATE, make_core


def test_register_donation_starts_pending(reconciler):
    donation = reconciler.register_donation(product_id=1, quantity=5, donor_user_id=4)

    assert donation.status == "pending"
    assert donation.route_id is None
    assert reconciler.list_pending() == [donation]
    assert reconciler.list_by_donor(4) == [donation]
    assert reconciler.list_by_product(1) == [donation]


def test_register_donation_validates_input(reconciler):
    with pytest.raises(InvalidArgumentError):
        reconciler.register_donation(product_id=1, quantity=0)
    with pytest.raises(NotFoundError):
        reconciler.register_donation(product_id=77, quantity=3)


def test_link_requires_a_collect_route(reconciler, distribute_route):
    route, _ = distribute_route
    donation = reconciler.register_donation(product_id=1, quantity=5)

    with pytest.raises(TypeMismatchError):
        reconciler.link_donation(donation.donation_id, route.route_id)
    assert reconciler.get_donation(donation.donation_id).route_id is None


def test_link_requires_an_unlinked_donation(scheduler, reconciler, collect_route):
    route, _ = collect_route
    other = scheduler.create_route(ROUTE_DATE, "collect", truck_id=3, user_id=3)
    donation = reconciler.register_donation(product_id=1, quantity=5)

    linked = reconciler.link_donation(donation.donation_id, route.route_id)
    assert linked.route_id == route.route_id

    with pytest.raises(InvalidStateError):
        reconciler.link_donation(donation.donation_id, other.route_id)


def test_link_to_unknown_route_is_not_found(reconciler):
    donation = reconciler.register_donation(product_id=1, quantity=5)

    with pytest.raises(NotFoundError):
        reconciler.link_donation(donation.donation_id, 404)


def test_unlink_returns_donation_to_unlinked(reconciler, collect_route):
    route, _ = collect_route
    donation = reconciler.register_donation(product_id=1, quantity=5)
    reconciler.link_donation(donation.donation_id, route.route_id)

    unlinked = reconciler.unlink_donation(donation.donation_id)

    assert unlinked.route_id is None
    assert reconciler.list_for_route(route.route_id) == []
    assert reconciler.list_pending(unlinked_only=True) == [unlinked]


def test_completion_scenario_credits_intake_zone(scheduler, reconciler, ledger, collect_route):
    route, _ = collect_route
    first = reconciler.register_donation(product_id=1, quantity=5)
    second = reconciler.register_donation(product_id=1, quantity=7)
    reconciler.link_donation(first.donation_id, route.route_id)
    reconciler.link_donation(second.donation_id, route.route_id)
    before = ledger.get_entry(1, "intake").on_hand
    scheduler.start(route.route_id)

    result = scheduler.complete(route.route_id, completed_on=date(2023, 7, 1))

    assert ledger.get_entry(1, "intake").on_hand == before + 12
    assert result.reconciled_donation_ids == [first.donation_id, second.donation_id]
    assert result.reconciliation_errors == []
    for donation_id in (first.donation_id, second.donation_id):
        donation = reconciler.get_donation(donation_id)
        assert donation.collected
        assert donation.collection_date == date(2023, 7, 1)


def test_bad_donation_is_recorded_and_skipped():
    donations = InMemoryDonationRepository()
    core = make_core(donations=donations)
    route = core.scheduler.create_route(ROUTE_DATE, "collect", truck_id=1, user_id=1)

    good = core.reconciler.register_donation(product_id=2, quantity=4)
    # Legacy record pointing at a product no longer in the catalog.
    bad = donations.create_donation(product_id=999, quantity=3, donor_user_id=None, donation_date=ROUTE_DATE)
    core.reconciler.link_donation(good.donation_id, route.route_id)
    core.reconciler.link_donation(bad.donation_id, route.route_id)
    core.scheduler.start(route.route_id)

    result = core.scheduler.complete(route.route_id)

    assert result.route.status == RouteStatus.COMPLETED
    assert result.reconciled_donation_ids == [good.donation_id]
    assert [(e.donation_id, e.code) for e in result.reconciliation_errors] == [(bad.donation_id, ErrorCode.NOT_FOUND)]
    assert core.reconciler.reconciliation_errors(route.route_id) == result.reconciliation_errors
    assert core.ledger.get_entry(2, "intake").on_hand == 4
    assert not core.reconciler.get_donation(bad.donation_id).collected


def test_cancel_returns_donations_to_pending(scheduler, reconciler, collect_route):
    route, _ = collect_route
    donation = reconciler.register_donation(product_id=1, quantity=5)
    reconciler.link_donation(donation.donation_id, route.route_id)
    scheduler.start(route.route_id)

    scheduler.cancel(route.route_id)

    donation = reconciler.get_donation(donation.donation_id)
    assert donation.route_id is None
    assert not donation.collected


def test_finished_route_accepts_no_donations(scheduler, reconciler, collect_route):
    route, _ = collect_route
    scheduler.start(route.route_id)
    scheduler.complete(route.route_id)
    donation = reconciler.register_donation(product_id=1, quantity=2)

    with pytest.raises(InvalidStateError):
        reconciler.link_donation(donation.donation_id, route.route_id)


def test_collected_donation_cannot_be_relinked(scheduler, reconciler, collect_route):
    route, _ = collect_route
    donation = reconciler.register_donation(product_id=1, quantity=2)
    reconciler.link_donation(donation.donation_id, route.route_id)
    scheduler.start(route.route_id)
    scheduler.complete(route.route_id)
    later = scheduler.create_route(date(2023, 7, 9), "collect", truck_id=2, user_id=2)

    with pytest.raises(InvalidStateError):
        reconciler.link_donation(donation.donation_id, later.route_id)
    with pytest.raises(InvalidStateError):
        reconciler.unlink_donation(donation.donation_id)


def test_release_route_unlinks_its_donations(reconciler, collect_route):
    route, _ = collect_route
    first = reconciler.register_donation(product_id=1, quantity=5)
    second = reconciler.register_donation(product_id=2, quantity=3)
    reconciler.link_donation(first.donation_id, route.route_id)
    reconciler.link_donation(second.donation_id, route.route_id)

    released = reconciler.release_route(route.route_id)

    assert [d.donation_id for d in released] == [first.donation_id, second.donation_id]
    assert all(d.route_id is None for d in released)
    assert reconciler.list_for_route(route.route_id) == []
    assert reconciler.release_route(route.route_id) == []
