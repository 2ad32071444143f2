"""
Property-based tests for core invariants using Hypothesis.

These tests drive the services with random operation sequences and check that
stock, capacity and booking invariants hold after every step.
"""

from datetime import date, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from src.core.errors import (
    CapacityExceededError,
    ConflictError,
    LogisticsError,
)
from src.data.models import ReservationStatus
from tests.conftest import ROUTE_DATE, make_core

ZONES = ["A", "B", "C"]

# ============================================================================
# Stock Ledger Invariants
# ============================================================================

ledger_steps = st.lists(
    st.one_of(
        st.tuples(st.just("credit"), st.sampled_from(ZONES), st.integers(1, 20)),
        st.tuples(st.just("reserve"), st.sampled_from(ZONES), st.integers(1, 20)),
        st.tuples(st.just("commit"), st.integers(0, 30)),
        st.tuples(st.just("release"), st.integers(0, 30)),
        st.tuples(st.just("reduce"), st.integers(0, 30), st.integers(1, 20)),
    ),
    max_size=40,
)


@given(ledger_steps)
@settings(max_examples=60, deadline=None)
def test_stock_never_goes_negative(steps):
    """on_hand and available stay non-negative whatever is attempted."""
    ledger = make_core().ledger
    handles: list[str] = []

    for step in steps:
        try:
            if step[0] == "credit":
                ledger.credit(1, step[1], step[2])
            elif step[0] == "reserve":
                handles.append(ledger.reserve(1, step[1], step[2]).handle_id)
            elif handles and step[0] == "commit":
                ledger.commit(handles[step[1] % len(handles)])
            elif handles and step[0] == "release":
                ledger.release(handles[step[1] % len(handles)])
            elif handles and step[0] == "reduce":
                ledger.reduce(handles[step[1] % len(handles)], step[2])
        except LogisticsError:
            pass

        for zone in ZONES:
            entry = ledger.get_entry(1, zone)
            assert entry.on_hand >= 0
            assert entry.available >= 0


@given(ledger_steps)
@settings(max_examples=60, deadline=None)
def test_reservations_are_conserved(steps):
    """reserved always equals the sum of held reservations; on_hand tracks credits minus commits."""
    ledger = make_core().ledger
    handles: list[str] = []
    credited = {zone: 0 for zone in ZONES}

    for step in steps:
        try:
            if step[0] == "credit":
                ledger.credit(1, step[1], step[2])
                credited[step[1]] += step[2]
            elif step[0] == "reserve":
                handles.append(ledger.reserve(1, step[1], step[2]).handle_id)
            elif handles and step[0] == "commit":
                ledger.commit(handles[step[1] % len(handles)])
            elif handles and step[0] == "release":
                ledger.release(handles[step[1] % len(handles)])
            elif handles and step[0] == "reduce":
                ledger.reduce(handles[step[1] % len(handles)], step[2])
        except LogisticsError:
            pass

    reservations = [ledger.get_reservation(h) for h in handles]
    for zone in ZONES:
        in_zone = [r for r in reservations if r.zone == zone]
        held = sum(r.quantity for r in in_zone if r.status == ReservationStatus.HELD)
        committed = sum(r.quantity for r in in_zone if r.status == ReservationStatus.COMMITTED)
        entry = ledger.get_entry(1, zone)
        assert entry.reserved == held
        assert entry.on_hand == credited[zone] - committed


@given(st.integers(1, 50), st.integers(1, 50), st.integers(1, 4))
@settings(max_examples=40, deadline=None)
def test_commit_and_release_are_idempotent(stock, quantity, repeats):
    """Repeating a settle never moves stock twice."""
    ledger = make_core().ledger
    ledger.credit(1, "A", stock)
    if quantity > stock:
        return
    committed = ledger.reserve(1, "A", quantity)
    for _ in range(repeats):
        ledger.commit(committed.handle_id)
    assert ledger.get_entry(1, "A").on_hand == stock - quantity

    if stock - quantity == 0:
        return
    released = ledger.reserve(1, "A", stock - quantity)
    for _ in range(repeats):
        ledger.release(released.handle_id)
    assert ledger.get_entry(1, "A").available == stock - quantity


# ============================================================================
# Capacity Invariants
# ============================================================================


@given(st.lists(st.integers(-6, 8).filter(lambda n: n != 0), max_size=25))
@settings(max_examples=60, deadline=None)
def test_route_load_never_exceeds_capacity(changes):
    """Adds (positive) and quantity updates (negative) never push a route over capacity."""
    core = make_core()
    core.ledger.credit(1, "A", 40)
    core.ledger.credit(1, "B", 40)
    route = core.scheduler.create_route(ROUTE_DATE, "distribute", truck_id=1, user_id=1)
    stop = core.scheduler.add_destination(route.route_id, address_id=1, destination_type="distribute")

    for change in changes:
        rows = core.scheduler.list_products(route.route_id)
        try:
            if change > 0 or not rows:
                core.scheduler.add_product(stop.destination_id, product_id=1, quantity=abs(change))
            else:
                row = rows[-1]
                if row.quantity + change <= 0:
                    core.scheduler.remove_product(row.destination_product_id)
                else:
                    core.scheduler.update_product_quantity(row.destination_product_id, row.quantity + change)
        except CapacityExceededError:
            pass

        load = core.capacity.route_load(route.route_id)
        assert load <= 10
        reserved = sum(core.ledger.get_entry(1, zone).reserved for zone in ("A", "B"))
        assert reserved == load


# ============================================================================
# Booking Invariants
# ============================================================================


@given(
    st.lists(
        st.tuples(st.integers(0, 2), st.integers(1, 4), st.integers(1, 3), st.booleans()),
        max_size=20,
    )
)
@settings(max_examples=60, deadline=None)
def test_no_double_booking(requests):
    """At most one active route per truck per day and per driver per day."""
    core = make_core()

    for day_offset, truck_id, user_id, cancel in requests:
        day = ROUTE_DATE + timedelta(days=day_offset)
        try:
            route = core.scheduler.create_route(day, "collect", truck_id=truck_id, user_id=user_id)
        except ConflictError:
            continue
        if cancel:
            core.scheduler.cancel(route.route_id)

    active = [r for r in core.scheduler.list_routes() if r.is_active]
    trucks = [(r.route_date, r.truck_id) for r in active]
    drivers = [(r.route_date, r.user_id) for r in active]
    assert len(trucks) == len(set(trucks))
    assert len(drivers) == len(set(drivers))


@given(st.lists(st.integers(1, 9), min_size=1, max_size=6), st.dates(min_value=date(2023, 1, 1), max_value=date(2023, 12, 31)))
@settings(max_examples=30, deadline=None)
def test_collected_donations_match_intake_credit(quantities, completed_on):
    """Completing a collection route credits exactly the linked donations to the intake zone."""
    core = make_core()
    route = core.scheduler.create_route(ROUTE_DATE, "collect", truck_id=2, user_id=2)
    for quantity in quantities:
        donation = core.reconciler.register_donation(product_id=3, quantity=quantity)
        core.reconciler.link_donation(donation.donation_id, route.route_id)
    core.scheduler.start(route.route_id)

    result = core.scheduler.complete(route.route_id, completed_on=completed_on)

    assert core.ledger.get_entry(3, "intake").on_hand == sum(quantities)
    assert len(result.reconciled_donation_ids) == len(quantities)
    assert all(d.collection_date == completed_on for d in core.reconciler.list_for_route(route.route_id))
