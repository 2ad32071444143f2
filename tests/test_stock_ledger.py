"""
Tests for the stock ledger: reservations, commits, releases and credits.
"""

import pytest

from src.core.errors import (
    ErrorCode,
    InsufficientStockError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from src.data.models import ReservationStatus


def test_unknown_pair_has_nothing_available(ledger):
    assert ledger.get_available(1, "A") == 0
    assert ledger.stock_levels(1) == []


def test_credit_increases_on_hand(ledger):
    entry = ledger.credit(1, "A", 20)

    assert entry.on_hand == 20
    assert ledger.get_available(1, "A") == 20


@pytest.mark.parametrize("quantity", [0, -3])
def test_credit_rejects_non_positive_quantity(ledger, quantity):
    with pytest.raises(InvalidArgumentError) as exc:
        ledger.credit(1, "A", quantity)
    assert exc.value.code == ErrorCode.INVALID_ARGUMENT
    assert ledger.get_available(1, "A") == 0


def test_reserve_holds_without_touching_on_hand(ledger):
    ledger.credit(1, "A", 20)

    reservation = ledger.reserve(1, "A", 15)

    entry = ledger.get_entry(1, "A")
    assert reservation.status == ReservationStatus.HELD
    assert entry.on_hand == 20
    assert entry.reserved == 15
    assert entry.available == 5


def test_reserve_beyond_available_fails_without_side_effects(ledger):
    ledger.credit(1, "A", 20)
    ledger.reserve(1, "A", 15)

    with pytest.raises(InsufficientStockError) as exc:
        ledger.reserve(1, "A", 8)

    assert exc.value.available == 5
    assert exc.value.requested == 8
    assert ledger.get_entry(1, "A").reserved == 15


def test_reserve_rejects_non_positive_quantity(ledger):
    ledger.credit(1, "A", 5)
    with pytest.raises(InvalidArgumentError):
        ledger.reserve(1, "A", 0)


def test_commit_decrements_on_hand_and_is_idempotent(ledger):
    ledger.credit(1, "A", 20)
    reservation = ledger.reserve(1, "A", 6)

    first = ledger.commit(reservation.handle_id)
    second = ledger.commit(reservation.handle_id)

    entry = ledger.get_entry(1, "A")
    assert first.status == second.status == ReservationStatus.COMMITTED
    assert entry.on_hand == 14
    assert entry.reserved == 0


def test_release_restores_availability_and_is_idempotent(ledger):
    ledger.credit(1, "A", 20)
    reservation = ledger.reserve(1, "A", 6)

    ledger.release(reservation.handle_id)
    ledger.release(reservation.handle_id)

    entry = ledger.get_entry(1, "A")
    assert ledger.get_reservation(reservation.handle_id).status == ReservationStatus.RELEASED
    assert entry.on_hand == 20
    assert entry.available == 20


def test_committed_reservation_cannot_be_released(ledger):
    ledger.credit(1, "A", 10)
    reservation = ledger.reserve(1, "A", 4)
    ledger.commit(reservation.handle_id)

    with pytest.raises(InvalidStateError):
        ledger.release(reservation.handle_id)
    assert ledger.get_entry(1, "A").on_hand == 6


def test_released_reservation_cannot_be_committed(ledger):
    ledger.credit(1, "A", 10)
    reservation = ledger.reserve(1, "A", 4)
    ledger.release(reservation.handle_id)

    with pytest.raises(InvalidStateError):
        ledger.commit(reservation.handle_id)
    assert ledger.get_entry(1, "A").on_hand == 10


def test_unknown_handle_is_not_found(ledger):
    with pytest.raises(NotFoundError):
        ledger.commit("missing")
    with pytest.raises(NotFoundError):
        ledger.release("missing")


def test_reduce_gives_back_part_of_a_reservation(ledger):
    ledger.credit(1, "A", 10)
    reservation = ledger.reserve(1, "A", 6)

    reduced = ledger.reduce(reservation.handle_id, 4)

    assert reduced.quantity == 2
    assert reduced.status == ReservationStatus.HELD
    assert ledger.get_available(1, "A") == 8


def test_reduce_by_full_quantity_releases(ledger):
    ledger.credit(1, "A", 10)
    reservation = ledger.reserve(1, "A", 6)

    reduced = ledger.reduce(reservation.handle_id, 6)

    assert reduced.status == ReservationStatus.RELEASED
    assert ledger.get_available(1, "A") == 10


def test_reduce_more_than_held_is_rejected(ledger):
    ledger.credit(1, "A", 10)
    reservation = ledger.reserve(1, "A", 3)

    with pytest.raises(InvalidArgumentError):
        ledger.reduce(reservation.handle_id, 4)
    assert ledger.get_available(1, "A") == 7


def test_zones_are_independent_and_listed_in_order(ledger):
    ledger.credit(1, "B", 5)
    ledger.credit(1, "A", 3)
    ledger.credit(2, "A", 9)
    ledger.reserve(1, "A", 3)

    assert [e.zone for e in ledger.stock_levels(1)] == ["A", "B"]
    assert ledger.zones_for(1) == ["B"]
    assert ledger.get_available(2, "A") == 9
