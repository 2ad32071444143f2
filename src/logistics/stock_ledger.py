"""
Stock Ledger - per-zone stock with reserve / commit / release / credit.

The ledger is the only writer of stock entries. Each operation runs under the
lock of its (product, zone) pair, so different pairs proceed in parallel while
the check-then-act on one pair is atomic.

Invariants kept after every operation:
- on_hand >= 0
- available = on_hand - reserved >= 0
- a reservation is committed or released at most once, never both
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from src.core.errors import (
    InsufficientStockError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from src.core.locking import stock_key
from src.data.models import Reservation, ReservationStatus, StockEntry
from src.data.repositories import StockRepository
from src.logistics.base import BaseService


class StockLedger(BaseService):
    """
    Stock Ledger for per-zone product quantities.

    Zone choice is left to callers; the ledger only answers for a single
    (product, zone) pair at a time.
    """

    def __init__(self, stocks: StockRepository, **kwargs: Any) -> None:
        """
        Initialize the stock ledger.

        Args:
            stocks: Repository holding stock entries and reservations
            **kwargs: settings / locks / logger forwarded to BaseService
        """
        super().__init__(service_name="stock_ledger", **kwargs)
        self.stocks = stocks

    # ------------------------------------------------------------------ queries

    def get_available(self, product_id: int, zone: str) -> int:
        """Unreserved quantity of a product in a zone (0 for unknown pairs)."""
        return self._entry(product_id, zone).available

    def get_entry(self, product_id: int, zone: str) -> StockEntry:
        return self._entry(product_id, zone)

    def stock_levels(self, product_id: int) -> list[StockEntry]:
        """All zones holding a record for the product, ordered by zone."""
        return sorted(self.stocks.list_entries(product_id), key=lambda e: e.zone)

    def zones_for(self, product_id: int) -> list[str]:
        """Zones with available stock for the product, in ascending order."""
        return [e.zone for e in self.stock_levels(product_id) if e.available > 0]

    def get_reservation(self, handle_id: str) -> Reservation:
        reservation = self.stocks.get_reservation(handle_id)
        if reservation is None:
            raise NotFoundError("Reservation", handle_id)
        return reservation

    # ---------------------------------------------------------------- mutations

    def reserve(self, product_id: int, zone: str, quantity: int) -> Reservation:
        """
        Hold quantity of a product in a zone.

        Args:
            product_id: Product to reserve
            zone: Storage zone to draw from
            quantity: Units to hold, must be positive

        Returns:
            The held Reservation (its handle_id is the reservation handle)

        Raises:
            InvalidArgumentError: If quantity is not positive
            InsufficientStockError: If quantity exceeds what is available; nothing changes
        """
        self._require_positive(quantity, "reserve")

        def _reserve() -> Reservation:
            entry = self._entry(product_id, zone)
            if quantity > entry.available:
                self.logger.info(
                    "stock_reservation_rejected",
                    product_id=product_id,
                    zone=zone,
                    requested=quantity,
                    available=entry.available,
                )
                raise InsufficientStockError(product_id, quantity, entry.available, zone)

            reservation = Reservation(
                handle_id=uuid4().hex,
                product_id=product_id,
                zone=zone,
                quantity=quantity,
            )
            self.stocks.save_entry(entry.model_copy(update={"reserved": entry.reserved + quantity}))
            self.stocks.save_reservation(reservation)
            self.logger.info(
                "stock_reserved",
                handle_id=reservation.handle_id,
                product_id=product_id,
                zone=zone,
                quantity=quantity,
            )
            return reservation

        return self._locked("reserve", [stock_key(product_id, zone)], _reserve)

    def commit(self, handle_id: str) -> Reservation:
        """
        Turn a reservation into a permanent decrement of on-hand stock.

        Committing an already committed handle is a no-op.

        Raises:
            NotFoundError: Unknown handle
            InvalidStateError: The handle was released
        """
        reservation = self.get_reservation(handle_id)

        def _commit() -> Reservation:
            current = self.get_reservation(handle_id)
            if current.status == ReservationStatus.COMMITTED:
                return current
            if current.status == ReservationStatus.RELEASED:
                raise InvalidStateError(
                    f"Reservation {handle_id} was released and cannot be committed",
                    handle_id=handle_id,
                )

            entry = self._entry(current.product_id, current.zone)
            self.stocks.save_entry(
                entry.model_copy(
                    update={
                        "on_hand": entry.on_hand - current.quantity,
                        "reserved": entry.reserved - current.quantity,
                    }
                )
            )
            current = self._settle(current, ReservationStatus.COMMITTED)
            self.logger.info(
                "stock_committed",
                handle_id=handle_id,
                product_id=current.product_id,
                zone=current.zone,
                quantity=current.quantity,
            )
            return current

        return self._locked("commit", [stock_key(reservation.product_id, reservation.zone)], _commit)

    def release(self, handle_id: str) -> Reservation:
        """
        Cancel a reservation without touching on-hand stock.

        Releasing an already released handle is a no-op.

        Raises:
            NotFoundError: Unknown handle
            InvalidStateError: The handle was committed
        """
        reservation = self.get_reservation(handle_id)

        def _release() -> Reservation:
            current = self.get_reservation(handle_id)
            if current.status == ReservationStatus.RELEASED:
                return current
            if current.status == ReservationStatus.COMMITTED:
                raise InvalidStateError(
                    f"Reservation {handle_id} was committed and cannot be released",
                    handle_id=handle_id,
                )

            entry = self._entry(current.product_id, current.zone)
            self.stocks.save_entry(entry.model_copy(update={"reserved": entry.reserved - current.quantity}))
            current = self._settle(current, ReservationStatus.RELEASED)
            self.logger.info(
                "stock_released",
                handle_id=handle_id,
                product_id=current.product_id,
                zone=current.zone,
                quantity=current.quantity,
            )
            return current

        return self._locked("release", [stock_key(reservation.product_id, reservation.zone)], _release)

    def reduce(self, handle_id: str, quantity: int) -> Reservation:
        """
        Give back part of a held reservation.

        Reducing by the full quantity releases the reservation.

        Raises:
            InvalidArgumentError: quantity not in 1..reservation quantity
            InvalidStateError: The reservation is no longer held
        """
        self._require_positive(quantity, "reduce")
        reservation = self.get_reservation(handle_id)

        def _reduce() -> Reservation:
            current = self.get_reservation(handle_id)
            if current.status != ReservationStatus.HELD:
                raise InvalidStateError(
                    f"Reservation {handle_id} is {current.status.value}, only held reservations shrink",
                    handle_id=handle_id,
                )
            if quantity > current.quantity:
                raise InvalidArgumentError(
                    f"Cannot reduce reservation of {current.quantity} by {quantity}",
                    handle_id=handle_id,
                )
            if quantity == current.quantity:
                return self.release(handle_id)

            entry = self._entry(current.product_id, current.zone)
            self.stocks.save_entry(entry.model_copy(update={"reserved": entry.reserved - quantity}))
            current = current.model_copy(update={"quantity": current.quantity - quantity})
            self.stocks.save_reservation(current)
            self.logger.info("stock_reservation_reduced", handle_id=handle_id, by=quantity, remaining=current.quantity)
            return current

        return self._locked("reduce", [stock_key(reservation.product_id, reservation.zone)], _reduce)

    def credit(self, product_id: int, zone: str, quantity: int) -> StockEntry:
        """
        Increase on-hand stock, e.g. when collected donations arrive.

        Raises:
            InvalidArgumentError: If quantity is not positive
        """
        self._require_positive(quantity, "credit")

        def _credit() -> StockEntry:
            entry = self._entry(product_id, zone)
            entry = entry.model_copy(update={"on_hand": entry.on_hand + quantity})
            self.stocks.save_entry(entry)
            self.logger.info("stock_credited", product_id=product_id, zone=zone, quantity=quantity, on_hand=entry.on_hand)
            return entry

        return self._locked("credit", [stock_key(product_id, zone)], _credit)

    # ------------------------------------------------------------------ helpers

    def _entry(self, product_id: int, zone: str) -> StockEntry:
        entry = self.stocks.get_entry(product_id, zone)
        return entry if entry is not None else StockEntry(product_id=product_id, zone=zone)

    def _settle(self, reservation: Reservation, status: ReservationStatus) -> Reservation:
        settled = reservation.model_copy(update={"status": status, "settled_at": datetime.now()})
        self.stocks.save_reservation(settled)
        return settled

    @staticmethod
    def _require_positive(quantity: Optional[int], operation: str) -> None:
        if quantity is None or quantity <= 0:
            raise InvalidArgumentError(f"{operation}: quantity must be positive, got {quantity}", quantity=quantity)
