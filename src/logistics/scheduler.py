"""
Route Scheduler - owns the lifecycle of routes.

This service:
- Creates routes, refusing to double-book a truck or driver on a date
- Attaches destinations and products, validating type, stock and capacity
- Moves routes through planned -> in_progress -> completed, or cancelled
- Commits distribution reservations and triggers donation reconciliation on completion
- Links user schedules to routes of the same date

Every mutation of a route runs under that route's lock, so product changes on one
route are serialised and completion and cancellation exclude each other.
"""

import threading
from datetime import date
from typing import Any, Optional, Union

from src.core.errors import (
    BusyError,
    ConflictError,
    InsufficientStockError,
    InvalidArgumentError,
    InvalidStateError,
    LogisticsError,
    NotFoundError,
    TypeMismatchError,
)
from src.core.locking import (
    donation_key,
    route_key,
    stock_key,
    truck_booking_key,
    user_booking_key,
)
from src.data.models import (
    CompletionResult,
    Destination,
    DestinationProduct,
    Reservation,
    ReservationStatus,
    Route,
    RouteStatus,
    RouteSummary,
    RouteType,
    Schedule,
)
from src.data.repositories import ProductCatalog, RouteRepository
from src.logistics.base import BaseService
from src.logistics.capacity import CapacityPlanner
from src.logistics.eligibility import EligibilityGate
from src.logistics.reconciler import DonationReconciler
from src.logistics.stock_ledger import StockLedger


class RouteScheduler(BaseService):
    """
    Route Scheduler for collection and distribution runs.

    Distribution products are backed by ledger reservations drawn from zones in
    ascending order; collection products only count towards truck capacity.
    """

    def __init__(
        self,
        routes: RouteRepository,
        ledger: StockLedger,
        capacity: CapacityPlanner,
        reconciler: DonationReconciler,
        products: ProductCatalog,
        eligibility: Optional[EligibilityGate] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(service_name="route_scheduler", **kwargs)
        self.routes = routes
        self.ledger = ledger
        self.capacity = capacity
        self.reconciler = reconciler
        self.products = products
        self.eligibility = eligibility
        self._orphaned_handles: set[str] = set()
        self._orphan_lock = threading.Lock()

    # ------------------------------------------------------------------ queries

    def get_route(self, route_id: int) -> Route:
        route = self.routes.get_route(route_id)
        if route is None:
            raise NotFoundError("Route", route_id)
        return route

    def list_routes(self, route_date: Optional[date] = None, status: Optional[RouteStatus] = None) -> list[Route]:
        return [r for r in self.routes.list_routes(route_date) if status is None or r.status == status]

    def list_destinations(self, route_id: int) -> list[Destination]:
        self.get_route(route_id)
        return self.routes.list_destinations(route_id)

    def list_products(self, route_id: int) -> list[DestinationProduct]:
        """All destination products planned on a route."""
        return [
            product
            for destination in self.routes.list_destinations(route_id)
            for product in self.routes.list_destination_products(destination.destination_id)
        ]

    def summarize(self, route_id: int) -> RouteSummary:
        """Read model of a route's plan, used for briefings and reporting."""
        route = self.get_route(route_id)
        return RouteSummary(
            route=route,
            truck=self.capacity.get_truck(route.truck_id),
            destinations=self.routes.list_destinations(route_id),
            products=self.list_products(route_id),
            linked_donation_ids=[d.donation_id for d in self.reconciler.list_for_route(route_id)],
            schedule_ids=self.routes.list_schedule_ids(route_id),
        )

    # --------------------------------------------------------------- lifecycle

    def create_route(
        self,
        route_date: date,
        route_type: Union[RouteType, str],
        truck_id: int,
        user_id: int,
        required_skill_id: Optional[int] = None,
        category_id: Optional[int] = None,
    ) -> Route:
        """
        Schedule a new route in the planned state.

        Args:
            route_date: Day of the run
            route_type: collect or distribute
            truck_id: Truck to assign
            user_id: Driver to assign
            required_skill_id: Skill the driver must hold, checked through the eligibility gate
            category_id: Ticket category whose skills the driver must hold

        Returns:
            The created Route

        Raises:
            NotFoundError: Unknown truck
            InvalidArgumentError: Bad route type, or the driver lacks a required skill
            ConflictError: The truck or driver already has an active route that day
            UnavailableError: A collaborator lookup failed; nothing was created
        """
        route_type = self._coerce_type(route_type)
        self.capacity.get_truck(truck_id)

        if self.eligibility is not None and (required_skill_id is not None or category_id is not None):
            if not self.eligibility.can_assign(user_id, required_skill_id=required_skill_id, category_id=category_id):
                raise InvalidArgumentError(
                    f"User {user_id} lacks the skills required for this route",
                    user_id=user_id,
                    required_skill_id=required_skill_id,
                    category_id=category_id,
                )

        def _create() -> Route:
            self._ensure_unbooked(route_date, truck_id=truck_id, user_id=user_id)
            route = self.routes.create_route(route_date, route_type, user_id, truck_id)
            self.logger.info(
                "route_created",
                route_id=route.route_id,
                route_date=route_date.isoformat(),
                route_type=route_type.value,
                truck_id=truck_id,
                user_id=user_id,
            )
            return route

        keys = [truck_booking_key(truck_id, route_date), user_booking_key(user_id, route_date)]
        return self._locked("create_route", keys, _create)

    def reassign_truck(self, route_id: int, truck_id: int) -> Route:
        """
        Move a route onto another truck.

        The new truck must be free that day and able to carry the current load;
        otherwise the original truck stays assigned.
        """
        truck = self.capacity.get_truck(truck_id)
        route_date = self.get_route(route_id).route_date

        def _reassign() -> Route:
            route = self.get_route(route_id)
            self._require_open(route, "reassign a truck")
            if route.truck_id == truck_id:
                return route
            self._ensure_unbooked(route.route_date, truck_id=truck_id, exclude_route_id=route_id)
            self.capacity.check_capacity(route, truck=truck)

            previous = route.truck_id
            route = route.model_copy(update={"truck_id": truck_id})
            self.routes.save_route(route)
            self.logger.info("route_truck_reassigned", route_id=route_id, from_truck=previous, to_truck=truck_id)
            return route

        return self._locked("reassign_truck", [route_key(route_id), truck_booking_key(truck_id, route_date)], _reassign)

    def start(self, route_id: int) -> Route:
        """planned -> in_progress."""

        def _start() -> Route:
            route = self.get_route(route_id)
            if route.status != RouteStatus.PLANNED:
                raise self._transition_error(route, "start")
            route = route.model_copy(update={"status": RouteStatus.IN_PROGRESS})
            self.routes.save_route(route)
            self.logger.info("route_started", route_id=route_id)
            return route

        return self._locked("start_route", [route_key(route_id)], _start)

    def complete(self, route_id: int, completed_on: Optional[date] = None) -> CompletionResult:
        """
        in_progress -> completed.

        Distribution routes commit every held reservation. Collection routes credit
        their linked donations into the intake zone; donations that fail are listed
        in the result and do not block completion.
        """

        def _complete() -> CompletionResult:
            route = self.get_route(route_id)
            if route.status != RouteStatus.IN_PROGRESS:
                raise self._transition_error(route, "complete")
            finished_on = completed_on or date.today()

            result = CompletionResult(route=route)
            if route.route_type == RouteType.DISTRIBUTE:
                handles = [h for p in self.list_products(route_id) for h in p.reservation_ids]
                result.committed_reservations = self._settle(handles, ReservationStatus.COMMITTED)
            else:
                pending = [d for d in self.reconciler.list_for_route(route_id) if not d.collected]
                keys = [donation_key(d.donation_id) for d in pending]
                keys += [stock_key(d.product_id, self.settings.intake_zone) for d in pending]
                with self.locks.hold(*keys):
                    reconciled, errors = self.reconciler.reconcile(route, finished_on)
                result.reconciled_donation_ids = reconciled
                result.reconciliation_errors = errors

            route = route.model_copy(update={"status": RouteStatus.COMPLETED, "completed_on": finished_on})
            self.routes.save_route(route)
            result.route = route
            self.logger.info(
                "route_completed",
                route_id=route_id,
                route_type=route.route_type.value,
                committed_reservations=result.committed_reservations,
                reconciled=len(result.reconciled_donation_ids),
                reconciliation_errors=len(result.reconciliation_errors),
            )
            return result

        return self._locked("complete_route", [route_key(route_id)], _complete)

    def cancel(self, route_id: int) -> Route:
        """
        Cancel a planned or in-progress route.

        Releases every reservation, returns linked donations to pending, detaches
        destinations, their products and schedule links, and marks the route cancelled.
        """

        def _cancel() -> Route:
            route = self.get_route(route_id)
            if route.status.is_terminal:
                raise self._transition_error(route, "cancel")

            destinations = self.routes.list_destinations(route_id)
            rows = self.list_products(route_id)
            donations = [d for d in self.reconciler.list_for_route(route_id) if not d.collected]

            with self.locks.hold(*[donation_key(d.donation_id) for d in donations]):
                released = self._settle([h for row in rows for h in row.reservation_ids], ReservationStatus.RELEASED)
                self.reconciler.release_route(route_id)

            for row in rows:
                self.routes.delete_destination_product(row.destination_product_id)
            for destination in destinations:
                self.routes.delete_destination(destination.destination_id)
            for schedule_id in self.routes.list_schedule_ids(route_id):
                self.routes.remove_schedule_link(schedule_id, route_id)

            route = route.model_copy(update={"status": RouteStatus.CANCELLED})
            self.routes.save_route(route)
            self.logger.info(
                "route_cancelled",
                route_id=route_id,
                released_reservations=released,
                unlinked_donations=len(donations),
                detached_destinations=len(destinations),
            )
            return route

        return self._locked("cancel_route", [route_key(route_id)], _cancel)

    # ------------------------------------------------------------- destinations

    def add_destination(
        self, route_id: int, address_id: int, destination_type: Union[RouteType, str]
    ) -> Destination:
        """
        Add a stop to a route.

        Raises:
            TypeMismatchError: The destination type differs from the route type
            InvalidStateError: The route is completed or cancelled
        """
        destination_type = self._coerce_type(destination_type)

        def _add() -> Destination:
            route = self.get_route(route_id)
            self._require_open(route, "add destinations")
            if destination_type != route.route_type:
                raise TypeMismatchError(
                    f"Cannot add a {destination_type.value} destination to a {route.route_type.value} route",
                    route_id=route_id,
                    route_type=route.route_type.value,
                    destination_type=destination_type.value,
                )
            destination = self.routes.create_destination(route_id, address_id, destination_type)
            self.logger.info(
                "destination_added",
                route_id=route_id,
                destination_id=destination.destination_id,
                address_id=address_id,
            )
            return destination

        return self._locked("add_destination", [route_key(route_id)], _add)

    def remove_destination(self, destination_id: int) -> None:
        """Remove a stop, releasing the reservations of its products."""
        route_id = self._destination(destination_id).route_id

        def _remove() -> None:
            self._destination(destination_id)
            self._require_open(self.get_route(route_id), "remove destinations")
            rows = self.routes.list_destination_products(destination_id)
            self._settle([h for row in rows for h in row.reservation_ids], ReservationStatus.RELEASED)
            for row in rows:
                self.routes.delete_destination_product(row.destination_product_id)
            self.routes.delete_destination(destination_id)
            self.logger.info("destination_removed", route_id=route_id, destination_id=destination_id, products=len(rows))

        self._locked("remove_destination", [route_key(route_id)], _remove)

    # ----------------------------------------------------------------- products

    def add_product(self, destination_id: int, product_id: int, quantity: int) -> DestinationProduct:
        """
        Plan a quantity of a product for a destination.

        Distribution routes reserve stock first, then check capacity; a capacity
        failure gives the fresh reservation back. Nothing is persisted unless both
        checks pass.

        Raises:
            InvalidArgumentError: Non-positive quantity
            NotFoundError: Unknown destination or product
            InsufficientStockError: Zones cannot cover the quantity (distribution only)
            CapacityExceededError: The route would exceed its truck's capacity
        """
        self._require_positive(quantity)
        route_id = self._destination(destination_id).route_id
        if not self._call_external("product_catalog", self.products.product_exists, product_id):
            raise NotFoundError("Product", product_id)
        self.release_orphaned_reservations()

        def _add() -> DestinationProduct:
            self._destination(destination_id)
            route = self.get_route(route_id)
            self._require_open(route, "add products")

            reservations: list[Reservation] = []
            if route.route_type == RouteType.DISTRIBUTE:
                reservations = self._allocate(product_id, quantity)
            try:
                self.capacity.check_capacity(route, delta=quantity)
            except LogisticsError:
                self._give_back([r.handle_id for r in reservations])
                raise

            row = self.routes.create_destination_product(
                destination_id, product_id, quantity, [r.handle_id for r in reservations]
            )
            self.logger.info(
                "product_added",
                route_id=route_id,
                destination_id=destination_id,
                destination_product_id=row.destination_product_id,
                product_id=product_id,
                quantity=quantity,
                zones=[r.zone for r in reservations],
            )
            return row

        return self._locked("add_product", [route_key(route_id)], _add)

    def update_product_quantity(self, destination_product_id: int, quantity: int) -> DestinationProduct:
        """
        Change a planned quantity.

        Increases are validated like add_product; decreases hand stock back to the
        ledger, newest reservations first.
        """
        self._require_positive(quantity)
        route_id = self._route_id_of(destination_product_id)
        self.release_orphaned_reservations()

        def _update() -> DestinationProduct:
            row = self._destination_product(destination_product_id)
            route = self.get_route(route_id)
            self._require_open(route, "change product quantities")
            delta = quantity - row.quantity
            if delta == 0:
                return row

            handles = list(row.reservation_ids)
            if delta > 0:
                added: list[Reservation] = []
                if route.route_type == RouteType.DISTRIBUTE:
                    added = self._allocate(row.product_id, delta)
                try:
                    self.capacity.check_capacity(route, delta=delta)
                except LogisticsError:
                    self._give_back([r.handle_id for r in added])
                    raise
                handles += [r.handle_id for r in added]
            elif handles:
                handles = self._shrink(handles, -delta)

            row = row.model_copy(update={"quantity": quantity, "reservation_ids": handles})
            self.routes.save_destination_product(row)
            self.logger.info(
                "product_quantity_updated",
                route_id=route_id,
                destination_product_id=destination_product_id,
                delta=delta,
                quantity=quantity,
            )
            return row

        return self._locked("update_product_quantity", [route_key(route_id)], _update)

    def remove_product(self, destination_product_id: int) -> None:
        """
        Delete a planned product, releasing any reservation still held for it.

        Raises:
            NotFoundError: Unknown destination product
        """
        route_id = self._route_id_of(destination_product_id)

        def _remove() -> None:
            row = self._destination_product(destination_product_id)
            released = self._settle(row.reservation_ids, ReservationStatus.RELEASED)
            self.routes.delete_destination_product(destination_product_id)
            self.logger.info(
                "product_removed",
                route_id=route_id,
                destination_product_id=destination_product_id,
                released_reservations=released,
            )

        self._locked("remove_product", [route_key(route_id)], _remove)

    # ---------------------------------------------------------------- schedules

    def create_schedule(self, user_id: int, schedule_date: date, schedule_type: Union[RouteType, str]) -> Schedule:
        schedule = self.routes.create_schedule(user_id, schedule_date, self._coerce_type(schedule_type))
        self.logger.info("schedule_created", schedule_id=schedule.schedule_id, user_id=user_id)
        return schedule

    def link_schedule(self, schedule_id: int, route_id: int) -> None:
        """
        Link a schedule entry to a route.

        Raises:
            InvalidArgumentError: The schedule date differs from the route date
            InvalidStateError: The route is cancelled
        """
        schedule = self._schedule(schedule_id)

        def _link() -> None:
            route = self.get_route(route_id)
            if route.status == RouteStatus.CANCELLED:
                raise InvalidStateError(f"Route {route_id} is cancelled", route_id=route_id)
            if schedule.schedule_date != route.route_date:
                raise InvalidArgumentError(
                    f"Schedule {schedule_id} is dated {schedule.schedule_date}, route {route_id} is dated {route.route_date}",
                    schedule_id=schedule_id,
                    route_id=route_id,
                )
            self.routes.add_schedule_link(schedule_id, route_id)
            self.logger.info("schedule_linked", schedule_id=schedule_id, route_id=route_id)

        self._locked("link_schedule", [route_key(route_id)], _link)

    def unlink_schedule(self, schedule_id: int, route_id: int) -> None:
        self._locked(
            "unlink_schedule",
            [route_key(route_id)],
            lambda: self.routes.remove_schedule_link(schedule_id, route_id),
        )

    def schedules_for_route(self, route_id: int) -> list[Schedule]:
        return [self._schedule(s) for s in self.routes.list_schedule_ids(route_id)]

    # ------------------------------------------------------------- reservations

    def orphaned_reservations(self) -> list[str]:
        """Handles a rollback could not release because their stock stayed busy."""
        with self._orphan_lock:
            return sorted(self._orphaned_handles)

    def release_orphaned_reservations(self) -> int:
        """Retry releasing parked handles; returns how many were released."""
        released = 0
        for handle_id in self.orphaned_reservations():
            try:
                self.ledger.release(handle_id)
            except BusyError:
                continue
            with self._orphan_lock:
                self._orphaned_handles.discard(handle_id)
            released += 1
        if released:
            self.logger.info("orphaned_reservations_released", released=released)
        return released

    # ------------------------------------------------------------------ helpers

    def _allocate(self, product_id: int, quantity: int) -> list[Reservation]:
        """
        Reserve quantity across zones in ascending zone order.

        All or nothing: if the zones cannot cover the quantity, every partial
        reservation is released before InsufficientStockError is raised.
        """
        taken: list[Reservation] = []
        remaining = quantity
        try:
            for zone in self.ledger.zones_for(product_id):
                while remaining > 0:
                    take = min(self.ledger.get_available(product_id, zone), remaining)
                    if take <= 0:
                        break
                    try:
                        taken.append(self.ledger.reserve(product_id, zone, take))
                    except InsufficientStockError:
                        # Drained concurrently; re-read what the zone still has.
                        continue
                    remaining -= take
                if remaining == 0:
                    break

            if remaining > 0:
                raise InsufficientStockError(product_id, quantity, quantity - remaining)
        except LogisticsError:
            self._give_back([r.handle_id for r in taken])
            raise
        return taken

    def _give_back(self, handle_ids: list[str]) -> None:
        """
        Release reservations taken by a mutation that is being rolled back.

        Each release retries lock contention on its own. A handle still busy after
        that is parked for release_orphaned_reservations() so the caller sees the
        original failure and the stock is not lost.
        """
        for handle_id in handle_ids:
            try:
                self.ledger.release(handle_id)
            except BusyError:
                with self._orphan_lock:
                    self._orphaned_handles.add(handle_id)
                self.logger.warning("reservation_release_deferred", handle_id=handle_id)

    def _settle(self, handle_ids: list[str], status: ReservationStatus) -> int:
        """
        Commit or release held reservations; returns how many changed.

        All stock keys involved are taken up front so a settle never stops half way
        on lock contention.
        """
        held = [r for r in (self.ledger.get_reservation(h) for h in handle_ids) if r.status == ReservationStatus.HELD]
        if not held:
            return 0
        with self.locks.hold(*[stock_key(r.product_id, r.zone) for r in held]):
            for reservation in held:
                if status == ReservationStatus.COMMITTED:
                    self.ledger.commit(reservation.handle_id)
                else:
                    self.ledger.release(reservation.handle_id)
        return len(held)

    def _shrink(self, handle_ids: list[str], amount: int) -> list[str]:
        """Give back amount units, newest reservation first; returns the handles still held."""
        reservations = [self.ledger.get_reservation(h) for h in handle_ids]
        with self.locks.hold(*[stock_key(r.product_id, r.zone) for r in reservations]):
            kept: list[str] = []
            for reservation in reversed(reservations):
                if reservation.status != ReservationStatus.HELD:
                    continue
                cut = min(amount, reservation.quantity)
                if cut > 0:
                    self.ledger.reduce(reservation.handle_id, cut)
                    amount -= cut
                if cut < reservation.quantity:
                    kept.append(reservation.handle_id)
        return list(reversed(kept))

    def _ensure_unbooked(
        self,
        route_date: date,
        truck_id: Optional[int] = None,
        user_id: Optional[int] = None,
        exclude_route_id: Optional[int] = None,
    ) -> None:
        for existing in self.routes.list_routes(route_date):
            if not existing.is_active or existing.route_id == exclude_route_id:
                continue
            if truck_id is not None and existing.truck_id == truck_id:
                raise ConflictError(
                    f"Truck {truck_id} is already booked on {route_date} by route {existing.route_id}",
                    truck_id=truck_id,
                    route_id=existing.route_id,
                )
            if user_id is not None and existing.user_id == user_id:
                raise ConflictError(
                    f"User {user_id} is already booked on {route_date} by route {existing.route_id}",
                    user_id=user_id,
                    route_id=existing.route_id,
                )

    def _destination(self, destination_id: int) -> Destination:
        destination = self.routes.get_destination(destination_id)
        if destination is None:
            raise NotFoundError("Destination", destination_id)
        return destination

    def _destination_product(self, destination_product_id: int) -> DestinationProduct:
        row = self.routes.get_destination_product(destination_product_id)
        if row is None:
            raise NotFoundError("DestinationProduct", destination_product_id)
        return row

    def _route_id_of(self, destination_product_id: int) -> int:
        row = self._destination_product(destination_product_id)
        return self._destination(row.destination_id).route_id

    def _schedule(self, schedule_id: int) -> Schedule:
        schedule = self.routes.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError("Schedule", schedule_id)
        return schedule

    @staticmethod
    def _require_open(route: Route, action: str) -> None:
        if route.status.is_terminal:
            raise InvalidStateError(
                f"Cannot {action} on route {route.route_id}: route is {route.status.value}",
                route_id=route.route_id,
                status=route.status.value,
            )

    @staticmethod
    def _require_positive(quantity: Optional[int]) -> None:
        if quantity is None or quantity <= 0:
            raise InvalidArgumentError(f"Quantity must be positive, got {quantity}", quantity=quantity)

    @staticmethod
    def _transition_error(route: Route, action: str) -> InvalidStateError:
        return InvalidStateError(
            f"Cannot {action} route {route.route_id} from {route.status.value}",
            route_id=route.route_id,
            status=route.status.value,
        )

    @staticmethod
    def _coerce_type(value: Union[RouteType, str]) -> RouteType:
        try:
            return RouteType(value)
        except ValueError as e:
            raise InvalidArgumentError(f"Unknown route type: {value!r}", route_type=str(value)) from e
