"""
In-memory implementations of the repositories and directories.

Used for tests, local runs and the demo entry points. Every read returns a deep
copy so callers can only change stored state through save_* calls.
"""

import itertools
import threading
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from src.data.models import (
    Destination,
    DestinationProduct,
    Donation,
    ReconciliationError,
    Reservation,
    Route,
    RouteType,
    Schedule,
    StockEntry,
    Truck,
    UserSkill,
)
from src.data.repositories import (
    DonationRepository,
    ProductCatalog,
    RouteRepository,
    SkillDirectory,
    StockRepository,
    TruckDirectory,
)


class InMemoryTruckDirectory(TruckDirectory):
    """Fleet directory backed by a dict."""

    def __init__(self, trucks: Iterable[Truck] = ()) -> None:
        self._trucks = {t.truck_id: t.model_copy() for t in trucks}

    def add(self, truck: Truck) -> None:
        self._trucks[truck.truck_id] = truck.model_copy()

    def set_condition(self, truck_id: int, condition_code: int) -> None:
        """Fleet maintenance updates the only mutable truck attribute."""
        truck = self._trucks[truck_id]
        self._trucks[truck_id] = truck.model_copy(update={"condition_code": condition_code})

    def get_truck(self, truck_id: int) -> Optional[Truck]:
        truck = self._trucks.get(truck_id)
        return truck.model_copy() if truck else None


class InMemorySkillDirectory(SkillDirectory):
    """Skill registry backed by user skill records and a category mapping."""

    def __init__(
        self,
        user_skills: Iterable[UserSkill] = (),
        category_skills: Optional[dict[int, set[int]]] = None,
    ) -> None:
        self._user_skills = list(user_skills)
        self._category_skills = {k: set(v) for k, v in (category_skills or {}).items()}

    def add_user_skill(self, user_skill: UserSkill) -> None:
        self._user_skills.append(user_skill)

    def get_validated_skills(self, user_id: int) -> set[int]:
        return {s.skill_id for s in self._user_skills if s.user_id == user_id and s.is_validated}

    def get_category_skills(self, category_id: int) -> set[int]:
        return set(self._category_skills.get(category_id, set()))


class InMemoryProductCatalog(ProductCatalog):
    """Catalog backed by a set of product ids."""

    def __init__(self, product_ids: Iterable[int] = ()) -> None:
        self._product_ids = set(product_ids)

    def add(self, product_id: int) -> None:
        self._product_ids.add(product_id)

    def product_exists(self, product_id: int) -> bool:
        return product_id in self._product_ids


class InMemoryRouteRepository(RouteRepository):
    """Route, destination, destination-product and schedule tables."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._route_ids = itertools.count(1)
        self._destination_ids = itertools.count(1)
        self._product_ids = itertools.count(1)
        self._schedule_ids = itertools.count(1)
        self._routes: dict[int, Route] = {}
        self._destinations: dict[int, Destination] = {}
        self._products: dict[int, DestinationProduct] = {}
        self._schedules: dict[int, Schedule] = {}
        self._schedule_links: set[tuple[int, int]] = set()

    def create_route(self, route_date: date, route_type: RouteType, user_id: int, truck_id: int) -> Route:
        with self._lock:
            route = Route(
                route_id=next(self._route_ids),
                route_date=route_date,
                route_type=route_type,
                user_id=user_id,
                truck_id=truck_id,
            )
            self._routes[route.route_id] = route
            return route.model_copy(deep=True)

    def get_route(self, route_id: int) -> Optional[Route]:
        with self._lock:
            route = self._routes.get(route_id)
            return route.model_copy(deep=True) if route else None

    def save_route(self, route: Route) -> Route:
        with self._lock:
            self._routes[route.route_id] = route.model_copy(deep=True)
            return route

    def list_routes(self, route_date: Optional[date] = None) -> list[Route]:
        with self._lock:
            return [
                r.model_copy(deep=True)
                for r in sorted(self._routes.values(), key=lambda r: r.route_id)
                if route_date is None or r.route_date == route_date
            ]

    def create_destination(self, route_id: int, address_id: int, destination_type: RouteType) -> Destination:
        with self._lock:
            destination = Destination(
                destination_id=next(self._destination_ids),
                route_id=route_id,
                address_id=address_id,
                destination_type=destination_type,
            )
            self._destinations[destination.destination_id] = destination
            return destination.model_copy(deep=True)

    def get_destination(self, destination_id: int) -> Optional[Destination]:
        with self._lock:
            destination = self._destinations.get(destination_id)
            return destination.model_copy(deep=True) if destination else None

    def list_destinations(self, route_id: int) -> list[Destination]:
        with self._lock:
            return [
                d.model_copy(deep=True)
                for d in sorted(self._destinations.values(), key=lambda d: d.destination_id)
                if d.route_id == route_id
            ]

    def delete_destination(self, destination_id: int) -> None:
        with self._lock:
            self._destinations.pop(destination_id, None)

    def create_destination_product(
        self, destination_id: int, product_id: int, quantity: int, reservation_ids: list[str]
    ) -> DestinationProduct:
        with self._lock:
            row = DestinationProduct(
                destination_product_id=next(self._product_ids),
                destination_id=destination_id,
                product_id=product_id,
                quantity=quantity,
                reservation_ids=list(reservation_ids),
            )
            self._products[row.destination_product_id] = row
            return row.model_copy(deep=True)

    def get_destination_product(self, destination_product_id: int) -> Optional[DestinationProduct]:
        with self._lock:
            row = self._products.get(destination_product_id)
            return row.model_copy(deep=True) if row else None

    def save_destination_product(self, product: DestinationProduct) -> DestinationProduct:
        with self._lock:
            self._products[product.destination_product_id] = product.model_copy(deep=True)
            return product

    def list_destination_products(self, destination_id: int) -> list[DestinationProduct]:
        with self._lock:
            return [
                p.model_copy(deep=True)
                for p in sorted(self._products.values(), key=lambda p: p.destination_product_id)
                if p.destination_id == destination_id
            ]

    def delete_destination_product(self, destination_product_id: int) -> None:
        with self._lock:
            self._products.pop(destination_product_id, None)

    def create_schedule(self, user_id: int, schedule_date: date, schedule_type: RouteType) -> Schedule:
        with self._lock:
            schedule = Schedule(
                schedule_id=next(self._schedule_ids),
                user_id=user_id,
                schedule_date=schedule_date,
                schedule_type=schedule_type,
            )
            self._schedules[schedule.schedule_id] = schedule
            return schedule.model_copy(deep=True)

    def get_schedule(self, schedule_id: int) -> Optional[Schedule]:
        with self._lock:
            schedule = self._schedules.get(schedule_id)
            return schedule.model_copy(deep=True) if schedule else None

    def add_schedule_link(self, schedule_id: int, route_id: int) -> None:
        with self._lock:
            self._schedule_links.add((schedule_id, route_id))

    def remove_schedule_link(self, schedule_id: int, route_id: int) -> None:
        with self._lock:
            self._schedule_links.discard((schedule_id, route_id))

    def list_schedule_ids(self, route_id: int) -> list[int]:
        with self._lock:
            return sorted(s for s, r in self._schedule_links if r == route_id)


class InMemoryStockRepository(StockRepository):
    """Stock entries keyed by (product, zone) and reservations keyed by handle."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[tuple[int, str], StockEntry] = {}
        self._reservations: dict[str, Reservation] = {}

    def get_entry(self, product_id: int, zone: str) -> Optional[StockEntry]:
        with self._lock:
            entry = self._entries.get((product_id, zone))
            return entry.model_copy() if entry else None

    def save_entry(self, entry: StockEntry) -> StockEntry:
        with self._lock:
            self._entries[(entry.product_id, entry.zone)] = entry.model_copy()
            return entry

    def list_entries(self, product_id: int) -> list[StockEntry]:
        with self._lock:
            return [
                e.model_copy()
                for (pid, _), e in sorted(self._entries.items())
                if pid == product_id
            ]

    def get_reservation(self, handle_id: str) -> Optional[Reservation]:
        with self._lock:
            reservation = self._reservations.get(handle_id)
            return reservation.model_copy() if reservation else None

    def save_reservation(self, reservation: Reservation) -> Reservation:
        with self._lock:
            self._reservations[reservation.handle_id] = reservation.model_copy()
            return reservation

    def list_reservations(self) -> list[Reservation]:
        with self._lock:
            return [r.model_copy() for r in self._reservations.values()]


class InMemoryDonationRepository(DonationRepository):
    """Donation table plus the reconciliation error log."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._donations: dict[int, Donation] = {}
        self._errors: dict[int, list[ReconciliationError]] = defaultdict(list)

    def create_donation(
        self, product_id: int, quantity: int, donor_user_id: Optional[int], donation_date: date
    ) -> Donation:
        with self._lock:
            donation = Donation(
                donation_id=next(self._ids),
                product_id=product_id,
                quantity=quantity,
                donor_user_id=donor_user_id,
                donation_date=donation_date,
            )
            self._donations[donation.donation_id] = donation
            return donation.model_copy()

    def get_donation(self, donation_id: int) -> Optional[Donation]:
        with self._lock:
            donation = self._donations.get(donation_id)
            return donation.model_copy() if donation else None

    def save_donation(self, donation: Donation) -> Donation:
        with self._lock:
            self._donations[donation.donation_id] = donation.model_copy()
            return donation

    def list_donations(self) -> list[Donation]:
        with self._lock:
            return [d.model_copy() for _, d in sorted(self._donations.items())]

    def list_for_route(self, route_id: int) -> list[Donation]:
        return [d for d in self.list_donations() if d.route_id == route_id]

    def save_reconciliation_errors(self, route_id: int, errors: list[ReconciliationError]) -> None:
        with self._lock:
            self._errors[route_id] = [e.model_copy() for e in errors]

    def get_reconciliation_errors(self, route_id: int) -> list[ReconciliationError]:
        with self._lock:
            return [e.model_copy() for e in self._errors.get(route_id, [])]
