"""
Persistence and collaborator interfaces consumed by the logistics core.

The core never talks to a database directly. Routes, stock and donations are
persisted through these repositories; trucks, skills and products come from
directories owned by other parts of the application.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

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
)


class TruckDirectory(ABC):
    """Fleet lookup."""

    @abstractmethod
    def get_truck(self, truck_id: int) -> Optional[Truck]:
        """Return the truck, or None if it does not exist."""


class SkillDirectory(ABC):
    """Volunteer skill registry lookup."""

    @abstractmethod
    def get_validated_skills(self, user_id: int) -> set[int]:
        """Skill ids the user holds with a validation date."""

    @abstractmethod
    def get_category_skills(self, category_id: int) -> set[int]:
        """Skill ids a ticket category requires."""


class ProductCatalog(ABC):
    """Product catalog lookup."""

    @abstractmethod
    def product_exists(self, product_id: int) -> bool:
        """Whether the product id refers to a catalog product."""


class RouteRepository(ABC):
    """Persistence for routes, destinations, destination products and schedules."""

    @abstractmethod
    def create_route(self, route_date: date, route_type: RouteType, user_id: int, truck_id: int) -> Route:
        ...

    @abstractmethod
    def get_route(self, route_id: int) -> Optional[Route]:
        ...

    @abstractmethod
    def save_route(self, route: Route) -> Route:
        ...

    @abstractmethod
    def list_routes(self, route_date: Optional[date] = None) -> list[Route]:
        ...

    @abstractmethod
    def create_destination(self, route_id: int, address_id: int, destination_type: RouteType) -> Destination:
        ...

    @abstractmethod
    def get_destination(self, destination_id: int) -> Optional[Destination]:
        ...

    @abstractmethod
    def list_destinations(self, route_id: int) -> list[Destination]:
        ...

    @abstractmethod
    def delete_destination(self, destination_id: int) -> None:
        ...

    @abstractmethod
    def create_destination_product(
        self, destination_id: int, product_id: int, quantity: int, reservation_ids: list[str]
    ) -> DestinationProduct:
        ...

    @abstractmethod
    def get_destination_product(self, destination_product_id: int) -> Optional[DestinationProduct]:
        ...

    @abstractmethod
    def save_destination_product(self, product: DestinationProduct) -> DestinationProduct:
        ...

    @abstractmethod
    def list_destination_products(self, destination_id: int) -> list[DestinationProduct]:
        ...

    @abstractmethod
    def delete_destination_product(self, destination_product_id: int) -> None:
        ...

    @abstractmethod
    def create_schedule(self, user_id: int, schedule_date: date, schedule_type: RouteType) -> Schedule:
        ...

    @abstractmethod
    def get_schedule(self, schedule_id: int) -> Optional[Schedule]:
        ...

    @abstractmethod
    def add_schedule_link(self, schedule_id: int, route_id: int) -> None:
        ...

    @abstractmethod
    def remove_schedule_link(self, schedule_id: int, route_id: int) -> None:
        ...

    @abstractmethod
    def list_schedule_ids(self, route_id: int) -> list[int]:
        ...


class StockRepository(ABC):
    """Persistence for stock entries and reservations."""

    @abstractmethod
    def get_entry(self, product_id: int, zone: str) -> Optional[StockEntry]:
        ...

    @abstractmethod
    def save_entry(self, entry: StockEntry) -> StockEntry:
        ...

    @abstractmethod
    def list_entries(self, product_id: int) -> list[StockEntry]:
        ...

    @abstractmethod
    def get_reservation(self, handle_id: str) -> Optional[Reservation]:
        ...

    @abstractmethod
    def save_reservation(self, reservation: Reservation) -> Reservation:
        ...

    @abstractmethod
    def list_reservations(self) -> list[Reservation]:
        ...


class DonationRepository(ABC):
    """Persistence for donations and per-route reconciliation errors."""

    @abstractmethod
    def create_donation(
        self, product_id: int, quantity: int, donor_user_id: Optional[int], donation_date: date
    ) -> Donation:
        ...

    @abstractmethod
    def get_donation(self, donation_id: int) -> Optional[Donation]:
        ...

    @abstractmethod
    def save_donation(self, donation: Donation) -> Donation:
        ...

    @abstractmethod
    def list_donations(self) -> list[Donation]:
        ...

    @abstractmethod
    def list_for_route(self, route_id: int) -> list[Donation]:
        ...

    @abstractmethod
    def save_reconciliation_errors(self, route_id: int, errors: list[ReconciliationError]) -> None:
        ...

    @abstractmethod
    def get_reconciliation_errors(self, route_id: int) -> list[ReconciliationError]:
        ...
