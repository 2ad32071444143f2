"""
Route data models - trucks, routes, their destinations and planned products.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class RouteType(str, Enum):
    """Whether a route collects donations or distributes stock."""

    COLLECT = "collect"
    DISTRIBUTE = "distribute"


class RouteStatus(str, Enum):
    """Route lifecycle status."""

    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RouteStatus.COMPLETED, RouteStatus.CANCELLED)


class Truck(BaseModel):
    """A truck as reported by the fleet directory."""

    truck_id: int
    registration: str = ""
    capacity: int = Field(..., ge=0, description="Maximum number of units carried")
    condition_code: int = Field(0, ge=0, description="Ordinal wear rating")
    model: Optional[str] = None


class Route(BaseModel):
    """
    A dated truck + driver assignment.

    At most one non-cancelled route may exist per (truck, date) and per (user, date).
    """

    route_id: int
    route_date: date
    route_type: RouteType
    user_id: int = Field(..., description="Assigned driver")
    truck_id: int
    status: RouteStatus = RouteStatus.PLANNED
    completed_on: Optional[date] = None

    @computed_field
    @property
    def is_active(self) -> bool:
        """Active routes count towards double-booking checks."""
        return self.status != RouteStatus.CANCELLED


class Destination(BaseModel):
    """A stop on a route, tied to an address."""

    destination_id: int
    route_id: int
    address_id: int
    destination_type: RouteType


class DestinationProduct(BaseModel):
    """A quantity of one product planned for a destination."""

    destination_product_id: int
    destination_id: int
    product_id: int
    quantity: int = Field(..., gt=0)
    reservation_ids: list[str] = Field(
        default_factory=list, description="Ledger reservations backing this quantity"
    )


class Schedule(BaseModel):
    """A user-visible calendar entry, linked to routes of the same date."""

    schedule_id: int
    user_id: int
    schedule_date: date
    schedule_type: RouteType


class RouteSummary(BaseModel):
    """Read model of a route's plan, consumed by briefings and reporting."""

    route: Route
    truck: Truck
    destinations: list[Destination]
    products: list[DestinationProduct]
    linked_donation_ids: list[int] = Field(default_factory=list)
    schedule_ids: list[int] = Field(default_factory=list)

    @computed_field
    @property
    def total_quantity(self) -> int:
        return sum(p.quantity for p in self.products)

    @computed_field
    @property
    def remaining_capacity(self) -> int:
        return self.truck.capacity - self.total_quantity

    @computed_field
    @property
    def utilisation_percentage(self) -> float:
        """Share of the truck capacity in use."""
        if self.truck.capacity == 0:
            return 0.0
        return (self.total_quantity / self.truck.capacity) * 100
