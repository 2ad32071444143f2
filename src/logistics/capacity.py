"""
Capacity Planner - keeps a route's planned load within its truck's capacity.

Checks are evaluated against the hypothetical total after a proposed mutation,
so a rejected mutation never reaches the repository. Callers hold the route
lock while checking and persisting.
"""

from typing import Any, Optional

from pydantic import BaseModel, computed_field

from src.core.errors import CapacityExceededError, NotFoundError
from src.data.models import Route, Truck
from src.data.repositories import RouteRepository, TruckDirectory
from src.logistics.base import BaseService


class CapacityCheck(BaseModel):
    """Result of a passing capacity check."""

    route_id: int
    truck_id: int
    current: int
    limit: int

    @computed_field
    @property
    def headroom(self) -> int:
        return self.limit - self.current


class CapacityPlanner(BaseService):
    """Capacity Planner for route loads."""

    def __init__(self, routes: RouteRepository, trucks: TruckDirectory, **kwargs: Any) -> None:
        super().__init__(service_name="capacity_planner", **kwargs)
        self.routes = routes
        self.trucks = trucks

    def get_truck(self, truck_id: int) -> Truck:
        """Fetch a truck from the fleet directory."""
        truck = self._call_external("truck_directory", self.trucks.get_truck, truck_id)
        if truck is None:
            raise NotFoundError("Truck", truck_id)
        return truck

    def route_load(self, route_id: int) -> int:
        """Sum of destination-product quantities across the route's destinations."""
        return sum(
            product.quantity
            for destination in self.routes.list_destinations(route_id)
            for product in self.routes.list_destination_products(destination.destination_id)
        )

    def check_capacity(self, route: Route, delta: int = 0, truck: Optional[Truck] = None) -> CapacityCheck:
        """
        Validate the route's load, optionally after a proposed change.

        Args:
            route: Route to check
            delta: Change in total quantity the caller is about to apply
            truck: Truck to check against (defaults to the route's assigned truck)

        Returns:
            CapacityCheck describing the post-mutation load

        Raises:
            CapacityExceededError: If the post-mutation load exceeds capacity
        """
        truck = truck or self.get_truck(route.truck_id)
        proposed = self.route_load(route.route_id) + delta

        if proposed > truck.capacity:
            self.logger.info(
                "capacity_exceeded",
                route_id=route.route_id,
                truck_id=truck.truck_id,
                proposed=proposed,
                limit=truck.capacity,
            )
            raise CapacityExceededError(current=proposed, limit=truck.capacity)

        return CapacityCheck(
            route_id=route.route_id,
            truck_id=truck.truck_id,
            current=proposed,
            limit=truck.capacity,
        )

    def headroom(self, route: Route) -> int:
        """Units that can still be added to the route."""
        return self.check_capacity(route).headroom
