"""
Pydantic data models for food-bank logistics.

Core models:
- Route: Dated truck + driver assignment, its destinations and planned products
- Stock: Per-zone stock records and reservations
- Donation: Pledged donations and reconciliation outcomes
- Skill: Validated volunteer skills
"""

from .donation import CompletionResult, Donation, ReconciliationError
from .route import (
    Destination,
    DestinationProduct,
    Route,
    RouteStatus,
    RouteSummary,
    RouteType,
    Schedule,
    Truck,
)
from .skill import UserSkill
from .stock import Reservation, ReservationStatus, StockEntry

__all__ = [
    "CompletionResult",
    "Destination",
    "DestinationProduct",
    "Donation",
    "ReconciliationError",
    "Reservation",
    "ReservationStatus",
    "Route",
    "RouteStatus",
    "RouteSummary",
    "RouteType",
    "Schedule",
    "StockEntry",
    "Truck",
    "UserSkill",
]
