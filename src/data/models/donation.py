"""
Donation data models.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from src.core.errors import ErrorCode
from src.data.models.route import Route


class Donation(BaseModel):
    """
    A pledged quantity of a product from a donor.

    A donation may be linked to one collection route; it becomes collected only
    when that route completes.
    """

    donation_id: int
    product_id: int
    quantity: int
    donor_user_id: Optional[int] = None
    donation_date: date = Field(default_factory=date.today)
    route_id: Optional[int] = Field(None, description="Collection route, if linked")
    collected: bool = False
    collection_date: Optional[date] = None

    @computed_field
    @property
    def status(self) -> str:
        return "collected" if self.collected else "pending"


class ReconciliationError(BaseModel):
    """A donation that could not be credited when its route completed."""

    donation_id: int
    code: ErrorCode
    message: str


class CompletionResult(BaseModel):
    """Outcome of completing a route."""

    route: Route
    committed_reservations: int = 0
    reconciled_donation_ids: list[int] = Field(default_factory=list)
    reconciliation_errors: list[ReconciliationError] = Field(default_factory=list)
