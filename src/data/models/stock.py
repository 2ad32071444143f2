"""
Stock data models - per-zone stock records and reservation handles.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class StockEntry(BaseModel):
    """Quantity of a product held in one storage zone."""

    product_id: int
    zone: str
    on_hand: int = Field(0, ge=0)
    reserved: int = Field(0, ge=0)

    @computed_field
    @property
    def available(self) -> int:
        """On-hand quantity not held by a reservation."""
        return self.on_hand - self.reserved


class ReservationStatus(str, Enum):
    """Reservation lifecycle status."""

    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


class Reservation(BaseModel):
    """A temporary hold on stock, pending commit or release."""

    handle_id: str
    product_id: int
    zone: str
    quantity: int = Field(..., gt=0)
    status: ReservationStatus = ReservationStatus.HELD
    created_at: datetime = Field(default_factory=datetime.now)
    settled_at: Optional[datetime] = None
