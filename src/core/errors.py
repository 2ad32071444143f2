"""
Typed failures raised by the logistics core.

Every failure the core can report to a caller is a subclass of LogisticsError and
carries an ErrorCode tag, so an outer API layer can map outcomes without inspecting
messages. Busy and Unavailable are the only retryable conditions.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Outcome tags reported alongside a failed operation."""

    CONFLICT = "conflict"
    TYPE_MISMATCH = "type_mismatch"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    INSUFFICIENT_STOCK = "insufficient_stock"
    INVALID_STATE = "invalid_state"
    NOT_FOUND = "not_found"
    BUSY = "busy"
    UNAVAILABLE = "unavailable"
    INVALID_ARGUMENT = "invalid_argument"


class LogisticsError(Exception):
    """Base class for all logistics core failures."""

    code: ErrorCode = ErrorCode.INVALID_ARGUMENT
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Caller-facing payload for this failure."""
        return {
            "code": self.code.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


class ConflictError(LogisticsError):
    """A truck or driver is already booked on the requested date."""

    code = ErrorCode.CONFLICT


class TypeMismatchError(LogisticsError):
    """Collect/distribute type does not match the route's type."""

    code = ErrorCode.TYPE_MISMATCH


class CapacityExceededError(LogisticsError):
    """The route's load would exceed its truck's capacity."""

    code = ErrorCode.CAPACITY_EXCEEDED

    def __init__(self, current: int, limit: int, message: str = "") -> None:
        super().__init__(
            message or f"Route load {current} exceeds truck capacity {limit}",
            current=current,
            limit=limit,
        )
        self.current = current
        self.limit = limit


class InsufficientStockError(LogisticsError):
    """Not enough unreserved stock to satisfy a reservation."""

    code = ErrorCode.INSUFFICIENT_STOCK

    def __init__(self, product_id: int, requested: int, available: int, zone: Optional[str] = None) -> None:
        where = f" in zone {zone}" if zone is not None else ""
        super().__init__(
            f"Product {product_id}: requested {requested}, available {available}{where}",
            product_id=product_id,
            requested=requested,
            available=available,
            zone=zone,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available
        self.zone = zone


class InvalidStateError(LogisticsError):
    """An operation is not allowed from the entity's current state."""

    code = ErrorCode.INVALID_STATE


class NotFoundError(LogisticsError):
    """A referenced entity does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id)
        self.entity = entity
        self.entity_id = entity_id


class BusyError(LogisticsError):
    """A resource lock could not be acquired within the bounded wait."""

    code = ErrorCode.BUSY
    retryable = True


class UnavailableError(LogisticsError):
    """An external collaborator could not be reached."""

    code = ErrorCode.UNAVAILABLE
    retryable = True


class InvalidArgumentError(LogisticsError):
    """Malformed input, such as a non-positive quantity."""

    code = ErrorCode.INVALID_ARGUMENT
