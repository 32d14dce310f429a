"""Error taxonomy for order operations.

Every error raised by the order service carries an ``ErrorKind`` so callers
(the HTTP layer, tests) can branch on the kind instead of parsing messages.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    PRODUCT_NOT_FOUND = "product_not_found"
    CONFLICT = "conflict"
    LOCKED = "locked"
    STORE = "store"


class OrderServiceError(Exception):
    """Base exception for all order service errors."""

    kind: ErrorKind = ErrorKind.STORE

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(OrderServiceError):
    """Raised when an order payload or status is malformed. Nothing was written."""

    kind = ErrorKind.VALIDATION

    def __init__(self, messages: list[str]):
        self.messages = list(messages)
        super().__init__("Validation failed: " + ", ".join(self.messages), details=self.messages)


class NotFoundError(OrderServiceError):
    """Raised when a referenced order does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found: {identifier}")


class InsufficientStockError(OrderServiceError):
    """Raised when a conditional stock decrement matched no row."""

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, product_id: int, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for product ID {product_id}. "
            f"Available: {available}, Required: {requested}",
            details={
                "product_id": product_id,
                "available": available,
                "requested": requested,
                "shortfall": requested - available,
            },
        )

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


class ProductNotFoundError(OrderServiceError):
    """Raised when an order line references a product id that does not exist."""

    kind = ErrorKind.PRODUCT_NOT_FOUND

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found", details={"product_id": product_id})


class ConflictError(OrderServiceError):
    """Raised when a write violates a uniqueness constraint (duplicate order number)."""

    kind = ErrorKind.CONFLICT


class StoreError(OrderServiceError):
    """Raised when the database fails underneath an operation.

    ``transient`` marks connectivity problems where retrying later may succeed.
    """

    kind = ErrorKind.STORE

    def __init__(self, message: str, transient: bool = False, details: Optional[Any] = None):
        self.transient = transient
        super().__init__(message, details=details)


class OrderLockedError(OrderServiceError):
    """Raised when deleting an order whose goods have shipped or been delivered."""

    kind = ErrorKind.LOCKED

    def __init__(self, order_id: int, status: str):
        self.order_id = order_id
        self.status = status
        super().__init__(
            f"Order {order_id} is {status} and cannot be deleted",
            details={"order_id": order_id, "status": status},
        )
