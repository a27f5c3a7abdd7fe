"""Service layer exception classes for Cordage Tracker.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Every exception carries an ``ErrorKind`` so callers (an HTTP layer, a CLI)
can map failures to stable codes with ``to_error_payload``.

Exception Hierarchy:
    ServiceError (base)
    ├── ZoneNotFound, MaterialNotFound, ProductNotFound, CustomerNotFound,
    │   OrderNotFound, OrderLineNotFound, DeliveryNotFound,
    │   SupplierNotFound, PurchaseNotFound                    (NOT_FOUND)
    ├── InvalidLine
    ├── AlreadyFulfilled
    ├── OverDelivery
    ├── NoEffectivePrice
    ├── InsufficientStock
    ├── InvalidComposition
    ├── ValidationError
    │   └── ZoneRejected
    └── DatabaseError
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds raised by the service layer."""

    NOT_FOUND = "NOT_FOUND"
    INVALID_LINE = "INVALID_LINE"
    ALREADY_FULFILLED = "ALREADY_FULFILLED"
    OVER_DELIVERY = "OVER_DELIVERY"
    NO_EFFECTIVE_PRICE = "NO_EFFECTIVE_PRICE"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_COMPOSITION = "INVALID_COMPOSITION"
    VALIDATION = "VALIDATION"
    DATABASE = "DATABASE"


class ServiceError(Exception):
    """Base exception for all service layer errors.

    Subclasses set ``kind`` and fill ``context`` with the identifiers and
    quantities a caller needs to report the failure.
    """

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context: Dict[str, Any] = context
        super().__init__(message)


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(ServiceError):
    """Base for lookups by id that found nothing."""

    kind = ErrorKind.NOT_FOUND
    entity = "Record"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found", id=entity_id)


class ZoneNotFound(NotFoundError):
    """Raised when a zone cannot be found by ID or name.

    Example:
        >>> raise ZoneNotFound("PT_ALMACEN")
        ZoneNotFound: Zone with ID PT_ALMACEN not found
    """

    entity = "Zone"


class MaterialNotFound(NotFoundError):
    """Raised when a raw material cannot be found by ID."""

    entity = "Material"


class ProductNotFound(NotFoundError):
    """Raised when a finished good cannot be found by ID."""

    entity = "Product"


class CustomerNotFound(NotFoundError):
    """Raised when a customer cannot be found by ID."""

    entity = "Customer"


class OrderNotFound(NotFoundError):
    """Raised when an order cannot be found by ID."""

    entity = "Order"


class OrderLineNotFound(NotFoundError):
    """Raised when an order line cannot be found by ID."""

    entity = "Order line"


class DeliveryNotFound(NotFoundError):
    """Raised when a delivery cannot be found by ID."""

    entity = "Delivery"


class SupplierNotFound(NotFoundError):
    """Raised when a supplier cannot be found by ID."""

    entity = "Supplier"


class PurchaseNotFound(NotFoundError):
    """Raised when a purchase document cannot be found by ID."""

    entity = "Purchase"


# =============================================================================
# Fulfillment
# =============================================================================


class InvalidLine(ServiceError):
    """Raised when an order line is missing, belongs to another order, or
    an edit would break the delivered-quantity invariant.

    Args:
        order_line_id: The offending order line
        reason: Human readable explanation
    """

    kind = ErrorKind.INVALID_LINE

    def __init__(self, order_line_id: Optional[int], reason: str):
        self.order_line_id = order_line_id
        self.reason = reason
        super().__init__(
            f"Invalid order line {order_line_id}: {reason}",
            order_line_id=order_line_id,
        )


class AlreadyFulfilled(ServiceError):
    """Raised when delivering against an order line with nothing outstanding."""

    kind = ErrorKind.ALREADY_FULFILLED

    def __init__(self, order_line_id: int):
        self.order_line_id = order_line_id
        super().__init__(
            f"Order line {order_line_id} is already fulfilled",
            order_line_id=order_line_id,
        )


class OverDelivery(ServiceError):
    """Raised when a requested quantity exceeds what is outstanding.

    Args:
        order_line_id: The order line being delivered
        requested: Quantity requested in this delivery
        outstanding: Quantity still outstanding on the line

    Example:
        >>> raise OverDelivery(7, Decimal("3"), Decimal("2"))
        OverDelivery: Requested 3 exceeds outstanding 2 on order line 7
    """

    kind = ErrorKind.OVER_DELIVERY

    def __init__(self, order_line_id: int, requested: Decimal, outstanding: Decimal):
        self.order_line_id = order_line_id
        self.requested = requested
        self.outstanding = outstanding
        super().__init__(
            f"Requested {requested} exceeds outstanding {outstanding} "
            f"on order line {order_line_id}",
            order_line_id=order_line_id,
            requested=requested,
            outstanding=outstanding,
        )


class NoEffectivePrice(ServiceError):
    """Raised when no price is in effect and the caller supplied none."""

    kind = ErrorKind.NO_EFFECTIVE_PRICE

    def __init__(self, customer_id: int, product_id: int, at_date):
        self.customer_id = customer_id
        self.product_id = product_id
        self.at_date = at_date
        super().__init__(
            f"No price in effect for customer {customer_id}, "
            f"product {product_id} on {at_date}",
            customer_id=customer_id,
            product_id=product_id,
            at_date=at_date,
        )


# =============================================================================
# Stock
# =============================================================================


class InsufficientStock(ServiceError):
    """Raised when there is not enough stock to cover a consumption.

    Args:
        item_kind: MATERIAL or PRODUCT
        item_id: Material or product ID
        required: Quantity requested
        available: Quantity that could have been covered
    """

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, item_kind: str, item_id: int, required: Decimal, available: Decimal):
        self.item_kind = item_kind
        self.item_id = item_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_kind.lower()} {item_id}: "
            f"required {required}, available {available}",
            item_kind=item_kind,
            item_id=item_id,
            required=required,
            available=available,
        )


class InvalidComposition(ServiceError):
    """Raised when a recipe or a manual consumption list is malformed."""

    kind = ErrorKind.INVALID_COMPOSITION

    def __init__(self, reason: str, product_id: Optional[int] = None):
        self.reason = reason
        self.product_id = product_id
        super().__init__(f"Invalid composition: {reason}", product_id=product_id)


# =============================================================================
# Generic
# =============================================================================


class ValidationError(ServiceError):
    """Raised when data validation fails."""

    kind = ErrorKind.VALIDATION

    def __init__(self, errors: list):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}", errors=list(errors))


class ZoneRejected(ValidationError):
    """Raised when an item kind may not be stored in a zone's kind."""

    def __init__(self, item_kind: str, zone_id: int, zone_kind: str):
        self.item_kind = item_kind
        self.zone_id = zone_id
        self.zone_kind = zone_kind
        super().__init__([f"Zone {zone_id} ({zone_kind}) does not accept {item_kind.lower()}"])
        self.context.update(item_kind=item_kind, zone_id=zone_id, zone_kind=zone_kind)


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    kind = ErrorKind.DATABASE

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


def to_error_payload(exc: Exception) -> Dict[str, Any]:
    """
    Map an exception to a stable, JSON-safe payload.

    Service errors keep their kind and context; anything else is reported
    as a DATABASE failure without leaking internals.

    Args:
        exc: The exception to convert

    Returns:
        Dict with "kind", "message" and the error context
    """
    if not isinstance(exc, ServiceError):
        return {"kind": ErrorKind.DATABASE.value, "message": "Unexpected error"}

    payload: Dict[str, Any] = {"kind": exc.kind.value, "message": exc.message}
    for key, value in exc.context.items():
        if isinstance(value, Decimal):
            value = str(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        payload[key] = value
    return payload
