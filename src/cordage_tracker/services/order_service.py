"""
Order Service - orders, order lines and their derived fulfillment state.

Delivered quantity is always the sum of DeliveryLine quantities for a line;
outstanding is ordered minus delivered. Neither is stored. The order's
status column is a cached summary refreshed by recompute_order_status.

Line edits keep the invariant ``ordered_quantity >= delivered``:
- a line can't be reduced below what was already delivered
- a line with any delivery can't be deleted
"""

from contextlib import nullcontext
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func

from ..models import (
    Customer,
    DeliveryLine,
    LineState,
    Order,
    OrderLine,
    OrderStatus,
    Presentation,
    Product,
)
from ..utils.constants import HUNDRED, QUANTITY_TOLERANCE, ZERO
from ..utils.datetime_utils import as_date
from .database import session_scope
from .exceptions import (
    CustomerNotFound,
    InvalidLine,
    OrderLineNotFound,
    OrderNotFound,
    ProductNotFound,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .stock_ledger_service import positive_quantity, to_quantity

logger = get_service_logger(__name__)


# =============================================================================
# Helpers
# =============================================================================


def _get_order(session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


def _get_line(session, order_line_id: int) -> OrderLine:
    line = session.get(OrderLine, order_line_id)
    if line is None:
        raise OrderLineNotFound(order_line_id)
    return line


def _validated_quantity(value, label: str) -> Decimal:
    return positive_quantity(value, label)


def _check_line_refs(session, product_id: int, presentation_id: Optional[int]) -> None:
    if session.get(Product, product_id) is None:
        raise ProductNotFound(product_id)
    if presentation_id is not None and session.get(Presentation, presentation_id) is None:
        raise ValidationError([f"Presentation with ID {presentation_id} not found"])


def _delivered_by_line(session, order_id: int) -> Dict[int, Decimal]:
    rows = (
        session.query(DeliveryLine.order_line_id, func.sum(DeliveryLine.quantity))
        .join(OrderLine, OrderLine.id == DeliveryLine.order_line_id)
        .filter(OrderLine.order_id == order_id)
        .group_by(DeliveryLine.order_line_id)
        .all()
    )
    return {line_id: to_quantity(total) for line_id, total in rows}


def _line_id(order_line: Union[int, OrderLine]) -> int:
    return order_line.id if isinstance(order_line, OrderLine) else order_line


# =============================================================================
# Orders and lines
# =============================================================================


def create_order(
    customer_id: int,
    lines: List[Dict[str, Any]],
    created_by: Optional[str] = None,
    order_date=None,
    notes: Optional[str] = None,
    session=None,
) -> Order:
    """
    Create an order with its lines.

    Args:
        customer_id: Customer placing the order
        lines: List of dicts with product_id, quantity and optional presentation_id
        created_by: User identifier for audit
        order_date: Order date (default: today)
        notes: Free-form notes
        session: Optional session; when given the caller owns the transaction

    Returns:
        The created Order (status PENDING) with its lines

    Raises:
        CustomerNotFound: If the customer does not exist
        ProductNotFound: If a line names an unknown product
        ValidationError: If there are no lines or a quantity is not positive
    """
    if not lines:
        raise ValidationError(["An order needs at least one line"])

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        if session.get(Customer, customer_id) is None:
            raise CustomerNotFound(customer_id)

        order = Order(
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            created_by=created_by,
            notes=notes,
        )
        if order_date is not None:
            order.order_date = as_date(order_date)

        for index, line in enumerate(lines, start=1):
            product_id = line.get("product_id")
            presentation_id = line.get("presentation_id")
            quantity = _validated_quantity(line.get("quantity"), f"Line {index} quantity")
            _check_line_refs(session, product_id, presentation_id)
            order.lines.append(
                OrderLine(
                    product_id=product_id,
                    ordered_quantity=quantity,
                    presentation_id=presentation_id,
                )
            )

        session.add(order)
        session.flush()

        log_operation(
            logger,
            operation="create_order",
            outcome="success",
            order_id=order.id,
            customer_id=customer_id,
            line_count=len(order.lines),
        )
        return order


def add_order_line(
    order_id: int,
    product_id: int,
    quantity,
    presentation_id: Optional[int] = None,
    session=None,
) -> OrderLine:
    """
    Add a line to an existing order and refresh the order status.

    Raises:
        OrderNotFound: If the order does not exist
        ProductNotFound: If the product does not exist
        ValidationError: If quantity is not positive
    """
    quantity = _validated_quantity(quantity, "Quantity")

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        order = _get_order(session, order_id)
        _check_line_refs(session, product_id, presentation_id)

        line = OrderLine(
            product_id=product_id,
            ordered_quantity=quantity,
            presentation_id=presentation_id,
        )
        order.lines.append(line)
        session.flush()
        recompute_order_status(order_id, session=session)
        return line


def update_order_line(
    order_line_id: int,
    quantity=None,
    product_id: Optional[int] = None,
    presentation_id: Optional[int] = None,
    session=None,
) -> OrderLine:
    """
    Edit an order line.

    Only the given fields change. The ordered quantity may not drop below
    what has already been delivered, and a line with deliveries keeps its
    product.

    Raises:
        OrderLineNotFound: If the line does not exist
        InvalidLine: If the edit would break the delivered-quantity invariant
        ValidationError: If quantity is not positive
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        line = _get_line(session, order_line_id)
        delivered = get_delivered_quantity(order_line_id, session=session)

        if quantity is not None:
            new_quantity = _validated_quantity(quantity, "Quantity")
            if new_quantity < delivered - QUANTITY_TOLERANCE:
                raise InvalidLine(
                    order_line_id,
                    f"ordered quantity {new_quantity} is below delivered {delivered}",
                )
            line.ordered_quantity = new_quantity

        if product_id is not None and product_id != line.product_id:
            if delivered > ZERO:
                raise InvalidLine(order_line_id, "product of a delivered line can't change")
            _check_line_refs(session, product_id, None)
            line.product_id = product_id

        if presentation_id is not None:
            _check_line_refs(session, line.product_id, presentation_id)
            line.presentation_id = presentation_id

        session.flush()
        recompute_order_status(line.order_id, session=session)
        return line


def delete_order_line(order_line_id: int, session=None) -> bool:
    """
    Delete an order line that has never been delivered.

    Raises:
        OrderLineNotFound: If the line does not exist
        InvalidLine: If any delivery references the line
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        line = _get_line(session, order_line_id)
        has_deliveries = (
            session.query(DeliveryLine.id)
            .filter(DeliveryLine.order_line_id == order_line_id)
            .first()
            is not None
        )
        if has_deliveries:
            raise InvalidLine(order_line_id, "line has deliveries and can't be deleted")

        order_id = line.order_id
        order = _get_order(session, order_id)
        order.lines.remove(line)
        session.flush()
        recompute_order_status(order_id, session=session)
        return True


# =============================================================================
# Derived quantities
# =============================================================================


def get_delivered_quantity(order_line_id: int, session=None) -> Decimal:
    """Sum of quantities delivered against an order line (0 when none)."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        total = (
            session.query(func.sum(DeliveryLine.quantity))
            .filter(DeliveryLine.order_line_id == order_line_id)
            .scalar()
        )
        return to_quantity(total)


def get_outstanding_quantity(order_line: Union[int, OrderLine], session=None) -> Decimal:
    """
    Ordered minus delivered for an order line, never below zero.

    Args:
        order_line: OrderLine instance or its ID
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        line = _get_line(session, _line_id(order_line))
        delivered = get_delivered_quantity(line.id, session=session)
        return max(to_quantity(line.ordered_quantity) - delivered, ZERO)


def line_state(order_line: Union[int, OrderLine], session=None) -> LineState:
    """OPEN while anything is outstanding, FULFILLED otherwise."""
    outstanding = get_outstanding_quantity(order_line, session=session)
    if outstanding <= QUANTITY_TOLERANCE:
        return LineState.FULFILLED
    return LineState.OPEN


def _status_for(lines: List[OrderLine], delivered: Dict[int, Decimal]) -> OrderStatus:
    if lines and all(
        to_quantity(line.ordered_quantity) - delivered.get(line.id, ZERO) <= QUANTITY_TOLERANCE
        for line in lines
    ):
        return OrderStatus.DELIVERED
    if any(quantity > ZERO for quantity in delivered.values()):
        return OrderStatus.IN_PROGRESS
    return OrderStatus.PENDING


def recompute_order_status(order_id: int, session=None) -> OrderStatus:
    """
    Refresh an order's stored status from its lines.

    DELIVERED when the order has lines and all are fulfilled, IN_PROGRESS
    when anything has been delivered, PENDING otherwise.

    Raises:
        OrderNotFound: If the order does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        order = _get_order(session, order_id)
        status = _status_for(list(order.lines), _delivered_by_line(session, order_id))
        if order.status != status.value:
            log_operation(
                logger,
                operation="recompute_order_status",
                outcome="changed",
                order_id=order_id,
                old_status=order.status,
                new_status=status.value,
            )
            order.status = status.value
            session.flush()
        return status


def get_order_progress(order_id: int, session=None) -> Dict[str, Any]:
    """
    Fulfillment progress of an order.

    Returns:
        Dict with order_id, status, ordered, delivered, outstanding (sum of
        per-line outstanding), percent (0-100, two decimals) and per-line details
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        order = _get_order(session, order_id)
        delivered_by_line = _delivered_by_line(session, order_id)

        line_details = []
        ordered_total = ZERO
        delivered_total = ZERO
        outstanding_total = ZERO
        for line in order.lines:
            ordered = to_quantity(line.ordered_quantity)
            delivered = delivered_by_line.get(line.id, ZERO)
            ordered_total += ordered
            delivered_total += delivered
            outstanding = max(ordered - delivered, ZERO)
            outstanding_total += outstanding
            line_details.append(
                {
                    "order_line_id": line.id,
                    "product_id": line.product_id,
                    "presentation_id": line.presentation_id,
                    "ordered": ordered,
                    "delivered": delivered,
                    "outstanding": outstanding,
                    "state": (
                        LineState.FULFILLED
                        if ordered - delivered <= QUANTITY_TOLERANCE
                        else LineState.OPEN
                    ).value,
                }
            )

        if ordered_total > ZERO:
            percent = (delivered_total / ordered_total * HUNDRED).quantize(
                Decimal("0.01"), rounding=ROUND_HALF_UP
            )
        else:
            percent = Decimal("0.00")

        return {
            "order_id": order.id,
            "status": order.status,
            "ordered": ordered_total,
            "delivered": delivered_total,
            "outstanding": outstanding_total,
            "percent": percent,
            "lines": line_details,
        }
