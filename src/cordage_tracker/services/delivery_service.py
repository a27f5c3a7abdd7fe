"""
Delivery Service - partial fulfillment of orders.

Creating a delivery:
    1. Validate the order and that every line belongs to it
    2. Re-read delivered quantity per line inside the transaction (row lock
       on the order line) and reject anything above what is outstanding
    3. Price each line: caller price (optionally remembered as the
       customer's price) or the price in effect on the delivery date
    4. Deduct finished goods FIFO from WAREHOUSE zones
    5. Insert header and lines

Steps 1-5 are one transaction. The order status is refreshed afterwards
in a separate, best-effort transaction.
"""

import logging
from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..models import Delivery, DeliveryLine, Order, OrderLine
from ..utils.constants import NOTE_DELIVERY_DEDUCTION, QUANTITY_TOLERANCE, ZERO
from ..utils.datetime_utils import as_date, today
from .database import session_scope
from .exceptions import (
    AlreadyFulfilled,
    DatabaseError,
    DeliveryNotFound,
    InvalidLine,
    NoEffectivePrice,
    OrderNotFound,
    OverDelivery,
    ServiceError,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from .stock_ledger_service import ensure_scale, exact_quantity, to_quantity
from . import fifo_consumption_service, order_service, price_service

logger = get_service_logger(__name__)


def _line_quantity(item: Dict[str, Any], index: int) -> Decimal:
    """Requested quantity exactly as given; precision is checked after outstanding."""
    quantity = exact_quantity(item.get("quantity"), f"Line {index} quantity")
    if quantity <= ZERO:
        raise ValidationError([f"Line {index} quantity must be greater than zero"])
    return quantity


def _lock_order_line(session, order_line_id: int) -> Optional[OrderLine]:
    return (
        session.query(OrderLine)
        .filter(OrderLine.id == order_line_id)
        .with_for_update()
        .first()
    )


def _price_line(session, order: Order, order_line: OrderLine, item, day, remember_prices: bool):
    """Return (unit_price, currency) for a delivery line."""
    if item.get("unit_price") is not None:
        unit_price = ensure_scale(exact_quantity(item["unit_price"], "Unit price"), "Unit price")
        if unit_price < ZERO:
            raise ValidationError(["Unit price can't be negative"])
        currency = price_service.normalize_currency(item.get("currency"))
        if remember_prices:
            price_service.upsert_price(
                order.customer_id,
                order_line.product_id,
                unit_price,
                currency=currency,
                at_date=day,
                session=session,
            )
        return unit_price, currency

    interval = price_service.resolve_price(
        order.customer_id, order_line.product_id, day, session=session
    )
    if interval is None:
        raise NoEffectivePrice(order.customer_id, order_line.product_id, day)
    if item.get("currency") is not None:
        requested = price_service.normalize_currency(item["currency"])
        if requested != interval.currency:
            raise ValidationError(
                [
                    f"Price in effect is in {interval.currency}, not {requested}; "
                    "pass unit_price to bill in another currency"
                ]
            )
    return to_quantity(interval.price), interval.currency


def create_delivery(
    order_id: int,
    lines: List[Dict[str, Any]],
    explicit_date=None,
    invoice_ref: Optional[str] = None,
    created_by: Optional[str] = None,
    deduct_stock: bool = True,
    remember_prices: bool = True,
    session=None,
) -> Dict[str, Any]:
    """
    Record a (partial) delivery against an order.

    Args:
        order_id: Order being delivered
        lines: List of dicts with order_line_id, quantity and optional
            unit_price, currency, description
        explicit_date: Delivery date (default: today); also the pricing date
        invoice_ref: Invoice code, if already billed
        created_by: User identifier for audit
        deduct_stock: Deduct finished goods from WAREHOUSE zones (default True)
        remember_prices: Store caller-supplied prices as the customer's price
            from the delivery date (default True)
        session: Optional session. When given, the caller owns the transaction
            and must call order_service.recompute_order_status after commit.

    Returns:
        Dict with delivery_id, order_id, delivery_date, lines, total and
        order_status (None when the caller owns the session or the refresh
        failed)

    Raises:
        OrderNotFound: If the order does not exist
        InvalidLine: If a line is missing or belongs to another order
        AlreadyFulfilled: If a line has nothing outstanding
        OverDelivery: If a quantity exceeds what is outstanding
        NoEffectivePrice: If no price is given or in effect
        InsufficientStock: If warehouse stock can't cover a line
        ValidationError: If lines are empty or a quantity/price is malformed
        DatabaseError: If the store fails unexpectedly
    """
    owns_session = session is None
    day = as_date(explicit_date) or today()

    def _create_delivery_impl(sess) -> Dict[str, Any]:
        order = sess.get(Order, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if not lines:
            raise ValidationError(["A delivery needs at least one line"])

        requested: Dict[int, Decimal] = {}
        delivery = Delivery(
            order_id=order_id,
            delivery_date=day,
            invoice_ref=invoice_ref,
            created_by=created_by,
        )

        for index, item in enumerate(lines, start=1):
            order_line_id = item.get("order_line_id")
            quantity = _line_quantity(item, index)

            order_line = _lock_order_line(sess, order_line_id) if order_line_id else None
            if order_line is None:
                raise InvalidLine(order_line_id, "order line not found")
            if order_line.order_id != order_id:
                raise InvalidLine(order_line_id, f"line does not belong to order {order_id}")

            delivered = order_service.get_delivered_quantity(order_line_id, session=sess)
            delivered += requested.get(order_line_id, ZERO)
            outstanding = to_quantity(order_line.ordered_quantity) - delivered
            if outstanding <= QUANTITY_TOLERANCE:
                raise AlreadyFulfilled(order_line_id)
            if quantity > outstanding + QUANTITY_TOLERANCE:
                raise OverDelivery(order_line_id, quantity, outstanding)
            ensure_scale(quantity, f"Line {index} quantity")

            unit_price, currency = _price_line(sess, order, order_line, item, day, remember_prices)

            if deduct_stock:
                fifo_consumption_service.deduct_product_fifo(
                    order_line.product_id,
                    quantity,
                    presentation_id=order_line.presentation_id,
                    note=f"{NOTE_DELIVERY_DEDUCTION} order {order_id}",
                    session=sess,
                )

            delivery.lines.append(
                DeliveryLine(
                    order_line_id=order_line_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    currency=currency,
                    description=item.get("description"),
                )
            )
            requested[order_line_id] = requested.get(order_line_id, ZERO) + quantity

        sess.add(delivery)
        sess.flush()

        line_results = [
            {
                "delivery_line_id": line.id,
                "order_line_id": line.order_line_id,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "currency": line.currency,
                "subtotal": line.subtotal,
            }
            for line in delivery.lines
        ]
        return {
            "delivery_id": delivery.id,
            "order_id": order_id,
            "delivery_date": day,
            "invoice_ref": invoice_ref,
            "lines": line_results,
            "total": sum((line["subtotal"] for line in line_results), ZERO),
            "order_status": None,
        }

    cm = nullcontext(session) if session is not None else session_scope()
    try:
        with cm as sess:
            result = _create_delivery_impl(sess)
    except ServiceError as e:
        log_operation(
            logger,
            operation="create_delivery",
            outcome=e.kind.value.lower(),
            level=logging.WARNING,
            order_id=order_id,
            error=str(e),
        )
        raise
    except SQLAlchemyError as e:
        raise DatabaseError(f"Failed to create delivery for order {order_id}", original_error=e)

    log_operation(
        logger,
        operation="create_delivery",
        outcome="success",
        delivery_id=result["delivery_id"],
        order_id=order_id,
        line_count=len(result["lines"]),
    )

    if owns_session:
        try:
            status = order_service.recompute_order_status(order_id)
            result["order_status"] = status.value
        except Exception as e:
            # Delivery is committed; a stale status is fixed on the next recompute.
            log_operation(
                logger,
                operation="recompute_order_status",
                outcome="error",
                level=logging.ERROR,
                order_id=order_id,
                error=str(e),
            )

    return result


def get_delivery(delivery_id: int, session=None) -> Delivery:
    """
    Get a delivery header with its lines.

    Raises:
        DeliveryNotFound: If the delivery does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        delivery = session.get(Delivery, delivery_id)
        if delivery is None:
            raise DeliveryNotFound(delivery_id)
        # Load lines before the session may close
        list(delivery.lines)
        return delivery


def list_deliveries_by_order(order_id: int, session=None) -> List[Dict[str, Any]]:
    """
    All deliveries of an order, oldest first, with their lines.

    Raises:
        OrderNotFound: If the order does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        if session.get(Order, order_id) is None:
            raise OrderNotFound(order_id)

        deliveries = (
            session.query(Delivery)
            .filter(Delivery.order_id == order_id)
            .order_by(Delivery.delivery_date.asc(), Delivery.id.asc())
            .all()
        )
        results = []
        for delivery in deliveries:
            lines = [
                {
                    "delivery_line_id": line.id,
                    "order_line_id": line.order_line_id,
                    "quantity": to_quantity(line.quantity),
                    "unit_price": to_quantity(line.unit_price),
                    "currency": line.currency,
                    "description": line.description,
                    "subtotal": line.subtotal,
                }
                for line in delivery.lines
            ]
            results.append(
                {
                    "delivery_id": delivery.id,
                    "delivery_date": delivery.delivery_date,
                    "invoice_ref": delivery.invoice_ref,
                    "created_by": delivery.created_by,
                    "total_quantity": to_quantity(delivery.total_quantity),
                    "lines": lines,
                    "total": sum((line["subtotal"] for line in lines), ZERO),
                }
            )
        return results
