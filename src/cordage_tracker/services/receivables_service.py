"""
Receivables Service - payments and amounts owed per customer.

A delivery's amount due is the sum of its PEN line subtotals plus IGV
(sales tax, rate from config). Payments are recorded against a delivery;
what a customer owes is amount due minus PEN payments. Lines and
payments in other currencies are excluded from these totals.
"""

from contextlib import nullcontext
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from ..models import Customer, Delivery, Order, Payment
from ..utils.config import get_config
from ..utils.constants import ZERO
from ..utils.datetime_utils import as_date, today
from .database import session_scope
from .exceptions import CustomerNotFound, DeliveryNotFound, ValidationError
from .logging_utils import get_service_logger, log_operation
from .price_service import normalize_currency
from .stock_ledger_service import positive_quantity, to_quantity

logger = get_service_logger(__name__)

RECEIVABLE_CURRENCY = "PEN"
BALANCE_FILTERS = ("all", "with", "without")

_CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def record_payment(
    delivery_id: int,
    amount,
    payment_date=None,
    method: Optional[str] = None,
    currency: Optional[str] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    session=None,
) -> Payment:
    """
    Record a payment against a delivery.

    Args:
        delivery_id: Delivery being paid
        amount: Amount received (> 0)
        payment_date: Date received (default: today)
        method: Payment method
        currency: ISO currency code (default: configured default, PEN)
        reference: Bank/operation reference
        notes: Free-form notes
        created_by: User identifier for audit
        session: Optional session; when given the caller owns the transaction

    Returns:
        The created Payment

    Raises:
        DeliveryNotFound: If the delivery does not exist
        ValidationError: If amount is not positive or currency unsupported
    """
    amount = positive_quantity(amount, "Payment amount")
    currency = normalize_currency(currency)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        delivery = session.get(Delivery, delivery_id)
        if delivery is None:
            raise DeliveryNotFound(delivery_id)

        payment = Payment(
            delivery_id=delivery_id,
            order_id=delivery.order_id,
            customer_id=delivery.order.customer_id,
            payment_date=as_date(payment_date) or today(),
            amount=amount,
            currency=currency,
            method=method,
            reference=reference,
            notes=notes,
            created_by=created_by,
        )
        session.add(payment)
        session.flush()

        log_operation(
            logger,
            operation="record_payment",
            outcome="success",
            payment_id=payment.id,
            delivery_id=delivery_id,
            amount=str(amount),
            currency=currency,
        )
        return payment


def _delivery_balance(delivery: Delivery, igv_rate: Decimal) -> Dict[str, Any]:
    subtotal = sum(
        (line.subtotal for line in delivery.lines if line.currency == RECEIVABLE_CURRENCY),
        ZERO,
    )
    paid = sum(
        (
            to_quantity(payment.amount)
            for payment in delivery.payments
            if payment.currency == RECEIVABLE_CURRENCY
        ),
        ZERO,
    )
    subtotal = _money(subtotal)
    tax = _money(subtotal * igv_rate)
    total = subtotal + tax
    paid = _money(paid)
    return {
        "delivery_id": delivery.id,
        "order_id": delivery.order_id,
        "delivery_date": delivery.delivery_date,
        "invoice_ref": delivery.invoice_ref,
        "subtotal": subtotal,
        "tax": tax,
        "total": total,
        "paid": paid,
        "pending": total - paid,
    }


def _totals(rows: List[Dict[str, Any]]) -> Dict[str, Decimal]:
    keys = ("subtotal", "tax", "total", "paid", "pending")
    return {key: sum((row[key] for row in rows), ZERO) for key in keys}


def _deliveries(session, customer_id=None, date_from=None, date_to=None) -> List[Delivery]:
    query = session.query(Delivery).join(Order, Order.id == Delivery.order_id)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)
    if date_from is not None:
        query = query.filter(Delivery.delivery_date >= as_date(date_from))
    if date_to is not None:
        query = query.filter(Delivery.delivery_date <= as_date(date_to))
    return query.order_by(Delivery.delivery_date.asc(), Delivery.id.asc()).all()


def get_customer_receivable(
    customer_id: int,
    date_from=None,
    date_to=None,
    balance: str = "all",
    session=None,
) -> Dict[str, Any]:
    """
    What a customer owes, per delivery.

    Args:
        customer_id: Customer
        date_from: Only deliveries on or after this date
        date_to: Only deliveries on or before this date
        balance: "with" keeps deliveries with something pending, "without"
            keeps settled ones, "all" keeps everything
        session: Optional session

    Returns:
        Dict with customer_id, igv_rate, the subtotal/tax/total/paid/pending
        totals and the per-delivery rows they were built from

    Raises:
        CustomerNotFound: If the customer does not exist
        ValidationError: If balance is not one of all/with/without
    """
    if balance not in BALANCE_FILTERS:
        raise ValidationError([f"balance must be one of {', '.join(BALANCE_FILTERS)}"])
    igv_rate = get_config().igv_rate

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        customer = session.get(Customer, customer_id)
        if customer is None:
            raise CustomerNotFound(customer_id)

        rows = [
            _delivery_balance(delivery, igv_rate)
            for delivery in _deliveries(session, customer_id, date_from, date_to)
        ]
        if balance == "with":
            rows = [row for row in rows if row["pending"] > ZERO]
        elif balance == "without":
            rows = [row for row in rows if row["pending"] <= ZERO]

        return {
            "customer_id": customer_id,
            "customer_name": customer.name,
            "igv_rate": igv_rate,
            **_totals(rows),
            "deliveries": rows,
        }


def get_receivables_summary(session=None) -> Dict[str, Any]:
    """
    Receivables across all customers.

    Returns:
        Dict with igv_rate, global totals and one row per customer with
        deliveries, ordered by customer ID
    """
    igv_rate = get_config().igv_rate

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        by_customer: Dict[int, List[Dict[str, Any]]] = {}
        for delivery in _deliveries(session):
            by_customer.setdefault(delivery.order.customer_id, []).append(
                _delivery_balance(delivery, igv_rate)
            )

        customers = []
        for customer_id in sorted(by_customer):
            customer = session.get(Customer, customer_id)
            customers.append(
                {
                    "customer_id": customer_id,
                    "customer_name": customer.name,
                    "delivery_count": len(by_customer[customer_id]),
                    **_totals(by_customer[customer_id]),
                }
            )

        return {
            "igv_rate": igv_rate,
            **_totals(customers),
            "customers": customers,
        }
