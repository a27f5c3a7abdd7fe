"""
Price Service - customer/product prices with validity intervals.

Per (customer, product) pair, price intervals never overlap and at most
one is open-ended. ``valid_to`` is inclusive: an interval
[2024-01-01, 2024-01-31] applies on the 31st.

upsert_price keeps those rules when a price is set on a date d:

    covering interval identical          -> unchanged
    covering interval starts on d        -> updated_in_place
    covering interval starts before d    -> split (close at d-1, new from d)
    nothing covers d, later one exists   -> inserted_bounded [d, next-1]
    nothing covers d, nothing later      -> inserted_open
"""

from contextlib import nullcontext
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from ..models import Customer, CustomerProductPrice, Product
from ..utils.config import get_config
from ..utils.constants import SUPPORTED_CURRENCIES, ZERO
from ..utils.datetime_utils import as_date, previous_day, today
from .database import session_scope
from .exceptions import CustomerNotFound, ProductNotFound, ValidationError
from .logging_utils import get_service_logger, log_operation
from .stock_ledger_service import ensure_scale, exact_quantity, to_quantity

logger = get_service_logger(__name__)

ACTION_INSERTED_OPEN = "inserted_open"
ACTION_UPDATED_IN_PLACE = "updated_in_place"
ACTION_SPLIT = "split"
ACTION_INSERTED_BOUNDED = "inserted_bounded"
ACTION_UNCHANGED = "unchanged"


@dataclass
class PriceUpsertResult:
    """Outcome of upsert_price.

    Attributes:
        action: One of the ACTION_* constants
        price_id: Interval now in effect on the requested date
        valid_from: Start of that interval
        valid_to: End of that interval (None when open)
        closed_price_id: Interval that was closed by a split, if any
    """

    action: str
    price_id: int
    valid_from: date
    valid_to: Optional[date]
    closed_price_id: Optional[int] = None


def normalize_currency(currency: Optional[str]) -> str:
    """Upper-case a currency code; None falls back to the configured default."""
    if currency is None:
        return get_config().default_currency
    value = str(currency).strip().upper()
    if value not in SUPPORTED_CURRENCIES:
        raise ValidationError([f"Unsupported currency: {currency}"])
    return value


def _pair_query(session, customer_id: int, product_id: int):
    return session.query(CustomerProductPrice).filter(
        CustomerProductPrice.customer_id == customer_id,
        CustomerProductPrice.product_id == product_id,
    )


def _covering(query, day: date):
    return (
        query.filter(
            CustomerProductPrice.valid_from <= day,
            or_(CustomerProductPrice.valid_to.is_(None), CustomerProductPrice.valid_to >= day),
        )
        .order_by(CustomerProductPrice.valid_from.desc(), CustomerProductPrice.id.desc())
        .first()
    )


def resolve_price(
    customer_id: int, product_id: int, at_date=None, session=None
) -> Optional[CustomerProductPrice]:
    """
    Price interval in effect for a customer/product on a date.

    Args:
        at_date: Date to resolve (default: today)

    Returns:
        The covering CustomerProductPrice, or None when no interval covers
        the date. Ties resolve to the greatest valid_from.
    """
    day = as_date(at_date) or today()
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        return _covering(_pair_query(session, customer_id, product_id), day)


def upsert_price(
    customer_id: int,
    product_id: int,
    price,
    currency: Optional[str] = None,
    at_date=None,
    session=None,
) -> PriceUpsertResult:
    """
    Set a customer's price for a product from a date onwards.

    Args:
        customer_id: Customer
        product_id: Product
        price: New price per kilogram (>= 0)
        currency: ISO currency code (default: configured default, PEN)
        at_date: Date the price takes effect (default: today)
        session: Optional session; when given the caller owns the transaction

    Returns:
        PriceUpsertResult describing which rule applied

    Raises:
        CustomerNotFound / ProductNotFound: If either does not exist
        ValidationError: If price is negative or currency unsupported
    """
    day = as_date(at_date) or today()
    price = ensure_scale(exact_quantity(price, "Price"), "Price")
    if price < ZERO:
        raise ValidationError(["Price can't be negative"])
    currency = normalize_currency(currency)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        if session.get(Customer, customer_id) is None:
            raise CustomerNotFound(customer_id)
        if session.get(Product, product_id) is None:
            raise ProductNotFound(product_id)

        query = _pair_query(session, customer_id, product_id).with_for_update()
        covering = _covering(query, day)
        closed_id = None

        if covering is not None:
            if to_quantity(covering.price) == price and covering.currency == currency:
                action = ACTION_UNCHANGED
                target = covering
            elif covering.valid_from == day:
                covering.price = price
                covering.currency = currency
                action = ACTION_UPDATED_IN_PLACE
                target = covering
            else:
                old_end = covering.valid_to
                covering.valid_to = previous_day(day)
                target = CustomerProductPrice(
                    customer_id=customer_id,
                    product_id=product_id,
                    price=price,
                    currency=currency,
                    valid_from=day,
                    valid_to=old_end,
                )
                session.add(target)
                closed_id = covering.id
                action = ACTION_SPLIT
        else:
            following = (
                query.filter(CustomerProductPrice.valid_from > day)
                .order_by(CustomerProductPrice.valid_from.asc())
                .first()
            )
            target = CustomerProductPrice(
                customer_id=customer_id,
                product_id=product_id,
                price=price,
                currency=currency,
                valid_from=day,
                valid_to=previous_day(following.valid_from) if following is not None else None,
            )
            session.add(target)
            action = ACTION_INSERTED_BOUNDED if following is not None else ACTION_INSERTED_OPEN

        session.flush()

        log_operation(
            logger,
            operation="upsert_price",
            outcome=action,
            customer_id=customer_id,
            product_id=product_id,
            price=str(price),
            currency=currency,
            at_date=day.isoformat(),
        )
        return PriceUpsertResult(
            action=action,
            price_id=target.id,
            valid_from=target.valid_from,
            valid_to=target.valid_to,
            closed_price_id=closed_id,
        )


def get_effective_price_info(
    customer_id: int, product_id: int, at_date=None, session=None
) -> Dict[str, Any]:
    """
    Price in effect for display and delivery forms.

    Returns:
        Dict with price_id, price, currency, effective_from and effective_to.
        When nothing is in effect the price is 0 in the default currency and
        the other fields are None.
    """
    interval = resolve_price(customer_id, product_id, at_date, session=session)
    if interval is None:
        return {
            "price_id": None,
            "price": ZERO,
            "currency": get_config().default_currency,
            "effective_from": None,
            "effective_to": None,
        }
    return {
        "price_id": interval.id,
        "price": to_quantity(interval.price),
        "currency": interval.currency,
        "effective_from": interval.valid_from,
        "effective_to": interval.valid_to,
    }


def list_price_history(customer_id: int, product_id: int, session=None) -> List[Dict[str, Any]]:
    """All price intervals of a customer/product pair, newest first."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        intervals = (
            _pair_query(session, customer_id, product_id)
            .order_by(CustomerProductPrice.valid_from.desc(), CustomerProductPrice.id.desc())
            .all()
        )
        return [
            {
                "price_id": interval.id,
                "price": to_quantity(interval.price),
                "currency": interval.currency,
                "valid_from": interval.valid_from,
                "valid_to": interval.valid_to,
            }
            for interval in intervals
        ]
