"""
Stock Ledger Service - append-only signed entries per (item, zone).

Two parallel series share one interface, selected by ``ItemKind``:

- MATERIAL -> MaterialStockEntry (raw material)
- PRODUCT  -> ProductStockEntry (finished goods, optionally per presentation)

The balance of an (item, zone) pair is the sum of its entries. Positive
entries are lots; ``lots_oldest_first`` nets every outflow of the pair
against the oldest lots so each returned lot carries what is still
depletable. The ledger never checks that a balance stays non-negative;
that is the job of the FIFO engine and the movement services.
"""

from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func

from ..models import ItemKind, MaterialStockEntry, ProductStockEntry
from ..utils.constants import QUANTITY_QUANTUM, QUANTITY_TOLERANCE, ZERO
from .database import session_scope
from .exceptions import ValidationError


class _AnyPresentation:
    """Sentinel: do not filter product entries by presentation."""

    def __repr__(self) -> str:
        return "ANY"


ANY = _AnyPresentation()


@dataclass
class Lot:
    """A positive ledger entry with the quantity it still holds.

    Attributes:
        entry_id: ID of the positive ledger entry
        quantity: Depletable quantity remaining after prior outflows
        timestamp: Entry timestamp (FIFO ordering key)
    """

    entry_id: int
    quantity: Decimal
    timestamp: datetime


def to_quantity(value: Any) -> Decimal:
    """Convert a number to a Decimal at stored precision (4 places)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(QUANTITY_QUANTUM)


def exact_quantity(value: Any, label: str = "Quantity") -> Decimal:
    """
    Parse a caller-supplied quantity without rounding it.

    Raises:
        ValidationError: If the value is missing or not a finite number
    """
    if value is None or isinstance(value, bool):
        raise ValidationError([f"{label} is not a number: {value!r}"])
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except ArithmeticError:
        raise ValidationError([f"{label} is not a number: {value!r}"])
    if not quantity.is_finite():
        raise ValidationError([f"{label} is not a number: {value!r}"])
    return quantity


def ensure_scale(quantity: Decimal, label: str = "Quantity") -> Decimal:
    """
    Reject quantities finer than the stored precision (4 decimal places).

    Raises:
        ValidationError: If rounding to 4 places would change the value
    """
    try:
        fits = quantity.quantize(QUANTITY_QUANTUM) == quantity
    except ArithmeticError:
        fits = False
    if not fits:
        raise ValidationError([f"{label} has more than 4 decimal places: {quantity}"])
    return quantity


def positive_quantity(value: Any, label: str = "Quantity") -> Decimal:
    """Exact, strictly positive quantity at stored precision."""
    quantity = exact_quantity(value, label)
    if quantity <= ZERO:
        raise ValidationError([f"{label} must be greater than zero"])
    return ensure_scale(quantity, label)


def _kind_value(item_kind: Union[str, ItemKind]) -> str:
    value = item_kind.value if hasattr(item_kind, "value") else str(item_kind)
    if value not in (ItemKind.MATERIAL.value, ItemKind.PRODUCT.value):
        raise ValidationError([f"Unknown item kind: {value}"])
    return value


def _series(item_kind: Union[str, ItemKind]):
    """Return (model, item column) for a ledger series."""
    if _kind_value(item_kind) == ItemKind.MATERIAL.value:
        return MaterialStockEntry, MaterialStockEntry.material_id
    return ProductStockEntry, ProductStockEntry.product_id


def _pair_query(session, item_kind, item_id: int, zone_id: int, presentation):
    model, item_column = _series(item_kind)
    query = session.query(model).filter(item_column == item_id, model.zone_id == zone_id)
    if model is ProductStockEntry and presentation is not ANY:
        if presentation is None:
            query = query.filter(ProductStockEntry.presentation_id.is_(None))
        else:
            query = query.filter(ProductStockEntry.presentation_id == presentation)
    return model, query


def post(
    item_kind: Union[str, ItemKind],
    item_id: int,
    zone_id: int,
    quantity,
    note: Optional[str] = None,
    timestamp: Optional[datetime] = None,
    presentation_id: Optional[int] = None,
    lot_entry_id: Optional[int] = None,
    session=None,
) -> int:
    """
    Append a signed entry to a ledger series.

    Args:
        item_kind: MATERIAL or PRODUCT
        item_id: Material or product ID
        zone_id: Zone the movement happens in
        quantity: Signed quantity (positive = inflow, negative = outflow)
        note: Free-form reason
        timestamp: Movement time (default: now)
        presentation_id: Presentation for PRODUCT entries
        lot_entry_id: Lot this outflow was drawn from
        session: Optional session; when given the caller owns the transaction

    Returns:
        ID of the new entry

    Raises:
        ValidationError: If quantity is zero or the item kind is unknown
    """
    model, _ = _series(item_kind)
    quantity = to_quantity(quantity)
    if quantity == ZERO:
        raise ValidationError(["Ledger entries must have a non-zero quantity"])

    fields = {
        "zone_id": zone_id,
        "quantity": quantity,
        "note": note,
        "lot_entry_id": lot_entry_id,
    }
    if timestamp is not None:
        fields["timestamp"] = timestamp
    if model is MaterialStockEntry:
        fields["material_id"] = item_id
    else:
        fields["product_id"] = item_id
        fields["presentation_id"] = presentation_id

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        entry = model(**fields)
        session.add(entry)
        session.flush()
        return entry.id


def balance(
    item_kind: Union[str, ItemKind],
    item_id: int,
    zone_id: int,
    presentation=ANY,
    session=None,
) -> Decimal:
    """
    Sum of all entries for an (item, zone) pair; 0 when there are none.

    Args:
        presentation: For PRODUCT, restrict to a presentation ID (None means
            unpresented stock). Default ANY sums every presentation.
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        model, query = _pair_query(session, item_kind, item_id, zone_id, presentation)
        total = query.with_entities(func.sum(model.quantity)).scalar()
        return to_quantity(total)


def lots_oldest_first(
    item_kind: Union[str, ItemKind],
    item_id: int,
    zone_id: int,
    presentation=ANY,
    session=None,
) -> List[Lot]:
    """
    Depletable lots of an (item, zone) pair, oldest first.

    Positive entries are ordered by timestamp then ID. The total of the
    pair's negative entries is netted against them oldest first; lots left
    with nothing are omitted.

    Returns:
        List of Lot
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        model, query = _pair_query(session, item_kind, item_id, zone_id, presentation)
        entries = query.order_by(model.timestamp.asc(), model.id.asc()).all()

        outflow = sum((-to_quantity(e.quantity) for e in entries if e.quantity < 0), ZERO)
        lots = []
        for entry in entries:
            quantity = to_quantity(entry.quantity)
            if quantity <= ZERO:
                continue
            if outflow > ZERO:
                netted = min(quantity, outflow)
                quantity -= netted
                outflow -= netted
            if quantity > QUANTITY_TOLERANCE:
                lots.append(Lot(entry_id=entry.id, quantity=quantity, timestamp=entry.timestamp))
        return lots


def stock_summary(item_kind: Union[str, ItemKind], session=None) -> List[Dict[str, Any]]:
    """
    Non-zero balances per (item, zone), plus presentation for PRODUCT.

    Returns:
        List of dicts with item_id, zone_id, quantity (and presentation_id
        for finished goods), ordered by item then zone.
    """
    model, item_column = _series(item_kind)
    group_columns = [item_column, model.zone_id]
    if model is ProductStockEntry:
        group_columns.append(ProductStockEntry.presentation_id)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        rows = (
            session.query(*group_columns, func.sum(model.quantity).label("quantity"))
            .group_by(*group_columns)
            .order_by(*group_columns)
            .all()
        )

        summary = []
        for row in rows:
            quantity = to_quantity(row.quantity)
            if abs(quantity) <= QUANTITY_TOLERANCE:
                continue
            item = {"item_id": row[0], "zone_id": row.zone_id, "quantity": quantity}
            if model is ProductStockEntry:
                item["presentation_id"] = row.presentation_id
            summary.append(item)
        return summary
