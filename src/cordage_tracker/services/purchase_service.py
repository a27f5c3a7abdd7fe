"""
Purchase Service - supplier documents that bring raw material into stock.

A purchase is a supplier document (invoice, guide) with one or more raw
material items. Creating it prices each item, totals the document with
IGV and receives every item as a lot in a RECEPTION zone, all in one
transaction: if any item fails, no header, item or lot is stored.

Example Usage:
    >>> from cordage_tracker.services import purchase_service
    >>> purchase = purchase_service.create_purchase(
    ...     supplier_id=1,
    ...     document_type="FACTURA",
    ...     document_number="F001-000123",
    ...     document_date="2024-03-01",
    ...     items=[{"material_id": 4, "quantity": "250", "unit_price": "6.40"}],
    ... )
    >>> purchase["total_amount"]
    Decimal('1888.00')
"""

from contextlib import nullcontext
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from ..models import ItemKind, Material, Purchase, PurchaseItem, Supplier, Zone, ZoneKind
from ..utils.config import get_config
from ..utils.constants import MONEY_QUANTUM, NOTE_PURCHASE_RECEIPT, ZERO
from ..utils.datetime_utils import as_date
from .database import session_scope
from .exceptions import (
    MaterialNotFound,
    PurchaseNotFound,
    SupplierNotFound,
    ValidationError,
    ZoneNotFound,
)
from .logging_utils import get_service_logger, log_operation
from .price_service import normalize_currency
from .stock_ledger_service import ensure_scale, exact_quantity, positive_quantity, to_quantity
from . import stock_movement_service

logger = get_service_logger(__name__)


def _money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def _header_errors(document_type, document_number, document_date, items) -> List[str]:
    errors = []
    if not document_type or not str(document_type).strip():
        errors.append("Document type is required")
    if not document_number or not str(document_number).strip():
        errors.append("Document number is required")
    if document_date is None:
        errors.append("Document date is required")
    if not items:
        errors.append("A purchase needs at least one item")
    return errors


def _validated_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Parse item quantities and prices; material existence is checked later."""
    validated = []
    for index, item in enumerate(items, start=1):
        material_id = item.get("material_id")
        if material_id is None:
            raise ValidationError([f"Item {index} has no material"])
        quantity = positive_quantity(item.get("quantity"), f"Item {index} quantity")

        raw_price = item.get("unit_price")
        unit_price = ZERO if raw_price is None else exact_quantity(raw_price, f"Item {index} unit price")
        if unit_price < ZERO:
            raise ValidationError([f"Item {index} unit price can't be negative"])
        ensure_scale(unit_price, f"Item {index} unit price")

        validated.append(
            {
                "material_id": material_id,
                "quantity": quantity,
                "unit_price": unit_price,
                "total_price": _money(quantity * unit_price),
                "notes": item.get("notes"),
            }
        )
    return validated


def _reception_zone(session, zone_id: Optional[int]) -> Zone:
    if zone_id is None:
        zone = (
            session.query(Zone)
            .filter(Zone.kind == ZoneKind.RECEPTION.value)
            .order_by(Zone.id.asc())
            .first()
        )
        if zone is None:
            raise ZoneNotFound(ZoneKind.RECEPTION.value)
        return zone

    zone = session.get(Zone, zone_id)
    if zone is None:
        raise ZoneNotFound(zone_id)
    if zone.kind != ZoneKind.RECEPTION.value:
        raise ValidationError([f"Purchases are received into a RECEPTION zone, not {zone.kind}"])
    return zone


def _purchase_to_dict(purchase: Purchase) -> Dict[str, Any]:
    return {
        "id": purchase.id,
        "supplier_id": purchase.supplier_id,
        "supplier_name": purchase.supplier.name if purchase.supplier else None,
        "document_type": purchase.document_type,
        "document_number": purchase.document_number,
        "document_date": purchase.document_date,
        "currency": purchase.currency,
        "total_net": _money(Decimal(purchase.total_net)),
        "tax_amount": _money(Decimal(purchase.tax_amount)),
        "total_amount": _money(Decimal(purchase.total_amount)),
        "notes": purchase.notes,
        "items": [
            {
                "id": item.id,
                "material_id": item.material_id,
                "quantity": to_quantity(item.quantity),
                "unit_price": to_quantity(item.unit_price),
                "total_price": _money(Decimal(item.total_price)),
                "stock_entry_id": item.stock_entry_id,
            }
            for item in purchase.items
        ],
    }


def create_purchase(
    supplier_id: int,
    document_type: str,
    document_number: str,
    document_date,
    items: List[Dict[str, Any]],
    currency: Optional[str] = None,
    tax_amount=None,
    reception_zone_id: Optional[int] = None,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Record a supplier document and receive its items into stock.

    Args:
        supplier_id: Supplier issuing the document
        document_type: Document kind as printed (FACTURA, BOLETA, GUIA...)
        document_number: Document number as printed
        document_date: Date on the document (date or ISO string)
        items: Dicts with material_id, quantity (> 0), optional unit_price
            (default 0) and notes
        currency: ISO currency code (default: configured default, PEN)
        tax_amount: Tax stated on the document; when None, IGV is computed
            from the net total at the configured rate
        reception_zone_id: RECEPTION zone to receive into (default: the
            lowest-ID RECEPTION zone)
        notes: Free-form notes
        created_by: User identifier for audit
        session: Optional session; when given the caller owns the transaction

    Returns:
        Purchase dict with totals and items (each with its stock_entry_id)

    Raises:
        ValidationError: If a header field is missing, an item is invalid,
            the currency is unsupported or the zone is not a RECEPTION zone
        SupplierNotFound: If the supplier does not exist
        MaterialNotFound: If an item names an unknown material
        ZoneNotFound: If the zone does not exist or there is no RECEPTION zone
    """
    errors = _header_errors(document_type, document_number, document_date, items)
    if errors:
        raise ValidationError(errors)

    day = as_date(document_date)
    currency = normalize_currency(currency)
    lines = _validated_items(items)

    total_net = _money(sum((line["total_price"] for line in lines), ZERO))
    if tax_amount is None:
        tax = _money(total_net * get_config().igv_rate)
    else:
        tax = exact_quantity(tax_amount, "Tax amount")
        if tax < ZERO:
            raise ValidationError(["Tax amount can't be negative"])
        tax = _money(tax)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        supplier = session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierNotFound(supplier_id)
        for line in lines:
            if session.get(Material, line["material_id"]) is None:
                raise MaterialNotFound(line["material_id"])
        zone = _reception_zone(session, reception_zone_id)

        purchase = Purchase(
            supplier_id=supplier_id,
            document_type=str(document_type).strip().upper(),
            document_number=str(document_number).strip(),
            document_date=day,
            currency=currency,
            total_net=total_net,
            tax_amount=tax,
            total_amount=total_net + tax,
            notes=notes,
            created_by=created_by,
        )
        session.add(purchase)
        session.flush()

        for line in lines:
            entry_id = stock_movement_service.receive_stock(
                ItemKind.MATERIAL,
                line["material_id"],
                zone.id,
                line["quantity"],
                note=f"{NOTE_PURCHASE_RECEIPT} #{purchase.id}",
                session=session,
            )
            purchase.items.append(
                PurchaseItem(
                    material_id=line["material_id"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    total_price=line["total_price"],
                    stock_entry_id=entry_id,
                    notes=line["notes"],
                )
            )
        session.flush()

        log_operation(
            logger,
            operation="create_purchase",
            outcome="success",
            purchase_id=purchase.id,
            supplier_id=supplier_id,
            zone_id=zone.id,
            item_count=len(lines),
            total_amount=str(purchase.total_amount),
        )
        return _purchase_to_dict(purchase)


def get_purchase(purchase_id: int, session=None) -> Dict[str, Any]:
    """
    Get a purchase with its items.

    Raises:
        PurchaseNotFound: If no purchase has this ID
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        purchase = session.get(Purchase, purchase_id)
        if purchase is None:
            raise PurchaseNotFound(purchase_id)
        return _purchase_to_dict(purchase)


def list_purchases(
    supplier_id: Optional[int] = None,
    date_from=None,
    date_to=None,
    session=None,
) -> List[Dict[str, Any]]:
    """List purchases newest first, optionally by supplier and inclusive date range."""
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = session.query(Purchase)
        if supplier_id is not None:
            query = query.filter(Purchase.supplier_id == supplier_id)
        if date_from is not None:
            query = query.filter(Purchase.document_date >= as_date(date_from))
        if date_to is not None:
            query = query.filter(Purchase.document_date <= as_date(date_to))
        purchases = query.order_by(Purchase.document_date.desc(), Purchase.id.desc()).all()
        return [_purchase_to_dict(p) for p in purchases]
