"""
Stock Movement Service - receipts, transfers between zones and scrap.

Every movement checks that the zones involved accept the item kind.
Outflows check the source balance first; unlike the FIFO engine, a
movement draws from one zone only.
"""

import logging
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Dict, Optional, Union

from ..models import ItemKind, Material, Product, ScrapRecord, ZoneKind
from ..utils.constants import (
    NOTE_SCRAP,
    NOTE_TRANSFER_IN,
    NOTE_TRANSFER_OUT,
    QUANTITY_TOLERANCE,
    ZERO,
)
from .database import session_scope
from .exceptions import InsufficientStock, MaterialNotFound, ProductNotFound, ValidationError
from .logging_utils import get_service_logger, log_operation
from . import stock_ledger_service, zone_service

logger = get_service_logger(__name__)


def _kind(item_kind: Union[str, ItemKind]) -> ItemKind:
    try:
        return ItemKind(item_kind.value if hasattr(item_kind, "value") else item_kind)
    except ValueError:
        raise ValidationError([f"Unknown item kind: {item_kind}"])


def _positive(quantity):
    return stock_ledger_service.positive_quantity(quantity)


def _check_item(session, kind: ItemKind, item_id: int) -> None:
    if kind is ItemKind.MATERIAL:
        if session.get(Material, item_id) is None:
            raise MaterialNotFound(item_id)
    elif session.get(Product, item_id) is None:
        raise ProductNotFound(item_id)


def _accepting_zone(session, kind: ItemKind, zone_id: int):
    zone = zone_service.get_zone(zone_id, session=session)
    zone_service.assert_accepts(kind, zone)
    return zone


def _require_balance(session, kind: ItemKind, item_id, zone_id, quantity, presentation_id):
    presentation = presentation_id if kind is ItemKind.PRODUCT else stock_ledger_service.ANY
    available = stock_ledger_service.balance(
        kind, item_id, zone_id, presentation=presentation, session=session
    )
    if quantity > available + QUANTITY_TOLERANCE:
        log_operation(
            logger,
            operation="stock_movement",
            outcome="insufficient_stock",
            level=logging.WARNING,
            item_kind=kind.value,
            item_id=item_id,
            zone_id=zone_id,
            required=str(quantity),
            available=str(available),
        )
        raise InsufficientStock(kind.value, item_id, quantity, max(available, ZERO))


def receive_stock(
    item_kind: Union[str, ItemKind],
    item_id: int,
    zone_id: int,
    quantity,
    presentation_id: Optional[int] = None,
    timestamp: Optional[datetime] = None,
    note: Optional[str] = None,
    session=None,
) -> int:
    """
    Post an inbound lot (purchase receipt, opening balance, return).

    Returns:
        ID of the positive ledger entry

    Raises:
        ValidationError: If quantity is not positive
        MaterialNotFound / ProductNotFound: If the item does not exist
        ZoneNotFound / ZoneRejected: If the zone is unusable for the item kind
    """
    kind = _kind(item_kind)
    quantity = _positive(quantity)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        _check_item(session, kind, item_id)
        _accepting_zone(session, kind, zone_id)
        return stock_ledger_service.post(
            kind,
            item_id,
            zone_id,
            quantity,
            note=note,
            timestamp=timestamp,
            presentation_id=presentation_id if kind is ItemKind.PRODUCT else None,
            session=session,
        )


def transfer_stock(
    item_kind: Union[str, ItemKind],
    item_id: int,
    from_zone_id: int,
    to_zone_id: int,
    quantity,
    presentation_id: Optional[int] = None,
    note: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Move stock from one zone to another.

    Returns:
        Dict with out_entry_id, in_entry_id and quantity

    Raises:
        ValidationError: If quantity is not positive or both zones are the same
        ZoneRejected: If either zone does not accept the item kind
        InsufficientStock: If the source balance doesn't cover the quantity
    """
    kind = _kind(item_kind)
    quantity = _positive(quantity)
    if from_zone_id == to_zone_id:
        raise ValidationError(["Source and destination zones must differ"])
    presentation_id = presentation_id if kind is ItemKind.PRODUCT else None

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        _check_item(session, kind, item_id)
        _accepting_zone(session, kind, from_zone_id)
        _accepting_zone(session, kind, to_zone_id)
        _require_balance(session, kind, item_id, from_zone_id, quantity, presentation_id)

        out_id = stock_ledger_service.post(
            kind,
            item_id,
            from_zone_id,
            -quantity,
            note=note or NOTE_TRANSFER_OUT,
            presentation_id=presentation_id,
            session=session,
        )
        in_id = stock_ledger_service.post(
            kind,
            item_id,
            to_zone_id,
            quantity,
            note=note or NOTE_TRANSFER_IN,
            presentation_id=presentation_id,
            session=session,
        )

        log_operation(
            logger,
            operation="transfer_stock",
            outcome="success",
            item_kind=kind.value,
            item_id=item_id,
            from_zone_id=from_zone_id,
            to_zone_id=to_zone_id,
            quantity=str(quantity),
        )
        return {"out_entry_id": out_id, "in_entry_id": in_id, "quantity": quantity}


def record_scrap(
    item_kind: Union[str, ItemKind],
    item_id: int,
    origin_zone_id: int,
    quantity,
    presentation_id: Optional[int] = None,
    note: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Write off material or finished goods from a zone.

    The quantity is deducted from the origin zone and a ScrapRecord is
    written. Raw material taken from outside a SCRAP zone is posted into the
    first SCRAP zone, when one exists, so it stays traceable there.

    Returns:
        Dict with scrap_record_id, out_entry_id, scrap_entry_id (None when
        nothing was posted into a SCRAP zone) and quantity

    Raises:
        ValidationError: If quantity is not positive
        ZoneRejected: If the origin zone does not accept the item kind
        InsufficientStock: If the origin balance doesn't cover the quantity
    """
    kind = _kind(item_kind)
    quantity = _positive(quantity)
    presentation_id = presentation_id if kind is ItemKind.PRODUCT else None
    reason = note or NOTE_SCRAP

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        _check_item(session, kind, item_id)
        origin = _accepting_zone(session, kind, origin_zone_id)
        _require_balance(session, kind, item_id, origin_zone_id, quantity, presentation_id)

        out_id = stock_ledger_service.post(
            kind,
            item_id,
            origin_zone_id,
            -quantity,
            note=reason,
            presentation_id=presentation_id,
            session=session,
        )

        scrap_entry_id = None
        if kind is ItemKind.MATERIAL and origin.kind != ZoneKind.SCRAP.value:
            scrap_zones = zone_service.list_zones_by_kind(ZoneKind.SCRAP, session=session)
            if scrap_zones:
                scrap_entry_id = stock_ledger_service.post(
                    kind, item_id, scrap_zones[0].id, quantity, note=reason, session=session
                )

        record = ScrapRecord(
            item_type=kind.value,
            origin_zone_id=origin_zone_id,
            material_id=item_id if kind is ItemKind.MATERIAL else None,
            product_id=item_id if kind is ItemKind.PRODUCT else None,
            presentation_id=presentation_id,
            quantity=quantity,
            note=note,
        )
        session.add(record)
        session.flush()

        log_operation(
            logger,
            operation="record_scrap",
            outcome="success",
            item_kind=kind.value,
            item_id=item_id,
            origin_zone_id=origin_zone_id,
            quantity=str(quantity),
        )
        return {
            "scrap_record_id": record.id,
            "out_entry_id": out_id,
            "scrap_entry_id": scrap_entry_id,
            "quantity": quantity,
        }
