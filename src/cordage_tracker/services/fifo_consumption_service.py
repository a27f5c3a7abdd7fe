"""
FIFO Consumption Engine - draws stock from ordered zones, oldest lot first.

Algorithm (raw material):
    1. For each zone kind in the priority list (default PRODUCTION, RECEPTION)
    2. For each zone of that kind, ID ascending
    3. For each lot of the material in that zone, oldest first
    4. Take min(remaining, lot quantity) and decrement remaining
    5. Stop once remaining <= tolerance

Every take is planned before anything is posted. When the plan cannot
cover the request, InsufficientStock is raised and no entry is written,
so balances are left exactly as they were. The engine runs inside the
caller's session and never commits.
"""

import logging
from contextlib import nullcontext
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from ..models import ItemKind, Material, Product, ZoneKind
from ..utils.constants import (
    DEFAULT_ZONE_PRIORITY,
    MATERIAL_ZONE_KINDS,
    NOTE_DELIVERY_DEDUCTION,
    NOTE_PRODUCTION_CONSUMPTION,
    QUANTITY_TOLERANCE,
    ZERO,
)
from .database import session_scope
from .exceptions import (
    InsufficientStock,
    MaterialNotFound,
    ProductNotFound,
    ValidationError,
)
from .logging_utils import get_service_logger, log_operation
from . import stock_ledger_service, zone_service

logger = get_service_logger(__name__)


@dataclass
class Take:
    """One planned (then posted) draw from a lot.

    Attributes:
        zone_id: Zone the lot lives in
        lot_entry_id: Positive ledger entry drawn from
        quantity: Quantity taken (positive)
        entry_id: ID of the negative ledger entry, set once posted
    """

    zone_id: int
    lot_entry_id: int
    quantity: Decimal
    entry_id: Optional[int] = None


@dataclass
class ConsumptionResult:
    """Outcome of a successful consumption.

    Attributes:
        item_kind: MATERIAL or PRODUCT
        item_id: Material or product consumed
        requested: Total quantity requested
        takes: Draws in the order they were made
    """

    item_kind: str
    item_id: int
    requested: Decimal
    takes: List[Take] = field(default_factory=list)

    @property
    def consumed(self) -> Decimal:
        return sum((take.quantity for take in self.takes), ZERO)

    @property
    def zones_touched(self) -> List[int]:
        seen = []
        for take in self.takes:
            if take.zone_id not in seen:
                seen.append(take.zone_id)
        return seen


def _priority_values(zone_priority: Optional[Sequence[Union[str, ZoneKind]]]) -> List[str]:
    """Zone kinds to visit, in order, each once."""
    if zone_priority is None:
        return list(DEFAULT_ZONE_PRIORITY)
    values = []
    for kind in zone_priority:
        value = (kind.value if hasattr(kind, "value") else str(kind)).upper()
        if value not in MATERIAL_ZONE_KINDS:
            raise ValidationError([f"Zone kind {value} can't hold raw material"])
        if value not in values:
            values.append(value)
    if not values:
        raise ValidationError(["Zone priority must name at least one zone kind"])
    return values


def _plan(session, item_kind: str, item_id: int, zones, required: Decimal, presentation):
    """Walk zones and lots in order; return (takes, remaining)."""
    remaining = required
    takes = []
    for zone in zones:
        if remaining <= QUANTITY_TOLERANCE:
            break
        zone_service.assert_accepts(item_kind, zone)
        lots = stock_ledger_service.lots_oldest_first(
            item_kind, item_id, zone.id, presentation=presentation, session=session
        )
        for lot in lots:
            if remaining <= QUANTITY_TOLERANCE:
                break
            take = min(remaining, lot.quantity)
            if take > ZERO:
                takes.append(Take(zone_id=zone.id, lot_entry_id=lot.entry_id, quantity=take))
                remaining -= take
    return takes, remaining


def _post_takes(session, item_kind: str, item_id: int, takes, note, presentation_id=None):
    for take in takes:
        take.entry_id = stock_ledger_service.post(
            item_kind,
            item_id,
            take.zone_id,
            -take.quantity,
            note=note,
            presentation_id=presentation_id,
            lot_entry_id=take.lot_entry_id,
            session=session,
        )


def consume(
    material_id: int,
    total_quantity,
    zone_priority: Optional[Sequence[Union[str, ZoneKind]]] = None,
    note: Optional[str] = None,
    session=None,
) -> ConsumptionResult:
    """
    Consume raw material across zones, oldest lot first.

    Args:
        material_id: Material to consume
        total_quantity: Quantity to consume (must be > 0)
        zone_priority: Zone kinds in visiting order (default PRODUCTION, RECEPTION)
        note: Note stored on each outflow entry
        session: Optional session; when given the caller owns the transaction

    Returns:
        ConsumptionResult with one Take per lot drawn

    Raises:
        ValidationError: If total_quantity is not positive, has more than 4
            decimal places, or the priority list is empty or names a zone kind
            that can't hold raw material
        MaterialNotFound: If the material does not exist
        InsufficientStock: If all listed zones together cannot cover the request
    """
    required = stock_ledger_service.positive_quantity(total_quantity, "Quantity to consume")
    priority = _priority_values(zone_priority)

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        if session.get(Material, material_id) is None:
            raise MaterialNotFound(material_id)

        zones = []
        for kind in priority:
            zones.extend(zone_service.list_zones_by_kind(kind, session=session))

        takes, remaining = _plan(
            session, ItemKind.MATERIAL.value, material_id, zones, required, stock_ledger_service.ANY
        )
        if remaining > QUANTITY_TOLERANCE:
            available = required - remaining
            log_operation(
                logger,
                operation="consume",
                outcome="insufficient_stock",
                level=logging.WARNING,
                material_id=material_id,
                required=str(required),
                available=str(available),
            )
            raise InsufficientStock(ItemKind.MATERIAL.value, material_id, required, available)

        _post_takes(
            session,
            ItemKind.MATERIAL.value,
            material_id,
            takes,
            note or NOTE_PRODUCTION_CONSUMPTION,
        )

        log_operation(
            logger,
            operation="consume",
            outcome="success",
            level=logging.DEBUG,
            material_id=material_id,
            required=str(required),
            lots_drawn=len(takes),
        )
        return ConsumptionResult(
            item_kind=ItemKind.MATERIAL.value,
            item_id=material_id,
            requested=required,
            takes=takes,
        )


def deduct_product_fifo(
    product_id: int,
    quantity,
    presentation_id: Optional[int] = None,
    note: Optional[str] = None,
    session=None,
) -> ConsumptionResult:
    """
    Deduct finished goods from WAREHOUSE zones, oldest lot first.

    Only lots of the given presentation are considered; ``None`` matches
    only stock recorded without a presentation.

    Raises:
        ValidationError: If quantity is not positive or too precise
        ProductNotFound: If the product does not exist
        InsufficientStock: If warehouse stock of that presentation is short
    """
    required = stock_ledger_service.positive_quantity(quantity, "Quantity to deduct")

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        if session.get(Product, product_id) is None:
            raise ProductNotFound(product_id)

        zones = zone_service.list_zones_by_kind(ZoneKind.WAREHOUSE, session=session)
        takes, remaining = _plan(
            session, ItemKind.PRODUCT.value, product_id, zones, required, presentation_id
        )
        if remaining > QUANTITY_TOLERANCE:
            available = required - remaining
            log_operation(
                logger,
                operation="deduct_product_fifo",
                outcome="insufficient_stock",
                level=logging.WARNING,
                product_id=product_id,
                presentation_id=presentation_id,
                required=str(required),
                available=str(available),
            )
            raise InsufficientStock(ItemKind.PRODUCT.value, product_id, required, available)

        _post_takes(
            session,
            ItemKind.PRODUCT.value,
            product_id,
            takes,
            note or NOTE_DELIVERY_DEDUCTION,
            presentation_id=presentation_id,
        )
        return ConsumptionResult(
            item_kind=ItemKind.PRODUCT.value,
            item_id=product_id,
            requested=required,
            takes=takes,
        )
