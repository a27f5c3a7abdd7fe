"""
Production Service - record finished-good production.

Recording production:
    1. Plan raw material consumption from the recipe (or a manual list)
    2. FIFO-consume each material with the zone priority of its hint
    3. Post the produced quantity as a finished-good lot in a WAREHOUSE zone

All steps share one transaction: if any material is short nothing is
consumed and no finished good is posted.
"""

from contextlib import nullcontext
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models import ItemKind, Presentation, ZoneKind
from ..utils.constants import NOTE_PRODUCTION_CONSUMPTION, NOTE_PRODUCTION_RECEIPT
from .database import session_scope
from .exceptions import ValidationError, ZoneNotFound
from .logging_utils import get_service_logger, log_operation
from . import (
    composition_service,
    fifo_consumption_service,
    stock_ledger_service,
    zone_service,
)

logger = get_service_logger(__name__)


def _resolve_warehouse(session, warehouse_zone_id: Optional[int]):
    if warehouse_zone_id is not None:
        zone = zone_service.get_zone(warehouse_zone_id, session=session)
    else:
        zones = zone_service.list_zones_by_kind(ZoneKind.WAREHOUSE, session=session)
        if not zones:
            raise ZoneNotFound(ZoneKind.WAREHOUSE.value)
        zone = zones[0]
    zone_service.assert_accepts(ItemKind.PRODUCT, zone)
    return zone


def record_production(
    product_id: int,
    quantity,
    presentation_id: Optional[int] = None,
    warehouse_zone_id: Optional[int] = None,
    manual_lines: Optional[List[Dict[str, Any]]] = None,
    produced_at: Optional[datetime] = None,
    note: Optional[str] = None,
    session=None,
) -> Dict[str, Any]:
    """
    Record production of a finished good.

    Args:
        product_id: Product produced
        quantity: Kilograms produced
        presentation_id: Presentation the goods are packed in
        warehouse_zone_id: Destination zone (default: first WAREHOUSE zone)
        manual_lines: Optional explicit consumption list (material_id, quantity,
            zone_hint); when None the recipe is used
        produced_at: Timestamp for the ledger entries (default: now)
        note: Note stored on the finished-good entry
        session: Optional session; when given the caller owns the transaction

    Returns:
        Dict with product_id, quantity, warehouse_zone_id, product_entry_id and
        consumptions (one dict per material with its takes)

    Raises:
        ValidationError: If quantity is not positive or has more than 4 decimal
            places, or the presentation does not exist
        ProductNotFound: If the product does not exist
        InvalidComposition: If there is nothing valid to consume
        ZoneNotFound / ZoneRejected: If the destination zone is unusable
        InsufficientStock: If a material cannot be covered
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        plan = composition_service.plan_consumption(
            product_id, quantity, manual_lines=manual_lines, session=session
        )
        zone = _resolve_warehouse(session, warehouse_zone_id)
        if presentation_id is not None and session.get(Presentation, presentation_id) is None:
            raise ValidationError([f"Presentation with ID {presentation_id} not found"])

        consumptions = []
        for item in plan:
            result = fifo_consumption_service.consume(
                item["material_id"],
                item["quantity"],
                zone_priority=composition_service.zone_priority_for(item["zone_hint"]),
                note=NOTE_PRODUCTION_CONSUMPTION,
                session=session,
            )
            consumptions.append(
                {
                    "material_id": item["material_id"],
                    "quantity": result.consumed,
                    "takes": [
                        {
                            "zone_id": take.zone_id,
                            "lot_entry_id": take.lot_entry_id,
                            "quantity": take.quantity,
                        }
                        for take in result.takes
                    ],
                }
            )

        produced = stock_ledger_service.positive_quantity(quantity, "Produced quantity")
        entry_id = stock_ledger_service.post(
            ItemKind.PRODUCT,
            product_id,
            zone.id,
            produced,
            note=note or NOTE_PRODUCTION_RECEIPT,
            timestamp=produced_at,
            presentation_id=presentation_id,
            session=session,
        )

        log_operation(
            logger,
            operation="record_production",
            outcome="success",
            product_id=product_id,
            quantity=str(produced),
            warehouse_zone_id=zone.id,
            materials=len(consumptions),
        )
        return {
            "product_id": product_id,
            "quantity": produced,
            "presentation_id": presentation_id,
            "warehouse_zone_id": zone.id,
            "product_entry_id": entry_id,
            "consumptions": consumptions,
        }
