"""
Composition Service - product recipes and consumption planning.

A recipe lists, per product, the share (percentage) of its weight drawn
from each raw material, optionally tagged with a rope part or a preferred
source zone kind. Recipes may be partial (sum below 100).

plan_consumption turns either the recipe or a manual list into the
per-material quantities the FIFO engine should consume.
"""

from contextlib import nullcontext
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..models import Material, Product, ProductComposition, ZoneKind
from ..utils.constants import (
    COMPOSITION_ZONE_HINTS,
    DEFAULT_ZONE_PRIORITY,
    HUNDRED,
    MAX_PERCENTAGE,
    QUANTITY_TOLERANCE,
    ZERO,
    ZONE_KIND_PRODUCTION,
    ZONE_KIND_RECEPTION,
)
from .database import session_scope
from .exceptions import InvalidComposition, MaterialNotFound, ProductNotFound
from .logging_utils import get_service_logger, log_operation
from .stock_ledger_service import ensure_scale, positive_quantity, to_quantity

logger = get_service_logger(__name__)


def _to_decimal(value: Any, label: str, product_id: int) -> Decimal:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (ArithmeticError, ValueError):
        number = None
    if number is None or not number.is_finite():
        raise InvalidComposition(f"{label} is not a number: {value!r}", product_id=product_id)
    return number


def _get_product(session, product_id: int) -> Product:
    product = session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    return product


def _row_dict(row: ProductComposition) -> Dict[str, Any]:
    return {
        "material_id": row.material_id,
        "percentage": Decimal(row.percentage),
        "zone_hint": row.zone_hint,
    }


def replace_composition(
    product_id: int, lines: List[Dict[str, Any]], session=None
) -> List[Dict[str, Any]]:
    """
    Replace a product's whole recipe.

    Args:
        product_id: Product whose recipe is replaced
        lines: List of dicts with material_id, percentage and optional zone_hint
        session: Optional session; when given the caller owns the transaction

    Returns:
        The stored recipe as a list of dicts

    Raises:
        ProductNotFound: If the product does not exist
        MaterialNotFound: If a line names an unknown material
        InvalidComposition: If lines are empty, a material id is missing, a
            percentage is outside 0..100, a zone hint is not allowed, or the
            percentages sum above 100
    """
    if not lines:
        raise InvalidComposition("composition must have at least one line", product_id=product_id)

    validated = []
    total = ZERO
    for index, line in enumerate(lines, start=1):
        material_id = line.get("material_id")
        if material_id is None:
            raise InvalidComposition(f"line {index} has no material_id", product_id=product_id)

        percentage = _to_decimal(line.get("percentage"), f"line {index} percentage", product_id)
        if percentage < ZERO or percentage > MAX_PERCENTAGE:
            raise InvalidComposition(
                f"line {index} percentage {percentage} is outside 0..100",
                product_id=product_id,
            )

        zone_hint = line.get("zone_hint")
        if zone_hint is not None:
            zone_hint = str(zone_hint).upper()
            if zone_hint not in COMPOSITION_ZONE_HINTS:
                raise InvalidComposition(
                    f"line {index} zone hint {zone_hint!r} is not allowed",
                    product_id=product_id,
                )

        total += percentage
        validated.append((material_id, percentage, zone_hint))

    if total > HUNDRED + QUANTITY_TOLERANCE:
        raise InvalidComposition(
            f"percentages sum to {total}, more than 100", product_id=product_id
        )

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        product = _get_product(session, product_id)
        for material_id, _, _ in validated:
            if session.get(Material, material_id) is None:
                raise MaterialNotFound(material_id)

        product.composition = [
            ProductComposition(material_id=material_id, percentage=percentage, zone_hint=zone_hint)
            for material_id, percentage, zone_hint in validated
        ]
        session.flush()

        log_operation(
            logger,
            operation="replace_composition",
            outcome="success",
            product_id=product_id,
            line_count=len(validated),
            total_percentage=str(total),
        )
        return [_row_dict(row) for row in product.composition]


def get_composition(product_id: int, session=None) -> List[Dict[str, Any]]:
    """
    Get a product's recipe ordered as it was stored.

    Raises:
        ProductNotFound: If the product does not exist
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        product = _get_product(session, product_id)
        return [_row_dict(row) for row in product.composition]


def plan_consumption(
    product_id: int,
    total_quantity,
    manual_lines: Optional[List[Dict[str, Any]]] = None,
    session=None,
) -> List[Dict[str, Any]]:
    """
    Compute the raw material to consume for a quantity of finished good.

    Recipe mode (manual_lines is None): each recipe row yields
    ``total_quantity * percentage / 100``.

    Manual mode: the given rows (material_id, quantity, optional zone_hint)
    are used as-is, but together they may not exceed total_quantity.

    Rows with a non-positive quantity are dropped in both modes.

    Returns:
        List of dicts with material_id, quantity and zone_hint

    Raises:
        ValidationError: If total_quantity is not positive, or a quantity has
            more than 4 decimal places
        ProductNotFound: If the product does not exist
        MaterialNotFound: If a manual row names an unknown material
        InvalidComposition: If the recipe is empty in recipe mode, manual rows
            exceed total_quantity, or nothing is left to consume
    """
    total = positive_quantity(total_quantity, "Produced quantity")

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        product = _get_product(session, product_id)

        plan = []
        if manual_lines is not None:
            manual_total = ZERO
            for index, line in enumerate(manual_lines, start=1):
                material_id = line.get("material_id")
                if material_id is None:
                    raise InvalidComposition(
                        f"manual line {index} has no material_id", product_id=product_id
                    )
                label = f"manual line {index} quantity"
                quantity = _to_decimal(line.get("quantity"), label, product_id)
                if quantity <= ZERO:
                    continue
                ensure_scale(quantity, label)
                if session.get(Material, material_id) is None:
                    raise MaterialNotFound(material_id)
                manual_total += quantity
                plan.append(
                    {
                        "material_id": material_id,
                        "quantity": quantity,
                        "zone_hint": line.get("zone_hint"),
                    }
                )
            if manual_total > total + QUANTITY_TOLERANCE:
                raise InvalidComposition(
                    f"manual quantities sum to {manual_total}, more than produced {total}",
                    product_id=product_id,
                )
        else:
            recipe = product.composition
            if not recipe:
                raise InvalidComposition("product has no composition", product_id=product_id)
            for row in recipe:
                quantity = to_quantity(total * Decimal(row.percentage) / HUNDRED)
                if quantity <= ZERO:
                    continue
                plan.append(
                    {
                        "material_id": row.material_id,
                        "quantity": quantity,
                        "zone_hint": row.zone_hint,
                    }
                )

        if not plan:
            raise InvalidComposition("nothing to consume", product_id=product_id)
        return plan


def zone_priority_for(zone_hint: Optional[str]) -> List[str]:
    """
    Zone kinds to consume from, in order, for a composition zone hint.

    A RECEPTION hint draws from reception first; anything else (including
    rope part tags) uses the default PRODUCTION, RECEPTION order.
    """
    hint = zone_hint.value if isinstance(zone_hint, ZoneKind) else zone_hint
    if hint is not None and str(hint).upper() == ZONE_KIND_RECEPTION:
        return [ZONE_KIND_RECEPTION, ZONE_KIND_PRODUCTION]
    return list(DEFAULT_ZONE_PRIORITY)
