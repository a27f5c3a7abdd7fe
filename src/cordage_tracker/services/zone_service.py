"""
Zone Registry - lookup of storage/process zones and admission rules.

Zones are reference data. This module answers two questions for the rest
of the service layer: which zones of a kind exist (in the deterministic
order the FIFO engine walks them), and whether an item kind may be stored
in a given zone.

Admission rules:
    MATERIAL: RECEPTION, PRODUCTION, SCRAP
    PRODUCT:  WAREHOUSE
"""

from contextlib import nullcontext
from typing import List, Union

from ..models import Zone, ZoneKind, ItemKind
from ..utils.constants import MATERIAL_ZONE_KINDS, PRODUCT_ZONE_KINDS
from .database import session_scope
from .exceptions import ZoneNotFound, ZoneRejected, ValidationError


_ACCEPTED_KINDS = {
    ItemKind.MATERIAL.value: MATERIAL_ZONE_KINDS,
    ItemKind.PRODUCT.value: PRODUCT_ZONE_KINDS,
}


def _kind_value(kind: Union[str, ZoneKind, ItemKind]) -> str:
    return kind.value if hasattr(kind, "value") else str(kind)


def get_zone(zone_id: int, session=None) -> Zone:
    """
    Get a zone by ID.

    Raises:
        ZoneNotFound: If no zone has this ID
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        zone = session.get(Zone, zone_id)
        if zone is None:
            raise ZoneNotFound(zone_id)
        return zone


def get_zone_by_name(name: str, session=None) -> Zone:
    """
    Get a zone by its unique name.

    Raises:
        ZoneNotFound: If no zone has this name
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        zone = session.query(Zone).filter(Zone.name == name).first()
        if zone is None:
            raise ZoneNotFound(name)
        return zone


def list_zones_by_kind(kind: Union[str, ZoneKind], session=None) -> List[Zone]:
    """
    List all zones of a kind, ordered by ID ascending.

    The order is the order the FIFO engine visits zones within a kind.

    Raises:
        ValidationError: If kind is not a known zone kind
    """
    kind_value = _kind_value(kind)
    if kind_value not in {k.value for k in ZoneKind}:
        raise ValidationError([f"Unknown zone kind: {kind_value}"])

    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        return session.query(Zone).filter(Zone.kind == kind_value).order_by(Zone.id.asc()).all()


def accepts(item_kind: Union[str, ItemKind], zone: Zone) -> bool:
    """Return True when ``zone`` may hold items of ``item_kind``."""
    allowed = _ACCEPTED_KINDS.get(_kind_value(item_kind))
    if allowed is None:
        raise ValidationError([f"Unknown item kind: {_kind_value(item_kind)}"])
    return zone.kind in allowed


def assert_accepts(item_kind: Union[str, ItemKind], zone: Zone) -> None:
    """
    Ensure ``zone`` may hold items of ``item_kind``.

    Raises:
        ValidationError: If item_kind is unknown
        ZoneRejected: If the zone kind is not allowed for the item kind
    """
    if not accepts(item_kind, zone):
        raise ZoneRejected(_kind_value(item_kind), zone.id, zone.kind)
