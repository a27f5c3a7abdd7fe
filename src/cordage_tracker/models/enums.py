"""
Enumerations for stock, order and pricing tracking.

This module contains enums used across the models and services:
- ZoneKind: Classification of storage/process locations
- ItemKind: Raw material vs finished good ledger series
- OrderStatus: Stored (derived) fulfillment status of an order
- LineState: Derived fulfillment state of an order line
"""

from enum import Enum


class ZoneKind(str, Enum):
    """
    Kind of a physical or process location.

    Values:
        RECEPTION: Where purchased raw material arrives
        PRODUCTION: Raw material staged on the production floor
        WAREHOUSE: Finished goods ready for delivery
        SCRAP: Material or product written off
    """

    RECEPTION = "RECEPTION"
    PRODUCTION = "PRODUCTION"
    WAREHOUSE = "WAREHOUSE"
    SCRAP = "SCRAP"


class ItemKind(str, Enum):
    """
    Which ledger series an item belongs to.

    Values:
        MATERIAL: Raw material (kg)
        PRODUCT: Finished good (kg, optionally by presentation)
    """

    MATERIAL = "MATERIAL"
    PRODUCT = "PRODUCT"


class OrderStatus(str, Enum):
    """
    Order fulfillment status, recomputed after each delivery.

    Values:
        PENDING: Nothing delivered yet
        IN_PROGRESS: Some quantity delivered, at least one line still open
        DELIVERED: Every line fulfilled
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    DELIVERED = "DELIVERED"


class LineState(str, Enum):
    """Derived state of an order line (never stored)."""

    OPEN = "OPEN"
    FULFILLED = "FULFILLED"
