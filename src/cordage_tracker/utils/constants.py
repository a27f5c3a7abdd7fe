"""
Constants for the Cordage Tracker application.

This module defines all system-wide constants including:
- Application metadata
- Quantity tolerance and decimal precision
- Zone kinds and their default consumption priority
- Composition zone hints
- Currency and tax defaults
"""

from decimal import Decimal
from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Cordage Tracker"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "cordage_tracker.db"

# ============================================================================
# Quantities
# ============================================================================

# Absolute tolerance for every quantity and percentage comparison
QUANTITY_TOLERANCE = Decimal("1e-9")

# Stored precision for kilogram quantities and prices (Numeric(14, 4))
QUANTITY_SCALE = 4
QUANTITY_QUANTUM = Decimal("0.0001")

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# ============================================================================
# Zones
# ============================================================================

ZONE_KIND_RECEPTION = "RECEPTION"
ZONE_KIND_PRODUCTION = "PRODUCTION"
ZONE_KIND_WAREHOUSE = "WAREHOUSE"
ZONE_KIND_SCRAP = "SCRAP"

ZONE_KINDS: List[str] = [
    ZONE_KIND_RECEPTION,
    ZONE_KIND_PRODUCTION,
    ZONE_KIND_WAREHOUSE,
    ZONE_KIND_SCRAP,
]

# Zone kinds each item kind may be stored in
MATERIAL_ZONE_KINDS: List[str] = [ZONE_KIND_RECEPTION, ZONE_KIND_PRODUCTION, ZONE_KIND_SCRAP]
PRODUCT_ZONE_KINDS: List[str] = [ZONE_KIND_WAREHOUSE]

# Raw material is drawn from production first, then from reception
DEFAULT_ZONE_PRIORITY: List[str] = [ZONE_KIND_PRODUCTION, ZONE_KIND_RECEPTION]

# ============================================================================
# Compositions
# ============================================================================

# Rope parts a composition row may be tagged with, plus the zone kinds a
# row may name as its preferred source.
COMPOSITION_PARTS: List[str] = ["CORE", "HEART", "COVER"]
COMPOSITION_ZONE_HINTS: List[str] = COMPOSITION_PARTS + [
    ZONE_KIND_PRODUCTION,
    ZONE_KIND_RECEPTION,
]

MAX_PERCENTAGE = HUNDRED

# ============================================================================
# Money
# ============================================================================

DEFAULT_CURRENCY = "PEN"
SUPPORTED_CURRENCIES: List[str] = ["PEN", "USD"]

# Sales tax applied to delivered subtotals when deriving receivables
DEFAULT_IGV_RATE = Decimal("0.18")

# Monetary totals (net, tax, total) are rounded to cents
MONEY_QUANTUM = Decimal("0.01")

# ============================================================================
# Ledger notes
# ============================================================================

NOTE_PRODUCTION_CONSUMPTION = "Consumption for finished good"
NOTE_PRODUCTION_RECEIPT = "Finished good production"
NOTE_DELIVERY_DEDUCTION = "Delivery"
NOTE_TRANSFER_OUT = "Transfer out"
NOTE_TRANSFER_IN = "Transfer in"
NOTE_SCRAP = "Scrap"
NOTE_PURCHASE_RECEIPT = "Purchase"
