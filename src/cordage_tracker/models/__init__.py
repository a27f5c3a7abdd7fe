"""
Database models package.

This package contains all SQLAlchemy ORM models for the application.
"""

from .base import Base, BaseModel
from .enums import ZoneKind, ItemKind, OrderStatus, LineState
from .zone import Zone
from .material import Material
from .product import Product, Presentation
from .customer import Customer
from .stock_entry import MaterialStockEntry, ProductStockEntry
from .scrap_record import ScrapRecord
from .composition import ProductComposition
from .order import Order, OrderLine
from .delivery import Delivery, DeliveryLine
from .customer_product_price import CustomerProductPrice
from .payment import Payment
from .supplier import Supplier
from .purchase import Purchase, PurchaseItem

__all__ = [
    "Base",
    "BaseModel",
    # Enums
    "ZoneKind",
    "ItemKind",
    "OrderStatus",
    "LineState",
    # Reference data
    "Zone",
    "Material",
    "Product",
    "Presentation",
    "Customer",
    # Stock ledger
    "MaterialStockEntry",
    "ProductStockEntry",
    "ScrapRecord",
    # Recipes
    "ProductComposition",
    # Orders and fulfillment
    "Order",
    "OrderLine",
    "Delivery",
    "DeliveryLine",
    # Pricing and receivables
    "CustomerProductPrice",
    "Payment",
    "Supplier",
    "Purchase",
    "PurchaseItem",
]
