"""
Purchase models - supplier documents and the raw material they bring in.

Each PurchaseItem is received as a lot in a RECEPTION zone; stock_entry_id
points at the ledger entry that lot became.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    ForeignKey,
    Index,
    Numeric,
    Text,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from cordage_tracker.utils.constants import DEFAULT_CURRENCY


class Purchase(BaseModel):
    """
    Supplier document (invoice, guide) for a raw material receipt.

    Attributes:
        supplier_id: FK to Supplier
        document_type: Document kind as printed (FACTURA, BOLETA, GUIA...)
        document_number: Document number as printed
        document_date: Date on the document
        currency: ISO currency code (default PEN)
        total_net: Sum of item totals
        tax_amount: IGV on total_net (or as stated on the document)
        total_amount: total_net + tax_amount
        notes: Free-form notes
        created_by: User identifier for audit
    """

    __tablename__ = "purchases"

    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    document_type = Column(String(20), nullable=False)
    document_number = Column(String(50), nullable=False)
    document_date = Column(Date, nullable=False)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    total_net = Column(Numeric(14, 2), nullable=False)
    tax_amount = Column(Numeric(14, 2), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)

    supplier = relationship("Supplier", back_populates="purchases")
    items = relationship(
        "PurchaseItem",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseItem.id",
        lazy="select",
    )

    __table_args__ = (
        UniqueConstraint(
            "supplier_id", "document_type", "document_number", name="uq_purchase_document"
        ),
        Index("idx_purchase_date", "document_date"),
        CheckConstraint("tax_amount >= 0", name="ck_purchase_tax_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation of purchase."""
        return (
            f"Purchase(id={self.id}, supplier_id={self.supplier_id}, "
            f"document='{self.document_type} {self.document_number}')"
        )


class PurchaseItem(BaseModel):
    """
    One raw material line of a purchase document.

    Attributes:
        purchase_id: FK to Purchase
        material_id: FK to Material
        quantity: Kilograms received (positive)
        unit_price: Price per kilogram
        total_price: quantity * unit_price, rounded to cents
        stock_entry_id: Reception lot posted for this item
        notes: Free-form notes
    """

    __tablename__ = "purchase_items"

    purchase_id = Column(Integer, ForeignKey("purchases.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    unit_price = Column(Numeric(14, 4), nullable=False, default=0)
    total_price = Column(Numeric(14, 2), nullable=False, default=0)
    stock_entry_id = Column(
        Integer, ForeignKey("material_stock_entries.id", ondelete="SET NULL"), nullable=True
    )
    notes = Column(Text, nullable=True)

    purchase = relationship("Purchase", back_populates="items")
    material = relationship("Material")

    __table_args__ = (
        Index("idx_purchase_item_material", "material_id"),
        CheckConstraint("quantity > 0", name="ck_purchase_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_purchase_item_price_non_negative"),
    )
