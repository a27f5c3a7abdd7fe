"""
Stock ledger entry models.

Stock is an append-only log of signed quantity entries per (item, zone);
the balance of a pair is the sum of its entries. Two parallel series exist:

- MaterialStockEntry: raw material in RECEPTION / PRODUCTION / SCRAP zones
- ProductStockEntry: finished goods in WAREHOUSE zones, per presentation

Positive entries are depletable lots for FIFO purposes. Negative entries
record consumption, transfers out and scrap; ``lot_entry_id`` names the lot
a negative entry was drawn from when it came out of a FIFO walk.

Note:
    Entries are immutable after creation. Corrections are new offsetting
    entries, never updates or deletes.
"""

from sqlalchemy import (
    Column,
    Integer,
    ForeignKey,
    Index,
    Numeric,
    DateTime,
    Text,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from cordage_tracker.utils.datetime_utils import utc_now


class MaterialStockEntry(BaseModel):
    """
    Signed raw-material movement in a zone.

    Attributes:
        material_id: FK to Material
        zone_id: FK to Zone
        quantity: Signed kilograms (positive = receipt/lot, negative = outflow)
        timestamp: When the movement happened (FIFO ordering key)
        note: Free-form reason
        lot_entry_id: Lot (positive entry) this outflow was drawn from
    """

    __tablename__ = "material_stock_entries"

    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Numeric(14, 4), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utc_now)
    note = Column(Text, nullable=True)
    lot_entry_id = Column(
        Integer, ForeignKey("material_stock_entries.id", ondelete="RESTRICT"), nullable=True
    )

    material = relationship("Material", back_populates="stock_entries")
    zone = relationship("Zone", back_populates="material_entries")

    __table_args__ = (
        Index("idx_material_entry_pair", "material_id", "zone_id"),
        Index("idx_material_entry_timestamp", "timestamp"),
        CheckConstraint("quantity <> 0", name="ck_material_entry_nonzero"),
    )

    @property
    def item_id(self) -> int:
        """Series-neutral alias for material_id."""
        return self.material_id

    def __repr__(self) -> str:
        """String representation of material stock entry."""
        return (
            f"MaterialStockEntry(id={self.id}, material_id={self.material_id}, "
            f"zone_id={self.zone_id}, quantity={self.quantity})"
        )


class ProductStockEntry(BaseModel):
    """
    Signed finished-good movement in a zone.

    Attributes:
        product_id: FK to Product
        zone_id: FK to Zone
        presentation_id: FK to Presentation (None = unpresented stock)
        quantity: Signed kilograms
        timestamp: When the movement happened (FIFO ordering key)
        note: Free-form reason
        lot_entry_id: Lot (positive entry) this outflow was drawn from
    """

    __tablename__ = "product_stock_entries"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="RESTRICT"), nullable=False)
    presentation_id = Column(
        Integer, ForeignKey("presentations.id", ondelete="RESTRICT"), nullable=True
    )
    quantity = Column(Numeric(14, 4), nullable=False)
    timestamp = Column(DateTime, nullable=False, default=utc_now)
    note = Column(Text, nullable=True)
    lot_entry_id = Column(
        Integer, ForeignKey("product_stock_entries.id", ondelete="RESTRICT"), nullable=True
    )

    product = relationship("Product", back_populates="stock_entries")
    zone = relationship("Zone", back_populates="product_entries")
    presentation = relationship("Presentation")

    __table_args__ = (
        Index("idx_product_entry_pair", "product_id", "zone_id"),
        Index("idx_product_entry_timestamp", "timestamp"),
        CheckConstraint("quantity <> 0", name="ck_product_entry_nonzero"),
    )

    @property
    def item_id(self) -> int:
        """Series-neutral alias for product_id."""
        return self.product_id

    def __repr__(self) -> str:
        """String representation of product stock entry."""
        return (
            f"ProductStockEntry(id={self.id}, product_id={self.product_id}, "
            f"zone_id={self.zone_id}, quantity={self.quantity})"
        )
