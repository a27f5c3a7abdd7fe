"""
ScrapRecord model for written-off material and finished goods.

Each record mirrors the ledger outflow that removed the quantity from its
origin zone, so scrap can be listed without scanning the ledgers.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Index,
    Numeric,
    Text,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class ScrapRecord(BaseModel):
    """
    Write-off of raw material or finished goods.

    Attributes:
        item_type: ItemKind value (MATERIAL or PRODUCT)
        origin_zone_id: Zone the quantity was removed from
        material_id: Set for MATERIAL scrap
        product_id: Set for PRODUCT scrap
        presentation_id: Presentation of the scrapped finished good, if any
        quantity: Kilograms written off (positive)
        note: Reason
    """

    __tablename__ = "scrap_records"

    item_type = Column(String(20), nullable=False)
    origin_zone_id = Column(Integer, ForeignKey("zones.id", ondelete="RESTRICT"), nullable=False)
    material_id = Column(Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=True)
    presentation_id = Column(
        Integer, ForeignKey("presentations.id", ondelete="RESTRICT"), nullable=True
    )
    quantity = Column(Numeric(14, 4), nullable=False)
    note = Column(Text, nullable=True)

    origin_zone = relationship("Zone")

    __table_args__ = (
        Index("idx_scrap_created", "created_at"),
        CheckConstraint("quantity > 0", name="ck_scrap_quantity_positive"),
        CheckConstraint("item_type IN ('MATERIAL', 'PRODUCT')", name="ck_scrap_item_type"),
    )
