"""
Zone model for storage and process locations.

Zones are reference data: immutable once stock entries reference them.
"""

from sqlalchemy import Column, String, Index, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel
from .enums import ZoneKind


class Zone(BaseModel):
    """
    Zone model representing a physical or process location.

    Attributes:
        name: Unique display name (e.g., "PT_ALMACEN", "Recepcion 1")
        kind: ZoneKind value (RECEPTION, PRODUCTION, WAREHOUSE, SCRAP)

    Relationships:
        material_entries: Ledger entries for raw material held here
        product_entries: Ledger entries for finished goods held here
    """

    __tablename__ = "zones"

    name = Column(String(100), nullable=False, unique=True)
    kind = Column(String(20), nullable=False)

    material_entries = relationship("MaterialStockEntry", back_populates="zone", lazy="select")
    product_entries = relationship("ProductStockEntry", back_populates="zone", lazy="select")

    __table_args__ = (
        Index("idx_zone_kind", "kind"),
        CheckConstraint(
            "kind IN ('RECEPTION', 'PRODUCTION', 'WAREHOUSE', 'SCRAP')",
            name="ck_zone_kind",
        ),
    )

    @property
    def zone_kind(self) -> ZoneKind:
        """Kind as a ZoneKind enum member."""
        return ZoneKind(self.kind)

    def __repr__(self) -> str:
        """String representation of zone."""
        return f"Zone(id={self.id}, name='{self.name}', kind='{self.kind}')"
