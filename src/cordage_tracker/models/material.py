"""
Material model for raw materials (yarn, fiber) consumed in production.

Catalog maintenance happens outside the core; the model exists so ledger
entries and compositions can reference it.
"""

from sqlalchemy import Column, String, Integer, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class Material(BaseModel):
    """
    Raw material definition.

    Attributes:
        name: Material description (e.g., "Polypropylene")
        color: Optional color name
        denier: Optional linear density of the fiber
        notes: Free-form notes

    Relationships:
        stock_entries: MaterialStockEntry rows for this material
        compositions: ProductComposition rows that use this material
    """

    __tablename__ = "materials"

    name = Column(String(200), nullable=False)
    color = Column(String(100), nullable=True)
    denier = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    stock_entries = relationship("MaterialStockEntry", back_populates="material", lazy="select")
    compositions = relationship("ProductComposition", back_populates="material", lazy="select")

    @property
    def display_name(self) -> str:
        """Name with color and denier appended when present."""
        parts = [self.name]
        if self.color:
            parts.append(self.color)
        if self.denier:
            parts.append(str(self.denier))
        return " ".join(parts)

    def __repr__(self) -> str:
        """String representation of material."""
        return f"Material(id={self.id}, name='{self.name}')"
