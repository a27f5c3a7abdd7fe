"""
Product and Presentation models for finished goods.

A Product is a finished rope/twine; a Presentation is the packaging it is
sold in (e.g., a 5 kg spool). Finished-good stock is tracked per
presentation.
"""

from sqlalchemy import Column, String, Numeric, Text, CheckConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class Product(BaseModel):
    """
    Finished good definition.

    Attributes:
        name: Product description
        notes: Free-form notes

    Relationships:
        composition: ProductComposition rows (the recipe)
        stock_entries: ProductStockEntry rows
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False)
    notes = Column(Text, nullable=True)

    composition = relationship(
        "ProductComposition",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductComposition.id",
        lazy="select",
    )
    stock_entries = relationship("ProductStockEntry", back_populates="product", lazy="select")

    def __repr__(self) -> str:
        """String representation of product."""
        return f"Product(id={self.id}, name='{self.name}')"


class Presentation(BaseModel):
    """
    Packaging presentation for finished goods.

    Attributes:
        name: Display name (e.g., "Spool 5 kg")
        kg_per_unit: Weight of one packaged unit, if fixed
    """

    __tablename__ = "presentations"

    name = Column(String(100), nullable=False, unique=True)
    kg_per_unit = Column(Numeric(14, 4), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "kg_per_unit IS NULL OR kg_per_unit > 0",
            name="ck_presentation_kg_positive",
        ),
    )
