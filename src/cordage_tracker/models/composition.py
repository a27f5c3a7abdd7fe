"""
ProductComposition model - percentage recipe of a finished good.

Each row says what share of a product's weight is drawn from one raw
material. Rows per product sum to at most 100 (partial recipes allowed).
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Index,
    Numeric,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class ProductComposition(BaseModel):
    """
    One material row of a product recipe.

    Attributes:
        product_id: FK to Product
        material_id: FK to Material
        zone_hint: Rope part (CORE, HEART, COVER) or preferred source zone kind
        percentage: Share of product weight, 0..100
    """

    __tablename__ = "product_compositions"

    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    material_id = Column(
        Integer, ForeignKey("materials.id", ondelete="RESTRICT"), nullable=False
    )
    zone_hint = Column(String(20), nullable=True)
    percentage = Column(Numeric(7, 4), nullable=False)

    product = relationship("Product", back_populates="composition")
    material = relationship("Material", back_populates="compositions")

    __table_args__ = (
        Index("idx_composition_product", "product_id"),
        CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name="ck_composition_percentage_range",
        ),
    )

    def __repr__(self) -> str:
        """String representation of composition row."""
        return (
            f"ProductComposition(product_id={self.product_id}, "
            f"material_id={self.material_id}, percentage={self.percentage})"
        )
