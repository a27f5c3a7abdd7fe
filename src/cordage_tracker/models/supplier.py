"""
Supplier model.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Supplier(BaseModel):
    """
    Supplier of raw material.

    Attributes:
        name: Legal name
        tax_id: Taxpayer identifier (RUC)

    Relationships:
        purchases: Purchase documents received from this supplier
    """

    __tablename__ = "suppliers"

    name = Column(String(200), nullable=False)
    tax_id = Column(String(20), nullable=True, index=True)

    purchases = relationship("Purchase", back_populates="supplier", lazy="select")
