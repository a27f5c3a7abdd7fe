"""
Customer model.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Customer(BaseModel):
    """
    Customer that places orders.

    Attributes:
        name: Legal name
        tax_id: Taxpayer identifier (RUC)

    Relationships:
        orders: Orders placed by this customer
        prices: CustomerProductPrice intervals negotiated with this customer
    """

    __tablename__ = "customers"

    name = Column(String(200), nullable=False)
    tax_id = Column(String(20), nullable=True, index=True)

    orders = relationship("Order", back_populates="customer", lazy="select")
    prices = relationship("CustomerProductPrice", back_populates="customer", lazy="select")
