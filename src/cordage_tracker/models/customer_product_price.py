"""
CustomerProductPrice model - price validity intervals.

Per (customer, product) pair the intervals never overlap and at most one
is open-ended (valid_to NULL). ``valid_to`` is the last day the price
applies (inclusive). Rows are only created or adjusted through
price_service.upsert_price and are never deleted, only closed.
"""

from datetime import date
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    ForeignKey,
    Index,
    Numeric,
    CheckConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from cordage_tracker.utils.constants import DEFAULT_CURRENCY


class CustomerProductPrice(BaseModel):
    """
    Price in force for a customer/product pair over a date interval.

    Attributes:
        customer_id: FK to Customer
        product_id: FK to Product
        price: Price per kilogram
        currency: ISO currency code (default PEN)
        valid_from: First day the price applies
        valid_to: Last day the price applies, NULL when open-ended
    """

    __tablename__ = "customer_product_prices"

    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    price = Column(Numeric(14, 4), nullable=False)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date, nullable=True)

    customer = relationship("Customer", back_populates="prices")
    product = relationship("Product")

    __table_args__ = (
        Index("idx_price_pair_from", "customer_id", "product_id", "valid_from"),
        CheckConstraint("price >= 0", name="ck_price_non_negative"),
        CheckConstraint(
            "valid_to IS NULL OR valid_to >= valid_from",
            name="ck_price_interval_order",
        ),
    )

    @property
    def is_open(self) -> bool:
        """True when the interval has no end date."""
        return self.valid_to is None

    def covers(self, day: date) -> bool:
        """True when ``day`` falls inside [valid_from, valid_to]."""
        if day < self.valid_from:
            return False
        return self.valid_to is None or day <= self.valid_to

    def overlaps(self, other: "CustomerProductPrice") -> bool:
        """True when the two intervals share at least one day."""
        self_end: Optional[date] = self.valid_to or date.max
        other_end: Optional[date] = other.valid_to or date.max
        return self.valid_from <= other_end and other.valid_from <= self_end

    def __repr__(self) -> str:
        """String representation of price interval."""
        return (
            f"CustomerProductPrice(id={self.id}, customer_id={self.customer_id}, "
            f"product_id={self.product_id}, price={self.price}, "
            f"valid_from={self.valid_from}, valid_to={self.valid_to})"
        )
