"""
Delivery and DeliveryLine models.

A delivery is a partial (or total) shipment against one order. Each line
ships a quantity of one order line at a unit price fixed at delivery time.
"""

from decimal import Decimal

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
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from cordage_tracker.utils.constants import DEFAULT_CURRENCY


class Delivery(BaseModel):
    """
    Delivery header.

    Attributes:
        order_id: FK to Order
        delivery_date: Effective date (drives price resolution)
        invoice_ref: Optional invoice code the delivery was billed on
        created_by: User identifier for audit

    Relationships:
        lines: DeliveryLine rows
        payments: Payments applied to this delivery
    """

    __tablename__ = "deliveries"

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False)
    delivery_date = Column(Date, nullable=False)
    invoice_ref = Column(String(50), nullable=True)
    created_by = Column(String(100), nullable=True)

    order = relationship("Order", back_populates="deliveries")
    lines = relationship(
        "DeliveryLine",
        back_populates="delivery",
        cascade="all, delete-orphan",
        order_by="DeliveryLine.id",
        lazy="select",
    )
    payments = relationship("Payment", back_populates="delivery", lazy="select")

    __table_args__ = (
        Index("idx_delivery_order", "order_id"),
        Index("idx_delivery_date", "delivery_date"),
    )

    @property
    def total_quantity(self) -> Decimal:
        """Kilograms shipped across all lines."""
        return sum((line.quantity for line in self.lines), Decimal("0"))


class DeliveryLine(BaseModel):
    """
    Quantity of one order line shipped in a delivery.

    Attributes:
        delivery_id: FK to Delivery
        order_line_id: FK to OrderLine
        quantity: Kilograms shipped (positive)
        unit_price: Price per kilogram
        currency: ISO currency code (default PEN)
        description: Optional line text
    """

    __tablename__ = "delivery_lines"

    delivery_id = Column(Integer, ForeignKey("deliveries.id", ondelete="CASCADE"), nullable=False)
    order_line_id = Column(
        Integer, ForeignKey("order_lines.id", ondelete="RESTRICT"), nullable=False
    )
    quantity = Column(Numeric(14, 4), nullable=False)
    unit_price = Column(Numeric(14, 4), nullable=False)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    description = Column(Text, nullable=True)

    delivery = relationship("Delivery", back_populates="lines")
    order_line = relationship("OrderLine", back_populates="delivery_lines")

    __table_args__ = (
        Index("idx_delivery_line_order_line", "order_line_id"),
        CheckConstraint("quantity > 0", name="ck_delivery_line_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_delivery_line_price_non_negative"),
    )

    @property
    def subtotal(self) -> Decimal:
        """quantity * unit_price."""
        return Decimal(self.quantity) * Decimal(self.unit_price)
