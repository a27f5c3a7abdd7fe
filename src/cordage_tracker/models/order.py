"""
Order and OrderLine models.

An order holds one line per product/presentation with the kilograms
ordered. Delivered quantities live on DeliveryLine rows; outstanding
quantity (ordered minus delivered) is always derived, never stored.
"""

from datetime import date

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
from .enums import OrderStatus


class Order(BaseModel):
    """
    Customer order header.

    Attributes:
        customer_id: FK to Customer
        status: OrderStatus value, recomputed after each delivery commit
        order_date: Date the order was placed
        created_by: User identifier for audit
        notes: Free-form notes

    Relationships:
        lines: OrderLine rows
        deliveries: Delivery headers against this order
    """

    __tablename__ = "orders"

    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    order_date = Column(Date, nullable=False, default=date.today)
    created_by = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    customer = relationship("Customer", back_populates="orders")
    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
        lazy="select",
    )
    deliveries = relationship(
        "Delivery", back_populates="order", order_by="Delivery.id", lazy="select"
    )

    __table_args__ = (
        Index("idx_order_status", "status"),
        CheckConstraint(
            "status IN ('PENDING', 'IN_PROGRESS', 'DELIVERED')",
            name="ck_order_status",
        ),
    )


class OrderLine(BaseModel):
    """
    One product line of an order.

    Attributes:
        order_id: FK to Order
        product_id: FK to Product
        ordered_quantity: Kilograms ordered (never reduced below delivered)
        presentation_id: FK to Presentation the goods ship in

    Relationships:
        delivery_lines: DeliveryLine rows delivered against this line
    """

    __tablename__ = "order_lines"

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    ordered_quantity = Column(Numeric(14, 4), nullable=False)
    presentation_id = Column(
        Integer, ForeignKey("presentations.id", ondelete="RESTRICT"), nullable=True
    )

    order = relationship("Order", back_populates="lines")
    product = relationship("Product")
    presentation = relationship("Presentation")
    delivery_lines = relationship("DeliveryLine", back_populates="order_line", lazy="select")

    __table_args__ = (
        Index("idx_order_line_order", "order_id"),
        CheckConstraint("ordered_quantity > 0", name="ck_order_line_quantity_positive"),
    )

    def __repr__(self) -> str:
        """String representation of order line."""
        return (
            f"OrderLine(id={self.id}, order_id={self.order_id}, "
            f"product_id={self.product_id}, ordered_quantity={self.ordered_quantity})"
        )
