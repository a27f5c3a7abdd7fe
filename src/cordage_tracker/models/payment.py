"""
Payment model - customer payments applied to deliveries.
"""

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


class Payment(BaseModel):
    """
    Payment received against a delivery.

    order_id and customer_id are copied from the delivery at creation so
    receivables can be aggregated per customer without joins.

    Attributes:
        delivery_id: FK to Delivery
        order_id: FK to Order
        customer_id: FK to Customer
        payment_date: Date received
        amount: Amount received (positive)
        currency: ISO currency code (default PEN)
        method: Payment method (transfer, cash, cheque...)
        reference: Bank/operation reference
        notes: Free-form notes
        created_by: User identifier for audit
    """

    __tablename__ = "payments"

    delivery_id = Column(Integer, ForeignKey("deliveries.id", ondelete="RESTRICT"), nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False)
    customer_id = Column(
        Integer, ForeignKey("customers.id", ondelete="RESTRICT"), nullable=False
    )
    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 4), nullable=False)
    currency = Column(String(3), nullable=False, default=DEFAULT_CURRENCY)
    method = Column(String(50), nullable=True)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)

    delivery = relationship("Delivery", back_populates="payments")

    __table_args__ = (
        Index("idx_payment_customer", "customer_id"),
        Index("idx_payment_delivery", "delivery_id"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )
