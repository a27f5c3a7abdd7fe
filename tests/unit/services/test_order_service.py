"""Tests for orders, order lines and derived fulfillment state."""

from datetime import date
from decimal import Decimal

import pytest

from cordage_tracker.models import Delivery, DeliveryLine, LineState, OrderLine, OrderStatus
from cordage_tracker.services import order_service
from cordage_tracker.services.exceptions import (
    CustomerNotFound,
    ErrorKind,
    InvalidLine,
    OrderLineNotFound,
    OrderNotFound,
    ProductNotFound,
    ValidationError,
)


def _deliver(session, order, line, quantity):
    """Insert a delivery row directly, bypassing stock and pricing."""
    delivery = Delivery(order_id=order.id, delivery_date=date(2024, 3, 1))
    delivery.lines.append(
        DeliveryLine(order_line_id=line.id, quantity=Decimal(str(quantity)), unit_price=Decimal("1"))
    )
    session.add(delivery)
    session.flush()
    return delivery


@pytest.fixture
def order(db_session, customer, product, presentation):
    """Order with two lines: 100 kg spooled, 50 kg loose."""
    created = order_service.create_order(
        customer.id,
        [
            {"product_id": product.id, "quantity": 100, "presentation_id": presentation.id},
            {"product_id": product.id, "quantity": "50"},
        ],
        created_by="ventas",
        session=db_session,
    )
    db_session.commit()
    return created


class TestCreateOrder:
    """Tests for create_order()."""

    def test_creates_pending_order_with_lines(self, order, presentation):
        assert order.status == OrderStatus.PENDING.value
        assert [line.ordered_quantity for line in order.lines] == [Decimal("100"), Decimal("50")]
        assert order.lines[0].presentation_id == presentation.id
        assert order.created_by == "ventas"

    def test_unknown_customer(self, db_session, product):
        with pytest.raises(CustomerNotFound):
            order_service.create_order(
                999, [{"product_id": product.id, "quantity": 1}], session=db_session
            )

    def test_unknown_product(self, db_session, customer):
        with pytest.raises(ProductNotFound):
            order_service.create_order(
                customer.id, [{"product_id": 999, "quantity": 1}], session=db_session
            )

    def test_requires_lines(self, db_session, customer):
        with pytest.raises(ValidationError):
            order_service.create_order(customer.id, [], session=db_session)

    def test_rejects_non_positive_quantity(self, db_session, customer, product):
        with pytest.raises(ValidationError):
            order_service.create_order(
                customer.id, [{"product_id": product.id, "quantity": 0}], session=db_session
            )


class TestDerivedQuantities:
    """Tests for delivered/outstanding quantities and line state."""

    def test_nothing_delivered(self, db_session, order):
        line = order.lines[0]
        assert order_service.get_delivered_quantity(line.id, session=db_session) == Decimal("0")
        assert order_service.get_outstanding_quantity(line, session=db_session) == Decimal("100")
        assert order_service.line_state(line, session=db_session) is LineState.OPEN

    def test_partial_then_full(self, db_session, order):
        line = order.lines[1]
        _deliver(db_session, order, line, 20)
        assert order_service.get_outstanding_quantity(line.id, session=db_session) == Decimal("30")

        _deliver(db_session, order, line, 30)
        assert order_service.get_delivered_quantity(line.id, session=db_session) == Decimal("50")
        assert order_service.line_state(line.id, session=db_session) is LineState.FULFILLED

    def test_unknown_line(self, db_session, order):
        with pytest.raises(OrderLineNotFound):
            order_service.get_outstanding_quantity(999, session=db_session)

    def test_outstanding_never_below_zero(self, db_session, order):
        line = order.lines[1]
        _deliver(db_session, order, line, 60)
        assert order_service.get_delivered_quantity(line.id, session=db_session) == Decimal("60")
        assert order_service.get_outstanding_quantity(line.id, session=db_session) == Decimal("0")


class TestRecomputeOrderStatus:
    """Tests for recompute_order_status()."""

    def test_pending_when_nothing_delivered(self, db_session, order):
        assert order_service.recompute_order_status(order.id, session=db_session) is OrderStatus.PENDING

    def test_in_progress_after_partial_delivery(self, db_session, order):
        _deliver(db_session, order, order.lines[0], 10)
        status = order_service.recompute_order_status(order.id, session=db_session)
        assert status is OrderStatus.IN_PROGRESS
        assert order.status == "IN_PROGRESS"

    def test_in_progress_when_one_line_fulfilled(self, db_session, order):
        _deliver(db_session, order, order.lines[1], 50)
        assert (
            order_service.recompute_order_status(order.id, session=db_session)
            is OrderStatus.IN_PROGRESS
        )

    def test_delivered_when_every_line_fulfilled(self, db_session, order):
        _deliver(db_session, order, order.lines[0], 100)
        _deliver(db_session, order, order.lines[1], 50)
        assert (
            order_service.recompute_order_status(order.id, session=db_session)
            is OrderStatus.DELIVERED
        )

    def test_unknown_order(self, db_session):
        with pytest.raises(OrderNotFound):
            order_service.recompute_order_status(42, session=db_session)


class TestLineEdits:
    """Tests for add/update/delete of order lines."""

    def test_add_line_reopens_delivered_order(self, db_session, order, product):
        _deliver(db_session, order, order.lines[0], 100)
        _deliver(db_session, order, order.lines[1], 50)
        order_service.recompute_order_status(order.id, session=db_session)

        order_service.add_order_line(order.id, product.id, 5, session=db_session)
        assert order.status == OrderStatus.IN_PROGRESS.value
        assert len(order.lines) == 3

    def test_update_quantity(self, db_session, order):
        line = order_service.update_order_line(order.lines[0].id, quantity=80, session=db_session)
        assert line.ordered_quantity == Decimal("80")

    def test_cannot_reduce_below_delivered(self, db_session, order):
        _deliver(db_session, order, order.lines[0], 60)
        with pytest.raises(InvalidLine) as exc_info:
            order_service.update_order_line(order.lines[0].id, quantity=59, session=db_session)
        assert exc_info.value.kind is ErrorKind.INVALID_LINE

    def test_reduce_to_delivered_fulfills_line(self, db_session, order):
        line = order.lines[0]
        _deliver(db_session, order, line, 60)
        order_service.update_order_line(line.id, quantity=60, session=db_session)
        assert order_service.line_state(line, session=db_session) is LineState.FULFILLED

    def test_cannot_change_product_after_delivery(self, db_session, order):
        _deliver(db_session, order, order.lines[0], 1)
        with pytest.raises(InvalidLine):
            order_service.update_order_line(order.lines[0].id, product_id=999, session=db_session)

    def test_delete_undelivered_line(self, db_session, order):
        line_id = order.lines[1].id
        assert order_service.delete_order_line(line_id, session=db_session) is True
        assert db_session.get(OrderLine, line_id) is None

    def test_cannot_delete_delivered_line(self, db_session, order):
        _deliver(db_session, order, order.lines[1], 1)
        with pytest.raises(InvalidLine):
            order_service.delete_order_line(order.lines[1].id, session=db_session)


class TestGetOrderProgress:
    """Tests for get_order_progress()."""

    def test_progress_totals(self, db_session, order):
        _deliver(db_session, order, order.lines[0], 25)
        _deliver(db_session, order, order.lines[1], 50)
        order_service.recompute_order_status(order.id, session=db_session)

        progress = order_service.get_order_progress(order.id, session=db_session)
        assert progress["ordered"] == Decimal("150")
        assert progress["delivered"] == Decimal("75")
        assert progress["outstanding"] == Decimal("75")
        assert progress["percent"] == Decimal("50.00")
        assert progress["status"] == "IN_PROGRESS"
        assert [line["state"] for line in progress["lines"]] == ["OPEN", "FULFILLED"]

    def test_over_delivered_line_counts_as_nothing_outstanding(self, db_session, order):
        _deliver(db_session, order, order.lines[1], 70)

        progress = order_service.get_order_progress(order.id, session=db_session)
        assert [line["outstanding"] for line in progress["lines"]] == [
            Decimal("100"),
            Decimal("0"),
        ]
        assert progress["outstanding"] == Decimal("100")
