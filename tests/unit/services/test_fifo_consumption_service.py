"""Tests for the FIFO consumption engine.

Covers zone priority, oldest-lot-first ordering, the all-or-nothing
behavior on shortage, and finished-good deduction by presentation.
"""

from decimal import Decimal

import pytest

from cordage_tracker.models import MaterialStockEntry, ZoneKind
from cordage_tracker.services import fifo_consumption_service as fifo
from cordage_tracker.services import stock_ledger_service as ledger
from cordage_tracker.services.exceptions import (
    ErrorKind,
    InsufficientStock,
    MaterialNotFound,
    ProductNotFound,
    ValidationError,
)
from tests.helpers import at


def _balance(session, material_id, zone_id):
    return ledger.balance("MATERIAL", material_id, zone_id, session=session)


@pytest.fixture
def stocked(db_session, zones, materials):
    """Material A: 40 kg in production, 30 + 30 kg in reception (two lots)."""
    mat = materials["a"].id
    ids = {
        "production": ledger.post(
            "MATERIAL", mat, zones["production"].id, 40, timestamp=at(5), session=db_session
        ),
        "reception_old": ledger.post(
            "MATERIAL", mat, zones["reception"].id, 30, timestamp=at(1), session=db_session
        ),
        "reception_new": ledger.post(
            "MATERIAL", mat, zones["reception"].id, 30, timestamp=at(2), session=db_session
        ),
    }
    db_session.commit()
    return ids


# =============================================================================
# consume
# =============================================================================


class TestConsume:
    """Tests for consume()."""

    def test_default_priority_drains_production_first(
        self, db_session, zones, materials, stocked
    ):
        mat = materials["a"].id
        result = fifo.consume(mat, Decimal("50"), session=db_session)

        assert result.consumed == Decimal("50")
        assert [(t.zone_id, t.quantity) for t in result.takes] == [
            (zones["production"].id, Decimal("40")),
            (zones["reception"].id, Decimal("10")),
        ]
        assert _balance(db_session, mat, zones["production"].id) == Decimal("0")
        assert _balance(db_session, mat, zones["reception"].id) == Decimal("50")

    def test_oldest_lot_drawn_first_within_zone(self, db_session, zones, materials, stocked):
        mat = materials["a"].id
        result = fifo.consume(
            mat, Decimal("35"), zone_priority=[ZoneKind.RECEPTION], session=db_session
        )

        assert [(t.lot_entry_id, t.quantity) for t in result.takes] == [
            (stocked["reception_old"], Decimal("30")),
            (stocked["reception_new"], Decimal("5")),
        ]
        outflows = (
            db_session.query(MaterialStockEntry)
            .filter(MaterialStockEntry.quantity < 0)
            .order_by(MaterialStockEntry.id)
            .all()
        )
        assert [e.lot_entry_id for e in outflows] == [
            stocked["reception_old"],
            stocked["reception_new"],
        ]

    def test_reception_first_priority(self, db_session, zones, materials, stocked):
        mat = materials["a"].id
        fifo.consume(
            mat,
            Decimal("70"),
            zone_priority=["RECEPTION", "PRODUCTION"],
            session=db_session,
        )
        assert _balance(db_session, mat, zones["reception"].id) == Decimal("0")
        assert _balance(db_session, mat, zones["production"].id) == Decimal("30")

    def test_zones_of_same_kind_visited_by_id(self, db_session, zones, materials):
        mat = materials["b"].id
        ledger.post("MATERIAL", mat, zones["reception_2"].id, 10, timestamp=at(1), session=db_session)
        ledger.post("MATERIAL", mat, zones["reception"].id, 10, timestamp=at(9), session=db_session)

        result = fifo.consume(mat, 12, zone_priority=["RECEPTION"], session=db_session)
        assert result.zones_touched == [zones["reception"].id, zones["reception_2"].id]

    def test_second_consumption_sees_first(self, db_session, zones, materials, stocked):
        mat = materials["a"].id
        fifo.consume(mat, 25, zone_priority=["RECEPTION"], session=db_session)
        result = fifo.consume(mat, 10, zone_priority=["RECEPTION"], session=db_session)
        assert [(t.lot_entry_id, t.quantity) for t in result.takes] == [
            (stocked["reception_old"], Decimal("5")),
            (stocked["reception_new"], Decimal("5")),
        ]

    def test_shortage_changes_nothing(self, db_session, zones, materials, stocked):
        mat = materials["a"].id
        entries_before = db_session.query(MaterialStockEntry).count()

        with pytest.raises(InsufficientStock) as exc_info:
            fifo.consume(mat, Decimal("100.5"), session=db_session)

        error = exc_info.value
        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert error.required == Decimal("100.5")
        assert error.available == Decimal("100")
        assert db_session.query(MaterialStockEntry).count() == entries_before
        assert _balance(db_session, mat, zones["production"].id) == Decimal("40")
        assert _balance(db_session, mat, zones["reception"].id) == Decimal("60")

    def test_zones_outside_priority_are_ignored(self, db_session, zones, materials, stocked):
        with pytest.raises(InsufficientStock):
            fifo.consume(materials["a"].id, 41, zone_priority=["PRODUCTION"], session=db_session)

    def test_exact_total_succeeds(self, db_session, zones, materials, stocked):
        result = fifo.consume(materials["a"].id, 100, session=db_session)
        assert result.consumed == Decimal("100")

    @pytest.mark.parametrize("quantity", [0, -1, "0.00001"])
    def test_non_positive_quantity_rejected(self, db_session, zones, materials, quantity):
        with pytest.raises(ValidationError):
            fifo.consume(materials["a"].id, quantity, session=db_session)

    def test_empty_priority_rejected(self, db_session, zones, materials):
        with pytest.raises(ValidationError):
            fifo.consume(materials["a"].id, 1, zone_priority=[], session=db_session)

    def test_standalone_call_commits(self, test_db, zones, materials, stocked):
        mat_id = materials["a"].id
        production_id = zones["production"].id

        fifo.consume(mat_id, 15)

        session = test_db()
        assert _balance(session, mat_id, production_id) == Decimal("25")


class TestConsumeArguments:
    """Zone priority and quantity checks of consume()."""

    def test_repeated_kind_counts_each_lot_once(self, db_session, zones, materials, stocked):
        mat = materials["a"].id
        with pytest.raises(InsufficientStock) as exc_info:
            fifo.consume(mat, 50, zone_priority=["PRODUCTION", "PRODUCTION"], session=db_session)

        assert exc_info.value.available == Decimal("40")
        assert _balance(db_session, mat, zones["production"].id) == Decimal("40")

    def test_repeated_kind_keeps_first_position(self, db_session, zones, materials, stocked):
        result = fifo.consume(
            materials["a"].id,
            45,
            zone_priority=["production", "RECEPTION", "PRODUCTION"],
            session=db_session,
        )
        assert [(t.zone_id, t.quantity) for t in result.takes] == [
            (zones["production"].id, Decimal("40")),
            (zones["reception"].id, Decimal("5")),
        ]

    @pytest.mark.parametrize("kind", ["WAREHOUSE", "ATTIC"])
    def test_kind_that_cannot_hold_material_rejected(
        self, db_session, zones, materials, stocked, kind
    ):
        with pytest.raises(ValidationError):
            fifo.consume(
                materials["a"].id, 1, zone_priority=["PRODUCTION", kind], session=db_session
            )
        assert _balance(db_session, materials["a"].id, zones["production"].id) == Decimal("40")

    def test_quantity_finer_than_stored_precision_rejected(
        self, db_session, zones, materials, stocked
    ):
        with pytest.raises(ValidationError):
            fifo.consume(materials["a"].id, "40.00004", session=db_session)
        assert _balance(db_session, materials["a"].id, zones["production"].id) == Decimal("40")

    def test_unknown_material(self, db_session, zones):
        with pytest.raises(MaterialNotFound) as exc_info:
            fifo.consume(9999, 5, session=db_session)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND


# =============================================================================
# deduct_product_fifo
# =============================================================================


class TestDeductProductFifo:
    """Tests for deduct_product_fifo()."""

    def test_deducts_matching_presentation_only(
        self, db_session, zones, product, presentation
    ):
        wh = zones["warehouse"].id
        ledger.post("PRODUCT", product.id, wh, 50, timestamp=at(1), session=db_session)
        spooled = ledger.post(
            "PRODUCT",
            product.id,
            wh,
            20,
            timestamp=at(2),
            presentation_id=presentation.id,
            session=db_session,
        )

        result = fifo.deduct_product_fifo(
            product.id, 15, presentation_id=presentation.id, session=db_session
        )
        assert [t.lot_entry_id for t in result.takes] == [spooled]
        assert ledger.balance(
            "PRODUCT", product.id, wh, presentation=presentation.id, session=db_session
        ) == Decimal("5")
        assert ledger.balance(
            "PRODUCT", product.id, wh, presentation=None, session=db_session
        ) == Decimal("50")

    def test_spans_warehouse_zones(self, db_session, zones, product):
        ledger.post("PRODUCT", product.id, zones["warehouse"].id, 5, timestamp=at(3), session=db_session)
        ledger.post(
            "PRODUCT", product.id, zones["warehouse_2"].id, 5, timestamp=at(1), session=db_session
        )
        result = fifo.deduct_product_fifo(product.id, 8, session=db_session)
        assert [(t.zone_id, t.quantity) for t in result.takes] == [
            (zones["warehouse"].id, Decimal("5")),
            (zones["warehouse_2"].id, Decimal("3")),
        ]

    def test_shortage_for_presentation(self, db_session, zones, product, presentation):
        ledger.post("PRODUCT", product.id, zones["warehouse"].id, 100, session=db_session)
        with pytest.raises(InsufficientStock) as exc_info:
            fifo.deduct_product_fifo(
                product.id, 1, presentation_id=presentation.id, session=db_session
            )
        assert exc_info.value.item_kind == "PRODUCT"
        assert exc_info.value.available == Decimal("0")

    def test_unknown_product(self, db_session, zones):
        with pytest.raises(ProductNotFound) as exc_info:
            fifo.deduct_product_fifo(9999, 1, session=db_session)
        assert exc_info.value.kind == ErrorKind.NOT_FOUND
