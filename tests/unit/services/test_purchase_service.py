"""Tests for supplier purchases: totals, IGV and reception lots."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from cordage_tracker.models import MaterialStockEntry, Purchase, PurchaseItem, Supplier
from cordage_tracker.services import purchase_service
from cordage_tracker.services import stock_ledger_service as ledger
from cordage_tracker.services.exceptions import (
    DatabaseError,
    ErrorKind,
    MaterialNotFound,
    PurchaseNotFound,
    SupplierNotFound,
    ValidationError,
    ZoneNotFound,
)
from cordage_tracker.utils.config import reset_config


def _items(materials):
    return [
        {"material_id": materials["a"].id, "quantity": 250, "unit_price": "6.40"},
        {"material_id": materials["b"].id, "quantity": "100", "unit_price": "3.255"},
    ]


def _purchase(supplier, items, session, **kwargs):
    kwargs.setdefault("document_type", "factura")
    kwargs.setdefault("document_number", "F001-000123")
    kwargs.setdefault("document_date", date(2024, 3, 1))
    return purchase_service.create_purchase(supplier.id, items=items, session=session, **kwargs)


# =============================================================================
# create_purchase
# =============================================================================


class TestCreatePurchase:
    """Happy paths of create_purchase()."""

    def test_totals_with_configured_igv(self, db_session, zones, materials, supplier):
        result = _purchase(supplier, _items(materials), db_session)

        assert result["total_net"] == Decimal("1925.50")
        assert result["tax_amount"] == Decimal("346.59")
        assert result["total_amount"] == Decimal("2272.09")
        assert result["currency"] == "PEN"
        assert result["document_type"] == "FACTURA"
        assert [item["total_price"] for item in result["items"]] == [
            Decimal("1600.00"),
            Decimal("325.50"),
        ]

    def test_items_received_into_first_reception_zone(
        self, db_session, zones, materials, supplier
    ):
        result = _purchase(supplier, _items(materials), db_session)

        reception = zones["reception"].id
        assert ledger.balance(
            "MATERIAL", materials["a"].id, reception, session=db_session
        ) == Decimal("250")
        assert ledger.balance(
            "MATERIAL", materials["b"].id, reception, session=db_session
        ) == Decimal("100")

        entry = db_session.get(MaterialStockEntry, result["items"][0]["stock_entry_id"])
        assert entry.zone_id == reception
        assert entry.note == f"Purchase #{result['id']}"

    def test_explicit_reception_zone(self, db_session, zones, materials, supplier):
        _purchase(
            supplier,
            _items(materials)[:1],
            db_session,
            reception_zone_id=zones["reception_2"].id,
        )
        assert ledger.balance(
            "MATERIAL", materials["a"].id, zones["reception_2"].id, session=db_session
        ) == Decimal("250")
        assert ledger.balance(
            "MATERIAL", materials["a"].id, zones["reception"].id, session=db_session
        ) == Decimal("0")

    def test_stated_tax_overrides_rate(self, db_session, zones, materials, supplier):
        result = _purchase(supplier, _items(materials), db_session, tax_amount="0")
        assert result["tax_amount"] == Decimal("0.00")
        assert result["total_amount"] == Decimal("1925.50")

    def test_igv_rate_read_from_environment(
        self, db_session, zones, materials, supplier, monkeypatch
    ):
        monkeypatch.setenv("IGV_RATE", "0.10")
        reset_config()
        result = _purchase(supplier, _items(materials), db_session)
        assert result["tax_amount"] == Decimal("192.55")

    def test_missing_unit_price_is_free(self, db_session, zones, materials, supplier):
        result = _purchase(
            supplier, [{"material_id": materials["a"].id, "quantity": 12}], db_session
        )
        assert result["items"][0]["unit_price"] == Decimal("0")
        assert result["total_amount"] == Decimal("0.00")

    def test_currency_is_normalized(self, db_session, zones, materials, supplier):
        result = _purchase(supplier, _items(materials), db_session, currency="usd")
        assert result["currency"] == "USD"

    def test_accepts_iso_date(self, db_session, zones, materials, supplier):
        result = _purchase(supplier, _items(materials), db_session, document_date="2024-03-05")
        assert result["document_date"] == date(2024, 3, 5)

    def test_standalone_call_commits(self, test_db, zones, materials, supplier):
        result = purchase_service.create_purchase(
            supplier.id, "GUIA", "G-1", date(2024, 3, 1), _items(materials)
        )
        session = test_db()
        assert session.get(Purchase, result["id"]) is not None
        assert session.query(PurchaseItem).count() == 2


class TestCreatePurchaseRejections:
    """Error paths of create_purchase()."""

    def test_missing_header_fields_reported_together(self, db_session, zones, supplier):
        with pytest.raises(ValidationError) as exc_info:
            purchase_service.create_purchase(supplier.id, "", None, None, [], session=db_session)
        assert len(exc_info.value.errors) == 4

    def test_unknown_supplier(self, db_session, zones, materials):
        with pytest.raises(SupplierNotFound) as exc_info:
            purchase_service.create_purchase(
                999, "FACTURA", "F-1", date(2024, 3, 1), _items(materials), session=db_session
            )
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_unknown_material(self, db_session, zones, materials, supplier):
        with pytest.raises(MaterialNotFound):
            _purchase(
                supplier,
                [*_items(materials), {"material_id": 9999, "quantity": 1}],
                db_session,
            )
        assert db_session.query(MaterialStockEntry).count() == 0

    @pytest.mark.parametrize("quantity", [0, -5, "1.00001", "abc", None])
    def test_bad_quantity(self, db_session, zones, materials, supplier, quantity):
        with pytest.raises(ValidationError):
            _purchase(
                supplier, [{"material_id": materials["a"].id, "quantity": quantity}], db_session
            )

    @pytest.mark.parametrize("unit_price", [-1, "2.00001"])
    def test_bad_unit_price(self, db_session, zones, materials, supplier, unit_price):
        with pytest.raises(ValidationError):
            _purchase(
                supplier,
                [{"material_id": materials["a"].id, "quantity": 1, "unit_price": unit_price}],
                db_session,
            )

    def test_negative_tax(self, db_session, zones, materials, supplier):
        with pytest.raises(ValidationError):
            _purchase(supplier, _items(materials), db_session, tax_amount=-1)

    def test_zone_must_be_reception(self, db_session, zones, materials, supplier):
        with pytest.raises(ValidationError):
            _purchase(
                supplier, _items(materials), db_session, reception_zone_id=zones["production"].id
            )

    def test_no_reception_zone(self, db_session, materials, supplier):
        with pytest.raises(ZoneNotFound):
            _purchase(supplier, _items(materials), db_session)

    def test_failure_on_second_item_writes_nothing(self, test_db, zones, materials, supplier):
        """A standalone purchase is all-or-nothing."""
        real_receive = purchase_service.stock_movement_service.receive_stock
        calls = []

        def receive_once(*args, **kwargs):
            calls.append(args)
            if len(calls) > 1:
                raise DatabaseError("disk full")
            return real_receive(*args, **kwargs)

        with patch.object(
            purchase_service.stock_movement_service, "receive_stock", side_effect=receive_once
        ):
            with pytest.raises(DatabaseError):
                purchase_service.create_purchase(
                    supplier.id, "FACTURA", "F-9", date(2024, 3, 1), _items(materials)
                )

        session = test_db()
        assert session.query(Purchase).count() == 0
        assert session.query(PurchaseItem).count() == 0
        assert session.query(MaterialStockEntry).count() == 0


# =============================================================================
# get_purchase / list_purchases
# =============================================================================


class TestGetPurchase:
    """Tests for get_purchase()."""

    def test_returns_items(self, db_session, zones, materials, supplier):
        created = _purchase(supplier, _items(materials), db_session)
        fetched = purchase_service.get_purchase(created["id"], session=db_session)
        assert fetched["supplier_name"] == supplier.name
        assert [item["material_id"] for item in fetched["items"]] == [
            materials["a"].id,
            materials["b"].id,
        ]

    def test_unknown_purchase(self, db_session):
        with pytest.raises(PurchaseNotFound):
            purchase_service.get_purchase(77, session=db_session)


class TestListPurchases:
    """Tests for list_purchases()."""

    @pytest.fixture
    def history(self, db_session, zones, materials, supplier):
        other = Supplier(name="Nylon Import EIRL")
        db_session.add(other)
        db_session.flush()
        item = [{"material_id": materials["a"].id, "quantity": 10, "unit_price": 5}]
        ids = {
            "feb": _purchase(
                supplier, item, db_session, document_number="F-1", document_date=date(2024, 2, 1)
            )["id"],
            "mar": _purchase(
                supplier, item, db_session, document_number="F-2", document_date=date(2024, 3, 1)
            )["id"],
            "other": _purchase(
                other, item, db_session, document_number="F-1", document_date=date(2024, 2, 15)
            )["id"],
        }
        db_session.commit()
        return ids, other

    def test_newest_first(self, db_session, history):
        ids, _ = history
        listed = purchase_service.list_purchases(session=db_session)
        assert [p["id"] for p in listed] == [ids["mar"], ids["other"], ids["feb"]]

    def test_filters_by_supplier_and_dates(self, db_session, supplier, history):
        ids, _ = history
        listed = purchase_service.list_purchases(
            supplier_id=supplier.id, date_from="2024-02-01", date_to=date(2024, 2, 28),
            session=db_session,
        )
        assert [p["id"] for p in listed] == [ids["feb"]]
