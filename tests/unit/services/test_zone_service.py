"""Tests for the zone registry: lookups, kind listing and admission rules."""

import pytest

from cordage_tracker.models import ItemKind, Zone, ZoneKind
from cordage_tracker.services import zone_service
from cordage_tracker.services.exceptions import (
    ErrorKind,
    ValidationError,
    ZoneNotFound,
    ZoneRejected,
)


class TestLookups:
    """Tests for get_zone and get_zone_by_name."""

    def test_get_zone_by_id(self, db_session, zones):
        zone = zone_service.get_zone(zones["warehouse"].id, session=db_session)
        assert zone.name == "PT_ALMACEN"
        assert zone.zone_kind is ZoneKind.WAREHOUSE

    def test_get_zone_missing_raises_not_found(self, db_session, zones):
        with pytest.raises(ZoneNotFound) as exc_info:
            zone_service.get_zone(9999, session=db_session)
        assert exc_info.value.kind is ErrorKind.NOT_FOUND

    def test_get_zone_by_name(self, db_session, zones):
        zone = zone_service.get_zone_by_name("MERMA", session=db_session)
        assert zone.id == zones["scrap"].id

    def test_get_zone_by_unknown_name(self, db_session, zones):
        with pytest.raises(ZoneNotFound):
            zone_service.get_zone_by_name("NOWHERE", session=db_session)

    def test_get_zone_without_session(self, test_db, zones):
        """Standalone call manages its own transaction."""
        zone_id = zones["production"].id
        zone = zone_service.get_zone(zone_id)
        assert zone.kind == "PRODUCTION"


class TestListZonesByKind:
    """Tests for list_zones_by_kind."""

    def test_ordered_by_id(self, db_session, zones):
        result = zone_service.list_zones_by_kind(ZoneKind.RECEPTION, session=db_session)
        assert [z.name for z in result] == ["RECEPCION_1", "RECEPCION_2"]

    def test_accepts_plain_string(self, db_session, zones):
        result = zone_service.list_zones_by_kind("WAREHOUSE", session=db_session)
        assert [z.id for z in result] == [zones["warehouse"].id, zones["warehouse_2"].id]

    def test_empty_for_kind_without_zones(self, db_session):
        db_session.add(Zone(name="ONLY_RECEPTION", kind="RECEPTION"))
        db_session.commit()
        assert zone_service.list_zones_by_kind(ZoneKind.SCRAP, session=db_session) == []

    def test_unknown_kind_rejected(self, db_session, zones):
        with pytest.raises(ValidationError):
            zone_service.list_zones_by_kind("ATTIC", session=db_session)


class TestAssertAccepts:
    """Tests for zone admission rules."""

    @pytest.mark.parametrize("key", ["reception", "production", "scrap"])
    def test_material_allowed_zones(self, zones, key):
        zone_service.assert_accepts(ItemKind.MATERIAL, zones[key])

    def test_material_rejected_in_warehouse(self, zones):
        with pytest.raises(ZoneRejected) as exc_info:
            zone_service.assert_accepts(ItemKind.MATERIAL, zones["warehouse"])
        assert exc_info.value.zone_kind == "WAREHOUSE"
        assert isinstance(exc_info.value, ValidationError)

    def test_product_only_in_warehouse(self, zones):
        zone_service.assert_accepts("PRODUCT", zones["warehouse"])
        for key in ("reception", "production", "scrap"):
            with pytest.raises(ZoneRejected):
                zone_service.assert_accepts(ItemKind.PRODUCT, zones[key])

    def test_unknown_item_kind(self, zones):
        with pytest.raises(ValidationError):
            zone_service.assert_accepts("TOOL", zones["warehouse"])
