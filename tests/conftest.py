"""Pytest configuration and fixtures for service layer tests."""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from cordage_tracker.models import (
    Base,
    Customer,
    Material,
    Presentation,
    Product,
    ProductComposition,
    Supplier,
    Zone,
)
from cordage_tracker.utils.config import reset_config


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Points the service layer's session factory at it
    4. Drops all tables after the test completes
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)

    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    import cordage_tracker.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    yield Session

    Session.remove()
    with engine.begin() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(conn)
    engine.dispose()

    db_module.get_session_factory = original_get_session


@pytest.fixture
def db_session(test_db):
    """Provide a database session for tests."""
    return test_db()


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Each test starts from default configuration."""
    monkeypatch.delenv("IGV_RATE", raising=False)
    monkeypatch.delenv("CORDAGE_DEFAULT_CURRENCY", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def zones(db_session):
    """Create one zone of each kind plus a second reception and warehouse.

    IDs ascend in the order listed, so RECEPCION_1 is visited before
    RECEPCION_2 and PT_ALMACEN before PT_ALMACEN_2.
    """
    created = {
        "reception": Zone(name="RECEPCION_1", kind="RECEPTION"),
        "reception_2": Zone(name="RECEPCION_2", kind="RECEPTION"),
        "production": Zone(name="PRODUCCION", kind="PRODUCTION"),
        "warehouse": Zone(name="PT_ALMACEN", kind="WAREHOUSE"),
        "warehouse_2": Zone(name="PT_ALMACEN_2", kind="WAREHOUSE"),
        "scrap": Zone(name="MERMA", kind="SCRAP"),
    }
    for zone in created.values():
        db_session.add(zone)
    db_session.commit()
    return created


@pytest.fixture
def materials(db_session):
    """Create two raw materials: polypropylene (A) and nylon (B)."""
    created = {
        "a": Material(name="Polypropylene", color="Blue", denier=1500),
        "b": Material(name="Nylon", color="White"),
    }
    for material in created.values():
        db_session.add(material)
    db_session.commit()
    return created


@pytest.fixture
def product(db_session):
    """Create a finished good: 8 mm braided rope."""
    rope = Product(name="Braided rope 8mm")
    db_session.add(rope)
    db_session.commit()
    return rope


@pytest.fixture
def presentation(db_session):
    """Create a 5 kg spool presentation."""
    spool = Presentation(name="Spool 5 kg", kg_per_unit=Decimal("5"))
    db_session.add(spool)
    db_session.commit()
    return spool


@pytest.fixture
def customer(db_session):
    """Create a customer."""
    client = Customer(name="Pesquera del Sur SAC", tax_id="20123456789")
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture
def supplier(db_session):
    """Create a raw material supplier."""
    vendor = Supplier(name="Polimeros Andinos SAC", tax_id="20567890123")
    db_session.add(vendor)
    db_session.commit()
    return vendor


@pytest.fixture
def recipe(db_session, product, materials):
    """Give the product a 70/30 recipe: A for the cover, B from reception."""
    db_session.add(
        ProductComposition(
            product_id=product.id,
            material_id=materials["a"].id,
            percentage=Decimal("70"),
            zone_hint="COVER",
        )
    )
    db_session.add(
        ProductComposition(
            product_id=product.id,
            material_id=materials["b"].id,
            percentage=Decimal("30"),
            zone_hint="RECEPTION",
        )
    )
    db_session.commit()
    return product
