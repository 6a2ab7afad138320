"""Pytest configuration and fixtures for ledger tests."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from cafe_ledger.models import Product
from cafe_ledger.models.base import Base
from cafe_ledger.services.database import create_database_engine
from cafe_ledger.utils.config import reset_config
from cafe_ledger.utils.datetime_utils import FixedClock, reset_clock, set_clock

TODAY = date(2025, 3, 10)


def _install_session_factory(monkeypatch, database_url):
    engine = create_database_engine(database_url)
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    import cafe_ledger.services.database as db_module

    monkeypatch.setattr(db_module, "get_session_factory", lambda: session_factory)
    return engine, session_factory


@pytest.fixture(scope="function")
def test_db(monkeypatch):
    """Provide a clean in-memory database for each test function.

    The global session factory is swapped for one bound to the test engine,
    so every service call made during the test uses it.
    """
    engine, session_factory = _install_session_factory(monkeypatch, "sqlite:///:memory:")

    yield session_factory

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def file_db(monkeypatch, tmp_path):
    """File-backed database for tests that use several threads."""
    url = f"sqlite:///{tmp_path / 'ledger.db'}"
    engine, session_factory = _install_session_factory(monkeypatch, url)

    yield session_factory

    engine.dispose()


@pytest.fixture(autouse=True)
def frozen_clock():
    """Freeze the ledger clock at 2025-03-10 09:00 for every test."""
    clock = FixedClock(TODAY)
    set_clock(clock)
    yield clock
    reset_clock()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep tests independent of the developer's environment variables."""
    for var in ("CAFE_LEDGER_ENV", "CAFE_LEDGER_DATABASE_URL", "CAFE_LEDGER_LOCK_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


def _add_product(session_factory, **fields):
    session = session_factory()
    try:
        product = Product(**fields)
        session.add(product)
        session.commit()
        return product
    finally:
        session.close()


@pytest.fixture
def make_product(test_db):
    """Factory for product reference rows."""

    def _make(name="Butter Cake", original_price="100.00", sale_price="150.00", **extra):
        return _add_product(
            test_db,
            name=name,
            original_price=Decimal(original_price),
            sale_price=Decimal(sale_price),
            **extra,
        )

    return _make


@pytest.fixture
def croissant(make_product):
    """Unit product with a 20% default return percentage."""
    return make_product(
        name="Croissant",
        original_price="100.00",
        sale_price="150.00",
        default_return_percentage=Decimal("20"),
    )


@pytest.fixture
def brownie(make_product):
    """Unit product with no default return percentage."""
    return make_product(name="Chocolate Brownie", original_price="80.00", sale_price="120.00")


@pytest.fixture
def cheese(make_product):
    """Weight-based product (quantities in kg)."""
    return make_product(
        name="Cheddar Cheese",
        original_price="2400.00",
        sale_price="3000.00",
        default_return_percentage=Decimal("100"),
        is_weight_based=True,
    )
