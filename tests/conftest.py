"""Shared fixtures: a throwaway SQLite file database per test."""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from app.config.database import Base, build_engine
from app.shared.database.models import ExchangeRate, Product, Sale, SaleDetail


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'pos_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed_product(session_factory):
    def _seed(barcode, quantity, price, name=None, unit="ຕຸກ"):
        with session_factory() as session:
            session.add(Product(
                barcode=barcode,
                product_name=name or f"Producto {barcode}",
                unit=unit,
                quantity=quantity,
                retail_price=Decimal(str(price)),
            ))
            session.commit()
        return barcode

    return _seed


@pytest.fixture
def seed_rate(session_factory):
    def _seed(usd="23000", thb="626"):
        with session_factory() as session:
            rate = ExchangeRate(usd_rate=Decimal(usd), thb_rate=Decimal(thb))
            session.add(rate)
            session.commit()
            return rate.id

    return _seed


@pytest.fixture
def stock_of(session_factory):
    def _stock(barcode):
        with session_factory() as session:
            return session.get(Product, barcode).quantity

    return _stock


@pytest.fixture
def count_sales(session_factory):
    def _count():
        with session_factory() as session:
            return session.query(Sale).count(), session.query(SaleDetail).count()

    return _count
