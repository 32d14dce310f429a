"""Pytest fixtures for the order service tests."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from seedshop.application.schemas import OrderItemIn, OrderPayload
from seedshop.application.service import OrderService
from seedshop.domain.models import Order, OrderItem, Product
from seedshop.infrastructure.db import Database


@pytest.fixture
def database(tmp_path):
    """File-backed SQLite so that threads get separate connections and real locking."""
    db = Database(
        f"sqlite:///{tmp_path / 'orders.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    db.init_models()
    yield db
    db.dispose()


@pytest.fixture
def service(database):
    return OrderService(database)


@pytest.fixture
def add_product(database):
    """Insert a product and return its id."""

    def _add(stock=5, name="Hybrid Maize Seed 2kg", price="12.50"):
        with database.transaction() as session:
            product = Product(name=name, price=Decimal(price), stock=stock, category="Maize")
            session.add(product)
            session.flush()
            return product.id

    return _add


@pytest.fixture
def stock_of(database):
    def _stock(product_id):
        with database.session() as session:
            return session.scalar(select(Product.stock).where(Product.id == product_id))

    return _stock


@pytest.fixture
def row_counts(database):
    """Return ``(orders, order_items)`` row counts."""

    def _counts():
        with database.session() as session:
            orders = session.scalar(select(func.count(Order.id)))
            items = session.scalar(select(func.count(OrderItem.id)))
            return orders, items

    return _counts


def item(product_id, quantity=1, price="12.50", name="Hybrid Maize Seed 2kg"):
    return OrderItemIn(product_id=product_id, product_name=name, quantity=quantity, price=Decimal(price))


def make_payload(items, **overrides):
    fields = dict(
        customer_first_name="Thandi",
        customer_last_name="Mokoena",
        customer_email="thandi@example.co.za",
        customer_phone="+27 82 555 0101",
        shipping_address="12 Farm Road",
        shipping_city="Polokwane",
        shipping_postal_code="0700",
        shipping_province="Limpopo",
        shipping_cost=Decimal("50.00"),
        items=items,
    )
    fields.update(overrides)
    return OrderPayload(**fields)
