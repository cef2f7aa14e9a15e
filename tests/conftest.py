"""Shared test fixtures for Larder tests."""

from datetime import date, datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession

from larder.core import database
from larder.daemon import runner
from larder.daemon.main import create_app
from larder.models import Customer, Order, OrderItem, Payment, Product


@pytest_asyncio.fixture(scope="function")
async def db(tmp_path, monkeypatch):
    """Fresh file-backed SQLite database for each test; yields its URL.

    A file rather than :memory: so the refresh transaction and concurrent
    readers get separate connections.
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'larder.db'}"
    monkeypatch.setenv("LARDER_DATABASE_URL", url)
    monkeypatch.setenv("LARDER_API_KEY", "test_key")

    database.init_engine(url)
    await database.create_tables()

    yield url

    await database.dispose_engine()
    runner._skipped.clear()


@pytest_asyncio.fixture(scope="function")
async def app(db):
    """App bound to the test database (lifespan is not run by ASGITransport)."""
    yield create_app()


@pytest_asyncio.fixture(scope="function")
async def client(app):
    """Async HTTP client pointed at the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"Authorization": "Bearer test_key"},
    ) as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def unauthed_client(app):
    """Async HTTP client without auth."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def db_session(db) -> AsyncSession:
    """Get a database session for direct DB operations in tests."""
    async with database.async_session_factory() as session:
        yield session


# ─── Sample data ───

async def insert(*rows) -> None:
    async with database.async_session_factory() as session:
        session.add_all(rows)
        await session.commit()


def order(order_id: int, when: str, amount: str | None, **kwargs) -> Order:
    return Order(
        order_id=order_id,
        customer_id=kwargs.pop("customer_id", 1),
        order_date=datetime.fromisoformat(when) if when else None,
        total_amount=Decimal(amount) if amount is not None else None,
        order_status=kwargs.pop("order_status", "Delivered"),
        payment_method=kwargs.pop("payment_method", "UPI"),
        **kwargs,
    )


# 2024-01: 2 orders, 30.00 total; 2024-02: 1 order, 5.00
SCENARIO_ORDERS = [
    ("2024-01-05 09:30:00", "10.00"),
    ("2024-01-20 18:05:00", "20.00"),
    ("2024-02-01 00:00:00", "5.00"),
]


async def seed_scenario() -> None:
    await insert(*[order(i, when, amount) for i, (when, amount) in enumerate(SCENARIO_ORDERS, start=1)])


async def seed_store() -> None:
    """A small shop: three customers, three products, four orders, payments."""
    await insert(
        Customer(customer_id=1, full_name="Asha Rao", email="asha@example.com",
                 phone_number="9000000001", gender="Female", city="Pune",
                 registration_date=date(2023, 1, 10), loyalty_points=120),
        Customer(customer_id=2, full_name="Vikram Shah", email="vikram@example.com",
                 phone_number="9000000002", gender="Male", city="Mumbai",
                 registration_date=date(2023, 3, 2), loyalty_points=40),
        Customer(customer_id=3, full_name="Meera Iyer", email="asha@example.com",
                 phone_number=None, gender="Female", city="Pune",
                 registration_date=date(2024, 5, 1), loyalty_points=0),
        Product(product_id=10, product_name="Milk 1L", category="Dairy", brand="Amul",
                price=Decimal("60.00"), stock_quantity=100, unit="litre"),
        Product(product_id=11, product_name="Bread", category="Bakery", brand="Modern",
                price=Decimal("45.00"), stock_quantity=50, unit="pack"),
        Product(product_id=12, product_name="Paneer 200g", category="Dairy", brand="Amul",
                price=Decimal("90.00"), stock_quantity=30, unit="pack"),
        order(100, "2024-06-01 10:00:00", "165.00", customer_id=1,
              delivery_time_mins=12, delivery_partner="Rider A"),
        order(101, "2024-06-15 11:00:00", "90.00", customer_id=2, payment_method="Card",
              delivery_time_mins=20, delivery_partner="Rider B"),
        order(102, "2024-07-02 12:00:00", "120.00", customer_id=1,
              delivery_time_mins=8, delivery_partner="Rider A"),
        order(103, "2024-07-03 13:00:00", "50.00", customer_id=99, order_status="Cancelled",
              payment_method="Card", delivery_time_mins=30, delivery_partner="Rider B"),
        OrderItem(order_item_id=1, order_id=100, product_id=10, quantity=1,
                  unit_price=Decimal("60.00"), line_total=Decimal("60.00")),
        OrderItem(order_item_id=2, order_id=100, product_id=11, quantity=1,
                  unit_price=Decimal("45.00"), line_total=Decimal("45.00")),
        OrderItem(order_item_id=3, order_id=100, product_id=10, quantity=1,
                  unit_price=Decimal("60.00"), line_total=Decimal("60.00")),
        OrderItem(order_item_id=4, order_id=101, product_id=12, quantity=1,
                  unit_price=Decimal("90.00"), line_total=Decimal("90.00")),
        OrderItem(order_item_id=5, order_id=102, product_id=10, quantity=2,
                  unit_price=Decimal("60.00"), line_total=Decimal("120.00")),
        OrderItem(order_item_id=6, order_id=103, product_id=11, quantity=1,
                  unit_price=Decimal("45.00"), line_total=Decimal("45.00")),
        Payment(payment_id=1, order_id=100, payment_method="UPI", payment_status="Success",
                transaction_id="T1", payment_time=datetime(2024, 6, 1, 10, 1)),
        Payment(payment_id=2, order_id=101, payment_method="Card", payment_status="Success",
                transaction_id="T2", payment_time=datetime(2024, 6, 15, 10, 0)),
        Payment(payment_id=3, order_id=102, payment_method="UPI", payment_status="Failed",
                transaction_id="T3", payment_time=datetime(2024, 7, 2, 12, 1)),
        Payment(payment_id=4, order_id=555, payment_method="UPI", payment_status=None,
                transaction_id="T4", payment_time=datetime(2024, 7, 5, 9, 0)),
    )
