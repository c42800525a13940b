from decimal import Decimal

import pytest

from order_service.database import create_db_engine, create_session_factory, init_db
from order_service.domain import Variant
from order_service.memory import InMemoryUnitOfWork
from order_service.models import CartItem, Product, ProductVariant, User
from order_service.service import OrderPlacementService
from order_service.unit_of_work import SqlAlchemyUnitOfWork


@pytest.fixture()
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    """A session for arranging and inspecting rows outside the service."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def user(db):
    row = User(email="shopper@example.com", name="Shopper")
    db.add(row)
    db.commit()
    return row


@pytest.fixture()
def product(db):
    row = Product(name="Trail Jacket", description="Waterproof shell", base_price=Decimal("10.00"))
    db.add(row)
    db.commit()
    return row


@pytest.fixture()
def make_variant(db, product):
    def _make(price="10.00", stock=5, size="M", color="Blue", edition=None):
        row = ProductVariant(
            product_id=product.id,
            size=size,
            color=color,
            edition=edition,
            price=Decimal(price),
            stock_qty=stock,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture()
def add_to_cart(db):
    def _add(user_id, variant_id, quantity=1):
        db.add(CartItem(user_id=user_id, variant_id=variant_id, quantity=quantity))
        db.commit()

    return _add


@pytest.fixture()
def service(session_factory):
    return OrderPlacementService(SqlAlchemyUnitOfWork(session_factory))


@pytest.fixture()
def memory_uow():
    uow = InMemoryUnitOfWork()
    uow.add_variant(
        Variant(
            id=1,
            product_id=1,
            product_name="Trail Jacket",
            size="M",
            color="Blue",
            edition=None,
            price=Decimal("10.00"),
            stock_qty=5,
        )
    )
    uow.add_variant(
        Variant(
            id=2,
            product_id=1,
            product_name="Trail Jacket",
            size="L",
            color="Red",
            edition="Limited",
            price=Decimal("12.50"),
            stock_qty=1,
        )
    )
    return uow


@pytest.fixture()
def memory_service(memory_uow):
    return OrderPlacementService(memory_uow)
