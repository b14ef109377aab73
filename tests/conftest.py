"""Test configuration and fixtures for WeekShop."""
import itertools
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from weekshop import models
from weekshop.db.session import build_engine
from weekshop.domain.types import (
    ItemStatus,
    Product,
    ShelfHeight,
    StoreLocation,
    WeeklyShopItem,
)
from weekshop.notifications import Notifier
from weekshop.services.mutations import MutationCoordinator
from weekshop.services.preferences import FormPreferences
from weekshop.store.base import ShopStore
from weekshop.store.sql_store import SqlShopStore


@pytest.fixture(scope="function")
def engine():
    """Create an in-memory database with all tables."""
    # One shared connection so every session sees the same in-memory database
    test_engine = build_engine(
        "sqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    models.Base.metadata.create_all(test_engine)
    yield test_engine
    models.Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture(scope="function")
def session(engine):
    """Create a new database session for a test."""
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = factory()
    yield session
    session.close()


@pytest.fixture
def sql_store(session) -> SqlShopStore:
    """Store backed by the test database, without retry delays."""
    return SqlShopStore(session, max_retries=2, retry_delay=0)


@pytest.fixture
def db_dairy(session) -> models.StoreLocation:
    location = models.StoreLocation(name="Dairy", sequence_number=30)
    session.add(location)
    session.commit()
    return location


@pytest.fixture
def db_bakery(session) -> models.StoreLocation:
    location = models.StoreLocation(name="Bakery", sequence_number=20)
    session.add(location)
    session.commit()
    return location


@pytest.fixture
def db_milk(session, db_dairy) -> models.Product:
    product = models.Product(
        name="Milk",
        aliases=["semi skimmed", "מילק"],
        store_location_id=db_dairy.id,
        shelf_height="middle",
        sequence_number=10,
        typical_price=Decimal("1.15"),
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def db_bread(session, db_bakery) -> models.Product:
    product = models.Product(
        name="Bread",
        aliases=["loaf"],
        store_location_id=db_bakery.id,
        shelf_height="top",
        sequence_number=10,
    )
    session.add(product)
    session.commit()
    return product


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def mock_store():
    """Create a mock remote store; every method is an AsyncMock."""
    return AsyncMock(spec=ShopStore)


@pytest.fixture
def coordinator(notifier) -> MutationCoordinator:
    """Coordinator with the default policy: keep local state on failure."""
    return MutationCoordinator(notifier, rollback_on_failure=False)


@pytest.fixture
def preferences() -> FormPreferences:
    """Preferences kept in memory only."""
    return FormPreferences(path=None)


@pytest.fixture
def location_factory():
    """Build domain store locations."""
    counter = itertools.count(1)

    def make(name: str, sequence_number: int = 0) -> StoreLocation:
        return StoreLocation(id=f"loc-{next(counter)}", name=name, sequence_number=sequence_number)
    return make


@pytest.fixture
def product_factory():
    """Build domain products."""
    counter = itertools.count(1)

    def make(
        name: str,
        location: StoreLocation,
        sequence_number: int = 0,
        shelf_height: ShelfHeight = ShelfHeight.MIDDLE,
        **fields
    ) -> Product:
        return Product(
            id=fields.pop("id", f"prod-{next(counter)}"),
            name=name,
            store_location_id=location.id,
            sequence_number=sequence_number,
            shelf_height=shelf_height,
            location=location,
            **fields
        )
    return make


@pytest.fixture
def item_factory():
    """Build domain weekly shop items."""
    counter = itertools.count(1)

    def make(product: Product, quantity: int = 1, shop_id: str = "shop-1", **fields) -> WeeklyShopItem:
        return WeeklyShopItem(
            id=fields.pop("id", f"item-{next(counter)}"),
            weekly_shop_id=shop_id,
            product_id=product.id,
            quantity=quantity,
            status=fields.pop("status", ItemStatus.REQUIRED),
            product=product,
            **fields
        )
    return make
