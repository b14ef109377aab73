"""SQLAlchemy implementation of the shop store."""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, TypeVar

from sqlalchemy import String, cast, or_, select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from weekshop import models
from weekshop.config.settings import get_settings
from weekshop.db.session import TransactionManager, get_session
from weekshop.domain.errors import (
    ConstraintError,
    DuplicateItemError,
    NotFoundError,
    RemoteError,
    ShopError,
    ValidationError,
)
from weekshop.domain.types import (
    ItemId,
    ItemStatus,
    LocationDraft,
    LocationId,
    Product,
    ProductDraft,
    ProductId,
    ShopId,
    StoreLocation,
    WeeklyShop,
    WeeklyShopItem,
)
from weekshop.utils.logger import get_logger
from .base import ShopStore


T = TypeVar('T')

LOCATION_FIELDS: FrozenSet[str] = frozenset({"name", "sequence_number"})
PRODUCT_FIELDS: FrozenSet[str] = frozenset({
    "name", "aliases", "store_location_id", "shelf_height", "sequence_number",
    "typical_price", "default_quantity", "product_url", "image_url", "barcode", "notes",
})
ITEM_FIELDS: FrozenSet[str] = frozenset({"quantity", "status", "max_price"})

PRODUCT_ORDERINGS = {
    "sequence_number": (models.Product.sequence_number, models.Product.name),
    "name": (models.Product.name,),
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _to_location(row: models.StoreLocation) -> StoreLocation:
    return StoreLocation(id=row.id, name=row.name, sequence_number=row.sequence_number)


def _to_product(row: models.Product, with_location: bool = True) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        aliases=list(row.aliases or []),
        store_location_id=row.store_location_id,
        shelf_height=row.shelf_height,
        sequence_number=row.sequence_number,
        typical_price=row.typical_price,
        default_quantity=row.default_quantity,
        product_url=row.product_url,
        image_url=row.image_url,
        barcode=row.barcode,
        notes=row.notes,
        location=_to_location(row.location) if with_location and row.location is not None else None,
    )


def _to_item(row: models.WeeklyShopItem) -> WeeklyShopItem:
    return WeeklyShopItem(
        id=row.id,
        weekly_shop_id=row.weekly_shop_id,
        product_id=row.product_id,
        quantity=row.quantity,
        status=row.status,
        max_price=row.max_price,
        product=_to_product(row.product) if row.product is not None else None,
    )


def _to_shop(row: models.WeeklyShop, with_items: bool = True) -> WeeklyShop:
    return WeeklyShop(
        id=row.id,
        shop_date=row.shop_date,
        items=[_to_item(item) for item in row.items] if with_items else [],
    )


class SqlShopStore(ShopStore):
    """Shop store backed by a SQLAlchemy session."""

    def __init__(
        self,
        session: Session,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None
    ):
        """
        Initialize the store.

        Args:
            session: Database session
            max_retries: Attempts for transient database errors (default from settings)
            retry_delay: Base delay in seconds between attempts (default from settings)
        """
        settings = get_settings()
        self.session = session
        self.transaction = TransactionManager(session)
        self.max_retries = max_retries if max_retries is not None else settings.STORE_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.STORE_RETRY_DELAY
        self.logger = get_logger(self.__class__.__name__)

    @classmethod
    def connect(cls) -> "SqlShopStore":
        """Store on a new session of the configured application database."""
        return cls(get_session())

    async def _run(self, action: str, work: Callable[[Session], T]) -> T:
        """Run work in a transaction, retrying transient failures and
        translating database errors into shop errors."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(OperationalError),
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=self.retry_delay, max=5),
                reraise=True,
            ):
                with attempt:
                    with self.transaction.transaction(action) as session:
                        result = work(session)
            return result
        except ShopError:
            raise
        except IntegrityError as e:
            raise self._constraint_error(action, e) from e
        except SQLAlchemyError as e:
            self.logger.exception("Store call failed", action=action)
            raise RemoteError(metadata={"action": action}) from e

    def _constraint_error(self, action: str, e: IntegrityError) -> ConstraintError:
        detail = str(e.orig)
        lowered = detail.lower()
        self.logger.debug("Integrity error", action=action, detail=detail)
        pgcode = getattr(e.orig, "pgcode", None)
        is_unique = pgcode == "23505" or "unique" in lowered
        if is_unique and ("weekly_shop_items" in lowered or "uq_weekly_shop_item_product" in lowered):
            return DuplicateItemError(metadata={"action": action})
        if "foreign key" in lowered or pgcode == "23503":
            return ConstraintError(
                "The record is still referenced or refers to something missing",
                suggestions=["Move or remove the dependent products first"],
                metadata={"action": action},
            )
        return ConstraintError(metadata={"action": action, "detail": detail})

    @staticmethod
    def _apply_changes(row: Any, changes: Dict[str, Any], allowed: FrozenSet[str]) -> None:
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        for field, value in changes.items():
            setattr(row, field, _plain(value))

    @staticmethod
    def _require(session: Session, model: type, row_id: str) -> Any:
        row = session.get(model, row_id)
        if row is None:
            raise NotFoundError(metadata={"table": model.__tablename__, "id": row_id})
        return row

    # Locations
    async def select_locations(self) -> List[StoreLocation]:
        def work(session: Session) -> List[StoreLocation]:
            rows = session.execute(
                select(models.StoreLocation)
                .order_by(models.StoreLocation.sequence_number, models.StoreLocation.name)
            ).scalars().all()
            return [_to_location(row) for row in rows]
        return await self._run("select_locations", work)

    async def insert_location(self, draft: LocationDraft) -> StoreLocation:
        def work(session: Session) -> StoreLocation:
            row = models.StoreLocation(name=draft.name, sequence_number=draft.sequence_number or 0)
            session.add(row)
            session.flush()
            return _to_location(row)
        return await self._run("insert_location", work)

    async def update_location(self, location_id: LocationId, changes: Dict[str, Any]) -> StoreLocation:
        def work(session: Session) -> StoreLocation:
            row = self._require(session, models.StoreLocation, location_id)
            self._apply_changes(row, changes, LOCATION_FIELDS)
            session.flush()
            return _to_location(row)
        return await self._run("update_location", work)

    async def delete_location(self, location_id: LocationId) -> None:
        def work(session: Session) -> None:
            row = self._require(session, models.StoreLocation, location_id)
            session.delete(row)
            session.flush()
        await self._run("delete_location", work)

    # Products
    async def select_products(
        self,
        location_id: Optional[LocationId] = None,
        order_by: str = "sequence_number"
    ) -> List[Product]:
        if order_by not in PRODUCT_ORDERINGS:
            raise ValidationError(f"Unknown product ordering: {order_by}")

        def work(session: Session) -> List[Product]:
            query = (
                select(models.Product)
                .options(selectinload(models.Product.location))
                .order_by(*PRODUCT_ORDERINGS[order_by])
            )
            if location_id is not None:
                query = query.where(models.Product.store_location_id == location_id)
            rows = session.execute(query).scalars().all()
            return [_to_product(row) for row in rows]
        return await self._run("select_products", work)

    async def search_products(self, term: str) -> List[Product]:
        pattern = f"%{_escape_like(term.strip())}%"

        def work(session: Session) -> List[Product]:
            rows = session.execute(
                select(models.Product)
                .options(selectinload(models.Product.location))
                .where(or_(
                    models.Product.name.ilike(pattern, escape="\\"),
                    cast(models.Product.aliases, String).ilike(pattern, escape="\\"),
                ))
                .order_by(models.Product.name)
            ).scalars().all()
            return [_to_product(row) for row in rows]
        return await self._run("search_products", work)

    async def insert_product(self, draft: ProductDraft) -> Product:
        def work(session: Session) -> Product:
            values = {field: _plain(value) for field, value in draft.model_dump().items()}
            row = models.Product(**values)
            session.add(row)
            session.flush()
            session.refresh(row)
            return _to_product(row)
        return await self._run("insert_product", work)

    async def update_product(self, product_id: ProductId, changes: Dict[str, Any]) -> Product:
        def work(session: Session) -> Product:
            row = self._require(session, models.Product, product_id)
            self._apply_changes(row, changes, PRODUCT_FIELDS)
            session.flush()
            # store_location_id may have moved; reload the relationship too
            session.expire(row, ["location"])
            session.refresh(row)
            return _to_product(row)
        return await self._run("update_product", work)

    async def delete_product(self, product_id: ProductId) -> None:
        def work(session: Session) -> None:
            row = self._require(session, models.Product, product_id)
            session.delete(row)
            session.flush()
        await self._run("delete_product", work)

    # Weekly shops
    async def insert_shop(self, shop_date: date) -> WeeklyShop:
        def work(session: Session) -> WeeklyShop:
            row = models.WeeklyShop(shop_date=shop_date)
            session.add(row)
            session.flush()
            return WeeklyShop(id=row.id, shop_date=row.shop_date)
        return await self._run("insert_shop", work)

    async def delete_shop(self, shop_id: ShopId) -> None:
        def work(session: Session) -> None:
            row = self._require(session, models.WeeklyShop, shop_id)
            session.delete(row)
            session.flush()
        await self._run("delete_shop", work)

    async def select_current_shop(self, week_start: date) -> Optional[WeeklyShop]:
        def work(session: Session) -> Optional[WeeklyShop]:
            row = session.execute(
                select(models.WeeklyShop)
                .where(models.WeeklyShop.shop_date >= week_start)
                .order_by(models.WeeklyShop.shop_date.desc(), models.WeeklyShop.created_at.desc())
                .limit(1)
                .options(
                    selectinload(models.WeeklyShop.items)
                    .selectinload(models.WeeklyShopItem.product)
                    .selectinload(models.Product.location)
                )
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            return _to_shop(row) if row is not None else None
        return await self._run("select_current_shop", work)

    async def insert_shop_item(
        self,
        shop_id: ShopId,
        product_id: ProductId,
        quantity: int,
        status: ItemStatus = ItemStatus.REQUIRED,
        max_price: Optional[Decimal] = None
    ) -> WeeklyShopItem:
        def work(session: Session) -> WeeklyShopItem:
            row = models.WeeklyShopItem(
                weekly_shop_id=shop_id,
                product_id=product_id,
                quantity=quantity,
                status=_plain(status),
                max_price=max_price,
            )
            session.add(row)
            session.flush()
            session.refresh(row)
            return _to_item(row)
        return await self._run("insert_shop_item", work)

    async def update_shop_item(self, item_id: ItemId, changes: Dict[str, Any]) -> WeeklyShopItem:
        def work(session: Session) -> WeeklyShopItem:
            row = self._require(session, models.WeeklyShopItem, item_id)
            self._apply_changes(row, changes, ITEM_FIELDS)
            session.flush()
            return _to_item(row)
        return await self._run("update_shop_item", work)

    async def delete_shop_item(self, item_id: ItemId) -> None:
        def work(session: Session) -> None:
            row = self._require(session, models.WeeklyShopItem, item_id)
            session.delete(row)
            session.flush()
        await self._run("delete_shop_item", work)
