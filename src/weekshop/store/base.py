"""Interface of the remote data service the core talks to."""
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

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


class ShopStore(ABC):
    """Async request/response access to persisted shop data.

    Implementations raise the exceptions in ``weekshop.domain.errors``:
    DuplicateItemError for a second (shop, product) row, ConstraintError for
    other rejected writes, NotFoundError for unknown ids and RemoteError for
    everything else.
    """

    # Locations
    @abstractmethod
    async def select_locations(self) -> List[StoreLocation]:
        """All locations ordered by sequence number."""

    @abstractmethod
    async def insert_location(self, draft: LocationDraft) -> StoreLocation:
        ...

    @abstractmethod
    async def update_location(self, location_id: LocationId, changes: Dict[str, Any]) -> StoreLocation:
        ...

    @abstractmethod
    async def delete_location(self, location_id: LocationId) -> None:
        ...

    # Products
    @abstractmethod
    async def select_products(
        self,
        location_id: Optional[LocationId] = None,
        order_by: str = "sequence_number"
    ) -> List[Product]:
        """Products, optionally for one location, with their location attached."""

    @abstractmethod
    async def search_products(self, term: str) -> List[Product]:
        """Case-insensitive substring match on name and aliases."""

    @abstractmethod
    async def insert_product(self, draft: ProductDraft) -> Product:
        ...

    @abstractmethod
    async def update_product(self, product_id: ProductId, changes: Dict[str, Any]) -> Product:
        ...

    @abstractmethod
    async def delete_product(self, product_id: ProductId) -> None:
        ...

    # Weekly shops
    @abstractmethod
    async def insert_shop(self, shop_date: date) -> WeeklyShop:
        ...

    @abstractmethod
    async def delete_shop(self, shop_id: ShopId) -> None:
        ...

    @abstractmethod
    async def select_current_shop(self, week_start: date) -> Optional[WeeklyShop]:
        """Most recent shop dated on or after week_start, items, products and
        locations included; None when there is none."""

    @abstractmethod
    async def insert_shop_item(
        self,
        shop_id: ShopId,
        product_id: ProductId,
        quantity: int,
        status: ItemStatus = ItemStatus.REQUIRED,
        max_price: Optional[Decimal] = None
    ) -> WeeklyShopItem:
        ...

    @abstractmethod
    async def update_shop_item(self, item_id: ItemId, changes: Dict[str, Any]) -> WeeklyShopItem:
        ...

    @abstractmethod
    async def delete_shop_item(self, item_id: ItemId) -> None:
        ...
