"""The current weekly shopping list and everything done to it."""
import asyncio
import itertools
import uuid
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Union, cast

from weekshop.config.settings import get_settings
from weekshop.domain.errors import DuplicateItemError, ValidationError
from weekshop.domain.types import (
    ItemId,
    ItemStatus,
    PENDING_ID_PREFIX,
    Product,
    ViewMode,
    WeeklyShop,
    WeeklyShopItem,
)
from weekshop.notifications import Notifier
from weekshop.ordering.sort import sort_items
from weekshop.store.base import ShopStore
from .base_service import BaseService, Result
from .mutations import Mutation, MutationCoordinator


class ShopState(str, Enum):
    NO_CURRENT_SHOP = "no_current_shop"
    HAS_CURRENT_SHOP = "has_current_shop"


@dataclass
class ShopSummary:
    """Counts shown in the list header."""
    total: int
    required: int
    bought: int
    unavailable: int


def week_start(today: date, start_day: int = 6) -> date:
    """Most recent start_day (datetime.weekday numbering) on or before today."""
    return today - timedelta(days=(today.weekday() - start_day) % 7)


class ShopSession(BaseService):
    """Owns the current weekly shop for one screen.

    Items are kept as a flat collection in insertion order and replaced
    copy-on-write, so views derived with ``sorted_items`` are never changed
    underneath their readers.
    """

    def __init__(
        self,
        store: ShopStore,
        coordinator: Optional[MutationCoordinator] = None,
        notifier: Optional[Notifier] = None,
        today: Callable[[], date] = date.today
    ):
        super().__init__(store, notifier)
        settings = get_settings()
        self.coordinator = coordinator or MutationCoordinator(self.notifier)
        self.today = today
        self.week_start_day = settings.WEEK_START_DAY
        self.max_quantity = settings.MAX_QUANTITY
        self.shop: Optional[WeeklyShop] = None
        self._items: List[WeeklyShopItem] = []
        self._creating: Optional["asyncio.Task[Result[WeeklyShop]]"] = None
        # Latest write to each (item, field); only that write may be undone
        self._stamps = itertools.count(1)
        self._writes: Dict[Tuple[ItemId, str], int] = {}

    @property
    def state(self) -> ShopState:
        return ShopState.HAS_CURRENT_SHOP if self.shop is not None else ShopState.NO_CURRENT_SHOP

    @property
    def items(self) -> List[WeeklyShopItem]:
        return list(self._items)

    def item(self, item_id: ItemId) -> Optional[WeeklyShopItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def item_for_product(self, product_id: str) -> Optional[WeeklyShopItem]:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def sorted_items(self, mode: Union[ViewMode, str] = ViewMode.LIST) -> List[WeeklyShopItem]:
        return sort_items(self._items, mode)

    def summary(self) -> ShopSummary:
        counts = {status: 0 for status in ItemStatus}
        for item in self._items:
            counts[item.status] += 1
        return ShopSummary(
            total=len(self._items),
            required=counts[ItemStatus.REQUIRED],
            bought=counts[ItemStatus.BOUGHT],
            unavailable=counts[ItemStatus.UNAVAILABLE],
        )

    def current_week_start(self) -> date:
        return week_start(self.today(), self.week_start_day)

    def _set_shop(self, shop: Optional[WeeklyShop]) -> None:
        # Inserts still in flight stay visible until their own mutation settles
        loaded = list(shop.items) if shop is not None else []
        saved_products = {item.product_id for item in loaded}
        pending = [
            item for item in self._items
            if item.is_pending and item.product_id not in saved_products
        ]
        self.shop = shop.model_copy(update={"items": []}) if shop is not None else None
        self._items = loaded + pending
        self._writes = {}

    async def load(self) -> Result[Optional[WeeklyShop]]:
        """
        Fetch the current shop and replace local state with it.

        Items deleted elsewhere disappear here, which is how failed mutations
        on vanished rows are reconciled.

        Returns:
            Result containing the current shop, or None when this week has none
        """
        result = await self._call(
            "load_shop",
            self.store.select_current_shop(self.current_week_start()),
            "Error fetching current shop"
        )
        if not result.success:
            return result
        self._set_shop(result.data)
        self._log_action(
            "load_shop",
            shop_id=self.shop.id if self.shop else None,
            items=len(self._items)
        )
        return result

    refresh = load

    async def create_shop(self) -> Result[WeeklyShop]:
        """Start a new list dated today."""
        result = await self._call(
            "create_shop",
            self.store.insert_shop(self.today()),
            "Error creating new list"
        )
        if not result.success:
            return result
        self._set_shop(result.data)
        self._log_action("create_shop", shop_id=self.shop.id)
        self.notifier.success("New shopping list created")
        return result

    async def _shared_create(self) -> Result[WeeklyShop]:
        """Create the list once, however many adds are waiting for it."""
        if self._creating is None:
            self._creating = asyncio.ensure_future(self.create_shop())
            self._creating.add_done_callback(self._creation_done)
        return await asyncio.shield(self._creating)

    def _creation_done(self, task: "asyncio.Task[Result[WeeklyShop]]") -> None:
        if self._creating is task:
            self._creating = None

    def _duplicate(self, product: Product) -> Optional[DuplicateItemError]:
        if self.item_for_product(product.id) is None:
            return None
        return DuplicateItemError(
            suggestions=["Change the quantity of the existing entry instead"],
            metadata={"product_id": product.id}
        )

    def _clamp(self, quantity: int) -> int:
        return min(self.max_quantity, max(1, quantity))

    async def add_product(
        self,
        product: Product,
        quantity: Optional[int] = None,
        max_price: Optional[Decimal] = None
    ) -> Result[WeeklyShopItem]:
        """
        Add a product to the current list, creating the list first if needed.

        Args:
            product: Product to add
            quantity: Quantity to add (default: the product's default quantity)
            max_price: Optional price ceiling

        Returns:
            Result containing the saved item or the reported error
        """
        duplicate = self._duplicate(product)
        if duplicate is not None:
            return self._fail(duplicate)

        requested = quantity if quantity is not None else product.default_quantity
        if not 1 <= requested <= self.max_quantity:
            return self._fail(ValidationError(
                f"Quantity must be between 1 and {self.max_quantity}"
            ))

        if self.shop is None:
            created = await self._shared_create()
            if not created.success:
                return cast(Result[WeeklyShopItem], created)
            # Another add may have taken this product while the list was created
            duplicate = self._duplicate(product)
            if duplicate is not None:
                return self._fail(duplicate)

        shop_id = self.shop.id
        pending = WeeklyShopItem(
            id=f"{PENDING_ID_PREFIX}{uuid.uuid4().hex}",
            weekly_shop_id=shop_id,
            product_id=product.id,
            quantity=requested,
            status=ItemStatus.REQUIRED,
            max_price=max_price,
            product=product,
        )

        def apply() -> None:
            self._items = self._items + [pending]

        def revert() -> None:
            self._items = [item for item in self._items if item.id != pending.id]

        def reconcile(saved: WeeklyShopItem) -> None:
            if self.item(saved.id) is not None:
                # A refresh already brought the saved row in
                revert()
            else:
                for index, item in enumerate(self._items):
                    if item.id == pending.id:
                        updated = list(self._items)
                        updated[index] = saved.model_copy(update={"product": saved.product or product})
                        self._items = updated
                        break
            self.notifier.success("Added to list")

        return await self.coordinator.dispatch(Mutation(
            action="add_item",
            apply=apply,
            revert=revert,
            persist=lambda: self.store.insert_shop_item(
                shop_id, product.id, requested, ItemStatus.REQUIRED, max_price
            ),
            reconcile=reconcile,
            failure_message="Error adding product to list",
            always_revert=True,
            metadata={"shop_id": shop_id, "product_id": product.id, "quantity": requested},
        ))

    def _editable(self, item_id: ItemId) -> WeeklyShopItem:
        item = self.item(item_id)
        if item is None:
            raise ValidationError("Item is not on the current list", metadata={"item_id": item_id})
        if item.is_pending:
            raise ValidationError(
                "Item is still being saved",
                suggestions=["Try again in a moment"],
                metadata={"item_id": item_id}
            )
        return item

    def _replace(self, item_id: ItemId, **changes) -> None:
        updated = list(self._items)
        for index, item in enumerate(updated):
            if item.id == item_id:
                updated[index] = item.model_copy(update=changes)
                self._items = updated
                return

    def _rejected(self, error: ValidationError) -> "asyncio.Future[Result[WeeklyShopItem]]":
        return self.coordinator.resolved(self._fail(error))

    def _update_field(
        self,
        item: WeeklyShopItem,
        field: str,
        value,
        action: str,
        failure_message: str
    ) -> "asyncio.Future[Result[WeeklyShopItem]]":
        previous = getattr(item, field)
        if previous == value:
            return self.coordinator.resolved(Result.ok(item))
        item_id = item.id
        key = (item_id, field)
        stamp = next(self._stamps)

        def apply() -> None:
            self._writes[key] = stamp
            self._replace(item_id, **{field: value})

        def revert() -> None:
            if self._writes.get(key) == stamp:
                self._replace(item_id, **{field: previous})

        return self.coordinator.dispatch(Mutation(
            action=action,
            apply=apply,
            revert=revert,
            persist=lambda: self.store.update_shop_item(item_id, {field: value}),
            failure_message=failure_message,
            metadata={"item_id": item_id, field: getattr(value, "value", value)},
        ))

    def change_quantity(self, item_id: ItemId, delta: int) -> "asyncio.Future[Result[WeeklyShopItem]]":
        """
        Add delta to an item's quantity (never below 1).

        The new value is computed from the latest local quantity, so rapid
        clicks accumulate even while earlier saves are still in flight.

        Returns:
            Awaitable Result of the persistence call
        """
        try:
            item = self._editable(item_id)
        except ValidationError as e:
            return self._rejected(e)
        return self._update_field(
            item, "quantity", self._clamp(item.quantity + delta),
            "change_quantity", "Failed to update quantity"
        )

    def set_quantity(self, item_id: ItemId, quantity: int) -> "asyncio.Future[Result[WeeklyShopItem]]":
        """Set an item's quantity outright."""
        try:
            item = self._editable(item_id)
            if not 1 <= quantity <= self.max_quantity:
                raise ValidationError(f"Quantity must be between 1 and {self.max_quantity}")
        except ValidationError as e:
            return self._rejected(e)
        return self._update_field(
            item, "quantity", quantity, "set_quantity", "Failed to update quantity"
        )

    def set_status(
        self,
        item_id: ItemId,
        status: Union[ItemStatus, str]
    ) -> "asyncio.Future[Result[WeeklyShopItem]]":
        """Mark an item required, bought or unavailable."""
        try:
            item = self._editable(item_id)
            try:
                status = ItemStatus(status)
            except ValueError as e:
                raise ValidationError(f"Unknown status: {status}") from e
        except ValidationError as e:
            return self._rejected(e)
        return self._update_field(
            item, "status", status, "set_status", "Failed to update item status"
        )

    def remove_item(self, item_id: ItemId) -> "asyncio.Future[Result[None]]":
        """Take an item off the list."""
        try:
            item = self._editable(item_id)
        except ValidationError as e:
            return self._rejected(e)
        position = self._items.index(item)

        def apply() -> None:
            self._items = [entry for entry in self._items if entry.id != item_id]

        def revert() -> None:
            if self.item(item_id) is None:
                restored = list(self._items)
                restored.insert(min(position, len(restored)), item)
                self._items = restored

        def reconcile(_: None) -> None:
            self.notifier.success("Item removed from list")

        return self.coordinator.dispatch(Mutation(
            action="remove_item",
            apply=apply,
            revert=revert,
            persist=lambda: self.store.delete_shop_item(item_id),
            reconcile=reconcile,
            failure_message="Failed to remove item",
            metadata={"item_id": item_id},
        ))
