"""Product and store location administration."""
import asyncio
import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from pydantic import ValidationError as PydanticValidationError

from weekshop.config.settings import get_settings
from weekshop.domain.errors import ValidationError
from weekshop.domain.types import (
    LocationDraft,
    LocationId,
    MoveProduct,
    Product,
    ProductDraft,
    ProductId,
    StoreLocation,
)
from weekshop.notifications import Notifier
from weekshop.ordering.allocator import allocate_with_renumber
from weekshop.ordering.group_index import GroupIndex
from weekshop.ordering.sort import sort_products
from weekshop.store.base import ShopStore
from .base_service import BaseService, Result
from .mutations import Mutation, MutationCoordinator
from .preferences import FormPreferences


@dataclass
class ProductFormDefaults:
    """Prefilled values for the "add product" form."""
    location_id: Optional[LocationId]
    sequence_number: int
    max_sequence: int


def _validation_error(e: PydanticValidationError) -> ValidationError:
    messages = []
    for problem in e.errors():
        field = ".".join(str(part) for part in problem.get("loc", ()))
        text = problem.get("msg", "invalid value").removeprefix("Value error, ")
        messages.append(f"{field}: {text}" if field else text)
    return ValidationError("; ".join(messages) or "Invalid input")


class Catalog(BaseService):
    """Products and locations for the admin screens."""

    def __init__(
        self,
        store: ShopStore,
        coordinator: Optional[MutationCoordinator] = None,
        notifier: Optional[Notifier] = None,
        preferences: Optional[FormPreferences] = None
    ):
        super().__init__(store, notifier)
        self.coordinator = coordinator or MutationCoordinator(self.notifier)
        self.preferences = preferences or FormPreferences()
        self.sequence_gap = get_settings().SEQUENCE_GAP
        self.products: List[Product] = []
        self.locations: List[StoreLocation] = []
        # Latest move to touch each product; older moves never undo it
        self._stamps = itertools.count(1)
        self._moves: Dict[ProductId, int] = {}

    # Queries
    @property
    def index(self) -> GroupIndex:
        return GroupIndex(self.products)

    def product(self, product_id: ProductId) -> Optional[Product]:
        return next((p for p in self.products if p.id == product_id), None)

    def location(self, location_id: LocationId) -> Optional[StoreLocation]:
        return next((l for l in self.locations if l.id == location_id), None)

    def products_by_name(self) -> List[Product]:
        return sort_products(self.products)

    def walking_order(self) -> List[Tuple[Optional[StoreLocation], List[Product]]]:
        return self.index.walking_order(self.locations)

    async def load(self) -> Result[GroupIndex]:
        """Fetch products and locations; each failure is reported on its own."""
        products, locations = await asyncio.gather(
            self._call("load_products", self.store.select_products(), "Error fetching products"),
            self._call("load_locations", self.store.select_locations(), "Error fetching locations"),
        )
        if products.success:
            self.products = list(products.data)
            self._moves = {}
        if locations.success:
            self.locations = list(locations.data)
        failed = next((r for r in (products, locations) if not r.success), None)
        if failed is not None:
            return failed
        self._log_action("load_catalog", products=len(self.products), locations=len(self.locations))
        return Result.ok(self.index)

    # Reordering
    def _replace_product(self, product_id: ProductId, **changes) -> None:
        updated = list(self.products)
        for index, product in enumerate(updated):
            if product.id == product_id:
                updated[index] = product.model_copy(update=changes)
                self.products = updated
                return

    def _placement(self, location_id: LocationId, sequence: int) -> Dict[str, Any]:
        return {
            "store_location_id": location_id,
            "sequence_number": sequence,
            "location": self.location(location_id),
        }

    def move_product(self, move: MoveProduct) -> "asyncio.Future[Result[Product]]":
        """
        Drop a product at a position in a location group.

        Args:
            move: Product, destination location and index within the
                destination group (counted without the moved product)

        Returns:
            Awaitable Result with the saved product
        """
        product = self.product(move.product_id)
        destination_id = move.destination_location_id
        try:
            if product is None:
                raise ValidationError("Unknown product", metadata={"product_id": move.product_id})
            if self.locations and self.location(destination_id) is None:
                raise ValidationError("Unknown location", metadata={"location_id": destination_id})
            index = self.index
            destination = [p for p in index.group(destination_id) if p.id != product.id]
            if move.destination_index > len(destination):
                raise ValidationError(
                    "Position is outside the location",
                    metadata={"index": move.destination_index, "size": len(destination)}
                )
        except ValidationError as e:
            return self.coordinator.resolved(self._fail(e))

        if index.position_of(product.id) == (destination_id, move.destination_index):
            return self.coordinator.resolved(Result.ok(product))

        sequence, plan = allocate_with_renumber(destination, move.destination_index, self.sequence_gap)
        renumbered = [(destination[position].id, plan.sequences[position]) for position in plan.changed] if plan else []

        previous: Dict[ProductId, Tuple[LocationId, int]] = {
            product.id: (product.store_location_id, product.sequence_number)
        }
        target: Dict[ProductId, Tuple[LocationId, int]] = {product.id: (destination_id, sequence)}
        for product_id, new_sequence in renumbered:
            neighbour = self.product(product_id)
            previous[product_id] = (neighbour.store_location_id, neighbour.sequence_number)
            target[product_id] = (destination_id, new_sequence)
        stamp = next(self._stamps)

        def apply() -> None:
            for product_id, (location_id, new_sequence) in target.items():
                self._moves[product_id] = stamp
                self._replace_product(product_id, **self._placement(location_id, new_sequence))

        def revert() -> None:
            for product_id, (location_id, old_sequence) in previous.items():
                if self._moves.get(product_id) == stamp:
                    self._replace_product(product_id, **self._placement(location_id, old_sequence))

        async def persist() -> Product:
            for product_id, new_sequence in renumbered:
                await self.store.update_product(product_id, {"sequence_number": new_sequence})
            return await self.store.update_product(
                product.id,
                {"store_location_id": destination_id, "sequence_number": sequence}
            )

        if renumbered:
            self.logger.info("Renumbering location group", location_id=destination_id, changed=len(renumbered))

        return self.coordinator.dispatch(Mutation(
            action="move_product",
            apply=apply,
            revert=revert,
            persist=persist,
            failure_message="Error updating product order",
            metadata={
                "product_id": product.id,
                "location_id": destination_id,
                "sequence_number": sequence,
                "renumbered": len(renumbered),
            },
        ))

    # Products
    def _known_location(self, location_id: LocationId) -> None:
        if self.locations and self.location(location_id) is None:
            raise ValidationError("Unknown location", metadata={"location_id": location_id})

    async def save_product(
        self,
        draft: Union[ProductDraft, Mapping[str, Any]],
        product_id: Optional[ProductId] = None
    ) -> Result[Product]:
        """
        Create a product, or update it when product_id is given.

        Invalid input is rejected locally without calling the store.
        """
        try:
            if not isinstance(draft, ProductDraft):
                try:
                    draft = ProductDraft.model_validate(dict(draft))
                except PydanticValidationError as e:
                    raise _validation_error(e) from e
            self._known_location(draft.store_location_id)
            if product_id is not None and self.products and self.product(product_id) is None:
                raise ValidationError("Unknown product", metadata={"product_id": product_id})
        except ValidationError as e:
            return self._fail(e)

        if product_id is not None:
            result = await self._call(
                "update_product",
                self.store.update_product(product_id, draft.model_dump()),
                "Error saving product"
            )
            if not result.success:
                return result
            saved = result.data
            self.products = [saved if p.id == product_id else p for p in self.products]
            self._log_action("update_product", product_id=product_id)
            self.notifier.success("Product updated")
            return result

        result = await self._call("insert_product", self.store.insert_product(draft), "Error saving product")
        if not result.success:
            return result
        saved = result.data
        self.products = self.products + [saved]
        self.preferences.remember(saved.store_location_id, saved.sequence_number)
        self._log_action("insert_product", product_id=saved.id, location_id=saved.store_location_id)
        self.notifier.success("Product added")
        return result

    async def delete_product(self, product_id: ProductId) -> Result[None]:
        result = await self._call("delete_product", self.store.delete_product(product_id), "Error deleting product")
        if result.success:
            self.products = [p for p in self.products if p.id != product_id]
            self._log_action("delete_product", product_id=product_id)
            self.notifier.success("Product deleted")
        return result

    def form_defaults(self, location_id: Optional[LocationId] = None) -> ProductFormDefaults:
        """Defaults for a new product: given or last used location, next free sequence."""
        remembered = self.preferences.load()
        if location_id is None:
            location_id = remembered.last_location_id
        if location_id is not None and self.locations and self.location(location_id) is None:
            location_id = None
        if location_id is None:
            return ProductFormDefaults(None, remembered.last_sequence or 0, 0)
        index = self.index
        return ProductFormDefaults(
            location_id,
            index.next_sequence(location_id),
            index.max_sequence(location_id),
        )

    def select_location(self, location_id: LocationId) -> ProductFormDefaults:
        """The form's location changed: suggest the next sequence there."""
        index = self.index
        suggestion = index.next_sequence(location_id)
        self.preferences.remember(location_id, suggestion)
        return ProductFormDefaults(location_id, suggestion, index.max_sequence(location_id))

    # Locations
    async def save_location(
        self,
        draft: Union[LocationDraft, Mapping[str, Any]],
        location_id: Optional[LocationId] = None
    ) -> Result[StoreLocation]:
        """Create a location (appended to the walk by default) or rename/move one."""
        try:
            if not isinstance(draft, LocationDraft):
                try:
                    draft = LocationDraft.model_validate(dict(draft))
                except PydanticValidationError as e:
                    raise _validation_error(e) from e
        except ValidationError as e:
            return self._fail(e)

        if location_id is not None:
            changes: Dict[str, Any] = {"name": draft.name}
            if draft.sequence_number is not None:
                changes["sequence_number"] = draft.sequence_number
            result = await self._call(
                "update_location",
                self.store.update_location(location_id, changes),
                "Error saving location"
            )
            if not result.success:
                return result
            self.locations = [result.data if l.id == location_id else l for l in self.locations]
            self.products = [
                p.model_copy(update={"location": result.data}) if p.store_location_id == location_id else p
                for p in self.products
            ]
            message = "Location updated"
        else:
            if draft.sequence_number is None:
                draft = draft.model_copy(update={"sequence_number": len(self.locations) + 1})
            result = await self._call(
                "insert_location",
                self.store.insert_location(draft),
                "Error saving location"
            )
            if not result.success:
                return result
            self.locations = self.locations + [result.data]
            message = "Location added"

        self.locations = sorted(self.locations, key=lambda l: (l.sequence_number, l.name.casefold()))
        self._log_action("save_location", location_id=result.data.id)
        self.notifier.success(message)
        return result

    async def delete_location(self, location_id: LocationId) -> Result[None]:
        result = await self._call(
            "delete_location",
            self.store.delete_location(location_id),
            "Error deleting location"
        )
        if result.success:
            self.locations = [l for l in self.locations if l.id != location_id]
            self._log_action("delete_location", location_id=location_id)
            self.notifier.success("Location deleted")
        return result
