"""Domain types for WeekShop."""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import NewType, Optional, List, Any, Annotated
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Strong types for IDs
LocationId = NewType('LocationId', str)
ProductId = NewType('ProductId', str)
ShopId = NewType('ShopId', str)
ItemId = NewType('ItemId', str)

# Prefix of ids given to rows that are still being inserted remotely
PENDING_ID_PREFIX = "pending-"


class ShelfHeight(str, Enum):
    """Shelf a product sits on."""
    TOP = "top"
    MIDDLE = "middle"
    BOTTOM = "bottom"


# Shelf ordinal used by the shop walking order
SHELF_ORDER = {
    ShelfHeight.TOP: 1,
    ShelfHeight.MIDDLE: 2,
    ShelfHeight.BOTTOM: 3,
}


class ItemStatus(str, Enum):
    """Status of an entry on the weekly list."""
    REQUIRED = "required"
    BOUGHT = "bought"
    UNAVAILABLE = "unavailable"


class ViewMode(str, Enum):
    """How the weekly list is presented."""
    LIST = "list"
    SHOP = "shop"


class StoreLocation(BaseModel):
    """A location in the store."""
    model_config = ConfigDict(from_attributes=True)

    id: LocationId
    name: str
    sequence_number: int = 0


class Product(BaseModel):
    """A catalog product."""
    model_config = ConfigDict(from_attributes=True)

    id: ProductId
    name: str
    aliases: List[str] = Field(default_factory=list)
    store_location_id: LocationId
    shelf_height: ShelfHeight = ShelfHeight.MIDDLE
    sequence_number: int = 0
    typical_price: Optional[Decimal] = Field(default=None, ge=0)
    default_quantity: Annotated[int, Field(ge=1)] = 1
    product_url: Optional[str] = None
    image_url: Optional[str] = None
    barcode: Optional[str] = None
    notes: Optional[str] = None
    location: Optional[StoreLocation] = None


class WeeklyShopItem(BaseModel):
    """A product entry on a weekly shopping list."""
    model_config = ConfigDict(from_attributes=True)

    id: ItemId
    weekly_shop_id: ShopId
    product_id: ProductId
    quantity: Annotated[int, Field(ge=1)] = 1
    status: ItemStatus = ItemStatus.REQUIRED
    max_price: Optional[Decimal] = None
    product: Optional[Product] = None

    @property
    def is_pending(self) -> bool:
        """Whether the row is still waiting for its remote insert."""
        return self.id.startswith(PENDING_ID_PREFIX)


class WeeklyShop(BaseModel):
    """A weekly shopping list."""
    model_config = ConfigDict(from_attributes=True)

    id: ShopId
    shop_date: date
    items: List[WeeklyShopItem] = Field(default_factory=list)


def parse_aliases(value: Any) -> List[str]:
    """Split comma-separated alias text into a clean list."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value)
    return [str(part).strip() for part in parts if str(part).strip()]


# Command Models
class ProductDraft(BaseModel):
    """Input for creating or editing a product."""
    name: Annotated[str, Field(max_length=100)]
    store_location_id: LocationId
    shelf_height: ShelfHeight = ShelfHeight.MIDDLE
    sequence_number: int = 0
    aliases: List[str] = Field(default_factory=list)
    typical_price: Optional[Decimal] = Field(default=None, ge=0)
    default_quantity: Annotated[int, Field(ge=1)] = 1
    product_url: Optional[str] = None
    image_url: Optional[str] = None
    barcode: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('name')
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        """Validate that name is present."""
        if not v or not v.strip():
            raise ValueError('Name is required')
        return v.strip()

    @field_validator('store_location_id')
    @classmethod
    def location_must_be_set(cls, v: str) -> str:
        """Validate that a location was chosen."""
        if not v or not v.strip():
            raise ValueError('Location is required')
        return v

    @field_validator('aliases', mode='before')
    @classmethod
    def split_aliases(cls, v: Any) -> List[str]:
        return parse_aliases(v)

    @field_validator('product_url', 'image_url', 'barcode', 'notes', mode='before')
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class LocationDraft(BaseModel):
    """Input for creating or editing a store location."""
    name: Annotated[str, Field(max_length=100)]
    sequence_number: Optional[int] = None

    @field_validator('name')
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Name is required')
        return v.strip()


class MoveProduct(BaseModel):
    """A drag-and-drop reorder, independent of how the gesture was made.

    destination_index is the position the product takes in the destination
    group once it has been removed from its current place.
    """
    model_config = ConfigDict(frozen=True)

    product_id: ProductId
    destination_location_id: LocationId
    destination_index: Annotated[int, Field(ge=0)]
