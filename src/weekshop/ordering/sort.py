"""Presentation order of the weekly list."""
import locale
import unicodedata
from typing import List, Sequence, Tuple, Union

from weekshop.domain.types import (
    Product,
    ShelfHeight,
    SHELF_ORDER,
    ViewMode,
    WeeklyShopItem,
)


def _fold(name: str) -> str:
    """Drop accents and case so "Éclair" files under E."""
    decomposed = unicodedata.normalize("NFKD", name)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()


def _name_key(name: str) -> Tuple[str, str]:
    # Accents and case only break ties between otherwise equal names
    return (locale.strxfrm(_fold(name)), name.casefold())


def _list_key(item: WeeklyShopItem) -> Tuple[bool, Tuple[str, str]]:
    # Items whose product did not resolve go to the end
    if item.product is None:
        return (True, ("", ""))
    return (False, _name_key(item.product.name))


def _shop_key(item: WeeklyShopItem) -> Tuple[int, int, int]:
    product = item.product
    location_sequence = 0
    shelf = SHELF_ORDER[ShelfHeight.BOTTOM]
    product_sequence = 0
    if product is not None:
        if product.location is not None:
            location_sequence = product.location.sequence_number
        shelf = SHELF_ORDER.get(product.shelf_height, shelf)
        product_sequence = product.sequence_number
    return (location_sequence, shelf, product_sequence)


def sort_items(
    items: Sequence[WeeklyShopItem],
    mode: Union[ViewMode, str] = ViewMode.LIST
) -> List[WeeklyShopItem]:
    """
    Order weekly list items for display.

    Args:
        items: Items in any order; never modified
        mode: 'list' for alphabetical, 'shop' for the walking route through
            the store (location, then shelf top to bottom)

    Returns:
        A new list; equal keys keep their input order
    """
    mode = ViewMode(mode)
    if mode is ViewMode.SHOP:
        return sorted(items, key=_shop_key)
    return sorted(items, key=_list_key)


def sort_products(products: Sequence[Product]) -> List[Product]:
    """Admin listing order: by name."""
    return sorted(products, key=lambda product: _name_key(product.name))
