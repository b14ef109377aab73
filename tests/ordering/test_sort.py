"""Tests for weekly list presentation order."""
import random

from weekshop.domain.types import ShelfHeight, ViewMode
from weekshop.ordering.sort import sort_items, sort_products


def test_list_mode_is_alphabetical(location_factory, product_factory, item_factory):
    dairy = location_factory("Dairy", 1)
    items = [
        item_factory(product_factory(name, dairy))
        for name in ("cheese", "Bread", "apple")
    ]
    names = [item.product.name for item in sort_items(items, ViewMode.LIST)]
    assert names == ["apple", "Bread", "cheese"]


def test_shop_mode_walks_locations_then_shelves(location_factory, product_factory, item_factory):
    """Test the walking route: location sequence, then shelf top to bottom."""
    first = location_factory("Fruit", 1)
    second = location_factory("Dairy", 2)
    a = item_factory(product_factory("A", first, 1, ShelfHeight.TOP))
    b = item_factory(product_factory("B", first, 2, ShelfHeight.BOTTOM))
    c = item_factory(product_factory("C", second, 1, ShelfHeight.TOP))

    ordered = sort_items([c, b, a], "shop")

    assert [item.product.name for item in ordered] == ["A", "B", "C"]


def test_shop_mode_uses_product_sequence_within_shelf(location_factory, product_factory, item_factory):
    dairy = location_factory("Dairy", 1)
    late = item_factory(product_factory("Butter", dairy, 30, ShelfHeight.MIDDLE))
    early = item_factory(product_factory("Yoghurt", dairy, 10, ShelfHeight.MIDDLE))

    assert sort_items([late, early], ViewMode.SHOP) == [early, late]


def test_items_without_product_sort_last(location_factory, product_factory, item_factory):
    dairy = location_factory("Dairy", 5)
    known = item_factory(product_factory("Milk", dairy))
    orphan = known.model_copy(update={"id": "orphan", "product": None})

    assert sort_items([orphan, known], ViewMode.LIST) == [known, orphan]
    # No product means location 0 and bottom shelf in the walking order
    assert sort_items([known, orphan], ViewMode.SHOP) == [orphan, known]


def test_sorting_does_not_modify_input(location_factory, product_factory, item_factory):
    dairy = location_factory("Dairy", 1)
    items = [item_factory(product_factory(name, dairy)) for name in ("b", "a")]
    before = list(items)

    sort_items(items, ViewMode.LIST)

    assert items == before


def test_sorting_is_deterministic(location_factory, product_factory, item_factory):
    """Test that any input permutation gives the same order for distinct keys."""
    locations = [location_factory(f"L{n}", n) for n in range(3)]
    items = [
        item_factory(product_factory(f"P{n}", locations[n % 3], n, list(ShelfHeight)[n % 3]))
        for n in range(9)
    ]
    expected = sort_items(items, ViewMode.SHOP)
    shuffled = list(items)
    random.Random(7).shuffle(shuffled)

    assert sort_items(shuffled, ViewMode.SHOP) == expected


def test_sort_products_by_name(location_factory, product_factory):
    dairy = location_factory("Dairy", 1)
    products = [product_factory(name, dairy) for name in ("milk", "Butter", "cream")]
    assert [p.name for p in sort_products(products)] == ["Butter", "cream", "milk"]


def test_accented_names_sort_with_their_base_letter(location_factory, product_factory, item_factory):
    """Test that accents do not push names after the plain alphabet."""
    bakery = location_factory("Bakery", 1)
    items = [
        item_factory(product_factory(name, bakery))
        for name in ("Zucchini", "Éclair", "eggs", "Crème fraîche", "Cucumber")
    ]

    names = [item.product.name for item in sort_items(items, ViewMode.LIST)]

    assert names == ["Crème fraîche", "Cucumber", "Éclair", "eggs", "Zucchini"]


def test_sort_products_ignores_accents(location_factory, product_factory):
    dairy = location_factory("Dairy", 1)
    products = [product_factory(name, dairy) for name in ("Zaatar", "Émmental", "Açaí")]

    assert [p.name for p in sort_products(products)] == ["Açaí", "Émmental", "Zaatar"]
