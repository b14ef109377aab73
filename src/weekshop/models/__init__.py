"""Models package for WeekShop."""
from .base import Base
from .location import StoreLocation
from .product import Product
from .shop import WeeklyShop, WeeklyShopItem

__all__ = ['Base', 'StoreLocation', 'Product', 'WeeklyShop', 'WeeklyShopItem']
