"""Remote data service access."""
from .base import ShopStore
from .sql_store import SqlShopStore

__all__ = ['ShopStore', 'SqlShopStore']
