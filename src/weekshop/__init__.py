"""WeekShop: weekly grocery list ordered by the walk through the store."""

__version__ = "0.1.0"
