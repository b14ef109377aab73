"""Configuration for WeekShop."""
