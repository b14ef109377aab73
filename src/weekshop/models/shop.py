"""WeeklyShop and WeeklyShopItem models for WeekShop."""
from datetime import date
from decimal import Decimal
from typing import Optional
from sqlalchemy import Date, String, ForeignKey, Integer, Numeric, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IdMixin, TimestampMixin


class WeeklyShop(Base, IdMixin, TimestampMixin):
    """Model representing one week's shopping list."""

    __tablename__ = "weekly_shops"

    # Fields
    shop_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Relationships
    items = relationship(
        "WeeklyShopItem",
        back_populates="shop",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<WeeklyShop(id={self.id}, shop_date={self.shop_date})>"


class WeeklyShopItem(Base, IdMixin, TimestampMixin):
    """Model representing a product entry on a weekly shopping list."""

    __tablename__ = "weekly_shop_items"

    # A product appears at most once per shop
    __table_args__ = (
        UniqueConstraint(
            "weekly_shop_id",
            "product_id",
            name="uq_weekly_shop_item_product"
        ),
        CheckConstraint("quantity >= 1", name="ck_weekly_shop_item_quantity"),
        CheckConstraint(
            "status IN ('required', 'bought', 'unavailable')",
            name="ck_weekly_shop_item_status"
        ),
    )

    # Fields
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="required", nullable=False)
    max_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))

    # Foreign keys
    weekly_shop_id: Mapped[str] = mapped_column(
        ForeignKey("weekly_shops.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        ForeignKey("products.id"),
        nullable=False
    )

    # Relationships
    shop = relationship(
        "WeeklyShop",
        back_populates="items"
    )
    product = relationship("Product")

    def __repr__(self) -> str:
        return f"<WeeklyShopItem(id={self.id}, product_id={self.product_id}, quantity={self.quantity})>"
