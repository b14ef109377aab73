"""Product model for WeekShop."""
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import String, ForeignKey, Integer, Numeric, JSON, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IdMixin, TimestampMixin


class Product(Base, IdMixin, TimestampMixin):
    """Model representing a catalog product placed on a store shelf."""

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("default_quantity >= 1", name="ck_product_default_quantity"),
        CheckConstraint(
            "shelf_height IN ('top', 'middle', 'bottom')",
            name="ck_product_shelf_height"
        ),
    )

    # Fields
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    aliases: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    shelf_height: Mapped[str] = mapped_column(String(10), default="middle", nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    typical_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    default_quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    product_url: Mapped[Optional[str]] = mapped_column(String(500))
    image_url: Mapped[Optional[str]] = mapped_column(String(500))
    barcode: Mapped[Optional[str]] = mapped_column(String(50))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Foreign keys
    store_location_id: Mapped[str] = mapped_column(
        ForeignKey("store_locations.id"),
        nullable=False
    )

    # Relationships
    location = relationship(
        "StoreLocation",
        back_populates="products"
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', sequence={self.sequence_number})>"
