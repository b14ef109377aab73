"""StoreLocation model for WeekShop."""
from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, IdMixin, TimestampMixin


class StoreLocation(Base, IdMixin, TimestampMixin):
    """An aisle or area of the store; sequence_number is the walking order."""

    __tablename__ = "store_locations"

    # Fields
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    # Locations still holding products are refused by the foreign key
    products = relationship(
        "Product",
        back_populates="location",
        passive_deletes="all"
    )

    def __repr__(self) -> str:
        return f"<StoreLocation(id={self.id}, name='{self.name}', sequence={self.sequence_number})>"
