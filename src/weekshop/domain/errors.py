"""Error taxonomy for WeekShop."""
from typing import Optional, List, Dict, Any


class ShopError(Exception):
    """Base class for errors reported to the user."""

    kind = "error"
    default_message = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        suggestions: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ):
        self.message = message or self.default_message
        self.suggestions = suggestions or []
        self.metadata = metadata or {}
        super().__init__(self.message)


class ValidationError(ShopError):
    """Input rejected locally before any remote call."""
    kind = "validation"
    default_message = "Invalid input"


class ConstraintError(ShopError):
    """The store rejected a write because of a uniqueness or referential rule."""
    kind = "constraint"
    default_message = "The change conflicts with existing data"


class DuplicateItemError(ConstraintError):
    """The product is already on the shopping list."""
    kind = "duplicate"
    default_message = "Product already in list"


class RemoteError(ShopError):
    """The store call failed or timed out."""
    kind = "remote"
    default_message = "Could not reach the shopping list service"


class NotFoundError(ShopError):
    """The row no longer exists remotely."""
    kind = "not_found"
    default_message = "Item no longer exists"
