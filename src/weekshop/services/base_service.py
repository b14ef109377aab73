"""Base service class with common functionality."""
from typing import Awaitable, TypeVar, Generic, Optional, List
from pydantic import BaseModel, ConfigDict

from weekshop.domain.errors import RemoteError, ShopError
from weekshop.notifications import Notifier
from weekshop.store.base import ShopStore
from weekshop.utils.logger import get_logger

# Generic type for service results
T = TypeVar('T')


class Result(BaseModel, Generic[T]):
    """Generic result type for service operations."""
    success: bool
    data: Optional[T] = None
    error: str = ""
    kind: str = ""
    suggestions: List[str] = []
    metadata: dict = {}

    # Allow arbitrary types (like asyncio handles in metadata)
    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def ok(cls, data: T, **metadata) -> 'Result[T]':
        """Create a successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        suggestions: Optional[List[str]] = None,
        kind: str = "error"
    ) -> 'Result[T]':
        """Create a failed result."""
        return cls(
            success=False,
            error=error or "Unknown error",
            kind=kind,
            suggestions=suggestions or []
        )

    @classmethod
    def from_error(cls, error: ShopError) -> 'Result[T]':
        """Create a failed result from a shop error."""
        return cls(
            success=False,
            error=error.message,
            kind=error.kind,
            suggestions=error.suggestions,
            metadata=error.metadata
        )


class BaseService:
    """Base class for services that talk to the shop store."""

    def __init__(self, store: ShopStore, notifier: Optional[Notifier] = None):
        """
        Initialize the service.

        Args:
            store: Remote data service
            notifier: Sink for user-facing messages
        """
        self.store = store
        self.notifier = notifier or Notifier()
        self.logger = get_logger(self.__class__.__name__)

    def _log_action(
        self,
        action: str,
        status: str = "success",
        **kwargs
    ) -> None:
        """
        Log a service action.

        Args:
            action: Name of the action
            status: Status of the action
            **kwargs: Additional log data
        """
        self.logger.info(
            f"{action}: {status}",
            **kwargs
        )

    def _fail(self, error: ShopError, context: Optional[str] = None) -> Result:
        """Report an error to the user and turn it into a failed result."""
        self._log_action(
            context or error.kind,
            status="failed",
            kind=error.kind,
            reason=error.message
        )
        self.notifier.report(error, context)
        return Result.from_error(error)

    async def _call(self, action: str, call: Awaitable[T], context: str) -> Result[T]:
        """
        Await a store call and convert failures into results.

        Args:
            action: Name used in the logs
            call: The pending store call
            context: Generic message shown when the call fails transiently

        Returns:
            Result with the call's value or the reported error
        """
        try:
            data = await call
        except ShopError as e:
            return self._fail(e, context)
        except Exception:
            self.logger.exception("Unexpected store failure", action=action)
            return self._fail(RemoteError(metadata={"action": action}), context)
        return Result.ok(data)
