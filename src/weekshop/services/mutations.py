"""Optimistic mutations: apply locally now, persist in the background."""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, Set, TypeVar

from weekshop.config.settings import get_settings
from weekshop.domain.errors import RemoteError, ShopError
from weekshop.notifications import Notifier
from weekshop.utils.logger import get_logger
from .base_service import Result


T = TypeVar('T')


@dataclass
class Mutation(Generic[T]):
    """A reversible local change paired with the remote call that persists it.

    apply and revert run synchronously on local state. revert must only undo
    the change while this mutation is still the latest write to the value,
    so that a later mutation of the same item is not clobbered even when it
    wrote the same value.
    """
    action: str
    apply: Callable[[], None]
    persist: Callable[[], Awaitable[T]]
    revert: Optional[Callable[[], None]] = None
    reconcile: Optional[Callable[[T], None]] = None
    failure_message: str = "Could not save the change"
    # Inserts never existed remotely, so they are undone regardless of policy
    always_revert: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


class MutationCoordinator:
    """Runs every user mutation through the same optimistic protocol."""

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        rollback_on_failure: Optional[bool] = None
    ):
        """
        Initialize the coordinator.

        Args:
            notifier: Sink for failure messages
            rollback_on_failure: Undo local changes whose persistence failed
                (default from settings)
        """
        self.notifier = notifier or Notifier()
        self.rollback_on_failure = (
            get_settings().ROLLBACK_ON_FAILURE
            if rollback_on_failure is None
            else rollback_on_failure
        )
        self.logger = get_logger(self.__class__.__name__)
        self._inflight: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of persistence calls still in flight."""
        return len(self._inflight)

    def dispatch(self, mutation: Mutation[T]) -> "asyncio.Task[Result[T]]":
        """
        Apply a mutation locally and start persisting it.

        Must be called from a running event loop. The local change is visible
        as soon as this returns.

        Returns:
            Task resolving to the Result of the persistence call
        """
        loop = asyncio.get_running_loop()
        mutation.apply()
        self.logger.debug("Applied optimistic change", action=mutation.action, **mutation.metadata)
        task = loop.create_task(self._persist(mutation), name=f"mutation-{mutation.action}")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    @staticmethod
    def resolved(result: Result[T]) -> "asyncio.Future[Result[T]]":
        """An already finished future, for mutations settled without a remote call."""
        future = asyncio.get_running_loop().create_future()
        future.set_result(result)
        return future

    async def drain(self) -> None:
        """Wait until every in-flight persistence call has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    async def _persist(self, mutation: Mutation[T]) -> Result[T]:
        try:
            value = await mutation.persist()
        except ShopError as e:
            return self._failed(mutation, e)
        except Exception:
            self.logger.exception("Unexpected persistence failure", action=mutation.action)
            return self._failed(mutation, RemoteError(metadata={"action": mutation.action}))

        if mutation.reconcile is not None:
            try:
                mutation.reconcile(value)
            except Exception:
                # The store has the change; the next refresh brings local state in line
                self.logger.exception("Could not reconcile local state", action=mutation.action)
                if mutation.always_revert and mutation.revert is not None:
                    # Placeholder rows would otherwise outlive every refresh
                    mutation.revert()
                return Result.ok(value, reconciled=False)
        self.logger.info(f"{mutation.action}: success", **mutation.metadata)
        return Result.ok(value)

    def _failed(self, mutation: Mutation[T], error: ShopError) -> Result[T]:
        reverted = False
        if mutation.revert is not None and (self.rollback_on_failure or mutation.always_revert):
            mutation.revert()
            reverted = True
        self.logger.warning(
            f"{mutation.action}: failed",
            kind=error.kind,
            reason=error.message,
            reverted=reverted,
            **mutation.metadata
        )
        self.notifier.report(error, mutation.failure_message)
        result: Result[T] = Result.from_error(error)
        result.metadata = {**result.metadata, "reverted": reverted}
        return result
