"""Debounced product search.

Typed input waits for a pause before querying; voice input queries straight
away and cancels any typed query still waiting. Every request is numbered and
only the newest one may publish results, so a slow stale response can never
overwrite a fresher one.
"""
import asyncio
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from weekshop.config.settings import get_settings
from weekshop.domain.errors import RemoteError, ShopError
from weekshop.domain.types import Product, ProductId
from weekshop.notifications import Notifier
from weekshop.store.base import ShopStore
from weekshop.utils.logger import get_logger


class SearchState(str, Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    IN_FLIGHT = "in_flight"


ResultsListener = Callable[[List[Product]], None]


class SearchPipeline:
    """Search box state for one screen."""

    def __init__(
        self,
        store: ShopStore,
        notifier: Optional[Notifier] = None,
        debounce_ms: Optional[int] = None,
        on_results: Optional[ResultsListener] = None
    ):
        """
        Initialize the pipeline.

        Args:
            store: Remote data service providing search_products
            notifier: Sink for search failures
            debounce_ms: Quiet period before a typed query fires (default from settings)
            on_results: Called whenever the published results change
        """
        self.store = store
        self.notifier = notifier or Notifier()
        window = get_settings().SEARCH_DEBOUNCE_MS if debounce_ms is None else debounce_ms
        self.debounce_seconds = window / 1000
        self.on_results = on_results
        self.logger = get_logger(self.__class__.__name__)

        self.query = ""
        self.results: List[Product] = []
        self.last_error: Optional[ShopError] = None
        self.drafts: Dict[ProductId, int] = {}

        self._timer: Optional[asyncio.TimerHandle] = None
        self._generation = 0
        self._latest: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> SearchState:
        if self._timer is not None:
            return SearchState.DEBOUNCING
        if self._latest is not None and not self._latest.done():
            return SearchState.IN_FLIGHT
        return SearchState.IDLE

    def submit_typed(self, text: str) -> None:
        """Restart the debounce window for typed text."""
        self.query = text
        self.cancel()
        if not text.strip():
            self._clear_results()
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer, text)

    def submit_immediate(self, text: str) -> Optional["asyncio.Task[List[Product]]"]:
        """Query right away (recognised voice text), dropping any pending typed query."""
        self.query = text
        self.cancel()
        if not text.strip():
            self._clear_results()
            return None
        return self._fire(text)

    def cancel(self) -> None:
        """Drop the pending debounce timer, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def clear(self) -> None:
        """Reset the search box, e.g. after a product was added to the list."""
        self.query = ""
        self.cancel()
        self._clear_results()

    async def settle(self) -> None:
        """Wait until no timer is pending and the latest request has finished."""
        while True:
            if self._timer is not None:
                await asyncio.sleep(self.debounce_seconds)
                continue
            if self._latest is not None and not self._latest.done():
                await asyncio.wait({self._latest})
                continue
            return

    def draft_quantity(self, product_id: ProductId) -> int:
        return self.drafts.get(product_id, 1)

    def adjust_draft(self, product_id: ProductId, delta: int) -> int:
        """Change the quantity that will be used when a result is added."""
        quantity = max(1, self.draft_quantity(product_id) + delta)
        self.drafts[product_id] = quantity
        return quantity

    def _on_timer(self, text: str) -> None:
        self._timer = None
        self._fire(text)

    def _fire(self, text: str) -> "asyncio.Task[List[Product]]":
        self._generation += 1
        generation = self._generation
        term = text.strip()
        self.logger.debug("Search request", term=term, generation=generation)
        task = asyncio.get_running_loop().create_task(
            self._run(term, generation), name=f"search-{generation}"
        )
        self._latest = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, term: str, generation: int) -> List[Product]:
        try:
            found = await self.store.search_products(term)
        except ShopError as e:
            self._failed(e, generation)
            return self.results
        except Exception:
            self.logger.exception("Unexpected search failure", term=term)
            self._failed(RemoteError(metadata={"action": "search_products"}), generation)
            return self.results

        if generation != self._generation:
            self.logger.debug("Discarding stale search results", term=term, generation=generation)
            return found

        self.results = list(found)
        self.last_error = None
        self.drafts = {product.id: product.default_quantity for product in found}
        self.logger.info("search: success", term=term, found=len(found))
        self._publish()
        return found

    def _failed(self, error: ShopError, generation: int) -> None:
        if generation != self._generation:
            return
        self.last_error = error
        self.logger.warning("search: failed", kind=error.kind, reason=error.message)
        self.notifier.report(error, "Error searching products")

    def _clear_results(self) -> None:
        # Anything still in flight is now stale
        self._generation += 1
        self._latest = None
        self.results = []
        self.drafts = {}
        self.last_error = None
        self._publish()

    def _publish(self) -> None:
        if self.on_results is not None:
            self.on_results(list(self.results))
