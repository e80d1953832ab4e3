"""
Debounced search for a resource store.
"""

import asyncio
import logging
from typing import Optional

from .resource_store import ResourceStore

logger = logging.getLogger(__name__)


class SearchDebouncer:
    """
    Apply search input to a store after it has been quiet for ``delay`` seconds.

    A fetch of page 1 fires whenever the settled term differs from the last
    applied one, clearing the search included. ``initial`` counts as applied,
    so creating the debouncer never fetches. Must be used from a running
    event loop.
    """

    def __init__(self, store: ResourceStore, delay: float = 0.5, initial: str = ''):
        self.store = store
        self.delay = delay
        self.applied = initial
        self._task: Optional[asyncio.Task] = None
        self._waiting = False

    def on_input(self, term: str) -> None:
        """Restart the timer with the latest input."""
        self.cancel()
        self._waiting = True
        self._task = asyncio.get_running_loop().create_task(self._settle(term))

    async def _settle(self, term: str) -> None:
        await asyncio.sleep(self.delay)
        self._waiting = False
        await self.apply(term)

    async def apply(self, term: str) -> bool:
        """
        Fetch page 1 for ``term`` unless it is already applied.

        The term only counts as applied once its fetch was issued; when the
        store is busy it is left unapplied and the store keeps its previous
        search term.
        """
        if term == self.applied:
            return False
        previous = self.store.state.search_term
        self.store.set_search_term(term)
        logger.debug(f"Searching {self.store.name} for {term!r}")
        if not await self.store.fetch(1, term, self.store.state.pagination.items_per_page):
            logger.debug(f"Search for {term!r} skipped while {self.store.name} is loading")
            self.store.set_search_term(previous)
            return False
        self.applied = term
        return True

    def cancel(self) -> None:
        """Drop a pending timer; a fetch already started is left to finish."""
        if self._task and self._waiting:
            self._task.cancel()
        self._waiting = False

    @property
    def pending(self) -> bool:
        return self._waiting

    async def wait(self) -> None:
        """Wait for the latest timer and the fetch it started."""
        if self._task:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
