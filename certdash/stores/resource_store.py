"""
Generic list store: pagination, search and CRUD with server reconciliation.

Every action runs on the event loop. Gateway calls are awaited through the
collaborators, so state only changes between suspension points and the
in-flight guard needs no lock.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..errors import InvalidInputError
from ..models import Page, PaginationState, ResourceListState
from ..services.notifications import ErrorReporter

logger = logging.getLogger(__name__)

FetchPage = Callable[..., Awaitable[Page]]
Mutation = Callable[..., Awaitable[Any]]
StateListener = Callable[[ResourceListState], None]

PAST_TENSE = {'create': 'created', 'update': 'updated', 'delete': 'deleted'}


class ResourceStore:
    """
    State container for one paginated resource list.

    Args:
        name: Plural resource name used in messages ("courses").
        fetch_page: ``fetch_page(limit=, offset=, search=, **filters) -> Page``.
        reporter: Turns failures into a toast and the ``error`` string.
        create_item: ``create_item(data)`` coroutine.
        update_item: ``update_item(key, data)`` coroutine.
        delete_item: ``delete_item(key, **kwargs)`` coroutine.
        item_key: Key of an item, used to locate it for optimistic removal.
        optimistic_delete: Remove the item before the delete call resolves.
        items_per_page: Initial page size.
    """

    def __init__(
        self,
        name: str,
        fetch_page: FetchPage,
        reporter: ErrorReporter,
        create_item: Optional[Mutation] = None,
        update_item: Optional[Mutation] = None,
        delete_item: Optional[Mutation] = None,
        item_key: Callable[[Any], Any] = lambda item: item.id,
        optimistic_delete: bool = False,
        items_per_page: int = 10,
        singular: Optional[str] = None
    ):
        self.name = name
        self.singular = singular or name.rstrip('s')
        self.fetch_page = fetch_page
        self.reporter = reporter
        self.create_item = create_item
        self.update_item = update_item
        self.delete_item = delete_item
        self.item_key = item_key
        self.optimistic_delete = optimistic_delete
        self.state = ResourceListState(pagination=PaginationState(items_per_page=items_per_page))
        self._listeners: List[StateListener] = []

    # State plumbing
    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with the new state after every change."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set(self, **changes) -> None:
        self.state = self.state.model_copy(update=changes)
        for listener in list(self._listeners):
            listener(self.state)

    @property
    def items(self) -> List[Any]:
        return self.state.items

    def find(self, key: Any) -> Optional[Any]:
        for item in self.state.items:
            if self.item_key(item) == key:
                return item
        return None

    # Reads
    def _fetch_params(self, page: int, search: str, limit: int) -> Tuple[Any, ...]:
        return (page, search, limit, tuple(sorted(self.state.filters.items())))

    async def fetch(self, page: int = 1, search: str = '', items_per_page: Optional[int] = None) -> bool:
        """
        Load one page.

        Returns False without a request while a fetch is in flight or when the
        parameters equal the recorded ones, True once a request was made.
        Failures are reported, never raised.
        """
        if self.state.is_loading:
            logger.debug(f"{self.name} fetch/skipped: already in flight")
            return False

        limit = items_per_page or self.state.pagination.items_per_page
        if page < 1 or limit < 1:
            raise InvalidInputError(f'Invalid page {page} or page size {limit}')

        params = self._fetch_params(page, search, limit)
        if params == self.state.last_fetch_params:
            logger.debug(f"{self.name} fetch/skipped: duplicate parameters {params}")
            return False

        self._set(is_loading=True, error=None, items=[], last_fetch_params=params)
        logger.debug(f"{self.name} fetch/start: {params}")
        try:
            result = await self.fetch_page(
                limit=limit,
                offset=(page - 1) * limit,
                search=search,
                **self.state.filters
            )
        except asyncio.CancelledError:
            self._set(is_loading=False, last_fetch_params=None)
            raise
        except Exception as e:
            logger.warning(f"{self.name} fetch/error: {e}")
            message = self.reporter.report(e, context=f"Failed to load {self.name}")
            self._set(error=message, is_loading=False, last_fetch_params=None)
            return True

        pagination = self.state.pagination.model_copy(update={
            'current_page': page,
            'items_per_page': limit,
            'total_items': result.pagination.total,
            'has_more': result.pagination.has_more,
        })
        self._set(
            items=list(result.items)[:limit],
            pagination=pagination,
            summary=result.summary,
            is_loading=False,
            last_fetch_params=None
        )
        logger.info(f"{self.name} fetch/success: {len(self.state.items)} items on page {page}, {pagination.total_items} total")
        return True

    async def refresh(self) -> None:
        """Refetch the current page, search and page size."""
        pagination = self.state.pagination
        await self.fetch(pagination.current_page, self.state.search_term, pagination.items_per_page)

    async def set_pagination(self, **partial) -> None:
        """
        Merge pagination fields.

        A new page size restarts at page 1 and fetches it; a new page alone
        fetches that page.
        """
        current = self.state.pagination
        try:
            merged = PaginationState(**{**current.model_dump(), **partial})
        except ValidationError as e:
            raise InvalidInputError(f'Invalid pagination: {e}')

        if merged.items_per_page != current.items_per_page:
            merged = merged.model_copy(update={'current_page': 1})
            self._set(pagination=merged)
            await self.fetch(1, self.state.search_term, merged.items_per_page)
        elif merged.current_page != current.current_page:
            self._set(pagination=merged)
            await self.fetch(merged.current_page, self.state.search_term, merged.items_per_page)
        else:
            self._set(pagination=merged)

    def set_search_term(self, term: str) -> None:
        self._set(search_term=term)

    def set_filters(self, **filters) -> None:
        """Set extra list filters; ``None`` removes a filter."""
        merged: Dict[str, Any] = {**self.state.filters, **filters}
        self._set(filters={k: v for k, v in merged.items() if v is not None})

    # Writes
    async def create(self, data: Dict[str, Any]) -> Any:
        if not self.create_item:
            raise NotImplementedError(f"{self.name} cannot be created from this store")
        return await self._mutate('create', self.create_item, data)

    async def update(self, key: Any, data: Dict[str, Any]) -> Any:
        if not self.update_item:
            raise NotImplementedError(f"{self.name} cannot be updated from this store")
        return await self._mutate('update', self.update_item, key, data)

    async def delete(self, key: Any, **kwargs) -> Any:
        """Delete an item; with optimistic delete it leaves the list at once and is restored on failure."""
        if not self.delete_item:
            raise NotImplementedError(f"{self.name} cannot be deleted from this store")

        removed = None
        index = -1
        if self.optimistic_delete:
            items = list(self.state.items)
            for i, item in enumerate(items):
                if self.item_key(item) == key:
                    index, removed = i, items.pop(i)
                    break
            if removed is not None:
                self._set(items=items)

        try:
            return await self._mutate('delete', self.delete_item, key, **kwargs)
        except Exception:
            if removed is not None:
                items = list(self.state.items)
                items.insert(min(index, len(items)), removed)
                self._set(items=items)
                logger.info(f"Restored {self.singular} {key} after failed delete")
            raise

    async def _mutate(self, verb: str, operation: Mutation, *args, **kwargs) -> Any:
        self._set(is_mutating=True, error=None)
        try:
            result = await operation(*args, **kwargs)
        except Exception as e:
            message = self.reporter.report(e, context=f"Failed to {verb} {self.singular}")
            self._set(error=message, is_mutating=False)
            raise

        self._set(is_mutating=False)
        self.reporter.center.success(f"{self.singular.capitalize()} {PAST_TENSE[verb]} successfully")
        await self.refresh()
        return result
