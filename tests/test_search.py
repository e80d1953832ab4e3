"""
Unit tests for the debounced search trigger.
"""

import asyncio
import pytest

from certdash.models import Page, Pagination
from certdash.stores import ResourceStore, SearchDebouncer


class RecordingFetch:
    def __init__(self):
        self.calls = []
        self.hold = None

    async def __call__(self, limit, offset, search='', **filters):
        self.calls.append((limit, offset, search))
        if self.hold:
            await self.hold.wait()
        return Page(items=[], pagination=Pagination(total=0, limit=limit, offset=offset, has_more=False))


@pytest.fixture
def fetch():
    return RecordingFetch()


@pytest.fixture
def store(fetch, reporter):
    return ResourceStore('courses', fetch, reporter, items_per_page=20)


class TestSearchDebouncer:
    """Test SearchDebouncer."""

    @pytest.mark.asyncio
    async def test_fires_once_after_quiet_period(self, store, fetch):
        """Test rapid input results in one fetch for the last term."""
        debouncer = SearchDebouncer(store, delay=0.01)

        debouncer.on_input('p')
        debouncer.on_input('py')
        debouncer.on_input('pyt')
        await debouncer.wait()

        assert fetch.calls == [(20, 0, 'pyt')]
        assert store.state.search_term == 'pyt'

    @pytest.mark.asyncio
    async def test_resets_to_first_page(self, store, fetch):
        """Test a new search starts from page 1."""
        await store.fetch(3, '', 20)
        debouncer = SearchDebouncer(store, delay=0)

        debouncer.on_input('data')
        await debouncer.wait()

        assert fetch.calls[-1] == (20, 0, 'data')
        assert store.state.pagination.current_page == 1

    @pytest.mark.asyncio
    async def test_initial_term_does_not_fetch(self, store, fetch):
        """Test the starting term counts as applied."""
        debouncer = SearchDebouncer(store, delay=0, initial='')

        debouncer.on_input('')
        await debouncer.wait()

        assert fetch.calls == []

    @pytest.mark.asyncio
    async def test_clearing_search_fetches(self, store, fetch):
        """Test going back to an empty search fetches page 1 again."""
        debouncer = SearchDebouncer(store, delay=0)

        debouncer.on_input('python')
        await debouncer.wait()
        debouncer.on_input('')
        await debouncer.wait()

        assert fetch.calls == [(20, 0, 'python'), (20, 0, '')]
        assert store.state.search_term == ''

    @pytest.mark.asyncio
    async def test_same_term_again_does_not_fetch(self, store, fetch):
        """Test retyping the applied term makes no request."""
        debouncer = SearchDebouncer(store, delay=0)

        debouncer.on_input('python')
        await debouncer.wait()
        debouncer.on_input('pytho')
        debouncer.on_input('python')
        await debouncer.wait()

        assert fetch.calls == [(20, 0, 'python')]

    @pytest.mark.asyncio
    async def test_cancel(self, store, fetch):
        """Test a cancelled timer never fetches."""
        debouncer = SearchDebouncer(store, delay=0.05)

        debouncer.on_input('python')
        assert debouncer.pending is True
        debouncer.cancel()
        await debouncer.wait()
        await asyncio.sleep(0.06)

        assert fetch.calls == []
        assert debouncer.pending is False

    @pytest.mark.asyncio
    async def test_term_skipped_while_loading_stays_unapplied(self, store, fetch):
        """Test a search rejected by the in-flight guard is retried when typed again."""
        debouncer = SearchDebouncer(store, delay=0)
        fetch.hold = asyncio.Event()
        loading = asyncio.create_task(store.fetch(2, '', 20))
        await asyncio.sleep(0)

        assert await debouncer.apply('python') is False
        assert debouncer.applied == ''
        assert store.state.search_term == ''

        fetch.hold.set()
        await loading
        assert await debouncer.apply('python') is True

        assert fetch.calls == [(20, 20, ''), (20, 0, 'python')]
        assert store.state.search_term == 'python'
