"""
Activity log store.
"""

import asyncio
import logging
from typing import Iterable

from ..models import Page
from ..services.notifications import ErrorReporter
from .resource_store import ResourceStore

logger = logging.getLogger(__name__)

ADMIN_LOG_FILTERS = ('activity_type', 'status', 'organization_website')


def create_activity_log_store(api, reporter: ErrorReporter, items_per_page: int = 10,
                              filters: Iterable[str] = ADMIN_LOG_FILTERS) -> ResourceStore:
    """
    Activity log pages from either router.

    ``api`` is an ``AdminApi`` or a ``SopApi``. Only the filters named in
    ``filters`` are forwarded; the SOP router takes none.
    """
    accepted = frozenset(filters)

    async def fetch_page(limit: int, offset: int, search: str = '', **store_filters) -> Page:
        dropped = sorted(set(store_filters) - accepted)
        if dropped:
            logger.debug(f"Ignoring activity log filters not supported here: {dropped}")
        kwargs = {k: v for k, v in store_filters.items() if k in accepted}
        return await asyncio.to_thread(api.list_activity_logs, limit=limit, offset=offset, search=search, **kwargs)

    return ResourceStore(
        'activity logs',
        fetch_page,
        reporter,
        items_per_page=items_per_page,
        singular='activity log'
    )
