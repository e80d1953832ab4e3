"""
Learner list stores for admins and for SOP users.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from ..errors import AuthorizationError, validate_input
from ..models import CsvConflictReport, LearnerUpdate, Page
from ..services.admin_api import AdminApi
from ..services.auth import SessionStore
from ..services.notifications import ErrorReporter
from ..services.sop_api import SopApi
from .resource_store import ResourceStore

logger = logging.getLogger(__name__)


class LearnerStore(ResourceStore):
    """Admin learner list with CSV import."""

    def __init__(self, api: AdminApi, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.api = api

    def _organization_of(self, email: str) -> Optional[str]:
        learner = self.find(email)
        if learner is None:
            return None
        if learner.organization_info:
            return learner.organization_info.website
        return learner.learner_info.organization_website

    async def update(self, key: Any, data: Dict[str, Any]) -> Any:
        if not data.get('organization_website'):
            data = {**data, 'organization_website': self._organization_of(key) or ''}
        return await super().update(key, data)

    async def delete(self, key: Any, **kwargs) -> Any:
        if 'organization_website' not in kwargs:
            website = self._organization_of(key)
            if website is not None:
                kwargs['organization_website'] = website
        return await super().delete(key, **kwargs)

    async def validate_csv(self, course_id: str, csv_data: str) -> CsvConflictReport:
        """Ask the gateway which CSV rows clash with an existing organization."""
        try:
            return await asyncio.to_thread(self.api.validate_csv_organization_conflicts, course_id, csv_data)
        except Exception as e:
            self._set(error=self.reporter.report(e, context='Failed to validate CSV'))
            raise

    async def upload_csv(self, course_id: str, csv_data: str) -> Dict[str, Any]:
        """Upload learners for a course, then reload the list."""
        self._set(is_mutating=True, error=None)
        try:
            result = await asyncio.to_thread(self.api.upload_learners_csv, course_id, csv_data)
        except Exception as e:
            self._set(error=self.reporter.report(e, context='Failed to upload CSV'), is_mutating=False)
            raise

        self._set(is_mutating=False)
        logger.info(f"CSV upload for course {course_id}: {result.get('message', 'done')}")
        self.reporter.center.success(result.get('message') or 'Learners uploaded successfully')
        await self.refresh()
        return result


def create_learner_store(api: AdminApi, reporter: ErrorReporter, items_per_page: int = 10) -> LearnerStore:
    """
    Every learner across organizations, grouped by email.

    Deletion is optimistic: the learner leaves the list before the gateway
    answers and is put back at the same position if the call fails. Set the
    ``organization_website`` filter to narrow the list.
    """

    async def fetch_page(limit: int, offset: int, search: str = '',
                         organization_website: Optional[str] = None, **filters) -> Page:
        return await asyncio.to_thread(api.list_all_learners, limit, offset, search, organization_website)

    async def update_item(learner_email: str, data: Dict[str, Any]):
        changes = validate_input(LearnerUpdate, {'email': learner_email, **data})
        return await asyncio.to_thread(
            api.update_learner,
            learner_email,
            changes.organization_website,
            changes.name,
            changes.email,
            changes.new_website
        )

    async def delete_item(learner_email: str, organization_website: Optional[str] = None, **kwargs):
        return await asyncio.to_thread(api.delete_learner, learner_email, organization_website or '')

    return LearnerStore(
        api,
        'learners',
        fetch_page,
        reporter,
        update_item=update_item,
        delete_item=delete_item,
        item_key=lambda learner: learner.email,
        optimistic_delete=True,
        items_per_page=items_per_page
    )


def create_sop_learner_store(api: SopApi, session: SessionStore, reporter: ErrorReporter,
                             items_per_page: int = 10) -> ResourceStore:
    """Learners of the logged-in SOP user's organization. Read-only."""

    async def fetch_page(limit: int, offset: int, search: str = '', **filters) -> Page:
        user = session.user
        if not user or not user.organization_website:
            raise AuthorizationError('No organization is associated with this account')
        return await asyncio.to_thread(
            api.list_organization_learners, user.organization_website, limit, offset, search)

    return ResourceStore(
        'learners',
        fetch_page,
        reporter,
        item_key=lambda learner: learner.email,
        items_per_page=items_per_page
    )
