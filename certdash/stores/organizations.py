"""
Organization list store.
"""

import asyncio
from typing import Any, Dict

from ..errors import validate_input
from ..models import OrganizationCreate, OrganizationUpdate, Page
from ..services.admin_api import AdminApi
from ..services.notifications import ErrorReporter
from .resource_store import ResourceStore


def create_organization_store(api: AdminApi, reporter: ErrorReporter, items_per_page: int = 10) -> ResourceStore:
    """
    Organizations keyed by website.

    Updates address an organization by its document id, deletes by website,
    matching the admin router's payloads. Form data is checked before it is
    sent, and websites are normalized to their bare host form.
    """

    async def fetch_page(limit: int, offset: int, search: str = '', **filters) -> Page:
        return await asyncio.to_thread(api.list_organizations, limit, offset, search)

    async def create_item(data: Dict[str, Any]):
        organization = validate_input(OrganizationCreate, data)
        return await asyncio.to_thread(
            api.add_organization,
            organization.website,
            organization.name,
            organization.sop_email,
            organization.sop_password
        )

    async def update_item(organization_id: str, data: Dict[str, Any]):
        changes = validate_input(OrganizationUpdate, data)
        return await asyncio.to_thread(
            api.edit_organization,
            organization_id,
            changes.name,
            changes.website,
            changes.sop_email
        )

    async def delete_item(website: str, **kwargs):
        return await asyncio.to_thread(api.delete_organization, website)

    return ResourceStore(
        'organizations',
        fetch_page,
        reporter,
        create_item=create_item,
        update_item=update_item,
        delete_item=delete_item,
        item_key=lambda organization: organization.website,
        items_per_page=items_per_page
    )
