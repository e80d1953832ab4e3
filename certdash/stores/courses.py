"""
Course list store.
"""

import asyncio
from typing import Any, Dict

from ..errors import validate_input
from ..models import CourseCreate, CourseUpdate, Page
from ..services.admin_api import AdminApi
from ..services.notifications import ErrorReporter
from .resource_store import ResourceStore


def create_course_store(api: AdminApi, reporter: ErrorReporter, items_per_page: int = 10) -> ResourceStore:
    """Courses keyed by ``course_id``. Form data is checked before it is sent."""

    async def fetch_page(limit: int, offset: int, search: str = '', **filters) -> Page:
        return await asyncio.to_thread(api.list_courses, limit, offset, search)

    async def create_item(data: Dict[str, Any]):
        course = validate_input(CourseCreate, data)
        return await asyncio.to_thread(
            api.create_course,
            course.name,
            course.certificate_template_html,
            course.course_url
        )

    async def update_item(course_id: str, data: Dict[str, Any]):
        changes = validate_input(CourseUpdate, data)
        return await asyncio.to_thread(
            api.edit_course,
            course_id,
            changes.name,
            changes.certificate_template_html
        )

    async def delete_item(course_id: str, **kwargs):
        return await asyncio.to_thread(api.delete_course, course_id)

    return ResourceStore(
        'courses',
        fetch_page,
        reporter,
        create_item=create_item,
        update_item=update_item,
        delete_item=delete_item,
        item_key=lambda course: course.course_id,
        items_per_page=items_per_page
    )
