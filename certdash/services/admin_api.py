"""
Typed wrapper around the admin router actions.
"""

import logging
from typing import Any, Dict, List, Optional

from ..errors import ApiError, validate_input
from ..models import (
    AdminAction, GatewayRouter, Page, Pagination,
    Course, Organization, Learner, GroupedLearner, ActivityLog,
    CourseStatistics, OrganizationStatistics, LearnerStatistics,
    CsvConflictReport, CertificateDownload, PasswordReset, ResendResult, SopUser
)
from .gateway import GatewayClient

logger = logging.getLogger(__name__)


def list_payload(limit: int, offset: int, **filters) -> Dict[str, Any]:
    """Build a list payload, dropping empty filters."""
    payload: Dict[str, Any] = {'limit': limit, 'offset': offset}
    for key, value in filters.items():
        if value not in (None, ''):
            payload[key] = value
    return payload


def page_from_body(body: Dict[str, Any], key: str, model) -> Page:
    """
    Build a Page from a list response.

    The pagination block is read as sent; it lives either at the top level
    or inside ``data`` depending on the action.
    """
    data = body.get('data') or {}
    raw_pagination = body.get('pagination') or data.get('pagination') or {}
    items = [model(**item) for item in data.get(key) or []]
    return Page(
        items=items,
        pagination=Pagination(**raw_pagination),
        summary=data.get('summary')
    )


class AdminApi:
    """Admin router actions."""

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    def _call(self, action: AdminAction, payload: Optional[Dict[str, Any]] = None,
              authenticated: bool = True) -> Dict[str, Any]:
        return self.gateway.execute(GatewayRouter.ADMIN, action, payload, authenticated=authenticated)

    # Users
    def create_admin_user(self, email: str, password: str, name: str = 'Admin User') -> SopUser:
        body = self._call(AdminAction.CREATE_ADMIN_USER,
                          {'email': email, 'name': name, 'password': password},
                          authenticated=False)
        return SopUser(**(body.get('data') or {}))

    def create_sop_user(self, email: str, password: str) -> SopUser:
        body = self._call(AdminAction.CREATE_SOP_USER,
                          {'email': email, 'password': password},
                          authenticated=False)
        return SopUser(**(body.get('data') or {}))

    # Courses
    def list_courses(self, limit: int = 10, offset: int = 0, search: Optional[str] = None) -> Page:
        body = self._call(AdminAction.LIST_COURSES, list_payload(limit, offset, search=search))
        return page_from_body(body, 'courses', Course)

    def create_course(self, name: str, certificate_template_html: str, course_url: str = '') -> Course:
        body = self._call(AdminAction.CREATE_COURSE, {
            'course_url': course_url,
            'name': name,
            'certificate_template_html': certificate_template_html,
        })
        return Course(**body['data']['course'])

    def edit_course(self, course_id: str, name: Optional[str] = None,
                    certificate_template_html: Optional[str] = None) -> Course:
        payload: Dict[str, Any] = {'course_id': course_id}
        if name:
            payload['name'] = name
        if certificate_template_html:
            payload['certificate_template_html'] = certificate_template_html
        body = self._call(AdminAction.EDIT_COURSE, payload)
        return Course(**body['data']['course'])

    def delete_course(self, course_id: str) -> Dict[str, Any]:
        body = self._call(AdminAction.DELETE_COURSE, {'course_id': course_id})
        return body.get('data') or {}

    # Organizations
    def list_organizations(self, limit: int = 10, offset: int = 0, search: Optional[str] = None) -> Page:
        body = self._call(AdminAction.LIST_ORGANIZATIONS, list_payload(limit, offset, search=search))
        return page_from_body(body, 'organizations', Organization)

    def add_organization(self, website: str, name: str, sop_email: str, sop_password: str) -> Organization:
        body = self._call(AdminAction.ADD_ORGANIZATION, {
            'website': website,
            'name': name,
            'sop_email': sop_email,
            'sop_password': sop_password,
        })
        return Organization(**body['data']['organization'])

    def edit_organization(self, organization_id: str, name: Optional[str] = None,
                          website: Optional[str] = None, sop_email: Optional[str] = None) -> Organization:
        payload = {'organization_id': organization_id}
        payload.update({k: v for k, v in
                        (('name', name), ('website', website), ('sop_email', sop_email)) if v})
        body = self._call(AdminAction.EDIT_ORGANIZATION, payload)
        return Organization(**body['data']['organization'])

    def delete_organization(self, website: str) -> Dict[str, Any]:
        body = self._call(AdminAction.DELETE_ORGANIZATION, {'website': website})
        return body.get('data') or {}

    def reset_sop_password(self, organization_website: str, new_password: str, sop_email: str) -> Dict[str, Any]:
        """Set a new SOP password; weak passwords are refused before any request."""
        reset = validate_input(PasswordReset, {
            'organization_website': organization_website,
            'new_password': new_password,
            'sop_email': sop_email,
        })
        body = self._call(AdminAction.RESET_SOP_PASSWORD, reset.model_dump())
        return body.get('data') or {}

    # Learners
    def list_all_learners(self, limit: int = 10, offset: int = 0, search: Optional[str] = None,
                          organization_website: Optional[str] = None) -> Page:
        body = self._call(AdminAction.LIST_ALL_LEARNERS, list_payload(
            limit, offset, search=search, organization_website=organization_website))
        return page_from_body(body, 'learners', GroupedLearner)

    def list_learners(self, course_id: Optional[str] = None, organization_website: Optional[str] = None,
                      limit: int = 10, offset: int = 0) -> List[Learner]:
        body = self._call(AdminAction.LIST_LEARNERS, list_payload(
            limit, offset, course_id=course_id, organization_website=organization_website))
        return [Learner(**item) for item in (body.get('data') or {}).get('learners') or []]

    def update_learner(self, learner_email: str, organization_website: str, name: str,
                       email: str, new_website: Optional[str] = None) -> ResendResult:
        body = self._call(AdminAction.UPDATE_LEARNER, {
            'learner_email': learner_email,
            'organization_website': organization_website,
            'new_website': new_website or organization_website,
            'name': name,
            'email': email,
        })
        updated = (body.get('data') or {}).get('updated_count', 0)
        if not updated:
            raise ApiError('No changes were made to the learner', code='NO_CHANGES', status_code=200)
        return ResendResult(success=True, message='Learner updated successfully', learner_email=email)

    def delete_learner(self, learner_email: str, organization_website: str) -> ResendResult:
        body = self._call(AdminAction.DELETE_LEARNER, {
            'learner_email': learner_email,
            'organization_website': organization_website,
        })
        data = body.get('data') or {}
        if not data.get('deleted_count'):
            raise ApiError(data.get('message') or 'Failed to delete learner', code='DELETE_FAILED',
                           status_code=200)
        return ResendResult(success=True, message=data.get('message', ''), learner_email=learner_email)

    def upload_learners_csv(self, course_id: str, csv_data: str) -> Dict[str, Any]:
        body = self._call(AdminAction.UPLOAD_LEARNERS_CSV_DIRECT, {
            'course_id': course_id,
            'csv_data': csv_data,
        })
        return body.get('data') or {}

    def validate_csv_organization_conflicts(self, course_id: str, csv_data: str) -> CsvConflictReport:
        body = self._call(AdminAction.VALIDATE_CSV_ORGANIZATION_CONFLICTS, {
            'course_id': course_id,
            'csv_data': csv_data,
        })
        return CsvConflictReport(**(body.get('data') or {}))

    # Certificates
    def save_and_preview_certificate(self, course_id: str, certificate_template_html: str,
                                     learner_name: str, learner_email: str,
                                     organization_website: str) -> str:
        body = self._call(AdminAction.SAVE_AND_PREVIEW_CERTIFICATE, {
            'course_id': course_id,
            'certificate_template_html': certificate_template_html,
            'learner_name': learner_name,
            'learner_email': learner_email,
            'organization_website': organization_website,
        })
        return (body.get('data') or {}).get('preview_html', '')

    def resend_certificate(self, learner_email: str, course_id: str) -> ResendResult:
        body = self._call(AdminAction.RESEND_CERTIFICATE, {
            'learner_email': learner_email,
            'course_id': course_id,
        })
        return ResendResult(**{**(body.get('data') or {}), 'success': bool(body.get('ok', True))})

    def download_certificate(self, learner_email: str, course_id: str) -> CertificateDownload:
        body = self._call(AdminAction.DOWNLOAD_CERTIFICATE, {
            'learner_email': learner_email,
            'course_id': course_id,
        })
        return CertificateDownload(**body['data'])

    # Activity logs
    def list_activity_logs(self, limit: int = 10, offset: int = 0, activity_type: Optional[str] = None,
                           status: Optional[str] = None, organization_website: Optional[str] = None,
                           search: Optional[str] = None) -> Page:
        body = self._call(AdminAction.LIST_ACTIVITY_LOGS, list_payload(
            limit, offset, activity_type=activity_type, status=status,
            organization_website=organization_website, search=search))
        return page_from_body(body, 'logs', ActivityLog)

    # Statistics
    def get_learner_statistics(self) -> LearnerStatistics:
        body = self._call(AdminAction.LEARNER_STATISTICS, {})
        return LearnerStatistics(**(body.get('data') or {}))

    def get_organization_statistics(self) -> OrganizationStatistics:
        body = self._call(AdminAction.ORGANIZATION_STATISTICS, {})
        return OrganizationStatistics(**(body.get('data') or {}))

    def get_course_statistics(self) -> CourseStatistics:
        body = self._call(AdminAction.COURSE_STATISTICS, {})
        return CourseStatistics(**(body.get('data') or {}))
