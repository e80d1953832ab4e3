"""
Typed wrapper around the SOP router actions.

SOP (single point of contact) users only see their own organization; the
router enforces that scope from the token.
"""

from typing import Optional

from ..models import (
    SopAction, GatewayRouter, Page, GroupedLearner, ActivityLog,
    SopLearnerStatistics, CertificateDownload, ResendResult
)
from .admin_api import list_payload, page_from_body
from .gateway import GatewayClient


class SopApi:
    """SOP router actions."""

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    def _call(self, action: SopAction, payload: dict):
        return self.gateway.execute(GatewayRouter.SOP, action, payload)

    def list_organization_learners(self, organization_website: str, limit: int = 10, offset: int = 0,
                                   search: Optional[str] = None) -> Page:
        payload = list_payload(limit, offset, search=search)
        payload['organization_website'] = organization_website
        body = self._call(SopAction.LIST_ORG_LEARNERS, payload)
        return page_from_body(body, 'learners', GroupedLearner)

    def download_certificate(self, learner_email: str, course_id: str) -> CertificateDownload:
        body = self._call(SopAction.DOWNLOAD_CERTIFICATE, {
            'learner_email': learner_email,
            'course_id': course_id,
        })
        return CertificateDownload(**body['data'])

    def resend_certificate(self, learner_email: str, course_id: str) -> ResendResult:
        body = self._call(SopAction.RESEND_CERTIFICATE, {
            'learner_email': learner_email,
            'course_id': course_id,
        })
        return ResendResult(**{**(body.get('data') or {}), 'success': bool(body.get('ok', True))})

    def get_learner_statistics(self) -> SopLearnerStatistics:
        body = self._call(SopAction.LEARNER_STATISTICS, {})
        return SopLearnerStatistics(**(body.get('data') or {}))

    def list_activity_logs(self, limit: int = 50, offset: int = 0, search: Optional[str] = None) -> Page:
        body = self._call(SopAction.LIST_ACTIVITY_LOGS, list_payload(limit, offset, search=search))
        return page_from_body(body, 'logs', ActivityLog)
