"""
Wires settings, gateway clients, services and stores into one dashboard.
"""

import logging
from typing import Callable, Dict, Optional, Union

from .config import Settings
from .errors import AuthenticationError
from .models import UserRole
from .services.admin_api import AdminApi
from .services.auth import AuthService, Scheduler, SessionStore, timer_scheduler
from .services.certificates import DownloadManager, ResendManager
from .services.gateway import GatewayClient
from .services.notifications import ErrorReporter, NotificationCenter
from .services.sop_api import SopApi
from .stores import (
    LearnerStore, PreferencesStore, ResourceStore, SearchDebouncer,
    create_activity_log_store, create_course_store, create_learner_store,
    create_organization_store, create_sop_learner_store
)

logger = logging.getLogger(__name__)


class Dashboard:
    """Everything a front end needs, built from one ``Settings``."""

    def __init__(
        self,
        settings: Settings,
        session: SessionStore,
        gateway: GatewayClient,
        scheduler: Scheduler = timer_scheduler,
        redirect: Optional[Callable[[], None]] = None
    ):
        self.settings = settings
        self.session = session
        self.gateway = gateway
        self.admin_api = AdminApi(gateway)
        self.sop_api = SopApi(gateway)

        self.notifications = NotificationCenter()
        self.reporter = ErrorReporter(self.notifications)
        self.preferences = PreferencesStore(settings.preferences_file)

        self.auth = AuthService(
            self.admin_api,
            session,
            logout_delay=settings.logout_delay,
            token_ttl_hours=settings.token_ttl_hours,
            scheduler=scheduler,
            redirect=redirect
        )
        gateway.unauthorized_handler = self.auth.schedule_logout

        size = settings.page_size
        self.courses: ResourceStore = create_course_store(self.admin_api, self.reporter, size)
        self.organizations: ResourceStore = create_organization_store(self.admin_api, self.reporter, size)
        self.learners: LearnerStore = create_learner_store(self.admin_api, self.reporter, size)
        self.sop_learners: ResourceStore = create_sop_learner_store(self.sop_api, session, self.reporter, size)
        self.activity_logs: ResourceStore = create_activity_log_store(self.admin_api, self.reporter, size)
        self.sop_activity_logs: ResourceStore = create_activity_log_store(
            self.sop_api, self.reporter, size, filters=())

        self._resend: Dict[UserRole, ResendManager] = {}
        self._download: Dict[UserRole, DownloadManager] = {}

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> 'Dashboard':
        settings = settings or Settings.from_env()
        session = SessionStore(settings.session_file)
        gateway = GatewayClient(settings, session)
        return cls(settings, session, gateway, **kwargs)

    @property
    def role(self) -> UserRole:
        user = self.session.user
        if not user:
            raise AuthenticationError('Not logged in')
        return user.role

    def api_for_role(self) -> Union[AdminApi, SopApi]:
        return self.sop_api if self.role == UserRole.SOP else self.admin_api

    def learner_store(self) -> ResourceStore:
        return self.sop_learners if self.role == UserRole.SOP else self.learners

    def log_store(self) -> ResourceStore:
        return self.sop_activity_logs if self.role == UserRole.SOP else self.activity_logs

    def resend_manager(self) -> ResendManager:
        role = self.role
        if role not in self._resend:
            self._resend[role] = ResendManager(self.api_for_role(), self.notifications)
        return self._resend[role]

    def download_manager(self) -> DownloadManager:
        role = self.role
        if role not in self._download:
            self._download[role] = DownloadManager(
                self.api_for_role(),
                self.notifications,
                timeout=self.settings.request_timeout
            )
        return self._download[role]

    def search(self, store: ResourceStore, initial: str = '') -> SearchDebouncer:
        return SearchDebouncer(store, delay=self.settings.search_debounce, initial=initial)
