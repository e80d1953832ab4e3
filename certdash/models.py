"""
Pydantic models mirroring the gateway's JSON payloads and the client state.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


class AdminAction(str, Enum):
    """Admin router action types."""
    CREATE_ADMIN_USER = "CREATE_ADMIN_USER"
    CREATE_SOP_USER = "CREATE_SOP_USER"
    LIST_COURSES = "LIST_COURSES"
    CREATE_COURSE = "CREATE_COURSE"
    EDIT_COURSE = "EDIT_COURSE"
    DELETE_COURSE = "DELETE_COURSE"
    LIST_ORGANIZATIONS = "LIST_ORGANIZATIONS"
    ADD_ORGANIZATION = "ADD_ORGANIZATION"
    EDIT_ORGANIZATION = "EDIT_ORGANIZATION"
    DELETE_ORGANIZATION = "DELETE_ORGANIZATION"
    RESET_SOP_PASSWORD = "RESET_SOP_PASSWORD"
    LIST_ALL_LEARNERS = "LIST_ALL_LEARNERS"
    LIST_LEARNERS = "LIST_LEARNERS"
    UPDATE_LEARNER = "UPDATE_LEARNER"
    DELETE_LEARNER = "DELETE_LEARNER"
    UPLOAD_LEARNERS_CSV_DIRECT = "UPLOAD_LEARNERS_CSV_DIRECT"
    VALIDATE_CSV_ORGANIZATION_CONFLICTS = "VALIDATE_CSV_ORGANIZATION_CONFLICTS"
    SAVE_AND_PREVIEW_CERTIFICATE = "SAVE_AND_PREVIEW_CERTIFICATE"
    LIST_ACTIVITY_LOGS = "LIST_ACTIVITY_LOGS"
    RESEND_CERTIFICATE = "RESEND_CERTIFICATE"
    DOWNLOAD_CERTIFICATE = "DOWNLOAD_CERTIFICATE"
    LEARNER_STATISTICS = "LEARNER_STATISTICS"
    ORGANIZATION_STATISTICS = "ORGANIZATION_STATISTICS"
    COURSE_STATISTICS = "COURSE_STATISTICS"


class SopAction(str, Enum):
    """SOP router action types."""
    LIST_ORG_LEARNERS = "LIST_ORG_LEARNERS"
    DOWNLOAD_CERTIFICATE = "DOWNLOAD_CERTIFICATE"
    RESEND_CERTIFICATE = "RESEND_CERTIFICATE"
    LIST_ACTIVITY_LOGS = "LIST_ACTIVITY_LOGS"
    LEARNER_STATISTICS = "LEARNER_STATISTICS"


class GatewayRouter(str, Enum):
    """Gateway function a call is routed to."""
    ADMIN = "admin"
    SOP = "sop"


class UserRole(str, Enum):
    """User roles."""
    ADMIN = "admin"
    SOP = "sop"


class CertificateSendStatus(str, Enum):
    """Certificate sending status."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class ToastLevel(str, Enum):
    """Toast categories shown to the user."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    RETRYABLE = "retryable"
    AUTH = "auth"
    ERROR = "error"


class Theme(str, Enum):
    """Dashboard colour theme."""
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"


class GatewayModel(BaseModel):
    """Base for DTOs read from the gateway; unknown fields are ignored."""
    model_config = ConfigDict(extra='ignore')


# Pagination
class Pagination(GatewayModel):
    """Pagination block returned by list actions."""
    total: int = Field(0, ge=0)
    limit: int = Field(10, ge=0)
    offset: int = Field(0, ge=0)
    has_more: bool = False


class PaginationState(BaseModel):
    """Client-side pagination descriptor."""
    current_page: int = Field(1, ge=1)
    items_per_page: int = Field(10, gt=0)
    total_items: int = Field(0, ge=0)
    has_more: bool = False


# Course Models
class Course(GatewayModel):
    """Course as listed by the admin router."""
    id: str
    course_id: str
    name: str
    certificate_template_html: str = ""
    course_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Organization Models
class Organization(GatewayModel):
    """Organization as listed by the admin router."""
    id: str
    website: str
    name: Optional[str] = None
    sop_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Learner Models
class Learner(GatewayModel):
    """Flat learner record (one learner in one course)."""
    id: str
    name: str
    email: str
    organization_website: str
    course_id: str
    graphy_enrollment_id: Optional[str] = None
    enrolled_at: Optional[datetime] = None
    completion_at: Optional[datetime] = None
    certificate_generated_at: Optional[datetime] = None
    certificate_sent_to_sop_at: Optional[datetime] = None
    certificate_send_status: Optional[CertificateSendStatus] = None
    certificate_file_id: Optional[str] = None
    last_resend_attempt: Optional[datetime] = None


class LearnerInfo(GatewayModel):
    name: str
    email: str
    organization_website: str


class OrganizationInfo(GatewayModel):
    name: Optional[str] = None
    website: str
    sop_email: Optional[str] = None
    created_at: Optional[str] = None


class CourseProgress(GatewayModel):
    """Per-course progress of a grouped learner."""
    course_id: str
    course_name: str
    enrollment_status: str = "pending"
    completion_percentage: float = 0
    completion_date: Optional[str] = None
    certificate_status: str = "N/A"
    created_at: Optional[str] = None


class GroupedLearner(GatewayModel):
    """Learner grouped by email, as returned by LIST_ALL_LEARNERS and LIST_ORG_LEARNERS."""
    learner_info: LearnerInfo
    organization_info: Optional[OrganizationInfo] = None
    courses: List[CourseProgress] = Field(default_factory=list)

    @property
    def email(self) -> str:
        return self.learner_info.email


class LearnerSummary(GatewayModel):
    total_learners: int = 0
    active_learners: int = 0
    total_enrollments: int = 0
    completion_rate: float = 0


# Activity Log Models
class ActivityLog(GatewayModel):
    """Activity log entry."""
    id: str
    activity_type: str
    actor: str
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None
    target: Optional[str] = None
    target_email: Optional[str] = None
    organization_website: Optional[str] = None
    course_id: Optional[str] = None
    details: str = ""
    status: str
    error_message: Optional[str] = None
    metadata: Optional[str] = None
    timestamp: datetime


# Statistics Models
class CourseStatistics(GatewayModel):
    total_courses: int = 0
    total_learners: int = 0
    avg_completion: float = 0
    certificate_templates: int = 0


class OrganizationStatistics(GatewayModel):
    total_organizations: int = 0
    active_organizations: int = 0
    poc_contacts: int = 0
    total_learners: int = 0


class LearnerStatistics(GatewayModel):
    total_learners: int = 0
    active_learners: int = 0
    total_enrollments: int = 0
    completion_rate: float = 0


class SopLearnerStatistics(GatewayModel):
    total_learners: int = 0
    active_learners: int = 0
    active_enrollments: int = 0
    completed_courses: int = 0
    certificates_generated: int = 0
    organization_website: Optional[str] = None


# CSV Models
class CsvConflict(GatewayModel):
    """A CSV row whose email already belongs to another organization."""
    email: str
    csv_organization_website: str
    existing_organization_website: str
    row_number: int
    name: str = ""


class CsvConflictReport(GatewayModel):
    conflicts: List[CsvConflict] = Field(default_factory=list)
    conflict_count: int = 0
    conflict_emails: List[str] = Field(default_factory=list)
    has_conflicts: bool = False


# Certificate Models
class CertificateDownload(GatewayModel):
    download_url: str
    filename: Optional[str] = None
    learner_name: Optional[str] = None
    learner_email: Optional[str] = None
    course_id: Optional[str] = None
    organization_website: Optional[str] = None


class ResendResult(GatewayModel):
    success: bool = True
    message: str = ""
    learner_email: Optional[str] = None
    course_id: Optional[str] = None
    webhook_event_id: Optional[str] = None


# Auth Models
class SopUser(GatewayModel):
    """Login response of CREATE_ADMIN_USER / CREATE_SOP_USER."""
    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    token: Optional[str] = None
    message: Optional[str] = None
    organization: Optional[Organization] = None
    organization_website: Optional[str] = None


class SessionUser(BaseModel):
    """Logged-in user cached on disk between runs."""
    id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    name: str = "User"
    role: UserRole
    api_token: str = Field(..., min_length=1)
    organization_website: Optional[str] = None
    token_expiry: Optional[datetime] = None


class UIPreferences(BaseModel):
    """The only client state persisted between runs."""
    theme: Theme = Theme.SYSTEM
    sidebar_open: bool = True


class Notification(BaseModel):
    """A toast shown to the user."""
    id: str
    level: ToastLevel
    title: str
    message: str
    code: Optional[str] = None
    timestamp: str
    read: bool = False


# List results and store state
class Page(BaseModel):
    """One page of a list action."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: List[Any] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)
    summary: Optional[Dict[str, Any]] = None


class ResourceListState(BaseModel):
    """State of one resource store."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: List[Any] = Field(default_factory=list)
    is_loading: bool = False
    is_mutating: bool = False
    error: Optional[str] = None
    search_term: str = ""
    pagination: PaginationState = Field(default_factory=PaginationState)
    filters: Dict[str, Any] = Field(default_factory=dict)
    summary: Optional[Dict[str, Any]] = None
    last_fetch_params: Optional[Tuple[Any, ...]] = None



# Form input
PASSWORD_RULES = (
    (r'[A-Z]', 'Password must contain at least one uppercase letter'),
    (r'[a-z]', 'Password must contain at least one lowercase letter'),
    (r'[0-9]', 'Password must contain at least one number'),
    (r'[^A-Za-z0-9]', 'Password must contain at least one special character'),
)


def check_password(value: str) -> str:
    if len(value) < 8:
        raise ValueError('Password must be at least 8 characters')
    for pattern, message in PASSWORD_RULES:
        if not re.search(pattern, value):
            raise ValueError(message)
    return value


def with_scheme(value: str) -> str:
    return value if value.lower().startswith(('http://', 'https://')) else f'https://{value}'


def check_url(value: str) -> str:
    """Accept a URL with or without its scheme."""
    if not value:
        raise ValueError('URL is required')
    try:
        parsed = urlparse(with_scheme(value))
        hostname = parsed.hostname
    except ValueError:
        raise ValueError('Please enter a valid URL')
    if not hostname or re.search(r'\s', parsed.netloc):
        raise ValueError('Please enter a valid URL')
    return value


def normalize_website(value: str) -> str:
    """Organization key form of a website: ``https://Example.com/`` -> ``example.com``."""
    parsed = urlparse(with_scheme(check_url(value)))
    return f"{parsed.netloc.lower()}{parsed.path.rstrip('/')}"


class FormInput(BaseModel):
    """Base for data typed into a form before it is sent to the gateway."""
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')


class CourseCreate(FormInput):
    name: str = Field(..., min_length=3, max_length=100)
    course_url: str = Field(..., min_length=1)
    certificate_template_html: str = Field(..., min_length=10)

    @field_validator('course_url')
    @classmethod
    def validate_course_url(cls, v):
        return check_url(v)

    @field_validator('certificate_template_html')
    @classmethod
    def validate_template(cls, v):
        if '<' not in v or '>' not in v:
            raise ValueError('Certificate template must contain valid HTML')
        return v


class CourseUpdate(FormInput):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    certificate_template_html: Optional[str] = Field(None, min_length=10)

    @field_validator('certificate_template_html')
    @classmethod
    def validate_template(cls, v):
        if v is not None and ('<' not in v or '>' not in v):
            raise ValueError('Certificate template must contain valid HTML')
        return v

    @model_validator(mode='after')
    def require_change(self):
        if self.name is None and self.certificate_template_html is None:
            raise ValueError('Nothing to update')
        return self


class OrganizationCreate(FormInput):
    name: str = Field(..., min_length=2, max_length=100)
    website: str = Field(..., min_length=1)
    sop_email: EmailStr
    sop_password: str

    @field_validator('website')
    @classmethod
    def validate_website(cls, v):
        return normalize_website(v)

    @field_validator('sop_password')
    @classmethod
    def validate_password(cls, v):
        return check_password(v)


class OrganizationUpdate(FormInput):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    website: Optional[str] = None
    sop_email: Optional[EmailStr] = None

    @field_validator('website')
    @classmethod
    def validate_website(cls, v):
        return normalize_website(v) if v else None

    @model_validator(mode='after')
    def require_change(self):
        if not (self.name or self.website or self.sop_email):
            raise ValueError('Nothing to update')
        return self


class LearnerUpdate(FormInput):
    """Edit of a learner; ``new_website`` moves them to another organization."""
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    organization_website: str = Field(..., min_length=1)
    new_website: Optional[str] = None

    @field_validator('new_website')
    @classmethod
    def validate_new_website(cls, v):
        return normalize_website(v) if v else None


class PasswordReset(FormInput):
    organization_website: str = Field(..., min_length=1)
    sop_email: EmailStr
    new_password: str

    @field_validator('new_password')
    @classmethod
    def validate_password(cls, v):
        return check_password(v)
