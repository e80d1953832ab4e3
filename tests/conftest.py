"""
Pytest configuration and fixtures.
"""

import pytest
import json
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from certdash.config import Settings
from certdash.models import SessionUser, UserRole
from certdash.services.auth import SessionStore
from certdash.services.notifications import ErrorReporter, NotificationCenter


@pytest.fixture(autouse=True)
def mock_environment_variables(tmp_path):
    """Mock environment variables for all tests."""
    with patch.dict(os.environ, {
        'APPWRITE_ENDPOINT': 'https://test.appwrite.io/v1',
        'APPWRITE_PROJECT': 'test-project',
        'APPWRITE_API_KEY': 'test-api-key',
        'ADMIN_ROUTER_FUNCTION': 'admin_router',
        'SOP_ROUTER_FUNCTION': 'sop_router',
        'CERTDASH_SESSION_FILE': str(tmp_path / 'session.json'),
        'CERTDASH_PREFERENCES_FILE': str(tmp_path / 'preferences.json'),
        'CERTDASH_MAX_RETRIES': '0',
        'CERTDASH_LOGOUT_DELAY': '2.0',
    }):
        yield


@pytest.fixture
def settings():
    """Settings read from the mocked environment."""
    return Settings.from_env()


@pytest.fixture
def session_store(settings):
    """Empty session store in a temp directory."""
    return SessionStore(settings.session_file)


@pytest.fixture
def admin_user():
    """Logged-in admin session."""
    return SessionUser(
        id='admin-123',
        email='admin@example.com',
        name='Admin User',
        role=UserRole.ADMIN,
        api_token='admin-token',
        token_expiry=datetime.now(timezone.utc) + timedelta(hours=1)
    )


@pytest.fixture
def sop_user():
    """Logged-in SOP session scoped to example.com."""
    return SessionUser(
        id='sop-456',
        email='sop@example.com',
        name='SOP User',
        role=UserRole.SOP,
        api_token='sop-token',
        organization_website='example.com',
        token_expiry=datetime.now(timezone.utc) + timedelta(hours=1)
    )


@pytest.fixture
def notification_center():
    return NotificationCenter()


@pytest.fixture
def reporter(notification_center):
    return ErrorReporter(notification_center)


@pytest.fixture
def make_execution():
    """Build a gateway execution result around a response body."""
    def _make(body, status='completed'):
        return {
            '$id': 'execution-1',
            'status': status,
            'responseStatusCode': 200,
            'responseBody': json.dumps(body),
        }
    return _make


@pytest.fixture
def make_http_response():
    """Mock requests.Response carrying a JSON payload."""
    def _make(payload=None, status_code=200):
        response = Mock()
        response.status_code = status_code
        response.json.return_value = payload
        return response
    return _make


@pytest.fixture
def sample_course_data():
    """Sample course data for testing."""
    return {
        'id': 'course-123',
        'course_id': 'test-123',
        'name': 'Test Course',
        'certificate_template_html': '<html><body><h1>Certificate</h1><p>{{learner_name}} completed {{course_name}}</p></body></html>',
        'course_url': 'https://courses.example.com/test-123',
        'created_at': '2024-01-15T10:30:00Z',
        'updated_at': '2024-01-15T10:30:00Z'
    }


@pytest.fixture
def sample_organization_data():
    """Sample organization data for testing."""
    return {
        'id': 'org-123',
        'website': 'example.com',
        'name': 'Example Corporation',
        'sop_email': 'sop@example.com',
        'created_at': '2024-01-15T10:30:00Z',
        'updated_at': '2024-01-15T10:30:00Z'
    }


@pytest.fixture
def sample_grouped_learner_data():
    """Learner grouped by email as returned by LIST_ALL_LEARNERS."""
    return {
        'learner_info': {
            'name': 'John Doe',
            'email': 'john@example.com',
            'organization_website': 'example.com'
        },
        'organization_info': {
            'name': 'Example Corporation',
            'website': 'example.com',
            'sop_email': 'sop@example.com'
        },
        'courses': [{
            'course_id': 'test-123',
            'course_name': 'Test Course',
            'enrollment_status': 'completed',
            'completion_percentage': 100,
            'completion_date': '2024-01-16T10:30:00Z',
            'certificate_status': 'sent'
        }]
    }


@pytest.fixture
def sample_activity_log_data():
    """Sample activity log entry."""
    return {
        'id': 'log-1',
        'activity_type': 'COURSE_CREATED',
        'actor': 'Admin User',
        'actor_email': 'admin@example.com',
        'actor_role': 'admin',
        'target': 'test-123',
        'details': 'Created course Test Course',
        'status': 'success',
        'timestamp': '2024-01-15T10:30:00Z'
    }


@pytest.fixture
def sample_csv_content():
    """Sample CSV content for testing."""
    return """name,email,organization_website
John Doe,john@example.com,example.com
Jane Smith,jane@example.com,example.com
Bob Johnson,bob@example.com,other.com"""


# Pytest configuration
def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection."""
    for item in items:
        # Add unit marker to all tests by default
        if not any(marker in item.keywords for marker in ["unit", "integration"]):
            item.add_marker(pytest.mark.unit)
