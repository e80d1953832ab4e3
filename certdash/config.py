"""
Runtime configuration read from the environment.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / '.certdash'


class Settings(BaseModel):
    """Dashboard client settings."""
    appwrite_endpoint: str = 'https://cloud.appwrite.io/v1'
    appwrite_project: str = ''
    appwrite_api_key: Optional[str] = None
    admin_router_function: str = 'admin_router'
    sop_router_function: str = 'sop_router'
    request_timeout: float = Field(30.0, gt=0)
    max_retries: int = Field(3, ge=0)
    session_file: Path = DEFAULT_HOME / 'session.json'
    preferences_file: Path = DEFAULT_HOME / 'preferences.json'
    logout_delay: float = Field(2.0, ge=0)
    search_debounce: float = Field(0.5, ge=0)
    page_size: int = Field(10, gt=0)
    token_ttl_hours: int = Field(24, gt=0)
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables."""
        values = {
            'appwrite_endpoint': os.getenv('APPWRITE_ENDPOINT', 'https://cloud.appwrite.io/v1'),
            'appwrite_project': os.getenv('APPWRITE_PROJECT', ''),
            'appwrite_api_key': os.getenv('APPWRITE_API_KEY') or None,
            'admin_router_function': os.getenv('ADMIN_ROUTER_FUNCTION', 'admin_router'),
            'sop_router_function': os.getenv('SOP_ROUTER_FUNCTION', 'sop_router'),
            'request_timeout': os.getenv('CERTDASH_REQUEST_TIMEOUT', '30'),
            'max_retries': os.getenv('CERTDASH_MAX_RETRIES', '3'),
            'session_file': os.getenv('CERTDASH_SESSION_FILE', str(DEFAULT_HOME / 'session.json')),
            'preferences_file': os.getenv('CERTDASH_PREFERENCES_FILE', str(DEFAULT_HOME / 'preferences.json')),
            'logout_delay': os.getenv('CERTDASH_LOGOUT_DELAY', '2.0'),
            'search_debounce': os.getenv('CERTDASH_SEARCH_DEBOUNCE', '0.5'),
            'page_size': os.getenv('CERTDASH_PAGE_SIZE', '10'),
            'token_ttl_hours': os.getenv('CERTDASH_TOKEN_TTL_HOURS', '24'),
            'log_level': os.getenv('CERTDASH_LOG_LEVEL', 'INFO'),
        }
        settings = cls(**values)
        if not settings.appwrite_project:
            logger.warning("APPWRITE_PROJECT is not set; gateway calls will be rejected")
        return settings

    def router_url(self, function_id: str) -> str:
        """Execution URL of a gateway function."""
        return f"{self.appwrite_endpoint.rstrip('/')}/functions/{function_id}/executions"

    @property
    def admin_router_url(self) -> str:
        return self.router_url(self.admin_router_function)

    @property
    def sop_router_url(self) -> str:
        return self.router_url(self.sop_router_function)


def configure_logging(level: str = 'INFO') -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
