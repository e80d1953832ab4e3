"""
Session cache and login/logout flow.
"""

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import jwt
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError

from ..errors import AuthenticationError, InvalidInputError
from ..models import SessionUser, SopUser, UserRole

logger = logging.getLogger(__name__)

Scheduler = Callable[[float, Callable[[], None]], None]


def timer_scheduler(delay: float, fn: Callable[[], None]) -> None:
    """Run ``fn`` after ``delay`` seconds on a daemon timer thread."""
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()


def token_expiry(token: str, ttl_hours: int = 24) -> datetime:
    """
    Expiry of an API token.

    Reads the ``exp`` claim when the token is a JWT. The signature is not
    checked here; the gateway validates tokens on every call.
    """
    try:
        claims = jwt.decode(token, options={'verify_signature': False})
        exp = claims.get('exp')
        if exp:
            return datetime.fromtimestamp(int(exp), tz=timezone.utc)
    except (InvalidTokenError, ValueError, TypeError):
        logger.debug("Token is not a decodable JWT, using default lifetime")
    return datetime.now(timezone.utc) + timedelta(hours=ttl_hours)


class SessionStore:
    """Logged-in user persisted as JSON on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._user: Optional[SessionUser] = None
        self._lock = threading.Lock()

    def load(self) -> Optional[SessionUser]:
        """Read the cached user, discarding unreadable data."""
        with self._lock:
            if not self.path.exists():
                self._user = None
                return None
            try:
                data = json.loads(self.path.read_text(encoding='utf-8'))
                self._user = SessionUser(**data)
            except (ValueError, TypeError, ValidationError) as e:
                logger.error(f"Failed to parse session data from {self.path}: {e}")
                self._user = None
                self.path.unlink(missing_ok=True)
            return self._user

    def save(self, user: SessionUser) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(user.model_dump_json(), encoding='utf-8')
            self._user = user

    def clear(self) -> None:
        with self._lock:
            self._user = None
            self.path.unlink(missing_ok=True)

    @property
    def user(self) -> Optional[SessionUser]:
        if self._user is None and self.path.exists():
            return self.load()
        return self._user

    def token(self) -> Optional[str]:
        user = self.user
        return user.api_token if user else None


class AuthService:
    """Login against the admin router and keep the session cache current."""

    def __init__(
        self,
        admin_api,
        session: SessionStore,
        logout_delay: float = 2.0,
        token_ttl_hours: int = 24,
        scheduler: Scheduler = timer_scheduler,
        redirect: Optional[Callable[[], None]] = None
    ):
        self.admin_api = admin_api
        self.session = session
        self.logout_delay = logout_delay
        self.token_ttl_hours = token_ttl_hours
        self.scheduler = scheduler
        self.redirect = redirect
        self.error: Optional[str] = None
        self._logout_pending = False
        self._session_id = 0
        self._lock = threading.Lock()

    @property
    def user(self) -> Optional[SessionUser]:
        return self.session.user

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and not self.is_token_expired()

    def login(self, email: str, password: str, role: UserRole = UserRole.ADMIN) -> SessionUser:
        """Authenticate and cache the user."""
        self.error = None
        role = UserRole(role)
        try:
            if role == UserRole.ADMIN:
                result = self.admin_api.create_admin_user(email, password)
            elif role == UserRole.SOP:
                result = self.admin_api.create_sop_user(email, password)
            else:
                raise InvalidInputError('Invalid role')

            user = self._session_user(result, email, role)
            with self._lock:
                self._session_id += 1
            self.session.save(user)
            logger.info(f"Logged in {user.email} as {user.role.value}")
            return user
        except Exception as e:
            self.error = str(e) or 'Login failed'
            logger.error(f"Login failed for {email}: {self.error}")
            raise

    def _session_user(self, result: SopUser, email: str, role: UserRole) -> SessionUser:
        if not result.token:
            raise AuthenticationError('Login response did not include a token')
        organization_website = result.organization_website
        if result.organization:
            organization_website = result.organization.website
        return SessionUser(
            id=result.user_id or email,
            email=result.email or email,
            name=result.name or 'User',
            role=role,
            api_token=result.token,
            organization_website=organization_website,
            token_expiry=token_expiry(result.token, self.token_ttl_hours)
        )

    def logout(self) -> None:
        """Clear the cached session."""
        self.session.clear()
        self.error = None
        logger.info("Logged out")

    def check_auth(self) -> Optional[SessionUser]:
        """Restore the cached user, logging out an expired one."""
        user = self.session.load()
        if user and self.is_token_expired():
            logger.info(f"Session for {user.email} expired")
            self.logout()
            return None
        return user

    def is_token_expired(self) -> bool:
        user = self.session.user
        if not user or not user.token_expiry:
            return False
        expiry = user.token_expiry
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expiry

    def schedule_logout(self, error: Optional[AuthenticationError] = None) -> None:
        """
        Log out and redirect after ``logout_delay`` seconds.

        A login that succeeds in the meantime cancels the pending logout.
        """
        with self._lock:
            if self._logout_pending:
                return
            self._logout_pending = True
            session_id = self._session_id

        logger.warning(f"Authentication failed ({error}); logging out in {self.logout_delay}s")
        self.scheduler(self.logout_delay, lambda: self._expire_session(session_id))

    def _expire_session(self, session_id: int) -> None:
        with self._lock:
            self._logout_pending = False
            if session_id != self._session_id:
                logger.info("Session replaced by a new login; skipping scheduled logout")
                return
        self.logout()
        if self.redirect:
            self.redirect()
