"""
Error taxonomy for gateway calls and helpers to present errors to users.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .models import ToastLevel

logger = logging.getLogger(__name__)

T = TypeVar('T')
M = TypeVar('M', bound=BaseModel)

CONFLICT_CODES = {'CONFLICT_ERROR', 'COURSE_EXISTS', 'ORGANIZATION_EXISTS', 'LEARNER_EXISTS'}

FRIENDLY_MESSAGES = {
    'COURSE_EXISTS': 'A course with this ID already exists. Please use a different ID.',
    'ORGANIZATION_EXISTS': 'An organization with this name already exists. Please use a different name.',
    'LEARNER_EXISTS': 'A learner with this email already exists for this course.',
    'AUTHENTICATION_ERROR': 'Please log in again to continue.',
    'AUTHORIZATION_ERROR': 'You do not have permission to perform this action.',
    'NOT_FOUND_ERROR': 'The requested resource was not found.',
    'CONFLICT_ERROR': 'The resource already exists or is in use.',
    'NETWORK_ERROR': 'Please check your internet connection and try again.',
    'TIMEOUT_ERROR': 'The request timed out. Please try again.',
}


class AppError(Exception):
    """Base error raised by the dashboard client."""

    default_code = 'UNKNOWN_ERROR'
    default_status = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = self.default_status if status_code is None else status_code
        self.details = details
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'message': self.message,
            'status_code': self.status_code,
            'details': self.details,
            'timestamp': self.timestamp,
        }


class ApiError(AppError):
    """Error reported by the gateway."""

    default_code = 'API_ERROR'

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Any] = None,
        response_body: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, code, status_code, details)
        self.response_body = response_body


class NetworkError(AppError):
    default_code = 'NETWORK_ERROR'
    default_status = 0

    def __init__(self, message: str = 'Network error occurred', **kwargs):
        super().__init__(message, **kwargs)


class RequestTimeoutError(AppError):
    default_code = 'TIMEOUT_ERROR'
    default_status = 408

    def __init__(self, message: str = 'Request timeout', **kwargs):
        super().__init__(message, **kwargs)


class AuthenticationError(ApiError):
    default_code = 'AUTHENTICATION_ERROR'
    default_status = 401

    def __init__(self, message: str = 'Authentication failed', **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(ApiError):
    default_code = 'AUTHORIZATION_ERROR'
    default_status = 403

    def __init__(self, message: str = 'Access denied', **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(ApiError):
    default_code = 'NOT_FOUND_ERROR'
    default_status = 404

    def __init__(self, message: str = 'Resource not found', **kwargs):
        super().__init__(message, **kwargs)


class ConflictError(ApiError):
    default_code = 'CONFLICT_ERROR'
    default_status = 409

    def __init__(self, message: str = 'Resource conflict', **kwargs):
        super().__init__(message, **kwargs)


class InvalidInputError(ApiError):
    default_code = 'VALIDATION_ERROR'
    default_status = 400

    def __init__(self, message: str = 'Validation error', **kwargs):
        super().__init__(message, **kwargs)


def error_from_body(body: Dict[str, Any]) -> ApiError:
    """
    Build a typed error from a failed response body.

    Expects ``{"ok": false, "status": 409, "error": {"code": "...", "message": "..."}}``.
    """
    error = body.get('error') if isinstance(body, dict) else None
    if not isinstance(error, dict):
        error = {'message': str(error)} if error else {}

    message = error.get('message') or 'An error occurred'
    code = error.get('code') or 'API_ERROR'
    status = body.get('status') or 500
    details = error.get('details')

    kwargs = {'code': code, 'status_code': status, 'details': details, 'response_body': body}

    if code == 'AUTHENTICATION_ERROR' or status == 401:
        return AuthenticationError(message, **kwargs)
    if code in ('AUTHORIZATION_ERROR', 'ACCESS_DENIED') or status == 403:
        return AuthorizationError(message, **kwargs)
    if code in CONFLICT_CODES or status == 409:
        return ConflictError(message, **kwargs)
    if code == 'NOT_FOUND_ERROR' or code.endswith('_NOT_FOUND') or status == 404:
        return NotFoundError(message, **kwargs)
    if code in ('VALIDATION_ERROR', 'INVALID_PAYLOAD'):
        return InvalidInputError(message, **kwargs)
    return ApiError(message, **kwargs)


def validate_input(model: Type[M], data: Dict[str, Any]) -> M:
    """
    Parse form input into ``model``.

    Raises InvalidInputError naming every rejected field; ``details`` maps
    field names to their first message.
    """
    try:
        return model(**data)
    except ValidationError as e:
        fields: Dict[str, str] = {}
        for issue in e.errors():
            name = '.'.join(str(part) for part in issue['loc']) or 'form'
            fields.setdefault(name, issue['msg'].replace('Value error, ', '', 1))
        message = '; '.join(f"{name}: {msg}" for name, msg in fields.items())
        logger.debug(f"Rejected {model.__name__} input: {message}")
        raise InvalidInputError(message, details=fields)


def as_app_error(error: BaseException) -> AppError:
    """Normalize any exception into an AppError."""
    if isinstance(error, AppError):
        return error

    message = str(error)
    # Some callers raise with a JSON body as the message
    try:
        parsed = json.loads(message)
    except (TypeError, ValueError):
        parsed = None
    if isinstance(parsed, dict) and 'error' in parsed:
        return error_from_body(parsed)

    return ApiError(message or 'An unexpected error occurred', code='UNKNOWN_ERROR', status_code=500)


def user_message(error: BaseException) -> str:
    """User-facing message for an error."""
    app_error = as_app_error(error)
    if app_error.code == 'VALIDATION_ERROR':
        # The server's message tells the user which field to fix
        return app_error.message or 'Please check your input and try again.'
    return FRIENDLY_MESSAGES.get(app_error.code, app_error.message)


def recovery_hint(error: BaseException) -> str:
    """Suggested next step for the user."""
    if isinstance(error, NetworkError):
        return 'Please check your internet connection and try again'
    if isinstance(error, AuthenticationError):
        return 'Please log in again to continue'
    if isinstance(error, AuthorizationError):
        return 'You do not have permission to perform this action'
    if isinstance(error, NotFoundError):
        return 'The requested resource was not found'
    if isinstance(error, ConflictError):
        return 'The resource already exists or is in use'
    if isinstance(error, InvalidInputError):
        return 'Please check your input and try again'
    return 'Please try again or contact support if the problem persists'


def toast_level(error: BaseException) -> ToastLevel:
    """Toast category for an error."""
    app_error = as_app_error(error)
    if isinstance(app_error, AuthenticationError):
        return ToastLevel.AUTH
    if isinstance(app_error, (NetworkError, RequestTimeoutError)):
        return ToastLevel.RETRYABLE
    if app_error.status_code >= 500 and app_error.code != 'UNKNOWN_ERROR':
        return ToastLevel.RETRYABLE
    if isinstance(app_error, (InvalidInputError, ConflictError, NotFoundError, AuthorizationError)):
        return ToastLevel.WARNING
    return ToastLevel.ERROR


def retry(
    fn: Callable[[], T],
    max_attempts: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """
    Call ``fn`` until it succeeds, waiting ``delay * attempt`` between attempts.

    Authentication, authorization and not-found errors are raised immediately.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return fn()
        except (AuthenticationError, AuthorizationError, NotFoundError):
            raise
        except Exception as e:
            if attempt == max_attempts:
                raise
            logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}; retrying")
            sleep(delay * attempt)
    raise ValueError('max_attempts must be at least 1')
