"""
Transport for the serverless function gateway.

Every call is a POST to a router function's executions endpoint. The real
request ``{action, payload, jwt_token}`` is JSON-encoded into the ``body``
field of the HTTP body, and the function's answer comes back JSON-encoded in
the execution's ``responseBody`` field.
"""

import json
import logging
from typing import Any, Callable, Dict, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import Settings
from ..errors import (
    ApiError, AuthenticationError, NetworkError, RequestTimeoutError, error_from_body
)
from ..models import AdminAction, GatewayRouter, SopAction

logger = logging.getLogger(__name__)

Action = Union[AdminAction, SopAction, str]


def encode_request(action: Action, payload: Dict[str, Any], jwt_token: Optional[str] = None) -> Dict[str, str]:
    """Wrap an action request in the gateway's execution envelope."""
    request = {
        'action': getattr(action, 'value', action),
        'payload': payload,
    }
    if jwt_token:
        request['jwt_token'] = jwt_token
    return {'body': json.dumps(request)}


def decode_execution(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Unwrap an execution result into the function's response body.

    Raises a typed error when the execution failed or the body reports
    ``ok: false``. The input is not modified.
    """
    if not isinstance(data, dict):
        raise ApiError('Unexpected response format from server')

    if data.get('status') == 'failed':
        raise ApiError(data.get('errors') or 'Function execution failed', code='EXECUTION_FAILED')

    raw_body = data.get('responseBody')
    if not raw_body:
        raise ApiError('Empty response from server', code='EMPTY_RESPONSE')

    try:
        body = json.loads(raw_body)
    except (TypeError, ValueError) as e:
        raise ApiError(f'Failed to parse response: {e}', code='PARSE_ERROR')

    if isinstance(body, dict) and body.get('ok') is False:
        raise error_from_body(body)

    return body


class GatewayClient:
    """HTTP client for the admin and SOP router functions."""

    def __init__(
        self,
        settings: Settings,
        session_store,
        unauthorized_handler: Optional[Callable[[AuthenticationError], None]] = None
    ):
        """
        Initialize gateway client.

        ``session_store`` supplies the current token through ``token()``.
        """
        self.settings = settings
        self.session_store = session_store
        self.unauthorized_handler = unauthorized_handler
        self.timeout = settings.request_timeout
        self.urls = {
            GatewayRouter.ADMIN: settings.admin_router_url,
            GatewayRouter.SOP: settings.sop_router_url,
        }

        # Retries cover transport failures only; a function that ran is never re-executed
        self.http = requests.Session()
        retry_strategy = Retry(
            total=settings.max_retries,
            connect=settings.max_retries,
            read=0,
            backoff_factor=1,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["POST"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.http.mount("http://", adapter)
        self.http.mount("https://", adapter)

        headers = {
            'Content-Type': 'application/json',
            'X-Appwrite-Project': settings.appwrite_project,
        }
        if settings.appwrite_api_key:
            headers['X-Appwrite-Key'] = settings.appwrite_api_key
        self.http.headers.update(headers)

    def execute(
        self,
        router: GatewayRouter,
        action: Action,
        payload: Optional[Dict[str, Any]] = None,
        authenticated: bool = True
    ) -> Dict[str, Any]:
        """
        Run an action on a router and return its parsed response body.

        Authentication failures of authenticated calls go to
        ``unauthorized_handler``; a rejected login is only raised.
        """
        try:
            return self._execute(router, action, payload or {}, authenticated)
        except AuthenticationError as e:
            if authenticated and self.unauthorized_handler:
                self.unauthorized_handler(e)
            raise

    def _execute(
        self,
        router: GatewayRouter,
        action: Action,
        payload: Dict[str, Any],
        authenticated: bool
    ) -> Dict[str, Any]:
        action_name = getattr(action, 'value', action)
        jwt_token = None
        if authenticated:
            jwt_token = self.session_store.token()
            if not jwt_token:
                raise AuthenticationError('Authentication token not found. Please log in.')

        router = GatewayRouter(router)
        url = self.urls[router]
        envelope = encode_request(action_name, payload, jwt_token)

        try:
            logger.debug(f"Gateway {router.value} {action_name} - payload keys: {sorted(payload)}")
            response = self.http.post(url, json=envelope, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.error(f"Gateway timeout for {action_name}")
            raise RequestTimeoutError()
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Gateway connection error for {action_name}: {e}")
            raise NetworkError('Network connection failed')
        except requests.exceptions.RequestException as e:
            logger.error(f"Gateway request error for {action_name}: {e}")
            raise NetworkError(str(e))

        logger.info(f"Gateway {router.value} {action_name} - Status: {response.status_code}")

        if response.status_code == 401:
            raise AuthenticationError('Authentication token expired or invalid', status_code=401)
        if not 200 <= response.status_code < 300:
            raise ApiError(f'HTTP error! status: {response.status_code}', code='HTTP_ERROR',
                           status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(f'Failed to parse response: {e}', code='PARSE_ERROR')

        return decode_execution(data)
