"""
Unit tests for the gateway transport.
"""

import copy
import json
import pytest
import requests
from unittest.mock import Mock, patch

from certdash.errors import (
    ApiError, AuthenticationError, ConflictError, NetworkError, RequestTimeoutError
)
from certdash.models import AdminAction, GatewayRouter, SopAction
from certdash.services.gateway import GatewayClient, decode_execution, encode_request


class TestEnvelope:
    """Test request and response envelopes."""

    def test_encode_request_double_encodes(self):
        """Test the real request is a JSON string inside ``body``."""
        envelope = encode_request(AdminAction.LIST_COURSES, {'limit': 10, 'offset': 0}, 'token-1')

        assert set(envelope) == {'body'}
        inner = json.loads(envelope['body'])
        assert inner == {
            'action': 'LIST_COURSES',
            'payload': {'limit': 10, 'offset': 0},
            'jwt_token': 'token-1'
        }

    def test_encode_request_without_token(self):
        """Test unauthenticated calls carry no token."""
        inner = json.loads(encode_request('CREATE_ADMIN_USER', {'email': 'a@example.com'})['body'])
        assert 'jwt_token' not in inner

    def test_decode_execution(self, make_execution):
        """Test the response body is parsed out of the execution."""
        body = {'ok': True, 'status': 200, 'data': {'courses': []}}
        assert decode_execution(make_execution(body)) == body

    def test_decode_execution_is_idempotent(self, make_execution):
        """Test decoding the same execution twice gives equal results and leaves it untouched."""
        execution = make_execution({
            'ok': True,
            'status': 200,
            'data': {'courses': [{'id': 'c1'}], 'pagination': {'total': 1, 'has_more': False}}
        })
        original = copy.deepcopy(execution)

        first = decode_execution(execution)
        second = decode_execution(execution)

        assert first == second
        assert first is not second
        assert execution == original

    def test_decode_failed_execution(self, make_execution):
        """Test a failed execution raises."""
        with pytest.raises(ApiError) as exc_info:
            decode_execution(make_execution({}, status='failed'))
        assert exc_info.value.code == 'EXECUTION_FAILED'

    def test_decode_empty_body(self):
        """Test a missing response body raises."""
        with pytest.raises(ApiError) as exc_info:
            decode_execution({'status': 'completed', 'responseBody': ''})
        assert exc_info.value.code == 'EMPTY_RESPONSE'

    def test_decode_invalid_json(self):
        """Test an unparseable body raises."""
        with pytest.raises(ApiError) as exc_info:
            decode_execution({'status': 'completed', 'responseBody': '{not json'})
        assert exc_info.value.code == 'PARSE_ERROR'

    def test_decode_not_ok(self, make_execution):
        """Test ``ok: false`` raises the typed error."""
        body = {'ok': False, 'status': 409, 'error': {'code': 'COURSE_EXISTS', 'message': 'exists'}}
        with pytest.raises(ConflictError):
            decode_execution(make_execution(body))

    def test_decode_non_dict(self):
        """Test unexpected shapes are rejected."""
        with pytest.raises(ApiError):
            decode_execution(['not', 'a', 'dict'])


class TestGatewayClient:
    """Test GatewayClient."""

    @pytest.fixture
    def client(self, settings, session_store, admin_user):
        session_store.save(admin_user)
        return GatewayClient(settings, session_store)

    def test_headers(self, client):
        """Test project headers are set on the session."""
        assert client.http.headers['X-Appwrite-Project'] == 'test-project'
        assert client.http.headers['X-Appwrite-Key'] == 'test-api-key'

    def test_execute_posts_to_router(self, client, make_execution, make_http_response):
        """Test an action is posted to the router's executions endpoint."""
        body = {'ok': True, 'status': 200, 'data': {'courses': []}}
        with patch.object(requests.Session, 'post', return_value=make_http_response(make_execution(body))) as post:
            result = client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES, {'limit': 10})

        assert result == body
        url = post.call_args.args[0]
        assert url == 'https://test.appwrite.io/v1/functions/admin_router/executions'
        inner = json.loads(post.call_args.kwargs['json']['body'])
        assert inner['action'] == 'LIST_COURSES'
        assert inner['jwt_token'] == 'admin-token'
        assert post.call_args.kwargs['timeout'] == 30.0

    def test_execute_sop_router(self, client, make_execution, make_http_response):
        """Test SOP actions go to the SOP router."""
        body = {'ok': True, 'status': 200, 'data': {}}
        with patch.object(requests.Session, 'post', return_value=make_http_response(make_execution(body))) as post:
            client.execute('sop', SopAction.LEARNER_STATISTICS)

        assert post.call_args.args[0].endswith('/functions/sop_router/executions')

    def test_missing_token(self, settings, session_store):
        """Test an authenticated call without a session never reaches the network."""
        handler = Mock()
        client = GatewayClient(settings, session_store, unauthorized_handler=handler)

        with patch.object(requests.Session, 'post') as post:
            with pytest.raises(AuthenticationError):
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

        post.assert_not_called()
        handler.assert_called_once()

    def test_unauthenticated_call(self, settings, session_store, make_execution, make_http_response):
        """Test login calls work without a session."""
        client = GatewayClient(settings, session_store)
        body = {'ok': True, 'status': 200, 'data': {'token': 't'}}
        with patch.object(requests.Session, 'post', return_value=make_http_response(make_execution(body))) as post:
            client.execute(GatewayRouter.ADMIN, AdminAction.CREATE_ADMIN_USER,
                           {'email': 'a@example.com'}, authenticated=False)

        inner = json.loads(post.call_args.kwargs['json']['body'])
        assert 'jwt_token' not in inner

    def test_http_401_calls_unauthorized_handler(self, client, make_http_response):
        """Test a 401 reaches the unauthorized handler and is raised."""
        handler = Mock()
        client.unauthorized_handler = handler

        with patch.object(requests.Session, 'post', return_value=make_http_response(None, status_code=401)):
            with pytest.raises(AuthenticationError) as exc_info:
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

        assert exc_info.value.status_code == 401
        handler.assert_called_once_with(exc_info.value)

    def test_envelope_auth_error_calls_unauthorized_handler(self, client, make_execution, make_http_response):
        """Test an authentication error inside the envelope also logs out."""
        handler = Mock()
        client.unauthorized_handler = handler
        body = {'ok': False, 'status': 401, 'error': {'code': 'AUTHENTICATION_ERROR', 'message': 'expired'}}

        with patch.object(requests.Session, 'post', return_value=make_http_response(make_execution(body))):
            with pytest.raises(AuthenticationError):
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

        handler.assert_called_once()

    def test_rejected_login_skips_unauthorized_handler(self, client, make_execution, make_http_response):
        """Test bad credentials on an unauthenticated call are raised without logging out."""
        handler = Mock()
        client.unauthorized_handler = handler
        body = {'ok': False, 'status': 401,
                'error': {'code': 'AUTHENTICATION_ERROR', 'message': 'Invalid credentials'}}

        with patch.object(requests.Session, 'post', return_value=make_http_response(make_execution(body))):
            with pytest.raises(AuthenticationError):
                client.execute(GatewayRouter.ADMIN, AdminAction.CREATE_ADMIN_USER,
                               {'email': 'a@example.com'}, authenticated=False)

        with patch.object(requests.Session, 'post', return_value=make_http_response(None, status_code=401)):
            with pytest.raises(AuthenticationError):
                client.execute(GatewayRouter.ADMIN, AdminAction.CREATE_SOP_USER,
                               {'email': 'a@example.com'}, authenticated=False)

        handler.assert_not_called()

    def test_other_errors_skip_unauthorized_handler(self, client, make_execution, make_http_response):
        """Test non-auth failures do not log out."""
        handler = Mock()
        client.unauthorized_handler = handler
        body = {'ok': False, 'status': 409, 'error': {'code': 'COURSE_EXISTS', 'message': 'exists'}}

        with patch.object(requests.Session, 'post', return_value=make_http_response(make_execution(body))):
            with pytest.raises(ConflictError):
                client.execute(GatewayRouter.ADMIN, AdminAction.CREATE_COURSE)

        handler.assert_not_called()

    def test_http_error_status(self, client, make_http_response):
        """Test non-2xx statuses raise HTTP errors."""
        with patch.object(requests.Session, 'post', return_value=make_http_response(None, status_code=500)):
            with pytest.raises(ApiError) as exc_info:
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

        assert exc_info.value.code == 'HTTP_ERROR'
        assert exc_info.value.status_code == 500

    def test_timeout(self, client):
        """Test timeouts map to RequestTimeoutError."""
        with patch.object(requests.Session, 'post', side_effect=requests.exceptions.Timeout()):
            with pytest.raises(RequestTimeoutError):
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

    def test_connection_error(self, client):
        """Test connection failures map to NetworkError."""
        with patch.object(requests.Session, 'post', side_effect=requests.exceptions.ConnectionError('refused')):
            with pytest.raises(NetworkError) as exc_info:
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

        assert exc_info.value.message == 'Network connection failed'

    def test_invalid_json_response(self, client):
        """Test an HTTP body that is not JSON."""
        response = Mock(status_code=200)
        response.json.side_effect = ValueError('no json')
        with patch.object(requests.Session, 'post', return_value=response):
            with pytest.raises(ApiError) as exc_info:
                client.execute(GatewayRouter.ADMIN, AdminAction.LIST_COURSES)

        assert exc_info.value.code == 'PARSE_ERROR'
