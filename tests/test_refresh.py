"""Tests for automatic token refresh in CloudClient.execute()"""

import time
from unittest.mock import Mock
from urllib.parse import parse_qsl

import pytest
import requests
import responses

from cloudapi.api.client import CloudClient
from cloudapi.api.endpoints import Endpoints
from cloudapi.api.request import Request
from cloudapi.api.token import Credential, TokenListener
from cloudapi.core.exceptions import AuthenticationFailure

from conftest import API, TOKEN_URL, FakeTransport, make_response

ME_URL = f"{API}/me"


def _form(request):
    body = request.body
    if isinstance(body, bytes):
        body = body.decode("utf-8")
    return dict(parse_qsl(body))


def _authorizations():
    return [
        call.request.headers.get("Authorization")
        for call in responses.calls
        if call.request.url.startswith(ME_URL)
    ]


class TestRefreshOn401:
    """Test the 401 -> refresh -> replay path"""

    @responses.activate
    def test_refresh_and_replay(self, client, token_payload):
        """Test a 401 triggers one refresh and one replay with the new token"""
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.GET, ME_URL, json={"id": 1})
        responses.add(responses.POST, TOKEN_URL, json=token_payload(access="access-2"))

        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 200
        assert len(responses.calls) == 3
        assert _form(responses.calls[1].request) == {
            "grant_type": "refresh_token",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "refresh_token": "refresh-1",
        }
        assert _authorizations() == ["OAuth access-1", "OAuth access-2"]
        assert client.token.access_token == "access-2"
        assert client.token.refresh_token == "refresh-2"

    @responses.activate
    def test_at_most_one_refresh(self, client, token_payload):
        """Test a second 401 after the replay is returned without another refresh"""
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.POST, TOKEN_URL, json=token_payload())

        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 401
        token_calls = [c for c in responses.calls if c.request.url == TOKEN_URL]
        assert len(token_calls) == 1
        assert len(responses.calls) == 3

    @responses.activate
    def test_rejected_refresh_returns_original_401(self, client, credential):
        """Test the original 401 surfaces when the token endpoint rejects the refresh"""
        responses.add(responses.GET, ME_URL, status=401, json={"error": "invalid token"})
        responses.add(responses.POST, TOKEN_URL, status=400, json={"error": "invalid_grant"})

        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 401
        assert response.json() == {"error": "invalid token"}
        assert len(responses.calls) == 2
        assert client.token is credential

    @responses.activate
    def test_rejected_refresh_not_retried(self, client):
        """Test a credential whose refresh was rejected is not refreshed again"""
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.POST, TOKEN_URL, status=401, json={"error": "invalid_grant"})

        client.get(Request.to(Endpoints.MY_DETAILS))
        client.get(Request.to(Endpoints.MY_DETAILS))

        token_calls = [c for c in responses.calls if c.request.url == TOKEN_URL]
        assert len(token_calls) == 1

    @responses.activate
    def test_invalid_token_without_valid_refresh(self, client):
        """Test setting an invalid token leads to a 401"""
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.POST, TOKEN_URL, status=401, json={"error": "invalid_client"})

        client.set_token(Credential("invalid", "invalid"))
        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 401

    @responses.activate
    def test_no_refresh_token(self, client):
        """Test a non-refreshable credential gets its 401 without a token call"""
        responses.add(responses.GET, ME_URL, status=401)

        client.set_token(Credential("access-1"))
        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 401
        assert len(responses.calls) == 1

    @responses.activate
    def test_pinned_token_not_refreshed(self, client):
        responses.add(responses.GET, ME_URL, status=401)

        response = client.get(Request.to(Endpoints.MY_DETAILS).using_token(Credential("pinned", "r")))

        assert response.status_code == 401
        assert len(responses.calls) == 1
        assert responses.calls[0].request.headers["Authorization"] == "OAuth pinned"

    @responses.activate
    def test_network_error_during_refresh_propagates(self, client):
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.POST, TOKEN_URL, body=requests.ConnectionError("down"))

        with pytest.raises(requests.ConnectionError):
            client.get(Request.to(Endpoints.MY_DETAILS))

    def test_network_error_during_refresh_closes_401(self, credential):
        """Test the 401 response is released when the refresh fails on the network"""
        unauthorized = make_response(401)

        def handler(call):
            if call.url.endswith(Endpoints.TOKEN):
                raise requests.ConnectionError("down")
            return unauthorized

        client = CloudClient(
            "client-id", "client-secret", token=credential, transport=FakeTransport(handler)
        )

        with pytest.raises(requests.ConnectionError):
            client.get(Request.to(Endpoints.MY_DETAILS))

        assert unauthorized.raw.closed

    @responses.activate
    def test_refresh_keeps_refresh_token_when_not_returned(self, client, token_payload):
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.GET, ME_URL, json={"id": 1})
        responses.add(responses.POST, TOKEN_URL, json=token_payload(refresh=None))

        client.get(Request.to(Endpoints.MY_DETAILS))

        assert client.token.refresh_token == "refresh-1"

    @responses.activate
    def test_listener_notified(self, credential, token_payload):
        responses.add(responses.GET, ME_URL, status=401)
        responses.add(responses.GET, ME_URL, json={"id": 1})
        responses.add(responses.POST, TOKEN_URL, json=token_payload(access="access-2"))
        listener = Mock(spec=TokenListener)

        with CloudClient("client-id", "client-secret", token=credential, token_listener=listener) as client:
            client.get(Request.to(Endpoints.MY_DETAILS))

        listener.on_token_refreshed.assert_called_once()
        assert listener.on_token_refreshed.call_args[0][0].access_token == "access-2"


class TestProactiveRefresh:
    """Test credentials that need a refresh before dispatch"""

    @responses.activate
    def test_invalidated_token_refreshed_before_dispatch(self, client, token_payload):
        responses.add(responses.POST, TOKEN_URL, json=token_payload(access="access-2"))
        responses.add(responses.GET, ME_URL, json={"id": 1})

        assert client.invalidate_token() is None
        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 200
        assert responses.calls[0].request.url == TOKEN_URL
        assert _authorizations() == ["OAuth access-2"]

    @responses.activate
    def test_expired_token_refreshed_before_dispatch(self, client, token_payload):
        responses.add(responses.POST, TOKEN_URL, json=token_payload(access="access-2"))
        responses.add(responses.GET, ME_URL, json={"id": 1})

        client.set_token(Credential("access-1", "refresh-1", issued_at=time.time() - 7200, expires_in=3600))
        client.get(Request.to(Endpoints.MY_DETAILS))

        assert _authorizations() == ["OAuth access-2"]

    @responses.activate
    def test_proactive_refresh_uses_up_the_retry(self, client, token_payload):
        """Test a 401 after an up-front refresh is returned as-is"""
        responses.add(responses.POST, TOKEN_URL, json=token_payload(access="access-2"))
        responses.add(responses.GET, ME_URL, status=401)

        client.invalidate_token()
        response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 401
        assert len(responses.calls) == 2

    @responses.activate
    def test_invalidated_non_expiring_token(self, token_payload):
        """Test invalidating a non-refreshable token makes the next call fail with 401"""
        responses.add(responses.GET, ME_URL, status=401)

        with CloudClient("client-id", "client-secret", token=Credential("access-1")) as client:
            client.invalidate_token()
            response = client.get(Request.to(Endpoints.MY_DETAILS))

        assert response.status_code == 401
        assert responses.calls[0].request.headers["Authorization"] == "OAuth invalidated"
        assert len(responses.calls) == 1


class TestInvalidateToken:
    """Test invalidate_token() and the listener substitute"""

    def test_without_credential(self, anonymous_client):
        assert anonymous_client.invalidate_token() is None
        assert anonymous_client.token is None

    def test_marks_credential(self, client, credential):
        assert client.invalidate_token() is None
        assert client.token.access_token is None
        assert client.token.refresh_token == credential.refresh_token

    def test_listener_substitute(self, credential):
        substitute = Credential("cached")
        listener = Mock(spec=TokenListener)
        listener.on_token_invalid.return_value = substitute

        with CloudClient("id", "secret", token=credential, token_listener=listener) as client:
            assert client.invalidate_token() is substitute
            assert client.token is substitute

        listener.on_token_invalid.assert_called_once_with(credential)


class TestExplicitRefresh:
    """Test refresh_token()"""

    @responses.activate
    def test_refresh_token(self, client, token_payload):
        responses.add(responses.POST, TOKEN_URL, json=token_payload(access="access-2"))

        credential = client.refresh_token()

        assert credential.access_token == "access-2"
        assert client.token is credential

    def test_refresh_without_refresh_token(self, client):
        client.set_token(Credential("access-1"))
        with pytest.raises(AuthenticationFailure):
            client.refresh_token()

    def test_refresh_without_credential(self, anonymous_client):
        with pytest.raises(AuthenticationFailure):
            anonymous_client.refresh_token()

    @responses.activate
    def test_refresh_rejected(self, client):
        responses.add(responses.POST, TOKEN_URL, status=401, json={"error": "invalid_grant"})

        with pytest.raises(AuthenticationFailure) as exc_info:
            client.refresh_token()

        assert exc_info.value.status_code == 401
