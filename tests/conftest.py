"""Test configuration and fixtures"""

import io
import json
import threading
from types import SimpleNamespace

import pytest
import requests

from cloudapi.api.client import CloudClient
from cloudapi.api.token import Credential


API = "https://api.soundcloud.com"
TOKEN_URL = f"{API}/oauth2/token"


def make_response(status=200, json_body=None, headers=None, url="", body=b""):
    """Build a requests.Response without touching the network."""
    content = json.dumps(json_body).encode("utf-8") if json_body is not None else body
    response = requests.Response()
    response.status_code = status
    response._content = content
    response.raw = io.BytesIO(content)
    response.headers.update(headers or {})
    if json_body is not None:
        response.headers.setdefault("Content-Type", "application/json")
    response.url = url
    return response


class FakeTransport:
    """Transport double that records calls and answers through a handler."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def send(self, method, url, headers=None, params=None, data=None,
             attachment=None, content=None, progress=None):
        call = SimpleNamespace(
            method=method,
            url=url,
            headers=dict(headers or {}),
            params=params,
            data=dict(data or []),
            attachment=attachment,
            content=content,
        )
        with self._lock:
            self.calls.append(call)
        return self.handler(call)

    def close(self):
        self.closed = True


@pytest.fixture
def credential():
    """Refreshable credential valid for an hour"""
    return Credential(
        access_token="access-1",
        refresh_token="refresh-1",
        scope=frozenset({"*"}),
        expires_in=3600,
    )


@pytest.fixture
def client(credential):
    """Client for the live environment, logged in with `credential`"""
    with CloudClient(
        "client-id",
        "client-secret",
        redirect_uri="http://localhost:8080/callback",
        token=credential,
    ) as client:
        yield client


@pytest.fixture
def anonymous_client():
    """Client without any credential"""
    with CloudClient("client-id", "client-secret") as client:
        yield client


@pytest.fixture
def token_payload():
    """Factory for token endpoint JSON bodies"""
    def _payload(access="access-2", refresh="refresh-2", expires_in=3600, scope="*"):
        payload = {"access_token": access, "scope": scope}
        if refresh is not None:
            payload["refresh_token"] = refresh
        if expires_in is not None:
            payload["expires_in"] = expires_in
        return payload
    return _payload


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Write a cloudapi.yaml into an isolated working directory"""
    for name in ("CLOUDAPI_CLIENT_ID", "CLOUDAPI_CLIENT_SECRET",
                 "CLOUDAPI_REDIRECT_URI", "CLOUDAPI_ENV"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    def _write(content):
        path = tmp_path / "cloudapi.yaml"
        path.write_text(content, encoding="utf-8")
        return path
    return _write
