"""
Linkup Backend - Request Context Unit Tests
=============================================

What we test:
    ✅ bearer header wins over the cookie
    ✅ invalid / expired / absent tokens resolve to None without raising
    ✅ client identifier precedence, proxy headers only when trusted
    ✅ require_user()
"""

from datetime import timedelta

import pytest
from starlette.requests import Request

from linkup.api.context import (
    RequestContext,
    client_identifier,
    extract_token,
    resolve_user_id,
)
from linkup.config import settings
from linkup.exceptions import UnauthorizedError
from linkup.services.credentials import CredentialService


def make_request(headers=None, client=("10.0.0.1", 5555)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/auth/me",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.fixture
def credentials():
    return CredentialService(secret="context-test-secret", rounds=4)


class TestExtractToken:
    def test_bearer_header(self):
        assert extract_token(make_request({"Authorization": "Bearer abc.def"})) == "abc.def"

    def test_bearer_scheme_is_case_insensitive(self):
        assert extract_token(make_request({"Authorization": "bearer abc"})) == "abc"

    def test_cookie_fallback(self):
        assert extract_token(make_request({"Cookie": "token=from-cookie"})) == "from-cookie"

    def test_header_wins_over_cookie(self):
        request = make_request({"Authorization": "Bearer header", "Cookie": "token=cookie"})
        assert extract_token(request) == "header"

    def test_non_bearer_scheme_falls_back_to_cookie(self):
        request = make_request({"Authorization": "Basic dXNlcjpwdw==", "Cookie": "token=c"})
        assert extract_token(request) == "c"

    def test_nothing(self):
        assert extract_token(make_request()) is None


class TestResolveUserId:
    def test_valid_token(self, credentials):
        token = credentials.create_token("user-1")
        request = make_request({"Authorization": f"Bearer {token}"})
        assert resolve_user_id(request, credentials) == "user-1"

    def test_garbage_token(self, credentials):
        request = make_request({"Authorization": "Bearer not-a-jwt"})
        assert resolve_user_id(request, credentials) is None

    def test_wrong_secret(self, credentials):
        other = CredentialService(secret="someone-else", rounds=4)
        request = make_request({"Authorization": f"Bearer {other.create_token('u')}"})
        assert resolve_user_id(request, credentials) is None

    def test_expired_token(self):
        expired = CredentialService(secret="s", token_ttl=timedelta(seconds=-10), rounds=4)
        request = make_request({"Authorization": f"Bearer {expired.create_token('u')}"})
        assert resolve_user_id(request, expired) is None

    def test_no_token(self, credentials):
        assert resolve_user_id(make_request(), credentials) is None


class TestClientIdentifier:
    def test_forwarded_for_first_entry(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2", "X-Real-IP": "1.1.1.1"})
        assert client_identifier(request, trust_proxy=True) == "203.0.113.7"

    def test_real_ip(self):
        request = make_request({"X-Real-IP": "198.51.100.4"})
        assert client_identifier(request, trust_proxy=True) == "198.51.100.4"

    def test_proxy_headers_ignored_by_default(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7", "X-Real-IP": "198.51.100.4"})
        assert client_identifier(request) == "10.0.0.1"

    def test_trust_follows_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "trust_proxy_headers", True)
        assert client_identifier(make_request({"X-Forwarded-For": "203.0.113.7"})) == "203.0.113.7"

    def test_socket_peer(self):
        assert client_identifier(make_request()) == "10.0.0.1"

    def test_anonymous(self):
        assert client_identifier(make_request(client=None)) == "anonymous"


class TestRequestContext:
    def test_require_user(self):
        ctx = RequestContext(request_id="r", request=make_request(), client_ip="ip", user_id="u1")
        assert ctx.require_user() == "u1"
        assert ctx.is_authenticated

    def test_require_user_anonymous(self):
        ctx = RequestContext(request_id="r", request=make_request(), client_ip="ip")
        with pytest.raises(UnauthorizedError):
            ctx.require_user()
