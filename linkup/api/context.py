"""
Linkup Backend - Request Context
==================================

What:  Who is calling, and from where.
How:   The session token comes from `Authorization: Bearer <token>`, falling
       back to the auth cookie. The token is verified by the credential
       service; anything wrong with it simply means "anonymous".
       The client identifier (used as the rate-limit key) is the socket
       peer, or the proxy headers when the deployment trusts them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from starlette.requests import Request

from linkup.config import settings
from linkup.exceptions import UnauthorizedError
from linkup.services.credentials import CredentialService, credential_service


def extract_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    cookie = request.cookies.get(settings.auth_cookie_name)
    return cookie or None


def resolve_user_id(
    request: Request,
    credentials: Optional[CredentialService] = None,
) -> Optional[str]:
    """User id of a valid session, else None. Never raises."""
    token = extract_token(request)
    if not token:
        return None
    return (credentials or credential_service).verify_token(token)


def client_identifier(request: Request, trust_proxy: Optional[bool] = None) -> str:
    """
    Rate-limit key for the caller.

    Proxy headers are only consulted when trusted (TRUST_PROXY_HEADERS);
    otherwise a client could rotate them to dodge its limit.
    """
    if trust_proxy is None:
        trust_proxy = settings.trust_proxy_headers

    if trust_proxy:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first

        real_ip = request.headers.get("X-Real-IP", "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


@dataclass
class RequestContext:
    """Per-request state handed to business handlers. Discarded after the response."""

    request_id: str
    request: Request
    client_ip: str
    user_id: Optional[str] = None
    # Validated, sanitised JSON body (empty for bodiless methods)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def require_user(self) -> str:
        if self.user_id is None:
            raise UnauthorizedError()
        return self.user_id
