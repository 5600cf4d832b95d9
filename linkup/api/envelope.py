"""
Linkup Backend - Response Envelope
====================================

Every /api response has one of two shapes:

    {"success": true,  "data": ..., "message"?, "timestamp", "requestId"?}
    {"success": false, "error": ..., "code": ..., "details"?, "timestamp", "requestId"?}

`details` on failures is withheld in production unless the caller marks
them client-facing (validation errors, rate-limit metadata).
"""

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from linkup.config import settings

_BASE36 = string.digits + string.ascii_lowercase


def generate_request_id() -> str:
    """`req_<epoch ms>_<9 base36 chars>`"""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds, e.g. 2024-01-15T12:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class Envelope:
    """
    A response waiting to be rendered.

    Handlers return these instead of Response objects so the pipeline can
    still add headers (rate limit, request id) before rendering.
    """

    status_code: int
    body: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    # Each entry is a kwargs dict for Response.set_cookie / delete_cookie
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    deleted_cookies: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.body.get("success"))

    def set_cookie(self, key: str, value: str, **kwargs: Any) -> "Envelope":
        self.cookies.append({"key": key, "value": value, **kwargs})
        return self

    def delete_cookie(self, key: str) -> "Envelope":
        self.deleted_cookies.append(key)
        return self

    def with_request_id(self, request_id: Optional[str]) -> "Envelope":
        if request_id:
            self.body["requestId"] = request_id
        return self

    def to_response(self) -> JSONResponse:
        response = JSONResponse(
            status_code=self.status_code,
            content=jsonable_encoder(self.body, by_alias=True),
            headers=self.headers or None,
        )
        for cookie in self.cookies:
            response.set_cookie(**cookie)
        for key in self.deleted_cookies:
            response.delete_cookie(key, path="/")
        return response


def success(
    data: Any = None,
    message: Optional[str] = None,
    status_code: int = 200,
    request_id: Optional[str] = None,
) -> Envelope:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    body["timestamp"] = utc_timestamp()
    if request_id:
        body["requestId"] = request_id
    return Envelope(status_code=status_code, body=body)


def failure(
    message: str,
    code: str,
    status_code: int = 500,
    details: Any = None,
    request_id: Optional[str] = None,
    expose: Optional[bool] = None,
) -> Envelope:
    """
    Build a failure envelope.

    Args:
        expose: True forces details into the body, False withholds them.
                None defers to settings.expose_error_details.
    """
    body: Dict[str, Any] = {"success": False, "error": message, "code": code}
    show_details = settings.expose_error_details if expose is None else expose
    if details is not None and show_details:
        body["details"] = details
    body["timestamp"] = utc_timestamp()
    if request_id:
        body["requestId"] = request_id
    return Envelope(status_code=status_code, body=body)
