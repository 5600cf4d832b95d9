"""
Linkup Backend - Request ID Middleware
========================================

What:  Assigns a correlation id to each request and echoes it back.
How:   Reuses a well-formed client X-Request-ID, otherwise generates
       `req_<epoch ms>_<random>`. The id lives in a ContextVar (for log
       records) and on `request.state` (for the API pipeline), and is
       returned in the X-Request-ID response header.
When:  Outermost application middleware, so every log line and every
       envelope of the request carries the same id.
"""

import re
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from linkup.api.envelope import generate_request_id

# Coroutine-local: concurrent requests on one thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._\-]{1,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        incoming = request.headers.get("X-Request-ID", "")
        rid = incoming if _CLIENT_ID_PATTERN.match(incoming) else generate_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response
