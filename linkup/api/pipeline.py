"""
Linkup Backend - API Handler Pipeline
=======================================

What:  The one code path every /api route goes through.
How:   `APIHandler(config).handle(request, handler, **params)` runs, in order:

       1. request id      reuse the middleware's id, else generate one
       2. rate limit      per route class, keyed by client identifier
       3. auth            resolve the session; reject if required and absent
       4. validation      JSON object body + declarative schema (POST/PUT/PATCH)
       5. persistence     idempotent Database.acquire()
       6. business logic  `await handler(ctx, session, **params)` inside a
                          unit of work (commit on success, rollback on error)

       Whatever happens, the caller gets an enveloped JSONResponse. Business
       code raises LinkupError subclasses; this module is the single place
       that maps exceptions to codes and statuses.

Who:   Route functions in `linkup.routes`, e.g.

           create_pipeline = APIHandler(
               RouteConfig(require_auth=True, rate_limit="posts", validation=POST_SCHEMA)
           )

           @router.post("")
           async def create_post(request: Request):
               return await create_pipeline.handle(request, _create)
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from starlette.requests import Request
from starlette.responses import Response

from linkup.api.context import RequestContext, client_identifier, resolve_user_id
from linkup.api.envelope import Envelope, failure, generate_request_id
from linkup.api.validation import Schema, validate
from linkup.exceptions import (
    InvalidPayloadError,
    LinkupError,
    RateLimitExceededError,
    UnauthorizedError,
    ValidationError,
)
from linkup.middleware.request_id import request_id_var
from linkup.services.rate_limiter import RateLimitDecision

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Envelope]]

BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass(frozen=True)
class RouteConfig:
    require_auth: bool = False
    # Route class name registered in the RateLimitRegistry ("auth", "posts", ...)
    rate_limit: Optional[str] = None
    validation: Optional[Schema] = None


class APIHandler:
    def __init__(self, config: Optional[RouteConfig] = None):
        self.config = config or RouteConfig()

    async def handle(self, request: Request, handler: Handler, **params: Any) -> Response:
        start_time = time.perf_counter()
        request_id = (
            getattr(request.state, "request_id", None)
            or request_id_var.get("")
            or generate_request_id()
        )
        client_ip = client_identifier(request)
        decision: Optional[RateLimitDecision] = None

        try:
            # ── 1. Rate limit ─────────────────────────────────────────────
            if self.config.rate_limit:
                decision = request.app.state.rate_limits.admit(self.config.rate_limit, client_ip)
                if not decision.allowed:
                    raise RateLimitExceededError(
                        limit=decision.limit,
                        window=decision.window_ms,
                        remaining=decision.remaining,
                        reset_time=decision.reset_at_ms,
                        retry_after=decision.retry_after_seconds,
                    )

            # ── 2. Auth ───────────────────────────────────────────────────
            user_id = resolve_user_id(request)
            if self.config.require_auth and user_id is None:
                raise UnauthorizedError()

            # ── 3. Validation ─────────────────────────────────────────────
            data: Dict[str, Any] = {}
            if self.config.validation is not None and request.method in BODY_METHODS:
                data = await read_json_object(request)
                result = validate(data, self.config.validation)
                if not result.valid:
                    raise ValidationError(errors=result.errors)

            ctx = RequestContext(
                request_id=request_id,
                request=request,
                client_ip=client_ip,
                user_id=user_id,
                data=data,
            )

            # ── 4-5. Persistence + business logic ─────────────────────────
            database = request.app.state.database
            await database.acquire()
            async with database.session() as session:
                envelope = await handler(ctx, session, **params)

        except LinkupError as e:
            envelope = self._from_linkup_error(e, request)
        except IntegrityError as e:
            logger.warning("Integrity violation on %s %s: %s", request.method, request.url.path, e.orig)
            envelope = failure(
                "Duplicate entry",
                "DUPLICATE_ERROR",
                409,
                details=str(e.orig),
            )
        except Exception as e:
            logger.exception(
                "Unhandled error on %s %s [%s]", request.method, request.url.path, request_id
            )
            envelope = failure(
                "Internal server error",
                "INTERNAL_ERROR",
                500,
                details=f"{type(e).__name__}: {e}",
            )

        envelope.with_request_id(request_id)
        if decision is not None:
            self._apply_rate_limit_headers(envelope, decision)

        logger.debug(
            "%s %s -> %d in %.1fms",
            request.method,
            request.url.path,
            envelope.status_code,
            (time.perf_counter() - start_time) * 1000,
        )
        return envelope.to_response()

    # ── Helpers ───────────────────────────────────────────────────────────
    @staticmethod
    def _from_linkup_error(error: LinkupError, request: Request) -> Envelope:
        if error.status_code >= 500:
            logger.error(
                "%s on %s %s: %s %s",
                error.code,
                request.method,
                request.url.path,
                error.message,
                error.context,
            )
        else:
            logger.info("%s: %s %s", error.code, error.message, error.context or "")
        return failure(
            error.message,
            error.code,
            error.status_code,
            details=error.details,
            expose=True if error.expose_details else None,
        )

    @staticmethod
    def _apply_rate_limit_headers(envelope: Envelope, decision: RateLimitDecision) -> None:
        envelope.headers["X-RateLimit-Limit"] = str(decision.limit)
        envelope.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        # Epoch seconds, rounded up
        envelope.headers["X-RateLimit-Reset"] = str(-(-decision.reset_at_ms // 1000))
        if not decision.allowed:
            envelope.headers["Retry-After"] = str(decision.retry_after_seconds)


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Parse the body as a JSON object or raise InvalidPayloadError."""
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidPayloadError() from None
    if not isinstance(payload, dict):
        raise InvalidPayloadError()
    return payload
