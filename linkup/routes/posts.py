"""
Linkup Backend - Post Routes
==============================

GET    /api/posts?userId&page&limit        feed, newest first
POST   /api/posts                          create          (auth, "posts" limit)
DELETE /api/posts?postId=                  delete own post (auth, "posts" limit)
GET    /api/posts/{post_id}                single post
POST   /api/posts/{post_id}/like           toggle like     (auth, "likes" limit)
POST   /api/posts/{post_id}/comment        add comment     (auth, "comments" limit)
DELETE /api/posts/{post_id}/comment?commentId=
                                           delete comment  (auth, "comments" limit)
"""

from typing import Optional

from fastapi import APIRouter, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from linkup.api.context import RequestContext
from linkup.api.envelope import Envelope, success
from linkup.api.pipeline import APIHandler, RouteConfig
from linkup.api.validation import COMMENT_SCHEMA, POST_SCHEMA
from linkup.exceptions import ValidationError
from linkup.schemas.common import ErrorResponse
from linkup.services.post_service import post_service

router = APIRouter(prefix="/api/posts", tags=["Posts"])

ERROR_RESPONSES = {
    400: {"description": "Validation failed", "model": ErrorResponse},
    401: {"description": "Not authenticated", "model": ErrorResponse},
    403: {"description": "Not the owner", "model": ErrorResponse},
    404: {"description": "Post or comment not found", "model": ErrorResponse},
    429: {"description": "Rate limit exceeded", "model": ErrorResponse},
}

list_pipeline = APIHandler(RouteConfig(rate_limit="general"))
read_pipeline = APIHandler(RouteConfig(rate_limit="general"))
create_pipeline = APIHandler(RouteConfig(require_auth=True, rate_limit="posts", validation=POST_SCHEMA))
delete_pipeline = APIHandler(RouteConfig(require_auth=True, rate_limit="posts"))
like_pipeline = APIHandler(RouteConfig(require_auth=True, rate_limit="likes"))
comment_pipeline = APIHandler(RouteConfig(require_auth=True, rate_limit="comments", validation=COMMENT_SCHEMA))
uncomment_pipeline = APIHandler(RouteConfig(require_auth=True, rate_limit="comments"))


# ── Handlers ──────────────────────────────────────────────────────────────

async def _list(ctx: RequestContext, session: AsyncSession, user_id, page, limit) -> Envelope:
    posts, pagination = await post_service.list_posts(session, user_id, page, limit)
    return success({"posts": posts, "pagination": pagination})


async def _get(ctx: RequestContext, session: AsyncSession, post_id: str) -> Envelope:
    return success({"post": await post_service.get_post(session, post_id)})


async def _create(ctx: RequestContext, session: AsyncSession) -> Envelope:
    post = await post_service.create_post(
        session,
        ctx.require_user(),
        ctx.data["content"],
        ctx.data.get("images"),
    )
    return success({"post": post}, "Post created successfully", 201)


async def _delete(ctx: RequestContext, session: AsyncSession, post_id: Optional[str]) -> Envelope:
    if not post_id:
        raise ValidationError(errors=["postId is required"], field="postId")
    deleted = await post_service.delete_post(session, ctx.require_user(), post_id)
    return success({"deletedPostId": deleted}, "Post deleted successfully")


async def _toggle_like(ctx: RequestContext, session: AsyncSession, post_id: str) -> Envelope:
    result = await post_service.toggle_like(session, ctx.require_user(), post_id)
    return success(result, "Post liked" if result["liked"] else "Post unliked")


async def _add_comment(ctx: RequestContext, session: AsyncSession, post_id: str) -> Envelope:
    post = await post_service.add_comment(session, ctx.require_user(), post_id, ctx.data["content"])
    return success({"post": post}, "Comment added successfully")


async def _delete_comment(
    ctx: RequestContext, session: AsyncSession, post_id: str, comment_id: Optional[str]
) -> Envelope:
    post = await post_service.delete_comment(session, ctx.require_user(), post_id, comment_id)
    return success({"post": post}, "Comment deleted successfully")


# ── Routes ────────────────────────────────────────────────────────────────

@router.get(
    "",
    responses=ERROR_RESPONSES,
    summary="List posts",
    description=(
        "Newest first. `page` >= 1 and `limit` 1-50 (default 10); out-of-range values "
        "are clamped. Filter to one author with `userId`."
    ),
)
async def list_posts(
    request: Request,
    userId: Optional[str] = Query(default=None, description="Only posts by this user"),
    page: Optional[str] = Query(default=None, description="Page number (1-based)"),
    limit: Optional[str] = Query(default=None, description="Page size (max 50)"),
) -> Response:
    return await list_pipeline.handle(request, _list, user_id=userId, page=page, limit=limit)


@router.post("", status_code=201, responses=ERROR_RESPONSES, summary="Create a post")
async def create_post(request: Request) -> Response:
    return await create_pipeline.handle(request, _create)


@router.delete("", responses=ERROR_RESPONSES, summary="Delete one of your posts")
async def delete_post(
    request: Request,
    postId: Optional[str] = Query(default=None, description="Post to delete"),
) -> Response:
    return await delete_pipeline.handle(request, _delete, post_id=postId)


@router.get("/{post_id}", responses=ERROR_RESPONSES, summary="Get a post")
async def get_post(request: Request, post_id: str) -> Response:
    return await read_pipeline.handle(request, _get, post_id=post_id)


@router.post("/{post_id}/like", responses=ERROR_RESPONSES, summary="Like or unlike a post")
async def toggle_like(request: Request, post_id: str) -> Response:
    return await like_pipeline.handle(request, _toggle_like, post_id=post_id)


@router.post("/{post_id}/comment", responses=ERROR_RESPONSES, summary="Comment on a post")
async def add_comment(request: Request, post_id: str) -> Response:
    return await comment_pipeline.handle(request, _add_comment, post_id=post_id)


@router.delete(
    "/{post_id}/comment",
    responses=ERROR_RESPONSES,
    summary="Delete a comment",
    description="Allowed for the comment's author and for the post's author.",
)
async def delete_comment(
    request: Request,
    post_id: str,
    commentId: Optional[str] = Query(default=None, description="Comment to delete"),
) -> Response:
    return await uncomment_pipeline.handle(request, _delete_comment, post_id=post_id, comment_id=commentId)
