"""
HTTP server implementation for BlogDB.

This module exposes the service context over a JSON REST API plus
Server-Sent-Event streams for live notifications:

    /v1/users, /v1/posts, /v1/comments        list (GET), create (POST)
    /v1/<kind>/{id}                           get, update (PATCH), delete
    /v1/users/{id}/posts|comments             relations
    /v1/posts/{id}/author|comments            relations
    /v1/comments/{id}/author|post             relations
    /v1/subscriptions/posts                   SSE post events
    /v1/subscriptions/posts/{id}/comments     SSE comment events of a post

Invariants:
    - Request and response bodies use the wire form (camelCase)
    - Errors are returned as {"error", "error_code", "details"}
    - An SSE subscription lives exactly as long as its HTTP response

How to change safely:
    - Keep handlers thin: decode, call one service operation, encode
    - Add new error classes to ERROR_STATUS
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from functools import partial
from typing import Any, Dict, Iterable

from aiohttp import web
from pydantic import ValidationError

from ..config import HttpConfig
from ..errors import (
    BlogDbError,
    DuplicateEmailError,
    IdConflictError,
    InvalidReferenceError,
    NotFoundError,
)
from ..events import MutationEvent, Subscription, SubscriptionClosed
from ..service import ServiceContext

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[type, int] = {
    NotFoundError: 404,
    DuplicateEmailError: 409,
    IdConflictError: 409,
    InvalidReferenceError: 422,
}


def create_http_app(
    context: ServiceContext,
    config: HttpConfig | None = None,
) -> web.Application:
    """Create an HTTP application for BlogDB.

    Args:
        context: Service context the handlers operate on
        config: HTTP server configuration

    Returns:
        aiohttp Application instance
    """
    config = config or HttpConfig()
    app = web.Application()

    # Users
    app.router.add_get("/v1/users", partial(handle_list_users, context=context))
    app.router.add_post("/v1/users", partial(handle_create_user, context=context))
    app.router.add_get("/v1/users/{id}", partial(handle_get_user, context=context))
    app.router.add_patch("/v1/users/{id}", partial(handle_update_user, context=context))
    app.router.add_delete("/v1/users/{id}", partial(handle_delete_user, context=context))
    app.router.add_get("/v1/users/{id}/posts", partial(handle_user_posts, context=context))
    app.router.add_get("/v1/users/{id}/comments", partial(handle_user_comments, context=context))

    # Posts
    app.router.add_get("/v1/posts", partial(handle_list_posts, context=context))
    app.router.add_post("/v1/posts", partial(handle_create_post, context=context))
    app.router.add_get("/v1/posts/{id}", partial(handle_get_post, context=context))
    app.router.add_patch("/v1/posts/{id}", partial(handle_update_post, context=context))
    app.router.add_delete("/v1/posts/{id}", partial(handle_delete_post, context=context))
    app.router.add_get("/v1/posts/{id}/author", partial(handle_post_author, context=context))
    app.router.add_get("/v1/posts/{id}/comments", partial(handle_post_comments, context=context))

    # Comments
    app.router.add_get("/v1/comments", partial(handle_list_comments, context=context))
    app.router.add_post("/v1/comments", partial(handle_create_comment, context=context))
    app.router.add_get("/v1/comments/{id}", partial(handle_get_comment, context=context))
    app.router.add_patch("/v1/comments/{id}", partial(handle_update_comment, context=context))
    app.router.add_delete("/v1/comments/{id}", partial(handle_delete_comment, context=context))
    app.router.add_get("/v1/comments/{id}/author", partial(handle_comment_author, context=context))
    app.router.add_get("/v1/comments/{id}/post", partial(handle_comment_post, context=context))

    # Subscriptions
    app.router.add_get(
        "/v1/subscriptions/posts",
        partial(handle_subscribe_posts, context=context, config=config),
    )
    app.router.add_get(
        "/v1/subscriptions/posts/{id}/comments",
        partial(handle_subscribe_comments, context=context, config=config),
    )

    app.router.add_get("/v1/health", partial(handle_health, context=context))

    # Answer CORS preflight before routing to a handler
    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        if request.method == "OPTIONS":
            return web.Response()
        return await handler(request)

    app.middlewares.append(cors_middleware)

    # Add CORS headers right before headers are sent, SSE streams included
    async def add_cors_headers(request: web.Request, response: web.StreamResponse) -> None:
        origin = request.headers.get("Origin", "*")
        if "*" in config.cors_origins or origin in config.cors_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, PATCH, DELETE, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"

    app.on_response_prepare.append(add_cors_headers)

    # Add error handler
    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except BlogDbError as e:
            status = ERROR_STATUS.get(type(e), 400)
            logger.warning(
                f"Request rejected: {e.message}",
                extra={"path": request.path, "method": request.method, "error_code": e.code},
            )
            return web.json_response(e.to_dict(), status=status)
        except ValidationError as e:
            logger.warning(
                "Request payload failed validation",
                extra={"path": request.path, "method": request.method},
            )
            return web.json_response(
                {
                    "error": "Invalid payload",
                    "error_code": "VALIDATION_ERROR",
                    "details": {"errors": _validation_errors(e)},
                },
                status=400,
            )
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"error": str(e), "error_code": "INTERNAL"},
                status=500,
            )

    app.middlewares.insert(0, error_middleware)

    return app


def _validation_errors(error: ValidationError) -> list[Dict[str, Any]]:
    return [
        {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
        for err in error.errors()
    ]


async def read_json_body(request: web.Request) -> Dict[str, Any]:
    """Decode a JSON object request body.

    Raises:
        web.HTTPBadRequest: If the body is not a JSON object
    """
    try:
        body = await request.json()
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Invalid JSON body", "error_code": "BAD_REQUEST"}),
            content_type="application/json",
        )

    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "JSON body must be an object", "error_code": "BAD_REQUEST"}),
            content_type="application/json",
        )
    return body


def entity_list(name: str, entities: Iterable[Any]) -> web.Response:
    items = [entity.to_dict() for entity in entities]
    return web.json_response({name: items, "total": len(items)})


def entity_or_404(resource_type: str, resource_id: str, entity: Any) -> web.Response:
    if entity is None:
        raise NotFoundError(resource_type, resource_id)
    return web.json_response(entity.to_dict())


# Users


async def handle_list_users(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle GET /v1/users - List users, optionally filtered by name."""
    return entity_list("users", context.queries.users(request.query.get("query")))


async def handle_create_user(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle POST /v1/users - Create a user."""
    user = context.mutations.create_user(await read_json_body(request))
    return web.json_response(user.to_dict(), status=201)


async def handle_get_user(request: web.Request, context: ServiceContext) -> web.Response:
    return web.json_response(context.queries.user(request.match_info["id"]).to_dict())


async def handle_update_user(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle PATCH /v1/users/{id} - Update provided user fields."""
    body = await read_json_body(request)
    user = context.mutations.update_user(request.match_info["id"], body)
    return web.json_response(user.to_dict())


async def handle_delete_user(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle DELETE /v1/users/{id} - Delete a user and cascade."""
    user = context.mutations.delete_user(request.match_info["id"])
    return web.json_response(user.to_dict())


async def handle_user_posts(request: web.Request, context: ServiceContext) -> web.Response:
    user = context.queries.user(request.match_info["id"])
    return entity_list("posts", context.relations.user_posts(user))


async def handle_user_comments(request: web.Request, context: ServiceContext) -> web.Response:
    user = context.queries.user(request.match_info["id"])
    return entity_list("comments", context.relations.user_comments(user))


# Posts


async def handle_list_posts(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle GET /v1/posts - List posts, optionally filtered by title/body."""
    return entity_list("posts", context.queries.posts(request.query.get("query")))


async def handle_create_post(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle POST /v1/posts - Create a post."""
    post = context.mutations.create_post(await read_json_body(request))
    return web.json_response(post.to_dict(), status=201)


async def handle_get_post(request: web.Request, context: ServiceContext) -> web.Response:
    return web.json_response(context.queries.post(request.match_info["id"]).to_dict())


async def handle_update_post(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle PATCH /v1/posts/{id} - Update provided post fields."""
    body = await read_json_body(request)
    post = context.mutations.update_post(request.match_info["id"], body)
    return web.json_response(post.to_dict())


async def handle_delete_post(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle DELETE /v1/posts/{id} - Delete a post and its comments."""
    post = context.mutations.delete_post(request.match_info["id"])
    return web.json_response(post.to_dict())


async def handle_post_author(request: web.Request, context: ServiceContext) -> web.Response:
    post = context.queries.post(request.match_info["id"])
    return entity_or_404("User", post.author, context.relations.post_author(post))


async def handle_post_comments(request: web.Request, context: ServiceContext) -> web.Response:
    post = context.queries.post(request.match_info["id"])
    return entity_list("comments", context.relations.post_comments(post))


# Comments


async def handle_list_comments(request: web.Request, context: ServiceContext) -> web.Response:
    return entity_list("comments", context.queries.comments())


async def handle_create_comment(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle POST /v1/comments - Comment on a published post."""
    comment = context.mutations.create_comment(await read_json_body(request))
    return web.json_response(comment.to_dict(), status=201)


async def handle_get_comment(request: web.Request, context: ServiceContext) -> web.Response:
    return web.json_response(context.queries.comment(request.match_info["id"]).to_dict())


async def handle_update_comment(request: web.Request, context: ServiceContext) -> web.Response:
    body = await read_json_body(request)
    comment = context.mutations.update_comment(request.match_info["id"], body)
    return web.json_response(comment.to_dict())


async def handle_delete_comment(request: web.Request, context: ServiceContext) -> web.Response:
    comment = context.mutations.delete_comment(request.match_info["id"])
    return web.json_response(comment.to_dict())


async def handle_comment_author(request: web.Request, context: ServiceContext) -> web.Response:
    comment = context.queries.comment(request.match_info["id"])
    return entity_or_404("User", comment.author, context.relations.comment_author(comment))


async def handle_comment_post(request: web.Request, context: ServiceContext) -> web.Response:
    comment = context.queries.comment(request.match_info["id"])
    return entity_or_404("Post", comment.post, context.relations.comment_post(comment))


# Subscriptions


def format_sse(event: MutationEvent) -> bytes:
    """Encode one event as a Server-Sent-Events frame."""
    data = json.dumps(event.to_dict(), separators=(",", ":"))
    return f"event: {event.mutation.value}\ndata: {data}\n\n".encode("utf-8")


async def stream_subscription(
    request: web.Request,
    context: ServiceContext,
    subscription: Subscription,
    keepalive_seconds: float,
) -> web.StreamResponse:
    """Forward a subscription to the client until either side goes away.

    The subscription is always released when this returns.
    """
    response = web.StreamResponse(
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )
    try:
        await response.prepare(request)
        while True:
            try:
                event = await subscription.get(timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                await response.write(b": keepalive\n\n")
                continue
            except SubscriptionClosed:
                break
            await response.write(format_sse(event))
    except ConnectionResetError:
        logger.debug(
            "Subscriber disconnected",
            extra={"subscription_id": subscription.id, "topic": subscription.topic.key},
        )
    finally:
        context.subscriptions.unsubscribe(subscription)

    return response


async def handle_subscribe_posts(
    request: web.Request, context: ServiceContext, config: HttpConfig
) -> web.StreamResponse:
    """Handle GET /v1/subscriptions/posts - Stream post events."""
    subscription = context.subscriptions.post_events()
    return await stream_subscription(request, context, subscription, config.sse_keepalive_seconds)


async def handle_subscribe_comments(
    request: web.Request, context: ServiceContext, config: HttpConfig
) -> web.StreamResponse:
    """Handle GET /v1/subscriptions/posts/{id}/comments - Stream comment events."""
    subscription = context.subscriptions.comment_events(request.match_info["id"])
    return await stream_subscription(request, context, subscription, config.sse_keepalive_seconds)


async def handle_health(request: web.Request, context: ServiceContext) -> web.Response:
    """Handle GET /v1/health - Health check."""
    result = context.health()
    status = 200 if result.get("healthy") else 503
    return web.json_response(result, status=status)


async def run_http_server(
    context: ServiceContext,
    config: HttpConfig | None = None,
) -> None:
    """Run the HTTP server until cancelled.

    Args:
        context: Service context
        config: HTTP server configuration
    """
    config = config or HttpConfig()
    app = create_http_app(context, config)

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, config.host, config.port)
    await site.start()

    logger.info(f"HTTP server running on http://{config.host}:{config.port}")

    try:
        await asyncio.Event().wait()
    finally:
        # Ends open SSE streams so cleanup doesn't wait on them
        context.close()
        await runner.cleanup()
