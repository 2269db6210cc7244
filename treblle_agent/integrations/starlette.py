# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""
Starlette / FastAPI integration.

Captures every matching request/response pair and hands it to the agent.
The response returned to the client is the original one: the body is
buffered for capture and replayed unchanged.

Usage::

    from treblle_agent import Treblle, add_treblle_middleware

    agent = Treblle(sdk_token="...", api_key="...")
    add_treblle_middleware(app, agent)
"""

from collections.abc import AsyncIterator
from typing import Any, Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match
from starlette.types import ASGIApp

from ..agent import RequestCapture, Treblle, activate_capture, reset_capture
from ..config import TreblleSettings
from ..core.binary import parse_request_body, process_response_body
from ..models import RequestDescriptor, ResponseDescriptor, join_header_items
from ..registry import AgentRegistry

logger = structlog.get_logger(__name__)

STREAMING_CONTENT_TYPES = ("text/event-stream",)


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def extract_route_path(request: Request) -> str:
    """Templated path of the matched route, e.g. ``/users/{user_id}``."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    if path:
        return path

    app = request.scope.get("app")
    router = getattr(app, "router", app)
    for candidate in getattr(router, "routes", []):
        try:
            match, _ = candidate.matches(request.scope)
        except Exception:
            continue
        if match == Match.FULL:
            return getattr(candidate, "path", "") or ""
    return ""


async def _replay(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class TreblleMiddleware(BaseHTTPMiddleware):
    """
    Middleware capturing API traffic for the collector.

    - Skips requests the agent does not capture (disabled, filtered paths)
    - Records unhandled exceptions, captures a 500 and re-raises unchanged
    - Does NOT delay the response: delivery runs in the background
    """

    def __init__(
        self,
        app: ASGIApp,
        agent: Optional[Treblle] = None,
        settings: Optional[TreblleSettings] = None,
        registry: Optional[AgentRegistry] = None,
        **options: Any,
    ):
        super().__init__(app)
        if agent is None:
            registry = registry or AgentRegistry()
            if settings is None and not options:
                # Registered without configuration: share the latest agent
                agent = registry.latest()
            if agent is None:
                agent = registry.get(settings, context="starlette", **options)
        self.agent = agent

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        capture = self.agent.begin(request.url.path)
        if capture is None:
            return await call_next(request)

        # Must be read before call_next
        raw_body = await request.body()
        request_body = parse_request_body(raw_body, request.headers.get("content-type"))

        token = activate_capture(capture)
        try:
            response = await call_next(request)
        except Exception as exc:
            capture.record_error(exc)
            self._finish(capture, request, request_body, ResponseDescriptor(code=500, body={}))
            raise
        finally:
            reset_capture(token)

        content_type = response.headers.get("content-type", "")
        if content_type.startswith(STREAMING_CONTENT_TYPES):
            self._finish(capture, request, request_body, self._describe(response, {}))
            return response

        # body_iterator is consumed here and replayed for the client
        chunks: list[bytes] = []
        async for chunk in response.body_iterator:
            chunks.append(chunk if isinstance(chunk, bytes) else chunk.encode("utf-8"))
        response.body_iterator = _replay(chunks)

        response_body = process_response_body(
            b"".join(chunks),
            content_type=content_type,
            content_disposition=response.headers.get("content-disposition"),
            content_length=response.headers.get("content-length"),
        )
        self._finish(capture, request, request_body, self._describe(response, response_body))
        return response

    @staticmethod
    def _describe(response: Response, body: Any) -> ResponseDescriptor:
        return ResponseDescriptor(
            code=response.status_code,
            headers=join_header_items(response.headers.items()),
            body=body,
        )

    def _finish(
        self,
        capture: RequestCapture,
        request: Request,
        request_body: Any,
        response: ResponseDescriptor,
    ) -> None:
        try:
            descriptor = RequestDescriptor(
                timestamp=capture.timestamp,
                method=request.method,
                url=str(request.url),
                ip=get_client_ip(request),
                route_path=extract_route_path(request),
                user_agent=request.headers.get("user-agent", ""),
                headers=join_header_items(request.headers.items()),
                query=join_header_items(request.query_params.multi_items(), lowercase=False),
                body=request_body,
            )
            capture.finish(descriptor, response)
        except Exception as e:
            if self.agent.debug:
                logger.warning("treblle_middleware_capture_failed", error=str(e))


def add_treblle_middleware(
    app: ASGIApp,
    agent: Optional[Treblle] = None,
    *,
    registry: Optional[AgentRegistry] = None,
) -> None:
    """Add the capture middleware to a Starlette/FastAPI app.

    Without an explicit ``agent`` the registry's default (first) agent is used.
    """
    if agent is None:
        if registry is None:
            raise TypeError("add_treblle_middleware() needs an agent or a registry")
        agent = registry.default("starlette")

    if not agent.enabled:
        if agent.debug:
            logger.info("treblle_middleware_disabled")
        return

    app.add_middleware(TreblleMiddleware, agent=agent)
    if agent.debug:
        logger.info("treblle_middleware_enabled")
