"""
Stage chain core.

A stage is an async callable ``stage(context, call_next)``. It either returns
a StageResponse to short-circuit the request, or returns whatever
``call_next()`` returned. The whole chain is mounted on the ASGI app through
one adapter so HTTP requests and WebSocket handshakes pass the same stages in
the same order.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from starlette.responses import Response
from starlette.websockets import WebSocket

from ..context import RequestContext

logger = logging.getLogger(__name__)

HEALTH_PATHS = ("/health", "/ready")

# WebSocket close code for a policy violation.
WS_POLICY_VIOLATION = 1008

CallNext = Callable[[], Awaitable[Optional["StageResponse"]]]


@dataclass
class StageResponse:
    """A short-circuit response produced by a stage."""
    status_code: int
    body: Any = None
    media_type: str = "application/json"
    headers: Dict[str, str] = field(default_factory=dict)
    reason: Optional[str] = None

    def render(self) -> Response:
        if self.media_type == "application/json":
            content = json.dumps(self.body if self.body is not None else {}).encode("utf-8")
        else:
            content = (self.body or "").encode("utf-8")
        return Response(content, status_code=self.status_code, media_type=self.media_type, headers=self.headers)


def unauthorized(message: str) -> StageResponse:
    return StageResponse(401, {"error": "Unauthorized", "message": message}, reason=message)


def forbidden(message: str) -> StageResponse:
    return StageResponse(403, {"error": "Forbidden", "message": message}, reason=message)


class MiddlewareStage:
    """Base class for chain stages."""

    name = "stage"

    async def __call__(self, context: RequestContext, call_next: CallNext) -> Optional[StageResponse]:
        return await call_next()

    async def aclose(self) -> None:
        """Release network clients held by the stage."""
        pass


class StageChainMiddleware:
    """Pure ASGI adapter running the stage list for http and websocket scopes."""

    def __init__(self, app, stages: Sequence[MiddlewareStage] = ()):
        self.app = app
        self.stages = list(stages)

    async def __call__(self, scope, receive, send) -> None:
        if scope["type"] not in ("http", "websocket") or scope.get("path") in HEALTH_PATHS:
            await self.app(scope, receive, send)
            return

        is_websocket = scope["type"] == "websocket"
        context = RequestContext.from_scope(scope, "ws" if is_websocket else "http")
        scope.setdefault("state", {})["request_context"] = context

        async def send_wrapper(message) -> None:
            if message["type"] == "http.response.start":
                context.status_code = message["status"]
            elif message["type"] == "websocket.accept":
                context.status_code = 101
            await send(message)

        async def endpoint() -> Optional[StageResponse]:
            await self.app(scope, receive, send_wrapper)
            return None

        response = await self.run_stages(context, endpoint)
        if response is None:
            return

        context.status_code = response.status_code
        logger.info(
            f"Request rejected: {context.method} {context.path} -> {response.status_code}"
            + (f" ({response.reason})" if response.reason else "")
        )
        if is_websocket:
            await WebSocket(scope, receive, send).close(code=WS_POLICY_VIOLATION)
        else:
            await response.render()(scope, receive, send)

    async def run_stages(self, context: RequestContext, endpoint: CallNext) -> Optional[StageResponse]:
        return await self._invoke(0, context, endpoint)

    async def _invoke(self, index: int, context: RequestContext, endpoint: CallNext) -> Optional[StageResponse]:
        if index >= len(self.stages):
            return await endpoint()

        async def call_next() -> Optional[StageResponse]:
            return await self._invoke(index + 1, context, endpoint)

        return await self.stages[index](context, call_next)
