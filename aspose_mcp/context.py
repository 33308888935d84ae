"""Per-request context threaded through middleware stages and tool calls."""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, Optional


@dataclass
class RequestContext:
    """Identity and bookkeeping for one logical request or connection."""

    transport: str
    path: str = ""
    method: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    client_host: Optional[str] = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    group_id: Optional[str] = None
    user_id: Optional[str] = None
    tool_name: Optional[str] = None
    session_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    extras: Dict[str, Any] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        return value if value else None

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any], transport: str) -> "RequestContext":
        """Build a context from an ASGI http/websocket scope."""
        headers = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in scope.get("headers", [])
        }
        client = scope.get("client")
        return cls(
            transport=transport,
            path=scope.get("path", ""),
            method=scope.get("method", "GET"),
            headers=headers,
            client_host=client[0] if client else None,
        )


_current_request: ContextVar[Optional[RequestContext]] = ContextVar(
    "aspose_mcp_request", default=None
)


def get_request_context() -> Optional[RequestContext]:
    """Return the context of the request being served, if any."""
    return _current_request.get()


@contextmanager
def use_request_context(context: Optional[RequestContext]) -> Iterator[None]:
    token = _current_request.set(context)
    try:
        yield
    finally:
        _current_request.reset(token)
