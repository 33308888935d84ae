"""Transport hosts: stdio, streamable HTTP and WebSocket."""

from .host import RunnableHost, build_dispatcher, build_host, resolve_bind_address
from .http import HttpHost
from .stdio import StdioHost
from .websocket import WebSocketHost

__all__ = [
    "HttpHost",
    "RunnableHost",
    "StdioHost",
    "WebSocketHost",
    "build_dispatcher",
    "build_host",
    "resolve_bind_address",
]
