"""
Transport host composition.

One dispatcher is shared by three thin hosts. Which host runs is a pure
function of the configured transport mode.
"""

import asyncio
import ipaddress
import logging
from typing import Optional, Union

from ..config import AppConfig
from ..context import RequestContext
from ..dispatcher import Dispatcher
from ..protocol import JsonRpcResponse
from ..registry import discover
from ..session import DocumentSessionStore

logger = logging.getLogger(__name__)


def resolve_bind_address(host: str) -> str:
    """Map a configured host to the address the listener binds."""
    value = (host or "").strip()
    if value == "localhost":
        return "127.0.0.1"
    if value in ("0.0.0.0", "*"):
        return "0.0.0.0"
    try:
        return str(ipaddress.ip_address(value.strip("[]")))
    except ValueError:
        raise ValueError(f"Invalid bind address: {host!r}")


class RunnableHost:
    """Common host lifecycle: ``start()``/``run()``, ``route()``, ``shutdown()``."""

    transport = "base"

    def __init__(
        self,
        config: AppConfig,
        dispatcher: Dispatcher,
        sessions: Optional[DocumentSessionStore] = None,
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.sessions = sessions

    async def route(
        self,
        frame: Union[str, bytes],
        context: Optional[RequestContext] = None,
    ) -> Optional[JsonRpcResponse]:
        return await self.dispatcher.dispatch(frame, context)

    async def start(self) -> None:
        raise NotImplementedError

    def run(self) -> None:
        """Block until the host stops."""
        asyncio.run(self._run_then_shutdown())

    async def _run_then_shutdown(self) -> None:
        try:
            await self.start()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if self.sessions is not None:
            self.sessions.shutdown()
        logger.info(f"{self.transport} host stopped")


def build_dispatcher(config: AppConfig, sessions: Optional[DocumentSessionStore] = None) -> Dispatcher:
    registry = discover(config, sessions=sessions)
    return Dispatcher(registry, debug=config.server.debug)


def build_host(config: AppConfig, dispatcher: Optional[Dispatcher] = None) -> RunnableHost:
    """Construct the host for ``config.transport.mode``; raises ValueError on a bad bind address."""
    from .http import HttpHost
    from .stdio import StdioHost
    from .websocket import WebSocketHost

    mode = config.transport.mode
    sessions = None
    if dispatcher is None:
        sessions = DocumentSessionStore(config.session) if config.session.enabled else None
        dispatcher = build_dispatcher(config, sessions)

    if mode == "stdio":
        return StdioHost(config, dispatcher, sessions)
    if mode == "http":
        return HttpHost(config, dispatcher, sessions)
    if mode == "ws":
        return WebSocketHost(config, dispatcher, sessions)
    raise ValueError(f"Unknown transport mode: {mode}")
