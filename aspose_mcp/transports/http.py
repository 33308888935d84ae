"""
HTTP host

FastAPI app exposing the JSON-RPC envelope at POST /mcp, with stateless
health endpoints that skip the middleware chain.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response

from ..context import RequestContext
from ..dispatcher import SERVER_VERSION
from ..middleware import StageChainMiddleware, build_middleware_chain
from .host import RunnableHost, resolve_bind_address

logger = logging.getLogger(__name__)

MCP_PATH = "/mcp"


def request_context(request, transport: str) -> RequestContext:
    """The context the middleware chain attached, or a fresh one."""
    context = getattr(request.state, "request_context", None)
    if context is None:
        context = RequestContext.from_scope(request.scope, transport)
    return context


class HttpHost(RunnableHost):
    """Streamable HTTP transport served by uvicorn."""

    transport = "http"

    def __init__(self, config, dispatcher, sessions=None):
        super().__init__(config, dispatcher, sessions)
        self.bind_address = resolve_bind_address(config.transport.host)
        self.port = config.transport.port
        self.stages = build_middleware_chain(config)
        self.app = self.create_app()

    def create_app(self) -> FastAPI:
        host = self

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            logger.info(
                f"MCP Server starting with {len(host.dispatcher.registry)} tools "
                f"on {host.bind_address}:{host.port} ({host.transport})"
            )
            yield
            for stage in host.stages:
                await stage.aclose()
            logger.info("MCP Server shutting down")

        app = FastAPI(
            title="Aspose MCP Server",
            description="Model Context Protocol server for document tools",
            version=SERVER_VERSION,
            lifespan=lifespan,
        )
        if self.stages:
            app.add_middleware(StageChainMiddleware, stages=self.stages)

        # ============== API Endpoints ==============

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        @app.get("/ready")
        async def ready():
            return {"status": "ready"}

        @app.post(MCP_PATH)
        async def mcp_endpoint(request: Request):
            body = await request.body()
            response = await host.route(body, request_context(request, host.transport))
            if response is None:
                return Response(status_code=202)
            return Response(content=response.to_json(), media_type="application/json")

        self.add_routes(app)
        return app

    def add_routes(self, app: FastAPI) -> None:
        """Hook for hosts that extend the base app."""
        pass

    def uvicorn_config(self) -> uvicorn.Config:
        return uvicorn.Config(self.app, host=self.bind_address, port=self.port, log_level="info")

    async def start(self) -> None:
        await uvicorn.Server(self.uvicorn_config()).serve()
