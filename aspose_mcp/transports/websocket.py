"""
WebSocket host

Adds a persistent-connection endpoint at /ws to the HTTP app. Identity is
captured once when the socket is accepted; every frame is dispatched as its
own task so a slow call does not hold up the connection.
"""

import asyncio
import dataclasses
import logging
import uuid
from typing import Set, Union

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..context import RequestContext
from .http import HttpHost, request_context

logger = logging.getLogger(__name__)

WS_PATH = "/ws"


class WebSocketHost(HttpHost):
    """WebSocket transport sharing the HTTP app, middleware and health endpoints."""

    transport = "ws"

    def add_routes(self, app: FastAPI) -> None:
        host = self

        @app.get(WS_PATH)
        async def ws_upgrade_required():
            return JSONResponse(
                {"error": "Bad Request", "message": "WebSocket upgrade required"},
                status_code=400,
            )

        @app.websocket(WS_PATH)
        async def ws_endpoint(websocket: WebSocket):
            await host.serve_connection(websocket)

    async def serve_connection(self, websocket: WebSocket) -> None:
        identity = request_context(websocket, self.transport)
        connection_id = uuid.uuid4().hex[:12]
        send_lock = asyncio.Lock()
        pending: Set[asyncio.Task] = set()

        await websocket.accept()
        logger.info(
            f"WebSocket connection {connection_id} opened "
            f"(group={identity.group_id or '-'}, user={identity.user_id or '-'})"
        )

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes")
                if frame is None:
                    continue

                task = asyncio.create_task(self.handle_frame(websocket, frame, identity, send_lock))
                pending.add(task)
                task.add_done_callback(pending.discard)
        except WebSocketDisconnect:
            pass
        finally:
            for task in list(pending):
                task.cancel()
            logger.info(f"WebSocket connection {connection_id} closed")

    async def handle_frame(
        self,
        websocket: WebSocket,
        frame: Union[str, bytes],
        identity: RequestContext,
        send_lock: asyncio.Lock,
    ) -> None:
        context = dataclasses.replace(
            identity,
            request_id=uuid.uuid4().hex[:12],
            tool_name=None,
            session_id=None,
            error=None,
            extras={},
        )
        response = await self.route(frame, context)
        if response is None:
            return
        try:
            async with send_lock:
                await websocket.send_text(response.to_json())
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Dropped response for closed connection: {e}")
