"""
Protocol dispatcher.

Turns one JSON-RPC frame into at most one response. Shared by every
transport host; holds no per-connection state and is read-only after
construction.
"""

import json
import logging
from typing import Any, Dict, Optional, Union

from .base import ParseError, ToolNotFoundError, ValidationError
from .context import RequestContext, get_request_context, use_request_context
from .errors import classify, invalid_params, method_not_found, parse_error
from .protocol import (
    PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    JsonRpcRequest,
    JsonRpcResponse,
    build_request,
    decode_frame,
    is_notification,
    readable_id,
)
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "aspose-mcp-server"
SERVER_VERSION = "1.0.0"


def negotiate_protocol_version(requested: Any) -> str:
    """Echo a supported client version, otherwise announce the latest."""
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return PROTOCOL_VERSION


def render_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, indent=2, default=str)


class Dispatcher:
    """Routes decoded requests to the registry and shapes every outcome."""

    def __init__(self, registry: ToolRegistry, debug: bool = False):
        self.registry = registry
        self.debug = debug

    # ============== Entry points ==============

    async def dispatch(
        self,
        raw_frame: Union[str, bytes],
        context: Optional[RequestContext] = None,
    ) -> Optional[JsonRpcResponse]:
        """Handle one raw frame. Never raises."""
        try:
            message = decode_frame(raw_frame)
        except ParseError as e:
            logger.warning(f"Rejected malformed frame: {e.message}")
            return JsonRpcResponse.failure(None, parse_error(e.message))

        return await self.dispatch_message(message, context)

    async def dispatch_message(
        self,
        message: Dict[str, Any],
        context: Optional[RequestContext] = None,
    ) -> Optional[JsonRpcResponse]:
        """Handle one decoded JSON object. Never raises."""
        try:
            request = build_request(message)
        except ParseError as e:
            if is_notification(message.get("id"), message.get("method")):
                logger.warning(f"Dropped malformed notification: {e.message}")
                return None
            return JsonRpcResponse.failure(readable_id(message), parse_error(e.message))

        if request.is_notification:
            logger.debug(f"Notification received: {request.method}")
            return None

        try:
            result = await self._route(request, context)
        except Exception as e:
            # Routing faults only; tool faults are shaped inside _call_tool.
            logger.exception(f"Unhandled error while handling {request.method}")
            return JsonRpcResponse.failure(request.id, classify(e, self.debug))

        if isinstance(result, JsonRpcResponse):
            return result
        return JsonRpcResponse.success(request.id, result)

    # ============== Routing ==============

    async def _route(
        self, request: JsonRpcRequest, context: Optional[RequestContext]
    ) -> Union[Dict[str, Any], JsonRpcResponse]:
        method = request.method

        if method == "initialize":
            return self.initialize(request.params)
        if method == "tools/list":
            return self.list_tools()
        if method == "tools/call":
            return await self._call_tool(request, context)
        if method in ("ListOfferings", "listOfferings"):
            return self.list_offerings()

        logger.info(f"Unknown method: {method}")
        return JsonRpcResponse.failure(request.id, method_not_found(method))

    def initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "protocolVersion": negotiate_protocol_version(params.get("protocolVersion")),
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "capabilities": {"tools": {}},
        }

    def list_tools(self) -> Dict[str, Any]:
        return {"tools": [d.to_wire() for d in self.registry.descriptors()]}

    def list_offerings(self) -> Dict[str, Any]:
        return {
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "tools": self.registry.names(),
        }

    async def _call_tool(
        self, request: JsonRpcRequest, context: Optional[RequestContext]
    ) -> Union[Dict[str, Any], JsonRpcResponse]:
        name = request.params.get("name")
        if not isinstance(name, str) or not name:
            return JsonRpcResponse.failure(request.id, invalid_params("Tool name is required"))

        arguments = request.params.get("arguments")
        if arguments is None:
            arguments = {}

        context = context or get_request_context()
        if context is not None:
            context.tool_name = name
            if isinstance(arguments, dict) and isinstance(arguments.get("session_id"), str):
                context.session_id = arguments["session_id"]

        try:
            if not isinstance(arguments, dict):
                raise ValidationError("arguments must be an object", tool_name=name)
            handle = self.registry.get(name)
            if handle is None:
                raise ToolNotFoundError(name)

            with use_request_context(context):
                result = await handle.tool.run(arguments)
        except Exception as e:
            error = classify(e, self.debug)
            if isinstance(e, ToolNotFoundError):
                logger.info(f"Unknown tool requested: {name}")
            else:
                logger.error(f"Tool '{name}' execution failed: {e}", exc_info=True)
            if context is not None:
                context.error = error.message
            return JsonRpcResponse.failure(request.id, error)

        payload: Dict[str, Any] = {"content": [{"type": "text", "text": render_text(result)}]}
        if handle.descriptor.output_schema is not None and isinstance(result, dict):
            payload["structuredContent"] = result
        return payload
