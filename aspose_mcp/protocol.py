"""
JSON-RPC 2.0 envelope models and frame decoding.
"""

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base import ParseError
from .errors import McpError

JSONRPC_VERSION = "2.0"

PROTOCOL_VERSION = "2025-11-25"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-11-25")

HANDSHAKE_NOTIFICATION = "initialized"
NOTIFICATION_PREFIX = "notifications/"

RequestId = Union[str, int]


class JsonRpcRequest(BaseModel):
    """An incoming request or notification."""
    model_config = ConfigDict(frozen=True)

    jsonrpc: str = JSONRPC_VERSION
    method: str
    id: Optional[RequestId] = None
    params: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return is_notification(self.id, self.method)


class JsonRpcResponse(BaseModel):
    """A response: exactly one of ``result`` or ``error``."""
    jsonrpc: str = JSONRPC_VERSION
    id: Optional[RequestId] = None
    result: Optional[Any] = None
    error: Optional[McpError] = None

    @model_validator(mode="after")
    def _validate_error_result(self):
        if self.error is not None and self.result is not None:
            raise ValueError("Response cannot have both result and error")
        if self.error is None and self.result is None:
            raise ValueError("Response must have either result or error")
        return self

    @classmethod
    def success(cls, request_id: Optional[RequestId], result: Any) -> "JsonRpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: Optional[RequestId], error: McpError) -> "JsonRpcResponse":
        return cls(id=request_id, error=error)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with ``id`` always present and only one outcome field."""
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump(exclude_none=True)
        else:
            payload["result"] = self.result
        return payload

    def to_json(self) -> str:
        """ASCII-only JSON; lone surrogates echoed from a request become escapes."""
        return json.dumps(self.to_wire(), ensure_ascii=True, default=str)


def is_notification(request_id: Any, method: Any) -> bool:
    """A frame is a notification if it has no id, is the handshake, or is namespaced."""
    if request_id is None:
        return True
    if not isinstance(method, str):
        return False
    return method == HANDSHAKE_NOTIFICATION or method.startswith(NOTIFICATION_PREFIX)


def decode_frame(raw: Union[str, bytes]) -> Dict[str, Any]:
    """Decode one frame into a JSON object, raising ParseError otherwise."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"frame is not valid UTF-8 ({e.reason})") from e

    try:
        message = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(e.msg) from e

    if not isinstance(message, dict):
        raise ParseError("request must be a JSON object")
    return message


def readable_id(message: Dict[str, Any]) -> Optional[RequestId]:
    """Return the frame's id if it is a usable JSON-RPC id, else None."""
    value = message.get("id")
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int)):
        return value
    return None


def build_request(message: Dict[str, Any]) -> JsonRpcRequest:
    """Validate a decoded object into a request, raising ParseError on bad fields."""
    method = message.get("method")
    if not isinstance(method, str) or not method:
        raise ParseError("method must be a non-empty string")

    params = message.get("params")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise ParseError("params must be an object")

    request_id = message.get("id")
    if request_id is not None and readable_id(message) is None:
        raise ParseError("id must be a string or integer")

    return JsonRpcRequest(
        jsonrpc=str(message.get("jsonrpc", JSONRPC_VERSION)),
        method=method,
        id=request_id,
        params=params,
    )
