"""
Error taxonomy.

Maps any fault raised while serving a request to a stable JSON-RPC error code
and a message that is safe to show the caller. Raw exception text never
leaves the process unless it passes through ``sanitize_message``.
"""

import json
import re
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel

from .base import (
    AccessDeniedError,
    MethodNotFoundError,
    ParseError,
    ResourceNotFoundError,
    ToolNotFoundError,
    UnsupportedOperationError,
    ValidationError,
)


class ErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes exposed to callers."""
    PARSE_ERROR = -32700
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class McpError(BaseModel):
    """Error object carried by a JSON-RPC response."""
    code: int
    message: str
    data: Optional[Any] = None


DETAIL_MESSAGE_LIMIT = 500
GENERIC_MESSAGE_LIMIT = 200
ELLIPSIS = "..."

NOT_FOUND_MESSAGE = "Resource not found"
ACCESS_DENIED_MESSAGE = "Access denied"
IO_ERROR_MESSAGE = "An I/O error occurred while processing the request"
UNSUPPORTED_MESSAGE = "Operation not supported"
INTERNAL_MESSAGE = "An internal error occurred"

_WINDOWS_PATH = re.compile(r"\b[A-Za-z]:[\\/][^\s'\"<>|,;]*")
_UNC_PATH = re.compile(r"\\\\[^\s'\"<>|,;]+")
_HOME_PATH = re.compile(r"(?<![\w/])~/[^\s'\"<>|,;]*")
_POSIX_PATH = re.compile(r"(?<![\w.:/\]])/(?:[^\s/'\"<>|,;]+/)*[^\s/'\"<>|,;]*")
_PYTHON_FRAME = re.compile(r"File \"[^\"]*\", line \d+(?:, in \S+)?")
_DOTNET_FRAME = re.compile(r"\s+at \S+\(.*?\)(?: in \S+:line \d+)?")
_LINE_NUMBER = re.compile(r"[:,]?\s*\bline \d+\b", re.IGNORECASE)
_TRACEBACK_HEADER = re.compile(r"Traceback \(most recent call last\):?")
_QUALIFIED_TYPE = re.compile(r"\b(?:[A-Za-z_]\w*\.){2,}[A-Z]\w*\b")


def _truncate(message: str, limit: int) -> str:
    if len(message) <= limit:
        return message
    return message[: max(0, limit - len(ELLIPSIS))].rstrip() + ELLIPSIS


def sanitize_message(message: Optional[str], limit: int = GENERIC_MESSAGE_LIMIT) -> str:
    """Redact paths, stack fragments and qualified type names, then cap length."""
    if not message:
        return ""

    text = _TRACEBACK_HEADER.sub("", message)
    text = _PYTHON_FRAME.sub("", text)
    text = _DOTNET_FRAME.sub("", text)
    text = _UNC_PATH.sub("[path]", text)
    text = _WINDOWS_PATH.sub("[path]", text)
    text = _HOME_PATH.sub("[path]", text)
    text = _POSIX_PATH.sub(lambda m: "[path]" if len(m.group(0)) > 1 else m.group(0), text)
    text = _LINE_NUMBER.sub("", text)
    text = _QUALIFIED_TYPE.sub("[type]", text)
    text = re.sub(r"\s+", " ", text).strip()

    return _truncate(text, limit)


def _message_of(fault: BaseException) -> str:
    message = getattr(fault, "message", None)
    if isinstance(message, str):
        return message
    if isinstance(fault, KeyError) and fault.args:
        return str(fault.args[0])
    return str(fault)


def invalid_params(message: str) -> McpError:
    return McpError(
        code=ErrorCode.INVALID_PARAMS,
        message=sanitize_message(message, DETAIL_MESSAGE_LIMIT),
    )


def method_not_found(method: str) -> McpError:
    return McpError(code=ErrorCode.METHOD_NOT_FOUND, message=f"Method not found: {method}")


def tool_not_found(tool_name: str) -> McpError:
    return McpError(code=ErrorCode.METHOD_NOT_FOUND, message=f"Unknown tool: {tool_name}")


def parse_error(complaint: str) -> McpError:
    detail = sanitize_message(complaint, GENERIC_MESSAGE_LIMIT) or "invalid frame"
    return McpError(code=ErrorCode.PARSE_ERROR, message=f"Parse error: {detail}")


def classify(fault: BaseException, debug: bool = False) -> McpError:
    """Total mapping from a fault to a caller-safe error."""
    if isinstance(fault, ToolNotFoundError):
        return tool_not_found(fault.tool_name or "")
    if isinstance(fault, MethodNotFoundError):
        return method_not_found(fault.method)
    if isinstance(fault, (ParseError, json.JSONDecodeError)):
        return parse_error(_message_of(fault))

    # Not-found and permission checks must precede the generic OSError branch.
    if isinstance(fault, (ResourceNotFoundError, FileNotFoundError, KeyError)):
        return McpError(code=ErrorCode.INVALID_PARAMS, message=NOT_FOUND_MESSAGE)
    if isinstance(fault, (AccessDeniedError, PermissionError)):
        return McpError(code=ErrorCode.INTERNAL_ERROR, message=ACCESS_DENIED_MESSAGE)
    if isinstance(fault, (UnsupportedOperationError, NotImplementedError)):
        return McpError(code=ErrorCode.INTERNAL_ERROR, message=UNSUPPORTED_MESSAGE)
    if isinstance(fault, OSError):
        return McpError(code=ErrorCode.INTERNAL_ERROR, message=IO_ERROR_MESSAGE)
    if isinstance(fault, (ValidationError, ValueError, TypeError)):
        return invalid_params(_message_of(fault))

    if debug:
        detail = sanitize_message(_message_of(fault), GENERIC_MESSAGE_LIMIT)
        return McpError(code=ErrorCode.INTERNAL_ERROR, message=detail or INTERNAL_MESSAGE)
    return McpError(code=ErrorCode.INTERNAL_ERROR, message=INTERNAL_MESSAGE)
