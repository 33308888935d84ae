"""
MCP Tool Base Classes

Provides the tool execution contract, parameter validation and the fault
hierarchy shared by every tool. Tools raise; the dispatcher converts.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type

from pydantic import BaseModel

from .context import get_request_context
from .naming import ToolAnnotations, derive_wire_name

logger = logging.getLogger(__name__)


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""
    name: str
    type: str
    description: str
    required: bool = True
    default: Any = None
    enum: Optional[List[str]] = None
    items_type: str = "string"


@dataclass(frozen=True)
class ToolDescriptor:
    """Immutable wire description of a registered tool."""
    name: str
    description: str
    input_schema: Dict[str, Any]
    output_schema: Optional[Dict[str, Any]] = None
    annotations: Optional[ToolAnnotations] = None
    category: str = "general"

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
        if self.output_schema is not None:
            payload["outputSchema"] = self.output_schema
        if self.annotations is not None and not self.annotations.is_empty():
            payload["annotations"] = self.annotations.to_wire()
        return payload


# ============== Faults ==============


class ToolError(Exception):
    """Base exception for MCP tool errors."""
    def __init__(self, message: str, tool_name: str = None, details: Dict = None):
        self.message = message
        self.tool_name = tool_name
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ToolError):
    """Raised when a caller-supplied argument is missing or invalid."""
    pass


class ResourceNotFoundError(ToolError):
    """Raised when a referenced file, session or item does not exist."""
    pass


class AccessDeniedError(ToolError):
    """Raised when the caller may not touch the referenced resource."""
    pass


class UnsupportedOperationError(ToolError):
    """Raised for operations or format combinations a tool cannot perform."""
    pass


class ExecutionError(ToolError):
    """Raised when tool execution fails for an unanticipated reason."""
    pass


class MethodNotFoundError(ToolError):
    """Raised for an unrecognised JSON-RPC method."""
    def __init__(self, method: str):
        super().__init__(f"Method not found: {method}")
        self.method = method


class ToolNotFoundError(ToolError):
    """Raised when tools/call names a tool that is not registered."""
    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}", tool_name=tool_name)


class ParseError(ToolError):
    """Raised when an incoming frame cannot be decoded."""
    pass


# ============== Tools ==============

_JSON_TYPES = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
    "object": (dict,),
}


class OperationOutput(BaseModel):
    """Metadata about how a tool call was served."""
    session_id: Optional[str] = None
    output_path: Optional[str] = None
    transport: Optional[str] = None


class AsposeTool(ABC):
    """
    Abstract base class for document tools.

    Subclasses implement:
    - description: What the tool does
    - parameters: List of ToolParameter definitions
    - execute(): The actual tool logic

    The wire name is derived from the class name (``WordTextTool`` ->
    ``word_text``) so it cannot drift from the implementation.
    """

    #: Explicit annotations; None lets the registry infer them from the name.
    annotations: Optional[ToolAnnotations] = None

    #: Result models this tool can return, used for the output schema.
    output_models: Sequence[Type[BaseModel]] = ()

    def __init__(self, sessions=None):
        self.sessions = sessions

    @property
    def name(self) -> str:
        return derive_wire_name(type(self).__name__)

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        pass

    @property
    def parameters(self) -> List[ToolParameter]:
        """List of parameters the tool accepts."""
        return []

    @property
    def category(self) -> str:
        prefix, _, rest = self.name.partition("_")
        return prefix if rest else "general"

    def validate(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate input parameters.
        Returns validated/normalized parameters.
        Raises ValidationError if validation fails.
        """
        validated = {}

        for param in self.parameters:
            value = arguments.get(param.name)

            if value is None or (param.required and value == ""):
                if param.required:
                    raise ValidationError(f"{param.name} is required", tool_name=self.name)
                validated[param.name] = param.default
                continue

            expected = _JSON_TYPES.get(param.type)
            wrong_bool = isinstance(value, bool) and param.type in ("integer", "number")
            if expected is not None and (wrong_bool or not isinstance(value, expected)):
                raise ValidationError(
                    f"{param.name} must be of type {param.type}", tool_name=self.name
                )

            if param.enum is not None and value not in param.enum:
                raise ValidationError(
                    f"{param.name} must be one of: {', '.join(param.enum)}", tool_name=self.name
                )

            validated[param.name] = value

        return validated

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """
        Execute the tool with validated parameters.
        Faults propagate to the dispatcher, which classifies them.
        """
        pass

    async def run(self, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """Single execution entry point: validate, then execute."""
        validated = self.validate(arguments or {})
        return await self.execute(**validated)

    def input_schema(self) -> Dict[str, Any]:
        """Build the JSON Schema for this tool's arguments."""
        properties: Dict[str, Dict] = {}
        required: List[str] = []

        for param in self.parameters:
            prop: Dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.type == "array":
                prop["items"] = {"type": param.items_type}
            if param.enum is not None:
                prop["enum"] = list(param.enum)
            if param.default is not None:
                prop["default"] = param.default

            properties[param.name] = prop
            if param.required:
                required.append(param.name)

        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema

    def finalize(
        self,
        data: BaseModel,
        output_path: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Wrap a result model in the common ``data``/``output`` envelope."""
        context = get_request_context()
        output = OperationOutput(
            session_id=session_id,
            output_path=output_path,
            transport=context.transport if context is not None else None,
        )
        return {
            "data": data.model_dump(mode="json"),
            "output": output.model_dump(mode="json"),
        }
