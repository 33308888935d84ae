"""
Shared plumbing for operation-style document tools.

Each tool takes an ``operation`` argument and dispatches to a ``_<operation>``
method, which runs on a worker thread so document I/O never blocks the event
loop.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..base import AsposeTool, ToolParameter, UnsupportedOperationError, ValidationError
from ..session import resolve_document


def document_parameters(writable: bool = False) -> List[ToolParameter]:
    """``path`` / ``session_id`` pair, plus ``output_path`` for editing tools."""
    params = [
        ToolParameter(
            name="path",
            type="string",
            description="Path to the document file (omit when session_id is given)",
            required=False,
        ),
        ToolParameter(
            name="session_id",
            type="string",
            description="Id of an open document session to operate on instead of path",
            required=False,
        ),
    ]
    if writable:
        params.append(
            ToolParameter(
                name="output_path",
                type="string",
                description="Where to write the result (defaults to overwriting the input file)",
                required=False,
            )
        )
    return params


class OperationTool(AsposeTool):
    """Base for tools whose behaviour is selected by an ``operation`` argument."""

    operations: Sequence[str] = ()

    #: Operations that modify the document they are given.
    writing_operations: Sequence[str] = ()

    def operation_parameter(self) -> ToolParameter:
        return ToolParameter(
            name="operation",
            type="string",
            description=f"Operation to perform: {', '.join(self.operations)}",
            enum=list(self.operations),
        )

    async def execute(self, operation: str, **kwargs) -> Dict[str, Any]:
        handler = getattr(self, f"_{operation}", None)
        if handler is None:
            raise UnsupportedOperationError(f"Unsupported operation: {operation}", tool_name=self.name)
        return await asyncio.to_thread(handler, **kwargs)

    def open_target(
        self,
        path: Optional[str],
        session_id: Optional[str],
        operation: Optional[str] = None,
    ) -> Tuple[Path, Optional[str]]:
        """Resolve the input document; a writing operation marks its session dirty."""
        writable = operation in self.writing_operations
        source, session = resolve_document(self.sessions, path, session_id, require_writable=writable)
        if not session and not source.is_file():
            raise FileNotFoundError(f"File not found: {source}")
        return source, session

    @staticmethod
    def output_target(source: Path, session_id: Optional[str], output_path: Optional[str]) -> Path:
        """Edits to a session go to its working copy; otherwise to output_path or in place."""
        if session_id or not output_path:
            return source
        target = Path(output_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        return target


def require(value: Any, name: str) -> Any:
    """Per-operation required argument check."""
    if value is None or value == "":
        raise ValidationError(f"{name} is required")
    return value
