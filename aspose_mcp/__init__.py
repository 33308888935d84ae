"""
Aspose MCP Server

Exposes document tools to MCP clients over stdio, streamable HTTP or
WebSocket. Tools are collected from the explicit catalog in
``aspose_mcp.tools`` and filtered by configuration.
"""

from .base import AsposeTool, ToolParameter
from .dispatcher import Dispatcher
from .registry import ToolRegistry, discover

__version__ = "1.0.0"

__all__ = ["AsposeTool", "Dispatcher", "ToolParameter", "ToolRegistry", "discover", "__version__"]
