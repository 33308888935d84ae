"""
MCP Tool Registry

Builds the name -> tool map once at startup from the explicit tool catalog.
Nothing is scanned or imported dynamically: a tool exists only if its class
is listed in ``aspose_mcp.tools.TOOL_CATALOG``.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Type

from .base import AsposeTool, ToolDescriptor
from .config import AppConfig
from .filters import ToolFilter
from .naming import infer_annotations
from .schema import build_output_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolHandle:
    """A registered tool: its wire descriptor and the instance that runs it."""
    descriptor: ToolDescriptor
    tool: AsposeTool

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry(Mapping):
    """Read-only, insertion-ordered mapping of wire name to ToolHandle."""

    def __init__(self, handles: Sequence[ToolHandle] = ()):
        self._handles: Dict[str, ToolHandle] = {h.name: h for h in handles}

    def __getitem__(self, name: str) -> ToolHandle:
        return self._handles[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._handles)

    def __len__(self) -> int:
        return len(self._handles)

    def descriptors(self) -> List[ToolDescriptor]:
        return [h.descriptor for h in self._handles.values()]

    def names(self) -> List[str]:
        return list(self._handles)

    def get_tools_by_category(self, category: str) -> Dict[str, ToolHandle]:
        """Get all tools in a specific category."""
        return {
            name: handle
            for name, handle in self._handles.items()
            if handle.descriptor.category == category
        }


def describe(tool: AsposeTool) -> ToolDescriptor:
    """Build the immutable descriptor for one tool instance."""
    annotations = tool.annotations
    if annotations is None:
        annotations = infer_annotations(tool.name)

    return ToolDescriptor(
        name=tool.name,
        description=tool.description,
        input_schema=tool.input_schema(),
        output_schema=build_output_schema(tool.output_models),
        annotations=annotations,
        category=tool.category,
    )


def discover(
    config: AppConfig,
    catalog: Optional[Sequence[Type[AsposeTool]]] = None,
    sessions=None,
) -> ToolRegistry:
    """
    Instantiate and describe every enabled tool in the catalog.

    A tool whose constructor or description fails is logged and skipped.
    When two tools derive the same wire name the first one listed wins and
    the later one is dropped with a warning.
    """
    if catalog is None:
        from .tools import TOOL_CATALOG
        catalog = TOOL_CATALOG

    tool_filter = ToolFilter(config.server, config.session)
    handles: Dict[str, ToolHandle] = {}

    for tool_class in catalog:
        try:
            tool = tool_class(sessions=sessions)
            name = tool.name
        except Exception as e:
            logger.error(f"Failed to instantiate tool {tool_class.__name__}: {e}")
            continue

        if not tool_filter.is_tool_enabled(name):
            logger.debug(f"Tool disabled by configuration: {name}")
            continue

        if name in handles:
            logger.warning(
                f"Duplicate tool name {name}: keeping {type(handles[name].tool).__name__}, "
                f"dropping {tool_class.__name__}"
            )
            continue

        try:
            descriptor = describe(tool)
        except Exception as e:
            logger.error(f"Failed to describe tool {tool_class.__name__}: {e}")
            continue

        handles[name] = ToolHandle(descriptor=descriptor, tool=tool)
        logger.info(f"Registered tool: {name} ({descriptor.category})")

    logger.info(f"Tool discovery complete. Total tools: {len(handles)}")
    return ToolRegistry(list(handles.values()))
