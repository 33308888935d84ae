"""
Tool naming rules.

Wire names are derived from tool class names. Annotations (readonly /
destructive) are either declared by a tool or seeded once from the name
prefix rules below when the tool is registered.

Derivation examples:

    WordTextTool        -> word_text
    PDFTextTool         -> pdf_text       (acronym run ends before Upper+lower)
    ConvertToPdfTool    -> convert_to_pdf
    Excel2CsvTool       -> excel2_csv     (digits stay with the preceding word)
    3DChartTool         -> 3d_chart       (leading digits join the first word)
    Tool                -> tool           (suffix is never stripped to nothing)
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

TOOL_SUFFIX = "Tool"

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CASE_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_DIGIT_BOUNDARY = re.compile(r"(?<=[A-Za-z])(\d+)(?=[A-Z])")
_WIRE_NAME = re.compile(r"^[a-z0-9]+(_[a-z0-9]+)*$")


def derive_wire_name(identifier: str) -> str:
    """Map a tool implementation identifier to its canonical wire name."""
    if not identifier:
        raise ValueError("Tool identifier must not be empty")

    base = identifier
    if base.endswith(TOOL_SUFFIX) and len(base) > len(TOOL_SUFFIX):
        base = base[: -len(TOOL_SUFFIX)]

    base = _DIGIT_BOUNDARY.sub(r"\1_", base)
    base = _ACRONYM_BOUNDARY.sub(r"\1_\2", base)
    base = _CASE_BOUNDARY.sub(r"\1_\2", base)
    name = re.sub(r"_+", "_", base.lower()).strip("_")

    if not _WIRE_NAME.match(name):
        raise ValueError(f"Cannot derive a wire name from identifier: {identifier!r}")
    return name


@dataclass(frozen=True)
class ToolAnnotations:
    """Behaviour hints published with tools/list."""
    readonly: Optional[bool] = None
    destructive: Optional[bool] = None

    def is_empty(self) -> bool:
        return self.readonly is None and self.destructive is None

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.readonly is not None:
            payload["readonly"] = self.readonly
        if self.destructive is not None:
            payload["destructive"] = self.destructive
        return payload


# Seed rules for tools that declare no annotations of their own.
READONLY_PREFIXES = ("get_", "extract_", "read", "list_")
READONLY_INFIXES = ("_get_",)
READONLY_SUFFIXES = ("_info", "_statistics", "_properties", "_details")

DESTRUCTIVE_PREFIXES = ("delete_", "remove_", "clear_")
DESTRUCTIVE_INFIXES = ("_delete_", "_remove_", "_clear")
DESTRUCTIVE_NAMES = ("split",)


def infer_annotations(name: str) -> Optional[ToolAnnotations]:
    """Seed annotations from the wire name; None when no rule matches."""
    lowered = name.lower()

    readonly = (
        lowered.startswith(READONLY_PREFIXES)
        or any(part in lowered for part in READONLY_INFIXES)
        or lowered.endswith(READONLY_SUFFIXES)
    )
    destructive = (
        lowered.startswith(DESTRUCTIVE_PREFIXES)
        or lowered in DESTRUCTIVE_NAMES
        or any(part in lowered for part in DESTRUCTIVE_INFIXES)
    )

    if not readonly and not destructive:
        return None
    return ToolAnnotations(
        readonly=True if readonly else None,
        destructive=True if destructive else None,
    )
