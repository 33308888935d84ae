"""
Tool catalog.

The only place tools are collected: a tool is served if and only if its
class is listed in TOOL_CATALOG (and the capability filter enables it).
"""

from .conversion import ConvertDocumentTool, ConvertToPdfTool
from .mail import EmailContentTool
from .pdf import PdfFileTool, PdfPageTool, PdfTextTool
from .session import DocumentSessionTool
from .word import WordFileTool, WordTextTool

TOOL_CATALOG = (
    WordFileTool,
    WordTextTool,
    PdfFileTool,
    PdfTextTool,
    PdfPageTool,
    EmailContentTool,
    ConvertToPdfTool,
    ConvertDocumentTool,
    DocumentSessionTool,
)

__all__ = [
    "TOOL_CATALOG",
    "ConvertDocumentTool",
    "ConvertToPdfTool",
    "DocumentSessionTool",
    "EmailContentTool",
    "PdfFileTool",
    "PdfPageTool",
    "PdfTextTool",
    "WordFileTool",
    "WordTextTool",
]
