"""
Capability filter.

Decides, from the server configuration alone, whether a tool wire name is
enabled. The predicate is pure and total: it never raises and never looks
at anything other than the name and the injected flags.
"""

from typing import Optional

from .config import ServerConfig, SessionConfig

CATEGORY_PREFIXES = {
    "word_": "word",
    "excel_": "excel",
    "ppt_": "ppt",
    "pdf_": "pdf",
    "ocr_": "ocr",
    "email_": "email",
    "barcode_": "barcode",
}

CONVERT_TO_PDF = "convert_to_pdf"
CONVERT_DOCUMENT = "convert_document"
DOCUMENT_SESSION = "document_session"

# Categories that can produce a PDF; a PDF-only server has nothing to convert.
PDF_SOURCE_CATEGORIES = ("word", "excel", "ppt")
# Cross-format conversion needs at least two of these.
CONVERSION_CATEGORIES = ("word", "excel", "ppt", "pdf", "email")

_DISPLAY_NAMES = (
    ("word", "Word"),
    ("excel", "Excel"),
    ("ppt", "PowerPoint"),
    ("pdf", "PDF"),
    ("ocr", "OCR"),
    ("email", "Email"),
    ("barcode", "BarCode"),
)


class ToolFilter:
    """Enablement predicate over tool wire names."""

    def __init__(self, server: ServerConfig, session: Optional[SessionConfig] = None):
        self.server = server
        self.session = session or SessionConfig()

    def is_tool_enabled(self, name: Optional[str]) -> bool:
        if not name:
            return False
        lowered = name.lower()

        for prefix, category in CATEGORY_PREFIXES.items():
            if lowered.startswith(prefix):
                return self.server.is_category_enabled(category)

        if lowered == CONVERT_TO_PDF:
            return any(self.server.is_category_enabled(c) for c in PDF_SOURCE_CATEGORIES)
        if lowered == CONVERT_DOCUMENT:
            enabled = sum(1 for c in CONVERSION_CATEGORIES if self.server.is_category_enabled(c))
            return enabled >= 2
        if lowered == DOCUMENT_SESSION:
            return self.session.enabled

        return True

    def enabled_categories(self) -> str:
        """Comma-separated display names of enabled categories, or ``None``."""
        names = [label for key, label in _DISPLAY_NAMES if self.server.is_category_enabled(key)]
        return ", ".join(names) if names else "None"
