"""
Document Conversion Tools

Converts between the formats the other tool categories understand. Text is
the common denominator: formats PyMuPDF can open natively (images, XPS,
EPUB) go straight to PDF, everything else is rendered from its text.
"""

import logging
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional

import fitz  # PyMuPDF
from docx import Document
from pydantic import BaseModel

from ..base import ToolParameter, UnsupportedOperationError
from .common import OperationTool, document_parameters, require
from .mail import message_body, read_message
from .pdf import save_document
from .word import document_text

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".md", ".csv", ".log")
FITZ_NATIVE_EXTENSIONS = (".xps", ".oxps", ".epub", ".fb2", ".cbz", ".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tif", ".tiff")

PAGE_WIDTH, PAGE_HEIGHT = fitz.paper_size("a4")
MARGIN = 56
FONT_SIZE = 10
LINE_HEIGHT = FONT_SIZE * 1.4
WRAP_WIDTH = 95


class ConversionResult(BaseModel):
    source_format: str
    target_format: str
    output_path: str
    page_count: Optional[int] = None


def extension_of(path: Path) -> str:
    return path.suffix.lower()


def text_to_pdf(text: str, target: Path) -> int:
    """Render plain text onto A4 pages; returns the page count."""
    lines: List[str] = []
    for raw in text.splitlines() or [""]:
        lines.extend(textwrap.wrap(raw, WRAP_WIDTH) or [""])

    per_page = max(1, int((PAGE_HEIGHT - 2 * MARGIN) // LINE_HEIGHT))
    doc = fitz.open()
    for start in range(0, len(lines), per_page):
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        chunk = "\n".join(lines[start:start + per_page])
        page.insert_text((MARGIN, MARGIN + FONT_SIZE), chunk, fontsize=FONT_SIZE, lineheight=1.4)

    page_count = len(doc)
    save_document(doc, target)
    return page_count


def read_text(source: Path) -> str:
    """Plain text of any supported input document."""
    ext = extension_of(source)
    if ext == ".docx":
        return document_text(Document(str(source)))
    if ext == ".eml":
        message = read_message(source)
        subject = message.get("subject")
        body = message_body(message).body
        return f"Subject: {subject}\n\n{body}" if subject else body
    if ext == ".pdf":
        with fitz.open(str(source)) as doc:
            return "\n".join(page.get_text() for page in doc)
    if ext in TEXT_EXTENSIONS:
        return source.read_text(encoding="utf-8", errors="replace")
    raise UnsupportedOperationError(f"Unsupported source format: {ext or 'none'}")


def default_output(source: Path, extension: str) -> Path:
    return source.with_suffix(extension)


class ConvertToPdfTool(OperationTool):
    """Convert any supported document to PDF."""

    output_models = (ConversionResult,)

    @property
    def description(self) -> str:
        return (
            "Convert a document to PDF. Supports .docx, .eml, plain text, images, "
            "XPS and EPUB inputs"
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            *document_parameters(),
            ToolParameter(
                name="output_path",
                type="string",
                description="PDF output path (defaults to the input path with a .pdf extension)",
                required=False,
            ),
        ]

    async def execute(self, **kwargs) -> Dict[str, Any]:
        return await super().execute("convert", **kwargs)

    def _convert(self, path=None, session_id=None, output_path=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        target = Path(output_path) if output_path else default_output(source, ".pdf")
        target.parent.mkdir(parents=True, exist_ok=True)
        ext = extension_of(source)

        if ext == ".pdf":
            raise UnsupportedOperationError("Source is already a PDF", tool_name=self.name)
        if ext in FITZ_NATIVE_EXTENSIONS:
            with fitz.open(str(source)) as doc:
                pdf = fitz.open("pdf", doc.convert_to_pdf())
            page_count = len(pdf)
            save_document(pdf, target)
        else:
            page_count = text_to_pdf(read_text(source), target)

        logger.info(f"Converted {source.name} to PDF ({page_count} pages)")
        result = ConversionResult(
            source_format=ext.lstrip("."),
            target_format="pdf",
            output_path=str(target),
            page_count=page_count,
        )
        return self.finalize(result, output_path=str(target), session_id=session_id)


class ConvertDocumentTool(OperationTool):
    """Convert between document formats."""

    output_models = (ConversionResult,)

    #: source extension -> target formats
    CONVERSIONS = {
        ".pdf": ("txt", "docx"),
        ".docx": ("txt", "pdf"),
        ".eml": ("txt",),
    }

    @property
    def description(self) -> str:
        return (
            "Convert a document between formats: PDF to TXT/DOCX, DOCX to TXT/PDF, "
            "EML to TXT"
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            *document_parameters(),
            ToolParameter(
                name="format",
                type="string",
                description="Target format",
                enum=["txt", "docx", "pdf"],
            ),
            ToolParameter(
                name="output_path",
                type="string",
                description="Output path (defaults to the input path with the target extension)",
                required=False,
            ),
        ]

    async def execute(self, **kwargs) -> Dict[str, Any]:
        return await super().execute("convert", **kwargs)

    def _convert(self, path=None, session_id=None, format=None, output_path=None, **_) -> Dict[str, Any]:
        target_format = require(format, "format")
        source, session_id = self.open_target(path, session_id)
        ext = extension_of(source)

        if target_format not in self.CONVERSIONS.get(ext, ()):
            raise UnsupportedOperationError(
                f"Conversion from {ext or 'unknown'} to {target_format} is not supported",
                tool_name=self.name,
            )

        target = Path(output_path) if output_path else default_output(source, f".{target_format}")
        target.parent.mkdir(parents=True, exist_ok=True)
        page_count = None

        if target_format == "txt":
            target.write_text(read_text(source), encoding="utf-8")
        elif target_format == "pdf":
            page_count = text_to_pdf(read_text(source), target)
        else:
            document = Document()
            with fitz.open(str(source)) as doc:
                page_count = len(doc)
                for page in doc:
                    for block in page.get_text("blocks"):
                        text = block[4].strip()
                        # block[6] is 1 for image blocks
                        if text and block[6] == 0:
                            document.add_paragraph(text)
            document.save(str(target))

        result = ConversionResult(
            source_format=ext.lstrip("."),
            target_format=target_format,
            output_path=str(target),
            page_count=page_count,
        )
        return self.finalize(result, output_path=str(target), session_id=session_id)
