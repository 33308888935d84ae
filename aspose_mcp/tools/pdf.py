"""
PDF Processing Tools

Provides tools for PDF inspection, text and page editing using PyMuPDF.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import fitz  # PyMuPDF
from pydantic import BaseModel

from ..base import ResourceNotFoundError, ToolParameter, ValidationError
from .common import OperationTool, document_parameters, require

logger = logging.getLogger(__name__)


class PdfInfo(BaseModel):
    page_count: int
    encrypted: bool
    file_size_bytes: int
    title: Optional[str] = None
    author: Optional[str] = None
    producer: Optional[str] = None


class PdfFilesResult(BaseModel):
    message: str
    files: List[str]


class PdfPageText(BaseModel):
    page_number: int
    text: str


class PdfTextContent(BaseModel):
    total_pages: int
    pages: List[PdfPageText]


class PdfEditResult(BaseModel):
    message: str
    page_count: int


class PdfPageDetails(BaseModel):
    page_number: int
    width: float
    height: float
    rotation: int


class PdfPagesInfo(BaseModel):
    total_pages: int
    pages: List[PdfPageDetails]


def document_bytes(doc: "fitz.Document") -> bytes:
    return doc.tobytes(garbage=3, deflate=True)


def save_document(doc: "fitz.Document", target: Path) -> None:
    """Save a PDF, including over the file it was opened from."""
    data = document_bytes(doc)
    doc.close()
    target.write_bytes(data)


def page_index_for(doc: "fitz.Document", page_number: int) -> int:
    """Map a 1-based page number to an index, raising when out of range."""
    if not 1 <= page_number <= len(doc):
        raise ResourceNotFoundError(
            f"Page {page_number} does not exist (document has {len(doc)} pages)"
        )
    return page_number - 1


class PdfFileTool(OperationTool):
    """PDF file level operations."""

    operations = ("get_info", "merge", "split")
    output_models = (PdfInfo, PdfFilesResult)

    @property
    def description(self) -> str:
        return "PDF file operations: get document information, merge several PDFs, or split a PDF into single pages"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            *document_parameters(),
            ToolParameter(
                name="input_paths",
                type="array",
                description="PDF files to merge, in order",
                required=False,
            ),
            ToolParameter(
                name="output_path",
                type="string",
                description="Merged file path for merge",
                required=False,
            ),
            ToolParameter(
                name="output_dir",
                type="string",
                description="Directory for the page files written by split",
                required=False,
            ),
        ]

    def _get_info(self, path=None, session_id=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        with fitz.open(str(source)) as doc:
            metadata = doc.metadata or {}
            info = PdfInfo(
                page_count=len(doc),
                encrypted=bool(doc.is_encrypted),
                file_size_bytes=source.stat().st_size,
                title=metadata.get("title") or None,
                author=metadata.get("author") or None,
                producer=metadata.get("producer") or None,
            )
        return self.finalize(info, session_id=session_id)

    def _merge(self, input_paths=None, output_path=None, **_) -> Dict[str, Any]:
        inputs = require(input_paths, "input_paths")
        if len(inputs) < 2:
            raise ValidationError("merge needs at least two input_paths", tool_name=self.name)
        target = Path(require(output_path, "output_path"))

        merged = fitz.open()
        for item in inputs:
            source = Path(item)
            if not source.is_file():
                raise FileNotFoundError(f"File not found: {item}")
            with fitz.open(str(source)) as doc:
                merged.insert_pdf(doc)

        target.parent.mkdir(parents=True, exist_ok=True)
        page_count = len(merged)
        save_document(merged, target)
        logger.info(f"Merged {len(inputs)} PDFs into {target.name} ({page_count} pages)")
        return self.finalize(
            PdfFilesResult(message=f"Merged {len(inputs)} files ({page_count} pages)", files=[str(target)]),
            output_path=str(target),
        )

    def _split(self, path=None, session_id=None, output_dir=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        out_dir = Path(output_dir) if output_dir else source.parent
        out_dir.mkdir(parents=True, exist_ok=True)

        written = []
        with fitz.open(str(source)) as doc:
            for index in range(len(doc)):
                page_doc = fitz.open()
                page_doc.insert_pdf(doc, from_page=index, to_page=index)
                target = out_dir / f"{source.stem}_page_{index + 1}.pdf"
                save_document(page_doc, target)
                written.append(str(target))

        return self.finalize(
            PdfFilesResult(message=f"Split into {len(written)} files", files=written),
            output_path=str(out_dir),
            session_id=session_id,
        )


class PdfTextTool(OperationTool):
    """Extract or add PDF text."""

    operations = ("extract", "add")
    writing_operations = ("add",)
    output_models = (PdfTextContent, PdfEditResult)

    @property
    def description(self) -> str:
        return "PDF text operations: extract text from all or one page, or add text at a position"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            *document_parameters(writable=True),
            ToolParameter(name="page_number", type="integer", description="1-based page number (extract: all pages when omitted)", required=False),
            ToolParameter(name="text", type="string", description="Text to add", required=False),
            ToolParameter(name="x", type="number", description="X position in points for add", required=False, default=72),
            ToolParameter(name="y", type="number", description="Y position in points for add", required=False, default=72),
            ToolParameter(name="font_size", type="number", description="Font size for add", required=False, default=12),
        ]

    def _extract(self, path=None, session_id=None, page_number=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        with fitz.open(str(source)) as doc:
            if page_number is not None:
                indexes = [page_index_for(doc, page_number)]
            else:
                indexes = list(range(len(doc)))
            pages = [PdfPageText(page_number=i + 1, text=doc[i].get_text()) for i in indexes]
            total = len(doc)
        return self.finalize(PdfTextContent(total_pages=total, pages=pages), session_id=session_id)

    def _add(self, path=None, session_id=None, output_path=None, page_number=None,
             text=None, x=72, y=72, font_size=12, **_) -> Dict[str, Any]:
        require(text, "text")
        source, session_id = self.open_target(path, session_id, "add")
        with fitz.open(str(source)) as doc:
            index = page_index_for(doc, page_number or 1)
            doc[index].insert_text((x, y), text, fontsize=font_size)
            page_count = len(doc)
            data = document_bytes(doc)

        target = self.output_target(source, session_id, output_path)
        target.write_bytes(data)
        return self.finalize(
            PdfEditResult(message=f"Text added to page {index + 1}", page_count=page_count),
            output_path=str(target),
            session_id=session_id,
        )


class PdfPageTool(OperationTool):
    """Inspect, delete and rotate PDF pages."""

    operations = ("get_info", "delete", "rotate")
    writing_operations = ("delete", "rotate")
    output_models = (PdfPagesInfo, PdfEditResult)

    @property
    def description(self) -> str:
        return "PDF page operations: get page sizes and rotation, delete a page, or rotate pages"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            *document_parameters(writable=True),
            ToolParameter(name="page_number", type="integer", description="1-based page number (rotate: all pages when omitted)", required=False),
            ToolParameter(name="rotation", type="integer", description="Rotation in degrees for rotate", required=False, default=90),
        ]

    def _get_info(self, path=None, session_id=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        with fitz.open(str(source)) as doc:
            pages = [
                PdfPageDetails(
                    page_number=page.number + 1,
                    width=round(page.rect.width, 2),
                    height=round(page.rect.height, 2),
                    rotation=page.rotation,
                )
                for page in doc
            ]
        return self.finalize(PdfPagesInfo(total_pages=len(pages), pages=pages), session_id=session_id)

    def _delete(self, path=None, session_id=None, output_path=None, page_number=None, **_) -> Dict[str, Any]:
        require(page_number, "page_number")
        source, session_id = self.open_target(path, session_id, "delete")
        with fitz.open(str(source)) as doc:
            index = page_index_for(doc, page_number)
            if len(doc) == 1:
                raise ValidationError("Cannot delete the only page of a document", tool_name=self.name)
            doc.delete_page(index)
            page_count = len(doc)
            data = document_bytes(doc)

        target = self.output_target(source, session_id, output_path)
        target.write_bytes(data)
        return self.finalize(
            PdfEditResult(message=f"Page {page_number} deleted", page_count=page_count),
            output_path=str(target),
            session_id=session_id,
        )

    def _rotate(self, path=None, session_id=None, output_path=None, page_number=None, rotation=90, **_) -> Dict[str, Any]:
        if rotation % 90 != 0:
            raise ValidationError("rotation must be a multiple of 90", tool_name=self.name)
        source, session_id = self.open_target(path, session_id, "rotate")
        with fitz.open(str(source)) as doc:
            indexes = [page_index_for(doc, page_number)] if page_number is not None else range(len(doc))
            for index in indexes:
                page = doc[index]
                page.set_rotation((page.rotation + rotation) % 360)
            page_count = len(doc)
            data = document_bytes(doc)

        target = self.output_target(source, session_id, output_path)
        target.write_bytes(data)
        return self.finalize(
            PdfEditResult(message=f"Rotated {len(indexes)} page(s) by {rotation} degrees", page_count=page_count),
            output_path=str(target),
            session_id=session_id,
        )
