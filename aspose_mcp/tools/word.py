"""
Word Document Tools

Create, inspect and edit .docx documents using python-docx.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from docx import Document
from pydantic import BaseModel

from ..base import ResourceNotFoundError, ToolParameter, ValidationError
from .common import OperationTool, document_parameters, require

logger = logging.getLogger(__name__)


class WordDocumentInfo(BaseModel):
    paragraph_count: int
    table_count: int
    section_count: int
    word_count: int
    title: Optional[str] = None
    author: Optional[str] = None


class WordParagraph(BaseModel):
    index: int
    text: str
    style: Optional[str] = None


class WordTextContent(BaseModel):
    paragraphs: List[WordParagraph]
    total_paragraphs: int


class WordEditResult(BaseModel):
    message: str
    affected: int = 0


def document_text(document) -> str:
    return "\n".join(p.text for p in document.paragraphs)


class WordFileTool(OperationTool):
    """Create a Word document or read its summary."""

    operations = ("create", "get_info")
    writing_operations = ()
    output_models = (WordDocumentInfo, WordEditResult)

    @property
    def description(self) -> str:
        return "Word document file operations: create a new .docx or get document information"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            *document_parameters(),
            ToolParameter(
                name="text",
                type="string",
                description="Initial text for create; one paragraph per line",
                required=False,
            ),
            ToolParameter(
                name="title",
                type="string",
                description="Document title property for create",
                required=False,
            ),
        ]

    def _create(self, path=None, text=None, title=None, **_) -> Dict[str, Any]:
        target = Path(require(path, "path"))
        target.parent.mkdir(parents=True, exist_ok=True)

        document = Document()
        if title:
            document.core_properties.title = title
        for line in (text or "").splitlines():
            document.add_paragraph(line)
        document.save(str(target))

        logger.info(f"Created Word document {target.name}")
        return self.finalize(
            WordEditResult(message="Document created", affected=len(document.paragraphs)),
            output_path=str(target),
        )

    def _get_info(self, path=None, session_id=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        document = Document(str(source))
        properties = document.core_properties
        info = WordDocumentInfo(
            paragraph_count=len(document.paragraphs),
            table_count=len(document.tables),
            section_count=len(document.sections),
            word_count=len(document_text(document).split()),
            title=properties.title or None,
            author=properties.author or None,
        )
        return self.finalize(info, session_id=session_id)


class WordTextTool(OperationTool):
    """Read and edit paragraph text in a Word document."""

    operations = ("get", "add", "replace", "delete")
    writing_operations = ("add", "replace", "delete")
    output_models = (WordTextContent, WordEditResult)

    @property
    def description(self) -> str:
        return (
            "Word text operations: get paragraphs, add a paragraph, "
            "replace text, or delete a paragraph by index"
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            *document_parameters(writable=True),
            ToolParameter(name="text", type="string", description="Paragraph text for add", required=False),
            ToolParameter(name="style", type="string", description="Paragraph style for add (e.g. 'Heading 1')", required=False),
            ToolParameter(name="find", type="string", description="Text to search for in replace", required=False),
            ToolParameter(name="replace_with", type="string", description="Replacement text for replace", required=False, default=""),
            ToolParameter(name="paragraph_index", type="integer", description="0-based paragraph index for delete", required=False),
        ]

    def _get(self, path=None, session_id=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        document = Document(str(source))
        paragraphs = [
            WordParagraph(index=i, text=p.text, style=p.style.name if p.style is not None else None)
            for i, p in enumerate(document.paragraphs)
        ]
        content = WordTextContent(paragraphs=paragraphs, total_paragraphs=len(paragraphs))
        return self.finalize(content, session_id=session_id)

    def _add(self, path=None, session_id=None, output_path=None, text=None, style=None, **_) -> Dict[str, Any]:
        require(text, "text")
        source, session_id = self.open_target(path, session_id, "add")
        document = Document(str(source))
        try:
            document.add_paragraph(text, style=style)
        except KeyError:
            raise ValidationError(f"Unknown paragraph style: {style}", tool_name=self.name)

        target = self.output_target(source, session_id, output_path)
        document.save(str(target))
        return self.finalize(
            WordEditResult(message="Paragraph added", affected=1),
            output_path=str(target),
            session_id=session_id,
        )

    def _replace(self, path=None, session_id=None, output_path=None, find=None, replace_with="", **_) -> Dict[str, Any]:
        require(find, "find")
        source, session_id = self.open_target(path, session_id, "replace")
        document = Document(str(source))

        count = 0
        for paragraph in document.paragraphs:
            if find not in paragraph.text:
                continue
            # Replace inside runs first so formatting survives.
            matched_in_runs = 0
            for run in paragraph.runs:
                if find in run.text:
                    matched_in_runs += run.text.count(find)
                    run.text = run.text.replace(find, replace_with or "")
            if not matched_in_runs:
                # Match spans several runs: collapse into the first run.
                matched_in_runs += paragraph.text.count(find)
                merged = paragraph.text.replace(find, replace_with or "")
                for run in paragraph.runs[1:]:
                    run.text = ""
                if paragraph.runs:
                    paragraph.runs[0].text = merged
            count += matched_in_runs

        target = self.output_target(source, session_id, output_path)
        document.save(str(target))
        return self.finalize(
            WordEditResult(message=f"Replaced {count} occurrence(s)", affected=count),
            output_path=str(target),
            session_id=session_id,
        )

    def _delete(self, path=None, session_id=None, output_path=None, paragraph_index=None, **_) -> Dict[str, Any]:
        require(paragraph_index, "paragraph_index")
        source, session_id = self.open_target(path, session_id, "delete")
        document = Document(str(source))

        paragraphs = document.paragraphs
        if not 0 <= paragraph_index < len(paragraphs):
            raise ResourceNotFoundError(
                f"Paragraph index {paragraph_index} is out of range (0-{len(paragraphs) - 1})"
            )
        element = paragraphs[paragraph_index]._element
        element.getparent().remove(element)

        target = self.output_target(source, session_id, output_path)
        document.save(str(target))
        return self.finalize(
            WordEditResult(message=f"Paragraph {paragraph_index} deleted", affected=1),
            output_path=str(target),
            session_id=session_id,
        )
