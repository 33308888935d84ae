"""
Tests for the built-in document tools, run against small documents
generated in a temp directory.
"""

from unittest.mock import patch

import fitz
import pytest
from docx import Document

from aspose_mcp.base import ResourceNotFoundError, UnsupportedOperationError, ValidationError
from aspose_mcp.tools import (
    ConvertDocumentTool,
    ConvertToPdfTool,
    DocumentSessionTool,
    EmailContentTool,
    PdfFileTool,
    PdfPageTool,
    PdfTextTool,
    WordFileTool,
    WordTextTool,
)


def paragraphs_of(path):
    return [p.text for p in Document(str(path)).paragraphs]


# ============== Word ==============


class TestWordFileTool:

    @pytest.mark.asyncio
    async def test_create_and_get_info(self, tmp_path):
        tool = WordFileTool()
        target = tmp_path / "new" / "created.docx"
        result = await tool.run({"operation": "create", "path": str(target), "text": "one\ntwo", "title": "Made"})
        assert result["data"]["affected"] == 2
        assert result["output"]["output_path"] == str(target)
        assert paragraphs_of(target) == ["one", "two"]

        info = await tool.run({"operation": "get_info", "path": str(target)})
        assert info["data"]["paragraph_count"] == 2
        assert info["data"]["title"] == "Made"

    @pytest.mark.asyncio
    async def test_get_info(self, docx_file):
        info = (await WordFileTool().run({"operation": "get_info", "path": str(docx_file)}))["data"]
        assert info["paragraph_count"] == 3
        assert info["word_count"] == 6
        assert info["section_count"] == 1
        assert info["title"] == "Sample"

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await WordFileTool().run({"operation": "get_info", "path": str(tmp_path / "nope.docx")})

    @pytest.mark.asyncio
    async def test_unknown_operation(self, docx_file):
        with pytest.raises(ValidationError, match="operation must be one of"):
            await WordFileTool().run({"operation": "explode", "path": str(docx_file)})


class TestWordTextTool:

    @pytest.mark.asyncio
    async def test_get(self, docx_file):
        content = (await WordTextTool().run({"operation": "get", "path": str(docx_file)}))["data"]
        assert content["total_paragraphs"] == 3
        assert content["paragraphs"][1] == {"index": 1, "text": "Second paragraph", "style": "Normal"}

    @pytest.mark.asyncio
    async def test_add_with_style(self, docx_file):
        await WordTextTool().run({"operation": "add", "path": str(docx_file), "text": "Heading", "style": "Heading 1"})
        document = Document(str(docx_file))
        assert document.paragraphs[-1].text == "Heading"
        assert document.paragraphs[-1].style.name == "Heading 1"

    @pytest.mark.asyncio
    async def test_add_unknown_style(self, docx_file):
        with pytest.raises(ValidationError, match="Unknown paragraph style"):
            await WordTextTool().run({"operation": "add", "path": str(docx_file), "text": "x", "style": "No Such Style"})
        assert paragraphs_of(docx_file) == ["Hello world", "Second paragraph", "Goodbye world"]

    @pytest.mark.asyncio
    async def test_add_requires_text(self, docx_file):
        with pytest.raises(ValidationError, match="text is required"):
            await WordTextTool().run({"operation": "add", "path": str(docx_file)})

    @pytest.mark.asyncio
    async def test_replace_to_output_path(self, docx_file, tmp_path):
        target = tmp_path / "replaced.docx"
        result = await WordTextTool().run({
            "operation": "replace",
            "path": str(docx_file),
            "find": "world",
            "replace_with": "there",
            "output_path": str(target),
        })
        assert result["data"]["affected"] == 2
        assert paragraphs_of(target) == ["Hello there", "Second paragraph", "Goodbye there"]
        assert paragraphs_of(docx_file)[0] == "Hello world"

    @pytest.mark.asyncio
    async def test_replace_across_runs(self, tmp_path):
        path = tmp_path / "runs.docx"
        document = Document()
        paragraph = document.add_paragraph("Quarter")
        paragraph.add_run("ly report")
        document.save(str(path))

        result = await WordTextTool().run({
            "operation": "replace", "path": str(path), "find": "Quarterly", "replace_with": "Annual",
        })
        assert result["data"]["affected"] == 1
        assert paragraphs_of(path) == ["Annual report"]

    @pytest.mark.asyncio
    async def test_delete(self, docx_file):
        await WordTextTool().run({"operation": "delete", "path": str(docx_file), "paragraph_index": 1})
        assert paragraphs_of(docx_file) == ["Hello world", "Goodbye world"]

    @pytest.mark.asyncio
    async def test_delete_out_of_range(self, docx_file):
        with pytest.raises(ResourceNotFoundError):
            await WordTextTool().run({"operation": "delete", "path": str(docx_file), "paragraph_index": 9})

    @pytest.mark.asyncio
    async def test_paragraph_index_type_checked(self, docx_file):
        with pytest.raises(ValidationError, match="must be of type integer"):
            await WordTextTool().run({"operation": "delete", "path": str(docx_file), "paragraph_index": "1"})


# ============== PDF ==============


def page_count(path) -> int:
    with fitz.open(str(path)) as doc:
        return len(doc)


class TestPdfFileTool:

    @pytest.mark.asyncio
    async def test_get_info(self, pdf_file):
        info = (await PdfFileTool().run({"operation": "get_info", "path": str(pdf_file)}))["data"]
        assert info["page_count"] == 3
        assert info["encrypted"] is False
        assert info["file_size_bytes"] == pdf_file.stat().st_size

    @pytest.mark.asyncio
    async def test_merge(self, pdf_file, tmp_path):
        target = tmp_path / "merged.pdf"
        result = await PdfFileTool().run({
            "operation": "merge",
            "input_paths": [str(pdf_file), str(pdf_file)],
            "output_path": str(target),
        })
        assert result["data"]["files"] == [str(target)]
        assert page_count(target) == 6

    @pytest.mark.asyncio
    async def test_merge_needs_two_inputs(self, pdf_file, tmp_path):
        with pytest.raises(ValidationError):
            await PdfFileTool().run({
                "operation": "merge", "input_paths": [str(pdf_file)], "output_path": str(tmp_path / "m.pdf"),
            })

    @pytest.mark.asyncio
    async def test_split(self, pdf_file, tmp_path):
        out_dir = tmp_path / "pages"
        result = await PdfFileTool().run({"operation": "split", "path": str(pdf_file), "output_dir": str(out_dir)})
        files = result["data"]["files"]
        assert [p.rsplit("/", 1)[-1] for p in files] == [
            "sample_page_1.pdf", "sample_page_2.pdf", "sample_page_3.pdf",
        ]
        assert all(page_count(p) == 1 for p in files)


class TestPdfTextTool:

    @pytest.mark.asyncio
    async def test_extract_all(self, pdf_file):
        content = (await PdfTextTool().run({"operation": "extract", "path": str(pdf_file)}))["data"]
        assert content["total_pages"] == 3
        assert [p["page_number"] for p in content["pages"]] == [1, 2, 3]
        assert "Page 3 text" in content["pages"][2]["text"]

    @pytest.mark.asyncio
    async def test_extract_one_page(self, pdf_file):
        content = (await PdfTextTool().run({"operation": "extract", "path": str(pdf_file), "page_number": 2}))["data"]
        assert len(content["pages"]) == 1
        assert "Page 2 text" in content["pages"][0]["text"]

    @pytest.mark.asyncio
    async def test_extract_page_out_of_range(self, pdf_file):
        with pytest.raises(ResourceNotFoundError):
            await PdfTextTool().run({"operation": "extract", "path": str(pdf_file), "page_number": 4})

    @pytest.mark.asyncio
    async def test_add_in_place(self, pdf_file):
        await PdfTextTool().run({"operation": "add", "path": str(pdf_file), "text": "Stamped", "page_number": 2, "y": 200})
        with fitz.open(str(pdf_file)) as doc:
            assert "Stamped" in doc[1].get_text()
            assert "Stamped" not in doc[0].get_text()


class TestPdfPageTool:

    @pytest.mark.asyncio
    async def test_get_info(self, pdf_file):
        info = (await PdfPageTool().run({"operation": "get_info", "path": str(pdf_file)}))["data"]
        assert info["total_pages"] == 3
        assert info["pages"][0]["rotation"] == 0
        assert info["pages"][0]["width"] > 0

    @pytest.mark.asyncio
    async def test_delete(self, pdf_file, tmp_path):
        target = tmp_path / "fewer.pdf"
        result = await PdfPageTool().run({
            "operation": "delete", "path": str(pdf_file), "page_number": 2, "output_path": str(target),
        })
        assert result["data"]["page_count"] == 2
        assert page_count(target) == 2
        assert page_count(pdf_file) == 3

    @pytest.mark.asyncio
    async def test_delete_only_page(self, tmp_path):
        path = tmp_path / "single.pdf"
        doc = fitz.open()
        doc.new_page()
        doc.save(str(path))
        doc.close()
        with pytest.raises(ValidationError, match="only page"):
            await PdfPageTool().run({"operation": "delete", "path": str(path), "page_number": 1})

    @pytest.mark.asyncio
    async def test_rotate_all(self, pdf_file):
        await PdfPageTool().run({"operation": "rotate", "path": str(pdf_file)})
        with fitz.open(str(pdf_file)) as doc:
            assert [page.rotation for page in doc] == [90, 90, 90]

    @pytest.mark.asyncio
    async def test_rotate_invalid_angle(self, pdf_file):
        with pytest.raises(ValidationError):
            await PdfPageTool().run({"operation": "rotate", "path": str(pdf_file), "rotation": 45})


class TestPdfDocumentHandles:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "tool,arguments",
        [
            (PdfTextTool, {"operation": "add", "text": "Stamped", "page_number": 9}),
            (PdfPageTool, {"operation": "delete", "page_number": 9}),
            (PdfPageTool, {"operation": "rotate", "page_number": 9}),
        ],
    )
    async def test_missing_page_closes_document(self, pdf_file, tool, arguments):
        real_open = fitz.open
        opened = []

        def open_and_record(*args, **kwargs):
            doc = real_open(*args, **kwargs)
            opened.append(doc)
            return doc

        with patch.object(fitz, "open", side_effect=open_and_record):
            with pytest.raises(ResourceNotFoundError):
                await tool().run({**arguments, "path": str(pdf_file)})

        assert len(opened) == 1
        assert opened[0].is_closed
        assert page_count(pdf_file) == 3


# ============== Email ==============


class TestEmailContentTool:

    @pytest.mark.asyncio
    async def test_get_info(self, eml_file):
        info = (await EmailContentTool().run({"operation": "get_info", "path": str(eml_file)}))["data"]
        assert info["subject"] == "Quarterly report"
        assert info["sender"] == "alice@example.com"
        assert info["to"] == ["bob@example.com", "carol@example.com"]
        assert info["cc"] == []
        assert info["attachments"] == [
            {"filename": "data.bin", "content_type": "application/octet-stream", "size_bytes": 16}
        ]

    @pytest.mark.asyncio
    async def test_get_body(self, eml_file):
        body = (await EmailContentTool().run({"operation": "get_body", "path": str(eml_file)}))["data"]
        assert body["format"] == "plain"
        assert body["body"].strip() == "Plain body text"

    @pytest.mark.asyncio
    async def test_get_body_prefer_html(self, eml_file):
        body = (await EmailContentTool().run({
            "operation": "get_body", "path": str(eml_file), "prefer_html": True,
        }))["data"]
        assert body["format"] == "html"
        assert "<p>HTML body</p>" in body["body"]


# ============== Conversion ==============


class TestConvertToPdfTool:

    @pytest.mark.asyncio
    async def test_docx(self, docx_file):
        result = await ConvertToPdfTool().run({"path": str(docx_file)})
        target = docx_file.with_suffix(".pdf")
        assert result["data"] == {
            "source_format": "docx",
            "target_format": "pdf",
            "output_path": str(target),
            "page_count": 1,
        }
        with fitz.open(str(target)) as doc:
            assert "Hello world" in doc[0].get_text()

    @pytest.mark.asyncio
    async def test_long_text_spans_pages(self, tmp_path):
        source = tmp_path / "long.txt"
        source.write_text("\n".join(f"line {i}" for i in range(200)), encoding="utf-8")
        result = await ConvertToPdfTool().run({"path": str(source), "output_path": str(tmp_path / "out.pdf")})
        assert result["data"]["page_count"] > 1

    @pytest.mark.asyncio
    async def test_pdf_source_rejected(self, pdf_file):
        with pytest.raises(UnsupportedOperationError):
            await ConvertToPdfTool().run({"path": str(pdf_file)})

    @pytest.mark.asyncio
    async def test_unknown_format(self, tmp_path):
        source = tmp_path / "data.xyz"
        source.write_bytes(b"\x00\x01")
        with pytest.raises(UnsupportedOperationError):
            await ConvertToPdfTool().run({"path": str(source)})


class TestConvertDocumentTool:

    @pytest.mark.asyncio
    async def test_pdf_to_txt(self, pdf_file):
        result = await ConvertDocumentTool().run({"path": str(pdf_file), "format": "txt"})
        text = pdf_file.with_suffix(".txt").read_text(encoding="utf-8")
        assert result["data"]["target_format"] == "txt"
        assert "Page 1 text" in text and "Page 3 text" in text

    @pytest.mark.asyncio
    async def test_pdf_to_docx(self, pdf_file):
        result = await ConvertDocumentTool().run({"path": str(pdf_file), "format": "docx"})
        assert result["data"]["page_count"] == 3
        assert paragraphs_of(pdf_file.with_suffix(".docx")) == ["Page 1 text", "Page 2 text", "Page 3 text"]

    @pytest.mark.asyncio
    async def test_eml_to_txt(self, eml_file, tmp_path):
        target = tmp_path / "mail.txt"
        await ConvertDocumentTool().run({"path": str(eml_file), "format": "txt", "output_path": str(target)})
        text = target.read_text(encoding="utf-8")
        assert text.startswith("Subject: Quarterly report")
        assert "Plain body text" in text

    @pytest.mark.asyncio
    async def test_unsupported_pair(self, eml_file):
        with pytest.raises(UnsupportedOperationError):
            await ConvertDocumentTool().run({"path": str(eml_file), "format": "docx"})

    @pytest.mark.asyncio
    async def test_format_enum(self, docx_file):
        with pytest.raises(ValidationError, match="format must be one of"):
            await ConvertDocumentTool().run({"path": str(docx_file), "format": "odt"})


# ============== Sessions ==============


class TestDocumentSessionTool:

    @pytest.mark.asyncio
    async def test_edit_through_session(self, session_store, docx_file):
        sessions = DocumentSessionTool(sessions=session_store)
        text = WordTextTool(sessions=session_store)

        opened = await sessions.run({"operation": "open", "path": str(docx_file)})
        session_id = opened["output"]["session_id"]
        assert opened["data"]["session"]["dirty"] is False

        await text.run({"operation": "add", "session_id": session_id, "text": "Added in session"})
        assert "Added in session" not in paragraphs_of(docx_file)

        status = await sessions.run({"operation": "status", "session_id": session_id})
        assert status["data"]["session"]["dirty"] is True

        closed = await sessions.run({"operation": "close", "session_id": session_id})
        assert closed["data"]["message"] == "Session closed, changes saved"
        assert paragraphs_of(docx_file)[-1] == "Added in session"

    @pytest.mark.asyncio
    async def test_list(self, session_store, docx_file, pdf_file):
        tool = DocumentSessionTool(sessions=session_store)
        await tool.run({"operation": "open", "path": str(docx_file)})
        await tool.run({"operation": "open", "path": str(pdf_file), "mode": "readonly"})
        listing = (await tool.run({"operation": "list"}))["data"]
        assert listing["count"] == 2
        assert {s["document_type"] for s in listing["sessions"]} == {"docx", "pdf"}

    @pytest.mark.asyncio
    async def test_readonly_session_rejects_writes(self, session_store, pdf_file):
        sessions = DocumentSessionTool(sessions=session_store)
        opened = await sessions.run({"operation": "open", "path": str(pdf_file), "mode": "readonly"})
        with pytest.raises(UnsupportedOperationError):
            await PdfPageTool(sessions=session_store).run({
                "operation": "rotate", "session_id": opened["output"]["session_id"],
            })

    @pytest.mark.asyncio
    async def test_unknown_session(self, session_store):
        with pytest.raises(ResourceNotFoundError):
            await DocumentSessionTool(sessions=session_store).run({"operation": "status", "session_id": "sess_missing"})

    @pytest.mark.asyncio
    async def test_sessions_disabled(self, docx_file):
        with pytest.raises(UnsupportedOperationError):
            await DocumentSessionTool().run({"operation": "open", "path": str(docx_file)})
