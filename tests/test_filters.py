"""
Unit tests for the capability filter.
"""

import pytest

from aspose_mcp.config import ServerConfig, SessionConfig
from aspose_mcp.filters import ToolFilter


def tool_filter(*categories, session=False) -> ToolFilter:
    return ToolFilter(
        ServerConfig(**{name: True for name in categories}),
        SessionConfig(enabled=session),
    )


class TestCategoryPrefixes:

    @pytest.mark.parametrize("category", ["word", "excel", "ppt", "pdf", "ocr", "email", "barcode"])
    def test_prefix_follows_flag(self, category):
        name = f"{category}_something"
        assert tool_filter(category).is_tool_enabled(name) is True
        assert tool_filter().is_tool_enabled(name) is False

    def test_case_insensitive(self):
        assert tool_filter("word").is_tool_enabled("WORD_Text") is True
        assert tool_filter("pdf").is_tool_enabled("Word_Text") is False

    def test_empty_name_disabled(self):
        f = tool_filter("word", "pdf")
        assert f.is_tool_enabled("") is False
        assert f.is_tool_enabled(None) is False

    def test_unknown_names_enabled(self):
        assert tool_filter().is_tool_enabled("echo") is True


class TestUniversalTools:

    def test_convert_to_pdf_needs_a_producer(self):
        assert tool_filter("word").is_tool_enabled("convert_to_pdf") is True
        assert tool_filter("excel").is_tool_enabled("convert_to_pdf") is True
        assert tool_filter("ppt").is_tool_enabled("convert_to_pdf") is True
        assert tool_filter("pdf").is_tool_enabled("convert_to_pdf") is False
        assert tool_filter("email").is_tool_enabled("convert_to_pdf") is False

    def test_convert_document_needs_two_categories(self):
        assert tool_filter("word").is_tool_enabled("convert_document") is False
        assert tool_filter("word", "pdf").is_tool_enabled("convert_document") is True
        assert tool_filter("pdf", "email").is_tool_enabled("convert_document") is True
        assert tool_filter("word", "ocr").is_tool_enabled("convert_document") is False

    def test_document_session_follows_session_flag(self):
        assert tool_filter("word").is_tool_enabled("document_session") is False
        assert tool_filter(session=True).is_tool_enabled("document_session") is True

    def test_deterministic(self):
        f = tool_filter("word", "pdf")
        results = {f.is_tool_enabled("convert_document") for _ in range(10)}
        assert results == {True}


class TestEnabledCategories:

    def test_summary(self):
        assert tool_filter("pdf", "word").enabled_categories() == "Word, PDF"

    def test_none(self):
        assert tool_filter().enabled_categories() == "None"
