"""
Shared fixtures: configuration builders, small fake tools and sample
documents created on the fly.
"""

import asyncio
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Dict, List

import fitz
import pytest
from docx import Document
from pydantic import BaseModel

from aspose_mcp.base import AsposeTool, ToolParameter
from aspose_mcp.config import AppConfig, ServerConfig, SessionConfig, TransportConfig
from aspose_mcp.dispatcher import Dispatcher
from aspose_mcp.registry import discover
from aspose_mcp.session import DocumentSessionStore


def make_config(*categories: str, session: bool = False, debug: bool = False,
                temp_directory: str = None, mode: str = "http", **overrides) -> AppConfig:
    server = ServerConfig(**{name: True for name in categories}, debug=debug)
    session_config = SessionConfig(enabled=session)
    if temp_directory is not None:
        session_config = SessionConfig(enabled=session, temp_directory=temp_directory)
    overrides.setdefault("transport", TransportConfig(mode=mode))
    return AppConfig(server=server, session=session_config, **overrides)


# ============== Fake tools ==============


class EchoResult(BaseModel):
    path: str


class EchoTool(AsposeTool):
    output_models = (EchoResult,)

    @property
    def description(self) -> str:
        return "Echo the given path"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [ToolParameter(name="path", type="string", description="A path")]

    async def execute(self, path: str) -> Dict[str, Any]:
        return self.finalize(EchoResult(path=path))


class WordEchoTool(EchoTool):
    pass


class SlowTool(AsposeTool):
    """Sleeps before answering."""

    @property
    def description(self) -> str:
        return "Sleep then answer"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [ToolParameter(name="delay", type="number", description="Seconds", required=False, default=0)]

    async def execute(self, delay: float = 0) -> str:
        await asyncio.sleep(delay)
        return f"slept {delay}"


class FailingTool(AsposeTool):
    @property
    def description(self) -> str:
        return "Always fails"

    async def execute(self) -> Any:
        raise RuntimeError("boom while reading /srv/data/secret.docx")


class BrokenTool(AsposeTool):
    def __init__(self, sessions=None):
        raise RuntimeError("cannot construct")

    @property
    def description(self) -> str:
        return "Never instantiated"

    async def execute(self) -> Any:
        return None


class GetWidgetInfoTool(AsposeTool):
    @property
    def description(self) -> str:
        return "Read-only by name"

    async def execute(self) -> Any:
        return {}


TEST_CATALOG = (EchoTool, WordEchoTool, SlowTool, FailingTool, BrokenTool, GetWidgetInfoTool)


@pytest.fixture
def dispatcher() -> Dispatcher:
    registry = discover(make_config("word"), catalog=TEST_CATALOG)
    return Dispatcher(registry)


# ============== Sample documents ==============


@pytest.fixture
def docx_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.docx"
    document = Document()
    document.core_properties.title = "Sample"
    document.add_paragraph("Hello world")
    document.add_paragraph("Second paragraph")
    document.add_paragraph("Goodbye world")
    document.save(str(path))
    return path


@pytest.fixture
def pdf_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.pdf"
    doc = fitz.open()
    for number in range(1, 4):
        page = doc.new_page()
        page.insert_text((72, 72), f"Page {number} text")
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def eml_file(tmp_path: Path) -> Path:
    message = EmailMessage()
    message["Subject"] = "Quarterly report"
    message["From"] = "alice@example.com"
    message["To"] = "bob@example.com, carol@example.com"
    message.set_content("Plain body text")
    message.add_alternative("<p>HTML body</p>", subtype="html")
    message.add_attachment(b"attachment-bytes", maintype="application",
                           subtype="octet-stream", filename="data.bin")
    path = tmp_path / "message.eml"
    path.write_bytes(bytes(message))
    return path


@pytest.fixture
def session_store(tmp_path: Path) -> DocumentSessionStore:
    store = DocumentSessionStore(SessionConfig(enabled=True, max_sessions=2, temp_directory=str(tmp_path / "work")))
    yield store
    store.shutdown()
