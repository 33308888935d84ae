"""
Email Tools

Reads .eml messages with the standard library ``email`` package.
"""

from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..base import ToolParameter
from ..naming import ToolAnnotations
from .common import OperationTool, document_parameters


class EmailAttachment(BaseModel):
    filename: Optional[str] = None
    content_type: str
    size_bytes: int


class EmailInfo(BaseModel):
    subject: Optional[str] = None
    sender: Optional[str] = None
    to: List[str] = []
    cc: List[str] = []
    date: Optional[str] = None
    attachments: List[EmailAttachment] = []


class EmailBody(BaseModel):
    format: str
    body: str


def read_message(path: Path) -> EmailMessage:
    with open(path, "rb") as f:
        return BytesParser(policy=policy.default).parse(f)


def _header(message: EmailMessage, name: str) -> Optional[str]:
    value = message.get(name)
    return str(value) if value is not None else None


def _addresses(message: EmailMessage, header: str) -> List[str]:
    value = message.get(header)
    if value is None:
        return []
    return [str(address) for address in getattr(value, "addresses", ())] or [str(value)]


def message_body(message: EmailMessage, prefer_html: bool = False) -> EmailBody:
    """Plain text body, falling back to HTML (or the reverse when asked)."""
    order = ("html", "plain") if prefer_html else ("plain", "html")
    part = message.get_body(preferencelist=order)
    if part is None:
        return EmailBody(format="none", body="")
    return EmailBody(format=part.get_content_subtype(), body=part.get_content())


class EmailContentTool(OperationTool):
    """Inspect an email message."""

    operations = ("get_info", "get_body")
    annotations = ToolAnnotations(readonly=True)
    output_models = (EmailInfo, EmailBody)

    @property
    def description(self) -> str:
        return "Email content operations: get headers and attachments, or get the message body of an .eml file"

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            *document_parameters(),
            ToolParameter(
                name="prefer_html",
                type="boolean",
                description="Return the HTML body when both plain and HTML parts exist",
                required=False,
                default=False,
            ),
        ]

    def _get_info(self, path=None, session_id=None, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        message = read_message(source)

        attachments = []
        for part in message.iter_attachments():
            payload = part.get_payload(decode=True) or b""
            attachments.append(
                EmailAttachment(
                    filename=part.get_filename(),
                    content_type=part.get_content_type(),
                    size_bytes=len(payload),
                )
            )

        info = EmailInfo(
            subject=_header(message, "subject"),
            sender=_header(message, "from"),
            to=_addresses(message, "to"),
            cc=_addresses(message, "cc"),
            date=_header(message, "date"),
            attachments=attachments,
        )
        return self.finalize(info, session_id=session_id)

    def _get_body(self, path=None, session_id=None, prefer_html=False, **_) -> Dict[str, Any]:
        source, session_id = self.open_target(path, session_id)
        body = message_body(read_message(source), prefer_html=bool(prefer_html))
        return self.finalize(body, session_id=session_id)
