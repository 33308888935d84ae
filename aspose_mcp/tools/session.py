"""
Document Session Tool

Opens documents into server-side working copies so several edits can be
applied through ``session_id`` before saving.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..base import ToolParameter, UnsupportedOperationError
from ..session import SESSION_MODES, SessionInfo
from .common import OperationTool, require


class SessionResult(BaseModel):
    message: str
    session: Optional[SessionInfo] = None


class SessionList(BaseModel):
    count: int
    sessions: List[SessionInfo]


class DocumentSessionTool(OperationTool):
    """Manage document sessions."""

    operations = ("open", "save", "close", "list", "status")
    output_models = (SessionResult, SessionList)

    @property
    def description(self) -> str:
        return (
            "Document session management: open a document for editing across calls, "
            "save it, close it, list open sessions or get a session's status"
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            self.operation_parameter(),
            ToolParameter(name="path", type="string", description="Document to open", required=False),
            ToolParameter(name="session_id", type="string", description="Session id for save, close and status", required=False),
            ToolParameter(
                name="mode",
                type="string",
                description="Access mode for open",
                required=False,
                default="readwrite",
                enum=list(SESSION_MODES),
            ),
            ToolParameter(name="output_path", type="string", description="Save to this path instead of the original file", required=False),
            ToolParameter(name="discard", type="boolean", description="Close without writing unsaved changes", required=False, default=False),
        ]

    @property
    def store(self):
        if self.sessions is None:
            raise UnsupportedOperationError("Document sessions are not enabled", tool_name=self.name)
        return self.sessions

    def _open(self, path=None, mode="readwrite", **_) -> Dict[str, Any]:
        session = self.store.open(require(path, "path"), mode or "readwrite")
        return self.finalize(
            SessionResult(message="Document opened", session=session.info()),
            session_id=session.session_id,
        )

    def _save(self, session_id=None, output_path=None, **_) -> Dict[str, Any]:
        require(session_id, "session_id")
        target = self.store.save(session_id, output_path)
        return self.finalize(
            SessionResult(message="Document saved", session=self.store.status(session_id)),
            output_path=str(target),
            session_id=session_id,
        )

    def _close(self, session_id=None, discard=False, **_) -> Dict[str, Any]:
        require(session_id, "session_id")
        saved = self.store.close(session_id, discard=bool(discard))
        message = "Session closed, changes saved" if saved else "Session closed"
        return self.finalize(SessionResult(message=message), session_id=session_id)

    def _list(self, **_) -> Dict[str, Any]:
        sessions = self.store.list()
        return self.finalize(SessionList(count=len(sessions), sessions=sessions))

    def _status(self, session_id=None, **_) -> Dict[str, Any]:
        require(session_id, "session_id")
        info = self.store.status(session_id)
        return self.finalize(SessionResult(message="Session active", session=info), session_id=session_id)
