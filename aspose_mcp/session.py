"""
Document session store.

A session is a working copy of a document held in a temp directory so that
several tool calls can edit it before it is saved back. Sessions belong to
the caller's group (taken from the request context); another group's session
id behaves exactly like an unknown one.
"""

import logging
import shutil
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from .base import ResourceNotFoundError, UnsupportedOperationError, ValidationError
from .config import SessionConfig
from .context import get_request_context

logger = logging.getLogger(__name__)

SESSION_MODES = ("readonly", "readwrite")


def new_session_id() -> str:
    return f"sess_{uuid.uuid4().hex}"[:24]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def current_group() -> Optional[str]:
    context = get_request_context()
    return context.group_id if context is not None else None


class SessionInfo(BaseModel):
    """Caller-visible view of a session."""
    session_id: str
    document_type: str
    path: str
    mode: str
    dirty: bool
    opened_at: datetime
    last_accessed_at: datetime
    file_size_bytes: int


@dataclass
class DocumentSession:
    session_id: str
    original_path: Path
    working_path: Path
    mode: str
    group_id: Optional[str]
    opened_at: datetime = field(default_factory=_now)
    last_accessed_at: datetime = field(default_factory=_now)
    dirty: bool = False

    @property
    def document_type(self) -> str:
        return self.original_path.suffix.lstrip(".").lower() or "unknown"

    def touch(self) -> None:
        self.last_accessed_at = _now()

    def info(self) -> SessionInfo:
        size = self.working_path.stat().st_size if self.working_path.exists() else 0
        return SessionInfo(
            session_id=self.session_id,
            document_type=self.document_type,
            path=self.original_path.name,
            mode=self.mode,
            dirty=self.dirty,
            opened_at=self.opened_at,
            last_accessed_at=self.last_accessed_at,
            file_size_bytes=size,
        )


class DocumentSessionStore:
    """In-memory map of session id to working copy, guarded by a lock."""

    def __init__(self, config: SessionConfig):
        self.config = config
        self.root = Path(config.temp_directory) / f"aspose-mcp-{uuid.uuid4().hex[:8]}"
        self._sessions: Dict[str, DocumentSession] = {}
        self._lock = threading.Lock()

    @property
    def max_file_size_bytes(self) -> int:
        return self.config.max_file_size_mb * 1024 * 1024

    def open(self, path: str, mode: str = "readwrite") -> DocumentSession:
        if mode not in SESSION_MODES:
            raise ValidationError(f"Invalid mode: '{mode}'. Must be 'readonly' or 'readwrite'.")

        source = Path(path)
        if not source.is_file():
            raise ResourceNotFoundError(f"File not found: {path}")
        if source.stat().st_size > self.max_file_size_bytes:
            raise ValidationError(
                f"File exceeds the session size limit of {self.config.max_file_size_mb} MB"
            )

        group_id = current_group()
        session_id = new_session_id()
        working_path = self.root / session_id / source.name

        with self._lock:
            owned = [s for s in self._sessions.values() if s.group_id == group_id]
            if len(owned) >= self.config.max_sessions:
                raise ValidationError(
                    f"Maximum session limit ({self.config.max_sessions}) reached for this user"
                )
            working_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, working_path)
            session = DocumentSession(
                session_id=session_id,
                original_path=source.resolve(),
                working_path=working_path,
                mode=mode,
                group_id=group_id,
            )
            self._sessions[session_id] = session

        logger.info(f"Opened session {session_id} ({session.document_type}, {mode})")
        return session

    def get(self, session_id: str) -> DocumentSession:
        """Look up a session owned by the caller's group."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.group_id != current_group():
                raise ResourceNotFoundError(f"Session not found: {session_id}")
            session.touch()
            return session

    def mark_dirty(self, session_id: str) -> None:
        session = self.get(session_id)
        if session.mode == "readonly":
            raise UnsupportedOperationError("Cannot modify a readonly session")
        with self._lock:
            session.dirty = True

    def save(self, session_id: str, output_path: Optional[str] = None) -> Path:
        session = self.get(session_id)
        if session.mode == "readonly":
            raise UnsupportedOperationError("Cannot save a readonly session")

        target = Path(output_path) if output_path else session.original_path
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(session.working_path, target)
        if target == session.original_path:
            with self._lock:
                session.dirty = False
        logger.info(f"Saved session {session_id}")
        return target

    def close(self, session_id: str, discard: bool = False) -> bool:
        """Close a session; unsaved changes are written back unless discarded."""
        session = self.get(session_id)
        with self._lock:
            dirty = session.dirty
        saved = False
        if dirty and not discard:
            self.save(session_id)
            saved = True

        with self._lock:
            self._sessions.pop(session_id, None)
        shutil.rmtree(session.working_path.parent, ignore_errors=True)
        logger.info(f"Closed session {session_id} (saved={saved})")
        return saved

    def list(self) -> List[SessionInfo]:
        group_id = current_group()
        with self._lock:
            return [s.info() for s in self._sessions.values() if s.group_id == group_id]

    def status(self, session_id: str) -> SessionInfo:
        session = self.get(session_id)
        with self._lock:
            return session.info()

    def resolve_document(
        self,
        path: Optional[str],
        session_id: Optional[str],
        require_writable: bool = False,
    ) -> Tuple[Path, Optional[str]]:
        """Resolve the file a tool should operate on."""
        if session_id:
            session = self.get(session_id)
            if require_writable:
                self.mark_dirty(session_id)
            return session.working_path, session.session_id
        return resolve_path(path), None

    def shutdown(self) -> None:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        shutil.rmtree(self.root, ignore_errors=True)
        if count:
            logger.info(f"Discarded {count} open session(s) on shutdown")


def resolve_path(path: Optional[str]) -> Path:
    if not path:
        raise ValidationError("path is required")
    return Path(path)


def resolve_document(
    sessions: Optional[DocumentSessionStore],
    path: Optional[str],
    session_id: Optional[str] = None,
    require_writable: bool = False,
) -> Tuple[Path, Optional[str]]:
    """Resolve a ``path`` or ``session_id`` argument pair to a working file."""
    if session_id:
        if sessions is None:
            raise UnsupportedOperationError("Document sessions are not enabled")
        return sessions.resolve_document(path, session_id, require_writable)
    return resolve_path(path), None
