"""
Tamino Session and Cursor State

Small state machines tracking the server-issued session tokens and
cursor handle between commands.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from tamino_client.exceptions import TaminoCursorError, TaminoSessionError
from tamino_client.models import CursorStatus, SessionStatus

logger = logging.getLogger("tamino.state")


@dataclass
class SessionState:
    """
    Server-side session tracked by the client.

    INACTIVE -> STARTING (start) -> ACTIVE (server accepted)
    STARTING -> INACTIVE (server refused)
    ACTIVE -> INACTIVE (end)
    """
    status: SessionStatus = SessionStatus.INACTIVE
    session_id: Optional[str] = None
    session_key: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SessionStatus.ACTIVE

    @property
    def sends_headers(self) -> bool:
        """Session headers travel while the session is opening or open."""
        return self.status in (SessionStatus.STARTING, SessionStatus.ACTIVE)

    def begin(self) -> None:
        if self.status != SessionStatus.INACTIVE:
            raise TaminoSessionError("The session can not be started inside another session")
        self.status = SessionStatus.STARTING
        self.session_id = None
        self.session_key = None

    def require_active(self, command: str) -> None:
        if not self.is_active:
            raise TaminoSessionError(f"The {command} command can not be executed without an active session")

    def capture(self, session_id: Optional[str], session_key: Optional[str]) -> None:
        """Remember tokens from a response; absent headers keep the old values."""
        if not self.sends_headers:
            return
        if session_id is not None:
            self.session_id = session_id
        if session_key is not None:
            self.session_key = session_key

    def confirm(self, accepted: bool) -> None:
        """Finish a start: ACTIVE if the server accepted, INACTIVE otherwise."""
        if accepted:
            self.status = SessionStatus.ACTIVE
            logger.info("Session started")
        else:
            self.reset()
            logger.info("Session start refused")

    def reset(self) -> None:
        self.status = SessionStatus.INACTIVE
        self.session_id = None
        self.session_key = None


@dataclass
class CursorState:
    """
    Server-side cursor tracked by the client.

    CLOSED -> PENDING_OPEN (open) -> OPEN (next query returned a handle)
    OPEN -> CLOSED (close)
    """
    status: CursorStatus = CursorStatus.CLOSED
    scroll: str = ""
    sensitive: str = ""
    handle: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status == CursorStatus.PENDING_OPEN

    def request_open(self, scroll: str, sensitive: str) -> None:
        self.status = CursorStatus.PENDING_OPEN
        self.scroll = scroll
        self.sensitive = sensitive
        self.handle = ""

    def opened(self, handle: Optional[str]) -> None:
        """Settle a pending open once the query has succeeded."""
        self.scroll = ""
        self.sensitive = ""
        if handle:
            self.status = CursorStatus.OPEN
            self.handle = handle
            logger.info(f"Cursor opened: {handle}")
        else:
            self.status = CursorStatus.CLOSED
            self.handle = ""
            logger.info("Query returned no cursor handle")

    def check_handle(self, handle) -> str:
        if self.status != CursorStatus.OPEN or handle != self.handle:
            raise TaminoCursorError(handle=handle)
        return handle

    def closed(self) -> None:
        logger.info(f"Cursor closed: {self.handle}")
        self.status = CursorStatus.CLOSED
        self.scroll = ""
        self.sensitive = ""
        self.handle = ""
