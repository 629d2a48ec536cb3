"""
Tamino Client Exceptions

Custom exception hierarchy for Tamino operations.
"""

from typing import Sequence


class TaminoError(Exception):
    """Base Tamino exception."""

    def __init__(self, message: str, code: int = None):
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class TaminoValidationError(TaminoError):
    """Input rejected before anything was sent to the server."""

    def __init__(self, message: str = "Validation error", value=None):
        if value is not None:
            message = f'{message}: "{value}"'
        super().__init__(message)
        self.value = value


class TaminoTransportError(TaminoError):
    """Connection to the Tamino server failed."""

    def __init__(self, message: str = "Connection failed"):
        super().__init__(message)


class TaminoXMLError(TaminoError):
    """Response body is not well-formed XML."""

    def __init__(self, message: str = "XML error"):
        super().__init__(message)


class TaminoProtocolError(TaminoError):
    """Server answered with an unexpected HTTP status or headers."""

    def __init__(self, message: str, http_status: int = None):
        super().__init__(message)
        self.http_status = http_status

    def __str__(self):
        if self.http_status:
            return f"HTTP {self.http_status}: {self.message}"
        return self.message


class TaminoServerMessageError(TaminoError):
    """Server reported a non-zero return value."""

    def __init__(self, message: str, code: int, messages: Sequence = (), line: str = None):
        super().__init__(message, code)
        self.messages = tuple(messages)
        self.line = line

    def __str__(self):
        base = f"[{self.code}] {self.message}"
        if self.line:
            base += f" - {self.line}"
        return base


class TaminoSessionError(TaminoValidationError):
    """Session command issued in the wrong session state."""

    def __init__(self, message: str = "Session error"):
        super().__init__(message)


class TaminoCursorError(TaminoValidationError):
    """Cursor command issued with an unknown handle."""

    def __init__(self, message: str = "The Cursor handle is not recognized", handle: str = None):
        super().__init__(message, handle)
        self.handle = handle
