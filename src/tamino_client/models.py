"""
Tamino Client Models

Data classes for Tamino requests, responses and command outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from tamino_client.exceptions import (
    TaminoProtocolError,
    TaminoServerMessageError,
    TaminoTransportError,
)

if TYPE_CHECKING:
    from tamino_client.response_parser import ParsedResponse


# =============================================================================
# State Enums
# =============================================================================

class SessionStatus(Enum):
    """Lifecycle of a server-side session."""
    INACTIVE = "inactive"
    STARTING = "starting"
    ACTIVE = "active"


class CursorStatus(Enum):
    """Lifecycle of a server-side cursor."""
    CLOSED = "closed"
    PENDING_OPEN = "pending_open"
    OPEN = "open"


class ErrorKind(Enum):
    """Why a command failed."""
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    SERVER_MESSAGE = "server_message"


# =============================================================================
# Wire Models
# =============================================================================

@dataclass
class WireRequest:
    """A fully shaped HTTP request, ready for the transport."""
    method: str  # GET or POST
    target: str  # path plus query string
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    command: str = ""


@dataclass
class RawResponse:
    """What came back from one HTTP call."""
    http_status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    transport_error: bool = False
    error_message: Optional[str] = None

    @classmethod
    def from_transport_error(cls, message: str) -> "RawResponse":
        """Sentinel response for a call that never reached the server."""
        return cls(http_status=404, transport_error=True, error_message=message)


# =============================================================================
# Response Models
# =============================================================================

@dataclass(frozen=True)
class ServerMessage:
    """An <ino:message> embedded in a response body."""
    return_value: int
    text: str = ""
    line: str = ""


@dataclass(frozen=True)
class ResponseHeaders:
    """Known X-INO headers of a Tamino response."""
    server_name: Optional[str] = None
    message_text: Optional[str] = None
    reason: Optional[str] = None
    return_value: Optional[int] = None
    response_wrapper: Optional[str] = None
    server_version: Optional[str] = None
    session_id: Optional[str] = None
    session_key: Optional[str] = None


@dataclass
class Outcome:
    """Result of one client command."""
    success: bool
    http_status: int
    error_kind: Optional[ErrorKind] = None
    error_detail: Optional[str] = None
    transport_error: bool = False
    response: Optional["ParsedResponse"] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def return_value(self) -> Optional[int]:
        """Numeric X-INO-returnvalue header, if the server sent one."""
        if self.response is None:
            return None
        return self.response.headers.return_value

    @property
    def messages(self) -> Tuple[ServerMessage, ...]:
        """Up to two server messages parsed from the body."""
        if self.response is None:
            return ()
        return self.response.messages

    @property
    def result(self):
        """The <result> element of the response, or None."""
        if self.response is None:
            return None
        return self.response.result

    def raise_for_status(self) -> "Outcome":
        """
        Raise the matching exception if the command failed.

        Returns:
            The outcome itself when successful

        Raises:
            TaminoTransportError: If the server was not reached
            TaminoProtocolError: If the HTTP exchange was not usable
            TaminoServerMessageError: If the server reported an error
        """
        if self.success:
            return self

        detail = self.error_detail or "Command failed"

        if self.error_kind == ErrorKind.TRANSPORT:
            raise TaminoTransportError(detail)

        if self.error_kind == ErrorKind.SERVER_MESSAGE:
            messages = self.messages
            code = self.return_value
            line = None
            for message in messages:
                if message.return_value > 0:
                    code = message.return_value
                    detail = message.text or detail
                    line = message.line or None
                    break
            raise TaminoServerMessageError(detail, code, messages, line)

        raise TaminoProtocolError(detail, self.http_status)


def error_codes(messages: List[ServerMessage]) -> List[int]:
    """Return values of the messages that report an error."""
    return [m.return_value for m in messages if m.return_value > 0]
