"""
Tamino Client

A Python client for the Software AG Tamino XML Server HTTP interface.
Supports schema, document, query, session and cursor commands over
GET or multipart POST.
"""

__version__ = "1.0.0"

from tamino_client.client import TaminoClient
from tamino_client.config import ClientConfig
from tamino_client.models import (
    CursorStatus,
    ErrorKind,
    Outcome,
    RawResponse,
    ResponseHeaders,
    ServerMessage,
    SessionStatus,
    WireRequest,
)
from tamino_client.request_builder import RequestBuilder
from tamino_client.response_parser import ParsedResponse
from tamino_client.transport import HTTPTransport
from tamino_client.exceptions import (
    TaminoError,
    TaminoValidationError,
    TaminoSessionError,
    TaminoCursorError,
    TaminoTransportError,
    TaminoProtocolError,
    TaminoServerMessageError,
    TaminoXMLError,
)

__all__ = [
    # Client
    "TaminoClient",
    "ClientConfig",
    "HTTPTransport",
    "RequestBuilder",
    "ParsedResponse",
    # Models
    "CursorStatus",
    "ErrorKind",
    "Outcome",
    "RawResponse",
    "ResponseHeaders",
    "ServerMessage",
    "SessionStatus",
    "WireRequest",
    # Exceptions
    "TaminoError",
    "TaminoValidationError",
    "TaminoSessionError",
    "TaminoCursorError",
    "TaminoTransportError",
    "TaminoProtocolError",
    "TaminoServerMessageError",
    "TaminoXMLError",
]
