"""
Tamino Request Builder

Builds Tamino HTTP requests: the same logical command is sent either as
a GET query string or as a multipart/form-data POST body.
"""

import base64
import logging
from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote_plus

from tamino_client.config import HTTP_METHOD_GET, HTTP_METHOD_POST, ClientConfig
from tamino_client.config import TRANSFER_ENCODING_BASE64, TRANSFER_ENCODING_BINARY
from tamino_client.exceptions import TaminoValidationError
from tamino_client.models import WireRequest
from tamino_client.state import CursorState, SessionState

logger = logging.getLogger("tamino.request")

# Command types
OP_ADMIN = "_admin"
OP_COMMIT = "_commit"
OP_CONNECT = "_connect"
OP_CURSOR = "_cursor"
OP_DEFINE = "_define"
OP_DELETE = "_delete"
OP_DIAGNOSE = "_diagnose"
OP_DISCONNECT = "_disconnect"
OP_PROCESS = "_process"
OP_ROLLBACK = "_rollback"
OP_UNDEFINE = "_undefine"
OP_XQL = "_xql"
OP_XQUERY = "_xquery"
OP_PLAIN_URL = "plainUrlAddressing"

# Command parameters
PARAM_HANDLE = "_handle"
PARAM_ISOLATION_LEVEL = "_isolationLevel"
PARAM_LOCK_MODE = "_lockMode"
PARAM_LOCK_WAIT = "_lockWait"
PARAM_MODE = "_mode"
PARAM_POSITION = "_position"
PARAM_QUANTITY = "_quantity"
PARAM_SCROLL = "_scroll"
PARAM_SENSITIVE = "_sensitive"

CURSOR_OPEN = "open"
CURSOR_FETCH = "fetch"
CURSOR_CLOSE = "close"

# Session headers
HEADER_SESSION_ID = "X-INO-Sessionid"
HEADER_SESSION_KEY = "X-INO-Sessionkey"

MULTIPART_BOUNDARY = "TaminoApiMultipartBoundary"
MULTIPART_BOUNDARY_START = f"--{MULTIPART_BOUNDARY}"
MULTIPART_BOUNDARY_END = f"--{MULTIPART_BOUNDARY}--"

DEFAULT_MEDIA_TYPE = "text/xml"

Field = Tuple[str, str]


def _config_fields(config: ClientConfig) -> List[Field]:
    """Transaction and define parameters, in wire order, skipping empty ones."""
    fields = [
        (PARAM_ISOLATION_LEVEL, config.isolation_level),
        (PARAM_LOCK_MODE, config.lock_mode),
        (PARAM_LOCK_WAIT, config.lock_wait),
        (PARAM_MODE, config.define_mode),
    ]
    return [(name, value) for name, value in fields if value]


def _query_string(fields: Sequence[Field]) -> str:
    return "".join(f"&{name}={quote_plus(str(value))}" for name, value in fields)


def _content_type(config: ClientConfig) -> str:
    content_type = config.media_type or DEFAULT_MEDIA_TYPE
    if config.encoding:
        content_type += f"; charset={config.encoding}"
    return content_type


def _body_encoding(config: ClientConfig) -> str:
    return config.encoding or "utf-8"


def _basic_auth(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class RequestBuilder:
    """
    Builds Tamino wire requests.

    All methods are static; state is passed in explicitly.
    """

    @staticmethod
    def resolve_method(config: ClientConfig, command: str) -> str:
        """Plain URL addressing is GET-only; everything else follows the config."""
        if config.http_method == HTTP_METHOD_POST and command != OP_PLAIN_URL:
            return HTTP_METHOD_POST
        return HTTP_METHOD_GET

    @staticmethod
    def build_path(config: ClientConfig, collection: str = "") -> str:
        path = config.database_path
        if collection:
            path += f"/{collection}"
        return path

    @staticmethod
    def build_headers(config: ClientConfig, session: SessionState, method: str) -> Dict[str, str]:
        """
        Build request headers.

        Args:
            config: Client configuration
            session: Current session state
            method: Resolved HTTP method

        Returns:
            Header mapping
        """
        headers = {}

        if session.sends_headers:
            if session.session_id is not None:
                headers[HEADER_SESSION_ID] = session.session_id
            if session.session_key is not None:
                headers[HEADER_SESSION_KEY] = session.session_key

        if method == HTTP_METHOD_GET:
            headers["Connection"] = "close"
            headers["Content-Type"] = _content_type(config)
        else:
            headers["Content-Type"] = f"multipart/form-data; boundary={MULTIPART_BOUNDARY}"

        if config.has_credentials:
            headers["Authorization"] = _basic_auth(config.username, config.password)

        if config.encoding:
            headers["Accept-Charset"] = config.encoding

        return headers

    @staticmethod
    def build_get_target(
        config: ClientConfig,
        command: str,
        value: str,
        collection: str = "",
        extra_fields: Sequence[Field] = (),
    ) -> str:
        """
        Build path and query string for a GET request.

        Returns:
            Request target, e.g. /tamino/db/coll?_xql=%2Fperson
        """
        target = RequestBuilder.build_path(config, collection)
        fields = list(extra_fields) + _config_fields(config)

        if command == OP_PLAIN_URL:
            target += f"/{value}"
            if fields:
                target += "?" + _query_string(fields)[1:]
            return target

        target += f"?{command}={quote_plus(value)}"
        target += _query_string(fields)
        return target

    @staticmethod
    def build_multipart_body(
        config: ClientConfig,
        command: str,
        value: str,
        extra_fields: Sequence[Field] = (),
    ) -> bytes:
        """
        Build multipart/form-data body for a POST request.

        The command part comes first and carries the content type; every
        further field gets its own part.

        Returns:
            Encoded body
        """
        parts = [
            MULTIPART_BOUNDARY_START,
            "\r\n",
            f'Content-Disposition: form-data; name="{command}"\r\n',
            f"Content-Type: {_content_type(config)}\r\n",
        ]

        if config.content_transfer_encoding == TRANSFER_ENCODING_BINARY:
            parts.append("content-transfer-encoding: binary\r\n")
        elif config.content_transfer_encoding == TRANSFER_ENCODING_BASE64:
            parts.append("content-transfer-encoding: base64\r\n")
            encoded = base64.b64encode(value.encode(_body_encoding(config)))
            value = encoded.decode("ascii")

        parts.append("\r\n")
        parts.append(value)

        for name, field_value in list(extra_fields) + _config_fields(config):
            parts.append("\r\n")
            parts.append(MULTIPART_BOUNDARY_START)
            parts.append("\r\n")
            parts.append(f'Content-Disposition: form-data; name="{name}"\r\n')
            parts.append("\r\n")
            parts.append(str(field_value))

        parts.append("\r\n")
        parts.append(MULTIPART_BOUNDARY_END)
        parts.append("\r\n")

        try:
            return "".join(parts).encode(_body_encoding(config))
        except UnicodeEncodeError as e:
            raise TaminoValidationError(f"The request can not be encoded as {config.encoding}: {e}")

    @staticmethod
    def build(
        config: ClientConfig,
        session: SessionState,
        command: str,
        value: str,
        collection: str = "",
        extra_fields: Sequence[Field] = (),
    ) -> WireRequest:
        """
        Build a wire request for one logical command.

        Args:
            config: Client configuration
            session: Current session state
            command: Command type, e.g. _xql
            value: Primary command value
            collection: Collection name ("" for database-level commands)
            extra_fields: Additional (name, value) fields, in wire order

        Returns:
            WireRequest

        Raises:
            TaminoValidationError: If the value is not a string
        """
        if not isinstance(value, str):
            raise TaminoValidationError(f"The value for {command} is not recognized", value)

        method = RequestBuilder.resolve_method(config, command)
        headers = RequestBuilder.build_headers(config, session, method)

        if method == HTTP_METHOD_GET:
            target = RequestBuilder.build_get_target(config, command, value, collection, extra_fields)
            request = WireRequest(method=method, target=target, headers=headers, command=command)
        else:
            target = RequestBuilder.build_path(config, collection)
            body = RequestBuilder.build_multipart_body(config, command, value, extra_fields)
            request = WireRequest(method=method, target=target, headers=headers, body=body, command=command)

        logger.debug(f"Built {method} {command} request for {target}")
        return request

    # =========================================================================
    # Cursor Fields
    # =========================================================================

    @staticmethod
    def cursor_open_fields(cursor: CursorState) -> List[Field]:
        """Fields that ask the next query to open a cursor."""
        if not cursor.is_pending:
            return []
        return [
            (OP_CURSOR, CURSOR_OPEN),
            (PARAM_SCROLL, cursor.scroll),
            (PARAM_SENSITIVE, cursor.sensitive),
        ]

    @staticmethod
    def cursor_fetch_fields(handle: str, position: int, quantity: int) -> List[Field]:
        return [
            (PARAM_POSITION, str(position)),
            (PARAM_QUANTITY, str(quantity)),
            (PARAM_HANDLE, handle),
        ]

    @staticmethod
    def cursor_close_fields(handle: str) -> List[Field]:
        return [(PARAM_HANDLE, handle)]


def describe(request: Optional[WireRequest]) -> str:
    """One-line summary of a request for logs; never includes headers."""
    if request is None:
        return "(none)"
    size = len(request.body) if request.body else 0
    return f"{request.method} {request.target} ({size} bytes)"
