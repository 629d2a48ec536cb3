"""
Tamino Client

High-level client for the Tamino XML Server HTTP interface.
"""

import logging
import threading
from functools import wraps
from typing import Dict, Optional, Sequence, Tuple

from tamino_client.config import (
    DEFAULT_ENCODING,
    DEFAULT_PORT,
    HTTP_METHOD_GET,
    TRANSFER_ENCODINGS,
    ClientConfig,
    validate_define_mode,
    validate_encoding,
    validate_http_method,
    validate_string,
)
from tamino_client.exceptions import TaminoTransportError, TaminoValidationError
from tamino_client.models import (
    CursorStatus,
    Outcome,
    RawResponse,
    ServerMessage,
    SessionStatus,
    WireRequest,
)
from tamino_client.request_builder import (
    CURSOR_CLOSE,
    CURSOR_FETCH,
    OP_ADMIN,
    OP_COMMIT,
    OP_CONNECT,
    OP_CURSOR,
    OP_DEFINE,
    OP_DELETE,
    OP_DIAGNOSE,
    OP_DISCONNECT,
    OP_PLAIN_URL,
    OP_PROCESS,
    OP_ROLLBACK,
    OP_UNDEFINE,
    OP_XQL,
    OP_XQUERY,
    RequestBuilder,
    describe,
)
from tamino_client.response_parser import ParsedResponse, evaluate
from tamino_client.state import CursorState, SessionState
from tamino_client.transport import HTTPTransport

logger = logging.getLogger("tamino.client")

# Value sent with session-level commands
SESSION_COMMAND_VALUE = "*"


def locked(method):
    """Run a client method while holding the client's lock."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class TaminoClient:
    """
    Client for one Tamino database.

    Provides the Tamino HTTP commands:
    - Schema: define, undefine
    - Documents: process, delete, query (XQL), xquery, plain URL addressing
    - Server: admin, diagnose
    - Session: start_session, end_session, commit, rollback
    - Cursor: open_cursor, fetch_cursor, close_cursor

    Every command returns an Outcome; the parsed response of the last
    command stays available through the accessors until the next one.

    A client holds session, cursor and response state between calls.
    Each call runs under an internal lock, but a client should still be
    used for one logical session at a time.

    Example:
        with TaminoClient("localhost", "welcome_4_4_1", port=8080) as client:
            client.set_collection("people")

            if client.query('/person[firstName="Jo"]'):
                print(client.response.result_xml())
            else:
                for message in client.messages:
                    print(message.return_value, message.text)
    """

    def __init__(
        self,
        host: str,
        database: str,
        port: int = DEFAULT_PORT,
        username: str = "",
        password: str = "",
        collection: str = "",
        encoding: str = DEFAULT_ENCODING,
        http_method: str = HTTP_METHOD_GET,
        timeout: float = None,
        scheme: str = "http",
        transport=None,
    ):
        """
        Initialize Tamino client.

        No request is sent until the first command.

        Args:
            host: Tamino web server hostname
            database: Database name (e.g. welcome_4_4_1)
            port: Web server port
            username: User for basic authentication
            password: Password for basic authentication
            collection: Default collection for document commands
            encoding: Character set of requests and accepted responses
            http_method: GET or POST
            timeout: Seconds to wait for each response (None blocks)
            scheme: http or https
            transport: Object with send(WireRequest) -> RawResponse and
                close(); defaults to an HTTPTransport
        """
        config = ClientConfig(
            host=host,
            database=database,
            port=port,
            username=username,
            password=password,
            collection=collection,
            encoding=encoding,
            http_method=http_method,
            timeout=timeout,
            scheme=scheme,
        )
        self._init_state(config, transport)

    @classmethod
    def from_config(cls, config: ClientConfig, transport=None) -> "TaminoClient":
        """Create a client from a prepared ClientConfig."""
        client = cls.__new__(cls)
        client._init_state(config, transport)
        return client

    def _init_state(self, config: ClientConfig, transport) -> None:
        self._config = config
        self._transport = transport or HTTPTransport(config.base_url, timeout=config.timeout)
        self._session = SessionState()
        self._cursor = CursorState()
        self._response: Optional[ParsedResponse] = None
        self._last_request: Optional[WireRequest] = None
        self._lock = threading.RLock()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False

    def close(self) -> None:
        """End an active session and release the transport."""
        if self._session.is_active:
            outcome = self.end_session()
            if not outcome:
                logger.warning(f"Ending session failed during close: {outcome.error_detail}")
        self._transport.close()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def session_status(self) -> SessionStatus:
        return self._session.status

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id

    @property
    def session_key(self) -> Optional[str]:
        return self._session.session_key

    @property
    def cursor_status(self) -> CursorStatus:
        return self._cursor.status

    @property
    def cursor_handle(self) -> Optional[str]:
        """Handle of the open cursor, None if no cursor is open."""
        return self._cursor.handle or None

    @property
    def last_request(self) -> Optional[WireRequest]:
        return self._last_request

    # =========================================================================
    # Response Accessors
    # =========================================================================

    @property
    def response(self) -> Optional[ParsedResponse]:
        """Parsed response of the last command."""
        return self._response

    @property
    def http_status(self) -> Optional[int]:
        return self._response.http_status if self._response else None

    @property
    def full_result_body(self) -> Optional[bytes]:
        return self._response.body if self._response else None

    @property
    def full_result_headers(self) -> Dict[str, str]:
        return dict(self._response.raw.headers) if self._response else {}

    @property
    def document(self):
        """Root element of the last response body, parsing it if needed."""
        return self._response.document if self._response else None

    @property
    def root_node(self):
        """Root element, only if the body has already been parsed."""
        if self._response is None or not self._response.is_parsed:
            return None
        return self._response.document

    @property
    def is_document_parsed(self) -> bool:
        return self._response is not None and self._response.is_parsed

    @property
    def result_node(self):
        """The <result> element of the last response, or None."""
        return self._response.result if self._response else None

    @property
    def messages(self) -> Tuple[ServerMessage, ...]:
        return self._response.messages if self._response else ()

    def message(self, index: int) -> Optional[ServerMessage]:
        """Server message 1 or 2 of the last response."""
        return self._response.message(index) if self._response else None

    @property
    def header_server_name(self) -> Optional[str]:
        return self._response.headers.server_name if self._response else None

    @property
    def header_message_text(self) -> Optional[str]:
        return self._response.headers.message_text if self._response else None

    @property
    def header_reason(self) -> Optional[str]:
        return self._response.headers.reason if self._response else None

    @property
    def header_return_value(self):
        """Numeric return value, else the response wrapper, else None."""
        if self._response is None:
            return None
        headers = self._response.headers
        if headers.return_value is not None:
            return headers.return_value
        return headers.response_wrapper

    @property
    def server_version(self) -> Optional[str]:
        return self._response.headers.server_version if self._response else None

    # =========================================================================
    # Setters
    # =========================================================================

    @locked
    def set_collection(self, collection: str) -> None:
        self._config.collection = validate_string(collection, "Collection")

    @locked
    def set_encoding(self, encoding: str) -> None:
        self._config.encoding = validate_encoding(encoding)

    @locked
    def set_http_request_method(self, method: str) -> None:
        self._config.http_method = validate_http_method(method)

    @locked
    def set_media_type(self, media_type: str) -> None:
        self._config.media_type = validate_string(media_type or "", "Media type")

    @locked
    def set_content_transfer_encoding(self, encoding: Optional[str]) -> None:
        """binary or base64; None switches the header off again."""
        if encoding is None:
            self._config.content_transfer_encoding = ""
            return
        if encoding not in TRANSFER_ENCODINGS:
            raise TaminoValidationError("The Transfer encoding is not recognized", encoding)
        self._config.content_transfer_encoding = encoding

    @locked
    def set_define_mode(self, mode: str) -> None:
        self._config.define_mode = validate_define_mode(mode)

    @locked
    def set_isolation_level(self, level: str) -> None:
        self._config.isolation_level = validate_string(level or "", "Isolation level")

    @locked
    def set_lock_mode(self, mode: str) -> None:
        self._config.lock_mode = validate_string(mode or "", "Lock mode")

    @locked
    def set_lock_wait(self, wait: str) -> None:
        self._config.lock_wait = validate_string(wait or "", "Lock wait")

    @locked
    def set_username(self, username: str) -> None:
        self._config.username = validate_string(username, "User name")

    @locked
    def set_password(self, password: str) -> None:
        self._config.password = validate_string(password, "Password")

    @locked
    def set_timeout(self, timeout: Optional[float]) -> None:
        if timeout is not None and (isinstance(timeout, bool) or timeout <= 0):
            raise TaminoValidationError("The Timeout is not recognized", timeout)
        self._config.timeout = timeout
        if isinstance(self._transport, HTTPTransport):
            self._transport.timeout = timeout

    # =========================================================================
    # Request Execution
    # =========================================================================

    def _execute(
        self,
        command: str,
        value: str,
        collection: str = None,
        extra_fields: Sequence[Tuple[str, str]] = (),
        check_headers: bool = True,
    ) -> Outcome:
        """
        Build, send and evaluate one command.

        Args:
            command: Command type
            value: Primary command value
            collection: Collection (None for the configured one)
            extra_fields: Additional fields in wire order
            check_headers: Whether X-INO headers decide success

        Returns:
            Outcome of the command

        Raises:
            TaminoValidationError: If the request can not be built
        """
        if collection is None:
            collection = self._config.collection

        request = RequestBuilder.build(
            self._config,
            self._session,
            command,
            value,
            collection=collection,
            extra_fields=extra_fields,
        )

        if self._response is not None:
            self._response.invalidate()
        self._response = None
        self._last_request = request

        try:
            raw = self._transport.send(request)
        except TaminoTransportError as e:
            logger.warning(f"{command} failed: {e}")
            raw = RawResponse.from_transport_error(str(e))

        response = ParsedResponse(raw)
        self._response = response

        if not raw.transport_error:
            self._session.capture(response.headers.session_id, response.headers.session_key)

        outcome = evaluate(response, check_headers=check_headers)
        if outcome:
            logger.debug(f"{command} succeeded: {describe(request)}")
        else:
            logger.debug(f"{command} failed ({outcome.http_status}): {outcome.error_detail}")
        return outcome

    # =========================================================================
    # Schema Commands
    # =========================================================================

    @locked
    def define(self, schema: str) -> Outcome:
        """
        Define a schema (_define), honouring the configured define mode.

        Args:
            schema: Schema document

        Returns:
            Outcome

        Raises:
            TaminoValidationError: If schema is not a string
        """
        validate_string(schema, "Schema")
        return self._execute(OP_DEFINE, schema)

    @locked
    def undefine(self, name: str) -> Outcome:
        """Undefine a schema or doctype (_undefine)."""
        validate_string(name, "Schema")
        return self._execute(OP_UNDEFINE, name)

    # =========================================================================
    # Document Commands
    # =========================================================================

    @locked
    def process(self, data: str) -> Outcome:
        """Store documents in the current collection (_process)."""
        validate_string(data, "Document")
        return self._execute(OP_PROCESS, data)

    @locked
    def delete(self, query: str) -> Outcome:
        """Delete the documents matched by an XQL query (_delete)."""
        validate_string(query, "Request")
        return self._execute(OP_DELETE, query)

    @locked
    def query(self, query: str) -> Outcome:
        """
        Run an XQL query (_xql).

        If open_cursor() was called, the query also opens the cursor and
        its handle is captured on success.
        """
        validate_string(query, "X-Query")
        return self._run_query(OP_XQL, query)

    @locked
    def xquery(self, query: str) -> Outcome:
        """Run an XQuery (_xquery); opens a pending cursor like query()."""
        validate_string(query, "XQuery")
        return self._run_query(OP_XQUERY, query)

    def _run_query(self, command: str, query: str) -> Outcome:
        opening = self._cursor.is_pending
        fields = RequestBuilder.cursor_open_fields(self._cursor)

        outcome = self._execute(command, query, extra_fields=fields)

        if opening and outcome.success:
            self._cursor.opened(outcome.response.cursor_handle)
        return outcome

    @locked
    def plain_url_addressing(self, path: str) -> Outcome:
        """
        Fetch a document by path (always GET).

        Success is the HTTP status alone; Tamino sends no X-INO status
        headers for plain URL requests.
        """
        validate_string(path, "Query")
        return self._execute(OP_PLAIN_URL, path, check_headers=False)

    # =========================================================================
    # Server Commands
    # =========================================================================

    @locked
    def admin(self, call: str) -> Outcome:
        """Run an administration function (_admin)."""
        validate_string(call, "Admin call")
        return self._execute(OP_ADMIN, call)

    @locked
    def diagnose(self, name: str) -> Outcome:
        """Run a diagnostic function (_diagnose)."""
        validate_string(name, "Diagnose function")
        return self._execute(OP_DIAGNOSE, name)

    # =========================================================================
    # Session Commands
    # =========================================================================

    @locked
    def start_session(self) -> Outcome:
        """
        Start a session (_connect).

        Returns:
            Outcome; on success the session is ACTIVE

        Raises:
            TaminoSessionError: If a session is already open
        """
        self._session.begin()
        try:
            outcome = self._execute(OP_CONNECT, SESSION_COMMAND_VALUE, collection="")
        except TaminoValidationError:
            self._session.reset()
            raise

        self._session.confirm(outcome.success)
        return outcome

    @locked
    def end_session(self) -> Outcome:
        """
        End the session (_disconnect).

        Raises:
            TaminoSessionError: If no session is active
        """
        self._session.require_active("Disconnect")
        outcome = self._execute(OP_DISCONNECT, SESSION_COMMAND_VALUE, collection="")
        if outcome.success:
            self._session.reset()
            logger.info("Session ended")
        return outcome

    @locked
    def commit(self) -> Outcome:
        """Commit the session's work (_commit)."""
        self._session.require_active("Commit")
        return self._execute(OP_COMMIT, SESSION_COMMAND_VALUE, collection="")

    @locked
    def rollback(self) -> Outcome:
        """Roll back the session's work (_rollback)."""
        self._session.require_active("Rollback")
        return self._execute(OP_ROLLBACK, SESSION_COMMAND_VALUE, collection="")

    # =========================================================================
    # Cursor Commands
    # =========================================================================

    @locked
    def open_cursor(self, scroll: str = "yes", sensitive: str = "no") -> None:
        """
        Ask the next query()/xquery() to open a cursor.

        Sends nothing by itself.
        """
        validate_string(scroll, "Cursor scroll")
        validate_string(sensitive, "Cursor sensitive")
        self._cursor.request_open(scroll, sensitive)

    @locked
    def fetch_cursor(self, handle: str, position: int, quantity: int) -> Outcome:
        """
        Fetch documents from the open cursor.

        Args:
            handle: Handle returned by the opening query
            position: First position to fetch (1-based)
            quantity: Number of documents to fetch

        Raises:
            TaminoCursorError: If the handle is not the open cursor's
            TaminoValidationError: If position or quantity is not an int
        """
        for name, number in (("Position", position), ("Quantity", quantity)):
            if isinstance(number, bool) or not isinstance(number, int):
                raise TaminoValidationError(f"The Cursor {name} is not recognized", number)
        self._cursor.check_handle(handle)

        fields = RequestBuilder.cursor_fetch_fields(handle, position, quantity)
        return self._execute(OP_CURSOR, CURSOR_FETCH, extra_fields=fields)

    @locked
    def close_cursor(self, handle: str) -> Outcome:
        """
        Close the open cursor.

        Raises:
            TaminoCursorError: If the handle is not the open cursor's
        """
        self._cursor.check_handle(handle)

        fields = RequestBuilder.cursor_close_fields(handle)
        outcome = self._execute(OP_CURSOR, CURSOR_CLOSE, extra_fields=fields)
        if outcome.success:
            self._cursor.closed()
        return outcome
