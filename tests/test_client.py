"""
Tests for the Tamino client facade.

Every test runs against the fake transport; no Tamino server is needed.
"""

import pytest

from tamino_client.client import TaminoClient
from tamino_client.exceptions import (
    TaminoCursorError,
    TaminoSessionError,
    TaminoValidationError,
)
from tamino_client.models import CursorStatus, ErrorKind, RawResponse, SessionStatus

from mock_transport import (
    CURSOR_RESPONSE,
    QUERY_RESPONSE,
    FakeTransport,
    failed,
    ok,
    session_response,
)


class TestCommands:
    """Tests for the document, schema and server commands."""

    def test_query(self, client, transport):
        """XQL query targets the collection and exposes the result."""
        transport.add(ok(QUERY_RESPONSE))

        outcome = client.query('/person[firstName="Jo"]')

        assert outcome.success
        assert transport.last.target == "/tamino/welcome_4_4_1/people?_xql=%2Fperson%5BfirstName%3D%22Jo%22%5D"
        assert client.result_node is not None
        assert client.result_node[0].findtext("lastName") == "Smith"

    @pytest.mark.parametrize("method, command", [
        ("define", "_define"),
        ("undefine", "_undefine"),
        ("process", "_process"),
        ("delete", "_delete"),
        ("xquery", "_xquery"),
        ("admin", "_admin"),
        ("diagnose", "_diagnose"),
    ])
    def test_command_names(self, client, transport, method, command):
        """Each command sends its own command name."""
        transport.add(ok())

        outcome = getattr(client, method)("value")

        assert outcome.success
        assert transport.last.target == f"/tamino/welcome_4_4_1/people?{command}=value"
        assert transport.last.command == command

    def test_non_string_payload(self, client, transport):
        """Non-string payloads are rejected before sending."""
        with pytest.raises(TaminoValidationError):
            client.process(None)

        assert transport.requests == []

    def test_server_error(self, client, transport):
        """Server messages make the command fail."""
        transport.add(failed())

        outcome = client.process("<person>")

        assert not outcome
        assert outcome.error_kind == ErrorKind.SERVER_MESSAGE
        assert client.message(1).return_value == 8300
        assert client.header_return_value == 8300

    def test_plain_url_addressing(self, client, transport):
        """Plain URL requests succeed on HTTP 200 without X-INO headers."""
        transport.add(RawResponse(200, {}, b"<person><firstName>Jo</firstName></person>"))

        outcome = client.plain_url_addressing("person/@1")

        assert outcome.success
        assert transport.last.method == "GET"
        assert transport.last.target == "/tamino/welcome_4_4_1/people/person/@1"
        assert client.document.findtext("firstName") == "Jo"

    def test_plain_url_not_found(self, client, transport):
        transport.add(RawResponse(404, {}, b""))

        outcome = client.plain_url_addressing("person/@99")

        assert not outcome.success
        assert outcome.error_kind == ErrorKind.PROTOCOL

    def test_transport_failure(self, client, transport):
        """Connection failures become a failed outcome with status 404."""
        transport.fail_next("Connection refused")

        outcome = client.query("/person")

        assert not outcome.success
        assert outcome.transport_error
        assert outcome.http_status == 404
        assert outcome.error_detail == "Connection refused"
        assert client.http_status == 404
        assert client.full_result_body == b""
        assert client.messages == ()

    def test_http_500(self, client, transport):
        """HTTP 500 fails even with a successful body."""
        transport.add(RawResponse(500, {"X-INO-returnvalue": "0"}, QUERY_RESPONSE))

        outcome = client.query("/person")

        assert not outcome.success
        assert client.result_node is not None


class TestAccessors:
    """Tests for the last-response accessors."""

    def test_before_any_command(self, client):
        assert client.response is None
        assert client.http_status is None
        assert client.document is None
        assert client.messages == ()
        assert client.message(1) is None
        assert client.full_result_headers == {}
        assert client.header_return_value is None

    def test_headers(self, client, transport):
        transport.add(ok(QUERY_RESPONSE, **{"X-INO-Messagetext": "done", "X-INO-Reason": "none"}))
        client.query("/person")

        assert client.header_server_name == "Tamino Mock"
        assert client.server_version == "4.4.1.1"
        assert client.header_message_text == "done"
        assert client.header_reason == "none"
        assert client.header_return_value == 0
        assert client.full_result_headers["X-INO-returnvalue"] == "0"

    def test_wrapper_return_value(self, client, transport):
        """The wrapper is reported when there is no numeric return value."""
        transport.add(RawResponse(200, {"X-INO-responseWrapper": "xql"}, QUERY_RESPONSE))
        client.query("/person")

        assert client.header_return_value == "xql"

    def test_root_node_only_after_parse(self, client, transport):
        """root_node does not trigger parsing."""
        transport.add(ok(QUERY_RESPONSE))
        client.query("/person")

        assert client.root_node is None
        assert not client.is_document_parsed

        assert client.document is not None
        assert client.root_node is client.document
        assert client.is_document_parsed

    def test_response_replaced(self, client, transport):
        """Each command replaces the previous response."""
        transport.add(ok(QUERY_RESPONSE)).add(ok())

        client.query("/person")
        first = client.response
        assert first.result is not None

        client.delete("/person")

        assert client.response is not first
        assert not first.is_parsed
        assert client.result_node is None

    def test_last_request(self, client, transport):
        transport.add(ok())
        client.admin("ino:RequestLog")

        assert client.last_request is transport.last


class TestSettings:
    """Tests for the client setters."""

    def test_invalid_http_method(self, client):
        with pytest.raises(TaminoValidationError):
            client.set_http_request_method("PUT")

    def test_post_mode(self, client, transport):
        """POST mode sends a multipart body to the collection path."""
        transport.add(ok())
        client.set_http_request_method("POST")

        client.define("<schema/>")

        assert transport.last.method == "POST"
        assert transport.last.target == "/tamino/welcome_4_4_1/people"
        assert b'name="_define"' in transport.last.body

    def test_define_mode(self, client, transport):
        transport.add(ok())
        client.set_define_mode("test,validate")

        client.define("<schema/>")

        assert transport.last.target.endswith("&_mode=test%2Cvalidate")

    def test_invalid_define_mode(self, client):
        with pytest.raises(TaminoValidationError):
            client.set_define_mode("dry-run")

    def test_invalid_encoding(self, client):
        with pytest.raises(TaminoValidationError):
            client.set_encoding("no-such-charset")

    def test_encoding(self, client, transport):
        transport.add(ok())
        client.set_encoding("ISO-8859-1")

        client.query("/person")

        assert transport.last.headers["Accept-Charset"] == "ISO-8859-1"
        assert transport.last.headers["Content-Type"] == "text/xml; charset=ISO-8859-1"

    def test_transfer_encoding(self, client):
        client.set_content_transfer_encoding("base64")
        assert client.config.content_transfer_encoding == "base64"

        client.set_content_transfer_encoding(None)
        assert client.config.content_transfer_encoding == ""

        with pytest.raises(TaminoValidationError):
            client.set_content_transfer_encoding("gzip")

    def test_transaction_parameters(self, client, transport):
        transport.add(ok())
        client.set_isolation_level("serializable")
        client.set_lock_mode("protected")
        client.set_lock_wait("no")

        client.query("/person")

        assert transport.last.target.endswith("&_isolationLevel=serializable&_lockMode=protected&_lockWait=no")

    def test_credentials(self, client, transport):
        transport.add(ok())
        client.set_username("tamino")
        client.set_password("secret")

        client.query("/person")

        assert transport.last.headers["Authorization"].startswith("Basic ")

    def test_collection(self, client, transport):
        transport.add(ok())
        client.set_collection("ino:etc")

        client.query("/person")

        assert transport.last.target.startswith("/tamino/welcome_4_4_1/ino:etc?")

    def test_invalid_timeout(self, client):
        with pytest.raises(TaminoValidationError):
            client.set_timeout(0)

    def test_timeout(self, client):
        client.set_timeout(2.5)
        assert client.config.timeout == 2.5


class TestSessions:
    """Tests for the session state machine."""

    def test_start_session(self, client, transport):
        """A successful start makes the session active with its tokens."""
        transport.add(session_response("4711", "K42"))

        outcome = client.start_session()

        assert outcome.success
        assert client.session_status == SessionStatus.ACTIVE
        assert client.session_id == "4711"
        assert client.session_key == "K42"
        assert transport.last.target == "/tamino/welcome_4_4_1?_connect=%2A"
        assert "X-INO-Sessionid" not in transport.last.headers

    def test_start_session_twice(self, client, transport):
        """Starting inside an active session fails without a request."""
        transport.add(session_response())
        client.start_session()

        with pytest.raises(TaminoSessionError):
            client.start_session()

        assert len(transport.requests) == 1
        assert client.session_status == SessionStatus.ACTIVE

    def test_start_session_refused(self, client, transport):
        """A refused start leaves the session inactive."""
        transport.add(failed(**{"X-INO-Sessionid": "4711", "X-INO-Sessionkey": "K42"}))

        outcome = client.start_session()

        assert not outcome.success
        assert client.session_status == SessionStatus.INACTIVE
        assert client.session_id is None

    def test_start_session_transport_failure(self, client, transport):
        transport.fail_next()

        outcome = client.start_session()

        assert outcome.transport_error
        assert client.session_status == SessionStatus.INACTIVE

    def test_session_headers_sent(self, client, transport):
        """Commands inside the session carry its tokens."""
        transport.add(session_response("4711", "K42")).add(ok())
        client.start_session()

        client.process("<person/>")

        assert transport.last.headers["X-INO-Sessionid"] == "4711"
        assert transport.last.headers["X-INO-Sessionkey"] == "K42"

    def test_session_key_rotation(self, client, transport):
        """A new session key from the server replaces the old one."""
        transport.add(session_response("4711", "K42")).add(ok(**{"X-INO-Sessionkey": "K43"}))
        client.start_session()

        client.process("<person/>")

        assert client.session_key == "K43"
        assert client.session_id == "4711"

    @pytest.mark.parametrize("method", ["commit", "rollback", "end_session"])
    def test_requires_active_session(self, client, transport, method):
        """Session commands fail without a session and send nothing."""
        with pytest.raises(TaminoSessionError):
            getattr(client, method)()

        assert transport.requests == []

    def test_commit(self, client, transport):
        transport.add(session_response()).add(ok())
        client.start_session()

        outcome = client.commit()

        assert outcome.success
        assert transport.last.target == "/tamino/welcome_4_4_1?_commit=%2A"
        assert client.session_status == SessionStatus.ACTIVE

    def test_rollback(self, client, transport):
        transport.add(session_response()).add(ok())
        client.start_session()

        assert client.rollback().success
        assert transport.last.target == "/tamino/welcome_4_4_1?_rollback=%2A"

    def test_end_session(self, client, transport):
        """Ending the session clears it and stops sending tokens."""
        transport.add(session_response()).add(ok()).add(ok())
        client.start_session()

        assert client.end_session().success
        assert transport.last.target == "/tamino/welcome_4_4_1?_disconnect=%2A"
        assert client.session_status == SessionStatus.INACTIVE
        assert client.session_id is None

        client.query("/person")
        assert "X-INO-Sessionid" not in transport.last.headers

    def test_end_session_failure_keeps_session(self, client, transport):
        transport.add(session_response()).add(failed())
        client.start_session()

        outcome = client.end_session()

        assert not outcome.success
        assert client.session_status == SessionStatus.ACTIVE
        assert client.session_id == "4711"

    def test_context_manager_ends_session(self, transport):
        """Leaving the with block ends the session and closes the transport."""
        transport.add(session_response()).add(ok())

        with TaminoClient("localhost", "welcome_4_4_1", transport=transport) as client:
            client.start_session()

        assert client.session_status == SessionStatus.INACTIVE
        assert transport.requests[-1].command == "_disconnect"
        assert transport.closed

    def test_close_without_session(self, client, transport):
        client.close()

        assert transport.requests == []
        assert transport.closed


class TestCursors:
    """Tests for the cursor state machine."""

    def test_open_fetch_close(self, client, transport):
        """A pending cursor opens with the next query and closes by handle."""
        transport.add(ok(CURSOR_RESPONSE)).add(ok(QUERY_RESPONSE)).add(ok())

        assert client.open_cursor("yes", "no") is None
        assert client.cursor_status == CursorStatus.PENDING_OPEN
        assert transport.requests == []

        assert client.query("/person").success
        assert transport.last.target.endswith("?_xql=%2Fperson&_cursor=open&_scroll=yes&_sensitive=no")
        assert client.cursor_status == CursorStatus.OPEN
        assert client.cursor_handle == "C1"

        assert client.fetch_cursor("C1", 1, 5).success
        assert transport.last.target == (
            "/tamino/welcome_4_4_1/people?_cursor=fetch&_position=1&_quantity=5&_handle=C1"
        )
        assert client.result_node is not None
        assert client.cursor_status == CursorStatus.OPEN

        assert client.close_cursor("C1").success
        assert transport.last.target == "/tamino/welcome_4_4_1/people?_cursor=close&_handle=C1"
        assert client.cursor_status == CursorStatus.CLOSED
        assert client.cursor_handle is None

    def test_xquery_opens_cursor(self, client, transport):
        transport.add(ok(CURSOR_RESPONSE))
        client.open_cursor()

        client.xquery("for $p in input()/person return $p")

        assert "&_cursor=open" in transport.last.target
        assert client.cursor_handle == "C1"

    def test_close_wrong_handle(self, client, transport):
        """A mismatched handle fails without a request."""
        transport.add(ok(CURSOR_RESPONSE))
        client.open_cursor()
        client.query("/person")

        with pytest.raises(TaminoCursorError) as exc_info:
            client.close_cursor("WRONG")

        assert exc_info.value.handle == "WRONG"
        assert len(transport.requests) == 1
        assert client.cursor_status == CursorStatus.OPEN

    def test_fetch_without_cursor(self, client, transport):
        with pytest.raises(TaminoCursorError):
            client.fetch_cursor("C1", 1, 5)

        assert transport.requests == []

    def test_fetch_requires_integers(self, client, transport):
        transport.add(ok(CURSOR_RESPONSE))
        client.open_cursor()
        client.query("/person")

        with pytest.raises(TaminoValidationError):
            client.fetch_cursor("C1", "1", 5)
        with pytest.raises(TaminoValidationError):
            client.fetch_cursor("C1", 1, True)

        assert len(transport.requests) == 1

    def test_failed_query_keeps_pending(self, client, transport):
        """A failed query leaves the cursor request pending."""
        transport.add(failed())
        client.open_cursor()

        assert not client.query("/person").success
        assert client.cursor_status == CursorStatus.PENDING_OPEN

    def test_query_without_handle_closes(self, client, transport):
        """A successful query without a handle leaves no cursor open."""
        transport.add(ok(QUERY_RESPONSE))
        client.open_cursor()

        client.query("/person")

        assert client.cursor_status == CursorStatus.CLOSED
        assert client.cursor_handle is None

    def test_failed_close_keeps_cursor(self, client, transport):
        transport.add(ok(CURSOR_RESPONSE)).add(failed())
        client.open_cursor()
        client.query("/person")

        assert not client.close_cursor("C1").success
        assert client.cursor_status == CursorStatus.OPEN

    def test_plain_query_after_close(self, client, transport):
        """Once closed, queries no longer ask for a cursor."""
        transport.add(ok(CURSOR_RESPONSE)).add(ok()).add(ok(QUERY_RESPONSE))
        client.open_cursor()
        client.query("/person")
        client.close_cursor("C1")

        client.query("/person")

        assert "_cursor" not in transport.last.target


class TestFromConfig:
    """Tests for building a client from ClientConfig."""

    def test_from_config(self):
        from tamino_client.config import ClientConfig

        transport = FakeTransport(ok())
        config = ClientConfig(host="db.example.com", database="/custom/db", http_method="POST")
        client = TaminoClient.from_config(config, transport=transport)

        client.process("<person/>")

        assert client.config is config
        assert transport.last.method == "POST"
        assert transport.last.target == "/custom/db"
