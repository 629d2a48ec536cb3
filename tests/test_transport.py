"""
Tests for the HTTP transport.
"""

import pytest
import requests

from tamino_client.exceptions import TaminoTransportError
from tamino_client.models import WireRequest
from tamino_client.transport import HTTPTransport


class RecordingSession:
    """Stands in for requests.Session, answering every call the same way."""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def make_response(status=200, headers=None, body=b""):
    response = requests.models.Response()
    response.status_code = status
    response.headers.update(headers or {})
    response._content = body
    return response


class TestHTTPTransport:
    """Tests for HTTPTransport."""

    def test_send(self):
        """Requests go to base URL plus target with headers and body."""
        session = RecordingSession(make_response(200, {"X-INO-returnvalue": "0"}, b"<ino:response/>"))
        transport = HTTPTransport("http://localhost:8080/", timeout=5, session=session)
        request = WireRequest("POST", "/tamino/db/people", {"Accept-Charset": "UTF-8"}, b"body", "_process")

        raw = transport.send(request)

        method, url, kwargs = session.calls[0]
        assert method == "POST"
        assert url == "http://localhost:8080/tamino/db/people"
        assert kwargs["headers"] == {"Accept-Charset": "UTF-8"}
        assert kwargs["data"] == b"body"
        assert kwargs["timeout"] == 5
        assert kwargs["allow_redirects"] is False

        assert raw.http_status == 200
        assert raw.headers["X-INO-returnvalue"] == "0"
        assert raw.body == b"<ino:response/>"
        assert not raw.transport_error

    def test_error_status_returned(self):
        """HTTP errors are responses, not transport failures."""
        session = RecordingSession(make_response(500, body=b"oops"))
        transport = HTTPTransport("http://localhost", session=session)

        raw = transport.send(WireRequest("GET", "/tamino/db?_xql=x"))

        assert raw.http_status == 500
        assert raw.body == b"oops"

    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("slow"),
        requests.exceptions.TooManyRedirects("loop"),
    ])
    def test_failures(self, error):
        """Connection problems raise TaminoTransportError."""
        transport = HTTPTransport("http://localhost", session=RecordingSession(error=error))

        with pytest.raises(TaminoTransportError):
            transport.send(WireRequest("GET", "/tamino/db?_xql=x"))

    def test_close(self):
        session = RecordingSession()

        with HTTPTransport("http://localhost", session=session):
            pass

        assert session.closed
