"""
Tamino Response Parser

Interprets Tamino HTTP responses: X-INO headers, the lazily parsed
XML body, the <result> node, cursor handles and <ino:message> errors.
"""

import logging
from typing import Dict, Optional, Tuple

from lxml import etree

from tamino_client.exceptions import TaminoXMLError
from tamino_client.models import (
    ErrorKind,
    Outcome,
    RawResponse,
    ResponseHeaders,
    ServerMessage,
    error_codes,
)

logger = logging.getLogger("tamino.parser")

# Response headers
HEADER_SERVER = "Server"
HEADER_MESSAGE_TEXT = "X-INO-Messagetext"
HEADER_REASON = "X-INO-Reason"
HEADER_RETURN_VALUE = "X-INO-returnvalue"
HEADER_RESPONSE_WRAPPER = "X-INO-responseWrapper"
HEADER_VERSION = "X-INO-Version"
HEADER_SESSION_ID = "X-INO-Sessionid"
HEADER_SESSION_KEY = "X-INO-Sessionkey"

# Qualified names looked up in response bodies
RESULT_ELEMENT = "result"
CURSOR_ELEMENT = "ino:cursor"
CURSOR_HANDLE_ATTRIBUTE = "handle"
MESSAGE_ELEMENT = "ino:message"
MESSAGE_RETURN_VALUE_ATTRIBUTE = "ino:returnvalue"
MESSAGE_LINE_ELEMENT = "ino:messageline"
MESSAGE_TEXT_ELEMENT = "ino:messagetext"

MAX_MESSAGES = 2

# Secure parser
_parser = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
)


def _is_element(node) -> bool:
    return isinstance(node.tag, str)


def _local_name(element: etree._Element) -> str:
    return etree.QName(element).localname


def _qualified_name(element: etree._Element) -> str:
    """Name as written in the document, e.g. ino:message."""
    local = _local_name(element)
    if element.prefix:
        return f"{element.prefix}:{local}"
    return local


def _qualified_attribute(element: etree._Element, name: str) -> Optional[str]:
    """Look up an attribute by its prefixed name, e.g. ino:returnvalue."""
    prefix, _, local = name.rpartition(":")
    if not prefix:
        return element.get(name)
    uri = element.nsmap.get(prefix)
    if uri is None:
        return None
    return element.get("{%s}%s" % (uri, local))


def _direct_text(element: etree._Element) -> str:
    return "".join(element.xpath("text()"))


def _to_int(text: Optional[str]) -> int:
    """Leading integer of a string, 0 if there is none."""
    if not text:
        return 0
    text = text.strip()
    digits = ""
    for i, ch in enumerate(text):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return 0


def parse_headers(headers: Dict[str, str]) -> ResponseHeaders:
    """
    Extract known Tamino fields from response headers.

    Names are matched exactly as Tamino sends them. A non-numeric
    X-INO-returnvalue is kept as the response wrapper.

    Args:
        headers: Header mapping as received

    Returns:
        ResponseHeaders
    """
    return_value = None
    wrapper = headers.get(HEADER_RESPONSE_WRAPPER)

    raw_return_value = headers.get(HEADER_RETURN_VALUE)
    if raw_return_value is not None:
        stripped = raw_return_value.strip()
        if stripped.lstrip("-").isdigit():
            return_value = int(stripped)
        elif stripped:
            wrapper = stripped

    return ResponseHeaders(
        server_name=headers.get(HEADER_SERVER),
        message_text=headers.get(HEADER_MESSAGE_TEXT),
        reason=headers.get(HEADER_REASON),
        return_value=return_value,
        response_wrapper=wrapper or None,
        server_version=headers.get(HEADER_VERSION),
        session_id=headers.get(HEADER_SESSION_ID),
        session_key=headers.get(HEADER_SESSION_KEY),
    )


def parse_messages(root: Optional[etree._Element]) -> Tuple[ServerMessage, ...]:
    """
    Collect the first two <ino:message> children of the root element.

    Messages without an ino:returnvalue attribute are skipped; a third
    or later message is ignored.
    """
    if root is None:
        return ()

    messages = []
    for child in root:
        if not _is_element(child) or _qualified_name(child) != MESSAGE_ELEMENT:
            continue

        raw_code = _qualified_attribute(child, MESSAGE_RETURN_VALUE_ATTRIBUTE)
        if raw_code is None:
            continue

        text = ""
        line = ""
        for part in child:
            if not _is_element(part):
                continue
            name = _qualified_name(part)
            if name == MESSAGE_LINE_ELEMENT:
                line = _direct_text(part)
            elif name == MESSAGE_TEXT_ELEMENT:
                text = _direct_text(part)

        messages.append(ServerMessage(return_value=_to_int(raw_code), text=text, line=line))
        if len(messages) == MAX_MESSAGES:
            break

    return tuple(messages)


def find_result(root: Optional[etree._Element]) -> Optional[etree._Element]:
    """First direct child of the root named result, in any namespace."""
    if root is None:
        return None
    for child in root:
        if _is_element(child) and _local_name(child) == RESULT_ELEMENT:
            return child
    return None


def find_cursor_handle(root: Optional[etree._Element]) -> Optional[str]:
    """Handle attribute of the first <ino:cursor> anywhere in the document."""
    if root is None:
        return None
    for element in root.iter():
        if _is_element(element) and _qualified_name(element) == CURSOR_ELEMENT:
            return element.get(CURSOR_HANDLE_ATTRIBUTE)
    return None


class ParsedResponse:
    """
    One Tamino response with lazily derived fields.

    Headers are read on construction. The XML tree and everything
    derived from it (result node, cursor handle, messages) is built on
    first access and memoized until invalidate() is called.
    """

    def __init__(self, raw: RawResponse):
        self.raw = raw
        self.headers = parse_headers(raw.headers)
        self.parse_count = 0
        self.parse_error: Optional[str] = None
        self._cache: Dict[str, object] = {}

    @property
    def http_status(self) -> int:
        return self.raw.http_status

    @property
    def body(self) -> bytes:
        return self.raw.body

    def invalidate(self) -> None:
        """Drop the parsed tree and all derived fields."""
        self._cache.clear()
        self.parse_error = None

    @property
    def is_parsed(self) -> bool:
        return "document" in self._cache

    @property
    def document(self) -> Optional[etree._Element]:
        """Root element of the body, or None if it is empty or not XML."""
        if "document" not in self._cache:
            self._cache["document"] = self._parse()
        return self._cache["document"]

    def require_document(self) -> etree._Element:
        """
        Root element of the body.

        Raises:
            TaminoXMLError: If the body is empty or not well-formed
        """
        document = self.document
        if document is None:
            raise TaminoXMLError(self.parse_error or "Response body is empty")
        return document

    @property
    def result(self) -> Optional[etree._Element]:
        if "result" not in self._cache:
            self._cache["result"] = find_result(self.document)
        return self._cache["result"]

    @property
    def cursor_handle(self) -> Optional[str]:
        if "cursor_handle" not in self._cache:
            self._cache["cursor_handle"] = find_cursor_handle(self.document)
        return self._cache["cursor_handle"]

    @property
    def messages(self) -> Tuple[ServerMessage, ...]:
        if "messages" not in self._cache:
            self._cache["messages"] = parse_messages(self.document)
        return self._cache["messages"]

    def message(self, index: int) -> Optional[ServerMessage]:
        """Message 1 or 2, None if absent."""
        messages = self.messages
        if 1 <= index <= len(messages):
            return messages[index - 1]
        return None

    def result_xml(self, pretty_print: bool = True) -> Optional[str]:
        """Serialized <result> element, for display."""
        result = self.result
        if result is None:
            return None
        return etree.tostring(result, encoding="unicode", pretty_print=pretty_print)

    def document_xml(self, pretty_print: bool = True) -> str:
        """
        Serialized response document.

        Raises:
            TaminoXMLError: If the body is empty or not well-formed
        """
        return etree.tostring(self.require_document(), encoding="unicode", pretty_print=pretty_print)

    def _parse(self) -> Optional[etree._Element]:
        if not self.raw.body or not self.raw.body.strip():
            return None

        self.parse_count += 1
        try:
            return etree.fromstring(self.raw.body, _parser)
        except etree.XMLSyntaxError as e:
            self.parse_error = f"XML parse error: {e}"
            logger.warning(self.parse_error)
            return None


def evaluate(response: ParsedResponse, check_headers: bool = True) -> Outcome:
    """
    Derive the outcome of a command from its response.

    Args:
        response: Parsed response
        check_headers: False for commands whose success is the HTTP
            status alone (plain URL addressing)

    Returns:
        Outcome
    """
    raw = response.raw
    status = raw.http_status

    if raw.transport_error:
        return Outcome(
            success=False,
            http_status=status,
            error_kind=ErrorKind.TRANSPORT,
            error_detail=raw.error_message,
            transport_error=True,
            response=response,
        )

    if status != 200:
        detail = f"HTTP status {status}"
        if response.headers.reason:
            detail += f": {response.headers.reason}"
        return Outcome(False, status, ErrorKind.PROTOCOL, detail, response=response)

    if not check_headers:
        return Outcome(True, status, response=response)

    headers = response.headers

    if headers.return_value is not None:
        if headers.return_value == 0:
            return Outcome(True, status, response=response)
        return Outcome(
            False,
            status,
            ErrorKind.SERVER_MESSAGE,
            _server_detail(response, headers.return_value),
            response=response,
        )

    if headers.response_wrapper is not None:
        codes = error_codes(list(response.messages))
        if codes:
            return Outcome(
                False,
                status,
                ErrorKind.SERVER_MESSAGE,
                _server_detail(response, codes[0]),
                response=response,
            )
        return Outcome(True, status, response=response)

    return Outcome(
        False,
        status,
        ErrorKind.PROTOCOL,
        f"Response carries neither {HEADER_RETURN_VALUE} nor {HEADER_RESPONSE_WRAPPER}",
        response=response,
    )


def _server_detail(response: ParsedResponse, code: int) -> str:
    """Best human-readable text for a server-side error."""
    for message in response.messages:
        if message.return_value > 0 and message.text:
            return message.text
    if response.headers.message_text:
        return response.headers.message_text
    return f"Server returned {code}"
