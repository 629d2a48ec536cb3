"""
Tamino Client Configuration

Connection and formatting parameters read by the request builder.
"""

import codecs
from dataclasses import dataclass
from typing import Optional

from tamino_client.exceptions import TaminoValidationError

HTTP_METHOD_GET = "GET"
HTTP_METHOD_POST = "POST"
HTTP_METHODS = (HTTP_METHOD_GET, HTTP_METHOD_POST)

TRANSFER_ENCODING_BINARY = "binary"
TRANSFER_ENCODING_BASE64 = "base64"
TRANSFER_ENCODINGS = (TRANSFER_ENCODING_BINARY, TRANSFER_ENCODING_BASE64)

DEFINE_MODE_NORMAL = ""
DEFINE_MODE_TEST = "test"
DEFINE_MODE_VALIDATE = "validate"
DEFINE_MODE_TEST_VALIDATE = "test,validate"
DEFINE_MODES = (
    DEFINE_MODE_NORMAL,
    DEFINE_MODE_TEST,
    DEFINE_MODE_VALIDATE,
    DEFINE_MODE_TEST_VALIDATE,
)

DEFAULT_ENCODING = "UTF-8"
DEFAULT_PORT = 80


def validate_http_method(method: str) -> str:
    if method not in HTTP_METHODS:
        raise TaminoValidationError("The Http Method is not recognized", method)
    return method


def validate_transfer_encoding(encoding: Optional[str]) -> str:
    """Empty or None means no content-transfer-encoding header."""
    if not encoding:
        return ""
    if encoding not in TRANSFER_ENCODINGS:
        raise TaminoValidationError("The Transfer encoding is not recognized", encoding)
    return encoding


def validate_define_mode(mode: Optional[str]) -> str:
    mode = mode or DEFINE_MODE_NORMAL
    if mode not in DEFINE_MODES:
        raise TaminoValidationError("The Define Mode is not recognized", mode)
    return mode


def validate_encoding(encoding: Optional[str]) -> str:
    """Character set names must be known to Python so bodies can be encoded."""
    if not encoding:
        return ""
    if not isinstance(encoding, str):
        raise TaminoValidationError("The Encoding is not recognized", encoding)
    try:
        codecs.lookup(encoding)
    except LookupError:
        raise TaminoValidationError("The Encoding is not recognized", encoding)
    return encoding


def validate_string(value, what: str) -> str:
    if not isinstance(value, str):
        raise TaminoValidationError(f"The {what} is not recognized", value)
    return value


@dataclass
class ClientConfig:
    """
    Connection and request-shaping parameters.

    Mutated through the client's setters between commands; read-only
    while a request is being built.
    """
    host: str
    database: str
    port: int = DEFAULT_PORT
    username: str = ""
    password: str = ""
    collection: str = ""
    encoding: str = DEFAULT_ENCODING
    http_method: str = HTTP_METHOD_GET
    media_type: str = ""
    content_transfer_encoding: str = ""
    isolation_level: str = ""
    lock_mode: str = ""
    lock_wait: str = ""
    define_mode: str = DEFINE_MODE_NORMAL
    scheme: str = "http"
    timeout: Optional[float] = None

    def __post_init__(self):
        validate_string(self.host, "Host")
        validate_string(self.database, "Database name")
        validate_string(self.username or "", "User name")
        validate_string(self.password or "", "Password")
        validate_string(self.collection or "", "Collection")
        self.username = self.username or ""
        self.password = self.password or ""
        self.collection = self.collection or ""
        self.encoding = validate_encoding(self.encoding)
        self.http_method = validate_http_method(self.http_method)
        self.content_transfer_encoding = validate_transfer_encoding(self.content_transfer_encoding)
        self.define_mode = validate_define_mode(self.define_mode)
        if self.scheme not in ("http", "https"):
            raise TaminoValidationError("The URL scheme is not recognized", self.scheme)

    @property
    def has_credentials(self) -> bool:
        """Basic auth is sent only when both parts are set."""
        return bool(self.username) and bool(self.password)

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    @property
    def database_path(self) -> str:
        """
        Path prefix naming the database.

        Plain names live under /tamino; a name that already starts with
        "/" is used as the full path, and a name with an inner "/" is
        taken relative to the server root.
        """
        if self.database.startswith("/"):
            return self.database
        if "/" in self.database:
            return f"/{self.database}"
        return f"/tamino/{self.database}"
