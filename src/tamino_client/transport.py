"""
Tamino Transport

Executes one blocking HTTP call per command.
"""

import logging
from typing import Optional

import requests

from tamino_client.exceptions import TaminoTransportError
from tamino_client.models import RawResponse, WireRequest

logger = logging.getLogger("tamino.transport")


class HTTPTransport:
    """
    HTTP transport to a Tamino server.

    Handles:
    - One request per call, no retries
    - Optional per-call deadline
    - Mapping of connection/DNS/I-O failures to TaminoTransportError
    """

    def __init__(self, base_url: str, timeout: Optional[float] = None, session: requests.Session = None):
        """
        Initialize transport.

        Args:
            base_url: Scheme, host and port, e.g. http://localhost:80
            timeout: Seconds to wait for the server (None blocks)
            session: Optional requests session to reuse
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()

    def send(self, request: WireRequest) -> RawResponse:
        """
        Send request and receive response.

        Args:
            request: Request built by RequestBuilder

        Returns:
            Raw response, whatever its HTTP status

        Raises:
            TaminoTransportError: If the server could not be reached
        """
        url = self.base_url + request.target
        logger.debug(f"{request.method} {url}")

        try:
            response = self._session.request(
                request.method,
                url,
                headers=request.headers,
                data=request.body,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.Timeout as e:
            raise TaminoTransportError(f"Timeout talking to {self.base_url}: {e}")
        except requests.exceptions.ConnectionError as e:
            raise TaminoTransportError(f"Connection to {self.base_url} failed: {e}")
        except requests.exceptions.RequestException as e:
            raise TaminoTransportError(f"Request failed: {e}")

        logger.debug(f"Received HTTP {response.status_code}, {len(response.content)} bytes")
        return RawResponse(
            http_status=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    def close(self) -> None:
        """Release pooled HTTP connections."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
