"""
Shared fixtures for Tamino client tests.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from tamino_client.client import TaminoClient  # noqa: E402

from mock_transport import FakeTransport  # noqa: E402


@pytest.fixture
def transport():
    """Empty fake transport; tests queue their responses."""
    return FakeTransport()


@pytest.fixture
def client(transport):
    """Client for welcome_4_4_1/people on the fake transport."""
    return TaminoClient(
        "localhost",
        "welcome_4_4_1",
        port=8080,
        collection="people",
        transport=transport,
    )
