"""Pytest configuration for unit tests.

Unit tests must not reach the network: every outbound socket connection is
blocked, so HTTP sessions and model providers have to be mocked.
"""

from unittest.mock import patch

import pytest


class NetworkAccessError(RuntimeError):
    pass


def _blocked_connect(*args, **kwargs):
    raise NetworkAccessError(f"Network access attempted in unit test: {args[1:]}")


@pytest.fixture(autouse=True)
def block_network():
    """Fail any unit test that opens a real socket connection."""
    with patch("socket.socket.connect", _blocked_connect), patch(
        "socket.create_connection", _blocked_connect
    ):
        yield
