"""Test that network access is properly blocked in tests."""

import socket

import pytest

from ep_data_pipeline.config import ClientConfig
from ep_data_pipeline.exceptions import NetworkError
from ep_data_pipeline.infrastructure import CancellationToken, RequestsTransport
from tests.support.errors import NetworkIsolationError


class TestNetworkBlocking:
    """Verify that the network blocking fixture works."""

    def test_socket_connect_is_blocked(self) -> None:
        """Attempting to connect a socket should raise NetworkIsolationError."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            with pytest.raises(NetworkIsolationError) as exc_info:
                sock.connect(("data.europarl.europa.eu", 443))
            assert "Tests must not make network connections" in str(exc_info.value)
        finally:
            sock.close()

    def test_real_transport_cannot_reach_the_api(self) -> None:
        """The real transport surfaces the blocked connection as an error."""
        transport = RequestsTransport()
        try:
            with pytest.raises((NetworkIsolationError, NetworkError)):
                transport.send(
                    ClientConfig().base_url + "meps",
                    headers={},
                    token=CancellationToken(),
                )
        finally:
            transport.close()
