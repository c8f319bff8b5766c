"""Requests-backed transport.

Usage example:
    import requests

    from ep_data_pipeline.infrastructure.transport import RequestsTransport

    transport = RequestsTransport(session=requests.Session())
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing_extensions import override

import requests

from ..exceptions import NetworkError
from ..observability import get_logger
from ..protocols import Transport, TransportResponse
from .deadline import CancellationToken, OperationCancelled

logger = get_logger("ep_data_pipeline.infrastructure.transport")


def _socket_timeout(token: CancellationToken) -> tuple[float, float] | None:
    """Split the remaining time between the connect and read waits."""
    remaining = token.remaining()
    if remaining is None:
        return None
    half = max(remaining / 2, 0.001)
    return (half, half)


class RequestsResponse(TransportResponse):
    """Adapter exposing a streamed requests.Response as a TransportResponse."""

    def __init__(self, response: requests.Response) -> None:
        self._response = response
        self.status_code = response.status_code
        self.reason = response.reason or ""
        self.headers: Mapping[str, str] = response.headers

    @override
    def iter_bytes(self, chunk_size: int) -> Iterator[bytes]:
        try:
            yield from self._response.iter_content(chunk_size=chunk_size)
        except requests.RequestException as exc:
            raise NetworkError(f"Error while reading response body: {exc}") from exc

    @override
    def close(self) -> None:
        self._response.close()


class RequestsTransport(Transport):
    """Issue streamed GET requests through a requests.Session.

    Cancellation closes the response stream once headers have arrived. Before
    that there is no response to close, so the connect and read waits share the
    token's remaining time: a worker blocked on an unresponsive server is
    released by the socket timeout at about the deadline.
    """

    def __init__(self, *, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()
        self._owns_session = session is None

    @override
    def send(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        token: CancellationToken,
    ) -> TransportResponse:
        token.raise_if_cancelled()
        try:
            response = self._session.get(
                url,
                headers=dict(headers),
                stream=True,
                timeout=_socket_timeout(token),
            )
        except requests.RequestException as exc:
            if token.cancelled:
                raise OperationCancelled() from exc
            raise NetworkError(f"Request to {url} failed: {exc}") from exc
        token.add_callback(response.close)
        if token.cancelled:
            logger.debug("Discarding response from %s after cancellation", url)
            raise OperationCancelled()
        return RequestsResponse(response)

    @override
    def close(self) -> None:
        if self._owns_session:
            self._session.close()
