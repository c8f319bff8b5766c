"""Pydantic-based validation helpers for inbound response bodies."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pydantic import TypeAdapter, ValidationError

from ..exceptions import HttpStatusError, PayloadTooLarge
from ..protocols import JsonObject, TransportResponse

_JSON_OBJECT_ADAPTER: TypeAdapter[JsonObject] = TypeAdapter(JsonObject)

DEFAULT_CHUNK_SIZE = 64 * 1024


class IncomingDataError(ValueError):
    """Raised when an inbound payload fails validation."""


def parse_json_object(payload: bytes) -> JsonObject:
    """Decode a body that must be a single JSON object."""
    try:
        return _JSON_OBJECT_ADAPTER.validate_json(payload)
    except ValidationError as exc:
        raise IncomingDataError("Response body is not a JSON object.") from exc


def declared_content_length(headers: Mapping[str, str]) -> int | None:
    """Return the Content-Length header as an int, ignoring malformed values."""
    value = headers.get("Content-Length") or headers.get("content-length")
    if value is None:
        return None
    text = value.strip()
    return int(text) if text.isdigit() else None


def check_declared_size(headers: Mapping[str, str], limit_bytes: int) -> None:
    declared = declared_content_length(headers)
    if declared is not None and declared > limit_bytes:
        raise PayloadTooLarge(limit_bytes, declared_bytes=declared)


def check_status(response: TransportResponse, *, endpoint: str) -> None:
    if not 200 <= response.status_code < 300:
        raise HttpStatusError(response.status_code, response.reason, endpoint=endpoint)


def read_bounded(chunks: Iterable[bytes], limit_bytes: int) -> bytes:
    """Buffer chunks until exhausted, failing once more than `limit_bytes` arrive."""
    buffer = bytearray()
    for chunk in chunks:
        buffer.extend(chunk)
        if len(buffer) > limit_bytes:
            raise PayloadTooLarge(limit_bytes)
    return bytes(buffer)
