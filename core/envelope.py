"""
core/envelope.py -- Decoder for the binary publish request body.

Wire layout (all lengths unsigned 32-bit little-endian):

    u32 index_len
    index_len bytes   UTF-8 JSON (PublishRequest)
    u32 archive_len
    archive_len bytes opaque archive

The caller buffers the whole body before calling decode_publish(); there is
no incremental parse and no size cap at this layer. Every failure raises
ValidationError (HTTP 400) before anything is written anywhere.
"""

from __future__ import annotations

import struct

import pydantic

from core.errors import ValidationError
from core.schema import PublishRequest

_U32 = struct.Struct("<I")


class _Reader:
    def __init__(self, body: bytes) -> None:
        self._body = body
        self._pos = 0

    def u32(self, what: str) -> int:
        end = self._pos + _U32.size
        if end > len(self._body):
            raise ValidationError(
                "truncated publish body",
                verbose_message=f"need 4 bytes for {what} at offset {self._pos}, have {len(self._body) - self._pos}",
                contexts=[what],
            )
        (value,) = _U32.unpack_from(self._body, self._pos)
        self._pos = end
        return value

    def take(self, length: int, what: str) -> bytes:
        remaining = len(self._body) - self._pos
        if length > remaining:
            raise ValidationError(
                "declared length exceeds publish body",
                verbose_message=f"{what} declares {length} bytes, {remaining} remain",
                contexts=[what],
            )
        chunk = self._body[self._pos : self._pos + length]
        self._pos += length
        return chunk


def decode_publish(body: bytes) -> tuple[PublishRequest, bytes]:
    """Split a publish body into (PublishRequest, archive bytes)."""
    reader = _Reader(body)
    index_raw = reader.take(reader.u32("index_len"), "index")
    archive = reader.take(reader.u32("archive_len"), "archive")

    try:
        request = PublishRequest.model_validate_json(index_raw)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "invalid publish metadata",
            verbose_message=str(exc),
            contexts=[".".join(str(p) for p in err["loc"]) for err in exc.errors()],
        ) from exc
    return request, bytes(archive)
