"""Entity codecs and chunked entity streaming.

The codecs here are the terminal step of the writer/reader interceptor
chains: ``encode_entity`` turns an entity value into a request body and
``decode_entity`` turns response bytes into the requested Python type.

Request bodies come in two shapes, selected by the
``conduit.client.request_entity_processing`` property:

- buffered: the whole entity is serialized to ``bytes`` up front
  (Content-Length framing);
- chunked: the entity is exposed as an iterator that reads the underlying
  stream ``chunk_size`` bytes at a time, so nothing is buffered and the
  connector sends ``Transfer-Encoding: chunked``.

A read error in the entity stream is never turned into a short body. It
propagates out of the iterator (or out of the buffering read) so the
connector aborts the exchange and the caller sees a processing failure.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from typing import Any, Protocol, Union, runtime_checkable
from urllib.parse import urlencode

from pydantic import BaseModel

from conduit.constants import DEFAULT_CHUNK_SIZE
from conduit.errors import InvalidArgumentError
from conduit.media import MediaType, charset_of, is_json

# A serialized request body: fully buffered bytes or a lazily read byte iterator
Body = Union[bytes, Iterator[bytes]]

CHUNK_TERMINATOR = b"0\r\n\r\n"


@runtime_checkable
class Readable(Protocol):
    """File-like byte source (``io.BytesIO``, open files, sockets' makefile...)."""

    def read(self, size: int = -1) -> bytes: ...


def is_stream(value: Any) -> bool:
    """Return True if ``value`` is a byte stream rather than an in-memory value."""
    if isinstance(value, (bytes, bytearray, memoryview, str, dict, list, BaseModel)):
        return False
    return isinstance(value, Readable) or isinstance(value, Iterable)


def read_chunks(source: Any, chunk_size: int) -> Iterator[bytes]:
    """Yield ``source`` in pieces of at most ``chunk_size`` bytes.

    File-like sources are read with ``read(chunk_size)`` until they return
    an empty result; iterables of bytes are re-cut to ``chunk_size``. Any
    exception raised by the source propagates to the consumer unchanged.
    """
    if chunk_size < 1:
        raise InvalidArgumentError(
            f"chunk_size must be >= 1, got {chunk_size}", argument="chunk_size"
        )
    if isinstance(source, (bytes, bytearray, memoryview)):
        data = bytes(source)
        for offset in range(0, len(data), chunk_size):
            yield data[offset : offset + chunk_size]
        return
    if isinstance(source, Readable):
        while True:
            chunk = source.read(chunk_size)
            if not chunk:
                return
            yield bytes(chunk)
    pending = b""
    for piece in source:
        pending += bytes(piece)
        while len(pending) >= chunk_size:
            yield pending[:chunk_size]
            pending = pending[chunk_size:]
    if pending:
        yield pending


def _serialize_value(value: Any, media_type: str | None) -> bytes:
    charset = charset_of(media_type)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode(charset)
    if isinstance(value, BaseModel):
        return value.model_dump_json().encode(charset)
    if media_type and media_type.startswith(MediaType.APPLICATION_FORM_URLENCODED):
        if isinstance(value, dict):
            return urlencode(value, doseq=True).encode(charset)
    if is_json(media_type) or isinstance(value, (dict, list)):
        return json.dumps(value).encode(charset)
    if isinstance(value, bool):
        return b"true" if value else b"false"
    if isinstance(value, (int, float)):
        return str(value).encode(charset)
    raise InvalidArgumentError(
        f"No entity writer for {type(value).__name__} as {media_type}",
        argument="entity",
    )


def encode_entity(
    value: Any,
    media_type: str | None,
    chunked: bool = False,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Body:
    """Serialize an entity value into a request body.

    Args:
        value: Entity value
        media_type: Content type used to pick the serialization
        chunked: Return a lazy chunk iterator instead of bytes
        chunk_size: Size of each chunk when ``chunked`` is set

    Returns:
        ``bytes`` for buffered processing, an iterator of chunks otherwise

    Raises:
        InvalidArgumentError: If no serialization exists for the value
        OSError: If a stream source fails while being buffered
    """
    if is_stream(value):
        if chunked:
            return read_chunks(value, chunk_size)
        return b"".join(read_chunks(value, DEFAULT_CHUNK_SIZE))
    data = _serialize_value(value, media_type)
    if chunked:
        return read_chunks(data, chunk_size)
    return data


def decode_entity(content: bytes, target_type: Any, media_type: str | None) -> Any:
    """Deserialize response bytes into ``target_type``.

    Supported targets: ``bytes``, ``str``, ``bool``, ``int``, ``float``,
    ``dict``/``list``/``object`` (JSON), and pydantic models.

    Raises:
        InvalidArgumentError: If no reader exists for the target type
        ValueError: If the content cannot be parsed as the target type
    """
    if target_type is bytes:
        return content
    charset = charset_of(media_type)
    if target_type is str:
        return content.decode(charset)
    if isinstance(target_type, type) and issubclass(target_type, BaseModel):
        return target_type.model_validate_json(content)
    text = content.decode(charset)
    if target_type is bool:
        lowered = text.strip().lower()
        if lowered not in ("true", "false"):
            raise ValueError(f"Cannot read {text!r} as bool")
        return lowered == "true"
    if target_type is int:
        return int(text.strip())
    if target_type is float:
        return float(text.strip())
    if target_type in (dict, list, object):
        return json.loads(text) if text else None
    raise InvalidArgumentError(
        f"No entity reader for {getattr(target_type, '__name__', target_type)}",
        argument="entity_type",
    )


class ChunkedEncoder:
    """HTTP/1.1 chunked transfer-coding framer.

    Wraps an iterator of chunks and yields their wire framing
    (``<size-hex>\\r\\n<data>\\r\\n``). The terminating zero-length chunk
    is produced only after the source is exhausted without error; if the
    source raises, the exception propagates and no terminator is emitted,
    so the peer sees an incomplete body rather than a short one.

    Example:
        >>> list(ChunkedEncoder(iter([b"0123456", b"789"])))
        [b'7\\r\\n0123456\\r\\n', b'3\\r\\n789\\r\\n', b'0\\r\\n\\r\\n']
    """

    def __init__(self, chunks: Iterable[bytes]) -> None:
        self._chunks = chunks
        self.bytes_written = 0
        self.completed = False

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self._chunks:
            if not chunk:
                continue
            self.bytes_written += len(chunk)
            yield b"%x\r\n%s\r\n" % (len(chunk), chunk)
        self.completed = True
        yield CHUNK_TERMINATOR
