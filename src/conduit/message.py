"""Request and response messages.

This module defines the objects that flow through the invocation pipeline:

- Headers: case-insensitive multimap of header values
- ClientRequest: the outgoing request as seen by filters and connectors
- Response: the result of an invocation (from a connector, or supplied by a
  request filter that aborted the chain)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from conduit.constants import CONTENT_TYPE
from conduit.entity import Body, decode_entity, encode_entity
from conduit.errors import IllegalStateError, ProcessingError
from conduit.media import Entity, MediaType

if TYPE_CHECKING:
    from conduit.config import RuntimeConfig


class Headers:
    """Case-insensitive, order-preserving header multimap.

    Setting a header to ``None`` removes its values and records that the
    caller explicitly asked for no value; ``is_suppressed`` reports this so
    the runtime does not fill in a default for it.

    Example:
        >>> headers = Headers({"Accept": "text/plain"})
        >>> headers.add("accept", "application/json")
        >>> headers.get_all("ACCEPT")
        ['text/plain', 'application/json']
    """

    def __init__(self, initial: dict[str, Any] | Iterable[tuple[str, Any]] | None = None) -> None:
        self._values: dict[str, list[str]] = {}
        self._names: dict[str, str] = {}
        self._suppressed: set[str] = set()
        if initial is not None:
            items = initial.items() if isinstance(initial, dict) else initial
            for name, value in items:
                self.add(name, value)

    def add(self, name: str, value: Any) -> None:
        """Append a value; ``None`` behaves like ``set(name, None)``."""
        if value is None:
            self.set(name, None)
            return
        key = name.lower()
        self._names.setdefault(key, name)
        self._values.setdefault(key, []).append(str(value))
        self._suppressed.discard(key)

    def set(self, name: str, value: Any) -> None:
        """Replace all values of ``name``; ``None`` removes and suppresses it."""
        key = name.lower()
        self._values.pop(key, None)
        self._names.pop(key, None)
        if value is None:
            self._suppressed.add(key)
            return
        self.add(name, value)

    def remove(self, name: str) -> None:
        key = name.lower()
        self._values.pop(key, None)
        self._names.pop(key, None)
        self._suppressed.discard(key)

    def get_first(self, name: str, default: str | None = None) -> str | None:
        values = self._values.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> list[str]:
        return list(self._values.get(name.lower(), []))

    def is_suppressed(self, name: str) -> bool:
        return name.lower() in self._suppressed

    def items(self) -> list[tuple[str, str]]:
        """Return ``(name, value)`` pairs, one per value, in insertion order."""
        return [(self._names[key], value) for key, values in self._values.items() for value in values]

    def to_dict(self) -> dict[str, str]:
        """Return one entry per header, multiple values joined with ``", "``."""
        return {self._names[key]: ", ".join(values) for key, values in self._values.items()}

    def copy(self) -> "Headers":
        clone = Headers(self.items())
        clone._suppressed = set(self._suppressed)
        return clone

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter([self._names[key] for key in self._values])

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._values == other._values and self._suppressed == other._suppressed

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Headers({self.to_dict()!r})"


class ClientRequest:
    """An outgoing request as seen by request filters, interceptors and connectors.

    Filters may change the method, URI, headers and entity in place. The
    ``body`` is filled in by the writer interceptor chain just before the
    request is handed to the connector.

    Attributes:
        method: HTTP method (upper case)
        uri: Absolute or relative request URI
        headers: Request headers
        entity: Entity to send, if any
        configuration: Frozen configuration the request executes with
        body: Serialized body (bytes, or a chunk iterator in chunked mode)
    """

    def __init__(
        self,
        method: str,
        uri: str,
        configuration: "RuntimeConfig",
        headers: Headers | None = None,
        entity: Entity | None = None,
    ) -> None:
        self.method = method.upper()
        self.uri = uri
        self.configuration = configuration
        self.headers = headers.copy() if headers is not None else Headers()
        self.entity = entity
        self.body: Body | None = None

    @property
    def media_type(self) -> str | None:
        if self.entity is not None:
            return self.entity.media_type
        return self.headers.get_first(CONTENT_TYPE)

    @property
    def is_chunked(self) -> bool:
        return self.body is not None and not isinstance(self.body, bytes)

    def get_property(self, name: str, default: Any = None) -> Any:
        return self.configuration.get_property(name, default)

    def __repr__(self) -> str:
        return f"ClientRequest({self.method} {self.uri})"


# Reads a response entity as the given type; installed by the runtime so the
# reader interceptor chain of the request's configuration applies.
EntityReader = Callable[["Response", Any], Any]


def _default_reader(response: "Response", entity_type: Any) -> Any:
    return decode_entity(response.content, entity_type, response.media_type)


class Response:
    """An HTTP response.

    Responses are produced by connectors, or built directly with
    ``Response.ok(...)`` / ``Response.status_of(...)`` by a request filter
    that aborts the chain.

    Example:
        >>> response = Response.ok("Foo")
        >>> response.status, response.read_entity(str)
        (200, 'Foo')
    """

    def __init__(
        self,
        status: int,
        headers: Headers | dict[str, Any] | None = None,
        content: bytes = b"",
        reason: str | None = None,
        request: ClientRequest | None = None,
    ) -> None:
        self.status = status
        self.headers = headers if isinstance(headers, Headers) else Headers(headers)
        self.content = content
        self.request = request
        self._reason = reason
        self._reader: EntityReader = _default_reader
        self._closed = False

    @classmethod
    def status_of(
        cls,
        status: int,
        entity: Any = None,
        media_type: str | None = None,
        headers: dict[str, Any] | None = None,
    ) -> "Response":
        """Build a response with ``status`` and an optional in-memory entity."""
        response_headers = Headers(headers)
        content = b""
        if entity is not None:
            if isinstance(entity, Entity):
                media_type = entity.media_type
                entity = entity.value
            media_type = media_type or guess_media_type(entity)
            body = encode_entity(entity, media_type)
            content = body if isinstance(body, bytes) else b"".join(body)
            if CONTENT_TYPE not in response_headers:
                response_headers.set(CONTENT_TYPE, media_type)
        return cls(status=status, headers=response_headers, content=content)

    @classmethod
    def ok(cls, entity: Any = None, media_type: str | None = None) -> "Response":
        return cls.status_of(200, entity, media_type)

    @classmethod
    def no_content(cls) -> "Response":
        return cls.status_of(204)

    @property
    def reason(self) -> str:
        if self._reason is not None:
            return self._reason
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def media_type(self) -> str | None:
        return self.headers.get_first(CONTENT_TYPE)

    @property
    def has_entity(self) -> bool:
        return bool(self.content)

    @property
    def closed(self) -> bool:
        return self._closed

    def bind_reader(self, reader: EntityReader) -> None:
        """Install the entity reader (reader interceptor chain) for this response."""
        self._reader = reader

    def read_entity(self, entity_type: Any = str) -> Any:
        """Read the entity as ``entity_type`` through the reader interceptors.

        Raises:
            IllegalStateError: If the response has been closed
            ProcessingError: If the entity cannot be read as ``entity_type``
        """
        if self._closed:
            raise IllegalStateError("Response has been closed; entity is no longer available")
        try:
            return self._reader(self, entity_type)
        except ProcessingError:
            raise
        except Exception as exc:
            raise ProcessingError.wrap(exc) from exc

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "Response":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Response(status={self.status})"


def guess_media_type(entity: Any) -> str:
    """Media type used when an entity is given without one."""
    if isinstance(entity, str):
        return MediaType.TEXT_PLAIN
    if isinstance(entity, (dict, list)) or hasattr(entity, "model_dump_json"):
        return MediaType.APPLICATION_JSON
    return MediaType.APPLICATION_OCTET_STREAM
