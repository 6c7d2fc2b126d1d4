"""Media types and request entities.

An Entity pairs the object to send with the media type it should be
serialized as. The object may be text, bytes, a JSON-able value, a pydantic
model, or a byte stream (file-like object or iterable of bytes) that is
consumed when the request is written.

Example:
    >>> from conduit.media import Entity, MediaType
    >>> Entity.text("hello").media_type
    'text/plain'
    >>> Entity.entity(b"\\x00\\x01", MediaType.APPLICATION_OCTET_STREAM).media_type
    'application/octet-stream'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from conduit.errors import InvalidArgumentError


class MediaType:
    """Common media type strings."""

    WILDCARD = "*/*"
    TEXT_PLAIN = "text/plain"
    TEXT_HTML = "text/html"
    TEXT_XML = "text/xml"
    APPLICATION_XML = "application/xml"
    APPLICATION_JSON = "application/json"
    APPLICATION_FORM_URLENCODED = "application/x-www-form-urlencoded"
    APPLICATION_OCTET_STREAM = "application/octet-stream"


def parse_media_type(value: str) -> tuple[str, dict[str, str]]:
    """Split a media type into its lower-cased ``type/subtype`` and parameters.

    Raises:
        InvalidArgumentError: If the value has no ``type/subtype`` form

    Example:
        >>> parse_media_type("text/plain; charset=ISO-8859-1")
        ('text/plain', {'charset': 'ISO-8859-1'})
    """
    essence, _, rest = value.partition(";")
    essence = essence.strip().lower()
    kind, slash, subtype = essence.partition("/")
    if not slash or not kind or not subtype:
        raise InvalidArgumentError(f"Invalid media type: {value!r}", argument="media_type")
    params: dict[str, str] = {}
    for part in rest.split(";"):
        name, eq, param_value = part.partition("=")
        if eq and name.strip():
            params[name.strip().lower()] = param_value.strip().strip('"')
    return essence, params


def charset_of(media_type: str | None, default: str = "utf-8") -> str:
    """Return the charset parameter of ``media_type`` or ``default``."""
    if not media_type:
        return default
    try:
        _, params = parse_media_type(media_type)
    except InvalidArgumentError:
        return default
    return params.get("charset", default)


def is_json(media_type: str | None) -> bool:
    """Return True for application/json and any ``+json`` suffix type."""
    if not media_type:
        return False
    essence = media_type.partition(";")[0].strip().lower()
    return essence == MediaType.APPLICATION_JSON or essence.endswith("+json")


@dataclass(frozen=True)
class Entity:
    """An entity to be sent with a request, together with its media type.

    Attributes:
        value: The object to serialize (text, bytes, JSON-able value, model, or stream)
        media_type: Content type the value is serialized as
        language: Optional Content-Language value
    """

    value: Any
    media_type: str
    language: str | None = None

    def __post_init__(self) -> None:
        parse_media_type(self.media_type)

    @classmethod
    def entity(cls, value: Any, media_type: str, language: str | None = None) -> "Entity":
        return cls(value=value, media_type=media_type, language=language)

    @classmethod
    def text(cls, value: Any) -> "Entity":
        return cls(value=value, media_type=MediaType.TEXT_PLAIN)

    @classmethod
    def xml(cls, value: Any) -> "Entity":
        return cls(value=value, media_type=MediaType.APPLICATION_XML)

    @classmethod
    def json(cls, value: Any) -> "Entity":
        return cls(value=value, media_type=MediaType.APPLICATION_JSON)

    @classmethod
    def html(cls, value: Any) -> "Entity":
        return cls(value=value, media_type=MediaType.TEXT_HTML)

    @classmethod
    def form(cls, value: dict[str, str]) -> "Entity":
        return cls(value=value, media_type=MediaType.APPLICATION_FORM_URLENCODED)
