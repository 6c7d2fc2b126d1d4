"""Hypermedia links.

A Link carries a target URI plus optional relation, media type and title,
as found in HTTP ``Link`` headers. ``Client.invocation(link)`` turns a link
into a request builder.

Example:
    >>> from conduit.link import Link
    >>> link = Link(uri="http://localhost:8080/", type="text/plain")
    >>> link.type
    'text/plain'
    >>> Link.parse('<http://localhost:8080/next>; rel="next"').rel
    'next'
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from conduit.media import parse_media_type


class Link(BaseModel):
    """A typed hypermedia link.

    Attributes:
        uri: Target URI of the link
        rel: Relation type (e.g. "self", "next")
        type: Declared media type of the linked resource
        title: Human-readable title
        params: Any further link parameters
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    uri: str = Field(..., min_length=1)
    rel: str | None = None
    type: str | None = None
    title: str | None = None
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("type")
    @classmethod
    def _validate_type(cls, v: str | None) -> str | None:
        if v is not None:
            parse_media_type(v)
        return v

    @classmethod
    def parse(cls, header: str) -> "Link":
        """Parse a single ``Link`` header value: ``<uri>; rel="x"; type="y"``.

        Raises:
            ValueError: If the value does not start with a ``<uri>`` reference
        """
        header = header.strip()
        if not header.startswith("<") or ">" not in header:
            raise ValueError(f"Invalid Link header: {header!r}")
        uri, _, rest = header[1:].partition(">")
        known: dict[str, str | None] = {"rel": None, "type": None, "title": None}
        extra: dict[str, str] = {}
        for part in rest.split(";"):
            name, eq, value = part.partition("=")
            name = name.strip().lower()
            if not eq or not name:
                continue
            value = value.strip().strip('"')
            if name in known:
                known[name] = value
            else:
                extra[name] = value
        return cls(uri=uri.strip(), params=extra, **known)

    def __str__(self) -> str:
        parts = [f"<{self.uri}>"]
        for name in ("rel", "type", "title"):
            value = getattr(self, name)
            if value is not None:
                parts.append(f'{name}="{value}"')
        parts.extend(f'{k}="{v}"' for k, v in self.params.items())
        return "; ".join(parts)
