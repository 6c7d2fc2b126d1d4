"""Web targets: a URI bound to a configuration.

A WebTarget is never executed itself. It derives new targets (``path()``,
``query_param()``) and request builders (``request()``). Every derived
target gets its own copy of the configuration, so changing a derived
target's configuration never affects the target (or client) it came from.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from conduit.config import Configuration
from conduit.errors import NullArgumentError
from conduit.invocation import InvocationBuilder

if TYPE_CHECKING:
    from conduit.client import Client


class WebTarget:
    """URI plus configuration from which invocations are derived.

    Attributes:
        uri: Target URI
    """

    def __init__(self, client: "Client", uri: str, configuration: Configuration) -> None:
        self._client = client
        self._uri = uri
        self._configuration = configuration

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def configuration(self) -> Configuration:
        """This target's own configuration.

        Raises:
            IllegalStateError: If the client is closed
        """
        self._client.check_open()
        return self._configuration

    def _derive(self, uri: str) -> "WebTarget":
        self._client.check_open()
        return WebTarget(self._client, uri, self._configuration.copy())

    def path(self, segment: str) -> "WebTarget":
        """Return a target with ``segment`` appended to the URI path."""
        if segment is None:
            raise NullArgumentError("segment")
        parts = urlsplit(self._uri)
        encoded = quote(segment.strip("/"), safe="/;=@:!$&'()*+,-._~%")
        if not encoded:
            return self._derive(self._uri)
        path = parts.path.rstrip("/") + "/" + encoded if parts.path or parts.netloc else encoded
        return self._derive(urlunsplit(parts._replace(path=path)))

    def query_param(self, name: str, *values: Any) -> "WebTarget":
        """Return a target with ``name=value`` pairs appended to the query.

        Without values, every existing ``name`` parameter is removed.
        """
        if name is None:
            raise NullArgumentError("name")
        parts = urlsplit(self._uri)
        if not values:
            kept = [p for p in parts.query.split("&") if p and p.split("=", 1)[0] != name]
            return self._derive(urlunsplit(parts._replace(query="&".join(kept))))
        added = urlencode([(name, v) for v in values if v is not None])
        query = f"{parts.query}&{added}" if parts.query else added
        return self._derive(urlunsplit(parts._replace(query=query)))

    def request(self, *accepted: str) -> InvocationBuilder:
        """Start building a request, optionally with accepted media types.

        Raises:
            IllegalStateError: If the client is closed
        """
        self._client.check_open()
        return InvocationBuilder(self._client, self._uri, self._configuration).accept(*accepted)

    def __repr__(self) -> str:
        return f"WebTarget({self._uri!r})"
