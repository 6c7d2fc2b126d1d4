"""Client: root of the invocation API.

A Client owns a Configuration and the runtimes (filter chains plus
connector) built from it. Targets derived from the client receive a copy
of its configuration. Runtimes are created lazily and shared by every
invocation whose configuration has the same registrations, connector
provider and transfer, timeout and executor properties; they are closed
together with the client.

Once closed, a client rejects every further operation with
IllegalStateError. Closing is idempotent.

Example:
    >>> from conduit import Entity, new_client
    >>> with new_client() as client:
    ...     target = client.target("https://api.example.com").path("items")
    ...     created = target.request().post(Entity.json({"name": "spoon"}))
    ...     item = target.path("1").request("application/json").get(dict)
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

from conduit.config import Configuration, RuntimeConfig
from conduit.constants import DEFAULT_CHUNK_SIZE, PRODUCT_NAME, PRODUCT_VERSION
from conduit.errors import IllegalStateError, InvalidArgumentError, NullArgumentError
from conduit.invocation import InvocationBuilder
from conduit.link import Link
from conduit.observability import get_logger
from conduit.runtime import ClientRuntime
from conduit.target import WebTarget

logger = get_logger(__name__)

_SCHEME_PREFIX = re.compile(r"^([^:/?#]+):")
_VALID_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")


@dataclass(frozen=True)
class ClientDefaults:
    """Process-wide defaults handed to a client at construction.

    Attributes:
        user_agent: Sent when a request has no User-Agent header
        chunk_size: Chunk size used when the configuration sets none
    """

    user_agent: str = f"{PRODUCT_NAME}/{PRODUCT_VERSION}"
    chunk_size: int = DEFAULT_CHUNK_SIZE


def validate_uri(uri: str) -> str:
    """Check ``uri`` syntax and return it unchanged.

    Relative references are accepted; they fail later, at dispatch, if the
    connector cannot resolve them.

    Raises:
        NullArgumentError: If ``uri`` is None
        InvalidArgumentError: On whitespace or control characters, a
            malformed scheme, or an invalid port
    """
    if uri is None:
        raise NullArgumentError("uri")
    uri = str(uri)
    for char in uri:
        if char.isspace() or ord(char) < 0x20 or ord(char) == 0x7F:
            raise InvalidArgumentError(
                f"Illegal character {char!r} in URI: {uri!r}", argument="uri"
            )
    prefix = _SCHEME_PREFIX.match(uri)
    if prefix and not _VALID_SCHEME.match(prefix.group(1)):
        raise InvalidArgumentError(
            f"Invalid URI scheme {prefix.group(1)!r} in {uri!r}", argument="uri"
        )
    try:
        parts = urlsplit(uri)
        # Accessing port validates it (non-numeric or out of range)
        parts.port
    except ValueError as exc:
        raise InvalidArgumentError(f"Invalid URI {uri!r}: {exc}", argument="uri") from exc
    if parts.scheme.lower() in ("http", "https") and not parts.hostname:
        raise InvalidArgumentError(f"Invalid URI {uri!r}: missing host", argument="uri")
    return uri


class Client:
    """Open/closed client owning a configuration and its runtimes.

    Args:
        configuration: Configuration to copy (a fresh one if None)
        defaults: Defaults for this client (``ClientDefaults()`` if None)
    """

    def __init__(
        self,
        configuration: Configuration | None = None,
        defaults: ClientDefaults | None = None,
    ) -> None:
        self._configuration = configuration.copy() if configuration is not None else Configuration()
        self.defaults = defaults if defaults is not None else ClientDefaults()
        self._runtimes: dict[tuple[Any, ...], ClientRuntime] = {}
        self._lock = threading.RLock()
        self._closed = False
        logger.debug("conduit.client.created", user_agent=self.defaults.user_agent)

    @property
    def closed(self) -> bool:
        return self._closed

    def check_open(self) -> None:
        """Raise IllegalStateError if the client has been closed."""
        if self._closed:
            raise IllegalStateError("Client instance has been closed")

    @property
    def configuration(self) -> Configuration:
        self.check_open()
        return self._configuration

    def property(self, name: str, value: Any) -> "Client":
        self.check_open()
        self._configuration.property(name, value)
        return self

    def register(self, component: Any, *args: Any, **kwargs: Any) -> "Client":
        """Register a component on the client configuration (see Configuration.register)."""
        self.check_open()
        self._configuration.register(component, *args, **kwargs)
        return self

    def target(self, uri: str) -> WebTarget:
        """Create a target for ``uri`` with a copy of the client configuration.

        Raises:
            IllegalStateError: If the client is closed
            InvalidArgumentError: If ``uri`` is malformed
        """
        self.check_open()
        return WebTarget(self, validate_uri(uri), self._configuration.copy())

    def invocation(self, link: Link) -> InvocationBuilder:
        """Create a request builder for a hypermedia link.

        The link's media type, when present, becomes the accepted type.

        Raises:
            IllegalStateError: If the client is closed
            NullArgumentError: If ``link`` is None
        """
        self.check_open()
        if link is None:
            raise NullArgumentError("link")
        builder = InvocationBuilder(self, validate_uri(link.uri), self._configuration.copy())
        if link.type:
            builder.accept(link.type)
        return builder

    def runtime_for(self, configuration: RuntimeConfig) -> ClientRuntime:
        """Return the runtime for ``configuration``, creating it on first use.

        Snapshots with the same ``runtime_key()`` share one runtime and
        connector.

        Raises:
            IllegalStateError: If the client is closed
            ProcessingError: If the filter chain or the connector cannot be built
        """
        key = configuration.runtime_key()
        with self._lock:
            self.check_open()
            runtime = self._runtimes.get(key)
            if runtime is None:
                runtime = ClientRuntime(self, configuration, self.defaults)
                self._runtimes[key] = runtime
            return runtime

    def close(self) -> None:
        """Close the client and every connector it created; safe to call repeatedly."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            runtimes = list(self._runtimes.values())
            self._runtimes = {}
        for runtime in runtimes:
            try:
                runtime.close()
            except Exception as exc:
                logger.warning(
                    "conduit.client.runtime_close_failed",
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
        logger.debug("conduit.client.closed", runtimes=len(runtimes))

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"Client({state})"


def new_client(
    configuration: Configuration | None = None,
    defaults: ClientDefaults | None = None,
) -> Client:
    """Create an open client with a copy of ``configuration``."""
    return Client(configuration, defaults)
