"""Connector SPI: the pluggable transport behind the invocation pipeline.

A connector executes a fully-built ClientRequest. Connectors offer a set of
capabilities:

- SyncConnector: ``apply(request) -> Response`` on the calling thread
- AsyncConnector: ``apply_async(request, callback)`` returning immediately
  with a cancellable handle (or None) and reporting the outcome through the
  callback

A connector may implement one or both. The runtime uses ``apply_async``
when it exists and otherwise runs ``apply`` on the client's worker pool.

Connectors are created by a ConnectorProvider once per (client,
configuration) pair and closed with the client.

Example:
    >>> class Echo:
    ...     name = "echo"
    ...     def apply(self, request):
    ...         return Response.ok(request.uri)
    ...     def close(self):
    ...         pass
    >>> isinstance(Echo(), SyncConnector)
    True
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from conduit.futures import Cancellable
from conduit.message import ClientRequest, Response
from conduit.observability import get_logger

if TYPE_CHECKING:
    from conduit.client import Client
    from conduit.config import RuntimeConfig

logger = get_logger(__name__)


class AsyncConnectorCallback(Protocol):
    """Receives the outcome of ``AsyncConnector.apply_async``."""

    def response(self, response: Response) -> None: ...

    def failure(self, error: BaseException) -> None: ...


@runtime_checkable
class SyncConnector(Protocol):
    """Connector able to execute a request on the calling thread."""

    name: Optional[str]

    def apply(self, request: ClientRequest) -> Response:
        """Send ``request`` and return the response.

        Raises:
            ProcessingError: On any transport failure; the message is the
                transport's own diagnostic text
        """
        ...

    def close(self) -> None: ...


@runtime_checkable
class AsyncConnector(Protocol):
    """Connector able to execute a request without blocking the caller."""

    name: Optional[str]

    def apply_async(
        self, request: ClientRequest, callback: AsyncConnectorCallback
    ) -> Optional[Cancellable]: ...

    def close(self) -> None: ...


# A connector offers one or both capabilities
Connector = SyncConnector | AsyncConnector


@runtime_checkable
class ConnectorProvider(Protocol):
    """Creates the connector a client uses for a given runtime configuration."""

    def get_connector(self, client: "Client", configuration: "RuntimeConfig") -> Connector: ...


class CompletionGuard:
    """Wraps an AsyncConnectorCallback so only the first outcome is delivered.

    Connectors that might signal twice (e.g. a failure racing a response)
    are tolerated: later signals are logged and dropped.
    """

    def __init__(self, callback: AsyncConnectorCallback, connector_name: str | None = None) -> None:
        self._callback = callback
        self._connector_name = connector_name
        self._lock = threading.Lock()
        self._completed = False

    @property
    def completed(self) -> bool:
        with self._lock:
            return self._completed

    def _claim(self, outcome: str) -> bool:
        with self._lock:
            if self._completed:
                logger.warning(
                    "conduit.connector.duplicate_completion",
                    connector=self._connector_name,
                    outcome=outcome,
                    message="Connector signalled completion more than once; ignoring",
                )
                return False
            self._completed = True
            return True

    def response(self, response: Response) -> None:
        if self._claim("response"):
            self._callback.response(response)
        else:
            response.close()

    def failure(self, error: BaseException) -> None:
        if self._claim("failure"):
            self._callback.failure(error)


def connector_name(connector: object) -> str:
    """Human-readable connector name, falling back to its class name."""
    name = getattr(connector, "name", None)
    return name if name else type(connector).__name__
