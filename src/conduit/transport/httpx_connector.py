"""httpx-backed connector.

HttpxConnector is the default transport. It sends ClientRequests with an
``httpx.Client`` built from the runtime configuration's timeouts. Request
bodies are passed through unchanged: buffered bodies are sent with a
Content-Length, chunk iterators are streamed with
``Transfer-Encoding: chunked``.

Every transport failure, including an exception raised by a streamed
entity while the body is being written, is reported as a ProcessingError
whose message is the transport's own text and whose cause is the original
exception. An aborted chunked upload never gets its terminating chunk, so
the server sees an incomplete body.

Example:
    >>> import httpx
    >>> from conduit.client import new_client
    >>> from conduit.config import Configuration
    >>> transport = httpx.MockTransport(lambda request: httpx.Response(200, text="pong"))
    >>> config = Configuration().connector_provider(HttpxConnectorProvider(transport=transport))
    >>> with new_client(config) as client:
    ...     client.target("http://localhost/ping").request().get(str)
    'pong'
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import httpx

from conduit.constants import USER_AGENT
from conduit.errors import ProcessingError
from conduit.message import ClientRequest, Headers, Response
from conduit.observability import get_logger
from conduit.settings import TimeoutSettings
from conduit.utils.sanitization import sanitize_url

if TYPE_CHECKING:
    from conduit.client import Client
    from conduit.config import RuntimeConfig

logger = get_logger(__name__)

CONNECTOR_NAME = "httpx"


class HttpxConnector:
    """Synchronous connector backed by ``httpx.Client``.

    Attributes:
        name: Connector name reported in logs
        timeouts: Connect/read timeouts taken from the configuration
    """

    name = CONNECTOR_NAME

    def __init__(
        self,
        configuration: "RuntimeConfig",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeouts = TimeoutSettings.from_configuration(configuration)
        self._transport = transport
        self._client: httpx.Client | None = None
        self._lock = threading.Lock()
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _http_client(self) -> httpx.Client:
        with self._lock:
            if self._closed:
                raise ProcessingError("Connector has been closed")
            if self._client is None:
                timeout = httpx.Timeout(
                    self.timeouts.read_timeout, connect=self.timeouts.connect_timeout
                )
                self._client = httpx.Client(
                    transport=self._transport,
                    timeout=timeout,
                    follow_redirects=False,
                )
            return self._client

    def _build(self, client: httpx.Client, request: ClientRequest) -> httpx.Request:
        http_request = client.build_request(
            request.method,
            request.uri,
            headers=request.headers.items(),
            content=request.body,
        )
        # httpx adds its own User-Agent; an explicitly suppressed one must stay absent
        if request.headers.is_suppressed(USER_AGENT) and USER_AGENT not in request.headers:
            http_request.headers.pop(USER_AGENT, None)
        return http_request

    def apply(self, request: ClientRequest) -> Response:
        """Send ``request`` and return the fully read response.

        Raises:
            ProcessingError: If the URI is unusable, the exchange fails, or
                the request entity stream raises while being sent
        """
        client = self._http_client()
        try:
            http_request = self._build(client, request)
            http_response = client.send(http_request)
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
            logger.warning(
                "conduit.connector.request_failed",
                connector=self.name,
                method=request.method,
                uri=sanitize_url(request.uri),
                chunked=request.is_chunked,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ProcessingError(str(exc) or type(exc).__name__, cause=exc) from exc

        return Response(
            status=http_response.status_code,
            headers=Headers(http_response.headers.multi_items()),
            content=http_response.content,
            reason=http_response.reason_phrase,
            request=request,
        )

    def close(self) -> None:
        """Release pooled connections; safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            client, self._client = self._client, None
        if client is not None:
            client.close()
        logger.debug("conduit.connector.closed", connector=self.name)


class HttpxConnectorProvider:
    """Creates HttpxConnectors.

    Args:
        transport: Optional httpx transport (e.g. ``httpx.MockTransport`` in tests)
    """

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def get_connector(self, client: "Client", configuration: "RuntimeConfig") -> HttpxConnector:
        return HttpxConnector(configuration, transport=self._transport)
