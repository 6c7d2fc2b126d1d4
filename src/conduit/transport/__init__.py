"""Conduit transport layer.

This module provides the bundled connector and the worker pool used for
asynchronous dispatch:
- httpx for the default synchronous connector
- a bounded thread pool for connectors without native async support

Public exports:
    HttpxConnector: httpx-backed connector
    HttpxConnectorProvider: Factory for HttpxConnector (optionally with a custom transport)
    BoundedExecutor: Fail-fast thread pool for async dispatch

Example:
    >>> import httpx
    >>> from conduit.config import Configuration
    >>> from conduit.transport import HttpxConnectorProvider
    >>> transport = httpx.MockTransport(lambda request: httpx.Response(204))
    >>> config = Configuration().connector_provider(HttpxConnectorProvider(transport))
"""

from conduit.transport.executors import BoundedExecutor
from conduit.transport.httpx_connector import HttpxConnector, HttpxConnectorProvider

__all__ = [
    "BoundedExecutor",
    "HttpxConnector",
    "HttpxConnectorProvider",
]
