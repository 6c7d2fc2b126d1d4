"""Conduit: HTTP client with a filter, interceptor and connector pipeline.

Requests are built from a Client through WebTargets and InvocationBuilders,
run through ordered request filters, serialized through writer
interceptors, dispatched by a pluggable connector (httpx by default), and
handed back through response filters, either blocking or as a
ResponseFuture.

Example:
    >>> from conduit import Entity, new_client
    >>> with new_client() as client:
    ...     text = client.target("https://example.com").request("text/plain").get(str)
"""

from conduit.chain import (
    ReaderInterceptor,
    ReaderInterceptorContext,
    RequestContext,
    RequestFilter,
    ResponseContext,
    ResponseFilter,
    WriterInterceptor,
    WriterInterceptorContext,
    priority,
)
from conduit.client import Client, ClientDefaults, new_client
from conduit.config import Configuration, RuntimeConfig
from conduit.connector import AsyncConnector, ConnectorProvider, SyncConnector
from conduit.constants import PRODUCT_VERSION, Priorities
from conduit.errors import (
    ConduitError,
    ExecutorExhaustedError,
    IllegalStateError,
    InvalidArgumentError,
    NullArgumentError,
    ProcessingError,
    ResponseStatusError,
)
from conduit.futures import FutureCancelledError, FutureState, ResponseFuture
from conduit.inject import Binder
from conduit.invocation import AsyncInvoker, Invocation, InvocationBuilder, InvocationCallback
from conduit.link import Link
from conduit.media import Entity, MediaType
from conduit.message import ClientRequest, Headers, Response
from conduit.target import WebTarget

__version__ = PRODUCT_VERSION

__all__ = [
    "AsyncConnector",
    "AsyncInvoker",
    "Binder",
    "Client",
    "ClientDefaults",
    "ClientRequest",
    "ConduitError",
    "Configuration",
    "ConnectorProvider",
    "Entity",
    "ExecutorExhaustedError",
    "FutureCancelledError",
    "FutureState",
    "Headers",
    "IllegalStateError",
    "InvalidArgumentError",
    "Invocation",
    "InvocationBuilder",
    "InvocationCallback",
    "Link",
    "MediaType",
    "NullArgumentError",
    "Priorities",
    "ProcessingError",
    "ReaderInterceptor",
    "ReaderInterceptorContext",
    "RequestContext",
    "RequestFilter",
    "Response",
    "ResponseContext",
    "ResponseFilter",
    "ResponseFuture",
    "ResponseStatusError",
    "RuntimeConfig",
    "SyncConnector",
    "WebTarget",
    "WriterInterceptor",
    "WriterInterceptorContext",
    "new_client",
    "__version__",
    "priority",
]
