"""Invocations and their builders.

An InvocationBuilder collects the method, headers and entity of a request
for one target URI. ``build*()`` freezes them, together with a snapshot of
the configuration, into an Invocation: a single-use unit of work that is
executed with ``invoke()`` (blocking) or ``submit()`` (returns a
ResponseFuture at once).

The shortcut methods (``get()``, ``post()``, ...) build and invoke in one
step; ``async_()`` returns an AsyncInvoker offering the same methods in
non-blocking form.

Example:
    >>> builder = client.target("http://localhost/items").request("application/json")
    >>> invocation = builder.build_post(Entity.json({"name": "spoon"}))
    >>> response = invocation.invoke()
    >>> future = builder.async_().get(str)
    >>> body = future.result(timeout=5)
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from conduit.config import Configuration, RuntimeConfig
from conduit.constants import ACCEPT, CONTENT_TYPE
from conduit.errors import IllegalStateError, ProcessingError, ResponseStatusError
from conduit.futures import FutureCancelledError, ResponseFuture
from conduit.media import Entity
from conduit.message import ClientRequest, Headers, Response, guess_media_type
from conduit.observability import get_logger
from conduit.runtime import fail_future

if TYPE_CHECKING:
    from conduit.client import Client

logger = get_logger(__name__)


class InvocationCallback(ABC):
    """Notified once an asynchronous invocation has finished."""

    @abstractmethod
    def completed(self, result: Any) -> None:
        """Called with the response (or the entity read as the requested type)."""

    @abstractmethod
    def failed(self, error: BaseException) -> None:
        """Called with the processing failure, or FutureCancelledError."""


def read_response(response: Response, response_type: Any) -> Any:
    """Convert ``response`` into the caller's requested result.

    Raises:
        ResponseStatusError: If an entity type is requested but the status is not 2xx
        ProcessingError: If the entity cannot be read as ``response_type``
    """
    if response_type is None or response_type is Response:
        return response
    if not response.is_success:
        raise ResponseStatusError(response)
    try:
        return response.read_entity(response_type)
    finally:
        response.close()


def _notify(callback: InvocationCallback, future: ResponseFuture[Any]) -> None:
    if future.cancelled():
        callback.failed(FutureCancelledError("Invocation was cancelled"))
        return
    error = future.exception(timeout=0)
    if error is not None:
        callback.failed(error)
    else:
        callback.completed(future.result(timeout=0))


class Invocation:
    """A fully built request that can be executed exactly once.

    Attributes:
        method: HTTP method
        uri: Request URI
        headers: Request headers (a private copy)
        entity: Request entity, if any
        configuration: Configuration snapshot taken when the invocation was built
    """

    def __init__(
        self,
        client: "Client",
        method: str,
        uri: str,
        configuration: RuntimeConfig,
        headers: Headers | None = None,
        entity: Entity | None = None,
    ) -> None:
        self._client = client
        self.method = method.upper()
        self.uri = uri
        self.configuration = configuration
        self.headers = headers.copy() if headers is not None else Headers()
        self.entity = entity
        self._executed = False
        self._lock = threading.Lock()

    @property
    def executed(self) -> bool:
        return self._executed

    def _claim(self) -> None:
        with self._lock:
            if self._executed:
                raise IllegalStateError(
                    "Invocation has already been executed",
                    details={"method": self.method, "uri": self.uri},
                )
            self._executed = True

    def _request(self) -> ClientRequest:
        return ClientRequest(
            self.method,
            self.uri,
            self.configuration,
            headers=self.headers,
            entity=self.entity,
        )

    def invoke(self, response_type: Any = None) -> Any:
        """Execute on the calling thread.

        Args:
            response_type: ``None`` (or ``Response``) to get the Response;
                any other type reads the entity as that type

        Raises:
            IllegalStateError: If already executed or the client is closed
            ProcessingError: If processing fails
            ResponseStatusError: If ``response_type`` is given and the status is not 2xx
        """
        self._claim()
        runtime = self._client.runtime_for(self.configuration)
        response = runtime.invoke(self._request())
        return read_response(response, response_type)

    def submit(
        self,
        response_type: Any = None,
        callback: Optional[InvocationCallback] = None,
    ) -> ResponseFuture[Any]:
        """Execute asynchronously and return a future for the result.

        The future fails with a ProcessingError whose ``cause`` is the error
        the blocking ``invoke()`` would have raised.

        Raises:
            IllegalStateError: If already executed or the client is closed
        """
        self._claim()
        try:
            runtime = self._client.runtime_for(self.configuration)
        except ProcessingError as exc:
            response_future: ResponseFuture[Response] = ResponseFuture()
            fail_future(response_future, exc)
        else:
            response_future = runtime.submit(self._request())
        if response_type is None or response_type is Response:
            future: ResponseFuture[Any] = response_future
        else:
            future = ResponseFuture()
            future.attach(response_future)
            response_future.add_done_callback(
                lambda done: _convert(done, future, response_type)
            )
        if callback is not None:
            future.add_done_callback(lambda done: _notify(callback, done))
        return future

    def __repr__(self) -> str:
        return f"Invocation({self.method} {self.uri})"


def _convert(source: ResponseFuture[Response], target: ResponseFuture[Any], response_type: Any) -> None:
    if source.cancelled():
        target.cancel()
        return
    error = source.exception(timeout=0)
    if error is not None:
        target.set_exception(error)
        return
    response = source.result(timeout=0)
    try:
        value = read_response(response, response_type)
    except ProcessingError as exc:
        target.set_exception(ProcessingError(str(exc), cause=exc))
        return
    target.set_result(value)


class InvocationBuilder:
    """Builds invocations for one target URI.

    Header and property changes made on the builder apply to every
    invocation it builds afterwards; invocations already built keep the
    state they were built with.
    """

    def __init__(self, client: "Client", uri: str, configuration: Configuration) -> None:
        self._client = client
        self._uri = uri
        self._configuration = configuration.copy()
        self._headers = Headers()

    @property
    def uri(self) -> str:
        return self._uri

    @property
    def headers(self) -> Headers:
        return self._headers

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    def accept(self, *media_types: str) -> "InvocationBuilder":
        for media_type in media_types:
            if media_type:
                self._headers.add(ACCEPT, media_type)
        return self

    def accept_language(self, *languages: str) -> "InvocationBuilder":
        for language in languages:
            self._headers.add("Accept-Language", language)
        return self

    def header(self, name: str, value: Any) -> "InvocationBuilder":
        """Add a header value; ``None`` removes it and suppresses any default."""
        self._headers.add(name, value)
        return self

    def headers_from(self, values: dict[str, Any]) -> "InvocationBuilder":
        """Replace headers, suppressions included, with ``values``."""
        self._headers = Headers()
        for name, value in values.items():
            self._headers.add(name, value)
        return self

    def property(self, name: str, value: Any) -> "InvocationBuilder":
        """Set a configuration property for invocations built from here on."""
        self._configuration.property(name, value)
        return self

    def _entity(self, entity: Any) -> Entity | None:
        if entity is None or isinstance(entity, Entity):
            return entity
        media_type = self._headers.get_first(CONTENT_TYPE) or guess_media_type(entity)
        return Entity.entity(entity, media_type)

    def build(self, method: str, entity: Any = None) -> Invocation:
        """Freeze the current state into an Invocation.

        Raises:
            IllegalStateError: If the client is closed
        """
        self._client.check_open()
        return Invocation(
            self._client,
            method,
            self._uri,
            self._configuration.snapshot(),
            headers=self._headers,
            entity=self._entity(entity),
        )

    def build_get(self) -> Invocation:
        return self.build("GET")

    def build_delete(self) -> Invocation:
        return self.build("DELETE")

    def build_post(self, entity: Any = None) -> Invocation:
        return self.build("POST", entity)

    def build_put(self, entity: Any = None) -> Invocation:
        return self.build("PUT", entity)

    def method(self, name: str, entity: Any = None, response_type: Any = None) -> Any:
        """Build and synchronously invoke ``name``."""
        return self.build(name, entity).invoke(response_type)

    def get(self, response_type: Any = None) -> Any:
        return self.method("GET", response_type=response_type)

    def delete(self, response_type: Any = None) -> Any:
        return self.method("DELETE", response_type=response_type)

    def head(self) -> Response:
        return self.method("HEAD")

    def options(self, response_type: Any = None) -> Any:
        return self.method("OPTIONS", response_type=response_type)

    def post(self, entity: Any = None, response_type: Any = None) -> Any:
        return self.method("POST", entity, response_type)

    def put(self, entity: Any = None, response_type: Any = None) -> Any:
        return self.method("PUT", entity, response_type)

    def async_(self) -> "AsyncInvoker":
        return AsyncInvoker(self)


class AsyncInvoker:
    """Non-blocking counterparts of the InvocationBuilder shortcuts.

    Every method returns a ResponseFuture immediately.
    """

    def __init__(self, builder: InvocationBuilder) -> None:
        self._builder = builder

    def method(
        self,
        name: str,
        entity: Any = None,
        response_type: Any = None,
        callback: Optional[InvocationCallback] = None,
    ) -> ResponseFuture[Any]:
        return self._builder.build(name, entity).submit(response_type, callback)

    def get(self, response_type: Any = None, callback: Optional[InvocationCallback] = None) -> ResponseFuture[Any]:
        return self.method("GET", response_type=response_type, callback=callback)

    def delete(self, response_type: Any = None, callback: Optional[InvocationCallback] = None) -> ResponseFuture[Any]:
        return self.method("DELETE", response_type=response_type, callback=callback)

    def head(self, callback: Optional[InvocationCallback] = None) -> ResponseFuture[Any]:
        return self.method("HEAD", callback=callback)

    def options(self, response_type: Any = None, callback: Optional[InvocationCallback] = None) -> ResponseFuture[Any]:
        return self.method("OPTIONS", response_type=response_type, callback=callback)

    def post(
        self,
        entity: Any = None,
        response_type: Any = None,
        callback: Optional[InvocationCallback] = None,
    ) -> ResponseFuture[Any]:
        return self.method("POST", entity, response_type, callback)

    def put(
        self,
        entity: Any = None,
        response_type: Any = None,
        callback: Optional[InvocationCallback] = None,
    ) -> ResponseFuture[Any]:
        return self.method("PUT", entity, response_type, callback)
