"""Filter and interceptor chains.

Request filters run, in ascending priority order, before a request is
dispatched; response filters run, in the same order, after a response is
available. A request filter may call ``abort_with(response)`` on its
context: the remaining request filters and the connector are skipped and
the given response continues through the response filters as if the
transport had returned it.

Running the request filters yields a ChainResult instead of raising for
control flow:

- Continue(request): all filters ran, dispatch the request
- Aborted(response): a filter short-circuited the chain
- Failed(error): a filter raised; the error is a ProcessingError whose
  cause is the filter's exception

Writer and reader interceptors wrap entity serialization. Each one must
call ``context.proceed()`` to run the next interceptor and finally the
codec; an interceptor that does not call it cuts processing short.

Example:
    >>> class Deny(RequestFilter):
    ...     def filter(self, context):
    ...         context.abort_with(Response.status_of(403))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar, Union

from conduit.entity import Body, decode_entity, encode_entity
from conduit.errors import IllegalStateError, ProcessingError
from conduit.message import ClientRequest, Headers, Response
from conduit.observability import get_logger

logger = get_logger(__name__)

PRIORITY_ATTRIBUTE = "__conduit_priority__"

T = TypeVar("T", bound=type)


def priority(value: int) -> Callable[[T], T]:
    """Class decorator setting the default ordering priority of a provider.

    Example:
        >>> @priority(100)
        ... class Early(RequestFilter):
        ...     def filter(self, context): ...
    """

    def decorate(cls: T) -> T:
        setattr(cls, PRIORITY_ATTRIBUTE, value)
        return cls

    return decorate


class RequestContext:
    """Mutable view of an outgoing request handed to request and response filters."""

    def __init__(self, request: ClientRequest) -> None:
        self._request = request
        self._abort_response: Response | None = None
        self.properties: dict[str, Any] = {}

    @property
    def request(self) -> ClientRequest:
        return self._request

    @property
    def method(self) -> str:
        return self._request.method

    @method.setter
    def method(self, value: str) -> None:
        self._request.method = value.upper()

    @property
    def uri(self) -> str:
        return self._request.uri

    @uri.setter
    def uri(self, value: str) -> None:
        self._request.uri = value

    @property
    def headers(self) -> Headers:
        return self._request.headers

    @property
    def entity(self) -> Any:
        return None if self._request.entity is None else self._request.entity.value

    @property
    def media_type(self) -> str | None:
        return self._request.media_type

    @property
    def configuration(self) -> Any:
        return self._request.configuration

    def get_property(self, name: str, default: Any = None) -> Any:
        """Per-request property, falling back to the configuration property."""
        if name in self.properties:
            return self.properties[name]
        return self._request.get_property(name, default)

    @property
    def aborted(self) -> bool:
        return self._abort_response is not None

    @property
    def abort_response(self) -> Response | None:
        return self._abort_response

    def abort_with(self, response: Response) -> None:
        """Stop the request chain and use ``response`` instead of dispatching.

        Raises:
            IllegalStateError: If the chain was already aborted
        """
        if self._abort_response is not None:
            raise IllegalStateError("Request processing has already been aborted")
        self._abort_response = response


class ResponseContext:
    """Mutable view of a response handed to response filters."""

    def __init__(self, response: Response) -> None:
        self.response = response

    @property
    def status(self) -> int:
        return self.response.status

    @status.setter
    def status(self, value: int) -> None:
        self.response.status = value

    @property
    def headers(self) -> Headers:
        return self.response.headers

    @property
    def content(self) -> bytes:
        return self.response.content

    @content.setter
    def content(self, value: bytes) -> None:
        self.response.content = value

    @property
    def media_type(self) -> str | None:
        return self.response.media_type


class RequestFilter(ABC):
    """Hook run before a request is dispatched."""

    @abstractmethod
    def filter(self, context: RequestContext) -> None: ...


class ResponseFilter(ABC):
    """Hook run after a response is available (including aborted ones)."""

    @abstractmethod
    def filter(self, request_context: RequestContext, response_context: ResponseContext) -> None: ...


class WriterInterceptorContext:
    """Context passed along the writer interceptor chain.

    Interceptors may replace ``entity`` or ``media_type`` before calling
    ``proceed()``, and may replace ``body`` after it returns.
    """

    def __init__(
        self,
        interceptors: Sequence["WriterInterceptor"],
        request: ClientRequest,
        terminal: Callable[["WriterInterceptorContext"], None],
    ) -> None:
        self._interceptors = interceptors
        self._terminal = terminal
        self._index = 0
        self.request = request
        self.entity: Any = None if request.entity is None else request.entity.value
        self.media_type = request.media_type
        self.body: Body | None = None

    @property
    def headers(self) -> Headers:
        return self.request.headers

    def get_property(self, name: str, default: Any = None) -> Any:
        return self.request.get_property(name, default)

    def proceed(self) -> None:
        if self._index < len(self._interceptors):
            interceptor = self._interceptors[self._index]
            self._index += 1
            interceptor.around_write_to(self)
        else:
            self._terminal(self)


class ReaderInterceptorContext:
    """Context passed along the reader interceptor chain.

    Interceptors may replace ``content`` before calling ``proceed()`` and
    transform the value it returns.
    """

    def __init__(
        self,
        interceptors: Sequence["ReaderInterceptor"],
        response: Response,
        entity_type: Any,
    ) -> None:
        self._interceptors = interceptors
        self._index = 0
        self.response = response
        self.entity_type = entity_type
        self.content = response.content
        self.media_type = response.media_type

    @property
    def headers(self) -> Headers:
        return self.response.headers

    def proceed(self) -> Any:
        if self._index < len(self._interceptors):
            interceptor = self._interceptors[self._index]
            self._index += 1
            return interceptor.around_read_from(self)
        return decode_entity(self.content, self.entity_type, self.media_type)


class WriterInterceptor(ABC):
    """Wraps serialization of the request entity."""

    @abstractmethod
    def around_write_to(self, context: WriterInterceptorContext) -> None: ...


class ReaderInterceptor(ABC):
    """Wraps deserialization of the response entity."""

    @abstractmethod
    def around_read_from(self, context: ReaderInterceptorContext) -> Any: ...


@dataclass(frozen=True)
class Continue:
    request: ClientRequest


@dataclass(frozen=True)
class Aborted:
    response: Response


@dataclass(frozen=True)
class Failed:
    error: ProcessingError


ChainResult = Union[Continue, Aborted, Failed]


@dataclass(frozen=True)
class Ordered:
    """A provider instance with its ordering key."""

    priority: int
    order: int
    provider: Any


def sort_providers(entries: Sequence[Ordered]) -> list[Any]:
    """Providers by ascending priority; equal priorities keep registration order."""
    return [e.provider for e in sorted(entries, key=lambda e: (e.priority, e.order))]


class FilterChain:
    """Ordered filters and interceptors of one runtime configuration."""

    def __init__(
        self,
        request_filters: Sequence[RequestFilter] = (),
        response_filters: Sequence[ResponseFilter] = (),
        writer_interceptors: Sequence[WriterInterceptor] = (),
        reader_interceptors: Sequence[ReaderInterceptor] = (),
    ) -> None:
        self.request_filters = tuple(request_filters)
        self.response_filters = tuple(response_filters)
        self.writer_interceptors = tuple(writer_interceptors)
        self.reader_interceptors = tuple(reader_interceptors)

    def apply_request(self, context: RequestContext) -> ChainResult:
        """Run the request filters in order until one aborts or raises."""
        for request_filter in self.request_filters:
            try:
                request_filter.filter(context)
            except Exception as exc:
                logger.warning(
                    "conduit.chain.request_filter_failed",
                    filter=type(request_filter).__qualname__,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                return Failed(ProcessingError.wrap(exc))
            if context.abort_response is not None:
                logger.debug(
                    "conduit.chain.aborted",
                    filter=type(request_filter).__qualname__,
                    uri=context.uri,
                )
                return Aborted(context.abort_response)
        return Continue(context.request)

    def apply_response(self, context: RequestContext, response: Response) -> Response:
        """Run the response filters over ``response``.

        Raises:
            ProcessingError: If a response filter raises
        """
        response_context = ResponseContext(response)
        for response_filter in self.response_filters:
            try:
                response_filter.filter(context, response_context)
            except Exception as exc:
                logger.warning(
                    "conduit.chain.response_filter_failed",
                    filter=type(response_filter).__qualname__,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if isinstance(exc, ProcessingError):
                    raise
                raise ProcessingError.wrap(exc) from exc
        result = response_context.response
        result.bind_reader(self.read_entity)
        return result

    def write_entity(self, request: ClientRequest, chunked: bool, chunk_size: int) -> None:
        """Serialize the request entity through the writer interceptors into ``request.body``."""
        if request.entity is None:
            request.body = None
            return

        def terminal(context: WriterInterceptorContext) -> None:
            context.body = encode_entity(
                context.entity, context.media_type, chunked=chunked, chunk_size=chunk_size
            )

        context = WriterInterceptorContext(self.writer_interceptors, request, terminal)
        context.proceed()
        request.body = context.body

    def read_entity(self, response: Response, entity_type: Any) -> Any:
        """Deserialize ``response`` content through the reader interceptors."""
        return ReaderInterceptorContext(self.reader_interceptors, response, entity_type).proceed()
