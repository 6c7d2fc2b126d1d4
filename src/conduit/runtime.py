"""Client runtime: executes the invocation pipeline.

A ClientRuntime is created lazily for one client and runtime key (see
RuntimeConfig.runtime_key). It resolves the registered components into
ordered filter and interceptor chains, obtains a connector from the
configured provider, and runs requests through:

    request filters -> writer interceptors/codec -> connector
        -> response filters -> caller

Synchronous invocation runs entirely on the calling thread. Asynchronous
invocation returns a ResponseFuture at once: connectors implementing
``apply_async`` are driven through a completion-guarded callback, other
connectors run ``apply`` on the runtime's bounded worker pool.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING, Any

from conduit.chain import (
    Aborted,
    Failed,
    FilterChain,
    Ordered,
    ReaderInterceptor,
    RequestContext,
    RequestFilter,
    ResponseFilter,
    WriterInterceptor,
    sort_providers,
)
from conduit.config import RuntimeConfig
from conduit.connector import AsyncConnector, CompletionGuard, Connector, connector_name
from conduit.constants import CONTENT_LANGUAGE, CONTENT_TYPE, USER_AGENT
from conduit.errors import ExecutorExhaustedError, IllegalStateError, ProcessingError
from conduit.futures import ResponseFuture
from conduit.inject import Binder, ComponentResolver
from conduit.message import ClientRequest, Response
from conduit.observability import get_logger, sanitize_for_logging
from conduit.settings import ExecutorSettings, TransferSettings
from conduit.transport.executors import BoundedExecutor
from conduit.transport.httpx_connector import HttpxConnectorProvider
from conduit.utils.sanitization import sanitize_url

if TYPE_CHECKING:
    from conduit.client import Client, ClientDefaults

logger = get_logger(__name__)


def build_chain(configuration: RuntimeConfig, resolver: ComponentResolver) -> FilterChain:
    """Instantiate and order the providers registered in ``configuration``."""
    instances: dict[int, Any] = {}

    def provider_for(registration: Any) -> Any:
        key = registration.order
        if key not in instances:
            if registration.is_class:
                instances[key] = resolver.create(registration.component)
            else:
                instances[key] = registration.component
        return instances[key]

    def ordered(contract: type) -> list[Any]:
        return sort_providers(
            [
                Ordered(r.effective_priority(), r.order, provider_for(r))
                for r in configuration.registrations(contract)
            ]
        )

    return FilterChain(
        request_filters=ordered(RequestFilter),
        response_filters=ordered(ResponseFilter),
        writer_interceptors=ordered(WriterInterceptor),
        reader_interceptors=ordered(ReaderInterceptor),
    )


def fail_future(future: ResponseFuture[Any], error: BaseException) -> None:
    """Fail ``future`` with the asynchronous failure shape.

    The future's error is a ProcessingError whose ``cause`` is the
    ProcessingError the blocking path raises for ``error``.
    """
    cause = ProcessingError.wrap(error)
    if future.set_exception(ProcessingError(str(cause), cause=cause)):
        logger.warning(
            "conduit.invocation.failed",
            mode="async",
            error=str(cause),
            error_type=type(cause.cause or cause).__name__,
        )


class _FutureCallback:
    """Feeds connector completion back through the response filters into a future."""

    def __init__(
        self,
        runtime: "ClientRuntime",
        context: RequestContext,
        future: ResponseFuture[Response],
    ) -> None:
        self._runtime = runtime
        self._context = context
        self._future = future

    def response(self, response: Response) -> None:
        if self._future.cancelled():
            logger.debug("conduit.invocation.late_response_dropped", status=response.status)
            response.close()
            return
        try:
            filtered = self._runtime.chain.apply_response(self._context, response)
        except ProcessingError as exc:
            self._runtime.fail(self._future, exc)
            return
        if not self._future.set_result(filtered):
            filtered.close()

    def failure(self, error: BaseException) -> None:
        self._runtime.fail(self._future, error)


class ClientRuntime:
    """Executes requests for every snapshot sharing one runtime key.

    Attributes:
        configuration: Frozen configuration the runtime was built from
        chain: Ordered filters and interceptors
        connector: Transport used for dispatch
        transfer: Request entity transfer settings
    """

    def __init__(
        self,
        client: "Client",
        configuration: RuntimeConfig,
        defaults: "ClientDefaults",
    ) -> None:
        self.configuration = configuration
        self.defaults = defaults
        self.transfer = TransferSettings.from_configuration(
            configuration, chunk_size=defaults.chunk_size
        )
        self._executor_settings = ExecutorSettings.from_configuration(configuration)
        try:
            binders = [r.component for r in configuration.registrations(Binder) if not r.is_class]
            binders += [
                ComponentResolver().create(r.component)
                for r in configuration.registrations(Binder)
                if r.is_class
            ]
            self.resolver = ComponentResolver(binders)
            self.chain = build_chain(configuration, self.resolver)
            provider = configuration.connector_provider_instance or HttpxConnectorProvider()
            self.connector: Connector = provider.get_connector(client, configuration)
        except ProcessingError:
            raise
        except Exception as exc:
            logger.warning(
                "conduit.runtime.create_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ProcessingError.wrap(exc) from exc
        self._executor: BoundedExecutor | None = None
        self._lock = threading.Lock()
        self._closed = False
        logger.debug(
            "conduit.runtime.created",
            connector=connector_name(self.connector),
            request_filters=len(self.chain.request_filters),
            response_filters=len(self.chain.response_filters),
            transfer_mode=self.transfer.mode,
        )

    def _prepare(self, request: ClientRequest) -> None:
        """Serialize the entity and apply the default request headers."""
        try:
            self.chain.write_entity(
                request, chunked=self.transfer.chunked, chunk_size=self.transfer.chunk_size
            )
        except ProcessingError:
            raise
        except Exception as exc:
            raise ProcessingError.wrap(exc) from exc
        media_type = request.media_type
        if request.entity is not None and media_type and CONTENT_TYPE not in request.headers:
            request.headers.set(CONTENT_TYPE, media_type)
        language = request.entity.language if request.entity is not None else None
        if language and CONTENT_LANGUAGE not in request.headers:
            request.headers.set(CONTENT_LANGUAGE, language)
        if USER_AGENT not in request.headers and not request.headers.is_suppressed(USER_AGENT):
            request.headers.set(USER_AGENT, self.defaults.user_agent)

    def _log_dispatch(self, request: ClientRequest, mode: str) -> None:
        logger.debug(
            "conduit.invocation.dispatch",
            mode=mode,
            method=request.method,
            uri=sanitize_url(request.uri),
            headers=sanitize_for_logging(request.headers.to_dict()),
            chunked=request.is_chunked,
            connector=connector_name(self.connector),
        )

    def invoke(self, request: ClientRequest) -> Response:
        """Run ``request`` through the pipeline on the calling thread.

        Raises:
            ProcessingError: If a filter, the codec or the connector fails
        """
        self._check_open()
        start = time.perf_counter()
        context = RequestContext(request)
        result = self.chain.apply_request(context)
        if isinstance(result, Failed):
            raise result.error
        if isinstance(result, Aborted):
            response = result.response
        else:
            response = self._apply(request)
        try:
            filtered = self.chain.apply_response(context, response)
        except ProcessingError:
            response.close()
            raise
        response = filtered
        logger.info(
            "conduit.invocation.completed",
            method=request.method,
            uri=sanitize_url(request.uri),
            status=response.status,
            aborted=isinstance(result, Aborted),
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return response

    def _apply(self, request: ClientRequest) -> Response:
        self._prepare(request)
        self._log_dispatch(request, "sync")
        apply = getattr(self.connector, "apply", None)
        if apply is None:
            return self._apply_via_async(request)
        try:
            return apply(request)
        except ProcessingError:
            raise
        except Exception as exc:
            raise ProcessingError.wrap(exc) from exc

    def _apply_via_async(self, request: ClientRequest) -> Response:
        """Block on an async-only connector."""
        future: ResponseFuture[Response] = ResponseFuture()

        class _Relay:
            def response(self, response: Response) -> None:
                if not future.set_result(response):
                    response.close()

            def failure(self, error: BaseException) -> None:
                future.set_exception(error)

        guard = CompletionGuard(_Relay(), connector_name(self.connector))
        future.attach(self.connector.apply_async(request, guard))  # type: ignore[union-attr]
        try:
            return future.result()
        except ProcessingError:
            raise
        except Exception as exc:
            raise ProcessingError.wrap(exc) from exc

    def submit(self, request: ClientRequest) -> ResponseFuture[Response]:
        """Start ``request`` without blocking and return its future.

        A failure is reported as a ProcessingError whose cause is the
        ProcessingError the synchronous path would have raised.
        """
        self._check_open()
        future: ResponseFuture[Response] = ResponseFuture()
        if isinstance(self.connector, AsyncConnector):
            self._submit_async(request, future)
        else:
            self._submit_to_executor(request, future)
        return future

    def _submit_async(self, request: ClientRequest, future: ResponseFuture[Response]) -> None:
        context = RequestContext(request)
        result = self.chain.apply_request(context)
        if isinstance(result, Failed):
            self.fail(future, result.error)
            return
        if isinstance(result, Aborted):
            _FutureCallback(self, context, future).response(result.response)
            return
        try:
            self._prepare(request)
        except ProcessingError as exc:
            self.fail(future, exc)
            return
        self._log_dispatch(request, "async")
        guard = CompletionGuard(
            _FutureCallback(self, context, future), connector_name(self.connector)
        )
        try:
            handle = self.connector.apply_async(request, guard)  # type: ignore[union-attr]
        except Exception as exc:
            guard.failure(exc)
            return
        future.attach(handle)

    def _submit_to_executor(self, request: ClientRequest, future: ResponseFuture[Response]) -> None:
        def run() -> None:
            if future.cancelled():
                return
            try:
                response = self.invoke(request)
            except Exception as exc:
                self.fail(future, exc)
                return
            if not future.set_result(response):
                logger.debug("conduit.invocation.late_response_dropped", status=response.status)
                response.close()

        try:
            future.attach(self._pool().submit(run))
        except (ExecutorExhaustedError, RuntimeError) as exc:
            self.fail(future, exc)

    def fail(self, future: ResponseFuture[Response], error: BaseException) -> None:
        fail_future(future, error)

    def _pool(self) -> BoundedExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = BoundedExecutor(max_workers=self._executor_settings.max_workers)
            return self._executor

    def _check_open(self) -> None:
        if self._closed:
            raise IllegalStateError("Client runtime has been closed")

    def close(self) -> None:
        """Close the connector and stop the worker pool; safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            executor, self._executor = self._executor, None
        try:
            self.connector.close()
        finally:
            if executor is not None:
                executor.shutdown(wait=False)
        logger.debug("conduit.runtime.closed", connector=connector_name(self.connector))
