"""Tests for invocation execution, sync and async.

Covers single-use invocations, typed results, the User-Agent policy,
connector rejection messages, asynchronous futures and callbacks,
exactly-once completion and cancellation.
"""

import threading
import time

import pytest

from conduit import Entity, Response
from conduit.client import ClientDefaults
from conduit.config import Configuration
from conduit.constants import ASYNC_MAX_WORKERS, USER_AGENT
from conduit.errors import (
    ExecutorExhaustedError,
    IllegalStateError,
    ProcessingError,
    ResponseStatusError,
)
from conduit.futures import FutureCancelledError, FutureState, ResponseFuture
from conduit.invocation import InvocationCallback
from conduit.message import ClientRequest
from conduit.testing import (
    NULL_PLACEHOLDER,
    RecordingFilter,
    RejectingConnector,
    ScriptedAsyncConnector,
    ScriptedConnector,
    render_header,
)
from conduit.testing.fixtures import scripted_client

URI = "http://localhost:9998/test"


def echo_user_agent(request: ClientRequest) -> Response:
    return Response.ok(render_header(request.headers, USER_AGENT) or "")


class CollectingCallback(InvocationCallback):
    def __init__(self) -> None:
        self.results: list[object] = []
        self.errors: list[BaseException] = []
        self.done = threading.Event()

    def completed(self, result: object) -> None:
        self.results.append(result)
        self.done.set()

    def failed(self, error: BaseException) -> None:
        self.errors.append(error)
        self.done.set()


class TestSingleUse:
    """Tests for the exactly-once execution rule."""

    def test_invoke_twice_raises(self, client) -> None:
        invocation = client.target(URI).request().build_get()
        invocation.invoke()

        with pytest.raises(IllegalStateError):
            invocation.invoke()

    def test_submit_after_invoke_raises(self, client) -> None:
        invocation = client.target(URI).request().build_get()
        invocation.invoke()

        with pytest.raises(IllegalStateError):
            invocation.submit()

    def test_build_after_close_raises(self, client) -> None:
        builder = client.target(URI).request()
        client.close()

        with pytest.raises(IllegalStateError):
            builder.build_get()

    def test_invocation_keeps_configuration_snapshot(self, client, scripted_connector) -> None:
        """Changes to the target after build do not affect the built invocation."""
        target = client.target(URI)
        builder = target.request()
        invocation = builder.build_get()

        builder.property("late", "value")
        target.configuration.register(RecordingFilter("late", abort_with=Response.ok("x")))
        response = invocation.invoke()

        assert invocation.configuration.get_property("late") is None
        assert response.status == 204
        assert len(scripted_connector.requests) == 1


class TestTypedResults:
    """Tests for response_type conversion."""

    def test_invoke_without_type_returns_response(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.ok("body"))

        response = client.target(URI).request().get()

        assert isinstance(response, Response)
        assert response.read_entity(str) == "body"

    def test_json_entity_round_trip(self, client, scripted_connector) -> None:
        scripted_connector.set_handler(
            lambda request: Response.ok(request.body, "application/json")
        )

        result = client.target(URI).request().post(Entity.json({"a": [1, 2]}), dict)

        assert result == {"a": [1, 2]}
        assert scripted_connector.last_request.headers.get_first("Content-Type") == "application/json"

    def test_non_success_with_type_raises_status_error(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.status_of(404, "missing"))

        with pytest.raises(ResponseStatusError) as exc_info:
            client.target(URI).request().get(str)

        assert exc_info.value.status == 404
        assert exc_info.value.response.read_entity(str) == "missing"

    def test_non_success_without_type_returns_response(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.status_of(500))

        assert client.target(URI).request().get().status == 500

    def test_unreadable_entity_is_processing_error(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.ok("not a number"))

        with pytest.raises(ProcessingError):
            client.target(URI).request().get(int)

    def test_accept_and_custom_headers_are_sent(self, client, scripted_connector) -> None:
        client.target(URI).request("text/plain").header("X-Trace", "abc").get()

        headers = scripted_connector.last_request.headers
        assert headers.get_all("Accept") == ["text/plain"]
        assert headers.get_first("X-Trace") == "abc"


class TestUserAgent:
    """Tests for the default User-Agent policy, identical for sync and async."""

    @pytest.fixture
    def ua_connector(self, scripted_connector: ScriptedConnector) -> ScriptedConnector:
        scripted_connector.set_handler(echo_user_agent)
        return scripted_connector

    def test_default_user_agent_sync(self, client, ua_connector) -> None:
        assert client.target(URI).request().get(str) == "Conduit/1.0.0"

    def test_null_user_agent_sync(self, client, ua_connector) -> None:
        result = client.target(URI).request().header(USER_AGENT, None).get(str)

        assert result == NULL_PLACEHOLDER

    def test_custom_user_agent_sync(self, client, ua_connector) -> None:
        assert client.target(URI).request().header(USER_AGENT, "custom").get(str) == "custom"

    def test_default_user_agent_async(self, client, ua_connector) -> None:
        future = client.target(URI).request().async_().get(str)

        assert future.result(timeout=5) == "Conduit/1.0.0"

    def test_null_user_agent_async(self, client, ua_connector) -> None:
        future = client.target(URI).request().header(USER_AGENT, None).async_().get(str)

        assert future.result(timeout=5) == NULL_PLACEHOLDER

    def test_custom_user_agent_async(self, client, ua_connector) -> None:
        future = client.target(URI).request().header(USER_AGENT, "custom").async_().get(str)

        assert future.result(timeout=5) == "custom"

    def test_headers_from_clears_suppression(self, client, ua_connector) -> None:
        """Replacing the headers also drops an earlier User-Agent suppression."""
        builder = client.target(URI).request().header(USER_AGENT, None)

        builder.headers_from({"X-A": "1"})

        assert builder.get(str) == "Conduit/1.0.0"
        assert ua_connector.last_request.headers.get_first("X-A") == "1"

    def test_user_agent_through_async_connector(self) -> None:
        connector = ScriptedAsyncConnector(echo_user_agent)
        with scripted_client(connector) as client:
            default = client.target(URI).request().async_().get(str)
            suppressed = client.target(URI).request().header(USER_AGENT, None).async_().get(str)
            custom = client.target(URI).request().header(USER_AGENT, "custom").async_().get(str)

            assert default.result(timeout=5) == "Conduit/1.0.0"
            assert suppressed.result(timeout=5) == NULL_PLACEHOLDER
            assert custom.result(timeout=5) == "custom"

    def test_user_agent_comes_from_client_defaults(self, scripted_connector) -> None:
        scripted_connector.set_handler(echo_user_agent)
        defaults = ClientDefaults(user_agent="custom-agent/9")
        with scripted_client(scripted_connector, defaults=defaults) as client:
            assert client.target(URI).request().get(str) == "custom-agent/9"


class TestRejection:
    """Tests for connectors that reject every request."""

    MESSAGE = "Request rejected: connection refused by policy"

    def test_sync_failure_message_is_connector_text(self) -> None:
        with scripted_client(RejectingConnector(self.MESSAGE)) as client:
            with pytest.raises(ProcessingError) as exc_info:
                client.target(URI).request().get()

        assert str(exc_info.value) == self.MESSAGE

    def test_async_failure_cause_is_sync_failure(self) -> None:
        with scripted_client(RejectingConnector(self.MESSAGE)) as client:
            future = client.target(URI).request().async_().get()
            error = future.exception(timeout=5)

        assert isinstance(error, ProcessingError)
        assert isinstance(error.cause, ProcessingError)
        assert str(error) == self.MESSAGE
        assert str(error.cause) == self.MESSAGE
        with pytest.raises(ProcessingError):
            future.result(timeout=0)

    def test_async_connector_failure_has_same_shape(self) -> None:
        def reject(request: ClientRequest) -> Response:
            raise ProcessingError(self.MESSAGE)

        with scripted_client(ScriptedAsyncConnector(reject)) as client:
            error = client.target(URI).request().async_().get().exception(timeout=5)

        assert isinstance(error, ProcessingError)
        assert str(error.cause) == self.MESSAGE

    def test_filter_failure_async_is_wrapped_once_more(self, client) -> None:
        client.register(RecordingFilter("boom", error=NotImplementedError("unsupported")))

        error = client.target(URI).request().async_().get().exception(timeout=5)

        assert isinstance(error, ProcessingError)
        assert isinstance(error.cause, ProcessingError)
        assert isinstance(error.cause.cause, NotImplementedError)


class TestAsyncInvocation:
    """Tests for futures returned by submit()/async_()."""

    def test_response_filters_run_before_resolution(self, client) -> None:
        log: list[str] = []
        client.register(RecordingFilter("f", log))

        response = client.target(URI).request().async_().get().result(timeout=5)

        assert response.status == 204
        assert log == ["f:request", "f:response"]

    def test_abort_resolves_async_future(self) -> None:
        connector = ScriptedAsyncConnector()
        config = Configuration().register(RecordingFilter("a", abort_with=Response.ok("short")))
        with scripted_client(connector, config) as client:
            result = client.target(URI).request().async_().get(str).result(timeout=5)

        assert result == "short"
        assert connector.requests == []

    def test_callback_receives_result(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.ok("done"))
        callback = CollectingCallback()

        client.target(URI).request().async_().get(str, callback=callback)

        assert callback.done.wait(5)
        assert callback.results == ["done"]
        assert callback.errors == []

    def test_callback_receives_failure(self) -> None:
        callback = CollectingCallback()
        with scripted_client(RejectingConnector("no")) as client:
            client.target(URI).request().async_().post(Entity.text("x"), callback=callback)
            assert callback.done.wait(5)

        assert callback.results == []
        assert str(callback.errors[0]) == "no"

    def test_status_error_async(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.status_of(503))

        error = client.target(URI).request().async_().get(str).exception(timeout=5)

        assert isinstance(error, ProcessingError)
        assert isinstance(error.cause, ResponseStatusError)

    async def test_future_is_awaitable(self, client, scripted_connector) -> None:
        scripted_connector.respond_with(Response.ok("awaited"))

        result = await client.target(URI).request().async_().get(str)

        assert result == "awaited"

    def test_blocking_sync_call_on_async_only_connector(self) -> None:
        with scripted_client(ScriptedAsyncConnector(lambda r: Response.ok("via async"))) as client:
            assert client.target(URI).request().get(str) == "via async"

    def test_pool_exhaustion_fails_future(self) -> None:
        release = threading.Event()

        def slow(request: ClientRequest) -> Response:
            release.wait(5)
            return Response.ok()

        config = Configuration().property(ASYNC_MAX_WORKERS, 1)
        with scripted_client(ScriptedConnector(slow), config) as client:
            first = client.target(URI).request().async_().get()
            time.sleep(0.05)
            second = client.target(URI).request().async_().get()

            error = second.exception(timeout=5)
            release.set()
            assert first.result(timeout=5).status == 200

        assert isinstance(error, ProcessingError)
        assert isinstance(error.cause.cause, ExecutorExhaustedError)


class TestCompletionGuarantees:
    """Tests for exactly-once completion and cancellation."""

    def test_double_completion_is_ignored(self, caplog: pytest.LogCaptureFixture) -> None:
        connector = ScriptedAsyncConnector(lambda r: Response.ok("first"), signal_twice=True)
        with scripted_client(connector) as client:
            future = client.target(URI).request().async_().get(str)
            assert future.result(timeout=5) == "first"
            connector.join()

        assert future.state is FutureState.RESOLVED
        assert "conduit.connector.duplicate_completion" in caplog.text

    def test_cancel_propagates_to_connector_handle(self) -> None:
        connector = ScriptedAsyncConnector(delay=5)
        with scripted_client(connector) as client:
            future = client.target(URI).request().async_().get()

            assert future.cancel() is True
            connector.join()

            assert connector.handles[0].cancelled
            assert future.cancelled()
            with pytest.raises(FutureCancelledError):
                future.result(timeout=1)

    def test_late_response_after_cancel_is_dropped(self) -> None:
        connector = ScriptedAsyncConnector(
            lambda r: Response.ok("late"), delay=5, respond_after_cancel=True
        )
        with scripted_client(connector) as client:
            future = client.target(URI).request().async_().get()
            future.cancel()
            connector.join()

        assert future.state is FutureState.CANCELLED
        assert len(connector.late_responses) == 1
        assert connector.late_responses[0].closed

    def test_cancelled_callback_reports_failure(self) -> None:
        callback = CollectingCallback()
        connector = ScriptedAsyncConnector(delay=5)
        with scripted_client(connector) as client:
            future = client.target(URI).request().async_().get(callback=callback)
            future.cancel()
            connector.join()

        assert callback.done.wait(5)
        assert isinstance(callback.errors[0], FutureCancelledError)

    def test_typed_future_cancel_reaches_response_future(self) -> None:
        connector = ScriptedAsyncConnector(delay=5)
        with scripted_client(connector) as client:
            typed: ResponseFuture = client.target(URI).request().async_().get(str)
            typed.cancel()
            connector.join()

        assert connector.handles[0].cancelled
