"""Pytest fixtures and context managers for conduit tests.

This module provides shared fixtures that wire a client to an in-process
connector, so tests exercise the full pipeline without a server.

Fixtures (use with pytest):
    scripted_connector: Fresh ScriptedConnector for the test.
    client: Open client dispatching to ``scripted_connector``; closed afterwards.
    live_server: RecordingServer serving on a localhost port; shut down afterwards.

Context managers:
    scripted_client(): Yields a client bound to the given connector.
"""

import threading
from contextlib import contextmanager
from typing import Any, Iterator

import pytest

from conduit.client import Client, ClientDefaults, new_client
from conduit.config import Configuration
from conduit.testing.mocks import ScriptedConnector, StaticConnectorProvider
from conduit.testing.server import RecordingServer

DEFAULT_TEST_BASE_URL = "http://localhost:9998"


@contextmanager
def scripted_client(
    connector: Any,
    configuration: Configuration | None = None,
    defaults: ClientDefaults | None = None,
) -> Iterator[Client]:
    """Context manager that provides a client dispatching to ``connector``.

    Args:
        connector: Connector every request is sent to
        configuration: Base configuration (a fresh one if None)
        defaults: Client defaults

    Yields:
        An open Client, closed on exit.

    Example:
        >>> with scripted_client(RejectingConnector("nope")) as client:
        ...     client.target(DEFAULT_TEST_BASE_URL).request().get()
    """
    config = (configuration or Configuration()).copy()
    config.connector_provider(StaticConnectorProvider(connector))
    client = new_client(config, defaults)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def scripted_connector() -> ScriptedConnector:
    """Create a fresh ScriptedConnector (204 No Content for every request)."""
    return ScriptedConnector()


@pytest.fixture
def client(scripted_connector: ScriptedConnector) -> Iterator[Client]:
    """Provide an open client bound to ``scripted_connector``.

    Yields:
        Client instance, closed after the test.
    """
    with scripted_client(scripted_connector) as test_client:
        yield test_client


@pytest.fixture
def live_server() -> Iterator[RecordingServer]:
    """Serve a RecordingServer on a background thread.

    Yields:
        The running server; shut down and closed after the test.
    """
    server = RecordingServer()
    thread = threading.Thread(target=server.serve_forever, name="recording-server", daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


__all__ = [
    "DEFAULT_TEST_BASE_URL",
    "client",
    "live_server",
    "scripted_client",
    "scripted_connector",
]
