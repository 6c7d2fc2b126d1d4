"""Conduit testing utilities.

This package provides in-process connectors, recording filters and pytest
fixtures for testing code built on the conduit client.

Modules:
    mocks: ScriptedConnector, ScriptedAsyncConnector, RejectingConnector,
           RecordingFilter and StaticConnectorProvider.
    fixtures: Pytest fixtures (client, scripted_connector, live_server) and
              the scripted_client() context manager.
    server: RecordingServer, a live HTTP/1.1 server that records request
            bodies chunk by chunk.

Example:
    >>> from conduit.testing import ScriptedConnector
    >>> from conduit.testing.fixtures import scripted_client
"""

from conduit.testing.mocks import (
    NULL_PLACEHOLDER,
    RecordingFilter,
    RejectingConnector,
    ScriptedAsyncConnector,
    ScriptedConnector,
    StaticConnectorProvider,
    render_header,
)

__all__ = [
    "NULL_PLACEHOLDER",
    "RecordingFilter",
    "RejectingConnector",
    "ScriptedAsyncConnector",
    "ScriptedConnector",
    "StaticConnectorProvider",
    "render_header",
]
