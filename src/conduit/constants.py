"""Constants for the conduit client runtime.

This module defines runtime-wide constants: product identity, the
configuration property names understood by the pipeline and the bundled
connector, and default values.
"""

# Product identity (used for the default User-Agent)
PRODUCT_NAME = "Conduit"
PRODUCT_VERSION = "1.0.0"

# Configuration property names
REQUEST_ENTITY_PROCESSING = "conduit.client.request_entity_processing"
"""Selects how request entities are sent: ``"buffered"`` or ``"chunked"``."""

CHUNKED_ENCODING_SIZE = "conduit.client.chunked_encoding_size"
"""Chunk size in bytes used when request entities are sent chunked."""

CONNECT_TIMEOUT = "conduit.client.connect_timeout"
READ_TIMEOUT = "conduit.client.read_timeout"
ASYNC_MAX_WORKERS = "conduit.client.async_max_workers"

# Request entity processing modes
BUFFERED = "buffered"
CHUNKED = "chunked"

# Default configuration values
DEFAULT_CHUNK_SIZE = 4096
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0

# HTTP header names the runtime manages itself
USER_AGENT = "User-Agent"
CONTENT_TYPE = "Content-Type"
CONTENT_LANGUAGE = "Content-Language"
CONTENT_LENGTH = "Content-Length"
ACCEPT = "Accept"
TRANSFER_ENCODING = "Transfer-Encoding"


class Priorities:
    """Well-known filter and interceptor priorities (lower runs earlier)."""

    AUTHENTICATION = 1000
    AUTHORIZATION = 2000
    HEADER_DECORATOR = 3000
    ENTITY_CODER = 4000
    USER = 5000
