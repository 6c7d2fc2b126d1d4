"""Typed views over configuration properties.

The pipeline and the bundled connector read a handful of properties
(transfer mode, chunk size, timeouts, async pool size). These pydantic
models validate them; a property with an invalid value is reported and
replaced by its default rather than failing the request.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, PositiveFloat, PositiveInt, ValidationError

from conduit.constants import (
    ASYNC_MAX_WORKERS,
    BUFFERED,
    CHUNKED_ENCODING_SIZE,
    CONNECT_TIMEOUT,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
    READ_TIMEOUT,
    REQUEST_ENTITY_PROCESSING,
)
from conduit.observability import get_logger

logger = get_logger(__name__)


class _PropertySettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # field name -> configuration property name
    property_names: ClassVar[dict[str, str]] = {}

    @classmethod
    def from_configuration(cls, configuration: Any, **defaults: Any) -> Any:
        """Build settings from ``configuration``; invalid values fall back to defaults.

        Keyword arguments replace the built-in defaults.
        """
        values: dict[str, Any] = dict(defaults)
        for field_name, property_name in cls.property_names.items():
            value = configuration.get_property(property_name)
            if value is None:
                continue
            try:
                cls.model_validate({field_name: value})
            except ValidationError as exc:
                logger.warning(
                    "conduit.settings.invalid_property",
                    property=property_name,
                    value=repr(value),
                    default=values.get(field_name, cls.model_fields[field_name].default),
                    error=exc.errors()[0]["msg"],
                )
                continue
            values[field_name] = value
        return cls.model_validate(values)


class TransferSettings(_PropertySettings):
    """How request entities are handed to the connector."""

    property_names: ClassVar[dict[str, str]] = {
        "mode": REQUEST_ENTITY_PROCESSING,
        "chunk_size": CHUNKED_ENCODING_SIZE,
    }

    mode: Literal["buffered", "chunked"] = BUFFERED
    chunk_size: PositiveInt = DEFAULT_CHUNK_SIZE

    @property
    def chunked(self) -> bool:
        return self.mode != BUFFERED


class TimeoutSettings(_PropertySettings):
    """Connect and read timeouts in seconds."""

    property_names: ClassVar[dict[str, str]] = {
        "connect_timeout": CONNECT_TIMEOUT,
        "read_timeout": READ_TIMEOUT,
    }

    connect_timeout: PositiveFloat = DEFAULT_CONNECT_TIMEOUT
    read_timeout: PositiveFloat = DEFAULT_READ_TIMEOUT


class ExecutorSettings(_PropertySettings):
    """Size of the worker pool used for asynchronous dispatch."""

    property_names: ClassVar[dict[str, str]] = {"max_workers": ASYNC_MAX_WORKERS}

    max_workers: PositiveInt | None = None
