"""Client configuration: properties and registered components.

A Configuration is a mutable registry of named properties and registered
components (filters, interceptors, binders). Client and targets each own
one; a target's configuration is an independent copy of its client's.

Before a request executes, the configuration is frozen into a
RuntimeConfig snapshot. Later changes to the live configuration never
affect a request that already holds a snapshot.

Example:
    >>> from conduit.config import Configuration
    >>> config = Configuration().property("hello", "world")
    >>> config.get_property("hello")
    'world'
    >>> snapshot = config.snapshot()
    >>> config.property("hello", "there").get_property("hello"), snapshot.get_property("hello")
    ('there', 'world')
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from conduit.chain import (
    PRIORITY_ATTRIBUTE,
    ReaderInterceptor,
    RequestFilter,
    ResponseFilter,
    WriterInterceptor,
)
from conduit.constants import (
    ASYNC_MAX_WORKERS,
    CHUNKED_ENCODING_SIZE,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    REQUEST_ENTITY_PROCESSING,
    Priorities,
)
from conduit.errors import IllegalStateError, NullArgumentError
from conduit.inject import Binder
from conduit.observability import get_logger

if TYPE_CHECKING:
    from conduit.connector import ConnectorProvider

logger = get_logger(__name__)

# Contracts a component can be registered for
PROVIDER_CONTRACTS: tuple[type, ...] = (
    RequestFilter,
    ResponseFilter,
    ReaderInterceptor,
    WriterInterceptor,
    Binder,
)

# Properties read when a runtime and its connector are built
RUNTIME_PROPERTIES: tuple[str, ...] = (
    REQUEST_ENTITY_PROCESSING,
    CHUNKED_ENCODING_SIZE,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    ASYNC_MAX_WORKERS,
)

_INFER: Any = object()

# Global registration sequence; keeps ordering stable across copies
_sequence = itertools.count()


@dataclass(frozen=True)
class ComponentRegistration:
    """A registered component and the contracts it is bound to.

    Attributes:
        component: Registered class or instance
        contracts: Contracts the component serves
        priority: Explicit priority given at registration, if any
        order: Registration sequence number (ties in priority keep this order)
    """

    component: Any
    contracts: frozenset[type]
    priority: int | None
    order: int

    @property
    def is_class(self) -> bool:
        return isinstance(self.component, type)

    @property
    def component_class(self) -> type:
        return self.component if self.is_class else type(self.component)

    def effective_priority(self) -> int:
        if self.priority is not None:
            return self.priority
        return getattr(self.component_class, PRIORITY_ATTRIBUTE, Priorities.USER)


def _hashable(value: Any) -> Any:
    try:
        hash(value)
    except TypeError:
        return repr(value)
    return value


class _ConfigurationState:
    """Read-only view shared by the live and frozen configuration."""

    _properties: Mapping[str, Any]
    _registrations: list[ComponentRegistration] | tuple[ComponentRegistration, ...]
    _connector_provider: "ConnectorProvider | None"

    def get_property(self, name: str, default: Any = None) -> Any:
        return self._properties.get(name, default)

    @property
    def properties(self) -> Mapping[str, Any]:
        return MappingProxyType(dict(self._properties))

    @property
    def property_names(self) -> set[str]:
        return set(self._properties)

    @property
    def connector_provider_instance(self) -> "ConnectorProvider | None":
        return self._connector_provider

    def registrations(self, contract: type | None = None) -> list[ComponentRegistration]:
        """Registrations (optionally those bound to ``contract``) in registration order."""
        return [r for r in self._registrations if contract is None or contract in r.contracts]

    def is_registered(self, component: Any) -> bool:
        """Return True if ``component`` is registered.

        For a class this is also true when an instance of exactly that class
        has been registered.
        """
        if isinstance(component, type):
            return any(
                r.component is component or (not r.is_class and type(r.component) is component)
                for r in self._registrations
            )
        return any(r.component is component for r in self._registrations)

    def get_instances(self) -> list[Any]:
        """Distinct registered component instances (class registrations excluded)."""
        seen: set[int] = set()
        instances = []
        for registration in self._registrations:
            if registration.is_class or id(registration.component) in seen:
                continue
            seen.add(id(registration.component))
            instances.append(registration.component)
        return instances

    def get_classes(self) -> list[type]:
        """Distinct component classes registered without an instance."""
        return list(dict.fromkeys(r.component for r in self._registrations if r.is_class))

    def get_contracts(self, component: Any) -> frozenset[type]:
        for registration in self._registrations:
            if registration.component is component:
                return registration.contracts
        return frozenset()

    def runtime_key(self) -> tuple[Any, ...]:
        """Hashable key of the state a client runtime is built from.

        Covers the registrations, the connector provider and the
        RUNTIME_PROPERTIES. Other properties only travel with the request
        snapshot, so changing them never needs a new runtime or connector.
        """
        return (
            tuple((id(r.component), r.contracts, r.priority) for r in self._registrations),
            id(self._connector_provider),
            tuple(_hashable(self._properties.get(name)) for name in RUNTIME_PROPERTIES),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _ConfigurationState):
            return NotImplemented
        return (
            dict(self._properties) == dict(other._properties)
            and [(r.component, r.contracts, r.priority) for r in self._registrations]
            == [(r.component, r.contracts, r.priority) for r in other._registrations]
            and self._connector_provider is other._connector_provider
        )

    __hash__ = None  # type: ignore[assignment]


class Configuration(_ConfigurationState):
    """Mutable configuration registry.

    Mutating methods return ``self`` so calls can be chained. Every mutation
    bumps ``version``.
    """

    def __init__(self) -> None:
        self._properties: dict[str, Any] = {}
        self._registrations: list[ComponentRegistration] = []
        self._connector_provider: "ConnectorProvider | None" = None
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def _changed(self) -> None:
        self._version += 1

    def property(self, name: str, value: Any) -> "Configuration":
        """Set a property (last write wins); ``None`` removes it."""
        if name is None:
            raise NullArgumentError("name")
        if value is None:
            self._properties.pop(name, None)
        else:
            self._properties[name] = value
        self._changed()
        return self

    def properties_from(self, values: Mapping[str, Any]) -> "Configuration":
        for name, value in values.items():
            self.property(name, value)
        return self

    def connector_provider(self, provider: "ConnectorProvider") -> "Configuration":
        """Select the connector provider used by clients built from this configuration."""
        if provider is None:
            raise NullArgumentError("provider")
        self._connector_provider = provider
        self._changed()
        return self

    def register(
        self,
        component: Any,
        contracts: Iterable[type] | None = _INFER,
        priority: int | None = None,
    ) -> "Configuration":
        """Register a component class or instance.

        Args:
            component: Class (constructed by the component resolver at runtime)
                or instance (used as-is)
            contracts: Contracts to bind to. Omitted: inferred from the
                component's type. ``None`` or empty: nothing is registered.
            priority: Overrides the component's own priority for ordering

        Returns:
            This configuration
        """
        if component is None:
            raise NullArgumentError("component")

        component_class = component if isinstance(component, type) else type(component)
        name = component_class.__qualname__

        if contracts is _INFER:
            resolved = frozenset(c for c in PROVIDER_CONTRACTS if issubclass(component_class, c))
            if not resolved:
                logger.warning(
                    "conduit.config.register_no_contracts",
                    component=name,
                    message=f"{name} implements no known contract; registration ignored",
                )
                return self
        else:
            requested = [c for c in (contracts or ()) if c is not None]
            if not requested:
                logger.warning(
                    "conduit.config.register_empty_contracts",
                    component=name,
                    message=f"Null or empty contracts given for {name}; registration ignored",
                )
                return self
            resolved = frozenset(c for c in requested if issubclass(component_class, c))
            for contract in requested:
                if contract not in resolved:
                    logger.warning(
                        "conduit.config.contract_not_assignable",
                        component=name,
                        contract=contract.__qualname__,
                    )
            if not resolved:
                return self

        for registration in self._registrations:
            if registration.component is component:
                logger.debug("conduit.config.already_registered", component=name)
                return self

        self._registrations.append(
            ComponentRegistration(
                component=component,
                contracts=resolved,
                priority=priority,
                order=next(_sequence),
            )
        )
        self._changed()
        return self

    def copy(self) -> "Configuration":
        """Return an independent configuration with the same state."""
        clone = Configuration()
        clone._properties = dict(self._properties)
        clone._registrations = list(self._registrations)
        clone._connector_provider = self._connector_provider
        return clone

    def snapshot(self) -> "RuntimeConfig":
        """Freeze the current state for a request about to execute."""
        return RuntimeConfig(self)

    def __repr__(self) -> str:
        return (
            f"Configuration(properties={len(self._properties)}, "
            f"components={len(self._registrations)})"
        )


class RuntimeConfig(_ConfigurationState):
    """Frozen configuration snapshot used while requests execute."""

    def __init__(self, source: _ConfigurationState) -> None:
        self._properties = MappingProxyType(dict(source._properties))
        self._registrations = tuple(source._registrations)
        self._connector_provider = source._connector_provider

    def property(self, name: str, value: Any) -> "RuntimeConfig":
        raise IllegalStateError("Runtime configuration is read-only", details={"property": name})

    def register(self, component: Any, *args: Any, **kwargs: Any) -> "RuntimeConfig":
        raise IllegalStateError("Runtime configuration is read-only")

    def __repr__(self) -> str:
        return (
            f"RuntimeConfig(properties={len(self._properties)}, "
            f"components={len(self._registrations)})"
        )
