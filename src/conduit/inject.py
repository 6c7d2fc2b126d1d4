"""Component resolution for class-registered providers.

Filters and interceptors registered as classes are constructed here, before
the chain ever sees them. Constructor parameters are resolved by their type
annotation against the bindings declared by registered Binders; the chain
itself only ever calls fully-constructed instances.

Example:
    >>> class Greeting: ...
    >>> class Hello(Greeting): ...
    >>> class Greetings(Binder):
    ...     def configure(self):
    ...         self.bind(Hello).to(Greeting)
    >>> resolver = ComponentResolver([Greetings()])
    >>> isinstance(resolver.resolve(Greeting), Hello)
    True
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Iterable
from typing import Any, get_type_hints

from conduit.errors import IllegalStateError
from conduit.observability import get_logger

logger = get_logger(__name__)


class _BindingBuilder:
    def __init__(self, binder: "Binder", source: Any, is_instance: bool) -> None:
        self._binder = binder
        self._source = source
        self._is_instance = is_instance

    def to(self, contract: type) -> "_BindingBuilder":
        self._binder._bindings.append((contract, self._source, self._is_instance))
        return self


class Binder:
    """Declares which implementation satisfies which contract.

    Subclasses implement ``configure()`` and call ``bind(cls).to(contract)``
    or ``bind_instance(obj).to(contract)``. Register the binder like any
    other component.
    """

    def __init__(self) -> None:
        self._bindings: list[tuple[type, Any, bool]] = []
        self._configured = False

    def configure(self) -> None:
        raise NotImplementedError

    def bind(self, implementation: type) -> _BindingBuilder:
        return _BindingBuilder(self, implementation, is_instance=False)

    def bind_instance(self, instance: Any) -> _BindingBuilder:
        return _BindingBuilder(self, instance, is_instance=True)

    def bindings(self) -> list[tuple[type, Any, bool]]:
        """Return ``(contract, source, is_instance)`` triples, configuring once."""
        if not self._configured:
            self.configure()
            self._configured = True
        return list(self._bindings)


class ComponentResolver:
    """Constructs components, injecting bound dependencies into constructors.

    Bound classes are created once per resolver and then shared.
    """

    def __init__(self, binders: Iterable[Binder] = ()) -> None:
        self._bindings: dict[type, tuple[Any, bool]] = {}
        self._singletons: dict[type, Any] = {}
        self._lock = threading.RLock()
        for binder in binders:
            for contract, source, is_instance in binder.bindings():
                self._bindings[contract] = (source, is_instance)

    def can_resolve(self, contract: type) -> bool:
        return contract in self._bindings

    def resolve(self, contract: type) -> Any:
        """Return the instance bound to ``contract``.

        Raises:
            IllegalStateError: If nothing is bound to ``contract``
        """
        with self._lock:
            if contract in self._singletons:
                return self._singletons[contract]
            if contract not in self._bindings:
                raise IllegalStateError(
                    f"No binding for {contract.__qualname__}",
                    details={"contract": contract.__qualname__},
                )
            source, is_instance = self._bindings[contract]
            instance = source if is_instance else self.create(source)
            self._singletons[contract] = instance
            return instance

    def create(self, cls: type) -> Any:
        """Construct ``cls``, resolving annotated constructor parameters.

        Parameters with defaults are left to their default when no binding
        exists for their type.

        Raises:
            IllegalStateError: If a required parameter cannot be satisfied
        """
        init = cls.__init__
        if init is object.__init__:
            return cls()
        try:
            hints = get_type_hints(init)
        except (NameError, TypeError):
            hints = {}
        kwargs: dict[str, Any] = {}
        for name, parameter in inspect.signature(init).parameters.items():
            if name == "self" or parameter.kind in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            ):
                continue
            annotation = hints.get(name)
            if isinstance(annotation, type) and self.can_resolve(annotation):
                kwargs[name] = self.resolve(annotation)
            elif parameter.default is inspect.Parameter.empty:
                raise IllegalStateError(
                    f"Unsatisfied dependency '{name}' of {cls.__qualname__}",
                    details={"component": cls.__qualname__, "parameter": name},
                )
        logger.debug(
            "conduit.inject.created",
            component=cls.__qualname__,
            injected=sorted(kwargs),
        )
        return cls(**kwargs)
