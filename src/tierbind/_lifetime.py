from __future__ import annotations

import threading
import weakref
from enum import Enum
from typing import TYPE_CHECKING, Any

from ._disposal import Disposable


if TYPE_CHECKING:
    from ._container import Container


class _NoValue:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_VALUE"

    def __bool__(self) -> bool:
        return False


NO_VALUE: Any = _NoValue()


class Lifetime(Enum):
    TRANSIENT = "transient"
    SINGLETON = "singleton"
    HIERARCHICAL = "hierarchical"

    def create_manager(self) -> LifetimeManager:
        if self is Lifetime.SINGLETON:
            return ContainerControlledLifetimeManager()
        if self is Lifetime.HIERARCHICAL:
            return HierarchicalLifetimeManager()
        return TransientLifetimeManager()


class LifetimeManager:
    """Controls whether and where a built instance is cached.

    ``get_value`` returns ``NO_VALUE`` when the registration has to be built.
    """

    #: build in the context of the container that owns the registration
    #: rather than the one that asked for it
    builds_in_owner = False

    def __init__(self) -> None:
        self.lock = threading.RLock()

    def get_value(self, container: Container) -> object:
        return NO_VALUE

    def set_value(self, value: object, container: Container) -> None:
        pass

    def remove_value(self) -> None:
        pass

    def clone(self) -> LifetimeManager:
        """Fresh manager of the same kind, used when an open generic is closed."""
        return type(self)()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class TransientLifetimeManager(LifetimeManager):
    pass


class ContainerControlledLifetimeManager(LifetimeManager):
    """One instance per registration, disposed together with the owning container."""

    builds_in_owner = True

    def __init__(self) -> None:
        super().__init__()
        self._value: object = NO_VALUE

    def get_value(self, container: Container) -> object:
        return self._value

    def set_value(self, value: object, container: Container) -> None:
        self._value = value

    def remove_value(self) -> None:
        self._value = NO_VALUE

    def dispose(self) -> None:
        value = self._value
        self.remove_value()
        if isinstance(value, Disposable):
            value.dispose()


class HierarchicalLifetimeManager(LifetimeManager):
    """One instance per requesting container."""

    def __init__(self) -> None:
        super().__init__()
        self._values: weakref.WeakKeyDictionary[Container, object] = weakref.WeakKeyDictionary()

    def get_value(self, container: Container) -> object:
        return self._values.get(container, NO_VALUE)

    def set_value(self, value: object, container: Container) -> None:
        self._values[container] = value
        if isinstance(value, Disposable):
            container.disposal_scope.add(value)

    def remove_value(self) -> None:
        self._values.clear()


def as_lifetime_manager(lifetime: Lifetime | LifetimeManager) -> LifetimeManager:
    if isinstance(lifetime, LifetimeManager):
        return lifetime
    if isinstance(lifetime, Lifetime):
        return lifetime.create_manager()
    msg = f"Expected a Lifetime or a LifetimeManager, got {lifetime!r}"
    raise TypeError(msg)
