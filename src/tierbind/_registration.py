from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from ._errors import ResolutionError, type_name
from ._lifetime import NO_VALUE, LifetimeManager, TransientLifetimeManager


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ._container import Container

    ResolveMethod = Callable[["BuildContext"], object]


class InjectionMember:
    """Construction override supplied at registration time."""


class InjectionConstructor(InjectionMember):
    """Pin the constructor and some or all of its argument values.

    Example:
      container.register(Service, members=[InjectionConstructor(ResolvedParameter(Repo, "main"), 30)])

    ``constructor_name`` picks an alternate constructor by name; otherwise the
    first eligible constructor whose arity and annotations match the values wins.
    """

    def __init__(self, *values: Any, constructor_name: str | None = None) -> None:
        self.values = values
        self.constructor_name = constructor_name

    def __repr__(self) -> str:
        return f"InjectionConstructor{self.values!r}"


class InjectionProperty(InjectionMember):
    def __init__(self, name: str, value: Any = NO_VALUE) -> None:
        self.name = name
        self.value = value

    def __repr__(self) -> str:
        return f"InjectionProperty({self.name!r})"


class InjectionMethod(InjectionMember):
    def __init__(self, name: str, *values: Any) -> None:
        self.name = name
        self.values = values

    def __repr__(self) -> str:
        return f"InjectionMethod({self.name!r})"


@dataclass(frozen=True)
class ResolvedParameter:
    """An override value that is itself resolved from the container at build time."""

    type: Any
    name: str = ""


@dataclass(eq=False)
class Registration:
    registered_type: Any
    name: str = ""
    mapped_to: Any = None
    factory: Callable[..., object] | None = None
    instance: object = NO_VALUE
    lifetime: LifetimeManager = field(default_factory=TransientLifetimeManager)
    members: tuple[InjectionMember, ...] = ()

    @property
    def build_type(self) -> Any:
        return self.registered_type if self.mapped_to is None else self.mapped_to

    def evolve(self, **changes: Any) -> Registration:
        return replace(self, **changes)

    def __repr__(self) -> str:
        target = f" -> {type_name(self.mapped_to)}" if self.mapped_to is not None else ""
        return f"Registration({type_name(self.registered_type)}{target}, name={self.name!r}, {self.lifetime!r})"


@dataclass(eq=False)
class PolicySet:
    """Executable form of a registration."""

    registration: Registration
    resolve_method: ResolveMethod | None
    explicit: bool = True

    @property
    def lifetime(self) -> LifetimeManager:
        return self.registration.lifetime

    def resolve(self, context: BuildContext) -> object:
        if self.resolve_method is None:
            msg = f"No build plan is available for {self.registration!r}"
            raise ResolutionError(msg)
        return self.resolve_method(context)


@dataclass(frozen=True)
class BuildContext:
    container: Container
    registered_type: Any
    name: str = ""
    overrides: Mapping[str, Any] = field(default_factory=dict)
    path: tuple[tuple[Any, str], ...] = ()

    def resolve(self, registered_type: Any, name: str = "", overrides: Mapping[str, Any] | None = None) -> object:
        return self.container._resolve(registered_type, name, overrides or {}, self.path)  # noqa: SLF001

    def rebind(self, container: Container) -> BuildContext:
        if container is self.container:
            return self
        return replace(self, container=container)
