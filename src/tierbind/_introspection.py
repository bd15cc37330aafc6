"""Capability introspection: what can be constructed and injected for a type.

The engine only talks to the :class:`Introspector` protocol. The default
:class:`ReflectionIntrospector` reads signatures and type hints; markers are
plain attributes set by the decorators below.
"""

from __future__ import annotations

import collections.abc
import inspect
import logging
import typing
from dataclasses import dataclass
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Annotated,
    Any,
    Protocol,
    TypeVar,
    get_args,
    get_origin,
    get_type_hints,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    F = TypeVar("F")


logger = logging.getLogger(__name__)

INJECTION_CONSTRUCTOR = "__tierbind_injection_constructor__"
CONSTRUCTOR = "__tierbind_constructor__"
INJECT = "__tierbind_inject__"
DEPENDENCY = "__tierbind_dependency__"

_EMPTY = inspect.Parameter.empty

ENUMERABLE_ORIGINS = frozenset(
    {
        list,
        collections.abc.Iterable,
        collections.abc.Collection,
        collections.abc.Sequence,
    }
)


@dataclass(frozen=True)
class Dependency:
    """Marks a parameter or class attribute for named resolution.

    Example:
      def __init__(self, db: Annotated[Database, Dependency("replica")]): ...

    """

    name: str = ""


def _mark(func: F, marker: str) -> F:
    target = func.__func__ if isinstance(func, (classmethod, staticmethod)) else func
    setattr(target, marker, True)
    return func


def constructor(func: F) -> F:
    """Mark a classmethod as an alternate constructor eligible for selection."""
    return _mark(func, CONSTRUCTOR)


def injection_constructor(func: F) -> F:
    """Select this constructor (``__init__`` or a classmethod) whenever it is eligible."""
    _mark(func, CONSTRUCTOR)
    return _mark(func, INJECTION_CONSTRUCTOR)


def inject(func: F) -> F:
    """Call this method, or this property setter, after construction with resolved arguments."""
    return _mark(func, INJECT)


class MemberKind(Enum):
    PROPERTY = "property"
    METHOD = "method"
    FIELD = "field"


@dataclass(frozen=True)
class ConstructorInfo:
    owner: Any
    name: str
    factory: Callable[..., object]
    function: Callable[..., object] | None


@dataclass(frozen=True)
class MemberInfo:
    owner: Any
    name: str
    kind: MemberKind
    function: Callable[..., object] | None = None
    annotation: Any = _EMPTY
    dependency: Dependency | None = None


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    annotation: Any = _EMPTY
    dependency_name: str = ""
    default: Any = _EMPTY
    kind: inspect._ParameterKind = inspect.Parameter.POSITIONAL_OR_KEYWORD

    @property
    def has_default(self) -> bool:
        return self.default is not _EMPTY


class Introspector(Protocol):
    def list_constructors(self, cls: Any) -> list[ConstructorInfo]: ...

    def list_members(self, cls: Any) -> list[MemberInfo]: ...

    def list_parameters(self, target: ConstructorInfo | MemberInfo) -> list[ParameterInfo]: ...

    def has_marker(self, target: ConstructorInfo | MemberInfo, marker: str) -> bool: ...


class ReflectionIntrospector:
    """Default introspector built on ``inspect`` and ``typing``.

    Parametrized generics (``Repository[User]``) are introspected through their
    origin class with type variables substituted by the type arguments.
    """

    def list_constructors(self, cls: Any) -> list[ConstructorInfo]:
        origin = get_origin(cls) or cls
        constructors = [ConstructorInfo(cls, "__init__", cls, vars(origin).get("__init__"))]

        for name, attr in vars(origin).items():
            if name.startswith("_") or not isinstance(attr, classmethod):
                continue
            if getattr(attr.__func__, CONSTRUCTOR, False):
                constructors.append(ConstructorInfo(cls, name, getattr(origin, name), attr.__func__))

        return constructors

    def list_members(self, cls: Any) -> list[MemberInfo]:
        origin = get_origin(cls) or cls
        members: list[MemberInfo] = []
        seen: set[str] = set()

        for klass in origin.__mro__:
            if klass is object:
                continue
            for name, attr in vars(klass).items():
                if name.startswith("_") or name in seen:
                    continue
                seen.add(name)
                if isinstance(attr, property):
                    if attr.fset is not None:
                        members.append(MemberInfo(cls, name, MemberKind.PROPERTY, attr.fset))
                elif inspect.isfunction(attr):
                    members.append(MemberInfo(cls, name, MemberKind.METHOD, attr))

        typevars = _typevar_map(cls)
        for name, hint in _type_hints(origin).items():
            annotation, dependency = split_annotated(hint)
            if dependency is None or name.startswith("_"):
                continue
            members.append(
                MemberInfo(
                    cls,
                    name,
                    MemberKind.FIELD,
                    annotation=_substitute(annotation, typevars),
                    dependency=dependency,
                )
            )

        return members

    def list_parameters(self, target: ConstructorInfo | MemberInfo) -> list[ParameterInfo]:
        typevars = _typevar_map(target.owner)

        if isinstance(target, MemberInfo) and target.kind is MemberKind.FIELD:
            name = target.dependency.name if target.dependency else ""
            return [ParameterInfo(target.name, target.annotation, name)]

        if isinstance(target, ConstructorInfo):
            origin = get_origin(target.owner) or target.owner
            callable_ = origin if target.name == "__init__" else target.factory
            hints = _init_type_hints(origin) if target.name == "__init__" else _type_hints(target.function)
            skip_first = False
        else:
            callable_ = target.function
            hints = _type_hints(target.function)
            skip_first = True

        try:
            sig = inspect.signature(callable_)
        except (TypeError, ValueError):
            return []

        params = list(sig.parameters.values())
        if skip_first:
            params = params[1:]

        return [
            _make_parameter(p, hints, typevars)
            for p in params
            if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        ]

    def has_marker(self, target: ConstructorInfo | MemberInfo, marker: str) -> bool:
        if isinstance(target, MemberInfo) and target.kind is MemberKind.FIELD:
            return marker == DEPENDENCY and target.dependency is not None
        return bool(getattr(target.function, marker, False))


def _make_parameter(p: inspect.Parameter, hints: Mapping[str, Any], typevars: Mapping[Any, Any]) -> ParameterInfo:
    annotation, dependency = split_annotated(hints.get(p.name, p.annotation))
    return ParameterInfo(
        p.name,
        _substitute(annotation, typevars),
        dependency.name if dependency else "",
        p.default,
        p.kind,
    )


def split_annotated(hint: Any) -> tuple[Any, Dependency | None]:
    if get_origin(hint) is not Annotated:
        return hint, None
    base, *metadata = get_args(hint)
    dependency = next((m for m in metadata if isinstance(m, Dependency)), None)
    return base, dependency


def _typevar_map(cls: Any) -> dict[Any, Any]:
    origin = get_origin(cls)
    if origin is None:
        return {}
    return dict(zip(getattr(origin, "__parameters__", ()), get_args(cls)))


def _substitute(annotation: Any, typevars: Mapping[Any, Any]) -> Any:
    if not typevars:
        return annotation
    if isinstance(annotation, TypeVar):
        return typevars.get(annotation, annotation)
    params = getattr(annotation, "__parameters__", ())
    if params and get_origin(annotation) is not None:
        return annotation[tuple(typevars.get(p, p) for p in params)]
    return annotation


def _type_hints(obj: Any) -> dict[str, Any]:
    if obj is None:
        return {}
    try:
        return get_type_hints(obj, include_extras=True)
    except TypeError:
        return {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s type hints", exc.name, getattr(obj, "__qualname__", obj))
        return {}


def _init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
    except AttributeError:
        return {}
    return _type_hints(init)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def is_protocol(tp: Any) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: Any) -> bool:
        return inspect.isclass(tp) and bool(getattr(tp, "_is_protocol", False)) and tp is not Protocol


def is_interface(tp: Any) -> bool:
    """Protocols and abstract classes: things that cannot be constructed directly."""
    return inspect.isclass(tp) and (is_protocol(tp) or inspect.isabstract(tp))


def is_generic_definition(tp: Any) -> bool:
    return inspect.isclass(tp) and get_origin(tp) is None and bool(getattr(tp, "__parameters__", ()))


def enumerable_element(tp: Any) -> Any:
    """Element type of ``list[T]``/``Sequence[T]``/... or ``None`` for anything else."""
    if get_origin(tp) in ENUMERABLE_ORIGINS:
        args = get_args(tp)
        if len(args) == 1:
            return args[0]
    return None


def requires_registration(cls: type) -> bool:
    """Builtins and enums are never auto-constructed."""
    return getattr(cls, "__module__", "") == "builtins" or issubclass(cls, Enum)
