from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, get_origin

from ._errors import (
    AmbiguousConstructorError,
    NoAccessibleConstructorError,
    ResolutionError,
    UnresolvedDependencyError,
    type_name,
)
from ._introspection import (
    DEPENDENCY,
    ENUMERABLE_ORIGINS,
    INJECT,
    INJECTION_CONSTRUCTOR,
    ConstructorInfo,
    MemberInfo,
    MemberKind,
    ParameterInfo,
    is_interface,
    requires_registration,
)
from ._lifetime import NO_VALUE
from ._registration import (
    InjectionConstructor,
    InjectionMember,
    InjectionMethod,
    InjectionProperty,
    ResolvedParameter,
)


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._container import Container
    from ._registration import BuildContext

    ConstructorSelector = Callable[[Container, Any], ConstructorInfo | None]
    MemberSelector = Callable[[Container, Any], list[MemberInfo]]


def can_resolve(container: Container, tp: Any, name: str = "") -> bool:
    """Optimistic check used while choosing a constructor.

    Concrete classes are assumed buildable; whether they really are only shows
    up when the dependency itself is built.
    """
    if tp is inspect.Parameter.empty:
        return False

    origin = get_origin(tp)
    target = tp if origin is None else origin
    if inspect.isclass(target) and not is_interface(target) and origin not in ENUMERABLE_ORIGINS:
        if requires_registration(target):
            return container.is_registered(tp, name)
        return True

    if origin is not None and (origin in ENUMERABLE_ORIGINS or container.is_registered(origin, name)):
        return True

    return container.is_registered(tp, name)


# Constructor selection aspects


def select_attributed_constructor(next_selector: ConstructorSelector | None) -> ConstructorSelector:
    def select(container: Container, cls: Any) -> ConstructorInfo | None:
        introspector = container.introspector
        for ctor in introspector.list_constructors(cls):
            if introspector.has_marker(ctor, INJECTION_CONSTRUCTOR):
                return ctor
        return next_selector(container, cls) if next_selector is not None else None

    return select


def select_longest_constructor(next_selector: ConstructorSelector | None) -> ConstructorSelector:
    def select(container: Container, cls: Any) -> ConstructorInfo | None:
        constructors = container.introspector.list_constructors(cls)
        if not constructors:
            return next_selector(container, cls) if next_selector is not None else None
        if len(constructors) == 1:
            return constructors[0]
        return _select_by_heuristic(container, cls, constructors)

    return select


def _select_by_heuristic(container: Container, cls: Any, constructors: list[ConstructorInfo]) -> ConstructorInfo:
    introspector = container.introspector
    parameters = {ctor.name: introspector.list_parameters(ctor) for ctor in constructors}

    def rank(ctor: ConstructorInfo) -> tuple[int, int]:
        params = parameters[ctor.name]
        return len(params), sum(1 for p in params if is_interface(p.annotation))

    # sorted() is stable, so equally ranked constructors keep introspection order
    ranked = sorted(constructors, key=rank, reverse=True)

    best: ConstructorInfo | None = None
    best_types: set[Any] = set()
    for ctor in ranked:
        params = parameters[ctor.name]
        if not all(can_resolve(container, p.annotation, p.dependency_name) or p.has_default for p in params):
            continue

        if best is None:
            best = ctor
            best_types = {p.annotation for p in params}
            continue

        # Constructors are visited by decreasing arity, so only a superset or
        # an ambiguity can show up once a candidate has been found.
        types = {p.annotation for p in params}
        if types <= best_types:
            return best
        if all(is_interface(t) for t in best_types) and not all(is_interface(t) for t in types):
            return best
        raise AmbiguousConstructorError(cls)

    if best is None:
        raise NoAccessibleConstructorError(cls)
    return best


# Member selection aspects


def select_attributed_members(next_selector: MemberSelector | None) -> MemberSelector:
    def select(container: Container, cls: Any) -> list[MemberInfo]:
        introspector = container.introspector
        members = [m for m in introspector.list_members(cls) if introspector.has_marker(m, INJECT)]
        if members or next_selector is None:
            return members
        return next_selector(container, cls)

    return select


def select_annotated_members(next_selector: MemberSelector | None) -> MemberSelector:
    def select(container: Container, cls: Any) -> list[MemberInfo]:
        introspector = container.introspector
        members = [m for m in introspector.list_members(cls) if introspector.has_marker(m, DEPENDENCY)]
        if members or next_selector is None:
            return members
        return next_selector(container, cls)

    return select


# Build-time resolvers


class ParameterResolver:
    def __init__(self, owner: Any, parameter: ParameterInfo, value: Any = NO_VALUE) -> None:
        self.owner = owner
        self.parameter = parameter
        self.value = value

    def __call__(self, context: BuildContext) -> object:
        if self.value is not NO_VALUE:
            if isinstance(self.value, ResolvedParameter):
                return context.resolve(self.value.type, self.value.name)
            return self.value

        parameter = self.parameter
        if can_resolve(context.container, parameter.annotation, parameter.dependency_name):
            return context.resolve(parameter.annotation, parameter.dependency_name)
        if parameter.has_default:
            return parameter.default
        raise UnresolvedDependencyError(self.owner, parameter.name, parameter.annotation)

    def __repr__(self) -> str:
        return f"ParameterResolver({self.parameter.name!r})"


@dataclass
class SelectedConstructor:
    constructor: ConstructorInfo
    parameters: list[ParameterInfo]
    resolvers: list[ParameterResolver]

    def invoke(self, context: BuildContext) -> object:
        overrides = context.overrides
        if overrides:
            unknown = set(overrides) - {p.name for p in self.parameters}
            if unknown:
                msg = (
                    f"Overrides don't match {type_name(self.constructor.owner)}.{self.constructor.name} "
                    f"signature: unexpected {', '.join(sorted(unknown))}"
                )
                raise TypeError(msg)

        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for param, resolver in zip(self.parameters, self.resolvers):
            value = overrides[param.name] if param.name in overrides else resolver(context)
            if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                args.append(value)
            else:
                kwargs[param.name] = value
        return self.constructor.factory(*args, **kwargs)


@dataclass
class MemberInjection:
    member: MemberInfo
    parameters: list[ParameterInfo]
    resolvers: list[ParameterResolver]

    def apply(self, instance: object, context: BuildContext) -> None:
        values = [resolver(context) for resolver in self.resolvers]
        if self.member.kind is MemberKind.METHOD:
            args: list[Any] = []
            kwargs: dict[str, Any] = {}
            for param, value in zip(self.parameters, values):
                if param.kind is inspect.Parameter.POSITIONAL_ONLY:
                    args.append(value)
                else:
                    kwargs[param.name] = value
            getattr(instance, self.member.name)(*args, **kwargs)
        else:
            setattr(instance, self.member.name, values[0])


def select_constructor(container: Container, cls: Any, members: Sequence[InjectionMember]) -> SelectedConstructor:
    if is_interface(get_origin(cls) or cls):
        raise NoAccessibleConstructorError(cls)

    introspector = container.introspector
    explicit = next((m for m in members if isinstance(m, InjectionConstructor)), None)
    if explicit is not None:
        ctor = _match_injection_constructor(container, cls, explicit)
        values: Sequence[Any] = explicit.values
    else:
        pipeline = container.constructor_selection_factories.build_pipeline()
        ctor = pipeline(container, cls) if pipeline is not None else None
        values = ()

    if ctor is None:
        raise NoAccessibleConstructorError(cls)

    parameters = introspector.list_parameters(ctor)
    resolvers = [
        ParameterResolver(cls, param, values[index] if index < len(values) else NO_VALUE)
        for index, param in enumerate(parameters)
    ]
    return SelectedConstructor(ctor, parameters, resolvers)


def _match_injection_constructor(container: Container, cls: Any, explicit: InjectionConstructor) -> ConstructorInfo:
    introspector = container.introspector
    for ctor in introspector.list_constructors(cls):
        if explicit.constructor_name is not None:
            if ctor.name == explicit.constructor_name:
                return ctor
            continue
        params = introspector.list_parameters(ctor)
        if len(params) == len(explicit.values) and all(
            _value_matches(value, p.annotation) for value, p in zip(explicit.values, params)
        ):
            return ctor
    raise NoAccessibleConstructorError(cls)


def _value_matches(value: Any, annotation: Any) -> bool:
    if isinstance(value, ResolvedParameter):
        return True
    if inspect.isclass(annotation) and get_origin(annotation) is None:
        return isinstance(value, annotation)
    return True


def select_members(container: Container, cls: Any, members: Sequence[InjectionMember]) -> list[MemberInjection]:
    introspector = container.introspector
    pipeline = container.member_selection_factories.build_pipeline()
    selected = list(pipeline(container, cls)) if pipeline is not None else []

    explicit = {m.name: m for m in members if isinstance(m, (InjectionProperty, InjectionMethod))}
    if explicit:
        available = {m.name: m for m in introspector.list_members(cls)}
        selected = [m for m in selected if m.name not in explicit]
        for name in explicit:
            member = available.get(name)
            if member is None:
                msg = f"{type_name(cls)} has no injectable member named '{name}'"
                raise ResolutionError(msg)
            selected.append(member)

    injections = []
    for member in selected:
        parameters = introspector.list_parameters(member)
        override = explicit.get(member.name)
        if isinstance(override, InjectionMethod):
            values: Sequence[Any] = override.values
        elif isinstance(override, InjectionProperty):
            values = (override.value,)
        else:
            values = ()
        resolvers = [
            ParameterResolver(cls, param, values[index] if index < len(values) else NO_VALUE)
            for index, param in enumerate(parameters)
        ]
        injections.append(MemberInjection(member, parameters, resolvers))
    return injections
