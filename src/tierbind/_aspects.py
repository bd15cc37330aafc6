"""Aspect factories that make up the default registration pipelines.

Each factory takes the pipeline built from the later stages and returns a
pipeline wrapping it. Registration pipelines turn a ``Registration`` into the
resolve method stored in its ``PolicySet``; the generic pipeline turns an open
registration into a closed one.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any, get_args

from ._errors import ResolutionError
from ._lifetime import NO_VALUE, TransientLifetimeManager
from ._selection import select_constructor, select_members


if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ._container import Container
    from ._registration import BuildContext, InjectionMember, Registration, ResolveMethod
    from ._selection import MemberInjection, SelectedConstructor

    RegistrationFactory = Callable[[Container, Registration], ResolveMethod | None]
    GenericFactory = Callable[[Container, Registration, Any], Registration]


class BuildPlan:
    """Constructor call plus member injections for one concrete type.

    Selection runs on first use, so dependencies registered after the type
    are taken into account; the result is kept for later builds.
    """

    def __init__(self, build_type: Any, members: Sequence[InjectionMember] = ()) -> None:
        self.build_type = build_type
        self.members = tuple(members)
        self._lock = threading.Lock()
        self._constructor: SelectedConstructor | None = None
        self._injections: list[MemberInjection] = []

    def __call__(self, context: BuildContext) -> object:
        constructor = self._constructor
        if constructor is None:
            constructor = self._compile(context.container)

        instance = constructor.invoke(context)
        for injection in self._injections:
            injection.apply(instance, context)
        return instance

    def _compile(self, container: Container) -> SelectedConstructor:
        with self._lock:
            if self._constructor is None:
                constructor = select_constructor(container, self.build_type, self.members)
                self._injections = select_members(container, self.build_type, self.members)
                self._constructor = constructor
            return self._constructor

    def __repr__(self) -> str:
        return f"BuildPlan({self.build_type!r})"


def lifetime_aspect_factory(next_factory: RegistrationFactory | None) -> RegistrationFactory:
    def register(container: Container, registration: Registration) -> ResolveMethod | None:
        method = next_factory(container, registration) if next_factory is not None else None
        manager = registration.lifetime
        if isinstance(manager, TransientLifetimeManager):
            return method

        def resolve(context: BuildContext) -> object:
            value = manager.get_value(context.container)
            if value is not NO_VALUE:
                return value
            if method is None:
                msg = f"{registration!r} holds no value and has nothing to build it with"
                raise ResolutionError(msg)

            with manager.lock:
                value = manager.get_value(context.container)
                if value is NO_VALUE:
                    build_context = context.rebind(container) if manager.builds_in_owner else context
                    value = method(build_context)
                    manager.set_value(value, context.container)
            return value

        return resolve

    return register


def mapping_aspect_factory(next_factory: RegistrationFactory | None) -> RegistrationFactory:
    def register(container: Container, registration: Registration) -> ResolveMethod | None:
        target = registration.mapped_to
        if target is None or target == registration.registered_type or registration.members:
            # members apply to the mapped type, so it has to be built right here
            return next_factory(container, registration) if next_factory is not None else None

        name = registration.name

        def resolve(context: BuildContext) -> object:
            return context.resolve(target, name, context.overrides)

        return resolve

    return register


def creation_aspect_factory(next_factory: RegistrationFactory | None) -> RegistrationFactory:  # noqa: ARG001
    def register(container: Container, registration: Registration) -> ResolveMethod | None:
        factory = registration.factory
        if factory is not None:

            def resolve(context: BuildContext) -> object:
                return factory(context.container, **context.overrides)

            return resolve

        return BuildPlan(registration.build_type, registration.members)

    return register


# Generic registrations


def generic_injection_aspect_factory(next_factory: GenericFactory | None) -> GenericFactory:
    def close(container: Container, registration: Registration, closed_type: Any) -> Registration:
        closed = _close_next(next_factory, container, registration, closed_type)
        return closed.evolve(members=registration.members)

    return close


def generic_mapping_aspect_factory(next_factory: GenericFactory | None) -> GenericFactory:
    def close(container: Container, registration: Registration, closed_type: Any) -> Registration:
        closed = _close_next(next_factory, container, registration, closed_type)
        target = registration.mapped_to
        if target is None:
            return closed
        if getattr(target, "__parameters__", ()):
            target = target[get_args(closed_type)]
        return closed.evolve(mapped_to=target)

    return close


def generic_creation_aspect_factory(next_factory: GenericFactory | None) -> GenericFactory:  # noqa: ARG001
    def close(container: Container, registration: Registration, closed_type: Any) -> Registration:  # noqa: ARG001
        return registration.evolve(
            registered_type=closed_type,
            mapped_to=None,
            members=(),
            lifetime=registration.lifetime.clone(),
        )

    return close


def _close_next(
    next_factory: GenericFactory | None,
    container: Container,
    registration: Registration,
    closed_type: Any,
) -> Registration:
    if next_factory is None:
        msg = f"The generic pipeline has no creation stage to close {registration!r}"
        raise ResolutionError(msg)
    return next_factory(container, registration, closed_type)
