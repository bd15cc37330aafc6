from __future__ import annotations

import inspect
import itertools
import logging
import threading
import weakref
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    TypeVar,
    cast,
    get_origin,
    overload,
)

from ._aspects import (
    creation_aspect_factory,
    generic_creation_aspect_factory,
    generic_injection_aspect_factory,
    generic_mapping_aspect_factory,
    lifetime_aspect_factory,
    mapping_aspect_factory,
)
from ._disposal import Disposable, DisposalScope, raise_collected
from ._errors import (
    CircularDependencyError,
    ResolutionFailedError,
    UnresolvedDependencyError,
)
from ._introspection import (
    ReflectionIntrospector,
    enumerable_element,
    is_generic_definition,
    is_interface,
    requires_registration,
)
from ._lifetime import Lifetime, LifetimeManager, TransientLifetimeManager, as_lifetime_manager
from ._registration import BuildContext, PolicySet, Registration
from ._selection import (
    select_annotated_members,
    select_attributed_constructor,
    select_attributed_members,
    select_longest_constructor,
)
from ._stages import RegisterStage, SelectMemberStage, StagedFactoryChain
from ._store import RegistrationStore
from ._validation import validate_implementation


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from types import TracebackType

    from ._introspection import Introspector
    from ._registration import InjectionMember

    T = TypeVar("T")


class _Mode(Enum):
    ROOT = "root"
    # child without registrations of its own: every lookup goes to the parent
    DELEGATING = "delegating"
    OWNING = "owning"


class Container:
    """Hierarchical DI container.

    - register types, mappings, factories and instances under (type, name)
    - resolve with constructor and member injection
    - pluggable lifetimes: transient / singleton / hierarchical
    - child containers that see their parent's registrations and may shadow them.

    Children are created with :meth:`create_child_container` and disposed with
    their parent.
    """

    def __init__(
        self,
        *,
        introspector: Introspector | None = None,
        default_lifetime: Lifetime = Lifetime.TRANSIENT,
        _parent: Container | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._disposal_scope = DisposalScope()
        self._extensions: list[object] = []
        self._implicit: dict[tuple[Any, str], PolicySet] = {}
        self._children_ids = itertools.count(1)
        self._disposed = False

        if _parent is None:
            self.id = "root"
            self._parent_ref: Callable[[], Container | None] = lambda: None
            self._mode = _Mode.ROOT
            self._store: RegistrationStore | None = RegistrationStore()
            self.introspector: Introspector = introspector or ReflectionIntrospector()
            self.default_lifetime = default_lifetime
            self._init_root_chains()
        else:
            self.id = f"{_parent.id}.{next(_parent._children_ids)}"
            self._parent_ref = weakref.ref(_parent)
            self._mode = _Mode.DELEGATING
            self._store = None
            self.introspector = _parent.introspector
            self.default_lifetime = _parent.default_lifetime
            self._init_child_chains(_parent)

        if _parent is None:
            self.register(Container, factory=_requesting_container, lifetime=Lifetime.TRANSIENT)

    def _init_root_chains(self) -> None:
        self.generic_registration_factories = StagedFactoryChain(
            entries=[
                (generic_injection_aspect_factory, RegisterStage.INJECTION),
                (generic_mapping_aspect_factory, RegisterStage.TYPE_MAPPING),
                (generic_creation_aspect_factory, RegisterStage.CREATION),
            ]
        )
        self.explicit_registration_factories = StagedFactoryChain(
            entries=[
                (lifetime_aspect_factory, RegisterStage.LIFETIME),
                (mapping_aspect_factory, RegisterStage.TYPE_MAPPING),
                (creation_aspect_factory, RegisterStage.CREATION),
            ]
        )
        self.implicit_registration_factories = StagedFactoryChain(
            entries=[
                (lifetime_aspect_factory, RegisterStage.LIFETIME),
                (mapping_aspect_factory, RegisterStage.TYPE_MAPPING),
                (creation_aspect_factory, RegisterStage.CREATION),
            ]
        )
        self.instance_registration_factories = StagedFactoryChain(
            entries=[(lifetime_aspect_factory, RegisterStage.LIFETIME)]
        )
        self.constructor_selection_factories = StagedFactoryChain(
            entries=[
                (select_attributed_constructor, SelectMemberStage.ATTRIBUTE),
                (select_longest_constructor, SelectMemberStage.REFLECTION),
            ]
        )
        self.member_selection_factories = StagedFactoryChain(
            entries=[
                (select_attributed_members, SelectMemberStage.ATTRIBUTE),
                (select_annotated_members, SelectMemberStage.REFLECTION),
            ]
        )
        # built up front so children start out sharing them
        for chain in self._chains():
            chain.build_pipeline()

    def _init_child_chains(self, parent: Container) -> None:
        self.generic_registration_factories = StagedFactoryChain(parent.generic_registration_factories)
        self.explicit_registration_factories = StagedFactoryChain(parent.explicit_registration_factories)
        self.implicit_registration_factories = StagedFactoryChain(parent.implicit_registration_factories)
        self.instance_registration_factories = StagedFactoryChain(parent.instance_registration_factories)
        self.constructor_selection_factories = StagedFactoryChain(parent.constructor_selection_factories)
        self.member_selection_factories = StagedFactoryChain(parent.member_selection_factories)
        for chain in self._chains():
            self._disposal_scope.add(chain)

    def _chains(self) -> list[StagedFactoryChain[Any, Any]]:
        return [
            self.generic_registration_factories,
            self.explicit_registration_factories,
            self.implicit_registration_factories,
            self.instance_registration_factories,
            self.constructor_selection_factories,
            self.member_selection_factories,
        ]

    # Hierarchy

    @property
    def parent(self) -> Container | None:
        return self._parent_ref()

    @property
    def children(self) -> list[Container]:
        return [item for item in self._disposal_scope if isinstance(item, Container)]

    @property
    def disposal_scope(self) -> DisposalScope:
        return self._disposal_scope

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def create_child_container(self) -> Container:
        """Create a child scope that sees this container's registrations and may shadow them.

        The child refers to its parent weakly while the parent holds the child.
        Keep a reference to the root: once it is collected its children see
        none of its registrations and its singletons are never disposed.
        """
        child = Container(_parent=self)
        self._disposal_scope.add(child)
        logger.debug("Container %s created child %s", self.id, child.id)
        return child

    def _lineage(self) -> list[Container]:
        """This container and its live ancestors, root first."""
        lineage = []
        node: Container | None = self
        while node is not None:
            lineage.append(node)
            node = node.parent
        lineage.reverse()
        return lineage

    # Registration

    @overload
    def register(
        self,
        registered_type: type[T],
        impl: type[T] | None = ...,
        *,
        name: str = ...,
        factory: None = ...,
        lifetime: Lifetime | LifetimeManager | None = ...,
        members: Sequence[InjectionMember] = ...,
    ) -> None: ...

    @overload
    def register(
        self,
        registered_type: type[T],
        impl: None = ...,
        *,
        name: str = ...,
        factory: Callable[..., T],
        lifetime: Lifetime | LifetimeManager | None = ...,
        members: Sequence[InjectionMember] = ...,
    ) -> None: ...

    @overload
    def register(
        self,
        registered_type: Any,
        impl: Any = ...,
        *,
        name: str = ...,
        factory: Callable[..., Any] | None = ...,
        lifetime: Lifetime | LifetimeManager | None = ...,
        members: Sequence[InjectionMember] = ...,
    ) -> None: ...

    def register(
        self,
        registered_type: Any,
        impl: Any = None,
        *,
        name: str = "",
        factory: Callable[..., Any] | None = None,
        lifetime: Lifetime | LifetimeManager | None = None,
        members: Sequence[InjectionMember] = (),
    ) -> None:
        """Register how to build ``registered_type`` under ``name``.

        Example:
          container.register(Repo)                                  # build Repo itself
          container.register(IRepo, SqlRepo, lifetime=Lifetime.SINGLETON)
          container.register(IRepo, name="mem", factory=lambda c: MemoryRepo())

        A later registration of the same (type, name) replaces this one.
        """
        if impl is not None and factory is not None:
            msg = "Provide either `impl` or `factory`, not both."
            raise ValueError(msg)

        if factory is not None and members:
            msg = "Injection members cannot be combined with a `factory`."
            raise ValueError(msg)

        if impl is not None:
            validate_implementation(registered_type, impl)

        registration = Registration(
            registered_type,
            _normalize_name(name),
            mapped_to=impl,
            factory=factory,
            lifetime=self._lifetime_manager(lifetime),
            members=tuple(members),
        )
        self._add_or_update(registration, self.explicit_registration_factories)

    def register_instance(
        self,
        registered_type: Any,
        instance: object,
        *,
        name: str = "",
        lifetime: Lifetime | LifetimeManager | None = None,
    ) -> None:
        """Register a pre-built instance; by default it is disposed with this container."""
        if inspect.isclass(get_origin(registered_type) or registered_type):
            validate_implementation(registered_type, type(instance))

        manager = self._lifetime_manager(Lifetime.SINGLETON if lifetime is None else lifetime)
        if isinstance(manager, TransientLifetimeManager):
            msg = "Instances cannot be registered with a transient lifetime."
            raise ValueError(msg)

        manager.set_value(instance, self)
        registration = Registration(registered_type, _normalize_name(name), instance=instance, lifetime=manager)
        self._add_or_update(registration, self.instance_registration_factories)

    def add_extension(self, extension: object) -> Container:
        """Attach an extension object; disposable extensions are disposed with this container."""
        with self._lock:
            self._extensions.append(extension)
        return self

    def _lifetime_manager(self, lifetime: Lifetime | LifetimeManager | None) -> LifetimeManager:
        return as_lifetime_manager(self.default_lifetime if lifetime is None else lifetime)

    def _add_or_update(
        self,
        registration: Registration,
        chain: StagedFactoryChain[Any, RegisterStage],
    ) -> PolicySet:
        store = self._ensure_owning()
        policy = self._compile(registration, chain)
        store.set(registration.registered_type, registration.name, policy)
        logger.debug("Container %s registered %r", self.id, registration)
        return policy

    def _ensure_owning(self) -> RegistrationStore:
        with self._lock:
            if self._mode is _Mode.DELEGATING:
                self._store = RegistrationStore()
                self._mode = _Mode.OWNING
                logger.debug("Container %s now owns its registrations", self.id)
            return cast("RegistrationStore", self._store)

    def _compile(self, registration: Registration, chain: StagedFactoryChain[Any, RegisterStage]) -> PolicySet:
        pipeline = chain.build_pipeline()
        method = pipeline(self, registration) if pipeline is not None else None
        policy = PolicySet(registration, method)
        if isinstance(policy.lifetime, Disposable):
            self._disposal_scope.add(policy.lifetime)
        return policy

    # Lookup

    def get_registration(self, registered_type: Any, name: str = "") -> PolicySet | None:
        """Explicit registration visible from this container, or ``None``."""
        name = _normalize_name(name)
        if self._mode is _Mode.DELEGATING:
            parent = self.parent
            return parent.get_registration(registered_type, name) if parent is not None else None

        policy = self._get_local(registered_type, name)
        if policy is None:
            parent = self.parent
            if parent is not None:
                return parent.get_registration(registered_type, name)
        return policy

    def is_registered(self, registered_type: Any, name: str = "") -> bool:
        return self.get_registration(registered_type, name) is not None

    def _get_local(self, registered_type: Any, name: str) -> PolicySet | None:
        store = self._store
        if store is None:
            return None

        policy = store.get(registered_type, name)
        if policy is not None:
            return policy

        origin = get_origin(registered_type)
        if origin is None or not is_generic_definition(origin):
            return None
        definition = store.get(origin, name)
        if definition is None:
            return None
        return store.get_or_add(registered_type, name, lambda: self._close_generic(definition, registered_type))

    def _close_generic(self, definition: PolicySet, closed_type: Any) -> PolicySet:
        close = self.generic_registration_factories.build_pipeline()
        if close is None:
            return definition
        registration = close(self, definition.registration, closed_type)
        logger.debug("Container %s closed %r as %r", self.id, definition.registration, registration)
        return self._compile(registration, self.explicit_registration_factories)

    def collect_all_named(self, registered_type: Any) -> list[PolicySet]:
        """Named registrations of ``registered_type`` from the root down to this container.

        For a parametrized generic the named registrations of its generic
        definition are included. A descendant's entry replaces an ancestor's
        entry of the same name and takes the ancestor's position. Unlike a
        first-wins set this lets a child override a single inherited entry.
        """
        origin = get_origin(registered_type)
        definition = origin if origin is not None and is_generic_definition(origin) else None

        collected: dict[str, PolicySet] = {}
        for node in self._lineage():
            store = node._store
            if node._mode is _Mode.DELEGATING or store is None:
                continue
            local = {policy.registration.name: policy for policy in store.named(registered_type)}
            if definition is not None:
                for policy in store.named(definition):
                    local.setdefault(policy.registration.name, policy)
            collected.update(local)
        return list(collected.values())

    @property
    def registrations(self) -> list[Registration]:
        """Every explicit registration visible from this container."""
        collected: dict[tuple[Any, str], Registration] = {}
        for node in self._lineage():
            store = node._store
            if node._mode is _Mode.DELEGATING or store is None:
                continue
            for policy in store:
                registration = policy.registration
                collected[(registration.registered_type, registration.name)] = registration
        return list(collected.values())

    # Resolution

    @overload
    def resolve(self, registered_type: type[T], name: str = ..., **overrides: Any) -> T: ...

    @overload
    def resolve(self, registered_type: Any, name: str = ..., **overrides: Any) -> Any: ...

    def resolve(self, registered_type: Any, name: str = "", **overrides: Any) -> Any:
        """Resolve ``registered_type`` registered under ``name`` to an instance.

        - If a registration is visible from this container: use it.
        - Else if ``registered_type`` is a concrete class: build it implicitly.
        - Else if it is ``list[T]``/``Sequence[T]``/...: ``resolve_all(T)``.
        `overrides` supply constructor arguments of the requested object by name.
        """
        name = _normalize_name(name)
        try:
            return self._resolve(registered_type, name, overrides, ())
        except ResolutionFailedError:
            raise
        except Exception as e:
            raise ResolutionFailedError(registered_type, name, e) from e

    def resolve_all(self, registered_type: Any) -> list[Any]:
        """Instances of every named registration of ``registered_type``."""
        try:
            return self._resolve_all(registered_type, ())
        except ResolutionFailedError:
            raise
        except Exception as e:
            raise ResolutionFailedError(registered_type, "", e) from e

    def _resolve(
        self,
        registered_type: Any,
        name: str,
        overrides: Mapping[str, Any],
        path: tuple[tuple[Any, str], ...],
    ) -> Any:
        key = (registered_type, name)
        if key in path:
            raise CircularDependencyError([*path, key])
        path = (*path, key)

        policy = self.get_registration(registered_type, name)
        if policy is None:
            element = enumerable_element(registered_type)
            if element is not None:
                return self._resolve_all(element, path)
            policy = self._get_or_add_implicit(registered_type, name)

        return policy.resolve(BuildContext(self, registered_type, name, overrides, path))

    def _resolve_all(self, registered_type: Any, path: tuple[tuple[Any, str], ...]) -> list[Any]:
        return [
            self._resolve(registered_type, policy.registration.name, {}, path)
            for policy in self.collect_all_named(registered_type)
        ]

    def _get_or_add_implicit(self, registered_type: Any, name: str) -> PolicySet:
        key = (registered_type, name)
        policy = self._implicit.get(key)
        if policy is not None:
            return policy

        origin = get_origin(registered_type) or registered_type
        if not inspect.isclass(origin) or is_interface(origin) or requires_registration(origin):
            raise UnresolvedDependencyError(registered_type)

        with self._lock:
            policy = self._implicit.get(key)
            if policy is None:
                registration = Registration(registered_type, name, lifetime=TransientLifetimeManager())
                pipeline = self.implicit_registration_factories.build_pipeline()
                method = pipeline(self, registration) if pipeline is not None else None
                policy = PolicySet(registration, method, explicit=False)
                self._implicit[key] = policy
        return policy

    # Disposal

    def dispose(self) -> None:
        """Dispose this container, its children and everything it owns.

        Every disposal is attempted; a single failure is re-raised as is,
        several are raised together as ``AggregateDisposalError``.
        """
        with self._lock:
            if self._disposed:
                return
            self._disposed = True

        errors: list[Exception] = []
        parent = self.parent
        if parent is not None:
            parent._disposal_scope.remove(self)

        errors.extend(self._disposal_scope.dispose_collecting())

        with self._lock:
            extensions = self._extensions[::-1]
            self._extensions.clear()
        for extension in extensions:
            if not isinstance(extension, Disposable):
                continue
            try:
                extension.dispose()
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        with self._lock:
            self._store = RegistrationStore()
            self._implicit.clear()
            if self._mode is _Mode.DELEGATING:
                self._mode = _Mode.OWNING

        if errors:
            logger.warning("Container %s disposed with %d error(s)", self.id, len(errors))
        else:
            logger.debug("Container %s disposed", self.id)
        raise_collected(errors)

    def __enter__(self) -> Container:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} ({self._mode.value})>"


def _requesting_container(container: Container, **overrides: Any) -> Container:  # noqa: ARG001
    return container


def _normalize_name(name: str | None) -> str:
    if name is None:
        return ""
    if not isinstance(name, str):
        msg = f"Registration names must be strings, got {name!r}"
        raise TypeError(msg)
    return name


