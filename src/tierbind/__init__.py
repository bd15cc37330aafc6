"""Hierarchical dependency injection container.

This package builds object graphs from registrations of types, mappings,
factories and pre-built instances, honoring lifetimes and nested scopes.

Exports:
- `Container`: scope node supporting registration, resolution, child containers
  and cascading disposal.
- `Lifetime` and the lifetime managers: control whether and where built
  instances are cached (transient, singleton, per child container).
- `StagedFactoryChain`, `RegisterStage`, `SelectMemberStage`: the stage-ordered
  aspect chains every container composes its pipelines from.
- Markers (`constructor`, `injection_constructor`, `inject`, `Dependency`) and
  injection members (`InjectionConstructor`, `InjectionProperty`,
  `InjectionMethod`, `ResolvedParameter`) that steer construction.
- The error types raised during resolution and disposal.
"""

from ._container import Container
from ._disposal import Disposable, DisposalScope
from ._errors import (
    AggregateDisposalError,
    AmbiguousConstructorError,
    CircularDependencyError,
    NoAccessibleConstructorError,
    ResolutionError,
    ResolutionFailedError,
    SelectionError,
    UnresolvedDependencyError,
)
from ._introspection import (
    ConstructorInfo,
    Dependency,
    Introspector,
    MemberInfo,
    MemberKind,
    ParameterInfo,
    ReflectionIntrospector,
    constructor,
    inject,
    injection_constructor,
)
from ._lifetime import (
    ContainerControlledLifetimeManager,
    HierarchicalLifetimeManager,
    Lifetime,
    LifetimeManager,
    TransientLifetimeManager,
)
from ._registration import (
    BuildContext,
    InjectionConstructor,
    InjectionMember,
    InjectionMethod,
    InjectionProperty,
    PolicySet,
    Registration,
    ResolvedParameter,
)
from ._stages import RegisterStage, SelectMemberStage, StagedFactoryChain


__all__ = [
    "AggregateDisposalError",
    "AmbiguousConstructorError",
    "BuildContext",
    "CircularDependencyError",
    "ConstructorInfo",
    "Container",
    "ContainerControlledLifetimeManager",
    "Dependency",
    "Disposable",
    "DisposalScope",
    "HierarchicalLifetimeManager",
    "InjectionConstructor",
    "InjectionMember",
    "InjectionMethod",
    "InjectionProperty",
    "Introspector",
    "Lifetime",
    "LifetimeManager",
    "MemberInfo",
    "MemberKind",
    "NoAccessibleConstructorError",
    "ParameterInfo",
    "PolicySet",
    "ReflectionIntrospector",
    "RegisterStage",
    "Registration",
    "ResolutionError",
    "ResolutionFailedError",
    "ResolvedParameter",
    "SelectMemberStage",
    "SelectionError",
    "StagedFactoryChain",
    "TransientLifetimeManager",
    "UnresolvedDependencyError",
    "constructor",
    "inject",
    "injection_constructor",
]
