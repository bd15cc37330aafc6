from __future__ import annotations

import inspect
from typing import Any, get_origin, get_type_hints

from ._errors import type_name
from ._introspection import is_protocol


def validate_implementation(registered_type: Any, impl: Any) -> None:
    """Check that ``impl`` can stand in for ``registered_type``.

    - classes and ABCs: ``impl`` must be a subclass;
    - Protocols: nominal conformance through the MRO, otherwise a structural
      check of members, positional arity and return annotations.

    Parametrized generics are compared through their origin classes. Anything
    that is not a class cannot be validated and is accepted as is.
    """
    cls = get_origin(registered_type) or registered_type
    impl_cls = get_origin(impl) or impl
    if not inspect.isclass(cls) or not inspect.isclass(impl_cls):
        return

    if not is_protocol(cls):
        if not issubclass(impl_cls, cls):
            msg = f"Implementation {impl_cls.__name__} must be a subclass of {cls.__name__}"
            raise TypeError(msg)
        return

    if cls in getattr(impl_cls, "__mro__", ()):
        return
    _validate_structural_conformance(cls, impl_cls)


def _validate_structural_conformance(proto_cls: type, impl: type) -> None:  # noqa: C901
    missing: list[str] = []
    mismatches: list[str] = []

    try:
        proto_hints = get_type_hints(proto_cls)
    except (NameError, TypeError):
        proto_hints = {}

    for name in proto_hints:
        if not name.startswith("_") and not hasattr(impl, name):
            missing.append(name)

    for name, proto_attr in vars(proto_cls).items():
        if name.startswith("_") or not inspect.isfunction(proto_attr):
            continue

        if not hasattr(impl, name):
            missing.append(name)
            continue

        impl_attr = getattr(impl, name)
        if not callable(impl_attr):
            mismatches.append(f"{name}: not callable on {impl.__name__}")
            continue

        try:
            proto_sig = inspect.signature(proto_attr)
            impl_sig = inspect.signature(impl_attr)
        except (TypeError, ValueError) as e:
            mismatches.append(f"{name}: unable to compare signatures ({e})")
            continue

        proto_arity = _required_positional(proto_sig)
        impl_arity = _required_positional(impl_sig)
        if impl_arity < proto_arity:
            mismatches.append(
                f"{name}: impl has fewer required positional params ({impl_arity}) than protocol ({proto_arity})"
            )

        proto_ret = proto_sig.return_annotation
        impl_ret = impl_sig.return_annotation
        if (
            proto_ret not in (inspect.Signature.empty, Any)
            and impl_ret not in (inspect.Signature.empty, Any)
            and not _is_return_type_compatible(impl_ret, proto_ret)
        ):
            mismatches.append(f"{name}: return type {impl_ret!r} is not compatible with {proto_ret!r}")

    if missing or mismatches:
        details = []
        if missing:
            details.append(f"missing members: {', '.join(missing)}")
        if mismatches:
            details.append(f"signature mismatches: {', '.join(mismatches)}")
        msg = (
            f"Implementation {impl.__name__} does not structurally conform to protocol "
            f"{type_name(proto_cls)}: {'; '.join(details)}"
        )
        raise TypeError(msg)


def _required_positional(sig: inspect.Signature) -> int:
    return sum(
        1
        for p in sig.parameters.values()
        if p.name != "self"
        and p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _is_return_type_compatible(impl_ret: object, proto_ret: object) -> bool:
    if impl_ret == proto_ret:
        return True
    if isinstance(impl_ret, type) and isinstance(proto_ret, type):
        return issubclass(impl_ret, proto_ret)
    # unions, protocols and type variables are not compared
    return False
