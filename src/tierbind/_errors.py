from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def type_name(tp: Any) -> str:
    name = getattr(tp, "__qualname__", None)
    if name is None or getattr(tp, "__args__", None):
        return repr(tp)
    return name


class ResolutionError(RuntimeError):
    """Base class for everything that can go wrong while building an object graph."""


class SelectionError(ResolutionError):
    def __init__(self, target: Any, msg: str) -> None:
        super().__init__(msg)
        self.target = target


class NoAccessibleConstructorError(SelectionError):
    def __init__(self, target: Any) -> None:
        msg = f"No accessible constructor could be selected for {type_name(target)}"
        super().__init__(target, msg)


class AmbiguousConstructorError(SelectionError):
    def __init__(self, target: Any) -> None:
        msg = (
            f"Failed to select a constructor for {type_name(target)}: "
            "several constructors are equally good candidates"
        )
        super().__init__(target, msg)


class UnresolvedDependencyError(ResolutionError):
    """A parameter is neither resolvable nor defaulted, or a type cannot be built at all."""

    def __init__(self, target: Any, parameter: str | None = None, annotation: Any = None) -> None:
        self.target = target
        self.parameter = parameter
        if parameter is None:
            msg = f"{type_name(target)} is not registered and cannot be constructed"
        else:
            msg = (
                f"Cannot satisfy parameter '{parameter}' of {type_name(target)}: "
                f"no override, registration or default found (annotation: {type_name(annotation)})"
            )
        super().__init__(msg)


class CircularDependencyError(ResolutionError):
    def __init__(self, path: Sequence[tuple[Any, str]]) -> None:
        self.path = tuple(path)
        chain = " -> ".join(_format_key(key) for key in self.path)
        super().__init__(f"Circular dependency detected: {chain}")


class ResolutionFailedError(ResolutionError):
    """Raised by ``Container.resolve``; the underlying error is chained as ``__cause__``."""

    def __init__(self, requested_type: Any, name: str, cause: BaseException) -> None:
        self.requested_type = requested_type
        self.name = name
        msg = f"Resolution of {_format_key((requested_type, name))} failed: {cause}"
        super().__init__(msg)


class AggregateDisposalError(RuntimeError):
    """Two or more disposables failed while a container was being disposed."""

    def __init__(self, exceptions: Iterable[BaseException]) -> None:
        self.exceptions = tuple(exceptions)
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.exceptions)
        super().__init__(f"{len(self.exceptions)} errors occurred during disposal: {details}")


def _format_key(key: tuple[Any, str]) -> str:
    tp, name = key
    return f"{type_name(tp)}[{name!r}]" if name else type_name(tp)
