from __future__ import annotations

import bisect
import threading
from enum import IntEnum
from typing import TYPE_CHECKING, Generic, TypeVar

from ._disposal import Disposable, raise_collected


if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator


P = TypeVar("P")
S = TypeVar("S", bound=IntEnum)


class RegisterStage(IntEnum):
    SETUP = 0
    LIFETIME = 1
    INJECTION = 2
    TYPE_MAPPING = 3
    CREATION = 4
    POST_CREATION = 5


class SelectMemberStage(IntEnum):
    SETUP = 0
    ATTRIBUTE = 1
    REFLECTION = 2
    POST = 3


class StagedFactoryChain(Generic[P, S]):
    """Stage-ordered list of aspect factories folded into a single pipeline.

    An aspect factory receives the pipeline composed from every later stage (or
    ``None`` for the innermost one) and returns a pipeline wrapping it, so the
    factory registered at the lowest stage becomes the outermost layer.

    Passing ``parent`` takes a snapshot of the parent's entries. The parent's
    already built pipeline is reused until this chain is changed.
    """

    def __init__(
        self,
        parent: StagedFactoryChain[P, S] | None = None,
        entries: Iterable[tuple[Callable[[P | None], P], S]] = (),
    ) -> None:
        self._lock = threading.Lock()
        self._owned: list[Callable[[P | None], P]] = []
        if parent is not None:
            self._entries = list(parent._entries)
            self._pipeline = parent._pipeline
        else:
            self._entries: list[tuple[Callable[[P | None], P], S]] = []
            self._pipeline: P | None = None

        for factory, stage in entries:
            self.add(factory, stage)

    def add(self, factory: Callable[[P | None], P], stage: S) -> None:
        with self._lock:
            # insort_right keeps insertion order among factories of the same stage
            bisect.insort_right(self._entries, (factory, stage), key=lambda entry: entry[1])
            self._owned.append(factory)
            self._pipeline = None

    def remove(self, factory: Callable[[P | None], P]) -> bool:
        with self._lock:
            for index, (candidate, _) in enumerate(self._entries):
                if candidate is factory:
                    del self._entries[index]
                    self._owned = [f for f in self._owned if f is not factory]
                    self._pipeline = None
                    return True
        return False

    def build_pipeline(self) -> P | None:
        pipeline = self._pipeline
        if pipeline is None:
            with self._lock:
                if self._pipeline is None:
                    self._pipeline = self._compose()
                pipeline = self._pipeline
        return pipeline

    def _compose(self) -> P | None:
        pipeline: P | None = None
        for factory, _ in reversed(self._entries):
            pipeline = factory(pipeline)
        return pipeline

    def dispose(self) -> None:
        """Dispose the aspect factories added to this chain that are disposable.

        Entries copied from the parent chain are left to it. The chain keeps
        working after disposal.
        """
        with self._lock:
            owned, self._owned = self._owned, []

        errors: list[Exception] = []
        for factory in reversed(owned):
            if not isinstance(factory, Disposable):
                continue
            try:
                factory.dispose()
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)
        raise_collected(errors)

    def __iter__(self) -> Iterator[tuple[Callable[[P | None], P], S]]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        stages = ", ".join(f"{getattr(f, '__name__', f)!s}@{stage.name}" for f, stage in self._entries)
        return f"{type(self).__name__}([{stages}])"
