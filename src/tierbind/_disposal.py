from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ._errors import AggregateDisposalError


if TYPE_CHECKING:
    from collections.abc import Iterator


logger = logging.getLogger(__name__)


@runtime_checkable
class Disposable(Protocol):
    def dispose(self) -> None: ...


class DisposalScope:
    """Tracks disposables owned by a container.

    Items are disposed in reverse order of addition. Every item is attempted even
    when an earlier one fails.
    """

    def __init__(self) -> None:
        self._items: list[Disposable] = []
        self._lock = threading.Lock()

    def add(self, item: Disposable) -> None:
        with self._lock:
            self._items.append(item)

    def remove(self, item: Disposable) -> bool:
        with self._lock:
            for index, candidate in enumerate(self._items):
                if candidate is item:
                    del self._items[index]
                    return True
        return False

    def dispose(self) -> None:
        raise_collected(self.dispose_collecting())

    def dispose_collecting(self) -> list[Exception]:
        with self._lock:
            items = self._items[::-1]
            self._items.clear()

        errors: list[Exception] = []
        for item in items:
            try:
                item.dispose()
            except Exception as exc:  # noqa: BLE001
                logger.debug("Disposing %r failed: %s", item, exc)
                errors.append(exc)
        return errors

    def __contains__(self, item: object) -> bool:
        return any(candidate is item for candidate in self._items)

    def __iter__(self) -> Iterator[Disposable]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


def raise_collected(errors: list[Exception]) -> None:
    if not errors:
        return
    if len(errors) == 1:
        raise errors[0]
    flattened: list[BaseException] = []
    for error in errors:
        if isinstance(error, AggregateDisposalError):
            flattened.extend(error.exceptions)
        else:
            flattened.append(error)
    raise AggregateDisposalError(flattened)
