from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from ._registration import PolicySet


class RegistrationStore:
    """Policy sets of one container, keyed by registered type then by name."""

    def __init__(self) -> None:
        self._entries: dict[Any, dict[str, PolicySet]] = {}
        self._lock = threading.RLock()

    def get(self, registered_type: Any, name: str) -> PolicySet | None:
        names = self._entries.get(registered_type)
        if names is None:
            return None
        return names.get(name)

    def set(self, registered_type: Any, name: str, policy: PolicySet) -> None:
        with self._lock:
            self._entries.setdefault(registered_type, {})[name] = policy

    def get_or_add(self, registered_type: Any, name: str, create: Callable[[], PolicySet]) -> PolicySet:
        with self._lock:
            policy = self.get(registered_type, name)
            if policy is None:
                policy = create()
                self.set(registered_type, name, policy)
            return policy

    def named(self, registered_type: Any) -> list[PolicySet]:
        names = self._entries.get(registered_type)
        if not names:
            return []
        return [policy for name, policy in list(names.items()) if name]

    def __iter__(self) -> Iterator[PolicySet]:
        with self._lock:
            policies = [policy for names in self._entries.values() for policy in names.values()]
        return iter(policies)
