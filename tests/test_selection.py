from abc import ABC, abstractmethod
from typing import Protocol

import pytest

from tierbind import (
    AmbiguousConstructorError,
    Container,
    NoAccessibleConstructorError,
    ResolutionFailedError,
    UnresolvedDependencyError,
    constructor,
    injection_constructor,
)


class Clock: ...


class Disk: ...


class Network: ...


class Cache(Protocol):
    def get(self, key: str) -> bytes: ...


class Queue(Protocol):
    def put(self, item: bytes) -> None: ...


class MemoryCache:
    def get(self, key: str) -> bytes:
        return b""


class MemoryQueue:
    def put(self, item: bytes) -> None:
        pass


def selected_name(container, cls):
    select = container.constructor_selection_factories.build_pipeline()
    return select(container, cls).name


def test_sole_constructor_is_selected_even_if_unresolvable():
    c = Container()

    class Worker:
        def __init__(self, cache: Cache):
            self.cache = cache

    assert selected_name(c, Worker) == "__init__"

    with pytest.raises(ResolutionFailedError) as ctx:
        c.resolve(Worker)
    assert isinstance(ctx.value.__cause__, UnresolvedDependencyError)


def test_longest_constructor_wins_when_it_covers_the_others():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock, disk: Disk, network: Network):
            self.made_by = "__init__"

        @classmethod
        @constructor
        def offline(cls, clock: Clock, disk: Disk):
            obj = cls.__new__(cls)
            obj.made_by = "offline"
            return obj

    assert c.resolve(Worker).made_by == "__init__"


def test_longer_alternate_constructor_wins_over_init():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock):
            self.made_by = "__init__"

        @classmethod
        @constructor
        def full(cls, clock: Clock, disk: Disk):
            obj = cls.__new__(cls)
            obj.made_by = "full"
            return obj

    assert selected_name(c, Worker) == "full"
    assert c.resolve(Worker).made_by == "full"


def test_unresolvable_constructor_is_skipped():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock, cache: Cache):
            self.made_by = "__init__"

        @classmethod
        @constructor
        def local(cls, clock: Clock):
            obj = cls.__new__(cls)
            obj.made_by = "local"
            return obj

    assert c.resolve(Worker).made_by == "local"

    c.register(Cache, MemoryCache)
    assert selected_name(c, Worker) == "__init__"


def test_defaults_count_as_resolvable():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock, retries: int = 3):
            self.retries = retries

        @classmethod
        @constructor
        def simple(cls, clock: Clock):
            return cls(clock)

    assert selected_name(c, Worker) == "__init__"
    assert c.resolve(Worker).retries == 3


def test_disjoint_constructors_of_equal_length_are_ambiguous():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock, disk: Disk): ...

        @classmethod
        @constructor
        def networked(cls, clock: Clock, network: Network): ...

    with pytest.raises(ResolutionFailedError) as ctx:
        c.resolve(Worker)
    assert isinstance(ctx.value.__cause__, AmbiguousConstructorError)
    assert ctx.value.__cause__.target is Worker


def test_interface_only_constructor_wins_tie():
    c = Container()
    c.register(Cache, MemoryCache)
    c.register(Queue, MemoryQueue)

    class Worker:
        def __init__(self, clock: Clock, disk: Disk):
            self.made_by = "__init__"

        @classmethod
        @constructor
        def pluggable(cls, cache: Cache, queue: Queue):
            obj = cls.__new__(cls)
            obj.made_by = "pluggable"
            return obj

    assert selected_name(c, Worker) == "pluggable"
    assert c.resolve(Worker).made_by == "pluggable"


def test_nothing_resolvable_raises_no_accessible_constructor():
    c = Container()

    class Worker:
        def __init__(self, cache: Cache): ...

        @classmethod
        @constructor
        def queued(cls, queue: Queue): ...

    with pytest.raises(ResolutionFailedError) as ctx:
        c.resolve(Worker)
    assert isinstance(ctx.value.__cause__, NoAccessibleConstructorError)


def test_marked_constructor_is_always_selected():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock, disk: Disk, network: Network):
            self.made_by = "__init__"

        @classmethod
        @injection_constructor
        def minimal(cls):
            obj = cls.__new__(cls)
            obj.made_by = "minimal"
            return obj

    assert c.resolve(Worker).made_by == "minimal"


def test_marked_init_is_selected_over_longer_alternate():
    c = Container()

    class Worker:
        @injection_constructor
        def __init__(self, clock: Clock):
            self.made_by = "__init__"

        @classmethod
        @constructor
        def full(cls, clock: Clock, disk: Disk): ...

    assert c.resolve(Worker).made_by == "__init__"


def test_unmarked_classmethods_are_not_constructors():
    c = Container()

    class Worker:
        def __init__(self, clock: Clock):
            self.made_by = "__init__"

        @classmethod
        def from_config(cls, clock: Clock, disk: Disk): ...

    assert c.resolve(Worker).made_by == "__init__"


def test_abstract_class_has_no_accessible_constructor():
    c = Container()

    class Store(ABC):
        @abstractmethod
        def load(self) -> bytes: ...

    with pytest.raises(ResolutionFailedError) as ctx:
        c.resolve(Store)
    assert isinstance(ctx.value.__cause__, UnresolvedDependencyError)

    c.register(Store)
    with pytest.raises(ResolutionFailedError) as ctx:
        c.resolve(Store)
    assert isinstance(ctx.value.__cause__, NoAccessibleConstructorError)
