import unittest
from abc import ABC, abstractmethod
from typing import Generic, Protocol, TypeVar, runtime_checkable

import pytest

from tierbind import Container


T = TypeVar("T")


class TestProtocolNonConformance(unittest.TestCase):
    cont: Container

    @runtime_checkable
    class RepoProtocol(Protocol):
        def get(self) -> int: ...

    class BadRepo:
        # Missing `get`, does not conform to RepoProtocol
        def other(self) -> str:
            return "nope"

    def setUp(self):
        self.cont = Container()

    def test_factory_registration_is_not_validated(self):
        self.cont.register(self.RepoProtocol, factory=lambda _: self.BadRepo())

        assert isinstance(self.cont.resolve(self.RepoProtocol), self.BadRepo)

    def test_register_instance_raises_type_error_for_non_conforming_instance(self):
        with pytest.raises(TypeError):
            self.cont.register_instance(self.RepoProtocol, self.BadRepo())

    def test_register_raises_type_error_for_non_conforming_class(self):
        with pytest.raises(TypeError, match="missing members: get"):
            self.cont.register(self.RepoProtocol, self.BadRepo)

    def test_failed_validation_leaves_container_untouched(self):
        with pytest.raises(TypeError):
            self.cont.register(self.RepoProtocol, self.BadRepo)

        assert not self.cont.is_registered(self.RepoProtocol)


class TestProtocolConformance(unittest.TestCase):
    cont: Container

    @runtime_checkable
    class RepoProtocol(Protocol):
        def get(self) -> int: ...

    class GoodRepo:
        def get(self) -> int:
            return 42

    def setUp(self):
        self.cont = Container()

    def test_register_instance_succeeds_for_conforming_instance(self):
        repo = self.GoodRepo()

        self.cont.register_instance(self.RepoProtocol, repo)
        resolved = self.cont.resolve(self.RepoProtocol)

        assert resolved is repo
        assert resolved.get() == 42

    def test_register_succeeds_for_conforming_class(self):
        self.cont.register(self.RepoProtocol, self.GoodRepo)

        repo = self.cont.resolve(self.RepoProtocol)

        assert isinstance(repo, self.GoodRepo)
        assert repo.get() == 42

    def test_register_succeeds_for_explicit_protocol_subclass(self):
        class Derived(self.RepoProtocol):
            def get(self) -> int:
                return 7

        self.cont.register(self.RepoProtocol, Derived)

        assert self.cont.resolve(self.RepoProtocol).get() == 7


class TestProtocolSignatureNonConformance(unittest.TestCase):
    cont: Container

    @runtime_checkable
    class RepoProtocol(Protocol):
        def get(self, key: str) -> int: ...

    def setUp(self):
        self.cont = Container()

    def test_register_raises_type_error_for_method_with_wrong_arity(self):
        class GetNoArgs:
            # Wrong arity: missing an argument
            def get(self) -> int:
                return 1

        with pytest.raises(TypeError, match="fewer required positional"):
            self.cont.register(self.RepoProtocol, GetNoArgs)

    def test_register_instance_raises_type_error_for_non_callable_attribute(self):
        class GetIsNotCallable:
            # Attribute exists but is not callable
            get = 123

        with pytest.raises(TypeError, match="not callable"):
            self.cont.register_instance(self.RepoProtocol, GetIsNotCallable())

    def test_register_raises_type_error_for_wrong_return_type(self):
        class GetReturnsWrongType:
            # Return type mismatch
            def get(self, key: str) -> str:
                return "not an int"

        with pytest.raises(TypeError, match="return type"):
            self.cont.register(self.RepoProtocol, GetReturnsWrongType)

    def test_register_accepts_subclass_return_type(self):
        class Flag(int): ...

        class GetReturnsFlag:
            def get(self, key: str) -> Flag:
                return Flag(1)

        self.cont.register(self.RepoProtocol, GetReturnsFlag)
        assert self.cont.is_registered(self.RepoProtocol)


class TestRegisterImplConstraints(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()

    def test_register_impl_requires_impl_to_be_subclass_of_concrete_type(self):
        class Base: ...

        class NotDerived: ...

        with pytest.raises(TypeError):
            self.cont.register(Base, impl=NotDerived)  # Not a subclass of Base

    def test_register_impl_requires_subclass_of_abstract_base(self):
        class Store(ABC):
            @abstractmethod
            def load(self) -> bytes: ...

        class FileStore(Store):
            def load(self) -> bytes:
                return b""

        class Unrelated:
            def load(self) -> bytes:
                return b""

        self.cont.register(Store, FileStore)
        with pytest.raises(TypeError):
            self.cont.register(Store, Unrelated)

    def test_register_any_impl_with_empty_protocol_succeeds(self):
        class EmptyProto(Protocol): ...

        class AnyClass: ...

        self.cont.register(EmptyProto, impl=AnyClass)

        resolved = self.cont.resolve(EmptyProto)
        assert isinstance(resolved, AnyClass)

    def test_register_generic_definitions_compares_origins(self):
        class Repository(Generic[T]): ...

        class SqlRepository(Repository[T]): ...

        class Other(Generic[T]): ...

        self.cont.register(Repository, SqlRepository)
        with pytest.raises(TypeError):
            self.cont.register(Repository, Other)
