import unittest

from tierbind import Container, RegisterStage, SelectMemberStage, StagedFactoryChain


def tracing(label):
    def factory(next_pipeline):
        def pipeline(trace):
            trace.append(label)
            if next_pipeline is not None:
                next_pipeline(trace)

        return pipeline

    factory.__name__ = label
    return factory


class DisposableAspect:
    def __init__(self, label):
        self.factory = tracing(label)
        self.disposed = 0

    def __call__(self, next_pipeline):
        return self.factory(next_pipeline)

    def dispose(self):
        self.disposed += 1


def run(chain):
    trace = []
    chain.build_pipeline()(trace)
    return trace


class TestStagedFactoryChain(unittest.TestCase):
    def test_pipeline_is_ordered_by_stage_not_insertion(self):
        chain = StagedFactoryChain()
        chain.add(tracing("creation"), RegisterStage.CREATION)
        chain.add(tracing("setup"), RegisterStage.SETUP)
        chain.add(tracing("lifetime"), RegisterStage.LIFETIME)

        assert run(chain) == ["setup", "lifetime", "creation"]

    def test_same_stage_keeps_insertion_order(self):
        chain = StagedFactoryChain(
            entries=[
                (tracing("first"), SelectMemberStage.ATTRIBUTE),
                (tracing("second"), SelectMemberStage.ATTRIBUTE),
            ]
        )

        assert run(chain) == ["first", "second"]

    def test_empty_chain_has_no_pipeline(self):
        assert StagedFactoryChain().build_pipeline() is None

    def test_pipeline_is_cached_until_changed(self):
        chain = StagedFactoryChain(entries=[(tracing("a"), RegisterStage.SETUP)])

        built = chain.build_pipeline()
        assert chain.build_pipeline() is built

        chain.add(tracing("b"), RegisterStage.CREATION)
        assert chain.build_pipeline() is not built
        assert run(chain) == ["a", "b"]

    def test_remove_drops_factory(self):
        b = tracing("b")
        chain = StagedFactoryChain(entries=[(tracing("a"), RegisterStage.SETUP), (b, RegisterStage.CREATION)])
        run(chain)

        assert chain.remove(b)
        assert not chain.remove(b)
        assert run(chain) == ["a"]
        assert len(chain) == 1

    def test_copy_shares_pipeline_until_mutated(self):
        parent = StagedFactoryChain(entries=[(tracing("a"), RegisterStage.SETUP)])
        built = parent.build_pipeline()

        child = StagedFactoryChain(parent)
        assert child.build_pipeline() is built

        child.add(tracing("b"), RegisterStage.CREATION)
        assert run(child) == ["a", "b"]
        assert run(parent) == ["a"]
        assert parent.build_pipeline() is built

    def test_copy_is_a_snapshot(self):
        parent = StagedFactoryChain(entries=[(tracing("a"), RegisterStage.SETUP)])
        child = StagedFactoryChain(parent)

        parent.add(tracing("late"), RegisterStage.CREATION)

        assert run(child) == ["a"]
        assert len(child) == 1

    def test_dispose_keeps_the_pipeline(self):
        chain = StagedFactoryChain(entries=[(tracing("a"), RegisterStage.SETUP)])
        built = chain.build_pipeline()

        chain.dispose()

        assert chain.build_pipeline() is built
        assert run(chain) == ["a"]

    def test_dispose_disposes_only_own_disposable_factories(self):
        inherited = DisposableAspect("inherited")
        parent = StagedFactoryChain(entries=[(inherited, RegisterStage.SETUP)])
        child = StagedFactoryChain(parent)
        own = DisposableAspect("own")
        child.add(own, RegisterStage.CREATION)

        child.dispose()
        child.dispose()

        assert own.disposed == 1
        assert inherited.disposed == 0
        assert run(child) == ["inherited", "own"]

    def test_repr_lists_stages(self):
        chain = StagedFactoryChain(entries=[(tracing("a"), RegisterStage.LIFETIME)])

        assert repr(chain) == "StagedFactoryChain([a@LIFETIME])"


def tagging_aspect(next_factory):
    def register(container, registration):
        method = next_factory(container, registration)

        def resolve(context):
            instance = method(context)
            instance.tagged_by = container.id
            return instance

        return resolve

    return register


class TestContainerChains(unittest.TestCase):
    parent: Container
    child: Container

    def setUp(self):
        self.parent = Container()
        self.child = self.parent.create_child_container()

    def test_child_shares_parent_pipelines(self):
        assert (
            self.child.explicit_registration_factories.build_pipeline()
            is self.parent.explicit_registration_factories.build_pipeline()
        )
        assert (
            self.child.constructor_selection_factories.build_pipeline()
            is self.parent.constructor_selection_factories.build_pipeline()
        )

    def test_aspect_added_to_child_affects_child_registrations_only(self):
        class Widget: ...

        self.child.explicit_registration_factories.add(tagging_aspect, RegisterStage.SETUP)
        self.child.register(Widget, name="child")
        self.parent.register(Widget, name="parent")

        assert self.child.resolve(Widget, "child").tagged_by == self.child.id
        assert not hasattr(self.parent.resolve(Widget, "parent"), "tagged_by")
        assert not hasattr(self.child.resolve(Widget, "parent"), "tagged_by")

    def test_custom_member_selection_stage_runs_first(self):
        class Widget:
            def __init__(self):
                self.calls = []

            def setup(self):
                self.calls.append("setup")

        def select_setup_methods(next_selector):
            def select(container, cls):
                members = [m for m in container.introspector.list_members(cls) if m.name == "setup"]
                return members or next_selector(container, cls)

            return select

        self.child.member_selection_factories.add(select_setup_methods, SelectMemberStage.SETUP)

        assert self.child.resolve(Widget).calls == ["setup"]
        assert self.parent.resolve(Widget).calls == []
