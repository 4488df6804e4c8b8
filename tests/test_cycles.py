"""
Tests for the cycle guard
"""

import random

import networkx as nx
import pytest

from coursegraph.errors import ValidationError
from coursegraph.graph.schema import Course, DependencyType
from coursegraph.query.cycles import CycleGuard
from coursegraph.query.traversal import GraphTraversal


def course(course_id, **fields):
    return Course(id=course_id, title=f"Course {course_id}", **fields)


async def seed(store, count):
    for course_id in range(1, count + 1):
        await store.upsert_course(course(course_id))


class TestCycleGuard:
    """Tests for CycleGuard"""

    async def test_self_loop(self, store):
        await seed(store, 1)
        guard = CycleGuard(GraphTraversal(store))

        assert await guard.would_create_cycle(1, 1)

    async def test_reverse_edge_closes_cycle(self, store):
        await seed(store, 2)
        await store.insert_dependency(1, 2, DependencyType.BLOCKS)
        guard = CycleGuard(GraphTraversal(store))

        assert await guard.would_create_cycle(2, 1)
        assert not await guard.would_create_cycle(1, 2)

    async def test_transitive_cycle(self, store):
        await seed(store, 3)
        await store.insert_dependency(1, 2, DependencyType.BLOCKS)
        await store.insert_dependency(2, 3, DependencyType.INFORMS)
        guard = CycleGuard(GraphTraversal(store))

        assert await guard.would_create_cycle(3, 1)

    async def test_parallel_path_is_not_a_cycle(self, store):
        await seed(store, 3)
        await store.insert_dependency(1, 2, DependencyType.BLOCKS)
        await store.insert_dependency(2, 3, DependencyType.BLOCKS)
        guard = CycleGuard(GraphTraversal(store))

        # 1 already reaches 3 through 2; a shortcut edge adds no cycle
        assert not await guard.would_create_cycle(1, 3)

    async def test_cycle_longer_than_max_depth(self, store):
        await seed(store, 20)
        for course_id in range(1, 20):
            await store.insert_dependency(course_id, course_id + 1, DependencyType.BLOCKS)
        guard = CycleGuard(GraphTraversal(store, max_depth=2))

        assert await guard.would_create_cycle(20, 1)

    async def test_cycle_through_cancelled_course(self, store):
        await store.upsert_course(course(1))
        await store.upsert_course(course(2, status="cancelled"))
        await store.upsert_course(course(3))
        await store.insert_dependency(1, 2, DependencyType.BLOCKS)
        await store.insert_dependency(2, 3, DependencyType.BLOCKS)
        guard = CycleGuard(GraphTraversal(store))

        assert await guard.would_create_cycle(3, 1)


class TestCycleFreeGraph:
    """The graph stays acyclic whatever sequence of edges is requested"""

    async def test_edge_then_reverse_edge(self, manager, store):
        await seed(store, 2)

        await manager.create_dependency(1, 2)
        with pytest.raises(ValidationError, match="circular"):
            await manager.create_dependency(2, 1)

    @pytest.mark.parametrize("seed_value", [7, 42, 2024])
    async def test_random_edge_sequence(self, manager, store, seed_value):
        rng = random.Random(seed_value)
        await seed(store, 12)
        oracle = nx.DiGraph()
        oracle.add_nodes_from(range(1, 13))

        for _ in range(120):
            course_id, depends_on = rng.randint(1, 12), rng.randint(1, 12)
            expect_rejection = (
                course_id == depends_on
                or oracle.has_edge(course_id, depends_on)
                or nx.has_path(oracle, depends_on, course_id)
            )

            try:
                await manager.create_dependency(course_id, depends_on)
                accepted = True
            except ValidationError:
                accepted = False

            assert accepted != expect_rejection, f"edge {course_id} -> {depends_on}"
            if accepted:
                oracle.add_edge(course_id, depends_on)

        stored = nx.DiGraph()
        stored.add_edges_from((d.course_id, d.depends_on_course_id) for d in await store.list_dependencies())
        assert nx.is_directed_acyclic_graph(stored)
        assert set(stored.edges) == set(oracle.edges)
