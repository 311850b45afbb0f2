"""Unit tests for DependencyGraph.

Tests cover:
- Self-dependency and missing task rejection
- Direct and transitive cycle detection
- Idempotent upsert
- Edge removal and 404 semantics
- Adjacency queries and blocked state
"""

import asyncio

import pytest
from auctioneer.domain.models import TaskStatus
from auctioneer.infrastructure.exceptions import (
    CircularDependencyError,
    DependencyNotFoundError,
    SelfDependencyError,
    TaskNotFoundError,
)
from auctioneer.services.dependency_graph import DependencyGraph, find_path


@pytest.fixture
def graph(memory_db):
    return DependencyGraph(memory_db)


class TestFindPath:
    """Test the pure reachability search."""

    def test_direct_edge(self):
        assert find_path({"a": {"b"}}, "a", "b") == ["a", "b"]

    def test_transitive_path(self):
        graph = {"a": {"b"}, "b": {"c"}, "c": {"d"}}
        assert find_path(graph, "a", "d") == ["a", "b", "c", "d"]

    def test_unreachable(self):
        graph = {"a": {"b"}, "c": {"a"}}
        assert find_path(graph, "a", "c") is None

    def test_start_equals_goal(self):
        assert find_path({}, "a", "a") == ["a"]

    def test_handles_existing_cycles_without_looping(self):
        graph = {"a": {"b"}, "b": {"a"}}
        assert find_path(graph, "a", "z") is None

    def test_returns_shortest_path(self):
        graph = {"a": {"b", "x"}, "b": {"c"}, "c": {"d"}, "x": {"d"}}
        assert find_path(graph, "a", "d") == ["a", "x", "d"]


@pytest.mark.asyncio
class TestAddEdge:
    """Test edge insertion and invariants."""

    async def test_add_edge(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")

        dep = await graph.add_edge(a.id, b.id)

        assert dep.task_id == a.id
        assert dep.blocked_by_id == b.id

    async def test_self_dependency_rejected(self, graph, task_factory):
        a = await task_factory("A")

        with pytest.raises(SelfDependencyError) as exc_info:
            await graph.add_edge(a.id, a.id)

        assert exc_info.value.status_code == 400

    async def test_self_dependency_rejected_even_for_unknown_task(self, graph):
        with pytest.raises(SelfDependencyError):
            await graph.add_edge("ghost", "ghost")

    async def test_missing_blocked_task(self, graph, task_factory):
        b = await task_factory("B")
        with pytest.raises(TaskNotFoundError):
            await graph.add_edge("missing", b.id)

    async def test_missing_blocker_task(self, graph, task_factory):
        a = await task_factory("A")
        with pytest.raises(TaskNotFoundError):
            await graph.add_edge(a.id, "missing")

    async def test_direct_cycle_rejected(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")
        await graph.add_edge(a.id, b.id)

        with pytest.raises(CircularDependencyError) as exc_info:
            await graph.add_edge(b.id, a.id)

        assert exc_info.value.status_code == 409
        assert exc_info.value.cycle == [b.id, a.id, b.id]

    async def test_transitive_cycle_rejected(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")
        c = await task_factory("C")
        await graph.add_edge(a.id, b.id)
        await graph.add_edge(b.id, c.id)

        with pytest.raises(CircularDependencyError) as exc_info:
            await graph.add_edge(c.id, a.id)

        assert exc_info.value.cycle == [c.id, a.id, b.id, c.id]
        assert "Circular dependency detected" in exc_info.value.message

    async def test_rejected_edge_is_not_written(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")
        await graph.add_edge(a.id, b.id)

        with pytest.raises(CircularDependencyError):
            await graph.add_edge(b.id, a.id)

        view = await graph.query(b.id)
        assert view.blocked_by == []

    async def test_diamond_is_not_a_cycle(self, graph, task_factory):
        a, b, c, d = [await task_factory(t) for t in "ABCD"]
        await graph.add_edge(a.id, b.id)
        await graph.add_edge(a.id, c.id)
        await graph.add_edge(b.id, d.id)
        await graph.add_edge(c.id, d.id)

        view = await graph.query(d.id)
        assert {t.id for t in view.blocking} == {b.id, c.id}

    async def test_add_edge_is_idempotent(self, graph, task_factory, memory_db):
        a = await task_factory("A")
        b = await task_factory("B")

        first = await graph.add_edge(a.id, b.id)
        second = await graph.add_edge(a.id, b.id)

        assert first == second
        view = await graph.query(a.id)
        assert [t.id for t in view.blocked_by] == [b.id]

    async def test_concurrent_inserts_cannot_close_a_cycle(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")

        results = await asyncio.gather(
            graph.add_edge(a.id, b.id),
            graph.add_edge(b.id, a.id),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], CircularDependencyError)


@pytest.mark.asyncio
class TestRemoveAndQuery:
    """Test edge removal and adjacency queries."""

    async def test_remove_edge(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")
        await graph.add_edge(a.id, b.id)

        await graph.remove_edge(a.id, b.id)

        assert (await graph.query(a.id)).blocked_by == []
        # Removing the edge re-allows the reverse direction
        await graph.add_edge(b.id, a.id)

    async def test_remove_missing_edge(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")

        with pytest.raises(DependencyNotFoundError) as exc_info:
            await graph.remove_edge(a.id, b.id)

        assert exc_info.value.status_code == 404

    async def test_query_both_directions(self, graph, task_factory):
        a = await task_factory("A")
        b = await task_factory("B")
        c = await task_factory("C")
        await graph.add_edge(b.id, a.id)
        await graph.add_edge(c.id, b.id)

        view = await graph.query(b.id)

        assert [t.title for t in view.blocked_by] == ["A"]
        assert [t.title for t in view.blocking] == ["C"]
        assert view.blocked_by[0].category_slug == "internal-dashboard"
        assert view.blocked_by[0].category_name == "Internal Dashboard"

    async def test_query_missing_task(self, graph):
        with pytest.raises(TaskNotFoundError):
            await graph.query("missing")

    async def test_is_blocked_until_blocker_done(self, graph, task_factory, memory_db):
        a = await task_factory("A")
        b = await task_factory("B")
        await graph.add_edge(a.id, b.id)

        assert await graph.is_blocked(a.id) is True
        assert await graph.is_blocked(b.id) is False

        await memory_db.update_task_status(b.id, TaskStatus.DONE)
        assert await graph.is_blocked(a.id) is False

    async def test_deleting_task_cascades_edges(self, graph, task_factory, memory_db):
        a = await task_factory("A")
        b = await task_factory("B")
        await graph.add_edge(a.id, b.id)

        await memory_db.delete_task(b.id)

        assert (await graph.query(a.id)).blocked_by == []
