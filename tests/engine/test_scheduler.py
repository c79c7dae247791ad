"""Tests for dependency-ordered graph traversal."""

import asyncio

import pytest

from procgraph.contracts import ErrorCode, ProcessGraphError
from procgraph.core.dag import ProcessGraphNode
from procgraph.engine import GraphTraversal


def _diamond() -> dict[str, ProcessGraphNode]:
    """a -> (b, c) -> d"""
    nodes = {node_id: ProcessGraphNode({"process_id": "absolute"}, node_id) for node_id in "abcd"}
    nodes["b"].add_previous_node(nodes["a"])
    nodes["c"].add_previous_node(nodes["a"])
    nodes["d"].add_previous_node(nodes["c"])
    nodes["d"].add_previous_node(nodes["b"])
    return nodes


class TestGraphTraversal:
    """Tests for GraphTraversal.run()."""

    def test_max_concurrency_must_be_positive(self) -> None:
        async def action(node: ProcessGraphNode) -> None:
            pass

        with pytest.raises(ValueError, match="max_concurrency must be >= 1, got 0"):
            GraphTraversal(action, max_concurrency=0)

    @pytest.mark.asyncio
    async def test_visits_each_node_once_in_dependency_order(self) -> None:
        nodes = _diamond()
        visited: list[str] = []

        async def action(node: ProcessGraphNode) -> None:
            visited.append(node.id)

        traversal = GraphTraversal(action)
        await traversal.run([nodes["a"]])

        assert visited == ["a", "b", "c", "d"]
        assert traversal.fired == frozenset("abcd")

    @pytest.mark.asyncio
    async def test_join_waits_for_slow_predecessor(self) -> None:
        nodes = _diamond()
        visited: list[str] = []

        async def action(node: ProcessGraphNode) -> None:
            if node.id == "b":
                await asyncio.sleep(0.01)
            visited.append(node.id)

        await GraphTraversal(action).run([nodes["a"]])

        assert visited == ["a", "c", "b", "d"]

    @pytest.mark.asyncio
    async def test_rerun_after_reset(self) -> None:
        nodes = _diamond()
        visited: list[str] = []

        async def action(node: ProcessGraphNode) -> None:
            visited.append(node.id)

        traversal = GraphTraversal(action)
        await traversal.run([nodes["a"]])
        for node in nodes.values():
            node.reset()
        await traversal.run([nodes["a"]])

        assert visited == ["a", "b", "c", "d"] * 2

    @pytest.mark.asyncio
    async def test_error_is_raised_unwrapped(self) -> None:
        nodes = _diamond()
        visited: list[str] = []

        async def action(node: ProcessGraphNode) -> None:
            if node.id == "b":
                raise ProcessGraphError(ErrorCode.PROCESS_UNSUPPORTED, {"process": "absolute"})
            visited.append(node.id)

        with pytest.raises(ProcessGraphError, match="Process 'absolute' is not supported."):
            await GraphTraversal(action).run([nodes["a"]])

        assert "d" not in visited

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self) -> None:
        start_nodes = [ProcessGraphNode({"process_id": "absolute"}, f"n{index}") for index in range(5)]

        async def measure(max_concurrency: int | None) -> int:
            active = 0
            peak = 0

            async def action(node: ProcessGraphNode) -> None:
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.001)
                active -= 1

            await GraphTraversal(action, max_concurrency=max_concurrency).run(start_nodes)
            return peak

        assert await measure(1) == 1
        assert await measure(2) == 2
        assert await measure(None) == 5

    @pytest.mark.asyncio
    async def test_no_start_nodes(self) -> None:
        async def action(node: ProcessGraphNode) -> None:
            raise AssertionError("must not run")

        traversal = GraphTraversal(action)
        await traversal.run([])

        assert traversal.fired == frozenset()
