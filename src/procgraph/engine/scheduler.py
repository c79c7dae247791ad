# src/procgraph/engine/scheduler.py
"""Dependency-ordered asyncio traversal of process graph nodes.

Drives both graph validation and graph execution:
- A node is dispatched exactly once per run, when its last predecessor
  reports completion via ``solve_dependency``
- Successors of a completed node are offered concurrently (fan-out)
- An optional semaphore bounds how many node actions run at the same time
- The first error raised by an action cancels the remaining tasks and is
  re-raised as itself (not wrapped in an ExceptionGroup)

Node bookkeeping (``received``) must be cleared with ``reset()`` between
runs over the same nodes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

from procgraph.core.logging import get_logger

if TYPE_CHECKING:
    from procgraph.contracts.types import NodeID
    from procgraph.core.dag.node import ProcessGraphNode

logger = get_logger(__name__)

type NodeAction = Callable[["ProcessGraphNode"], Awaitable[None]]


class GraphTraversal:
    """Runs an async action on every node reachable from the start nodes.

    Usage:
        traversal = GraphTraversal(validate_node, max_concurrency=4)
        await traversal.run(graph.start_nodes)

    Args:
        action: Coroutine function invoked once per node
        max_concurrency: Upper bound of concurrently running actions (None = unbounded)
    """

    def __init__(self, action: NodeAction, *, max_concurrency: int | None = None) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._action = action
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = None
        self._fired: set[NodeID] = set()

    @property
    def fired(self) -> frozenset[NodeID]:
        """Ids of the nodes dispatched by the last run."""
        return frozenset(self._fired)

    async def run(self, start_nodes: Iterable[ProcessGraphNode]) -> None:
        """Traverse the graph from the given start nodes.

        Raises:
            Exception: The first exception raised by the action
        """
        self._fired = set()
        self._semaphore = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency is not None else None
        try:
            async with asyncio.TaskGroup() as group:
                for node in start_nodes:
                    self._offer(group, node, None)
        except ExceptionGroup as eg:
            # Surface the failing action's own exception
            raise _first_leaf(eg) from None

    def _offer(self, group: asyncio.TaskGroup, node: ProcessGraphNode, completed: ProcessGraphNode | None) -> None:
        if not node.solve_dependency(completed):
            return
        if node.id in self._fired:
            return
        self._fired.add(node.id)
        group.create_task(self._visit(group, node), name=f"node:{node.id}")

    async def _visit(self, group: asyncio.TaskGroup, node: ProcessGraphNode) -> None:
        logger.debug("node_dispatched", node_id=node.id, process_id=node.process_id)
        if self._semaphore is None:
            await self._action(node)
        else:
            async with self._semaphore:
                await self._action(node)
        for successor in node.next_nodes:
            self._offer(group, successor, node)


def _first_leaf(group: ExceptionGroup[Exception]) -> Exception:
    first = group.exceptions[0]
    while isinstance(first, ExceptionGroup):
        first = first.exceptions[0]
    return first
