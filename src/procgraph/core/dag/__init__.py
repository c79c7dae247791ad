# src/procgraph/core/dag/__init__.py
"""Process graph package: nodes and graphs.

Public API:
- ProcessGraph: parser, validator and executor of a process graph
- ProcessGraphNode: one process invocation inside a graph
"""

from procgraph.core.dag.graph import PROCESS_KEYS, ProcessGraph
from procgraph.core.dag.node import ProcessGraphNode

__all__ = [
    "PROCESS_KEYS",
    "ProcessGraph",
    "ProcessGraphNode",
]
