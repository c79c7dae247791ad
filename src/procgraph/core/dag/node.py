# src/procgraph/core/dag/node.py
"""ProcessGraphNode - one process invocation inside a process graph.

A node keeps two views of its arguments:

- ``arguments``: deep copy of the raw arguments. Never modified, so
  ``to_json()`` reproduces the reference-shaped input.
- parsed arguments: same keys, but callbacks are replaced by the child
  ProcessGraph instances the owning graph created for them during parsing.

Edges (previous/next nodes) are populated by the owning graph while parsing;
``received`` and ``computed_result`` are traversal bookkeeping that ``reset()``
clears before every run.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from procgraph.contracts.enums import ErrorCode, ReferenceKind
from procgraph.contracts.errors import ProcessGraphError
from procgraph.contracts.sentinels import UNDEFINED
from procgraph.contracts.types import NodeID, ProcessID
from procgraph.core.references import classify, get_refs, iter_elements

if TYPE_CHECKING:
    from procgraph.core.dag.graph import ProcessGraph


class ProcessGraphNode:
    """A node of a process graph.

    Args:
        node: Raw node description (``{"process_id", "arguments", ...}``)
        node_id: Key of the node in the ``process_graph`` mapping
        graph: Owning graph (None for detached nodes)

    Raises:
        ProcessGraphError: NodeIdInvalid, NodeInvalid or ProcessIdMissing
    """

    def __init__(self, node: Any, node_id: Any, graph: ProcessGraph | None = None) -> None:
        if not isinstance(node_id, str) or not node_id:
            raise ProcessGraphError(ErrorCode.NODE_ID_INVALID)
        if not isinstance(node, Mapping):
            raise ProcessGraphError(ErrorCode.NODE_INVALID, {"node_id": node_id})
        if not isinstance(node.get("process_id"), str):
            raise ProcessGraphError(ErrorCode.PROCESS_ID_MISSING, {"node_id": node_id})

        self.id = NodeID(node_id)
        self.graph = graph
        self.source: dict[str, Any] = copy.deepcopy(dict(node))
        self.process_id = ProcessID(node["process_id"])
        self.namespace: str | None = node.get("namespace") or None
        raw_arguments = node.get("arguments")
        self.arguments: dict[str, Any] = copy.deepcopy(dict(raw_arguments)) if isinstance(raw_arguments, Mapping) else {}
        self._parsed_arguments: dict[str, Any] = copy.deepcopy(self.arguments)
        description = node.get("description")
        self._description: str | None = description if isinstance(description, str) else None
        self.is_result_node: bool = node.get("result") is True

        self._previous: list[ProcessGraphNode] = []
        self._next: list[ProcessGraphNode] = []
        self.received: set[NodeID] = set()
        self.computed_result: Any = UNDEFINED

    def __repr__(self) -> str:
        return f"ProcessGraphNode(id={self.id!r}, process_id={self.process_id!r})"

    # === Serialization ===

    def to_json(self) -> dict[str, Any]:
        """Return the raw node description with reference-shaped arguments.

        Child graphs are not expanded: the output deep-equals the input node
        unless the description was changed afterwards.
        """
        data = copy.deepcopy(self.source)
        data["process_id"] = self.process_id
        if self.arguments or "arguments" in data:
            data["arguments"] = copy.deepcopy(self.arguments)
        if self._description is not None:
            data["description"] = self._description
        elif isinstance(data.get("description"), str):
            data["description"] = None
        return data

    # === Description ===

    @property
    def description(self) -> str | None:
        return self._description

    @description.setter
    def description(self, value: Any) -> None:
        self._description = value if isinstance(value, str) else None

    # === Graph membership ===

    def get_parent(self) -> ProcessGraphNode | None:
        """Return the node whose callback argument contains this node's graph."""
        if self.graph is None:
            return None
        return self.graph.parent_node

    # === Arguments ===

    def set_parsed_arguments(self, arguments: Mapping[str, Any]) -> None:
        """Store the runtime view of the arguments (called by the owning graph)."""
        self._parsed_arguments = dict(arguments)

    def get_argument_names(self) -> list[str]:
        return list(self.arguments)

    def has_argument(self, name: str) -> bool:
        return name in self._parsed_arguments

    def get_argument_type(self, name: str) -> ReferenceKind:
        """Classify the raw argument; absent arguments are UNDEFINED."""
        return classify(self.get_raw_argument(name))

    def get_raw_argument(self, name: str) -> Any:
        return self.arguments.get(name, UNDEFINED)

    def get_parsed_argument(self, name: str) -> Any:
        return self._parsed_arguments.get(name, UNDEFINED)

    def get_argument(self, name: str, default: Any = None) -> Any:
        """Return the evaluated runtime value of an argument.

        Args:
            name: Argument name
            default: Returned when the node has no such argument

        Returns:
            The argument with node results and parameters substituted.
            Callbacks are returned as child ProcessGraph instances.
        """
        if name not in self._parsed_arguments:
            return default
        return self.evaluate_argument(self._parsed_arguments[name])

    def get_argument_refs(self, name: str) -> list[Mapping[str, Any]]:
        """References used by one argument, ignoring callback bodies."""
        return get_refs(self.get_raw_argument(name))

    def get_refs(self) -> list[Mapping[str, Any]]:
        """References used by all arguments, ignoring callback bodies."""
        return get_refs(self.arguments)

    def evaluate_argument(self, value: Any) -> Any:
        """Resolve an argument value into its runtime value.

        Node result references yield the referenced node's result, parameter
        references go through the parameter chain of the owning graph,
        callbacks are returned unchanged, containers are rebuilt element-wise.

        Raises:
            ProcessGraphError: ProcessGraphParameterMissing if a parameter
                cannot be resolved and undefined references are not allowed
        """
        kind = classify(value)
        if kind == ReferenceKind.RESULT:
            if self.graph is None:
                raise ProcessGraphError(ErrorCode.REFERENCED_NODE_MISSING, {"node_id": value["from_node"]})
            referenced = self.graph.get_node(value["from_node"])
            if referenced is None:
                raise ProcessGraphError(ErrorCode.REFERENCED_NODE_MISSING, {"node_id": value["from_node"]})
            return referenced.result
        if kind == ReferenceKind.PARAMETER:
            return self.get_process_graph_parameter_value(value["from_parameter"])
        if kind == ReferenceKind.CALLBACK:
            return value
        if kind == ReferenceKind.ARRAY:
            return [self.evaluate_argument(element) for element in value]
        if kind == ReferenceKind.OBJECT:
            return {key: self.evaluate_argument(element) for key, element in iter_elements(value)}
        return value

    def get_process_graph_parameter_value(self, name: str) -> Any:
        """Resolve a parameter reference.

        Walks the owning graph and its ancestors. At each level the supplied
        execution arguments win over the declared default.

        Returns:
            The value, or UNDEFINED if nothing provides one and the owning graph
            tolerates undefined parameter references.

        Raises:
            ProcessGraphError: ProcessGraphParameterMissing
        """
        graph = self.graph
        while graph is not None:
            if graph.has_argument(name):
                return graph.get_argument(name)
            if graph.has_parameter_default(name):
                return graph.get_parameter_default(name)
            graph = graph.get_parent()

        if self.graph is not None and self.graph.settings.allow_undefined_parameter_refs:
            return UNDEFINED

        raise ProcessGraphError(
            ErrorCode.PROCESS_GRAPH_PARAMETER_MISSING,
            {
                "argument": name,
                "node_id": self.id,
                "process_id": self.process_id,
                "namespace": self.namespace or "n/a",
            },
        )

    # === Edges ===

    def add_previous_node(self, node: ProcessGraphNode) -> None:
        """Record that this node consumes the result of ``node`` (mirrored)."""
        if all(other.id != node.id for other in self._previous):
            self._previous.append(node)
            node.add_next_node(self)

    def add_next_node(self, node: ProcessGraphNode) -> None:
        """Record that ``node`` consumes the result of this node (mirrored)."""
        if all(other.id != node.id for other in self._next):
            self._next.append(node)
            node.add_previous_node(self)

    @property
    def previous_nodes(self) -> list[ProcessGraphNode]:
        """Predecessors, sorted by id."""
        return sorted(self._previous, key=lambda node: node.id)

    @property
    def next_nodes(self) -> list[ProcessGraphNode]:
        """Successors, sorted by id."""
        return sorted(self._next, key=lambda node: node.id)

    def is_start_node(self) -> bool:
        return not self._previous

    # === Traversal bookkeeping ===

    def solve_dependency(self, node: ProcessGraphNode | None) -> bool:
        """Record a completed predecessor and report whether all are complete.

        Args:
            node: The predecessor that just completed, or None for the
                bootstrap call on start nodes

        Returns:
            True if every predecessor has reported completion
        """
        if node is not None and any(other.id == node.id for other in self._previous):
            self.received.add(node.id)
        return len(self.received) == len(self._previous)

    def reset(self) -> None:
        """Clear the result and the received dependencies before a new run."""
        self.computed_result = UNDEFINED
        self.received = set()

    def set_result(self, result: Any) -> None:
        self.computed_result = result

    @property
    def result(self) -> Any:
        """Result of the last execution, UNDEFINED if the node has not run."""
        return self.computed_result
