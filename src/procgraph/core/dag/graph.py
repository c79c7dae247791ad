# src/procgraph/core/dag/graph.py
"""ProcessGraph - parser, validator and executor of a process graph.

Lifecycle:
    graph = ProcessGraph(process, registry)
    graph.parse()                  # nodes, edges, child graphs; raises on structural errors
    errors = await graph.validate()  # process contracts, per node in dependency order
    result_node = await graph.execute({"x": 1})

``parse()`` and ``validate()`` run once; later calls reuse the first outcome.
Callbacks (arguments holding a ``process_graph``) become child graphs during
parsing. A child graph knows the node it belongs to, so parameter references
inside a callback resolve through the enclosing graphs.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from typing import Any, Final

import networkx as nx

from procgraph.contracts.enums import ErrorCode, ReferenceKind
from procgraph.contracts.errors import ErrorList, ProcessGraphError, ValidationErrors
from procgraph.contracts.sentinels import UNDEFINED
from procgraph.contracts.types import NodeID, ProcessID
from procgraph.core.config import GraphSettings
from procgraph.core.dag.node import ProcessGraphNode
from procgraph.core.logging import get_logger
from procgraph.core.references import CallbackBody, classify, iter_elements
from procgraph.core.schemas import get_callback_parameters_for_process
from procgraph.engine.process import BaseProcess
from procgraph.engine.scheduler import GraphTraversal, NodeAction
from procgraph.engine.validator import JsonSchemaValidator

logger = get_logger(__name__)

# Keys that make an otherwise empty process a process description
PROCESS_KEYS: Final = frozenset(
    {
        "id",
        "summary",
        "description",
        "categories",
        "parameters",
        "returns",
        "deprecated",
        "experimental",
        "exceptions",
        "examples",
        "links",
        "process_graph",
    }
)


class ProcessGraph(CallbackBody):
    """Process graph parser, validator and executor.

    Args:
        process: Process (``{"process_graph": {...}, "parameters": [...], ...}``);
            deep-copied, the caller's data is never modified
        registry: Process lookup; without one, nodes are not validated and
            the graph cannot be executed
        validator: Value validator shared with child graphs (created lazily if None)
        settings: Parser/validator behaviour (defaults to GraphSettings())
    """

    def __init__(
        self,
        process: Any,
        registry: Any | None = None,
        validator: JsonSchemaValidator | None = None,
        settings: GraphSettings | None = None,
    ) -> None:
        self.process: Any = copy.deepcopy(process)
        self.nodes: dict[NodeID, ProcessGraphNode] = {}
        self.start_nodes: list[ProcessGraphNode] = []
        self.result_node: ProcessGraphNode | None = None
        self.children: list[ProcessGraph] = []
        self.parent_node: ProcessGraphNode | None = None
        self.parsed = False
        self.validated = False
        self.errors = ErrorList()
        self.callback_parameters: list[dict[str, Any]] = []
        self.arguments: dict[str, Any] = {}
        self.registry = registry
        self.settings = settings if settings is not None else GraphSettings()
        self._validator = validator

    def __repr__(self) -> str:
        return f"ProcessGraph(nodes={sorted(self.nodes)!r}, parent_node={self.parent_node!r})"

    def to_json(self) -> Any:
        """Return the process as given (plus parameters declared while filling)."""
        return copy.deepcopy(self.process)

    # === Factory hooks ===

    def create_node(self, node: Any, node_id: Any) -> ProcessGraphNode:
        return ProcessGraphNode(node, node_id, self)

    def create_process_graph(self, process: Any) -> ProcessGraph:
        """Create a graph sharing registry, validator and settings with this one."""
        return type(self)(process, self.registry, self.get_json_schema_validator(), self.settings)

    def create_json_schema_validator(self) -> JsonSchemaValidator:
        return JsonSchemaValidator()

    def create_process(self, spec: Mapping[str, Any]) -> BaseProcess:
        return BaseProcess(spec)

    def get_json_schema_validator(self) -> JsonSchemaValidator:
        if self._validator is None:
            self._validator = self.create_json_schema_validator()
        return self._validator

    def create_child_process_graph(self, process: Any, node: ProcessGraphNode, path: Sequence[int | str] = ()) -> ProcessGraph:
        """Create and parse the graph of a callback argument.

        Args:
            process: Callback value (``{"process_graph": ...}`` or a ProcessGraph)
            node: Node whose argument holds the callback
            path: Argument name followed by the keys leading to the callback
        """
        if isinstance(process, ProcessGraph):
            process = process.to_json()
        child = self.create_process_graph(process)
        child.set_arguments(self.arguments)
        child.set_parent_node(node)
        if path:
            parameter_name, *keys = path
            parent_process = child.get_parent_process()
            spec = parent_process.to_json() if parent_process is not None else None
            child.set_callback_parameters(get_callback_parameters_for_process(spec, str(parameter_name), keys))
        child.parse()
        self.children.append(child)
        return child

    # === Settings ===

    def allow_empty(self, allow: bool = True) -> None:
        self.settings = self.settings.with_empty_allowed(allow)

    def allow_undefined_parameters(self, allow: bool = True) -> None:
        """Tolerate unresolvable parameter references; forbidding also stops filling."""
        self.settings = self.settings.with_undefined_parameters(allow)

    def fill_undefined_parameters(self, fill: bool = True) -> None:
        """Declare referenced but undeclared parameters while parsing; implies tolerating them."""
        self.settings = self.settings.with_filled_parameters(fill)

    # === Parsing ===

    def parse(self) -> None:
        """Build nodes, edges and child graphs.

        Raises:
            ProcessGraphError: ProcessMissing, ProcessGraphMissing, MultipleResultNodes,
                ResultNodeMissing, StartNodeMissing, CircularReference (``...Callback``
                variants inside callbacks), NodeIdInvalid, NodeInvalid, ProcessIdMissing,
                ReferencedNodeMissing
        """
        if self.parsed:
            return

        if not isinstance(self.process, Mapping):
            raise self._structural_error(ErrorCode.PROCESS_MISSING)

        process_graph = self.process.get("process_graph")
        if not isinstance(process_graph, Mapping) or not process_graph:
            if self.settings.allow_empty and (not self.process or any(key in PROCESS_KEYS for key in self.process)):
                self.parsed = True
                logger.debug("process_graph_parsed_empty", parent_process_id=self.get_parent_process_id())
                return
            raise self._structural_error(ErrorCode.PROCESS_GRAPH_MISSING)

        self.children = []
        self.nodes = {NodeID(node_id): self.create_node(node, node_id) for node_id, node in process_graph.items()}

        result_node: ProcessGraphNode | None = None
        for node in self.nodes.values():
            if node.is_result_node:
                if result_node is not None:
                    raise self._structural_error(ErrorCode.MULTIPLE_RESULT_NODES)
                result_node = node
        if result_node is None:
            raise self._structural_error(ErrorCode.RESULT_NODE_MISSING)

        for node in self.nodes.values():
            node.set_parsed_arguments(
                {name: self._parse_argument(node, value, [name]) for name, value in node.arguments.items()}
            )

        start_nodes = sorted((node for node in self.nodes.values() if node.is_start_node()), key=lambda node: node.id)
        if not start_nodes:
            raise self._structural_error(ErrorCode.START_NODE_MISSING)

        dependency_graph = self.to_networkx()
        if not nx.is_directed_acyclic_graph(dependency_graph):
            cycle = nx.find_cycle(dependency_graph)
            rendered = " -> ".join([str(edge[0]) for edge in cycle] + [str(cycle[0][0])])
            raise self._structural_error(ErrorCode.CIRCULAR_REFERENCE, {"cycle": rendered})

        self.result_node = result_node
        self.start_nodes = start_nodes
        self.parsed = True
        logger.debug(
            "process_graph_parsed",
            node_count=self.node_count,
            start_nodes=self.get_start_node_ids(),
            result_node=result_node.id,
            children=len(self.children),
            parent_process_id=self.get_parent_process_id(),
        )

    def _parse_argument(self, node: ProcessGraphNode, value: Any, path: list[int | str]) -> Any:
        """Walk one argument value; returns its parsed form."""
        kind = classify(value)
        if kind == ReferenceKind.RESULT:
            referenced_id = value["from_node"]
            previous = self.nodes.get(referenced_id) if isinstance(referenced_id, str) else None
            if previous is None:
                raise ProcessGraphError(ErrorCode.REFERENCED_NODE_MISSING, {"node_id": referenced_id})
            node.add_previous_node(previous)
            return value
        if kind == ReferenceKind.CALLBACK:
            return self.create_child_process_graph(value, node, path)
        if kind == ReferenceKind.PARAMETER:
            name = value["from_parameter"]
            if self.settings.fill_process_parameters and not self.has_parameter(name):
                self.add_process_parameter(name)
            return value
        if kind == ReferenceKind.ARRAY:
            return [self._parse_argument(node, element, [*path, index]) for index, element in iter_elements(value)]
        if kind == ReferenceKind.OBJECT:
            return {key: self._parse_argument(node, element, [*path, key]) for key, element in iter_elements(value)}
        return value

    def _structural_error(self, code: ErrorCode, variables: Mapping[str, Any] | None = None) -> ProcessGraphError:
        """Build a structural error, using the callback variant inside callbacks."""
        parent_process_id = self.get_parent_process_id()
        if parent_process_id is None:
            return ProcessGraphError(code, variables)
        return ProcessGraphError(
            code.for_callback(),
            {
                **(variables or {}),
                "process_id": parent_process_id,
                "node_id": self.parent_node.id if self.parent_node is not None else "N/A",
            },
        )

    # === Validation and execution ===

    async def validate(self, throw_on_errors: bool = True) -> ErrorList:
        """Parse the graph and validate every node against its process.

        Args:
            throw_on_errors: Raise the first error instead of collecting all of them

        Returns:
            The errors collected (also available via ``get_errors()``)

        Raises:
            ProcessGraphError: The first error, if ``throw_on_errors`` is set
        """
        if self.validated:
            first = self.errors.first()
            if throw_on_errors and first is not None:
                raise first
            return self.errors

        self.validated = True
        try:
            self.parse()
        except ProcessGraphError as error:
            self._add_error(error)
            if throw_on_errors:
                raise

        async def visit(node: ProcessGraphNode) -> None:
            try:
                await self.validate_node(node)
            except ValidationErrors as errors:
                for error in errors.errors:
                    self._add_error(error, node)
                if throw_on_errors:
                    raise errors.first() from errors
            except Exception as error:
                self._add_error(error, node)
                if throw_on_errors:
                    raise

        await self._traverse(visit)
        logger.debug("process_graph_validated", error_count=self.errors.count(), parent_process_id=self.get_parent_process_id())
        return self.errors

    async def validate_node(self, node: ProcessGraphNode) -> None:
        process = self.get_process(node)
        if process is not None:
            await process.validate(node)

    async def execute(self, args: Mapping[str, Any] | None = None) -> ProcessGraphNode | None:
        """Validate and execute the graph.

        Undefined parameter references are not tolerated during execution.

        Args:
            args: Values for the parameters of the process (merged into earlier ones)

        Returns:
            The result node, holding the computed result

        Raises:
            ProcessGraphError: The first validation or execution error
        """
        self.allow_undefined_parameters(False)
        self.set_arguments(args)
        await self.validate()
        self.reset()
        logger.debug("process_graph_execution_started", node_count=self.node_count, parent_process_id=self.get_parent_process_id())
        await self._traverse(self.execute_node)
        logger.debug("process_graph_execution_completed", result_node=self.result_node.id if self.result_node else None)
        return self.result_node

    async def execute_node(self, node: ProcessGraphNode) -> None:
        process = self.get_process(node)
        if process is None:
            raise ProcessGraphError(ErrorCode.PROCESS_UNSUPPORTED, {"process": node.process_id, "namespace": node.namespace or "n/a"})
        node.set_result(await process.execute(node))

    async def _traverse(self, action: NodeAction) -> None:
        await GraphTraversal(action, max_concurrency=self.settings.max_concurrency).run(self.start_nodes)

    def reset(self) -> None:
        """Clear results and dependency bookkeeping here and in all child graphs."""
        for node in self.nodes.values():
            node.reset()
        for child in self.children:
            child.reset()

    def _add_error(self, error: Exception, node: ProcessGraphNode | None = None) -> None:
        self.errors.add(error)
        logger.warning(
            "process_graph_error_recorded",
            code=getattr(error, "code", type(error).__name__),
            message=str(error),
            node_id=node.id if node is not None else None,
            parent_process_id=self.get_parent_process_id(),
        )

    # === Processes ===

    def get_process(self, node_or_id: ProcessGraphNode | str, namespace: str | None = None) -> BaseProcess | None:
        """Look up the process a node (or process id) refers to.

        Returns:
            The process, or None if the graph has no registry

        Raises:
            ProcessGraphError: ProcessUnsupported if the registry doesn't know it
        """
        if self.registry is None:
            return None
        if isinstance(node_or_id, ProcessGraphNode):
            process_id = node_or_id.process_id
            namespace = node_or_id.namespace
        else:
            process_id = ProcessID(node_or_id)
        process = self.registry.get(process_id, namespace)
        if process is None:
            raise ProcessGraphError(ErrorCode.PROCESS_UNSUPPORTED, {"process": process_id, "namespace": namespace or "n/a"})
        if isinstance(process, Mapping):
            return self.create_process(process)
        return process

    def get_parent_process_id(self) -> ProcessID | None:
        if self.parent_node is None:
            return None
        return self.parent_node.process_id

    def get_parent_process(self) -> BaseProcess | None:
        """Process of the node this callback graph belongs to (None without registry)."""
        if self.registry is None or self.parent_node is None:
            return None
        process = self.registry.get(self.parent_node.process_id, self.parent_node.namespace)
        if isinstance(process, Mapping):
            return self.create_process(process)
        return process

    # === Graph membership ===

    def set_parent_node(self, node: Any) -> None:
        self.parent_node = node if isinstance(node, ProcessGraphNode) else None

    def get_parent(self) -> ProcessGraph | None:
        """Graph containing the node this callback graph belongs to."""
        if self.parent_node is None:
            return None
        return self.parent_node.graph

    # === Parameters ===

    def set_callback_parameters(self, parameters: Sequence[Mapping[str, Any]]) -> None:
        self.callback_parameters = [dict(parameter) for parameter in parameters]

    def get_callback_parameters(self) -> list[dict[str, Any]]:
        return list(self.callback_parameters)

    def get_callback_parameter(self, name: str) -> dict[str, Any] | None:
        for parameter in self.callback_parameters:
            if parameter.get("name") == name:
                return parameter
        return None

    def add_process_parameter(self, name: str, description: str = "", schema: Any = None) -> None:
        """Declare a parameter on the (copied) process."""
        if not isinstance(self.process.get("parameters"), list):
            self.process["parameters"] = []
        self.process["parameters"].append({"name": name, "description": description, "schema": schema if schema is not None else {}})

    def get_process_parameters(self, include_undefined: bool = False) -> list[dict[str, Any]]:
        """Declared parameters of the process.

        Args:
            include_undefined: Also list referenced but undeclared parameters
                (with an empty schema), unless they are filled in anyway
        """
        declared = self.process.get("parameters") if isinstance(self.process, Mapping) else None
        parameters = [dict(parameter) for parameter in declared if isinstance(parameter, Mapping)] if isinstance(declared, list) else []
        if include_undefined and not self.settings.fill_process_parameters:
            known = {parameter.get("name") for parameter in parameters}
            for node in self.nodes.values():
                for ref in node.get_refs():
                    if classify(ref) != ReferenceKind.PARAMETER or ref["from_parameter"] in known:
                        continue
                    parameters.append({"name": ref["from_parameter"], "description": "", "schema": {}})
                    known.add(ref["from_parameter"])
        return parameters

    def get_process_parameter(self, name: str, include_undefined: bool = False) -> dict[str, Any] | None:
        for parameter in self.get_process_parameters(include_undefined):
            if parameter.get("name") == name:
                return parameter
        return None

    def get_parameter(self, name: str) -> dict[str, Any] | None:
        """Declared parameter by name; callback metadata wins over the process declaration."""
        callback_parameter = self.get_callback_parameter(name)
        process_parameter = self.get_process_parameter(name)
        if callback_parameter is not None and process_parameter is not None:
            return {**process_parameter, **callback_parameter}
        if callback_parameter is not None:
            return dict(callback_parameter)
        return process_parameter

    def has_parameter(self, name: str) -> bool:
        return self.get_parameter(name) is not None

    def get_parameter_default(self, name: str) -> Any:
        """Declared default of a parameter, UNDEFINED if there is none."""
        parameter = self.get_parameter(name)
        if parameter is None:
            return UNDEFINED
        return parameter.get("default", UNDEFINED)

    def has_parameter_default(self, name: str) -> bool:
        return self.get_parameter_default(name) is not UNDEFINED

    # === Arguments ===

    def set_arguments(self, arguments: Mapping[str, Any] | None) -> None:
        """Merge values for the parameters of the process."""
        if isinstance(arguments, Mapping):
            self.arguments.update(arguments)

    def has_argument(self, name: str) -> bool:
        return self.arguments.get(name, UNDEFINED) is not UNDEFINED

    def get_argument(self, name: str) -> Any:
        return self.arguments.get(name, UNDEFINED)

    # === Accessors ===

    def get_node(self, node_id: str) -> ProcessGraphNode | None:
        return self.nodes.get(NodeID(node_id))

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def get_start_node_ids(self) -> list[NodeID]:
        return [node.id for node in self.start_nodes]

    def get_errors(self) -> ErrorList:
        return self.errors

    def is_valid(self) -> bool:
        """True once validated without errors."""
        return self.validated and self.errors.count() == 0

    def to_networkx(self) -> nx.DiGraph[NodeID]:
        """Dependency graph: an edge A -> B means B consumes the result of A."""
        graph: nx.DiGraph[NodeID] = nx.DiGraph()
        for node_id, node in self.nodes.items():
            graph.add_node(node_id, process_id=node.process_id, result=node.is_result_node)
        for node in self.nodes.values():
            for successor in node.next_nodes:
                graph.add_edge(node.id, successor.id)
        return graph

    def topological_order(self) -> list[ProcessGraphNode]:
        """Nodes in dependency order, ties broken by node id."""
        return [self.nodes[node_id] for node_id in nx.lexicographical_topological_sort(self.to_networkx())]
