# src/procgraph/engine/process.py
"""BaseProcess - contract between a process graph node and a process.

A process wraps one process specification (parameters and return schema).
The graph asks it to validate each node that invokes it and, during
execution, to execute the node. Back-ends subclass BaseProcess and implement
``execute()``; validation is shared.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from procgraph.contracts.enums import ErrorCode, ReferenceKind
from procgraph.contracts.errors import ProcessGraphError
from procgraph.contracts.process import ParameterSpec, ProcessSpec
from procgraph.contracts.sentinels import UNDEFINED
from procgraph.contracts.types import JsonSchema, ProcessDescription, ProcessID
from procgraph.core.references import classify, contains_refs, iter_elements
from procgraph.core.schemas import get_element_json_schema, normalize_json_schema
from procgraph.engine.compatibility import is_schema_compatible

if TYPE_CHECKING:
    from procgraph.core.dag.node import ProcessGraphNode


class BaseProcess:
    """A process that nodes of a process graph can invoke.

    Args:
        spec: Process specification (``{"id", "parameters", "returns", ...}``)

    Raises:
        pydantic.ValidationError: If the specification is malformed
    """

    def __init__(self, spec: Mapping[str, Any]) -> None:
        self.spec_model = ProcessSpec.model_validate(spec)
        self.spec: ProcessDescription = copy.deepcopy(dict(spec))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"

    @property
    def id(self) -> ProcessID:
        return ProcessID(self.spec_model.id)

    @property
    def parameters(self) -> list[ParameterSpec]:
        return list(self.spec_model.parameters)

    @property
    def returns_schema(self) -> JsonSchema:
        return self.spec_model.returns.json_schema

    def get_parameter(self, name: str) -> ParameterSpec | None:
        return self.spec_model.get_parameter(name)

    def to_json(self) -> ProcessDescription:
        """Return the process specification as it was given."""
        return copy.deepcopy(self.spec)

    async def validate(self, node: ProcessGraphNode) -> None:
        """Validate the arguments of a node invoking this process.

        Raises:
            ProcessGraphError: ProcessArgumentUnsupported, ProcessArgumentRequired,
                ProcessArgumentInvalid, or errors from resolving references
        """
        declared = {param.name for param in self.spec_model.parameters}
        unsupported = [name for name in node.get_argument_names() if name not in declared]
        if unsupported:
            raise ProcessGraphError(
                ErrorCode.PROCESS_ARGUMENT_UNSUPPORTED,
                {"process": self.id, "arguments": unsupported},
            )

        for param in self.spec_model.parameters:
            if not node.has_argument(param.name):
                if param.optional:
                    continue
                raise ProcessGraphError(
                    ErrorCode.PROCESS_ARGUMENT_REQUIRED,
                    {"process": self.id, "argument": param.name},
                )
            argument = node.get_parsed_argument(param.name)
            if not await self.validate_argument(argument, node, param.name, param.json_schema):
                raise self._invalid(param.name, "Can't validate argument")

    async def validate_argument(self, argument: Any, node: ProcessGraphNode, parameter_name: str, schema: JsonSchema) -> bool:
        """Validate one (parsed) argument value against a parameter schema.

        References are checked statically: parameter references against the
        callback parameter or the resolved value, node results against the
        return schema of the referenced process. Containers holding references
        are checked element-wise; an element passes if any alternative of the
        element schema accepts it.

        Args:
            argument: Parsed argument value (callbacks are ProcessGraph instances)
            node: Node the argument belongs to
            parameter_name: Name used in error messages (``param.key`` for elements)
            schema: Schema or list of alternative schemas of the parameter

        Returns:
            True if the argument is valid

        Raises:
            ProcessGraphError: ProcessArgumentInvalid, or errors from resolving references
        """
        kind = classify(argument)
        if kind == ReferenceKind.PARAMETER:
            return await self._validate_parameter_reference(argument["from_parameter"], node, parameter_name, schema)
        if kind == ReferenceKind.RESULT:
            return self._validate_result_reference(argument["from_node"], node, parameter_name, schema)
        if kind.is_container and contains_refs(argument):
            return await self._validate_elements(argument, node, parameter_name, schema)
        await self._validate_value(argument, node, parameter_name, schema)
        return True

    async def _validate_parameter_reference(self, name: str, node: ProcessGraphNode, parameter_name: str, schema: JsonSchema) -> bool:
        graph = node.graph
        callback_parameter = graph.get_callback_parameter(name) if graph is not None else None
        if callback_parameter is not None:
            # No value exists before the callback runs, only its schema
            if not is_schema_compatible(schema, callback_parameter.get("schema", {})):
                raise self._invalid(parameter_name, f"Schema for parameter '{name}' not compatible")
            return True

        value = node.get_process_graph_parameter_value(name)
        declared = graph.get_process_parameter(name) if graph is not None else None
        if declared is not None and declared.get("schema"):
            if not is_schema_compatible(schema, declared["schema"]):
                raise self._invalid(parameter_name, f"Schema for parameter '{name}' not compatible")
            if value is not UNDEFINED:
                await self._validate_value(value, node, parameter_name, declared["schema"])
        if value is not UNDEFINED:
            await self._validate_value(value, node, parameter_name, schema)
        return True

    def _validate_result_reference(self, node_id: str, node: ProcessGraphNode, parameter_name: str, schema: JsonSchema) -> bool:
        graph = node.graph
        if graph is None:
            return True
        referenced = graph.get_node(node_id)
        if referenced is None:
            raise ProcessGraphError(ErrorCode.REFERENCED_NODE_MISSING, {"node_id": node_id})
        process = graph.get_process(referenced)
        if process is None:
            return True
        if is_schema_compatible(schema, process.returns_schema):
            return True
        raise self._invalid(parameter_name, f"Schema for result '{node_id}' not compatible")

    async def _validate_elements(self, argument: Any, node: ProcessGraphNode, parameter_name: str, schema: JsonSchema) -> bool:
        alternatives = normalize_json_schema(schema)
        for key, element in iter_elements(argument):
            element_schemas = [s for s in (get_element_json_schema(alt, key) for alt in alternatives) if s]
            if not element_schemas:
                continue
            accepted = False
            last_error: ProcessGraphError | None = None
            for element_schema in element_schemas:
                try:
                    await self.validate_argument(element, node, f"{parameter_name}.{key}", element_schema)
                except ProcessGraphError as error:
                    last_error = error
                else:
                    accepted = True
                    break
            if not accepted and last_error is not None:
                raise last_error
        return True

    async def _validate_value(self, value: Any, node: ProcessGraphNode, parameter_name: str, schema: JsonSchema) -> None:
        graph = node.graph
        if graph is not None:
            validator = graph.get_json_schema_validator()
        else:
            from procgraph.engine.validator import JsonSchemaValidator

            validator = JsonSchemaValidator()
        errors = await validator.validate_value(value, schema, graph=graph)
        if errors:
            raise self._invalid(parameter_name, errors)

    def _invalid(self, parameter_name: str, reason: str | list[str]) -> ProcessGraphError:
        return ProcessGraphError(
            ErrorCode.PROCESS_ARGUMENT_INVALID,
            {"process": self.id, "argument": parameter_name, "reason": reason},
        )

    async def execute(self, node: ProcessGraphNode) -> Any:
        """Compute the result of a node. Back-ends must override this.

        Raises:
            NotImplementedError: Always, for the base class
        """
        raise NotImplementedError(f"Process '{self.id}' does not implement execute()")
