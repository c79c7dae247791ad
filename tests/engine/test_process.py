"""Tests for the BaseProcess contract and argument validation."""

from typing import Any

import pytest
from pydantic import ValidationError

from procgraph.contracts import ProcessGraphError
from procgraph.core.dag import ProcessGraph, ProcessGraphNode
from procgraph.engine import BaseProcess, ProcessRegistry
from tests.fixtures.processes import PROCESSES, absolute_graph

ABSOLUTE_SPEC = next(spec for spec in PROCESSES if spec["id"] == "absolute")


async def _validation_error(process: dict[str, Any], registry: ProcessRegistry, **arguments: Any) -> ProcessGraphError:
    graph = ProcessGraph(process, registry)
    graph.set_arguments(arguments)
    with pytest.raises(ProcessGraphError) as exc_info:
        await graph.validate()
    return exc_info.value


class TestProcessSpec:
    """Tests for wrapping a process specification."""

    def test_properties(self) -> None:
        process = BaseProcess(ABSOLUTE_SPEC)

        assert process.id == "absolute"
        assert [param.name for param in process.parameters] == ["x"]
        assert process.returns_schema == {"type": ["number", "null"]}
        assert process.get_parameter("x") is not None
        assert process.get_parameter("y") is None
        assert repr(process) == "BaseProcess(id='absolute')"

    def test_to_json_is_a_copy(self) -> None:
        process = BaseProcess(ABSOLUTE_SPEC)
        spec = process.to_json()
        spec["id"] = "changed"

        assert process.to_json() == ABSOLUTE_SPEC

    def test_parameter_metadata(self) -> None:
        process = BaseProcess(next(spec for spec in PROCESSES if spec["id"] == "sum"))
        ignore_nodata = process.get_parameter("ignore_nodata")

        assert ignore_nodata is not None
        assert ignore_nodata.optional
        assert ignore_nodata.has_default
        assert ignore_nodata.default is True
        assert ignore_nodata.json_schema == {"type": "boolean"}

    @pytest.mark.parametrize(
        "spec",
        [
            {},
            {"id": ""},
            {"id": "p", "parameters": [{"description": "no name"}]},
            {"id": "p", "parameters": [{"name": "x"}, {"name": "x"}]},
        ],
    )
    def test_malformed_spec(self, spec: dict[str, Any]) -> None:
        with pytest.raises(ValidationError):
            BaseProcess(spec)

    @pytest.mark.asyncio
    async def test_execute_not_implemented(self) -> None:
        process = BaseProcess(ABSOLUTE_SPEC)
        node = ProcessGraphNode({"process_id": "absolute", "arguments": {"x": 1}}, "n")

        with pytest.raises(NotImplementedError, match="Process 'absolute' does not implement execute"):
            await process.execute(node)


class TestArgumentPresence:
    """Unsupported and missing arguments."""

    @pytest.mark.asyncio
    async def test_valid(self, registry: ProcessRegistry) -> None:
        graph = ProcessGraph(absolute_graph(), registry)
        errors = await graph.validate()

        assert errors.count() == 0
        assert graph.is_valid()
        assert graph.get_start_node_ids() == ["abs1"]

    @pytest.mark.asyncio
    async def test_required_argument_missing(self, registry: ProcessRegistry) -> None:
        error = await _validation_error(absolute_graph({}), registry)

        assert error.code == "ProcessArgumentRequired"
        assert error.variables == {"process": "absolute", "argument": "x"}
        assert error.message == "Process 'absolute' requires argument 'x'."

    @pytest.mark.asyncio
    async def test_unsupported_argument(self, registry: ProcessRegistry) -> None:
        error = await _validation_error(absolute_graph({"z": -1}), registry)

        assert error.code == "ProcessArgumentUnsupported"
        assert error.message == "Process 'absolute' does not support the following arguments: z"

    @pytest.mark.asyncio
    async def test_optional_arguments_may_be_omitted(self, registry: ProcessRegistry) -> None:
        process = {"process_graph": {"s": {"process_id": "sum", "arguments": {"data": [1, 2]}, "result": True}}}
        assert (await ProcessGraph(process, registry).validate()).count() == 0

    @pytest.mark.asyncio
    async def test_invalid_literal(self, registry: ProcessRegistry) -> None:
        error = await _validation_error(absolute_graph({"x": "minus one"}), registry)

        assert error.code == "ProcessArgumentInvalid"
        assert error.message == "The argument 'x' in process 'absolute' is invalid: 'minus one' is not of type 'number', 'null'"


class TestReferences:
    """Parameter and node result references are checked statically."""

    @pytest.mark.asyncio
    async def test_incompatible_result(self, registry: ProcessRegistry) -> None:
        process = {
            "process_graph": {
                "dc": {"process_id": "load_collection", "arguments": {"id": "S2", "spatial_extent": None, "temporal_extent": None}},
                "abs": {"process_id": "absolute", "arguments": {"x": {"from_node": "dc"}}, "result": True},
            }
        }
        error = await _validation_error(process, registry)

        assert error.message == "The argument 'x' in process 'absolute' is invalid: Schema for result 'dc' not compatible"

    @pytest.mark.asyncio
    async def test_compatible_result(self, registry: ProcessRegistry) -> None:
        process = {
            "process_graph": {
                "a": {"process_id": "absolute", "arguments": {"x": -1}},
                "b": {"process_id": "absolute", "arguments": {"x": {"from_node": "a"}}, "result": True},
            }
        }
        assert (await ProcessGraph(process, registry).validate()).count() == 0

    @pytest.mark.asyncio
    async def test_undeclared_parameter_is_tolerated(self, registry: ProcessRegistry) -> None:
        graph = ProcessGraph(absolute_graph({"x": {"from_parameter": "v"}}), registry)
        assert (await graph.validate()).count() == 0

    @pytest.mark.asyncio
    async def test_undeclared_parameter_is_an_error_when_forbidden(self, registry: ProcessRegistry) -> None:
        graph = ProcessGraph(absolute_graph({"x": {"from_parameter": "v"}}), registry)
        graph.allow_undefined_parameters(False)

        with pytest.raises(ProcessGraphError, match="Invalid parameter 'v' requested in the process 'absolute'"):
            await graph.validate()

    @pytest.mark.asyncio
    async def test_declared_parameter_schema_must_be_compatible(self, registry: ProcessRegistry) -> None:
        process = {
            "parameters": [{"name": "v", "description": "", "schema": {"type": "string"}}],
            **absolute_graph({"x": {"from_parameter": "v"}}),
        }
        error = await _validation_error(process, registry)

        assert error.message == "The argument 'x' in process 'absolute' is invalid: Schema for parameter 'v' not compatible"

    @pytest.mark.asyncio
    async def test_supplied_value_is_validated(self, registry: ProcessRegistry) -> None:
        process = {
            "parameters": [{"name": "v", "description": "", "schema": {"type": "number"}}],
            **absolute_graph({"x": {"from_parameter": "v"}}),
        }
        error = await _validation_error(process, registry, v="one")

        assert error.message == "The argument 'x' in process 'absolute' is invalid: 'one' is not of type 'number'"

    @pytest.mark.asyncio
    async def test_default_value_is_validated(self, registry: ProcessRegistry) -> None:
        process = {
            "parameters": [{"name": "v", "description": "", "schema": {}, "default": True}],
            **absolute_graph({"x": {"from_parameter": "v"}}),
        }
        error = await _validation_error(process, registry)

        assert error.code == "ProcessArgumentInvalid"
        assert error.variables["reason"] == ["True is not of type 'number', 'null'"]

    @pytest.mark.asyncio
    async def test_incompatible_callback_parameter(self, registry: ProcessRegistry) -> None:
        process = {
            "process_graph": {
                "dc": {"process_id": "load_collection", "arguments": {"id": "S2", "spatial_extent": None, "temporal_extent": None}},
                "apply": {
                    "process_id": "apply",
                    "arguments": {
                        "data": {"from_node": "dc"},
                        "process": {
                            "process_graph": {
                                "save": {
                                    "process_id": "save_result",
                                    "arguments": {"data": {"from_node": "dc2"}, "format": {"from_parameter": "x"}},
                                },
                                "dc2": {
                                    "process_id": "load_collection",
                                    "arguments": {"id": "S2", "spatial_extent": None, "temporal_extent": None},
                                    "result": True,
                                },
                            }
                        },
                    },
                    "result": True,
                },
            }
        }
        graph = ProcessGraph(process, registry)
        errors = await graph.validate(throw_on_errors=False)

        assert errors.count() == 1
        assert errors.to_json() == [
            {
                "code": "ProcessArgumentInvalid",
                "message": (
                    "The argument 'process' in process 'apply' is invalid: "
                    "The argument 'format' in process 'save_result' is invalid: Schema for parameter 'x' not compatible"
                ),
            }
        ]


class TestContainers:
    """Arrays and objects holding references are validated element-wise."""

    @pytest.mark.asyncio
    async def test_elements_with_references(self, registry: ProcessRegistry) -> None:
        process = {
            "process_graph": {
                "a": {"process_id": "absolute", "arguments": {"x": -1}},
                "s": {"process_id": "sum", "arguments": {"data": [1, {"from_node": "a"}, None]}, "result": True},
            }
        }
        assert (await ProcessGraph(process, registry).validate()).count() == 0

    @pytest.mark.asyncio
    async def test_invalid_element_is_named(self, registry: ProcessRegistry) -> None:
        process = {
            "process_graph": {
                "a": {"process_id": "absolute", "arguments": {"x": -1}},
                "s": {"process_id": "sum", "arguments": {"data": ["one", {"from_node": "a"}]}, "result": True},
            }
        }
        error = await _validation_error(process, registry)

        assert error.variables["argument"] == "data.0"
        assert error.message.startswith("The argument 'data.0' in process 'sum' is invalid")

    @pytest.mark.asyncio
    async def test_container_without_references_is_validated_whole(self, registry: ProcessRegistry) -> None:
        error = await _validation_error({"process_graph": {"s": {"process_id": "sum", "arguments": {"data": ["one"]}, "result": True}}}, registry)

        assert error.variables["argument"] == "data"

    @pytest.mark.asyncio
    async def test_parameter_inside_object(self, registry: ProcessRegistry) -> None:
        from tests.fixtures.processes import PARAM_IN_OBJECT_GRAPH

        graph = ProcessGraph(PARAM_IN_OBJECT_GRAPH, registry)
        assert (await graph.validate()).count() == 0

    @pytest.mark.asyncio
    async def test_parameter_inside_object_must_be_compatible(self, registry: ProcessRegistry) -> None:
        from tests.fixtures.processes import PARAM_IN_OBJECT_GRAPH, copy_graph

        process = copy_graph(PARAM_IN_OBJECT_GRAPH)
        process["parameters"][0]["schema"] = {"type": "string"}
        error = await _validation_error(process, registry)

        assert error.variables["argument"] == "spatial_extent.west"
