"""Tests for the contracts package surface."""

from typing import Any

import procgraph.contracts as contracts
from procgraph.contracts import JsonSchema, ProcessDescription


class TestExports:
    """Every exported name resolves."""

    def test_all_names_resolve(self) -> None:
        missing = [name for name in contracts.__all__ if not hasattr(contracts, name)]
        assert missing == []

    def test_schema_aliases(self) -> None:
        assert JsonSchema.__value__ == dict[str, Any] | list[dict[str, Any]]
        assert ProcessDescription.__value__ == dict[str, Any]


class TestAliasesInSignatures:
    """The aliases describe the process and registry wire formats."""

    SPEC: ProcessDescription = {
        "id": "pi",
        "parameters": [],
        "returns": {"schema": {"type": "number"}},
    }

    def test_registry_lists_process_descriptions(self) -> None:
        from procgraph.engine import ProcessRegistry

        registry = ProcessRegistry([self.SPEC])
        descriptions: list[ProcessDescription] = registry.to_json()

        assert descriptions == [self.SPEC]

    def test_returns_schema_is_json_schema(self) -> None:
        from procgraph.engine import BaseProcess

        schema: JsonSchema = BaseProcess(self.SPEC).returns_schema

        assert schema == {"type": "number"}
