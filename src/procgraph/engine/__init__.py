"""Engine: process contract, value validation, schema compatibility and traversal."""

from procgraph.engine.compatibility import is_schema_compatible
from procgraph.engine.process import BaseProcess
from procgraph.engine.registry import DEFAULT_NAMESPACE, ProcessRegistry
from procgraph.engine.scheduler import GraphTraversal
from procgraph.engine.validator import JsonSchemaValidator

__all__ = [
    "DEFAULT_NAMESPACE",
    "BaseProcess",
    "GraphTraversal",
    "JsonSchemaValidator",
    "ProcessRegistry",
    "is_schema_compatible",
]
