"""
procgraph: parse, validate and execute process graphs.

A process graph is a JSON-serializable DAG whose nodes invoke named processes
and reference each other's results, externally supplied parameters, or nested
callback graphs.
"""

__version__ = "0.3.0"

from procgraph.contracts import (
    ErrorList,
    ProcessGraphError,
    ReferenceKind,
    ValidationErrors,
)
from procgraph.core.config import GraphSettings
from procgraph.core.dag import ProcessGraph, ProcessGraphNode
from procgraph.engine import BaseProcess, JsonSchemaValidator, ProcessRegistry, is_schema_compatible

__all__ = [
    "BaseProcess",
    "ErrorList",
    "GraphSettings",
    "JsonSchemaValidator",
    "ProcessGraph",
    "ProcessGraphError",
    "ProcessGraphNode",
    "ProcessRegistry",
    "ReferenceKind",
    "ValidationErrors",
    "__version__",
    "is_schema_compatible",
]
