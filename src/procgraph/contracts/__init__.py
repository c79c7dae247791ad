"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core/engine.
Error types, enums, sentinels and process specification models live here so
that the graph, the process contract and the value validator can all import
them without creating cycles.
"""

from procgraph.contracts.enums import ErrorCode, ReferenceKind
from procgraph.contracts.errors import (
    MESSAGES,
    ErrorList,
    ProcessGraphError,
    ValidationErrors,
    replace_placeholders,
)
from procgraph.contracts.process import ParameterSpec, ProcessSpec, ReturnSpec
from procgraph.contracts.sentinels import UNDEFINED, UndefinedSentinel
from procgraph.contracts.types import JsonSchema, NodeID, ProcessDescription, ProcessID

__all__ = [
    "MESSAGES",
    "UNDEFINED",
    "ErrorCode",
    "ErrorList",
    "JsonSchema",
    "NodeID",
    "ParameterSpec",
    "ProcessDescription",
    "ProcessGraphError",
    "ProcessID",
    "ProcessSpec",
    "ReferenceKind",
    "ReturnSpec",
    "UndefinedSentinel",
    "ValidationErrors",
    "replace_placeholders",
]
