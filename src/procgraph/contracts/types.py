"""Semantic type aliases for compile-time type safety.

NewType creates distinct types that mypy treats as incompatible,
preventing accidental misuse of semantically different string values.
"""

from typing import Any, NewType

NodeID = NewType("NodeID", str)
"""Key of a node inside its graph's ``process_graph`` mapping (e.g., 'load1')"""

ProcessID = NewType("ProcessID", str)
"""Identifier of a process in the registry (e.g., 'load_collection')"""

# JSON Schema documents are plain dicts, or a list of alternatives.
type JsonSchema = dict[str, Any] | list[dict[str, Any]]

# Raw JSON-like process description (the wire format).
type ProcessDescription = dict[str, Any]
