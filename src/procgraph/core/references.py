"""Reference classification for process graph argument values.

Leaf module shared by the node, the graph and the process contract: it only
depends on contracts, so none of them needs to import another to tell a node
result reference from a parameter reference or a callback.

Classification priority (first match wins):
    None                                  -> NULL
    UNDEFINED                             -> UNDEFINED
    list / tuple                          -> ARRAY
    CallbackBody instance                 -> CALLBACK
    mapping with "process_graph"          -> CALLBACK
    mapping with "from_node"              -> RESULT
    mapping with "from_parameter"         -> PARAMETER
    any other mapping                     -> OBJECT
    bool                                  -> BOOLEAN
    int / float                           -> NUMBER
    str                                   -> STRING
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from procgraph.contracts.enums import ReferenceKind
from procgraph.contracts.sentinels import UNDEFINED


class CallbackBody:
    """Marker base for objects that stand for an already-constructed callback graph.

    ProcessGraph derives from it so that parsed arguments holding child graph
    instances classify as CALLBACK without this module importing the graph.
    """

    __slots__ = ()


def classify(value: Any) -> ReferenceKind:
    """Classify an argument value by its structural reference kind.

    Args:
        value: Any JSON-like value, a parsed child graph, or UNDEFINED

    Returns:
        The ReferenceKind of the value. Never mutates the value.

    Raises:
        TypeError: If the value is not JSON-like (e.g., a set or a custom object)
    """
    if value is None:
        return ReferenceKind.NULL
    if value is UNDEFINED:
        return ReferenceKind.UNDEFINED
    if isinstance(value, (list, tuple)):
        return ReferenceKind.ARRAY
    if isinstance(value, CallbackBody):
        return ReferenceKind.CALLBACK
    if isinstance(value, Mapping):
        if "process_graph" in value:
            return ReferenceKind.CALLBACK
        if "from_node" in value:
            return ReferenceKind.RESULT
        if "from_parameter" in value:
            return ReferenceKind.PARAMETER
        return ReferenceKind.OBJECT
    # bool is a subclass of int - check it first
    if isinstance(value, bool):
        return ReferenceKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ReferenceKind.NUMBER
    if isinstance(value, str):
        return ReferenceKind.STRING
    raise TypeError(f"Unsupported value of type {type(value).__name__} in process graph")


def iter_elements(value: Any) -> Iterator[tuple[int | str, Any]]:
    """Yield ``(key, element)`` pairs of an array or object value.

    Array keys are indices, object keys are property names.
    """
    if isinstance(value, Mapping):
        yield from value.items()
    else:
        yield from enumerate(value)


def _walk_refs(value: Any, include_callbacks: bool) -> Iterator[Mapping[str, Any]]:
    kind = classify(value)
    if kind.is_reference:
        yield value
    elif kind == ReferenceKind.CALLBACK:
        # Parsed child graph instances expose their raw description via to_json()
        if include_callbacks:
            body = value if isinstance(value, Mapping) else value.to_json()
            yield from _walk_refs(body.get("process_graph"), include_callbacks)
    elif kind.is_container:
        for _key, element in iter_elements(value):
            yield from _walk_refs(element, include_callbacks)


def contains_refs(value: Any, include_callbacks: bool = False) -> bool:
    """Check whether a value holds a node result or parameter reference anywhere.

    Args:
        value: Value to inspect (arbitrary depth)
        include_callbacks: Also look inside callback bodies. Off by default
            because references there belong to the callback's own scope.

    Returns:
        True if at least one reference was found
    """
    return next(_walk_refs(value, include_callbacks), None) is not None


def get_refs(value: Any, include_callbacks: bool = False) -> list[Mapping[str, Any]]:
    """Return all distinct references contained in a value, in first-seen order.

    Args:
        value: Value to inspect (arbitrary depth)
        include_callbacks: Also collect references inside callback bodies

    Returns:
        List of reference objects (``{"from_node": ...}`` / ``{"from_parameter": ...}``)
    """
    refs: list[Mapping[str, Any]] = []
    for ref in _walk_refs(value, include_callbacks):
        if ref not in refs:
            refs.append(ref)
    return refs
