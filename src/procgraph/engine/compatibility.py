# src/procgraph/engine/compatibility.py
"""Static compatibility check between a parameter schema and a value schema.

Answers "would a value described by ``value_schema`` be accepted by a
parameter described by ``param_schema``?" without having the value. Used to
check node result references (against the referenced process's return schema)
and callback parameter references (against the callback parameter schema)
before anything executes.

Both schemas are normalized into single-typed alternatives first; the check
passes if some parameter alternative accepts some value alternative.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from procgraph.contracts.types import JsonSchema
from procgraph.core.schemas import normalize_json_schema

# Object subtype accepted by and accepting every other object subtype
GENERIC_DATACUBE_SUBTYPE = "datacube"


def is_schema_compatible(
    param_schema: JsonSchema,
    value_schema: JsonSchema,
    strict: bool = False,
    allow_value_as_elements: bool = False,
) -> bool:
    """Check whether values of ``value_schema`` are accepted by ``param_schema``.

    Args:
        param_schema: Schema (or list of schemas) of the receiving parameter
        value_schema: Schema (or list of schemas) describing the value
        strict: Disallow integer parameters accepting numbers and require
            concrete types on the value side
        allow_value_as_elements: Also accept values that could be elements of
            an array/object parameter (e.g. a number for an array of numbers)

    Returns:
        True if at least one pair of alternatives is compatible

    Example:
        >>> is_schema_compatible({"type": "number"}, {"type": "integer"})
        True
        >>> is_schema_compatible({"type": "integer"}, {"type": "number"}, strict=True)
        False
    """
    param_alternatives = normalize_json_schema(param_schema, split_types=True)
    value_alternatives = normalize_json_schema(value_schema, split_types=True)
    return any(
        _is_alternative_compatible(param, value, strict, allow_value_as_elements)
        for param in param_alternatives
        for value in value_alternatives
    )


def _is_alternative_compatible(
    param: Mapping[str, Any],
    value: Mapping[str, Any],
    strict: bool,
    allow_value_as_elements: bool,
) -> bool:
    param_type = param.get("type")
    value_type = value.get("type")

    # Untyped schemas accept (or, non-strict, are accepted as) anything
    if not isinstance(param_type, str) or (not strict and not isinstance(value_type, str)):
        return True

    types_match = (
        param_type == value_type
        or (allow_value_as_elements and param_type in ("array", "object"))
        or (param_type == "number" and value_type == "integer")
        or (not strict and param_type == "integer" and value_type == "number")
    )
    if not types_match:
        return False

    if param_type == "array":
        items = param.get("items")
        if not isinstance(items, Mapping):
            return _are_subtypes_compatible(param, value, strict)
        item_alternatives = items.get("anyOf") or items.get("oneOf")
        if isinstance(item_alternatives, list):
            return any(_is_array_item_compatible(item, value, strict, allow_value_as_elements) for item in item_alternatives)
        return _is_array_item_compatible(items, value, strict, allow_value_as_elements)

    if param_type == "object":
        param_subtype = param.get("subtype")
        value_subtype = value.get("subtype")
        if param_subtype == value_subtype:
            return True
        if GENERIC_DATACUBE_SUBTYPE in (param_subtype, value_subtype):
            return True
        # Structural heuristic: no deep comparison of the declared properties
        return isinstance(param.get("properties"), Mapping) and isinstance(value.get("properties"), Mapping)

    return _are_subtypes_compatible(param, value, strict)


def _is_array_item_compatible(
    item_schema: Any,
    value: Mapping[str, Any],
    strict: bool,
    allow_value_as_elements: bool,
) -> bool:
    if allow_value_as_elements and is_schema_compatible(item_schema, value, strict):
        return True
    value_items = value.get("items")
    return isinstance(value_items, Mapping) and is_schema_compatible(item_schema, value_items, strict)


def _are_subtypes_compatible(param: Mapping[str, Any], value: Mapping[str, Any], strict: bool) -> bool:
    param_subtype = param.get("subtype")
    value_subtype = value.get("subtype")
    if not strict and (not isinstance(param_subtype, str) or not isinstance(value_subtype, str)):
        return True
    # A parameter without subtype accepts any subtype of its type
    if not isinstance(param_subtype, str):
        return True
    return param_subtype == value_subtype
