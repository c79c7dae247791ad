"""JSON Schema helpers for process parameter schemas.

Process parameters describe their accepted values with JSON Schema documents
that may be unions (``anyOf``/``oneOf``, a list of schemas, or a ``type``
array). These helpers flatten such unions into single-typed alternatives, pick
element schemas out of array/object schemas, and extract the parameters a
callback receives from the schema of the process parameter it is passed to.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from procgraph.core.logging import get_logger

logger = get_logger(__name__)


def normalize_json_schema(schemas: Any, split_types: bool = False) -> list[dict[str, Any]]:
    """Flatten a schema (or list of schemas) into a list of alternatives.

    - A single schema becomes a one-element list; anything else that is not
      a list yields no alternatives.
    - ``allOf`` members are merged into one schema.
    - ``anyOf``/``oneOf`` members become separate alternatives, each inheriting
      the keys of the enclosing schema.
    - With ``split_types``, a ``type`` array is split into one alternative per type.

    Args:
        schemas: Schema dict or list of schema dicts
        split_types: Also split multi-type ``type`` arrays

    Returns:
        New list of new dicts; the input is never modified.
    """
    if isinstance(schemas, Mapping):
        candidates: list[Any] = [schemas]
    elif isinstance(schemas, list):
        candidates = list(schemas)
    else:
        return []

    normalized: list[dict[str, Any]] = []
    for schema in candidates:
        if not isinstance(schema, Mapping):
            continue
        if isinstance(schema.get("allOf"), list):
            merged: dict[str, Any] = {}
            for member in schema["allOf"]:
                if isinstance(member, Mapping):
                    merged.update(member)
            normalized.append(merged)
        elif isinstance(schema.get("anyOf"), list) or isinstance(schema.get("oneOf"), list):
            base = {key: value for key, value in schema.items() if key not in ("anyOf", "oneOf")}
            members = schema["anyOf"] if isinstance(schema.get("anyOf"), list) else schema["oneOf"]
            for member in members:
                if isinstance(member, Mapping):
                    normalized.append({**base, **member})
        else:
            normalized.append(dict(schema))

    if not split_types:
        return normalized

    alternatives: list[dict[str, Any]] = []
    for schema in normalized:
        if isinstance(schema.get("type"), list):
            alternatives.extend({**schema, "type": type_name} for type_name in schema["type"])
        else:
            alternatives.append(schema)
    return alternatives


def _declares_type(schema: Mapping[str, Any], type_name: str) -> bool:
    declared = schema.get("type")
    if isinstance(declared, list):
        return type_name in declared
    return declared == type_name


def get_element_json_schema(schema: Mapping[str, Any], key: int | str | None = None) -> dict[str, Any]:
    """Return the schema that applies to one element of an array or object schema.

    Args:
        schema: A single (normalized) schema
        key: Array index or object property name; None asks for the generic element schema

    Returns:
        The element schema, or an empty dict if the schema says nothing about elements.
    """
    if _declares_type(schema, "array"):
        items = schema.get("items")
        if isinstance(items, list):
            if isinstance(key, int) and 0 <= key < len(items) and isinstance(items[key], Mapping):
                return dict(items[key])
            additional = schema.get("additionalItems")
            if isinstance(additional, Mapping):
                return dict(additional)
        elif isinstance(items, Mapping):
            return dict(items)

    if _declares_type(schema, "object"):
        properties = schema.get("properties")
        if key is not None and isinstance(properties, Mapping) and isinstance(properties.get(key), Mapping):
            return dict(properties[key])
        additional = schema.get("additionalProperties")
        if isinstance(additional, Mapping):
            return dict(additional)

    return {}


def get_callback_parameters(parameter: Any, path: Sequence[int | str] = ()) -> list[dict[str, Any]]:
    """Return the parameters a callback receives when passed to a process parameter.

    The callback may sit below the parameter (e.g. ``properties.eo:cloud_cover``),
    in which case ``path`` names the array indices / property keys to descend.

    When several alternatives of the parameter schema declare callback
    parameters, the union of all of them (first declaration of a name wins) is
    returned instead of choosing the alternative matching the call site. This
    may over-accept references; the schema format gives no rule for picking one.

    Args:
        parameter: Process parameter declaration (``{"name", "schema", ...}``)
        path: Keys below the parameter leading to the callback

    Returns:
        List of callback parameter declarations (raw dicts)
    """
    if not isinstance(parameter, Mapping) or not parameter.get("schema"):
        return []

    schemas = normalize_json_schema(parameter["schema"])
    for key in path:
        descended: list[dict[str, Any]] = []
        for schema in schemas:
            descended.extend(normalize_json_schema(get_element_json_schema(schema, key)))
        schemas = descended

    callback_parameters: list[dict[str, Any]] = []
    declaring_alternatives = 0
    for schema in schemas:
        params: Any = None
        if isinstance(schema.get("parameters"), list):
            params = schema["parameters"]
        elif isinstance(schema.get("additionalProperties"), Mapping) and isinstance(
            schema["additionalProperties"].get("parameters"), list
        ):
            params = schema["additionalProperties"]["parameters"]
        if params is None:
            continue
        declaring_alternatives += 1
        known = {param.get("name") for param in callback_parameters}
        for param in params:
            if isinstance(param, Mapping) and param.get("name") not in known:
                callback_parameters.append(dict(param))
                known.add(param.get("name"))

    if declaring_alternatives > 1:
        logger.debug(
            "callback_parameters_merged",
            parameter=parameter.get("name"),
            alternatives=declaring_alternatives,
            names=[param.get("name") for param in callback_parameters],
        )
    return callback_parameters


def get_callback_parameters_for_process(
    process: Mapping[str, Any] | None,
    parameter_name: str,
    path: Sequence[int | str] = (),
) -> list[dict[str, Any]]:
    """Return the callback parameters for a callback passed to ``parameter_name`` of a process.

    Args:
        process: Raw process specification (``{"id", "parameters": [...]}``), or None
        parameter_name: Name of the process parameter receiving the callback
        path: Keys below the parameter leading to the callback

    Returns:
        List of callback parameter declarations; empty if unknown.
    """
    if not isinstance(process, Mapping) or not isinstance(process.get("parameters"), list):
        return []
    for parameter in process["parameters"]:
        if isinstance(parameter, Mapping) and parameter.get("name") == parameter_name:
            return get_callback_parameters(parameter, path)
    return []
