# src/procgraph/engine/subtypes.py
"""JSON Schemas of the data subtypes known to the value validator.

A ``subtype`` keyword refines a JSON type (e.g. ``epsg-code`` refines
``integer``). The value validator first checks a value structurally against
the schema registered here, then runs the semantic check of the subtype.
Subtypes without an entry only get their semantic check (if any).
"""

from __future__ import annotations

from typing import Any, Final

PROCESS_GRAPH_SUBTYPE: Final = "process-graph"

GEOJSON_GEOMETRY_TYPES: Final = (
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
)

# Code words of WKT2 CRS definitions (ISO 19162)
WKT2_CODE_WORDS: Final = (
    "BOUNDCRS",
    "COMPOUNDCRS",
    "ENGCRS",
    "ENGINEERINGCRS",
    "GEODCRS",
    "GEODETICCRS",
    "GEOGCRS",
    "GEOGRAPHICCRS",
    "PARAMETRICCRS",
    "PROJCRS",
    "PROJECTEDCRS",
    "TIMECRS",
    "VERTCRS",
    "VERTICALCRS",
)

_GEOJSON_GEOMETRY: dict[str, Any] = {
    "type": "object",
    "required": ["type", "coordinates"],
    "properties": {
        "type": {"enum": list(GEOJSON_GEOMETRY_TYPES)},
        "coordinates": {"type": "array"},
        "bbox": {"type": "array", "minItems": 4},
    },
}

_GEOJSON_GEOMETRY_COLLECTION: dict[str, Any] = {
    "type": "object",
    "required": ["type", "geometries"],
    "properties": {
        "type": {"const": "GeometryCollection"},
        "geometries": {"type": "array", "items": _GEOJSON_GEOMETRY},
    },
}

_GEOJSON_FEATURE: dict[str, Any] = {
    "type": "object",
    "required": ["type", "geometry", "properties"],
    "properties": {
        "type": {"const": "Feature"},
        "geometry": {"anyOf": [{"type": "null"}, _GEOJSON_GEOMETRY, _GEOJSON_GEOMETRY_COLLECTION]},
        "properties": {"type": ["object", "null"]},
    },
}

_GEOJSON_FEATURE_COLLECTION: dict[str, Any] = {
    "type": "object",
    "required": ["type", "features"],
    "properties": {
        "type": {"const": "FeatureCollection"},
        "features": {"type": "array", "items": _GEOJSON_FEATURE},
    },
}

_TEMPORAL_INTERVAL: dict[str, Any] = {
    "type": "array",
    "minItems": 2,
    "maxItems": 2,
    "items": {"type": ["string", "null"]},
}

SUBTYPE_SCHEMAS: Final[dict[str, dict[str, Any]]] = {
    "collection-id": {
        "type": "string",
        "pattern": "^[\\w\\-\\.~/]+$",
    },
    "epsg-code": {
        "type": "integer",
        "minimum": 1000,
    },
    "proj-definition": {
        "type": "string",
    },
    "wkt2-definition": {
        "type": "string",
    },
    "geojson": {
        "anyOf": [
            _GEOJSON_GEOMETRY,
            _GEOJSON_GEOMETRY_COLLECTION,
            _GEOJSON_FEATURE,
            _GEOJSON_FEATURE_COLLECTION,
        ],
    },
    "bounding-box": {
        "type": "object",
        "required": ["west", "south", "east", "north"],
        "properties": {
            "west": {"type": "number"},
            "south": {"type": "number"},
            "east": {"type": "number"},
            "north": {"type": "number"},
            "base": {"type": ["number", "null"]},
            "height": {"type": ["number", "null"]},
            "crs": {
                "anyOf": [
                    {"type": "integer", "subtype": "epsg-code"},
                    {"type": "string", "subtype": "wkt2-definition"},
                ],
            },
        },
    },
    "temporal-interval": _TEMPORAL_INTERVAL,
    "temporal-intervals": {
        "type": "array",
        "minItems": 1,
        "items": _TEMPORAL_INTERVAL,
    },
    "input-format": {
        "type": "string",
        "minLength": 1,
    },
    "output-format": {
        "type": "string",
        "minLength": 1,
    },
    "udf-runtime": {
        "type": "string",
        "minLength": 1,
    },
    "udf-code": {
        "type": "string",
    },
    # Structure is checked by parsing the graph, see JsonSchemaValidator.validate_process_graph
    PROCESS_GRAPH_SUBTYPE: {
        "type": "object",
    },
}
