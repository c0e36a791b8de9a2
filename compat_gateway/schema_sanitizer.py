"""
Normalize client-supplied JSON Schema fragments into the subset the engine accepts.

- Recursively ensures every nested schema object has a ``type``.
- Infers sensible defaults for ``object``/``array`` schemas when structural hints exist.
- Normalizes boolean schemas to permissive string schemas.

Sanitization never fails: malformed input degrades to the most generic
compatible type.
"""

from typing import Any, Dict

_ALLOWED_TYPES = ("object", "array", "string", "number", "integer", "boolean")
_OBJECT_HINTS = ("properties", "required", "additionalProperties")
_ARRAY_HINTS = ("items", "prefixItems")
_STRING_HINTS = ("enum", "const", "format")
_NUMBER_HINTS = ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf")
_COMBINATORS = ("oneOf", "anyOf", "allOf", "prefixItems")


def sanitize_json_schema(value: Any) -> Any:
    """Return the sanitized form of ``value``; dict and list inputs are updated in place."""
    if isinstance(value, bool):
        return {"type": "string"}
    if isinstance(value, list):
        for idx, item in enumerate(value):
            value[idx] = sanitize_json_schema(item)
        return value
    if isinstance(value, dict):
        _sanitize_object_schema(value)
    return value


def _infer_type(schema: Dict[str, Any]) -> str:
    declared = schema.get("type")
    if isinstance(declared, str):
        return declared
    if isinstance(declared, list):
        for candidate in declared:
            if isinstance(candidate, str) and candidate in _ALLOWED_TYPES:
                return candidate

    if any(key in schema for key in _OBJECT_HINTS):
        return "object"
    if any(key in schema for key in _ARRAY_HINTS):
        return "array"
    if any(key in schema for key in _STRING_HINTS):
        return "string"
    if any(key in schema for key in _NUMBER_HINTS):
        return "number"
    return "string"


def _sanitize_object_schema(schema: Dict[str, Any]) -> None:
    properties = schema.get("properties")
    if isinstance(properties, dict):
        for name in list(properties):
            properties[name] = sanitize_json_schema(properties[name])
    if "items" in schema:
        schema["items"] = sanitize_json_schema(schema["items"])
    for key in _COMBINATORS:
        if key in schema:
            schema[key] = sanitize_json_schema(schema[key])

    schema_type = _infer_type(schema)
    schema["type"] = schema_type

    if schema_type == "object":
        if "properties" not in schema:
            schema["properties"] = {}
        additional = schema.get("additionalProperties")
        if additional is not None and not isinstance(additional, bool):
            schema["additionalProperties"] = sanitize_json_schema(additional)

    if schema_type == "array" and "items" not in schema:
        schema["items"] = {"type": "string"}
