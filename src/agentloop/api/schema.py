"""
JSON Schema sanitization for tool parameters.

Vendors accept different subsets of JSON Schema. A SchemaDialect names
the keywords a vendor accepts and how it expresses nullable types;
sanitize_schema() rewrites a schema into that dialect.

Rewrites applied in every dialect:

- ``oneOf`` becomes ``anyOf`` and ``definitions`` becomes ``$defs``
- ``const`` becomes a single-value ``enum``
- every name in ``required`` gets an entry in ``properties``
- keywords outside the allow-list (and ``$schema``) are dropped

Dialects with ``collapse_type_arrays`` also rewrite ``type: [T, "null"]``
into ``{"type": T, "nullable": true}``.

Sanitizing a sanitized schema returns an equal schema.
"""

import dataclasses as _dataclasses
import typing as _typing

_MAP_KEYWORDS = frozenset({"properties", "$defs"})
"""Keywords whose value maps user-chosen names to subschemas."""

_LIST_KEYWORDS = frozenset({"anyOf", "allOf", "prefixItems"})
"""Keywords whose value is a list of subschemas."""

_SCHEMA_KEYWORDS = frozenset({"items", "not"})
"""Keywords whose value is a single subschema."""


@_dataclasses.dataclass(frozen=True)
class SchemaDialect:
    """The subset of JSON Schema a vendor accepts for tool parameters."""

    name: str
    allowed_keywords: frozenset[str]

    collapse_type_arrays: bool = False
    """Rewrite ``type`` arrays into a single type plus ``nullable``."""


GEMINI_DIALECT = SchemaDialect(
    name="gemini",
    allowed_keywords=frozenset(
        {
            "$defs",
            "$ref",
            "additionalProperties",
            "anyOf",
            "description",
            "enum",
            "example",
            "format",
            "items",
            "maxItems",
            "maxLength",
            "maxProperties",
            "maximum",
            "minItems",
            "minLength",
            "minProperties",
            "minimum",
            "nullable",
            "pattern",
            "prefixItems",
            "properties",
            "propertyOrdering",
            "required",
            "title",
            "type",
        }
    ),
    collapse_type_arrays=True,
)

OPENAI_DIALECT = SchemaDialect(
    name="openai",
    allowed_keywords=frozenset(
        {
            "$defs",
            "$ref",
            "additionalProperties",
            "allOf",
            "anyOf",
            "default",
            "description",
            "enum",
            "examples",
            "exclusiveMaximum",
            "exclusiveMinimum",
            "format",
            "items",
            "maxItems",
            "maxLength",
            "maxProperties",
            "maximum",
            "minItems",
            "minLength",
            "minProperties",
            "minimum",
            "multipleOf",
            "not",
            "pattern",
            "prefixItems",
            "properties",
            "required",
            "title",
            "type",
        }
    ),
)


def sanitize_schema(schema: _typing.Any, dialect: SchemaDialect = GEMINI_DIALECT) -> _typing.Any:
    """
    Rewrite a JSON Schema into the given dialect.

    Args:
        schema: The schema to sanitize. Non-dict values (booleans, lists
            of schemas) are handled recursively or returned unchanged.
        dialect: Target dialect.

    Returns:
        A new schema; the input is not modified.
    """
    if isinstance(schema, list):
        return [sanitize_schema(item, dialect) for item in schema]
    if not isinstance(schema, dict):
        return schema

    source = dict(schema)
    if "definitions" in source and "$defs" not in source:
        source["$defs"] = source.pop("definitions")
    if "oneOf" in source:
        one_of = source.pop("oneOf")
        if "anyOf" not in source:
            source["anyOf"] = one_of
    if "const" in source:
        const = source.pop("const")
        if "enum" not in source:
            source["enum"] = [const]

    out: dict[str, _typing.Any] = {}
    for key, value in source.items():
        if key not in dialect.allowed_keywords:
            continue
        if key in _MAP_KEYWORDS:
            if isinstance(value, dict):
                out[key] = {name: sanitize_schema(sub, dialect) for name, sub in value.items()}
        elif key in _LIST_KEYWORDS:
            if isinstance(value, list):
                out[key] = [sanitize_schema(sub, dialect) for sub in value]
        elif key in _SCHEMA_KEYWORDS or key == "additionalProperties":
            out[key] = sanitize_schema(value, dialect)
        elif key == "required":
            if isinstance(value, list):
                out[key] = [name for name in value if isinstance(name, str)]
        else:
            out[key] = value

    if dialect.collapse_type_arrays and isinstance(out.get("type"), list):
        _collapse_type_array(out)

    _align_required(out, dialect)
    return out


def _collapse_type_array(out: dict[str, _typing.Any]) -> None:
    types = [t for t in out["type"] if isinstance(t, str)]
    non_null = [t for t in types if t != "null"]
    nullable = len(non_null) != len(types)

    if len(non_null) == 1:
        out["type"] = non_null[0]
    elif not non_null:
        del out["type"]
    else:
        del out["type"]
        if "anyOf" not in out:
            out["anyOf"] = [{"type": t} for t in non_null]
    if nullable:
        out["nullable"] = True


def _align_required(out: dict[str, _typing.Any], dialect: SchemaDialect) -> None:
    required = out.get("required")
    if not required:
        return

    properties = out.get("properties")
    if not isinstance(properties, dict):
        properties = {}
        out["properties"] = properties

    extra = out.get("additionalProperties")
    for name in required:
        if name not in properties:
            placeholder = extra if isinstance(extra, dict) else {}
            properties[name] = sanitize_schema(placeholder, dialect)
