"""Schema validator — structural validation of persisted documents.

Every record crossing from an adapter into the reconciler, and every
document read from or written to disk, passes through here.
"""

from __future__ import annotations

import re

from capcat.errors import CatalogValidationError, ConfigError
from capcat.models.catalog_item import CatalogItem, dict_to_item
from capcat.schema.schema import get_schema


def validate_document(data, schema: dict) -> list[str]:
    """Validate data against a JSON Schema node.

    Returns:
        List of error messages. Empty list means valid.
    """
    issues: list[str] = []
    _validate_node(data, schema, "", issues)
    return issues


def parse_catalog_item(data) -> CatalogItem:
    """Validate a canonical record and build the item, or raise."""
    issues = validate_document(data, get_schema("catalog-item"))
    if issues:
        item_id = data.get("id", "") if isinstance(data, dict) else ""
        raise CatalogValidationError(str(item_id), issues)
    return dict_to_item(data)


def require_valid(data, schema_name: str, source: str = "") -> None:
    """Raise ``ConfigError`` when a stored document does not match its schema."""
    issues = validate_document(data, get_schema(schema_name))
    if issues:
        where = f" in {source}" if source else ""
        raise ConfigError(
            f"Invalid {schema_name} document{where}: {'; '.join(issues[:5])}",
            hint="fix or remove the file and re-run",
        )


def _validate_node(data, schema: dict, path: str, issues: list[str]):
    """Recursively validate data against a JSON Schema node."""
    where = path or "/"

    if "oneOf" in schema:
        for option in schema["oneOf"]:
            option_issues: list[str] = []
            _validate_node(data, option, path, option_issues)
            if not option_issues:
                return
        issues.append(f"{where}: value does not match any of the allowed schemas")
        return

    if "const" in schema and data != schema["const"]:
        issues.append(f"{where}: expected '{schema['const']}', got '{data}'")
        return

    schema_type = schema.get("type")

    if schema_type and not _type_matches(data, schema_type):
        issues.append(f"{where}: expected type '{schema_type}', got {type(data).__name__}")
        return  # Don't recurse into wrong types

    if "enum" in schema and data not in schema["enum"]:
        issues.append(f"{where}: value '{data}' not in allowed values {schema['enum']}")

    if schema_type == "string":
        min_len = schema.get("minLength", 0)
        if len(data.strip()) < min_len:
            issues.append(f"{where}: string too short (min {min_len}, got {len(data.strip())})")
        if "pattern" in schema and not re.match(schema["pattern"], data):
            issues.append(f"{where}: string '{data}' does not match pattern '{schema['pattern']}'")

    if schema_type in ("number", "integer"):
        if "minimum" in schema and data < schema["minimum"]:
            issues.append(f"{where}: {data} is below minimum {schema['minimum']}")
        if "maximum" in schema and data > schema["maximum"]:
            issues.append(f"{where}: {data} is above maximum {schema['maximum']}")

    if schema_type == "object":
        for req in schema.get("required", []):
            if req not in data:
                issues.append(f"{where}: missing required property '{req}'")

        props = schema.get("properties", {})
        extra = schema.get("additionalProperties")
        for key, value in data.items():
            if key in props:
                _validate_node(value, props[key], f"{path}.{key}", issues)
            elif isinstance(extra, dict):
                _validate_node(value, extra, f"{path}.{key}", issues)

    if schema_type == "array":
        min_items = schema.get("minItems", 0)
        if len(data) < min_items:
            issues.append(f"{where}: array too short (min {min_items}, got {len(data)})")

        items_schema = schema.get("items")
        if items_schema:
            for i, item in enumerate(data):
                _validate_node(item, items_schema, f"{path}[{i}]", issues)


def _type_matches(data, schema_type: str) -> bool:
    """Check if data matches the expected JSON Schema type."""
    type_map = {
        "string": str,
        "integer": int,
        "number": (int, float),
        "boolean": bool,
        "array": list,
        "object": dict,
        "null": type(None),
    }
    expected = type_map.get(schema_type)
    if expected is None:
        return True
    # bool is an int subclass; never let it satisfy a numeric type
    if schema_type in ("integer", "number") and isinstance(data, bool):
        return False
    return isinstance(data, expected)
