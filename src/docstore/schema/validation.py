"""Record validation, defaulting and schema filtering.

Pure logic over the schema node union -- no I/O.  Validation is a
"required subset" check: every declared field must be present and of
the declared kind, extra fields are tolerated (and later dropped by
``filter_to_schema`` before anything is persisted).

Usage:
    from docstore.schema.fields import parse_schema
    from docstore.schema.validation import validate_record, backfill

    schema = parse_schema({"name": "string", "seats": "number"})
    validate_record(schema, {"id": "1", "created_at": "...",
                             "updated_at": "...", "name": "A", "seats": 2})

    healed, changed = backfill(schema, {"id": "1"})
"""

from collections.abc import Collection, Mapping
from typing import Any

from docstore.errors import ValidationError
from docstore.schema.fields import ArrayOf, FieldKind, ObjectOf, Primitive, SchemaNode


def type_name(value: Any) -> str:
    """Name the runtime kind of *value* for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list | tuple):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def is_kind(kind: FieldKind, value: Any) -> bool:
    """Exact kind match.  ``bool`` is never a number."""
    if kind is FieldKind.STRING:
        return isinstance(value, str)
    if kind is FieldKind.BOOLEAN:
        return isinstance(value, bool)
    return isinstance(value, int | float) and not isinstance(value, bool)


def validate_field(node: SchemaNode, value: Any, key: str) -> None:
    """Validate a single value against its schema node.

    Raises:
        ValidationError: If the value does not match, naming *key* and the
            expected vs. actual kind.
    """
    if isinstance(node, Primitive):
        if not is_kind(node.kind, value):
            raise ValidationError(
                f"Invalid type for field {key}: expected {node.kind.value}, "
                f"got {type_name(value)}",
                field=key,
            )
    elif isinstance(node, ArrayOf):
        if not isinstance(value, list | tuple):
            raise ValidationError(
                f"Invalid type for field {key}: expected array, got {type_name(value)}",
                field=key,
            )
        for item in value:
            if not is_kind(node.kind, item):
                raise ValidationError(
                    f"Invalid type for item in field {key}: expected "
                    f"{node.kind.value}, got {type_name(item)}",
                    field=key,
                )
    else:
        if not isinstance(value, Mapping):
            raise ValidationError(
                f"Invalid type for field {key}: expected object, got {type_name(value)}",
                field=key,
            )
        validate_record(node, value, prefix=f"{key}.")


def validate_record(
    schema: ObjectOf,
    record: Mapping[str, Any],
    nullable: Collection[str] = (),
    prefix: str = "",
) -> None:
    """Validate *record* against every field of *schema*.

    Args:
        schema: Object schema (a collection's effective schema or a
            nested object node).
        record: Candidate record.
        nullable: Top-level field names that may hold ``None``.  Used for
            foreign keys that a relation nulls out on delete.
        prefix: Dotted path of the enclosing object, for error messages.

    Raises:
        ValidationError: On the first missing or mistyped field.
    """
    for name, node in schema.fields.items():
        key = f"{prefix}{name}"
        if name not in record:
            raise ValidationError(f"Missing required field: {key}", field=key)
        value = record[name]
        if value is None and name in nullable:
            continue
        validate_field(node, value, key)


def default_for(node: SchemaNode) -> Any:
    """Type-appropriate default: ``""``, ``0``, ``False``, ``[]`` or a
    recursively defaulted object."""
    if isinstance(node, Primitive):
        if node.kind is FieldKind.STRING:
            return ""
        if node.kind is FieldKind.NUMBER:
            return 0
        return False
    if isinstance(node, ArrayOf):
        return []
    return {name: default_for(child) for name, child in node.fields.items()}


def backfill(schema: ObjectOf, record: Mapping[str, Any]) -> tuple[dict[str, Any], bool]:
    """Fill every top-level schema field missing from *record*.

    Returns:
        Tuple of (healed copy of the record, whether anything was added).
    """
    healed = dict(record)
    changed = False
    for name, node in schema.fields.items():
        if name not in healed:
            healed[name] = default_for(node)
            changed = True
    return healed, changed


def filter_to_schema(schema: ObjectOf, record: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only the top-level fields the schema declares."""
    return {k: v for k, v in record.items() if k in schema.fields}
