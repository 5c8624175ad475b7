"""Schema declaration, validation and defaulting.

Usage:
    >>> from docstore.schema import parse_schema, validate_record
"""

from docstore.schema.fields import (
    BASE_FIELDS,
    ArrayOf,
    FieldKind,
    ObjectOf,
    Primitive,
    SchemaNode,
    parse_node,
    parse_schema,
    to_spec,
)
from docstore.schema.validation import (
    backfill,
    default_for,
    filter_to_schema,
    validate_field,
    validate_record,
)

__all__ = [
    "BASE_FIELDS",
    "ArrayOf",
    "FieldKind",
    "ObjectOf",
    "Primitive",
    "SchemaNode",
    "parse_node",
    "parse_schema",
    "to_spec",
    "backfill",
    "default_for",
    "filter_to_schema",
    "validate_field",
    "validate_record",
]
