"""Schema node types for collection records.

A schema field is one of three shapes, modelled as a closed union
of frozen pydantic models tagged by their ``node`` field:

- ``Primitive``: a single ``string``, ``number`` or ``boolean`` value.
- ``ArrayOf``: a list whose every element is of one primitive kind.
- ``ObjectOf``: a nested mapping of field name to schema node.

Schemas are usually written in the compact declarative form used by
collection definitions and TOML config, then parsed once:

    >>> schema = parse_schema({
    ...     "name": "string",
    ...     "seats": "number",
    ...     "tags": ["string"],
    ...     "address": {"city": "string", "zip": "string"},
    ... })
    >>> schema.fields["tags"]
    ArrayOf(node='array', kind=<FieldKind.STRING: 'string'>)
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class FieldKind(str, Enum):
    """Primitive value kinds a schema can declare."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"


class Primitive(BaseModel):
    """A single primitive value."""

    model_config = ConfigDict(frozen=True)

    node: Literal["primitive"] = "primitive"
    kind: FieldKind


class ArrayOf(BaseModel):
    """A list of primitive values of one kind."""

    model_config = ConfigDict(frozen=True)

    node: Literal["array"] = "array"
    kind: FieldKind


class ObjectOf(BaseModel):
    """A nested object.  Also used as the root schema of a collection."""

    model_config = ConfigDict(frozen=True)

    node: Literal["object"] = "object"
    fields: dict[str, "SchemaNode"] = Field(default_factory=dict)

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def names(self) -> list[str]:
        """Field names in declaration order."""
        return list(self.fields.keys())


SchemaNode = Primitive | ArrayOf | ObjectOf

ObjectOf.model_rebuild()


# Fields every collection carries, ahead of caller-declared ones
BASE_FIELDS: dict[str, str] = {
    "id": "string",
    "created_at": "string",
    "updated_at": "string",
}


def _parse_kind(value: str, path: str) -> FieldKind:
    try:
        return FieldKind(value)
    except ValueError:
        allowed = ", ".join(k.value for k in FieldKind)
        raise ValueError(
            f"Unknown field kind '{value}' for '{path}' (expected one of: {allowed})"
        ) from None


def parse_node(spec: Any, path: str = "") -> Primitive | ArrayOf | ObjectOf:
    """Parse one compact field declaration into a schema node.

    Args:
        spec: ``"string"``/``"number"``/``"boolean"``, a one-element list
            such as ``["string"]``, a mapping of nested declarations, or an
            already-built schema node.
        path: Dotted field path, used in error messages.

    Returns:
        The parsed schema node.

    Raises:
        ValueError: If the declaration is not one of the accepted shapes.
    """
    if isinstance(spec, Primitive | ArrayOf | ObjectOf):
        return spec
    if isinstance(spec, FieldKind):
        return Primitive(kind=spec)
    if isinstance(spec, str):
        return Primitive(kind=_parse_kind(spec, path))
    if isinstance(spec, list | tuple):
        if len(spec) != 1 or not isinstance(spec[0], str):
            raise ValueError(
                f"Array field '{path}' must declare exactly one primitive kind, "
                f"e.g. [\"string\"]"
            )
        return ArrayOf(kind=_parse_kind(spec[0], path))
    if isinstance(spec, Mapping):
        return ObjectOf(
            fields={
                name: parse_node(child, f"{path}.{name}" if path else name)
                for name, child in spec.items()
            }
        )
    raise ValueError(f"Invalid schema declaration for '{path}': {spec!r}")


def parse_schema(spec: Mapping[str, Any]) -> ObjectOf:
    """Build the effective schema of a collection.

    The base fields (``id``, ``created_at``, ``updated_at``) always come
    first and cannot be redeclared by the caller.
    """
    merged: dict[str, Any] = dict(BASE_FIELDS)
    for name, child in spec.items():
        if name not in BASE_FIELDS:
            merged[name] = child
    node = parse_node(merged)
    assert isinstance(node, ObjectOf)
    return node


def to_spec(node: Primitive | ArrayOf | ObjectOf) -> Any:
    """Render a schema node back into its compact declarative form."""
    if isinstance(node, Primitive):
        return node.kind.value
    if isinstance(node, ArrayOf):
        return [node.kind.value]
    return {name: to_spec(child) for name, child in node.fields.items()}
