"""Client-side filter, sort and pagination over collection records.

Pure logic -- no I/O.  Collections read their records in full and then
compose these helpers: filter (``filter_records``), sort
(``sort_records``), slice (``paginate``) and shape (``strip_fields`` /
``project_fields``).

Usage:
    from docstore.collection.query import Where, OrderBy, filter_records, sort_records

    rows = filter_records(rows, [
        Where(field="payment_status", operator="==", value="paid"),
        Where(field="number_of_seats", operator=">=", value=2),
    ])
    rows = sort_records(rows, OrderBy(field="booking_date", direction="desc"))
"""

import functools
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from docstore.errors import FieldError, UnsupportedOperatorError


class Operator(str, Enum):
    """The fixed set of filter operators."""

    EQ = "=="
    NE = "!="
    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    IN = "in"
    NOT_IN = "not-in"
    ARRAY_CONTAINS = "array-contains"
    ARRAY_CONTAINS_ANY = "array-contains-any"


def resolve_operator(operator: str | Operator) -> Operator:
    """Map an operator string onto ``Operator``.

    Raises:
        UnsupportedOperatorError: If *operator* is not in the fixed set.
    """
    try:
        return Operator(operator)
    except ValueError:
        raise UnsupportedOperatorError(str(operator)) from None


class Where(BaseModel):
    """One filter predicate: ``record[field] <operator> value``.

    The operator is kept as given and resolved when the filter runs, so
    an unsupported operator surfaces as ``UnsupportedOperatorError``.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    operator: str
    value: Any = None


class OrderBy(BaseModel):
    """Sort key and direction.  Defaults to oldest-first by ``created_at``."""

    model_config = ConfigDict(frozen=True)

    field: str = "created_at"
    direction: Literal["asc", "desc"] = "asc"


class PageOptions(BaseModel):
    """Offset/limit slice.  ``None`` leaves that stage out."""

    offset: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=0)


def _same(a: Any, b: Any) -> bool:
    """Strict equality: ``True`` never equals ``1``."""
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _contains(items: Any, value: Any) -> bool:
    return any(_same(item, value) for item in items)


def compare(operator: Operator, actual: Any, expected: Any) -> bool:
    """Evaluate one operator.

    Range comparisons between incomparable values (``None`` vs ``str``,
    ``str`` vs ``int``) do not match.
    """
    if operator is Operator.EQ:
        return _same(actual, expected)
    if operator is Operator.NE:
        return not _same(actual, expected)
    if operator is Operator.IN:
        return isinstance(expected, list | tuple) and _contains(expected, actual)
    if operator is Operator.NOT_IN:
        return isinstance(expected, list | tuple) and not _contains(expected, actual)
    if operator is Operator.ARRAY_CONTAINS:
        return isinstance(actual, list | tuple) and _contains(actual, expected)
    if operator is Operator.ARRAY_CONTAINS_ANY:
        return (
            isinstance(actual, list | tuple)
            and isinstance(expected, list | tuple)
            and any(_contains(actual, v) for v in expected)
        )
    try:
        if operator is Operator.LT:
            return actual < expected
        if operator is Operator.GT:
            return actual > expected
        if operator is Operator.LE:
            return actual <= expected
        return actual >= expected
    except TypeError:
        return False


def coerce_where(where: Where | Mapping[str, Any]) -> Where:
    """Accept ``Where`` instances or plain ``{"field", "operator", "value"}`` dicts."""
    if isinstance(where, Where):
        return where
    return Where.model_validate(where)


def filter_records(
    records: Iterable[Mapping[str, Any]],
    wheres: Sequence[Where | Mapping[str, Any]],
) -> list[dict]:
    """Keep records matching every predicate (logical AND).

    Operators are resolved before any record is inspected.

    Raises:
        UnsupportedOperatorError: If a predicate uses an unknown operator.
        FieldError: If a predicate's field is missing from a record.  The
            whole call fails; no partial result is returned.
    """
    predicates = [
        (w.field, resolve_operator(w.operator), w.value)
        for w in (coerce_where(w) for w in wheres)
    ]
    result: list[dict] = []
    for record in records:
        keep = True
        for field, operator, value in predicates:
            if field not in record:
                raise FieldError(field)
            if not compare(operator, record[field], value):
                keep = False
                break
        if keep:
            result.append(dict(record))
    return result


def sort_records(
    records: Iterable[Mapping[str, Any]],
    order_by: OrderBy | Mapping[str, Any] | None = None,
) -> list[dict]:
    """Stable three-way sort on one field.

    Raises:
        FieldError: If a compared record lacks the sort field.
    """
    if order_by is None:
        order_by = OrderBy()
    elif not isinstance(order_by, OrderBy):
        order_by = OrderBy.model_validate(order_by)
    field = order_by.field
    sign = 1 if order_by.direction == "asc" else -1

    def _cmp(a: Mapping[str, Any], b: Mapping[str, Any]) -> int:
        if field not in a or field not in b:
            raise FieldError(field)
        try:
            if a[field] < b[field]:
                return -sign
            if a[field] > b[field]:
                return sign
        except TypeError:
            pass
        return 0

    return [dict(r) for r in sorted(records, key=functools.cmp_to_key(_cmp))]


def paginate(
    records: Sequence[dict],
    options: PageOptions | Mapping[str, Any] | None = None,
) -> list[dict]:
    """Apply offset (skip), then limit (take)."""
    if options is None:
        return list(records)
    if not isinstance(options, PageOptions):
        options = PageOptions.model_validate(options)
    result = list(records)
    if options.offset is not None:
        result = result[options.offset:]
    if options.limit is not None:
        result = result[:options.limit]
    return result


def page(records: Sequence[dict], page: int = 1, per_page: int = 10) -> list[dict]:
    """1-based page slice, e.g. ``page(rows, 2, 10)`` is rows 10..19."""
    if page < 1 or per_page < 1:
        raise ValueError("page and per_page must be >= 1")
    start = (page - 1) * per_page
    return list(records[start:start + per_page])


def strip_fields(records: Iterable[Mapping[str, Any]], fields: Iterable[str]) -> list[dict]:
    """Remove *fields* entirely from copies of each record."""
    drop = set(fields)
    return [{k: v for k, v in r.items() if k not in drop} for r in records]


def project_fields(records: Iterable[Mapping[str, Any]], fields: Sequence[str]) -> list[dict]:
    """Keep only *fields*; fields a record lacks are omitted, not defaulted."""
    return [{f: r[f] for f in fields if f in r} for r in records]
