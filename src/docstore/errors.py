"""Exception taxonomy raised by collection clients.

All errors derive from ``DocstoreError`` so callers (an HTTP layer, the
CLI) can translate them into user-facing responses in one place.  None
of these are retried internally.

Usage:
    from docstore.errors import NotFoundError, ValidationError

    try:
        await bookings.update(booking_id, {"number_of_seats": "two"})
    except ValidationError as e:
        print(e.field, e)
    except NotFoundError as e:
        print(f"missing: {e.doc_id}")
"""


class DocstoreError(Exception):
    """Base class for all collection client errors."""

    pass


class ValidationError(DocstoreError):
    """Raised when a record does not satisfy its collection schema."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(DocstoreError):
    """Raised when an operation targets a record id that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Data with ID: {doc_id} not found in {collection}")
        self.collection = collection
        self.doc_id = doc_id


class SchemaError(DocstoreError):
    """Raised when an update patch names a field the schema does not declare."""

    def __init__(self, collection: str, field: str) -> None:
        super().__init__(f"Field {field} is not defined in schema of {collection}")
        self.collection = collection
        self.field = field


class FieldError(DocstoreError):
    """Raised when a filter or sort names a field absent from a record."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Field {field} does not exist in data")
        self.field = field


class RelationError(DocstoreError):
    """Raised when a relation name is not declared on a collection, or its
    target collection is not registered."""

    def __init__(self, collection: str, relation: str, message: str | None = None) -> None:
        super().__init__(message or f"Relation {relation} is not defined on {collection}")
        self.collection = collection
        self.relation = relation


class UnsupportedOperatorError(DocstoreError):
    """Raised when a filter uses an operator outside the supported set."""

    def __init__(self, operator: str) -> None:
        super().__init__(f"Unsupported operator: {operator}")
        self.operator = operator
