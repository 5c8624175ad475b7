"""Log entry model for the append-only operation log."""

from pydantic import BaseModel


class LogEntry(BaseModel):
    """One operation log line written by a collection client."""

    timestamp: str
    message: str
    collection: str
