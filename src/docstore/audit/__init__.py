"""Operation log: entry model and append-only sinks.

Usage:
    >>> from docstore.audit import LogEntry, LogSink, MemoryLogSink, StoreLogSink
"""

from docstore.audit.models import LogEntry
from docstore.audit.sinks import LogSink, MemoryLogSink, NullLogSink, StoreLogSink

__all__ = ["LogEntry", "LogSink", "MemoryLogSink", "NullLogSink", "StoreLogSink"]
