"""
TrainPlayer Storage - Collaborator contracts and reference adapters.

This module provides:
- Protocols for the content repository, progress/enrollment stores and event sink
- SQLite implementations of the repository and stores
- LoggingEventSink for analytics events
"""

from .protocols import (
    ContentRepository,
    ProgressStore,
    EnrollmentStore,
    EventSink,
    EventType,
)

from .sqlite import (
    SQLiteContentRepository,
    SQLiteProgressStore,
    create_content_database,
    save_program,
)

from .events import LoggingEventSink, emit_event

__all__ = [
    # Protocols
    "ContentRepository",
    "ProgressStore",
    "EnrollmentStore",
    "EventSink",
    "EventType",
    # SQLite
    "SQLiteContentRepository",
    "SQLiteProgressStore",
    "create_content_database",
    "save_program",
    # Events
    "LoggingEventSink",
    "emit_event",
]
