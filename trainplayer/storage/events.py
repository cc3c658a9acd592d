"""
Analytics event sinks.

Events are fire-and-forget: a failing sink is logged and never interrupts
the learner's session.
"""

import json
import logging
from typing import Any, Optional

from .protocols import EventSink, EventType

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("trainplayer.events")


class LoggingEventSink:
    """Write each analytics event as one JSON line on the `trainplayer.events` logger."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def track_event(
        self,
        program_id: str,
        content_id: Optional[str],
        event_type: EventType,
        event_data: Optional[dict[str, Any]] = None,
    ) -> None:
        record = {
            "program_id": program_id,
            "content_id": content_id,
            "event_type": EventType(event_type).value,
            "event_data": event_data or {},
        }
        event_logger.log(self.level, json.dumps(record, ensure_ascii=False, default=str))


def emit_event(
    sink: Optional[EventSink],
    program_id: str,
    content_id: Optional[str],
    event_type: EventType,
    event_data: Optional[dict[str, Any]] = None,
):
    """Send an event without letting sink failures reach the caller."""
    if sink is None:
        return
    try:
        sink.track_event(program_id, content_id, event_type, event_data)
    except Exception:
        logger.exception(f"Event sink failed for {event_type} (program {program_id}, content {content_id})")
