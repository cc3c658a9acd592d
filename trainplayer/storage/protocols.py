"""Boundary contracts between the player and its persistence/analytics collaborators.

Every call except `EventSink.track_event` is awaited before dependent state
transitions proceed.
"""

from enum import Enum
from typing import Any, Optional, Protocol

from trainplayer.schemas import ContentProgress, Enrollment, Program, QuizAnswer, QuizQuestion, QuizResults


class EventType(str, Enum):
    VIDEO_COMPLETE = "video_complete"
    QUIZ_START = "quiz_start"
    QUIZ_COMPLETE = "quiz_complete"
    PROGRAM_COMPLETE = "program_complete"


class ContentRepository(Protocol):
    """Read access to authored programs."""

    async def fetch_program(self, program_id: str) -> Program:
        """Program with nested modules and content."""
        ...

    async def fetch_questions(self, content_id: str) -> list[QuizQuestion]:
        """Quiz questions (with options) for a content item."""
        ...


class ProgressStore(Protocol):
    """Per-enrollment content progress and quiz attempts."""

    async def get_progress(self, enrollment_id: str) -> list[ContentProgress]:
        ...

    async def update_video_progress(
        self,
        enrollment_id: str,
        content_id: str,
        watch_percentage: float,
        position_seconds: float,
    ) -> None:
        """Persist watch progress; a lower percentage never replaces a higher one."""
        ...

    async def complete_content(
        self,
        enrollment_id: str,
        content_id: str,
        quiz_score: Optional[int] = None,
    ) -> None:
        ...

    async def start_quiz_attempt(self, enrollment_id: str, content_id: str) -> str:
        """Create an attempt and return its id."""
        ...

    async def submit_quiz_answer(self, attempt_id: str, question_id: str, answer: QuizAnswer) -> None:
        ...

    async def complete_quiz_attempt(self, attempt_id: str, results: QuizResults) -> None:
        ...

    async def abandon_quiz_attempt(self, attempt_id: str) -> None:
        ...


class EnrollmentStore(Protocol):
    async def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        ...

    async def start_enrollment(self, enrollment_id: str) -> None:
        """Idempotent: never resets an enrollment that already started."""
        ...

    async def complete_enrollment(self, enrollment_id: str, final_score: float) -> None:
        ...


class EventSink(Protocol):
    """Fire-and-forget analytics."""

    def track_event(
        self,
        program_id: str,
        content_id: Optional[str],
        event_type: EventType,
        event_data: Optional[dict[str, Any]] = None,
    ) -> None:
        ...
