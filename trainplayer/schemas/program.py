"""
Program content schemas for TrainPlayer.

Defines Pydantic models for the read-only training structure:
- Programs made of ordered modules
- Modules made of ordered content items (video, document, ...)
- Quiz questions with their answer options
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional
from enum import Enum


def validate_unique_order(items: list, kind: str) -> list:
    """Shared check: sequence_order must be unique among siblings."""
    seen = set()
    for item in items:
        if item.sequence_order in seen:
            raise ValueError(f'Duplicate {kind} sequence_order: {item.sequence_order}')
        seen.add(item.sequence_order)
    return items


class ContentType(str, Enum):
    VIDEO = "video"
    DOCUMENT = "document"
    INTERACTIVE = "interactive"
    QUIZ_ONLY = "quiz_only"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    MULTI_SELECT = "multi_select"
    SHORT_ANSWER = "short_answer"


# -----------------------------------------------------------------------------
# Quiz questions
# -----------------------------------------------------------------------------

class QuizOption(BaseModel):
    id: str
    option_text: str
    is_correct: bool = False
    feedback_text: Optional[str] = None  # shown after the option is chosen
    sequence_order: int = 0


class QuizQuestion(BaseModel):
    id: str
    question_text: str
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    points: int = Field(default=1, gt=0)
    topic_id: Optional[str] = None       # used for weak-topic detection
    options: list[QuizOption] = []
    explanation: Optional[str] = None
    content_id: Optional[str] = None
    sequence_order: int = 0
    is_active: bool = True

    @property
    def correct_option_ids(self) -> set[str]:
        return {option.id for option in self.options if option.is_correct}

    def option(self, option_id: str) -> Optional[QuizOption]:
        for candidate in self.options:
            if candidate.id == option_id:
                return candidate
        return None


# -----------------------------------------------------------------------------
# Program structure
# -----------------------------------------------------------------------------

class Content(BaseModel):
    id: str
    title: str
    sequence_order: int                  # unique within module
    content_type: ContentType = ContentType.VIDEO
    video_url: Optional[str] = None
    video_duration_seconds: Optional[int] = None
    thumbnail_url: Optional[str] = None
    min_watch_percentage: float = Field(default=90, ge=0, le=100)  # video only
    has_quiz: bool = False
    description: Optional[str] = None
    is_active: bool = True

    @property
    def is_video(self) -> bool:
        return self.content_type == ContentType.VIDEO


class Module(BaseModel):
    """
    Ordered group of content items.

    `is_gateway` is an informational marker; locking never reads it.
    """
    id: str
    title: str
    sequence_order: int                  # unique within program
    is_gateway: bool = False
    description: Optional[str] = None
    is_active: bool = True
    contents: list[Content] = []

    @field_validator('contents')
    @classmethod
    def contents_order_unique(cls, v):
        return validate_unique_order(v, 'content')


class Program(BaseModel):
    """
    Top-level training course.

    Immutable for the duration of a player session; the engine only reads it.
    """
    id: str
    title: str
    description: Optional[str] = None
    program_type: str = "onboarding"
    passing_score: int = Field(default=80, ge=0, le=100)
    max_attempts: int = Field(default=3, ge=1)   # quiz retake ceiling
    is_mandatory: bool = False
    is_active: bool = True
    estimated_duration_minutes: Optional[int] = None
    modules: list[Module] = []

    @field_validator('modules')
    @classmethod
    def modules_order_unique(cls, v):
        return validate_unique_order(v, 'module')
