"""
Progress tracking schemas for TrainPlayer.

Defines Pydantic models for learner state including:
- Per-content progress (watch percentage, quiz score)
- Quiz attempts, answers and results
- Enrollment state
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class ContentStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class EnrollmentStatus(str, Enum):
    ENROLLED = "enrolled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ContentProgress(BaseModel):
    enrollment_id: str
    content_id: str
    status: ContentStatus = ContentStatus.NOT_STARTED
    watch_percentage: float = Field(default=0.0, ge=0, le=100)  # furthest point reached
    last_position_seconds: float = Field(default=0.0, ge=0)
    quiz_attempts: int = Field(default=0, ge=0)
    quiz_score: Optional[int] = Field(default=None, ge=0, le=100)  # best completed attempt
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.status == ContentStatus.COMPLETED


class QuizAnswer(BaseModel):
    question_id: str
    selected_options: Optional[list[str]] = None
    text_answer: Optional[str] = None
    is_correct: bool = False
    points_earned: int = 0
    time_taken_seconds: float = 0.0
    feedback: list[str] = []  # feedback_text of the selected options


class QuizAttempt(BaseModel):
    id: str
    enrollment_id: str
    content_id: str
    attempt_number: int = Field(default=1, ge=1)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime
    completed_at: Optional[datetime] = None
    answers: dict[str, QuizAnswer] = {}


class QuizResults(BaseModel):
    total_points: int
    earned_points: int
    score: int = Field(..., ge=0, le=100)  # rounded integer percentage
    passed: bool
    answers: dict[str, QuizAnswer]
    weak_topics: list[str] = []
    time_taken_seconds: float = 0.0
    attempt_number: int = 1
    attempts_remaining: int = 0


class Enrollment(BaseModel):
    id: str
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    final_score: Optional[float] = None
