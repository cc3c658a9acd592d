"""
TrainPlayer Player - Runtime components for delivering a training program.

This module provides:
- ContentGraph: Ordered module/content structure
- VideoWatchMonitor: Watch percentage and one-time completion
- QuizEngine: Quiz attempts, scoring and weak topics
- NavigationController: Content locking and cursor movement
- EnrollmentLifecycle: Enrollment start, progress and completion
- TrainingSession: Coordinator used by the player UI
"""

from .errors import (
    TrainingPlayerError,
    ConfigurationError,
    UsageError,
    LockedContentError,
    DuplicateAttemptError,
    NoActiveAttemptError,
    UnknownQuestionError,
    EmptyQuizError,
    AnswerPendingError,
    QuizNotEligibleError,
    EnrollmentClosedError,
    ProgramIncompleteError,
)

from .graph import ContentGraph, Position

from .video import VideoWatchMonitor, WatchSample, WriteThrottle

from .quiz import (
    QuizEngine,
    QuizState,
    is_answer_correct,
    score_answer,
    compute_score,
    detect_weak_topics,
    build_results,
    round_half_up,
)

from .navigator import (
    NavigationController,
    NavigationAction,
    NavigationOutcome,
    NavigationResult,
    NavigationItem,
    NavigationModule,
    ItemState,
)

from .enrollment import EnrollmentLifecycle, average_quiz_score

from .session import TrainingSession, create_session

__all__ = [
    # Errors
    "TrainingPlayerError",
    "ConfigurationError",
    "UsageError",
    "LockedContentError",
    "DuplicateAttemptError",
    "NoActiveAttemptError",
    "UnknownQuestionError",
    "EmptyQuizError",
    "AnswerPendingError",
    "QuizNotEligibleError",
    "EnrollmentClosedError",
    "ProgramIncompleteError",
    # Graph
    "ContentGraph",
    "Position",
    # Video
    "VideoWatchMonitor",
    "WatchSample",
    "WriteThrottle",
    # Quiz
    "QuizEngine",
    "QuizState",
    "is_answer_correct",
    "score_answer",
    "compute_score",
    "detect_weak_topics",
    "build_results",
    "round_half_up",
    # Navigator
    "NavigationController",
    "NavigationAction",
    "NavigationOutcome",
    "NavigationResult",
    "NavigationItem",
    "NavigationModule",
    "ItemState",
    # Enrollment
    "EnrollmentLifecycle",
    "average_quiz_score",
    # Session
    "TrainingSession",
    "create_session",
]
