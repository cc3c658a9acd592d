"""
TrainPlayer Schemas - Pydantic models for the training delivery engine.

This module exports all schema classes for:
- Program: programs, modules, content items, quiz questions
- Progress: content progress, quiz attempts and results, enrollments
"""

# Program schemas
from .program import (
    ContentType,
    QuestionType,
    QuizOption,
    QuizQuestion,
    Content,
    Module,
    Program,
    validate_unique_order,
)

# Progress schemas
from .progress import (
    ContentStatus,
    AttemptStatus,
    EnrollmentStatus,
    ContentProgress,
    QuizAnswer,
    QuizAttempt,
    QuizResults,
    Enrollment,
)

__all__ = [
    # Program
    'ContentType',
    'QuestionType',
    'QuizOption',
    'QuizQuestion',
    'Content',
    'Module',
    'Program',
    'validate_unique_order',
    # Progress
    'ContentStatus',
    'AttemptStatus',
    'EnrollmentStatus',
    'ContentProgress',
    'QuizAnswer',
    'QuizAttempt',
    'QuizResults',
    'Enrollment',
]
