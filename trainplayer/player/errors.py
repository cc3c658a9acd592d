"""
Player exceptions.

ConfigurationError is fatal to the navigation step that hit it.
UsageError subclasses are rejected synchronously with state unchanged;
callers show them as dismissible warnings.
"""

from typing import Optional


class TrainingPlayerError(Exception):
    """Base class for all player errors."""


class ConfigurationError(TrainingPlayerError):
    """Malformed program graph (e.g. an empty module inside the sequence)."""


class UsageError(TrainingPlayerError):
    """Operation rejected; no state was changed."""


class LockedContentError(UsageError):
    def __init__(self, module_index: int, content_index: int, content_id: Optional[str] = None):
        self.module_index = module_index
        self.content_index = content_index
        self.content_id = content_id
        super().__init__(
            f"Content at ({module_index}, {content_index}) is locked: "
            "complete the previous item first"
        )


class DuplicateAttemptError(UsageError):
    """A quiz attempt is already in progress for this content."""


class NoActiveAttemptError(UsageError):
    """No quiz attempt is in progress."""


class UnknownQuestionError(UsageError):
    def __init__(self, question_id: str):
        self.question_id = question_id
        super().__init__(f"Question {question_id} does not belong to the active attempt")


class EmptyQuizError(UsageError):
    """A quiz attempt cannot start without questions."""


class AnswerPendingError(UsageError):
    """Another answer's submission has not resolved yet."""


class QuizNotEligibleError(UsageError):
    """The quiz cannot be taken yet (or the content has no quiz)."""


class EnrollmentClosedError(UsageError):
    """The enrollment is completed; no further changes are accepted."""


class ProgramIncompleteError(UsageError):
    """next() at the last item before that item is completed."""
