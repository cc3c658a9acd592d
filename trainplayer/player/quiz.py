"""
QuizEngine - Quiz attempt lifecycle and scoring.

Provides:
- Per-question scoring for every question type
- Attempt-level aggregation (points, rounded score, pass/fail)
- Weak-topic detection for remediation
- One active attempt per content item at a time

Scoring functions are pure so results can be recomputed from the
question set and the recorded answers alone.
"""

import logging
import math
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional

from trainplayer.schemas import (
    AttemptStatus,
    QuestionType,
    QuizAnswer,
    QuizAttempt,
    QuizQuestion,
    QuizResults,
)

from .errors import (
    AnswerPendingError,
    DuplicateAttemptError,
    EmptyQuizError,
    NoActiveAttemptError,
    UnknownQuestionError,
)

logger = logging.getLogger(__name__)

DEFAULT_WEAK_TOPIC_THRESHOLD = 0.7
DEFAULT_SHORT_ANSWER_MIN_LENGTH = 10


class QuizState(str, Enum):
    NOT_STARTED = "not_started"
    ATTEMPT_IN_PROGRESS = "attempt_in_progress"
    ANSWER_PENDING = "answer_pending"   # answer recorded, submission not yet resolved
    SUBMITTED = "submitted"             # last answer persisted, next question current
    COMPLETE = "complete"
    ABANDONED = "abandoned"


ACTIVE_STATES = {QuizState.ATTEMPT_IN_PROGRESS, QuizState.ANSWER_PENDING, QuizState.SUBMITTED}


# -----------------------------------------------------------------------------
# Scoring
# -----------------------------------------------------------------------------

def round_half_up(value: float) -> int:
    """Round a non-negative value to the nearest integer, .5 going up."""
    return int(math.floor(value + 0.5))


def is_answer_correct(
    question: QuizQuestion,
    selected_options: Optional[list[str]] = None,
    text_answer: Optional[str] = None,
    short_answer_min_length: int = DEFAULT_SHORT_ANSWER_MIN_LENGTH,
) -> bool:
    """
    Apply the correctness rule for the question's type.

    short_answer is a length heuristic only (trimmed text longer than
    `short_answer_min_length`); it is not semantic grading.
    """
    selected = selected_options or []
    if question.question_type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE):
        if len(selected) != 1:
            return False
        option = question.option(selected[0])
        return option is not None and option.is_correct
    elif question.question_type == QuestionType.MULTI_SELECT:
        return len(selected) == len(set(selected)) and set(selected) == question.correct_option_ids
    elif question.question_type == QuestionType.SHORT_ANSWER:
        return len((text_answer or "").strip()) > short_answer_min_length
    return False


def score_answer(
    question: QuizQuestion,
    selected_options: Optional[list[str]] = None,
    text_answer: Optional[str] = None,
    time_taken_seconds: float = 0.0,
    short_answer_min_length: int = DEFAULT_SHORT_ANSWER_MIN_LENGTH,
) -> QuizAnswer:
    """Score one answer; points are all-or-nothing."""
    is_correct = is_answer_correct(question, selected_options, text_answer, short_answer_min_length)
    feedback = []
    for option_id in selected_options or []:
        option = question.option(option_id)
        if option and option.feedback_text:
            feedback.append(option.feedback_text)
    return QuizAnswer(
        question_id=question.id,
        selected_options=list(selected_options) if selected_options is not None else None,
        text_answer=text_answer,
        is_correct=is_correct,
        points_earned=question.points if is_correct else 0,
        time_taken_seconds=time_taken_seconds,
        feedback=feedback,
    )


def unanswered(question: QuizQuestion) -> QuizAnswer:
    """Answer recorded for a question left blank when the attempt completes."""
    return QuizAnswer(question_id=question.id, is_correct=False, points_earned=0)


def compute_score(earned_points: int, total_points: int) -> int:
    """Rounded integer percentage; a zero-point quiz scores 0."""
    if total_points <= 0:
        return 0
    return round_half_up(earned_points / total_points * 100)


def detect_weak_topics(
    questions: Iterable[QuizQuestion],
    answers: dict[str, QuizAnswer],
    threshold: float = DEFAULT_WEAK_TOPIC_THRESHOLD,
) -> list[str]:
    """
    Topics whose correct-answer ratio falls below `threshold`.

    Questions without a topic are skipped; a missing answer counts as
    incorrect. Topics are returned in order of first appearance.
    """
    totals: dict[str, list[int]] = {}
    for question in questions:
        if not question.topic_id:
            continue
        counts = totals.setdefault(question.topic_id, [0, 0])
        answer = answers.get(question.id)
        if answer is not None and answer.is_correct:
            counts[0] += 1
        counts[1] += 1
    return [
        topic_id for topic_id, (correct, total) in totals.items()
        if correct / total < threshold
    ]


def build_results(
    questions: list[QuizQuestion],
    answers: dict[str, QuizAnswer],
    passing_score: int,
    time_taken_seconds: float = 0.0,
    attempt_number: int = 1,
    max_attempts: int = 1,
    weak_topic_threshold: float = DEFAULT_WEAK_TOPIC_THRESHOLD,
) -> QuizResults:
    """Aggregate per-question answers into attempt results."""
    total_points = sum(q.points for q in questions)
    earned_points = sum(answers[q.id].points_earned for q in questions if q.id in answers)
    score = compute_score(earned_points, total_points)
    return QuizResults(
        total_points=total_points,
        earned_points=earned_points,
        score=score,
        passed=score >= passing_score,
        answers=answers,
        weak_topics=detect_weak_topics(questions, answers, weak_topic_threshold),
        time_taken_seconds=time_taken_seconds,
        attempt_number=attempt_number,
        attempts_remaining=max(max_attempts - attempt_number, 0),
    )


# -----------------------------------------------------------------------------
# Attempt lifecycle
# -----------------------------------------------------------------------------

class QuizEngine:
    """
    Own the quiz attempts of one content item.

    State flow: NOT_STARTED -> ATTEMPT_IN_PROGRESS -> ANSWER_PENDING ->
    SUBMITTED -> ... -> COMPLETE. A completed or abandoned engine may start
    the next attempt; retake limits are reported, not enforced.
    """

    def __init__(
        self,
        content_id: str,
        questions: Iterable[QuizQuestion],
        passing_score: int,
        max_attempts: int,
        weak_topic_threshold: float = DEFAULT_WEAK_TOPIC_THRESHOLD,
        short_answer_min_length: int = DEFAULT_SHORT_ANSWER_MIN_LENGTH,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.content_id = content_id
        self.questions = sorted(
            (q for q in questions if q.is_active),
            key=lambda q: q.sequence_order,
        )
        self._questions_by_id = {q.id: q for q in self.questions}
        self.passing_score = passing_score
        self.max_attempts = max_attempts
        self.weak_topic_threshold = weak_topic_threshold
        self.short_answer_min_length = short_answer_min_length
        self._clock = clock

        self.state = QuizState.NOT_STARTED
        self.attempt: Optional[QuizAttempt] = None
        self.results: Optional[QuizResults] = None
        self._pending_question_id: Optional[str] = None
        self._attempt_started: float = 0.0
        self._question_started: float = 0.0

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def attempt_number(self) -> int:
        return self.attempt.attempt_number if self.attempt else 0

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_attempts - self.attempt_number, 0)

    @property
    def pending_question_id(self) -> Optional[str]:
        return self._pending_question_id

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        """The pending question, else the first one without a recorded answer."""
        if not self.is_active:
            return None
        if self._pending_question_id is not None:
            return self._questions_by_id[self._pending_question_id]
        for question in self.questions:
            if question.id not in self.attempt.answers:
                return question
        return None

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def check_can_start(self):
        """Raise if a new attempt may not start now."""
        if self.is_active:
            raise DuplicateAttemptError(
                f"Attempt {self.attempt.id} is already in progress for content {self.content_id}"
            )
        if not self.questions:
            raise EmptyQuizError(f"Content {self.content_id} has no active quiz questions")

    def start(self, attempt_id: str, enrollment_id: str, attempt_number: Optional[int] = None) -> QuizAttempt:
        """Begin a new attempt (the store has already issued `attempt_id`)."""
        self.check_can_start()
        number = attempt_number if attempt_number is not None else self.attempt_number + 1
        self.attempt = QuizAttempt(
            id=attempt_id,
            enrollment_id=enrollment_id,
            content_id=self.content_id,
            attempt_number=number,
            started_at=datetime.now(),
        )
        self.results = None
        self._pending_question_id = None
        self._attempt_started = self._clock()
        self._question_started = self._attempt_started
        self.state = QuizState.ATTEMPT_IN_PROGRESS
        logger.info(f"Quiz attempt {attempt_id} started for {self.content_id} (attempt {number}/{self.max_attempts})")
        return self.attempt

    def record_answer(
        self,
        question_id: str,
        selected_options: Optional[list[str]] = None,
        text_answer: Optional[str] = None,
    ) -> QuizAnswer:
        """
        Score and record an answer; the attempt waits in ANSWER_PENDING
        until `confirm_answer` is called for the same question.

        Re-recording the pending question replaces its answer (retry after a
        failed submission).
        """
        if not self.is_active:
            raise NoActiveAttemptError(f"No quiz attempt in progress for content {self.content_id}")
        question = self._questions_by_id.get(question_id)
        if question is None:
            raise UnknownQuestionError(question_id)
        if self._pending_question_id not in (None, question_id):
            raise AnswerPendingError(
                f"Answer to question {self._pending_question_id} has not been submitted yet"
            )

        answer = score_answer(
            question,
            selected_options=selected_options,
            text_answer=text_answer,
            time_taken_seconds=self._clock() - self._question_started,
            short_answer_min_length=self.short_answer_min_length,
        )
        self.attempt.answers[question_id] = answer
        self._pending_question_id = question_id
        self.state = QuizState.ANSWER_PENDING
        return answer

    def confirm_answer(self, question_id: str):
        """Mark the pending answer as submitted and make the next question current."""
        if self._pending_question_id != question_id:
            raise UnknownQuestionError(question_id)
        self._pending_question_id = None
        self._question_started = self._clock()
        self.state = QuizState.SUBMITTED

    def complete(self) -> QuizResults:
        """
        Score the attempt.

        Unanswered questions count as incorrect with zero points.
        """
        if not self.is_active:
            raise NoActiveAttemptError(f"No quiz attempt in progress for content {self.content_id}")
        if self._pending_question_id is not None:
            raise AnswerPendingError(
                f"Answer to question {self._pending_question_id} has not been submitted yet"
            )

        answers = dict(self.attempt.answers)
        for question in self.questions:
            if question.id not in answers:
                answers[question.id] = unanswered(question)

        results = build_results(
            self.questions,
            answers,
            passing_score=self.passing_score,
            time_taken_seconds=self._clock() - self._attempt_started,
            attempt_number=self.attempt.attempt_number,
            max_attempts=self.max_attempts,
            weak_topic_threshold=self.weak_topic_threshold,
        )
        self.attempt.answers = answers
        self.attempt.status = AttemptStatus.COMPLETED
        self.attempt.completed_at = datetime.now()
        self.results = results
        self.state = QuizState.COMPLETE
        logger.info(
            f"Quiz attempt {self.attempt.id} completed: {results.score}% "
            f"({'passed' if results.passed else 'failed'}, pass mark {self.passing_score}%)"
        )
        return results

    def abandon(self):
        """Drop the active attempt; answers already recorded are kept on it."""
        if not self.is_active:
            return
        self.attempt.status = AttemptStatus.ABANDONED
        self._pending_question_id = None
        self.state = QuizState.ABANDONED
        logger.info(f"Quiz attempt {self.attempt.id} abandoned with {len(self.attempt.answers)} answers")
