"""
Shared fixtures for TrainPlayer tests.

Provides sample programs, SQLite-backed stores on tmp_path, a fake clock,
a recording event sink and a progress store wrapper that can fail on demand.
"""

import asyncio
import inspect

import pytest

from trainplayer.schemas import (
    Content,
    ContentType,
    Module,
    Program,
    QuestionType,
    QuizOption,
    QuizQuestion,
)
from trainplayer.storage import SQLiteContentRepository, SQLiteProgressStore, save_program


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------

def make_question(
    question_id: str,
    points: int = 1,
    correct: tuple[str, ...] = ("a",),
    topic_id: str | None = None,
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE,
    option_ids: tuple[str, ...] = ("a", "b", "c"),
    sequence_order: int = 0,
) -> QuizQuestion:
    return QuizQuestion(
        id=question_id,
        question_text=f"Question {question_id}?",
        question_type=question_type,
        points=points,
        topic_id=topic_id,
        sequence_order=sequence_order,
        options=[
            QuizOption(
                id=option_id,
                option_text=f"Option {option_id}",
                is_correct=option_id in correct,
                sequence_order=i,
            )
            for i, option_id in enumerate(option_ids)
        ],
    )


def make_program(video_has_quiz: bool = False, passing_score: int = 80) -> Program:
    """One module: a welcome video followed by a knowledge check."""
    return Program(
        id="prog-onboarding",
        title="Safety Onboarding",
        passing_score=passing_score,
        max_attempts=3,
        modules=[
            Module(
                id="mod-welcome",
                title="Welcome",
                sequence_order=1,
                is_gateway=True,
                contents=[
                    Content(
                        id="c-video",
                        title="Welcome video",
                        sequence_order=1,
                        content_type=ContentType.VIDEO,
                        video_url="https://cdn.example.com/welcome.mp4",
                        video_duration_seconds=100,
                        min_watch_percentage=90,
                        has_quiz=video_has_quiz,
                    ),
                    Content(
                        id="c-check",
                        title="Knowledge check",
                        sequence_order=2,
                        content_type=ContentType.QUIZ_ONLY,
                        has_quiz=True,
                    ),
                ],
            ),
        ],
    )


def make_questions(video_has_quiz: bool = False) -> dict[str, list[QuizQuestion]]:
    questions = {
        "c-check": [
            make_question("q1", points=5, correct=("a",), topic_id="ppe", sequence_order=1),
            make_question("q2", points=5, correct=("b",), topic_id="ppe", sequence_order=2),
        ],
    }
    if video_has_quiz:
        questions["c-video"] = [
            make_question("vq1", points=1, correct=("c",), sequence_order=1),
        ]
    return questions


# -----------------------------------------------------------------------------
# Test doubles
# -----------------------------------------------------------------------------

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingEventSink:
    def __init__(self):
        self.events = []

    def track_event(self, program_id, content_id, event_type, event_data=None):
        self.events.append((program_id, content_id, event_type, event_data or {}))

    @property
    def types(self) -> list[str]:
        return [event[2].value for event in self.events]


class FlakyProgressStore:
    """
    Wrap a store, record async calls and fail chosen calls on demand.

    `fail_next("submit_quiz_answer")` makes the next call raise ConnectionError.
    Every call yields to the event loop first, like a networked store.
    """

    def __init__(self, inner):
        self.inner = inner
        self.calls: list[tuple[str, tuple]] = []
        self.failures: dict[str, int] = {}

    def fail_next(self, method: str, times: int = 1):
        self.failures[method] = self.failures.get(method, 0) + times

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if not inspect.iscoroutinefunction(attr):
            return attr

        async def wrapper(*args, **kwargs):
            await asyncio.sleep(0)
            if self.failures.get(name, 0) > 0:
                self.failures[name] -= 1
                raise ConnectionError(f"{name} unavailable")
            self.calls.append((name, args))
            return await attr(*args, **kwargs)

        return wrapper


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def program() -> Program:
    return make_program()


@pytest.fixture
def content_db(tmp_path):
    path = tmp_path / "programs.db"
    save_program(path, make_program(), make_questions())
    return path


@pytest.fixture
def repository(content_db) -> SQLiteContentRepository:
    return SQLiteContentRepository(content_db)


@pytest.fixture
def progress_store(tmp_path) -> SQLiteProgressStore:
    return SQLiteProgressStore(tmp_path / "progress.db")


@pytest.fixture
def flaky_store(progress_store) -> FlakyProgressStore:
    return FlakyProgressStore(progress_store)


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
