"""
Schema validation tests for TrainPlayer.

Tests the Pydantic models to ensure they validate correctly.
"""

import pytest

from trainplayer.schemas import (
    # Program
    Content,
    ContentType,
    Module,
    Program,
    QuestionType,
    QuizOption,
    QuizQuestion,
    # Progress
    ContentProgress,
    ContentStatus,
    QuizResults,
)


class TestProgramSchemas:
    """Test program structure schemas."""

    def test_program_defaults(self):
        program = Program(id="p1", title="Onboarding")
        assert program.passing_score == 80
        assert program.max_attempts == 3
        assert program.program_type == "onboarding"
        assert program.modules == []

    def test_passing_score_bounds(self):
        with pytest.raises(ValueError):
            Program(id="p1", title="Onboarding", passing_score=101)
        with pytest.raises(ValueError):
            Program(id="p1", title="Onboarding", passing_score=-1)

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            Program(id="p1", title="Onboarding", max_attempts=0)

    def test_duplicate_module_order_rejected(self):
        with pytest.raises(ValueError):
            Program(
                id="p1",
                title="Onboarding",
                modules=[
                    Module(id="m1", title="One", sequence_order=1),
                    Module(id="m2", title="Two", sequence_order=1),
                ],
            )

    def test_duplicate_content_order_rejected(self):
        with pytest.raises(ValueError):
            Module(
                id="m1",
                title="One",
                sequence_order=1,
                contents=[
                    Content(id="c1", title="A", sequence_order=3),
                    Content(id="c2", title="B", sequence_order=3),
                ],
            )

    def test_content_defaults(self):
        content = Content(id="c1", title="Intro", sequence_order=1)
        assert content.content_type == ContentType.VIDEO
        assert content.min_watch_percentage == 90
        assert content.has_quiz is False
        assert content.is_video

    def test_min_watch_percentage_bounds(self):
        with pytest.raises(ValueError):
            Content(id="c1", title="Intro", sequence_order=1, min_watch_percentage=120)

    def test_content_type_from_string(self):
        content = Content(id="c1", title="Handbook", sequence_order=1, content_type="document")
        assert content.content_type == ContentType.DOCUMENT
        assert not content.is_video

    def test_invalid_content_type(self):
        with pytest.raises(ValueError):
            Content(id="c1", title="Intro", sequence_order=1, content_type="podcast")


class TestQuizSchemas:
    """Test quiz question schemas."""

    def test_points_must_be_positive(self):
        with pytest.raises(ValueError):
            QuizQuestion(id="q1", question_text="?", points=0)

    def test_correct_option_ids(self):
        question = QuizQuestion(
            id="q1",
            question_text="Which apply?",
            question_type=QuestionType.MULTI_SELECT,
            options=[
                QuizOption(id="a", option_text="A", is_correct=True),
                QuizOption(id="b", option_text="B"),
                QuizOption(id="c", option_text="C", is_correct=True),
            ],
        )
        assert question.correct_option_ids == {"a", "c"}
        assert question.option("b").option_text == "B"
        assert question.option("z") is None


class TestProgressSchemas:
    """Test progress schemas."""

    def test_content_progress_defaults(self):
        progress = ContentProgress(enrollment_id="e1", content_id="c1")
        assert progress.status == ContentStatus.NOT_STARTED
        assert progress.watch_percentage == 0
        assert progress.quiz_score is None
        assert not progress.is_completed

    def test_watch_percentage_bounds(self):
        with pytest.raises(ValueError):
            ContentProgress(enrollment_id="e1", content_id="c1", watch_percentage=100.5)

    def test_results_score_bounds(self):
        with pytest.raises(ValueError):
            QuizResults(total_points=10, earned_points=12, score=120, passed=True, answers={})
