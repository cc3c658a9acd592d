"""
QuizEngine tests.

Covers per-question scoring for each question type, aggregation, weak-topic
detection and the attempt lifecycle.
"""

import pytest

from conftest import FakeClock, make_question

from trainplayer.player import (
    AnswerPendingError,
    DuplicateAttemptError,
    EmptyQuizError,
    NoActiveAttemptError,
    QuizEngine,
    QuizState,
    UnknownQuestionError,
    build_results,
    compute_score,
    detect_weak_topics,
    is_answer_correct,
    round_half_up,
    score_answer,
)
from trainplayer.schemas import AttemptStatus, QuestionType, QuizAnswer, QuizOption, QuizQuestion


def correct(question_id: str) -> QuizAnswer:
    return QuizAnswer(question_id=question_id, is_correct=True, points_earned=1)


def wrong(question_id: str) -> QuizAnswer:
    return QuizAnswer(question_id=question_id, is_correct=False, points_earned=0)


class TestQuestionScoring:
    """Correctness rules per question type."""

    def test_multiple_choice_correct(self):
        question = make_question("q1", points=4, correct=("b",))
        answer = score_answer(question, selected_options=["b"])
        assert answer.is_correct
        assert answer.points_earned == 4

    def test_multiple_choice_other_option(self):
        question = make_question("q1", points=4, correct=("b",))
        for option_id in ("a", "c"):
            answer = score_answer(question, selected_options=[option_id])
            assert not answer.is_correct
            assert answer.points_earned == 0

    def test_multiple_choice_needs_exactly_one(self):
        question = make_question("q1", correct=("b",))
        assert not is_answer_correct(question, ["b", "a"])
        assert not is_answer_correct(question, [])
        assert not is_answer_correct(question, None)

    def test_multiple_choice_unknown_option(self):
        question = make_question("q1", correct=("b",))
        assert not is_answer_correct(question, ["zzz"])

    def test_true_false(self):
        question = make_question(
            "q1",
            correct=("true",),
            question_type=QuestionType.TRUE_FALSE,
            option_ids=("true", "false"),
        )
        assert is_answer_correct(question, ["true"])
        assert not is_answer_correct(question, ["false"])

    def test_multi_select_subset_is_wrong(self):
        question = make_question(
            "q1",
            correct=("a", "b", "c"),
            question_type=QuestionType.MULTI_SELECT,
            option_ids=("a", "b", "c", "d"),
        )
        assert not is_answer_correct(question, ["a", "b"])

    def test_multi_select_exact_set(self):
        question = make_question(
            "q1",
            correct=("a", "b", "c"),
            question_type=QuestionType.MULTI_SELECT,
            option_ids=("a", "b", "c", "d"),
        )
        assert is_answer_correct(question, ["c", "a", "b"])
        assert not is_answer_correct(question, ["a", "b", "c", "d"])
        assert not is_answer_correct(question, ["a", "b", "b"])

    def test_short_answer_length_heuristic(self):
        question = QuizQuestion(
            id="q1",
            question_text="Describe the evacuation route",
            question_type=QuestionType.SHORT_ANSWER,
        )
        assert not is_answer_correct(question, text_answer="   exit    ")
        assert not is_answer_correct(question, text_answer="abcdefghij")  # exactly 10
        assert is_answer_correct(question, text_answer="abcdefghijk")
        assert not is_answer_correct(question, text_answer=None)

    def test_short_answer_custom_length(self):
        question = QuizQuestion(id="q1", question_text="?", question_type=QuestionType.SHORT_ANSWER)
        assert is_answer_correct(question, text_answer="abc", short_answer_min_length=2)

    def test_feedback_from_selected_options(self):
        question = QuizQuestion(
            id="q1",
            question_text="Where is the first aid kit?",
            options=[
                QuizOption(id="a", option_text="Kitchen", is_correct=True, feedback_text="Right, by the sink."),
                QuizOption(id="b", option_text="Roof", feedback_text="No, check the kitchen."),
            ],
        )
        assert score_answer(question, ["b"]).feedback == ["No, check the kitchen."]


class TestAggregation:

    def test_score_example(self):
        questions = [
            make_question("q1", points=10),
            make_question("q2", points=20),
            make_question("q3", points=30),
        ]
        answers = {
            "q1": score_answer(questions[0], ["b"]),
            "q2": score_answer(questions[1], ["a"]),
            "q3": score_answer(questions[2], ["c"]),
        }
        results = build_results(questions, answers, passing_score=80)
        assert results.total_points == 60
        assert results.earned_points == 20
        assert results.score == 33
        assert not results.passed

    def test_pass_threshold_is_inclusive(self):
        questions = [make_question("q1", points=1), make_question("q2", points=1)]
        answers = {
            "q1": score_answer(questions[0], ["a"]),
            "q2": score_answer(questions[1], ["b"]),
        }
        assert build_results(questions, answers, passing_score=50).passed
        assert not build_results(questions, answers, passing_score=51).passed

    def test_half_rounds_up(self):
        assert round_half_up(32.5) == 33
        assert round_half_up(12.4) == 12
        assert compute_score(1, 8) == 13

    def test_zero_point_quiz_scores_zero(self):
        assert compute_score(0, 0) == 0

    def test_attempts_remaining(self):
        questions = [make_question("q1")]
        results = build_results(questions, {}, passing_score=80, attempt_number=2, max_attempts=3)
        assert results.attempts_remaining == 1
        results = build_results(questions, {}, passing_score=80, attempt_number=5, max_attempts=3)
        assert results.attempts_remaining == 0


class TestWeakTopics:

    def test_low_ratio_topic_flagged(self):
        questions = [
            make_question("s1", topic_id="safety"),
            make_question("s2", topic_id="safety"),
            make_question("s3", topic_id="safety"),
            make_question("h1", topic_id="hr"),
            make_question("h2", topic_id="hr"),
            make_question("h3", topic_id="hr"),
        ]
        answers = {
            "s1": correct("s1"), "s2": wrong("s2"), "s3": wrong("s3"),
            "h1": correct("h1"), "h2": correct("h2"), "h3": correct("h3"),
        }
        assert detect_weak_topics(questions, answers) == ["safety"]

    def test_untagged_questions_excluded(self):
        questions = [make_question("q1"), make_question("q2", topic_id="it")]
        answers = {"q1": wrong("q1"), "q2": correct("q2")}
        assert detect_weak_topics(questions, answers) == []

    def test_boundary_ratio_not_weak(self):
        questions = [make_question(f"q{i}", topic_id="legal") for i in range(10)]
        answers = {f"q{i}": correct(f"q{i}") if i < 7 else wrong(f"q{i}") for i in range(10)}
        assert detect_weak_topics(questions, answers) == []

    def test_missing_answer_counts_as_wrong(self):
        questions = [make_question("q1", topic_id="fire"), make_question("q2", topic_id="fire")]
        assert detect_weak_topics(questions, {"q1": correct("q1")}) == ["fire"]


class TestQuizEngine:
    """Attempt lifecycle."""

    def make_engine(self, clock=None, questions=None) -> QuizEngine:
        if questions is None:
            questions = [
                make_question("q2", points=5, correct=("b",), sequence_order=2),
                make_question("q1", points=5, correct=("a",), sequence_order=1),
            ]
        return QuizEngine(
            "c-check",
            questions,
            passing_score=80,
            max_attempts=3,
            clock=clock or FakeClock(),
        )

    def test_questions_ordered_and_inactive_dropped(self):
        retired = make_question("q0", sequence_order=0)
        retired.is_active = False
        engine = self.make_engine(questions=[
            make_question("q2", sequence_order=2),
            retired,
            make_question("q1", sequence_order=1),
        ])
        assert [q.id for q in engine.questions] == ["q1", "q2"]

    def test_full_attempt(self):
        clock = FakeClock()
        engine = self.make_engine(clock)
        attempt = engine.start("att-1", "enr-1")
        assert attempt.attempt_number == 1
        assert engine.state == QuizState.ATTEMPT_IN_PROGRESS
        assert engine.current_question.id == "q1"

        clock.advance(7)
        answer = engine.record_answer("q1", ["a"])
        assert engine.state == QuizState.ANSWER_PENDING
        assert answer.time_taken_seconds == 7
        engine.confirm_answer("q1")
        assert engine.state == QuizState.SUBMITTED
        assert engine.current_question.id == "q2"

        clock.advance(3)
        answer = engine.record_answer("q2", ["b"])
        assert answer.time_taken_seconds == 3
        engine.confirm_answer("q2")

        clock.advance(1)
        results = engine.complete()
        assert results.score == 100
        assert results.passed
        assert results.time_taken_seconds == 11
        assert results.attempts_remaining == 2
        assert engine.state == QuizState.COMPLETE
        assert engine.attempt.status == AttemptStatus.COMPLETED

    def test_empty_quiz(self):
        engine = self.make_engine(questions=[])
        with pytest.raises(EmptyQuizError):
            engine.start("att-1", "enr-1")
        assert engine.state == QuizState.NOT_STARTED

    def test_duplicate_attempt(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        with pytest.raises(DuplicateAttemptError):
            engine.start("att-2", "enr-1")
        assert engine.attempt.id == "att-1"

    def test_unknown_question(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        with pytest.raises(UnknownQuestionError):
            engine.record_answer("not-in-quiz", ["a"])
        assert engine.state == QuizState.ATTEMPT_IN_PROGRESS

    def test_answer_without_attempt(self):
        engine = self.make_engine()
        with pytest.raises(NoActiveAttemptError):
            engine.record_answer("q1", ["a"])

    def test_pending_answer_blocks_other_questions(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        engine.record_answer("q1", ["b"])
        with pytest.raises(AnswerPendingError):
            engine.record_answer("q2", ["b"])
        with pytest.raises(AnswerPendingError):
            engine.complete()
        # retrying the pending question replaces the answer
        engine.record_answer("q1", ["a"])
        assert engine.attempt.answers["q1"].is_correct

    def test_unanswered_questions_score_zero(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        engine.record_answer("q1", ["a"])
        engine.confirm_answer("q1")
        results = engine.complete()
        assert results.earned_points == 5
        assert results.score == 50
        assert not results.answers["q2"].is_correct
        assert results.answers["q2"].points_earned == 0

    def test_all_unanswered(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        results = engine.complete()
        assert results.score == 0
        assert not results.passed

    def test_retake_after_completion(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        engine.complete()
        attempt = engine.start("att-2", "enr-1")
        assert attempt.attempt_number == 2
        assert engine.attempts_remaining == 1
        assert engine.results is None

    def test_retake_beyond_limit_is_reported_not_blocked(self):
        engine = self.make_engine()
        attempt = engine.start("att-9", "enr-1", attempt_number=4)
        assert attempt.attempt_number == 4
        assert engine.attempts_remaining == 0

    def test_abandon_keeps_answers(self):
        engine = self.make_engine()
        engine.start("att-1", "enr-1")
        engine.record_answer("q1", ["a"])
        engine.confirm_answer("q1")
        engine.abandon()
        assert engine.state == QuizState.ABANDONED
        assert engine.attempt.status == AttemptStatus.ABANDONED
        assert "q1" in engine.attempt.answers
        engine.start("att-2", "enr-1")
        assert engine.attempt.answers == {}
