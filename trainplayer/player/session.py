"""
TrainingSession - Learner-facing coordinator for one enrollment.

Wires ContentGraph, VideoWatchMonitor, QuizEngine, NavigationController
and EnrollmentLifecycle to the content repository, progress/enrollment
stores and the analytics sink.

All store calls are awaited before dependent state changes. Writes for
one content item go through a per-content lock so they never overlap,
and a watch percentage lower than the one already persisted is never sent.
When a store call fails the exception propagates and in-memory state is
kept, so the caller can retry (flush(), submit_answer(), complete_quiz()).
"""

import asyncio
import logging
import time
from collections import defaultdict
from typing import Callable, Optional

from trainplayer.schemas import (
    Content,
    ContentStatus,
    ContentType,
    Program,
    QuizAnswer,
    QuizAttempt,
    QuizResults,
)
from trainplayer.storage.events import LoggingEventSink, emit_event
from trainplayer.storage.protocols import (
    ContentRepository,
    EnrollmentStore,
    EventSink,
    EventType,
    ProgressStore,
)
from trainplayer.storage.sqlite import SQLiteContentRepository, SQLiteProgressStore
from trainplayer.utils.config import PlayerSettings, load_settings

from .enrollment import EnrollmentLifecycle
from .errors import (
    ConfigurationError,
    DuplicateAttemptError,
    LockedContentError,
    NoActiveAttemptError,
    QuizNotEligibleError,
    UsageError,
)
from .graph import ContentGraph
from .navigator import NavigationController, NavigationModule, NavigationResult
from .quiz import QuizEngine, QuizState
from .video import VideoWatchMonitor, WatchSample, WriteThrottle

logger = logging.getLogger(__name__)


class TrainingSession:
    """
    One learner working through one program.

    Call `await open()` before anything else. A program with no content
    leaves the session "not ready": `is_ready` is False and navigation or
    content operations raise ConfigurationError.
    """

    def __init__(
        self,
        program_id: str,
        enrollment_id: str,
        content_repository: ContentRepository,
        progress_store: ProgressStore,
        enrollment_store: EnrollmentStore,
        event_sink: Optional[EventSink] = None,
        settings: Optional[PlayerSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.program_id = program_id
        self.enrollment_id = enrollment_id
        self.content_repository = content_repository
        self.progress_store = progress_store
        self.enrollment_store = enrollment_store
        self.event_sink = event_sink
        self.settings = settings or PlayerSettings()
        self._clock = clock

        self.program: Optional[Program] = None
        self.graph: Optional[ContentGraph] = None
        self.navigator: Optional[NavigationController] = None
        self.lifecycle: Optional[EnrollmentLifecycle] = None

        self._monitors: dict[str, VideoWatchMonitor] = {}
        self._throttles: dict[str, WriteThrottle] = {}
        self._persisted_watch: dict[str, float] = {}
        self._dirty_watch: set[str] = set()
        self._quizzes: dict[str, QuizEngine] = {}
        self._active_quiz: Optional[QuizEngine] = None
        self._unsaved_results: dict[str, QuizResults] = {}  # scored, not fully persisted
        self._saved_attempts: set[str] = set()               # attempt stored, completion pending
        self._write_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # -------------------------------------------------------------------------
    # Opening
    # -------------------------------------------------------------------------

    async def open(self):
        """Load the program and progress, start the enrollment, place the cursor."""
        self.program = await self.content_repository.fetch_program(self.program_id)
        self.graph = ContentGraph(self.program)
        self.lifecycle = EnrollmentLifecycle(
            self.enrollment_id,
            self.program,
            [content.id for _, content in self.graph.iter_positions()],
            self.enrollment_store,
            self.event_sink,
        )
        await self.lifecycle.start()

        progress = await self.progress_store.get_progress(self.enrollment_id)
        self.lifecycle.load_progress(progress)
        for record in progress:
            self._persisted_watch[record.content_id] = record.watch_percentage

        if not self.graph.is_ready:
            logger.warning(f"Program {self.program_id} has no content yet; session not ready")
            return

        self.navigator = NavigationController(self.graph, progress)
        self.navigator.jump_to(*self.navigator.get_recommended_position())
        logger.info(
            f"Session opened for enrollment {self.enrollment_id} at "
            f"{self.navigator.cursor} ({self.overall_progress:.1f}% complete)"
        )

    @property
    def is_ready(self) -> bool:
        return self.navigator is not None

    def _require_ready(self):
        if not self.is_ready:
            raise ConfigurationError(f"Program {self.program_id} is not ready for playback")

    @property
    def current_content(self) -> Content:
        self._require_ready()
        return self.navigator.current_content

    def _resolve_content(self, content_id: Optional[str]) -> Content:
        """Content by id (current item if None); must be unlocked."""
        self._require_ready()
        if content_id is None:
            return self.navigator.current_content
        module_index, content_index = self.graph.position_of(content_id)
        if self.navigator.is_locked(module_index, content_index):
            raise LockedContentError(module_index, content_index, content_id)
        return self.graph.content_at(module_index, content_index)

    # -------------------------------------------------------------------------
    # Video
    # -------------------------------------------------------------------------

    def _monitor_for(self, content: Content) -> VideoWatchMonitor:
        if content.id not in self._monitors:
            progress = self.lifecycle.get_progress(content.id)
            self._monitors[content.id] = VideoWatchMonitor(
                content.id,
                min_watch_percentage=content.min_watch_percentage,
                initial_percentage=progress.watch_percentage,
                already_completed=(
                    progress.is_completed
                    or progress.watch_percentage >= content.min_watch_percentage
                ),
            )
            self._throttles[content.id] = WriteThrottle(
                self.settings.progress_write_interval_seconds, clock=self._clock
            )
        return self._monitors[content.id]

    async def on_time_update(
        self,
        current_time: float,
        duration: float,
        content_id: Optional[str] = None,
    ) -> Optional[WatchSample]:
        """
        Feed a player time update for a video.

        The threshold is checked on every sample; persistence is throttled,
        except for the crossing sample which is written immediately.
        """
        self.lifecycle.ensure_open()
        content = self._resolve_content(content_id)
        if not content.is_video:
            raise UsageError(f"Content {content.id} is not a video")

        monitor = self._monitor_for(content)
        sample = monitor.record(current_time, duration)
        if sample is None:
            return None

        progress = self.lifecycle.get_progress(content.id)
        progress.watch_percentage = sample.max_watched_percentage
        progress.last_position_seconds = sample.position_seconds
        if progress.status == ContentStatus.NOT_STARTED:
            progress.status = ContentStatus.IN_PROGRESS
        self._dirty_watch.add(content.id)

        if sample.completed_now:
            emit_event(
                self.event_sink,
                self.program_id,
                content.id,
                EventType.VIDEO_COMPLETE,
                {"watch_percentage": round(sample.max_watched_percentage, 1)},
            )
            await self._write_watch(content.id)
        elif self._throttles[content.id].ready():
            await self._write_watch(content.id)

        # also retries a completion whose write failed on an earlier sample
        if monitor.completed and not content.has_quiz and not progress.is_completed:
            await self._complete_content(content)
        return sample

    async def _write_watch(self, content_id: str):
        async with self._write_locks[content_id]:
            if content_id not in self._dirty_watch:
                return
            monitor = self._monitors[content_id]
            percentage = monitor.max_watched_percentage
            if percentage < self._persisted_watch.get(content_id, 0.0):
                logger.debug(f"Skipping stale watch write for {content_id}: {percentage:.1f}%")
                self._dirty_watch.discard(content_id)
                return
            position = monitor.last_position_seconds
            await self.progress_store.update_video_progress(
                self.enrollment_id,
                content_id,
                percentage,
                position,
            )
            self._persisted_watch[content_id] = percentage
            # samples that arrived during the write stay dirty
            if (monitor.max_watched_percentage, monitor.last_position_seconds) == (percentage, position):
                self._dirty_watch.discard(content_id)
            self._throttles[content_id].mark()
            logger.debug(f"Persisted watch progress for {content_id}: {percentage:.1f}%")

    async def flush(self, content_id: Optional[str] = None):
        """Write any watch progress held back by throttling."""
        content_ids = [content_id] if content_id else sorted(self._dirty_watch)
        for cid in content_ids:
            if cid in self._monitors:
                await self._write_watch(cid)

    def resume_position(self, content_id: str) -> float:
        """Last playback position to seek to when the video is reopened."""
        return self.lifecycle.get_progress(content_id).last_position_seconds

    # -------------------------------------------------------------------------
    # Documents
    # -------------------------------------------------------------------------

    async def complete_document(self, content_id: Optional[str] = None):
        """Learner marks a document/interactive item (without quiz) as read."""
        self.lifecycle.ensure_open()
        content = self._resolve_content(content_id)
        if content.content_type not in (ContentType.DOCUMENT, ContentType.INTERACTIVE):
            raise UsageError(f"Content {content.id} is a {content.content_type.value}, not a document")
        if content.has_quiz:
            raise UsageError(f"Content {content.id} is completed by passing its quiz")
        if self.lifecycle.get_progress(content.id).is_completed:
            return
        await self._complete_content(content)

    async def _complete_content(self, content: Content, quiz_score: Optional[int] = None):
        async with self._write_locks[content.id]:
            # another task may have completed it while we waited for the lock
            if self.lifecycle.get_progress(content.id).is_completed:
                return
            await self.progress_store.complete_content(self.enrollment_id, content.id, quiz_score)
            self.lifecycle.record_completion(content.id, quiz_score)
            self.navigator.record_completion(content.id)

    # -------------------------------------------------------------------------
    # Quiz
    # -------------------------------------------------------------------------

    def offers_quiz(self, content: Content) -> bool:
        return content.has_quiz or content.content_type == ContentType.QUIZ_ONLY

    def is_quiz_eligible(self, content_id: Optional[str] = None) -> bool:
        """True when the content has a quiz and its prerequisite viewing is done."""
        try:
            content = self._resolve_content(content_id)
        except LockedContentError:
            return False
        if not self.offers_quiz(content):
            return False
        if content.is_video:
            progress = self.lifecycle.get_progress(content.id)
            return progress.is_completed or progress.watch_percentage >= content.min_watch_percentage
        return True

    @property
    def active_quiz(self) -> Optional[QuizEngine]:
        if self._active_quiz is not None and self._active_quiz.is_active:
            return self._active_quiz
        return None

    def _require_active_quiz(self) -> QuizEngine:
        if self.active_quiz is None:
            raise NoActiveAttemptError("No quiz attempt is in progress")
        return self._active_quiz

    async def start_quiz(self, content_id: Optional[str] = None) -> QuizAttempt:
        """
        Start a quiz attempt for a content item.

        Raises:
            QuizNotEligibleError: No quiz, or the video threshold isn't reached
            DuplicateAttemptError: An attempt is already in progress
            EmptyQuizError: The quiz has no active questions
        """
        self.lifecycle.ensure_open()
        content = self._resolve_content(content_id)
        if not self.offers_quiz(content):
            raise QuizNotEligibleError(f"Content {content.id} has no quiz")
        if not self.is_quiz_eligible(content.id):
            raise QuizNotEligibleError(
                f"Watch at least {content.min_watch_percentage:g}% of '{content.title}' before the quiz"
            )
        active = self.active_quiz
        if active is not None and active.content_id != content.id:
            raise DuplicateAttemptError(f"A quiz for content {active.content_id} is still in progress")
        if content.id in self._unsaved_results:
            raise UsageError(f"Results for content {content.id} are not saved yet; call complete_quiz() again")

        engine = self._quizzes.get(content.id)
        if engine is None:
            questions = await self.content_repository.fetch_questions(content.id)
            engine = QuizEngine(
                content.id,
                questions,
                passing_score=self.program.passing_score,
                max_attempts=self.program.max_attempts,
                weak_topic_threshold=self.settings.weak_topic_threshold,
                short_answer_min_length=self.settings.short_answer_min_length,
                clock=self._clock,
            )
            self._quizzes[content.id] = engine
        engine.check_can_start()

        attempt_id = await self.progress_store.start_quiz_attempt(self.enrollment_id, content.id)
        progress = self.lifecycle.get_progress(content.id)
        progress.quiz_attempts += 1
        if progress.status == ContentStatus.NOT_STARTED:
            progress.status = ContentStatus.IN_PROGRESS

        attempt = engine.start(attempt_id, self.enrollment_id, attempt_number=progress.quiz_attempts)
        self._active_quiz = engine
        emit_event(
            self.event_sink,
            self.program_id,
            content.id,
            EventType.QUIZ_START,
            {"attempt_id": attempt_id, "attempt_number": attempt.attempt_number},
        )
        return attempt

    async def submit_answer(
        self,
        question_id: str,
        selected_options: Optional[list[str]] = None,
        text_answer: Optional[str] = None,
    ) -> QuizAnswer:
        """
        Score and persist one answer.

        The next question only becomes current once the store accepted
        this one; on failure call again with the same question to retry.
        """
        self.lifecycle.ensure_open()
        engine = self._require_active_quiz()
        answer = engine.record_answer(question_id, selected_options, text_answer)
        async with self._write_locks[engine.content_id]:
            await self.progress_store.submit_quiz_answer(engine.attempt.id, question_id, answer)
        engine.confirm_answer(question_id)
        return answer

    async def complete_quiz(self, content_id: Optional[str] = None) -> QuizResults:
        """
        Score the active attempt, persist it and complete the content on a pass.

        If persisting the attempt or the content completion failed earlier,
        calling again resumes from the step that failed with the
        already-computed results; `quiz_complete` is emitted once.
        """
        engine = self._quizzes.get(content_id) if content_id else self._active_quiz
        if engine is None:
            raise NoActiveAttemptError("No quiz attempt is in progress")
        content_id = engine.content_id
        if engine.state == QuizState.COMPLETE and content_id in self._unsaved_results:
            results = self._unsaved_results[content_id]
        else:
            self.lifecycle.ensure_open()
            if not engine.is_active:
                raise NoActiveAttemptError(f"No quiz attempt in progress for content {content_id}")
            results = engine.complete()
            self._unsaved_results[content_id] = results

        content = self.graph.get_content(content_id)
        progress = self.lifecycle.get_progress(content_id)
        if content_id not in self._saved_attempts:
            async with self._write_locks[content_id]:
                await self.progress_store.complete_quiz_attempt(engine.attempt.id, results)
            self._saved_attempts.add(content_id)
            if progress.quiz_score is None or results.score > progress.quiz_score:
                progress.quiz_score = results.score
            emit_event(
                self.event_sink,
                self.program_id,
                content_id,
                EventType.QUIZ_COMPLETE,
                {
                    "attempt_id": engine.attempt.id,
                    "attempt_number": results.attempt_number,
                    "score": results.score,
                    "passed": results.passed,
                    "weak_topics": results.weak_topics,
                    "attempts_remaining": results.attempts_remaining,
                },
            )

        if results.passed and not progress.is_completed:
            await self._complete_content(content, results.score)
        del self._unsaved_results[content_id]
        self._saved_attempts.discard(content_id)
        return results

    async def _abandon_active_quiz(self):
        engine = self.active_quiz
        if engine is None:
            return
        await self.progress_store.abandon_quiz_attempt(engine.attempt.id)
        engine.abandon()

    async def leave(self):
        """
        Learner leaves the player.

        An in-progress attempt is abandoned (answers already submitted stay
        recorded) and throttled watch progress is flushed.
        """
        await self._abandon_active_quiz()
        await self.flush()

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    async def next(self) -> NavigationResult:
        """Advance; at the end of the program this completes the enrollment."""
        self._require_ready()
        result = self.navigator.next()
        if result.program_complete and not self.lifecycle.is_closed:
            await self.complete_program()
        return result

    def previous(self) -> NavigationResult:
        self._require_ready()
        return self.navigator.previous()

    def jump_to(self, module_index: int, content_index: int) -> NavigationResult:
        self._require_ready()
        return self.navigator.jump_to(module_index, content_index)

    async def complete_program(self) -> float:
        """Close the enrollment; an attempt still in progress is abandoned first."""
        self.lifecycle.ensure_open()
        await self._abandon_active_quiz()
        await self.flush()
        return await self.lifecycle.complete_program()

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    @property
    def overall_progress(self) -> float:
        return self.lifecycle.overall_progress

    def navigation_tree(self) -> list[NavigationModule]:
        self._require_ready()
        return self.navigator.get_navigation_tree()

    def progress_summary(self) -> dict:
        """Navigation summary plus enrollment state for dashboard display."""
        self._require_ready()
        return {
            **self.navigator.get_progress_summary(),
            "overall_progress": round(self.overall_progress, 1),
            "enrollment_status": self.lifecycle.status.value,
            "final_score": self.lifecycle.final_score,
        }


def create_session(
    program_id: str,
    enrollment_id: str,
    settings: Optional[PlayerSettings] = None,
    event_sink: Optional[EventSink] = None,
) -> TrainingSession:
    """
    Build a session on the SQLite stores named in the settings.

    Args:
        program_id: Program to deliver
        enrollment_id: Learner enrollment
        settings: PlayerSettings (default: load_settings())
        event_sink: Analytics sink (default: LoggingEventSink)
    """
    settings = settings or load_settings()
    progress_store = SQLiteProgressStore(settings.progress_db_path)
    return TrainingSession(
        program_id,
        enrollment_id,
        content_repository=SQLiteContentRepository(settings.content_db_path),
        progress_store=progress_store,
        enrollment_store=progress_store,
        event_sink=event_sink or LoggingEventSink(),
        settings=settings,
    )
