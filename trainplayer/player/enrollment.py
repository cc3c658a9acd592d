"""
EnrollmentLifecycle - Start, progress and completion of one enrollment.

Keeps the in-memory view of content progress for the enrollment, derives
overall progress and the final score, and closes the enrollment once the
program is complete.
"""

import logging
from typing import Iterable, Optional

from trainplayer.schemas import ContentProgress, ContentStatus, EnrollmentStatus, Program
from trainplayer.storage.events import emit_event
from trainplayer.storage.protocols import EnrollmentStore, EventSink, EventType

from .errors import EnrollmentClosedError

logger = logging.getLogger(__name__)


def average_quiz_score(progress: Iterable[ContentProgress]) -> float:
    """Mean quiz score over completed content that has one; 0 when none do."""
    scores = [
        p.quiz_score for p in progress
        if p.status == ContentStatus.COMPLETED and p.quiz_score is not None
    ]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


class EnrollmentLifecycle:
    """
    Own the enrollment state of one learner in one program.

    `start()` is idempotent; after `complete_program()` the lifecycle is
    terminal and every mutating call raises EnrollmentClosedError.
    """

    def __init__(
        self,
        enrollment_id: str,
        program: Program,
        content_ids: Iterable[str],
        enrollment_store: EnrollmentStore,
        event_sink: Optional[EventSink] = None,
    ):
        self.enrollment_id = enrollment_id
        self.program = program
        self.content_ids = list(content_ids)
        self.enrollment_store = enrollment_store
        self.event_sink = event_sink
        self.status = EnrollmentStatus.ENROLLED
        self.final_score: Optional[float] = None
        self._progress: dict[str, ContentProgress] = {}
        self._started = False

    @property
    def is_closed(self) -> bool:
        return self.status == EnrollmentStatus.COMPLETED

    def ensure_open(self):
        if self.is_closed:
            raise EnrollmentClosedError(f"Enrollment {self.enrollment_id} is already completed")

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    async def start(self):
        """Start the enrollment if needed; never resets progress."""
        if self._started:
            return
        existing = await self.enrollment_store.get_enrollment(self.enrollment_id)
        if existing is not None and existing.status == EnrollmentStatus.COMPLETED:
            self.status = EnrollmentStatus.COMPLETED
            self.final_score = existing.final_score
            logger.info(f"Enrollment {self.enrollment_id} already completed (final score {existing.final_score})")
        else:
            await self.enrollment_store.start_enrollment(self.enrollment_id)
            self.status = EnrollmentStatus.IN_PROGRESS
            logger.info(f"Enrollment {self.enrollment_id} started for program {self.program.id}")
        self._started = True

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def load_progress(self, progress: Iterable[ContentProgress]):
        self._progress = {p.content_id: p for p in progress}

    def get_progress(self, content_id: str) -> ContentProgress:
        """Progress for a content item (a fresh not_started record if none)."""
        if content_id not in self._progress:
            self._progress[content_id] = ContentProgress(
                enrollment_id=self.enrollment_id,
                content_id=content_id,
            )
        return self._progress[content_id]

    def record_completion(self, content_id: str, quiz_score: Optional[int] = None) -> float:
        """Mark content completed in memory and return the new overall progress."""
        self.ensure_open()
        progress = self.get_progress(content_id)
        progress.status = ContentStatus.COMPLETED
        if quiz_score is not None and (progress.quiz_score is None or quiz_score > progress.quiz_score):
            progress.quiz_score = quiz_score
        overall = self.overall_progress
        logger.info(f"Content {content_id} completed; overall progress {overall:.1f}%")
        return overall

    @property
    def completed_count(self) -> int:
        return sum(
            1 for content_id in self.content_ids
            if content_id in self._progress and self._progress[content_id].is_completed
        )

    @property
    def overall_progress(self) -> float:
        """Completed content as a percentage of all content, for dashboards."""
        if not self.content_ids:
            return 0.0
        return self.completed_count / len(self.content_ids) * 100

    def compute_final_score(self) -> float:
        return average_quiz_score(self._progress.values())

    # -------------------------------------------------------------------------
    # Completion
    # -------------------------------------------------------------------------

    async def complete_program(self) -> float:
        """
        Close the enrollment with the averaged quiz score.

        Emits one completion to the enrollment store and one
        `program_complete` event; terminal afterwards.
        """
        self.ensure_open()
        final_score = self.compute_final_score()
        await self.enrollment_store.complete_enrollment(self.enrollment_id, final_score)
        self.status = EnrollmentStatus.COMPLETED
        self.final_score = final_score
        emit_event(
            self.event_sink,
            self.program.id,
            None,
            EventType.PROGRAM_COMPLETE,
            {"enrollment_id": self.enrollment_id, "final_score": final_score},
        )
        logger.info(f"Enrollment {self.enrollment_id} completed with final score {final_score:.1f}")
        return final_score
