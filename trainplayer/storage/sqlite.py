"""
SQLite adapters for the content repository and the progress/enrollment stores.

Content (programs.db) is authored elsewhere and read-only to the player;
progress (progress.db) is stored separately so content can be replaced
without losing learner state.

Watch percentage uses compare-and-set at the storage boundary: the stored
value is MAX(stored, new), so a late or reordered write can never lower it.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from trainplayer.schemas import (
    AttemptStatus,
    Content,
    ContentProgress,
    ContentStatus,
    Enrollment,
    EnrollmentStatus,
    Module,
    Program,
    QuizAnswer,
    QuizAttempt,
    QuizOption,
    QuizQuestion,
    QuizResults,
)

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# SQLite Schemas
# -----------------------------------------------------------------------------

CONTENT_SCHEMA = """
CREATE TABLE IF NOT EXISTS programs (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT,
    program_type TEXT NOT NULL DEFAULT 'onboarding',
    passing_score INTEGER NOT NULL DEFAULT 80,
    max_attempts INTEGER NOT NULL DEFAULT 3,
    is_mandatory INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    estimated_duration_minutes INTEGER
);

CREATE TABLE IF NOT EXISTS modules (
    id TEXT PRIMARY KEY,
    program_id TEXT NOT NULL REFERENCES programs(id),
    title TEXT NOT NULL,
    description TEXT,
    sequence_order INTEGER NOT NULL,
    is_gateway INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    UNIQUE (program_id, sequence_order)
);

CREATE TABLE IF NOT EXISTS contents (
    id TEXT PRIMARY KEY,
    module_id TEXT NOT NULL REFERENCES modules(id),
    title TEXT NOT NULL,
    description TEXT,
    content_type TEXT NOT NULL DEFAULT 'video',
    video_url TEXT,
    video_duration_seconds INTEGER,
    thumbnail_url TEXT,
    sequence_order INTEGER NOT NULL,
    min_watch_percentage REAL NOT NULL DEFAULT 90,
    has_quiz INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1,
    UNIQUE (module_id, sequence_order)
);

CREATE TABLE IF NOT EXISTS quiz_questions (
    id TEXT PRIMARY KEY,
    content_id TEXT NOT NULL REFERENCES contents(id),
    question_text TEXT NOT NULL,
    question_type TEXT NOT NULL DEFAULT 'multiple_choice',
    points INTEGER NOT NULL DEFAULT 1,
    topic_id TEXT,
    explanation TEXT,
    sequence_order INTEGER NOT NULL DEFAULT 0,
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS quiz_options (
    id TEXT NOT NULL,
    question_id TEXT NOT NULL REFERENCES quiz_questions(id),
    option_text TEXT NOT NULL,
    is_correct INTEGER NOT NULL DEFAULT 0,
    feedback_text TEXT,
    sequence_order INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (question_id, id)
);

CREATE INDEX IF NOT EXISTS idx_modules_program ON modules(program_id);
CREATE INDEX IF NOT EXISTS idx_contents_module ON contents(module_id);
CREATE INDEX IF NOT EXISTS idx_questions_content ON quiz_questions(content_id);
CREATE INDEX IF NOT EXISTS idx_options_question ON quiz_options(question_id);
"""

PROGRESS_SCHEMA = """
CREATE TABLE IF NOT EXISTS enrollments (
    id TEXT PRIMARY KEY,
    status TEXT NOT NULL DEFAULT 'enrolled',
    started_at TEXT,
    completed_at TEXT,
    final_score REAL
);

CREATE TABLE IF NOT EXISTS content_progress (
    enrollment_id TEXT NOT NULL,
    content_id TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'not_started',
    watch_percentage REAL NOT NULL DEFAULT 0,
    last_position_seconds REAL NOT NULL DEFAULT 0,
    quiz_attempts INTEGER NOT NULL DEFAULT 0,
    quiz_score INTEGER,
    completed_at TEXT,
    updated_at TEXT,
    PRIMARY KEY (enrollment_id, content_id)
);

CREATE TABLE IF NOT EXISTS quiz_attempts (
    id TEXT PRIMARY KEY,
    enrollment_id TEXT NOT NULL,
    content_id TEXT NOT NULL,
    attempt_number INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'in_progress',
    started_at TEXT NOT NULL,
    completed_at TEXT,
    score INTEGER,
    passed INTEGER,
    results JSON
);

CREATE TABLE IF NOT EXISTS quiz_answers (
    attempt_id TEXT NOT NULL REFERENCES quiz_attempts(id),
    question_id TEXT NOT NULL,
    answer JSON NOT NULL,
    submitted_at TEXT NOT NULL,
    PRIMARY KEY (attempt_id, question_id)
);

CREATE INDEX IF NOT EXISTS idx_attempts_enrollment_content
ON quiz_attempts(enrollment_id, content_id);
"""


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# -----------------------------------------------------------------------------
# Content database
# -----------------------------------------------------------------------------

def create_content_database(db_path: str | Path) -> Path:
    """Create programs.db and its tables if they don't exist."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(CONTENT_SCHEMA)
        conn.commit()
    finally:
        conn.close()
    return path


def save_program(
    db_path: str | Path,
    program: Program,
    questions: Optional[dict[str, list[QuizQuestion]]] = None,
):
    """
    Write a program and its quiz questions into a content database.

    Args:
        db_path: Path to programs.db (created if missing)
        program: Program with nested modules and content
        questions: Quiz questions keyed by content id
    """
    path = create_content_database(db_path)
    conn = sqlite3.connect(str(path))
    try:
        conn.execute(
            """INSERT OR REPLACE INTO programs
               (id, title, description, program_type, passing_score, max_attempts,
                is_mandatory, is_active, estimated_duration_minutes)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (program.id, program.title, program.description, program.program_type,
             program.passing_score, program.max_attempts, int(program.is_mandatory),
             int(program.is_active), program.estimated_duration_minutes)
        )
        for module in program.modules:
            conn.execute(
                """INSERT OR REPLACE INTO modules
                   (id, program_id, title, description, sequence_order, is_gateway, is_active)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (module.id, program.id, module.title, module.description,
                 module.sequence_order, int(module.is_gateway), int(module.is_active))
            )
            for content in module.contents:
                conn.execute(
                    """INSERT OR REPLACE INTO contents
                       (id, module_id, title, description, content_type, video_url,
                        video_duration_seconds, thumbnail_url, sequence_order,
                        min_watch_percentage, has_quiz, is_active)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (content.id, module.id, content.title, content.description,
                     content.content_type.value, content.video_url,
                     content.video_duration_seconds, content.thumbnail_url,
                     content.sequence_order, content.min_watch_percentage,
                     int(content.has_quiz), int(content.is_active))
                )

        for content_id, content_questions in (questions or {}).items():
            for question in content_questions:
                conn.execute(
                    """INSERT OR REPLACE INTO quiz_questions
                       (id, content_id, question_text, question_type, points,
                        topic_id, explanation, sequence_order, is_active)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (question.id, content_id, question.question_text,
                     question.question_type.value, question.points, question.topic_id,
                     question.explanation, question.sequence_order, int(question.is_active))
                )
                # options are replaced as a set; ids are only unique per question
                conn.execute("DELETE FROM quiz_options WHERE question_id = ?", (question.id,))
                for option in question.options:
                    conn.execute(
                        """INSERT INTO quiz_options
                           (id, question_id, option_text, is_correct, feedback_text, sequence_order)
                           VALUES (?, ?, ?, ?, ?, ?)""",
                        (option.id, question.id, option.option_text, int(option.is_correct),
                         option.feedback_text, option.sequence_order)
                    )
        conn.commit()
    finally:
        conn.close()


class SQLiteContentRepository:
    """
    Load programs and quiz questions from programs.db.

    Each method opens its own connection; safe for concurrent reads.
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize repository with path to programs.db.

        Args:
            db_path: Path to programs.db file
        """
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            raise FileNotFoundError(f"Content database not found: {db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    async def fetch_program(self, program_id: str) -> Program:
        """Load a program with its modules and content (inactive rows included)."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                """SELECT id, title, description, program_type, passing_score, max_attempts,
                          is_mandatory, is_active, estimated_duration_minutes
                   FROM programs WHERE id = ?""",
                (program_id,)
            ).fetchone()
            if not row:
                raise LookupError(f"Program not found: {program_id}")

            modules = []
            module_rows = conn.execute(
                """SELECT id, title, description, sequence_order, is_gateway, is_active
                   FROM modules WHERE program_id = ?
                   ORDER BY sequence_order""",
                (program_id,)
            ).fetchall()
            for module_row in module_rows:
                content_rows = conn.execute(
                    """SELECT id, title, description, content_type, video_url,
                              video_duration_seconds, thumbnail_url, sequence_order,
                              min_watch_percentage, has_quiz, is_active
                       FROM contents WHERE module_id = ?
                       ORDER BY sequence_order""",
                    (module_row["id"],)
                ).fetchall()
                modules.append(Module(
                    id=module_row["id"],
                    title=module_row["title"],
                    description=module_row["description"],
                    sequence_order=module_row["sequence_order"],
                    is_gateway=bool(module_row["is_gateway"]),
                    is_active=bool(module_row["is_active"]),
                    contents=[
                        Content(
                            id=c["id"],
                            title=c["title"],
                            description=c["description"],
                            content_type=c["content_type"],
                            video_url=c["video_url"],
                            video_duration_seconds=c["video_duration_seconds"],
                            thumbnail_url=c["thumbnail_url"],
                            sequence_order=c["sequence_order"],
                            min_watch_percentage=c["min_watch_percentage"],
                            has_quiz=bool(c["has_quiz"]),
                            is_active=bool(c["is_active"]),
                        )
                        for c in content_rows
                    ],
                ))

            return Program(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                program_type=row["program_type"],
                passing_score=row["passing_score"],
                max_attempts=row["max_attempts"],
                is_mandatory=bool(row["is_mandatory"]),
                is_active=bool(row["is_active"]),
                estimated_duration_minutes=row["estimated_duration_minutes"],
                modules=modules,
            )
        finally:
            conn.close()

    async def fetch_questions(self, content_id: str) -> list[QuizQuestion]:
        """Get active quiz questions for a content item, in presentation order."""
        conn = self._get_connection()
        try:
            question_rows = conn.execute(
                """SELECT id, question_text, question_type, points, topic_id,
                          explanation, sequence_order, is_active
                   FROM quiz_questions
                   WHERE content_id = ? AND is_active = 1
                   ORDER BY sequence_order""",
                (content_id,)
            ).fetchall()
            questions = []
            for q in question_rows:
                option_rows = conn.execute(
                    """SELECT id, option_text, is_correct, feedback_text, sequence_order
                       FROM quiz_options WHERE question_id = ?
                       ORDER BY sequence_order""",
                    (q["id"],)
                ).fetchall()
                questions.append(QuizQuestion(
                    id=q["id"],
                    content_id=content_id,
                    question_text=q["question_text"],
                    question_type=q["question_type"],
                    points=q["points"],
                    topic_id=q["topic_id"],
                    explanation=q["explanation"],
                    sequence_order=q["sequence_order"],
                    is_active=bool(q["is_active"]),
                    options=[
                        QuizOption(
                            id=o["id"],
                            option_text=o["option_text"],
                            is_correct=bool(o["is_correct"]),
                            feedback_text=o["feedback_text"],
                            sequence_order=o["sequence_order"],
                        )
                        for o in option_rows
                    ],
                ))
            return questions
        finally:
            conn.close()


# -----------------------------------------------------------------------------
# Progress database
# -----------------------------------------------------------------------------

class SQLiteProgressStore:
    """
    Track enrollments, content progress and quiz attempts in SQLite.

    Implements both the progress store and the enrollment store contracts.
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize progress store.

        Args:
            db_path: Path to progress.db (created if missing)
        """
        self.db_path = Path(db_path)
        self._ensure_database()

    def _ensure_database(self):
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.executescript(PROGRESS_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a new database connection."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Content Progress
    # -------------------------------------------------------------------------

    async def get_progress(self, enrollment_id: str) -> list[ContentProgress]:
        """Get progress for every content item the learner has touched."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                """SELECT enrollment_id, content_id, status, watch_percentage,
                          last_position_seconds, quiz_attempts, quiz_score, completed_at
                   FROM content_progress
                   WHERE enrollment_id = ?""",
                (enrollment_id,)
            )
            return [
                ContentProgress(
                    enrollment_id=row["enrollment_id"],
                    content_id=row["content_id"],
                    status=ContentStatus(row["status"]),
                    watch_percentage=row["watch_percentage"],
                    last_position_seconds=row["last_position_seconds"],
                    quiz_attempts=row["quiz_attempts"],
                    quiz_score=row["quiz_score"],
                    completed_at=_parse_time(row["completed_at"]),
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()

    async def update_video_progress(
        self,
        enrollment_id: str,
        content_id: str,
        watch_percentage: float,
        position_seconds: float,
    ) -> None:
        """Record watch progress; the stored percentage only ever grows."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            conn.execute(
                """INSERT INTO content_progress
                     (enrollment_id, content_id, status, watch_percentage,
                      last_position_seconds, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(enrollment_id, content_id) DO UPDATE SET
                     watch_percentage = MAX(watch_percentage, excluded.watch_percentage),
                     last_position_seconds = excluded.last_position_seconds,
                     status = CASE
                       WHEN status = 'not_started' THEN 'in_progress'
                       ELSE status
                     END,
                     updated_at = excluded.updated_at""",
                (enrollment_id, content_id, ContentStatus.IN_PROGRESS.value,
                 watch_percentage, position_seconds, now)
            )
            conn.commit()
        finally:
            conn.close()

    async def complete_content(
        self,
        enrollment_id: str,
        content_id: str,
        quiz_score: Optional[int] = None,
    ) -> None:
        """Mark a content item as completed, keeping the best quiz score."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            conn.execute(
                """INSERT INTO content_progress
                     (enrollment_id, content_id, status, quiz_score, completed_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(enrollment_id, content_id) DO UPDATE SET
                     status = 'completed',
                     completed_at = COALESCE(completed_at, excluded.completed_at),
                     quiz_score = CASE
                       WHEN excluded.quiz_score IS NULL THEN quiz_score
                       WHEN quiz_score IS NULL OR quiz_score < excluded.quiz_score
                         THEN excluded.quiz_score
                       ELSE quiz_score
                     END,
                     updated_at = excluded.updated_at""",
                (enrollment_id, content_id, ContentStatus.COMPLETED.value, quiz_score, now, now)
            )
            conn.commit()
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Quiz Attempts
    # -------------------------------------------------------------------------

    async def start_quiz_attempt(self, enrollment_id: str, content_id: str) -> str:
        """Create a quiz attempt and bump the content's attempt counter."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            row = conn.execute(
                """SELECT COUNT(*) AS count FROM quiz_attempts
                   WHERE enrollment_id = ? AND content_id = ?""",
                (enrollment_id, content_id)
            ).fetchone()
            attempt_id = uuid.uuid4().hex
            conn.execute(
                """INSERT INTO quiz_attempts
                     (id, enrollment_id, content_id, attempt_number, status, started_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (attempt_id, enrollment_id, content_id, row["count"] + 1,
                 AttemptStatus.IN_PROGRESS.value, now)
            )
            conn.execute(
                """INSERT INTO content_progress
                     (enrollment_id, content_id, status, quiz_attempts, updated_at)
                   VALUES (?, ?, ?, 1, ?)
                   ON CONFLICT(enrollment_id, content_id) DO UPDATE SET
                     quiz_attempts = quiz_attempts + 1,
                     status = CASE
                       WHEN status = 'not_started' THEN 'in_progress'
                       ELSE status
                     END,
                     updated_at = excluded.updated_at""",
                (enrollment_id, content_id, ContentStatus.IN_PROGRESS.value, now)
            )
            conn.commit()
            return attempt_id
        finally:
            conn.close()

    async def submit_quiz_answer(self, attempt_id: str, question_id: str, answer: QuizAnswer) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """INSERT INTO quiz_answers (attempt_id, question_id, answer, submitted_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(attempt_id, question_id) DO UPDATE SET
                     answer = excluded.answer,
                     submitted_at = excluded.submitted_at""",
                (attempt_id, question_id, answer.model_dump_json(), datetime.now().isoformat())
            )
            conn.commit()
        finally:
            conn.close()

    async def complete_quiz_attempt(self, attempt_id: str, results: QuizResults) -> None:
        """Store attempt results and keep the best score on the content progress."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            row = conn.execute(
                "SELECT enrollment_id, content_id FROM quiz_attempts WHERE id = ?",
                (attempt_id,)
            ).fetchone()
            if not row:
                raise LookupError(f"Quiz attempt not found: {attempt_id}")
            conn.execute(
                """UPDATE quiz_attempts SET
                     status = ?, completed_at = ?, score = ?, passed = ?, results = ?
                   WHERE id = ?""",
                (AttemptStatus.COMPLETED.value, now, results.score, int(results.passed),
                 results.model_dump_json(), attempt_id)
            )
            conn.execute(
                """UPDATE content_progress SET
                     quiz_score = CASE
                       WHEN quiz_score IS NULL OR quiz_score < ? THEN ?
                       ELSE quiz_score
                     END,
                     updated_at = ?
                   WHERE enrollment_id = ? AND content_id = ?""",
                (results.score, results.score, now, row["enrollment_id"], row["content_id"])
            )
            conn.commit()
        finally:
            conn.close()

    async def abandon_quiz_attempt(self, attempt_id: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """UPDATE quiz_attempts SET status = ?
                   WHERE id = ? AND status = ?""",
                (AttemptStatus.ABANDONED.value, attempt_id, AttemptStatus.IN_PROGRESS.value)
            )
            conn.commit()
        finally:
            conn.close()

    def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]:
        """Get an attempt with its recorded answers."""
        conn = self._get_connection()
        try:
            row = conn.execute(
                """SELECT id, enrollment_id, content_id, attempt_number, status,
                          started_at, completed_at
                   FROM quiz_attempts WHERE id = ?""",
                (attempt_id,)
            ).fetchone()
            if not row:
                return None
            answer_rows = conn.execute(
                "SELECT question_id, answer FROM quiz_answers WHERE attempt_id = ?",
                (attempt_id,)
            ).fetchall()
            return QuizAttempt(
                id=row["id"],
                enrollment_id=row["enrollment_id"],
                content_id=row["content_id"],
                attempt_number=row["attempt_number"],
                status=AttemptStatus(row["status"]),
                started_at=datetime.fromisoformat(row["started_at"]),
                completed_at=_parse_time(row["completed_at"]),
                answers={
                    a["question_id"]: QuizAnswer(**json.loads(a["answer"]))
                    for a in answer_rows
                },
            )
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Enrollments
    # -------------------------------------------------------------------------

    async def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                """SELECT id, status, started_at, completed_at, final_score
                   FROM enrollments WHERE id = ?""",
                (enrollment_id,)
            ).fetchone()
            if not row:
                return None
            return Enrollment(
                id=row["id"],
                status=EnrollmentStatus(row["status"]),
                started_at=_parse_time(row["started_at"]),
                completed_at=_parse_time(row["completed_at"]),
                final_score=row["final_score"],
            )
        finally:
            conn.close()

    async def start_enrollment(self, enrollment_id: str) -> None:
        """Move an enrollment to in_progress; later calls leave it untouched."""
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            conn.execute(
                """INSERT INTO enrollments (id, status, started_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     status = CASE
                       WHEN status = 'enrolled' THEN 'in_progress'
                       ELSE status
                     END,
                     started_at = COALESCE(started_at, excluded.started_at)""",
                (enrollment_id, EnrollmentStatus.IN_PROGRESS.value, now)
            )
            conn.commit()
        finally:
            conn.close()

    async def complete_enrollment(self, enrollment_id: str, final_score: float) -> None:
        conn = self._get_connection()
        try:
            now = datetime.now().isoformat()
            conn.execute(
                """INSERT INTO enrollments (id, status, started_at, completed_at, final_score)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     status = excluded.status,
                     completed_at = excluded.completed_at,
                     final_score = excluded.final_score""",
                (enrollment_id, EnrollmentStatus.COMPLETED.value, now, now, final_score)
            )
            conn.commit()
        finally:
            conn.close()
