"""
Learning Service

Courses, enrollments and the lesson player: starting lessons, watch-time
heartbeats, quiz submission, lesson completion and the course completion
check that issues a certificate.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ..database.adapter import DatabaseAdapter, Transaction, get_database
from ..errors import AccessDenied, NotFound
from .certificates import CertificateService
from .progress import (
    CourseOutline,
    CourseProgress,
    Lesson,
    Module,
    QuizQuestion,
    QuizResult,
    score_quiz,
)

logger = logging.getLogger(__name__)

_YOUTUBE_ID = re.compile(
    r"(?:youtube\.com/(?:watch\?v=|embed/|v/)|youtu\.be/)([A-Za-z0-9_-]{11})"
)


def extract_video_id(url: Optional[str]) -> Optional[str]:
    """YouTube URL or bare id -> video id."""
    if not url:
        return None
    url = url.strip()
    match = _YOUTUBE_ID.search(url)
    if match:
        return match.group(1)
    return url


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class NewQuestion:
    question_text: str
    options: List[str]
    correct_answer: int
    id: Optional[str] = None


@dataclass
class NewLesson:
    title: str
    duration: int
    video_url: Optional[str] = None
    description: Optional[str] = None
    questions: List[NewQuestion] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class NewModule:
    title: str
    description: Optional[str] = None
    lessons: List[NewLesson] = field(default_factory=list)
    id: Optional[str] = None


@dataclass
class NewCourse:
    title: str
    description: str
    category: str = "technical"
    thumbnail_url: Optional[str] = None
    instructor_name: Optional[str] = None
    instructor_bio: Optional[str] = None
    published: bool = False
    modules: List[NewModule] = field(default_factory=list)


def _valid_questions(lesson: NewLesson) -> List[NewQuestion]:
    """Questions with text and no blank option; the rest are dropped on save."""
    return [
        q for q in lesson.questions
        if q.question_text.strip() and all(o.strip() for o in q.options)
    ]


def _validate_course(course: NewCourse) -> None:
    if not course.title.strip():
        raise ValueError("Course title is required")
    for module in course.modules:
        for lesson in module.lessons:
            if lesson.duration <= 0:
                raise ValueError(f"Lesson '{lesson.title}' needs a positive duration")
            for question in _valid_questions(lesson):
                if not 0 <= question.correct_answer < len(question.options):
                    raise ValueError(f"Question '{question.question_text}' has no valid correct answer")


def _course_columns(course: NewCourse) -> Tuple[Any, ...]:
    """title .. total_duration, in the column order both writes use."""
    return (
        course.title.strip(),
        course.description.strip(),
        (course.thumbnail_url or "").strip() or None,
        course.category,
        (course.instructor_name or "").strip() or None,
        (course.instructor_bio or "").strip() or None,
        1 if course.published else 0,
        sum(l.duration for m in course.modules for l in m.lessons),
    )


@dataclass
class QuizSubmission:
    """Result of a quiz attempt, plus what it unlocked."""
    result: QuizResult
    attempt_number: int
    lesson_completed: bool
    progress_percentage: int
    certificate: Optional[Dict[str, Any]] = None


class LearningService:
    """
    Course catalogue and enrollment progress for partners.
    """

    def __init__(
        self,
        db: Optional[DatabaseAdapter] = None,
        certificates: Optional[CertificateService] = None,
    ):
        self._db = db
        self.certificates = certificates or CertificateService(db)

    async def database(self) -> DatabaseAdapter:
        return self._db or await get_database()

    # Catalogue

    async def list_courses(self, published_only: bool = True) -> List[Dict[str, Any]]:
        db = await self.database()
        if published_only:
            return await db.fetch(
                "SELECT * FROM courses WHERE published = 1 ORDER BY created_at DESC"
            )
        return await db.fetch("SELECT * FROM courses ORDER BY created_at DESC")

    async def get_course(self, course_id: str) -> Dict[str, Any]:
        db = await self.database()
        course = await db.fetchrow("SELECT * FROM courses WHERE id = $1", course_id)
        if not course:
            raise NotFound("Course", course_id)
        return course

    async def get_outline(self, course_id: str) -> CourseOutline:
        """Course with modules and lessons ordered by order_index."""
        course = await self.get_course(course_id)
        db = await self.database()

        module_rows = await db.fetch(
            "SELECT * FROM course_modules WHERE course_id = $1 ORDER BY order_index",
            course_id
        )
        lesson_rows = await db.fetch(
            """
            SELECT l.*
            FROM course_lessons l
            JOIN course_modules m ON m.id = l.module_id
            WHERE m.course_id = $1
            ORDER BY l.order_index
            """,
            course_id
        )

        lessons_by_module: Dict[str, List[Lesson]] = {}
        for row in lesson_rows:
            lessons_by_module.setdefault(row["module_id"], []).append(Lesson(
                id=row["id"],
                module_id=row["module_id"],
                title=row["title"],
                order_index=row["order_index"] or 0,
                duration=row.get("duration") or 0,
                video_url=row.get("video_url"),
                description=row.get("description"),
            ))

        modules = [
            Module(
                id=row["id"],
                title=row["title"],
                order_index=row["order_index"] or 0,
                description=row.get("description"),
                lessons=lessons_by_module.get(row["id"], []),
            )
            for row in module_rows
        ]
        return CourseOutline(
            id=course["id"],
            title=course["title"],
            description=course.get("description"),
            modules=modules,
        )

    async def get_questions(self, lesson_id: str) -> List[QuizQuestion]:
        db = await self.database()
        rows = await db.fetch(
            "SELECT * FROM lesson_questions WHERE lesson_id = $1 ORDER BY order_index",
            lesson_id
        )
        return [
            QuizQuestion(
                id=r["id"],
                question_text=r["question_text"],
                options=json.loads(r["options"]) if isinstance(r["options"], str) else list(r["options"]),
                correct_answer=int(r["correct_answer"]),
                order_index=r["order_index"] or 0,
            )
            for r in rows
        ]

    async def create_course(self, course: NewCourse) -> Dict[str, Any]:
        """
        Create a course with its modules, lessons and quiz questions.

        Modules, lessons and questions take their order_index from their
        position in the input. Questions without text or with a blank
        option are skipped.
        """
        _validate_course(course)

        db = await self.database()
        course_id = str(uuid4())

        async with db.transaction() as tx:
            await tx.execute(
                """
                INSERT INTO courses (title, description, thumbnail_url, category, instructor_name,
                                     instructor_bio, published, total_duration, id, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                """,
                *_course_columns(course),
                course_id,
                _now()
            )
            await self._save_outline(tx, course_id, course.modules, {}, {}, {})

        logger.info(f"Course created: {course_id} ({len(course.modules)} modules)")
        return await self.get_course(course_id)

    async def update_course(self, course_id: str, course: NewCourse) -> Dict[str, Any]:
        """
        Save an edited course.

        ``course.modules`` is the whole outline after the edit. Entries with
        an ``id`` update that row and entries without one are inserted.
        Modules, lessons and questions of the course that are no longer
        listed are deleted, together with the lesson progress and quiz
        attempts recorded against removed lessons.

        Raises:
            NotFound: Unknown course
            ValueError: Invalid outline, or an id from another course
        """
        _validate_course(course)
        await self.get_course(course_id)
        db = await self.database()

        modules = {
            r["id"]: r for r in await db.fetch(
                "SELECT id FROM course_modules WHERE course_id = $1", course_id
            )
        }
        lessons = {
            r["id"]: r for r in await db.fetch(
                """
                SELECT l.id, l.module_id
                FROM course_lessons l
                JOIN course_modules m ON m.id = l.module_id
                WHERE m.course_id = $1
                """,
                course_id
            )
        }
        questions = {
            r["id"]: r for r in await db.fetch(
                """
                SELECT q.id, q.lesson_id
                FROM lesson_questions q
                JOIN course_lessons l ON l.id = q.lesson_id
                JOIN course_modules m ON m.id = l.module_id
                WHERE m.course_id = $1
                """,
                course_id
            )
        }

        kept_modules = {m.id for m in course.modules if m.id}
        kept_lessons = {l.id for m in course.modules for l in m.lessons if l.id}
        kept_questions = {
            q.id for m in course.modules for l in m.lessons for q in _valid_questions(l) if q.id
        }
        for kind, kept, known in (
            ("Module", kept_modules, modules),
            ("Lesson", kept_lessons, lessons),
            ("Question", kept_questions, questions),
        ):
            foreign = sorted(kept - set(known))
            if foreign:
                raise ValueError(f"{kind} '{foreign[0]}' is not part of course {course_id}")

        async with db.transaction() as tx:
            await tx.execute(
                """
                UPDATE courses
                SET title = $1, description = $2, thumbnail_url = $3, category = $4,
                    instructor_name = $5, instructor_bio = $6, published = $7, total_duration = $8
                WHERE id = $9
                """,
                *_course_columns(course),
                course_id
            )
            await self._save_outline(tx, course_id, course.modules, modules, lessons, questions)

            for question_id in set(questions) - kept_questions:
                await tx.execute("DELETE FROM lesson_questions WHERE id = $1", question_id)
            for lesson_id in set(lessons) - kept_lessons:
                await self._delete_lesson(tx, lesson_id)
            for module_id in set(modules) - kept_modules:
                await tx.execute("DELETE FROM course_modules WHERE id = $1", module_id)

        logger.info(
            f"Course updated: {course_id} ({len(set(modules) - kept_modules)} modules, "
            f"{len(set(lessons) - kept_lessons)} lessons removed)"
        )
        return await self.get_course(course_id)

    async def _save_outline(
        self,
        tx: Transaction,
        course_id: str,
        modules: List[NewModule],
        known_modules: Dict[str, Any],
        known_lessons: Dict[str, Any],
        known_questions: Dict[str, Any],
    ) -> None:
        """Insert or update every module, lesson and question in input order."""
        for i, module in enumerate(modules):
            module_id = module.id if module.id in known_modules else str(uuid4())
            fields = (module.title.strip(), (module.description or "").strip() or None, i)
            if module.id in known_modules:
                await tx.execute(
                    "UPDATE course_modules SET title = $1, description = $2, order_index = $3 WHERE id = $4",
                    *fields, module_id
                )
            else:
                await tx.execute(
                    """
                    INSERT INTO course_modules (title, description, order_index, id, course_id)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    *fields, module_id, course_id
                )

            for j, lesson in enumerate(module.lessons):
                lesson_id = lesson.id if lesson.id in known_lessons else str(uuid4())
                fields = (
                    module_id,
                    lesson.title.strip(),
                    (lesson.description or "").strip() or None,
                    extract_video_id(lesson.video_url),
                    lesson.duration,
                    j,
                )
                if lesson.id in known_lessons:
                    await tx.execute(
                        """
                        UPDATE course_lessons
                        SET module_id = $1, title = $2, description = $3, video_url = $4,
                            duration = $5, order_index = $6
                        WHERE id = $7
                        """,
                        *fields, lesson_id
                    )
                else:
                    await tx.execute(
                        """
                        INSERT INTO course_lessons (module_id, title, description, video_url, duration, order_index, id)
                        VALUES ($1, $2, $3, $4, $5, $6, $7)
                        """,
                        *fields, lesson_id
                    )

                for k, question in enumerate(_valid_questions(lesson)):
                    fields = (
                        lesson_id,
                        question.question_text.strip(),
                        json.dumps(question.options),
                        question.correct_answer,
                        k,
                    )
                    if question.id in known_questions:
                        await tx.execute(
                            """
                            UPDATE lesson_questions
                            SET lesson_id = $1, question_text = $2, options = $3, correct_answer = $4, order_index = $5
                            WHERE id = $6
                            """,
                            *fields, question.id
                        )
                    else:
                        await tx.execute(
                            """
                            INSERT INTO lesson_questions (lesson_id, question_text, options, correct_answer, order_index, id)
                            VALUES ($1, $2, $3, $4, $5, $6)
                            """,
                            *fields, str(uuid4())
                        )

    async def _delete_lesson(self, tx: Transaction, lesson_id: str) -> None:
        for table in ("lesson_questions", "lesson_progress", "quiz_attempts"):
            await tx.execute(f"DELETE FROM {table} WHERE lesson_id = $1", lesson_id)
        await tx.execute("DELETE FROM course_lessons WHERE id = $1", lesson_id)

    async def set_published(self, course_id: str, published: bool) -> Dict[str, Any]:
        """Publish or unpublish a course. Unpublished courses leave the catalogue."""
        db = await self.database()
        rows = await db.fetch(
            "UPDATE courses SET published = $1 WHERE id = $2 RETURNING id",
            1 if published else 0, course_id
        )
        if not rows:
            raise NotFound("Course", course_id)
        logger.info(f"Course {course_id} {'published' if published else 'unpublished'}")
        return await self.get_course(course_id)

    async def delete_course(self, course_id: str) -> None:
        """
        Hard delete a course with its outline and every enrollment in it.

        Certificates issued for the course go with their enrollments.
        """
        db = await self.database()
        enrollments = "SELECT id FROM course_enrollments WHERE course_id = $1"
        modules = "SELECT id FROM course_modules WHERE course_id = $1"
        lessons = f"SELECT id FROM course_lessons WHERE module_id IN ({modules})"

        async with db.transaction() as tx:
            for table in ("certificates", "lesson_progress", "quiz_attempts"):
                await tx.execute(f"DELETE FROM {table} WHERE enrollment_id IN ({enrollments})", course_id)
            await tx.execute("DELETE FROM course_enrollments WHERE course_id = $1", course_id)
            await tx.execute(f"DELETE FROM lesson_questions WHERE lesson_id IN ({lessons})", course_id)
            await tx.execute(f"DELETE FROM course_lessons WHERE module_id IN ({modules})", course_id)
            await tx.execute("DELETE FROM course_modules WHERE course_id = $1", course_id)
            rows = await tx.fetch("DELETE FROM courses WHERE id = $1 RETURNING id", course_id)
            if not rows:
                raise NotFound("Course", course_id)

        logger.info(f"Course deleted: {course_id}")

    # Enrollment

    async def get_enrollment(self, partner_id: str, course_id: str) -> Optional[Dict[str, Any]]:
        db = await self.database()
        return await db.fetchrow(
            "SELECT * FROM course_enrollments WHERE partner_id = $1 AND course_id = $2",
            partner_id, course_id
        )

    async def enroll(self, partner_id: str, course_id: str) -> Tuple[Dict[str, Any], bool]:
        """
        Enroll a partner in a course.

        Returns (enrollment, created). Enrolling twice returns the existing
        enrollment with created=False.
        """
        await self.get_course(course_id)

        existing = await self.get_enrollment(partner_id, course_id)
        if existing:
            logger.info(f"Partner {partner_id} already enrolled in {course_id}")
            return existing, False

        db = await self.database()
        await db.execute(
            """
            INSERT INTO course_enrollments (id, partner_id, course_id, progress_percentage, enrolled_at)
            VALUES ($1, $2, $3, $4, $5)
            """,
            str(uuid4()), partner_id, course_id, 0, _now()
        )
        logger.info(f"Partner {partner_id} enrolled in course {course_id}")
        return await self.get_enrollment(partner_id, course_id), True

    async def list_enrollments(self, partner_id: str) -> List[Dict[str, Any]]:
        db = await self.database()
        return await db.fetch(
            """
            SELECT e.*, c.title AS course_title, c.category AS course_category,
                   c.thumbnail_url AS course_thumbnail_url
            FROM course_enrollments e
            JOIN courses c ON c.id = e.course_id
            WHERE e.partner_id = $1
            ORDER BY e.enrolled_at DESC
            """,
            partner_id
        )

    async def _require_enrollment(self, partner_id: str, course_id: str) -> Dict[str, Any]:
        enrollment = await self.get_enrollment(partner_id, course_id)
        if not enrollment:
            raise AccessDenied(f"Not enrolled in course {course_id}")
        return enrollment

    async def _completed_lesson_ids(self, enrollment_id: str) -> List[str]:
        db = await self.database()
        rows = await db.fetch(
            "SELECT lesson_id, completed FROM lesson_progress WHERE enrollment_id = $1",
            enrollment_id
        )
        return [r["lesson_id"] for r in rows if r["completed"]]

    async def get_progress(self, partner_id: str, course_id: str) -> CourseProgress:
        outline = await self.get_outline(course_id)
        enrollment = await self.get_enrollment(partner_id, course_id)
        if not enrollment:
            return CourseProgress(outline)
        return CourseProgress(outline, await self._completed_lesson_ids(enrollment["id"]))

    # Lesson player

    async def _lesson_context(
        self, partner_id: str, course_id: str, lesson_id: str
    ) -> Tuple[Dict[str, Any], CourseProgress]:
        enrollment = await self._require_enrollment(partner_id, course_id)
        outline = await self.get_outline(course_id)
        if outline.get_lesson(lesson_id) is None:
            raise NotFound("Lesson", lesson_id)
        progress = CourseProgress(outline, await self._completed_lesson_ids(enrollment["id"]))
        return enrollment, progress

    async def _progress_row(self, enrollment_id: str, lesson_id: str) -> Optional[Dict[str, Any]]:
        db = await self.database()
        return await db.fetchrow(
            "SELECT * FROM lesson_progress WHERE enrollment_id = $1 AND lesson_id = $2",
            enrollment_id, lesson_id
        )

    async def start_lesson(self, partner_id: str, course_id: str, lesson_id: str) -> Dict[str, Any]:
        """
        Open a lesson in the player.

        Creates the lesson's progress row on first visit. Locked lessons
        raise AccessDenied.
        """
        enrollment, progress = await self._lesson_context(partner_id, course_id, lesson_id)
        if not progress.is_lesson_accessible(lesson_id):
            raise AccessDenied("Complete the previous lesson to unlock this one")

        row = await self._progress_row(enrollment["id"], lesson_id)
        if row is None:
            db = await self.database()
            await db.execute(
                """
                INSERT INTO lesson_progress (id, enrollment_id, lesson_id, completed, watch_time, last_watched_at)
                VALUES ($1, $2, $3, $4, $5, $6)
                """,
                str(uuid4()), enrollment["id"], lesson_id, 0, 0, _now()
            )
            row = await self._progress_row(enrollment["id"], lesson_id)

        lesson = progress.outline.get_lesson(lesson_id)
        next_lesson = progress.next_lesson(lesson_id)
        questions = await self.get_questions(lesson_id)
        return {
            "enrollment_id": enrollment["id"],
            "lesson": lesson.__dict__,
            "progress": row,
            "video_watched": bool(row["completed"]) or row["watch_time"] >= lesson.duration * 0.95,
            "questions": [
                {"id": q.id, "question_text": q.question_text, "options": q.options}
                for q in questions
            ],
            "next_lesson_id": next_lesson.id if next_lesson else None,
        }

    async def record_watch_time(
        self, partner_id: str, course_id: str, lesson_id: str, seconds: int
    ) -> Dict[str, Any]:
        """Heartbeat from the player: store current position."""
        if seconds < 0:
            raise ValueError("watch_time must be non-negative")
        enrollment, _ = await self._lesson_context(partner_id, course_id, lesson_id)

        db = await self.database()
        rows = await db.fetch(
            """
            UPDATE lesson_progress
            SET watch_time = $1, last_watched_at = $2
            WHERE enrollment_id = $3 AND lesson_id = $4
            RETURNING id
            """,
            int(seconds), _now(), enrollment["id"], lesson_id
        )
        if not rows:
            raise NotFound("Lesson progress", lesson_id)
        return await self._progress_row(enrollment["id"], lesson_id)

    async def submit_quiz(
        self,
        partner_id: str,
        course_id: str,
        lesson_id: str,
        answers: Dict[str, int],
    ) -> QuizSubmission:
        """Score a quiz attempt; a pass completes the lesson."""
        enrollment, progress = await self._lesson_context(partner_id, course_id, lesson_id)
        if not progress.is_lesson_accessible(lesson_id):
            raise AccessDenied("Complete the previous lesson to unlock this one")

        result = score_quiz(await self.get_questions(lesson_id), answers)

        db = await self.database()
        previous = await db.fetchval(
            "SELECT COUNT(*) FROM quiz_attempts WHERE enrollment_id = $1 AND lesson_id = $2",
            enrollment["id"], lesson_id
        )
        attempt_number = int(previous or 0) + 1
        await db.execute(
            """
            INSERT INTO quiz_attempts (id, enrollment_id, lesson_id, answers, score, passed, attempt_number, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            """,
            str(uuid4()), enrollment["id"], lesson_id, json.dumps(answers),
            result.score, 1 if result.passed else 0, attempt_number, _now()
        )
        logger.info(
            f"Quiz attempt {attempt_number} for lesson {lesson_id}: "
            f"score={result.score} passed={result.passed}"
        )

        submission = QuizSubmission(
            result=result,
            attempt_number=attempt_number,
            lesson_completed=progress.is_lesson_completed(lesson_id),
            progress_percentage=progress.progress_percentage(),
        )
        if result.passed:
            percentage, certificate = await self._mark_completed(enrollment, progress, lesson_id)
            submission.lesson_completed = True
            submission.progress_percentage = percentage
            submission.certificate = certificate
        return submission

    async def complete_lesson(
        self, partner_id: str, course_id: str, lesson_id: str
    ) -> Dict[str, Any]:
        """Mark a lesson without a quiz as complete."""
        enrollment, progress = await self._lesson_context(partner_id, course_id, lesson_id)
        if not progress.is_lesson_accessible(lesson_id):
            raise AccessDenied("Complete the previous lesson to unlock this one")
        if await self.get_questions(lesson_id):
            raise ValueError("Pass the lesson quiz to complete this lesson")

        percentage, certificate = await self._mark_completed(enrollment, progress, lesson_id)
        return {
            "lesson_id": lesson_id,
            "completed": True,
            "progress_percentage": percentage,
            "certificate": certificate,
        }

    async def _mark_completed(
        self,
        enrollment: Dict[str, Any],
        progress: CourseProgress,
        lesson_id: str,
    ) -> Tuple[int, Optional[Dict[str, Any]]]:
        db = await self.database()

        row = await self._progress_row(enrollment["id"], lesson_id)
        if row is None:
            now = _now()
            await db.execute(
                """
                INSERT INTO lesson_progress
                    (id, enrollment_id, lesson_id, completed, watch_time, last_watched_at, completed_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                str(uuid4()), enrollment["id"], lesson_id, 1, 0, now, now
            )
        else:
            await db.execute(
                "UPDATE lesson_progress SET completed = $1, completed_at = $2 WHERE id = $3",
                1, _now(), row["id"]
            )

        progress.completed.add(lesson_id)
        percentage = max(int(enrollment.get("progress_percentage") or 0), progress.progress_percentage())
        await db.execute(
            "UPDATE course_enrollments SET progress_percentage = $1 WHERE id = $2",
            percentage, enrollment["id"]
        )

        certificate = None
        if progress.is_complete:
            certificate = await self.certificates.issue_for_enrollment(enrollment["id"])
        return percentage, certificate
