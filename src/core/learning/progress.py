"""
Course outline and progress tracking.

Pure computations over a course's modules and lessons and an enrollment's
set of completed lessons. Nothing here touches the database.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


@dataclass
class Lesson:
    id: str
    module_id: str
    title: str
    order_index: int = 0
    duration: int = 0  # seconds
    video_url: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Module:
    id: str
    title: str
    order_index: int = 0
    description: Optional[str] = None
    lessons: List[Lesson] = field(default_factory=list)

    def __post_init__(self):
        self.lessons.sort(key=lambda lesson: lesson.order_index)


@dataclass
class CourseOutline:
    """A course with its modules and lessons in display (and unlock) order."""
    id: str
    title: str
    modules: List[Module] = field(default_factory=list)
    description: Optional[str] = None

    def __post_init__(self):
        self.modules.sort(key=lambda module: module.order_index)

    def ordered_lessons(self) -> List[Lesson]:
        return [lesson for module in self.modules for lesson in module.lessons]

    @property
    def lesson_count(self) -> int:
        return sum(len(module.lessons) for module in self.modules)

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        for lesson in self.ordered_lessons():
            if lesson.id == lesson_id:
                return lesson
        return None

    def get_module(self, module_id: str) -> Optional[Module]:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None


class CourseProgress:
    """
    Progress of one enrollment through a course.

    A lesson is accessible when it is the first lesson of its module or the
    lesson before it in the same module is complete.
    """

    def __init__(self, outline: CourseOutline, completed_lesson_ids: Iterable[str] = ()):
        self.outline = outline
        self.completed = set(completed_lesson_ids)

    def is_lesson_completed(self, lesson_id: str) -> bool:
        return lesson_id in self.completed

    def first_incomplete_lesson(self) -> Optional[Lesson]:
        """
        Lesson to resume at.

        The first lesson without a completion record, scanning modules then
        lessons by order_index. When everything is complete this is the very
        first lesson; None only for a course without lessons.
        """
        lessons = self.outline.ordered_lessons()
        if not lessons:
            return None
        for lesson in lessons:
            if not self.is_lesson_completed(lesson.id):
                return lesson
        return lessons[0]

    def is_lesson_accessible(self, lesson_id: str) -> bool:
        lesson = self.outline.get_lesson(lesson_id)
        if lesson is None:
            return False
        module = self.outline.get_module(lesson.module_id)
        position = [l.id for l in module.lessons].index(lesson_id)
        if position == 0:
            return True
        return self.is_lesson_completed(module.lessons[position - 1].id)

    def next_lesson(self, lesson_id: str) -> Optional[Lesson]:
        """Lesson after this one in the same module."""
        lesson = self.outline.get_lesson(lesson_id)
        if lesson is None:
            return None
        module = self.outline.get_module(lesson.module_id)
        ids = [l.id for l in module.lessons]
        position = ids.index(lesson_id)
        if position + 1 < len(ids):
            return module.lessons[position + 1]
        return None

    def progress_percentage(self) -> int:
        total = self.outline.lesson_count
        if total == 0:
            return 0
        done = sum(1 for lesson in self.outline.ordered_lessons() if lesson.id in self.completed)
        return _round_half_up(done / total * 100)

    @property
    def is_complete(self) -> bool:
        lessons = self.outline.ordered_lessons()
        return bool(lessons) and all(lesson.id in self.completed for lesson in lessons)

    def to_dict(self) -> Dict[str, object]:
        resume = self.first_incomplete_lesson()
        return {
            "course_id": self.outline.id,
            "completed_lessons": sorted(self.completed),
            "progress_percentage": self.progress_percentage(),
            "is_complete": self.is_complete,
            "resume_lesson_id": resume.id if resume else None,
            "lessons": [
                {
                    "id": lesson.id,
                    "module_id": lesson.module_id,
                    "title": lesson.title,
                    "completed": self.is_lesson_completed(lesson.id),
                    "accessible": self.is_lesson_accessible(lesson.id),
                }
                for lesson in self.outline.ordered_lessons()
            ],
        }


# Quiz scoring

PASSING_SCORE = 70


@dataclass
class QuizQuestion:
    id: str
    question_text: str
    options: List[str]
    correct_answer: int
    order_index: int = 0


@dataclass
class QuizResult:
    score: int
    passed: bool
    correct: int
    total: int


def score_quiz(questions: List[QuizQuestion], answers: Dict[str, int]) -> QuizResult:
    """Score answers (question id -> option index); pass at 70% or better."""
    if not questions:
        raise ValueError("Lesson has no quiz questions")
    correct = sum(1 for q in questions if answers.get(q.id) == q.correct_answer)
    score = _round_half_up(correct / len(questions) * 100)
    return QuizResult(score=score, passed=score >= PASSING_SCORE, correct=correct, total=len(questions))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
