"""
Unit tests for course progress, lesson unlocking and quiz scoring.
"""

import pytest

from src.core.learning.progress import (
    CourseOutline,
    CourseProgress,
    Lesson,
    Module,
    QuizQuestion,
    score_quiz,
)


def two_module_course() -> CourseOutline:
    """M1: [L1, L2], M2: [L3]; given out of order to exercise sorting."""
    return CourseOutline(
        id="C1",
        title="Partner Onboarding",
        modules=[
            Module(id="M2", title="Selling", order_index=1, lessons=[
                Lesson(id="L3", module_id="M2", title="Pitching", order_index=0, duration=300),
            ]),
            Module(id="M1", title="Basics", order_index=0, lessons=[
                Lesson(id="L2", module_id="M1", title="Pricing", order_index=1, duration=240),
                Lesson(id="L1", module_id="M1", title="Welcome", order_index=0, duration=120),
            ]),
        ],
    )


class TestCourseOutline:

    def test_lessons_ordered_by_module_then_lesson(self):
        outline = two_module_course()
        assert [l.id for l in outline.ordered_lessons()] == ["L1", "L2", "L3"]
        assert outline.lesson_count == 3


class TestResumeLesson:
    """first_incomplete_lesson picks where the player resumes."""

    def test_resumes_at_first_incomplete(self):
        progress = CourseProgress(two_module_course(), {"L1"})
        assert progress.first_incomplete_lesson().id == "L2"

    def test_nothing_done_starts_at_beginning(self):
        progress = CourseProgress(two_module_course())
        assert progress.first_incomplete_lesson().id == "L1"

    def test_all_complete_returns_first_lesson(self):
        progress = CourseProgress(two_module_course(), {"L1", "L2", "L3"})
        assert progress.first_incomplete_lesson().id == "L1"
        assert progress.is_complete

    def test_course_without_lessons(self):
        progress = CourseProgress(CourseOutline(id="C0", title="Empty", modules=[
            Module(id="M1", title="Nothing yet"),
        ]))
        assert progress.first_incomplete_lesson() is None
        assert not progress.is_complete
        assert progress.progress_percentage() == 0


class TestLessonAccess:

    def test_first_lesson_of_each_module_is_open(self):
        progress = CourseProgress(two_module_course())
        assert progress.is_lesson_accessible("L1")
        assert progress.is_lesson_accessible("L3")

    def test_later_lesson_locked_until_previous_done(self):
        outline = two_module_course()
        assert not CourseProgress(outline).is_lesson_accessible("L2")
        assert CourseProgress(outline, {"L1"}).is_lesson_accessible("L2")

    def test_unknown_lesson_not_accessible(self):
        assert not CourseProgress(two_module_course()).is_lesson_accessible("L99")

    def test_next_lesson_stays_in_module(self):
        progress = CourseProgress(two_module_course())
        assert progress.next_lesson("L1").id == "L2"
        assert progress.next_lesson("L2") is None


class TestProgressPercentage:

    def test_rounds_half_up(self):
        outline = CourseOutline(id="C", title="Eight", modules=[
            Module(id="M", title="M", lessons=[
                Lesson(id=f"L{i}", module_id="M", title=f"L{i}", order_index=i) for i in range(8)
            ]),
        ])
        # 1/8 = 12.5% -> 13
        assert CourseProgress(outline, {"L0"}).progress_percentage() == 13

    def test_two_of_three(self):
        assert CourseProgress(two_module_course(), {"L1", "L2"}).progress_percentage() == 67

    def test_to_dict(self):
        data = CourseProgress(two_module_course(), {"L1"}).to_dict()
        assert data["resume_lesson_id"] == "L2"
        assert data["progress_percentage"] == 33
        locked = {l["id"]: l["accessible"] for l in data["lessons"]}
        assert locked == {"L1": True, "L2": True, "L3": True}


def questions(n: int):
    return [
        QuizQuestion(id=f"q{i}", question_text=f"Question {i}", options=["a", "b", "c"], correct_answer=1)
        for i in range(n)
    ]


class TestScoreQuiz:

    def test_all_correct(self):
        result = score_quiz(questions(3), {"q0": 1, "q1": 1, "q2": 1})
        assert result.score == 100
        assert result.passed

    def test_exactly_seventy_passes(self):
        answers = {f"q{i}": 1 for i in range(7)}
        result = score_quiz(questions(10), answers)
        assert result.score == 70
        assert result.passed

    def test_below_seventy_fails(self):
        # 2/3 = 66.7% -> 67
        result = score_quiz(questions(3), {"q0": 1, "q1": 1, "q2": 0})
        assert result.score == 67
        assert not result.passed
        assert result.correct == 2
        assert result.total == 3

    def test_unanswered_questions_are_wrong(self):
        result = score_quiz(questions(2), {})
        assert result.score == 0

    def test_no_questions(self):
        with pytest.raises(ValueError):
            score_quiz([], {})
