"""
Learning Management

Courses, enrollments, lesson progress, quizzes and certificates.
"""

from .progress import (
    CourseOutline,
    CourseProgress,
    Lesson,
    Module,
    QuizQuestion,
    QuizResult,
    PASSING_SCORE,
    score_quiz,
)
from .certificates import (
    CertificateService,
    certificate_url,
    generate_certificate_number,
    render_certificate_html,
)
from .courses import (
    LearningService,
    NewCourse,
    NewLesson,
    NewModule,
    NewQuestion,
    QuizSubmission,
    extract_video_id,
)

__all__ = [
    "CourseOutline",
    "CourseProgress",
    "Lesson",
    "Module",
    "QuizQuestion",
    "QuizResult",
    "PASSING_SCORE",
    "score_quiz",
    "CertificateService",
    "certificate_url",
    "generate_certificate_number",
    "render_certificate_html",
    "LearningService",
    "NewCourse",
    "NewLesson",
    "NewModule",
    "NewQuestion",
    "QuizSubmission",
    "extract_video_id",
]
