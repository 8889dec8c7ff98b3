"""
Learning API

Course catalogue, enrollment and the lesson player for partners.
"""

from dataclasses import asdict
from typing import Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from ....core.auth.session import SessionContext
from ....core.learning import LearningService
from ...shared.middleware.auth import require_partner
from ...shared.responses import ListResponse, SuccessResponse

router = APIRouter(prefix="/api/learning", tags=["learning"])


class WatchTimeRequest(BaseModel):
    seconds: int = Field(..., ge=0)


class QuizRequest(BaseModel):
    """Selected option index per question id."""
    answers: Dict[str, int]


@router.get("/courses")
async def list_courses(session: SessionContext = Depends(require_partner)):
    """Published courses."""
    return ListResponse.create(await LearningService().list_courses())


@router.get("/courses/{course_id}")
async def get_course(course_id: str, session: SessionContext = Depends(require_partner)):
    """Course with its outline, the caller's enrollment and progress."""
    service = LearningService()
    course = await service.get_course(course_id)
    outline = await service.get_outline(course_id)
    enrollment = await service.get_enrollment(session.partner_id, course_id)
    progress = await service.get_progress(session.partner_id, course_id)
    return SuccessResponse.create({
        "course": course,
        "modules": [asdict(m) for m in outline.modules],
        "lesson_count": outline.lesson_count,
        "enrollment": enrollment,
        "progress": progress.to_dict() if enrollment else None,
    })


@router.post("/courses/{course_id}/enroll")
async def enroll(course_id: str, response: Response, session: SessionContext = Depends(require_partner)):
    """Enroll in a course. Enrolling again returns the existing enrollment."""
    enrollment, created = await LearningService().enroll(session.partner_id, course_id)
    response.status_code = 201 if created else 200
    return {"enrollment": enrollment, "created": created}


@router.get("/enrollments")
async def list_enrollments(session: SessionContext = Depends(require_partner)):
    return ListResponse.create(await LearningService().list_enrollments(session.partner_id))


@router.get("/courses/{course_id}/progress")
async def get_progress(course_id: str, session: SessionContext = Depends(require_partner)):
    """Per-lesson completion and accessibility plus the lesson to resume at."""
    progress = await LearningService().get_progress(session.partner_id, course_id)
    return progress.to_dict()


@router.post("/courses/{course_id}/lessons/{lesson_id}/start")
async def start_lesson(course_id: str, lesson_id: str, session: SessionContext = Depends(require_partner)):
    """Open a lesson in the player. Locked lessons answer 403."""
    return await LearningService().start_lesson(session.partner_id, course_id, lesson_id)


@router.post("/courses/{course_id}/lessons/{lesson_id}/watch-time")
async def record_watch_time(
    course_id: str,
    lesson_id: str,
    body: WatchTimeRequest,
    session: SessionContext = Depends(require_partner),
):
    return await LearningService().record_watch_time(
        session.partner_id, course_id, lesson_id, body.seconds
    )


@router.post("/courses/{course_id}/lessons/{lesson_id}/quiz")
async def submit_quiz(
    course_id: str,
    lesson_id: str,
    body: QuizRequest,
    session: SessionContext = Depends(require_partner),
):
    """Score a quiz attempt; 70% or better completes the lesson."""
    submission = await LearningService().submit_quiz(
        session.partner_id, course_id, lesson_id, body.answers
    )
    return {
        "score": submission.result.score,
        "passed": submission.result.passed,
        "correct": submission.result.correct,
        "total": submission.result.total,
        "attempt_number": submission.attempt_number,
        "lesson_completed": submission.lesson_completed,
        "progress_percentage": submission.progress_percentage,
        "certificate": submission.certificate,
    }


@router.post("/courses/{course_id}/lessons/{lesson_id}/complete")
async def complete_lesson(course_id: str, lesson_id: str, session: SessionContext = Depends(require_partner)):
    """Complete a lesson that has no quiz."""
    return await LearningService().complete_lesson(session.partner_id, course_id, lesson_id)
