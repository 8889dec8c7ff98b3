"""
Admin API

Endpoints for the admin area: every deal, the partner directory, account
provisioning, admin management, course authoring and the knowledge base.
All require an admin record for the caller.
"""

import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, EmailStr, Field

from ....core.accounts import (
    AccountRequest,
    AccountType,
    DirectoryService,
    OrganizationForm,
    OrganizationType,
    PartnerFilter,
    Tier,
    TIER_DEFAULTS,
    get_provisioning_client,
)
from ....core.auth import get_identity_client
from ....core.auth.session import SessionContext
from ....core.dashboard import DashboardService
from ....core.deals import (
    BoardContext,
    DealFilter,
    DealRepository,
    get_workflow_engine,
)
from ....core.learning import (
    LearningService,
    NewCourse,
    NewLesson,
    NewModule,
    NewQuestion,
)
from ....core.support import ArticleCategory, KnowledgeService, NewArticle
from ...shared.middleware.auth import require_admin
from ...shared.responses import ListResponse, SuccessResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


# Request models

class OrganizationModel(BaseModel):
    name: str
    type: OrganizationType = OrganizationType.RESELLER
    tier: Tier = Tier.BRONZE
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)
    mdf_allocation: Optional[int] = Field(None, ge=0)


class ProvisionAccountRequest(BaseModel):
    """Account provisioning form. Omitted discount/MDF take the tier defaults."""
    email: EmailStr
    first_name: str
    last_name: str
    account_type: AccountType = AccountType.PARTNER
    phone: Optional[str] = None
    organization: Optional[OrganizationModel] = None

    def to_account_request(self) -> AccountRequest:
        organization = None
        if self.organization:
            organization = OrganizationForm(name=self.organization.name, type=self.organization.type)
            organization.select_tier(self.organization.tier)
            if self.organization.discount_percentage is not None:
                organization.discount_percentage = self.organization.discount_percentage
            if self.organization.mdf_allocation is not None:
                organization.mdf_allocation = self.organization.mdf_allocation
        return AccountRequest(
            email=str(self.email),
            first_name=self.first_name,
            last_name=self.last_name,
            account_type=self.account_type,
            phone=self.phone,
            organization=organization,
        )


class AdminStageChangeRequest(BaseModel):
    stage: str
    context: BoardContext = BoardContext.ADMIN


class QuestionModel(BaseModel):
    id: Optional[str] = None
    question_text: str
    options: List[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0)


class LessonModel(BaseModel):
    id: Optional[str] = None
    title: str
    duration: int = Field(..., gt=0, description="Seconds")
    video_url: Optional[str] = None
    description: Optional[str] = None
    questions: List[QuestionModel] = []


class ModuleModel(BaseModel):
    id: Optional[str] = None
    title: str
    description: Optional[str] = None
    lessons: List[LessonModel] = []


class CourseRequest(BaseModel):
    """
    Course form. On update the modules are the whole outline: entries keep
    their ``id``, new entries omit it, and anything left out is removed.
    """
    title: str
    description: str = ""
    category: str = "technical"
    thumbnail_url: Optional[str] = None
    instructor_name: Optional[str] = None
    instructor_bio: Optional[str] = None
    published: bool = False
    modules: List[ModuleModel] = []

    def to_new_course(self) -> NewCourse:
        return NewCourse(
            title=self.title,
            description=self.description,
            category=self.category,
            thumbnail_url=self.thumbnail_url,
            instructor_name=self.instructor_name,
            instructor_bio=self.instructor_bio,
            published=self.published,
            modules=[
                NewModule(
                    id=m.id,
                    title=m.title,
                    description=m.description,
                    lessons=[
                        NewLesson(
                            id=l.id,
                            title=l.title,
                            duration=l.duration,
                            video_url=l.video_url,
                            description=l.description,
                            questions=[
                                NewQuestion(q.question_text, q.options, q.correct_answer, id=q.id)
                                for q in l.questions
                            ],
                        )
                        for l in m.lessons
                    ],
                )
                for m in self.modules
            ],
        )


class PublishRequest(BaseModel):
    published: bool


class ArticleCreateRequest(BaseModel):
    title: str
    content: str
    category: ArticleCategory
    access_level: str = "all"
    tags: List[str] = []


# Dashboard

@router.get("/stats")
async def admin_stats(session: SessionContext = Depends(require_admin)):
    """Portal-wide totals plus the latest deals and partners."""
    return await DashboardService().admin_stats()


# Deals

@router.get("/deals")
async def list_all_deals(
    search: Optional[str] = None,
    stage: Optional[str] = None,
    partner_id: Optional[str] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: SessionContext = Depends(require_admin),
):
    deals = await DealRepository().list(DealFilter(
        search=search,
        stage=stage,
        partner_id=partner_id,
        sort_by=sort_by,
        descending=order == "desc",
    ))
    return ListResponse.create(deals, limit=limit, offset=offset)


@router.get("/deals/summary")
async def admin_stage_summary(
    context: BoardContext = BoardContext.ADMIN,
    session: SessionContext = Depends(require_admin),
):
    engine = await get_workflow_engine()
    return await engine.get_deal_stages_summary(context)


@router.get("/deals/{deal_id}")
async def get_any_deal(deal_id: str, session: SessionContext = Depends(require_admin)):
    return SuccessResponse.create(await DealRepository().get_detail(deal_id))


@router.patch("/deals/{deal_id}/stage")
async def change_any_stage(
    deal_id: str,
    body: AdminStageChangeRequest,
    session: SessionContext = Depends(require_admin),
):
    """Move a deal's admin stage (or its sales stage with context=partner)."""
    engine = await get_workflow_engine()
    transition = await engine.transition_stage(
        deal_id, body.stage, body.context, transitioned_by=session.user_id
    )
    return {
        "deal_id": deal_id,
        "context": body.context.value,
        "from_stage": transition.from_stage,
        "to_stage": transition.to_stage,
        "no_op": transition.no_op,
        "activity_logged": transition.activity_logged,
    }


@router.delete("/deals/{deal_id}", status_code=204)
async def delete_deal(deal_id: str, session: SessionContext = Depends(require_admin)):
    await DealRepository().delete(deal_id)
    logger.info(f"Deal {deal_id} deleted by admin {session.user_id}")
    return Response(status_code=204)


# Partners and accounts

@router.get("/partners")
async def list_partners(
    search: Optional[str] = None,
    tier: Optional[Tier] = None,
    type: Optional[OrganizationType] = None,
    sort_by: str = "created_at",
    order: str = Query("desc", pattern="^(asc|desc)$"),
    session: SessionContext = Depends(require_admin),
):
    partners = await DirectoryService().list_partners(PartnerFilter(
        search=search,
        tier=tier.value if tier else None,
        type=type.value if type else None,
        sort_by=sort_by,
        descending=order == "desc",
    ))
    return ListResponse.create(partners)


@router.get("/partners/{partner_id}")
async def get_partner(partner_id: str, session: SessionContext = Depends(require_admin)):
    return SuccessResponse.create(await DirectoryService().get_partner(partner_id))


@router.get("/tier-defaults")
async def tier_defaults(session: SessionContext = Depends(require_admin)):
    """Discount and MDF pre-fill values per tier."""
    return {
        tier.value: {
            "discount_percentage": defaults.discount_percentage,
            "mdf_allocation": defaults.mdf_allocation,
        }
        for tier, defaults in TIER_DEFAULTS.items()
    }


@router.post("/accounts", status_code=201)
async def provision_account(
    body: ProvisionAccountRequest,
    session: SessionContext = Depends(require_admin),
):
    """Create a partner or admin account and send the invitation."""
    result = await get_provisioning_client().provision_account(
        body.to_account_request(), access_token=session.access_token
    )
    return {"message": f"Invitation sent to {body.email}", "result": result}


@router.get("/admins")
async def list_admins(search: Optional[str] = None, session: SessionContext = Depends(require_admin)):
    return ListResponse.create(await DirectoryService().list_admins(search))


@router.delete("/admins/{admin_id}")
async def delete_admin(admin_id: str, session: SessionContext = Depends(require_admin)):
    """Remove an admin row, then (best-effort) its identity."""
    return await DirectoryService().delete_admin(admin_id, get_identity_client())


# Courses

@router.get("/courses")
async def list_all_courses(session: SessionContext = Depends(require_admin)):
    return ListResponse.create(await LearningService().list_courses(published_only=False))


@router.post("/courses", status_code=201)
async def create_course(body: CourseRequest, session: SessionContext = Depends(require_admin)):
    course = await LearningService().create_course(body.to_new_course())
    return SuccessResponse.create(course)


@router.get("/courses/{course_id}")
async def get_course_for_editing(course_id: str, session: SessionContext = Depends(require_admin)):
    """Course with its full outline, quiz answers included, for the course editor."""
    service = LearningService()
    course = await service.get_course(course_id)
    outline = await service.get_outline(course_id)
    modules = []
    for module in outline.modules:
        data = asdict(module)
        for lesson in data["lessons"]:
            lesson["questions"] = [asdict(q) for q in await service.get_questions(lesson["id"])]
        modules.append(data)
    return SuccessResponse.create({**course, "modules": modules})


@router.put("/courses/{course_id}")
async def update_course(
    course_id: str,
    body: CourseRequest,
    session: SessionContext = Depends(require_admin),
):
    course = await LearningService().update_course(course_id, body.to_new_course())
    logger.info(f"Course {course_id} updated by admin {session.user_id}")
    return SuccessResponse.create(course)


@router.patch("/courses/{course_id}/published")
async def set_course_published(
    course_id: str,
    body: PublishRequest,
    session: SessionContext = Depends(require_admin),
):
    return SuccessResponse.create(await LearningService().set_published(course_id, body.published))


@router.delete("/courses/{course_id}", status_code=204)
async def delete_course(course_id: str, session: SessionContext = Depends(require_admin)):
    """Delete a course with its outline, enrollments and certificates."""
    await LearningService().delete_course(course_id)
    logger.info(f"Course {course_id} deleted by admin {session.user_id}")
    return Response(status_code=204)


# Knowledge base

@router.get("/articles")
async def list_all_articles(session: SessionContext = Depends(require_admin)):
    return ListResponse.create(await KnowledgeService().list_all())


@router.post("/articles", status_code=201)
async def create_article(body: ArticleCreateRequest, session: SessionContext = Depends(require_admin)):
    article = await KnowledgeService().create(
        NewArticle(
            title=body.title,
            content=body.content,
            category=body.category,
            access_level=body.access_level,
            tags=body.tags,
        ),
        author_id=session.user_id,
    )
    return SuccessResponse.create(article)


@router.delete("/articles/{article_id}", status_code=204)
async def delete_article(article_id: str, session: SessionContext = Depends(require_admin)):
    await KnowledgeService().delete(article_id)
    return Response(status_code=204)
