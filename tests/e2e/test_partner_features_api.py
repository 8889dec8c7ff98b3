"""
E2E tests for the partner-facing learning, certificate, knowledge base,
MDF and support ticket endpoints.
"""

import pytest
from httpx import AsyncClient

from src.core.learning import LearningService, NewCourse, NewLesson, NewModule
from src.core.support import KnowledgeService, NewArticle

pytestmark = pytest.mark.e2e


@pytest.fixture
async def course(db):
    return await LearningService(db).create_course(NewCourse(
        title="Partner Onboarding",
        description="Everything a new partner needs in week one.",
        published=True,
        modules=[NewModule(title="Basics", lessons=[
            NewLesson(title="Welcome", duration=60),
            NewLesson(title="Pricing", duration=60),
        ])],
    ))


async def first_and_second_lesson(db, course_id):
    outline = await LearningService(db).get_outline(course_id)
    lessons = outline.ordered_lessons()
    return lessons[0].id, lessons[1].id


class TestLearning:

    async def test_catalogue(self, client: AsyncClient, partner_account, course):
        response = await client.get("/api/learning/courses", headers=partner_account.headers)
        assert [c["title"] for c in response.json()["data"]] == ["Partner Onboarding"]

    async def test_enroll_twice(self, client: AsyncClient, partner_account, course):
        url = f"/api/learning/courses/{course['id']}/enroll"

        first = await client.post(url, headers=partner_account.headers)
        second = await client.post(url, headers=partner_account.headers)

        assert first.status_code == 201
        assert second.status_code == 200
        assert not second.json()["created"]
        assert first.json()["enrollment"]["id"] == second.json()["enrollment"]["id"]

    async def test_locked_lesson_is_forbidden(self, client: AsyncClient, partner_account, course, db):
        welcome, pricing = await first_and_second_lesson(db, course["id"])
        await client.post(f"/api/learning/courses/{course['id']}/enroll", headers=partner_account.headers)

        locked = await client.post(
            f"/api/learning/courses/{course['id']}/lessons/{pricing}/start", headers=partner_account.headers
        )
        assert locked.status_code == 403

        opened = await client.post(
            f"/api/learning/courses/{course['id']}/lessons/{welcome}/start", headers=partner_account.headers
        )
        assert opened.status_code == 200
        assert opened.json()["next_lesson_id"] == pricing

    async def test_completing_course_issues_certificate(self, client: AsyncClient, partner_account, course, db):
        base = f"/api/learning/courses/{course['id']}"
        await client.post(f"{base}/enroll", headers=partner_account.headers)

        for lesson_id in await first_and_second_lesson(db, course["id"]):
            response = await client.post(f"{base}/lessons/{lesson_id}/complete", headers=partner_account.headers)

        assert response.json()["progress_percentage"] == 100
        number = response.json()["certificate"]["certificate_number"]

        progress = await client.get(f"{base}/progress", headers=partner_account.headers)
        assert progress.json()["progress_percentage"] == 100

        listed = await client.get("/api/certificates", headers=partner_account.headers)
        assert [c["certificate_number"] for c in listed.json()["data"]] == [number]


class TestCertificates:

    async def test_certificate_page_is_public(self, client: AsyncClient, partner_account, course, db):
        service = LearningService(db)
        enrollment, _ = await service.enroll(partner_account.record["id"], course["id"])
        certificate = await service.certificates.issue_for_enrollment(enrollment["id"])

        response = await client.get(f"/api/certificates/{certificate['certificate_number']}")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Partner Onboarding" in response.text
        assert "Pat Partner" in response.text

    async def test_unknown_certificate(self, client: AsyncClient):
        response = await client.get("/api/certificates/CERT-2026-MISSING00")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CERTIFICATE_NOT_FOUND"


class TestKnowledgeBase:

    @pytest.fixture
    async def articles(self, db):
        kb = KnowledgeService(db)
        created = {}
        for level in ("all", "gold", "platinum"):
            created[level] = await kb.create(NewArticle(
                title=f"{level.title()} playbook", content="Steps.", category="sales", access_level=level,
            ))
        return created

    async def test_gold_partner_sees_gold_and_all(self, client: AsyncClient, partner_account, articles):
        response = await client.get("/api/knowledge", headers=partner_account.headers)
        assert {a["title"] for a in response.json()["data"]} == {"All playbook", "Gold playbook"}

    async def test_platinum_article_hidden(self, client: AsyncClient, partner_account, articles):
        response = await client.get(f"/api/knowledge/{articles['platinum']['id']}", headers=partner_account.headers)
        assert response.status_code == 404

    async def test_article_with_related(self, client: AsyncClient, partner_account, articles):
        response = await client.get(f"/api/knowledge/{articles['gold']['id']}", headers=partner_account.headers)
        data = response.json()["data"]
        assert data["article"]["title"] == "Gold playbook"
        assert [a["title"] for a in data["related"]] == ["All playbook"]


def campaign(amount, **overrides):
    body = {
        "campaign_name": "Spring roadshow",
        "campaign_type": "event",
        "requested_amount": amount,
        "start_date": "2026-04-01",
        "end_date": "2026-04-30",
        "description": "Three city roadshow.",
        "expected_leads": 40,
    }
    body.update(overrides)
    return body


class TestMDF:

    async def test_request_and_summary(self, client: AsyncClient, partner_account):
        created = await client.post("/api/mdf", json=campaign(12000), headers=partner_account.headers)

        assert created.status_code == 201
        assert created.json()["data"]["status"] == "pending"

        summary = await client.get("/api/mdf/summary", headers=partner_account.headers)
        assert summary.json()["allocation"] == 25000
        assert summary.json()["requested_by_status"]["pending"] == 12000

    async def test_over_allocation(self, client: AsyncClient, partner_account):
        response = await client.post("/api/mdf", json=campaign(25001), headers=partner_account.headers)

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Amount exceeds your MDF allocation of $25,000"

    async def test_end_before_start(self, client: AsyncClient, partner_account):
        response = await client.post(
            "/api/mdf", json=campaign(100, end_date="2026-03-01"), headers=partner_account.headers
        )
        assert response.status_code == 400


class TestSupportTickets:

    async def test_ticket_on_own_deal(self, client: AsyncClient, partner_account, seed):
        deal = await seed.deal(partner_account.record["id"], customer_name="Initech")

        response = await client.post("/api/support/tickets", json={
            "type": "technical",
            "subject": "Install fails",
            "description": "Installer stops at step 3 on Windows Server.",
            "priority": "urgent",
            "deal_id": deal["id"],
        }, headers=partner_account.headers)

        assert response.status_code == 201
        ticket = response.json()["data"]
        assert ticket["deal"]["customer_name"] == "Initech"

        listed = await client.get("/api/support/tickets", params={"priority": "urgent"},
                                  headers=partner_account.headers)
        assert [t["id"] for t in listed.json()["data"]] == [ticket["id"]]

    async def test_ticket_on_other_partners_deal(self, client: AsyncClient, partner_account, seed):
        theirs = await seed.deal((await seed.partner())["id"])

        response = await client.post("/api/support/tickets", json={
            "type": "sales",
            "subject": "Pricing question",
            "description": "Need a quote for a 3 year term.",
            "deal_id": theirs["id"],
        }, headers=partner_account.headers)

        assert response.status_code == 404
