"""Tests for the HTTP API."""

from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from campus_ai.core.ai_constants import MSG_SERVICE_NOT_CONFIGURED
from campus_ai.core.errors import ProviderUnavailable
from campus_ai.generation.llm import Completion
from campus_ai.models import (
    Campaign,
    CampaignPerformance,
    Course,
    CourseEnrollment,
    Customer,
    KnowledgeBaseEntry,
)

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)
STUDENT = {"X-Student-ID": "1"}
OTHER_STUDENT = {"X-Student-ID": "2"}

SYLLABUS = (
    "פרק 1: משוואות\nפתרון משוואות ממעלה ראשונה ושנייה, כולל נוסחת השורשים.\n\n"
    "פרק 2: פונקציות\nתחום הגדרה, נקודות קיצון ותחומי עלייה וירידה של פונקציה."
)

EXAM_RESPONSE = """שאלה: מהו הפתרון של x^2 = 9?
תשובה נכונה: x = 3 או x = -3
הסבר: לכל מספר חיובי יש שני שורשים ריבועיים."""


@pytest.fixture
async def seeded(db_session):
    db_session.add_all(
        [
            Customer(id=1, name="דנה"),
            Customer(id=2, name="יוסי"),
            Course(id=10, name="אלגברה", subject="מתמטיקה", syllabus=SYLLABUS),
            Course(id=20, name="היסטוריה"),
        ]
    )
    await db_session.flush()
    db_session.add_all(
        [
            CourseEnrollment(id=100, course_id=10, customer_id=1, status="enrolled", enrolled_at=T0),
            KnowledgeBaseEntry(
                id=1,
                title="נוסחת השורשים",
                content="x = (-b ± √(b²-4ac)) / 2a",
                course_id=10,
                embedding=[1.0, 0.0, 0.0],
            ),
            Campaign(
                id=1,
                name="הרשמה",
                status="active",
                start_date=T0,
                embed_token="tok-1",
                popup={"enabled": True, "title": "הירשמו"},
                targeting={"course_ids": [10]},
            ),
        ]
    )
    await db_session.commit()


def _reply(mock_language_model, text: str) -> None:
    mock_language_model.complete.return_value = Completion(
        text=text, finish_reason="stop", tokens_used=10, model="gpt-4o-mini"
    )


class TestHealth:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_metrics(self, client: AsyncClient):
        await client.get("/health")
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text


class TestMessages:
    async def test_requires_student_header(self, client: AsyncClient):
        response = await client.post("/api/v1/ai-bot/messages", json={"message": "שלום"})
        assert response.status_code == 401

    async def test_empty_message_rejected(self, client: AsyncClient):
        response = await client.post("/api/v1/ai-bot/messages", json={"message": ""}, headers=STUDENT)
        assert response.status_code == 422

    async def test_unknown_student(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/ai-bot/messages", json={"message": "שלום"}, headers={"X-Student-ID": "999"}
        )
        assert response.status_code == 404

    async def test_send_message_and_history(self, client: AsyncClient, seeded, session_maker):
        response = await client.post(
            "/api/v1/ai-bot/messages",
            json={"message": "איך פותרים משוואה ריבועית?", "course_id": 10},
            headers=STUDENT,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["message"]["role"] == "assistant"
        assert data["message"]["message"] == "תשובה לדוגמה"
        assert data["message"]["tokens_used"] == 42
        assert [s["knowledge_id"] for s in data["message"]["knowledge_sources"]] == [1]

        async with session_maker() as session:
            entry = await session.get(KnowledgeBaseEntry, 1)
            assert entry.usage_count == 1

        history = await client.get("/api/v1/ai-bot/history", headers=STUDENT)

        assert history.status_code == 200
        messages = history.json()["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[0]["message"] == "איך פותרים משוואה ריבועית?"

    async def test_history_is_per_student(self, client: AsyncClient, seeded):
        await client.post("/api/v1/ai-bot/messages", json={"message": "שלום"}, headers=STUDENT)

        history = await client.get("/api/v1/ai-bot/history", headers=OTHER_STUDENT)

        assert history.json()["messages"] == []

    async def test_provider_failure_returns_apology(
        self, client: AsyncClient, seeded, mock_language_model, session_maker
    ):
        mock_language_model.complete.side_effect = ProviderUnavailable("openai")

        response = await client.post("/api/v1/ai-bot/messages", json={"message": "שלום"}, headers=STUDENT)

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert response.json()["message"]["message"] == MSG_SERVICE_NOT_CONFIGURED

        async with session_maker() as session:
            entry = await session.get(KnowledgeBaseEntry, 1)
            assert entry.usage_count == 0


class TestExamPractice:
    async def test_requires_enrollment(self, client: AsyncClient, seeded):
        response = await client.post(
            "/api/v1/ai-bot/exam-question", json={"course_id": 20}, headers=STUDENT
        )
        assert response.status_code == 403

    async def test_question_then_answer(self, client: AsyncClient, seeded, mock_language_model):
        _reply(mock_language_model, EXAM_RESPONSE)
        response = await client.post(
            "/api/v1/ai-bot/exam-question",
            json={"course_id": 10, "difficulty": "hard"},
            headers=STUDENT,
        )

        assert response.status_code == 200
        question = response.json()["question"]
        assert question["message"] == "מהו הפתרון של x^2 = 9?"
        assert question["exam_data"]["correct_answer"] == "x = 3 או x = -3"

        _reply(mock_language_model, "ציון 90 מתוך 100. כל הכבוד.")
        answer = await client.post(
            "/api/v1/ai-bot/exam-answer",
            json={"question_id": question["id"], "answer": "3 ו-(-3)"},
            headers=STUDENT,
        )

        assert answer.status_code == 200
        assert answer.json()["score"] == 90
        assert answer.json()["explanation"] == "לכל מספר חיובי יש שני שורשים ריבועיים."

    async def test_answer_to_another_students_question(
        self, client: AsyncClient, seeded, mock_language_model
    ):
        _reply(mock_language_model, EXAM_RESPONSE)
        response = await client.post(
            "/api/v1/ai-bot/exam-question", json={"course_id": 10}, headers=STUDENT
        )

        answer = await client.post(
            "/api/v1/ai-bot/exam-answer",
            json={"question_id": response.json()["question"]["id"], "answer": "3"},
            headers=OTHER_STUDENT,
        )

        assert answer.status_code == 403

    async def test_unknown_question(self, client: AsyncClient, seeded):
        answer = await client.post(
            "/api/v1/ai-bot/exam-answer",
            json={"question_id": 999, "answer": "3"},
            headers=STUDENT,
        )
        assert answer.status_code == 404

    async def test_study_plan_requires_enrollment(self, client: AsyncClient, seeded):
        response = await client.post(
            "/api/v1/ai-bot/study-plan", json={"course_id": 20}, headers=STUDENT
        )
        assert response.status_code == 404

    async def test_study_plan(self, client: AsyncClient, seeded, mock_language_model):
        _reply(mock_language_model, "יום 1: חזרה")

        response = await client.post(
            "/api/v1/ai-bot/study-plan", json={"course_id": 10}, headers=STUDENT
        )

        assert response.status_code == 200
        assert response.json()["study_plan"] == "יום 1: חזרה"


class TestKnowledge:
    async def test_search(self, client: AsyncClient, seeded):
        response = await client.get("/api/v1/knowledge/search", params={"q": "משוואה", "course_id": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert [r["knowledge_id"] for r in data["results"]] == [1]

    async def test_search_fallback(self, client: AsyncClient, seeded, mock_embedding_provider):
        mock_embedding_provider.embed.side_effect = ProviderUnavailable("openai")

        response = await client.get("/api/v1/knowledge/search", params={"q": "משוואה"})

        assert response.status_code == 200
        assert response.json()["status"] == "fallback"
        assert response.json()["results"][0]["score"] == 0.5

    async def test_empty_query(self, client: AsyncClient):
        response = await client.get("/api/v1/knowledge/search", params={"q": ""})
        assert response.status_code == 400

    async def test_import_syllabus(self, client: AsyncClient, seeded):
        response = await client.post("/api/v1/knowledge/import/10")

        assert response.status_code == 201
        assert response.json() == {"course_id": 10, "created": 2, "embedded": 2}

    async def test_import_unknown_course(self, client: AsyncClient, seeded):
        response = await client.post("/api/v1/knowledge/import/404")
        assert response.status_code == 404

    async def test_import_without_syllabus(self, client: AsyncClient, seeded):
        response = await client.post("/api/v1/knowledge/import/20")
        assert response.status_code == 400


class TestPopup:
    async def test_unknown_token(self, client: AsyncClient):
        assert (await client.get("/api/v1/popup/missing")).status_code == 404
        assert (await client.post("/api/v1/popup/missing/impression")).status_code == 404

    async def test_targeted_visitor(self, client: AsyncClient, seeded):
        response = await client.get("/api/v1/popup/tok-1", params={"customer_id": 1})

        assert response.status_code == 200
        data = response.json()
        assert data["show"] is True
        assert data["popup"]["title"] == "הירשמו"

    async def test_untargeted_visitor(self, client: AsyncClient, seeded):
        response = await client.get("/api/v1/popup/tok-1", params={"customer_id": 2})

        assert response.status_code == 200
        assert response.json() == {
            "show": False,
            "campaign_id": 1,
            "reason": "not_targeted",
            "popup": None,
        }

    async def test_record_events(self, client: AsyncClient, seeded, db_session):
        await client.post("/api/v1/popup/tok-1/impression")
        response = await client.post("/api/v1/popup/tok-1/click")

        assert response.json() == {"success": True}
        result = await db_session.execute(
            select(CampaignPerformance).execution_options(populate_existing=True)
        )
        row = result.scalar_one()
        assert (row.impressions, row.clicks) == (1, 1)
