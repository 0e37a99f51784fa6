"""Pytest configuration and fixtures for backend tests."""

from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from campus_ai.api.deps import get_knowledge_db
from campus_ai.campaigns.models import CampaignRecord, CampaignTargeting, PopupEvent
from campus_ai.core.database import Base, get_db
from campus_ai.generation.llm import Completion, get_language_model
from campus_ai.knowledge.embeddings import get_embedding_provider
from campus_ai.knowledge.models import KnowledgeEntry, KnowledgeOrder, KnowledgeQuery
from campus_ai.main import app as main_app
from campus_ai.observability import MetricsCollector
from campus_ai.students.models import (
    CourseRecord,
    EnrollmentRecord,
    ExamRecord,
    GradeRecord,
    StudentRecord,
)

# Import all models to ensure they're registered with Base
import campus_ai.models  # noqa: F401


# -------------------------------------------------------------------------
# In-memory stores
# -------------------------------------------------------------------------


class InMemoryKnowledgeStore:
    """Knowledge store over a list, with the SQL store's filter semantics."""

    def __init__(self, entries: list[KnowledgeEntry] | None = None) -> None:
        self.entries: list[KnowledgeEntry] = []
        self.queries: list[KnowledgeQuery] = []
        for entry in entries or []:
            self._add(entry)

    def _add(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        entry = entry.model_copy(
            update={
                "id": entry.id or len(self.entries) + 1,
                "created_at": entry.created_at or datetime.now(timezone.utc),
            }
        )
        self.entries.append(entry)
        return entry

    def get(self, knowledge_id: int) -> KnowledgeEntry:
        return next(entry for entry in self.entries if entry.id == knowledge_id)

    async def find(self, query: KnowledgeQuery) -> list[KnowledgeEntry]:
        self.queries.append(query)
        matches = [
            entry
            for entry in self.entries
            if (not query.active_only or entry.is_active)
            and (query.course_id is None or entry.course_id in (query.course_id, None))
            and (query.category is None or entry.category == query.category)
        ]
        if query.order == KnowledgeOrder.USAGE_RECENCY:
            matches.sort(key=lambda e: (e.usage_count, e.created_at), reverse=True)
        return matches[: query.limit]

    async def increment_usage(self, knowledge_id: int, used_at: datetime) -> None:
        for index, entry in enumerate(self.entries):
            if entry.id == knowledge_id:
                self.entries[index] = entry.model_copy(
                    update={"usage_count": entry.usage_count + 1, "last_used": used_at}
                )

    async def create(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        return self._add(entry)

    async def set_embedding(self, knowledge_id: int, embedding: list[float]) -> None:
        for index, entry in enumerate(self.entries):
            if entry.id == knowledge_id:
                self.entries[index] = entry.model_copy(update={"embedding": embedding})

    async def find_missing_embeddings(self, limit: int) -> list[KnowledgeEntry]:
        return [e for e in self.entries if e.is_active and not e.has_embedding][:limit]


class InMemorySchoolStore:
    """Student, course, enrollment and grade stores in one object."""

    def __init__(self) -> None:
        self.students: dict[int, StudentRecord] = {}
        self.courses: dict[int, CourseRecord] = {}
        self.enrollments: list[EnrollmentRecord] = []
        self.grades: list[GradeRecord] = []
        self.course_enrollment_calls = 0
        self.workshop_enrollment_calls = 0
        # (workshop_id, customer_id, lead_id, status)
        self.workshop_enrollments: list[tuple[int, int | None, int | None, str]] = []
        # (course_id, customer_id, lead_id, status) for leads and customers alike
        self.course_memberships: list[tuple[int, int | None, int | None, str]] = []

    async def get_student(self, student_id: int) -> StudentRecord | None:
        return self.students.get(student_id)

    async def get_course(self, course_id: int) -> CourseRecord | None:
        return self.courses.get(course_id)

    async def find_by_student(
        self,
        student_id: int,
        course_id: int | None = None,
    ) -> list[EnrollmentRecord]:
        return [
            e
            for e in self.enrollments
            if e.student_id == student_id and (course_id is None or e.course.id == course_id)
        ]

    async def find_by_enrollments(self, enrollment_ids: list[int]) -> list[GradeRecord]:
        return [g for g in self.grades if g.enrollment_id in enrollment_ids]

    async def course_enrollment_exists(self, course_ids, statuses, customer_id=None, lead_id=None):
        self.course_enrollment_calls += 1
        return any(
            course in course_ids
            and status in statuses
            and ((customer_id is not None and cust == customer_id) or (lead_id is not None and lead == lead_id))
            for course, cust, lead, status in self.course_memberships
        )

    async def workshop_enrollment_exists(self, workshop_ids, statuses, customer_id=None, lead_id=None):
        self.workshop_enrollment_calls += 1
        return any(
            workshop in workshop_ids
            and status in statuses
            and ((customer_id is not None and cust == customer_id) or (lead_id is not None and lead == lead_id))
            for workshop, cust, lead, status in self.workshop_enrollments
        )

    # Builders

    def add_student(self, student_id: int, name: str) -> StudentRecord:
        self.students[student_id] = StudentRecord(id=student_id, name=name)
        return self.students[student_id]

    def add_course(self, course_id: int, name: str, **kwargs) -> CourseRecord:
        self.courses[course_id] = CourseRecord(id=course_id, name=name, **kwargs)
        return self.courses[course_id]

    def enroll(self, enrollment_id: int, student_id: int, course_id: int, status: str = "enrolled"):
        enrollment = EnrollmentRecord(
            id=enrollment_id,
            student_id=student_id,
            course=self.courses[course_id],
            status=status,
        )
        self.enrollments.append(enrollment)
        return enrollment

    def grade(
        self,
        grade_id: int,
        enrollment_id: int,
        exam_name: str,
        score: float,
        max_score: float = 100,
        exam_type: str = "exam",
    ) -> GradeRecord:
        record = GradeRecord(
            id=grade_id,
            enrollment_id=enrollment_id,
            exam=ExamRecord(id=grade_id, name=exam_name, exam_type=exam_type, max_score=max_score),
            score=score,
        )
        self.grades.append(record)
        return record


class InMemoryCampaignStore:
    def __init__(self) -> None:
        self.campaigns: dict[str, CampaignRecord] = {}
        self.events: list[tuple[int, PopupEvent, date]] = []

    def add(self, campaign: CampaignRecord) -> CampaignRecord:
        self.campaigns[campaign.embed_token] = campaign
        return campaign

    async def find_targeting_rules(self, campaign_id: int) -> CampaignTargeting | None:
        for campaign in self.campaigns.values():
            if campaign.id == campaign_id:
                return campaign.targeting
        return None

    async def get_by_embed_token(self, embed_token: str) -> CampaignRecord | None:
        return self.campaigns.get(embed_token)

    async def record_event(self, campaign_id: int, kind: PopupEvent, day: date) -> None:
        self.events.append((campaign_id, kind, day))


# -------------------------------------------------------------------------
# Provider fixtures
# -------------------------------------------------------------------------


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def knowledge_store() -> InMemoryKnowledgeStore:
    return InMemoryKnowledgeStore()


@pytest.fixture
def school() -> InMemorySchoolStore:
    return InMemorySchoolStore()


@pytest.fixture
def campaign_store() -> InMemoryCampaignStore:
    return InMemoryCampaignStore()


@pytest.fixture
def mock_embedding_provider() -> MagicMock:
    """Embedding provider returning a fixed 3-dimensional vector."""
    provider = MagicMock()
    provider.provider_name = "openai"
    provider.model = "text-embedding-3-small"
    provider.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])
    return provider


@pytest.fixture
def mock_language_model() -> MagicMock:
    """Language model returning a fixed Hebrew answer."""
    provider = MagicMock()
    provider.provider_name = "openai"
    provider.model = "gpt-4o-mini"
    provider.complete = AsyncMock(
        return_value=Completion(
            text="  תשובה לדוגמה  ",
            finish_reason="stop",
            tokens_used=42,
            model="gpt-4o-mini",
        )
    )
    return provider


# -------------------------------------------------------------------------
# Database Fixtures
# -------------------------------------------------------------------------


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def app(
    db_session: AsyncSession,
    session_maker,
    mock_embedding_provider: MagicMock,
    mock_language_model: MagicMock,
) -> FastAPI:
    """Create a FastAPI app instance with test database and mocked providers."""

    async def override_get_db():
        yield db_session

    async def override_get_knowledge_db():
        async with session_maker() as session:
            yield session

    main_app.dependency_overrides[get_db] = override_get_db
    main_app.dependency_overrides[get_knowledge_db] = override_get_knowledge_db
    main_app.dependency_overrides[get_embedding_provider] = lambda: mock_embedding_provider
    main_app.dependency_overrides[get_language_model] = lambda: mock_language_model
    yield main_app
    main_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def yesterday(now: datetime) -> datetime:
    return now - timedelta(days=1)
