"""SQLAlchemy implementations of the store interfaces."""

import logging
from datetime import date, datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campus_ai.campaigns.models import (
    CampaignRecord,
    CampaignTargeting,
    PopupContent,
    PopupEvent,
)
from campus_ai.knowledge.models import KnowledgeEntry, KnowledgeOrder, KnowledgeQuery
from campus_ai.models import (
    Campaign,
    CampaignPerformance,
    Course,
    CourseEnrollment,
    Customer,
    Grade,
    KnowledgeBaseEntry,
    WorkshopEnrollment,
)
from campus_ai.students.models import (
    CourseRecord,
    EnrollmentRecord,
    ExamRecord,
    GradeRecord,
    StudentRecord,
)

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored timestamps are always UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# -------------------------------------------------------------------------
# Knowledge
# -------------------------------------------------------------------------


def _to_knowledge_entry(row: KnowledgeBaseEntry) -> KnowledgeEntry:
    return KnowledgeEntry(
        id=row.id,
        title=row.title,
        content=row.content,
        category=row.category,
        course_id=row.course_id,
        tags=row.tags or [],
        embedding=row.embedding,
        relevance_score=row.relevance_score if row.relevance_score is not None else 1.0,
        source=row.source,
        usage_count=row.usage_count or 0,
        is_active=row.is_active,
        created_at=_as_utc(row.created_at),
        last_used=_as_utc(row.last_used),
    )


class SQLKnowledgeStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find(self, query: KnowledgeQuery) -> list[KnowledgeEntry]:
        stmt = select(KnowledgeBaseEntry)

        if query.active_only:
            stmt = stmt.where(KnowledgeBaseEntry.is_active.is_(True))
        if query.course_id is not None:
            # Course-specific plus global entries
            stmt = stmt.where(
                or_(
                    KnowledgeBaseEntry.course_id == query.course_id,
                    KnowledgeBaseEntry.course_id.is_(None),
                )
            )
        if query.category is not None:
            stmt = stmt.where(KnowledgeBaseEntry.category == query.category.value)

        if query.order == KnowledgeOrder.USAGE_RECENCY:
            stmt = stmt.order_by(
                KnowledgeBaseEntry.usage_count.desc(),
                KnowledgeBaseEntry.created_at.desc(),
                KnowledgeBaseEntry.id.desc(),
            )
        else:
            stmt = stmt.order_by(KnowledgeBaseEntry.id)

        result = await self.session.execute(stmt.limit(query.limit))
        return [_to_knowledge_entry(row) for row in result.scalars().all()]

    async def increment_usage(self, knowledge_id: int, used_at: datetime) -> None:
        await self.session.execute(
            update(KnowledgeBaseEntry)
            .where(KnowledgeBaseEntry.id == knowledge_id)
            .values(
                usage_count=KnowledgeBaseEntry.usage_count + 1,
                last_used=used_at,
            )
        )
        await self.session.commit()

    async def create(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        row = KnowledgeBaseEntry(
            title=entry.title,
            content=entry.content,
            category=entry.category.value,
            course_id=entry.course_id,
            tags=list(entry.tags),
            embedding=entry.embedding,
            source=entry.source.value,
            relevance_score=entry.relevance_score,
            is_active=entry.is_active,
            usage_count=entry.usage_count,
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return _to_knowledge_entry(row)

    async def set_embedding(self, knowledge_id: int, embedding: list[float]) -> None:
        await self.session.execute(
            update(KnowledgeBaseEntry)
            .where(KnowledgeBaseEntry.id == knowledge_id)
            .values(embedding=embedding)
        )
        await self.session.commit()

    async def find_missing_embeddings(self, limit: int) -> list[KnowledgeEntry]:
        result = await self.session.execute(
            select(KnowledgeBaseEntry)
            .where(
                KnowledgeBaseEntry.is_active.is_(True),
                KnowledgeBaseEntry.embedding.is_(None),
            )
            .order_by(KnowledgeBaseEntry.created_at, KnowledgeBaseEntry.id)
            .limit(limit)
        )
        return [_to_knowledge_entry(row) for row in result.scalars().all()]


# -------------------------------------------------------------------------
# Students, courses, enrollments, grades
# -------------------------------------------------------------------------


def _to_course_record(row: Course) -> CourseRecord:
    return CourseRecord(
        id=row.id,
        name=row.name,
        subject=row.subject,
        description=row.description,
        syllabus=row.syllabus,
        number_of_sessions=row.number_of_sessions or 0,
        start_date=row.start_date,
        end_date=row.end_date,
    )


class SQLStudentStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_student(self, student_id: int) -> StudentRecord | None:
        row = await self.session.get(Customer, student_id)
        if row is None:
            return None
        return StudentRecord(id=row.id, name=row.name, email=row.email)


class SQLCourseStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_course(self, course_id: int) -> CourseRecord | None:
        row = await self.session.get(Course, course_id)
        return _to_course_record(row) if row is not None else None


def _identity_filter(model, customer_id: int | None, lead_id: int | None):
    conditions = []
    if customer_id is not None:
        conditions.append(model.customer_id == customer_id)
    if lead_id is not None:
        conditions.append(model.lead_id == lead_id)
    return or_(*conditions) if conditions else None


class SQLEnrollmentStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_student(
        self,
        student_id: int,
        course_id: int | None = None,
    ) -> list[EnrollmentRecord]:
        stmt = (
            select(CourseEnrollment)
            .options(selectinload(CourseEnrollment.course))
            .where(CourseEnrollment.customer_id == student_id)
            .order_by(CourseEnrollment.enrolled_at.desc(), CourseEnrollment.id.desc())
        )
        if course_id is not None:
            stmt = stmt.where(CourseEnrollment.course_id == course_id)

        result = await self.session.execute(stmt)
        return [
            EnrollmentRecord(
                id=row.id,
                student_id=row.customer_id,
                course=_to_course_record(row.course),
                status=row.status,
                enrolled_at=_as_utc(row.enrolled_at),
            )
            for row in result.scalars().all()
        ]

    async def course_enrollment_exists(
        self,
        course_ids: set[int],
        statuses: frozenset[str],
        customer_id: int | None = None,
        lead_id: int | None = None,
    ) -> bool:
        identity = _identity_filter(CourseEnrollment, customer_id, lead_id)
        if identity is None or not course_ids:
            return False

        result = await self.session.execute(
            select(CourseEnrollment.id)
            .where(
                identity,
                CourseEnrollment.course_id.in_(course_ids),
                CourseEnrollment.status.in_(statuses),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def workshop_enrollment_exists(
        self,
        workshop_ids: set[int],
        statuses: frozenset[str],
        customer_id: int | None = None,
        lead_id: int | None = None,
    ) -> bool:
        identity = _identity_filter(WorkshopEnrollment, customer_id, lead_id)
        if identity is None or not workshop_ids:
            return False

        result = await self.session.execute(
            select(WorkshopEnrollment.id)
            .where(
                identity,
                WorkshopEnrollment.workshop_id.in_(workshop_ids),
                WorkshopEnrollment.status.in_(statuses),
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None


class SQLGradeStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_by_enrollments(self, enrollment_ids: list[int]) -> list[GradeRecord]:
        if not enrollment_ids:
            return []

        result = await self.session.execute(
            select(Grade)
            .options(selectinload(Grade.exam))
            .where(Grade.enrollment_id.in_(enrollment_ids))
            .order_by(Grade.created_at.desc(), Grade.id.desc())
        )
        grades = []
        for row in result.scalars().all():
            exam = None
            if row.exam is not None:
                exam = ExamRecord(
                    id=row.exam.id,
                    name=row.exam.name,
                    exam_type=row.exam.exam_type,
                    exam_date=row.exam.exam_date,
                    max_score=row.exam.max_score,
                    weight=row.exam.weight or 0,
                )
            grades.append(
                GradeRecord(
                    id=row.id,
                    enrollment_id=row.enrollment_id,
                    exam=exam,
                    score=row.score,
                    notes=row.notes,
                    created_at=_as_utc(row.created_at),
                )
            )
        return grades


# -------------------------------------------------------------------------
# Campaigns
# -------------------------------------------------------------------------


def _dialect_insert(session: AsyncSession):
    """INSERT construct with ON CONFLICT support for the session's database."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert is not supported on {dialect}")


def _to_campaign_record(row: Campaign) -> CampaignRecord:
    return CampaignRecord(
        id=row.id,
        name=row.name,
        status=row.status,
        start_date=_as_utc(row.start_date),
        end_date=_as_utc(row.end_date),
        embed_token=row.embed_token,
        popup=PopupContent.model_validate(row.popup or {}),
        targeting=CampaignTargeting.model_validate(row.targeting or {}),
    )


class SQLCampaignStore:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def find_targeting_rules(self, campaign_id: int) -> CampaignTargeting | None:
        row = await self.session.get(Campaign, campaign_id)
        if row is None:
            return None
        return CampaignTargeting.model_validate(row.targeting or {})

    async def get_by_embed_token(self, embed_token: str) -> CampaignRecord | None:
        result = await self.session.execute(
            select(Campaign).where(Campaign.embed_token == embed_token)
        )
        row = result.scalar_one_or_none()
        return _to_campaign_record(row) if row is not None else None

    async def record_event(self, campaign_id: int, kind: PopupEvent, day: date) -> None:
        """Bump the day's counter with one upsert.

        The first event of a day can arrive from concurrent requests, so the
        insert and the increment are a single statement against
        ``uq_campaign_performance_day``.
        """
        column = "impressions" if kind == PopupEvent.IMPRESSION else "clicks"
        insert = _dialect_insert(self.session)
        stmt = insert(CampaignPerformance).values(
            campaign_id=campaign_id,
            day=day,
            impressions=1 if kind == PopupEvent.IMPRESSION else 0,
            clicks=1 if kind == PopupEvent.CLICK else 0,
        )
        counter = CampaignPerformance.__table__.c[column]
        stmt = stmt.on_conflict_do_update(
            index_elements=["campaign_id", "day"],
            set_={column: counter + 1, "updated_at": datetime.now(timezone.utc)},
        )
        await self.session.execute(stmt)
        await self.session.commit()
        logger.debug("Recorded popup %s for campaign %s on %s", kind.value, campaign_id, day)
