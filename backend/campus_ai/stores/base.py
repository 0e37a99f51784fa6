"""Collaborator interfaces consumed by the retrieval, tutoring and targeting core.

The core never talks to the database directly. ``campus_ai.stores.sql`` holds
the SQLAlchemy implementations; tests use in-memory fakes.
"""

from datetime import date, datetime
from typing import Protocol

from campus_ai.campaigns.models import CampaignRecord, CampaignTargeting, PopupEvent
from campus_ai.knowledge.models import KnowledgeEntry, KnowledgeQuery
from campus_ai.students.models import (
    CourseRecord,
    EnrollmentRecord,
    GradeRecord,
    StudentRecord,
)


class KnowledgeStore(Protocol):
    async def find(self, query: KnowledgeQuery) -> list[KnowledgeEntry]:
        """Return entries matching the query, at most ``query.limit``."""
        ...

    async def increment_usage(self, knowledge_id: int, used_at: datetime) -> None:
        ...

    async def create(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """Persist a new entry and return it with its id assigned."""
        ...

    async def set_embedding(self, knowledge_id: int, embedding: list[float]) -> None:
        ...

    async def find_missing_embeddings(self, limit: int) -> list[KnowledgeEntry]:
        """Active entries that have no embedding, oldest first."""
        ...


class StudentStore(Protocol):
    async def get_student(self, student_id: int) -> StudentRecord | None:
        ...


class CourseStore(Protocol):
    async def get_course(self, course_id: int) -> CourseRecord | None:
        ...


class EnrollmentStore(Protocol):
    async def find_by_student(
        self,
        student_id: int,
        course_id: int | None = None,
    ) -> list[EnrollmentRecord]:
        """Course enrollments of a student, newest first."""
        ...

    async def course_enrollment_exists(
        self,
        course_ids: set[int],
        statuses: frozenset[str],
        customer_id: int | None = None,
        lead_id: int | None = None,
    ) -> bool:
        """Whether the customer or lead holds an enrollment in any of the courses."""
        ...

    async def workshop_enrollment_exists(
        self,
        workshop_ids: set[int],
        statuses: frozenset[str],
        customer_id: int | None = None,
        lead_id: int | None = None,
    ) -> bool:
        ...


class GradeStore(Protocol):
    async def find_by_enrollments(self, enrollment_ids: list[int]) -> list[GradeRecord]:
        """Grades of the given enrollments, newest first."""
        ...


class CampaignStore(Protocol):
    async def find_targeting_rules(self, campaign_id: int) -> CampaignTargeting | None:
        ...

    async def get_by_embed_token(self, embed_token: str) -> CampaignRecord | None:
        ...

    async def record_event(self, campaign_id: int, kind: PopupEvent, day: date) -> None:
        """Increment the daily impression or click counter."""
        ...
