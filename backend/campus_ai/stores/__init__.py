"""Data access for the core services."""

from campus_ai.stores.base import (
    CampaignStore,
    CourseStore,
    EnrollmentStore,
    GradeStore,
    KnowledgeStore,
    StudentStore,
)

__all__ = [
    "CampaignStore",
    "CourseStore",
    "EnrollmentStore",
    "GradeStore",
    "KnowledgeStore",
    "StudentStore",
]
