"""Database models for CampusAI."""

from campus_ai.models.school import (
    Course,
    CourseEnrollment,
    Customer,
    Exam,
    Grade,
    WorkshopEnrollment,
)
from campus_ai.models.knowledge import KnowledgeBaseEntry
from campus_ai.models.campaign import Campaign, CampaignPerformance
from campus_ai.models.chat import ChatMessage

__all__ = [
    # School
    "Customer",
    "Course",
    "Exam",
    "CourseEnrollment",
    "Grade",
    "WorkshopEnrollment",
    # Knowledge
    "KnowledgeBaseEntry",
    # Campaigns
    "Campaign",
    "CampaignPerformance",
    # Chat
    "ChatMessage",
]
