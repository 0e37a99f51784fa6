"""Data models for knowledge base entries and retrieval results."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class KnowledgeCategory(str, Enum):
    """Category of a knowledge entry."""

    COURSE_MATERIAL = "course_material"
    STUDY_GUIDE = "study_guide"
    EXAM_PREP = "exam_prep"
    GENERAL_ADVICE = "general_advice"
    COURSE_SPECIFIC = "course_specific"


class KnowledgeSource(str, Enum):
    """Where a knowledge entry came from."""

    MANUAL = "manual"
    COURSE_SYLLABUS = "course_syllabus"
    EXAM = "exam"
    WORKSHOP = "workshop"


class KnowledgeOrder(str, Enum):
    """Ordering applied by the knowledge store."""

    NONE = "none"
    USAGE_RECENCY = "usage_recency"  # usage_count desc, created_at desc


class KnowledgeEntry(BaseModel):
    """A titled, categorized unit of reference text.

    ``course_id`` of None marks global knowledge shared by every course.
    ``embedding`` is None when the embedding call failed at write time.
    """

    id: int | None = None
    title: str
    content: str
    category: KnowledgeCategory = KnowledgeCategory.GENERAL_ADVICE
    course_id: int | None = None
    tags: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None
    relevance_score: float = Field(1.0, description="Admin-tunable boost/penalty")
    source: KnowledgeSource = KnowledgeSource.MANUAL
    usage_count: int = Field(0, ge=0)
    is_active: bool = True
    created_at: datetime | None = None
    last_used: datetime | None = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)

    @property
    def embedding_text(self) -> str:
        """Text the entry embedding is computed from."""
        return f"{self.title}\n\n{self.content}"


class RetrievalScope(BaseModel):
    """Filters narrowing a knowledge search."""

    course_id: int | None = None
    category: KnowledgeCategory | None = None


class KnowledgeQuery(BaseModel):
    """Filter passed to ``KnowledgeStore.find``.

    With a ``course_id`` the store returns entries of that course plus global
    entries; without one it does not filter on course at all.
    """

    course_id: int | None = None
    category: KnowledgeCategory | None = None
    active_only: bool = True
    limit: int = Field(100, ge=1)
    order: KnowledgeOrder = KnowledgeOrder.NONE


class RetrievedKnowledge(BaseModel):
    """A knowledge entry ranked for a query."""

    knowledge_id: int
    title: str
    content: str
    category: KnowledgeCategory
    score: float = Field(..., description="Similarity times relevance boost")
