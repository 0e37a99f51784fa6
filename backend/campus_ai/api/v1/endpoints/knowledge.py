"""Knowledge base search and syllabus import endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from campus_ai.api.deps import get_knowledge_indexer, get_knowledge_retriever
from campus_ai.core.database import get_db
from campus_ai.core.outcome import OutcomeStatus
from campus_ai.knowledge.indexer import KnowledgeIndexer
from campus_ai.knowledge.models import KnowledgeCategory, RetrievalScope, RetrievedKnowledge
from campus_ai.knowledge.retriever import KnowledgeRetriever
from campus_ai.stores.sql import SQLCourseStore

router = APIRouter()
logger = logging.getLogger(__name__)


class SearchResponse(BaseModel):
    results: list[RetrievedKnowledge]
    status: OutcomeStatus


class ImportResponse(BaseModel):
    course_id: int
    created: int
    embedded: int


@router.get("/search", response_model=SearchResponse)
async def search_knowledge(
    q: str = Query(..., description="Search query"),
    course_id: int | None = Query(None),
    category: KnowledgeCategory | None = Query(None),
    limit: int = Query(5, ge=1, le=50),
    retriever: KnowledgeRetriever = Depends(get_knowledge_retriever),
) -> SearchResponse:
    """Semantic search over active knowledge entries.

    ``status`` is ``fallback`` when results are usage-ranked because query
    embedding was unavailable.
    """
    outcome = await retriever.retrieve(
        q,
        RetrievalScope(course_id=course_id, category=category),
        limit,
    )
    return SearchResponse(results=outcome.value or [], status=outcome.status)


@router.post(
    "/import/{course_id}",
    response_model=ImportResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_course_syllabus(
    course_id: int,
    db: AsyncSession = Depends(get_db),
    indexer: KnowledgeIndexer = Depends(get_knowledge_indexer),
) -> ImportResponse:
    """Split a course syllabus into course material knowledge entries."""
    entries = await indexer.import_course_syllabus(SQLCourseStore(db), course_id)
    return ImportResponse(
        course_id=course_id,
        created=len(entries),
        embedded=sum(1 for entry in entries if entry.has_embedding),
    )
