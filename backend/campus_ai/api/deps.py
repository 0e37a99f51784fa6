"""FastAPI dependencies wiring the core services to request-scoped stores."""

from typing import Annotated, AsyncGenerator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from campus_ai.campaigns.popup import PopupResolver
from campus_ai.core.config import get_settings
from campus_ai.core.database import async_session_maker, get_db
from campus_ai.generation.llm import LanguageModelProvider, get_language_model
from campus_ai.generation.study_tools import StudyTools
from campus_ai.generation.tutor import ResponseGenerator
from campus_ai.knowledge.embeddings import EmbeddingProvider, get_embedding_provider
from campus_ai.knowledge.indexer import KnowledgeIndexer
from campus_ai.knowledge.retriever import KnowledgeRetriever
from campus_ai.stores.sql import (
    SQLCampaignStore,
    SQLCourseStore,
    SQLEnrollmentStore,
    SQLGradeStore,
    SQLKnowledgeStore,
    SQLStudentStore,
)
from campus_ai.students.context import StudentContextAssembler


async def get_knowledge_db() -> AsyncGenerator[AsyncSession, None]:
    """Separate session for knowledge reads.

    The tutor runs retrieval and student context assembly concurrently, and an
    AsyncSession does not allow concurrent operations.
    """
    async with async_session_maker() as session:
        yield session


async def get_current_student_id(
    x_student_id: Annotated[int | None, Header()] = None,
) -> int:
    """Student identity forwarded by the student auth gateway."""
    if x_student_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Student identification required",
        )
    return x_student_id


def get_knowledge_retriever(
    db: AsyncSession = Depends(get_knowledge_db),
    embedding_provider: EmbeddingProvider = Depends(get_embedding_provider),
) -> KnowledgeRetriever:
    return KnowledgeRetriever(SQLKnowledgeStore(db), embedding_provider)


def get_knowledge_indexer(
    db: AsyncSession = Depends(get_db),
    embedding_provider: EmbeddingProvider = Depends(get_embedding_provider),
) -> KnowledgeIndexer:
    return KnowledgeIndexer(SQLKnowledgeStore(db), embedding_provider)


def get_context_assembler(db: AsyncSession = Depends(get_db)) -> StudentContextAssembler:
    return StudentContextAssembler(
        students=SQLStudentStore(db),
        courses=SQLCourseStore(db),
        enrollments=SQLEnrollmentStore(db),
        grades=SQLGradeStore(db),
    )


def get_response_generator(
    retriever: KnowledgeRetriever = Depends(get_knowledge_retriever),
    assembler: StudentContextAssembler = Depends(get_context_assembler),
    language_model: LanguageModelProvider = Depends(get_language_model),
) -> ResponseGenerator:
    settings = get_settings()
    return ResponseGenerator(
        retriever=retriever,
        assembler=assembler,
        language_model=language_model,
        timeout_seconds=settings.ai_request_timeout_seconds,
        knowledge_limit=settings.ai_knowledge_limit,
    )


def get_study_tools(
    db: AsyncSession = Depends(get_db),
    retriever: KnowledgeRetriever = Depends(get_knowledge_retriever),
    language_model: LanguageModelProvider = Depends(get_language_model),
) -> StudyTools:
    return StudyTools(
        retriever=retriever,
        courses=SQLCourseStore(db),
        enrollments=SQLEnrollmentStore(db),
        language_model=language_model,
    )


def get_popup_resolver(db: AsyncSession = Depends(get_db)) -> PopupResolver:
    return PopupResolver(SQLCampaignStore(db), SQLEnrollmentStore(db))
