"""Tutor bot endpoints for students."""

import logging
import time
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from campus_ai.api.deps import (
    get_current_student_id,
    get_knowledge_retriever,
    get_response_generator,
    get_study_tools,
)
from campus_ai.core.database import get_db
from campus_ai.core.outcome import OutcomeStatus
from campus_ai.generation.study_tools import Difficulty, StudyTools
from campus_ai.generation.tutor import ConversationContext, Intent, ResponseGenerator
from campus_ai.knowledge.retriever import KnowledgeRetriever
from campus_ai.models import ChatMessage, CourseEnrollment

router = APIRouter()
logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)
    course_id: int | None = None
    intent: Intent = Intent.QUESTION


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    role: str
    message: str
    course_id: int | None
    intent: str
    knowledge_sources: list[dict]
    exam_data: dict | None = None
    tokens_used: int | None = None
    model: str | None = None
    response_time_ms: int | None = None
    created_at: datetime


class SendMessageResponse(BaseModel):
    message: ChatMessageResponse
    status: OutcomeStatus


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessageResponse]


class ExamQuestionRequest(BaseModel):
    course_id: int
    difficulty: Difficulty = Difficulty.MEDIUM


class ExamQuestionResponse(BaseModel):
    question: ChatMessageResponse
    difficulty: Difficulty


class ExamAnswerRequest(BaseModel):
    question_id: int
    answer: str = Field(..., min_length=1)


class ExamAnswerResponse(BaseModel):
    score: int
    feedback: str
    correct_answer: str
    explanation: str


class StudyPlanRequest(BaseModel):
    course_id: int


class StudyPlanResponse(BaseModel):
    study_plan: str
    knowledge_sources: list[int]


async def _require_enrollment(db: AsyncSession, student_id: int, course_id: int) -> None:
    result = await db.execute(
        select(CourseEnrollment.id)
        .where(
            CourseEnrollment.customer_id == student_id,
            CourseEnrollment.course_id == course_id,
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student is not enrolled in this course",
        )


# -------------------------------------------------------------------------
# Chat
# -------------------------------------------------------------------------


@router.post("/messages", response_model=SendMessageResponse)
async def send_message(
    request: SendMessageRequest,
    student_id: int = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
    generator: ResponseGenerator = Depends(get_response_generator),
    retriever: KnowledgeRetriever = Depends(get_knowledge_retriever),
) -> SendMessageResponse:
    """Ask the tutor bot a question.

    Provider failures still return 200 with an apology message; the
    ``status`` field tells the client the reply is not a real answer.
    """
    start_time = time.perf_counter()
    outcome = await generator.generate(
        request.message.strip(),
        ConversationContext(
            student_id=student_id,
            course_id=request.course_id,
            intent=request.intent,
        ),
    )
    response_time_ms = int((time.perf_counter() - start_time) * 1000)
    reply = outcome.value

    knowledge_sources = [
        {"knowledge_id": source.knowledge_id, "relevance_score": source.score}
        for source in reply.knowledge_sources
    ]
    db.add(
        ChatMessage(
            student_id=student_id,
            role="user",
            message=request.message.strip(),
            course_id=request.course_id,
            intent=request.intent.value,
            knowledge_sources=knowledge_sources,
        )
    )
    assistant_message = ChatMessage(
        student_id=student_id,
        role="assistant",
        message=reply.text,
        course_id=request.course_id,
        intent=request.intent.value,
        knowledge_sources=knowledge_sources,
        tokens_used=reply.tokens_used,
        model=reply.model,
        response_time_ms=response_time_ms,
    )
    db.add(assistant_message)
    await db.commit()
    await db.refresh(assistant_message)

    if outcome.is_ok and reply.knowledge_sources:
        await retriever.record_usage([source.knowledge_id for source in reply.knowledge_sources])

    return SendMessageResponse(
        message=ChatMessageResponse.model_validate(assistant_message),
        status=outcome.status,
    )


@router.get("/history", response_model=ChatHistoryResponse)
async def get_chat_history(
    student_id: int = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
    course_id: int | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> ChatHistoryResponse:
    """Recent chat messages of the student, oldest first."""
    query = select(ChatMessage).where(ChatMessage.student_id == student_id)
    if course_id is not None:
        query = query.where(ChatMessage.course_id == course_id)
    query = query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit)

    result = await db.execute(query)
    messages = list(reversed(result.scalars().all()))
    return ChatHistoryResponse(
        messages=[ChatMessageResponse.model_validate(m) for m in messages]
    )


# -------------------------------------------------------------------------
# Exam practice
# -------------------------------------------------------------------------


@router.post("/exam-question", response_model=ExamQuestionResponse)
async def generate_exam_question(
    request: ExamQuestionRequest,
    student_id: int = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
    tools: StudyTools = Depends(get_study_tools),
) -> ExamQuestionResponse:
    """Generate a practice question for a course the student is enrolled in."""
    await _require_enrollment(db, student_id, request.course_id)

    exam = await tools.generate_exam_question(request.course_id, request.difficulty)

    message = ChatMessage(
        student_id=student_id,
        role="assistant",
        message=exam.question,
        course_id=request.course_id,
        intent=Intent.EXAM.value,
        knowledge_sources=[{"knowledge_id": kid} for kid in exam.knowledge_sources],
        exam_data={
            "question": exam.question,
            "correct_answer": exam.correct_answer,
            "explanation": exam.explanation,
        },
        tokens_used=exam.tokens_used,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    return ExamQuestionResponse(
        question=ChatMessageResponse.model_validate(message),
        difficulty=request.difficulty,
    )


@router.post("/exam-answer", response_model=ExamAnswerResponse)
async def submit_exam_answer(
    request: ExamAnswerRequest,
    student_id: int = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
    tools: StudyTools = Depends(get_study_tools),
) -> ExamAnswerResponse:
    """Grade the student's answer to a previously generated question."""
    question_message = await db.get(ChatMessage, request.question_id)
    if question_message is None or not question_message.exam_data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exam question not found",
        )
    if question_message.student_id != student_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Exam question belongs to another student",
        )

    exam_data = dict(question_message.exam_data)
    answer = request.answer.strip()
    evaluation = await tools.evaluate_answer(
        exam_data["question"],
        exam_data.get("correct_answer", ""),
        answer,
    )

    graded = {
        **exam_data,
        "student_answer": answer,
        "score": evaluation.score,
        "feedback": evaluation.feedback,
    }
    # Reassign so the JSON column is flagged dirty
    question_message.exam_data = graded
    db.add(
        ChatMessage(
            student_id=student_id,
            role="user",
            message=answer,
            course_id=question_message.course_id,
            intent=Intent.EXAM.value,
            exam_data=graded,
        )
    )
    await db.commit()

    return ExamAnswerResponse(
        score=evaluation.score,
        feedback=evaluation.feedback,
        correct_answer=exam_data.get("correct_answer", ""),
        explanation=exam_data.get("explanation", ""),
    )


# -------------------------------------------------------------------------
# Study plan
# -------------------------------------------------------------------------


@router.post("/study-plan", response_model=StudyPlanResponse)
async def generate_study_plan(
    request: StudyPlanRequest,
    student_id: int = Depends(get_current_student_id),
    db: AsyncSession = Depends(get_db),
    tools: StudyTools = Depends(get_study_tools),
) -> StudyPlanResponse:
    """Generate a daily study plan for one of the student's courses."""
    plan = await tools.generate_study_plan(student_id, request.course_id)

    db.add(
        ChatMessage(
            student_id=student_id,
            role="assistant",
            message=plan.plan,
            course_id=request.course_id,
            intent=Intent.STUDY_PLAN.value,
            knowledge_sources=[{"knowledge_id": kid} for kid in plan.knowledge_sources],
            tokens_used=plan.tokens_used,
        )
    )
    await db.commit()

    return StudyPlanResponse(study_plan=plan.plan, knowledge_sources=plan.knowledge_sources)
