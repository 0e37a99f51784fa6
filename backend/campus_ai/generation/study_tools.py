"""Exam practice and study planning on top of the knowledge base."""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from campus_ai.core.ai_constants import (
    ANSWER_EVALUATION_MAX_TOKENS,
    ANSWER_EVALUATION_SYSTEM_PROMPT,
    DEFAULT_EVALUATION_SCORE,
    DIFFICULTY_LABELS,
    EXAM_QUESTION_MAX_TOKENS,
    EXAM_QUESTION_SYSTEM_PROMPT,
    MSG_EVALUATION_FAILED,
    MSG_EVALUATION_NOT_CONFIGURED,
    STUDY_PLAN_MAX_TOKENS,
    STUDY_PLAN_SYSTEM_PROMPT,
    STUDY_TOOL_KNOWLEDGE_LIMIT,
)
from campus_ai.core.errors import (
    CourseNotFound,
    EnrollmentNotFound,
    InvalidQuery,
    ProviderError,
    ProviderUnavailable,
)
from campus_ai.generation.llm import Completion, LanguageModelProvider, ensure_visible_text
from campus_ai.generation.prompts import (
    build_answer_evaluation_prompt,
    build_exam_question_prompt,
    build_study_plan_prompt,
    parse_evaluation_score,
    parse_exam_question,
)
from campus_ai.knowledge.models import KnowledgeCategory, RetrievalScope, RetrievedKnowledge
from campus_ai.knowledge.retriever import KnowledgeRetriever
from campus_ai.stores.base import CourseStore, EnrollmentStore
from campus_ai.students.models import CourseRecord

logger = logging.getLogger(__name__)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ExamQuestion(BaseModel):
    question: str
    correct_answer: str = ""
    explanation: str = ""
    knowledge_sources: list[int] = Field(default_factory=list)
    tokens_used: int | None = None


class AnswerEvaluation(BaseModel):
    score: int = Field(..., ge=0, le=100)
    feedback: str
    tokens_used: int | None = None


class StudyPlan(BaseModel):
    course_id: int
    plan: str
    knowledge_sources: list[int] = Field(default_factory=list)
    tokens_used: int | None = None


class StudyTools:
    """Exam question generation, answer grading and study plans."""

    def __init__(
        self,
        retriever: KnowledgeRetriever,
        courses: CourseStore,
        enrollments: EnrollmentStore,
        language_model: LanguageModelProvider,
    ) -> None:
        self.retriever = retriever
        self.courses = courses
        self.enrollments = enrollments
        self.language_model = language_model

    async def _get_course(self, course_id: int) -> CourseRecord:
        course = await self.courses.get_course(course_id)
        if course is None:
            raise CourseNotFound(course_id)
        return course

    async def _knowledge(
        self,
        query: str,
        course_id: int,
        category: KnowledgeCategory,
    ) -> list[RetrievedKnowledge]:
        outcome = await self.retriever.retrieve(
            query,
            RetrievalScope(course_id=course_id, category=category),
            STUDY_TOOL_KNOWLEDGE_LIMIT,
        )
        return outcome.value or []

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> Completion:
        completion = await self.language_model.complete(system_prompt, user_prompt, max_tokens)
        ensure_visible_text(completion, self.language_model.provider_name, max_tokens)
        return completion

    async def generate_exam_question(
        self,
        course_id: int,
        difficulty: Difficulty = Difficulty.MEDIUM,
    ) -> ExamQuestion:
        """Generate one practice question from the course's exam prep material.

        Raises:
            CourseNotFound: Unknown course.
            ProviderUnavailable: Language model not configured.
            ProviderError: Language model call failed.
        """
        course = await self._get_course(course_id)
        topic = course.syllabus or course.description or course.name
        knowledge = await self._knowledge(topic, course_id, KnowledgeCategory.EXAM_PREP)

        system_prompt = EXAM_QUESTION_SYSTEM_PROMPT.format(
            difficulty=DIFFICULTY_LABELS[Difficulty(difficulty).value]
        )
        completion = await self._complete(
            system_prompt,
            build_exam_question_prompt(course, knowledge),
            EXAM_QUESTION_MAX_TOKENS,
        )

        question, correct_answer, explanation = parse_exam_question(completion.text)
        return ExamQuestion(
            question=question,
            correct_answer=correct_answer,
            explanation=explanation,
            knowledge_sources=[k.knowledge_id for k in knowledge],
            tokens_used=completion.tokens_used,
        )

    async def evaluate_answer(
        self,
        question: str,
        correct_answer: str,
        student_answer: str,
    ) -> AnswerEvaluation:
        """Grade a student's answer; never raises on provider failure.

        Raises:
            InvalidQuery: Empty question or answer.
        """
        if not question.strip() or not student_answer.strip():
            raise InvalidQuery("question and student answer must not be empty")

        try:
            completion = await self._complete(
                ANSWER_EVALUATION_SYSTEM_PROMPT,
                build_answer_evaluation_prompt(question, correct_answer, student_answer),
                ANSWER_EVALUATION_MAX_TOKENS,
            )
        except ProviderUnavailable:
            return AnswerEvaluation(score=0, feedback=MSG_EVALUATION_NOT_CONFIGURED)
        except ProviderError as exc:
            logger.error("Answer evaluation failed: %s", exc)
            return AnswerEvaluation(score=0, feedback=MSG_EVALUATION_FAILED)

        feedback = completion.text.strip()
        return AnswerEvaluation(
            score=parse_evaluation_score(feedback, DEFAULT_EVALUATION_SCORE),
            feedback=feedback,
            tokens_used=completion.tokens_used,
        )

    async def generate_study_plan(self, student_id: int, course_id: int) -> StudyPlan:
        """Daily study plan for a course the student is enrolled in.

        Raises:
            CourseNotFound: Unknown course.
            EnrollmentNotFound: The student is not enrolled in the course.
            ProviderUnavailable: Language model not configured.
            ProviderError: Language model call failed.
        """
        course = await self._get_course(course_id)

        enrollments = await self.enrollments.find_by_student(student_id, course_id)
        if not any(e.student_id == student_id and e.course.id == course_id for e in enrollments):
            raise EnrollmentNotFound(f"student {student_id} in course {course_id}")

        topic = course.syllabus or course.description or course.name
        knowledge = await self._knowledge(topic, course_id, KnowledgeCategory.STUDY_GUIDE)
        completion = await self._complete(
            STUDY_PLAN_SYSTEM_PROMPT,
            build_study_plan_prompt(course, knowledge),
            STUDY_PLAN_MAX_TOKENS,
        )
        return StudyPlan(
            course_id=course_id,
            plan=completion.text.strip(),
            knowledge_sources=[k.knowledge_id for k in knowledge],
            tokens_used=completion.tokens_used,
        )
