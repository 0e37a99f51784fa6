"""Tutor bot response generation.

Retrieves knowledge and assembles the student's context concurrently, composes
a single-turn prompt and calls the language model. Provider failures become a
``failed`` outcome carrying a short Hebrew apology for the student and the
original error for logs.
"""

import asyncio
import logging
from enum import Enum

from pydantic import BaseModel, Field

from campus_ai.core.ai_constants import (
    DEFAULT_KNOWLEDGE_LIMIT,
    MSG_GENERATION_FAILED,
    MSG_RESPONSE_TRUNCATED,
    MSG_SERVICE_NOT_CONFIGURED,
    TUTOR_SYSTEM_PROMPT,
)
from campus_ai.core.errors import (
    InvalidQuery,
    ProviderError,
    ProviderTimeout,
    ProviderUnavailable,
    TruncatedEmptyResponse,
)
from campus_ai.core.outcome import Outcome
from campus_ai.generation.llm import (
    Completion,
    LanguageModelProvider,
    ensure_visible_text,
    max_tokens_for_model,
)
from campus_ai.generation.prompts import build_tutor_prompt
from campus_ai.knowledge.models import RetrievalScope, RetrievedKnowledge
from campus_ai.knowledge.retriever import KnowledgeRetriever
from campus_ai.observability import MetricsBackend, get_metrics_backend
from campus_ai.students.context import StudentContextAssembler
from campus_ai.students.models import StudentContext

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    QUESTION = "question"
    EXAM = "exam"
    ADVICE = "advice"
    STUDY_PLAN = "study_plan"
    GENERAL = "general"


class GenerationStage(str, Enum):
    PENDING = "pending"
    RETRIEVING = "retrieving"
    COMPOSING = "composing"
    INVOKING = "invoking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ConversationContext(BaseModel):
    student_id: int | None = None
    course_id: int | None = None
    intent: Intent = Intent.QUESTION


class KnowledgeSourceRef(BaseModel):
    knowledge_id: int
    title: str
    score: float


class GeneratedResponse(BaseModel):
    text: str
    knowledge_sources: list[KnowledgeSourceRef] = Field(default_factory=list)
    tokens_used: int | None = None
    model: str | None = None
    intent: Intent = Intent.QUESTION
    stage: GenerationStage = GenerationStage.SUCCEEDED


def apology_for(error: Exception) -> str:
    """User-facing message for a generation failure."""
    if isinstance(error, ProviderUnavailable):
        return MSG_SERVICE_NOT_CONFIGURED
    if isinstance(error, TruncatedEmptyResponse):
        return MSG_RESPONSE_TRUNCATED
    return MSG_GENERATION_FAILED


class ResponseGenerator:
    """Answers a student message using retrieved knowledge and their grades."""

    def __init__(
        self,
        retriever: KnowledgeRetriever,
        assembler: StudentContextAssembler,
        language_model: LanguageModelProvider,
        timeout_seconds: float = 60.0,
        knowledge_limit: int = DEFAULT_KNOWLEDGE_LIMIT,
        metrics: MetricsBackend | None = None,
    ) -> None:
        self.retriever = retriever
        self.assembler = assembler
        self.language_model = language_model
        self.timeout_seconds = timeout_seconds
        self.knowledge_limit = knowledge_limit
        self.metrics = metrics or get_metrics_backend()

    async def _retrieve(self, message: str, context: ConversationContext) -> list[RetrievedKnowledge]:
        outcome = await self.retriever.retrieve(
            message,
            RetrievalScope(course_id=context.course_id),
            self.knowledge_limit,
        )
        if outcome.is_fallback:
            logger.info("Answering with fallback knowledge ranking: %s", outcome.error)
        return outcome.value or []

    async def _assemble(self, context: ConversationContext) -> StudentContext | None:
        if context.student_id is None:
            return None
        return await self.assembler.assemble(context.student_id, context.course_id)

    async def _gather_inputs(
        self,
        message: str,
        context: ConversationContext,
    ) -> tuple[list[RetrievedKnowledge], StudentContext | None]:
        """Retrieve knowledge and assemble context concurrently.

        If either fails the other is cancelled and awaited before the error
        propagates, so nothing keeps using the request's sessions.
        """
        retrieval = asyncio.ensure_future(self._retrieve(message, context))
        assembly = asyncio.ensure_future(self._assemble(context))
        try:
            knowledge, student_context = await asyncio.gather(retrieval, assembly)
        except BaseException:
            retrieval.cancel()
            assembly.cancel()
            await asyncio.gather(retrieval, assembly, return_exceptions=True)
            raise
        return knowledge, student_context

    async def _invoke(self, user_prompt: str) -> Completion:
        max_tokens = max_tokens_for_model(self.language_model.model)
        try:
            completion = await asyncio.wait_for(
                self.language_model.complete(TUTOR_SYSTEM_PROMPT, user_prompt, max_tokens),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise ProviderTimeout(self.language_model.provider_name, self.timeout_seconds) from exc

        ensure_visible_text(completion, self.language_model.provider_name, max_tokens)
        return completion

    async def generate(
        self,
        message: str,
        context: ConversationContext | None = None,
    ) -> Outcome[GeneratedResponse]:
        """Generate a tutor reply.

        Args:
            message: The student's message.
            context: Student, course and intent of the conversation.

        Returns:
            ``ok`` with the reply, or ``failed`` with an apology as the value
            and the provider error as the error.

        Raises:
            InvalidQuery: Empty message.
            StudentNotFound: Unknown student id.
            CourseNotFound: Unknown course id.
        """
        if not message or not message.strip():
            raise InvalidQuery("message must not be empty")

        context = context or ConversationContext()
        stage = GenerationStage.PENDING
        try:
            stage = GenerationStage.RETRIEVING
            knowledge, student_context = await self._gather_inputs(message, context)

            stage = GenerationStage.COMPOSING
            user_prompt = build_tutor_prompt(message, knowledge, student_context)

            stage = GenerationStage.INVOKING
            completion = await self._invoke(user_prompt)
        except (ProviderUnavailable, ProviderError) as exc:
            logger.error(
                "Tutor generation failed at stage %s for student %s: %s",
                stage.value,
                context.student_id,
                exc,
            )
            self.metrics.observe_generation(context.intent.value, GenerationStage.FAILED.value)
            return Outcome.failed(
                exc,
                GeneratedResponse(
                    text=apology_for(exc),
                    intent=context.intent,
                    model=self.language_model.model,
                    stage=GenerationStage.FAILED,
                ),
            )

        response = GeneratedResponse(
            text=completion.text.strip(),
            knowledge_sources=[
                KnowledgeSourceRef(knowledge_id=k.knowledge_id, title=k.title, score=k.score)
                for k in knowledge
            ],
            tokens_used=completion.tokens_used,
            model=completion.model,
            intent=context.intent,
        )
        self.metrics.observe_generation(
            context.intent.value,
            GenerationStage.SUCCEEDED.value,
            completion.tokens_used,
        )
        logger.info(
            "Tutor reply generated for student %s: %d sources, %s tokens",
            context.student_id,
            len(response.knowledge_sources),
            completion.tokens_used,
        )
        return Outcome.ok(response)
