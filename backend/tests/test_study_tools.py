"""Tests for exam questions, answer evaluation and study plans."""

import pytest

from campus_ai.core.ai_constants import (
    ANSWER_EVALUATION_MAX_TOKENS,
    DEFAULT_EVALUATION_SCORE,
    EXAM_QUESTION_MAX_TOKENS,
    MSG_EVALUATION_FAILED,
    MSG_EVALUATION_NOT_CONFIGURED,
    STUDY_PLAN_MAX_TOKENS,
)
from campus_ai.core.errors import (
    CourseNotFound,
    EnrollmentNotFound,
    InvalidQuery,
    ProviderError,
    ProviderUnavailable,
    TruncatedEmptyResponse,
)
from campus_ai.generation.llm import Completion
from campus_ai.generation.prompts import parse_evaluation_score, parse_exam_question
from campus_ai.generation.study_tools import Difficulty, StudyTools
from campus_ai.knowledge.models import KnowledgeCategory, KnowledgeEntry
from campus_ai.knowledge.retriever import KnowledgeRetriever

EXAM_RESPONSE = """שאלה: מהו הפתרון של x^2 = 9?
תשובה נכונה: x = 3 או x = -3
הסבר: לכל מספר חיובי יש שני שורשים ריבועיים."""


@pytest.fixture
def tools(knowledge_store, school, mock_embedding_provider, mock_language_model, metrics):
    return StudyTools(
        retriever=KnowledgeRetriever(knowledge_store, mock_embedding_provider, metrics),
        courses=school,
        enrollments=school,
        language_model=mock_language_model,
    )


@pytest.fixture
def course(school, knowledge_store):
    knowledge_store._add(
        KnowledgeEntry(
            id=1,
            title="שורשים",
            content="x^2 = a",
            category=KnowledgeCategory.EXAM_PREP,
            course_id=10,
            embedding=[1.0, 0.0, 0.0],
        )
    )
    knowledge_store._add(
        KnowledgeEntry(
            id=2,
            title="לוח זמנים",
            content="שעה ביום",
            category=KnowledgeCategory.STUDY_GUIDE,
            embedding=[1.0, 0.0, 0.0],
        )
    )
    return school.add_course(10, "אלגברה", syllabus="משוואות ריבועיות", number_of_sessions=8)


def _reply(mock_language_model, text: str) -> None:
    mock_language_model.complete.return_value = Completion(
        text=text, finish_reason="stop", tokens_used=10, model="gpt-4o-mini"
    )


class TestParsing:
    def test_parse_exam_question(self):
        question, answer, explanation = parse_exam_question(EXAM_RESPONSE)

        assert question == "מהו הפתרון של x^2 = 9?"
        assert answer == "x = 3 או x = -3"
        assert explanation == "לכל מספר חיובי יש שני שורשים ריבועיים."

    def test_parse_without_markers_uses_whole_text(self):
        assert parse_exam_question("  מה זה פונקציה?  ") == ("מה זה פונקציה?", "", "")

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("ציון: 85 מתוך 100. עבודה טובה", 85),
            ("קיבלת 90 מ-100", 90),
            ("150 מתוך 100", 100),
            ("תשובה טובה מאוד", DEFAULT_EVALUATION_SCORE),
        ],
    )
    def test_parse_evaluation_score(self, text, expected):
        assert parse_evaluation_score(text, DEFAULT_EVALUATION_SCORE) == expected


class TestExamQuestion:
    async def test_generates_question(self, tools, course, mock_language_model):
        _reply(mock_language_model, EXAM_RESPONSE)

        exam = await tools.generate_exam_question(10, Difficulty.HARD)

        assert exam.question == "מהו הפתרון של x^2 = 9?"
        assert exam.correct_answer == "x = 3 או x = -3"
        assert exam.knowledge_sources == [1]
        system_prompt, user_prompt, max_tokens = mock_language_model.complete.call_args.args
        assert "קשה" in system_prompt
        assert "שורשים: x^2 = a" in user_prompt
        assert "נושא הקורס: אלגברה" in user_prompt
        assert max_tokens == EXAM_QUESTION_MAX_TOKENS

    async def test_retrieves_with_syllabus_as_query(
        self, tools, course, mock_embedding_provider, mock_language_model
    ):
        _reply(mock_language_model, EXAM_RESPONSE)

        await tools.generate_exam_question(10)

        assert mock_embedding_provider.embed.call_args.args[0] == "משוואות ריבועיות"

    async def test_unknown_course(self, tools):
        with pytest.raises(CourseNotFound):
            await tools.generate_exam_question(404)

    async def test_provider_errors_raise(self, tools, course, mock_language_model):
        mock_language_model.complete.side_effect = ProviderUnavailable("openai")
        with pytest.raises(ProviderUnavailable):
            await tools.generate_exam_question(10)

    async def test_truncated_empty_response(self, tools, course, mock_language_model):
        mock_language_model.complete.return_value = Completion(
            text="", finish_reason="length", tokens_used=500, model="gpt-5-mini"
        )

        with pytest.raises(TruncatedEmptyResponse) as exc_info:
            await tools.generate_exam_question(10)

        assert exc_info.value.max_tokens == EXAM_QUESTION_MAX_TOKENS

    async def test_empty_response_without_truncation(self, tools, course, mock_language_model):
        _reply(mock_language_model, "   ")

        with pytest.raises(ProviderError) as exc_info:
            await tools.generate_exam_question(10)

        assert not isinstance(exc_info.value, TruncatedEmptyResponse)


class TestEvaluateAnswer:
    async def test_scores_answer(self, tools, mock_language_model):
        _reply(mock_language_model, "ציון 80 מתוך 100. חסר השורש השלילי.")

        evaluation = await tools.evaluate_answer("x^2=9?", "±3", "3")

        assert evaluation.score == 80
        assert evaluation.feedback.startswith("ציון 80")
        assert mock_language_model.complete.call_args.args[2] == ANSWER_EVALUATION_MAX_TOKENS
        assert "תשובת התלמיד: 3" in mock_language_model.complete.call_args.args[1]

    async def test_default_score_when_missing(self, tools, mock_language_model):
        _reply(mock_language_model, "תשובה מצוינת")

        evaluation = await tools.evaluate_answer("q", "a", "a")

        assert evaluation.score == DEFAULT_EVALUATION_SCORE

    async def test_provider_error_scores_zero(self, tools, mock_language_model):
        mock_language_model.complete.side_effect = ProviderError("openai", "boom")

        evaluation = await tools.evaluate_answer("q", "a", "b")

        assert evaluation.score == 0
        assert evaluation.feedback == MSG_EVALUATION_FAILED

    async def test_truncated_evaluation_scores_zero(self, tools, mock_language_model):
        mock_language_model.complete.return_value = Completion(
            text="", finish_reason="length", model="gpt-5-mini"
        )

        evaluation = await tools.evaluate_answer("q", "a", "b")

        assert evaluation.score == 0
        assert evaluation.feedback == MSG_EVALUATION_FAILED

    async def test_not_configured(self, tools, mock_language_model):
        mock_language_model.complete.side_effect = ProviderUnavailable("openai")

        evaluation = await tools.evaluate_answer("q", "a", "b")

        assert evaluation.score == 0
        assert evaluation.feedback == MSG_EVALUATION_NOT_CONFIGURED

    async def test_empty_answer_rejected(self, tools):
        with pytest.raises(InvalidQuery):
            await tools.evaluate_answer("q", "a", "  ")


class TestStudyPlan:
    async def test_requires_enrollment(self, tools, course, school):
        school.add_student(7, "נועה")
        with pytest.raises(EnrollmentNotFound):
            await tools.generate_study_plan(7, 10)

    async def test_unknown_course(self, tools):
        with pytest.raises(CourseNotFound):
            await tools.generate_study_plan(7, 404)

    async def test_generates_plan(self, tools, course, school, mock_language_model):
        school.add_student(7, "נועה")
        school.enroll(100, 7, 10)
        _reply(mock_language_model, "יום 1: חזרה על נוסחת השורשים")

        plan = await tools.generate_study_plan(7, 10)

        assert plan.plan == "יום 1: חזרה על נוסחת השורשים"
        assert plan.knowledge_sources == [2]
        _, user_prompt, max_tokens = mock_language_model.complete.call_args.args
        assert "מספר מפגשים: 8" in user_prompt
        assert max_tokens == STUDY_PLAN_MAX_TOKENS
