"""Prompt rendering for the tutor bot and study tools."""

import re
from datetime import date

from campus_ai.core.ai_constants import (
    ENROLLMENT_STATUS_LABELS,
    EXAM_TYPE_LABELS,
    UNKNOWN_LABEL,
    WEAK_AREA_THRESHOLD,
)
from campus_ai.knowledge.models import RetrievedKnowledge
from campus_ai.students.models import CourseRecord, CourseSummary, StudentContext


def _format_date(value: date | None) -> str:
    return value.strftime("%d.%m.%Y") if value else "לא צוין"


def _format_course(index: int, course: CourseSummary) -> list[str]:
    header = f"{index}. {course.course_name}"
    if course.subject:
        header += f" ({course.subject})"
    lines = [header, f"   סטטוס: {ENROLLMENT_STATUS_LABELS.get(course.status, course.status)}"]

    if course.start_date:
        lines.append(f"   תאריך התחלה: {_format_date(course.start_date)}")
    if course.session_count > 0:
        lines.append(f"   מספר מפגשים: {course.session_count}")
    if course.average_grade is not None:
        lines.append(f"   ממוצע בקורס: {course.average_grade:.1f}%")

    if course.grades:
        lines.append("   ציונים:")
        for grade in course.grades:
            exam_type = EXAM_TYPE_LABELS.get(grade.exam_type, grade.exam_type or UNKNOWN_LABEL)
            percentage = f"{grade.percentage}%" if grade.percentage is not None else UNKNOWN_LABEL
            lines.append(
                f"     - {grade.exam_name} ({exam_type}, {_format_date(grade.exam_date)}): "
                f"{grade.score:g}/{grade.max_score:g} ({percentage})"
            )
            if grade.notes:
                lines.append(f"       הערה: {grade.notes}")
    else:
        lines.append("   עדיין אין ציונים")

    if course.weak_areas:
        lines.append(
            f"   אזורים לשיפור (ציון נמוך מ-{WEAK_AREA_THRESHOLD}%): {', '.join(course.weak_areas)}"
        )
    return lines


def render_student_context(context: StudentContext) -> str:
    """Render a student's courses and grades for the user turn."""
    lines = ["## מידע אישי על התלמיד:", f"שם: {context.student_name}"]

    if not context.has_courses:
        lines.append("התלמיד עדיין לא רשום לקורסים.")
        return "\n".join(lines)

    lines.append(f"מספר קורסים: {context.total_courses}")
    if context.overall_average is not None:
        lines.append(f"ממוצע כללי: {context.overall_average:.1f}%")
    if context.total_exams > 0:
        lines.append(f'סה"כ מבחנים: {context.total_exams}')

    lines.extend(["", "### קורסים:"])
    for index, course in enumerate(context.courses, 1):
        lines.append("")
        lines.extend(_format_course(index, course))
    return "\n".join(lines)


def render_knowledge(results: list[RetrievedKnowledge]) -> str:
    """Render retrieved knowledge snippets, most relevant first."""
    return "\n\n---\n\n".join(
        f"כותרת: {result.title}\nתוכן: {result.content}" for result in results
    )


def render_reference_material(results: list[RetrievedKnowledge]) -> str:
    """Compact ``title: content`` listing used by the study tools."""
    return "\n\n".join(f"{result.title}: {result.content}" for result in results)


def build_tutor_prompt(
    message: str,
    knowledge: list[RetrievedKnowledge],
    student_context: StudentContext | None = None,
) -> str:
    """Compose the user turn: student context, knowledge, then the question."""
    sections = []
    if student_context is not None:
        sections.append(render_student_context(student_context))
    if knowledge:
        sections.append(f"ידע רלוונטי:\n{render_knowledge(knowledge)}")
    sections.append(f"שאלת התלמיד: {message}")
    return "\n\n".join(sections)


def build_exam_question_prompt(course: CourseRecord, knowledge: list[RetrievedKnowledge]) -> str:
    return (
        f"חומר הלימוד:\n{render_reference_material(knowledge)}\n\n"
        f"נושא הקורס: {course.name}\n"
        f"תיאור: {course.description or ''}"
    )


def build_answer_evaluation_prompt(question: str, correct_answer: str, student_answer: str) -> str:
    return (
        f"שאלה: {question}\n"
        f"תשובה נכונה: {correct_answer}\n"
        f"תשובת התלמיד: {student_answer}\n\n"
        "הערך את התשובה ותן משוב מפורט."
    )


def build_study_plan_prompt(course: CourseRecord, knowledge: list[RetrievedKnowledge]) -> str:
    sessions = course.number_of_sessions or "לא מוגדר"
    return (
        f"קורס: {course.name}\n"
        f"מספר מפגשים: {sessions}\n"
        f"תוכנית לימודים: {course.syllabus or ''}\n\n"
        f"חומר עזר:\n{render_reference_material(knowledge)}\n\n"
        "צור תוכנית לימודים יומית מפורטת."
    )


# -------------------------------------------------------------------------
# Response parsing
# -------------------------------------------------------------------------

_QUESTION_RE = re.compile(r"שאלה:\s*(.+?)(?=תשובה|הסבר|$)", re.DOTALL)
_ANSWER_RE = re.compile(r"תשובה נכונה:\s*(.+?)(?=הסבר|$)", re.DOTALL)
_EXPLANATION_RE = re.compile(r"הסבר:\s*(.+?)$", re.DOTALL)
_SCORE_RE = re.compile(r"(\d+)\s*(?:מתוך|מ-|ציון)")


def parse_exam_question(text: str) -> tuple[str, str, str]:
    """Split a generated exam question into question, answer and explanation.

    Missing sections come back empty; without a question marker the whole
    text is the question.
    """
    question = _QUESTION_RE.search(text)
    answer = _ANSWER_RE.search(text)
    explanation = _EXPLANATION_RE.search(text)
    return (
        question.group(1).strip() if question else text.strip(),
        answer.group(1).strip() if answer else "",
        explanation.group(1).strip() if explanation else "",
    )


def parse_evaluation_score(text: str, default: int) -> int:
    """Extract a 0-100 score from grader feedback."""
    match = _SCORE_RE.search(text)
    if match is None:
        return default
    return max(0, min(100, int(match.group(1))))
