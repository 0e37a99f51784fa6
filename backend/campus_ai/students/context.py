"""Student context assembly for the tutor bot.

Builds a per-request summary of a student's courses, grades, averages and
weak areas. Nothing is cached; every call reads the stores again.
"""

import logging
from statistics import fmean

from campus_ai.core.ai_constants import WEAK_AREA_THRESHOLD
from campus_ai.core.errors import CourseNotFound, StudentNotFound
from campus_ai.stores.base import CourseStore, EnrollmentStore, GradeStore, StudentStore
from campus_ai.students.models import (
    CourseSummary,
    EnrollmentRecord,
    GradeRecord,
    GradeSummary,
    StudentContext,
)

logger = logging.getLogger(__name__)


def grade_percentage(score: float, max_score: float) -> int | None:
    """Score as a whole percentage clamped to [0, 100].

    Returns None when ``max_score`` is 0; such grades are left out of every
    average.
    """
    if not max_score:
        return None
    percentage = round(score / max_score * 100)
    return max(0, min(100, percentage))


def _summarize_grade(grade: GradeRecord) -> GradeSummary:
    exam = grade.exam
    max_score = exam.max_score if exam is not None else 0
    return GradeSummary(
        exam_name=exam.name if exam is not None else "",
        exam_type=exam.exam_type if exam is not None else "",
        exam_date=exam.exam_date if exam is not None else None,
        score=grade.score,
        max_score=max_score,
        percentage=grade_percentage(grade.score, max_score),
        notes=grade.notes or "",
    )


def _summarize_course(enrollment: EnrollmentRecord, grades: list[GradeRecord]) -> CourseSummary:
    summaries = [_summarize_grade(grade) for grade in grades]
    percentages = [summary.percentage for summary in summaries if summary.percentage is not None]

    course = enrollment.course
    return CourseSummary(
        course_id=course.id,
        course_name=course.name,
        subject=course.subject or "",
        status=enrollment.status,
        start_date=course.start_date,
        end_date=course.end_date,
        session_count=course.number_of_sessions,
        grades=summaries,
        average_grade=round(fmean(percentages), 1) if percentages else None,
        weak_areas=[
            summary.exam_name
            for summary in summaries
            if summary.percentage is not None and summary.percentage < WEAK_AREA_THRESHOLD
        ],
    )


class StudentContextAssembler:
    """Collects a student's enrollments and grades into a StudentContext."""

    def __init__(
        self,
        students: StudentStore,
        courses: CourseStore,
        enrollments: EnrollmentStore,
        grades: GradeStore,
    ) -> None:
        self.students = students
        self.courses = courses
        self.enrollments = enrollments
        self.grades = grades

    async def assemble(self, student_id: int, course_id: int | None = None) -> StudentContext:
        """Build the context for one student.

        Args:
            student_id: The student (customer) id.
            course_id: Restrict the context to a single course.

        Raises:
            StudentNotFound: Unknown student.
            CourseNotFound: ``course_id`` given but no such course.
        """
        student = await self.students.get_student(student_id)
        if student is None:
            raise StudentNotFound(student_id)

        if course_id is not None and await self.courses.get_course(course_id) is None:
            raise CourseNotFound(course_id)

        enrollments = []
        for enrollment in await self.enrollments.find_by_student(student_id, course_id):
            if enrollment.student_id != student_id:
                logger.warning(
                    "Dropping enrollment %s: belongs to student %s, not %s",
                    enrollment.id,
                    enrollment.student_id,
                    student_id,
                )
                continue
            if course_id is not None and enrollment.course.id != course_id:
                logger.warning(
                    "Dropping enrollment %s: course %s outside filter %s",
                    enrollment.id,
                    enrollment.course.id,
                    course_id,
                )
                continue
            enrollments.append(enrollment)

        enrollment_ids = [enrollment.id for enrollment in enrollments]
        grades_by_enrollment: dict[int, list[GradeRecord]] = {eid: [] for eid in enrollment_ids}
        if enrollment_ids:
            for grade in await self.grades.find_by_enrollments(enrollment_ids):
                if grade.enrollment_id not in grades_by_enrollment:
                    logger.warning(
                        "Dropping grade %s: enrollment %s does not belong to student %s",
                        grade.id,
                        grade.enrollment_id,
                        student_id,
                    )
                    continue
                grades_by_enrollment[grade.enrollment_id].append(grade)

        courses = [
            _summarize_course(enrollment, grades_by_enrollment[enrollment.id])
            for enrollment in enrollments
        ]

        # Grade-weighted across courses, not a mean of course averages
        all_percentages = [
            grade.percentage
            for course in courses
            for grade in course.grades
            if grade.percentage is not None
        ]

        return StudentContext(
            student_id=student.id,
            student_name=student.name,
            courses=courses,
            overall_average=round(fmean(all_percentages), 1) if all_percentages else None,
            total_exams=sum(len(course.grades) for course in courses),
        )
