"""Student records read from the CRM and the derived per-student context."""

from datetime import date, datetime

from pydantic import BaseModel, Field


# -------------------------------------------------------------------------
# Records supplied by the stores
# -------------------------------------------------------------------------


class StudentRecord(BaseModel):
    id: int
    name: str
    email: str | None = None


class CourseRecord(BaseModel):
    id: int
    name: str
    subject: str | None = None
    description: str | None = None
    syllabus: str | None = None
    number_of_sessions: int = 0
    start_date: date | None = None
    end_date: date | None = None


class ExamRecord(BaseModel):
    id: int
    name: str
    exam_type: str
    exam_date: date | None = None
    max_score: float = 100
    weight: float = 0


class EnrollmentRecord(BaseModel):
    id: int
    student_id: int | None
    course: CourseRecord
    status: str
    enrolled_at: datetime | None = None


class GradeRecord(BaseModel):
    id: int
    enrollment_id: int
    exam: ExamRecord | None
    score: float
    notes: str | None = None
    created_at: datetime | None = None


# -------------------------------------------------------------------------
# Derived context
# -------------------------------------------------------------------------


class GradeSummary(BaseModel):
    """One graded exam as seen by the tutor bot."""

    exam_name: str
    exam_type: str
    exam_date: date | None = None
    score: float
    max_score: float
    percentage: int | None = Field(
        None,
        ge=0,
        le=100,
        description="None when max_score is 0; excluded from averages",
    )
    notes: str = ""


class CourseSummary(BaseModel):
    """A student's standing in one course."""

    course_id: int
    course_name: str
    subject: str = ""
    status: str
    start_date: date | None = None
    end_date: date | None = None
    session_count: int = 0
    grades: list[GradeSummary] = Field(default_factory=list)
    average_grade: float | None = None
    weak_areas: list[str] = Field(default_factory=list)


class StudentContext(BaseModel):
    """Per-request summary of a student's courses and grades.

    Averages are None, never 0, when no scorable grades exist.
    """

    student_id: int
    student_name: str
    courses: list[CourseSummary] = Field(default_factory=list)
    overall_average: float | None = None
    total_exams: int = 0

    @property
    def total_courses(self) -> int:
        return len(self.courses)

    @property
    def has_courses(self) -> bool:
        return bool(self.courses)
