"""Student, course, enrollment and grade models.

These tables belong to the CRM side of the application. The tutor core only
reads them through the store adapters in ``campus_ai.stores.sql``.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_ai.models.base import BaseModel, utcnow


class Customer(BaseModel):
    """A customer; customers enrolled in courses are the bot's students."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"


class Course(BaseModel):
    """A course students enroll in."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    subject: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    syllabus: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    number_of_sessions: Mapped[int] = mapped_column(Integer, default=0)
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, name={self.name})>"


class Exam(BaseModel):
    """An exam, quiz, assignment or project belonging to a course."""

    __tablename__ = "exams"

    id: Mapped[int] = mapped_column(primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(200))
    exam_type: Mapped[str] = mapped_column(String(20))  # exam | quiz | assignment | project
    exam_date: Mapped[Optional[date]] = mapped_column("date", Date, nullable=True)
    max_score: Mapped[float] = mapped_column(Float, default=100)
    weight: Mapped[float] = mapped_column(Float, default=0)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Exam(id={self.id}, name={self.name})>"


class CourseEnrollment(BaseModel):
    """Enrollment of a customer or a lead in a course."""

    __tablename__ = "course_enrollments"

    id: Mapped[int] = mapped_column(primary_key=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    customer_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    lead_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    # pending | approved | enrolled | completed | cancelled
    status: Mapped[str] = mapped_column(String(20), default="pending")
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    course: Mapped["Course"] = relationship("Course")

    def __repr__(self) -> str:
        return f"<CourseEnrollment(id={self.id}, course_id={self.course_id}, status={self.status})>"


class Grade(BaseModel):
    """A graded exam result for one enrollment."""

    __tablename__ = "grades"
    __table_args__ = (UniqueConstraint("exam_id", "enrollment_id", name="uq_grades_exam_enrollment"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    exam_id: Mapped[int] = mapped_column(ForeignKey("exams.id", ondelete="CASCADE"))
    enrollment_id: Mapped[int] = mapped_column(
        ForeignKey("course_enrollments.id", ondelete="CASCADE"),
        index=True,
    )
    score: Mapped[float] = mapped_column(Float)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    exam: Mapped["Exam"] = relationship("Exam")
    enrollment: Mapped["CourseEnrollment"] = relationship("CourseEnrollment")

    def __repr__(self) -> str:
        return f"<Grade(id={self.id}, exam_id={self.exam_id}, score={self.score})>"


class WorkshopEnrollment(BaseModel):
    """Enrollment of a customer or a lead in a workshop."""

    __tablename__ = "workshop_enrollments"

    id: Mapped[int] = mapped_column(primary_key=True)
    workshop_id: Mapped[int] = mapped_column(Integer, index=True)
    customer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    lead_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default="enrolled")  # enrolled | attended | cancelled

    def __repr__(self) -> str:
        return f"<WorkshopEnrollment(id={self.id}, workshop_id={self.workshop_id}, status={self.status})>"
