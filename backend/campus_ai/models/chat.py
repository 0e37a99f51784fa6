"""Tutor bot chat message model."""

from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from campus_ai.models.base import BaseModel


class ChatMessage(BaseModel):
    """Single message between a student and the tutor bot."""

    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id", ondelete="CASCADE"),
        index=True,
    )
    role: Mapped[str] = mapped_column(String(20))  # user | assistant | system
    message: Mapped[str] = mapped_column(Text, nullable=False)

    course_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    # question | exam | advice | study_plan | general
    intent: Mapped[str] = mapped_column(String(20), default="question")
    # [{"knowledge_id": 1, "relevance_score": 0.83}, ...]
    knowledge_sources: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # Exam mode: question, correct_answer, explanation, student_answer, score, feedback
    exam_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    tokens_used: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<ChatMessage(id={self.id}, student_id={self.student_id}, role={self.role})>"
