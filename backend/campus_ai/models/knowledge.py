"""Knowledge base entry model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from campus_ai.models.base import BaseModel


class KnowledgeBaseEntry(BaseModel):
    """A titled, categorized unit of reference text for the tutor bot."""

    __tablename__ = "knowledge_base"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(300))
    content: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(30), default="general_advice", index=True)
    # NULL = global knowledge shared by all courses
    course_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("courses.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    # none_as_null so a failed embedding is SQL NULL and found by the backfill
    embedding: Mapped[Optional[list[float]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    source: Mapped[str] = mapped_column(String(30), default="manual")
    relevance_score: Mapped[float] = mapped_column(Float, default=1.0)
    author_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0)
    last_used: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<KnowledgeBaseEntry(id={self.id}, title={self.title})>"
